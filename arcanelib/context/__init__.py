from arcanelib.context.agent import (
    AgentContext,
    ChapterSummary,
    CurrentContext,
    NovelAgent,
    StyleProfile,
)
from arcanelib.context.cache import ContextCache
from arcanelib.context.glossary import (
    CharacterEntry,
    Glossary,
    GlossaryManager,
    GlossaryUpdate,
    LocationEntry,
    TermEntry,
)

__all__ = [
    "AgentContext",
    "ChapterSummary",
    "CurrentContext",
    "NovelAgent",
    "StyleProfile",
    "ContextCache",
    "CharacterEntry",
    "Glossary",
    "GlossaryManager",
    "GlossaryUpdate",
    "LocationEntry",
    "TermEntry",
]
