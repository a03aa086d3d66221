from arcanelib.stages.analyze import AnalyzeStage, parse_analysis
from arcanelib.stages.edit import EditStage, detect_changes
from arcanelib.stages.models import (
    AnalysisResult,
    ChunkTranslation,
    EditChange,
    EditedTranslation,
    FoundCharacter,
    FoundLocation,
    FoundTerm,
    StageResult,
    StageType,
    StructuredParagraph,
    TranslationDraft,
)
from arcanelib.stages.translate import DEFAULT_CHUNK_SIZE, TranslateStage

__all__ = [
    "AnalyzeStage",
    "TranslateStage",
    "EditStage",
    "parse_analysis",
    "detect_changes",
    "DEFAULT_CHUNK_SIZE",
    "AnalysisResult",
    "ChunkTranslation",
    "EditChange",
    "EditedTranslation",
    "FoundCharacter",
    "FoundLocation",
    "FoundTerm",
    "StageResult",
    "StageType",
    "StructuredParagraph",
    "TranslationDraft",
]
