# providers/models.py
from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass
class Message:
    role:    str   # "system" | "user" | "assistant"
    content: str


@dataclass
class CompletionOptions:
    temperature: float = 0.7
    max_tokens:  int   = 4096


@dataclass
class TokenUsage:
    prompt:     int = 0
    completion: int = 0

    @property
    def total(self) -> int:
        return self.prompt + self.completion


@dataclass
class Completion:
    content:     str
    tokens_used: TokenUsage = field(default_factory=TokenUsage)


@dataclass
class JSONCompletion:
    data:        dict[str, Any]
    tokens_used: TokenUsage = field(default_factory=TokenUsage)


@dataclass
class ProviderConfig:
    """
    Configuración de un proveedor individual.
    Se carga desde ~/.arcane/config.yaml.
    """
    name:              str
    model:             str
    priority:          int
    daily_token_limit: int
    api_key:           Optional[str] = None
    timeout_seconds:   int = 120

    # Control de cooldown temporal (no viene del YAML, es runtime)
    _unavailable_until: Optional[float] = field(
        default=None, compare=False, repr=False
    )


@dataclass
class TranslationSettings:
    """Valores por defecto del motor; cada proyecto puede sobreescribirlos."""
    source_language:      str   = "English"
    target_language:      str   = "Russian"
    temperature:          float = 0.7
    max_tokens_per_chunk: int   = 2000
    enable_analysis:      bool  = True
    enable_editing:       bool  = True


@dataclass
class EngineConfig:
    providers:   list[ProviderConfig]       = field(default_factory=list)
    stages:      dict[str, list[str]]       = field(default_factory=dict)
    translation: TranslationSettings        = field(default_factory=TranslationSettings)
