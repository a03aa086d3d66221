# providers/base.py
import time
from abc import ABC, abstractmethod
from enum import Enum
from typing import TYPE_CHECKING, Optional

from arcanelib.providers.models import (
    Completion,
    CompletionOptions,
    JSONCompletion,
    Message,
    ProviderConfig,
)

if TYPE_CHECKING:
    from arcanelib.storage.repository import Repository


class Capability(Enum):
    TEXT_ONLY = "text_only"
    JSON      = "json"


class Provider(ABC):
    """
    Contrato que deben cumplir todos los proveedores de texto.
    Las etapas del pipeline solo hablan con esta interfaz.
    Nunca importan claude.py ni gemini.py directamente.

    La capacidad JSON se declara con el tipo (JSONCapableProvider),
    no se descubre en tiempo de ejecución.
    """

    capability: Capability = Capability.TEXT_ONLY

    @abstractmethod
    def complete(self, messages: list[Message], options: CompletionOptions) -> Completion:
        """
        Envía la conversación al modelo y devuelve el texto generado.
        SÍ puede lanzar errores de red, timeout o rate limit:
        las etapas los capturan por chunk.
        """
        ...

    def is_available(self) -> bool:
        return True

    @property
    @abstractmethod
    def name(self) -> str:
        """Identificador del proveedor. Debe coincidir con quota_usage.model."""
        ...

    @property
    def model_name(self) -> str:
        return self.name


class JSONCapableProvider(Provider):
    """Proveedor que además puede devolver un objeto JSON estructurado."""

    capability: Capability = Capability.JSON

    @abstractmethod
    def complete_json(self, messages: list[Message], options: CompletionOptions) -> JSONCompletion:
        """
        Igual que complete(), pero devuelve el JSON ya parseado.
        Lanza InvalidJSONResponseError si la respuesta no contiene un objeto JSON.
        """
        ...


def supports_json(provider: Optional[Provider]) -> bool:
    return provider is not None and getattr(provider, "capability", None) is Capability.JSON


def check_availability(config: ProviderConfig, usage: Optional["Repository"]) -> bool:
    """
    Disponibilidad compartida por los adaptadores:
    primero el cooldown por error de red, después la quota del día.
    """
    if config._unavailable_until is not None:
        if time.time() < config._unavailable_until:
            return False
        config._unavailable_until = None  # cooldown expirado

    if usage is None:
        return True
    return usage.get_token_usage_today(config.name) < config.daily_token_limit


def split_system(messages: list[Message]) -> tuple[str, list[Message]]:
    """Separa los mensajes system (concatenados) del resto de la conversación."""
    system = "\n\n".join(m.content for m in messages if m.role == "system")
    rest   = [m for m in messages if m.role != "system"]
    return system, rest
