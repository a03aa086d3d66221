# providers/failover.py
import logging
from typing import Callable, TypeVar

import anthropic
import google.api_core.exceptions as google_ex

from arcanelib.providers.base import JSONCapableProvider, Provider, supports_json
from arcanelib.providers.models import (
    Completion,
    CompletionOptions,
    JSONCompletion,
    Message,
)
from arcanelib.providers.response_parser import InvalidJSONResponseError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AllProvidersExhaustedError(Exception):
    """Se lanza cuando ningún proveedor de la cadena está disponible."""
    pass


class FailoverProvider(Provider):
    """
    Encadena varios proveedores para una misma etapa.

    Responsabilidades:
    - Usar el proveedor disponible de mayor prioridad
    - Hacer failover si falla por error de red o rate limit
    - Propagar errores de contenido (no son de disponibilidad)
    """

    def __init__(self, providers: list[Provider]):
        # La lista ya viene ordenada por prioridad desde el config
        if not providers:
            raise ValueError("FailoverProvider necesita al menos un proveedor")
        self._providers = providers

    @property
    def name(self) -> str:
        return "+".join(p.name for p in self._providers)

    @property
    def model_name(self) -> str:
        return self._providers[0].model_name

    def is_available(self) -> bool:
        return any(p.is_available() for p in self._providers)

    def complete(self, messages: list[Message], options: CompletionOptions) -> Completion:
        return self._first_success(lambda p: p.complete(messages, options))

    def available_providers(self) -> list[str]:
        """Útil para logging y para el CLI."""
        return [p.name for p in self._providers if p.is_available()]

    def _first_success(self, call: Callable[[Provider], T]) -> T:
        last_error: Exception | None = None

        for provider in self._providers:
            if not provider.is_available():
                logger.info("Proveedor %s no disponible (quota/cooldown), saltando", provider.name)
                continue

            try:
                logger.debug("Intentando llamada con %s", provider.name)
                return call(provider)

            except Exception as e:
                if _is_content_error(e):
                    logger.error(
                        "Error de contenido en %s, no se hace failover: %s",
                        provider.name, e,
                    )
                    raise

                logger.warning(
                    "Proveedor %s falló con error retryable: %s. Pasando al siguiente.",
                    provider.name, e,
                )
                last_error = e
                continue

        raise AllProvidersExhaustedError(
            f"Ningún proveedor disponible. Último error: {last_error}"
        )


class JSONFailoverProvider(FailoverProvider, JSONCapableProvider):
    """Variante JSON: solo se construye si todos los proveedores soportan JSON."""

    def complete_json(self, messages: list[Message], options: CompletionOptions) -> JSONCompletion:
        return self._first_success(lambda p: p.complete_json(messages, options))


def build_failover(providers: list[Provider]) -> Provider:
    """
    Un solo proveedor se devuelve tal cual.
    Varios se envuelven en la variante que corresponda a su capacidad común.
    """
    if len(providers) == 1:
        return providers[0]
    if all(supports_json(p) for p in providers):
        return JSONFailoverProvider(providers)
    return FailoverProvider(providers)


def _is_content_error(e: Exception) -> bool:
    """
    Determina si el error es del contenido (no de disponibilidad).
    Estos errores no activan failover — son el mismo error en cualquier proveedor.
    """
    content_errors = (
        anthropic.BadRequestError,
        google_ex.InvalidArgument,
        InvalidJSONResponseError,
        ValueError,
    )
    return isinstance(e, content_errors)
