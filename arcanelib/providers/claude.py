# providers/claude.py
import logging
import time
from typing import TYPE_CHECKING, Optional

import anthropic

from arcanelib.providers.base import JSONCapableProvider, check_availability, split_system
from arcanelib.providers.models import (
    Completion,
    CompletionOptions,
    JSONCompletion,
    Message,
    ProviderConfig,
    TokenUsage,
)
from arcanelib.providers.response_parser import parse_json_object

if TYPE_CHECKING:
    from arcanelib.storage.repository import Repository

logger = logging.getLogger(__name__)

# Errores que activan failover hacia otro proveedor
_RETRYABLE_ERRORS = (
    anthropic.RateLimitError,
    anthropic.APITimeoutError,
    anthropic.APIConnectionError,
)

_COOLDOWN_SECONDS = 300

_JSON_INSTRUCTION = (
    "Responde EXCLUSIVAMENTE con un objeto JSON válido. "
    "Sin markdown, sin ```json, sin texto antes ni después."
)


class ClaudeProvider(JSONCapableProvider):
    """
    Claude no tiene modo JSON nativo: complete_json pide JSON en el prompt
    y recupera el objeto con la cadena de degradación del response_parser.
    """

    def __init__(self, config: ProviderConfig, usage: Optional["Repository"] = None):
        self._config = config
        self._usage  = usage
        self._client = anthropic.Anthropic(
            api_key     = config.api_key,
            timeout     = config.timeout_seconds,
        )

    @property
    def name(self) -> str:
        return self._config.name

    @property
    def model_name(self) -> str:
        return self._config.model

    def is_available(self) -> bool:
        return check_availability(self._config, self._usage)

    def complete(self, messages: list[Message], options: CompletionOptions) -> Completion:
        text, usage = self._create(messages, options)
        return Completion(content=text, tokens_used=usage)

    def complete_json(self, messages: list[Message], options: CompletionOptions) -> JSONCompletion:
        json_messages = [Message("system", _JSON_INSTRUCTION), *messages]
        text, usage   = self._create(json_messages, options)
        return JSONCompletion(data=parse_json_object(text, self.name), tokens_used=usage)

    def _create(self, messages: list[Message], options: CompletionOptions) -> tuple[str, TokenUsage]:
        system, conversation = split_system(messages)

        try:
            response = self._client.messages.create(
                model       = self._config.model,
                max_tokens  = options.max_tokens,
                temperature = options.temperature,
                system      = system,
                messages    = [{"role": m.role, "content": m.content} for m in conversation],
            )
        except _RETRYABLE_ERRORS as e:
            logger.warning("Claude error retryable: %s", e)
            # Cooldown de 5 minutos antes de intentar Claude de nuevo
            self._config._unavailable_until = time.time() + _COOLDOWN_SECONDS
            raise

        except anthropic.BadRequestError as e:
            # Error de contenido, no de disponibilidad
            logger.error("Claude BadRequest: %s", e)
            raise

        text  = "".join(
            block.text for block in response.content if getattr(block, "type", "") == "text"
        )
        usage = TokenUsage(
            prompt     = response.usage.input_tokens,
            completion = response.usage.output_tokens,
        )

        if self._usage is not None:
            self._usage.add_token_usage(self.name, usage.total)

        return text, usage
