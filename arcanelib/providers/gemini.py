# providers/gemini.py
import logging
import time
from typing import TYPE_CHECKING, Optional

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions

from arcanelib.providers.base import JSONCapableProvider, check_availability
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

_RETRYABLE_ERRORS = (
    google_exceptions.ResourceExhausted,   # 429
    google_exceptions.DeadlineExceeded,    # timeout
    google_exceptions.ServiceUnavailable,
)

_COOLDOWN_SECONDS = 300


class GeminiProvider(JSONCapableProvider):

    def __init__(self, config: ProviderConfig, usage: Optional["Repository"] = None):
        self._config = config
        self._usage  = usage
        genai.configure(api_key=config.api_key)
        self._model = genai.GenerativeModel(model_name=config.model)

    @property
    def name(self) -> str:
        return self._config.name

    @property
    def model_name(self) -> str:
        return self._config.model

    def is_available(self) -> bool:
        return check_availability(self._config, self._usage)

    def complete(self, messages: list[Message], options: CompletionOptions) -> Completion:
        generation_config = genai.GenerationConfig(
            temperature       = options.temperature,
            max_output_tokens = options.max_tokens,
        )
        text, usage = self._generate(messages, generation_config)
        return Completion(content=text, tokens_used=usage)

    def complete_json(self, messages: list[Message], options: CompletionOptions) -> JSONCompletion:
        generation_config = genai.GenerationConfig(
            temperature        = options.temperature,
            max_output_tokens  = options.max_tokens,
            response_mime_type = "application/json",   # Gemini soporta forzar JSON nativo
        )
        text, usage = self._generate(messages, generation_config)
        return JSONCompletion(data=parse_json_object(text, self.name), tokens_used=usage)

    def _generate(self, messages: list[Message], generation_config) -> tuple[str, TokenUsage]:
        # Gemini recibe un único prompt: instrucciones primero, contenido después
        full_prompt = "\n\n".join(m.content for m in messages)

        try:
            response = self._model.generate_content(
                full_prompt,
                generation_config = generation_config,
                request_options   = {"timeout": self._config.timeout_seconds},
            )
        except _RETRYABLE_ERRORS as e:
            logger.warning("Gemini error retryable: %s", e)
            self._config._unavailable_until = time.time() + _COOLDOWN_SECONDS
            raise

        usage = TokenUsage(
            prompt     = response.usage_metadata.prompt_token_count,
            completion = response.usage_metadata.candidates_token_count,
        )

        if self._usage is not None:
            self._usage.add_token_usage(self.name, usage.total)

        return response.text, usage
