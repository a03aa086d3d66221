from arcanelib.providers.base import Capability, JSONCapableProvider, Provider, supports_json
from arcanelib.providers.config_loader import load_engine_config
from arcanelib.providers.failover import AllProvidersExhaustedError, build_failover
from arcanelib.providers.models import (
    Completion,
    CompletionOptions,
    EngineConfig,
    JSONCompletion,
    Message,
    ProviderConfig,
    TokenUsage,
    TranslationSettings,
)
from arcanelib.providers.response_parser import InvalidJSONResponseError

__all__ = [
    "Capability",
    "Provider",
    "JSONCapableProvider",
    "supports_json",
    "build_failover",
    "AllProvidersExhaustedError",
    "InvalidJSONResponseError",
    "load_engine_config",
    "Completion",
    "CompletionOptions",
    "EngineConfig",
    "JSONCompletion",
    "Message",
    "ProviderConfig",
    "TokenUsage",
    "TranslationSettings",
]
