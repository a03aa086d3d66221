# providers/config_loader.py
import os
from pathlib import Path
from typing import Optional

import yaml

from arcanelib.providers.models import EngineConfig, ProviderConfig, TranslationSettings

_DEFAULT_CONFIG_PATH = Path.home() / ".arcane" / "config.yaml"

_DEFAULT_MODELS = {
    "claude": "claude-haiku-4-5-20251001",
    "gemini": "gemini-2.0-flash",
}

_STAGES = ("analysis", "translation", "editing")


def load_engine_config(config_path: Optional[str] = None) -> EngineConfig:
    """
    Carga la configuración del motor desde YAML.
    Resuelve variables de entorno en los valores ${VAR}.
    Los proveedores quedan ordenados por prioridad ascendente.
    """
    path = Path(config_path or os.environ.get("ARCANE_CONFIG_PATH") or _DEFAULT_CONFIG_PATH)

    if not path.exists():
        raise FileNotFoundError(
            f"Config no encontrada en {path}. "
            f"Copia config.example.yaml a ~/.arcane/config.yaml"
        )

    with path.open(encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    providers = []
    for entry in raw.get("providers", []):
        name = entry["name"]
        providers.append(ProviderConfig(
            name              = name,
            model             = entry.get("model") or _DEFAULT_MODELS.get(name, name),
            priority          = entry.get("priority", 99),
            daily_token_limit = entry.get("daily_token_limit", 1_000_000),
            api_key           = _resolve_env(entry.get("api_key")),
            timeout_seconds   = entry.get("timeout_seconds", 120),
        ))
    providers.sort(key=lambda c: c.priority)

    return EngineConfig(
        providers   = providers,
        stages      = _load_stages(raw.get("stages") or {}, providers),
        translation = _load_translation(raw.get("translation") or {}),
    )


def _load_stages(raw: dict, providers: list[ProviderConfig]) -> dict[str, list[str]]:
    """
    Cada etapa apunta a un proveedor o a una lista (cadena de failover).
    Sin configuración explícita, todas las etapas usan todos los proveedores
    en orden de prioridad.
    """
    default = [p.name for p in providers]
    stages  = {}
    for stage in _STAGES:
        value = raw.get(stage)
        if value is None:
            stages[stage] = list(default)
        elif isinstance(value, str):
            stages[stage] = [value]
        else:
            stages[stage] = [str(v) for v in value]
    return stages


def _load_translation(raw: dict) -> TranslationSettings:
    defaults = TranslationSettings()
    return TranslationSettings(
        source_language      = raw.get("source_language", defaults.source_language),
        target_language      = raw.get("target_language", defaults.target_language),
        temperature          = _as_number(raw.get("temperature"), defaults.temperature, float),
        max_tokens_per_chunk = _as_number(raw.get("max_tokens_per_chunk"), defaults.max_tokens_per_chunk, int),
        enable_analysis      = _as_bool(raw.get("enable_analysis"), defaults.enable_analysis),
        enable_editing       = _as_bool(raw.get("enable_editing"), defaults.enable_editing),
    )


def _resolve_env(value):
    """Expande ${VAR_NAME} desde el entorno."""
    if not isinstance(value, str) or not value.startswith("${"):
        return value
    var_name = value.strip("${}").strip()
    return os.environ.get(var_name)


def _as_bool(value, default: bool) -> bool:
    value = _resolve_env(value)
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def _as_number(value, default, cast):
    value = _resolve_env(value)
    if value is None or value == "":
        return default
    return cast(value)
