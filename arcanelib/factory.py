# arcanelib/factory.py
from typing import Optional

from arcanelib.context.cache import ContextCache
from arcanelib.pipeline import StageProviders, TranslationPipeline
from arcanelib.providers.base import Provider
from arcanelib.providers.claude import ClaudeProvider
from arcanelib.providers.config_loader import load_engine_config
from arcanelib.providers.failover import build_failover
from arcanelib.providers.gemini import GeminiProvider
from arcanelib.providers.models import EngineConfig
from arcanelib.service import ChapterService, PipelineFactory
from arcanelib.storage.models import StoredProject
from arcanelib.storage.repository import Repository


_CHUNK_PRESETS: dict[str, int] = {
    "standard": 2000,
    "large":    3500,
    "xlarge":   5000,
}

_ADAPTERS = {
    "claude": ClaudeProvider,
    "gemini": GeminiProvider,
}


def build_chapter_service(
    db_path:     Optional[str]          = None,
    config_path: Optional[str]          = None,
    repo:        Optional[Repository]   = None,
    cache:       Optional[ContextCache] = None,
) -> ChapterService:
    """
    Ensambla el ChapterService con todas sus dependencias.
    Punto de entrada único para el CLI y los tests de integración.

    Sin config o sin ningún proveedor con api_key, el servicio
    queda en modo demo.
    """
    repo = repo or Repository(db_path=db_path)

    try:
        config = load_engine_config(config_path)
    except FileNotFoundError as e:
        _log(f"⚠ {e}")
        _log("Modo demo: no se llamará a ningún proveedor")
        return ChapterService(repo)

    providers = build_providers(config, repo)
    if not providers:
        _log("⚠ Ningún proveedor con api_key. Modo demo: no se llamará a ningún proveedor")
        return ChapterService(repo)

    factory = make_pipeline_factory(config, providers, repo, cache or ContextCache())
    return ChapterService(repo, pipeline_factory=factory)


def build_providers(config: EngineConfig, repo: Optional[Repository] = None) -> dict[str, Provider]:
    """
    Construye los adaptadores disponibles, en orden de prioridad.
    Si un adaptador no tiene api_key configurada, lo omite.
    """
    providers: dict[str, Provider] = {}

    for provider_config in config.providers:
        adapter_class = _ADAPTERS.get(provider_config.name)
        if not adapter_class:
            _log(f"⚠ {provider_config.name}: proveedor desconocido, omitiendo")
            continue
        if not provider_config.api_key:
            _log(f"⚠ {provider_config.name}: sin api_key, omitiendo")
            continue
        providers[provider_config.name] = adapter_class(provider_config, repo)

    return providers


def make_pipeline_factory(
    config:    EngineConfig,
    providers: dict[str, Provider],
    repo:      Repository,
    cache:     ContextCache,
) -> PipelineFactory:
    """
    Devuelve la función que construye un pipeline por proyecto.
    El agente sale del ContextCache: capítulos consecutivos del mismo
    proyecto comparten glosario y contexto sin releer SQLite.
    """
    def factory(project: StoredProject) -> TranslationPipeline:
        return TranslationPipeline(
            agent       = cache.get_or_create(project, repo),
            providers   = stage_providers(config, providers, project),
            temperature = project.settings.temperature,
        )

    return factory


def stage_providers(
    config:    EngineConfig,
    providers: dict[str, Provider],
    project:   Optional[StoredProject] = None,
) -> StageProviders:
    """
    Resuelve la cadena de proveedores de cada etapa.
    Prioridad: ajustes del proyecto → sección `stages` del config → todos.
    Los nombres sin proveedor disponible se ignoran.
    """
    overrides = project.settings.stage_providers if project else {}
    chains    = {}

    for stage in ("analysis", "translation", "editing"):
        names = overrides.get(stage) or config.stages.get(stage) or list(providers)
        chain = [providers[name] for name in names if name in providers]
        if not chain:
            _log(f"⚠ {stage}: ningún proveedor de {names} disponible, se usan todos")
            chain = list(providers.values())
        chains[stage] = build_failover(chain)

    return StageProviders(**chains)


def resolve_chunk_size(preset: Optional[str]) -> Optional[int]:
    """'standard' | 'large' | 'xlarge' → tokens por chunk. None deja el valor del proyecto."""
    if preset is None:
        return None
    if preset not in _CHUNK_PRESETS:
        raise ValueError(f"Preset de chunk desconocido: {preset}")
    return _CHUNK_PRESETS[preset]


def _log(message: str) -> None:
    print(f"[arcane] {message}")
