# arcanelib/cli.py
import sqlite3
import sys
from pathlib import Path

import click
from dotenv import load_dotenv

from arcanelib.factory import build_chapter_service, resolve_chunk_size
from arcanelib.paragraphs import ParagraphStatus
from arcanelib.providers.config_loader import load_engine_config
from arcanelib.providers.models import TranslationSettings
from arcanelib.service import (
    ChapterBusyError,
    ChapterContentError,
    ChapterNotFoundError,
    ChapterRunResult,
    ChapterService,
    NothingToSyncError,
    ProjectNotFoundError,
)
from arcanelib.storage.models import ChapterStatus, ProjectSettings
from arcanelib.storage.repository import Repository


# Carga .env una sola vez, antes que cualquier otra cosa
load_dotenv()

_SUPPORTED_FORMATS = {".txt", ".md"}

_STATUS_COLORS = {
    ChapterStatus.PENDING:     None,
    ChapterStatus.TRANSLATING: "cyan",
    ChapterStatus.COMPLETED:   "green",
    ChapterStatus.ERROR:       "red",
}


# ------------------------------------------------------------------
# Grupo raíz
# ------------------------------------------------------------------

@click.group()
@click.version_option(package_name="arcanelib")
def main():
    """
    Arcane: traductor de novelas por capítulos.

    Analiza, traduce y edita cada capítulo manteniendo glosario
    y contexto entre capítulos, párrafo a párrafo.
    """


# ------------------------------------------------------------------
# arcane import
# ------------------------------------------------------------------

@main.command(name="import")
@click.option(
    "--file", "-f", "file_path",
    required = True,
    type     = click.Path(exists=False),   # validamos nosotros para mejor mensaje
    help     = "Capítulo a importar (.txt, .md)",
)
@click.option("--project", "-p", "project_id", type=int, help="Proyecto existente. Sin él se crea uno nuevo.")
@click.option("--name", help="Nombre del proyecto nuevo (por defecto, el nombre del archivo)")
@click.option("--from", "source_lang", metavar="LANG", help="Idioma de origen del proyecto nuevo")
@click.option("--to", "target_lang", metavar="LANG", help="Idioma de destino del proyecto nuevo")
@click.option("--number", "-n", type=int, help="Número de capítulo (por defecto, el siguiente)")
@click.option("--title", default="", help="Título del capítulo")
def import_chapter(file_path, project_id, name, source_lang, target_lang, number, title):
    """Importa un capítulo y lo divide en párrafos."""
    path = _validate_file(file_path)
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        _abort(f"El archivo está vacío: {file_path}")

    repo = Repository()

    if project_id is None:
        defaults    = _translation_defaults()
        source_lang = source_lang or defaults.source_language
        target_lang = target_lang or defaults.target_language
        if source_lang.lower() == target_lang.lower():
            _abort("El idioma de origen y destino no pueden ser el mismo.")
        project_id = repo.create_project(
            name            = name or path.stem,
            source_language = source_lang,
            target_language = target_lang,
            settings        = ProjectSettings(
                enable_analysis = defaults.enable_analysis,
                enable_editing  = defaults.enable_editing,
                temperature     = defaults.temperature,
                chunk_size      = defaults.max_tokens_per_chunk,
            ),
        )
        click.echo(f"[arcane] Proyecto creado: #{project_id} ({source_lang} → {target_lang})")
    elif repo.get_project(project_id) is None:
        _abort(f"Proyecto {project_id} no encontrado")

    if number is None:
        existing = repo.list_chapters(project_id)
        number   = existing[-1].number + 1 if existing else 1

    try:
        chapter_id = repo.create_chapter(project_id, number, text, title=title)
    except sqlite3.IntegrityError:
        _abort(f"El capítulo {number} ya existe en el proyecto {project_id}")

    chapter = repo.get_chapter(project_id, chapter_id)
    click.echo(
        f"[arcane] Capítulo {number} importado: chapter_id={chapter_id}, "
        f"{len(chapter.paragraphs)} párrafos"
    )


# ------------------------------------------------------------------
# arcane translate
# ------------------------------------------------------------------

@main.command()
@click.option("--project", "-p", "project_id", required=True, type=int, help="Id del proyecto")
@click.option("--chapter", "-c", "chapter_id", required=True, type=int, help="Id del capítulo")
@click.option("--only-empty", is_flag=True, help="Traduce solo los párrafos sin traducción válida")
@click.option("--skip-analysis/--with-analysis", default=None, help="Omite (o fuerza) la etapa de análisis")
@click.option("--skip-editing/--with-editing", default=None, help="Omite (o fuerza) la etapa de edición")
@click.option(
    "--chunk-size",
    default = None,
    type    = click.Choice(["standard", "large", "xlarge"], case_sensitive=False),
    help    = "Tamaño de los chunks: standard (2000), large (3500), xlarge (5000 tokens)",
)
def translate(project_id, chapter_id, only_empty, skip_analysis, skip_editing, chunk_size):
    """Traduce un capítulo: análisis → traducción → edición."""
    service = build_chapter_service()

    try:
        result = service.translate_chapter(
            project_id,
            chapter_id,
            translate_only_empty = only_empty,
            skip_analysis        = skip_analysis,
            skip_editing         = skip_editing,
            chunk_size           = resolve_chunk_size(chunk_size.lower() if chunk_size else None),
        )

    except (ProjectNotFoundError, ChapterNotFoundError, ChapterContentError) as e:
        _abort(str(e))

    except ChapterBusyError as e:
        _error(f"{e}\nUsa `arcane cancel` si la ejecución anterior se interrumpió.")
        sys.exit(2)

    except KeyboardInterrupt:
        click.echo(
            "\n[arcane] Proceso interrumpido. "
            "El capítulo vuelve a pending; lanza la traducción de nuevo cuando quieras."
        )
        sys.exit(0)

    _print_summary(result)
    if result.status is ChapterStatus.ERROR:
        sys.exit(1)


# ------------------------------------------------------------------
# arcane cancel / sync / approve
# ------------------------------------------------------------------

@main.command()
@click.option("--project", "-p", "project_id", required=True, type=int)
@click.option("--chapter", "-c", "chapter_id", required=True, type=int)
def cancel(project_id, chapter_id):
    """Cancela una traducción en curso; el capítulo vuelve a pending."""
    service = ChapterService(Repository())
    try:
        cancelled = service.cancel_translation(project_id, chapter_id)
    except ChapterNotFoundError as e:
        _abort(str(e))

    if cancelled:
        click.echo("[arcane] ✓ Traducción cancelada")
    else:
        click.echo("[arcane] El capítulo no se estaba traduciendo. Sin cambios.")


@main.command()
@click.option("--project", "-p", "project_id", required=True, type=int)
@click.option("--chapter", "-c", "chapter_id", required=True, type=int)
def sync(project_id, chapter_id):
    """Reparte la traducción guardada entre los párrafos (recuperación)."""
    service = ChapterService(Repository())
    try:
        report = service.sync_chapter(project_id, chapter_id)
    except ChapterNotFoundError as e:
        _abort(str(e))
    except NothingToSyncError as e:
        _abort(str(e))

    click.echo(f"[arcane] Estrategia   : {report.strategy.value}")
    click.echo(f"[arcane] Aplicados    : {report.applied}")
    click.echo(f"[arcane] Preservados  : {report.preserved}")
    for warning in report.warnings:
        click.echo(click.style(f"[arcane] ⚠ {warning}", fg="yellow"))
    if report.critical:
        _error("Ningún párrafo recibió traducción.")
        sys.exit(1)


@main.command()
@click.option("--project", "-p", "project_id", required=True, type=int)
@click.option("--chapter", "-c", "chapter_id", required=True, type=int)
@click.option("--paragraph", "paragraph_ids", multiple=True, help="Id de párrafo (repetible). Sin él, todos los traducidos.")
def approve(project_id, chapter_id, paragraph_ids):
    """Marca párrafos como aprobados."""
    service = ChapterService(Repository())
    try:
        changed = service.set_paragraphs_status(
            project_id,
            chapter_id,
            ParagraphStatus.APPROVED,
            paragraph_ids = list(paragraph_ids) or None,
        )
    except ChapterNotFoundError as e:
        _abort(str(e))

    click.echo(f"[arcane] ✓ {changed} párrafos aprobados")


# ------------------------------------------------------------------
# arcane status
# ------------------------------------------------------------------

@main.command()
@click.option("--project", "-p", "project_id", type=int, help="Proyecto a detallar. Sin él, lista todos.")
def status(project_id):
    """Muestra proyectos y el estado de sus capítulos."""
    repo = Repository()

    if project_id is None:
        projects = repo.list_projects()
        if not projects:
            click.echo("[arcane] Sin proyectos. Usa `arcane import` para empezar.")
            return
        for project in projects:
            chapters = repo.list_chapters(project.id)
            done     = sum(1 for c in chapters if c.status is ChapterStatus.COMPLETED)
            click.echo(
                f"#{project.id}  {project.name}  "
                f"({project.source_language} → {project.target_language})  "
                f"{done}/{len(chapters)} capítulos"
            )
        return

    project = repo.get_project(project_id)
    if project is None:
        _abort(f"Proyecto {project_id} no encontrado")

    click.echo(f"[arcane] {project.name} ({project.source_language} → {project.target_language})")
    for chapter in repo.list_chapters(project_id):
        translated = sum(1 for p in chapter.paragraphs if p.translated_text)
        line = (
            f"  cap. {chapter.number:<4} id={chapter.id:<5} "
            f"{chapter.status.value:<12} {translated}/{len(chapter.paragraphs)} párrafos"
        )
        click.echo(click.style(line, fg=_STATUS_COLORS[chapter.status]))


# ------------------------------------------------------------------
# Helpers de validación
# ------------------------------------------------------------------

def _validate_file(path: str) -> Path:
    """Verifica existencia y formato del archivo."""
    p = Path(path)

    if not p.exists():
        _abort(f"Archivo no encontrado: {path}")

    if not p.is_file():
        _abort(f"La ruta no es un archivo: {path}")

    if p.suffix.lower() not in _SUPPORTED_FORMATS:
        supported = ", ".join(sorted(_SUPPORTED_FORMATS))
        _abort(
            f"Formato no soportado: '{p.suffix}'\n"
            f"Formatos disponibles: {supported}"
        )

    return p


def _translation_defaults():
    """Valores por defecto del config; sin config, los del motor."""
    try:
        return load_engine_config().translation
    except FileNotFoundError:
        return TranslationSettings()


# ------------------------------------------------------------------
# Helpers de output
# ------------------------------------------------------------------

def _print_summary(result: ChapterRunResult) -> None:
    """Imprime el resumen de la ejecución."""
    click.echo("")
    click.echo("─" * 50)

    if result.cancelled:
        click.echo("[arcane] ⚠ Traducción cancelada, resultado descartado")
    elif result.skipped:
        click.echo("[arcane] ✓ Nada que traducir: todos los párrafos tienen traducción")
    elif result.status is ChapterStatus.ERROR:
        click.echo(click.style(f"[arcane] ✗ Error: {result.error}", fg="red"))
    else:
        click.echo("[arcane] ✓ Capítulo traducido")

    if result.sync is not None:
        click.echo(f"[arcane]   Párrafos     : {result.sync.applied} traducidos, {result.sync.preserved} preservados")
        if result.sync.warnings:
            click.echo(
                click.style(
                    f"[arcane]   Avisos       : {len(result.sync.warnings)} (revisa el capítulo)",
                    fg="yellow",
                )
            )

    if result.model:
        click.echo(f"[arcane]   Modelo       : {result.model}")
    click.echo(f"[arcane]   Tokens       : {result.tokens_used}")
    click.echo(f"[arcane]   Duración     : {result.duration_ms / 1000:.1f}s")
    click.echo("─" * 50)


def _abort(message: str) -> None:
    """Error de validación — culpa del usuario."""
    click.echo(click.style(f"[arcane] Error: {message}", fg="red"), err=True)
    sys.exit(1)


def _error(message: str) -> None:
    """Error de sistema — no es culpa del usuario."""
    click.echo(click.style(f"[arcane] {message}", fg="red"), err=True)
