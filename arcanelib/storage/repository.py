# storage/repository.py
import json
import logging
import sqlite3
from datetime import date, datetime, timezone
from typing import TYPE_CHECKING, Optional

from arcanelib.paragraphs import Paragraph, parse_text_to_paragraphs
from arcanelib.storage.db import get_connection, init_schema
from arcanelib.storage.models import (
    ChapterStatus,
    GlossaryEntry,
    ProjectSettings,
    StoredChapter,
    StoredProject,
)

if TYPE_CHECKING:
    from arcanelib.context.agent import NovelAgent

logger = logging.getLogger(__name__)

# Campo del dataclass → (columna, serializador)
_CHAPTER_FIELDS = {
    "title":             ("title",                  lambda v: v),
    "translated_text":   ("translated_text",        lambda v: v),
    "status":            ("status",                 lambda v: ChapterStatus(v).value),
    "paragraphs":        ("paragraphs_json",        lambda v: json.dumps([p.to_dict() for p in v], ensure_ascii=False)),
    "translated_chunks": ("translated_chunks_json", lambda v: None if v is None else json.dumps(v, ensure_ascii=False)),
    "translation_meta":  ("translation_meta_json",  lambda v: None if v is None else json.dumps(v, ensure_ascii=False)),
}


class Repository:
    """
    Única interfaz entre el resto de la aplicación y SQLite.
    Recibe un db_path para facilitar el testing con :memory:.
    """

    def __init__(self, db_path: str | None = None):
        self._conn = get_connection(db_path)
        init_schema(self._conn)

    # ------------------------------------------------------------------
    # Proyectos
    # ------------------------------------------------------------------

    def create_project(
        self,
        name:            str,
        source_language: str = "English",
        target_language: str = "Russian",
        settings:        Optional[ProjectSettings] = None,
    ) -> int:
        created_at = _now()
        settings   = settings or ProjectSettings()
        with self._conn:
            cursor = self._conn.execute(
                """
                INSERT INTO projects (name, source_language, target_language, settings_json, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (name, source_language, target_language,
                 json.dumps(settings.to_dict()), created_at),
            )
        return cursor.lastrowid  # type: ignore[return-value]

    def get_project(self, project_id: int) -> StoredProject | None:
        row = self._conn.execute(
            "SELECT * FROM projects WHERE id = ?", (project_id,)
        ).fetchone()
        return self._row_to_project(row) if row else None

    def list_projects(self) -> list[StoredProject]:
        rows = self._conn.execute("SELECT * FROM projects ORDER BY id ASC").fetchall()
        return [self._row_to_project(r) for r in rows]

    def update_project_settings(self, project_id: int, settings: ProjectSettings) -> None:
        with self._conn:
            self._conn.execute(
                "UPDATE projects SET settings_json = ? WHERE id = ?",
                (json.dumps(settings.to_dict()), project_id),
            )

    # ------------------------------------------------------------------
    # Capítulos
    # ------------------------------------------------------------------

    def create_chapter(
        self,
        project_id:    int,
        number:        int,
        original_text: str,
        title:         str = "",
    ) -> int:
        """
        Inserta un capítulo y crea sus párrafos con ids estables.
        Si el número ya existe en el proyecto lanza IntegrityError.
        """
        paragraphs = parse_text_to_paragraphs(original_text)
        with self._conn:
            cursor = self._conn.execute(
                """
                INSERT INTO chapters
                    (project_id, number, title, original_text, paragraphs_json, status, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (project_id, number, title, original_text,
                 _CHAPTER_FIELDS["paragraphs"][1](paragraphs),
                 ChapterStatus.PENDING.value, _now()),
            )
        return cursor.lastrowid  # type: ignore[return-value]

    def get_chapter(self, project_id: int, chapter_id: int) -> StoredChapter | None:
        row = self._conn.execute(
            "SELECT * FROM chapters WHERE id = ? AND project_id = ?",
            (chapter_id, project_id),
        ).fetchone()
        return self._row_to_chapter(row) if row else None

    def list_chapters(self, project_id: int) -> list[StoredChapter]:
        rows = self._conn.execute(
            "SELECT * FROM chapters WHERE project_id = ? ORDER BY number ASC",
            (project_id,),
        ).fetchall()
        return [self._row_to_chapter(r) for r in rows]

    def update_chapter(self, project_id: int, chapter_id: int, **fields) -> bool:
        """
        Actualiza los campos indicados en una sola transacción.
        La última escritura gana; no hay control de concurrencia.
        Devuelve False si el capítulo no existe.
        """
        unknown = set(fields) - set(_CHAPTER_FIELDS)
        if unknown:
            raise ValueError(f"Campos de capítulo desconocidos: {sorted(unknown)}")
        if not fields:
            return True

        columns, values = [], []
        for name, value in fields.items():
            column, serialize = _CHAPTER_FIELDS[name]
            columns.append(f"{column} = ?")
            values.append(serialize(value))

        columns.append("updated_at = ?")
        values.extend([_now(), chapter_id, project_id])

        with self._conn:
            cursor = self._conn.execute(
                f"UPDATE chapters SET {', '.join(columns)} WHERE id = ? AND project_id = ?",
                values,
            )
        return cursor.rowcount > 0

    # ------------------------------------------------------------------
    # Glosario
    # ------------------------------------------------------------------

    def add_glossary_entry(
        self,
        project_id:  int,
        type:        str,
        original:    str,
        translated:  str,
        gender:      str | None = None,
        description: str        = "",
    ) -> bool:
        """
        INSERT OR IGNORE: una entrada repetida (mismo tipo y original) no se duplica.
        Devuelve True si la entrada era nueva.
        """
        with self._conn:
            cursor = self._conn.execute(
                """
                INSERT OR IGNORE INTO glossary_entries
                    (project_id, type, original, translated, gender, description)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (project_id, type, original, translated, gender, description or ""),
            )
        return cursor.rowcount > 0

    def list_glossary_entries(self, project_id: int) -> list[GlossaryEntry]:
        rows = self._conn.execute(
            "SELECT * FROM glossary_entries WHERE project_id = ? ORDER BY id ASC",
            (project_id,),
        ).fetchall()
        return [
            GlossaryEntry(
                id          = r["id"],
                project_id  = r["project_id"],
                type        = r["type"],
                original    = r["original"],
                translated  = r["translated"],
                gender      = r["gender"],
                description = r["description"],
            )
            for r in rows
        ]

    # ------------------------------------------------------------------
    # Quota
    # ------------------------------------------------------------------

    def add_token_usage(self, model: str, tokens: int) -> None:
        """
        Upsert: si ya existe el registro de hoy lo incrementa,
        si no existe lo crea.
        """
        today = date.today().isoformat()
        with self._conn:
            self._conn.execute(
                """
                INSERT INTO quota_usage (model, date, tokens_used)
                VALUES (?, ?, ?)
                ON CONFLICT (model, date)
                DO UPDATE SET tokens_used = tokens_used + excluded.tokens_used
                """,
                (model, today, tokens),
            )

    def get_token_usage_today(self, model: str) -> int:
        today = date.today().isoformat()
        row = self._conn.execute(
            "SELECT tokens_used FROM quota_usage WHERE model = ? AND date = ?",
            (model, today),
        ).fetchone()
        return row["tokens_used"] if row else 0

    # ------------------------------------------------------------------
    # Estado del agente
    # ------------------------------------------------------------------

    def save_agent_state(self, project_id: int, agent: "NovelAgent") -> int:
        """
        Guarda una nueva versión del estado del agente.
        Siempre inserta una fila nueva (versionado inmutable).
        Retorna el número de versión asignado.
        """
        row = self._conn.execute(
            "SELECT MAX(version) as max_v FROM agent_state WHERE project_id = ?",
            (project_id,),
        ).fetchone()
        next_version = (row["max_v"] or 0) + 1

        with self._conn:
            self._conn.execute(
                """
                INSERT INTO agent_state (project_id, version, content_json, updated_at)
                VALUES (?, ?, ?, ?)
                """,
                (project_id, next_version, agent.to_json(), _now()),
            )
        return next_version

    def get_agent_state(self, project_id: int) -> Optional["NovelAgent"]:
        """
        Carga la versión más reciente del agente del proyecto.
        Devuelve None si todavía no existe o si el JSON está corrupto.
        """
        from arcanelib.context.agent import NovelAgent

        row = self._conn.execute(
            """
            SELECT content_json FROM agent_state
            WHERE project_id = ?
            ORDER BY version DESC
            LIMIT 1
            """,
            (project_id,),
        ).fetchone()

        if not row:
            return None

        try:
            return NovelAgent.from_json(row["content_json"])
        except (ValueError, KeyError, TypeError) as e:
            logger.warning("Error deserializando el agente del proyecto %d: %s", project_id, e)
            return None

    # ------------------------------------------------------------------
    # Mapeo de rows a dataclasses
    # ------------------------------------------------------------------

    @staticmethod
    def _row_to_project(row: sqlite3.Row) -> StoredProject:
        return StoredProject(
            id              = row["id"],
            name            = row["name"],
            source_language = row["source_language"],
            target_language = row["target_language"],
            settings        = ProjectSettings.from_dict(json.loads(row["settings_json"] or "{}")),
            created_at      = row["created_at"],
        )

    @staticmethod
    def _row_to_chapter(row: sqlite3.Row) -> StoredChapter:
        chunks_json = row["translated_chunks_json"]
        meta_json   = row["translation_meta_json"]
        return StoredChapter(
            id                = row["id"],
            project_id        = row["project_id"],
            number            = row["number"],
            title             = row["title"],
            original_text     = row["original_text"],
            status            = ChapterStatus(row["status"]),
            paragraphs        = [Paragraph.from_dict(p) for p in json.loads(row["paragraphs_json"] or "[]")],
            translated_text   = row["translated_text"],
            translated_chunks = json.loads(chunks_json) if chunks_json else None,
            translation_meta  = json.loads(meta_json) if meta_json else None,
        )

    # ------------------------------------------------------------------
    # Cleanup (para tests)
    # ------------------------------------------------------------------

    def close(self) -> None:
        self._conn.close()


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()
