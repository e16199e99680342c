from __future__ import annotations

import copy
import json
import logging
import sqlite3
import threading
from typing import Any, Protocol

from plan_graph.error_contract import format_actionable_error

logger = logging.getLogger("storage_sqlite_documents")

ENTITIES_SECTION = "entities"
USER_FLOWS_SECTION = "user_flows"
SECTIONS: tuple[str, ...] = (ENTITIES_SECTION, USER_FLOWS_SECTION)


class DocumentStore(Protocol):
    def save(self, document_id: str, payload: dict[str, Any], *, section: str = ENTITIES_SECTION) -> None:
        ...

    def load(self, document_id: str, *, section: str = ENTITIES_SECTION) -> dict[str, Any] | None:
        ...


def _check_section(section: str) -> str:
    if section not in SECTIONS:
        raise ValueError(
            format_actionable_error(
                "Document store",
                "Section",
                f"unsupported section '{section}'",
                f"use one of: {', '.join(SECTIONS)}",
            )
        )
    return section


class InMemoryDocumentStore:
    """Dict-backed store; last write wins, payloads are copied both ways."""

    def __init__(self) -> None:
        self._rows: dict[tuple[str, str], dict[str, Any]] = {}
        self._lock = threading.Lock()
        self.save_count = 0

    def save(self, document_id: str, payload: dict[str, Any], *, section: str = ENTITIES_SECTION) -> None:
        key = (str(document_id), _check_section(section))
        with self._lock:
            self._rows[key] = copy.deepcopy(payload)
            self.save_count += 1

    def load(self, document_id: str, *, section: str = ENTITIES_SECTION) -> dict[str, Any] | None:
        key = (str(document_id), _check_section(section))
        with self._lock:
            row = self._rows.get(key)
            return copy.deepcopy(row) if row is not None else None


def _connect(db_path: str) -> sqlite3.Connection:
    return sqlite3.connect(db_path)


class SQLiteDocumentStore:
    """One JSON payload per (document_id, section); upsert, no version check."""

    def __init__(self, db_path: str) -> None:
        self.db_path = db_path
        self.init_db()

    def init_db(self) -> None:
        with _connect(self.db_path) as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS plan_documents (
                  document_id TEXT NOT NULL,
                  section TEXT NOT NULL,
                  payload TEXT NOT NULL,
                  updated_at TEXT NOT NULL DEFAULT (datetime('now')),
                  PRIMARY KEY (document_id, section)
                );
                """
            )
            conn.commit()
        logger.info("Initialized plan document store at %s", self.db_path)

    def save(self, document_id: str, payload: dict[str, Any], *, section: str = ENTITIES_SECTION) -> None:
        body = json.dumps(payload)
        with _connect(self.db_path) as conn:
            conn.execute(
                """
                INSERT INTO plan_documents (document_id, section, payload, updated_at)
                VALUES (?, ?, ?, datetime('now'))
                ON CONFLICT(document_id, section)
                DO UPDATE SET payload = excluded.payload, updated_at = excluded.updated_at;
                """,
                (str(document_id), _check_section(section), body),
            )
            conn.commit()
        logger.info("Saved %s for document '%s' (%d bytes)", section, document_id, len(body))

    def load(self, document_id: str, *, section: str = ENTITIES_SECTION) -> dict[str, Any] | None:
        with _connect(self.db_path) as conn:
            row = conn.execute(
                "SELECT payload FROM plan_documents WHERE document_id = ? AND section = ?;",
                (str(document_id), _check_section(section)),
            ).fetchone()
        if row is None:
            return None
        try:
            data = json.loads(row[0])
        except json.JSONDecodeError as exc:
            raise ValueError(
                format_actionable_error(
                    "Document store",
                    f"Document '{document_id}'",
                    f"stored {section} payload is not valid JSON ({exc.msg})",
                    "re-save the document from the editor",
                )
            ) from exc
        return data if isinstance(data, dict) else None
