from __future__ import annotations

import json
import logging
import os
import sqlite3
from pathlib import Path
from typing import Any, Iterable

from ..graph.errors import InvalidArgument
from ..graph.models import Entity, EntityType, Relation
from .base import Snapshot, fetch_snapshot

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1


def connect(db_path: str | os.PathLike[str]) -> sqlite3.Connection:
    if str(db_path) != ":memory:":
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(db_path))
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA synchronous=NORMAL;")
    return conn


def init_db(conn: sqlite3.Connection) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS meta (
          key TEXT PRIMARY KEY,
          value TEXT NOT NULL
        );
        """
    )
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS knowledge_entities (
          seq INTEGER PRIMARY KEY,
          repository_id TEXT NOT NULL,
          entity_id TEXT NOT NULL,
          name TEXT NOT NULL,
          type TEXT NOT NULL,
          description TEXT,
          file_path TEXT,
          line_start INTEGER,
          line_end INTEGER,
          embedding_json TEXT,
          document_ids_json TEXT NOT NULL,
          metadata_json TEXT NOT NULL,
          UNIQUE (repository_id, entity_id)
        );
        """
    )
    conn.execute("CREATE INDEX IF NOT EXISTS idx_entities_repo_type ON knowledge_entities(repository_id, type);")

    # Endpoints are not foreign keys; dangling relations are dropped at index time.
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS knowledge_relations (
          seq INTEGER PRIMARY KEY,
          repository_id TEXT NOT NULL,
          relation_id TEXT NOT NULL,
          from_entity_id TEXT NOT NULL,
          to_entity_id TEXT NOT NULL,
          relationship TEXT NOT NULL,
          weight REAL NOT NULL,
          metadata_json TEXT NOT NULL,
          UNIQUE (repository_id, relation_id)
        );
        """
    )
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_relations_repo_rel ON knowledge_relations(repository_id, relationship);"
    )

    conn.execute(
        "INSERT OR REPLACE INTO meta(key, value) VALUES(?, ?)",
        ("schema_version", str(SCHEMA_VERSION)),
    )
    conn.commit()


def clear_repository(conn: sqlite3.Connection, repository_id: str) -> None:
    conn.execute("DELETE FROM knowledge_relations WHERE repository_id = ?", (repository_id,))
    conn.execute("DELETE FROM knowledge_entities WHERE repository_id = ?", (repository_id,))
    conn.commit()


def upsert_entities(conn: sqlite3.Connection, repository_id: str, entities: Iterable[Entity]) -> int:
    rows = [
        (
            repository_id,
            e.id,
            e.name,
            e.type.value,
            e.description,
            e.file_path,
            e.line_start,
            e.line_end,
            json.dumps(list(e.embedding)) if e.embedding is not None else None,
            json.dumps(list(e.document_ids), ensure_ascii=True),
            json.dumps(e.metadata, ensure_ascii=True),
        )
        for e in entities
    ]
    conn.executemany(
        """
        INSERT INTO knowledge_entities(
          repository_id, entity_id, name, type, description, file_path,
          line_start, line_end, embedding_json, document_ids_json, metadata_json
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        ON CONFLICT(repository_id, entity_id) DO UPDATE SET
          name = excluded.name,
          type = excluded.type,
          description = excluded.description,
          file_path = excluded.file_path,
          line_start = excluded.line_start,
          line_end = excluded.line_end,
          embedding_json = excluded.embedding_json,
          document_ids_json = excluded.document_ids_json,
          metadata_json = excluded.metadata_json
        """,
        rows,
    )
    return len(rows)


def upsert_relations(conn: sqlite3.Connection, repository_id: str, relations: Iterable[Relation]) -> int:
    rows = [
        (
            repository_id,
            r.id,
            r.from_entity_id,
            r.to_entity_id,
            r.relationship,
            float(r.weight),
            json.dumps(r.metadata, ensure_ascii=True),
        )
        for r in relations
    ]
    conn.executemany(
        """
        INSERT INTO knowledge_relations(
          repository_id, relation_id, from_entity_id, to_entity_id, relationship, weight, metadata_json
        ) VALUES (?, ?, ?, ?, ?, ?, ?)
        ON CONFLICT(repository_id, relation_id) DO UPDATE SET
          from_entity_id = excluded.from_entity_id,
          to_entity_id = excluded.to_entity_id,
          relationship = excluded.relationship,
          weight = excluded.weight,
          metadata_json = excluded.metadata_json
        """,
        rows,
    )
    return len(rows)


def _entity_from_row(row: sqlite3.Row) -> Entity | None:
    try:
        etype = EntityType.parse(row["type"])
    except InvalidArgument:
        logger.warning("Skipping entity %s with unknown type %r", row["entity_id"], row["type"])
        return None
    emb = json.loads(row["embedding_json"]) if row["embedding_json"] else None
    return Entity(
        id=str(row["entity_id"]),
        name=str(row["name"]),
        type=etype,
        description=row["description"],
        file_path=row["file_path"],
        line_start=row["line_start"],
        line_end=row["line_end"],
        embedding=tuple(float(x) for x in emb) if emb else None,
        document_ids=tuple(json.loads(row["document_ids_json"] or "[]")),
        metadata=json.loads(row["metadata_json"] or "{}"),
    )


def _in_clause(column: str, values: list[str]) -> tuple[str, list[Any]]:
    placeholders = ",".join(["?"] * len(values))
    return f" AND {column} IN ({placeholders})", list(values)


class SqliteGraphStore:
    """EntityStore + RelationStore over the tables created by `init_db()`."""

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def list_entities(self, repository_id: str, types: Iterable[str] | None = None) -> list[Entity]:
        sql = """
            SELECT entity_id, name, type, description, file_path, line_start, line_end,
                   embedding_json, document_ids_json, metadata_json
            FROM knowledge_entities
            WHERE repository_id = ?
        """
        params: list[Any] = [repository_id]
        type_list = [EntityType.parse(t).value for t in types] if types else []
        if type_list:
            clause, extra = _in_clause("type", type_list)
            sql += clause
            params += extra
        sql += " ORDER BY seq"

        out: list[Entity] = []
        for row in self.conn.execute(sql, params).fetchall():
            ent = _entity_from_row(row)
            if ent is not None:
                out.append(ent)
        return out

    def list_relations(self, repository_id: str, relationships: Iterable[str] | None = None) -> list[Relation]:
        sql = """
            SELECT relation_id, from_entity_id, to_entity_id, relationship, weight, metadata_json
            FROM knowledge_relations
            WHERE repository_id = ?
        """
        params: list[Any] = [repository_id]
        rel_list = [str(r) for r in relationships] if relationships else []
        if rel_list:
            clause, extra = _in_clause("relationship", rel_list)
            sql += clause
            params += extra
        sql += " ORDER BY seq"

        return [
            Relation(
                id=str(r["relation_id"]),
                from_entity_id=str(r["from_entity_id"]),
                to_entity_id=str(r["to_entity_id"]),
                relationship=str(r["relationship"]),
                weight=float(r["weight"]),
                metadata=json.loads(r["metadata_json"] or "{}"),
            )
            for r in self.conn.execute(sql, params).fetchall()
        ]

    def load_snapshot(
        self,
        repository_id: str,
        *,
        types: Iterable[str] | None = None,
        relationships: Iterable[str] | None = None,
    ) -> Snapshot:
        return fetch_snapshot(self, self, repository_id, types=types, relationships=relationships)

    def repositories(self) -> list[str]:
        rows = self.conn.execute(
            "SELECT DISTINCT repository_id FROM knowledge_entities ORDER BY repository_id"
        ).fetchall()
        return [str(r["repository_id"]) for r in rows]
