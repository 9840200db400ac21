"""Read `{"entities": [...], "relations": [...]}` snapshot files into the store."""

from __future__ import annotations

import json
import logging
import sqlite3
from pathlib import Path
from typing import Any, Iterable

from ..graph.errors import InvalidArgument
from ..graph.models import Entity, Relation
from . import sqlite_store

logger = logging.getLogger(__name__)


def parse_records(
    entity_rows: Iterable[dict[str, Any]],
    relation_rows: Iterable[dict[str, Any]],
) -> tuple[list[Entity], list[Relation], int]:
    """Convert loose records, skipping malformed ones.

    Returns: (entities, relations, skipped)
    """
    entities: list[Entity] = []
    relations: list[Relation] = []
    skipped = 0

    for row in entity_rows:
        try:
            entities.append(Entity.from_dict(row))
        except (InvalidArgument, TypeError, ValueError) as e:
            skipped += 1
            logger.warning("Skipping entity record %r: %s", row.get("id") if isinstance(row, dict) else row, e)

    for row in relation_rows:
        try:
            relations.append(Relation.from_dict(row))
        except (InvalidArgument, TypeError, ValueError) as e:
            skipped += 1
            logger.warning("Skipping relation record %r: %s", row.get("id") if isinstance(row, dict) else row, e)

    return entities, relations, skipped


def read_snapshot_file(path: str | Path) -> tuple[list[Entity], list[Relation], int]:
    p = Path(path)
    try:
        data = json.loads(p.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise InvalidArgument(f"{p.name}: invalid JSON (line {e.lineno}, column {e.colno}): {e.msg}") from e
    if not isinstance(data, dict):
        raise InvalidArgument(f"{p.name}: expected a JSON object with 'entities' and 'relations'")
    return parse_records(data.get("entities") or [], data.get("relations") or [])


def import_snapshot(
    *,
    conn: sqlite3.Connection,
    repository_id: str,
    path: str | Path,
    clear: bool = True,
) -> dict[str, Any]:
    sqlite_store.init_db(conn)
    entities, relations, skipped = read_snapshot_file(path)

    if clear:
        sqlite_store.clear_repository(conn, repository_id)

    n_ent = sqlite_store.upsert_entities(conn, repository_id, entities)
    n_rel = sqlite_store.upsert_relations(conn, repository_id, relations)
    conn.commit()

    return {
        "repository_id": repository_id,
        "entities_written": n_ent,
        "relations_written": n_rel,
        "records_skipped": skipped,
    }
