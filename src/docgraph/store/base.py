from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Protocol

from ..graph.index import AdjacencyIndex, build_index
from ..graph.models import Entity, Relation


class EntityStore(Protocol):
    def list_entities(self, repository_id: str, types: Iterable[str] | None = None) -> list[Entity]: ...


class RelationStore(Protocol):
    def list_relations(self, repository_id: str, relationships: Iterable[str] | None = None) -> list[Relation]: ...


@dataclass(frozen=True)
class Snapshot:
    repository_id: str
    entities: list[Entity]
    relations: list[Relation]

    def index(self) -> AdjacencyIndex:
        return build_index(self.entities, self.relations)


def fetch_snapshot(
    entity_store: EntityStore,
    relation_store: RelationStore,
    repository_id: str,
    *,
    types: Iterable[str] | None = None,
    relationships: Iterable[str] | None = None,
) -> Snapshot:
    """One round trip per collection; every query then runs over the result."""
    return Snapshot(
        repository_id=repository_id,
        entities=entity_store.list_entities(repository_id, types),
        relations=relation_store.list_relations(repository_id, relationships),
    )
