"""In-memory adjacency index over one repository snapshot.

Entity ids are mapped to dense positions (an arena) so the traversal and
clustering code works on small ints and plain lists. The index is built once
per request from a snapshot fetched in a single store round trip, and is
never mutated afterwards.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Iterable, Iterator

from .models import Entity, Relation

logger = logging.getLogger(__name__)


class AdjacencyIndex:
    """Read-only view of a snapshot. Build it with `build_index()`."""

    def __init__(
        self,
        *,
        entities: list[Entity],
        positions: dict[str, int],
        relations: list[Relation],
        out_rels: list[list[int]],
        in_rels: list[list[int]],
        succ: list[list[int]],
        pred: list[list[int]],
        adj: list[list[int]],
        pair_rels: dict[tuple[int, int], list[int]],
        dropped_relations: int,
    ):
        self._entities = entities
        self._pos = positions
        self._relations = relations
        self._out_rels = out_rels
        self._in_rels = in_rels
        self._succ = succ
        self._pred = pred
        self._adj = adj
        self._pair_rels = pair_rels
        self.dropped_relations = dropped_relations

    def __len__(self) -> int:
        return len(self._entities)

    def __contains__(self, entity_id: object) -> bool:
        return entity_id in self._pos

    def __iter__(self) -> Iterator[Entity]:
        return iter(self._entities)

    @property
    def entities(self) -> list[Entity]:
        return list(self._entities)

    @property
    def relations(self) -> list[Relation]:
        """Relations kept after endpoint filtering, in input order."""
        return list(self._relations)

    def has(self, entity_id: str) -> bool:
        return entity_id in self._pos

    def position(self, entity_id: str) -> int:
        return self._pos[entity_id]

    def entity(self, entity_id: str) -> Entity:
        return self._entities[self._pos[entity_id]]

    def entity_at(self, pos: int) -> Entity:
        return self._entities[pos]

    def get(self, entity_id: str) -> Entity | None:
        pos = self._pos.get(entity_id)
        return None if pos is None else self._entities[pos]

    def relation_at(self, rel_pos: int) -> Relation:
        return self._relations[rel_pos]

    # Relation-level lookups (self-loops excluded).

    def outgoing(self, entity_id: str) -> list[Relation]:
        return [self._relations[r] for r in self._out_rels[self._pos[entity_id]]]

    def incoming(self, entity_id: str) -> list[Relation]:
        return [self._relations[r] for r in self._in_rels[self._pos[entity_id]]]

    def out_degree(self, entity_id: str) -> int:
        return len(self._out_rels[self._pos[entity_id]])

    def in_degree(self, entity_id: str) -> int:
        return len(self._in_rels[self._pos[entity_id]])

    def relations_between(self, a: str, b: str) -> list[Relation]:
        """All relation records connecting `a` and `b`, either direction, input order."""
        pa = self._pos.get(a)
        pb = self._pos.get(b)
        if pa is None or pb is None:
            return []
        key = (pa, pb) if pa <= pb else (pb, pa)
        return [self._relations[r] for r in self._pair_rels.get(key, ())]

    # Collapsed adjacency (one edge per entity pair).

    def neighbors(self, entity_id: str) -> frozenset[str]:
        """Undirected neighbor ids; a node is never its own neighbor."""
        return frozenset(self._entities[p].id for p in self._adj[self._pos[entity_id]])

    def neighbor_positions(self, pos: int) -> list[int]:
        return self._adj[pos]

    def successor_positions(self, pos: int) -> list[int]:
        return self._succ[pos]

    def predecessor_positions(self, pos: int) -> list[int]:
        return self._pred[pos]

    def out_relation_positions(self, pos: int) -> list[int]:
        return self._out_rels[pos]

    def in_relation_positions(self, pos: int) -> list[int]:
        return self._in_rels[pos]


def build_index(entities: Iterable[Entity], relations: Iterable[Relation]) -> AdjacencyIndex:
    """Build an adjacency index from a flat snapshot.

    Relations whose endpoints are not in `entities` are dropped. Duplicate
    (from, to) pairs collapse to one adjacency edge, but every relation record
    stays available through `outgoing()`, `incoming()` and
    `relations_between()`. Inputs are read, never modified.
    """
    ents: list[Entity] = []
    pos: dict[str, int] = {}
    for e in entities:
        if e.id in pos:
            # First occurrence wins.
            continue
        pos[e.id] = len(ents)
        ents.append(e)

    n = len(ents)
    kept: list[Relation] = []
    out_rels: list[list[int]] = [[] for _ in range(n)]
    in_rels: list[list[int]] = [[] for _ in range(n)]
    succ: list[list[int]] = [[] for _ in range(n)]
    pred: list[list[int]] = [[] for _ in range(n)]
    adj: list[list[int]] = [[] for _ in range(n)]
    pair_rels: dict[tuple[int, int], list[int]] = defaultdict(list)
    seen_directed: set[tuple[int, int]] = set()
    seen_undirected: set[tuple[int, int]] = set()
    dropped = 0

    for rel in relations:
        a = pos.get(rel.from_entity_id)
        b = pos.get(rel.to_entity_id)
        if a is None or b is None:
            dropped += 1
            continue

        r = len(kept)
        kept.append(rel)
        pair_rels[(a, b) if a <= b else (b, a)].append(r)

        if rel.is_self_loop:
            continue

        out_rels[a].append(r)
        in_rels[b].append(r)

        if (a, b) not in seen_directed:
            seen_directed.add((a, b))
            succ[a].append(b)
            pred[b].append(a)

        key = (a, b) if a < b else (b, a)
        if key not in seen_undirected:
            seen_undirected.add(key)
            adj[a].append(b)
            adj[b].append(a)

    if dropped:
        logger.debug("Dropped %d relation(s) with endpoints outside the snapshot", dropped)

    return AdjacencyIndex(
        entities=ents,
        positions=pos,
        relations=kept,
        out_rels=out_rels,
        in_rels=in_rels,
        succ=succ,
        pred=pred,
        adj=adj,
        pair_rels=dict(pair_rels),
        dropped_relations=dropped,
    )
