"""Bounded BFS over an AdjacencyIndex: neighborhoods and shortest paths.

Both searches run entirely over the in-memory index; callers fetch the
snapshot once and pass the index in. Every search is capped by `max_depth`
(and `node_limit` for neighborhoods), so work is bounded by the caps rather
than by the graph size.

When several shortest paths of equal length exist, the one returned depends
on relation iteration order (input order of the snapshot). Only the length
is guaranteed.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from itertools import chain
from typing import Any, Iterable, Iterator

from .errors import EntityNotFound, InvalidArgument
from .index import AdjacencyIndex
from .models import Direction, Relation

logger = logging.getLogger(__name__)

MAX_DEPTH_CAP = 10
NODE_LIMIT_CAP = 1000

NO_PATH_REASON = "No path within depth limit"


@dataclass(frozen=True)
class TraversalStats:
    total_nodes: int
    total_edges: int
    max_depth_reached: int
    truncated: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalNodes": self.total_nodes,
            "totalEdges": self.total_edges,
            "maxDepthReached": self.max_depth_reached,
            "truncated": self.truncated,
        }


@dataclass(frozen=True)
class Neighborhood:
    start_id: str
    direction: Direction
    max_depth: int
    nodes: list[str]
    depths: dict[str, int]
    edges: list[Relation]
    stats: TraversalStats


@dataclass(frozen=True)
class PathResult:
    found: bool
    path: list[str] | None = None
    reason: str | None = None
    relations: tuple[Relation, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        if not self.found:
            return {"found": False, "reason": self.reason}
        return {
            "found": True,
            "path": list(self.path or []),
            "pathLength": len(self.path or []),
            "relations": [
                {"from": r.from_entity_id, "to": r.to_entity_id, "relationship": r.relationship}
                for r in self.relations
            ],
        }


def check_depth(max_depth: int, *, cap: int = MAX_DEPTH_CAP) -> int:
    if isinstance(max_depth, bool) or not isinstance(max_depth, int):
        raise InvalidArgument(f"max_depth must be an integer (got {max_depth!r})")
    if max_depth < 0:
        raise InvalidArgument(f"max_depth must be >= 0 (got {max_depth})")
    if max_depth > cap:
        raise InvalidArgument(f"max_depth must be <= {cap} (got {max_depth})")
    return max_depth


def check_node_limit(node_limit: int, *, cap: int = NODE_LIMIT_CAP) -> int:
    if isinstance(node_limit, bool) or not isinstance(node_limit, int):
        raise InvalidArgument(f"node_limit must be an integer (got {node_limit!r})")
    if node_limit <= 0:
        raise InvalidArgument(f"node_limit must be > 0 (got {node_limit})")
    if node_limit > cap:
        raise InvalidArgument(f"node_limit must be <= {cap} (got {node_limit})")
    return node_limit


def neighborhood(
    index: AdjacencyIndex,
    start_id: str,
    *,
    direction: Direction | str = Direction.BOTH,
    max_depth: int = 1,
    node_limit: int = 50,
    relation_types: Iterable[str] | None = None,
    max_depth_cap: int = MAX_DEPTH_CAP,
    node_limit_cap: int = NODE_LIMIT_CAP,
) -> Neighborhood:
    """Expand the neighborhood of `start_id` level by level.

    Stops after `max_depth` levels or as soon as `node_limit` nodes have been
    emitted. Within a level, nodes are visited in discovery order and each
    node's relations in snapshot order (outgoing before incoming for
    `both`). An edge (from, to, label) is emitted at most once, and only when
    both endpoints are in `nodes`.
    """
    direction = Direction.parse(direction)
    check_depth(max_depth, cap=max_depth_cap)
    check_node_limit(node_limit, cap=node_limit_cap)
    if not index.has(start_id):
        raise EntityNotFound(start_id)

    rel_filter = frozenset(relation_types) if relation_types else None

    start = index.position(start_id)
    visited = {start}
    nodes = [start_id]
    depths = {start_id: 0}
    edges: list[Relation] = []
    edge_keys: set[tuple[str, str, str]] = set()

    level = [start]
    depth = 0
    # Relations left unscanned when the node limit stops the walk.
    pending: Iterable[int] = ()
    limit_hit = len(nodes) >= node_limit
    if limit_hit and max_depth > 0:
        pending = _frontier_relations(index, level, direction)

    while depth < max_depth and level and not limit_hit:
        next_level: list[int] = []
        for i, p in enumerate(level):
            candidates = _candidate_relations(index, p, direction)
            for j, r in enumerate(candidates):
                rel = index.relation_at(r)
                if rel_filter is not None and rel.relationship not in rel_filter:
                    continue

                q = index.position(rel.other(index.entity_at(p).id))
                if q not in visited:
                    visited.add(q)
                    nid = index.entity_at(q).id
                    nodes.append(nid)
                    depths[nid] = depth + 1
                    next_level.append(q)

                key = (rel.from_entity_id, rel.to_entity_id, rel.relationship)
                if key not in edge_keys:
                    edge_keys.add(key)
                    edges.append(rel)

                if len(nodes) >= node_limit:
                    limit_hit = True
                    pending = chain(candidates[j + 1 :], _frontier_relations(index, level[i + 1 :], direction))
                    if depth + 1 < max_depth:
                        pending = chain(pending, _frontier_relations(index, next_level, direction))
                    break
            if limit_hit:
                break

        level = next_level
        depth += 1

    truncated = _reaches_unvisited(index, pending, visited, rel_filter)
    if truncated:
        logger.debug("Neighborhood of %s stopped at node limit %d", start_id, node_limit)

    stats = TraversalStats(
        total_nodes=len(nodes),
        total_edges=len(edges),
        max_depth_reached=max(depths.values()),
        truncated=truncated,
    )
    return Neighborhood(
        start_id=start_id,
        direction=direction,
        max_depth=max_depth,
        nodes=nodes,
        depths=depths,
        edges=edges,
        stats=stats,
    )


def _candidate_relations(index: AdjacencyIndex, pos: int, direction: Direction) -> list[int]:
    if direction is Direction.OUTGOING:
        return index.out_relation_positions(pos)
    if direction is Direction.INCOMING:
        return index.in_relation_positions(pos)
    return index.out_relation_positions(pos) + index.in_relation_positions(pos)


def _frontier_relations(index: AdjacencyIndex, positions: list[int], direction: Direction) -> Iterator[int]:
    for p in positions:
        yield from _candidate_relations(index, p, direction)


def _reaches_unvisited(
    index: AdjacencyIndex,
    rel_positions: Iterable[int],
    visited: set[int],
    rel_filter: frozenset[str] | None,
) -> bool:
    """True if any of these relations would have added a node the walk never emitted."""
    for r in rel_positions:
        rel = index.relation_at(r)
        if rel_filter is not None and rel.relationship not in rel_filter:
            continue
        if index.position(rel.from_entity_id) not in visited or index.position(rel.to_entity_id) not in visited:
            return True
    return False


def shortest_path(
    index: AdjacencyIndex,
    from_id: str,
    to_id: str,
    max_depth: int = 6,
    *,
    max_depth_cap: int = MAX_DEPTH_CAP,
) -> PathResult:
    """Unweighted shortest path, treating every relation as undirected."""
    check_depth(max_depth, cap=max_depth_cap)
    if not index.has(from_id):
        raise EntityNotFound(from_id)
    if not index.has(to_id):
        raise EntityNotFound(to_id)

    if from_id == to_id:
        return PathResult(found=True, path=[from_id])

    src = index.position(from_id)
    dst = index.position(to_id)
    parent: dict[int, int] = {src: src}
    queue: deque[tuple[int, int]] = deque([(src, 0)])

    while queue:
        p, dist = queue.popleft()
        if dist >= max_depth:
            continue
        for q in index.neighbor_positions(p):
            if q in parent:
                continue
            parent[q] = p
            if q == dst:
                path = _unwind(index, parent, src, dst)
                return PathResult(found=True, path=path, relations=tuple(_hop_relations(index, path)))
            queue.append((q, dist + 1))

    return PathResult(found=False, reason=NO_PATH_REASON)


def _unwind(index: AdjacencyIndex, parent: dict[int, int], src: int, dst: int) -> list[str]:
    out = [dst]
    while out[-1] != src:
        out.append(parent[out[-1]])
    out.reverse()
    return [index.entity_at(p).id for p in out]


def _hop_relations(index: AdjacencyIndex, path: list[str]) -> list[Relation]:
    out: list[Relation] = []
    for a, b in zip(path, path[1:]):
        rels = index.relations_between(a, b)
        if rels:
            out.append(rels[0])
    return out
