"""Type-homogeneous connected components ("communities").

This is a grouping heuristic, not modularity-based community detection:
entities are split by type, and each same-type connected component large
enough becomes a cluster. Cross-type relations are ignored, so a cluster
never mixes entity types. A stronger algorithm can replace this behind the
same `detect_communities()` signature as long as it keeps that rule.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Iterable

from .errors import InvalidArgument
from .index import AdjacencyIndex
from .models import Cluster, Entity, EntityType

logger = logging.getLogger(__name__)


def detect_communities(
    entities: Iterable[Entity],
    index: AdjacencyIndex,
    min_cluster_size: int = 3,
) -> list[Cluster]:
    """Return clusters of same-type connected entities, ids `cluster-0`, `cluster-1`, ...

    Type partitions are processed in order of first appearance in `entities`,
    and components within a partition in entity order. Components smaller
    than `min_cluster_size` are discarded; their entities stay unclustered.
    """
    if isinstance(min_cluster_size, bool) or not isinstance(min_cluster_size, int):
        raise InvalidArgument(f"min_cluster_size must be an integer (got {min_cluster_size!r})")
    if min_cluster_size < 1:
        raise InvalidArgument(f"min_cluster_size must be >= 1 (got {min_cluster_size})")

    partitions: dict[EntityType, list[int]] = {}
    seen: set[int] = set()
    for e in entities:
        if not index.has(e.id):
            continue
        p = index.position(e.id)
        if p in seen:
            continue
        seen.add(p)
        # Type comes from the index so a stale copy cannot bridge partitions.
        etype = index.entity_at(p).type
        partitions.setdefault(etype, []).append(p)

    clusters: list[Cluster] = []
    discarded = 0
    for etype, members in partitions.items():
        member_set = set(members)
        assigned: set[int] = set()
        for seed in members:
            if seed in assigned:
                continue
            component = _component(index, seed, member_set, assigned)
            if len(component) < min_cluster_size:
                discarded += 1
                continue
            cid = f"cluster-{len(clusters)}"
            clusters.append(
                Cluster(
                    id=cid,
                    label=f"{etype.value} group ({len(component)})",
                    node_ids=[index.entity_at(p).id for p in component],
                )
            )

    logger.debug(
        "Detected %d cluster(s) across %d type partition(s); %d component(s) below size %d",
        len(clusters),
        len(partitions),
        discarded,
        min_cluster_size,
    )
    return clusters


def _component(index: AdjacencyIndex, seed: int, allowed: set[int], assigned: set[int]) -> list[int]:
    """BFS from `seed` using only neighbors inside `allowed`; marks them in `assigned`."""
    assigned.add(seed)
    out = [seed]
    queue = deque([seed])
    while queue:
        p = queue.popleft()
        for q in index.neighbor_positions(p):
            if q in allowed and q not in assigned:
                assigned.add(q)
                out.append(q)
                queue.append(q)
    return out
