"""Color and size rules for visualization consumers.

Output is abstract node/edge records; rendering is up to the caller.
"""

from __future__ import annotations

from typing import Any

from .index import AdjacencyIndex
from .models import Entity, EntityType, GraphEdge, GraphNode, Relation
from .traversal import Neighborhood

DEFAULT_COLOR = "#9ca3af"

TYPE_COLORS: dict[EntityType, str] = {
    EntityType.DOCUMENT: "#3b82f6",
    EntityType.CONCEPT: "#8b5cf6",
    EntityType.FUNCTION: "#10b981",
    EntityType.CLASS: "#f59e0b",
    EntityType.INTERFACE: "#06b6d4",
    EntityType.TYPE: "#ec4899",
    EntityType.MODULE: "#6366f1",
    EntityType.FILE: "#64748b",
    EntityType.VARIABLE: "#84cc16",
    EntityType.API_ENDPOINT: "#ef4444",
}

CLUSTER_PALETTE = (
    "#e6194b",
    "#3cb44b",
    "#4363d8",
    "#f58231",
    "#911eb4",
    "#42d4f4",
    "#f032e6",
    "#bfef45",
    "#469990",
    "#9a6324",
)

BASE_SIZE = 10
SIZE_PER_EDGE = 2
MAX_SIZE = 30

CENTRAL_SIZE = 30
RING_SIZE = 20
RING_STEP = 3
MIN_RING_SIZE = 8


def color_for_type(entity_type: EntityType | str) -> str:
    if not isinstance(entity_type, EntityType):
        try:
            entity_type = EntityType(str(entity_type))
        except ValueError:
            return DEFAULT_COLOR
    return TYPE_COLORS.get(entity_type, DEFAULT_COLOR)


def color_for_cluster(cluster_id: str) -> str:
    # "cluster-7" -> palette[7 % len]; anything unparsable lands on slot 0.
    suffix = str(cluster_id).rsplit("-", 1)[-1]
    try:
        n = int(suffix)
    except ValueError:
        n = 0
    return CLUSTER_PALETTE[n % len(CLUSTER_PALETTE)]


def size_for_degree(out_degree: int, in_degree: int) -> int:
    degree = max(0, int(out_degree)) + max(0, int(in_degree))
    return min(MAX_SIZE, BASE_SIZE + SIZE_PER_EDGE * degree)


def size_for_distance(depth: int) -> int:
    if depth <= 0:
        return CENTRAL_SIZE
    return max(MIN_RING_SIZE, RING_SIZE - RING_STEP * (depth - 1))


def node_record(
    entity: Entity,
    *,
    size: int,
    color: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> GraphNode:
    return GraphNode(
        id=entity.id,
        label=entity.name,
        type=entity.type.value,
        size=int(size),
        color=color or color_for_type(entity.type),
        metadata=metadata,
    )


def edge_record(rel: Relation) -> GraphEdge:
    return GraphEdge(
        id=rel.id,
        source=rel.from_entity_id,
        target=rel.to_entity_id,
        label=rel.relationship,
        weight=float(rel.weight),
    )


def neighborhood_records(index: AdjacencyIndex, result: Neighborhood) -> dict[str, Any]:
    """Render a neighborhood as node/edge records, central node largest."""
    nodes = []
    for nid in result.nodes:
        ent = index.entity(nid)
        depth = result.depths[nid]
        meta: dict[str, Any] = {"distance": depth, "description": ent.description}
        if depth == 0:
            meta = {"isCentral": True, "description": ent.description}
        nodes.append(node_record(ent, size=size_for_distance(depth), metadata=meta).to_dict())

    return {
        "central": index.entity(result.start_id).brief(),
        "direction": result.direction.value,
        "depth": result.max_depth,
        "nodes": nodes,
        "edges": [edge_record(r).to_dict() for r in result.edges],
        "stats": result.stats.to_dict(),
    }
