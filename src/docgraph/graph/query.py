from __future__ import annotations

from collections import Counter
from typing import Any, Iterable

from .community import detect_communities
from .errors import EntityNotFound, InvalidArgument
from .index import AdjacencyIndex
from .models import Entity, EntityType, Relation
from .presentation import (
    color_for_cluster,
    color_for_type,
    edge_record,
    node_record,
    size_for_degree,
)
from .similarity import semantic_similarity, structural_similarity


def _type_filter(types: Iterable[EntityType | str] | None) -> frozenset[EntityType] | None:
    if not types:
        return None
    return frozenset(EntityType.parse(t) for t in types)


def _require(index: AdjacencyIndex, entity_id: str) -> Entity:
    ent = index.get(entity_id)
    if ent is None:
        raise EntityNotFound(entity_id)
    return ent


def search_entities(
    index: AdjacencyIndex,
    query: str,
    *,
    types: Iterable[EntityType | str] | None = None,
    limit: int = 20,
    related_limit: int = 5,
) -> dict[str, Any]:
    """Case-insensitive substring match on entity name or description."""
    q = query.strip().lower()
    if not q:
        raise InvalidArgument("query is required")
    if limit <= 0:
        raise InvalidArgument(f"limit must be > 0 (got {limit})")
    allowed = _type_filter(types)

    results = []
    for ent in index:
        if allowed is not None and ent.type not in allowed:
            continue
        hay = ent.name.lower()
        desc = (ent.description or "").lower()
        if q not in hay and q not in desc:
            continue

        related = []
        for rel in index.outgoing(ent.id)[:related_limit]:
            related.append(
                {
                    "entity": index.entity(rel.to_entity_id).brief(),
                    "relationship": rel.relationship,
                    "direction": "outgoing",
                }
            )
        for rel in index.incoming(ent.id)[:related_limit]:
            related.append(
                {
                    "entity": index.entity(rel.from_entity_id).brief(),
                    "relationship": rel.relationship,
                    "direction": "incoming",
                }
            )

        results.append({"entity": ent.to_dict(), "relatedEntities": related})
        if len(results) >= limit:
            break

    return {"query": query, "results": results, "total": len(results)}


def _connection(rel: Relation, peer: Entity) -> dict[str, Any]:
    return {"relationship": rel.relationship, "weight": rel.weight, "entity": peer.brief()}


def entity_details(index: AdjacencyIndex, entity_id: str) -> dict[str, Any]:
    ent = _require(index, entity_id)
    data = ent.to_dict()
    data["metadata"] = dict(ent.metadata)
    data["documentIds"] = list(ent.document_ids)
    return {
        "entity": data,
        "connections": {
            "outgoing": [_connection(r, index.entity(r.to_entity_id)) for r in index.outgoing(entity_id)],
            "incoming": [_connection(r, index.entity(r.from_entity_id)) for r in index.incoming(entity_id)],
        },
    }


def graph_stats(index: AdjacencyIndex) -> dict[str, Any]:
    by_type = Counter(e.type.value for e in index)
    by_rel = Counter(r.relationship for r in index.relations)

    def ordered(c: Counter) -> list[dict[str, Any]]:
        return [{"type": k, "count": v} for k, v in sorted(c.items(), key=lambda kv: (-kv[1], kv[0]))]

    return {
        "entityCount": len(index),
        "relationCount": len(index.relations),
        "droppedRelations": index.dropped_relations,
        "entityTypes": ordered(by_type),
        "relationTypes": ordered(by_rel),
    }


def visualize(
    index: AdjacencyIndex,
    *,
    types: Iterable[EntityType | str] | None = None,
    max_nodes: int = 100,
    include_orphans: bool = True,
) -> dict[str, Any]:
    """Node/edge records for the first `max_nodes` entities of the selected types.

    Node size reflects degree in the whole snapshot; edges are limited to
    relations between selected nodes.
    """
    if max_nodes <= 0:
        raise InvalidArgument(f"max_nodes must be > 0 (got {max_nodes})")
    allowed = _type_filter(types)

    selected: list[Entity] = []
    for ent in index:
        if allowed is not None and ent.type not in allowed:
            continue
        selected.append(ent)
        if len(selected) >= max_nodes:
            break
    ids = {e.id for e in selected}

    edges = [
        edge_record(r)
        for r in index.relations
        if r.from_entity_id in ids and r.to_entity_id in ids
    ]

    if not include_orphans:
        linked = {e.source for e in edges} | {e.target for e in edges}
        selected = [e for e in selected if e.id in linked]

    nodes = [
        node_record(
            e,
            size=size_for_degree(index.out_degree(e.id), index.in_degree(e.id)),
            metadata={"description": e.description, "filePath": e.file_path, "lineStart": e.line_start},
        ).to_dict()
        for e in selected
    ]
    return {"nodes": nodes, "edges": [e.to_dict() for e in edges]}


def clustered_view(index: AdjacencyIndex, *, min_cluster_size: int = 3) -> dict[str, Any]:
    clusters = detect_communities(index.entities, index, min_cluster_size)
    member_of = {nid: c.id for c in clusters for nid in c.node_ids}

    nodes = []
    for ent in index:
        cid = member_of.get(ent.id)
        color = color_for_cluster(cid) if cid is not None else color_for_type(ent.type)
        nodes.append(
            node_record(
                ent,
                size=15,
                color=color,
                metadata={"clusterId": cid, "description": ent.description, "filePath": ent.file_path},
            ).to_dict()
        )

    return {
        "nodes": nodes,
        "edges": [edge_record(r).to_dict() for r in index.relations],
        "clusters": [c.to_dict() for c in clusters],
    }


def similarity_report(index: AdjacencyIndex, entity_a: str, entity_b: str) -> dict[str, Any]:
    a = _require(index, entity_a)
    b = _require(index, entity_b)

    na = index.neighbors(a.id)
    nb = index.neighbors(b.id)

    semantic = None
    if a.embedding and b.embedding:
        semantic = semantic_similarity(a.embedding, b.embedding)

    return {
        "entityA": a.brief(),
        "entityB": b.brief(),
        "structuralSimilarity": structural_similarity(na, nb),
        "semanticSimilarity": semantic,
        "sharedNeighbors": len(na & nb),
        "totalNeighborsA": len(na),
        "totalNeighborsB": len(nb),
    }
