"""Knowledge-graph engine over a codebase-derived entity/relation snapshot.

Everything here is pure computation over an in-memory snapshot: build an
`AdjacencyIndex` once, then run traversal, path search, clustering and
similarity against it. Fetching the snapshot is the store's job
(`docgraph.store`).
"""

from .community import detect_communities
from .errors import EntityNotFound, GraphError, InvalidArgument
from .index import AdjacencyIndex, build_index
from .models import Cluster, Direction, Entity, EntityType, GraphEdge, GraphNode, Relation
from .similarity import semantic_similarity, structural_similarity
from .traversal import Neighborhood, PathResult, neighborhood, shortest_path

__all__ = [
    "AdjacencyIndex",
    "Cluster",
    "Direction",
    "Entity",
    "EntityNotFound",
    "EntityType",
    "GraphEdge",
    "GraphError",
    "GraphNode",
    "InvalidArgument",
    "Neighborhood",
    "PathResult",
    "Relation",
    "build_index",
    "detect_communities",
    "neighborhood",
    "semantic_similarity",
    "shortest_path",
    "structural_similarity",
]
