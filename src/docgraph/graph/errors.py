from __future__ import annotations


class GraphError(Exception):
    """Base class for knowledge-graph engine errors."""


class EntityNotFound(GraphError, LookupError):
    def __init__(self, entity_id: str):
        self.entity_id = str(entity_id)
        super().__init__(f"Entity not found: {self.entity_id}")


class InvalidArgument(GraphError, ValueError):
    pass
