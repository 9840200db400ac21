from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping

from .errors import InvalidArgument


class EntityType(str, Enum):
    DOCUMENT = "document"
    CONCEPT = "concept"
    FUNCTION = "function"
    CLASS = "class"
    INTERFACE = "interface"
    TYPE = "type"
    MODULE = "module"
    FILE = "file"
    VARIABLE = "variable"
    API_ENDPOINT = "api-endpoint"

    @classmethod
    def parse(cls, value: str | EntityType) -> EntityType:
        if isinstance(value, EntityType):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise InvalidArgument(f"Unknown entity type: {value!r}") from None


class Direction(str, Enum):
    OUTGOING = "outgoing"
    INCOMING = "incoming"
    BOTH = "both"

    @classmethod
    def parse(cls, value: str | Direction) -> Direction:
        if isinstance(value, Direction):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise InvalidArgument(
                f"direction must be one of outgoing, incoming, both (got {value!r})"
            ) from None


# Relationship labels the ingestion pipeline emits. Labels stay free strings;
# this list only feeds CLI help.
KNOWN_RELATIONSHIPS = (
    "defines",
    "uses",
    "extends",
    "implements",
    "documents",
    "related",
    "calls",
    "imports",
    "exports",
    "depends-on",
)


def _pick(d: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    for k in keys:
        if k in d and d[k] is not None:
            return d[k]
    return default


def _opt_int(v: Any) -> int | None:
    return int(v) if v is not None else None


@dataclass(frozen=True)
class Entity:
    id: str
    name: str
    type: EntityType
    description: str | None = None
    file_path: str | None = None
    line_start: int | None = None
    line_end: int | None = None
    embedding: tuple[float, ...] | None = None
    document_ids: tuple[str, ...] = ()
    metadata: dict[str, Any] = field(default_factory=dict, compare=False)

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> Entity:
        """Build an entity from a loose record (camelCase or snake_case keys)."""
        eid = _pick(d, "id")
        if eid is None:
            raise InvalidArgument("entity record is missing 'id'")
        emb = _pick(d, "embedding")
        return cls(
            id=str(eid),
            name=str(_pick(d, "name", default=eid)),
            type=EntityType.parse(_pick(d, "type", default="")),
            description=_pick(d, "description"),
            file_path=_pick(d, "file_path", "filePath"),
            line_start=_opt_int(_pick(d, "line_start", "lineStart")),
            line_end=_opt_int(_pick(d, "line_end", "lineEnd")),
            embedding=tuple(float(x) for x in emb) if emb else None,
            document_ids=tuple(str(x) for x in (_pick(d, "document_ids", "documentIds") or ())),
            metadata=dict(_pick(d, "metadata") or {}),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type.value,
            "description": self.description,
            "filePath": self.file_path,
            "lineStart": self.line_start,
            "lineEnd": self.line_end,
        }

    def brief(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "type": self.type.value}


@dataclass(frozen=True)
class Relation:
    id: str
    from_entity_id: str
    to_entity_id: str
    relationship: str
    weight: float = 1.0
    metadata: dict[str, Any] = field(default_factory=dict, compare=False)

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> Relation:
        src = _pick(d, "from_entity_id", "fromEntityId", "source")
        dst = _pick(d, "to_entity_id", "toEntityId", "target")
        if src is None or dst is None:
            raise InvalidArgument("relation record needs both endpoints")
        rid = _pick(d, "id", default=None)
        label = str(_pick(d, "relationship", "label", default="related"))
        return cls(
            id=str(rid) if rid is not None else f"{src}-{label}-{dst}",
            from_entity_id=str(src),
            to_entity_id=str(dst),
            relationship=label,
            weight=float(_pick(d, "weight", default=1.0)),
            metadata=dict(_pick(d, "metadata") or {}),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "fromEntityId": self.from_entity_id,
            "toEntityId": self.to_entity_id,
            "relationship": self.relationship,
            "weight": self.weight,
        }

    @property
    def is_self_loop(self) -> bool:
        return self.from_entity_id == self.to_entity_id

    def other(self, entity_id: str) -> str:
        """Return the endpoint opposite `entity_id`."""
        return self.to_entity_id if self.from_entity_id == entity_id else self.from_entity_id


@dataclass(frozen=True)
class Cluster:
    id: str
    label: str
    node_ids: list[str]

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "label": self.label, "nodeIds": list(self.node_ids)}


@dataclass(frozen=True)
class GraphNode:
    id: str
    label: str
    type: str
    size: int
    color: str
    metadata: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "id": self.id,
            "label": self.label,
            "type": self.type,
            "size": self.size,
            "color": self.color,
        }
        if self.metadata is not None:
            out["metadata"] = dict(self.metadata)
        return out


@dataclass(frozen=True)
class GraphEdge:
    id: str
    source: str
    target: str
    label: str
    weight: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "source": self.source,
            "target": self.target,
            "label": self.label,
            "weight": self.weight,
        }
