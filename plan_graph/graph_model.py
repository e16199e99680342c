from __future__ import annotations

import logging
import re
import uuid
from dataclasses import dataclass, field, replace

from plan_graph.relationship_types import DEFAULT_RELATIONSHIP_TYPE, RelationshipLabel, canonicalize

logger = logging.getLogger("graph_model")

FIELD_TYPES: tuple[str, ...] = (
    "UUID",
    "SERIAL",
    "BIGSERIAL",
    "INTEGER",
    "BIGINT",
    "DECIMAL(10,2)",
    "VARCHAR(255)",
    "TEXT",
    "BOOLEAN",
    "DATE",
    "TIME",
    "TIMESTAMP",
    "TIMESTAMPTZ",
    "JSONB",
    "ENUM",
)
DEFAULT_FIELD_TYPE = "VARCHAR(255)"
DEFAULT_ENTITY_NAME = "NewEntity"

# "<token>Id" / "<token>_id", any case; bare "id" is the entity's own key.
_FK_SUFFIX = re.compile(r"_?id$", re.IGNORECASE)
_BARE_ID = re.compile(r"^id$", re.IGNORECASE)


@dataclass(frozen=True)
class Position:
    x: float = 0.0
    y: float = 0.0


@dataclass(frozen=True)
class Field:
    name: str
    type: str = DEFAULT_FIELD_TYPE
    is_primary: bool = False
    is_nullable: bool = True


@dataclass(frozen=True)
class EntityNode:
    id: str
    name: str = DEFAULT_ENTITY_NAME
    description: str = ""
    fields: list[Field] = field(default_factory=list)
    position: Position = field(default_factory=Position)


@dataclass(frozen=True)
class RelationshipEdge:
    id: str
    source: str
    target: str
    relationship_type: RelationshipLabel = DEFAULT_RELATIONSHIP_TYPE


@dataclass(frozen=True)
class GraphDocument:
    nodes: list[EntityNode] = field(default_factory=list)
    edges: list[RelationshipEdge] = field(default_factory=list)

    def node_ids(self) -> set[str]:
        return {node.id for node in self.nodes}

    def find_node(self, node_id: str) -> EntityNode | None:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def find_edge(self, edge_id: str) -> RelationshipEdge | None:
        for edge in self.edges:
            if edge.id == edge_id:
                return edge
        return None


def new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


def default_id_field() -> Field:
    return Field(name="id", type="UUID", is_primary=True, is_nullable=False)


def new_field() -> Field:
    return Field(name="", type=DEFAULT_FIELD_TYPE, is_primary=False, is_nullable=True)


def has_predefined_type(value: str) -> bool:
    current = str(value).strip().upper()
    return any(t.upper() == current for t in FIELD_TYPES)


def is_foreign_key_candidate(field_name: str) -> bool:
    name = str(field_name).strip()
    if not name or _BARE_ID.match(name):
        return False
    return bool(_FK_SUFFIX.search(name))


def strip_fk_suffix(field_name: str) -> str:
    return _FK_SUFFIX.sub("", str(field_name).strip()).strip()


def with_edge_type(edge: RelationshipEdge, label: object) -> RelationshipEdge:
    return replace(edge, relationship_type=canonicalize(label))


def dangling_edges(nodes: list[EntityNode], edges: list[RelationshipEdge]) -> list[RelationshipEdge]:
    ids = {node.id for node in nodes}
    return [edge for edge in edges if edge.source not in ids or edge.target not in ids]


def heal_document(document: GraphDocument) -> GraphDocument:
    """Drop edges whose endpoints are missing; everything else is kept as-is."""
    broken = dangling_edges(document.nodes, document.edges)
    if not broken:
        return document
    broken_ids = {edge.id for edge in broken}
    for edge in broken:
        logger.warning(
            "Dropping edge '%s' (%s -> %s): endpoint entity does not exist",
            edge.id,
            edge.source,
            edge.target,
        )
    return GraphDocument(
        nodes=list(document.nodes),
        edges=[edge for edge in document.edges if edge.id not in broken_ids],
    )


def remove_nodes(document: GraphDocument, node_ids: set[str]) -> GraphDocument:
    """Remove nodes and, in the same step, every edge incident to them."""
    return GraphDocument(
        nodes=[node for node in document.nodes if node.id not in node_ids],
        edges=[
            edge
            for edge in document.edges
            if edge.source not in node_ids and edge.target not in node_ids
        ],
    )


def replace_node(document: GraphDocument, updated: EntityNode) -> GraphDocument:
    return GraphDocument(
        nodes=[updated if node.id == updated.id else node for node in document.nodes],
        edges=list(document.edges),
    )
