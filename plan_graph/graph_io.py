from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from plan_graph.error_contract import format_actionable_error
from plan_graph.flow_model import FLOW_NODE_KINDS, FlowDocument, FlowEdge, FlowNode
from plan_graph.graph_model import EntityNode, Field, GraphDocument, Position, RelationshipEdge
from plan_graph.relationship_types import canonicalize, describe


def _io_error(location: str, issue: str, hint: str) -> str:
    return format_actionable_error("Graph document", location, issue, hint)


def _require_list(data: dict[str, Any], key: str) -> list[Any]:
    value = data.get(key, [])
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError(
            _io_error(key, f"'{key}' must be a list", f"store '{key}' as a JSON array")
        )
    return value


def _position_from_dict(raw: Any) -> Position:
    if not isinstance(raw, dict):
        return Position()
    try:
        return Position(x=float(raw.get("x", 0) or 0), y=float(raw.get("y", 0) or 0))
    except (TypeError, ValueError):
        return Position()


def _field_from_dict(raw: Any, *, node_id: str) -> Field:
    if not isinstance(raw, dict):
        raise ValueError(
            _io_error(
                f"Entity '{node_id}' fields",
                "field entries must be objects",
                "store each field as {name, type, isPrimary, isNullable}",
            )
        )
    return Field(
        name=str(raw.get("name", "") or ""),
        type=str(raw.get("type", "") or ""),
        is_primary=bool(raw.get("isPrimary", False)),
        is_nullable=bool(raw.get("isNullable", True)),
    )


def _node_from_dict(raw: Any) -> EntityNode:
    if not isinstance(raw, dict) or not str(raw.get("id", "")).strip():
        raise ValueError(
            _io_error("nodes", "every entity needs a non-empty 'id'", "give each node a unique id")
        )
    node_id = str(raw["id"])
    data = raw.get("data") if isinstance(raw.get("data"), dict) else raw
    fields = data.get("fields") or []
    if not isinstance(fields, list):
        raise ValueError(
            _io_error(f"Entity '{node_id}' fields", "'fields' must be a list", "store fields as a JSON array")
        )
    return EntityNode(
        id=node_id,
        name=str(data.get("name", "") or ""),
        description=str(data.get("description", "") or ""),
        fields=[_field_from_dict(f, node_id=node_id) for f in fields],
        position=_position_from_dict(raw.get("position")),
    )


def _edge_label(raw: dict[str, Any]) -> object:
    data = raw.get("data")
    if isinstance(data, dict) and data.get("relationshipType"):
        return data["relationshipType"]
    if raw.get("relationshipType"):
        return raw["relationshipType"]
    return raw.get("label")


def _edge_from_dict(raw: Any) -> RelationshipEdge:
    if not isinstance(raw, dict):
        raise ValueError(_io_error("edges", "edge entries must be objects", "store edges as JSON objects"))
    for key in ("id", "source", "target"):
        if not str(raw.get(key, "") or "").strip():
            raise ValueError(
                _io_error("edges", f"edge is missing '{key}'", "give each edge an id, source and target")
            )
    return RelationshipEdge(
        id=str(raw["id"]),
        source=str(raw["source"]),
        target=str(raw["target"]),
        relationship_type=canonicalize(_edge_label(raw)),
    )


def document_to_dict(document: GraphDocument) -> dict[str, Any]:
    nodes = [
        {
            "id": node.id,
            "type": "entityNode",
            "position": {"x": node.position.x, "y": node.position.y},
            "data": {
                "name": node.name,
                "description": node.description,
                "fields": [
                    {
                        "name": f.name,
                        "type": f.type,
                        "isPrimary": f.is_primary,
                        "isNullable": f.is_nullable,
                    }
                    for f in node.fields
                ],
            },
        }
        for node in document.nodes
    ]
    edges = []
    for edge in document.edges:
        label = str(edge.relationship_type)
        edges.append(
            {
                "id": edge.id,
                "source": edge.source,
                "target": edge.target,
                "type": "erdEdge",
                "data": {
                    "relationshipType": label,
                    "label": label,
                    "notation": describe(edge.relationship_type).notation,
                },
            }
        )
    return {"nodes": nodes, "edges": edges}


def document_from_dict(data: Any) -> GraphDocument:
    if data is None:
        return GraphDocument()
    if not isinstance(data, dict):
        raise ValueError(
            _io_error("payload", "document must be a JSON object", "store {\"nodes\": [...], \"edges\": [...]}")
        )
    return GraphDocument(
        nodes=[_node_from_dict(n) for n in _require_list(data, "nodes")],
        edges=[_edge_from_dict(e) for e in _require_list(data, "edges")],
    )


def flow_to_dict(document: FlowDocument) -> dict[str, Any]:
    return {
        "nodes": [
            {
                "id": node.id,
                "type": node.kind,
                "position": {"x": node.position.x, "y": node.position.y},
                "data": {"label": node.label},
            }
            for node in document.nodes
        ],
        "edges": [
            {"id": edge.id, "source": edge.source, "target": edge.target, "label": edge.label}
            for edge in document.edges
        ],
    }


def flow_from_dict(data: Any) -> FlowDocument:
    if data is None:
        return FlowDocument()
    if not isinstance(data, dict):
        raise ValueError(
            _io_error("flow payload", "flow must be a JSON object", "store {\"nodes\": [...], \"edges\": [...]}")
        )
    nodes: list[FlowNode] = []
    for raw in _require_list(data, "nodes"):
        if not isinstance(raw, dict) or not str(raw.get("id", "")).strip():
            raise ValueError(
                _io_error("flow nodes", "every flow node needs a non-empty 'id'", "give each step a unique id")
            )
        kind = str(raw.get("type", "") or "")
        if kind not in FLOW_NODE_KINDS:
            raise ValueError(
                _io_error(
                    f"Flow node '{raw['id']}'",
                    f"unsupported kind '{kind}'",
                    f"use one of: {', '.join(FLOW_NODE_KINDS)}",
                )
            )
        label_data = raw.get("data") if isinstance(raw.get("data"), dict) else {}
        nodes.append(
            FlowNode(
                id=str(raw["id"]),
                kind=kind,
                label=str(label_data.get("label", "") or ""),
                position=_position_from_dict(raw.get("position")),
            )
        )
    edges: list[FlowEdge] = []
    for raw in _require_list(data, "edges"):
        if not isinstance(raw, dict) or not all(str(raw.get(k, "") or "").strip() for k in ("id", "source", "target")):
            raise ValueError(
                _io_error("flow edges", "transition is missing id, source or target", "give each transition all three")
            )
        edges.append(
            FlowEdge(
                id=str(raw["id"]),
                source=str(raw["source"]),
                target=str(raw["target"]),
                label=str(raw.get("label", "") or ""),
            )
        )
    return FlowDocument(nodes=nodes, edges=edges)


def save_document_to_json(document: GraphDocument, path: str) -> None:
    with open(path, "w", encoding="utf-8") as f:
        json.dump(document_to_dict(document), f, indent=2)


def load_document_from_json(path: str) -> GraphDocument:
    file_path = Path(path)
    if not file_path.exists():
        raise ValueError(
            _io_error("path", f"path '{file_path}' does not exist", "choose an existing graph document JSON file")
        )
    try:
        with open(file_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as exc:
        raise ValueError(
            _io_error("path", f"'{file_path}' is not valid JSON ({exc.msg})", "fix the JSON syntax and retry")
        ) from exc
    # Whole plan rows keep the graph under "entities".
    if isinstance(data, dict) and "entities" in data and "nodes" not in data:
        data = data["entities"]
    return document_from_dict(data)
