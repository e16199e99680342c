from __future__ import annotations

import logging
from dataclasses import dataclass, replace

from plan_graph.graph_model import EntityNode, Position, RelationshipEdge
from plan_graph.relationship_types import HIERARCHY_TYPES, RelationshipType, canonicalize

logger = logging.getLogger("layout")


@dataclass(frozen=True)
class LayoutOptions:
    node_width: int = 300
    header_height: int = 44
    field_height: int = 22
    body_padding: int = 16
    horizontal_gap: int = 390
    min_gap: int = 350
    vertical_gap: int = 320
    row_gap: int = 60
    origin_x: int = 600
    origin_y: int = 100
    grid_columns: int = 4
    grid_gap: int = 60
    sweeps: int = 4


DEFAULT_LAYOUT_OPTIONS = LayoutOptions()


def node_footprint(node: EntityNode, options: LayoutOptions = DEFAULT_LAYOUT_OPTIONS) -> tuple[int, int]:
    field_count = max(1, len(node.fields or []))
    height = options.header_height + options.body_padding + field_count * options.field_height
    return options.node_width, height


def bounding_box(
    node: EntityNode,
    options: LayoutOptions = DEFAULT_LAYOUT_OPTIONS,
) -> tuple[float, float, float, float]:
    width, height = node_footprint(node, options)
    return node.position.x, node.position.y, node.position.x + width, node.position.y + height


def boxes_overlap(a: tuple[float, float, float, float], b: tuple[float, float, float, float]) -> bool:
    return a[0] < b[2] and b[0] < a[2] and a[1] < b[3] and b[1] < a[3]


def compute_diagram_size(
    nodes: list[EntityNode],
    *,
    min_width: int = 0,
    min_height: int = 0,
    margin: int = 32,
    options: LayoutOptions = DEFAULT_LAYOUT_OPTIONS,
) -> tuple[int, int]:
    boxes = [bounding_box(node, options) for node in nodes]
    max_right = max((box[2] for box in boxes), default=0)
    max_bottom = max((box[3] for box in boxes), default=0)
    return max(min_width, int(max_right) + margin), max(min_height, int(max_bottom) + margin)


def _sort_key(node: EntityNode, index: int) -> tuple[str, int]:
    return str(node.name or "").strip().casefold(), index


def _parent_child(edge: RelationshipEdge) -> tuple[str, str] | None:
    rel = canonicalize(edge.relationship_type)
    if rel not in HIERARCHY_TYPES:
        return None
    if rel == RelationshipType.BELONGS_TO:
        return edge.target, edge.source
    return edge.source, edge.target


def _hierarchy(
    nodes: list[EntityNode],
    edges: list[RelationshipEdge],
) -> tuple[list[str], dict[str, list[str]], set[str]]:
    """Return (stable node order, acyclic parent->children map, connected ids)."""
    order_index = {node.id: idx for idx, node in enumerate(nodes)}
    key_by_id = {node.id: _sort_key(node, idx) for idx, node in enumerate(nodes)}
    stable_order = sorted(order_index, key=lambda node_id: key_by_id[node_id])

    connected: set[str] = set()
    children: dict[str, list[str]] = {node_id: [] for node_id in order_index}
    has_parent: set[str] = set()
    for edge in edges:
        if edge.source not in order_index or edge.target not in order_index:
            continue
        if edge.source == edge.target:
            continue
        connected.add(edge.source)
        connected.add(edge.target)
        pair = _parent_child(edge)
        if pair is None:
            continue
        parent, child = pair
        if child not in children[parent]:
            children[parent].append(child)
            has_parent.add(child)
    for child_ids in children.values():
        child_ids.sort(key=lambda node_id: key_by_id[node_id])

    # Depth-first walk from roots first; an edge into a node still on the
    # stack closes a cycle and is ignored for layout purposes.
    acyclic: dict[str, list[str]] = {node_id: [] for node_id in order_index}
    state: dict[str, int] = {}  # 1 = on stack, 2 = finished
    starts = [n for n in stable_order if n not in has_parent] + [n for n in stable_order if n in has_parent]
    for start in starts:
        if start in state:
            continue
        state[start] = 1
        stack: list[tuple[str, int]] = [(start, 0)]
        while stack:
            node_id, next_child = stack[-1]
            child_ids = children[node_id]
            if next_child >= len(child_ids):
                state[node_id] = 2
                stack.pop()
                continue
            stack[-1] = (node_id, next_child + 1)
            child = child_ids[next_child]
            child_state = state.get(child)
            if child_state == 1:
                logger.debug("Ignoring cyclic hierarchy edge %s -> %s for layout", node_id, child)
                continue
            acyclic[node_id].append(child)
            if child_state is None:
                state[child] = 1
                stack.append((child, 0))
    return stable_order, acyclic, connected


def hierarchy_levels(nodes: list[EntityNode], edges: list[RelationshipEdge]) -> dict[str, int]:
    """Longest-path depth of every node that takes part in any relationship."""
    return _longest_path_levels(*_hierarchy(nodes, edges))


def _longest_path_levels(
    stable_order: list[str],
    acyclic: dict[str, list[str]],
    connected: set[str],
) -> dict[str, int]:
    in_degree = {node_id: 0 for node_id in stable_order}
    for child_ids in acyclic.values():
        for child in child_ids:
            in_degree[child] += 1

    levels = {node_id: 0 for node_id in stable_order}
    queue = [node_id for node_id in stable_order if in_degree[node_id] == 0]
    cursor = 0
    while cursor < len(queue):
        node_id = queue[cursor]
        cursor += 1
        for child in acyclic[node_id]:
            levels[child] = max(levels[child], levels[node_id] + 1)
            in_degree[child] -= 1
            if in_degree[child] == 0:
                queue.append(child)
    return {node_id: level for node_id, level in levels.items() if node_id in connected}


def _order_rows(
    rows: list[list[str]],
    parents: dict[str, list[str]],
    children: dict[str, list[str]],
    key_by_id: dict[str, tuple[str, int]],
    sweeps: int,
) -> None:
    def _reorder(level: int, neighbours: dict[str, list[str]], reference: list[str]) -> None:
        ref_index = {node_id: idx for idx, node_id in enumerate(reference)}
        scored: list[tuple[float, tuple[str, int], str]] = []
        for idx, node_id in enumerate(rows[level]):
            adjacent = [n for n in neighbours[node_id] if n in ref_index]
            if adjacent:
                score = sum(ref_index[n] for n in adjacent) / len(adjacent)
            else:
                score = idx + 1000.0
            scored.append((score, key_by_id[node_id], node_id))
        scored.sort()
        rows[level] = [node_id for _score, _key, node_id in scored]

    for _ in range(max(0, sweeps)):
        for level in range(1, len(rows)):
            _reorder(level, parents, rows[level - 1])
        for level in range(len(rows) - 2, -1, -1):
            _reorder(level, children, rows[level + 1])


def layout_entities(
    nodes: list[EntityNode],
    edges: list[RelationshipEdge],
    *,
    options: LayoutOptions = DEFAULT_LAYOUT_OPTIONS,
) -> list[EntityNode]:
    """Recompute positions for every node; ids, content and order are kept.

    Rows follow has-many/belongs-to depth (parents above children), rows are
    ordered with barycenter sweeps, and entities with no relationships go into
    a grid below the connected diagram. Deterministic for a given input.
    """
    if not nodes:
        return []

    key_by_id = {node.id: _sort_key(node, idx) for idx, node in enumerate(nodes)}
    node_by_id = {node.id: node for node in nodes}
    stable_order, acyclic, connected = _hierarchy(nodes, edges)
    levels = _longest_path_levels(stable_order, acyclic, connected)

    pitch = max(options.min_gap, options.node_width + options.grid_gap)
    positions: dict[str, Position] = {}
    cursor_y = float(options.origin_y)

    if levels:
        max_level = max(levels.values())
        rows: list[list[str]] = [[] for _ in range(max_level + 1)]
        for node_id in sorted(levels, key=lambda n: key_by_id[n]):
            rows[levels[node_id]].append(node_id)

        parents: dict[str, list[str]] = {node_id: [] for node_id in levels}
        children: dict[str, list[str]] = {node_id: [] for node_id in levels}
        for parent, child_ids in acyclic.items():
            for child in child_ids:
                if levels.get(child) == levels.get(parent, -2) + 1:
                    parents[child].append(parent)
                    children[parent].append(child)
        _order_rows(rows, parents, children, key_by_id, options.sweeps)

        x_by_id: dict[str, float] = {}
        for level, row in enumerate(rows):
            spacing = max(options.horizontal_gap, pitch)
            start_x = options.origin_x - (len(row) - 1) * spacing / 2
            for idx, node_id in enumerate(row):
                x_by_id[node_id] = start_x + idx * spacing
            if level > 0:
                for node_id in row:
                    above = parents[node_id]
                    if len(above) >= 2:
                        x_by_id[node_id] = sum(x_by_id[p] for p in above) / len(above)

            row_rank = {node_id: idx for idx, node_id in enumerate(row)}
            placed_order = sorted(row, key=lambda n: (x_by_id[n], row_rank[n]))
            previous: float | None = None
            for node_id in placed_order:
                x = x_by_id[node_id]
                if previous is not None and x < previous + pitch:
                    x = previous + pitch
                x_by_id[node_id] = x
                previous = x

            tallest = max(node_footprint(node_by_id[n], options)[1] for n in row)
            for node_id in row:
                positions[node_id] = Position(x=float(x_by_id[node_id]), y=cursor_y)
            cursor_y += max(options.vertical_gap, tallest + options.row_gap)

    isolated = sorted((n for n in node_by_id if n not in levels), key=lambda n: key_by_id[n])
    if isolated:
        columns = max(1, options.grid_columns)
        grid_pitch = options.node_width + options.grid_gap
        used_columns = min(columns, len(isolated))
        left = options.origin_x - (used_columns - 1) * grid_pitch / 2
        for start in range(0, len(isolated), columns):
            chunk = isolated[start:start + columns]
            for col, node_id in enumerate(chunk):
                positions[node_id] = Position(x=float(left + col * grid_pitch), y=cursor_y)
            tallest = max(node_footprint(node_by_id[n], options)[1] for n in chunk)
            cursor_y += tallest + options.grid_gap

    logger.info(
        "Arranged %d entities (%d in hierarchy, %d isolated)",
        len(nodes),
        len(levels),
        len(isolated),
    )
    return [replace(node, position=positions.get(node.id, node.position)) for node in nodes]
