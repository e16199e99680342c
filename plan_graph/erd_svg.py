from __future__ import annotations

from pathlib import Path
from typing import Any

from plan_graph.error_contract import editor_error
from plan_graph.graph_model import EntityNode, Field, GraphDocument, is_foreign_key_candidate
from plan_graph.layout import DEFAULT_LAYOUT_OPTIONS, LayoutOptions, compute_diagram_size, node_footprint
from plan_graph.relationship_types import RelationshipStyle, describe, marker_id

_MARKER_PATHS = {
    "crowsfoot": (
        '<marker id="{id}" viewBox="0 -6 12 12" refX="11" refY="0" markerWidth="7" markerHeight="7" orient="auto">'
        '<path d="M0,-5 L12,0 L0,5 M0,-2.5 L12,0 M0,2.5 L12,0" stroke="{color}" stroke-width="1.5" fill="none" />'
        "</marker>"
    ),
    "single": (
        '<marker id="{id}" viewBox="0 -6 8 12" refX="6" refY="0" markerWidth="6" markerHeight="6" orient="auto">'
        '<line x1="6" y1="-5" x2="6" y2="5" stroke="{color}" stroke-width="1.8" />'
        "</marker>"
    ),
    "arrow": (
        '<marker id="{id}" viewBox="0 -5 12 10" refX="10" refY="0" markerWidth="7" markerHeight="7" orient="auto">'
        '<path d="M0,-4 L12,0 L0,4" stroke="{color}" stroke-width="1.5" fill="none" />'
        "</marker>"
    ),
}


def _xml_escape(value: str) -> str:
    return (
        value.replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
        .replace("'", "&apos;")
    )


def field_line(entity_field: Field) -> str:
    tags: list[str] = []
    if entity_field.is_primary:
        tags.append("PK")
    elif is_foreign_key_candidate(entity_field.name):
        tags.append("FK")
    tag_text = f"[{','.join(tags)}] " if tags else ""
    nullable = "?" if entity_field.is_nullable and not entity_field.is_primary else ""
    return f"{tag_text}{entity_field.name}{nullable}: {entity_field.type}"


def _marker_defs(edge_styles: list[RelationshipStyle]) -> list[str]:
    seen: set[str] = set()
    out: list[str] = []
    for style in edge_styles:
        for kind in (style.marker_start, style.marker_end):
            ident = marker_id(kind, style)
            if kind is None or ident is None or ident in seen:
                continue
            seen.add(ident)
            out.append("    " + _MARKER_PATHS[kind].format(id=ident, color=style.color))
    return out


def _center(node: EntityNode, options: LayoutOptions) -> tuple[float, float]:
    width, height = node_footprint(node, options)
    return node.position.x + width / 2, node.position.y + height / 2


def build_erd_svg(document: GraphDocument, *, options: LayoutOptions = DEFAULT_LAYOUT_OPTIONS) -> str:
    width, height = compute_diagram_size(document.nodes, min_width=400, min_height=300, options=options)
    node_by_id = {node.id: node for node in document.nodes}
    styles = [describe(edge.relationship_type) for edge in document.edges]

    lines: list[str] = []
    lines.append('<?xml version="1.0" encoding="UTF-8"?>')
    lines.append(
        f'<svg xmlns="http://www.w3.org/2000/svg" width="{width}" height="{height}" viewBox="0 0 {width} {height}">'
    )
    lines.append("  <defs>")
    lines.extend(_marker_defs(styles))
    lines.append("  </defs>")
    lines.append(f'  <rect x="0" y="0" width="{width}" height="{height}" fill="#f8fafc" />')

    for edge, style in zip(document.edges, styles):
        source = node_by_id.get(edge.source)
        target = node_by_id.get(edge.target)
        if source is None or target is None:
            continue
        x1, y1 = _center(source, options)
        x2, y2 = _center(target, options)
        mid_y = (y1 + y2) / 2
        path = f"M {x1:.0f} {y1:.0f} L {x1:.0f} {mid_y:.0f} L {x2:.0f} {mid_y:.0f} L {x2:.0f} {y2:.0f}"
        attrs = [f'd="{path}"', 'fill="none"', f'stroke="{style.color}"', 'stroke-width="1.5"']
        if style.dashed:
            attrs.append('stroke-dasharray="7 4"')
        start = marker_id(style.marker_start, style)
        end = marker_id(style.marker_end, style)
        if start:
            attrs.append(f'marker-start="url(#{start})"')
        if end:
            attrs.append(f'marker-end="url(#{end})"')
        lines.append(f"  <path {' '.join(attrs)} />")
        label = str(edge.relationship_type)
        lines.append(
            f'  <text x="{(x1 + x2) / 2:.0f}" y="{mid_y - 6:.0f}" font-family="monospace" font-size="9" '
            f'text-anchor="middle" fill="{style.color}">{_xml_escape(label)}</text>'
        )

    for node in document.nodes:
        node_width, node_height = node_footprint(node, options)
        x = node.position.x
        y = node.position.y
        lines.append(
            f'  <rect x="{x:.0f}" y="{y:.0f}" width="{node_width}" height="{node_height}" rx="8" '
            'fill="#ffffff" stroke="#c7d2fe" stroke-width="1.5" />'
        )
        lines.append(
            f'  <text x="{x + 12:.0f}" y="{y + 26:.0f}" font-family="Segoe UI, Arial, sans-serif" '
            f'font-size="13" font-weight="bold" fill="#0f172a">{_xml_escape(node.name)}</text>'
        )
        text_y = y + options.header_height + options.field_height / 2
        for entity_field in node.fields:
            lines.append(
                f'  <text x="{x + 12:.0f}" y="{text_y:.0f}" font-family="Consolas, Courier New, monospace" '
                f'font-size="11" fill="#334155">{_xml_escape(field_line(entity_field))}</text>'
            )
            text_y += options.field_height

    lines.append("</svg>")
    return "\n".join(lines) + "\n"


def export_erd_svg(
    document: GraphDocument,
    output_path_value: Any,
    *,
    options: LayoutOptions = DEFAULT_LAYOUT_OPTIONS,
) -> Path:
    if not isinstance(output_path_value, str) or output_path_value.strip() == "":
        raise ValueError(editor_error("Export path", "output path is required", "choose a file path ending in .svg"))
    output_path = Path(output_path_value.strip())
    if output_path.suffix.lower() != ".svg":
        raise ValueError(
            editor_error(
                "Export format",
                f"unsupported extension '{output_path.suffix or '<none>'}'",
                "use a .svg output file extension",
            )
        )
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(build_erd_svg(document, options=options), encoding="utf-8")
    return output_path
