from __future__ import annotations

import logging
from typing import Any, Callable, Protocol

from plan_graph.fk_inference import sync_foreign_keys
from plan_graph.graph_io import document_from_dict
from plan_graph.graph_model import GraphDocument, heal_document, with_edge_type
from plan_graph.layout import DEFAULT_LAYOUT_OPTIONS, LayoutOptions, layout_entities

logger = logging.getLogger("generation")


class DocumentGenerator(Protocol):
    """Produces a raw ``{"nodes": [...], "edges": [...]}`` payload from prose."""

    def generate(self, prompt: str) -> dict[str, Any]:
        ...


def prepare_document(
    document: GraphDocument,
    *,
    arrange: bool = False,
    id_factory: Callable[[], str] | None = None,
    options: LayoutOptions = DEFAULT_LAYOUT_OPTIONS,
) -> GraphDocument:
    """Normalise a document entering the editor from storage or generation."""
    canonical = GraphDocument(
        nodes=list(document.nodes),
        edges=[with_edge_type(edge, edge.relationship_type) for edge in document.edges],
    )
    healed = heal_document(canonical)
    synced = sync_foreign_keys(healed.nodes, healed.edges, id_factory=id_factory)
    nodes = healed.nodes
    if arrange:
        nodes = layout_entities(nodes, synced.edges, options=options)
    return GraphDocument(nodes=list(nodes), edges=list(synced.edges))


def generate_document(
    generator: DocumentGenerator,
    prompt: str,
    *,
    id_factory: Callable[[], str] | None = None,
) -> GraphDocument:
    payload = generator.generate(prompt)
    # Generated positions are not trusted to be overlap-free.
    document = prepare_document(document_from_dict(payload), arrange=True, id_factory=id_factory)
    logger.info(
        "Generated document with %d entities and %d relationships",
        len(document.nodes),
        len(document.edges),
    )
    return document
