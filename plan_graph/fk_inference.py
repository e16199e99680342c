from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Callable

from plan_graph.graph_model import (
    EntityNode,
    RelationshipEdge,
    is_foreign_key_candidate,
    new_id,
    strip_fk_suffix,
)
from plan_graph.relationship_types import RelationshipType, canonicalize

logger = logging.getLogger("fk_inference")

_NON_ALNUM = re.compile(r"[^a-z0-9]")


@dataclass(frozen=True)
class FkMatch:
    child_id: str
    field_name: str
    parent_id: str
    # Every entity that matched, in document order; the first one wins.
    candidates: tuple[str, ...] = ()

    @property
    def ambiguous(self) -> bool:
        return len(self.candidates) > 1


@dataclass(frozen=True)
class FkSyncResult:
    edges: list[RelationshipEdge]
    added: int
    matches: list[FkMatch] = field(default_factory=list)


def normalize_token(value: str) -> str:
    return _NON_ALNUM.sub("", str(value).lower())


def singularize(value: str) -> str:
    if value.endswith("ies"):
        return value[:-3] + "y"
    if value.endswith("s") and not value.endswith("ss"):
        return value[:-1]
    return value


def fk_candidate_forms(field_name: str) -> set[str]:
    if not is_foreign_key_candidate(field_name):
        return set()
    base = strip_fk_suffix(field_name)
    if not base or base.lower() == "id":
        return set()
    normalized = normalize_token(base)
    if not normalized:
        return set()
    return {normalized, singularize(normalized)}


def match_parent_candidates(nodes: list[EntityNode], child_id: str, field_name: str) -> list[str]:
    forms = fk_candidate_forms(field_name)
    if not forms:
        return []
    matches: list[str] = []
    for node in nodes:
        if node.id == child_id:
            continue
        name = normalize_token(str(node.name or "").strip())
        if not name:
            continue
        if name in forms or singularize(name) in forms:
            matches.append(node.id)
    return matches


def find_parent_for_field(nodes: list[EntityNode], child_id: str, field_name: str) -> FkMatch | None:
    """Resolve one FK-shaped field to its parent entity, first match wins."""
    candidates = match_parent_candidates(nodes, child_id, field_name)
    if not candidates:
        return None
    return FkMatch(
        child_id=child_id,
        field_name=field_name,
        parent_id=candidates[0],
        candidates=tuple(candidates),
    )


def _existing_pairs(edges: list[RelationshipEdge]) -> set[str]:
    pairs: set[str] = set()
    for edge in edges:
        pairs.add(f"{edge.source}->{edge.target}")
        # belongs-to points child -> parent; it already links the pair.
        if canonicalize(edge.relationship_type) == RelationshipType.BELONGS_TO:
            pairs.add(f"{edge.target}->{edge.source}")
    return pairs


def sync_foreign_keys(
    nodes: list[EntityNode],
    edges: list[RelationshipEdge],
    *,
    id_factory: Callable[[], str] | None = None,
) -> FkSyncResult:
    """Add has-many edges for FK-shaped fields whose parent is not linked yet.

    Additive only: existing edges are returned untouched and in order, and a
    parent->child pair never receives a second edge, so running this again
    on its own output adds nothing.
    """
    make_id = id_factory or (lambda: new_id("fk"))
    used_ids = {edge.id for edge in edges}
    existing_pairs = _existing_pairs(edges)
    added_edges: list[RelationshipEdge] = []
    matches: list[FkMatch] = []

    for node in nodes:
        for entity_field in node.fields or []:
            match = find_parent_for_field(nodes, node.id, entity_field.name)
            if match is None:
                continue
            pair = f"{match.parent_id}->{node.id}"
            if pair in existing_pairs:
                continue
            if match.ambiguous:
                logger.debug(
                    "Field '%s' on '%s' matches %d entities; using '%s'",
                    entity_field.name,
                    node.name,
                    len(match.candidates),
                    match.parent_id,
                )

            edge_id = make_id()
            while edge_id in used_ids:
                edge_id = make_id()
            used_ids.add(edge_id)
            existing_pairs.add(pair)
            added_edges.append(
                RelationshipEdge(
                    id=edge_id,
                    source=match.parent_id,
                    target=node.id,
                    relationship_type=RelationshipType.HAS_MANY,
                )
            )
            matches.append(match)

    if not added_edges:
        return FkSyncResult(edges=list(edges), added=0)
    logger.info("Inferred %d missing FK relationship(s)", len(added_edges))
    return FkSyncResult(edges=[*edges, *added_edges], added=len(added_edges), matches=matches)
