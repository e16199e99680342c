from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Union

__all__ = [
    "DEFAULT_RELATIONSHIP_TYPE",
    "HIERARCHY_TYPES",
    "RelationshipStyle",
    "RelationshipType",
    "canonicalize",
    "describe",
    "marker_id",
    "relationship_legend",
]


class RelationshipType(str, Enum):
    HAS_MANY = "has-many"
    BELONGS_TO = "belongs-to"
    HAS_ONE = "has-one"
    MANY_TO_MANY = "many-to-many"
    REFERENCES = "references"

    def __str__(self) -> str:
        return self.value


RelationshipLabel = Union[RelationshipType, str]

DEFAULT_RELATIONSHIP_TYPE = RelationshipType.HAS_MANY

# Only these two constrain parent/child rows in the layout.
HIERARCHY_TYPES: frozenset[RelationshipType] = frozenset(
    {RelationshipType.HAS_MANY, RelationshipType.BELONGS_TO}
)

# Legacy cardinality notations, compared with whitespace removed and upper-cased.
_NOTATION_TO_TYPE: dict[str, RelationshipType] = {
    "1:N": RelationshipType.HAS_MANY,
    "N:1": RelationshipType.BELONGS_TO,
    "1:1": RelationshipType.HAS_ONE,
    "N:M": RelationshipType.MANY_TO_MANY,
    "FK": RelationshipType.REFERENCES,
    "FK→": RelationshipType.REFERENCES,
    "FK->": RelationshipType.REFERENCES,
}

_NAME_TO_TYPE: dict[str, RelationshipType] = {
    "hasmany": RelationshipType.HAS_MANY,
    "belongsto": RelationshipType.BELONGS_TO,
    "hasone": RelationshipType.HAS_ONE,
    "manytomany": RelationshipType.MANY_TO_MANY,
    "references": RelationshipType.REFERENCES,
    "reference": RelationshipType.REFERENCES,
}

_NAME_SEPARATORS = re.compile(r"[\s_\-]+")


@dataclass(frozen=True)
class RelationshipStyle:
    color: str
    notation: str
    marker_start: str | None
    marker_end: str | None
    dashed: bool = False
    description: str = ""

    @property
    def color_key(self) -> str:
        return self.color.lstrip("#").lower()


_STYLES: dict[RelationshipType, RelationshipStyle] = {
    RelationshipType.HAS_MANY: RelationshipStyle(
        color="#4338ca",
        notation="1 : N",
        marker_start="single",
        marker_end="crowsfoot",
        description="One parent → many children",
    ),
    RelationshipType.BELONGS_TO: RelationshipStyle(
        color="#7c3aed",
        notation="N : 1",
        marker_start="crowsfoot",
        marker_end="single",
        description="Many children → one parent",
    ),
    RelationshipType.HAS_ONE: RelationshipStyle(
        color="#0ea5e9",
        notation="1 : 1",
        marker_start="single",
        marker_end="single",
        description="One-to-one exclusive",
    ),
    RelationshipType.MANY_TO_MANY: RelationshipStyle(
        color="#e11d48",
        notation="N : M",
        marker_start="crowsfoot",
        marker_end="crowsfoot",
        dashed=True,
        description="Many relate to many",
    ),
    RelationshipType.REFERENCES: RelationshipStyle(
        color="#059669",
        notation="FK →",
        marker_start=None,
        marker_end="arrow",
        dashed=True,
        description="Foreign key reference",
    ),
}


def canonicalize(label: object) -> RelationshipLabel:
    """Map any relationship label onto the canonical vocabulary.

    Canonical names and their spacing/case variants ("has many", "HasMany",
    "has_many") and legacy notations ("1:N", "N:M", "FK →", ...) resolve to a
    ``RelationshipType``. Anything else is returned stripped, as a custom label.
    Empty or missing labels resolve to the default ``has-many``.
    """
    if isinstance(label, RelationshipType):
        return label
    text = "" if label is None else str(label).strip()
    if not text:
        return DEFAULT_RELATIONSHIP_TYPE

    notation_key = "".join(text.split()).upper()
    by_notation = _NOTATION_TO_TYPE.get(notation_key)
    if by_notation is not None:
        return by_notation

    name_key = _NAME_SEPARATORS.sub("", text).lower()
    by_name = _NAME_TO_TYPE.get(name_key)
    if by_name is not None:
        return by_name
    return text


def describe(relationship_type: object) -> RelationshipStyle:
    canonical = canonicalize(relationship_type)
    if isinstance(canonical, RelationshipType):
        return _STYLES[canonical]
    # Custom labels borrow the has-many look but keep their own notation.
    base = _STYLES[DEFAULT_RELATIONSHIP_TYPE]
    return RelationshipStyle(
        color=base.color,
        notation=canonical,
        marker_start=base.marker_start,
        marker_end=base.marker_end,
        dashed=base.dashed,
        description="Custom relationship",
    )


def marker_id(kind: str | None, style: RelationshipStyle) -> str | None:
    if kind is None:
        return None
    return f"erd-{kind}-{style.color_key}"


def relationship_legend(relationship_types: Iterable[object]) -> list[RelationshipType]:
    in_use = {canonicalize(value) for value in relationship_types}
    return [rel for rel in RelationshipType if rel in in_use]
