import unittest

from plan_graph.relationship_types import (
    RelationshipType,
    canonicalize,
    describe,
    marker_id,
    relationship_legend,
)


class TestRelationshipTypes(unittest.TestCase):
    def test_canonical_names_map_to_themselves(self):
        for rel in RelationshipType:
            self.assertIs(canonicalize(rel.value), rel)
            self.assertIs(canonicalize(rel), rel)

    def test_legacy_notations_are_canonicalized(self):
        self.assertIs(canonicalize("1:N"), RelationshipType.HAS_MANY)
        self.assertIs(canonicalize("N:1"), RelationshipType.BELONGS_TO)
        self.assertIs(canonicalize("1:1"), RelationshipType.HAS_ONE)
        self.assertIs(canonicalize("N:M"), RelationshipType.MANY_TO_MANY)
        self.assertIs(canonicalize("n:m"), RelationshipType.MANY_TO_MANY)
        self.assertIs(canonicalize("FK"), RelationshipType.REFERENCES)
        self.assertIs(canonicalize("FK→"), RelationshipType.REFERENCES)
        self.assertIs(canonicalize("FK →"), RelationshipType.REFERENCES)
        self.assertIs(canonicalize("1 : N"), RelationshipType.HAS_MANY)

    def test_spelling_variants_of_canonical_names(self):
        self.assertIs(canonicalize("has many"), RelationshipType.HAS_MANY)
        self.assertIs(canonicalize("has_many"), RelationshipType.HAS_MANY)
        self.assertIs(canonicalize("HasMany"), RelationshipType.HAS_MANY)
        self.assertIs(canonicalize("many to many"), RelationshipType.MANY_TO_MANY)
        self.assertIs(canonicalize("  Belongs To "), RelationshipType.BELONGS_TO)

    def test_unknown_labels_pass_through_as_custom(self):
        self.assertEqual(canonicalize("  owns "), "owns")
        self.assertNotIsInstance(canonicalize("owns"), RelationshipType)

    def test_empty_label_defaults_to_has_many(self):
        self.assertIs(canonicalize(""), RelationshipType.HAS_MANY)
        self.assertIs(canonicalize(None), RelationshipType.HAS_MANY)

    def test_describe_is_stable_and_value_equal(self):
        for rel in RelationshipType:
            self.assertEqual(describe(rel), describe(rel.value))
            self.assertEqual(describe(rel), describe(rel))

    def test_describe_markers_follow_cardinality(self):
        has_many = describe(RelationshipType.HAS_MANY)
        self.assertEqual((has_many.marker_start, has_many.marker_end), ("single", "crowsfoot"))
        belongs_to = describe("N:1")
        self.assertEqual((belongs_to.marker_start, belongs_to.marker_end), ("crowsfoot", "single"))
        references = describe("references")
        self.assertIsNone(references.marker_start)
        self.assertEqual(references.marker_end, "arrow")
        self.assertTrue(references.dashed)
        self.assertTrue(describe("N:M").dashed)
        self.assertFalse(has_many.dashed)

    def test_describe_custom_label_falls_back_to_has_many_style(self):
        style = describe("owns")
        base = describe(RelationshipType.HAS_MANY)
        self.assertEqual(style.color, base.color)
        self.assertEqual(style.marker_end, base.marker_end)
        self.assertEqual(style.notation, "owns")

    def test_marker_id_uses_color_key(self):
        style = describe(RelationshipType.HAS_MANY)
        self.assertEqual(marker_id("crowsfoot", style), "erd-crowsfoot-4338ca")
        self.assertIsNone(marker_id(None, style))

    def test_relationship_legend_keeps_registry_order(self):
        legend = relationship_legend(["references", "1:N", "owns", "has-many"])
        self.assertEqual(legend, [RelationshipType.HAS_MANY, RelationshipType.REFERENCES])


if __name__ == "__main__":
    unittest.main()
