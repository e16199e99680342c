import unittest

from plan_graph.graph_model import (
    EntityNode,
    Field,
    GraphDocument,
    RelationshipEdge,
    dangling_edges,
    default_id_field,
    has_predefined_type,
    heal_document,
    is_foreign_key_candidate,
    new_field,
    remove_nodes,
    strip_fk_suffix,
    with_edge_type,
)
from plan_graph.relationship_types import RelationshipType


class TestGraphModel(unittest.TestCase):
    def _document(self) -> GraphDocument:
        return GraphDocument(
            nodes=[
                EntityNode(id="u", name="User", fields=[default_id_field()]),
                EntityNode(id="o", name="Order", fields=[default_id_field(), Field("userId", "UUID")]),
                EntityNode(id="p", name="Product", fields=[default_id_field()]),
            ],
            edges=[
                RelationshipEdge(id="e1", source="u", target="o"),
                RelationshipEdge(id="e2", source="p", target="o", relationship_type=RelationshipType.MANY_TO_MANY),
                RelationshipEdge(id="e3", source="u", target="p", relationship_type=RelationshipType.REFERENCES),
            ],
        )

    def test_foreign_key_candidate_names(self):
        self.assertTrue(is_foreign_key_candidate("userId"))
        self.assertTrue(is_foreign_key_candidate("user_id"))
        self.assertTrue(is_foreign_key_candidate("USER_ID"))
        self.assertFalse(is_foreign_key_candidate("id"))
        self.assertFalse(is_foreign_key_candidate("ID"))
        self.assertFalse(is_foreign_key_candidate("email"))
        self.assertFalse(is_foreign_key_candidate(""))

    def test_strip_fk_suffix(self):
        self.assertEqual(strip_fk_suffix("userId"), "user")
        self.assertEqual(strip_fk_suffix("order_item_id"), "order_item")

    def test_defaults_for_new_fields(self):
        pk = default_id_field()
        self.assertEqual((pk.name, pk.type, pk.is_primary, pk.is_nullable), ("id", "UUID", True, False))
        blank = new_field()
        self.assertEqual((blank.name, blank.type, blank.is_primary, blank.is_nullable), ("", "VARCHAR(255)", False, True))

    def test_has_predefined_type_ignores_case_and_spacing(self):
        self.assertTrue(has_predefined_type(" varchar(255) "))
        self.assertTrue(has_predefined_type("jsonb"))
        self.assertFalse(has_predefined_type("MONEY"))

    def test_remove_nodes_cascades_to_incident_edges(self):
        out = remove_nodes(self._document(), {"u"})
        self.assertEqual([n.id for n in out.nodes], ["o", "p"])
        self.assertEqual([e.id for e in out.edges], ["e2"])
        for edge in out.edges:
            self.assertNotIn("u", (edge.source, edge.target))

    def test_heal_document_drops_dangling_edges(self):
        doc = self._document()
        broken = GraphDocument(
            nodes=doc.nodes,
            edges=[*doc.edges, RelationshipEdge(id="ghost", source="u", target="missing")],
        )
        self.assertEqual([e.id for e in dangling_edges(broken.nodes, broken.edges)], ["ghost"])
        with self.assertLogs("graph_model", level="WARNING"):
            healed = heal_document(broken)
        self.assertEqual([e.id for e in healed.edges], ["e1", "e2", "e3"])

    def test_heal_document_returns_valid_document_unchanged(self):
        doc = self._document()
        self.assertIs(heal_document(doc), doc)

    def test_with_edge_type_canonicalizes(self):
        edge = with_edge_type(RelationshipEdge(id="e", source="a", target="b"), "1:1")
        self.assertIs(edge.relationship_type, RelationshipType.HAS_ONE)

    def test_find_helpers(self):
        doc = self._document()
        self.assertEqual(doc.find_node("o").name, "Order")
        self.assertIsNone(doc.find_node("nope"))
        self.assertEqual(doc.find_edge("e2").source, "p")
        self.assertEqual(doc.node_ids(), {"u", "o", "p"})


if __name__ == "__main__":
    unittest.main()
