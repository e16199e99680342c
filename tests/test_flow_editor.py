import itertools
import unittest

from plan_graph.flow_editor import FlowEditor
from plan_graph.flow_model import FlowDocument, FlowEdge, FlowNode
from plan_graph.graph_model import Position
from plan_graph.storage_sqlite_documents import ENTITIES_SECTION, USER_FLOWS_SECTION, InMemoryDocumentStore


class _FakeScheduler:
    def __init__(self):
        self.timers = []

    def call_later(self, delay_ms, callback):
        handle = {"delay_ms": delay_ms, "callback": callback, "cancelled": False}
        self.timers.append(handle)
        return handle

    def cancel(self, handle):
        handle["cancelled"] = True


def _ids():
    counter = itertools.count(1)
    return lambda prefix: f"{prefix}-{next(counter)}"


def _checkout() -> FlowDocument:
    return FlowDocument(
        nodes=[
            FlowNode(id="start", kind="flowStart", label="Open cart", position=Position(250, 100)),
            FlowNode(id="pay", kind="flowStep", label="Pay", position=Position(250, 200)),
            FlowNode(id="done", kind="flowEnd", label="Done", position=Position(250, 300)),
        ],
        edges=[
            FlowEdge(id="t1", source="start", target="pay"),
            FlowEdge(id="t2", source="pay", target="done", label="paid"),
        ],
    )


class TestFlowEditor(unittest.TestCase):
    def setUp(self):
        self.store = InMemoryDocumentStore()
        self.scheduler = _FakeScheduler()

    def _editor(self, document=None, **kwargs):
        return FlowEditor(
            document,
            document_id="plan-1",
            store=self.store,
            scheduler=self.scheduler,
            id_factory=_ids(),
            **kwargs,
        )

    def test_add_step_stacks_new_steps(self):
        editor = self._editor()
        first = editor.add_step()
        second = editor.add_step("Review order")
        self.assertEqual((first.id, first.kind, first.label), ("node-1", "flowStep", "New Step"))
        self.assertEqual(first.position, Position(250, 200))
        self.assertEqual(second.position, Position(250, 280))
        self.assertEqual(editor.kind_counts(), {"flowStep": 2})
        with self.assertRaises(ValueError):
            editor.add_step("   ")

    def test_blank_relabel_leaves_step_unchanged(self):
        editor = self._editor(_checkout())
        before = len(editor.history)
        self.assertFalse(editor.relabel_node("pay", "  "))
        self.assertFalse(editor.relabel_node("pay", "Pay"))
        self.assertTrue(editor.relabel_node("pay", "Pay now"))
        self.assertEqual(editor.document.find_node("pay").label, "Pay now")
        self.assertEqual(len(editor.history), before + 1)

    def test_change_kind_validates(self):
        editor = self._editor(_checkout())
        editor.change_node_kind("pay", "flowDecision")
        self.assertEqual(editor.kind_counts(), {"flowStart": 1, "flowDecision": 1, "flowEnd": 1})
        with self.assertRaises(ValueError) as ctx:
            editor.change_node_kind("pay", "swimlane")
        self.assertIn("Flow editor / Change step kind", str(ctx.exception))

    def test_delete_node_removes_its_transitions(self):
        editor = self._editor(_checkout())
        editor.delete_node("pay")
        self.assertEqual([n.id for n in editor.document.nodes], ["start", "done"])
        self.assertEqual(editor.document.edges, [])
        self.assertTrue(editor.undo())
        self.assertEqual(editor.document, _checkout())
        self.assertTrue(editor.redo())
        self.assertEqual(editor.document.edges, [])

    def test_connect_and_relabel_transition(self):
        editor = self._editor(_checkout())
        edge = editor.connect("done", "start", " again ")
        self.assertEqual((edge.id, edge.label), ("flow-e-1", "again"))
        editor.relabel_edge(edge.id, "restart")
        self.assertEqual(editor.document.edges[-1].label, "restart")
        with self.assertRaises(ValueError):
            editor.connect("start", "ghost")

    def test_edits_save_to_user_flow_section_after_debounce(self):
        editor = self._editor(_checkout())
        editor.move_node("pay", 400, 220)
        editor.relabel_node("pay", "Checkout")
        self.assertEqual(self.scheduler.timers[-1]["delay_ms"], 1000)
        self.assertTrue(editor.flush())
        saved = self.store.load("plan-1", section=USER_FLOWS_SECTION)
        self.assertEqual(saved["nodes"][1]["data"]["label"], "Checkout")
        self.assertEqual(saved["nodes"][1]["position"], {"x": 400.0, "y": 220.0})
        self.assertIsNone(self.store.load("plan-1", section=ENTITIES_SECTION))

    def test_open_drops_dangling_transitions(self):
        self.store.save(
            "plan-1",
            {
                "nodes": [{"id": "a", "type": "flowStart", "data": {"label": "Start"}}],
                "edges": [{"id": "t1", "source": "a", "target": "gone"}],
            },
            section=USER_FLOWS_SECTION,
        )
        with self.assertLogs("flow_editor", level="WARNING"):
            editor = FlowEditor.open("plan-1", self.store, scheduler=self.scheduler)
        self.assertEqual(editor.document.edges, [])
        self.assertEqual(editor.document.nodes[0].label, "Start")

    def test_read_only_flow_ignores_edits(self):
        editor = FlowEditor(_checkout(), read_only=True)
        self.assertIsNone(editor.add_step())
        self.assertFalse(editor.relabel_node("pay", "x"))
        editor.delete_node("pay")
        self.assertEqual(editor.document, _checkout())
        self.assertFalse(editor.flush())


if __name__ == "__main__":
    unittest.main()
