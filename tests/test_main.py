import json
import tempfile
import unittest
from pathlib import Path

from plan_graph.main import main


def _payload():
    return {
        "nodes": [
            {"id": "u", "data": {"name": "User", "fields": [{"name": "id", "isPrimary": True}]}},
            {"id": "o", "data": {"name": "Order", "fields": [{"name": "id"}, {"name": "user_id"}]}},
        ],
        "edges": [],
    }


class TestMain(unittest.TestCase):
    def test_main_links_arranges_and_exports(self):
        with tempfile.TemporaryDirectory() as tmp:
            src = Path(tmp) / "plan.json"
            out = Path(tmp) / "arranged.json"
            svg = Path(tmp) / "erd.svg"
            src.write_text(json.dumps(_payload()), encoding="utf-8")

            code = main([str(src), "--out", str(out), "--svg", str(svg), "--log-level", "WARNING"])

            self.assertEqual(code, 0)
            arranged = json.loads(out.read_text(encoding="utf-8"))
            self.assertEqual(len(arranged["edges"]), 1)
            self.assertEqual(arranged["edges"][0]["data"]["relationshipType"], "has-many")
            self.assertNotEqual(arranged["nodes"][0]["position"], {"x": 0.0, "y": 0.0})
            self.assertTrue(svg.exists())
            # Input is left alone when --out is given.
            self.assertEqual(json.loads(src.read_text(encoding="utf-8")), _payload())

    def test_keep_positions_skips_layout(self):
        with tempfile.TemporaryDirectory() as tmp:
            src = Path(tmp) / "plan.json"
            src.write_text(json.dumps(_payload()), encoding="utf-8")
            self.assertEqual(main([str(src), "--keep-positions", "--log-level", "WARNING"]), 0)
            rewritten = json.loads(src.read_text(encoding="utf-8"))
            self.assertEqual(rewritten["nodes"][0]["position"], {"x": 0.0, "y": 0.0})
            self.assertEqual(len(rewritten["edges"]), 1)

    def test_errors_return_non_zero(self):
        with tempfile.TemporaryDirectory() as tmp:
            with self.assertLogs("main", level="ERROR"):
                self.assertEqual(main([str(Path(tmp) / "missing.json"), "--log-level", "WARNING"]), 1)
            src = Path(tmp) / "plan.json"
            src.write_text(json.dumps(_payload()), encoding="utf-8")
            with self.assertLogs("main", level="ERROR"):
                self.assertEqual(main([str(src), "--svg", str(Path(tmp) / "erd.png"), "--log-level", "WARNING"]), 1)


if __name__ == "__main__":
    unittest.main()
