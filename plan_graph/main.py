# To run:
# python -m plan_graph.main plan_entities.json --svg erd.svg

from __future__ import annotations

import argparse
import logging
import traceback

from plan_graph.config import EditorConfig
from plan_graph.erd_svg import export_erd_svg
from plan_graph.generation import prepare_document
from plan_graph.graph_io import load_document_from_json, save_document_to_json
from plan_graph.logging_setup import setup_logging

logger = logging.getLogger("main")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="plan_graph",
        description="Link missing foreign keys and auto-arrange an entity diagram document.",
    )
    parser.add_argument("document", help="graph document JSON ({nodes, edges} or a plan row with 'entities')")
    parser.add_argument("--out", default=None, help="write the arranged document here (default: overwrite input)")
    parser.add_argument("--svg", default=None, help="also export the arranged diagram as SVG")
    parser.add_argument("--keep-positions", action="store_true", help="link FKs but skip auto-layout")
    parser.add_argument("--log-level", default=None, help="override the configured log level")
    return parser


def main(argv: list[str] | None = None) -> int:
    cfg = EditorConfig()
    args = _build_parser().parse_args(argv)
    setup_logging(args.log_level or cfg.log_level)

    try:
        document = load_document_from_json(args.document)
        arranged = prepare_document(document, arrange=not args.keep_positions)
        out_path = args.out or args.document
        save_document_to_json(arranged, out_path)
        logger.info(
            "Wrote %d entities and %d relationships to %s",
            len(arranged.nodes),
            len(arranged.edges),
            out_path,
        )
        if args.svg:
            svg_path = export_erd_svg(arranged, args.svg)
            logger.info("Exported diagram to %s", svg_path)
        return 0
    except ValueError as exc:
        logger.error("%s", exc)
        return 1
    except Exception as exc:
        logger.error("Unhandled error: %s", exc)
        if cfg.debug:
            traceback.print_exc()
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
