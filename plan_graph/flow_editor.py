from __future__ import annotations

import logging
from collections import Counter
from dataclasses import replace
from typing import Any, Callable

from plan_graph.config import EditorConfig
from plan_graph.debounce import DebouncedSaver, Scheduler
from plan_graph.error_contract import flow_error
from plan_graph.flow_model import DEFAULT_STEP_LABEL, FLOW_NODE_KINDS, FlowDocument, FlowEdge, FlowNode
from plan_graph.graph_io import flow_from_dict, flow_to_dict
from plan_graph.graph_model import Position, new_id
from plan_graph.history import HistoryManager
from plan_graph.storage_sqlite_documents import USER_FLOWS_SECTION, DocumentStore

logger = logging.getLogger("flow_editor")


class FlowEditor:
    """User-flow diagram editing on the same history and save primitives."""

    def __init__(
        self,
        document: FlowDocument | None = None,
        *,
        document_id: str | None = None,
        store: DocumentStore | None = None,
        config: EditorConfig = EditorConfig(),
        scheduler: Scheduler | None = None,
        read_only: bool = False,
        id_factory: Callable[[str], str] | None = None,
    ) -> None:
        self.document = document or FlowDocument()
        self.document_id = document_id
        self.read_only = bool(read_only)
        self._store = store
        self._new_id = id_factory or new_id
        self.history = HistoryManager(config.history_capacity)
        self.history.push(self.document.nodes, self.document.edges)
        self._saver: DebouncedSaver | None = None
        if store is not None and document_id and not self.read_only:
            self._saver = DebouncedSaver(
                self._write,
                delay_ms=config.flow_save_debounce_ms,
                scheduler=scheduler,
                name="user flows",
            )

    @classmethod
    def open(cls, document_id: str, store: DocumentStore, **kwargs: Any) -> FlowEditor:
        payload = store.load(document_id, section=USER_FLOWS_SECTION)
        document = flow_from_dict(payload)
        node_ids = {node.id for node in document.nodes}
        edges = [e for e in document.edges if e.source in node_ids and e.target in node_ids]
        if len(edges) != len(document.edges):
            logger.warning(
                "Dropped %d flow transition(s) with missing endpoints in '%s'",
                len(document.edges) - len(edges),
                document_id,
            )
        return cls(FlowDocument(nodes=document.nodes, edges=edges), document_id=document_id, store=store, **kwargs)

    @property
    def can_undo(self) -> bool:
        return self.history.can_undo

    @property
    def can_redo(self) -> bool:
        return self.history.can_redo

    def kind_counts(self) -> dict[str, int]:
        counts = Counter(node.kind for node in self.document.nodes)
        return {kind: counts[kind] for kind in FLOW_NODE_KINDS if counts[kind]}

    def _write(self, payload: dict[str, Any]) -> None:
        if self._store is None or not self.document_id:
            return
        self._store.save(self.document_id, payload, section=USER_FLOWS_SECTION)

    def _commit(self, document: FlowDocument) -> None:
        self.document = document
        self.history.push(document.nodes, document.edges)
        if self._saver is not None:
            self._saver.schedule(flow_to_dict(document))

    def _ignored(self, action: str) -> bool:
        if self.read_only:
            logger.debug("Ignoring '%s' on read-only flow '%s'", action, self.document_id)
            return True
        return False

    def _require_node(self, node_id: str, *, location: str) -> FlowNode:
        node = self.document.find_node(node_id)
        if node is None:
            raise ValueError(flow_error(location, f"step '{node_id}' was not found", "choose an existing step"))
        return node

    def _replace_node(self, updated: FlowNode) -> FlowDocument:
        return FlowDocument(
            nodes=[updated if n.id == updated.id else n for n in self.document.nodes],
            edges=list(self.document.edges),
        )

    def add_step(self, label: str = DEFAULT_STEP_LABEL) -> FlowNode | None:
        if self._ignored("add step"):
            return None
        text = str(label).strip()
        if not text:
            raise ValueError(flow_error("Add step", "label is required", "enter a non-empty step label"))
        node = FlowNode(
            id=self._new_id("node"),
            kind="flowStep",
            label=text,
            position=Position(x=250, y=200 + len(self.document.nodes) * 80),
        )
        self._commit(FlowDocument(nodes=[*self.document.nodes, node], edges=list(self.document.edges)))
        return node

    def relabel_node(self, node_id: str, label: str) -> bool:
        """Rename a step; a blank label leaves the step unchanged."""
        if self._ignored("relabel step"):
            return False
        node = self._require_node(node_id, location="Relabel step")
        text = str(label).strip()
        if not text or text == node.label:
            return False
        self._commit(self._replace_node(replace(node, label=text)))
        return True

    def change_node_kind(self, node_id: str, kind: str) -> None:
        if self._ignored("change step kind"):
            return
        node = self._require_node(node_id, location="Change step kind")
        if kind not in FLOW_NODE_KINDS:
            raise ValueError(
                flow_error("Change step kind", f"unsupported kind '{kind}'", f"use one of: {', '.join(FLOW_NODE_KINDS)}")
            )
        self._commit(self._replace_node(replace(node, kind=kind)))

    def move_node(self, node_id: str, x: float, y: float) -> None:
        if self._ignored("move step"):
            return
        node = self._require_node(node_id, location="Move step")
        self._commit(self._replace_node(replace(node, position=Position(x=float(x), y=float(y)))))

    def connect(self, source_id: str, target_id: str, label: str = "") -> FlowEdge | None:
        if self._ignored("connect steps"):
            return None
        self._require_node(source_id, location="Connect / Source")
        self._require_node(target_id, location="Connect / Target")
        edge = FlowEdge(id=self._new_id("flow-e"), source=source_id, target=target_id, label=str(label).strip())
        self._commit(FlowDocument(nodes=list(self.document.nodes), edges=[*self.document.edges, edge]))
        return edge

    def relabel_edge(self, edge_id: str, label: str) -> None:
        if self._ignored("relabel transition"):
            return
        if not any(e.id == edge_id for e in self.document.edges):
            raise ValueError(
                flow_error("Relabel transition", f"transition '{edge_id}' was not found", "choose an existing transition")
            )
        self._commit(
            FlowDocument(
                nodes=list(self.document.nodes),
                edges=[replace(e, label=str(label).strip()) if e.id == edge_id else e for e in self.document.edges],
            )
        )

    def delete_node(self, node_id: str) -> None:
        if self._ignored("delete step"):
            return
        self._require_node(node_id, location="Delete step")
        self._commit(
            FlowDocument(
                nodes=[n for n in self.document.nodes if n.id != node_id],
                edges=[e for e in self.document.edges if e.source != node_id and e.target != node_id],
            )
        )

    def undo(self) -> bool:
        if self._ignored("undo"):
            return False
        snapshot = self.history.undo()
        if snapshot is None:
            return False
        self.document = FlowDocument(nodes=snapshot.nodes, edges=snapshot.edges)
        if self._saver is not None:
            self._saver.schedule(flow_to_dict(self.document))
        return True

    def redo(self) -> bool:
        if self._ignored("redo"):
            return False
        snapshot = self.history.redo()
        if snapshot is None:
            return False
        self.document = FlowDocument(nodes=snapshot.nodes, edges=snapshot.edges)
        if self._saver is not None:
            self._saver.schedule(flow_to_dict(self.document))
        return True

    def flush(self) -> bool:
        return self._saver.flush() if self._saver is not None else False
