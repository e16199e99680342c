from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Callable, Iterable

from plan_graph.config import EditorConfig
from plan_graph.debounce import DebouncedSaver, Scheduler
from plan_graph.error_contract import editor_error
from plan_graph.fk_inference import sync_foreign_keys
from plan_graph.generation import prepare_document
from plan_graph.graph_io import document_from_dict, document_to_dict
from plan_graph.graph_model import (
    DEFAULT_ENTITY_NAME,
    EntityNode,
    Field,
    GraphDocument,
    Position,
    RelationshipEdge,
    default_id_field,
    new_field,
    new_id,
    remove_nodes,
    replace_node,
)
from plan_graph.history import HistoryManager
from plan_graph.layout import DEFAULT_LAYOUT_OPTIONS, LayoutOptions, layout_entities
from plan_graph.relationship_types import (
    DEFAULT_RELATIONSHIP_TYPE,
    RelationshipType,
    canonicalize,
    relationship_legend,
)
from plan_graph.storage_sqlite_documents import ENTITIES_SECTION, DocumentStore

logger = logging.getLogger("editor")

_FIELD_KEYS = ("name", "type", "is_primary", "is_nullable")


@dataclass(frozen=True)
class FkSyncReport:
    added: int
    message: str


def fk_sync_message(added: int) -> str:
    if added <= 0:
        return "No missing FK links found."
    return f"Added {added} FK link{'s' if added > 1 else ''}."


def _patched_field(current: Field, changes: dict[str, Any], *, location: str) -> Field:
    unknown = sorted(set(changes) - set(_FIELD_KEYS))
    if unknown:
        raise ValueError(
            editor_error(
                location,
                f"unsupported field attribute(s) {', '.join(unknown)}",
                f"edit only: {', '.join(_FIELD_KEYS)}",
            )
        )
    patch: dict[str, Any] = {}
    if "name" in changes:
        patch["name"] = str(changes["name"])
    if "type" in changes:
        patch["type"] = str(changes["type"])
    if "is_primary" in changes:
        patch["is_primary"] = bool(changes["is_primary"])
    if "is_nullable" in changes:
        patch["is_nullable"] = bool(changes["is_nullable"])
    return replace(current, **patch)


class EntityEditSession:
    """Live edits to one entity that become a single undo step on commit."""

    def __init__(self, editor: GraphEditor, entity_id: str, *, is_new: bool = False) -> None:
        self._editor = editor
        self.entity_id = entity_id
        self.is_new = is_new
        self.original = editor._require_node(entity_id, location="Edit entity")
        self.closed = False

    def _current(self) -> EntityNode:
        if self.closed:
            raise ValueError(
                editor_error("Edit entity", "edit session is already closed", "open a new edit session")
            )
        return self._editor._require_node(self.entity_id, location="Edit entity")

    def _apply(self, node: EntityNode) -> None:
        self._editor.document = replace_node(self._editor.document, node)

    @property
    def entity(self) -> EntityNode:
        return self._current()

    def set_name(self, name: str) -> None:
        self._apply(replace(self._current(), name=str(name)))

    def set_description(self, description: str) -> None:
        self._apply(replace(self._current(), description=str(description)))

    def add_field(self, entity_field: Field | None = None) -> int:
        node = self._current()
        fields = [*node.fields, entity_field or new_field()]
        self._apply(replace(node, fields=fields))
        return len(fields) - 1

    def set_field(self, index: int, **changes: Any) -> None:
        node = self._current()
        idx = self._editor._require_field_index(node, index, location="Edit entity / Field")
        fields = list(node.fields)
        fields[idx] = _patched_field(fields[idx], changes, location="Edit entity / Field")
        self._apply(replace(node, fields=fields))

    def remove_field(self, index: int) -> None:
        node = self._current()
        idx = self._editor._require_field_index(node, index, location="Edit entity / Field")
        self._apply(replace(node, fields=[f for i, f in enumerate(node.fields) if i != idx]))

    def commit(self) -> None:
        self._current()
        self.closed = True
        self._editor._session = None
        self._editor._commit(self._editor.document)

    def cancel(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._editor._session = None
        document = self._editor.document
        if document.find_node(self.entity_id) is None:
            return
        if self.is_new:
            self._editor.document = remove_nodes(document, {self.entity_id})
        else:
            self._editor.document = replace_node(document, self.original)
        self._editor._schedule_save()
        self._editor._notify()


class GraphEditor:
    """Mutation façade the UI calls for the entity/relationship diagram.

    Each public mutation is one logical user action: it computes the final
    document, records exactly one history snapshot and schedules one
    debounced save. Read-only editors ignore mutations; while an entity edit
    session is open every other mutation raises.
    """

    def __init__(
        self,
        document: GraphDocument | None = None,
        *,
        document_id: str | None = None,
        store: DocumentStore | None = None,
        config: EditorConfig = EditorConfig(),
        scheduler: Scheduler | None = None,
        read_only: bool = False,
        id_factory: Callable[[str], str] | None = None,
        layout_options: LayoutOptions = DEFAULT_LAYOUT_OPTIONS,
    ) -> None:
        self.document = document or GraphDocument()
        self.document_id = document_id
        self.read_only = bool(read_only)
        self.layout_options = layout_options
        self._store = store
        self._new_id = id_factory or new_id
        self._session: EntityEditSession | None = None
        self._listeners: list[Callable[[GraphEditor], None]] = []
        self.history = HistoryManager(config.history_capacity)
        self.history.push(self.document.nodes, self.document.edges)
        self._saver: DebouncedSaver | None = None
        if store is not None and document_id and not self.read_only:
            self._saver = DebouncedSaver(
                self._write,
                delay_ms=config.entity_save_debounce_ms,
                scheduler=scheduler,
                name="entities",
            )

    @classmethod
    def open(
        cls,
        document_id: str,
        store: DocumentStore,
        *,
        arrange: bool = False,
        **kwargs: Any,
    ) -> GraphEditor:
        payload = store.load(document_id, section=ENTITIES_SECTION)
        id_factory = kwargs.get("id_factory")
        document = prepare_document(
            document_from_dict(payload),
            arrange=arrange,
            id_factory=(lambda: id_factory("fk")) if id_factory else None,
            options=kwargs.get("layout_options", DEFAULT_LAYOUT_OPTIONS),
        )
        return cls(document, document_id=document_id, store=store, **kwargs)

    # -- state -------------------------------------------------------------

    @property
    def can_undo(self) -> bool:
        return self.history.can_undo

    @property
    def can_redo(self) -> bool:
        return self.history.can_redo

    @property
    def session(self) -> EntityEditSession | None:
        return self._session

    @property
    def save_pending(self) -> bool:
        return self._saver is not None and self._saver.pending

    def subscribe(self, listener: Callable[[GraphEditor], None]) -> None:
        self._listeners.append(listener)

    def relationship_legend(self) -> list[RelationshipType]:
        return relationship_legend(edge.relationship_type for edge in self.document.edges)

    # -- plumbing ----------------------------------------------------------

    def _write(self, payload: dict[str, Any]) -> None:
        if self._store is None or not self.document_id:
            return
        self._store.save(self.document_id, payload, section=ENTITIES_SECTION)

    def _schedule_save(self) -> None:
        if self._saver is not None:
            self._saver.schedule(document_to_dict(self.document))

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)

    def _commit(self, document: GraphDocument) -> None:
        self.document = document
        self.history.push(document.nodes, document.edges)
        self._schedule_save()
        self._notify()

    def _ignored(self, action: str) -> bool:
        if self.read_only:
            logger.debug("Ignoring '%s' on read-only document '%s'", action, self.document_id)
            return True
        # Session edits live in self.document until commit; nothing else may snapshot them.
        if self._session is not None and not self._session.closed:
            raise ValueError(
                editor_error(
                    "Edit entity",
                    f"cannot {action} while entity '{self._session.entity_id}' is being edited",
                    "commit or cancel the open edit first",
                )
            )
        return False

    def _require_node(self, entity_id: str, *, location: str) -> EntityNode:
        node = self.document.find_node(entity_id)
        if node is None:
            raise ValueError(
                editor_error(location, f"entity '{entity_id}' was not found", "choose an existing entity")
            )
        return node

    def _require_edge(self, edge_id: str, *, location: str) -> RelationshipEdge:
        edge = self.document.find_edge(edge_id)
        if edge is None:
            raise ValueError(
                editor_error(location, f"relationship '{edge_id}' was not found", "choose an existing relationship")
            )
        return edge

    def _require_field_index(self, node: EntityNode, index: Any, *, location: str) -> int:
        if isinstance(index, bool) or not isinstance(index, int):
            raise ValueError(editor_error(location, "field index must be an integer", "pass a 0-based field index"))
        if index < 0 or index >= len(node.fields):
            raise ValueError(
                editor_error(
                    location,
                    f"field index {index} is out of range for entity '{node.name}' ({len(node.fields)} fields)",
                    "choose an existing field row",
                )
            )
        return index

    # -- entities ----------------------------------------------------------

    def add_entity(self, name: str = DEFAULT_ENTITY_NAME, *, open_editor: bool = False) -> EntityNode | None:
        if self._ignored("add entity"):
            return None
        count = len(self.document.nodes)
        node = EntityNode(
            id=self._new_id("entity"),
            name=str(name),
            description="",
            fields=[default_id_field()],
            position=Position(x=80 + (count % 3) * 360, y=80 + (count // 3) * 280),
        )
        document = GraphDocument(nodes=[*self.document.nodes, node], edges=list(self.document.edges))
        if open_editor:
            # The add and the drawer edits become one undo step on commit.
            self.document = document
            self._open_session(node.id, is_new=True)
            self._notify()
        else:
            self._commit(document)
        return node

    def delete_entity(self, entity_id: str) -> None:
        if self._ignored("delete entity"):
            return
        self._require_node(entity_id, location="Delete entity")
        self._commit(remove_nodes(self.document, {entity_id}))

    def update_entity(self, entity_id: str, *, name: str | None = None, description: str | None = None) -> None:
        if self._ignored("update entity"):
            return
        node = self._require_node(entity_id, location="Update entity")
        patch: dict[str, str] = {}
        if name is not None:
            patch["name"] = str(name)
        if description is not None:
            patch["description"] = str(description)
        if not patch:
            return
        self._commit(replace_node(self.document, replace(node, **patch)))

    def move_entity(self, entity_id: str, x: float, y: float) -> None:
        if self._ignored("move entity"):
            return
        node = self._require_node(entity_id, location="Move entity")
        moved = replace(node, position=Position(x=float(x), y=float(y)))
        self._commit(replace_node(self.document, moved))

    def begin_entity_edit(self, entity_id: str) -> EntityEditSession | None:
        if self._ignored("edit entity"):
            return None
        return self._open_session(entity_id, is_new=False)

    def _open_session(self, entity_id: str, *, is_new: bool) -> EntityEditSession:
        if self._session is not None and not self._session.closed:
            raise ValueError(
                editor_error(
                    "Edit entity",
                    f"entity '{self._session.entity_id}' is already being edited",
                    "commit or cancel the open edit first",
                )
            )
        self._session = EntityEditSession(self, entity_id, is_new=is_new)
        return self._session

    # -- fields ------------------------------------------------------------

    def add_field(self, entity_id: str, entity_field: Field | None = None) -> int | None:
        if self._ignored("add field"):
            return None
        node = self._require_node(entity_id, location="Add field")
        fields = [*node.fields, entity_field or new_field()]
        self._commit(replace_node(self.document, replace(node, fields=fields)))
        return len(fields) - 1

    def update_field(self, entity_id: str, index: int, **changes: Any) -> None:
        if self._ignored("update field"):
            return
        node = self._require_node(entity_id, location="Edit field")
        idx = self._require_field_index(node, index, location="Edit field")
        fields = list(node.fields)
        fields[idx] = _patched_field(fields[idx], changes, location="Edit field")
        self._commit(replace_node(self.document, replace(node, fields=fields)))

    def remove_field(self, entity_id: str, index: int) -> None:
        if self._ignored("remove field"):
            return
        node = self._require_node(entity_id, location="Remove field")
        idx = self._require_field_index(node, index, location="Remove field")
        fields = [f for i, f in enumerate(node.fields) if i != idx]
        self._commit(replace_node(self.document, replace(node, fields=fields)))

    # -- relationships -----------------------------------------------------

    def connect(
        self,
        source_id: str,
        target_id: str,
        relationship_type: object = DEFAULT_RELATIONSHIP_TYPE,
    ) -> RelationshipEdge | None:
        if self._ignored("connect"):
            return None
        self._require_node(source_id, location="Connect / Source")
        self._require_node(target_id, location="Connect / Target")
        edge = RelationshipEdge(
            id=self._new_id("e"),
            source=source_id,
            target=target_id,
            relationship_type=canonicalize(relationship_type),
        )
        self._commit(GraphDocument(nodes=list(self.document.nodes), edges=[*self.document.edges, edge]))
        return edge

    def relabel_edge(self, edge_id: str, label: object) -> RelationshipEdge | None:
        if self._ignored("relabel relationship"):
            return None
        edge = self._require_edge(edge_id, location="Relabel relationship")
        updated = replace(edge, relationship_type=canonicalize(label))
        self._commit(
            GraphDocument(
                nodes=list(self.document.nodes),
                edges=[updated if e.id == edge_id else e for e in self.document.edges],
            )
        )
        return updated

    def delete_selection(self, node_ids: Iterable[str] = (), edge_ids: Iterable[str] = ()) -> bool:
        """Delete selected entities, their incident edges and selected edges as one step."""
        if self._ignored("delete selection"):
            return False
        doomed_nodes = {n for n in node_ids if self.document.find_node(n) is not None}
        doomed_edges = {e for e in edge_ids if self.document.find_edge(e) is not None}
        if not doomed_nodes and not doomed_edges:
            return False
        remaining = remove_nodes(self.document, doomed_nodes)
        self._commit(
            GraphDocument(
                nodes=remaining.nodes,
                edges=[e for e in remaining.edges if e.id not in doomed_edges],
            )
        )
        return True

    # -- whole-document actions -------------------------------------------

    def auto_arrange(self) -> None:
        if self._ignored("auto-arrange"):
            return
        arranged = layout_entities(self.document.nodes, self.document.edges, options=self.layout_options)
        self._commit(GraphDocument(nodes=arranged, edges=list(self.document.edges)))

    def sync_foreign_keys(self) -> FkSyncReport | None:
        if self._ignored("sync foreign keys"):
            return None
        result = sync_foreign_keys(
            self.document.nodes,
            self.document.edges,
            id_factory=lambda: self._new_id("fk"),
        )
        if result.added > 0:
            self._commit(GraphDocument(nodes=list(self.document.nodes), edges=result.edges))
        return FkSyncReport(added=result.added, message=fk_sync_message(result.added))

    # -- history -----------------------------------------------------------

    def _restore(self, nodes: list[EntityNode], edges: list[RelationshipEdge]) -> None:
        self.document = GraphDocument(nodes=nodes, edges=edges)
        self._schedule_save()
        self._notify()

    def undo(self) -> bool:
        if self._ignored("undo"):
            return False
        snapshot = self.history.undo()
        if snapshot is None:
            return False
        self._restore(snapshot.nodes, snapshot.edges)
        return True

    def redo(self) -> bool:
        if self._ignored("redo"):
            return False
        snapshot = self.history.redo()
        if snapshot is None:
            return False
        self._restore(snapshot.nodes, snapshot.edges)
        return True

    # -- persistence -------------------------------------------------------

    def flush(self) -> bool:
        return self._saver.flush() if self._saver is not None else False

    def close(self) -> None:
        if self._session is not None and not self._session.closed:
            self._session.cancel()
        self.flush()
