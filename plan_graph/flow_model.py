from __future__ import annotations

from dataclasses import dataclass, field

from plan_graph.graph_model import Position

FLOW_NODE_KINDS: tuple[str, ...] = ("flowStart", "flowStep", "flowDecision", "flowEnd")
DEFAULT_FLOW_NODE_KIND = "flowStep"
DEFAULT_STEP_LABEL = "New Step"


@dataclass(frozen=True)
class FlowNode:
    id: str
    kind: str = DEFAULT_FLOW_NODE_KIND
    label: str = DEFAULT_STEP_LABEL
    position: Position = field(default_factory=Position)


@dataclass(frozen=True)
class FlowEdge:
    id: str
    source: str
    target: str
    label: str = ""


@dataclass(frozen=True)
class FlowDocument:
    nodes: list[FlowNode] = field(default_factory=list)
    edges: list[FlowEdge] = field(default_factory=list)

    def find_node(self, node_id: str) -> FlowNode | None:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None
