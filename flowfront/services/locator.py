"""
Trigger Locator
Finds the chat or form trigger that a workflow starts from.
"""
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from flowfront.models.workflow import WorkflowGraph, WorkflowNode


TRIGGER_TYPES = {
    "chat": "@n8n/n8n-nodes-langchain.chatTrigger",
    "form": "n8n-nodes-base.formTrigger",
}


@dataclass(frozen=True)
class TriggerDescriptor:
    """The matched trigger node plus what the rewrite needs from it."""
    node: WorkflowNode
    index: int

    @property
    def name(self) -> str:
        return self.node.name

    @property
    def parameters(self) -> Dict[str, Any]:
        return self.node.parameters

    @property
    def position(self) -> List[Union[int, float]]:
        return list(self.node.position) if self.node.position else [0, 0]


def locate_trigger(
    nodes: Sequence[WorkflowNode], trigger_type: str
) -> Optional[TriggerDescriptor]:
    """Return the first node whose type equals `trigger_type`, or None."""
    for index, node in enumerate(nodes):
        if node.type == trigger_type:
            return TriggerDescriptor(node=node, index=index)
    return None


def extract_trigger_nodes(graph: WorkflowGraph) -> List[WorkflowNode]:
    """All chat and form trigger nodes of a workflow, in node order."""
    known = set(TRIGGER_TYPES.values())
    return [node for node in graph.nodes if node.type in known]


def get_trigger_type(graph: WorkflowGraph) -> Optional[str]:
    triggers = extract_trigger_nodes(graph)
    return triggers[0].type if triggers else None


def group_by_trigger_type(workflows: Iterable[Dict[str, Any]]) -> Dict[str, List[Dict[str, Any]]]:
    """
    Group raw workflow summaries by the trigger types they contain.
    Archived workflows are skipped; a workflow with both triggers is in both groups.
    """
    groups: Dict[str, List[Dict[str, Any]]] = {flavor: [] for flavor in TRIGGER_TYPES}
    for wf in workflows:
        if wf.get("isArchived") is True:
            continue
        node_types = {node.get("type") for node in wf.get("nodes") or []}
        for flavor, trigger_type in TRIGGER_TYPES.items():
            if trigger_type in node_types:
                groups[flavor].append(wf)
    return groups
