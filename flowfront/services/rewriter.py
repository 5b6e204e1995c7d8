"""
Node Rewriter
Swaps a located trigger for a generated webhook node in an owned graph copy.
"""
from typing import Callable, List, Optional, Tuple, Union

from flowfront.core.errors import TransformationError
from flowfront.models.workflow import WorkflowGraph, WorkflowNode
from flowfront.services.expressions import WEBHOOK_NODE_NAME
from flowfront.services.locator import TriggerDescriptor, locate_trigger


WEBHOOK_TYPE = "n8n-nodes-base.webhook"
WEBHOOK_TYPE_VERSION = 2.1

IdFactory = Callable[[], str]


def build_webhook_node(
    position: List[Union[int, float]],
    id_factory: IdFactory,
    response_node: bool = False
) -> WorkflowNode:
    """
    Create the POST webhook that replaces a trigger.

    The generated path doubles as the node's `webhookId`. With `response_node`
    the webhook waits for a "Respond to Webhook" node instead of answering
    immediately.
    """
    path = id_factory()
    parameters = {"httpMethod": "POST", "path": path}
    if response_node:
        parameters["responseMode"] = "responseNode"
    parameters["options"] = {}

    return WorkflowNode(
        parameters=parameters,
        type=WEBHOOK_TYPE,
        typeVersion=WEBHOOK_TYPE_VERSION,
        position=list(position) if position else [0, 0],
        id=id_factory(),
        name=WEBHOOK_NODE_NAME,
        webhookId=path,
    )


def replace_trigger(
    graph: WorkflowGraph, trigger: TriggerDescriptor, webhook: WorkflowNode
) -> None:
    """Splice `webhook` in at the trigger's index and move its connections."""
    nodes = list(graph.nodes)
    nodes[trigger.index] = webhook
    graph.nodes = nodes
    graph.rename_node(trigger.name, webhook.name)


def rewrite_trigger_node(
    graph: WorkflowGraph,
    trigger_type: str,
    id_factory: IdFactory,
    response_node: bool = False
) -> Optional[Tuple[TriggerDescriptor, WorkflowNode]]:
    """
    Locate and replace the trigger; a graph without one is left as-is.

    Raises:
        TransformationError: another node is already named `Webhook`, so the
            rename would merge two connection entries.
    """
    trigger = locate_trigger(graph.nodes, trigger_type)
    if trigger is None:
        return None
    existing = graph.find_node(WEBHOOK_NODE_NAME)
    if existing is not None and existing is not trigger.node:
        raise TransformationError(
            f"Workflow already has a node named '{WEBHOOK_NODE_NAME}'",
            step="node_rewrite"
        )
    webhook = build_webhook_node(trigger.position, id_factory, response_node)
    replace_trigger(graph, trigger, webhook)
    return trigger, webhook
