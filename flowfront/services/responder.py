"""
Response-Path Augmenter
Gives a chat workflow a "Respond to Webhook" terminus so the webhook call
returns the agent's answer.
"""
from typing import Dict, List

from flowfront.core.errors import TransformationError
from flowfront.core.logging import transform_logger as logger
from flowfront.models.workflow import (
    LANGUAGE_MODEL_PORT,
    MAIN_PORT,
    Connections,
    Edge,
    WorkflowGraph,
    WorkflowNode,
    is_agent_type,
    is_language_model_type,
)
from flowfront.services.expressions import WEBHOOK_NODE_NAME
from flowfront.services.rewriter import IdFactory


RESPOND_NODE_NAME = "Respond to Webhook"
RESPOND_TYPE = "n8n-nodes-base.respondToWebhook"
RESPOND_TYPE_VERSION = 1.4
RESPOND_BODY = "={{ $json.output.toJsonString() }}"
RESPOND_OFFSET = (224, 0)


def build_respond_node(anchor: WorkflowNode, id_factory: IdFactory) -> WorkflowNode:
    """JSON responder placed to the right of `anchor`."""
    x, y = (list(anchor.position) + [0, 0])[:2] if anchor.position else (0, 0)
    return WorkflowNode(
        parameters={
            "respondWith": "json",
            "responseBody": RESPOND_BODY,
            "options": {}
        },
        type=RESPOND_TYPE,
        typeVersion=RESPOND_TYPE_VERSION,
        position=[x + RESPOND_OFFSET[0], y + RESPOND_OFFSET[1]],
        id=id_factory(),
        name=RESPOND_NODE_NAME,
    )


def _add_edge(connections: Connections, source: str, port: str, target: str) -> None:
    """Attach `source -> target` on the first output slot unless already there."""
    slots = connections.setdefault(source, {}).setdefault(port, [])
    if not slots:
        slots.append([])
    if slots[0] is None:
        slots[0] = []
    if any(edge.node == target and edge.type == port for edge in slots[0]):
        return
    slots[0].append(Edge(node=target, type=port, index=0))


def _model_targets(graph: WorkflowGraph, agent_names: List[str]) -> Dict[str, str]:
    """Which agent each language model already feeds, if any."""
    targets: Dict[str, str] = {}
    for source, port, edge in graph.iter_edges():
        if port == LANGUAGE_MODEL_PORT and edge.node in agent_names:
            targets.setdefault(source, edge.node)
    return targets


def augment_response_path(
    graph: WorkflowGraph,
    id_factory: IdFactory,
    preserve_connections: bool = False
) -> WorkflowNode:
    """
    Append the respond node and wire the request/response cycle:

        Webhook -> agent (main)
        agent -> Respond to Webhook (main), for every agent
        language model -> its agent (ai_languageModel), for every model

    Agents and models are found by type, not by display name. By default every
    other connection is dropped, which suits the single-agent chat topology;
    `preserve_connections` keeps them and only splices the new edges in.

    Raises:
        TransformationError: the workflow has no agent node to answer with,
            or already has a node named `Respond to Webhook`.
    """
    if graph.find_node(RESPOND_NODE_NAME) is not None:
        raise TransformationError(
            f"Workflow already has a node named '{RESPOND_NODE_NAME}'",
            step="response_path"
        )
    agents = [node for node in graph.nodes if is_agent_type(node.type)]
    if not agents:
        raise TransformationError(
            "No agent node found to answer the webhook",
            step="response_path"
        )
    primary = agents[0]
    agent_names = [agent.name for agent in agents]
    models = [node for node in graph.nodes if is_language_model_type(node.type)]
    model_targets = _model_targets(graph, agent_names)

    respond = build_respond_node(primary, id_factory)
    graph.nodes = [*graph.nodes, respond]

    connections: Connections = graph.connections if preserve_connections else {}
    _add_edge(connections, WEBHOOK_NODE_NAME, MAIN_PORT, primary.name)
    for agent in agents:
        _add_edge(connections, agent.name, MAIN_PORT, respond.name)
    for model in models:
        target = model_targets.get(model.name, primary.name)
        _add_edge(connections, model.name, LANGUAGE_MODEL_PORT, target)
    graph.connections = connections

    logger.debug(
        f"Response path built: {len(agents)} agent(s), {len(models)} model(s), "
        f"preserve_connections={preserve_connections}"
    )
    return respond
