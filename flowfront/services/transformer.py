"""
Transformation Driver
Turns a chat- or form-triggered workflow into a webhook-triggered one.

locate -> clone -> rewrite node -> rewrite expressions -> [response path] -> rename

The driver is a pure function of its inputs: the caller's workflow is never
mutated, and the only non-determinism (ids and the timestamp in the new name)
comes from the injectable `id_factory` and `clock`.
"""
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional, Union

from flowfront.core.config import settings
from flowfront.core.errors import FlowFrontError, TransformationError
from flowfront.core.logging import transform_logger as logger
from flowfront.models.schemas import TransformResult
from flowfront.models.workflow import WorkflowGraph, WorkflowNode, is_agent_type
from flowfront.services.expressions import (
    ExpressionRewriter,
    ShorthandPatterns,
    apply_agent_override,
    chat_shorthand_patterns,
    form_shorthand_patterns,
)
from flowfront.services.extractors import form_fields_from_parameters
from flowfront.services.locator import TRIGGER_TYPES, TriggerDescriptor, locate_trigger
from flowfront.services.responder import augment_response_path
from flowfront.services.rewriter import IdFactory, rewrite_trigger_node


@dataclass(frozen=True)
class Flavor:
    """Everything that differs between the chat and form rewrites."""
    name: str
    tag: str
    trigger_type: str
    response_path: bool
    agent_override: bool
    shorthand: Callable[[TriggerDescriptor], ShorthandPatterns]


def _form_shorthand(trigger: TriggerDescriptor) -> ShorthandPatterns:
    return form_shorthand_patterns(form_fields_from_parameters(trigger.parameters))


CHAT = Flavor(
    name="chat",
    tag="CHAT",
    trigger_type=TRIGGER_TYPES["chat"],
    response_path=True,
    agent_override=True,
    shorthand=lambda trigger: chat_shorthand_patterns(),
)

FORM = Flavor(
    name="form",
    tag="FORM",
    trigger_type=TRIGGER_TYPES["form"],
    response_path=False,
    agent_override=False,
    shorthand=_form_shorthand,
)

FLAVORS: Dict[str, Flavor] = {CHAT.name: CHAT, FORM.name: FORM}


def get_flavor(flavor: Union[str, Flavor]) -> Flavor:
    if isinstance(flavor, Flavor):
        return flavor
    try:
        return FLAVORS[flavor.lower()]
    except KeyError:
        raise ValueError(
            f"Unknown flavor '{flavor}'. Expected one of: {', '.join(FLAVORS)}"
        )


def _uuid() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def build_workflow_name(original: str, flavor: Flavor, now: datetime) -> str:
    """`<name>-FLOW-FRONT-<TAG>-date-2024-05-01-time-10:00:00.000Z`"""
    stamp = now.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"
    return f"{original}-FLOW-FRONT-{flavor.tag}-date-{stamp.replace('T', '-time-')}"


def rewrite_expressions(
    graph: WorkflowGraph,
    trigger: TriggerDescriptor,
    flavor: Flavor,
    webhook: WorkflowNode
) -> None:
    """Rewrite every node's parameters except the generated webhook."""
    rewriter = ExpressionRewriter(trigger.name, flavor.shorthand(trigger))
    for node in graph.nodes:
        if node is webhook:
            continue
        if flavor.agent_override and is_agent_type(node.type):
            node.parameters = apply_agent_override(node.parameters)
        else:
            node.parameters = rewriter.rewrite(node.parameters)


def transform(
    workflow: Union[WorkflowGraph, Dict[str, Any]],
    flavor: Union[str, Flavor],
    *,
    id_factory: Optional[IdFactory] = None,
    clock: Optional[Callable[[], datetime]] = None,
    preserve_connections: Optional[bool] = None
) -> TransformResult:
    """
    Rewrite a trigger-based workflow into a webhook-based one.

    Args:
        workflow: Raw n8n workflow dict or an already validated graph.
        flavor: "chat", "form" or a Flavor descriptor.
        id_factory: Zero-argument callable producing fresh ids (default uuid4).
        clock: Callable returning the timestamp used in the new name.
        preserve_connections: Keep unrelated connections when building the
            chat response path (defaults to TRANSFORM_PRESERVE_CONNECTIONS).

    Returns:
        TransformResult with status "transformed", or "no_trigger" and the
        input graph untouched.

    Raises:
        MalformedGraph: the payload is not a nodes/connections graph.
        TransformationError: a rewrite step failed; nothing is returned.
    """
    flavor = get_flavor(flavor)
    id_factory = id_factory or _uuid
    clock = clock or _utcnow
    if preserve_connections is None:
        preserve_connections = settings.transform_preserve_connections

    graph = WorkflowGraph.from_payload(workflow)
    if locate_trigger(graph.nodes, flavor.trigger_type) is None:
        logger.info(f"No {flavor.name} trigger in workflow '{graph.name}', nothing to transform")
        return TransformResult(status="no_trigger", flavor=flavor.name, workflow=graph)

    step = "clone"
    try:
        working = graph.clone()

        step = "node_rewrite"
        trigger, webhook = rewrite_trigger_node(
            working, flavor.trigger_type, id_factory, response_node=flavor.response_path
        )
        generated_ids = {"webhook_path": webhook.webhookId, "webhook_node": webhook.id}

        step = "expression_rewrite"
        rewrite_expressions(working, trigger, flavor, webhook)

        if flavor.response_path:
            step = "response_path"
            respond = augment_response_path(working, id_factory, preserve_connections)
            generated_ids["respond_node"] = respond.id

        step = "rename"
        working.name = build_workflow_name(graph.name, flavor, clock())
    except FlowFrontError:
        logger.error(f"Transformation of '{graph.name}' aborted during {step}")
        raise
    except Exception as e:
        logger.error(f"Transformation of '{graph.name}' failed during {step}: {e}")
        raise TransformationError(
            f"Transformation failed during {step}: {e}",
            step=step,
            context=type(e).__name__
        ) from e

    dangling = working.dangling_edges()
    if dangling:
        logger.warning(
            f"{len(dangling)} connection(s) in '{working.name}' reference missing nodes: "
            f"{sorted({edge.node for _, _, edge in dangling})}"
        )

    logger.info(
        f"Transformed '{graph.name}' ({flavor.name}) -> '{working.name}', "
        f"webhook path {webhook.webhookId}"
    )
    return TransformResult(
        status="transformed",
        flavor=flavor.name,
        workflow=working,
        trigger_name=trigger.name,
        webhook_path=webhook.webhookId,
        generated_ids=generated_ids,
    )
