"""
Trigger Extraction Service
Read-only projections of chat and form triggers for widget rendering and
schema-driven forms.
"""
from typing import Any, Dict, List, Optional, Set, Union

from pydantic import ValidationError

from flowfront.core.errors import ExtractionError
from flowfront.core.logging import extract_logger as logger
from flowfront.models.schemas import (
    ChatBehaviour,
    ChatSettings,
    ConnectedNode,
    ConnectedNodes,
    FieldMapping,
    FormField,
    FormSettings,
    MemorySettings,
    ModelSettings,
)
from flowfront.models.workflow import WorkflowGraph, is_agent_type
from flowfront.services.locator import TRIGGER_TYPES, locate_trigger


def _value(param: Any) -> Any:
    """n8n resource locators wrap values as {"value": ...}."""
    if isinstance(param, dict) and "value" in param:
        return param["value"]
    return param


def _first(*values: Any) -> Any:
    """First truthy value, mirroring `a || b || c`."""
    for value in values:
        if value:
            return value
    return None


def _text(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return value if isinstance(value, str) else str(value)


def _is_model_type(node_type: str) -> bool:
    return "lm" in node_type or "Chat" in node_type or "openai" in node_type


def analyze_connected_nodes(trigger_name: str, graph: WorkflowGraph) -> Optional[ConnectedNodes]:
    """Classify the nodes fed directly by the trigger into models and agents."""
    ports = graph.connections.get(trigger_name)
    if not ports:
        return None

    targets: Set[str] = set()
    for slots in ports.values():
        for slot in slots:
            for edge in slot or []:
                targets.add(edge.node)

    ai_models: List[ConnectedNode] = []
    agents: List[ConnectedNode] = []
    for node in graph.nodes:
        if node.name not in targets:
            continue
        if _is_model_type(node.type):
            ai_models.append(ConnectedNode(
                name=node.name,
                type=node.type,
                model=_value(node.parameters.get("model")),
                settings=node.parameters,
            ))
        elif is_agent_type(node.type):
            agents.append(ConnectedNode(name=node.name, type=node.type, settings=node.parameters))

    return ConnectedNodes(aiModels=ai_models or None, agents=agents or None)


def extract_chat_settings(workflow: Union[WorkflowGraph, Dict[str, Any]]) -> Optional[ChatSettings]:
    """
    Project the chat trigger's parameters for the chat widget.

    Returns None when the workflow has no chat trigger. Optional sections are
    only filled when at least one of their values is present.
    """
    graph = WorkflowGraph.from_payload(workflow)
    trigger = locate_trigger(graph.nodes, TRIGGER_TYPES["chat"])
    if trigger is None:
        return None

    node = trigger.node
    params = node.parameters
    options = params.get("options") if isinstance(params.get("options"), dict) else {}

    model_settings = ModelSettings(
        temperature=options.get("temperature"),
        maxTokens=_first(options.get("maxTokens"), options.get("maxOutputTokens")),
        topP=options.get("topP"),
        frequencyPenalty=options.get("frequencyPenalty"),
        presencePenalty=options.get("presencePenalty"),
    )
    memory_settings = MemorySettings(
        type=_value(params.get("memory")),
        maxMessages=_first(options.get("maxMessages"), params.get("maxMessages")),
        returnMessages=_first(options.get("returnMessages"), params.get("returnMessages")),
    )
    chat_behaviour = ChatBehaviour(
        responseMode=_value(params.get("responseMode")),
        sessionIdExpression=_text(_first(params.get("sessionIdExpression"), params.get("sessionId"))),
    )

    def _present(model) -> bool:
        return any(v is not None for v in model.model_dump().values())

    settings = ChatSettings(
        chatTitle=node.name or "Chat Interface",
        webhookId=node.webhookId,
        isPublic=params.get("public"),
        triggerType=node.type,
        typeVersion=node.typeVersion,
        nodeId=node.id,
        chatDescription=_text(_first(params.get("description"), params.get("chatDescription"))),
        chatModel=_value(params.get("model")) or None,
        modelSettings=model_settings if _present(model_settings) else None,
        systemMessage=_text(_first(_value(params.get("systemMessage")), params.get("prompt"))),
        memorySettings=memory_settings if _present(memory_settings) else None,
        promptTemplate=_text(_value(params.get("promptTemplate"))),
        chatSettings=chat_behaviour if _present(chat_behaviour) else None,
        connectedNodes=analyze_connected_nodes(node.name, graph),
        rawParameters=params,
    )
    logger.info(f"Extracted chat settings from trigger '{node.name}'")
    return settings


def form_fields_from_parameters(params: Dict[str, Any]) -> List[FormField]:
    """Parse `formFields.values`, skipping entries that are not valid fields."""
    form_fields = params.get("formFields")
    values = form_fields.get("values") if isinstance(form_fields, dict) else None
    fields = []
    for raw in values or []:
        try:
            fields.append(FormField.model_validate(raw))
        except ValidationError as e:
            logger.warning(f"Skipping malformed form field {raw!r}: {e.error_count()} error(s)")
    return fields


def extract_form_settings(workflow: Union[WorkflowGraph, Dict[str, Any]]) -> Optional[FormSettings]:
    """
    Project the form trigger's title, description and ordered field list.

    Returns None when the workflow has no form trigger.

    Raises:
        ExtractionError: the trigger has no `formTitle` or no `formFields.values`.
    """
    graph = WorkflowGraph.from_payload(workflow)
    trigger = locate_trigger(graph.nodes, TRIGGER_TYPES["form"])
    if trigger is None:
        return None

    params = trigger.parameters
    form_fields = params.get("formFields")
    if not params.get("formTitle") or not isinstance(form_fields, dict) or not form_fields.get("values"):
        raise ExtractionError(
            f"Form trigger '{trigger.name}' has no title or field list",
            raw=params
        )

    try:
        settings = FormSettings(
            formTitle=params["formTitle"],
            formDescription=params.get("formDescription") or "",
            formFields=form_fields["values"],
        )
    except ValidationError as e:
        raise ExtractionError(
            f"Form trigger '{trigger.name}' has malformed fields",
            raw=params,
            context=str(e)
        )

    logger.info(f"Extracted {len(settings.formFields)} form field(s) from '{trigger.name}'")
    return settings


def field_mappings(form: FormSettings) -> List[FieldMapping]:
    """How each form field is addressed before and after the rewrite."""
    return [
        FieldMapping(
            source='{{ $json["%s"] }}' % field.fieldLabel,
            target="{{ $json.body.%s }}" % field.webhook_key,
        )
        for field in form.formFields
    ]
