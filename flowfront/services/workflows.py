"""
Workflow Service - Fetch, Transform, Deploy
Finds a workflow on the n8n instance, rewrites its trigger and creates the
webhook-fronted copy. The source workflow is never modified on the server.
"""
import json
from typing import Any, Dict, Optional

from flowfront.core.client import N8NClient, N8NClientError, get_client, safe_tool
from flowfront.core.config import settings
from flowfront.core.errors import ExtractionError
from flowfront.core.logging import workflows_logger as logger
from flowfront.models.schemas import (
    DeployResult,
    TriggerWorkflowGroup,
    TriggerWorkflowListing,
)
from flowfront.models.workflow import WorkflowGraph
from flowfront.services.extractors import (
    extract_chat_settings,
    extract_form_settings,
    field_mappings,
)
from flowfront.services.locator import get_trigger_type, group_by_trigger_type
from flowfront.services.transformer import get_flavor, transform
from flowfront.services.webhooks import webhook_url


async def list_trigger_workflows(client: Optional[N8NClient] = None) -> TriggerWorkflowListing:
    """Names of the chat- and form-triggered workflows on the instance."""
    client = client or get_client()
    data = await client.get("workflows", params={"limit": settings.workflow_list_limit})
    workflows = data.get("data", [])
    groups = group_by_trigger_type(workflows)

    chat = [wf.get("name") for wf in groups["chat"]]
    form = [wf.get("name") for wf in groups["form"]]
    logger.info(f"Found {len(chat)} chat and {len(form)} form workflows")

    return TriggerWorkflowListing(
        workflowCount=len(chat) + len(form),
        chatTriggerWorkflows=TriggerWorkflowGroup(count=len(chat), names=chat),
        formTriggerWorkflows=TriggerWorkflowGroup(count=len(form), names=form),
        hasMore=bool(data.get("nextCursor"))
    )


async def fetch_workflow_by_name(name: str, client: Optional[N8NClient] = None) -> WorkflowGraph:
    """
    Look a workflow up by exact name, then fetch its full definition.

    Raises:
        N8NClientError: 404 when no workflow has that name, or any API failure.
    """
    client = client or get_client()
    logger.info(f"Finding workflow by name: {name}")
    data = await client.get("workflows", params={"limit": settings.workflow_list_limit})

    target = next((wf for wf in data.get("data", []) if wf.get("name") == name), None)
    if target is None:
        raise N8NClientError(status_code=404, message=f'Workflow "{name}" not found')

    workflow = await client.get(f"workflows/{target['id']}")
    logger.info(f"Fetched workflow '{name}' ({len(workflow.get('nodes') or [])} nodes)")
    return WorkflowGraph.from_payload(workflow)


async def create_workflow(graph: WorkflowGraph, client: Optional[N8NClient] = None) -> Dict[str, Any]:
    """Create a new workflow, sending only the fields n8n accepts on create."""
    client = client or get_client()
    payload = graph.to_payload()
    clean = {
        "name": payload.get("name"),
        "nodes": payload.get("nodes", []),
        "connections": payload.get("connections") or {},
        "settings": payload.get("settings") or {}
    }
    if not clean["name"]:
        raise ValueError("Workflow name is required")

    logger.info(f"Creating workflow '{clean['name']}' with {len(clean['nodes'])} nodes")
    return await client.post("workflows", json_data=clean)


def _describe_trigger(graph: WorkflowGraph, flavor: str) -> Dict[str, Any]:
    """Flavor-specific trigger projection; shape problems are reported, not raised."""
    try:
        if flavor == "chat":
            chat = extract_chat_settings(graph)
            return {"chat": chat.model_dump(exclude_none=True) if chat else None}
        form = extract_form_settings(graph)
        if form is None:
            return {"form": None}
        return {
            "form": form.model_dump(exclude_none=True),
            "field_mappings": [m.model_dump() for m in field_mappings(form)]
        }
    except ExtractionError as e:
        logger.warning(f"Trigger extraction failed: {e.message}")
        return {"extraction_error": e.to_dict()}


async def preview_transformation(
    name: str,
    flavor: str,
    client: Optional[N8NClient] = None
) -> Dict[str, Any]:
    """Fetch a workflow and show its transformed version without creating it."""
    flavor = get_flavor(flavor).name
    client = client or get_client()
    source = await fetch_workflow_by_name(name, client)
    result = transform(source, flavor)

    preview = result.to_dict()
    preview["source_trigger_type"] = get_trigger_type(source)
    preview.update(_describe_trigger(source, flavor))
    if result.transformed:
        preview["webhook_url"] = webhook_url(settings.instance_url, result.webhook_path)
        preview["method"] = "POST"
    return preview


async def deploy_transformation(
    name: str,
    flavor: str,
    activate: bool = False,
    client: Optional[N8NClient] = None
) -> DeployResult:
    """
    Create the webhook-fronted copy of a workflow.

    With `activate` the copy is switched on right away so its production
    webhook URL answers immediately.

    Raises:
        ValueError: the workflow has no trigger of the requested flavor.
    """
    client = client or get_client()
    source = await fetch_workflow_by_name(name, client)
    result = transform(source, flavor)
    if not result.transformed:
        raise ValueError(f"Workflow '{name}' has no {result.flavor} trigger to transform")

    created = await create_workflow(result.workflow, client)
    workflow_id = str(created.get("id", ""))
    if activate:
        logger.info(f"Activating workflow: {workflow_id}")
        await client.post(f"workflows/{workflow_id}/activate")

    deploy = DeployResult(
        status="success",
        action="created",
        id=workflow_id,
        name=created.get("name", result.workflow.name),
        webhook_path=result.webhook_path,
        webhook_url=webhook_url(settings.instance_url, result.webhook_path),
        editor_url=f"{settings.n8n_editor_url.rstrip('/')}/workflow/{workflow_id}",
        node_count=len(result.workflow.nodes),
        active=activate
    )
    logger.info(f"Workflow created: {deploy.id} -> {deploy.webhook_url}")
    return deploy


# =============================================================================
# MCP TOOLS
# =============================================================================
@safe_tool
async def list_frontable_workflows() -> str:
    """
    List the workflows that start with a chat or form trigger.

    Returns:
        JSON string with counts and names per trigger type.
    """
    listing = await list_trigger_workflows()
    return json.dumps({"status": "success", **listing.model_dump()}, indent=2)


@safe_tool
async def preview_workflow_transformation(workflow_name: str, flavor: str = "chat") -> str:
    """
    Show the webhook version of a chat- or form-triggered workflow.

    Args:
        workflow_name: Exact name of the workflow on the n8n instance.
        flavor: "chat" or "form".

    Returns:
        JSON string with the transformed workflow, webhook URL and trigger settings.
    """
    preview = await preview_transformation(workflow_name, flavor)
    return json.dumps(preview, indent=2)


@safe_tool
async def deploy_workflow_transformation(workflow_name: str, flavor: str = "chat", activate: bool = False) -> str:
    """
    Create the webhook-fronted copy of a workflow on the n8n instance.

    Args:
        workflow_name: Exact name of the source workflow.
        flavor: "chat" or "form".
        activate: Switch the new workflow on after creating it.

    Returns:
        JSON string with the new workflow id, webhook URL and editor URL.
    """
    deploy = await deploy_transformation(workflow_name, flavor, activate)
    return json.dumps(deploy.model_dump(), indent=2)


@safe_tool
async def transform_workflow_json(workflow: str, flavor: str = "chat") -> str:
    """
    Transform a pasted workflow JSON without touching the n8n instance.

    Args:
        workflow: Workflow JSON as exported from the n8n editor.
        flavor: "chat" or "form".
    """
    try:
        payload = json.loads(workflow) if isinstance(workflow, str) else workflow
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in 'workflow': {e.msg} at line {e.lineno}, column {e.colno}")
    result = transform(payload, flavor)
    return json.dumps(result.to_dict(), indent=2)
