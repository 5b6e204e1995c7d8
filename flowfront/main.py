"""
Main Application Gateway
Exposes workflow transformation and webhook tools via FastAPI and FastMCP.
"""
import json
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from fastmcp import FastMCP

from flowfront.core.config import settings
from flowfront.core.client import N8NClientError, get_client, safe_tool
from flowfront.core.errors import FlowFrontError
from flowfront.core.logging import gateway_logger as logger
from flowfront.models.schemas import ChatRequest, FormRequest
from flowfront.services.transformer import transform
from flowfront.services.webhooks import invoke_chat_webhook, submit_form_webhook
from flowfront.services.workflows import (
    deploy_transformation,
    deploy_workflow_transformation,
    list_frontable_workflows,
    list_trigger_workflows,
    preview_transformation,
    preview_workflow_transformation,
    transform_workflow_json,
)


VERSION = "1.0.0"


# =============================================================================
# LIFESPAN MANAGER
# =============================================================================
@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manages the application lifecycle.
    - Startup: Log configuration
    - Shutdown: Close HTTP client
    """
    logger.info("=" * 60)
    logger.info("FlowFront Server Starting")
    logger.info(f"n8n API: {settings.api_url}")
    logger.info(f"Editor: {settings.n8n_editor_url}")
    logger.info(f"Webhooks: {settings.instance_url}/webhook/")
    logger.info("=" * 60)

    yield

    # Cleanup
    client = get_client()
    await client.close()
    logger.info("FlowFront Server Shutdown")


# =============================================================================
# FASTAPI APP INITIALIZATION
# =============================================================================
app = FastAPI(
    title="FlowFront API",
    description="Turns n8n chat and form workflows into webhook-driven workflows.",
    version=VERSION,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# EXCEPTION HANDLERS
# =============================================================================
def _envelope(request: Request, code: int, message: str, **extra: Any) -> JSONResponse:
    content = {
        "status": "error",
        "code": code,
        "message": message,
        "path": str(request.url.path)
    }
    content.update(extra)
    return JSONResponse(status_code=code, content=content)


@app.exception_handler(N8NClientError)
async def n8n_error_handler(request: Request, exc: N8NClientError):
    logger.warning(f"n8n error on {request.url.path}: {exc.message}")
    return _envelope(request, exc.status_code, exc.message, context=exc.context)


@app.exception_handler(FlowFrontError)
async def engine_error_handler(request: Request, exc: FlowFrontError):
    logger.warning(f"Engine error on {request.url.path}: {exc.message}")
    data = exc.to_dict()
    data.pop("status")
    data.pop("code")
    data.pop("message")
    return _envelope(request, exc.code, exc.message, **data)


@app.exception_handler(ValueError)
async def validation_error_handler(request: Request, exc: ValueError):
    return _envelope(request, 400, f"Validation Error: {exc}")


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """
    Catches any unhandled error and returns it in Envelope format.
    """
    logger.error(f"Unhandled exception: {str(exc)}")
    return _envelope(request, 500, str(exc))


# =============================================================================
# HEALTH & INFO ENDPOINTS
# =============================================================================
@app.get("/health")
async def health_check():
    """Check server and n8n connectivity status."""
    try:
        client = get_client()
        await client.get("workflows", params={"limit": 1})
        n8n_status = "connected"
    except Exception as e:
        n8n_status = f"error: {str(e)[:50]}"

    return {
        "status": "healthy",
        "n8n_connection": n8n_status,
        "version": VERSION
    }


@app.get("/info")
async def server_info():
    """Get server configuration info."""
    return {
        "name": "FlowFront",
        "version": VERSION,
        "n8n_base_url": settings.n8n_base_url,
        "n8n_editor_url": settings.n8n_editor_url,
        "webhook_base_url": settings.instance_url,
        "preserve_connections": settings.transform_preserve_connections
    }


# =============================================================================
# WORKFLOW ENDPOINTS
# =============================================================================
@app.get("/workflows")
async def get_workflows():
    listing = await list_trigger_workflows()
    return {"success": True, **listing.model_dump()}


@app.get("/workflows/{name}/transform/{flavor}")
async def get_transformation(name: str, flavor: str):
    return await preview_transformation(name, flavor)


@app.post("/workflows/{name}/deploy/{flavor}")
async def post_deploy(name: str, flavor: str, activate: bool = False):
    deploy = await deploy_transformation(name, flavor, activate)
    return {"success": True, "workflow": deploy.model_dump()}


@app.post("/transform/{flavor}")
async def post_transform(flavor: str, workflow: Dict[str, Any]):
    """Transform a workflow JSON sent in the request body."""
    result = transform(workflow, flavor)
    return result.to_dict()


# =============================================================================
# WEBHOOK ENDPOINTS
# =============================================================================
@app.post("/chat")
async def post_chat(body: ChatRequest):
    return await invoke_chat_webhook(body.webhook_url, body.message, body.session_id)


@app.post("/form")
async def post_form(body: FormRequest):
    return await submit_form_webhook(body.webhook_url, body.fields, workflow_name=body.workflow_name)


# =============================================================================
# FASTMCP SERVER INITIALIZATION
# =============================================================================
mcp = FastMCP("FlowFront")

# --- Register Transformation Tools ---
mcp.tool()(list_frontable_workflows)
mcp.tool()(preview_workflow_transformation)
mcp.tool()(deploy_workflow_transformation)
mcp.tool()(transform_workflow_json)


# =============================================================================
# WEBHOOK TOOLS
# =============================================================================
@mcp.tool()
@safe_tool
async def send_chat_message(webhook_url: str, message: str, session_id: Optional[str] = None) -> str:
    """Send a chat message to a transformed chat workflow and return its reply."""
    reply = await invoke_chat_webhook(webhook_url, message, session_id)
    return json.dumps(reply, indent=2)


@mcp.tool()
@safe_tool
async def submit_form(webhook_url: str, fields: Dict[str, Any]) -> str:
    """Submit form values (keyed by underscore-joined labels) to a transformed form workflow."""
    result = await submit_form_webhook(webhook_url, fields)
    return json.dumps(result, indent=2)


def get_mcp() -> FastMCP:
    """Get the FastMCP server instance."""
    return mcp


def get_app() -> FastAPI:
    """Get the FastAPI app instance."""
    return app


if __name__ == "__main__":
    mcp.run()
