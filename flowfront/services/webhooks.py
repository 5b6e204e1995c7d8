"""
Webhook Gateway Service
Drives a transformed workflow through its webhook: chat messages and form submissions.
"""
import json
import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

import httpx

from flowfront.core.client import N8NClientError, validate_url
from flowfront.core.config import settings
from flowfront.core.logging import webhooks_logger as logger


USER_AGENT = "FlowFront-ChatWebhook/1.0"
CHAT_REPLY_KEYS = ("response", "message", "text", "output")

# filename, content, content type
UploadFile = Tuple[str, bytes, str]


def webhook_url(instance_url: str, path: str) -> str:
    """Public production URL of a webhook path on an n8n instance."""
    return f"{validate_url(instance_url, 'instance URL')}/webhook/{path}"


def _iso_now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _parse_body(response: httpx.Response) -> Any:
    """JSON when the server says so and it parses, else {"response": text}."""
    if "application/json" in response.headers.get("content-type", ""):
        try:
            return response.json()
        except ValueError:
            pass
    return {"response": response.text}


def extract_chat_reply(result: Any) -> str:
    """Pick the agent's answer out of the common n8n response shapes."""
    if isinstance(result, str):
        return result.strip()
    if isinstance(result, dict):
        for key in CHAT_REPLY_KEYS:
            if isinstance(result.get(key), str):
                return result[key].strip()
    return json.dumps(result)


async def invoke_chat_webhook(
    url: str,
    message: str,
    session_id: Optional[str] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None
) -> Dict[str, Any]:
    """
    Send one chat message to a transformed chat workflow.

    Args:
        url: Webhook URL of the transformed workflow.
        message: User message; sent trimmed.
        session_id: Optional session id forwarded as `sessionId`.

    Returns:
        Dict with the reply text, timing metadata and the raw n8n response.
    """
    url = validate_url(url, "webhookUrl")
    if not isinstance(message, str) or not message.strip():
        raise ValueError("message is required and must be a non-empty string")

    payload = {"message": message.strip(), "timestamp": _iso_now()}
    if session_id:
        payload["sessionId"] = session_id

    logger.info(f"Sending chat message to {url}")
    started = time.monotonic()
    try:
        async with httpx.AsyncClient(timeout=settings.http_timeout, transport=transport) as client:
            response = await client.post(url, json=payload, headers={"User-Agent": USER_AGENT})
    except httpx.RequestError as e:
        raise N8NClientError(
            status_code=502,
            message="Failed to connect to the webhook URL",
            context=str(e)
        )
    elapsed_ms = int((time.monotonic() - started) * 1000)

    if response.is_error:
        raise N8NClientError(
            status_code=response.status_code,
            message=f"n8n webhook returned error: {response.status_code} {response.reason_phrase}",
            context=f"processingTime={elapsed_ms}ms"
        )

    result = _parse_body(response)
    metadata = {
        "processingTime": f"{elapsed_ms}ms",
        "timestamp": _iso_now(),
        "webhookStatus": response.status_code
    }
    if isinstance(result, dict):
        for key in ("model", "cost"):
            if result.get(key):
                metadata[key] = result[key]

    logger.info(f"Chat reply received in {elapsed_ms}ms")
    return {
        "success": True,
        "response": extract_chat_reply(result),
        "metadata": metadata,
        "rawResponse": result
    }


async def submit_form_webhook(
    url: str,
    fields: Dict[str, Any],
    files: Optional[Dict[str, UploadFile]] = None,
    workflow_name: Optional[str] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None
) -> Dict[str, Any]:
    """
    Submit form values as multipart form data to a transformed form workflow.

    Field keys should already be the underscore-joined webhook keys.
    """
    url = validate_url(url, "webhookUrl")
    data = {key: value if isinstance(value, str) else json.dumps(value) for key, value in fields.items()}

    # (None, value) parts are plain fields without a filename
    parts = [(key, (None, value.encode("utf-8"))) for key, value in data.items()]
    parts.extend((files or {}).items())

    logger.info(f"Submitting {len(data)} field(s) and {len(files or {})} file(s) to {url}")
    try:
        async with httpx.AsyncClient(timeout=settings.http_timeout, transport=transport) as client:
            response = await client.post(url, files=parts)
    except httpx.RequestError as e:
        raise N8NClientError(
            status_code=502,
            message="Failed to connect to webhook URL. Please check if the URL is correct and accessible.",
            context=str(e)
        )

    try:
        result = response.json()
    except ValueError:
        result = {"message": response.text}

    if response.is_error:
        raise N8NClientError(
            status_code=response.status_code,
            message=f"Webhook returned error: {response.status_code}",
            context=json.dumps(result)
        )

    return {
        "success": True,
        "message": "Form submitted successfully to n8n workflow",
        "workflowResponse": result,
        "metadata": {
            "workflowName": workflow_name,
            "submittedAt": _iso_now(),
            "fieldsSubmitted": len(data) + len(files or {})
        }
    }
