import asyncio
import json

import httpx
import pytest

from flowfront.core.client import N8NClient, N8NClientError, api_base_url, validate_url
from flowfront.models.workflow import WorkflowGraph
from flowfront.services.webhooks import (
    extract_chat_reply,
    invoke_chat_webhook,
    submit_form_webhook,
    webhook_url,
)
from flowfront.services.workflows import (
    create_workflow,
    deploy_transformation,
    fetch_workflow_by_name,
    list_trigger_workflows,
    preview_transformation,
)

from conftest import CHAT_TRIGGER, FORM_TRIGGER


def run(coro):
    return asyncio.run(coro)


def make_client(handler):
    return N8NClient(
        instance_url="http://n8n.test",
        api_key="secret",
        transport=httpx.MockTransport(handler),
    )


# =============================================================================
# URL HELPERS
# =============================================================================
def test_validate_url_strips_trailing_slash():
    assert validate_url("https://n8n.example.com/") == "https://n8n.example.com"


@pytest.mark.parametrize("url", ["", "n8n.example.com", "ftp://n8n.example.com", None])
def test_validate_url_rejects_non_http(url):
    with pytest.raises(ValueError):
        validate_url(url)


def test_api_base_url_is_not_doubled():
    assert api_base_url("http://n8n.test") == "http://n8n.test/api/v1/"
    assert api_base_url("http://n8n.test/api/v1/") == "http://n8n.test/api/v1/"


def test_webhook_url():
    assert webhook_url("http://n8n.test/", "abc") == "http://n8n.test/webhook/abc"


# =============================================================================
# N8N REST API
# =============================================================================
def test_fetch_workflow_by_name(chat_workflow):
    seen = []

    def handler(request):
        seen.append(request)
        if request.url.path == "/api/v1/workflows":
            return httpx.Response(200, json={"data": [
                {"id": "1", "name": "Other"},
                {"id": "7", "name": "Support Bot"},
            ]})
        assert request.url.path == "/api/v1/workflows/7"
        return httpx.Response(200, json={"id": "7", **chat_workflow})

    graph = run(fetch_workflow_by_name("Support Bot", make_client(handler)))

    assert isinstance(graph, WorkflowGraph)
    assert graph.name == "Support Bot"
    assert len(graph.nodes) == 4
    assert seen[0].headers["X-N8N-API-KEY"] == "secret"
    assert seen[0].url.params["limit"] == "100"


def test_fetch_unknown_workflow_is_404():
    client = make_client(lambda request: httpx.Response(200, json={"data": []}))

    with pytest.raises(N8NClientError) as exc:
        run(fetch_workflow_by_name("Missing", client))

    assert exc.value.status_code == 404
    assert "Missing" in exc.value.message


@pytest.mark.parametrize("status", [401, 403])
def test_auth_failures_are_reported_as_401(status):
    client = make_client(lambda request: httpx.Response(status, json={"message": "unauthorized"}))

    with pytest.raises(N8NClientError) as exc:
        run(client.get("workflows"))

    assert exc.value.status_code == 401
    assert exc.value.message == "Invalid API key or insufficient permissions"


def test_network_failure_is_503():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(N8NClientError) as exc:
        run(make_client(handler).get("workflows"))

    assert exc.value.status_code == 503


def test_create_workflow_sends_only_accepted_fields(chat_workflow):
    captured = {}

    def handler(request):
        captured["method"] = request.method
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, json={"id": "99", "name": captured["body"]["name"]})

    graph = WorkflowGraph.from_payload({**chat_workflow, "id": "1", "active": True, "tags": []})

    created = run(create_workflow(graph, make_client(handler)))

    assert created == {"id": "99", "name": "Support Bot"}
    assert captured["method"] == "POST"
    assert set(captured["body"]) == {"name", "nodes", "connections", "settings"}
    assert captured["body"]["settings"] == {"executionOrder": "v1"}


def test_list_trigger_workflows():
    summaries = [
        {"id": "1", "name": "Chat", "nodes": [{"type": CHAT_TRIGGER}]},
        {"id": "2", "name": "Form", "nodes": [{"type": FORM_TRIGGER}]},
        {"id": "3", "name": "Archived", "isArchived": True, "nodes": [{"type": CHAT_TRIGGER}]},
        {"id": "4", "name": "Cron", "nodes": [{"type": "n8n-nodes-base.scheduleTrigger"}]},
    ]
    client = make_client(lambda request: httpx.Response(200, json={"data": summaries, "nextCursor": "abc"}))

    listing = run(list_trigger_workflows(client))

    assert listing.workflowCount == 2
    assert listing.chatTriggerWorkflows.names == ["Chat"]
    assert listing.formTriggerWorkflows.names == ["Form"]
    assert listing.hasMore is True


# =============================================================================
# WEBHOOKS
# =============================================================================
@pytest.mark.parametrize("result, reply", [
    ("  plain  ", "plain"),
    ({"response": " hi "}, "hi"),
    ({"output": "from agent"}, "from agent"),
    ({"message": "m", "output": "o"}, "m"),
    ({"other": 1}, '{"other": 1}'),
])
def test_extract_chat_reply(result, reply):
    assert extract_chat_reply(result) == reply


def test_invoke_chat_webhook():
    captured = {}

    def handler(request):
        captured["body"] = json.loads(request.content)
        captured["agent"] = request.headers["user-agent"]
        return httpx.Response(200, json={"output": " Hello there ", "model": "gpt-4o-mini"})

    reply = run(invoke_chat_webhook(
        "http://n8n.test/webhook/abc", "  hi  ", session_id="s-1",
        transport=httpx.MockTransport(handler),
    ))

    assert reply["success"] is True
    assert reply["response"] == "Hello there"
    assert reply["metadata"]["webhookStatus"] == 200
    assert reply["metadata"]["model"] == "gpt-4o-mini"
    assert reply["rawResponse"] == {"output": " Hello there ", "model": "gpt-4o-mini"}
    assert captured["body"]["message"] == "hi"
    assert captured["body"]["sessionId"] == "s-1"
    assert "timestamp" in captured["body"]
    assert captured["agent"] == "FlowFront-ChatWebhook/1.0"


def test_chat_webhook_plain_text_reply():
    transport = httpx.MockTransport(lambda request: httpx.Response(200, text="just text"))

    reply = run(invoke_chat_webhook("http://n8n.test/webhook/abc", "hi", transport=transport))

    assert reply["response"] == "just text"
    assert reply["rawResponse"] == {"response": "just text"}


def test_chat_webhook_error_status_is_raised():
    transport = httpx.MockTransport(lambda request: httpx.Response(500, text="boom"))

    with pytest.raises(N8NClientError) as exc:
        run(invoke_chat_webhook("http://n8n.test/webhook/abc", "hi", transport=transport))

    assert exc.value.status_code == 500


@pytest.mark.parametrize("message", ["", "   "])
def test_chat_webhook_requires_message(message):
    with pytest.raises(ValueError):
        run(invoke_chat_webhook("http://n8n.test/webhook/abc", message))


def test_submit_form_webhook_is_always_multipart():
    captured = {}

    def handler(request):
        captured["content_type"] = request.headers["content-type"]
        captured["body"] = request.content.decode()
        return httpx.Response(200, json={"ok": True})

    result = run(submit_form_webhook(
        "http://n8n.test/webhook/form",
        {"Full_Name": "Ada Lovelace", "Tags": ["a", "b"]},
        workflow_name="Lead Form",
        transport=httpx.MockTransport(handler),
    ))

    assert result["success"] is True
    assert result["workflowResponse"] == {"ok": True}
    assert result["metadata"]["workflowName"] == "Lead Form"
    assert result["metadata"]["fieldsSubmitted"] == 2
    assert captured["content_type"].startswith("multipart/form-data")
    assert 'name="Full_Name"\r\n\r\nAda Lovelace' in captured["body"]
    assert 'name="Tags"\r\n\r\n["a", "b"]' in captured["body"]
    assert "filename=" not in captured["body"]


def test_submit_form_with_file_is_multipart():
    captured = {}

    def handler(request):
        captured["content_type"] = request.headers["content-type"]
        return httpx.Response(200, text="Workflow was started")

    result = run(submit_form_webhook(
        "http://n8n.test/webhook/form",
        {"Full_Name": "Ada"},
        files={"Attachment": ("cv.pdf", b"%PDF-1.4", "application/pdf")},
        transport=httpx.MockTransport(handler),
    ))

    assert captured["content_type"].startswith("multipart/form-data")
    assert result["workflowResponse"] == {"message": "Workflow was started"}
    assert result["metadata"]["fieldsSubmitted"] == 2


def test_submit_form_error_status_is_raised():
    transport = httpx.MockTransport(lambda request: httpx.Response(404, json={"message": "not registered"}))

    with pytest.raises(N8NClientError) as exc:
        run(submit_form_webhook("http://n8n.test/webhook/form", {}, transport=transport))

    assert exc.value.status_code == 404
    assert "not registered" in exc.value.context


def test_deploy_creates_and_activates(chat_workflow):
    calls = []

    def handler(request):
        calls.append((request.method, request.url.path))
        if request.url.path == "/api/v1/workflows" and request.method == "GET":
            return httpx.Response(200, json={"data": [{"id": "7", "name": "Support Bot"}]})
        if request.url.path == "/api/v1/workflows/7":
            return httpx.Response(200, json={"id": "7", **chat_workflow})
        if request.url.path == "/api/v1/workflows":
            body = json.loads(request.content)
            return httpx.Response(200, json={"id": "42", "name": body["name"]})
        return httpx.Response(200, json={"id": "42", "active": True})

    deploy = run(deploy_transformation("Support Bot", "chat", activate=True, client=make_client(handler)))

    assert calls[-2:] == [("POST", "/api/v1/workflows"), ("POST", "/api/v1/workflows/42/activate")]
    assert deploy.id == "42"
    assert deploy.active is True
    assert deploy.name.startswith("Support Bot-FLOW-FRONT-CHAT-date-")
    assert deploy.webhook_url.endswith(f"/webhook/{deploy.webhook_path}")
    assert deploy.editor_url.endswith("/workflow/42")
    assert deploy.node_count == 5


def test_deploy_without_trigger_is_rejected(form_workflow):
    def handler(request):
        if request.url.path == "/api/v1/workflows":
            return httpx.Response(200, json={"data": [{"id": "3", "name": "Lead Form"}]})
        return httpx.Response(200, json={"id": "3", **form_workflow})

    with pytest.raises(ValueError, match="no chat trigger"):
        run(deploy_transformation("Lead Form", "chat", client=make_client(handler)))


def test_preview_exposes_form_field_metadata(form_workflow):
    def handler(request):
        if request.url.path == "/api/v1/workflows":
            return httpx.Response(200, json={"data": [{"id": "3", "name": "Lead Form"}]})
        return httpx.Response(200, json={"id": "3", **form_workflow})

    preview = run(preview_transformation("Lead Form", "form", client=make_client(handler)))

    assert preview["status"] == "transformed"
    assert preview["source_trigger_type"] == FORM_TRIGGER
    assert preview["webhook_url"].endswith(f"/webhook/{preview['webhook_path']}")
    fields = preview["form"]["formFields"]
    assert fields[0]["webhook_key"] == "Full_Name"
    assert fields[2]["options"] == ["Sales", "Support"]
    assert fields[3]["accepted_file_types"] == [".pdf", ".png"]
    assert preview["field_mappings"][0] == {
        "source": '{{ $json["Full Name"] }}',
        "target": "{{ $json.body.Full_Name }}",
    }
    json.dumps(preview)
