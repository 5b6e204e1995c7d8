import itertools
from datetime import datetime, timezone

import pytest


CHAT_TRIGGER = "@n8n/n8n-nodes-langchain.chatTrigger"
FORM_TRIGGER = "n8n-nodes-base.formTrigger"
AGENT = "@n8n/n8n-nodes-langchain.agent"
OPENAI_MODEL = "@n8n/n8n-nodes-langchain.lmChatOpenAi"

FIXED_NOW = datetime(2024, 5, 1, 10, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def id_factory():
    """Deterministic ids: id-1, id-2, ... in call order."""
    counter = itertools.count(1)
    return lambda: f"id-{next(counter)}"


@pytest.fixture
def clock():
    return lambda: FIXED_NOW


@pytest.fixture
def chat_workflow():
    return {
        "name": "Support Bot",
        "nodes": [
            {
                "parameters": {"public": True, "options": {}},
                "type": CHAT_TRIGGER,
                "typeVersion": 1.1,
                "position": [0, 0],
                "id": "trigger-1",
                "name": "When chat message received",
                "webhookId": "chat-hook-1",
            },
            {
                "parameters": {
                    "promptType": "auto",
                    "text": "={{ $json.message }}",
                    "options": {"maxIterations": 5},
                },
                "type": AGENT,
                "typeVersion": 1.8,
                "position": [220, 0],
                "id": "agent-1",
                "name": "AI Agent",
            },
            {
                "parameters": {
                    "model": {"__rl": True, "value": "gpt-4o-mini", "mode": "list"},
                    "options": {},
                },
                "type": OPENAI_MODEL,
                "typeVersion": 1.2,
                "position": [200, 220],
                "id": "lm-1",
                "name": "OpenAI Chat Model",
                "credentials": {"openAiApi": {"id": "cred-1", "name": "OpenAI account"}},
            },
            {
                "parameters": {
                    "sessionKey": "={{ $('When chat message received').item.json.sessionId }}",
                    "contextWindowLength": 10,
                },
                "type": "@n8n/n8n-nodes-langchain.memoryBufferWindow",
                "typeVersion": 1.3,
                "position": [340, 220],
                "id": "memory-1",
                "name": "Simple Memory",
            },
        ],
        "connections": {
            "When chat message received": {
                "main": [[{"node": "AI Agent", "type": "main", "index": 0}]]
            },
            "OpenAI Chat Model": {
                "ai_languageModel": [[{"node": "AI Agent", "type": "ai_languageModel", "index": 0}]]
            },
            "Simple Memory": {
                "ai_memory": [[{"node": "AI Agent", "type": "ai_memory", "index": 0}]]
            },
        },
        "settings": {"executionOrder": "v1"},
    }


@pytest.fixture
def form_workflow():
    return {
        "name": "Lead Form",
        "nodes": [
            {
                "parameters": {
                    "formTitle": "Contact us",
                    "formDescription": "We reply within a day",
                    "formFields": {
                        "values": [
                            {"fieldLabel": "Full Name", "requiredField": True},
                            {"fieldLabel": "Email", "fieldType": "email", "requiredField": True},
                            {
                                "fieldLabel": "Topic",
                                "fieldType": "dropdown",
                                "fieldOptions": {"values": [{"option": "Sales"}, {"option": "Support"}]},
                            },
                            {"fieldLabel": "Attachment", "fieldType": "file", "acceptFileTypes": ".pdf, .PNG"},
                        ]
                    },
                    "options": {},
                },
                "type": FORM_TRIGGER,
                "typeVersion": 2.2,
                "position": [-40, 100],
                "id": "form-1",
                "name": "On form submission",
                "webhookId": "form-hook-1",
            },
            {
                "parameters": {
                    "sendTo": "={{ $json.Email }}",
                    "subject": '={{ $json["Full Name"] }}',
                    "message": "=Topic: {{ $('On form submission').item.json.Topic }}",
                    "options": {},
                },
                "type": "n8n-nodes-base.gmail",
                "typeVersion": 2.1,
                "position": [200, 100],
                "id": "mail-1",
                "name": "Send Email",
            },
            {
                "parameters": {
                    "assignments": {
                        "assignments": [
                            {
                                "id": "a1",
                                "name": "name",
                                "value": "={{ $('On form submission').last().json['Full Name'] }}",
                                "type": "string",
                            }
                        ]
                    },
                    "options": {},
                },
                "type": "n8n-nodes-base.set",
                "typeVersion": 3.4,
                "position": [400, 100],
                "id": "set-1",
                "name": "Edit Fields",
            },
        ],
        "connections": {
            "On form submission": {
                "main": [[{"node": "Send Email", "type": "main", "index": 0}]]
            },
            "Send Email": {
                "main": [[{"node": "Edit Fields", "type": "main", "index": 0}]]
            },
        },
    }
