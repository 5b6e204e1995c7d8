"""
Data Contracts - Pydantic Models
Defines the structures exchanged between the engine, the n8n API and the UI.
"""
import re
from typing import List, Dict, Any, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field, computed_field

from flowfront.models.workflow import WorkflowGraph


def to_webhook_key(label: str) -> str:
    """Form labels become underscore-joined keys in the webhook body."""
    return re.sub(r"\s+", "_", label)


# =============================================================================
# CHAT TRIGGER PROJECTION
# =============================================================================
class ModelSettings(BaseModel):
    temperature: Optional[Any] = None
    maxTokens: Optional[Any] = None
    topP: Optional[Any] = None
    frequencyPenalty: Optional[Any] = None
    presencePenalty: Optional[Any] = None


class MemorySettings(BaseModel):
    type: Optional[Any] = None
    maxMessages: Optional[Any] = None
    returnMessages: Optional[Any] = None


class ChatBehaviour(BaseModel):
    responseMode: Optional[Any] = None
    sessionIdExpression: Optional[str] = None


class ConnectedNode(BaseModel):
    """A node fed directly by the trigger."""
    name: str
    type: str
    model: Optional[Any] = None
    settings: Dict[str, Any] = Field(default_factory=dict)


class ConnectedNodes(BaseModel):
    aiModels: Optional[List[ConnectedNode]] = None
    agents: Optional[List[ConnectedNode]] = None


class ChatSettings(BaseModel):
    """Read-only projection of a chat trigger for the chat widget."""
    chatTitle: str
    webhookId: Optional[str] = None
    isPublic: Optional[Any] = None
    triggerType: str
    typeVersion: Optional[float] = None
    nodeId: Optional[str] = None

    chatDescription: Optional[str] = None
    chatModel: Optional[Any] = None
    modelSettings: Optional[ModelSettings] = None
    systemMessage: Optional[str] = None
    memorySettings: Optional[MemorySettings] = None
    promptTemplate: Optional[str] = None
    chatSettings: Optional[ChatBehaviour] = None
    connectedNodes: Optional[ConnectedNodes] = None

    rawParameters: Dict[str, Any] = Field(default_factory=dict)


# =============================================================================
# FORM TRIGGER PROJECTION
# =============================================================================
class FieldOption(BaseModel):
    option: str


class FieldOptions(BaseModel):
    values: List[FieldOption] = Field(default_factory=list)


class FormField(BaseModel):
    """A single form trigger field as declared in `formFields.values`."""
    model_config = ConfigDict(extra="allow")

    fieldLabel: str
    fieldType: str = "text"
    requiredField: bool = False
    placeholder: Optional[str] = None
    multipleFiles: Optional[bool] = None
    acceptFileTypes: Optional[str] = None
    fieldOptions: Optional[FieldOptions] = None

    @computed_field
    @property
    def webhook_key(self) -> str:
        return to_webhook_key(self.fieldLabel)

    @computed_field
    @property
    def options(self) -> List[str]:
        if not self.fieldOptions:
            return []
        return [value.option for value in self.fieldOptions.values]

    @computed_field
    @property
    def accepted_file_types(self) -> List[str]:
        if not self.acceptFileTypes:
            return []
        return [t.strip().lower() for t in self.acceptFileTypes.split(",") if t.strip()]


class FormSettings(BaseModel):
    """Read-only projection of a form trigger for schema-driven forms."""
    formTitle: str
    formDescription: str = ""
    formFields: List[FormField]


class FieldMapping(BaseModel):
    source: str
    target: str


# =============================================================================
# TRANSFORMATION OUTCOME
# =============================================================================
class TransformResult(BaseModel):
    """Outcome of a transformation; `no_trigger` is a normal result."""
    status: Literal["transformed", "no_trigger"]
    flavor: str
    workflow: WorkflowGraph
    trigger_name: Optional[str] = None
    webhook_path: Optional[str] = None
    generated_ids: Dict[str, str] = Field(default_factory=dict)

    @property
    def transformed(self) -> bool:
        return self.status == "transformed"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "flavor": self.flavor,
            "trigger_name": self.trigger_name,
            "webhook_path": self.webhook_path,
            "generated_ids": dict(self.generated_ids),
            "workflow": self.workflow.to_payload()
        }


class DeployResult(BaseModel):
    """Result of creating the transformed workflow on the server."""
    status: str
    action: str
    id: str
    name: str
    webhook_path: str
    webhook_url: str
    editor_url: str
    node_count: int
    active: bool = False


class TriggerWorkflowGroup(BaseModel):
    count: int = 0
    names: List[str] = Field(default_factory=list)


class TriggerWorkflowListing(BaseModel):
    """Workflows that can be fronted, grouped by trigger type."""
    workflowCount: int
    chatTriggerWorkflows: TriggerWorkflowGroup
    formTriggerWorkflows: TriggerWorkflowGroup
    hasMore: bool = False


class ChatRequest(BaseModel):
    webhook_url: str
    message: str
    session_id: Optional[str] = None


class FormRequest(BaseModel):
    webhook_url: str
    fields: Dict[str, Any] = Field(default_factory=dict)
    workflow_name: Optional[str] = None
