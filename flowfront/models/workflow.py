"""
Workflow Graph Model - Pydantic Models
Typed view of an n8n workflow: nodes plus the name-keyed connection map.

Connection structure (simplified):
    {
      "NodeA": {
        "main": [                     # one list per output slot
          [{"node": "NodeB", "type": "main", "index": 0}, ...],
          [],
        ],
        "ai_languageModel": [...],
      },
    }
Keys are node *names*, so renaming a node must be mirrored into the keys and
into every edge that targets it.
"""
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from flowfront.core.errors import MalformedGraph


MAIN_PORT = "main"
LANGUAGE_MODEL_PORT = "ai_languageModel"


class Edge(BaseModel):
    """A single connection to a target node input."""
    model_config = ConfigDict(extra="allow")

    node: str
    type: str = MAIN_PORT
    index: int = 0


# source name -> port -> output slot -> edges
Connections = Dict[str, Dict[str, List[Optional[List[Edge]]]]]


class WorkflowNode(BaseModel):
    """A single node; unknown keys (credentials, notes, ...) are kept verbatim."""
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    name: str
    type: str
    typeVersion: Union[int, float] = 1
    position: Optional[List[Union[int, float]]] = Field(default_factory=lambda: [0, 0])
    parameters: Dict[str, Any] = Field(default_factory=dict)
    webhookId: Optional[str] = None


class WorkflowGraph(BaseModel):
    """The unit of transformation."""
    model_config = ConfigDict(extra="allow")

    name: str = ""
    nodes: List[WorkflowNode]
    connections: Connections = Field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: Any) -> "WorkflowGraph":
        """Validate a raw n8n workflow dict, failing closed on bad shapes."""
        if isinstance(payload, WorkflowGraph):
            return payload
        if not isinstance(payload, dict):
            raise MalformedGraph(
                f"Workflow must be a JSON object, got {type(payload).__name__}"
            )
        if not isinstance(payload.get("nodes"), list):
            raise MalformedGraph("Workflow nodes array is required")
        if payload.get("connections") is None and "connections" in payload:
            payload = {**payload, "connections": {}}
        try:
            return cls.model_validate(payload)
        except ValidationError as e:
            raise MalformedGraph(
                f"Invalid workflow structure: {e.error_count()} error(s)",
                context=str(e)
            )

    def to_payload(self) -> Dict[str, Any]:
        """Dump back to the n8n JSON shape without injecting defaults."""
        return self.model_dump(mode="json", exclude_unset=True)

    def clone(self) -> "WorkflowGraph":
        return self.model_copy(deep=True)

    def find_node(self, name: str) -> Optional[WorkflowNode]:
        for node in self.nodes:
            if node.name == name:
                return node
        return None

    def node_names(self) -> List[str]:
        return [node.name for node in self.nodes]

    def iter_edges(self) -> Iterator[Tuple[str, str, Edge]]:
        """Yield (source name, port, edge) for every edge in the map."""
        for source, ports in self.connections.items():
            for port, slots in ports.items():
                for slot in slots:
                    for edge in slot or []:
                        yield source, port, edge

    def dangling_edges(self) -> List[Tuple[str, str, Edge]]:
        """Edges whose source or target does not name an existing node."""
        names = set(self.node_names())
        return [
            (source, port, edge)
            for source, port, edge in self.iter_edges()
            if edge.node not in names or source not in names
        ]

    def rename_node(self, old: str, new: str) -> None:
        """Mirror a node rename into connection keys and edge targets."""
        if old == new:
            return
        if old in self.connections:
            self.connections = {
                (new if key == old else key): ports
                for key, ports in self.connections.items()
            }
        for _, _, edge in self.iter_edges():
            if edge.node == old:
                edge.node = new


def _type_suffix(node_type: str) -> str:
    return node_type.rsplit(".", 1)[-1]


def is_agent_type(node_type: str) -> bool:
    """Agent orchestrators (`@n8n/n8n-nodes-langchain.agent`), not agent tools."""
    suffix = _type_suffix(node_type)
    return "agent" in suffix.lower() and not suffix.endswith("Tool")


def is_language_model_type(node_type: str) -> bool:
    """Model providers such as `lmChatOpenAi` or `lmOllama`."""
    return _type_suffix(node_type).startswith("lm")
