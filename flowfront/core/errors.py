"""
Engine Errors
Exceptions raised by the transformation engine and the trigger extractors.
"""
from typing import Any, Dict, Optional


class FlowFrontError(Exception):
    """Base class for engine errors, serializable into the API envelope."""
    code = 400
    kind = "error"

    def __init__(self, message: str, context: str = ""):
        self.message = message
        self.context = context
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": "error",
            "code": self.code,
            "kind": self.kind,
            "message": self.message,
            "context": self.context
        }


class MalformedGraph(FlowFrontError):
    """The workflow payload is not a usable nodes/connections graph."""
    code = 422
    kind = "malformed_graph"


class TransformationError(FlowFrontError):
    """A rewrite step failed; the input graph is left untouched."""
    code = 500
    kind = "transformation_failed"

    def __init__(self, message: str, step: str = "", context: str = ""):
        self.step = step
        super().__init__(message, context)

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["step"] = self.step
        return data


class ExtractionError(FlowFrontError):
    """A trigger node is missing the sub-keys its flavor requires."""
    code = 422
    kind = "unexpected_shape"

    def __init__(self, message: str, raw: Optional[Dict[str, Any]] = None, context: str = ""):
        self.raw = raw or {}
        super().__init__(message, context)

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["raw_parameters"] = self.raw
        return data
