"""
HTTP Client Layer
Async client for the n8n public REST API with global error handling.
"""
import httpx
import json
from typing import Any, Dict, Optional
from functools import wraps
from urllib.parse import urlparse

from flowfront.core.config import settings
from flowfront.core.errors import FlowFrontError


class N8NClientError(Exception):
    """Custom exception for n8n API and webhook errors."""
    def __init__(self, status_code: int, message: str, context: str = ""):
        self.status_code = status_code
        self.message = message
        self.context = context
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": "error",
            "code": self.status_code,
            "message": self.message,
            "context": self.context
        }


def validate_url(url: str, field_name: str = "url") -> str:
    """Reject anything that is not an absolute http(s) URL."""
    parsed = urlparse(url or "")
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValueError(f"Invalid {field_name} format: '{url}'")
    return url.rstrip("/")


def api_base_url(instance_url: str) -> str:
    url = validate_url(instance_url, "instance URL")
    if not url.endswith("/api/v1"):
        url += "/api/v1"
    return url + "/"


class N8NClient:
    """
    HTTP Client for one n8n instance.
    Manages connection lifecycle, headers, and error handling.
    """

    def __init__(
        self,
        instance_url: Optional[str] = None,
        api_key: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self._base_url = api_base_url(instance_url or settings.n8n_base_url)
        self._headers = {
            "X-N8N-API-KEY": settings.n8n_api_key if api_key is None else api_key,
            "Content-Type": "application/json",
            "Accept": "application/json"
        }
        self._timeout = httpx.Timeout(settings.http_timeout, read=60.0)
        self._client: Optional[httpx.AsyncClient] = httpx.AsyncClient(
            base_url=self._base_url,
            headers=self._headers,
            timeout=self._timeout,
            transport=transport
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def client(self) -> httpx.AsyncClient:
        return self._client

    async def close(self):
        """Close the HTTP client connection."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def request(
        self,
        method: str,
        endpoint: str,
        json_data: Optional[Dict] = None,
        params: Optional[Dict] = None
    ) -> Dict[str, Any]:
        """
        Execute an HTTP request with standardized error handling.
        """
        if self._client is None:
            raise N8NClientError(status_code=503, message="Client is closed")
        try:
            response = await self._client.request(
                method=method,
                url=endpoint.lstrip("/"),
                json=json_data,
                params=params
            )
            response.raise_for_status()
            return response.json()

        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            if status in (401, 403):
                raise N8NClientError(
                    status_code=401,
                    message="Invalid API key or insufficient permissions",
                    context=str(e)
                )
            try:
                error_detail = e.response.json()
            except ValueError:
                error_detail = e.response.text
            raise N8NClientError(
                status_code=status,
                message=f"n8n API Error: {error_detail}",
                context=str(e)
            )

        except httpx.RequestError as e:
            raise N8NClientError(
                status_code=503,
                message="Network/Connection Failure",
                context=str(e)
            )

    # Convenience methods
    async def get(self, endpoint: str, params: Optional[Dict] = None) -> Dict[str, Any]:
        return await self.request("GET", endpoint, params=params)

    async def post(self, endpoint: str, json_data: Optional[Dict] = None) -> Dict[str, Any]:
        return await self.request("POST", endpoint, json_data=json_data)


_default_client: Optional[N8NClient] = None


def get_client() -> N8NClient:
    """Shared client for the instance configured in the environment."""
    global _default_client
    if _default_client is None or _default_client.client is None:
        _default_client = N8NClient()
    return _default_client


def safe_tool(func):
    """
    Decorator for MCP tools.
    Catches client and engine errors and returns a JSON error response instead of crashing.
    """
    @wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except N8NClientError as e:
            return json.dumps(e.to_dict(), indent=2)
        except FlowFrontError as e:
            return json.dumps(e.to_dict(), indent=2)
        except ValueError as e:
            return json.dumps({
                "status": "error",
                "code": 400,
                "message": f"Validation Error: {str(e)}"
            }, indent=2)
        except Exception as e:
            return json.dumps({
                "status": "fatal_error",
                "code": 500,
                "message": f"Internal MCP Error: {str(e)}"
            }, indent=2)
    return wrapper
