"""
Configuration Management - Pydantic Settings
Loads n8n connection details and transformation defaults from the environment.
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # n8n Configuration
    n8n_base_url: str = Field(default="http://localhost:5678", alias="N8N_BASE_URL")
    # Only the REST calls need a key; transforming a pasted workflow does not.
    n8n_api_key: str = Field(default="", alias="N8N_API_KEY")
    n8n_editor_url: str = Field(default="http://localhost:5678", alias="N8N_EDITOR_URL")
    n8n_webhook_base_url: str = Field(default="", alias="N8N_WEBHOOK_BASE_URL")

    @property
    def api_url(self) -> str:
        """Ensure the API URL is correctly formatted."""
        url = self.n8n_base_url.rstrip("/")
        if not url.endswith("/api/v1"):
            url += "/api/v1"
        return url + "/"

    @property
    def instance_url(self) -> str:
        """Instance root, used to build public webhook URLs."""
        url = (self.n8n_webhook_base_url or self.n8n_base_url).rstrip("/")
        if url.endswith("/api/v1"):
            url = url[: -len("/api/v1")]
        return url

    # Server Configuration
    api_host: str = Field(default="0.0.0.0", alias="API_HOST")
    api_port: int = Field(default=8000, alias="API_PORT")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # HTTP Client Configuration
    http_timeout: float = Field(default=30.0, alias="HTTP_TIMEOUT")
    workflow_list_limit: int = Field(default=100, alias="WORKFLOW_LIST_LIMIT")

    # Transformation
    transform_preserve_connections: bool = Field(
        default=False, alias="TRANSFORM_PRESERVE_CONNECTIONS"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )


# Global settings instance
settings = Settings()
