"""Configuration management for the NL-to-SQL workbench"""
from typing import Optional
from pydantic import Field, ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Backend Configuration
    api_url: str = Field(default="http://localhost:8000", alias="API_URL")
    # Unset means no client-side timeout; a hung request keeps the controller busy
    request_timeout_seconds: Optional[float] = Field(
        default=None, alias="REQUEST_TIMEOUT_SECONDS"
    )

    # History Persistence
    history_storage_path: str = Field(
        default="~/.nlsql_workbench/storage.json", alias="HISTORY_STORAGE_PATH"
    )
    history_storage_key: str = Field(default="nlsql_history", alias="HISTORY_STORAGE_KEY")
    history_limit: int = Field(default=10, alias="HISTORY_LIMIT")

    # Voice Input
    voice_enabled: bool = Field(default=False, alias="VOICE_ENABLED")

    # Application Configuration
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Server Configuration
    server_host: str = Field(default="127.0.0.1", alias="SERVER_HOST")

    # Gradio Configuration
    gradio_share: bool = Field(default=False, alias="GRADIO_SHARE")
    gradio_server_port: int = Field(default=7860, alias="GRADIO_SERVER_PORT")

    model_config = ConfigDict(
        env_file=".env",
        case_sensitive=False,
        populate_by_name=True
    )


# Load settings from environment
settings = Settings()
