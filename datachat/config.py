"""Application settings with environment variable loading.

Pydantic-based configuration for the backend client, the stream manager
and the chat UI. Values come from the environment (or a .env file).
"""

import os

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator

# Load environment variables from .env file
load_dotenv()

PLACEHOLDER_IMAGE_URL = "https://placehold.co/600x400?text=Diagram+Not+Found"


def _env_float(name: str, default: float | None) -> float | None:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return float(raw)


class Settings(BaseModel):
    """Configuration for talking to the analysis backend.

    Attributes:
        backend_url: Base URL of the analysis backend.
        request_timeout: Seconds allowed for a submission round trip.
        stream_idle_timeout: Seconds of stream silence before the connection
            is force-closed. ``None`` disables the check.
        max_files: Maximum number of files attached to one submission.
        max_sessions: Sessions kept per browser tab before the oldest is dropped.
        session_title: Display title for newly created sessions.
        placeholder_image_url: Image shown when a figure cannot be loaded.
    """

    # default_factory values come from the environment and must be validated too
    model_config = ConfigDict(validate_default=True)

    backend_url: str = Field(
        default_factory=lambda: os.getenv("FASTAPI_BACKEND_URL", "http://0.0.0.0:8000"),
        description="Analysis backend base URL",
    )
    request_timeout: float = Field(
        default_factory=lambda: _env_float("REQUEST_TIMEOUT", 120.0),
        gt=0.0,
        description="Timeout for submission requests in seconds",
    )
    stream_idle_timeout: float | None = Field(
        default_factory=lambda: _env_float("STREAM_IDLE_TIMEOUT", 300.0),
        description="Close the event stream after this many silent seconds",
    )
    max_files: int = Field(
        default_factory=lambda: int(os.getenv("MAX_UPLOAD_FILES", "3")),
        ge=1,
        le=20,
        description="Maximum files per submission",
    )
    max_sessions: int = Field(default=50, ge=1, description="Sessions kept per client")
    session_title: str = Field(default="Data Analyst")
    placeholder_image_url: str = Field(default=PLACEHOLDER_IMAGE_URL)

    @field_validator("backend_url")
    @classmethod
    def validate_backend_url(cls, v: str) -> str:
        """Require an http(s) URL and drop any trailing slash."""
        v = v.strip()
        if not v.startswith(("http://", "https://")):
            raise ValueError("FASTAPI_BACKEND_URL must start with http:// or https://")
        return v.rstrip("/")

    @field_validator("stream_idle_timeout")
    @classmethod
    def validate_idle_timeout(cls, v: float | None) -> float | None:
        """Treat zero or negative values as 'no timeout'."""
        if v is None or v <= 0:
            return None
        return v


def get_settings() -> Settings:
    """Create settings from the environment.

    Returns:
        Configured Settings instance.

    Raises:
        ValueError: If an environment value is invalid.
    """
    return Settings()
