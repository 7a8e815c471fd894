"""Runtime settings for the storefront core, read from the environment.

    STOREFRONT_API_URL            remote service base URL
    STOREFRONT_API_ADAPTER        "fake" (in-memory remote) or "http"
    STOREFRONT_API_TIMEOUT        request timeout in seconds
    STOREFRONT_STORAGE_PATH       JSON file backing local storage (unset = memory)
    STOREFRONT_RETRY_ATTEMPTS     attempts for transient network failures
    STOREFRONT_RETRY_BACKOFF      first backoff delay in seconds
    STOREFRONT_RETRY_BACKOFF_MAX  backoff cap in seconds
"""

import os
from collections.abc import Mapping
from typing import Literal

from pydantic import BaseModel, Field

_ENV_VARS = {
    "api_url": "STOREFRONT_API_URL",
    "api_adapter": "STOREFRONT_API_ADAPTER",
    "api_timeout": "STOREFRONT_API_TIMEOUT",
    "storage_path": "STOREFRONT_STORAGE_PATH",
    "retry_attempts": "STOREFRONT_RETRY_ATTEMPTS",
    "retry_backoff": "STOREFRONT_RETRY_BACKOFF",
    "retry_backoff_max": "STOREFRONT_RETRY_BACKOFF_MAX",
}


class Settings(BaseModel):
    api_url: str = "http://localhost:8080/api"
    api_adapter: Literal["fake", "http"] = "fake"
    api_timeout: float = Field(default=30.0, gt=0)
    storage_path: str | None = None
    retry_attempts: int = Field(default=3, ge=1, le=10)
    retry_backoff: float = Field(default=0.25, ge=0)
    retry_backoff_max: float = Field(default=2.0, ge=0)

    model_config = {"frozen": True}


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    """Build settings from environment variables, ignoring unset or blank ones.

    Raises pydantic's ``ValidationError`` when a value cannot be coerced.
    """
    environ = os.environ if environ is None else environ
    values = {}
    for field_name, env_var in _ENV_VARS.items():
        raw = environ.get(env_var)
        if raw is not None and raw.strip():
            values[field_name] = raw.strip()
    return Settings(**values)
