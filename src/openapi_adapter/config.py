"""Configuration for the OpenAPI tool adapter."""

from __future__ import annotations

import json
import logging
import os
import re
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


logger = logging.getLogger(__name__)

_ENV_PLACEHOLDER = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="", case_sensitive=False)

    service_name: str = Field(default="openapi-adapter")

    adapter_transport: str = Field(default="stdio")
    adapter_host: str = Field(default="0.0.0.0")
    adapter_port: int = Field(default=8000)
    adapter_auth_token: Optional[str] = Field(default=None)
    adapter_log_level: str = Field(default="INFO")

    openapi_dir: str = Field(default="openapi")
    openapi_files: Optional[str] = Field(default=None)
    integrations_path: Optional[str] = Field(default=None)
    environment: str = Field(default="sandbox")

    elicitation_enabled: bool = Field(default=True)

    sensitive_fields: str = Field(default="beneficiary_instrument_details")
    redaction_marker: str = Field(default="[MASKED]")
    masked_headers: str = Field(default="x-client-id,x-client-secret,Authorization")

    adapter_max_concurrency: int = Field(default=20)
    http_timeout_seconds: float = Field(default=30)
    tool_name_max_length: int = Field(default=64)

    def sensitive_field_patterns(self) -> List[str]:
        return _split(self.sensitive_fields)

    def masked_header_names(self) -> List[str]:
        return _split(self.masked_headers)

    def document_paths(self) -> List[str]:
        return _split(self.openapi_files)


class IntegrationEnvironment(BaseModel):
    """Static per-integration environment: base URL, credentials, signing key.

    Extra keys are kept verbatim so composite credential keys such as
    `header.X-Api-Key.API_KEY` can be looked up at execution time.
    """

    model_config = ConfigDict(extra="allow")

    base_url: Optional[str] = None
    sandbox_base_url: Optional[str] = None
    production_base_url: Optional[str] = None
    header: Dict[str, str] = Field(default_factory=dict)
    query: Dict[str, str] = Field(default_factory=dict)
    cookie: Dict[str, str] = Field(default_factory=dict)
    signing_public_key: Optional[str] = None
    signing_public_key_path: Optional[str] = None
    sign_requests: Optional[bool] = None

    @model_validator(mode="after")
    def _load_public_key(self) -> "IntegrationEnvironment":
        if self.signing_public_key or not self.signing_public_key_path:
            return self
        try:
            self.signing_public_key = Path(self.signing_public_key_path).read_text(encoding="utf-8")
        except OSError as exc:
            logger.warning(
                "Failed to read public key from path %s: %s", self.signing_public_key_path, exc
            )
        return self

    @property
    def requires_signature(self) -> bool:
        if self.sign_requests is not None:
            return self.sign_requests
        return bool(self.signing_public_key or self.signing_public_key_path)

    def resolve_base_url(self, environment: str) -> Optional[str]:
        if self.base_url:
            return self.base_url
        if environment == "production":
            return self.production_base_url
        return self.sandbox_base_url

    def location(self, location: str) -> Dict[str, str]:
        return {"header": self.header, "query": self.query, "cookie": self.cookie}.get(location, {})

    def secret(self, key: str) -> Optional[str]:
        """Look up a flat composite credential key such as `header.Authorization.HTTP.bearer`."""
        value = (self.model_extra or {}).get(key)
        return str(value) if value not in (None, "") else None


def load_integrations(path: Optional[str]) -> Dict[str, IntegrationEnvironment]:
    """Load `{integration_id: IntegrationEnvironment}` from a JSON or YAML file."""
    if not path:
        return {}
    file_path = Path(path)
    if not file_path.exists():
        logger.warning("Integrations file not found: %s", path)
        return {}

    with file_path.open("r", encoding="utf-8") as handle:
        if file_path.suffix in {".yaml", ".yml"}:
            raw = yaml.safe_load(handle) or {}
        else:
            raw = json.load(handle)

    return {
        str(integration_id): IntegrationEnvironment.model_validate(_expand_env(record or {}))
        for integration_id, record in raw.items()
    }


def _expand_env(value: Any) -> Any:
    if isinstance(value, dict):
        return {key: _expand_env(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_expand_env(item) for item in value]
    if isinstance(value, str):
        return _ENV_PLACEHOLDER.sub(lambda match: os.environ.get(match.group(1), ""), value)
    return value


def _split(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
