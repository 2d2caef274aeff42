from __future__ import annotations
import os
from pathlib import Path
from typing import Literal, Optional

from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import ConfigurationError

Provider = Literal["openai", "deepseek", "gemini"]

PROVIDER_DEFAULTS: dict[str, dict[str, Optional[str]]] = {
    "openai": {"model": "gpt-4o", "base_url": None, "key_env": "OPENAI_API_KEY"},
    "deepseek": {"model": "deepseek-chat", "base_url": "https://api.deepseek.com", "key_env": "DEEPSEEK_API_KEY"},
    "gemini": {"model": "gemini-2.5-flash", "base_url": None, "key_env": "GEMINI_API_KEY"},
}

ENV_PREFIX = "SHELL_AGENT_"


class AgentConfig(BaseModel):
    """Run configuration. Frozen: derive a new value with ``with_overrides``."""

    model_config = ConfigDict(frozen=True)

    provider: Provider = "openai"
    model: Optional[str] = Field(None, description="Model name; provider default when unset.")
    api_key: Optional[str] = Field(None, description="API key for the completion provider.")
    base_url: Optional[str] = Field(None, description="Override for OpenAI-compatible endpoints.")

    certainty_threshold: float = Field(0.7, ge=0.1, le=1.0)
    max_clarifications: int = Field(3, ge=1)
    max_plan_steps: int = Field(20, ge=1)
    max_output_chars: int = Field(2000, ge=0, description="Per-step output kept in LLM context; 0 disables truncation.")

    temperature: float = 0.2
    request_timeout: float = 60.0
    max_retries: int = 2

    shell: str = "bash"  # or "pwsh" on Windows
    working_dir: Optional[Path] = None
    stream_output: bool = True
    color_output: bool = True
    debug: bool = False

    @property
    def resolved_model(self) -> str:
        return self.model or PROVIDER_DEFAULTS[self.provider]["model"]

    @property
    def resolved_base_url(self) -> Optional[str]:
        return self.base_url or PROVIDER_DEFAULTS[self.provider]["base_url"]

    def with_overrides(self, **changes) -> "AgentConfig":
        """Return a validated copy with ``changes`` applied; ``None`` values are ignored."""
        data = self.model_dump()
        data.update({k: v for k, v in changes.items() if v is not None})
        try:
            return AgentConfig(**data)
        except ValidationError as e:
            raise ConfigurationError(str(e)) from e

    def require_api_key(self) -> str:
        if not self.api_key:
            key_env = PROVIDER_DEFAULTS[self.provider]["key_env"]
            raise ConfigurationError(
                f"No API key for provider '{self.provider}'. Set {key_env} in your environment or .env file."
            )
        return self.api_key

    @classmethod
    def from_env(cls, env_file: str | Path | None = None, **overrides) -> "AgentConfig":
        """Build a config from ``.env`` + environment, then apply ``overrides``."""
        load_dotenv(env_file or find_dotenv(usecwd=True))
        provider = overrides.get("provider") or os.getenv(ENV_PREFIX + "PROVIDER", "openai")
        if provider not in PROVIDER_DEFAULTS:
            raise ConfigurationError(f"Unknown provider: {provider}")

        data: dict = {"provider": provider}
        for field_name in (
            "model", "base_url", "certainty_threshold", "max_clarifications", "max_plan_steps",
            "max_output_chars", "temperature", "request_timeout", "max_retries", "shell",
            "working_dir", "stream_output", "color_output", "debug",
        ):
            value = os.getenv(ENV_PREFIX + field_name.upper())
            if value is not None and value != "":
                data[field_name] = value
        data["api_key"] = os.getenv(ENV_PREFIX + "API_KEY") or os.getenv(PROVIDER_DEFAULTS[provider]["key_env"])
        data.update({k: v for k, v in overrides.items() if v is not None})

        try:
            return cls(**data)
        except ValidationError as e:
            raise ConfigurationError(str(e)) from e
