"""Application settings — Pydantic-based configuration with YAML and env var support.

Configuration is loaded from (in order of precedence):
  1. YAML config file (if specified)
  2. Environment variables (STDIOPROBE_ prefix) and .env
  3. Default values
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Any

from pydantic import BaseModel, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, NoDecode


class ProbeSettings(BaseModel):
    """How the external process is launched and how long it is given.

    The defaults target the Brave Search MCP server, launched through ``npx``
    with its API key passed in ``BRAVE_API_KEY``. The key itself is never
    defaulted; supply it via ``STDIOPROBE_PROBE__CREDENTIAL`` or leave the
    variable in the caller's environment.
    """

    command: Annotated[list[str], NoDecode] = Field(
        default=["npx", "-y", "@brave/brave-search-mcp-server"],
        min_length=1,
        description="Executable and arguments of the process to probe",
    )
    credential_env: str = Field(default="BRAVE_API_KEY", description="Environment variable carrying the credential")
    credential: SecretStr | None = Field(default=None, description="Credential value passed to the child process")
    send_delay: float = Field(default=3.0, gt=0, description="Seconds from spawn until the request is written")
    response_window: float = Field(default=2.0, gt=0, description="Seconds to keep listening after the request")
    ceiling: float = Field(default=10.0, gt=0, description="Hard deadline in seconds from spawn")
    kill_grace: float = Field(default=1.0, gt=0, description="Seconds between SIGTERM and SIGKILL on teardown")
    drain_timeout: float = Field(default=1.0, gt=0, description="Seconds to let stream readers reach EOF after teardown")
    read_chunk_size: int = Field(default=4096, ge=1, description="Maximum bytes per stream read")

    @field_validator("command", mode="before")
    @classmethod
    def _parse_command(cls, v: Any) -> list[str]:
        """Parse the command from a JSON list string, a whitespace-separated string, or a list."""
        if isinstance(v, str):
            import json

            try:
                parsed = json.loads(v)
                if isinstance(parsed, list):
                    return [str(part) for part in parsed]
            except (json.JSONDecodeError, TypeError):
                pass
            # Plain string: split on whitespace
            return v.split()
        return list(v)


class ObservabilitySettings(BaseModel):
    """Observability configuration."""

    log_level: str = Field(default="info", description="Log level: debug, info, warning, error")
    log_format: str = Field(default="console", description="Log format: json, console")


class Settings(BaseSettings):
    """Root application settings.

    Configuration is loaded from environment variables with the STDIOPROBE_ prefix.
    Nested settings use double underscores: STDIOPROBE_PROBE__CEILING=15

    Example:
        STDIOPROBE_PROBE__COMMAND='["npx", "-y", "@brave/brave-search-mcp-server"]'
        STDIOPROBE_PROBE__CREDENTIAL=BSA...
        STDIOPROBE_OBSERVABILITY__LOG_FORMAT=json
    """

    model_config = {
        "env_prefix": "STDIOPROBE_",
        "env_nested_delimiter": "__",
        "case_sensitive": False,
        "env_file": ".env",
        "env_file_encoding": "utf-8",
    }

    app_name: str = Field(default="stdioprobe", description="Application name")

    probe: ProbeSettings = Field(default_factory=ProbeSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)

    @classmethod
    def from_yaml(cls, path: str | Path) -> Settings:
        """Load settings from a YAML configuration file.

        Keys set in the YAML file win over environment variables; keys it
        leaves out still come from the environment or the defaults.

        Args:
            path: Path to the YAML config file.

        Returns:
            Populated Settings instance.
        """
        import yaml  # type: ignore[import-untyped]

        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(config_path) as f:
            data = yaml.safe_load(f) or {}

        return cls(**data)
