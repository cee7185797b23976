"""
Configuration Settings.

This module defines the runtime configuration using Pydantic's BaseSettings.
All values are loaded from environment variables (prefix ``PEGASUS_``) and the
``.env`` file; nested sections use ``__`` as delimiter, e.g.
``PEGASUS_AGENT__MAX_CONCURRENT_TOOLS=5`` or ``PEGASUS_LLM__API_KEY=...``.
"""

from functools import lru_cache
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

# =====================================================================
# Section Models
# =====================================================================


class LLMSettings(BaseModel):
    """Language model configuration."""

    provider: Literal["openai", "anthropic", "openai-compatible"] = Field(
        default="openai", description="Model provider; openai-compatible covers Ollama, LiteLLM and similar servers"
    )
    model: str = Field(default="gpt-4o-mini", description="Model name understood by the provider")
    api_key: Optional[SecretStr] = Field(default=None, description="Provider API key")
    base_url: Optional[str] = Field(default=None, description="Custom API base URL (required for openai-compatible)")
    temperature: float = Field(default=0.7, ge=0.0, le=2.0, description="Sampling temperature")
    max_tokens: int = Field(default=4096, gt=0, description="Maximum tokens per completion")
    top_p: Optional[float] = Field(default=None, gt=0.0, le=1.0, description="Nucleus sampling threshold")
    timeout: float = Field(default=120.0, gt=0.0, description="Request timeout in seconds")


class AgentSettings(BaseModel):
    """Agent runtime limits."""

    max_concurrent_tools: int = Field(default=3, gt=0, description="Capability invocations running at once")
    tool_timeout_ms: int = Field(default=30_000, gt=0, description="Default capability timeout")
    network_tool_timeout_ms: int = Field(default=60_000, gt=0, description="Timeout for network-bound capabilities")
    max_cognitive_iterations: int = Field(default=10, gt=0, description="Reflections allowed per task")
    reflection_timeout_ms: int = Field(default=30_000, gt=0, description="Upper bound for one reflection")
    allowed_paths: List[str] = Field(
        default_factory=list, description="Filesystem roots file capabilities may touch (empty: unrestricted)"
    )
    max_active_tasks: int = Field(default=5, gt=0, description="Tasks run concurrently by AgentService.run_many")


class McpServerSettings(BaseModel):
    """One MCP server whose tools are registered as capabilities."""

    name: str = Field(min_length=1, description="Server name, also the default tool name prefix")
    url: str = Field(description="Server endpoint URL")
    transport: Literal["streamable_http", "sse"] = Field(default="streamable_http", description="MCP transport")


# =====================================================================
# Main Settings Class
# =====================================================================


class Settings(BaseSettings):
    """
    Application settings model.

    All properties are automatically bound from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_prefix="PEGASUS_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # =====================================================================
    # Logging Configuration
    # =====================================================================
    log_level: str = Field(default="INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)")
    log_format: Literal["simple", "detailed", "json"] = Field(default="detailed", description="Log line format")
    log_dir: str = Field(default="data/logs", description="Directory for log files")
    log_file_enabled: bool = Field(default=False, description="Write logs to a rotating file")
    log_console_enabled: bool = Field(default=True, description="Write logs to the console")
    log_max_bytes: int = Field(default=10 * 1024 * 1024, gt=0, description="Size at which the log file rotates")
    log_backup_count: int = Field(default=30, gt=0, description="Rotated log files kept")

    # =====================================================================
    # Sections
    # =====================================================================
    llm: LLMSettings = Field(default_factory=LLMSettings)
    agent: AgentSettings = Field(default_factory=AgentSettings)
    mcp_servers: List[McpServerSettings] = Field(default_factory=list)


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings, loaded on first use."""
    return Settings()
