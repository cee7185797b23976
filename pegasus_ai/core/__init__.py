"""
Core utilities and configuration for Pegasus AI.

This package provides configuration loading and logging set-up shared by the
agent core.
"""

from pegasus_ai.core.config import AgentSettings, LLMSettings, McpServerSettings, Settings, get_settings
from pegasus_ai.core.logging_config import get_logger, prune_old_logs, setup_logging

__all__ = [
    "AgentSettings",
    "LLMSettings",
    "McpServerSettings",
    "Settings",
    "get_logger",
    "get_settings",
    "prune_old_logs",
    "setup_logging",
]
