"""
Configuration for the interleaved thinking harness.

Defaults can be overridden from the environment (a local ``.env`` file is
loaded first) and, at the command line, by ``run.py``.
"""

import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field

load_dotenv()

_TRUTHY = {"1", "true", "yes", "on"}


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in _TRUTHY


class ServerConfig(BaseModel):
    """Session settings. They survive ThinkingHarness.reset()."""

    max_tool_calls: int = Field(default=50, ge=0, description="Tool call budget per session.")
    default_timeout: float = Field(default=30000, gt=0, description="Tool timeout in milliseconds.")
    disable_logging: bool = Field(default=False, description="Silence the stderr display.")
    enable_result_cache: bool = Field(default=True, description="Cache successful tool results.")
    test_mode: bool = Field(default=False, description="Skip simulated tool latency.")

    @classmethod
    def from_env(cls) -> "ServerConfig":
        defaults = cls()
        return cls(
            max_tool_calls=int(os.getenv("MAX_TOOL_CALLS", defaults.max_tool_calls)),
            default_timeout=float(os.getenv("DEFAULT_TIMEOUT", defaults.default_timeout)),
            disable_logging=_env_bool("DISABLE_THOUGHT_LOGGING", defaults.disable_logging),
            enable_result_cache=_env_bool("ENABLE_RESULT_CACHE", defaults.enable_result_cache),
            test_mode=_env_bool("TEST_MODE", defaults.test_mode),
        )
