# tool_calls.py
# Tool call budget, result cache and timeout race.
#
# Guarantees: no executor is ever reached once the budget is spent, and a
# failing or slow tool comes back as a ToolResult with success=False rather
# than an exception. Budget exhaustion is the only thing raised from here.

import asyncio
import json
import time
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

from interleaved_thinking.errors import (
    ThinkingError,
    ToolCallLimitError,
    ToolExecutionError,
    ToolTimeoutError,
)
from interleaved_thinking.models import ToolCall, ToolCallStatistics, ToolError, ToolResult
from interleaved_thinking.tools import ToolExecutor, simulate_tool_execution


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _serialize(parameters: Mapping[str, Any]) -> str:
    """Deterministic serialization. sort_keys is non-negotiable."""
    return json.dumps(parameters, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)


def cache_key(tool_call: ToolCall) -> str:
    """
    Key shared by the result cache and injected mock fixtures.

    Metadata is excluded: two calls differing only in timeout or priority
    are the same cached operation.
    """
    return f"{tool_call.tool_name}:{_serialize(tool_call.parameters)}"


def _elapsed_ms(started: float) -> int:
    return int(round((time.monotonic() - started) * 1000))


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _discard_outcome(task: asyncio.Future) -> None:
    # Retrieve the late exception so asyncio does not report it as unhandled.
    if not task.cancelled():
        task.exception()


def _is_timeout(exc: BaseException) -> bool:
    return isinstance(exc, (ToolTimeoutError, asyncio.TimeoutError)) or "timeout" in str(exc).lower()


# ---------------------------------------------------------------------------
# ToolCallManager
# ---------------------------------------------------------------------------


class ToolCallManager:
    """
    Executes tool calls for one session within a fixed budget.

    Lookup order per call: injected mock fixture, then cached success, then
    the executor raced against a timeout. Every call consumes a budget slot,
    including cache hits and failures.
    """

    def __init__(
        self,
        max_tool_calls: int,
        default_timeout: float,
        enable_cache: bool = True,
        executor: ToolExecutor | None = None,
    ) -> None:
        self._max_tool_calls = max_tool_calls
        self._default_timeout = default_timeout
        self._enable_cache = enable_cache
        self._executor: ToolExecutor = executor or simulate_tool_execution

        self._call_count = 0
        self._cache: dict[str, ToolResult] = {}
        self._mock_results: dict[str, ToolResult] = {}

    # ------------------------------------------------------------------
    # Budget
    # ------------------------------------------------------------------

    @property
    def call_count(self) -> int:
        return self._call_count

    def can_execute(self) -> bool:
        return self._call_count < self._max_tool_calls

    # ------------------------------------------------------------------
    # Invocation
    # ------------------------------------------------------------------

    async def invoke(self, tool_call: ToolCall) -> ToolResult:
        """
        Run one tool call and return its stamped result.

        Raises ToolCallLimitError before any lookup or execution when the
        budget is spent. Cached and mocked results are returned as stored.
        """
        if not self.can_execute():
            raise ToolCallLimitError(f"Tool call limit reached ({self._max_tool_calls} calls)")

        self._call_count += 1
        started = time.monotonic()
        key = cache_key(tool_call)

        mocked = self._mock_results.get(key)
        if mocked is not None:
            return mocked

        if self._enable_cache:
            cached = self._cache.get(key)
            if cached is not None:
                return cached

        timeout = self._timeout_for(tool_call)
        try:
            payload = await self._race(tool_call, timeout)
        except Exception as exc:
            return self._failure(tool_call, exc, started)

        result = ToolResult(
            tool_name=tool_call.tool_name,
            success=True,
            result=payload,
            execution_time=_elapsed_ms(started),
            timestamp=_now_iso(),
        )
        if self._enable_cache:
            self._cache[key] = result
        return result

    def _timeout_for(self, tool_call: ToolCall) -> float:
        timeout = tool_call.metadata.timeout if tool_call.metadata is not None else None
        if timeout is not None and timeout > 0:
            return timeout
        return self._default_timeout

    async def _race(self, tool_call: ToolCall, timeout_ms: float) -> Any:
        """
        Await the executor against the timeout. When the timeout wins the
        execution is left to finish on its own and its outcome is dropped.
        """
        task = asyncio.ensure_future(self._executor(tool_call))
        try:
            return await asyncio.wait_for(asyncio.shield(task), timeout=timeout_ms / 1000)
        except asyncio.TimeoutError as exc:
            if task.done():
                # Finished right at the deadline: its own outcome stands.
                return task.result()
            task.add_done_callback(_discard_outcome)
            raise ToolTimeoutError(f"Tool execution timeout after {timeout_ms:g}ms") from exc

    def _failure(self, tool_call: ToolCall, exc: Exception, started: float) -> ToolResult:
        kind: type[ThinkingError] = ToolTimeoutError if _is_timeout(exc) else ToolExecutionError
        return ToolResult(
            tool_name=tool_call.tool_name,
            success=False,
            error=ToolError(
                type=kind.error_type,
                message=str(exc) or type(exc).__name__,
                recovery_strategy=kind.recovery_strategy,
            ),
            execution_time=_elapsed_ms(started),
            timestamp=_now_iso(),
        )

    # ------------------------------------------------------------------
    # Diagnostics and lifecycle
    # ------------------------------------------------------------------

    def get_statistics(self) -> ToolCallStatistics:
        """
        Counts derived from the result cache, so duplicate calls and failures
        are undercounted. The session history is the authoritative view.
        """
        successful = sum(1 for result in self._cache.values() if result.success)
        return ToolCallStatistics(
            total_calls=self._call_count,
            successful_calls=successful,
            failed_calls=len(self._cache) - successful,
            total_execution_time=sum(r.execution_time for r in self._cache.values()),
        )

    def inject_mock_results(self, mock_results: Mapping[str, ToolResult | Mapping[str, Any]]) -> None:
        """Replace the fixture table. Keys are built with cache_key()."""
        self._mock_results = {
            key: value if isinstance(value, ToolResult) else ToolResult.model_validate(value)
            for key, value in mock_results.items()
        }

    def reset(self) -> None:
        """Restore the budget and drop cached results. Fixtures are kept."""
        self._call_count = 0
        self._cache.clear()
