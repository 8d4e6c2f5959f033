# harness.py
# Interleaved Thinking Harness
#
# The harness owns one session: step history, tool budget and result cache.
# Callers submit steps one at a time; the harness validates, resolves the
# phase, runs the phase behaviour and records the step.
#
# Control flow per step:
#   validate → infer phase → raise totalSteps if exceeded
#   → thinking | tool_call (invoke + audit) | analysis (last result)
#   → commit to history → response payload
#
# Nothing is recorded until every check has passed. All terminal output is
# delegated to display.py; no formatting here.

import asyncio
import functools
from collections.abc import Mapping
from typing import Any

from interleaved_thinking.config import ServerConfig
from interleaved_thinking.display import StepDisplay
from interleaved_thinking.errors import GENERIC_ERROR_TYPE, GENERIC_RECOVERY, MissingToolCallError, ThinkingError
from interleaved_thinking.models import (
    ProcessResult,
    Step,
    StepHistory,
    ToolCallRecord,
    ToolCallStatistics,
    ToolError,
    ToolResult,
)
from interleaved_thinking.state import StateManager
from interleaved_thinking.tool_calls import ToolCallManager
from interleaved_thinking.tools import SIMULATED_LATENCY, ToolExecutor, simulate_tool_execution
from interleaved_thinking.validation import infer_phase, validate_step


class ThinkingHarness:
    """
    Step processor for one interleaved thinking session.

    Instantiate once per session. Without an executor, tool calls run
    against the simulated executor in tools.py.

    Example:
        harness = ThinkingHarness(ServerConfig(max_tool_calls=10))
        result = await harness.process_step(
            {"thought": "Look it up", "stepNumber": 1, "totalSteps": 3,
             "nextStepNeeded": True, "toolCall": {"toolName": "search", "parameters": {"q": "x"}}}
        )
    """

    def __init__(
        self,
        config: ServerConfig | None = None,
        *,
        executor: ToolExecutor | None = None,
        display: StepDisplay | None = None,
    ) -> None:
        self._config = config or ServerConfig()

        if executor is None:
            latency = 0 if self._config.test_mode else SIMULATED_LATENCY
            executor = functools.partial(simulate_tool_execution, latency=latency)

        self._tool_calls = ToolCallManager(
            max_tool_calls=self._config.max_tool_calls,
            default_timeout=self._config.default_timeout,
            enable_cache=self._config.enable_result_cache,
            executor=executor,
        )
        self._state = StateManager()

        self._display = display or StepDisplay()
        if self._config.disable_logging:
            self._display.enabled = False

        # One step in flight per session.
        self._lock = asyncio.Lock()

    @property
    def config(self) -> ServerConfig:
        return self._config

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    async def process_step(self, step: Step | Mapping[str, Any]) -> ProcessResult:
        """
        Process one step and return the response envelope.

        Never raises: every failure is returned as an error payload with
        is_error set, and a failed step leaves the session untouched.
        """
        async with self._lock:
            try:
                return await self._process(step)
            except Exception as exc:
                return self._handle_error(exc)

    async def _process(self, raw: Step | Mapping[str, Any]) -> ProcessResult:
        step = validate_step(raw)
        phase = infer_phase(step, self._state)

        last = self._state.last_step
        total_steps = max(step.total_steps, step.step_number, last.total_steps if last else 0)
        step = step.model_copy(update={"phase": phase, "total_steps": total_steps})

        tool_result: ToolResult | None = None

        if phase == "thinking":
            self._display.thinking_step(step)

        elif phase == "tool_call":
            if step.tool_call is None:
                raise MissingToolCallError()

            self._display.tool_call(step.tool_call)
            tool_result = await self._tool_calls.invoke(step.tool_call)
            self._display.tool_result(tool_result)

            self._state.add_tool_call(
                ToolCallRecord(step_number=step.step_number, tool_call=step.tool_call, result=tool_result)
            )
            step.tool_result = tool_result

        else:
            self._display.analysis_step(step)
            tool_result = self._state.get_last_tool_result()

        self._state.add_step(step)

        response: dict[str, Any] = {
            "stepNumber": step.step_number,
            "totalSteps": step.total_steps,
            "nextStepNeeded": step.next_step_needed,
            "branches": self._state.branch_ids,
            "stepHistoryLength": self._state.step_count,
            "phase": phase,
        }
        if tool_result is not None:
            response["toolResult"] = {
                "success": tool_result.success,
                "executionTime": tool_result.execution_time,
            }

        return ProcessResult.from_payload(response)

    def _handle_error(self, exc: Exception) -> ProcessResult:
        if isinstance(exc, ThinkingError):
            error_type, recovery = exc.error_type, exc.recovery_strategy
        else:
            error_type, recovery = GENERIC_ERROR_TYPE, GENERIC_RECOVERY

        error = ToolError(type=error_type, message=str(exc) or type(exc).__name__, recovery_strategy=recovery)
        self._display.step_rejected(error.type, error.message)

        return ProcessResult.from_payload({"error": error.to_wire(), "status": "failed"}, is_error=True)

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    def get_history(self) -> StepHistory:
        return self._state.get_history()

    def get_tool_statistics(self) -> ToolCallStatistics:
        """Secondary, cache-derived view. Prefer get_history().statistics."""
        return self._tool_calls.get_statistics()

    def inject_mock_results(self, mock_results: Mapping[str, ToolResult | Mapping[str, Any]]) -> None:
        """Register fixtures keyed by tool_calls.cache_key(); they bypass cache and executor."""
        self._tool_calls.inject_mock_results(mock_results)

    def reset(self) -> None:
        """
        Drop steps, branches, tool call records, budget usage and cached
        results. Configuration, executor and mock fixtures are kept.
        """
        self._tool_calls.reset()
        self._state = StateManager()
