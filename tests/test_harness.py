import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from interleaved_thinking.config import ServerConfig
from interleaved_thinking.harness import ThinkingHarness
from interleaved_thinking.models import ToolCall, ToolResult
from interleaved_thinking.tool_calls import cache_key


def make_harness(**overrides) -> ThinkingHarness:
    config = ServerConfig(disable_logging=True, test_mode=True, **overrides)
    return ThinkingHarness(config)


def step(number: int, total: int = 3, next_needed: bool = True, **extra) -> dict:
    return {
        "thought": f"step {number}",
        "stepNumber": number,
        "totalSteps": total,
        "nextStepNeeded": next_needed,
        **extra,
    }


def fetch_call(query: str = "x", **extra) -> dict:
    return {"toolName": "fetch", "parameters": {"q": query}, **extra}


# ---------------------------------------------------------------------------
# End-to-end think → call → analyze
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_plain_step_resolves_to_thinking():
    harness = make_harness()

    result = await harness.process_step({"thought": "t1", "stepNumber": 1, "totalSteps": 3, "nextStepNeeded": True})

    assert result.is_error is None
    assert result.content[0].type == "text"
    payload = result.payload
    assert payload == {
        "stepNumber": 1,
        "totalSteps": 3,
        "nextStepNeeded": True,
        "branches": [],
        "stepHistoryLength": 1,
        "phase": "thinking",
    }

@pytest.mark.asyncio
async def test_think_call_analyze_cycle():
    harness = make_harness()

    await harness.process_step(step(1))
    called = (await harness.process_step(step(2, toolCall=fetch_call()))).payload
    reflected = (await harness.process_step(step(3, next_needed=False))).payload

    assert called["phase"] == "tool_call"
    assert called["toolResult"]["success"] is True
    assert called["toolResult"]["executionTime"] >= 0
    assert set(called["toolResult"]) == {"success", "executionTime"}

    assert reflected["phase"] == "analysis"
    assert reflected["nextStepNeeded"] is False
    assert reflected["toolResult"] == called["toolResult"]
    assert reflected["stepHistoryLength"] == 3

@pytest.mark.asyncio
async def test_tool_result_is_attached_to_stored_step():
    harness = make_harness()

    await harness.process_step(step(1, toolCall=fetch_call()))
    history = harness.get_history()

    stored = history.steps[0]
    assert stored.phase == "tool_call"
    assert stored.tool_result is not None
    assert stored.tool_result.result == {"message": "Mock result for fetch", "parameters": {"q": "x"}}
    assert history.tool_calls[0].step_number == 1
    assert history.tool_calls[0].result is stored.tool_result

@pytest.mark.asyncio
async def test_analysis_without_prior_tool_call_has_no_tool_result():
    harness = make_harness()

    payload = (await harness.process_step(step(1, phase="analysis"))).payload

    assert payload["phase"] == "analysis"
    assert "toolResult" not in payload

@pytest.mark.asyncio
async def test_explicit_phase_overrides_inference():
    harness = make_harness()

    await harness.process_step(step(1, toolCall=fetch_call()))
    payload = (await harness.process_step(step(2, phase="thinking"))).payload

    assert payload["phase"] == "thinking"

@pytest.mark.asyncio
async def test_inference_uses_first_stored_step_with_previous_number():
    harness = make_harness()

    await harness.process_step(step(1))
    await harness.process_step(step(2, toolCall=fetch_call()))
    await harness.process_step(step(2, phase="thinking", isRevision=True, revisesStep=2))
    payload = (await harness.process_step(step(3))).payload

    assert payload["phase"] == "analysis"
    assert payload["stepHistoryLength"] == 4

# ---------------------------------------------------------------------------
# totalSteps adjustment
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_total_steps_raised_to_step_number():
    harness = make_harness()

    payload = (await harness.process_step(step(5, total=3, phase="thinking"))).payload

    assert payload["totalSteps"] == 5
    assert harness.get_history().steps[0].total_steps == 5

@pytest.mark.asyncio
async def test_total_steps_never_decreases_across_session():
    harness = make_harness()

    totals = []
    for number, estimate in [(1, 4), (2, 2), (3, 6), (4, 1), (9, 2)]:
        totals.append((await harness.process_step(step(number, total=estimate))).payload["totalSteps"])

    assert totals == [4, 4, 6, 6, 9]

# ---------------------------------------------------------------------------
# Branches
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_branch_step_is_bucketed_and_listed_once():
    harness = make_harness()

    await harness.process_step(step(1))
    await harness.process_step(step(2, branchFromStep=1, branchId="b1"))
    payload = (await harness.process_step(step(3, branchFromStep=1, branchId="b1"))).payload

    assert payload["branches"] == ["b1"]
    history = harness.get_history()
    assert len(history.steps) == 3
    assert [s.step_number for s in history.branches["b1"]] == [2, 3]
    assert history.branches["b1"][0] is history.steps[1]

@pytest.mark.asyncio
async def test_branch_id_without_origin_is_not_bucketed():
    harness = make_harness()

    payload = (await harness.process_step(step(1, branchId="b1"))).payload

    assert payload["branches"] == []

# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_validation_error_payload_and_no_mutation():
    harness = make_harness()
    await harness.process_step(step(1))

    result = await harness.process_step({"thought": "bad", "totalSteps": 3, "nextStepNeeded": True})

    assert result.is_error is True
    assert result.payload == {
        "error": {
            "type": "ValidationError",
            "message": "stepNumber must be a positive integer",
            "recoveryStrategy": "Provide all required fields",
        },
        "status": "failed",
    }
    assert len(harness.get_history().steps) == 1
    assert (await harness.process_step(step(2))).payload["stepHistoryLength"] == 2

@pytest.mark.asyncio
async def test_tool_call_phase_without_tool_call_is_rejected():
    harness = make_harness()

    result = await harness.process_step(step(1, phase="tool_call"))

    assert result.is_error is True
    assert "toolCall is required for tool_call phase" in result.payload["error"]["message"]
    history = harness.get_history()
    assert history.steps == []
    assert history.tool_calls == []

@pytest.mark.asyncio
async def test_budget_exhaustion_returns_tool_call_limit_error():
    harness = make_harness(max_tool_calls=1)

    first = await harness.process_step(step(1, toolCall=fetch_call("a")))
    second = await harness.process_step(step(2, toolCall=fetch_call("b")))

    assert first.is_error is None
    assert second.is_error is True
    assert second.payload["error"]["type"] == "ToolCallLimitError"
    assert second.payload["error"]["recoveryStrategy"] == "Summarize progress and terminate or reset the session"
    assert len(harness.get_history().steps) == 1

@pytest.mark.asyncio
async def test_no_execution_attempt_after_budget_spent():
    executor = AsyncMock(return_value={"ok": True})
    harness = ThinkingHarness(ServerConfig(disable_logging=True, max_tool_calls=3), executor=executor)

    for number in range(1, 4):
        result = await harness.process_step(step(number, toolCall=fetch_call(str(number))))
        assert result.is_error is None

    result = await harness.process_step(step(4, toolCall=fetch_call("4")))

    assert result.payload["error"]["type"] == "ToolCallLimitError"
    assert executor.await_count == 3

@pytest.mark.asyncio
async def test_tool_failure_is_a_normal_step():
    executor = AsyncMock(side_effect=RuntimeError("backend unavailable"))
    harness = ThinkingHarness(ServerConfig(disable_logging=True), executor=executor)

    payload = (await harness.process_step(step(1, toolCall=fetch_call()))).payload

    assert payload["toolResult"]["success"] is False
    history = harness.get_history()
    assert history.tool_calls[0].result.error.type == "ToolExecutionError"
    assert history.statistics.failed_tool_calls == 1

@pytest.mark.asyncio
async def test_zero_timeout_falls_back_to_default():
    harness = make_harness()

    result = await harness.process_step(step(1, toolCall=fetch_call(metadata={"timeout": 0, "retryCount": -1})))

    assert result.is_error is None
    assert result.payload["phase"] == "tool_call"
    assert result.payload["toolResult"]["success"] is True
    assert harness.get_history().steps[0].tool_call.metadata.timeout == 0

@pytest.mark.asyncio
async def test_unexpected_exception_becomes_generic_error():
    display = MagicMock()
    display.thinking_step.side_effect = RuntimeError("boom")
    harness = ThinkingHarness(ServerConfig(test_mode=True), display=display)

    result = await harness.process_step(step(1))

    assert result.is_error is True
    assert result.payload["error"] == {
        "type": "Error",
        "message": "boom",
        "recoveryStrategy": "Check input parameters and try again",
    }
    display.step_rejected.assert_called_once_with("Error", "boom")
    assert harness.get_history().steps == []

# ---------------------------------------------------------------------------
# Cache, fixtures and statistics
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_repeated_call_is_served_from_cache():
    executor = AsyncMock(return_value={"ok": True})
    harness = ThinkingHarness(ServerConfig(disable_logging=True), executor=executor)

    await harness.process_step(step(1, toolCall=fetch_call(metadata={"timeout": 500})))
    await harness.process_step(step(2, toolCall=fetch_call(metadata={"priority": "high"})))

    assert executor.await_count == 1
    history = harness.get_history()
    assert history.statistics.total_tool_calls == 2
    assert history.statistics.successful_tool_calls == 2
    assert history.tool_calls[1].result is history.tool_calls[0].result

@pytest.mark.asyncio
async def test_injected_mock_result_is_returned():
    harness = make_harness()
    fixture = ToolResult(tool_name="fetch", success=False, execution_time=42, timestamp="2024-01-01T00:00:00.000Z")
    harness.inject_mock_results({cache_key(ToolCall.model_validate(fetch_call())): fixture})

    payload = (await harness.process_step(step(1, toolCall=fetch_call()))).payload

    assert payload["toolResult"] == {"success": False, "executionTime": 42}

@pytest.mark.asyncio
async def test_history_and_manager_statistics_diverge_on_duplicates():
    harness = make_harness()

    for number in (1, 2, 3):
        await harness.process_step(step(number, toolCall=fetch_call()))

    assert harness.get_history().statistics.total_tool_calls == 3
    manager_stats = harness.get_tool_statistics()
    assert manager_stats.total_calls == 3
    assert manager_stats.successful_calls == 1

# ---------------------------------------------------------------------------
# Session lifecycle
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_reset_clears_session_and_restores_budget():
    executor = AsyncMock(return_value={"ok": True})
    config = ServerConfig(disable_logging=True, max_tool_calls=1, enable_result_cache=False)
    harness = ThinkingHarness(config, executor=executor)

    await harness.process_step(step(1, branchFromStep=1, branchId="b1"))
    await harness.process_step(step(2, toolCall=fetch_call()))
    harness.reset()

    history = harness.get_history()
    assert history.steps == []
    assert history.branches == {}
    assert history.tool_calls == []
    assert harness.get_tool_statistics().total_calls == 0

    payload = (await harness.process_step(step(1, toolCall=fetch_call()))).payload
    assert payload["toolResult"]["success"] is True
    assert payload["stepHistoryLength"] == 1
    # Cache stays disabled: the identical call ran again instead of a hit.
    assert executor.await_count == 2

    exhausted = await harness.process_step(step(2, toolCall=fetch_call("other")))
    assert exhausted.payload["error"]["type"] == "ToolCallLimitError"
    assert executor.await_count == 2

@pytest.mark.asyncio
async def test_concurrent_steps_are_serialised():
    harness = make_harness()

    results = await asyncio.gather(*(harness.process_step(step(n)) for n in range(1, 6)))

    lengths = sorted(r.payload["stepHistoryLength"] for r in results)
    assert lengths == [1, 2, 3, 4, 5]

def test_disable_logging_silences_injected_display():
    display = MagicMock()
    display.enabled = True

    ThinkingHarness(ServerConfig(disable_logging=True), display=display)

    assert display.enabled is False
