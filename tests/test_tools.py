import threading

import pytest

from interleaved_thinking.errors import ToolNotFoundError
from interleaved_thinking.models import ToolCall
from interleaved_thinking.tools import ToolRegistry, simulate_tool_execution

# ---------------------------------------------------------------------------
# Simulated executor
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_simulated_execution_echoes_call():
    result = await simulate_tool_execution(ToolCall(tool_name="search", parameters={"query": "mcp"}), latency=0)

    assert result == {"message": "Mock result for search", "parameters": {"query": "mcp"}}

# ---------------------------------------------------------------------------
# Registry dispatch
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_registry_runs_plain_functions_off_the_event_loop():
    seen_threads = []

    def summarize(args: dict) -> str:
        seen_threads.append(threading.current_thread())
        return args["text"][:5]

    registry = ToolRegistry({"summarize": summarize})

    result = await registry(ToolCall(tool_name="summarize", parameters={"text": "abcdefgh"}))

    assert result == "abcde"
    assert seen_threads[0] is not threading.main_thread()

@pytest.mark.asyncio
async def test_registry_awaits_coroutine_functions():
    async def echo(args: dict) -> str:
        return args.get("message", "")

    registry = ToolRegistry()
    registry.register("echo", echo)

    assert "echo" in registry
    assert await registry(ToolCall(tool_name="echo", parameters={"message": "hi"})) == "hi"

@pytest.mark.asyncio
async def test_registry_passes_a_copy_of_parameters():
    def mutate(args: dict) -> None:
        args["injected"] = True

    registry = ToolRegistry({"mutate": mutate})
    call = ToolCall(tool_name="mutate", parameters={"a": 1})

    await registry(call)

    assert call.parameters == {"a": 1}

@pytest.mark.asyncio
async def test_registry_unknown_tool_raises():
    registry = ToolRegistry({"echo": lambda args: args})

    with pytest.raises(ToolNotFoundError, match="not in the registry"):
        await registry(ToolCall(tool_name="rm", parameters={}))
    assert registry.names == ["echo"]
