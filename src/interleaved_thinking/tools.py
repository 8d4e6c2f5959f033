# tools.py
# Tool execution backends.
#
# The harness never runs tool logic itself. It hands each ToolCall to an
# executor: any async callable that returns a payload or raises. Two are
# provided here: a simulated executor (the default) and a name-keyed
# registry for plugging in real callables.

import asyncio
import inspect
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

from interleaved_thinking.errors import ToolNotFoundError
from interleaved_thinking.models import ToolCall

ToolExecutor = Callable[[ToolCall], Awaitable[Any]]
ToolFunction = Callable[[dict[str, Any]], Any]

SIMULATED_LATENCY = 0.01  # seconds


async def simulate_tool_execution(tool_call: ToolCall, latency: float = SIMULATED_LATENCY) -> dict[str, Any]:
    """Stand-in executor: echoes the call back after a short delay."""
    if latency > 0:
        await asyncio.sleep(latency)
    return {
        "message": f"Mock result for {tool_call.tool_name}",
        "parameters": tool_call.parameters,
    }


class ToolRegistry:
    """
    Executor that dispatches by tool name to registered callables.

    Callables receive the parameters dict. Coroutine functions are awaited;
    plain functions run in a worker thread so a timeout can still win the
    race against them.

    Example:
        registry = ToolRegistry({"echo": lambda args: args.get("message", "")})
        harness = ThinkingHarness(executor=registry)
    """

    def __init__(self, tools: Mapping[str, ToolFunction] | None = None) -> None:
        self._tools: dict[str, ToolFunction] = dict(tools or {})

    def register(self, name: str, fn: ToolFunction) -> None:
        self._tools[name] = fn

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    @property
    def names(self) -> list[str]:
        return sorted(self._tools)

    async def __call__(self, tool_call: ToolCall) -> Any:
        fn = self._tools.get(tool_call.tool_name)
        if fn is None:
            raise ToolNotFoundError(f"Tool '{tool_call.tool_name}' is not in the registry.")

        args = dict(tool_call.parameters)
        if inspect.iscoroutinefunction(fn):
            return await fn(args)
        return await asyncio.to_thread(fn, args)
