# server.py
# MCP binding. Exposes ThinkingHarness.process_step as a single tool.
#
# Wire names stay camelCase (stepNumber, toolCall, ...) so existing MCP
# clients keep working; the harness does all validation.

import json
from collections.abc import Mapping
from typing import Annotated, Any, Literal

from fastmcp import FastMCP
from fastmcp.exceptions import ToolError as MCPToolError
from pydantic import Field

from interleaved_thinking.harness import ThinkingHarness

TOOL_NAME = "interleaved-thinking"

TOOL_DESCRIPTION = """\
Dynamic problem solving through interleaved reasoning and tool execution.

Each call records one step. A step is pure thinking, a tool call, or the
analysis of a tool result. The phase is inferred when omitted:
  - toolCall present            → tool_call (the tool is executed)
  - previous step was tool_call → analysis
  - otherwise                   → thinking

Use it for tasks that need think → act → reflect cycles. Revise earlier
steps with isRevision/revisesStep, explore alternatives with
branchFromStep/branchId, raise totalSteps whenever the estimate grows, and
set nextStepNeeded=false when the task is complete. Tool failures come back
as results to analyse; a budget error means summarize and stop.\
"""


def coerce_tool_call(value: Any) -> Any:
    """
    Decode a toolCall sent as a JSON string, and its parameters/metadata when
    those arrive as strings. Undecodable strings are left for validation
    to reject.
    """
    if isinstance(value, str):
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            return value

    if isinstance(value, Mapping):
        decoded = dict(value)
        for field in ("parameters", "metadata"):
            if isinstance(decoded.get(field), str):
                try:
                    decoded[field] = json.loads(decoded[field])
                except json.JSONDecodeError:
                    pass
        return decoded

    return value


def build_server(harness: ThinkingHarness) -> FastMCP:
    """Register the interleaved-thinking tool against one harness session."""
    mcp: FastMCP = FastMCP("interleaved-thinking")

    @mcp.tool(name=TOOL_NAME, description=TOOL_DESCRIPTION)
    async def interleaved_thinking(
        thought: Annotated[str, Field(description="Your current thinking content")],
        stepNumber: Annotated[int, Field(description="Current step number, starting at 1")],  # noqa: N803
        totalSteps: Annotated[int, Field(description="Estimated total steps needed")],  # noqa: N803
        nextStepNeeded: Annotated[bool, Field(description="Whether another step is needed")],  # noqa: N803
        phase: Annotated[
            Literal["thinking", "tool_call", "analysis"] | None,
            Field(description="Optional; inferred when omitted"),
        ] = None,
        toolCall: Annotated[  # noqa: N803
            dict[str, Any] | str | None,
            Field(description="{toolName, parameters, metadata?}; required when phase='tool_call'"),
        ] = None,
        isRevision: Annotated[bool | None, Field(description="Whether this revises earlier reasoning")] = None,  # noqa: N803
        revisesStep: Annotated[int | None, Field(description="Which step is being reconsidered")] = None,  # noqa: N803
        branchFromStep: Annotated[int | None, Field(description="Branching point step number")] = None,  # noqa: N803
        branchId: Annotated[str | None, Field(description="Branch identifier")] = None,  # noqa: N803
        needsMoreSteps: Annotated[bool | None, Field(description="If more steps are needed")] = None,  # noqa: N803
    ) -> dict[str, Any]:
        fields = {
            "thought": thought,
            "stepNumber": stepNumber,
            "totalSteps": totalSteps,
            "nextStepNeeded": nextStepNeeded,
            "phase": phase,
            "toolCall": coerce_tool_call(toolCall),
            "isRevision": isRevision,
            "revisesStep": revisesStep,
            "branchFromStep": branchFromStep,
            "branchId": branchId,
            "needsMoreSteps": needsMoreSteps,
        }
        result = await harness.process_step({k: v for k, v in fields.items() if v is not None})

        if result.is_error:
            raise MCPToolError(result.content[0].text)
        return result.payload

    return mcp
