# models.py
# Data contracts for the interleaved thinking harness.
# No business logic lives here: pure schema and validation.
#
# Attributes are snake_case; every model reads and writes the camelCase
# wire names used by MCP clients (stepNumber, toolCall, isError, ...).

import json
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

ThoughtPhase = Literal["thinking", "tool_call", "analysis"]

PHASES: tuple[str, ...] = ("thinking", "tool_call", "analysis")


class WireModel(BaseModel):
    """Base for every contract that crosses the transport boundary."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# ---------------------------------------------------------------------------
# Tool invocation
# ---------------------------------------------------------------------------


class ToolCallMetadata(WireModel):
    """Per-call hints. Only timeout is acted upon."""

    timeout: float | None = Field(default=None, description="Milliseconds; <= 0 means the default.")
    retry_count: int | None = Field(default=None, description="Advisory only.")
    priority: Literal["high", "normal", "low"] | None = Field(default=None, description="Advisory only.")


class ToolCall(WireModel):
    """A named tool invocation requested by a step."""

    tool_name: str = Field(..., description="Tool identifier.")
    parameters: dict[str, Any] = Field(..., description="Tool parameters as key-value pairs.")
    metadata: ToolCallMetadata | None = None


class ToolError(WireModel):
    type: str
    message: str
    recovery_strategy: str | None = None


class ToolResult(WireModel):
    """Outcome of one invocation, stamped by the tool call manager."""

    tool_name: str
    success: bool
    result: Any = None
    error: ToolError | None = None
    execution_time: int | float = Field(default=0, description="Milliseconds, measured by the manager.")
    timestamp: str = ""


# ---------------------------------------------------------------------------
# Steps and history
# ---------------------------------------------------------------------------


class Step(WireModel):
    """A single unit of reasoning submitted by the caller."""

    thought: str
    step_number: int
    total_steps: int
    next_step_needed: bool

    is_revision: bool | None = None
    revises_step: int | None = None
    branch_from_step: int | None = None
    branch_id: str | None = None
    needs_more_steps: bool | None = None

    phase: ThoughtPhase | None = Field(default=None, description="Inferred when absent.")
    tool_call: ToolCall | None = None
    tool_result: ToolResult | None = Field(default=None, description="Attached by the harness.")


class ToolCallRecord(WireModel):
    """Audit entry appended for every executed tool_call step."""

    step_number: int
    tool_call: ToolCall
    result: ToolResult


class HistoryStatistics(WireModel):
    total_steps: int = 0
    total_tool_calls: int = 0
    successful_tool_calls: int = 0
    failed_tool_calls: int = 0
    total_execution_time: int | float = 0


class StepHistory(WireModel):
    """Read-only snapshot of a session."""

    steps: list[Step] = Field(default_factory=list)
    branches: dict[str, list[Step]] = Field(default_factory=dict)
    tool_calls: list[ToolCallRecord] = Field(default_factory=list)
    statistics: HistoryStatistics = Field(default_factory=HistoryStatistics)


class ToolCallStatistics(WireModel):
    total_calls: int = 0
    successful_calls: int = 0
    failed_calls: int = 0
    total_execution_time: int | float = 0


# ---------------------------------------------------------------------------
# Transport envelope
# ---------------------------------------------------------------------------


class TextContent(WireModel):
    type: Literal["text"] = "text"
    text: str


class ProcessResult(WireModel):
    """Envelope returned by ThinkingHarness.process_step."""

    content: list[TextContent]
    is_error: bool | None = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any], is_error: bool = False) -> "ProcessResult":
        return cls(
            content=[TextContent(text=json.dumps(payload, indent=2))],
            is_error=True if is_error else None,
        )

    @property
    def payload(self) -> dict[str, Any]:
        """Decoded JSON body of the first content block."""
        return json.loads(self.content[0].text)
