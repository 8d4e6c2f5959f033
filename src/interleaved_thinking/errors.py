# errors.py
# Exception taxonomy for the interleaved thinking harness.
#
# Each class names the error type surfaced to callers and the recovery hint
# that accompanies it. The harness boundary reads both when it shapes the
# error payload.

GENERIC_ERROR_TYPE = "Error"
GENERIC_RECOVERY = "Check input parameters and try again"


class ThinkingError(Exception):
    """Base for every error the harness knows how to classify."""

    error_type = GENERIC_ERROR_TYPE
    recovery_strategy = GENERIC_RECOVERY


class StepValidationError(ThinkingError):
    """Raised when a step is malformed or misses a required field."""

    error_type = "ValidationError"
    recovery_strategy = "Provide all required fields"


class MissingToolCallError(StepValidationError):
    """Raised when a tool_call phase step carries no toolCall."""

    def __init__(self) -> None:
        super().__init__("toolCall is required for tool_call phase")


class ToolCallLimitError(ThinkingError):
    """Raised before execution once the session's tool budget is spent."""

    error_type = "ToolCallLimitError"
    recovery_strategy = "Summarize progress and terminate or reset the session"


class ToolExecutionError(ThinkingError):
    """A tool ran and failed. Returned inside a ToolResult, never raised to callers."""

    error_type = "ToolExecutionError"
    recovery_strategy = "Retry with adjusted parameters or use an alternative tool"


class ToolNotFoundError(ToolExecutionError):
    """Raised by the registry executor when a tool name is not registered."""


class ToolTimeoutError(ThinkingError):
    """A tool lost the race against its timeout."""

    error_type = "TimeoutError"
    recovery_strategy = "Use a simpler tool or increase timeout"
