# validation.py
# Step validation and phase inference.
#
# Both run before the harness touches any state, so a rejected step is never
# recorded. Checks run in a fixed order and the first violation wins.

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from interleaved_thinking.errors import StepValidationError
from interleaved_thinking.models import PHASES, Step, ThoughtPhase

if TYPE_CHECKING:
    from interleaved_thinking.state import StateManager


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _get(data: Mapping[str, Any], wire_name: str, attr_name: str) -> Any:
    if wire_name in data:
        return data[wire_name]
    return data.get(attr_name)


def _is_positive_int(value: Any) -> bool:
    # bool is an int subclass; True must not pass as step 1.
    return isinstance(value, int) and not isinstance(value, bool) and value >= 1


def _describe(exc: ValidationError) -> str:
    first = exc.errors()[0]
    location = ".".join(str(part) for part in first["loc"])
    return f"{location}: {first['msg']}" if location else first["msg"]


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def validate_step(raw: Step | Mapping[str, Any]) -> Step:
    """
    Check the structural invariants of an incoming step and build a Step.

    Order: stepNumber, totalSteps, nextStepNeeded, phase. Anything else the
    schema rejects (missing thought, malformed toolCall) is reported after
    those. A caller-supplied toolResult is discarded.
    """
    if isinstance(raw, Step):
        data: dict[str, Any] = raw.model_dump(by_alias=True, exclude_none=True)
    elif isinstance(raw, Mapping):
        data = dict(raw)
    else:
        raise StepValidationError(f"step must be an object, got {type(raw).__name__}")

    if not _is_positive_int(_get(data, "stepNumber", "step_number")):
        raise StepValidationError("stepNumber must be a positive integer")

    if not _is_positive_int(_get(data, "totalSteps", "total_steps")):
        raise StepValidationError("totalSteps must be a positive integer")

    if not isinstance(_get(data, "nextStepNeeded", "next_step_needed"), bool):
        raise StepValidationError("nextStepNeeded is required")

    phase = data.get("phase")
    if phase is not None and phase not in PHASES:
        raise StepValidationError("phase must be one of: thinking, tool_call, analysis")

    data.pop("toolResult", None)
    data.pop("tool_result", None)

    try:
        return Step.model_validate(data)
    except ValidationError as exc:
        raise StepValidationError(_describe(exc)) from exc


# ---------------------------------------------------------------------------
# Phase inference
# ---------------------------------------------------------------------------


def infer_phase(step: Step, state: "StateManager") -> ThoughtPhase:
    """
    Resolve the effective phase of a validated step.

    An explicit phase always wins. Otherwise a toolCall means tool_call, a
    step following a stored tool_call step (by stepNumber - 1) means
    analysis, and everything else is thinking.
    """
    if step.phase is not None:
        return step.phase

    if step.tool_call is not None:
        return "tool_call"

    previous = state.get_step(step.step_number - 1)
    if previous is not None and previous.phase == "tool_call":
        return "analysis"

    return "thinking"
