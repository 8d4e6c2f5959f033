# state.py
# In-memory ledger for one thinking session.
#
# Owns the main step sequence, the branch index and the tool call audit log.
# Statistics are derived from the audit log on every read and never stored.

from interleaved_thinking.models import (
    HistoryStatistics,
    Step,
    StepHistory,
    ToolCallRecord,
    ToolResult,
)


class StateManager:
    """Append-only step log plus branch buckets plus tool call records."""

    def __init__(self) -> None:
        self._steps: list[Step] = []
        self._branches: dict[str, list[Step]] = {}
        self._tool_calls: list[ToolCallRecord] = []

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def add_step(self, step: Step) -> None:
        """
        Append to the main sequence. A step carrying both branch_from_step and
        branch_id is also appended, by reference, to that branch's bucket.
        """
        self._steps.append(step)

        if step.branch_from_step and step.branch_id:
            self._branches.setdefault(step.branch_id, []).append(step)

    def add_tool_call(self, record: ToolCallRecord) -> None:
        self._tool_calls.append(record)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_step(self, step_number: int) -> Step | None:
        """First stored step with this number, in arrival order."""
        return next((s for s in self._steps if s.step_number == step_number), None)

    def get_last_tool_result(self) -> ToolResult | None:
        if not self._tool_calls:
            return None
        return self._tool_calls[-1].result

    @property
    def step_count(self) -> int:
        return len(self._steps)

    @property
    def branch_ids(self) -> list[str]:
        return list(self._branches)

    @property
    def last_step(self) -> Step | None:
        return self._steps[-1] if self._steps else None

    def get_history(self) -> StepHistory:
        """Snapshot of the session. Containers are copies; steps are shared."""
        return StepHistory(
            steps=list(self._steps),
            branches={bid: list(steps) for bid, steps in self._branches.items()},
            tool_calls=list(self._tool_calls),
            statistics=self._calculate_statistics(),
        )

    def _calculate_statistics(self) -> HistoryStatistics:
        successful = sum(1 for record in self._tool_calls if record.result.success)
        return HistoryStatistics(
            total_steps=len(self._steps),
            total_tool_calls=len(self._tool_calls),
            successful_tool_calls=successful,
            failed_tool_calls=len(self._tool_calls) - successful,
            total_execution_time=sum(r.result.execution_time for r in self._tool_calls),
        )
