# display.py
# All diagnostic output for the interleaved thinking harness.
#
# This module owns presentation entirely. harness.py never formats strings;
# it calls named methods here. Output goes to stderr because stdout carries
# the MCP stdio transport.
#
# Colour language:
#   blue    : thinking steps
#   cyan    : tool calls and server lifecycle
#   green   : successful tool results
#   red     : tool failures and rejected steps
#   magenta : analysis steps
#   yellow  : revision context

import json
from typing import Any

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.text import Text

from interleaved_thinking.models import Step, ToolCall, ToolResult


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _label(tag: str, color: str) -> Text:
    t = Text()
    t.append(f" {tag} ", style=f"bold white on {color}")
    return t


def _mono(value: str, max_len: int = 120) -> str:
    if len(value) > max_len:
        return value[:max_len] + "…"
    return value


def _json(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, default=str)


def _context(step: Step) -> str:
    """Revision or branch annotation for a step header."""
    if step.is_revision and step.revises_step:
        return f"  [yellow](revising step {step.revises_step})[/yellow]"
    if step.branch_from_step and step.branch_id:
        return f"  [green](from step {step.branch_from_step}, ID: {escape(step.branch_id)})[/green]"
    return ""


# ---------------------------------------------------------------------------
# StepDisplay
# ---------------------------------------------------------------------------


class StepDisplay:
    """
    Write-only diagnostic channel. One panel per step, tagged by phase.

    With enabled=False every method returns without printing.
    """

    def __init__(self, enabled: bool = True, console: Console | None = None) -> None:
        self.enabled = enabled
        self.console = console or Console(stderr=True)

    def _panel(self, body: str, title: Text, color: str) -> None:
        self.console.print()
        self.console.print(Panel(body, title=title, border_style=color, padding=(0, 2)))

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    def thinking_step(self, step: Step) -> None:
        if not self.enabled:
            return
        self._panel(
            f"[dim]Step {step.step_number}/{step.total_steps}[/dim]{_context(step)}\n\n"
            f"[white]{escape(step.thought)}[/white]",
            _label("💭 THINKING", "blue"),
            "blue",
        )

    def tool_call(self, tool_call: ToolCall) -> None:
        if not self.enabled:
            return
        self._panel(
            f"[bold white]{escape(tool_call.tool_name)}[/bold white]"
            f"[dim]({escape(_mono(_json(tool_call.parameters), 200))})[/dim]",
            _label("🔧 TOOL CALL", "cyan"),
            "cyan",
        )

    def tool_result(self, result: ToolResult) -> None:
        if not self.enabled:
            return
        if result.success:
            self._panel(
                f"[bold white]{escape(result.tool_name)}[/bold white]: "
                f"[white]{escape(_mono(_json(result.result), 200))}[/white] "
                f"[dim]({result.execution_time}ms)[/dim]",
                _label("✅ TOOL RESULT", "green"),
                "green",
            )
            return

        message = result.error.message if result.error else "unknown error"
        self._panel(
            f"[bold white]{escape(result.tool_name)}[/bold white]: "
            f"[red]{escape(message)}[/red] [dim]({result.execution_time}ms)[/dim]",
            _label("❌ TOOL ERROR", "red"),
            "red",
        )

    def analysis_step(self, step: Step) -> None:
        if not self.enabled:
            return
        self._panel(
            f"[dim]Step {step.step_number}/{step.total_steps}[/dim]{_context(step)}\n\n"
            f"[white]{escape(step.thought)}[/white]",
            _label("📊 ANALYSIS", "magenta"),
            "magenta",
        )

    # ------------------------------------------------------------------
    # Failures and lifecycle
    # ------------------------------------------------------------------

    def step_rejected(self, error_type: str, message: str) -> None:
        if not self.enabled:
            return
        self._panel(
            f"[bold red]{error_type}[/bold red]\n[white]{escape(message)}[/white]",
            _label("STEP REJECTED ✗", "red"),
            "red",
        )

    def server_started(self, transport: str) -> None:
        if not self.enabled:
            return
        self.console.print(
            _label("SERVER", "cyan"),
            f"[cyan] Interleaved Sequential Thinking MCP Server running on {transport}[/cyan]",
        )
