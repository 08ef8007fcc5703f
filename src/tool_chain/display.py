# display.py
# Observability for the tool-chain engine.
#
# The controller, the search client and friends never print. They report
# named events to an injected observer. ConsoleDisplay renders those events
# in the terminal; NullObserver drops them (library use, tests).
#
# Colour language:
#   cyan: routing / planning events
#   yellow: reference resolution and retries
#   green: success / final result
#   red: failures and halts
#   magenta: tool input / output

import json
from typing import Protocol

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table
from rich.text import Text

from tool_chain.models import ChainResult, ChainState, ExecutedStep, InputValue, Plan
from tool_chain.trace import render_output


class ChainObserver(Protocol):
    def prompt_received(self, query: str) -> None: ...
    def state_changed(self, state: ChainState, index: int | None = None) -> None: ...
    def plan_parsed(self, plan: Plan) -> None: ...
    def plan_rejected(self, reason: str) -> None: ...
    def step_start(self, index: int, total: int, tool: str, description: str) -> None: ...
    def step_resolved(self, index: int, raw: InputValue, resolved: InputValue) -> None: ...
    def step_output(self, index: int, entry: ExecutedStep) -> None: ...
    def step_failed(self, index: int, entry: ExecutedStep) -> None: ...
    def search_retry(self, attempt: int, delay: float, reason: str) -> None: ...
    def synthesis_start(self, reason: str) -> None: ...
    def synthesis_failed(self, reason: str) -> None: ...
    def final_result(self, result: str) -> None: ...
    def halt(self, reason: str) -> None: ...


class NullObserver:
    """Observer that records nothing."""

    def prompt_received(self, query: str) -> None:
        pass

    def state_changed(self, state: ChainState, index: int | None = None) -> None:
        pass

    def plan_parsed(self, plan: Plan) -> None:
        pass

    def plan_rejected(self, reason: str) -> None:
        pass

    def step_start(self, index: int, total: int, tool: str, description: str) -> None:
        pass

    def step_resolved(self, index: int, raw: InputValue, resolved: InputValue) -> None:
        pass

    def step_output(self, index: int, entry: ExecutedStep) -> None:
        pass

    def step_failed(self, index: int, entry: ExecutedStep) -> None:
        pass

    def search_retry(self, attempt: int, delay: float, reason: str) -> None:
        pass

    def synthesis_start(self, reason: str) -> None:
        pass

    def synthesis_failed(self, reason: str) -> None:
        pass

    def final_result(self, result: str) -> None:
        pass

    def halt(self, reason: str) -> None:
        pass


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _label(tag: str, color: str) -> Text:
    t = Text()
    t.append(f" {tag} ", style=f"bold white on {color}")
    return t


def _mono(value: str, max_len: int = 120) -> str:
    value = value.replace("\n", " ")
    if len(value) > max_len:
        value = value[:max_len] + "…"
    return escape(value)


def _input_text(value: InputValue) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False)


# ---------------------------------------------------------------------------
# Console renderer
# ---------------------------------------------------------------------------


class ConsoleDisplay:
    """Renders chain events with rich. Pass a Console to capture output."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    # -- Pipeline entry ---------------------------------------------------

    def prompt_received(self, query: str) -> None:
        self.console.print()
        self.console.print(Rule("[cyan]NEW QUERY[/cyan]", style="cyan"))
        self.console.print(
            Panel(
                f"[white]{escape(query)}[/white]",
                title=_label("QUERY", "cyan"),
                border_style="cyan",
                padding=(0, 2),
            )
        )

    def state_changed(self, state: ChainState, index: int | None = None) -> None:
        if state is ChainState.PLANNING:
            self.console.print(_label("CHAIN", "cyan"), "[cyan] → Requesting plan from model…[/cyan]")
        elif state is ChainState.EXECUTING and index == 0:
            self.console.print()
            self.console.print(Rule("[cyan]EXECUTION[/cyan]", style="cyan"))

    # -- Planning ---------------------------------------------------------

    def plan_parsed(self, plan: Plan) -> None:
        self.console.print()
        table = Table(
            box=box.SIMPLE_HEAVY,
            border_style="cyan",
            show_header=True,
            header_style="bold cyan",
            padding=(0, 1),
        )
        table.add_column("#", justify="center", width=4)
        table.add_column("Tool", style="bold white", width=16)
        table.add_column("Input", style="dim white", width=32)
        table.add_column("Description", style="white")

        for number, step in enumerate(plan.steps, start=1):
            table.add_row(str(number), step.tool, _mono(_input_text(step.input), 30), step.description)

        self.console.print(
            Panel(
                table,
                title=_label("PLAN", "cyan"),
                subtitle=f"[dim]{_mono(plan.explanation, 100)}[/dim]",
                border_style="cyan",
                padding=(0, 1),
            )
        )

    def plan_rejected(self, reason: str) -> None:
        self.console.print()
        self.console.print(
            Panel(
                f"[bold red]Plan rejected.[/bold red]\n\n[white]{escape(reason)}[/white]",
                title=_label("PLAN REJECTED ✗", "red"),
                border_style="red",
                padding=(0, 2),
            )
        )

    # -- Execution loop ---------------------------------------------------

    def step_start(self, index: int, total: int, tool: str, description: str) -> None:
        self.console.print()
        self.console.print(
            f"[bold cyan]  STEP [{index + 1}/{total}][/bold cyan]  "
            f"[bold white]{tool}[/bold white]  [white]{description}[/white]"
        )

    def step_resolved(self, index: int, raw: InputValue, resolved: InputValue) -> None:
        if raw != resolved:
            self.console.print(
                f"  [yellow]↳ Reference resolved[/yellow] [dim]{_mono(_input_text(raw), 60)}[/dim]"
            )
        self.console.print(f"  [magenta]Input[/magenta]    [dim white]{_mono(_input_text(resolved), 140)}[/dim white]")

    def step_output(self, index: int, entry: ExecutedStep) -> None:
        if entry.defaults_applied:
            self.console.print(
                f"  [yellow]⚠ Defaults used[/yellow] [dim]{', '.join(entry.defaults_applied)}[/dim]"
            )
        self.console.print(f"  [magenta]Output[/magenta]   [white]{_mono(render_output(entry.output), 140)}[/white]")

    def step_failed(self, index: int, entry: ExecutedStep) -> None:
        self.console.print(
            Panel(
                f"[bold red]Step {index + 1} ({entry.tool}) failed.[/bold red]\n"
                f"[white]{escape(render_output(entry.output))}[/white]\n"
                "[dim]Remaining steps skipped.[/dim]",
                title=_label("STEP FAILED ✗", "red"),
                border_style="red",
                padding=(0, 2),
            )
        )

    def search_retry(self, attempt: int, delay: float, reason: str) -> None:
        self.console.print(
            f"  [yellow]↻ Search attempt {attempt} refused[/yellow] "
            f"[dim]({_mono(reason, 60)}) retrying in {delay:.2f}s[/dim]"
        )

    # -- Synthesis --------------------------------------------------------

    def synthesis_start(self, reason: str) -> None:
        self.console.print()
        self.console.print(Rule("[cyan]SYNTHESIS[/cyan]", style="cyan"))
        self.console.print(f"[cyan]  Last output unusable ({reason}); composing answer from trace…[/cyan]")

    def synthesis_failed(self, reason: str) -> None:
        self.console.print(f"  [bold red]✗ Synthesis failed[/bold red] [dim]{_mono(reason, 100)}[/dim]")

    # -- Final result -----------------------------------------------------

    def final_result(self, result: str) -> None:
        self.console.print()
        self.console.print(
            Panel(
                f"[white]{escape(result)}[/white]",
                title=_label("RESULT", "green"),
                border_style="green",
                padding=(1, 2),
            )
        )
        self.console.print()

    def halt(self, reason: str) -> None:
        self.console.print()
        self.console.print(
            Panel(
                f"[bold white]{escape(reason)}[/bold white]",
                title=_label("HALT", "red"),
                border_style="red",
                padding=(0, 2),
            )
        )
        self.console.print()

    # -- Run summary ------------------------------------------------------

    def summary(self, result: ChainResult) -> None:
        """Step table for a finished run, followed by the plan rationale and the answer."""
        table = Table(
            box=box.SIMPLE_HEAVY,
            border_style="green",
            show_header=True,
            header_style="bold green",
            padding=(0, 1),
        )
        table.add_column("#", justify="center", width=4)
        table.add_column("Tool", style="bold white", width=16)
        table.add_column("Output", style="white")
        table.add_column("", justify="center", width=3)

        for number, entry in enumerate(result.steps, start=1):
            status = "[red]✗[/red]" if entry.error else "[green]✓[/green]"
            table.add_row(str(number), entry.tool, _mono(render_output(entry.output), 80), status)

        body = Table.grid(padding=(0, 1))
        body.add_row(table if result.steps else Text("No steps were executed.", style="dim"))
        if result.explanation:
            body.add_row(f"[dim]Plan: {_mono(result.explanation, 160)}[/dim]")
        body.add_row(f"[white]{escape(result.result)}[/white]")

        self.console.print(
            Panel(
                body,
                title=_label("SUMMARY", "green"),
                border_style="green",
                padding=(0, 1),
            )
        )
