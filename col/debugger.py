"""
Textual TUI debugger for col programs.

Step-by-step debugger that loads a .col program, runs it on the machine,
and shows every column, every live stack and the output after each step.

Usage:
    col-debug examples/countdown.col
    col-debug examples/echo.col --input "hello"
    col-debug --run --delay 100 examples/columns.col
"""

from __future__ import annotations

import argparse
import sys
import time
from pathlib import Path

from rich.markup import escape
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import ScrollableContainer
from textual.widgets import Static, RichLog, Footer
from textual import work

from .errors import ColError
from .host import ColHost
from .machine import STATE_NAMES, S_RUNNING


def _esc(text: str) -> str:
    """Escape Rich markup in text. Source lines are full of brackets and backslashes."""
    return escape(text)


def _printable(value: int) -> str:
    return chr(value) if 32 <= value < 127 else "."


# ---------------------------------------------------------------------------
# CSS
# ---------------------------------------------------------------------------

DEBUGGER_CSS = """
Screen {
    layout: grid;
    grid-size: 2 3;
    grid-columns: 1fr 1fr;
    grid-rows: 1fr 1fr auto;
}

.panel {
    border: solid $accent;
    border-title-align: left;
    overflow-y: auto;
    height: 100%;
}

Footer {
    column-span: 2;
}
"""


# ---------------------------------------------------------------------------
# Panel widgets
# ---------------------------------------------------------------------------

class SourcePanel(ScrollableContainer):
    """Program columns with the cursor marked."""
    BORDER_TITLE = "Source"

    def compose(self) -> ComposeResult:
        yield Static("", id="source-content")


class StatePanel(ScrollableContainer):
    """Cursor, run state, counters."""
    BORDER_TITLE = "Machine State"

    def compose(self) -> ComposeResult:
        yield Static("", id="state-content")


class StacksPanel(ScrollableContainer):
    """Every live stack, top value last."""
    BORDER_TITLE = "Stacks"

    def compose(self) -> ComposeResult:
        yield Static("", id="stacks-content")


class OutputPanel(ScrollableContainer):
    """Accumulated program output."""
    BORDER_TITLE = "Output"

    def compose(self) -> ComposeResult:
        yield RichLog(id="output-log", markup=True, wrap=True)


# ---------------------------------------------------------------------------
# Main debugger app
# ---------------------------------------------------------------------------

class ColDebugger(App):
    """Textual TUI debugger for col programs."""

    CSS = DEBUGGER_CSS
    TITLE = "col debugger"

    BINDINGS = [
        Binding("s", "step_1", "Step"),
        Binding("space", "step_1", "Step", show=False),
        Binding("n", "step_10", "x10"),
        Binding("f", "step_100", "x100"),
        Binding("r", "run_to_end", "Run"),
        Binding("b", "toggle_breakpoint", "Break"),
        Binding("q", "quit", "Quit"),
    ]

    def __init__(self, host: ColHost, auto_run: bool = False, delay_ms: int = 0):
        super().__init__()
        self.host = host
        self.machine = host.machine
        self.auto_run = auto_run
        self.delay_ms = delay_ms
        self.breakpoints: set[int] = set()
        self.output_text = ""
        self.error: str | None = None
        self._running = False

    def compose(self) -> ComposeResult:
        yield SourcePanel(id="source-panel", classes="panel")
        yield StatePanel(id="state-panel", classes="panel")
        yield StacksPanel(id="stacks-panel", classes="panel")
        yield OutputPanel(id="output-panel", classes="panel")
        yield Footer()

    def on_mount(self) -> None:
        self.refresh_panels()
        if self.auto_run:
            self.action_run_to_end()

    # -------------------------------------------------------------------
    # Panel refresh
    # -------------------------------------------------------------------

    def refresh_panels(self) -> None:
        self._refresh_source()
        self._refresh_state()
        self._refresh_stacks()
        self._refresh_output()

    def _refresh_source(self) -> None:
        m = self.machine
        lines = []
        for i, text in enumerate(m.program.lines):
            prefix = "●" if i in self.breakpoints else " "
            marker = " "
            if i == m.local_column:
                marker = '"' if m.string_mode else "▸"
            if i == m.local_column and text:
                ip = min(m.ip, len(text) - 1)
                body = (
                    f"{_esc(text[:ip])}[bold reverse]{_esc(text[ip])}[/bold reverse]"
                    f"{_esc(text[ip + 1:])}"
                )
            else:
                body = _esc(text)
            lines.append(f"{prefix}{marker} {i:2d}│ {body}")

        content = self.query_one("#source-content", Static)
        content.update("\n".join(lines))

    def _refresh_state(self) -> None:
        m = self.machine
        last = str(m.last_instruction) if m.last_instruction is not None else "-"
        text = (
            f"[bold]State:[/bold] {STATE_NAMES[m.state]}    [bold]Step:[/bold] {m.steps}\n"
            f"[bold]Local:[/bold] {m.local_column}  [bold]Remote:[/bold] {m.remote_column}  "
            f"[bold]IP:[/bold] {m.ip}\n"
            f"[bold]Mode:[/bold] {'string' if m.string_mode else 'normal'}  "
            f"[bold]Last:[/bold] {last}\n"
            f"[bold]GC:[/bold] {m.gc_sweeps} sweeps, {m.stacks_collected} collected  "
            f"[bold]IO:[/bold] {m.io_ops}"
        )
        content = self.query_one("#state-content", Static)
        content.update(text)

    def _refresh_stacks(self) -> None:
        m = self.machine
        lines = []
        for index, values in m.memory.snapshot().items():
            tags = []
            if index == m.local_column:
                tags.append("L")
            if index == m.remote_column:
                tags.append("R")
            if m.memory.is_extended(index):
                tags.append("ext")
            label = ",".join(tags)
            shown = " ".join(str(v) for v in values[-16:])
            if len(values) > 16:
                shown = "… " + shown
            ascii_str = "".join(_printable(v) for v in values[-16:])
            lines.append(f"\\[{index:3d}] {label:7s} {shown}  │ {_esc(ascii_str)}")
        content = self.query_one("#stacks-content", Static)
        content.update("\n".join(lines) if lines else "(no stacks)")

    def _refresh_output(self) -> None:
        self.output_text += self.host.recv()
        log = self.query_one("#output-log", RichLog)
        log.clear()
        if self.output_text:
            log.write(_esc(self.output_text))
        if self.error:
            log.write(f"[red]\\[ERROR] {_esc(self.error)}[/red]")

    # -------------------------------------------------------------------
    # Actions
    # -------------------------------------------------------------------

    def _report_error(self, err: Exception) -> None:
        """Show a runtime fault in the output panel."""
        self.error = str(err)
        self.refresh_panels()

    def _do_steps(self, count: int) -> None:
        if self._running:
            return
        try:
            for _ in range(count):
                if not self.machine.tick():
                    break
        except (ColError, OSError) as e:
            self._report_error(e)
            return
        self.refresh_panels()

    def action_step_1(self) -> None:
        self._do_steps(1)

    def action_step_10(self) -> None:
        self._do_steps(10)

    def action_step_100(self) -> None:
        self._do_steps(100)

    def action_toggle_breakpoint(self) -> None:
        column = self.machine.local_column
        if column in self.breakpoints:
            self.breakpoints.discard(column)
        else:
            self.breakpoints.add(column)
        self._refresh_source()

    def action_run_to_end(self) -> None:
        """Run to termination in a background thread, stopping at breakpoints."""
        if self._running:
            return
        # Manual steps are ignored until the worker finishes
        self._running = True
        self._run_worker()

    @work(thread=True, exclusive=True)
    def _run_worker(self) -> None:
        m = self.machine
        try:
            steps = 0
            prev_column = m.local_column
            while m.state == S_RUNNING and m.tick():
                steps += 1
                if m.local_column != prev_column:
                    prev_column = m.local_column
                    if prev_column in self.breakpoints:
                        break
                if self.delay_ms:
                    self.call_from_thread(self.refresh_panels)
                    time.sleep(self.delay_ms / 1000)
                elif steps % 500 == 0:
                    self.call_from_thread(self.refresh_panels)
        except (ColError, OSError) as e:
            self.call_from_thread(self._report_error, e)
            return
        finally:
            self._running = False
        self.call_from_thread(self.refresh_panels)


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------

def main():
    parser = argparse.ArgumentParser(
        description="col TUI debugger",
        prog="col-debug",
    )
    parser.add_argument("file", help="Path to .col program file")
    parser.add_argument("-i", "--input", default="",
                        help="Text fed to the program's input instruction")
    parser.add_argument("--delay", type=int, default=0, metavar="MS",
                        help="Milliseconds between steps when running")
    parser.add_argument("--run", action="store_true",
                        help="Run to completion immediately (auto-run mode)")
    args = parser.parse_args()

    host = ColHost()
    path = Path(args.file)
    try:
        host.load_file(path)
    except (OSError, UnicodeDecodeError) as e:
        print(f"Error: could not read {path}: {e}", file=sys.stderr)
        sys.exit(1)
    host.send(args.input)

    app = ColDebugger(host, auto_run=args.run, delay_ms=args.delay)
    app.run()


if __name__ == "__main__":
    main()
