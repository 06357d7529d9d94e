"""
Console Presentation Module.

Renders run headers, per-test lines, error lists, the results summary
and Jira status lines to a text stream. Nothing here influences what is
reported to Xray; these helpers only format what they are given.
"""

from __future__ import annotations

import re
import shutil
import textwrap
from datetime import datetime, timedelta
from typing import Any, Iterable, Optional, Sequence

from xray_reporter.collector import TestError, TestRunInfo

HEADER_WIDTH = 50
INDEX_WIDTH = 5
STATUS_WIDTH = 7

ANSI_PATTERN = re.compile(r"\x1b\[[0-9;]*m")


class Palette:
    """ANSI text styles. Every style is a no-op when colors are disabled."""

    STYLES = {
        "bold": "\033[1m",
        "red": "\033[31m",
        "green": "\033[32m",
        "yellow": "\033[33m",
        "blue": "\033[34m",
        "cyan": "\033[36m",
        "white": "\033[37m",
        "gray": "\033[90m",
    }
    RESET = "\033[0m"

    def __init__(self, enabled: bool = True) -> None:
        self.enabled = enabled

    def style(self, text: str, *styles: str) -> str:
        if not self.enabled or not styles:
            return text
        prefix = "".join(self.STYLES[s] for s in styles)
        return f"{prefix}{text}{self.RESET}"


def strip_ansi(text: str) -> str:
    return ANSI_PATTERN.sub("", text)


class ConsoleWriter:
    """
    Chainable writer over a text stream.

    Every written line is prefixed with the current indent. With word wrap
    on, lines longer than the terminal width are wrapped at the indent.

    Usage::

        console = ConsoleWriter(sys.stdout)
        console.set_indent(1).write("hello").newline()
    """

    def __init__(
        self,
        stream: Any,
        no_colors: bool = False,
        width: Optional[int] = None,
    ) -> None:
        self.stream = stream
        self.palette = Palette(enabled=not no_colors)
        self.width = width or shutil.get_terminal_size((80, 24)).columns
        self._indent = 0
        self._word_wrap = False

    def set_indent(self, indent: int) -> "ConsoleWriter":
        self._indent = max(0, indent)
        return self

    def use_word_wrap(self, use: bool) -> "ConsoleWriter":
        self._word_wrap = use
        return self

    def write(self, text: str) -> "ConsoleWriter":
        prefix = " " * self._indent
        lines = []
        for line in text.split("\n"):
            if self._word_wrap and len(strip_ansi(line)) + self._indent > self.width:
                wrapped = textwrap.wrap(line, width=max(self.width - self._indent, 10)) or [""]
                lines.extend(prefix + part for part in wrapped)
            else:
                lines.append(prefix + line if line else line)
        self.stream.write("\n".join(lines))
        return self

    def newline(self) -> "ConsoleWriter":
        self.stream.write("\n")
        return self

    def style(self, text: str, *styles: str) -> str:
        return self.palette.style(text, *styles)


# ---------------------------------------------------------------------------
# Section headers
# ---------------------------------------------------------------------------


def log_header(console: ConsoleWriter, title: str) -> None:
    """Draw a boxed section title."""
    inner = "─" * (HEADER_WIDTH - 2)
    box = "\n".join([
        "",
        f"┌{inner}┐",
        f"│ {title.ljust(HEADER_WIDTH - 3)}│",
        f"└{inner}┘",
    ])
    console.set_indent(0).write(console.style(box, "white", "bold")).newline()


def log_subheader(console: ConsoleWriter, text: str) -> None:
    console.set_indent(1).write(console.style(text, "white", "bold")).newline().newline()


def log_fixture(console: ConsoleWriter, name: str) -> None:
    log_subheader(console, f"\nFIXTURE: {name}")


def log_current_time(console: ConsoleWriter, now: Optional[datetime] = None) -> None:
    now = (now or datetime.now()).astimezone()
    stamp = now.strftime("%B %d, %Y at %I:%M:%S %p %Z")
    console.set_indent(1).newline().use_word_wrap(True).write(console.style(stamp, "bold")).newline()


def log_environment(console: ConsoleWriter, user_agents: Iterable[str]) -> None:
    """List the environments (browsers, interpreters) the run targets."""
    console.set_indent(1).newline().use_word_wrap(True).write(
        console.style("Environment", "bold")
    ).newline()
    for agent in user_agents:
        console.write(f"- {console.style(agent, 'blue')}").newline()


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


def log_test_run(
    console: ConsoleWriter,
    index: int,
    name: str,
    info: TestRunInfo,
    metadata: Any,
) -> None:
    """
    Print one test line.

    Format: `(n)   STATUS  [KEY] name`, followed by an UNSTABLE line with
    one mark per quarantine attempt when the test was unstable.
    """
    parts = [console.style(f"({index})".ljust(INDEX_WIDTH), "gray"), " "]

    if info.skipped:
        parts.append(console.style("SKIPPED", "cyan"))
    elif info.has_errors:
        parts.append(console.style("FAILED".ljust(STATUS_WIDTH), "red", "bold"))
    else:
        parts.append(console.style("PASSED".ljust(STATUS_WIDTH), "green"))
    parts.append(" ")

    test_key = metadata.get("externalTestKey") if metadata else None
    if test_key:
        parts.append(console.style(f"[{test_key}] ", "blue"))

    parts.append(name)

    if info.unstable:
        marks = "".join(
            console.style("✓", "green") if attempt.passed else console.style("✖", "red")
            for _, attempt in sorted(info.quarantine.items())
        )
        parts.append("\n")
        parts.append(" " * (INDEX_WIDTH + 1 + STATUS_WIDTH + 1))
        parts.append(console.style("(UNSTABLE: ", "yellow") + marks + console.style(")", "yellow"))

    console.set_indent(1).use_word_wrap(False).write("".join(parts)).newline()


def log_error(console: ConsoleWriter, errors: Sequence[TestError]) -> None:
    """Print a numbered list of failures under a test line."""
    console.set_indent(3)
    for idx, error in enumerate(errors, start=1):
        prefix = console.style(f"{idx}) ", "red")
        body = error.message
        if error.details:
            body = f"{body}\n\n{error.details}"
        if error.phase != "call":
            body = f"[{error.phase}] {body}"
        console.newline().write(prefix + body).newline().newline()


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


def _plural(value: int, unit: str) -> str:
    return f"{value} {unit}" if value == 1 else f"{value} {unit}s"


def format_duration(delta: timedelta) -> str:
    """
    Strict human distance between two instants, in a single unit.

    Examples:
        timedelta(seconds=1) -> "1 second"
        timedelta(seconds=95) -> "2 minutes"
        timedelta(hours=5) -> "5 hours"
        timedelta(days=45) -> "2 months"
    """
    seconds = abs(delta.total_seconds())
    if seconds < 60:
        return _plural(int(round(seconds)), "second")
    minutes = int(round(seconds / 60))
    if minutes < 60:
        return _plural(minutes, "minute")
    hours = int(round(seconds / 3600))
    if hours < 24:
        return _plural(hours, "hour")
    # a month is 30 days, a year 365
    days = int(round(seconds / 86400))
    if days < 30:
        return _plural(days, "day")
    months = int(round(seconds / (30 * 86400)))
    if months < 12:
        return _plural(months, "month")
    return _plural(int(round(seconds / (365 * 86400))), "year")


def log_results(
    console: ConsoleWriter,
    start_time: datetime,
    end_time: datetime,
    passed_count: int,
    failed_count: int,
    skipped_count: int,
) -> None:
    """Print the pass ratio, run duration and per-status counts."""
    total = passed_count + failed_count
    percent = (passed_count / total) * 100 if total else 0.0

    lines = [
        console.style(f"{passed_count} / {total}", "bold")
        + console.style(f" ({percent:.0f}%)", "bold"),
        console.style(f"took {format_duration(end_time - start_time)}", "gray"),
        "",
        str(passed_count).ljust(3) + console.style(" PASSED", "bold", "green"),
        str(failed_count).ljust(3) + console.style(" FAILED", "bold", "red"),
        str(skipped_count).ljust(3) + console.style(" SKIPPED", "bold", "cyan"),
    ]
    console.set_indent(1).newline().write("\n".join(lines)).newline()


# ---------------------------------------------------------------------------
# Jira status
# ---------------------------------------------------------------------------


def log_jira(console: ConsoleWriter, message: str) -> None:
    console.set_indent(1).write(console.style(message, "white")).newline()


def log_jira_error(console: ConsoleWriter, message: str) -> None:
    console.set_indent(1).write(console.style(message, "red")).newline()
