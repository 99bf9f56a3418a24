"""Operator-facing output.

Deploys are usually watched over SSH or a serial console on a box that is
hard to reach, so every step is echoed as it happens. Services only talk to
ConsoleProtocol; RichConsole renders it for humans and MockConsole records it
for tests. Both share the same prefixes, so what a test asserts on is what the
operator reads.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from rich.console import Console

__all__ = [
    "Style",
    "ConsoleProtocol",
    "RichConsole",
    "MockConsole",
    "OutputRecord",
]


class Style(Enum):
    DEFAULT = auto()
    SUCCESS = auto()
    ERROR = auto()
    WARNING = auto()
    INFO = auto()
    DIM = auto()
    BOLD = auto()
    HEADER = auto()
    STEP = auto()

    def __str__(self) -> str:
        return self.name.lower()


# style -> (prefix, rich style of the prefix)
_PREFIXES: dict[Style, tuple[str, str]] = {
    Style.STEP: ("==>", "bold"),
    Style.SUCCESS: ("OK", "green"),
    Style.ERROR: ("error:", "red bold"),
    Style.WARNING: ("warning:", "yellow"),
    Style.INFO: ("info:", "cyan"),
}

_RICH_STYLES: dict[Style, str] = {
    Style.SUCCESS: "green",
    Style.ERROR: "red bold",
    Style.WARNING: "yellow",
    Style.INFO: "cyan",
    Style.DIM: "dim",
    Style.BOLD: "bold",
    Style.HEADER: "blue bold",
    Style.STEP: "bold",
}

# shown on stderr so piped stdout stays parseable
_STDERR_STYLES = frozenset({Style.ERROR, Style.WARNING})


def _tagged(style: Style, message: str) -> str:
    prefix, _ = _PREFIXES[style]
    return f"{prefix} {message}"


class ConsoleProtocol(Protocol):
    def print(self, message: str, style: Style = Style.DEFAULT) -> None: ...

    def step(self, message: str) -> None:
        """One stage of a deploy/switch/rollback, printed as '==> message'."""
        ...

    def success(self, message: str) -> None: ...

    def error(self, message: str) -> None: ...

    def warning(self, message: str) -> None: ...

    def info(self, message: str) -> None: ...

    def header(self, message: str) -> None: ...

    def newline(self) -> None: ...


class RichConsole:
    """ConsoleProtocol on top of rich. Messages are never parsed as markup."""

    def __init__(self) -> None:
        from rich.console import Console

        self._out = Console(highlight=False)
        self._err = Console(stderr=True, highlight=False)

    def _target(self, style: Style) -> Console:
        return self._err if style in _STDERR_STYLES else self._out

    def _emit_tagged(self, style: Style, message: str) -> None:
        from rich.text import Text

        prefix, prefix_style = _PREFIXES[style]
        self._target(style).print(Text.assemble((prefix, prefix_style), " ", message))

    def print(self, message: str, style: Style = Style.DEFAULT) -> None:
        from rich.text import Text

        self._target(style).print(Text(message, style=_RICH_STYLES.get(style, "")))

    def step(self, message: str) -> None:
        self._emit_tagged(Style.STEP, message)

    def success(self, message: str) -> None:
        self._emit_tagged(Style.SUCCESS, message)

    def error(self, message: str) -> None:
        self._emit_tagged(Style.ERROR, message)

    def warning(self, message: str) -> None:
        self._emit_tagged(Style.WARNING, message)

    def info(self, message: str) -> None:
        self._emit_tagged(Style.INFO, message)

    def header(self, message: str) -> None:
        self._out.print()
        self.print(message, Style.HEADER)

    def newline(self) -> None:
        self._out.print()


@dataclass
class OutputRecord:
    message: str
    style: Style


@dataclass
class MockConsole:
    """Records everything instead of printing it."""

    outputs: list[OutputRecord] = field(default_factory=list)

    def _record(self, message: str, style: Style) -> None:
        self.outputs.append(OutputRecord(message, style))

    def print(self, message: str, style: Style = Style.DEFAULT) -> None:
        self._record(message, style)

    def step(self, message: str) -> None:
        self._record(_tagged(Style.STEP, message), Style.STEP)

    def success(self, message: str) -> None:
        self._record(_tagged(Style.SUCCESS, message), Style.SUCCESS)

    def error(self, message: str) -> None:
        self._record(_tagged(Style.ERROR, message), Style.ERROR)

    def warning(self, message: str) -> None:
        self._record(_tagged(Style.WARNING, message), Style.WARNING)

    def info(self, message: str) -> None:
        self._record(_tagged(Style.INFO, message), Style.INFO)

    def header(self, message: str) -> None:
        self._record(message, Style.HEADER)

    def newline(self) -> None:
        self._record("", Style.DEFAULT)

    def clear(self) -> None:
        self.outputs.clear()

    @property
    def messages(self) -> list[str]:
        return [o.message for o in self.outputs]

    @property
    def text(self) -> str:
        return "\n".join(self.messages)

    def count(self, style: Style) -> int:
        return sum(1 for o in self.outputs if o.style == style)

    def has_error(self) -> bool:
        return self.count(Style.ERROR) > 0

    def has_warning(self) -> bool:
        return self.count(Style.WARNING) > 0

    def has_success(self) -> bool:
        return self.count(Style.SUCCESS) > 0

    def find(self, substring: str) -> list[OutputRecord]:
        """Records whose message contains substring."""
        return [o for o in self.outputs if substring in o.message]
