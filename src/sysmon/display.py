"""Display surface contract and the screen layout drawn on it."""

import math
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Protocol

from rich.cells import cell_len

from sysmon.delta import TickResult
from sysmon.models import MemorySnapshot, ProcessRow
from sysmon.sorting import SortMode

# Key names as delivered by the terminal surface.
KEY_ENTER = "enter"
KEY_ESCAPE = "escape"
KEY_BACKSPACE = "backspace"
KEY_DELETE = "delete"
KEY_QUIT = "q"
KEY_KILL = "k"

TITLE = "SysMon (Press 'q' to quit, 'c'/'m'/'p' to sort, 'k' to kill)"
HEADER_STYLE = "bold white on blue"
INPUT_STYLE = "reverse"
ELLIPSIS = "..."

STATUS_ROW = 1
CPU_ROW = 2
MEM_ROW = 3
COLUMNS_ROW = 4
TABLE_TOP = 5

# pid(6) user(10) cpu%(6) mem%(6), single-space separators, one cell margin.
COMMAND_OFFSET = 1 + 6 + 1 + 10 + 1 + 6 + 1 + 6 + 1

PROMPT_HEIGHT = 5
PROMPT_WIDTH = 40
PROMPT_TEXT = "Enter PID to kill (Esc to cancel):"
PROMPT_INPUT_WIDTH = 25


class SurfaceClosed(Exception):
    """Raised by ``read_key`` once the terminal has gone away."""


class Surface(Protocol):
    """What the render loop needs from a terminal."""

    @property
    def width(self) -> int: ...

    @property
    def height(self) -> int: ...

    def clear(self) -> None: ...

    def write(self, row: int, col: int, text: str, style: str = "") -> None: ...

    def measure(self, text: str) -> int: ...

    def refresh(self) -> None: ...

    def read_key(self, timeout: float | None) -> str | None:
        """Block for up to ``timeout`` seconds (forever if None) for a key.

        Returns None on timeout and raises ``SurfaceClosed`` when input is gone.
        """
        ...


@dataclass(slots=True)
class Frame:
    """Everything drawn for one tick."""

    cpu_usage: float = 0.0
    memory: MemorySnapshot = field(default_factory=MemorySnapshot)
    rows: list[ProcessRow] = field(default_factory=list)
    sort_mode: SortMode = SortMode.CPU
    status: str = ""

    @classmethod
    def from_tick(
        cls,
        result: TickResult,
        rows: list[ProcessRow],
        sort_mode: SortMode,
        status: str = "",
    ) -> "Frame":
        """Build a frame from a tick's derived values."""
        return cls(
            cpu_usage=result.cpu_usage,
            memory=result.memory,
            rows=rows,
            sort_mode=sort_mode,
            status=status,
        )


class ScreenBuffer:
    """In-memory character grid implementing the drawing half of ``Surface``.

    Writes outside the grid are clipped. A pending ``resize`` takes effect
    on the next ``clear``; either may be called from another thread.
    """

    def __init__(self, width: int = 80, height: int = 24) -> None:
        """Initialize ScreenBuffer."""
        self._width = width
        self._height = height
        self._pending_size: tuple[int, int] | None = None
        self._size_lock = threading.Lock()
        self._lines: list[list[str]] = []
        self._styles: list[list[tuple[int, int, str]]] = []
        self.clear()

    @property
    def width(self) -> int:
        """Columns in the current frame."""
        return self._width

    @property
    def height(self) -> int:
        """Rows in the current frame."""
        return self._height

    def resize(self, width: int, height: int) -> None:
        """Record a new size for the next ``clear``."""
        with self._size_lock:
            self._pending_size = (max(width, 1), max(height, 1))

    def clear(self) -> None:
        """Blank the grid, adopting any pending size."""
        with self._size_lock:
            size, self._pending_size = self._pending_size, None
        if size is not None:
            self._width, self._height = size
        self._lines = [[" "] * self._width for _ in range(self._height)]
        self._styles = [[] for _ in range(self._height)]

    def write(self, row: int, col: int, text: str, style: str = "") -> None:
        """Put text at (row, col), clipped to the grid."""
        if not 0 <= row < self._height or not 0 <= col < self._width:
            return
        text = text[: self._width - col]
        if not text:
            return
        self._lines[row][col : col + len(text)] = list(text)
        if style:
            self._styles[row].append((col, col + len(text), style))

    def measure(self, text: str) -> int:
        """Width of text in terminal cells."""
        return cell_len(text)

    def refresh(self) -> None:
        """No-op; there is no screen behind a bare buffer."""
        pass

    def lines(self) -> list[str]:
        """Every row as a full-width string."""
        return ["".join(line) for line in self._lines]

    def styles(self, row: int) -> list[tuple[int, int, str]]:
        """Style spans written on ``row``."""
        return list(self._styles[row])

    def text(self) -> str:
        """The grid as text, trailing blanks stripped."""
        return "\n".join(line.rstrip() for line in self.lines())


def format_bar(percent: float, width: int = 20) -> str:
    """A fixed-width bar of ``|`` blocks proportional to percent."""
    blocks = math.floor(percent / 100.0 * width + 0.5)
    blocks = max(0, min(width, blocks))
    return "|" * blocks + " " * (width - blocks)


def truncate(text: str, width: int, measure: Callable[[str], int] = cell_len) -> str:
    """Fit text into ``width`` cells, marking a cut with an ellipsis."""
    if width <= 0:
        return ""
    if measure(text) <= width:
        return text
    if width <= len(ELLIPSIS):
        return ELLIPSIS[:width]
    room = width - len(ELLIPSIS)
    while text and measure(text) > room:
        text = text[:-1]
    return text + ELLIPSIS


def format_columns_header() -> str:
    """Column titles aligned with ``format_process_row``."""
    return f"{'PID':<6} {'USER':<10} {'CPU%':>6} {'MEM%':>6} COMMAND"


def format_process_row(
    row: ProcessRow, width: int, measure: Callable[[str], int] = cell_len
) -> str:
    """One table line; the command takes whatever width is left."""
    sample = row.sample
    name = truncate(sample.name, width - COMMAND_OFFSET, measure)
    return (
        f"{sample.pid:<6} {sample.user:<10.10} "
        f"{row.cpu_percent:6.1f} {row.mem_percent:6.1f} {name}"
    )


def render_frame(surface: Surface, frame: Frame, bar_width: int = 20) -> None:
    """Draw the header, system summary and as many process rows as fit."""
    width, height = surface.width, surface.height
    surface.clear()

    surface.write(0, 0, " " * width, HEADER_STYLE)
    surface.write(0, 1, TITLE, HEADER_STYLE)

    status = f"Sort: {frame.sort_mode.label}  Tasks: {len(frame.rows)}"
    if frame.status:
        status = f"{status}  {frame.status}"
    surface.write(STATUS_ROW, 1, truncate(status, width - 1, surface.measure))

    cpu = frame.cpu_usage
    surface.write(CPU_ROW, 1, f"CPU [{format_bar(cpu, bar_width)}] {cpu:5.1f}%")

    mem = frame.memory
    surface.write(
        MEM_ROW,
        1,
        f"Mem [{format_bar(mem.percent, bar_width)}] {mem.percent:5.1f}% "
        f"({mem.used_kb}/{mem.total_kb} KB)",
    )

    surface.write(COLUMNS_ROW, 0, " " * width, HEADER_STYLE)
    surface.write(COLUMNS_ROW, 1, format_columns_header(), HEADER_STYLE)

    visible = max(0, height - TABLE_TOP)
    for i, row in enumerate(frame.rows[:visible]):
        surface.write(TABLE_TOP + i, 1, format_process_row(row, width, surface.measure))


def render_kill_prompt(surface: Surface, text: str) -> None:
    """Draw the kill overlay centred over whatever is on screen."""
    top = max(0, surface.height // 2 - PROMPT_HEIGHT // 2)
    left = max(0, surface.width // 2 - PROMPT_WIDTH // 2)
    inner = PROMPT_WIDTH - 2

    surface.write(top, left, "┌" + "─" * inner + "┐")
    for r in range(1, PROMPT_HEIGHT - 1):
        surface.write(top + r, left, "│" + " " * inner + "│")
    surface.write(top + PROMPT_HEIGHT - 1, left, "└" + "─" * inner + "┘")

    surface.write(top + 1, left + 2, PROMPT_TEXT)
    field_text = text[-PROMPT_INPUT_WIDTH:].ljust(PROMPT_INPUT_WIDTH)
    surface.write(top + 2, left + 2, field_text, INPUT_STYLE)
