"""Kill-by-pid prompt and the termination request behind it."""

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum, auto

import psutil

from sysmon.display import (
    KEY_BACKSPACE,
    KEY_DELETE,
    KEY_ENTER,
    KEY_ESCAPE,
    Surface,
    render_kill_prompt,
)
from sysmon.logging import get_logger

log = get_logger()

DEFAULT_PID_CAPACITY = 19


class PromptState(Enum):
    IDLE = auto()
    PROMPTING = auto()
    CONFIRMED = auto()
    CANCELLED = auto()


class PromptAction(Enum):
    OPEN = auto()
    DIGIT = auto()
    ERASE = auto()
    CANCEL = auto()
    CONFIRM = auto()
    CLOSE = auto()


_TRANSITIONS: dict[tuple[PromptState, PromptAction], PromptState] = {
    (PromptState.IDLE, PromptAction.OPEN): PromptState.PROMPTING,
    (PromptState.PROMPTING, PromptAction.DIGIT): PromptState.PROMPTING,
    (PromptState.PROMPTING, PromptAction.ERASE): PromptState.PROMPTING,
    (PromptState.PROMPTING, PromptAction.CANCEL): PromptState.CANCELLED,
    (PromptState.PROMPTING, PromptAction.CONFIRM): PromptState.CONFIRMED,
    (PromptState.CONFIRMED, PromptAction.CLOSE): PromptState.IDLE,
    (PromptState.CANCELLED, PromptAction.CLOSE): PromptState.IDLE,
}


def classify_key(key: str | None) -> PromptAction | None:
    """Map a key to the prompt action it triggers, None for ignored keys."""
    if key is None:
        return None
    if len(key) == 1 and key.isascii() and key.isdigit():
        return PromptAction.DIGIT
    if key in (KEY_BACKSPACE, KEY_DELETE):
        return PromptAction.ERASE
    if key == KEY_ESCAPE:
        return PromptAction.CANCEL
    if key == KEY_ENTER:
        return PromptAction.CONFIRM
    return None


class PidBuffer:
    """Digit buffer with a fixed capacity.

    Characters past capacity and non-digits are dropped; ``append`` reports
    whether the character was taken.
    """

    def __init__(self, capacity: int = DEFAULT_PID_CAPACITY) -> None:
        """Initialize PidBuffer."""
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._chars: list[str] = []

    @property
    def text(self) -> str:
        """Buffered digits as typed."""
        return "".join(self._chars)

    @property
    def value(self) -> int | None:
        """The buffered pid, None when empty or not numeric."""
        text = self.text
        if not (text.isascii() and text.isdigit()):
            return None
        return int(text)

    def append(self, char: str) -> bool:
        """Add a digit. Returns False when full or not a digit."""
        if len(self._chars) >= self.capacity:
            return False
        if not (len(char) == 1 and char.isascii() and char.isdigit()):
            return False
        self._chars.append(char)
        return True

    def backspace(self) -> bool:
        """Drop the last digit. Returns False when already empty."""
        if not self._chars:
            return False
        self._chars.pop()
        return True

    def clear(self) -> None:
        """Drop every digit."""
        self._chars.clear()

    def __len__(self) -> int:
        """Number of buffered digits."""
        return len(self._chars)


class KillPrompt:
    """State machine for the kill prompt.

    Idle -> Prompting -> (Confirmed | Cancelled) -> Idle. While prompting,
    keys are fed one at a time through ``feed``.
    """

    def __init__(self, capacity: int = DEFAULT_PID_CAPACITY) -> None:
        """Initialize KillPrompt."""
        self.state = PromptState.IDLE
        self.buffer = PidBuffer(capacity)

    @property
    def done(self) -> bool:
        """True once the prompt is confirmed or cancelled."""
        return self.state in (PromptState.CONFIRMED, PromptState.CANCELLED)

    def _apply(self, action: PromptAction) -> PromptState:
        try:
            self.state = _TRANSITIONS[(self.state, action)]
        except KeyError:
            raise RuntimeError(f"{action.name} is not valid in state {self.state.name}") from None
        return self.state

    def open(self) -> None:
        """Start prompting with an empty buffer."""
        self.buffer.clear()
        self._apply(PromptAction.OPEN)

    def feed(self, key: str | None) -> PromptState:
        """Apply one key; keys with no meaning for the prompt are ignored."""
        action = classify_key(key)
        if action is None or self.state is not PromptState.PROMPTING:
            return self.state
        if action is PromptAction.DIGIT:
            self.buffer.append(key)
        elif action is PromptAction.ERASE:
            self.buffer.backspace()
        return self._apply(action)

    def close(self) -> None:
        """Return to idle and forget the buffer."""
        self._apply(PromptAction.CLOSE)
        self.buffer.clear()


@dataclass(slots=True, frozen=True)
class KillResult:
    """Outcome of a termination request."""

    pid: int
    accepted: bool
    reason: str = ""


@dataclass(slots=True, frozen=True)
class KillOutcome:
    """How the prompt ended and, if a signal was sent, what happened."""

    state: PromptState
    pid: int | None = None
    result: KillResult | None = None

    @property
    def message(self) -> str:
        """Status line text; empty when there is nothing to report."""
        if self.result is None:
            return ""
        if self.result.accepted:
            return f"Sent SIGTERM to {self.result.pid}"
        return f"Kill {self.result.pid} failed: {self.result.reason}"


def terminate(pid: int) -> KillResult:
    """Ask a process to terminate (SIGTERM)."""
    if pid <= 0:
        return KillResult(pid, False, "invalid pid")
    try:
        psutil.Process(pid).terminate()
    except psutil.NoSuchProcess:
        return KillResult(pid, False, "no such process")
    except psutil.AccessDenied:
        return KillResult(pid, False, "permission denied")
    except (ValueError, OverflowError):
        return KillResult(pid, False, "invalid pid")
    return KillResult(pid, True)


def run_kill_modal(
    surface: Surface,
    prompt: KillPrompt,
    terminator: Callable[[int], KillResult] = terminate,
) -> KillOutcome:
    """Own input until the prompt is confirmed or cancelled.

    Blocks without a timeout, so no ticks run while the prompt is open.
    """
    prompt.open()
    while not prompt.done:
        render_kill_prompt(surface, prompt.buffer.text)
        surface.refresh()
        prompt.feed(surface.read_key(None))

    state = prompt.state
    pid = prompt.buffer.value
    prompt.close()

    if state is PromptState.CANCELLED:
        return KillOutcome(state)
    if pid is None:
        log.info("kill_skipped", reason="empty pid")
        return KillOutcome(state)

    result = terminator(pid)
    if result.accepted:
        log.info("kill_sent", pid=pid)
    else:
        log.warning("kill_rejected", pid=pid, reason=result.reason)
    return KillOutcome(state, pid, result)
