"""sysmon - Textual terminal surface hosting the tick loop."""

from collections.abc import Callable
from queue import Empty, Queue

from rich.text import Text
from textual import events
from textual.app import App, ComposeResult
from textual.widgets import Static

from sysmon.config import Config
from sysmon.display import ScreenBuffer, SurfaceClosed
from sysmon.killer import KillResult, terminate
from sysmon.procfs import ProcFS
from sysmon.scheduler import Scheduler
from sysmon.users import UsernameCache

_CLOSED = object()


class TerminalSurface(ScreenBuffer):
    """
    Surface backed by a Textual app.

    Keys arrive from the app's event loop through a thread-safe queue and
    finished frames are pushed back with ``App.call_from_thread``, so the
    scheduler keeps its blocking-read loop on a worker thread.
    """

    def __init__(self, app: "SysmonApp", width: int = 80, height: int = 24) -> None:
        """Initialize TerminalSurface."""
        super().__init__(width, height)
        self._app = app
        self._keys: Queue[object] = Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        """Whether the app has gone away."""
        return self._closed

    def push_key(self, key: str) -> None:
        """Queue a key for the next ``read_key``."""
        self._keys.put(key)

    def close(self) -> None:
        """Wake any blocked reader; every later read raises SurfaceClosed."""
        self._closed = True
        self._keys.put(_CLOSED)

    def read_key(self, timeout: float | None) -> str | None:
        """Next queued key, None on timeout; raises SurfaceClosed once closed."""
        if self._closed and self._keys.empty():
            raise SurfaceClosed()
        try:
            key = self._keys.get(timeout=timeout)
        except Empty:
            return None
        if key is _CLOSED:
            raise SurfaceClosed()
        return key

    def render_text(self) -> Text:
        """Current buffer as styled rich text."""
        text = Text(no_wrap=True, overflow="crop")
        for row, line in enumerate(self.lines()):
            start = len(text)
            text.append(line)
            for begin, end, style in self.styles(row):
                text.stylize(style, start + begin, start + end)
            if row < self.height - 1:
                text.append("\n")
        return text

    def refresh(self) -> None:
        """Push the buffer to the screen widget."""
        if self._closed:
            return
        try:
            self._app.call_from_thread(self._app.show, self.render_text())
        except RuntimeError:
            # App shut down between the check and the call
            self.close()


class SysmonApp(App):
    """Main sysmon application."""

    TITLE = "sysmon"

    CSS = """
    Screen {
        overflow: hidden;
    }

    #screen {
        width: 100%;
        height: 100%;
    }
    """

    def __init__(
        self,
        config: Config | None = None,
        procfs: ProcFS | None = None,
        users: UsernameCache | None = None,
        terminator: Callable[[int], KillResult] = terminate,
    ) -> None:
        """Initialize the SysmonApp."""
        super().__init__()
        self.config = config or Config()
        self.surface = TerminalSurface(self)
        self.scheduler = Scheduler(
            self.config,
            self.surface,
            procfs=procfs,
            users=users,
            terminator=terminator,
        )
        self.exit_status: int | None = None
        self.last_frame: Text | None = None

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        yield Static(id="screen")

    def on_mount(self) -> None:
        """Size the surface and start the scheduler."""
        self.surface.resize(self.size.width, self.size.height)
        self.surface.clear()
        self.run_worker(self._run_scheduler, thread=True, exclusive=True, name="scheduler")

    def on_resize(self, event: events.Resize) -> None:
        """Resize the surface; the scheduler picks it up on its next clear."""
        self.surface.resize(event.size.width, event.size.height)

    def on_key(self, event: events.Key) -> None:
        """Forward every key to the scheduler."""
        event.stop()
        event.prevent_default()
        self.surface.push_key(event.key)

    def on_unmount(self) -> None:
        """Wake the scheduler so its worker can finish."""
        self.surface.close()

    def show(self, text: Text) -> None:
        """Replace the screen contents with a rendered frame."""
        self.last_frame = text
        self.query_one("#screen", Static).update(text)

    def _run_scheduler(self) -> None:
        """Run the tick loop, then exit with its status."""
        status = self.scheduler.run()
        self.exit_status = status
        if not self.surface.closed:
            self.surface.close()
            self.call_from_thread(self.exit, return_code=status)

