"""The tick loop: wait for input, dispatch it, sample, derive, sort, draw."""

import time
from collections.abc import Callable
from dataclasses import dataclass, field

from sysmon.config import Config
from sysmon.delta import build_store, derive
from sysmon.display import KEY_KILL, KEY_QUIT, Frame, Surface, SurfaceClosed, render_frame
from sysmon.killer import KillPrompt, KillResult, run_kill_modal, terminate
from sysmon.logging import get_logger
from sysmon.models import PreviousSampleStore
from sysmon.procfs import ProcFS
from sysmon.sorting import SortMode, sort_processes
from sysmon.users import UsernameCache

log = get_logger()


@dataclass
class TickContext:
    """State carried from one tick to the next."""

    users: UsernameCache
    store: PreviousSampleStore = field(default_factory=PreviousSampleStore)
    sort_mode: SortMode = SortMode.CPU
    status: str = ""


class Scheduler:
    """
    Single-threaded render loop.

    The bounded input read is both the only suspension point and the tick
    pacing: a tick runs once a key arrives or ``interval`` seconds pass
    without one.
    """

    def __init__(
        self,
        config: Config,
        surface: Surface,
        procfs: ProcFS | None = None,
        users: UsernameCache | None = None,
        terminator: Callable[[int], KillResult] = terminate,
    ) -> None:
        """Initialize Scheduler."""
        self.config = config
        self.surface = surface
        self.procfs = procfs or ProcFS(config.sampling.procfs_root)
        self.context = TickContext(users=users if users is not None else UsernameCache.load())
        self.prompt = KillPrompt(config.display.pid_capacity)
        self._terminator = terminator

    def warm_up(self) -> None:
        """Take a throwaway baseline sample, then pause briefly.

        Guarantees the first real tick measures a non-empty window.
        """
        cpu = self.procfs.sample_system_cpu()
        processes = self.procfs.sample_processes(self.context.users)
        self.context.store = build_store(cpu, processes)
        log.info("warm_up", processes=len(processes), users=len(self.context.users))
        time.sleep(self.config.sampling.warmup)

    def dispatch(self, key: str | None) -> bool:
        """Handle one key. Returns False when the loop should stop."""
        if key is None:
            return True
        if key == KEY_QUIT:
            return False

        mode = SortMode.from_key(key)
        if mode is not None:
            self.context.sort_mode = mode
            return True

        if key == KEY_KILL:
            outcome = run_kill_modal(self.surface, self.prompt, self._terminator)
            self.context.status = outcome.message
            self.surface.clear()
        return True

    def tick(self) -> Frame:
        """Sample, derive and sort. Never raises for bad tick data."""
        ctx = self.context
        try:
            memory = self.procfs.sample_memory()
            cpu = self.procfs.sample_system_cpu()
            processes = self.procfs.sample_processes(ctx.users)
            result, ctx.store = derive(ctx.store, cpu, memory, processes)
        except Exception:
            log.exception("tick_failed")
            return Frame(sort_mode=ctx.sort_mode, status=ctx.status)
        rows = sort_processes(result.rows, ctx.sort_mode)
        return Frame.from_tick(result, rows, ctx.sort_mode, ctx.status)

    def run(self) -> int:
        """Run until quit or until the surface closes. Returns the exit status."""
        log.info("started", interval=self.config.sampling.interval, root=str(self.procfs.root))
        self.warm_up()
        try:
            while True:
                key = self.surface.read_key(self.config.sampling.interval)
                if not self.dispatch(key):
                    break
                frame = self.tick()
                render_frame(self.surface, frame, self.config.display.bar_width)
                self.surface.refresh()
        except SurfaceClosed:
            log.info("surface_closed")
        log.info("stopped")
        return 0
