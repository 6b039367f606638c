"""Shared test fixtures for sysmon."""

from pathlib import Path

import pytest

from sysmon.config import Config, DisplayConfig, SamplingConfig
from sysmon.display import ScreenBuffer, SurfaceClosed
from sysmon.killer import KillResult


class FakeProc:
    """Builds a procfs-shaped directory tree under a temporary path."""

    def __init__(self, root: Path) -> None:
        self.root = root
        self.root.mkdir(parents=True, exist_ok=True)
        self.set_cpu(100, 0, 50, 850)
        self.set_memory(8_000_000, 2_000_000)
        # Non-pid entries present on every real procfs
        (self.root / "self").mkdir()
        (self.root / "sys").mkdir()

    def set_cpu(self, user: int, nice: int, system: int, idle: int, *rest: int) -> None:
        values = " ".join(str(v) for v in (user, nice, system, idle, *rest))
        (self.root / "stat").write_text(f"cpu  {values}\ncpu0 {values}\nintr 1 2 3\n")

    def set_memory(self, total: int, available: int) -> None:
        (self.root / "meminfo").write_text(
            f"MemTotal:       {total} kB\n"
            f"MemFree:        1234 kB\n"
            f"MemAvailable:   {available} kB\n"
            "Buffers:        100 kB\n"
        )

    def add(
        self,
        pid: int,
        name: str,
        utime: int = 0,
        stime: int = 0,
        rss_kb: int | None = 1000,
        uid: int | None = 1000,
        comm: str | None = None,
    ) -> Path:
        proc = self.root / str(pid)
        proc.mkdir(exist_ok=True)
        comm = name if comm is None else comm
        fields = [str(pid), f"({comm})", "S"] + ["0"] * 10 + [str(utime), str(stime)] + ["0"] * 5
        (proc / "stat").write_text(" ".join(fields) + "\n")

        status = [f"Name:\t{name}", "Umask:\t0022", "State:\tS (sleeping)"]
        if uid is not None:
            status.append(f"Uid:\t{uid}\t{uid}\t{uid}\t{uid}")
        if rss_kb is not None:
            status.append(f"VmRSS:\t{rss_kb:>8} kB")
        (proc / "status").write_text("\n".join(status) + "\n")
        return proc


class ScriptedSurface(ScreenBuffer):
    """Surface that replays a fixed key sequence, then reports it closed."""

    def __init__(self, keys=(), width: int = 80, height: int = 24) -> None:
        super().__init__(width, height)
        self.keys = list(keys)
        self.timeouts: list[float | None] = []
        self.refreshes = 0
        self.snapshots: list[str] = []

    def read_key(self, timeout: float | None) -> str | None:
        self.timeouts.append(timeout)
        if not self.keys:
            raise SurfaceClosed()
        return self.keys.pop(0)

    def refresh(self) -> None:
        self.refreshes += 1
        self.snapshots.append(self.text())


class RecordingTerminator:
    """Stands in for the real termination request."""

    def __init__(self, accept: bool = True) -> None:
        self.accept = accept
        self.calls: list[int] = []

    def __call__(self, pid: int) -> KillResult:
        self.calls.append(pid)
        if self.accept:
            return KillResult(pid, True)
        return KillResult(pid, False, "permission denied")


@pytest.fixture
def fake_proc(tmp_path: Path) -> FakeProc:
    """An empty fabricated procfs root with system counters."""
    return FakeProc(tmp_path / "proc")


@pytest.fixture
def scripted_surface():
    """Factory for scripted surfaces."""
    return ScriptedSurface


@pytest.fixture
def terminator() -> RecordingTerminator:
    return RecordingTerminator()


@pytest.fixture
def config(fake_proc: FakeProc) -> Config:
    """Fast config pointed at the fabricated procfs root."""
    return Config(
        sampling=SamplingConfig(interval=0.1, warmup=0.0, procfs_root=str(fake_proc.root)),
        display=DisplayConfig(),
    )
