"""Data models for sysmon."""

from dataclasses import dataclass, field

UNKNOWN_USER = "unknown"


@dataclass(slots=True, frozen=True)
class SystemCpuSample:
    """Cumulative CPU tick counters since boot, aggregated over all cores."""

    user: int = 0
    nice: int = 0
    system: int = 0
    idle: int = 0
    iowait: int = 0
    irq: int = 0
    softirq: int = 0
    steal: int = 0

    @property
    def total(self) -> int:
        """Sum of all eight counters."""
        return (
            self.user
            + self.nice
            + self.system
            + self.idle
            + self.iowait
            + self.irq
            + self.softirq
            + self.steal
        )

    @property
    def is_empty(self) -> bool:
        """True for the all-zero sample returned when the source is unreadable."""
        return self.total == 0


@dataclass(slots=True, frozen=True)
class MemorySnapshot:
    """System memory totals in KiB."""

    total_kb: int = 0
    available_kb: int = 0

    @property
    def used_kb(self) -> int:
        """Memory in use, total minus available."""
        return self.total_kb - self.available_kb

    @property
    def percent(self) -> float:
        """Share of memory in use, 0 when the total is unknown."""
        if self.total_kb <= 0:
            return 0.0
        return 100.0 * self.used_kb / self.total_kb


@dataclass(slots=True, frozen=True)
class ProcessSample:
    """Raw per-process counters read during one tick."""

    pid: int
    user: str
    name: str
    rss_kb: int  # VmRSS, KiB
    utime: int  # user-mode ticks since start
    stime: int  # kernel-mode ticks since start

    @property
    def cpu_time(self) -> int:
        """Total ticks in user and kernel mode."""
        return self.utime + self.stime


@dataclass(slots=True, frozen=True)
class ProcessRow:
    """A process sample with its derived utilization percentages."""

    sample: ProcessSample
    cpu_percent: float
    mem_percent: float

    @property
    def pid(self) -> int:
        """Pid of the underlying sample."""
        return self.sample.pid


@dataclass(slots=True, frozen=True)
class PreviousSampleStore:
    """Counters from exactly one prior tick, used as the delta baseline."""

    cpu: SystemCpuSample = field(default_factory=SystemCpuSample)
    process_times: dict[int, tuple[int, int]] = field(default_factory=dict)

    def baseline(self, pid: int) -> int:
        """Previous utime + stime for pid, 0 if it was not seen last tick."""
        utime, stime = self.process_times.get(pid, (0, 0))
        return utime + stime
