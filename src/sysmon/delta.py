"""Turns consecutive cumulative samples into utilization percentages.

Everything here is a pure function of the previous tick's store and the
current raw sample. A pid that was not present last tick is measured
against a zero baseline: it was born inside the interval, so its whole
lifetime counter is time spent in this interval.

Counter resets are not detected. If a pid is reused by a new process
within a single tick, the predecessor's counters serve as the baseline and
the row can show a one-tick spike or a negative value.
"""

from collections.abc import Iterable
from dataclasses import dataclass

from sysmon.models import (
    MemorySnapshot,
    PreviousSampleStore,
    ProcessRow,
    ProcessSample,
    SystemCpuSample,
)


@dataclass(slots=True, frozen=True)
class TickResult:
    """Derived values for one tick."""

    cpu_usage: float
    memory: MemorySnapshot
    rows: list[ProcessRow]


def cpu_percent(process_delta: int, total_delta: int) -> float:
    """A process's share of the interval's ticks, 0 without a usable interval."""
    if total_delta <= 0:
        return 0.0
    return 100.0 * process_delta / total_delta


def mem_percent(rss_kb: int, total_kb: int) -> float:
    """Resident size as a share of physical memory, 0 when the total is unknown."""
    if total_kb <= 0:
        return 0.0
    return 100.0 * rss_kb / total_kb


def system_cpu_usage(previous: SystemCpuSample, current: SystemCpuSample) -> float:
    """Share of non-idle ticks across the interval, in percent."""
    total_delta = current.total - previous.total
    if total_delta <= 0:
        return 0.0
    idle_delta = current.idle - previous.idle
    return 100.0 * (total_delta - idle_delta) / total_delta


def build_store(cpu: SystemCpuSample, processes: Iterable[ProcessSample]) -> PreviousSampleStore:
    """Snapshot this tick's raw counters as the next tick's baseline."""
    return PreviousSampleStore(
        cpu=cpu,
        process_times={p.pid: (p.utime, p.stime) for p in processes},
    )


def derive(
    store: PreviousSampleStore,
    cpu: SystemCpuSample,
    memory: MemorySnapshot,
    processes: list[ProcessSample],
) -> tuple[TickResult, PreviousSampleStore]:
    """Compute percentages for this tick and the store that replaces ``store``.

    An all-zero sample on either side of the interval (unreadable source,
    or a failed warm-up read) means there is no usable delta, so every CPU
    percentage for the tick is 0. The returned store still holds exactly
    this tick's counters, so after an unreadable tick the next one is also
    reported as 0 rather than as an average since boot.
    """
    if cpu.is_empty or store.cpu.is_empty:
        total_delta = 0
        usage = 0.0
    else:
        total_delta = cpu.total - store.cpu.total
        usage = system_cpu_usage(store.cpu, cpu)
    rows = [
        ProcessRow(
            sample=p,
            cpu_percent=cpu_percent(p.cpu_time - store.baseline(p.pid), total_delta),
            mem_percent=mem_percent(p.rss_kb, memory.total_kb),
        )
        for p in processes
    ]
    result = TickResult(cpu_usage=usage, memory=memory, rows=rows)
    return result, build_store(cpu, processes)
