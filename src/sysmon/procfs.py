"""Samplers for the kernel's process pseudo-file tree.

Every read is best-effort: a pseudo-file that cannot be opened yields an
empty or zero result for this tick instead of an exception, since
processes exit between directory enumeration and the per-pid reads all the
time.
"""

import os
from dataclasses import dataclass
from pathlib import Path

import psutil

from sysmon.logging import get_logger
from sysmon.models import MemorySnapshot, ProcessSample, SystemCpuSample
from sysmon.users import UsernameCache

log = get_logger()

CPU_FIELDS = ("user", "nice", "system", "idle", "iowait", "irq", "softirq", "steal")

# utime/stime are fields 14 and 15 of <pid>/stat. Indices are relative to
# field 3, the first one after the closing parenthesis of the command name.
_UTIME_INDEX = 14 - 3
_STIME_INDEX = 15 - 3


@dataclass(slots=True)
class StatusFields:
    """Fields of interest from <pid>/status."""

    name: str = ""
    rss_kb: int = 0
    uid: int | None = None


def parse_pid(entry: str) -> int | None:
    """Return the pid a directory entry names, or None if it is not a pid."""
    if not (entry.isascii() and entry.isdigit()):
        return None
    return int(entry)


def parse_cpu_line(line: str) -> SystemCpuSample:
    """Parse the aggregate ``cpu`` line of the stat file.

    Counters missing from the end of the line (older kernels) are 0. Any
    other shape yields the all-zero sample.
    """
    parts = line.split()
    if not parts or not parts[0].startswith("cpu"):
        return SystemCpuSample()
    values = []
    for token in parts[1 : 1 + len(CPU_FIELDS)]:
        if not token.isdigit():
            return SystemCpuSample()
        values.append(int(token))
    return SystemCpuSample(*values)


def parse_meminfo(text: str) -> MemorySnapshot:
    """Extract MemTotal and MemAvailable (KiB); a missing key reads as 0."""
    values: dict[str, int] = {}
    for line in text.splitlines():
        key, _, rest = line.partition(":")
        if key not in ("MemTotal", "MemAvailable"):
            continue
        tokens = rest.split()
        if tokens and tokens[0].isdigit():
            values[key] = int(tokens[0])
    return MemorySnapshot(
        total_kb=values.get("MemTotal", 0),
        available_kb=values.get("MemAvailable", 0),
    )


def parse_stat_times(line: str) -> tuple[int, int] | None:
    """Return (utime, stime) from a <pid>/stat line, None if malformed.

    The command name (field 2) is wrapped in parentheses and may itself
    contain spaces and parentheses, so counting starts after the last
    closing parenthesis rather than from the start of the line.
    """
    close = line.rfind(")")
    if close == -1:
        return None
    fields = line[close + 1 :].split()
    if len(fields) <= _STIME_INDEX:
        return None
    utime, stime = fields[_UTIME_INDEX], fields[_STIME_INDEX]
    if not (utime.isdigit() and stime.isdigit()):
        return None
    return int(utime), int(stime)


def parse_status(text: str) -> StatusFields:
    """Extract Name, VmRSS and the real Uid from <pid>/status."""
    fields = StatusFields()
    for line in text.splitlines():
        key, _, value = line.partition(":")
        if key == "Name":
            fields.name = value.strip()
        elif key == "VmRSS":
            tokens = value.split()
            if tokens and tokens[0].isdigit():
                fields.rss_kb = int(tokens[0])
        elif key == "Uid":
            tokens = value.split()
            if tokens and tokens[0].isdigit():
                fields.uid = int(tokens[0])
    return fields


class ProcFS:
    """Reads system and per-process counters under a procfs root."""

    def __init__(self, root: str | os.PathLike[str] = psutil.PROCFS_PATH) -> None:
        """Initialize ProcFS."""
        self.root = Path(root)

    def _read(self, *parts: str) -> str | None:
        try:
            return self.root.joinpath(*parts).read_text(errors="replace")
        except OSError:
            return None

    def _read_first_line(self, *parts: str) -> str | None:
        try:
            with self.root.joinpath(*parts).open(errors="replace") as f:
                return f.readline()
        except OSError:
            return None

    def sample_system_cpu(self) -> SystemCpuSample:
        """Aggregate CPU counters; all-zero when the source is unreadable."""
        line = self._read_first_line("stat")
        if line is None:
            log.debug("source_unavailable", source="stat", root=str(self.root))
            return SystemCpuSample()
        return parse_cpu_line(line)

    def sample_memory(self) -> MemorySnapshot:
        """Total and available memory; zeros when the source is unreadable."""
        text = self._read("meminfo")
        if text is None:
            log.debug("source_unavailable", source="meminfo", root=str(self.root))
            return MemorySnapshot()
        return parse_meminfo(text)

    def sample_process(self, pid: int, users: UsernameCache) -> ProcessSample | None:
        """Read one process, or None if it vanished or its files are malformed."""
        stat_line = self._read_first_line(str(pid), "stat")
        if stat_line is None:
            return None
        times = parse_stat_times(stat_line)
        if times is None:
            return None

        status_text = self._read(str(pid), "status")
        if status_text is None:
            return None
        status = parse_status(status_text)
        if not status.name:
            return None

        utime, stime = times
        return ProcessSample(
            pid=pid,
            user=users.lookup(status.uid),
            name=status.name,
            rss_kb=status.rss_kb,
            utime=utime,
            stime=stime,
        )

    def sample_processes(self, users: UsernameCache) -> list[ProcessSample]:
        """Sample every process, in directory order."""
        try:
            entries = os.listdir(self.root)
        except OSError as e:
            log.debug("source_unavailable", source="pids", root=str(self.root), error=str(e))
            return []

        samples: list[ProcessSample] = []
        for entry in entries:
            pid = parse_pid(entry)
            if pid is None:
                continue
            sample = self.sample_process(pid, users)
            if sample is not None:
                samples.append(sample)
        return samples
