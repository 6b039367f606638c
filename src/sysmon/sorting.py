"""Process table ordering."""

from enum import Enum

from sysmon.models import ProcessRow


class SortMode(Enum):
    """Sort modes for the process table, keyed by their selector key."""

    CPU = "c"
    MEM = "m"
    PID = "p"

    @property
    def label(self) -> str:
        """Short name shown on the status line."""
        return self.name

    @classmethod
    def from_key(cls, key: str | None) -> "SortMode | None":
        """Return the mode a key selects, or None if it is not a sort key."""
        for mode in cls:
            if mode.value == key:
                return mode
        return None


def sort_processes(rows: list[ProcessRow], mode: SortMode) -> list[ProcessRow]:
    """Return a new list ordered by ``mode``.

    CPU and MEM are descending with ties left in sample order; PID is
    ascending and total since pids are unique.
    """
    key_func = {
        SortMode.CPU: lambda r: r.cpu_percent,
        SortMode.MEM: lambda r: r.mem_percent,
        SortMode.PID: lambda r: r.pid,
    }
    return sorted(rows, key=key_func[mode], reverse=mode is not SortMode.PID)
