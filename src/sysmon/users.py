"""uid -> username lookup built once from the account database."""

import pwd
from collections.abc import Mapping

from sysmon.models import UNKNOWN_USER


class UsernameCache:
    """Read-only uid -> name table."""

    def __init__(self, names: Mapping[int, str] | None = None) -> None:
        """Initialize UsernameCache."""
        self._names: dict[int, str] = dict(names or {})

    @classmethod
    def load(cls) -> "UsernameCache":
        """Build the table from every record in the account database.

        Later records win when several names share a uid, matching a
        sequential walk of the passwd file.
        """
        return cls({entry.pw_uid: entry.pw_name for entry in pwd.getpwall()})

    def lookup(self, uid: int | None) -> str:
        """Name for ``uid``, or the placeholder when unknown."""
        if uid is None:
            return UNKNOWN_USER
        return self._names.get(uid, UNKNOWN_USER)

    def __len__(self) -> int:
        """Number of known uids."""
        return len(self._names)
