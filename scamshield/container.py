# file: scamshield/container.py
"""
Shared container resolution.

The main app and the call-directory extension run as separate processes. They
only share data through a directory scoped by an app-group identifier, the same
way an OS app-group container works. Both sides receive a `SharedContainer`
explicitly; nothing here is a process-wide singleton.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from scamshield.errors import StoreUnavailableError

DEFAULT_APP_GROUP_ID = "group.com.scamshield.shared"
BLOCKLIST_FILENAME = "blocklist.sqlite3"


def default_container_root() -> Path:
    """Return the default root under which app-group containers live."""
    xdg_data_home = os.environ.get("XDG_DATA_HOME")
    if xdg_data_home:
        return Path(xdg_data_home).expanduser() / "scamshield" / "containers"
    return Path.home() / ".local" / "share" / "scamshield" / "containers"


@dataclass(frozen=True, slots=True)
class SharedContainer:
    root: Path
    group_id: str = DEFAULT_APP_GROUP_ID

    @property
    def path(self) -> Path:
        return self.root / self.group_id

    @property
    def blocklist_path(self) -> Path:
        return self.path / BLOCKLIST_FILENAME

    def ensure(self) -> Path:
        """
        Create the container directory if needed (main-process side only).

        Raises:
            StoreUnavailableError: if the directory cannot be created.
        """

        try:
            self.path.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StoreUnavailableError(
                f"Shared container {self.group_id} is not available at {self.path}: {exc}"
            ) from exc
        return self.path
