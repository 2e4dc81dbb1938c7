"""
Config Store Module

Holds the two configuration parameters a client may read back with
CONFIG GET. Values are fixed when the server starts.
"""

import os
from dataclasses import dataclass
from typing import ClassVar, Tuple

# Returned by ConfigStore.get() for names it does not know
UNKNOWN_PARAMETER = "ERR unknown parameter"


@dataclass(frozen=True)
class ConfigStore:
    """
    Read-only view of the server configuration.

    Attributes:
        dir: Directory holding the snapshot file
        dbfilename: Name of the snapshot file inside ``dir``
    """

    dir: str
    dbfilename: str

    PARAMETERS: ClassVar[Tuple[str, ...]] = ("dir", "dbfilename")

    def get(self, param: str) -> str:
        """
        Look up a configuration parameter by name.

        Unknown names do not raise; they return UNKNOWN_PARAMETER so that
        callers decide how to surface the problem.
        """
        if param == "dir":
            return self.dir
        if param == "dbfilename":
            return self.dbfilename
        return UNKNOWN_PARAMETER

    def __contains__(self, param: object) -> bool:
        return param in self.PARAMETERS

    @property
    def snapshot_path(self) -> str:
        """Full path of the snapshot file."""
        return os.path.join(self.dir, self.dbfilename)
