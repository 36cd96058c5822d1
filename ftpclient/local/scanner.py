"""Local filesystem enumeration for directory uploads.

Defines the LocalDirectorySource protocol used by recursive uploads and
LocalScanner, its pathlib-based implementation.
"""

import fnmatch
import logging
from pathlib import Path
from typing import List, Protocol, Union

logger = logging.getLogger("ftpclient.local_scanner")


class LocalDirectorySource(Protocol):
    """Lists local files and subdirectories for upload_directory()."""

    def list_files(self, directory: Path, mask: str) -> List[Path]:
        """Files directly inside ``directory`` whose names match ``mask``."""
        ...

    def list_directories(self, directory: Path) -> List[Path]:
        """Subdirectories directly inside ``directory``."""
        ...


class LocalScanner:
    """Scans a local directory one level deep.

    Implements LocalDirectorySource.
    """

    def list_files(self, directory: Union[str, Path], mask: str = "*") -> List[Path]:
        """
        List files matching a shell-style mask.

        Args:
            directory: Local directory to scan
            mask: Pattern such as ``*`` or ``*.jpg``

        Returns:
            Sorted list of matching file paths (empty if the directory is missing)
        """
        return [
            entry for entry in self._entries(Path(directory))
            if entry.is_file() and fnmatch.fnmatch(entry.name, mask)
        ]

    def list_directories(self, directory: Union[str, Path]) -> List[Path]:
        """
        List immediate subdirectories.

        Args:
            directory: Local directory to scan

        Returns:
            Sorted list of subdirectory paths (empty if the directory is missing)
        """
        return [entry for entry in self._entries(Path(directory)) if entry.is_dir()]

    def _entries(self, directory: Path) -> List[Path]:
        if not directory.is_dir():
            logger.debug(f"Not a directory, nothing to scan: {directory}")
            return []
        entries = sorted(directory.iterdir())
        logger.debug(f"Scanned {directory}: {len(entries)} entries")
        return entries
