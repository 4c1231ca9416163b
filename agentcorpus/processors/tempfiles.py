"""
Scoped ownership of temporary upload files.

Every request that receives uploaded media registers its local files
with a ``TempFileScope``; the scope deletes each registered path exactly
once when the request leaves the ``with`` block, whichever way it leaves.
"""

import logging
import os
from typing import List, Optional


logger = logging.getLogger(__name__)


def discard_file(path: Optional[str]) -> bool:
    """
    Delete a file if it exists.

    Failures are logged and swallowed so that cleanup never masks the
    error that caused it.

    Returns:
        True if a file was removed
    """
    if not path:
        return False
    try:
        os.remove(path)
        logger.debug(f"Removed temporary file: {path}")
        return True
    except FileNotFoundError:
        return False
    except OSError as e:
        logger.warning(f"Failed to remove temporary file {path}: {e}")
        return False


class TempFileScope:
    """Context manager that owns a set of temporary files."""

    def __init__(self, *paths: Optional[str]):
        self._paths: List[str] = []
        for path in paths:
            self.add(path)

    def add(self, path: Optional[str]) -> Optional[str]:
        """Register a path for deletion on exit; returns the path unchanged."""
        if path and path not in self._paths:
            self._paths.append(path)
        return path

    @property
    def paths(self) -> List[str]:
        return list(self._paths)

    def release(self) -> None:
        """Delete every registered file once and forget about it."""
        paths, self._paths = self._paths, []
        for path in paths:
            discard_file(path)

    def __enter__(self) -> "TempFileScope":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.release()
        return False
