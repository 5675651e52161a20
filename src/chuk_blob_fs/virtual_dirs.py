"""
chuk_blob_fs/virtual_dirs.py - Pending (virtual) directory bookkeeping

A flat blob namespace cannot represent an empty directory, so directories
created through the bridge are remembered here until a real object appears
under them or they are deleted. Entries are full virtual paths
(``VirtualPath.full_path``) without a trailing separator.
"""

import logging
import threading

from chuk_blob_fs.exceptions import AlreadyExistsError

logger = logging.getLogger(__name__)

SEPARATOR = "/"


def _normalize(path: str) -> str:
    return path.rstrip(SEPARATOR) if path != SEPARATOR else path


class VirtualDirectoryRegistry:
    """A lock-guarded set of pending directory paths."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._paths: set[str] = set()

    def add(self, path: str) -> None:
        """
        Register a pending directory.

        Raises:
            AlreadyExistsError: If the path is already pending
        """
        path = _normalize(path)
        with self._lock:
            if path in self._paths:
                raise AlreadyExistsError(f"File exists: {path}")
            self._paths.add(path)
        logger.debug(f"Added pending directory {path}")

    def remove(self, path: str) -> bool:
        """Remove a pending directory; returns whether it was present."""
        path = _normalize(path)
        with self._lock:
            if path not in self._paths:
                return False
            self._paths.discard(path)
        logger.debug(f"Removed pending directory {path}")
        return True

    def remove_descendants_of(self, path: str) -> list[str]:
        """Remove ``path`` and every pending path below it."""
        path = _normalize(path)
        prefix = path + SEPARATOR
        with self._lock:
            removed = [p for p in self._paths if p == path or p.startswith(prefix)]
            self._paths.difference_update(removed)
        if removed:
            logger.debug(f"Removed {len(removed)} pending directories under {path}")
        return removed

    def has(self, path: str) -> bool:
        path = _normalize(path)
        with self._lock:
            return path in self._paths

    def children_directly_under(self, parent_path: str) -> set[str]:
        """Return the names of pending directories that are immediate children."""
        prefix = _normalize(parent_path) + SEPARATOR
        with self._lock:
            return {
                p[len(prefix) :]
                for p in self._paths
                if p.startswith(prefix) and SEPARATOR not in p[len(prefix) :]
            }

    def snapshot(self) -> frozenset[str]:
        with self._lock:
            return frozenset(self._paths)

    def clear(self) -> None:
        with self._lock:
            self._paths.clear()

    def __contains__(self, path: object) -> bool:
        return isinstance(path, str) and self.has(path)

    def __len__(self) -> int:
        with self._lock:
            return len(self._paths)
