"""
FileSystemHandler module for file system probing and operations.
This module handles executable lookup, directory management and file
ownership. Services take it as an injectable probe so tests can replace
the real filesystem with a simulated layout.
"""

import os
import shutil
import logging
from collections import deque
from pathlib import Path
from typing import Optional, Iterable

from ...shared.paths import SEARCH_SKIP_DIRS

# Initialize logger for the module
logger = logging.getLogger(__name__)


class FileSystemHandler:
    def __init__(self, search_path: Optional[str] = None):
        """
        Args:
            search_path: PATH string used for executable lookups,
                defaults to the current process PATH at lookup time
        """
        self.search_path = search_path

    @staticmethod
    def exists(path) -> bool:
        return os.path.exists(path)

    @staticmethod
    def is_executable_file(path) -> bool:
        """True if path is a regular file (or link to one) with the execute bit for us."""
        try:
            return os.path.isfile(path) and os.access(path, os.X_OK)
        except (OSError, ValueError):
            return False

    def which(self, name: str) -> Optional[str]:
        """Look up an executable on the search path."""
        return shutil.which(name, path=self.search_path)

    def find_executable(self, root, names: Iterable[str], max_depth: int,
                        skip_dirs: Optional[Iterable[str]] = None) -> Optional[str]:
        """
        Bounded breadth-first search for an executable named one of names.

        Directories are visited in sorted order and symlinked directories are
        not followed, so a fixed layout always yields the same answer. Files
        directly inside root are at depth 1.

        Returns:
            Path of the first executable match, or None
        """
        names = list(names)
        skip = set(SEARCH_SKIP_DIRS if skip_dirs is None else skip_dirs)
        queue = deque([(str(root), 1)])
        while queue:
            directory, depth = queue.popleft()
            try:
                with os.scandir(directory) as it:
                    entries = sorted(it, key=lambda e: e.name)
            except OSError:
                continue
            by_name = {entry.name: entry for entry in entries}
            # Earlier names win within the same directory
            for name in names:
                entry = by_name.get(name)
                if entry is None:
                    continue
                try:
                    if entry.is_file() and os.access(entry.path, os.X_OK):
                        return entry.path
                except OSError:
                    continue
            if depth >= max_depth:
                continue
            for entry in entries:
                try:
                    if entry.is_dir(follow_symlinks=False) and entry.path not in skip:
                        queue.append((entry.path, depth + 1))
                except OSError:
                    continue
        return None

    @staticmethod
    def ensure_directory(path: Path) -> bool:
        """Ensure a directory exists, create if it doesn't."""
        try:
            Path(path).mkdir(parents=True, exist_ok=True)
            logger.debug(f"Ensured directory exists: {path}")
            return True
        except OSError as e:
            logger.error(f"Failed to ensure directory {path}: {e}")
            return False

    @staticmethod
    def clear_directory(path: Path) -> bool:
        """
        Remove everything inside a directory but keep the directory itself,
        which may be a mount point. Missing directories count as cleared.
        """
        try:
            with os.scandir(path) as it:
                entries = list(it)
        except FileNotFoundError:
            return True
        except OSError as e:
            logger.error(f"Failed to list directory {path}: {e}")
            return False
        try:
            for entry in entries:
                if entry.is_dir(follow_symlinks=False):
                    shutil.rmtree(entry.path)
                else:
                    os.unlink(entry.path)
        except OSError as e:
            logger.error(f"Failed to clear directory {path}: {e}")
            return False
        logger.debug(f"Cleared directory: {path}")
        return True

    @staticmethod
    def copy_file(src: Path, dst: Path, overwrite: bool = False) -> bool:
        """Copy src to dst. Returns False without copying if dst exists and overwrite is off."""
        if Path(dst).exists() and not overwrite:
            logger.debug(f"Not copying over existing file: {dst}")
            return False
        shutil.copy2(src, dst)
        logger.debug(f"Copied {src} -> {dst}")
        return True

    @staticmethod
    def file_size(path: Path) -> int:
        try:
            return os.stat(path).st_size
        except OSError:
            return 0

    @staticmethod
    def write_text(path: Path, content: str) -> None:
        Path(path).write_text(content, encoding='utf-8')

    @staticmethod
    def set_ownership(path: Path, uid: Optional[int] = None, gid: Optional[int] = None) -> bool:
        """
        Hand a file to the run-as user. Defaults to the current uid/gid.
        Failures are logged and reported, never raised.
        """
        uid = os.getuid() if uid is None else uid
        gid = os.getgid() if gid is None else gid
        try:
            st = os.stat(path)
            if st.st_uid == uid and st.st_gid == gid:
                return True
            os.chown(path, uid, gid)
            logger.debug(f"Changed ownership of {path} to {uid}:{gid}")
            return True
        except OSError as e:
            logger.warning(f"Could not set ownership of {path} to {uid}:{gid}: {e}")
            return False
