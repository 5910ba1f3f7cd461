#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
SteamCMD Handler Module
Installs or validates the dedicated server through SteamCMD and checks the
result on disk.
"""

import logging
import subprocess
from pathlib import Path
from typing import Optional, List

from .filesystem_handler import FileSystemHandler
from ..models.errors import UpdateFailed, ExecutableMissing, ToolNotFound

# Initialize logger
logger = logging.getLogger(__name__)


class SteamCmdHandler:
    """
    Drives SteamCMD. A single blocking invocation per update; the exit status
    is the only result that counts.
    """

    def __init__(self, fetcher_path: Optional[str], env=None, filesystem: Optional[FileSystemHandler] = None):
        self.fetcher_path = fetcher_path
        self.env = env
        self.filesystem = filesystem or FileSystemHandler()

    def build_command(self, app_id: str, install_dir: Path) -> List[str]:
        return [
            str(self.fetcher_path),
            '+@sSteamCmdForcePlatformType', 'windows',
            '+force_install_dir', str(install_dir),
            '+login', 'anonymous',
            '+app_update', str(app_id), 'validate',
            '+quit',
        ]

    def update(self, app_id: str, install_dir: Path) -> None:
        """
        Install or validate app_id into install_dir.

        Raises:
            ToolNotFound: No SteamCMD was resolved
            UpdateFailed: SteamCMD could not run or exited non-zero
        """
        if not self.fetcher_path:
            raise ToolNotFound("SteamCMD")

        logger.info("Updating/Installing Enshrouded Dedicated Server...")
        logger.info(f"Steam AppID:       {app_id}")
        logger.info(f"Install directory: {install_dir}")
        logger.debug(f"SteamCMD resolved: {self.fetcher_path}")

        cmd = self.build_command(app_id, install_dir)
        try:
            # Output goes straight to the container log
            result = subprocess.run(cmd, env=self.env)
        except OSError as e:
            raise UpdateFailed(-1, f"Could not run SteamCMD {self.fetcher_path}: {e}")

        if result.returncode != 0:
            raise UpdateFailed(result.returncode)
        logger.info("✓ SteamCMD finished successfully")

    def verify_installation(self, executable: Path, min_size: int = 0) -> int:
        """
        Confirm the server executable exists. A size below min_size only
        produces a warning.

        Returns:
            The executable's size in bytes

        Raises:
            ExecutableMissing: The executable is not a file
        """
        logger.info("Verifying server installation...")
        executable = Path(executable)
        if not executable.is_file():
            logger.error(f"Server executable not found: {executable}")
            logger.error("SteamCMD may have failed or installed to a different directory.")
            raise ExecutableMissing(executable)

        logger.info("✓ Server executable verified")
        logger.debug(f"Location: {executable}")

        file_size = self.filesystem.file_size(executable)
        if file_size > min_size:
            logger.debug(f"File size: {file_size // 1024 // 1024}MB (looks valid)")
        else:
            logger.warning(f"Server executable seems small: {file_size // 1024}KB")
        return file_size
