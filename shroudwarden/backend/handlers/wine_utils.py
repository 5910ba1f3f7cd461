#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Wine Utilities Module
Handles calls into the Wine runtime: prefix boot, wineserver control and
discovery of Wine-hosted processes.
"""

import os
import subprocess
import logging
from pathlib import Path
from typing import Optional, List

import psutil

# Initialize logger
logger = logging.getLogger(__name__)


class WineUtils:
    """
    Utilities for wine-related operations against one prefix
    """

    def __init__(self, wine_bin: str, wineserver: Optional[str] = None, env=None):
        self.wine_bin = wine_bin
        self.wineserver = wineserver
        self.env = env

    def build_launch_command(self, executable: Path) -> List[str]:
        return [self.wine_bin, str(executable)]

    def _run(self, cmd: List[str], timeout: int) -> int:
        logger.debug(f"Running: {' '.join(cmd)}")
        result = subprocess.run(
            cmd,
            env=self.env,
            capture_output=True,
            text=True,
            timeout=timeout
        )
        if result.stdout:
            logger.debug(f"stdout: {result.stdout.strip()[:500]}")
        if result.stderr:
            logger.debug(f"stderr: {result.stderr.strip()[:500]}")
        return result.returncode

    def kill_wineserver(self, timeout: int = 30) -> bool:
        """
        Stop any wineserver left running for this prefix.
        Returns False when there is no wineserver binary or the stop failed.
        """
        if not self.wineserver:
            logger.debug("No wineserver binary; skipping wineserver -k")
            return False
        try:
            self._run([self.wineserver, '-k'], timeout)
            return True
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.warning(f"wineserver -k failed: {e}")
            return False

    def wait_wineserver(self, timeout: int = 60) -> bool:
        """
        Block until the prefix's wineserver has exited.
        Returns False when quiescence could not be confirmed.
        """
        if not self.wineserver:
            logger.debug("No wineserver binary; cannot wait for quiescence")
            return False
        try:
            self._run([self.wineserver, '-w'], timeout)
            return True
        except subprocess.TimeoutExpired:
            logger.warning(f"wineserver still running after {timeout}s")
            return False
        except OSError as e:
            logger.warning(f"wineserver -w failed: {e}")
            return False

    def wineboot_init(self, timeout: int = 120) -> int:
        """
        Run `wine wineboot --init` to create/update the prefix.

        Returns:
            wineboot's exit code

        Raises:
            OSError: wine could not be executed
            subprocess.TimeoutExpired: wineboot did not return in time
        """
        return self._run([self.wine_bin, 'wineboot', '--init'], timeout)

    @staticmethod
    def find_processes(fragment: str) -> List[psutil.Process]:
        """Return running processes whose name or command line mentions fragment."""
        found = []
        needle = fragment.lower()
        for proc in psutil.process_iter(['pid', 'name', 'cmdline']):
            try:
                name = (proc.info.get('name') or '').lower()
                cmdline = proc.info.get('cmdline') or []
                if proc.pid == os.getpid():
                    continue
                if needle in name or any(needle in str(arg).lower() for arg in cmdline):
                    found.append(proc)
            except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
                continue
        return found
