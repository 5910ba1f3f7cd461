#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Display Handler Module
Provides the virtual X display (Xvfb) Wine expects. Best-effort: without
Xvfb the supervisor carries on in a degraded mode.
"""

import re
import time
import logging
import subprocess
from pathlib import Path
from typing import Optional, Callable

import psutil

from .filesystem_handler import FileSystemHandler
from ..models.errors import DisplayUnavailable
from ...shared.paths import XVFB_NAMES

# Initialize logger
logger = logging.getLogger(__name__)

DISPLAY_PATTERN = re.compile(r'^[^:]*:(\d+)(?:\.\d+)?$')


def display_number(display: str) -> Optional[int]:
    """':99' -> 99, 'host:1.0' -> 1, anything else -> None."""
    match = DISPLAY_PATTERN.match(display or '')
    return int(match.group(1)) if match else None


class XvfbHandler:
    """
    Starts Xvfb for a display identifier unless something already serves it.
    Only an Xvfb started here is stopped by stop().
    """

    def __init__(self, display: str, geometry: str = "1024x768x16",
                 xvfb_path: Optional[str] = None, probe=None,
                 socket_dir: str = "/tmp/.X11-unix", lock_dir: str = "/tmp",
                 startup_timeout: float = 2.0, poll_interval: float = 0.1,
                 sleep: Callable[[float], None] = time.sleep,
                 clock: Callable[[], float] = time.monotonic):
        self.display = display
        self.geometry = geometry
        self.xvfb_path = xvfb_path
        self.probe = probe or FileSystemHandler()
        self.socket_dir = Path(socket_dir)
        self.lock_dir = Path(lock_dir)
        self.startup_timeout = startup_timeout
        self.poll_interval = poll_interval
        self.sleep = sleep
        self.clock = clock
        self.process: Optional[subprocess.Popen] = None

    def find_xvfb(self) -> Optional[str]:
        if self.xvfb_path:
            return self.xvfb_path if self.probe.is_executable_file(self.xvfb_path) else None
        for name in XVFB_NAMES:
            found = self.probe.which(name)
            if found:
                return found
        return None

    def is_display_active(self) -> bool:
        """An X server holds the lock file or socket for our display number."""
        number = display_number(self.display)
        if number is None:
            return False
        return (
            self.probe.exists(self.lock_dir / f".X{number}-lock")
            or self.probe.exists(self.socket_dir / f"X{number}")
        )

    def build_command(self, xvfb: str):
        return [xvfb, self.display, '-screen', '0', self.geometry, '-nolisten', 'tcp', '-ac']

    def ensure_display(self, env=None) -> bool:
        """
        Make the display available.

        Returns:
            bool: True if Xvfb was started here, False if one was already running

        Raises:
            DisplayUnavailable: Xvfb is missing, failed to start or could not
                be confirmed alive
        """
        if display_number(self.display) is None:
            raise DisplayUnavailable(f"Unsupported display identifier {self.display!r}")

        xvfb = self.find_xvfb()
        if not xvfb:
            raise DisplayUnavailable("Xvfb not found; continuing without virtual display")

        if self.is_display_active():
            logger.info(f"Xvfb already running on display {self.display}")
            return False

        logger.info("Starting virtual display (Xvfb)...")
        try:
            self.process = subprocess.Popen(
                self.build_command(xvfb),
                env=env,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                start_new_session=True
            )
        except OSError as e:
            raise DisplayUnavailable(f"Failed to start Xvfb: {e}")

        if not self._confirm_alive():
            self.stop()
            raise DisplayUnavailable(f"Failed to start Xvfb on display {self.display}")

        logger.info(f"✓ Xvfb started successfully on display {self.display}")
        logger.debug(f"Xvfb PID: {self.process.pid}")
        return True

    def _confirm_alive(self) -> bool:
        deadline = self.clock() + self.startup_timeout
        while self.clock() < deadline:
            if self.process.poll() is not None:
                return False
            if self.is_display_active():
                return True
            self.sleep(self.poll_interval)
        return self.is_running()

    def is_running(self) -> bool:
        if not self.process or self.process.poll() is not None:
            return False
        try:
            return psutil.Process(self.process.pid).status() != psutil.STATUS_ZOMBIE
        except psutil.NoSuchProcess:
            return False

    def stop(self, timeout: float = 5) -> None:
        """Terminate the Xvfb we started, if any."""
        if not self.process or self.process.poll() is not None:
            return
        logger.debug(f"Stopping Xvfb (PID {self.process.pid})")
        self.process.terminate()
        try:
            self.process.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            self.process.kill()
            self.process.wait(timeout=timeout)
