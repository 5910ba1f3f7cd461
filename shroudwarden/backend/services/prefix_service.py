#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Prefix Service Module
Brings the Wine prefix from Uninitialized to Ready exactly once per prefix
directory. Readiness is recorded by a marker file inside the prefix.
"""

import logging
import subprocess
import time
from pathlib import Path
from typing import Callable, Optional

from ..handlers.filesystem_handler import FileSystemHandler
from ..models.configuration import PrefixState
from ..models.errors import PrefixInitFailed
from ...shared.paths import PREFIX_MARKER_NAME

# Initialize logger
logger = logging.getLogger(__name__)


class PrefixService:
    """
    Wine prefix readiness state machine.

    Uninitialized -> (Initializing) -> Ready. Initializing only exists while
    initialize() runs. The state is re-derived from the marker on every
    probe, so a prefix that was deleted behind our back reads as
    Uninitialized again.
    """

    def __init__(self, prefix_path: Path, wine, probe=None,
                 sleep: Callable[[float], None] = time.sleep,
                 init_attempts: int = 2, retry_delay: float = 5.0,
                 settle_delay: float = 3.0):
        """
        Args:
            prefix_path: WINEPREFIX directory
            wine: Object providing kill_wineserver, wineboot_init and
                wait_wineserver (normally WineUtils)
            probe: Filesystem probe, defaults to FileSystemHandler
            sleep: Clock used for retry and settle waits
            init_attempts: How many times wineboot is tried per boot
        """
        self.prefix_path = Path(prefix_path)
        self.wine = wine
        self.probe = probe or FileSystemHandler()
        self.sleep = sleep
        self.init_attempts = max(1, init_attempts)
        self.retry_delay = retry_delay
        self.settle_delay = settle_delay
        self._state: Optional[PrefixState] = None

    @property
    def marker_path(self) -> Path:
        return self.prefix_path / PREFIX_MARKER_NAME

    @property
    def state(self) -> PrefixState:
        if self._state is None:
            self._state = self.probe_state()
        return self._state

    def probe_state(self) -> PrefixState:
        """Read the state from the marker file."""
        if self.probe.exists(self.marker_path):
            return PrefixState.READY
        return PrefixState.UNINITIALIZED

    def reset(self) -> None:
        """
        Empty the prefix directory. The directory itself stays, since it is
        usually a volume. Marker is gone afterwards.
        """
        logger.warning(f"Resetting Wine prefix: {self.prefix_path}")
        if not self.probe.clear_directory(self.prefix_path):
            raise PrefixInitFailed(f"Could not clear Wine prefix {self.prefix_path}")
        if not self.probe.ensure_directory(self.prefix_path):
            raise PrefixInitFailed(f"Could not recreate Wine prefix {self.prefix_path}")
        self._state = PrefixState.UNINITIALIZED
        logger.warning("Unset FORCE_PREFIX_RESET once the server is up, or the prefix is rebuilt on every start")

    def prepare(self, force_reset: bool = False) -> PrefixState:
        """
        Make sure the prefix is initialized. Safe to call repeatedly: once the
        marker exists this is a no-op unless force_reset is requested.

        Raises:
            PrefixInitFailed: wineboot failed on every attempt (non-fatal
                for callers; the marker is not written so the next boot retries)
        """
        if force_reset:
            self.reset()
        elif not self.probe.exists(self.prefix_path):
            logger.warning(f"Wine prefix not initialized, creating: {self.prefix_path}")
            self.probe.ensure_directory(self.prefix_path)

        self._state = self.probe_state()
        if self._state is PrefixState.READY:
            logger.debug(f"Wine prefix ready: {self.prefix_path}")
            return self._state

        self.initialize()
        return self._state

    def initialize(self) -> None:
        """Run the Uninitialized -> Ready transition."""
        self._state = PrefixState.INITIALIZING
        logger.warning("Initializing Wine prefix with wineboot...")

        if not self.wine.kill_wineserver():
            logger.debug("No stray wineserver stopped")

        last_error = None
        for attempt in range(1, self.init_attempts + 1):
            try:
                returncode = self.wine.wineboot_init()
            except (OSError, subprocess.TimeoutExpired) as e:
                last_error = f"{type(e).__name__}: {e}"
            else:
                if returncode == 0:
                    last_error = None
                    break
                last_error = f"wineboot exited with code {returncode}"
            logger.warning(f"Wine prefix init attempt {attempt}/{self.init_attempts} failed: {last_error}")
            if attempt < self.init_attempts:
                self.sleep(self.retry_delay)

        if not self.wine.wait_wineserver():
            self.sleep(self.settle_delay)

        if last_error is not None:
            self._state = PrefixState.UNINITIALIZED
            raise PrefixInitFailed(f"Wine prefix {self.prefix_path} may be broken: {last_error}")

        self.probe.write_text(self.marker_path, f"{time.strftime('%Y-%m-%dT%H:%M:%S')}\n")
        self._state = PrefixState.READY
        logger.info(f"✓ Wine prefix ready: {self.prefix_path}")
