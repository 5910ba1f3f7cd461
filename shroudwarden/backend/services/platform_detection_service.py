#!/usr/bin/env python3
"""
Platform Detection Service

Looks at the host once at startup: who we run as and which base image we
run on. The supervisor refuses to run as root.
"""

import os
import pwd
import logging
from typing import Callable, Optional

from ..models.errors import PermissionViolation

logger = logging.getLogger(__name__)


class PlatformDetectionService:
    """
    Service for detecting platform-specific information once at startup
    """

    def __init__(self, geteuid: Callable[[], int] = os.geteuid,
                 os_release_path: str = '/etc/os-release'):
        self._geteuid = geteuid
        self._os_release_path = os_release_path
        self._distribution = None

    @property
    def uid(self) -> int:
        return self._geteuid()

    @property
    def user_name(self) -> str:
        try:
            return pwd.getpwuid(self.uid).pw_name
        except KeyError:
            return str(self.uid)

    @property
    def distribution(self) -> Optional[str]:
        """PRETTY_NAME from os-release, if readable"""
        if self._distribution is None:
            self._distribution = self._read_distribution() or ''
        return self._distribution or None

    def _read_distribution(self) -> Optional[str]:
        try:
            with open(self._os_release_path, 'r') as f:
                for line in f:
                    key, _, value = line.strip().partition('=')
                    if key == 'PRETTY_NAME':
                        return value.strip('"') or None
        except OSError as e:
            logger.debug(f"Cannot read {self._os_release_path}: {e}")
        return None

    def ensure_unprivileged(self) -> None:
        """
        Raises:
            PermissionViolation: running as root
        """
        uid = self.uid
        if uid == 0:
            logger.error("Running as root is not allowed; run the container as the steam user")
            raise PermissionViolation("Refusing to run as root (uid 0)")
        logger.info(f"Running as user: {self.user_name} (UID: {uid})")
        if self.distribution:
            logger.debug(f"Base image: {self.distribution}")
