"""
Error Types

Exceptions raised by the supervisor's handlers and services. The supervisor
treats ToolNotFound (for required tools), PermissionViolation, UpdateFailed,
ExecutableMissing and ConfigurationInvalid as fatal; DisplayUnavailable and
PrefixInitFailed are logged and the boot continues.
"""

from typing import Iterable, Optional


class ShroudwardenError(Exception):
    """Base class for all supervisor errors."""
    fatal = True


class ToolNotFound(ShroudwardenError):
    """Every resolution tier was exhausted without finding the tool."""

    def __init__(self, tool: str, searched: Optional[Iterable[str]] = None):
        self.tool = tool
        self.searched = list(searched or [])
        super().__init__(f"{tool} not found (searched: {', '.join(self.searched) or 'nothing'})")


class PermissionViolation(ShroudwardenError):
    """The supervisor is running with a disallowed privilege level."""


class UpdateFailed(ShroudwardenError):
    """The fetcher exited non-zero."""

    def __init__(self, returncode: int, message: Optional[str] = None):
        self.returncode = returncode
        super().__init__(message or f"SteamCMD exited with code {returncode}")


class ExecutableMissing(ShroudwardenError):
    """The server executable is absent after install/update."""

    def __init__(self, path):
        self.path = path
        super().__init__(f"Server executable not found: {path}")


class ConfigurationInvalid(ShroudwardenError):
    """An environment-supplied setting could not be parsed."""


class DisplayUnavailable(ShroudwardenError):
    """No virtual display could be provided. Non-fatal."""
    fatal = False


class PrefixInitFailed(ShroudwardenError):
    """Wine prefix initialization did not complete cleanly. Non-fatal."""
    fatal = False
