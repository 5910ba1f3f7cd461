"""
Default paths and well-known tool locations.
"""

import os
from pathlib import Path

DEFAULT_SERVER_DIR = "/home/steam/server"
DEFAULT_CONFIG_DIR = "/home/steam/config"
CONFIG_FILE_NAME = "enshrouded_server.json"
SERVER_EXECUTABLE = "enshrouded_server.exe"
SAVEGAME_DIR_NAME = "savegame"
LOGS_DIR_NAME = "logs"
SUPERVISOR_LOG_FILE = "shroudwarden.log"

# Marker written once the Wine prefix has been booted by us
PREFIX_MARKER_NAME = ".shroudwarden-prefix-ready"

STEAMCMD_NAMES = ["steamcmd.sh", "steamcmd"]
WINE_NAMES = ["wine64", "wine"]
WINESERVER_NAMES = ["wineserver64", "wineserver"]
XVFB_NAMES = ["Xvfb"]

# Where base images have historically put SteamCMD, checked in order
STEAMCMD_COMMON_LOCATIONS = [
    "/home/steam/steamcmd/steamcmd.sh",
    "/home/steam/Steam/steamcmd.sh",
    "/home/steam/steamcmd.sh",
    "/home/ubuntu/steamcmd/steamcmd.sh",
    "/home/ubuntu/Steam/steamcmd.sh",
    "/home/ubuntu/steamcmd.sh",
    "/opt/steamcmd/steamcmd.sh",
    "/usr/local/bin/steamcmd.sh",
    "/usr/bin/steamcmd.sh",
    "/usr/games/steamcmd",
]

WINE_COMMON_LOCATIONS = [
    "/usr/bin/wine64",
    "/usr/bin/wine",
    "/usr/local/bin/wine64",
    "/usr/local/bin/wine",
    "/opt/wine-stable/bin/wine64",
    "/opt/wine-stable/bin/wine",
    "/opt/wine-staging/bin/wine64",
    "/opt/wine-staging/bin/wine",
    "/usr/lib/wine/wine64",
]

# Depth bound for the last-resort filesystem walk
SEARCH_MAX_DEPTH = 8

# Pseudo and volatile filesystems never worth walking into
SEARCH_SKIP_DIRS = ["/proc", "/sys", "/dev", "/run", "/tmp"]


def default_wine_prefix() -> str:
    """Default WINEPREFIX when the base image does not set one."""
    home = os.environ.get("HOME") or "/home/steam"
    return str(Path(home) / ".wine")
