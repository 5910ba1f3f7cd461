"""
Steam Utilities Module

Reads the app manifest SteamCMD leaves in an install directory.
"""

import logging
from pathlib import Path
from typing import Optional, Dict, Any

import vdf

logger = logging.getLogger(__name__)


def app_manifest_path(install_dir: Path, app_id: str) -> Path:
    return Path(install_dir) / "steamapps" / f"appmanifest_{app_id}.acf"


def read_app_manifest(install_dir: Path, app_id: str) -> Optional[Dict[str, Any]]:
    """
    Parse steamapps/appmanifest_<appid>.acf.

    Returns:
        The AppState section, or None if the manifest is missing or unreadable
    """
    manifest = app_manifest_path(install_dir, app_id)
    if not manifest.is_file():
        logger.debug(f"No app manifest at {manifest}")
        return None
    try:
        with open(manifest, 'r', encoding='utf-8', errors='replace') as f:
            data = vdf.load(f)
    except (OSError, SyntaxError, ValueError) as e:
        logger.debug(f"Error parsing {manifest}: {e}")
        return None
    state = data.get('AppState')
    return state if isinstance(state, dict) else None


def installed_build_id(install_dir: Path, app_id: str) -> Optional[str]:
    """Build id SteamCMD recorded for the installed app, if any."""
    state = read_app_manifest(install_dir, app_id)
    if not state:
        return None
    return state.get('buildid') or None
