#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Configuration Handler Module
Creates and maintains enshrouded_server.json, the file the game server
reads its settings from.
"""

import os
import json
import logging
import tempfile
from pathlib import Path
from typing import Optional, Dict, Any

from .filesystem_handler import FileSystemHandler
from ..models.configuration import ConfigOverrides, ServerConfiguration

# Initialize logger
logger = logging.getLogger(__name__)

TEXT_FIELDS = ('name', 'password')


def sanitize_text(value: str) -> str:
    """Replace line breaks, which would corrupt the file for the game's parser."""
    return value.replace('\r\n', ' ').replace('\n', ' ').replace('\r', ' ')


class ServerConfigHandler:
    """
    Materializes the server configuration.

    An existing file is never regenerated unless a rewrite is forced, so
    operator edits survive restarts. Environment overrides for a fixed set of
    fields are applied on every boot; every other field is left as found.
    """

    def __init__(self, filesystem: Optional[FileSystemHandler] = None):
        self.filesystem = filesystem or FileSystemHandler()

    def ensure_config(self, config_file: Path, overrides: ConfigOverrides,
                      force_rewrite: bool = False) -> bool:
        """
        Make sure config_file exists and carries the current overrides.

        Args:
            config_file: Canonical config path
            overrides: Field overrides from the environment
            force_rewrite: Regenerate the file from the template even if it exists

        Returns:
            bool: True if the file was written, False if it was left untouched
        """
        config_file = Path(config_file)
        written = False

        if config_file.is_file() and not force_rewrite:
            logger.info(f"Configuration file already exists: {config_file}")
        else:
            if force_rewrite and config_file.exists():
                logger.warning(f"FORCE_CONFIG_REWRITE set; regenerating {config_file}")
            self.write_template(config_file, overrides)
            written = True

        if self.apply_overrides(config_file, overrides):
            written = True

        if written:
            self.filesystem.set_ownership(config_file)
        return written

    def write_template(self, config_file: Path, overrides: ConfigOverrides) -> ServerConfiguration:
        """Write a fresh configuration from defaults plus overrides."""
        logger.info("Generating server configuration...")
        config = overrides.to_template()
        config.name = sanitize_text(config.name)
        config.password = sanitize_text(config.password)
        self._write_json(config_file, config.to_dict())
        logger.info("✓ Configuration generated successfully")
        self.log_summary(config)
        return config

    def apply_overrides(self, config_file: Path, overrides: ConfigOverrides) -> bool:
        """
        Apply non-empty overrides to the existing file's contents.

        Returns:
            bool: True if any field changed and the file was rewritten
        """
        data = self.load(config_file)
        if data is None:
            return False

        changed = []
        for key, value in overrides.as_json_fields().items():
            if key in TEXT_FIELDS:
                value = sanitize_text(value)
            if key not in data or data[key] != value:
                data[key] = value
                changed.append(key)

        if not changed:
            logger.debug("Configuration overrides already applied")
            return False

        self._write_json(config_file, data)
        logger.info(f"Applied configuration overrides: {', '.join(changed)}")
        return True

    def load(self, config_file: Path) -> Optional[Dict[str, Any]]:
        """Read the config file. Returns None if it is missing or not a JSON object."""
        try:
            with open(config_file, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except FileNotFoundError:
            logger.error(f"Configuration file missing: {config_file}")
            return None
        except (OSError, ValueError) as e:
            logger.warning(f"Cannot parse {config_file}, leaving it as is: {e}")
            return None
        if not isinstance(data, dict):
            logger.warning(f"{config_file} does not hold a JSON object, leaving it as is")
            return None
        return data

    def copy_to_install_dir(self, config_file: Path, server_dir: Path) -> bool:
        """Give the server directory a copy of the canonical config if it lacks one."""
        server_config = Path(server_dir) / Path(config_file).name
        if not Path(config_file).is_file():
            return False
        if server_config.exists():
            return False
        logger.debug("Copying config into server directory")
        return self.filesystem.copy_file(Path(config_file), server_config)

    @staticmethod
    def log_summary(config: ServerConfiguration) -> None:
        logger.info(f"  Server Name: {config.name}")
        logger.info(f"  Max Players: {config.slot_count}")
        logger.info(f"  Game Port:   {config.game_port}")
        logger.info(f"  Query Port:  {config.query_port}")
        if config.password:
            logger.info("  Password:    Set (hidden)")
        else:
            logger.warning("  Password:    Not set (public server)")

    @staticmethod
    def _write_json(config_file: Path, data: Dict[str, Any]) -> None:
        config_file = Path(config_file)
        config_file.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(prefix=f".{config_file.name}.", dir=str(config_file.parent))
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
                f.write('\n')
            os.chmod(tmp_path, 0o644)
            os.replace(tmp_path, config_file)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise
