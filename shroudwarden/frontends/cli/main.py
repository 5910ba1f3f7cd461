#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Shroudwarden CLI Frontend - Main Entry Point

Command-line interface for the supervisor. `shroudwarden` with no
subcommand runs the full supervised lifecycle (the container entrypoint).
"""

import sys
import json
import argparse
import logging
from typing import Optional, Sequence, Mapping, Callable

from shroudwarden import __version__ as shroudwarden_version
from shroudwarden.backend.core.server_supervisor import ServerSupervisor
from shroudwarden.backend.handlers.config_handler import ServerConfigHandler
from shroudwarden.backend.handlers.filesystem_handler import FileSystemHandler
from shroudwarden.backend.handlers.logging_handler import LoggingHandler, ROOT_LOGGER_NAME
from shroudwarden.backend.handlers.steamcmd_handler import SteamCmdHandler
from shroudwarden.backend.handlers.subprocess_utils import build_wine_env
from shroudwarden.backend.handlers.wine_utils import WineUtils
from shroudwarden.backend.models.configuration import SupervisorSettings
from shroudwarden.backend.models.errors import ShroudwardenError
from shroudwarden.backend.services.tool_resolution_service import ToolResolutionService

logger = logging.getLogger(__name__)


class ShroudwardenCLI:
    """Main application class for the Shroudwarden CLI"""

    def __init__(self, environ: Optional[Mapping[str, str]] = None,
                 supervisor_factory: Optional[Callable] = None,
                 resolver: Optional[ToolResolutionService] = None):
        """
        Args:
            environ: Environment to read settings from, defaults to os.environ
            supervisor_factory: Builds the ServerSupervisor for `run`
            resolver: Tool resolver shared by `run`, `resolve` and `update`
        """
        self.environ = environ
        self.resolver = resolver
        self.supervisor_factory = supervisor_factory or (
            lambda settings: ServerSupervisor(settings, resolver=self.resolver)
        )
        self.args = None
        self.settings: Optional[SupervisorSettings] = None

    def _parse_args(self, argv: Optional[Sequence[str]] = None):
        parser = argparse.ArgumentParser(
            prog="shroudwarden",
            description="Shroudwarden: Enshrouded dedicated server supervisor for Wine containers"
        )
        parser.add_argument("-V", "--version", action="store_true", help="Show version and exit")
        parser.add_argument("-d", "--debug", action="store_true", help="Enable debug logging on the console")

        subparsers = parser.add_subparsers(dest="command", help="Command to run (default: run)")
        subparsers.add_parser("run", help="Install/update, configure and supervise the server")
        subparsers.add_parser("resolve", help="Print the resolved runtime environment as JSON")
        subparsers.add_parser("config", help="Create or update the server configuration file only")
        subparsers.add_parser("update", help="Install or validate the server with SteamCMD only")
        subparsers.add_parser("healthcheck", help="Exit 0 if the server process is running")
        return parser.parse_args(argv)

    def _configure_logging(self, with_file: bool, rotate: bool = False) -> logging.Logger:
        """Console logging always; file logging for commands that change state."""
        level = "DEBUG" if self.args.debug else (self.settings.log_level if self.settings else "INFO")
        log_dir = self.settings.supervisor_log_dir if (with_file and self.settings) else None
        return LoggingHandler(log_dir).setup_logger(ROOT_LOGGER_NAME, console_level=level, rotate=rotate)

    def run(self, argv: Optional[Sequence[str]] = None) -> int:
        self.args = self._parse_args(argv)
        if self.args.version:
            print(f"Shroudwarden version {shroudwarden_version}")
            return 0

        command = self.args.command or "run"
        self._configure_logging(with_file=False)

        try:
            self.settings = SupervisorSettings.from_env(self.environ)
        except ShroudwardenError as e:
            logger.error(f"Invalid configuration: {e}")
            return 1

        if command == "run":
            self._configure_logging(with_file=True, rotate=True)
        elif command in ("config", "update"):
            self._configure_logging(with_file=True)
        elif command == "healthcheck" and not self.args.debug:
            # Runs every few seconds; keep it quiet
            LoggingHandler(None).setup_logger(ROOT_LOGGER_NAME, console_level="WARNING")

        logger.debug(f"Parsed args: {self.args}")
        handler = getattr(self, f"_cmd_{command}")
        try:
            return handler()
        except ShroudwardenError as e:
            logger.error(f"{e}")
            logger.error("Startup aborted")
            return 1
        except OSError as e:
            logger.error(f"Operating system error: {e}")
            return 1

    def _cmd_run(self) -> int:
        supervisor = self.supervisor_factory(self.settings)
        return supervisor.run()

    def _get_resolver(self) -> ToolResolutionService:
        return self.resolver or ToolResolutionService()

    def _cmd_resolve(self) -> int:
        runtime = self._get_resolver().resolve(self.settings, require_fetcher=False)
        print(json.dumps(runtime.to_dict(), indent=2))
        return 0

    def _cmd_config(self) -> int:
        s = self.settings
        filesystem = FileSystemHandler()
        filesystem.ensure_directory(s.config_dir)
        written = ServerConfigHandler(filesystem).ensure_config(
            s.config_file, s.overrides, s.force_config_rewrite
        )
        logger.info(f"Configuration {'written' if written else 'unchanged'}: {s.config_file}")
        return 0

    def _cmd_update(self) -> int:
        s = self.settings
        runtime = self._get_resolver().resolve(s, require_fetcher=True)
        filesystem = FileSystemHandler()
        filesystem.ensure_directory(s.server_dir)
        env = build_wine_env(runtime.prefix_path, runtime.display)
        steamcmd = SteamCmdHandler(runtime.fetcher_path, env, filesystem)
        steamcmd.update(s.app_id, s.server_dir)
        steamcmd.verify_installation(s.executable_path, s.min_executable_size)
        return 0

    def _cmd_healthcheck(self) -> int:
        processes = WineUtils.find_processes(self.settings.server_executable)
        if not processes:
            logger.warning(f"No running process for {self.settings.server_executable}")
            return 1
        logger.debug(f"Server process found: PID {processes[0].pid}")
        return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Console entry point"""
    return ShroudwardenCLI().run(argv)


if __name__ == "__main__":
    sys.exit(main())
