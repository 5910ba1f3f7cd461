#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Server Supervisor Module
Takes the container from cold start to a running game server and back down
to a clean exit.
"""

import signal
import logging
import threading
from pathlib import Path
from typing import Callable, Optional, List

from ..handlers.config_handler import ServerConfigHandler
from ..handlers.display_handler import XvfbHandler
from ..handlers.filesystem_handler import FileSystemHandler
from ..handlers.logging_handler import print_banner
from ..handlers.steamcmd_handler import SteamCmdHandler
from ..handlers.subprocess_utils import ProcessManager, build_wine_env, get_clean_subprocess_env
from ..handlers.wine_utils import WineUtils
from ..models.configuration import RuntimeEnvironment, SupervisorSettings, SupervisorState
from ..models.errors import DisplayUnavailable, PrefixInitFailed
from ..services.platform_detection_service import PlatformDetectionService
from ..services.prefix_service import PrefixService
from ..services.tool_resolution_service import ToolResolutionService
from ...shared.steam_utils import installed_build_id

# Initialize logger
logger = logging.getLogger(__name__)

SHUTDOWN_SIGNALS = (signal.SIGTERM, signal.SIGINT, signal.SIGHUP)


class ServerSupervisor:
    """
    Top-level state machine:

        Booting -> PreparingEnv -> Updating -> Starting -> Running
                -> ShuttingDown -> Stopped

    Fatal errors (ShroudwardenError with fatal=True) propagate out of run()
    before anything is launched. DisplayUnavailable and PrefixInitFailed
    are logged and the boot continues.

    Every external collaborator is built through a factory so tests can
    replace it.
    """

    def __init__(self, settings: SupervisorSettings,
                 resolver: Optional[ToolResolutionService] = None,
                 platform: Optional[PlatformDetectionService] = None,
                 config_handler: Optional[ServerConfigHandler] = None,
                 filesystem: Optional[FileSystemHandler] = None,
                 display_factory: Optional[Callable] = None,
                 wine_factory: Optional[Callable] = None,
                 prefix_factory: Optional[Callable] = None,
                 steamcmd_factory: Optional[Callable] = None,
                 process_factory: Optional[Callable] = None,
                 stop_event: Optional[threading.Event] = None,
                 poll_interval: float = 0.5):
        self.settings = settings
        self.resolver = resolver or ToolResolutionService()
        self.platform = platform or PlatformDetectionService()
        self.filesystem = filesystem or FileSystemHandler()
        self.config_handler = config_handler or ServerConfigHandler(self.filesystem)
        self.display_factory = display_factory or (
            lambda s: XvfbHandler(s.display, s.xvfb_geometry)
        )
        self.wine_factory = wine_factory or (
            lambda runtime, env: WineUtils(runtime.compat_runtime_binary, runtime.wineserver_path, env)
        )
        self.prefix_factory = prefix_factory or (
            lambda runtime, wine: PrefixService(runtime.prefix_path, wine, self.filesystem)
        )
        self.steamcmd_factory = steamcmd_factory or (
            lambda runtime, env: SteamCmdHandler(runtime.fetcher_path, env, self.filesystem)
        )
        self.process_factory = process_factory or ProcessManager
        self.stop_event = stop_event or threading.Event()
        self.poll_interval = poll_interval

        self.state = SupervisorState.BOOTING
        self.history: List[SupervisorState] = [self.state]
        self.runtime: Optional[RuntimeEnvironment] = None
        self.display = None
        self.process = None
        self._previous_handlers = {}

    def _transition(self, state: SupervisorState) -> None:
        logger.debug(f"Supervisor state: {self.state.value} -> {state.value}")
        self.state = state
        self.history.append(state)

    # Signals

    def _handle_shutdown_signal(self, signum, _frame) -> None:
        if self.stop_event.is_set():
            logger.info(f"Signal {signal.Signals(signum).name} received but shutdown already in progress")
            return
        logger.info(f"Received {signal.Signals(signum).name}, shutting down server...")
        self.stop_event.set()

    def install_signal_handlers(self) -> None:
        for sig in SHUTDOWN_SIGNALS:
            self._previous_handlers[sig] = signal.signal(sig, self._handle_shutdown_signal)

    def restore_signal_handlers(self) -> None:
        for sig, handler in self._previous_handlers.items():
            signal.signal(sig, handler)
        self._previous_handlers = {}

    # Lifecycle

    def run(self, install_signals: bool = True) -> int:
        """
        Run the full lifecycle.

        Returns:
            0 after a signal-driven shutdown, otherwise the game's exit code

        Raises:
            ShroudwardenError: a fatal preflight or update condition
            OSError: the game process could not be launched
        """
        if install_signals:
            self.install_signal_handlers()
        try:
            self.log_banner()
            runtime = self.prepare_environment()
            self.update(runtime)
            self.prepare_start(runtime)
            if self.stop_event.is_set():
                logger.info("Shutdown requested before launch; not starting the server")
                return 0
            return self.launch_and_wait(runtime)
        finally:
            self.stop_display()
            if self.state is not SupervisorState.STOPPED:
                self._transition(SupervisorState.STOPPED)
            if install_signals:
                self.restore_signal_handlers()

    def log_banner(self) -> None:
        s = self.settings
        print_banner(logger, "Enshrouded Dedicated Server", [
            ("Steam AppID", s.app_id),
            ("Install Directory", s.server_dir),
            ("Config Directory", s.config_dir),
            ("Wine Prefix", s.wine_prefix),
            ("Display", s.display),
            ("Update on start", "yes" if s.update_on_start else "no"),
        ])

    def prepare_environment(self) -> RuntimeEnvironment:
        """Preflight: privilege check, tool resolution, directories, display, prefix."""
        self._transition(SupervisorState.PREPARING_ENV)
        self.platform.ensure_unprivileged()

        runtime = self.resolver.resolve(self.settings)
        self.runtime = runtime
        logger.info(f"Wine binary: {runtime.compat_runtime_binary}")
        if runtime.fetcher_path:
            logger.info(f"SteamCMD: {runtime.fetcher_path}")

        s = self.settings
        for directory in (s.server_dir, s.config_dir, s.savegame_dir, s.server_log_dir):
            if not self.filesystem.ensure_directory(directory):
                logger.warning(f"Could not create {directory}")

        self.prepare_display()
        self.prepare_prefix(runtime)
        return runtime

    def prepare_display(self) -> None:
        self.display = self.display_factory(self.settings)
        try:
            self.display.ensure_display(get_clean_subprocess_env())
        except DisplayUnavailable as e:
            logger.warning(f"{e}")
            logger.warning("Continuing without a confirmed virtual display")

    def prepare_prefix(self, runtime: RuntimeEnvironment) -> None:
        env = build_wine_env(runtime.prefix_path, runtime.display)
        wine = self.wine_factory(runtime, env)
        prefix = self.prefix_factory(runtime, wine)
        try:
            prefix.prepare(force_reset=self.settings.force_prefix_reset)
        except PrefixInitFailed as e:
            logger.warning(f"{e}")
            logger.warning("Continuing; the server launch will show whether the prefix works")

    def update(self, runtime: RuntimeEnvironment) -> None:
        """Install/validate the server unless updates are disabled."""
        self._transition(SupervisorState.UPDATING)
        s = self.settings
        if not s.update_on_start:
            logger.info("Skipping server update (UPDATE_ON_START=0)")
            return

        env = build_wine_env(runtime.prefix_path, runtime.display)
        steamcmd = self.steamcmd_factory(runtime, env)
        steamcmd.update(s.app_id, s.server_dir)
        steamcmd.verify_installation(s.executable_path, s.min_executable_size)

        build_id = installed_build_id(s.server_dir, s.app_id)
        if build_id:
            logger.info(f"Installed build: {build_id}")

    def prepare_start(self, runtime: RuntimeEnvironment) -> Path:
        """Materialize the config and place a copy beside the server."""
        self._transition(SupervisorState.STARTING)
        s = self.settings
        self.config_handler.ensure_config(s.config_file, s.overrides, s.force_config_rewrite)
        self.config_handler.copy_to_install_dir(s.config_file, runtime.server_install_dir)
        return runtime.server_install_dir

    def launch_and_wait(self, runtime: RuntimeEnvironment) -> int:
        """
        Launch the game and block until it exits or a shutdown is requested.
        """
        s = self.settings
        env = build_wine_env(runtime.prefix_path, runtime.display)
        wine = self.wine_factory(runtime, env)
        cmd = wine.build_launch_command(s.executable_path)

        logger.info("Starting Enshrouded Dedicated Server...")
        self.process = self.process_factory(cmd, env=env, cwd=str(runtime.server_install_dir))
        pid = self.process.start()
        self._transition(SupervisorState.RUNNING)
        logger.info(f"Server started with PID: {pid}")

        exit_code = self.process.wait_until_exit_or_stop(self.stop_event, self.poll_interval)
        if exit_code is not None:
            level = logging.INFO if exit_code == 0 else logging.ERROR
            logger.log(level, f"Server process exited with code {exit_code}")
            return exit_code

        self.shutdown()
        return 0

    def shutdown(self) -> None:
        """Stop the game within the configured window, then the display."""
        self._transition(SupervisorState.SHUTTING_DOWN)
        if self.process is not None:
            logger.info(f"Stopping server (PID {self.process.pid})...")
            exit_code = self.process.terminate(timeout=self.settings.shutdown_timeout)
            logger.info(f"Server stopped (exit code {exit_code})")
        self.stop_display()
        logger.info("Shutdown complete")

    def stop_display(self) -> None:
        if self.display is not None:
            self.display.stop()
            self.display = None
