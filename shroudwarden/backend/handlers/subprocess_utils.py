import os
import signal
import subprocess
import threading
import logging
from typing import Optional, Sequence, Mapping

logger = logging.getLogger(__name__)

SYSTEM_PATHS = ['/usr/local/sbin', '/usr/local/bin', '/usr/sbin', '/usr/bin', '/sbin', '/bin']


def get_clean_subprocess_env(extra_env: Optional[Mapping[str, str]] = None, base_env=None):
    """
    Returns a copy of the environment with the standard system directories
    present on PATH, duplicates removed. Optionally merges in extra_env.
    """
    env = dict(os.environ if base_env is None else base_env)

    current_path = env.get('PATH', '')
    path_parts = [p for p in current_path.split(os.pathsep) if p] if current_path else []
    for sys_path in SYSTEM_PATHS:
        if sys_path not in path_parts and os.path.isdir(sys_path):
            path_parts.append(sys_path)

    seen = set()
    final_path_parts = []
    for path_part in path_parts:
        if path_part not in seen:
            final_path_parts.append(path_part)
            seen.add(path_part)
    env['PATH'] = os.pathsep.join(final_path_parts)

    if extra_env:
        env.update(extra_env)
    return env


def build_wine_env(prefix_path, display: Optional[str], base_env=None):
    """Environment for any call into Wine: prefix, display, quiet debug channel."""
    extra = {
        'WINEPREFIX': str(prefix_path),
        'WINEDEBUG': '-all',
    }
    if display:
        extra['DISPLAY'] = display
    return get_clean_subprocess_env(extra, base_env=base_env)


class ProcessManager:
    """
    Owns one long-running child process (the game server).

    The child gets its own session so signals reach the whole process group
    (Wine launcher, wineserver children, the server itself). Nothing else in
    the supervisor signals it directly.
    """
    def __init__(self, cmd: Sequence[str], env=None, cwd=None):
        self.cmd = list(cmd)
        self.env = get_clean_subprocess_env() if env is None else env
        self.cwd = cwd
        self.proc: Optional[subprocess.Popen] = None
        self.process_group_pid = None

    def start(self) -> int:
        """Start the process. Raises OSError if it cannot be executed."""
        logger.debug(f"Launching: {' '.join(self.cmd)}")
        self.proc = subprocess.Popen(
            self.cmd,
            env=self.env,
            cwd=self.cwd,
            start_new_session=True
        )
        try:
            self.process_group_pid = os.getpgid(self.proc.pid)
        except ProcessLookupError:
            self.process_group_pid = None
        return self.proc.pid

    @property
    def pid(self) -> Optional[int]:
        return self.proc.pid if self.proc else None

    def is_running(self) -> bool:
        return bool(self.proc) and self.proc.poll() is None

    def wait_until_exit_or_stop(self, stop_event: threading.Event, poll_interval: float = 0.5) -> Optional[int]:
        """
        Block until the child exits or stop_event is set, whichever comes first.

        Returns:
            The child's exit code, or None if the stop event won.
        """
        if not self.proc:
            return None
        while not stop_event.is_set():
            try:
                return self.proc.wait(timeout=poll_interval)
            except subprocess.TimeoutExpired:
                continue
        # Exit and stop may land together; prefer reporting the exit
        return self.proc.poll()

    def _signal_group(self, sig) -> None:
        try:
            if self.process_group_pid:
                os.killpg(self.process_group_pid, sig)
            else:
                self.proc.send_signal(sig)
        except ProcessLookupError:
            pass
        except PermissionError as e:
            logger.warning(f"Not permitted to signal process {self.proc.pid}: {e}")

    def terminate(self, timeout: float = 10, poll_interval: float = 1.0) -> Optional[int]:
        """
        Stop the process: SIGTERM to the group, poll up to timeout seconds,
        then SIGKILL if it is still alive.

        Returns:
            The exit code observed, or None if no process was started.
        """
        if not self.proc:
            return None
        if self.proc.poll() is not None:
            return self.proc.returncode

        self._signal_group(signal.SIGTERM)
        waited = 0.0
        while waited < timeout:
            try:
                return self.proc.wait(timeout=min(poll_interval, timeout - waited))
            except subprocess.TimeoutExpired:
                waited += poll_interval

        logger.warning("Server didn't stop gracefully, forcing shutdown...")
        self._signal_group(signal.SIGKILL)
        try:
            return self.proc.wait(timeout=5)
        except subprocess.TimeoutExpired:
            logger.error(f"Process {self.proc.pid} survived SIGKILL")
            return None
