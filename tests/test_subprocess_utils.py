from __future__ import annotations

import os
import signal
import sys
import threading
import time

import pytest

from shroudwarden.backend.handlers.subprocess_utils import (
    ProcessManager,
    build_wine_env,
    get_clean_subprocess_env,
)


def test_clean_env_normalizes_path() -> None:
    base = {
        "PATH": "/opt/game/bin:/usr/bin:/opt/game/bin",
        "LD_LIBRARY_PATH": "/opt/wine/lib",
        "HOME": "/home/steam",
    }

    env = get_clean_subprocess_env(base_env=base)

    assert env["LD_LIBRARY_PATH"] == "/opt/wine/lib"
    assert env["HOME"] == "/home/steam"
    parts = env["PATH"].split(":")
    assert parts[:2] == ["/opt/game/bin", "/usr/bin"]
    assert parts.count("/opt/game/bin") == 1


def test_clean_env_does_not_modify_base() -> None:
    base = {"PATH": "/usr/bin", "HOME": "x"}
    get_clean_subprocess_env({"EXTRA": "1"}, base_env=base)
    assert base == {"PATH": "/usr/bin", "HOME": "x"}


def test_wine_env() -> None:
    env = build_wine_env("/home/steam/.wine", ":99", base_env={"PATH": "/usr/bin", "WINEDEBUG": "+all"})

    assert env["WINEPREFIX"] == "/home/steam/.wine"
    assert env["DISPLAY"] == ":99"
    assert env["WINEDEBUG"] == "-all"


def test_wine_env_without_display_keeps_inherited() -> None:
    env = build_wine_env("/p", None, base_env={"PATH": "/usr/bin", "DISPLAY": ":1"})
    assert env["DISPLAY"] == ":1"


def python_child(code: str) -> ProcessManager:
    return ProcessManager([sys.executable, "-c", code])


def test_exit_of_child_is_reported() -> None:
    manager = python_child("import sys; sys.exit(3)")
    manager.start()

    assert manager.wait_until_exit_or_stop(threading.Event(), poll_interval=0.1) == 3
    assert manager.is_running() is False


def test_child_runs_in_own_process_group() -> None:
    manager = python_child("import time; time.sleep(30)")
    manager.start()
    try:
        assert manager.process_group_pid == manager.pid
        assert os.getpgid(manager.pid) != os.getpgid(0)
    finally:
        manager.terminate(timeout=5)


def test_stop_event_unblocks_wait_and_terminate_stops_child() -> None:
    manager = python_child("import time; time.sleep(30)")
    manager.start()
    stop = threading.Event()
    threading.Timer(0.3, stop.set).start()

    assert manager.wait_until_exit_or_stop(stop, poll_interval=0.1) is None
    assert manager.is_running() is True

    started = time.monotonic()
    code = manager.terminate(timeout=5, poll_interval=0.1)
    assert code == -signal.SIGTERM
    assert time.monotonic() - started < 5


def test_terminate_escalates_to_kill(tmp_path) -> None:
    ready = tmp_path / "ready"
    code = (
        "import signal, time, pathlib\n"
        "signal.signal(signal.SIGTERM, signal.SIG_IGN)\n"
        f"pathlib.Path({str(ready)!r}).write_text('1')\n"
        "time.sleep(60)\n"
    )
    manager = python_child(code)
    manager.start()
    deadline = time.monotonic() + 10
    while not ready.exists() and time.monotonic() < deadline:
        time.sleep(0.05)
    assert ready.exists()

    started = time.monotonic()
    result = manager.terminate(timeout=0.5, poll_interval=0.1)

    assert result == -signal.SIGKILL
    assert time.monotonic() - started < 5


def test_terminate_after_exit_returns_code() -> None:
    manager = python_child("pass")
    manager.start()
    manager.proc.wait(timeout=10)
    assert manager.terminate() == 0


def test_terminate_without_start() -> None:
    assert ProcessManager(["true"]).terminate() is None


def test_start_raises_for_missing_command(tmp_path) -> None:
    with pytest.raises(OSError):
        ProcessManager([str(tmp_path / "nope")]).start()
