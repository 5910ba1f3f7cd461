from __future__ import annotations

import os
import subprocess
import sys

import pytest

from shroudwarden.backend.handlers.wine_utils import WineUtils

RECORD = 'printf "%s %s\\n" "$(basename "$0")" "$*" >> "$CALLS_FILE"\n'


@pytest.fixture
def calls(tmp_path):
    return tmp_path / "calls.txt"


@pytest.fixture
def env(calls):
    return dict(os.environ, CALLS_FILE=str(calls))


def recorded(calls):
    return calls.read_text().splitlines() if calls.exists() else []


def test_wineboot_runs_init_through_runtime(tmp_path, make_script, calls, env) -> None:
    wine = make_script(tmp_path / "bin" / "wine64", RECORD + "exit 0\n")

    assert WineUtils(str(wine), env=env).wineboot_init() == 0
    assert recorded(calls) == ["wine64 wineboot --init"]


def test_wineboot_reports_exit_code(tmp_path, make_script, env) -> None:
    wine = make_script(tmp_path / "bin" / "wine64", "exit 3\n")
    assert WineUtils(str(wine), env=env).wineboot_init() == 3


def test_wineboot_with_missing_runtime_raises(tmp_path) -> None:
    with pytest.raises(OSError):
        WineUtils(str(tmp_path / "missing" / "wine64")).wineboot_init()


def test_kill_and_wait_use_resolved_wineserver(tmp_path, make_script, calls, env) -> None:
    wine = make_script(tmp_path / "bin" / "wine64", RECORD)
    wineserver = make_script(tmp_path / "bin" / "wineserver", RECORD + "exit 0\n")
    utils = WineUtils(str(wine), str(wineserver), env=env)

    assert utils.kill_wineserver() is True
    assert utils.wait_wineserver() is True
    assert recorded(calls) == ["wineserver -k", "wineserver -w"]


def test_without_wineserver_both_steps_are_skipped(tmp_path, make_script, calls, env) -> None:
    wine = make_script(tmp_path / "bin" / "wine64", RECORD)
    utils = WineUtils(str(wine), None, env=env)

    assert utils.kill_wineserver() is False
    assert utils.wait_wineserver() is False
    assert recorded(calls) == []


def test_wait_that_times_out_is_unconfirmed(tmp_path, make_script, env) -> None:
    wineserver = make_script(tmp_path / "bin" / "wineserver", "exec sleep 10\n")
    utils = WineUtils("/unused/wine64", str(wineserver), env=env)

    assert utils.wait_wineserver(timeout=1) is False


def test_kill_with_unrunnable_wineserver_fails(tmp_path) -> None:
    utils = WineUtils("/unused/wine64", str(tmp_path / "missing" / "wineserver"))
    assert utils.kill_wineserver() is False


def test_launch_command() -> None:
    utils = WineUtils("/usr/bin/wine64")
    assert utils.build_launch_command("/srv/enshrouded_server.exe") == [
        "/usr/bin/wine64", "/srv/enshrouded_server.exe"
    ]


def test_find_processes_matches_command_line() -> None:
    marker = f"shroudwarden-find-{os.getpid()}.exe"
    child = subprocess.Popen([sys.executable, "-c", "import time; time.sleep(30)", marker])
    try:
        found = [proc.pid for proc in WineUtils.find_processes(marker)]
        assert child.pid in found
        assert os.getpid() not in found
    finally:
        child.kill()
        child.wait(timeout=10)

    assert child.pid not in [proc.pid for proc in WineUtils.find_processes(marker)]
