from __future__ import annotations

import logging
import os

import pytest

from shroudwarden.backend.handlers.steamcmd_handler import SteamCmdHandler
from shroudwarden.backend.models.errors import ExecutableMissing, ToolNotFound, UpdateFailed
from shroudwarden.shared.steam_utils import installed_build_id


def test_command_forces_windows_platform_and_anonymous_validate(tmp_path) -> None:
    cmd = SteamCmdHandler("/opt/steamcmd/steamcmd.sh").build_command("2278520", tmp_path)

    assert cmd == [
        "/opt/steamcmd/steamcmd.sh",
        "+@sSteamCmdForcePlatformType", "windows",
        "+force_install_dir", str(tmp_path),
        "+login", "anonymous",
        "+app_update", "2278520", "validate",
        "+quit",
    ]


def test_update_invokes_fetcher_once_with_arguments(tmp_path, make_script) -> None:
    calls = tmp_path / "calls.txt"
    fetcher = make_script(tmp_path / "steamcmd.sh", 'printf "%s\\n" "$@" >> "$CALLS_FILE"\nexit 0\n')
    env = dict(os.environ, CALLS_FILE=str(calls))

    SteamCmdHandler(str(fetcher), env=env).update("2278520", tmp_path / "server")

    lines = calls.read_text().splitlines()
    assert lines == [
        "+@sSteamCmdForcePlatformType", "windows",
        "+force_install_dir", str(tmp_path / "server"),
        "+login", "anonymous",
        "+app_update", "2278520", "validate",
        "+quit",
    ]


def test_non_zero_exit_is_update_failure(tmp_path, make_script) -> None:
    fetcher = make_script(tmp_path / "steamcmd.sh", "exit 8\n")

    with pytest.raises(UpdateFailed) as excinfo:
        SteamCmdHandler(str(fetcher)).update("2278520", tmp_path)

    assert excinfo.value.returncode == 8
    assert excinfo.value.fatal is True


def test_unrunnable_fetcher_is_update_failure(tmp_path) -> None:
    with pytest.raises(UpdateFailed) as excinfo:
        SteamCmdHandler(str(tmp_path / "gone.sh")).update("2278520", tmp_path)

    assert excinfo.value.returncode == -1


def test_update_without_fetcher_is_tool_not_found(tmp_path) -> None:
    with pytest.raises(ToolNotFound):
        SteamCmdHandler(None).update("2278520", tmp_path)


def test_verify_missing_executable(tmp_path) -> None:
    with pytest.raises(ExecutableMissing) as excinfo:
        SteamCmdHandler(None).verify_installation(tmp_path / "enshrouded_server.exe")

    assert excinfo.value.path == tmp_path / "enshrouded_server.exe"


def test_verify_small_executable_only_warns(tmp_path, caplog) -> None:
    exe = tmp_path / "enshrouded_server.exe"
    exe.write_bytes(b"MZ" + b"\0" * 2046)

    with caplog.at_level(logging.WARNING):
        size = SteamCmdHandler(None).verify_installation(exe, min_size=10_000_000)

    assert size == 2048
    assert "seems small" in caplog.text


def test_verify_plausible_executable(tmp_path, caplog) -> None:
    exe = tmp_path / "enshrouded_server.exe"
    exe.write_bytes(b"\0" * 4096)

    with caplog.at_level(logging.WARNING):
        assert SteamCmdHandler(None).verify_installation(exe, min_size=1024) == 4096

    assert "seems small" not in caplog.text


def test_installed_build_id_from_app_manifest(tmp_path) -> None:
    manifest = tmp_path / "steamapps" / "appmanifest_2278520.acf"
    manifest.parent.mkdir()
    manifest.write_text(
        '"AppState"\n'
        '{\n'
        '\t"appid"\t\t"2278520"\n'
        '\t"name"\t\t"Enshrouded Dedicated Server"\n'
        '\t"buildid"\t\t"16578563"\n'
        '}\n',
        encoding="utf-8",
    )

    assert installed_build_id(tmp_path, "2278520") == "16578563"
    assert installed_build_id(tmp_path, "1") is None
