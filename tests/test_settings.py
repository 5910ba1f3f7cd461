from __future__ import annotations

from pathlib import Path

import pytest

from shroudwarden.backend.models.configuration import (
    ConfigOverrides,
    ServerConfiguration,
    SupervisorSettings,
)
from shroudwarden.backend.models.errors import ConfigurationInvalid


def test_defaults_from_empty_environment() -> None:
    s = SupervisorSettings.from_env({})

    assert s.app_id == "2278520"
    assert s.server_dir == Path("/home/steam/server")
    assert s.config_dir == Path("/home/steam/config")
    assert s.config_file == Path("/home/steam/config/enshrouded_server.json")
    assert s.executable_path == Path("/home/steam/server/enshrouded_server.exe")
    assert s.update_on_start is True
    assert s.display == ":99"
    assert s.wine_prefix == Path("/home/steam/.wine")
    assert s.force_config_rewrite is False
    assert s.force_prefix_reset is False
    assert s.shutdown_timeout == 10
    assert s.overrides == ConfigOverrides()
    assert s.supervisor_log_dir == Path("/home/steam/config/logs")


def test_environment_overrides() -> None:
    s = SupervisorSettings.from_env({
        "HOME": "/srv/steam",
        "SERVER_NAME": "Embervale",
        "SERVER_PASSWORD": "pw",
        "GAME_PORT": "16000",
        "QUERY_PORT": "27016",
        "SERVER_SLOTS": "8",
        "UPDATE_ON_START": "false",
        "FORCE_PREFIX_RESET": "yes",
        "STEAMCMD_DIR": "/opt/steamcmd",
        "WINE_BIN": "/usr/lib/wine/wine64",
        "SHROUDWARDEN_LOG_DIR": "/var/log/shroudwarden",
        "SHROUDWARDEN_LOG_LEVEL": "debug",
    })

    assert s.overrides == ConfigOverrides(
        name="Embervale", password="pw", game_port=16000, query_port=27016, slot_count=8
    )
    assert s.update_on_start is False
    assert s.force_prefix_reset is True
    assert s.wine_prefix == Path("/srv/steam/.wine")
    assert s.steamcmd_dir == "/opt/steamcmd"
    assert s.wine_path == "/usr/lib/wine/wine64"
    assert s.supervisor_log_dir == Path("/var/log/shroudwarden")
    assert s.log_level == "DEBUG"


def test_empty_values_are_not_overrides() -> None:
    s = SupervisorSettings.from_env({"SERVER_NAME": "", "GAME_PORT": " ", "SERVER_PASSWORD": ""})
    assert s.overrides.as_json_fields() == {}


def test_name_and_password_are_kept_as_given() -> None:
    s = SupervisorSettings.from_env({"SERVER_NAME": "  Ember vale ", "SERVER_PASSWORD": " s3cret "})

    assert s.overrides.name == "  Ember vale "
    assert s.overrides.password == " s3cret "


def test_blank_password_is_still_an_override() -> None:
    s = SupervisorSettings.from_env({"SERVER_PASSWORD": "   "})
    assert s.overrides.as_json_fields() == {"password": "   "}


@pytest.mark.parametrize("value", ["1", "true", "YES", "on"])
def test_update_toggle_true_values(value) -> None:
    assert SupervisorSettings.from_env({"UPDATE_ON_START": value}).update_on_start is True


@pytest.mark.parametrize(
    "env",
    [{"GAME_PORT": "abc"}, {"QUERY_PORT": "70000"}, {"SERVER_SLOTS": "-1"}, {"SHUTDOWN_TIMEOUT": "ten"}],
)
def test_bad_numbers_are_invalid_configuration(env) -> None:
    with pytest.raises(ConfigurationInvalid):
        SupervisorSettings.from_env(env)


def test_overrides_map_to_json_keys() -> None:
    overrides = ConfigOverrides(name="A", game_port=1, slot_count=2)
    assert overrides.as_json_fields() == {"name": "A", "gamePort": 1, "slotCount": 2}


def test_server_configuration_keys_match_game_format() -> None:
    config = ServerConfiguration(name="A", bind_address="127.0.0.1", query_port=27020)
    data = config.to_dict()

    assert list(data) == [
        "name", "password", "saveDirectory", "logDirectory", "ip", "gamePort", "queryPort", "slotCount"
    ]
    assert data["ip"] == "127.0.0.1"
    assert data["queryPort"] == 27020
