from __future__ import annotations

import pytest

from nearbyplaces.config.settings import Settings, _apply_env_overrides, get_logging_config, get_settings

ENV_KEYS = (
    "NEARBYPLACES_LOG_LEVEL",
    "NEARBYPLACES_DEBUG",
    "MAPBOX_TOKEN",
    "OPENWEATHER_API_KEY",
    "NEARBYPLACES_HOME_LAT",
    "NEARBYPLACES_HOME_LON",
)


@pytest.fixture
def clean_env(monkeypatch):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    return monkeypatch


def test_packaged_defaults_load():
    settings = get_settings()

    # Fallback windows come from defaults.yaml, not from code.
    assert settings.location.cache_max_age_seconds == 300
    assert settings.location.last_known_max_age_seconds == 600
    assert settings.location.last_known_required_accuracy_m == 1000
    assert settings.places.default_limit == 20
    assert settings.weather.mismatch_threshold_m == 10_000
    assert settings.debug.log_capacity == 50


def test_env_overrides_fill_keys_and_home(clean_env):
    clean_env.setenv("MAPBOX_TOKEN", "pk.abc")
    clean_env.setenv("OPENWEATHER_API_KEY", "ow.abc")
    clean_env.setenv("NEARBYPLACES_DEBUG", "yes")
    clean_env.setenv("NEARBYPLACES_LOG_LEVEL", "debug")
    clean_env.setenv("NEARBYPLACES_HOME_LAT", "51.5074")
    clean_env.setenv("NEARBYPLACES_HOME_LON", "-0.1278")

    settings = Settings.model_validate(_apply_env_overrides({}))

    assert settings.places.access_token == "pk.abc"
    assert settings.weather.api_key == "ow.abc"
    assert settings.debug.enabled is True
    assert settings.app.log_level == "debug"
    assert settings.location.home.latitude == 51.5074
    assert settings.location.home.longitude == -0.1278


def test_env_overrides_leave_raw_payload_untouched_when_unset(clean_env):
    raw = {"debug": {"enabled": True}}

    out = _apply_env_overrides(raw)

    assert out == {"debug": {"enabled": True}}
    assert Settings.model_validate(out).places.access_token is None


def test_debug_flag_can_switch_off(clean_env):
    clean_env.setenv("NEARBYPLACES_DEBUG", "0")

    out = _apply_env_overrides({"debug": {"enabled": True}})

    assert out["debug"]["enabled"] is False


def test_home_needs_both_axes(clean_env):
    clean_env.setenv("NEARBYPLACES_HOME_LAT", "10")

    settings = Settings.model_validate(_apply_env_overrides({}))

    assert settings.location.home.latitude is None


def test_logging_config_is_a_dict_config():
    config = get_logging_config()
    assert config["version"] == 1
    assert "console" in config["handlers"]
