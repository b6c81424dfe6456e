"""
Configuration Tests
===================
"""

import json

import pytest

from hass_shooter.config import ConfigError, Settings, load_config, parse_listen_addr


ORIGINAL_OPTIONS = {
    "hass_base_url": "https://example.com",
    "hass_token": "ACCESS_TOKEN",
    "hass_pages": [{"path": "/lovelace/default_view", "scale": 1}],
    "width": 480,
    "height": 800,
    "rotation": 0,
    "listen_addr": ":8000",
    "refresh_time": 60,
    "min_idle_time": 5,
    "timeout": 60,
}


@pytest.fixture
def clean_env(monkeypatch):
    for name in (
        "HASS_SHOOTER_CONFIG",
        "HASS_SHOOTER_BASE_URL",
        "HASS_SHOOTER_TOKEN",
        "HASS_SHOOTER_LISTEN_ADDR",
        "HASS_SHOOTER_REFRESH_TIME",
        "HASS_SHOOTER_CAPTURE_BACKEND",
        "HASS_SHOOTER_TRANSFORM_BACKEND",
        "HASS_SHOOTER_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestSettings:
    """Validation of the options file."""

    def test_options_file_validates(self):
        settings = Settings.model_validate(ORIGINAL_OPTIONS)
        assert settings.hass_pages[0].path == "/lovelace/default_view"
        assert settings.width == 480
        assert settings.capture.backend == "playwright"
        assert settings.transform.backend == "imagemagick"

    @pytest.mark.parametrize(
        "field,value",
        [
            ("hass_base_url", ""),
            ("hass_token", ""),
            ("hass_pages", []),
            ("width", 0),
            ("height", 0),
            ("listen_addr", ""),
            ("listen_addr", "localhost:http"),
            ("refresh_time", 0),
        ],
    )
    def test_invalid_values_rejected(self, field, value):
        data = {**ORIGINAL_OPTIONS, field: value}
        with pytest.raises(ValueError):
            Settings.model_validate(data)

    def test_base_url_trailing_slash_stripped(self):
        settings = Settings.model_validate(
            {**ORIGINAL_OPTIONS, "hass_base_url": "https://example.com/"}
        )
        assert settings.hass_base_url == "https://example.com"

    def test_scale_zero_means_one(self):
        settings = Settings.model_validate(
            {**ORIGINAL_OPTIONS, "hass_pages": [{"path": "/a", "scale": 0}]}
        )
        assert settings.hass_pages[0].effective_scale == 1.0

    def test_listen_host_and_port(self):
        settings = Settings.model_validate({**ORIGINAL_OPTIONS, "listen_addr": "127.0.0.1:9000"})
        assert settings.listen_host == "127.0.0.1"
        assert settings.listen_port == 9000


class TestParseListenAddr:

    @pytest.mark.parametrize(
        "addr,expected",
        [
            (":8000", ("0.0.0.0", 8000)),
            ("8000", ("0.0.0.0", 8000)),
            ("0.0.0.0:80", ("0.0.0.0", 80)),
            ("localhost:8123", ("localhost", 8123)),
            ("[::1]:8000", ("::1", 8000)),
        ],
    )
    def test_valid(self, addr, expected):
        assert parse_listen_addr(addr) == expected

    @pytest.mark.parametrize("addr", [":", "host:", ":0", ":70000", "host:port"])
    def test_invalid(self, addr):
        with pytest.raises(ValueError):
            parse_listen_addr(addr)


class TestLoadConfig:
    """File loading and environment overrides."""

    def test_load_json_options(self, tmp_path, clean_env):
        path = tmp_path / "options.json"
        path.write_text(json.dumps(ORIGINAL_OPTIONS))

        settings = load_config(str(path))
        assert settings.hass_base_url == "https://example.com"
        assert settings.refresh_time == 60

    def test_load_yaml(self, tmp_path, clean_env):
        path = tmp_path / "config.yaml"
        path.write_text(
            "hass_base_url: https://hass.local\n"
            "hass_token: t\n"
            "hass_pages:\n"
            "  - path: /lovelace/0\n"
            "    scale: 2\n"
            "width: 480\n"
            "height: 800\n"
            "transform:\n"
            "  backend: pillow\n"
        )

        settings = load_config(str(path))
        assert settings.hass_pages[0].scale == 2
        assert settings.transform.backend == "pillow"

    def test_env_overrides_file(self, tmp_path, clean_env):
        path = tmp_path / "options.json"
        path.write_text(json.dumps(ORIGINAL_OPTIONS))
        clean_env.setenv("HASS_SHOOTER_TOKEN", "from-env")
        clean_env.setenv("HASS_SHOOTER_REFRESH_TIME", "15")
        clean_env.setenv("HASS_SHOOTER_CAPTURE_BACKEND", "mock")
        clean_env.setenv("HASS_SHOOTER_LOG_LEVEL", "DEBUG")

        settings = load_config(str(path))
        assert settings.hass_token == "from-env"
        assert settings.refresh_time == 15.0
        assert settings.capture.backend == "mock"
        assert settings.logging.level == "DEBUG"

    def test_missing_file(self, tmp_path, clean_env):
        with pytest.raises(ConfigError, match="could not open file"):
            load_config(str(tmp_path / "missing.json"))

    def test_malformed_file(self, tmp_path, clean_env):
        path = tmp_path / "options.json"
        path.write_text("{not: [valid")
        with pytest.raises(ConfigError, match="could not decode config"):
            load_config(str(path))

    def test_invalid_configuration(self, tmp_path, clean_env):
        path = tmp_path / "options.json"
        path.write_text(json.dumps({**ORIGINAL_OPTIONS, "hass_token": ""}))
        with pytest.raises(ConfigError, match="HASS token is missing"):
            load_config(str(path))

    def test_bad_env_number(self, tmp_path, clean_env):
        path = tmp_path / "options.json"
        path.write_text(json.dumps(ORIGINAL_OPTIONS))
        clean_env.setenv("HASS_SHOOTER_REFRESH_TIME", "soon")
        with pytest.raises(ConfigError):
            load_config(str(path))
