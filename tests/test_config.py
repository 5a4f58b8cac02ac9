"""Tests for the config module: loading, placeholder resolution, validation, typed reads."""

import json

import pytest

from feedvault.config import (
    ConfigError,
    config_bool,
    config_float,
    config_int,
    config_str,
    load_config,
    validate_config,
)


@pytest.fixture
def write_config(tmp_path):
    """Write a config dict to tmp_path and return its absolute path."""

    def _write(cfg, name="config.json"):
        path = tmp_path / name
        path.write_text(cfg if isinstance(cfg, str) else json.dumps(cfg))
        return str(path)

    return _write


class TestLoadConfig:
    def test_bundled_config_loads(self):
        result = load_config()
        assert set(result) >= {"server", "archive", "workers", "miniflux", "chibisafe"}
        assert "${" not in result["archive"]["base_directory"]

    def test_resolves_env_placeholders(self, write_config, monkeypatch):
        monkeypatch.setenv("FV_TEST_DIR", "/srv/archive")
        monkeypatch.delenv("FV_TEST_MISSING", raising=False)
        path = write_config(
            {"archive": {"base_directory": "${FV_TEST_DIR:-/tmp}", "x": "${FV_TEST_MISSING:-dflt}"}}
        )

        result = load_config(path)
        assert result["archive"]["base_directory"] == "/srv/archive"
        assert result["archive"]["x"] == "dflt"

    def test_missing_file_raises_config_error(self):
        with pytest.raises(ConfigError, match="not found"):
            load_config("nonexistent_file_that_does_not_exist.json")

    def test_invalid_json(self, write_config):
        with pytest.raises(ConfigError, match="Invalid JSON"):
            load_config(write_config("{not json"))


class TestValidateConfig:
    def test_valid_config(self, test_config):
        assert validate_config(test_config) == []

    def test_missing_section(self, test_config):
        del test_config["chibisafe"]
        errors = validate_config(test_config)
        assert any("'chibisafe'" in e for e in errors)

    def test_missing_key(self, test_config):
        del test_config["miniflux"]["webhook_secret"]
        errors = validate_config(test_config)
        assert any("webhook_secret" in e for e in errors)

    def test_empty_archive_dir(self, test_config):
        test_config["archive"]["base_directory"] = ""
        assert any("base_directory" in e for e in validate_config(test_config))

    def test_unresolved_placeholder(self, test_config):
        test_config["archive"]["base_directory"] = "${ARCHIVE_DIR}"
        assert any("placeholder" in e for e in validate_config(test_config))

    def test_non_numeric(self, test_config):
        test_config["workers"]["count"] = "two"
        assert any("workers.count" in e for e in validate_config(test_config))

    def test_blank_optional_number_is_ok(self, test_config):
        test_config["chibisafe"]["settings_ttl_seconds"] = ""
        assert validate_config(test_config) == []


class TestTypedReads:
    def test_int_and_float(self, test_config):
        assert config_int(test_config, "workers", "count", 9) == 1
        assert config_float(test_config, "workers", "enqueue_timeout_seconds", 9.0) == 0.1
        assert config_float(test_config, "chibisafe", "settings_ttl_seconds", None) is None
        assert config_int(test_config, "nope", "nope", 3) == 3

    @pytest.mark.parametrize(
        "raw,expected", [(True, True), ("true", True), ("YES", True), ("0", False), ("", False)]
    )
    def test_bool(self, raw, expected):
        assert config_bool({"a": {"b": raw}}, "a", "b") is expected

    def test_str_strips(self):
        assert config_str({"a": {"b": "  x "}}, "a", "b") == "x"
        assert config_str({}, "a", "b", "d") == "d"
