"""Tests for the Config system."""

import pytest

from reel.core.config import (
    _ENV_MAPPING,
    ReelConfig,
    TestingConfig,
    _convert_value,
    _deep_merge,
    _parse_id_list,
    _substitute_env_vars,
)
from reel.core.errors import ConfigError


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """No deployment env vars, no config files."""
    for name in _ENV_MAPPING:
        monkeypatch.delenv(name, raising=False)
    return {
        "project_path": tmp_path / "reel.toml",
        "user_path": tmp_path / "user.toml",
    }


def test_default_config():
    """Default config has sensible values."""
    config = ReelConfig()

    assert config.webhook.port == 8080
    assert config.webhook.secret == ""
    assert config.database.path == "./bot.db"
    assert config.broadcast.send_delay == 0.035
    assert config.broadcast.max_retries == 3
    assert config.broadcast.backoff_unit == 1.0
    assert config.broadcast.default_language == "en"
    assert config.testing.tester_ids == []
    assert config.telegram.configured is False
    assert config.jellyfin.configured is False


def test_load_with_overrides(clean_env):
    """Explicit overrides take highest precedence."""
    config = ReelConfig.load(
        overrides={"webhook": {"port": 9000}, "broadcast": {"max_retries": 1}},
        **clean_env,
    )

    assert config.webhook.port == 9000
    assert config.broadcast.max_retries == 1
    assert config.broadcast.send_delay == 0.035


def test_env_var_loading(clean_env, monkeypatch):
    """Deployment environment variables are mapped onto sections."""
    monkeypatch.setenv("TELEGRAM_BOT_TOKEN", "123:abc")
    monkeypatch.setenv("JELLYFIN_SERVER_URL", "http://jellyfin:8096")
    monkeypatch.setenv("JELLYFIN_API_KEY", "0042")
    monkeypatch.setenv("PORT", "9090")
    monkeypatch.setenv("TESTER_CHAT_IDS", "11, 22,abc")
    monkeypatch.setenv("ENABLE_BETA_FEATURES", "true")

    config = ReelConfig.load(**clean_env)

    assert config.telegram.token == "123:abc"
    assert config.jellyfin.server_url == "http://jellyfin:8096"
    # Numeric-looking secrets stay strings
    assert config.jellyfin.api_key == "0042"
    assert config.webhook.port == 9090
    assert config.testing.tester_ids == [11, 22]
    assert config.testing.enable_beta_features is True


def test_empty_env_var_ignored(clean_env, monkeypatch):
    monkeypatch.setenv("PORT", "")
    config = ReelConfig.load(**clean_env)
    assert config.webhook.port == 8080


def test_toml_layers(clean_env, monkeypatch):
    """Project toml overrides user toml; env overrides both."""
    clean_env["user_path"].write_text('[webhook]\nport = 7000\nsecret = "user"\n')
    clean_env["project_path"].write_text('[webhook]\nport = 7100\n')
    monkeypatch.setenv("WEBHOOK_SECRET", "from-env")

    config = ReelConfig.load(**clean_env)

    assert config.webhook.port == 7100
    assert config.webhook.secret == "from-env"


def test_invalid_toml_raises(clean_env):
    clean_env["project_path"].write_text("[webhook\nport = ")
    with pytest.raises(ConfigError):
        ReelConfig.load(**clean_env)


def test_invalid_values_raise(clean_env):
    with pytest.raises(ConfigError):
        ReelConfig.load(overrides={"webhook": {"port": "not-a-port"}}, **clean_env)


def test_validate_runtime_lists_missing():
    config = ReelConfig()
    with pytest.raises(ConfigError) as exc:
        config.validate_runtime()
    assert exc.value.details["missing"] == [
        "TELEGRAM_BOT_TOKEN",
        "JELLYFIN_SERVER_URL",
        "JELLYFIN_API_KEY",
    ]


def test_validate_runtime_ok():
    config = ReelConfig(
        telegram={"token": "t"},
        jellyfin={"server_url": "http://j", "api_key": "k"},
    )
    config.validate_runtime()


def test_is_tester_requires_beta():
    """Tester membership only counts while beta features are on."""
    off = TestingConfig(tester_ids=[1, 2])
    on = TestingConfig(tester_ids=[1, 2], enable_beta_features=True)

    assert off.is_tester(1) is False
    assert on.is_tester(1) is True
    assert on.is_tester(3) is False


def test_env_var_substitution(monkeypatch):
    """${VAR} in config values gets replaced with env var values."""
    monkeypatch.setenv("MY_TOKEN", "secret-token")
    data = {"telegram": {"token": "${MY_TOKEN}"}, "other": "${REEL_UNSET_VAR_X}"}
    _substitute_env_vars(data)
    assert data["telegram"]["token"] == "secret-token"
    assert data["other"] == ""


def test_deep_merge():
    base = {"a": {"x": 1, "y": 2}, "b": 1}
    _deep_merge(base, {"a": {"y": 3}, "c": 4})
    assert base == {"a": {"x": 1, "y": 3}, "b": 1, "c": 4}


def test_convert_value():
    assert _convert_value("true") is True
    assert _convert_value("no") is False
    assert _convert_value("42") == 42
    assert _convert_value("0.5") == 0.5
    assert _convert_value("hello") == "hello"


def test_parse_id_list():
    assert _parse_id_list("1,2, 3") == [1, 2, 3]
    assert _parse_id_list("") == []
    assert _parse_id_list("x, 5,,") == [5]
