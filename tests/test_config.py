import json
import locale

from simplebot.config import (
    DEFAULT_PORT,
    configure_locale,
    get_config,
    load_config,
    parse_origins,
    set_config,
)


def test_defaults_without_file_or_env(tmp_path):
    config = load_config(str(tmp_path / "missing.json"), env={})
    assert config.get("server.port") == DEFAULT_PORT == 5000
    assert config.get("server.origins") == []
    assert config.allow_all_origins
    assert config.get("nope.nothing", "fallback") == "fallback"


def test_env_overrides(tmp_path):
    env = {
        "PORT": "8080",
        "CLIENT_ORIGIN": "https://a.example, https://b.example/",
        "SIMPLEBOT_DATA_DIR": str(tmp_path),
    }
    config = load_config(str(tmp_path / "missing.json"), env=env)
    assert config.get("server.port") == 8080
    assert config.get("server.origins") == ["https://a.example", "https://b.example"]
    assert not config.allow_all_origins
    assert config.get("client.storage_dir") == str(tmp_path)


def test_bad_port_keeps_default(tmp_path):
    config = load_config(str(tmp_path / "missing.json"), env={"PORT": "eighty"})
    assert config.get("server.port") == 5000


def test_file_is_deep_merged(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"client": {"language": "en-GB"}}), encoding="utf-8")
    config = load_config(str(path), env={})
    assert config.get("client.language") == "en-GB"
    assert config.get("client.export_dir") == "."


def test_corrupt_file_falls_back(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("{", encoding="utf-8")
    config = load_config(str(path), env={})
    assert config.get("server.port") == 5000


def test_defaults_are_not_mutated_between_loads(tmp_path):
    load_config(str(tmp_path / "missing.json"), env={"PORT": "9000"})
    config = load_config(str(tmp_path / "missing.json"), env={})
    assert config.get("server.port") == 5000


def test_parse_origins_blank():
    assert parse_origins(None) == []
    assert parse_origins("  ") == []


def test_file_origins_may_be_a_string(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"server": {"origins": "https://a.example/"}}), encoding="utf-8")
    assert load_config(str(path), env={}).get("server.origins") == ["https://a.example"]


def test_non_object_file_falls_back(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("[1, 2]", encoding="utf-8")
    assert load_config(str(path), env={}).get("server.port") == 5000


def test_set_config_replaces_global(tmp_path):
    config = load_config(str(tmp_path / "missing.json"), env={"PORT": "7000"})
    set_config(config)
    try:
        assert get_config() is config
        assert get_config().get("server.port") == 7000
    finally:
        set_config(None)


def test_configure_locale_adopts_environment(monkeypatch):
    calls = []
    monkeypatch.setattr(locale, "setlocale", lambda category, value: calls.append((category, value)))
    configure_locale()
    assert calls == [(locale.LC_TIME, "")]


def test_configure_locale_tolerates_unknown_locale(monkeypatch):
    def refuse(category, value):
        raise locale.Error("unsupported locale setting")

    monkeypatch.setattr(locale, "setlocale", refuse)
    configure_locale()
