import logging

import yaml

from tracker.core.config import DEFAULT_CONFIG, Config


def test_default_config_written(tmp_path):
    path = tmp_path / "nested" / "config.yaml"
    cfg = Config(config_path=str(path))
    assert path.exists()
    assert cfg.section("timings")["default_country"] == "Egypt"
    assert cfg.section("auth")["token_ttl_days"] == 30
    assert yaml.safe_load(path.read_text())["api"] == DEFAULT_CONFIG["api"]


def test_env_substitution_and_partial_sections(tmp_path, monkeypatch):
    monkeypatch.setenv("TRACKER_DB_URL", "sqlite:///from-env.db")
    path = tmp_path / "config.yaml"
    path.write_text(yaml.dump({
        "database": {"url": "${TRACKER_DB_URL}"},
        "timings": {"timeout": 3},
    }))
    cfg = Config(config_path=str(path))
    assert cfg.section("database")["url"] == "sqlite:///from-env.db"
    assert cfg.section("timings")["timeout"] == 3
    assert cfg.section("timings")["base_url"] == DEFAULT_CONFIG["timings"]["base_url"]
    assert cfg.section("missing") == {}


def test_dotenv_does_not_override_environment(tmp_path, monkeypatch):
    monkeypatch.setenv("TRACKER_CITY", "Cairo")
    monkeypatch.delenv("TRACKER_COUNTRY", raising=False)
    (tmp_path / ".env").write_text("TRACKER_CITY=Aswan\nTRACKER_COUNTRY='Egypt'\n")
    path = tmp_path / "config.yaml"
    path.write_text(yaml.dump({"timings": {"default_city": "$TRACKER_CITY", "default_country": "$TRACKER_COUNTRY"}}))
    cfg = Config(config_path=str(path))
    assert cfg.section("timings")["default_city"] == "Cairo"
    assert cfg.section("timings")["default_country"] == "Egypt"


def test_reload_notifies_and_keeps_previous_on_error(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(yaml.dump({"logging": {"level": "INFO"}}))
    cfg = Config(config_path=str(path))
    seen = []
    cfg.register_change_callback(seen.append)

    path.write_text(yaml.dump({"logging": {"level": "DEBUG"}}))
    cfg.reload()
    assert seen[-1]["logging"]["level"] == "DEBUG"

    path.write_text("- just\n- a list\n")
    cfg.reload()
    assert cfg.section("logging")["level"] == "DEBUG"


def test_app_applies_log_level_on_change(tracker_app):
    root_logger = logging.getLogger()
    previous = root_logger.level
    try:
        tracker_app.handle_config_change({"logging": {"level": "WARNING"}})
        assert root_logger.level == logging.WARNING
        tracker_app.handle_config_change({"logging": {"level": "bogus"}})
        assert root_logger.level == logging.INFO
    finally:
        root_logger.setLevel(previous)
