from __future__ import annotations

import logging

import pytest

from autolog_events.config import Config
from autolog_events.utils import ValidationError, safe_validate, validate_subscriber
from autolog_events.utils.logging import JSONFormatter, LogContext, get_context, setup_logging

from conftest import RecordingSubscriber


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in (
        "AUTOLOG_GC_INTERVAL_SECONDS",
        "AUTOLOG_NOTIFY_TIMEOUT_SECONDS",
        "AUTOLOG_PING_TIMEOUT_SECONDS",
        "AUTOLOG_METRICS_ENABLED",
        "AUTOLOG_HTTP_TIMEOUT_SECONDS",
        "AUTOLOG_MLFLOW_TAG_KEY",
        "AUTOLOG_METRICS_PORT",
    ):
        monkeypatch.delenv(name, raising=False)


def test_packaged_defaults():
    cfg = Config()
    assert cfg.get_publisher_config() == {
        "gc_interval_seconds": 1.0,
        "notify_timeout_seconds": 5.0,
        "ping_timeout_seconds": 5.0,
    }
    assert cfg.get_mlflow_subscriber_config()["tag_key"] == "datasourceInfo"
    assert all(cfg.validate_config().values())


def test_custom_yaml_file(tmp_path):
    config_file = tmp_path / "autolog.yml"
    config_file.write_text("publisher:\n  gc_interval_seconds: 0.25\nsubscribers:\n  http:\n    timeout_seconds: 9\n")

    cfg = Config(str(config_file))

    assert cfg.get_publisher_config()["gc_interval_seconds"] == 0.25
    assert cfg.get_publisher_config()["notify_timeout_seconds"] == 5.0
    assert cfg.get_http_subscriber_config()["timeout_seconds"] == 9.0


def test_missing_file_falls_back_to_defaults(tmp_path):
    cfg = Config(str(tmp_path / "absent.yml"))
    assert cfg.settings == {}
    assert cfg.get_metrics_config() == {"enabled": False, "port": 8000}


def test_environment_overrides_yaml(monkeypatch):
    monkeypatch.setenv("AUTOLOG_GC_INTERVAL_SECONDS", "3")
    monkeypatch.setenv("AUTOLOG_MLFLOW_TAG_KEY", "sources")
    monkeypatch.setenv("AUTOLOG_METRICS_ENABLED", "true")

    cfg = Config()

    assert cfg.get_publisher_config()["gc_interval_seconds"] == 3.0
    assert cfg.get_mlflow_subscriber_config()["tag_key"] == "sources"
    assert cfg.get_metrics_config()["enabled"] is True


def test_validate_config_flags_bad_values(monkeypatch):
    monkeypatch.setenv("AUTOLOG_NOTIFY_TIMEOUT_SECONDS", "0")
    monkeypatch.setenv("AUTOLOG_METRICS_PORT", "not-a-port")

    results = Config().validate_config()

    assert results["publisher"] is False
    assert results["metrics"] is False
    assert results["http_subscriber"] is True


def test_subscriber_validation():
    validate_subscriber(RecordingSubscriber("ok"))

    with pytest.raises(ValidationError):
        validate_subscriber(object())
    with pytest.raises(ValidationError):
        validate_subscriber(RecordingSubscriber("   "))
    assert safe_validate(validate_subscriber, object()) is False


def test_json_log_records_carry_context():
    formatter = JSONFormatter()
    with LogContext(subscriber_id="sub-1", component="publisher"):
        assert get_context()["subscriber_id"] == "sub-1"
        record = logging.LogRecord("autolog_events.test", logging.WARNING, __file__, 1, "notify failed", None, None)
        rendered = formatter.format(record)

    assert '"subscriber_id": "sub-1"' in rendered
    assert '"component": "publisher"' in rendered
    assert get_context().get("subscriber_id") is None


def test_setup_logging_writes_json_file(tmp_path):
    package_logger = setup_logging(level="DEBUG", log_dir=str(tmp_path), enable_json=True, enable_console_colors=False)
    try:
        package_logger.getChild("test").info("hello")
        for handler in package_logger.handlers:
            handler.flush()

        content = (tmp_path / "autolog_events.log").read_text()
        assert '"message": "hello"' in content
    finally:
        for handler in list(package_logger.handlers):
            handler.close()
            package_logger.removeHandler(handler)
        package_logger.propagate = True
        package_logger.setLevel(logging.NOTSET)
