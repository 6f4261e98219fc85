from __future__ import annotations

from offer_ladder.logging_config import logging_config


def test_console_only_by_default() -> None:
    config = logging_config("DEBUG", None)

    assert set(config["loggers"]) == {"offer_ladder", "httpx"}
    assert config["loggers"]["offer_ladder"]["level"] == "DEBUG"
    assert config["loggers"]["offer_ladder"]["handlers"] == ["console"]
    assert "file" not in config["handlers"]


def test_file_handler_when_configured(tmp_path) -> None:
    log_file = str(tmp_path / "ladder.log")
    config = logging_config("INFO", log_file)

    assert config["handlers"]["file"]["filename"] == log_file
    assert config["loggers"]["offer_ladder"]["handlers"] == ["console", "file"]
    assert config["loggers"]["httpx"]["handlers"] == ["console", "file"]
