"""Tests for the structured logging helpers."""

import logging

import structlog

from domains.core.logging_config import (
    LogConfig,
    LogFormat,
    bind_request_context,
    bound_run_context,
    clear_request_context,
    configure_logging,
)


def test_log_config_from_env(monkeypatch):
    monkeypatch.setenv("LOG_LEVEL", "debug")
    monkeypatch.setenv("LOG_FORMAT", "console")

    config = LogConfig.from_env(service_name="cli")

    assert config.level == "DEBUG"
    assert config.format is LogFormat.CONSOLE
    assert config.service_name == "cli"


def test_unknown_format_falls_back_to_json(monkeypatch):
    monkeypatch.setenv("LOG_FORMAT", "xml")

    assert LogConfig.from_env().format is LogFormat.JSON


def test_bound_run_context_restores_request_context():
    bind_request_context("req-1")
    try:
        with bound_run_context("run-abc"):
            assert structlog.contextvars.get_contextvars() == {
                "request_id": "req-1",
                "run_id": "run-abc",
            }
        assert structlog.contextvars.get_contextvars() == {"request_id": "req-1"}
    finally:
        clear_request_context()

    assert structlog.contextvars.get_contextvars() == {}


def test_configure_logging_quiets_driver_loggers():
    configure_logging(LogConfig(level="DEBUG"))

    assert logging.getLogger().level == logging.DEBUG
    assert logging.getLogger("neo4j").level == logging.WARNING
    assert len(logging.getLogger().handlers) == 1
