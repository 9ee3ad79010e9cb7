"""Tests for logger setup."""

from __future__ import annotations

import logging

from app.core.logging import get_logger, setup_logging


def test_setup_logging_is_idempotent():
    first = setup_logging("DEBUG")
    handlers = list(first.handlers)
    second = setup_logging("warning")

    assert first is second
    assert second.handlers == handlers
    assert second.level == logging.WARNING
    assert second.propagate is False


def test_unknown_level_falls_back_to_info():
    assert setup_logging("chatty").level == logging.INFO


def test_get_logger_is_namespaced():
    logger = get_logger("app.services.settlement.sweeper")
    assert logger.name == "paysettle.app.services.settlement.sweeper"
