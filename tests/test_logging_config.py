"""Tests for logging setup."""

import logging

import pytest
from rich.logging import RichHandler

from concept2_mcp.logging_config import PACKAGE_LOGGER, configure_logging


@pytest.fixture(autouse=True)
def restore_logger():
    yield
    configure_logging("none")


def test_none_silences_package():
    logger = configure_logging("none")

    assert logger.name == PACKAGE_LOGGER
    assert not logging.getLogger("concept2_mcp.auth.flow").isEnabledFor(logging.CRITICAL)
    assert not logger.handlers


def test_level_and_handler():
    logger = configure_logging("DEBUG")

    assert logger.level == logging.DEBUG
    assert logging.getLogger("concept2_mcp.auth.token_manager").isEnabledFor(logging.DEBUG)
    [handler] = logger.handlers
    assert isinstance(handler, RichHandler)
    assert handler.console.stderr


def test_reconfigure_does_not_stack_handlers():
    configure_logging("info")
    logger = configure_logging("warning")

    assert len(logger.handlers) == 1
    assert logger.level == logging.WARNING
