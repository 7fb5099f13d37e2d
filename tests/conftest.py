"""Shared test fixtures."""

import logging

import pytest

from autoreview.cli import LOG_HANDLER_NAME


@pytest.fixture(autouse=True)
def detach_cli_log_handler():
    """Drop the stderr handler a CLI invocation installs on the package logger."""
    yield
    package_logger = logging.getLogger("autoreview")
    for handler in list(package_logger.handlers):
        if handler.get_name() == LOG_HANDLER_NAME:
            package_logger.removeHandler(handler)
    package_logger.setLevel(logging.NOTSET)
