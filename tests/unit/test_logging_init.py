from __future__ import annotations

import logging
from io import StringIO

from bom_importer.logging import init as log_init
from bom_importer.logging.init import (
    LOGGER_NAME,
    SUMMARY_LEVEL,
    LabeledFormatter,
    get_logger,
    log_summary,
    set_debug,
    setup_logging,
)


def _capture(logger: logging.Logger) -> StringIO:
    buf = StringIO()
    logger.handlers[0].setStream(buf)
    return buf


def test_setup_logging_creates_logger_with_labeled_formatter():
    logger = setup_logging()
    assert logger.name == LOGGER_NAME
    assert logger.level == logging.INFO
    assert len(logger.handlers) == 1
    assert isinstance(logger.handlers[0].formatter, LabeledFormatter)
    assert logger.propagate is False


def test_logging_labeled_prefixes():
    logger = setup_logging()
    buf = _capture(logger)

    logger.info("Test info message")
    logger.warning("Test warning message")
    logger.error("Test error message")
    logger.log(SUMMARY_LEVEL, "Test summary message")
    logger.debug("hidden")

    assert buf.getvalue().splitlines() == [
        "INFO Test info message",
        "WARN Test warning message",
        "ERROR Test error message",
        "SUMMARY Test summary message",
    ]


def test_module_loggers_reach_the_handler():
    logger = setup_logging()
    buf = _capture(logger)
    logging.getLogger("bom_importer.services.dispatcher").warning("child")
    assert buf.getvalue() == "WARN child\n"


def test_get_logger_returns_configured_logger():
    assert get_logger() is setup_logging()


def test_setup_logging_idempotent():
    logger1 = setup_logging()
    logger2 = setup_logging()
    assert logger1 is logger2
    assert len(logger1.handlers) == 1


def test_reset_logging_reconfigures():
    first = setup_logging()
    log_init.reset_logging()
    second = setup_logging()
    assert first is second  # same named logger
    assert len(second.handlers) == 1


def test_set_debug_toggles_level():
    logger = setup_logging()
    buf = _capture(logger)
    set_debug(True)
    logger.debug("detail")
    set_debug(False)
    logger.debug("quiet")
    assert buf.getvalue() == "DEBUG detail\n"
    assert logger.level == logging.INFO


def test_log_summary_convenience_function():
    buf = _capture(setup_logging())
    log_summary("files=2/2 success=2 failed=0")
    assert buf.getvalue().strip() == "SUMMARY files=2/2 success=2 failed=0"
    assert logging.getLevelName(SUMMARY_LEVEL) == "SUMMARY"
