"""
Unit tests for the logging helpers.
"""
import logging

from rich.logging import RichHandler

from harbor.UTILS.logger import ROOT_LOGGER, get_logger, setup_logging


def rich_handlers():
    return [h for h in logging.getLogger(ROOT_LOGGER).handlers if isinstance(h, RichHandler)]


def test_setup_logging_attaches_one_rich_handler():
    setup_logging()
    setup_logging(verbose=True)
    handlers = rich_handlers()
    assert len(handlers) == 1
    assert handlers[0].console.stderr
    assert logging.getLogger(ROOT_LOGGER).level == logging.DEBUG


def test_quiet_level():
    setup_logging(verbose=False)
    assert logging.getLogger(ROOT_LOGGER).level == logging.WARNING


def test_get_logger_nests_under_namespace():
    assert get_logger('harbor.BUILDERS.secrets').name == 'harbor.BUILDERS.secrets'
    assert get_logger('plugins').name == 'harbor.plugins'
    assert get_logger(ROOT_LOGGER).name == ROOT_LOGGER
