import io
import logging

from filepulse.core.config import LoggingConfig
from filepulse.core.log import configure_logging, get_logger, resolve_level, temp_level


def test_package_logger_has_null_handler():
    assert any(isinstance(h, logging.NullHandler) for h in get_logger().handlers)


def test_configure_logging_sets_logger_level():
    stream = io.StringIO()

    logger = configure_logging(level="DEBUG", stream=stream)
    get_logger("filepulse.core.pipeline").debug("hello %s", "there")

    assert logger.level == logging.DEBUG
    assert "hello there" in stream.getvalue()


def test_configure_logging_does_not_stack_handlers():
    configure_logging(stream=io.StringIO())
    configure_logging(stream=io.StringIO())

    handlers = [h for h in get_logger().handlers if type(h) is logging.StreamHandler]
    assert len(handlers) == 1


def test_configure_logging_repoints_closed_stream():
    first = io.StringIO()
    configure_logging(stream=first)
    first.close()
    second = io.StringIO()

    configure_logging(stream=second)
    get_logger().info("after close")

    assert "after close" in second.getvalue()


def test_temp_level_changes_and_restores():
    logger = get_logger()
    logger.setLevel(logging.WARNING)

    with temp_level("DEBUG") as scoped:
        assert scoped.level == logging.DEBUG

    assert logger.level == logging.WARNING


def test_resolve_level():
    assert resolve_level("debug") == logging.DEBUG
    assert resolve_level("nonsense") == logging.INFO
    assert resolve_level(30) == logging.WARNING


def test_logging_config_apply():
    LoggingConfig(level="ERROR", propagate=False).apply()

    logger = get_logger()
    assert logger.level == logging.ERROR
    assert logger.propagate is False
