import logging
from unittest.mock import Mock

import pytest

from pdf_relay.utils.exception_logging import (
    format_exception_message,
    log_exception_with_details,
)


class BrokenStrException(Exception):
    """An exception that breaks when __str__ is called."""

    def __str__(self):
        raise RuntimeError("Cannot convert to string!")

    def __repr__(self):
        return "BrokenStrException(cannot convert to string)"


class BrokenReprException(Exception):
    def __str__(self):
        raise RuntimeError("Cannot convert to string!")

    def __repr__(self):
        raise RuntimeError("Cannot convert to repr!")


class MockBrokenExceptionGroup(Exception):
    """Exception group look-alike that breaks when its sub-exceptions are read."""

    @property
    def exceptions(self):
        raise RuntimeError("Cannot access exceptions!")


def _task_group_failure() -> ExceptionGroup:
    """The shape of error anyio raises when two relay tasks fail at once."""
    return ExceptionGroup(
        "unhandled errors in a TaskGroup",
        [OSError("connection reset"), ValueError("bad chunk")],
    )


class TestLogExceptionWithDetails:
    def setup_method(self):
        self.logger = Mock(spec=logging.Logger)

    def test_normal_exception_logging(self):
        exception = ValueError("Normal test error")

        log_exception_with_details(self.logger, "[Download]", exception)

        self.logger.log.assert_called_once_with(
            logging.ERROR,
            "[Download] Exception: Normal test error",
            exc_info=exception,
        )

    def test_exception_with_custom_level(self):
        exception = ValueError("Warning level error")

        log_exception_with_details(self.logger, "[Meta]", exception, logging.WARNING)

        self.logger.log.assert_called_once_with(
            logging.WARNING,
            "[Meta] Exception: Warning level error",
            exc_info=exception,
        )

    def test_task_group_failure_logs_each_sub_exception(self):
        group = _task_group_failure()

        log_exception_with_details(self.logger, "[Download]", group)

        assert self.logger.log.call_count == 3
        header = self.logger.log.call_args_list[0]
        assert header.args[1].startswith("[Download] Exception with 2 sub-exceptions")
        assert [c.args[1] for c in self.logger.log.call_args_list[1:]] == [
            "[Download] Sub-exception 1: OSError: connection reset",
            "[Download] Sub-exception 2: ValueError: bad chunk",
        ]

    def test_broken_str_exception(self):
        log_exception_with_details(self.logger, "[Download]", BrokenStrException())

        self.logger.log.assert_called_once()
        assert "BrokenStrException(cannot convert to string)" in self.logger.log.call_args.args[1]

    def test_broken_exception_group_falls_back_to_plain_logging(self):
        broken_group = MockBrokenExceptionGroup("Broken group")

        log_exception_with_details(self.logger, "[Download]", broken_group)

        self.logger.log.assert_called_once_with(
            logging.ERROR,
            "[Download] Exception: Broken group",
            exc_info=broken_group,
        )

    def test_logger_failure_is_swallowed(self):
        self.logger.log.side_effect = [RuntimeError("handler down"), None]

        log_exception_with_details(self.logger, "[Meta]", ValueError("x"))

        assert self.logger.log.call_args.args == (
            logging.ERROR,
            "[Meta] Exception (logging failed)",
        )

    def test_none_exception(self):
        try:
            log_exception_with_details(self.logger, "[Meta]", None)  # type: ignore
        except Exception as e:
            pytest.fail(f"Should not raise exception, but got: {e}")


class TestFormatExceptionMessage:
    def test_normal_exception_formatting(self):
        assert format_exception_message(RuntimeError("boom")) == "boom"

    def test_empty_message_uses_type_name(self):
        assert format_exception_message(RuntimeError()) == "RuntimeError"

    def test_task_group_failure_is_flattened(self):
        group = _task_group_failure()

        result = format_exception_message(group)

        assert "Sub-exceptions:" in result
        assert "OSError: connection reset" in result
        assert "ValueError: bad chunk" in result

    def test_broken_repr_exception_formatting(self):
        assert format_exception_message(BrokenReprException()) == (
            "<BrokenReprException object (string conversion failed)>"
        )

    def test_none_exception_formatting(self):
        assert format_exception_message(None) == "None"  # type: ignore
