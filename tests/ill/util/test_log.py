import logging

import pytest
from pytest import LogCaptureFixture

from palace.ill.service.logging.configuration import LogLevel
from palace.ill.util.log import (
    LoggerMixin,
    RequestLoggerAdapter,
    elapsed_time_logging,
)


class MockClass(LoggerMixin):
    pass


def test_logger_mixin():
    assert MockClass.logger().name.endswith("test_log.MockClass")
    assert MockClass().log is MockClass.logger()


def test_elapsed_time_logging(caplog: LogCaptureFixture):
    caplog.set_level(LogLevel.info)
    log = logging.getLogger("test")

    with elapsed_time_logging(log_method=log.info, message_prefix="Libris"):
        pass

    [first, second] = caplog.messages
    assert first == "Libris: Starting..."
    assert second.startswith("Libris: Completed. (elapsed time: ")


def test_elapsed_time_logging_exception(caplog: LogCaptureFixture):
    caplog.set_level(LogLevel.info)
    log = logging.getLogger("test")

    with pytest.raises(ValueError):
        with elapsed_time_logging(log_method=log.info, skip_start=True):
            raise ValueError("boom")

    [message] = caplog.messages
    assert message.startswith("Failed (raised ValueError). (elapsed time: ")


def test_request_logger_adapter(caplog: LogCaptureFixture):
    caplog.set_level(LogLevel.info)
    adapter = RequestLoggerAdapter(MockClass.logger(), 12)

    adapter.info("Received.")

    [record] = caplog.records
    assert record.message == "[illrequest 12] Received."
    assert record.illrequest_id == 12  # type: ignore[attr-defined]
