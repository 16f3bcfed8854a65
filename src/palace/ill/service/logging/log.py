from __future__ import annotations

import json
import logging
import socket
import threading
from collections.abc import Mapping, Sequence
from logging import Handler
from typing import Any

from palace.ill.service.logging.configuration import LogLevel
from palace.ill.util.datetime_helpers import from_timestamp

PLAIN_FORMAT = "%(asctime)s:%(name)s:%(levelname)s:%(filename)s:%(message)s"


class JSONFormatter(logging.Formatter):
    def __init__(self) -> None:
        super().__init__()
        self.hostname = socket.getfqdn()
        self.main_thread_id = threading.main_thread().ident

    def format(self, record: logging.LogRecord) -> str:
        def ensure_str(s: Any) -> Any:
            """Ensure that unicode strings are used for a record's message.
            We don't want to try to interpolate an incompatible byte type; it
            could lead to a UnicodeDecodeError.
            """
            if isinstance(s, bytes):
                s = s.decode("utf-8")
            return s

        message = ensure_str(record.msg)
        if record.args:
            record_args: tuple[Any, ...] | dict[str, Any] | None = None
            if isinstance(record.args, Mapping):
                record_args = {
                    ensure_str(k): ensure_str(v) for k, v in record.args.items()
                }
            elif isinstance(record.args, Sequence):
                record_args = tuple(ensure_str(arg) for arg in record.args)

            if record_args is not None:
                try:
                    message = message % record_args
                except Exception as e:
                    # A broken log call must not break the ILL action that
                    # made it, but it does need to be visible.
                    message = (
                        "Log message could not be formatted. Exception: %r. Original message: message=%r args=%r"
                        % (e, message, record_args)
                    )
        data: dict[str, Any] = dict(
            host=self.hostname,
            name=record.name,
            level=record.levelname,
            filename=record.filename,
            message=message,
            timestamp=from_timestamp(record.created).isoformat(),
        )
        if record.exc_info:
            data["traceback"] = self.formatException(record.exc_info)
        if record.process:
            data["process"] = record.process
        if record.thread and record.thread != self.main_thread_id:
            data["thread"] = record.thread
        if record.stack_info:
            data["stack"] = self.formatStack(record.stack_info)
        illrequest_id = getattr(record, "illrequest_id", None)
        if illrequest_id is not None:
            data["illrequest_id"] = illrequest_id
        return json.dumps(data, default=str, ensure_ascii=False)


def create_stream_handler(json_format: bool) -> Handler:
    handler = logging.StreamHandler()
    if json_format:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(PLAIN_FORMAT))
    return handler


def setup_logging(
    level: LogLevel,
    verbose_level: LogLevel,
    stream: Handler,
) -> None:
    # Set up the root logger
    root = logging.getLogger()
    root.setLevel(level.levelno)
    root.handlers = [stream]

    # Set the loggers for various verbose libraries to the database
    # log level, which is probably higher than the normal log level.
    for logger in (
        "sqlalchemy.engine",
        "urllib3.connectionpool",
    ):
        logging.getLogger(logger).setLevel(verbose_level.levelno)
