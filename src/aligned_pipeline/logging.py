import logging
import os
import sys

from pythonjsonlogger import jsonlogger


def setup_logging():
    """
    Configures structured JSON logging for the pipeline.

    Installs a single stdout handler on the root logger whose JSON records
    carry timestamp, level, logger name, message, and the trace_id/span_id
    injected by ddtrace. The level comes from the LOG_LEVEL environment
    variable (default INFO). Noisy third-party loggers are capped at WARNING.

    Returns:
        logging.Logger: The configured root logger instance.
    """
    formatter = jsonlogger.JsonFormatter(
        "%(asctime)s %(levelname)s %(name)s %(message)s %(trace_id)s %(span_id)s"
    )
    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(os.getenv("LOG_LEVEL", "INFO").upper())
    root_logger.handlers = [
        handler
        for handler in root_logger.handlers
        if not isinstance(handler.formatter, jsonlogger.JsonFormatter)
    ]
    root_logger.addHandler(stream_handler)

    for logger_name in ["httpx", "websockets", "pika", "google_genai"]:
        logging.getLogger(logger_name).setLevel(logging.WARNING)

    return root_logger
