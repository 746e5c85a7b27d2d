"""
Loguru sinks.

Everything goes to stderr and app.log. Domain events are bound with a
`log_type` and additionally routed to their own file:

    logger.bind(log_type="booking").info("...")
"""
from loguru import logger
import os
import sys

from app.core.config import LOG_DIR

LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level} | {message}"

# log_type -> file name
CHANNELS = {
    "booking": "bookings.log",
    "payment": "payments.log",
    "availability": "availability.log",
}

os.makedirs(LOG_DIR, exist_ok=True)

logger.remove()

logger.add(sys.stderr, level="INFO", format=LOG_FORMAT)

logger.add(
    os.path.join(LOG_DIR, "app.log"),
    rotation="1 week",
    retention="4 weeks",
    level="INFO",
    enqueue=True,
    format=LOG_FORMAT,
)


def _channel_filter(log_type):
    return lambda record: record["extra"].get("log_type") == log_type


for _log_type, _file_name in CHANNELS.items():
    logger.add(
        os.path.join(LOG_DIR, _file_name),
        rotation="1 week",
        retention="4 weeks",
        level="INFO",
        enqueue=True,
        filter=_channel_filter(_log_type),
        format=LOG_FORMAT,
    )

# Errors and failed sweeps, with tracebacks
logger.add(
    os.path.join(LOG_DIR, "errors.log"),
    rotation="1 week",
    retention="8 weeks",
    level="ERROR",
    enqueue=True,
    backtrace=True,
)


def get_logger():
    return logger
