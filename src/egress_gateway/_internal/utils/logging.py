import logging
import sys

from pythonjsonlogger.json import JsonFormatter
from rich.logging import RichHandler

from egress_gateway._internal import settings
from egress_gateway._internal.settings import LogFormat

PACKAGE_LOGGER_NAME = "egress_gateway"


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def configure_logging(log_format: LogFormat = settings.LOG_FORMAT):
    formatters = {
        LogFormat.RICH: logging.Formatter(fmt="%(message)s", datefmt="[%X]"),
        LogFormat.STANDARD: logging.Formatter(
            fmt="%(levelname)s %(asctime)s.%(msecs)03d %(name)s %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S",
        ),
        LogFormat.JSON: JsonFormatter(
            "%(asctime)s %(name)s %(levelname)s %(message)s",
            json_ensure_ascii=False,
            rename_fields={"name": "logger", "asctime": "timestamp", "levelname": "level"},
        ),
    }
    if log_format is LogFormat.RICH:
        handler = RichHandler(rich_tracebacks=True, show_path=False)
    else:
        handler = logging.StreamHandler(stream=sys.stdout)
    handler.setFormatter(formatters[log_format])
    root_logger = logging.getLogger(None)
    root_logger.addHandler(handler)
    root_logger.setLevel(settings.ROOT_LOG_LEVEL)
    logging.getLogger(PACKAGE_LOGGER_NAME).setLevel(settings.LOG_LEVEL)
    # azure-core logs every request and response header at INFO
    logging.getLogger("azure").setLevel(logging.WARNING)
    logging.getLogger("kubernetes").setLevel(logging.WARNING)
