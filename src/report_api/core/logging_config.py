import logging
import sys
from typing import Iterable, Optional

APP_LOGGER_NAME = "report_api"
CONSOLE_HANDLER_NAME = "report_api.console"


class NamespaceFilter(logging.Filter):
    def __init__(self, allowed_namespaces=None):
        super().__init__()
        self.allowed_namespaces = list(allowed_namespaces) if allowed_namespaces is not None else []

    def filter(self, record):
        if not self.allowed_namespaces:
            return True # If no namespaces are specified, allow all records
        # Allow record if its name starts with any of the allowed namespaces
        return any(record.name.startswith(ns) for ns in self.allowed_namespaces)


log_formatter = logging.Formatter(
    fmt="%(asctime)s - %(name)s:%(lineno)d - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)


def setup_logging(level: str = "INFO", allowed_namespaces: Optional[Iterable[str]] = None) -> logging.Logger:
    """
    Configure the application logger.

    Every module logs through `logging.getLogger(__name__)`, which yields
    children of "report_api" such as "report_api.core.middleware" or
    "report_api.features.reports.router". They inherit the level and handler
    set here. Calling this again replaces the console handler instead of
    stacking a second one.
    """
    app_logger = logging.getLogger(APP_LOGGER_NAME)
    app_logger.setLevel(level.upper())

    for handler in list(app_logger.handlers):
        if handler.get_name() == CONSOLE_HANDLER_NAME:
            app_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.set_name(CONSOLE_HANDLER_NAME)
    console_handler.setFormatter(log_formatter)
    # Only records from these namespaces reach stdout, e.g. LOG_NAMESPACES=report_api.core.middleware
    console_handler.addFilter(NamespaceFilter(allowed_namespaces))
    app_logger.addHandler(console_handler)

    return app_logger
