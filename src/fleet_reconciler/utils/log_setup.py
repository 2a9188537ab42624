"""Logging setup shared by the Lambda handlers and the CLI."""
import logging

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def configure_logging(level: str = "INFO") -> None:
    """Apply the configured level to the package loggers.

    The Lambda runtime installs its own root handler; a handler is only added
    when running outside Lambda.
    """
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger("fleet_reconciler").setLevel(level)
