"""Shared logging setup for the command line entry point."""
import logging


LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DEFAULT_LEVEL = logging.INFO


def configure_logging(level: int = DEFAULT_LEVEL) -> None:
    """Configure root logging once; later calls are no-ops."""
    if logging.getLogger().handlers:
        return

    logging.basicConfig(level=level, format=LOG_FORMAT)
