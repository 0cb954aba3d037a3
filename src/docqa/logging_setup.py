"""Root logging configuration shared by the CLI and the API server."""

import logging

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """
    Configure the root logger once.

    Args:
        level: Logging level name (DEBUG, INFO, WARNING, ERROR)
    """
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger().setLevel(level)

    # Third-party clients are chatty at DEBUG
    for name in ("httpx", "httpcore", "urllib3", "faiss"):
        logging.getLogger(name).setLevel(max(logging.getLevelName(level), logging.WARNING))
