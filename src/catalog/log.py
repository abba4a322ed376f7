import logging

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Install a single stream handler on the ``catalog`` logger."""
    logger = logging.getLogger("catalog")
    logger.setLevel(level)
    if not any(getattr(h, "_catalog", False) for h in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._catalog = True
        logger.addHandler(handler)
