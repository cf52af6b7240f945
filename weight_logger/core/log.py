import logging
from logging.handlers import RotatingFileHandler

from .config import settings


def configure_logging() -> None:
    logger = logging.getLogger()
    logger.setLevel(logging.INFO)

    fmt = logging.Formatter(
        "%(asctime)s %(levelname)s %(name)s - %(message)s"
    )

    # Console
    ch = logging.StreamHandler()
    ch.setFormatter(fmt)
    logger.addHandler(ch)

    # Rotating file (avoid filling SD card)
    fh = RotatingFileHandler(
        settings.log_path, maxBytes=2_000_000, backupCount=5
    )
    fh.setFormatter(fmt)
    logger.addHandler(fh)

    # One line per websocket frame is too chatty at INFO
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
