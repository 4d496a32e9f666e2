import logging
import logging.handlers
from typing import Optional

LOGGER_NAME = "directional_fields"
LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"


def setup_logging(
    log_file: Optional[str] = None,
    *,
    quiet: bool = False,
    debug: bool = False,
    max_bytes: int = 5_000_000,
) -> logging.Logger:
    """Configure and return the shared `directional_fields` logger.

    Calling it again replaces the previous handlers, so the driver and tests
    can reconfigure freely. No file is written unless `log_file` is given;
    the file rotates once it reaches `max_bytes`.
    """
    logger = logging.getLogger(LOGGER_NAME)
    # propagate so pytest's caplog still sees records when the console is quiet
    logger.propagate = True

    level = logging.DEBUG if debug else logging.INFO
    logger.setLevel(level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT)

    if log_file:
        try:
            file_handler = logging.handlers.RotatingFileHandler(
                log_file, mode="w", maxBytes=max_bytes, backupCount=0
            )
        except OSError as exc:
            logger.warning("Could not open log file '%s': %s", log_file, exc)
        else:
            file_handler.setLevel(level)
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)

    if not quiet:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.DEBUG if debug else logging.INFO)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    return logger
