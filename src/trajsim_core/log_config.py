# --- src/trajsim_core/log_config.py ---
import logging
import sys
from typing import Optional, TextIO, Union

# Third-party loggers that are chatty at INFO level during large batches.
_QUIET_LOGGERS = ("pint", "concurrent.futures")


def setup_logging(level: Union[int, str] = logging.INFO, stream: Optional[TextIO] = None):
    """
    Configures the root logger with a single console handler.

    Args:
        level: A logging level, either numeric or a level name such as "DEBUG".
        stream: The destination stream. Defaults to stdout.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            raise ValueError(f"Unknown logging level name: {level}")

    log_formatter = logging.Formatter(
        "%(asctime)s [%(levelname)-5.5s] [%(name)s] %(message)s"
    )
    root_logger = logging.getLogger()

    # Re-running setup must not stack duplicate handlers.
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()

    console_handler = logging.StreamHandler(stream if stream is not None else sys.stdout)
    console_handler.setFormatter(log_formatter)
    root_logger.setLevel(level)
    root_logger.addHandler(console_handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
    logging.debug("Logging configured.")
