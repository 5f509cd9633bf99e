import logging
import sys

LOG_FORMAT = "%(asctime)s %(levelname)-8s [%(name)s] %(message)s"

# Third-party loggers that are chatty at INFO
_NOISY_LOGGERS = ("sqlalchemy.engine", "httpx", "asyncio")


def setup_logging(level: str | int = logging.INFO) -> None:
    """
    Configure the root logger with a single console handler.

    Safe to call more than once; existing handlers installed by a previous
    call are replaced instead of duplicated.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    root = logging.getLogger()
    root.setLevel(level)

    for handler in list(root.handlers):
        if getattr(handler, "_tasktracker", False):
            root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler._tasktracker = True
    root.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
