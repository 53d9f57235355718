import contextlib
import logging
import logging.handlers
import multiprocessing as mp
from typing import Iterator, List, Optional

_LOGGER_NAME = "buddhabrot"
_FORMAT = "%(asctime)s.%(msecs)03dZ %(processName)s %(levelname)s %(name)s - %(message)s"

def get_logger() -> logging.Logger:
    return logging.getLogger(_LOGGER_NAME)

def _reset(logger: logging.Logger, level: int) -> None:
    logger.setLevel(level)
    logger.propagate = False
    for h in list(logger.handlers):
        logger.removeHandler(h)
        h.close()

def _build_handlers(level: int, console: bool, log_file: Optional[str],
                    rotate_bytes: int, rotate_count: int) -> List[logging.Handler]:
    fmt = logging.Formatter(fmt=_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S")
    handlers: List[logging.Handler] = []
    if console:
        handlers.append(logging.StreamHandler())
    if log_file:
        handlers.append(logging.handlers.RotatingFileHandler(
            log_file, maxBytes=rotate_bytes, backupCount=rotate_count, encoding="utf-8"))
    for h in handlers:
        h.setLevel(level)
        h.setFormatter(fmt)
    return handlers

def configure_root_logging(
    *,
    level: int = logging.INFO,
    console: bool = True,
    log_file: Optional[str] = None,
    rotate_bytes: int = 5 * 1024 * 1024,
    rotate_count: int = 5,
) -> logging.Logger:
    logger = get_logger()
    _reset(logger, level)
    for h in _build_handlers(level, console, log_file, rotate_bytes, rotate_count):
        logger.addHandler(h)
    return logger

@contextlib.contextmanager
def logging_session(*, level: int = logging.INFO, log_file: Optional[str] = None) -> Iterator[mp.Queue]:
    """Configure the parent logger and yield the queue worker processes log into.

    The listener forwarding worker records is stopped on exit, after which any
    records still queued have been handled.
    """
    listener_logger = configure_root_logging(level=level, console=True, log_file=log_file)
    queue = mp.Queue(-1)
    listener = logging.handlers.QueueListener(queue, *listener_logger.handlers, respect_handler_level=True)
    listener.start()
    try:
        yield queue
    finally:
        listener.stop()

def logging_initialiser(queue: Optional[mp.Queue], level: int) -> None:
    # workers started without a log queue keep whatever logging they inherited
    if queue is None:
        return
    logger = get_logger()
    _reset(logger, level)
    qh = logging.handlers.QueueHandler(queue)
    qh.setLevel(level)
    logger.addHandler(qh)
