import logging

from rich.logging import RichHandler

LOGGER_NAME = "benchvm"


def setup_logger(level: int = logging.WARNING) -> logging.Logger:
    """
    Returns the package logger, attaching a RichHandler on first use.

    main() calls this a second time with DEBUG when --verbose is given;
    later calls only adjust the level so records are never emitted twice.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)

    if not any(isinstance(h, RichHandler) for h in logger.handlers):
        handler = RichHandler(rich_tracebacks=True, markup=True, show_path=False)
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(handler)

    return logger


# WARNING keeps the interactive prompts readable
logger = setup_logger()
