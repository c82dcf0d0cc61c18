"""
Logging Configuration
Every module logs to a child of the "matrixtables" logger. Without
setup_logging the records propagate to whatever the host application has
configured; the readers never print on their own.

What goes where:
    ERROR: the diagnostic of every failed read or write, right before the
        matching TableError is raised (or write_real_matrix returns False).
    WARNING: text tables with more rows than declared, empty declared sizes.
    INFO: '... loading "<name>" from "<file>"' notices (verbose=True).
    DEBUG: opening and closing of files, path resolution, skipped headers.
"""
import logging
import sys
from typing import Optional, TextIO


def setup_logging(
    level: int = logging.INFO,
    log_file: Optional[str] = None,
    stream: Optional[TextIO] = None,
) -> logging.Logger:
    """
    Configures the logger for the 'matrixtables' namespace.

    Args:
        level: Logging level (e.g. logging.DEBUG, logging.INFO)
        log_file: Optional path to save logs to a file.
        stream: Console stream, sys.stdout if omitted. The command line
            passes sys.stderr so that table output stays clean.

    Returns:
        The configured package logger.
    """
    logger = logging.getLogger("matrixtables")
    logger.setLevel(level)

    # Avoid duplicate records when called more than once
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    # Format: Time - Module - Level - Message
    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%H:%M:%S'
    )

    console_handler = logging.StreamHandler(sys.stdout if stream is None else stream)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, mode='w', encoding='utf-8')
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.debug(f"Logging initialized (level {logging.getLevelName(level)}).")
    return logger
