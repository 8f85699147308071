"""
Centralized Logging Configuration for Brain Battle

One ``brainbattle_app`` logger tree for the whole application:
- console output always
- a rotating file when LOG_DIR is configured

Engine modules log through ``logging.getLogger(__name__)``, so their records
land under this tree whether or not a Flask app exists.
"""

import os
import logging
import logging.handlers
from typing import Optional

ROOT_LOGGER_NAME = 'brainbattle_app'
LOG_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'

# Third-party loggers that are too chatty at INFO: APScheduler logs every
# question-timer tick, werkzeug every request.
QUIET_LOGGERS = ('apscheduler', 'werkzeug')


def setup_logging(
    app=None,
    log_level: str = 'INFO',
    log_dir: Optional[str] = None,
) -> logging.Logger:
    """
    Configure the application logger tree.

    Args:
        app: Flask application instance (optional); when given, third-party
            request/scheduler loggers are lowered to WARNING.
        log_level: Logging level name (DEBUG, INFO, WARNING, ERROR)
        log_dir: Directory for ``brainbattle.log``; no file handler when None

    Returns:
        The ``brainbattle_app`` logger
    """
    level = getattr(logging, str(log_level).upper(), logging.INFO)

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(level)

    # create_app() may run many times (tests); start from a clean slate
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT, datefmt='%Y-%m-%d %H:%M:%S')

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            os.path.join(log_dir, 'brainbattle.log'),
            maxBytes=5 * 1024 * 1024,
            backupCount=3,
            encoding='utf-8'
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    if app is not None:
        for name in QUIET_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    logger.debug(f"Logging initialized: level={log_level}, dir={log_dir or '-'}")
    return logger
