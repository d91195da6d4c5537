"""Logging setup for AppForge.

Every module logs through ``logging.getLogger(__name__)``, so configuring
the ``appforge`` logger once at start-up covers the RBAC core, the API and
the audit channel. File output rotates and timestamps are ISO 8601.
"""

import logging
import logging.handlers
import os

LOG_FORMAT = "%(asctime)s [%(levelname)s] [%(name)s] %(message)s"
DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"
LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _resolve_level(level: str) -> int:
    name = level.upper()
    if name not in LEVELS:
        raise ValueError(f"Invalid log level: {level}. Must be one of: {', '.join(LEVELS)}")
    return getattr(logging, name)


def setup_logger(settings, name: str = "appforge", console: bool = True) -> logging.Logger:
    """Configure ``name`` from the logging fields of application settings.

    Reads ``log_level``, ``log_dir``, ``log_to_file`` and the rotation limits
    ``log_max_bytes`` and ``log_backup_count``.
    Calling it again only updates the level, so handlers are never doubled.
    """
    logger = logging.getLogger(name)
    logger.setLevel(_resolve_level(settings.log_level))

    if logger.handlers:
        return logger

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    if settings.log_to_file:
        os.makedirs(settings.log_dir, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            os.path.join(settings.log_dir, f"{name}.log"),
            maxBytes=settings.log_max_bytes,
            backupCount=settings.log_backup_count,
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    if console:
        stream_handler = logging.StreamHandler()
        stream_handler.setFormatter(formatter)
        logger.addHandler(stream_handler)

    return logger
