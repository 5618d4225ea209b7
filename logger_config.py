"""Centralized logging configuration for the reminder engine.

Every module logs to its own rotating file and to the console. Files live
under ``logs/`` next to the code, or under ``$LOG_DIR`` when it is set:
- scheduler.log: tick start/finish, skipped ticks, per-reminder failures
- dispatch.log: sent and failed sends; simulated mails with full content
- mailer.log: SMTP and relay send errors, failed transport checks
- crud.log: storage errors while loading reminders
- api.log: scheduler startup state and failed manual checks
"""

import logging
from logging.handlers import RotatingFileHandler
import os

# Create logs directory
LOG_DIR = os.environ.get('LOG_DIR') or os.path.join(os.path.dirname(os.path.abspath(__file__)), 'logs')
os.makedirs(LOG_DIR, exist_ok=True)


def setup_logger(name: str, log_file: str = 'service.log') -> logging.Logger:
    """Setup logger with a rotating file handler and a console handler.

    Args:
        name: Logger name (usually __name__)
        log_file: Log file name (e.g., 'scheduler.log', 'dispatch.log')

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    # Avoid duplicate handlers
    if logger.handlers:
        return logger

    logger.setLevel(logging.INFO)

    formatter = logging.Formatter(
        '[%(asctime)s] %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    # File handler - 10MB max, keep 5 backups
    file_handler = RotatingFileHandler(
        os.path.join(LOG_DIR, log_file),
        maxBytes=10 * 1024 * 1024,  # 10MB
        backupCount=5,
        encoding='utf-8'
    )
    file_handler.setLevel(logging.INFO)
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    return logger


def configure_root_logger():
    """Reduce third-party library noise."""
    logging.getLogger('uvicorn').setLevel(logging.WARNING)
    logging.getLogger('uvicorn.access').setLevel(logging.WARNING)
    logging.getLogger('fastapi').setLevel(logging.WARNING)
    logging.getLogger('sqlalchemy').setLevel(logging.WARNING)
    logging.getLogger('httpx').setLevel(logging.WARNING)


# Auto-configure on import
configure_root_logger()
