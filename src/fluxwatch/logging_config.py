"""
Logging setup - rotating file log plus console
"""
import sys
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOG_FORMAT = '%(asctime)s [%(levelname)-8s] %(name)s: %(message)s'
LOG_FILE = 'fluxwatch.log'
# max 5 MB per file, keep 3 backups
MAX_BYTES = 5 * 1024 * 1024
BACKUP_COUNT = 3


def configure_logging(log_dir='/var/log/fluxwatch', level=logging.INFO):
    """
    Configure the root logger

    Console gets `level` and up; the log file also keeps DEBUG chatter such
    as per-tick registration results. Falls back to console only when the
    log directory is not writable.
    """
    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level)
    console.setFormatter(logging.Formatter(LOG_FORMAT, datefmt='%H:%M:%S'))
    handlers = [console]

    file_error = None
    log_path = Path(log_dir) / LOG_FILE
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            str(log_path), maxBytes=MAX_BYTES, backupCount=BACKUP_COUNT, encoding='utf-8'
        )
    except OSError as e:
        file_error = e
    else:
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt='%Y-%m-%d %H:%M:%S'))
        handlers.append(file_handler)

    logging.basicConfig(level=logging.DEBUG, handlers=handlers, force=True)
    logging.getLogger('urllib3').setLevel(logging.WARNING)
    logging.getLogger('werkzeug').setLevel(logging.WARNING)

    if file_error is not None:
        logging.getLogger(__name__).warning(f"Logging to console only, cannot open {log_path}: {file_error}")

    return log_path if file_error is None else None
