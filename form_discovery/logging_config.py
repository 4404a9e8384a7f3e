"""
Log setup shared by the command-line tool and the MCP server.
"""

import logging
import sys
import tempfile
from pathlib import Path

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
NOISY_LOGGERS = ['playwright._impl', 'asyncio', 'urllib3']


def get_log_dir() -> Path:
    """~/.form-discovery, or the system temp dir when home is not writable."""
    try:
        log_dir = Path.home() / '.form-discovery'
        log_dir.mkdir(exist_ok=True)
        return log_dir
    except (PermissionError, OSError):
        return Path(tempfile.gettempdir())


def configure_logging(name: str, level: int = logging.INFO, stream=None) -> Path:
    """
    Log to ``<log dir>/<name>.log`` and to a stream (stderr by default).

    Returns the log file path.
    """
    log_dir = get_log_dir()
    if log_dir == Path(tempfile.gettempdir()):
        log_file = log_dir / f'form_discovery_{name}.log'
    else:
        log_file = log_dir / f'{name}.log'

    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        handlers=[
            logging.FileHandler(log_file, encoding='utf-8'),
            logging.StreamHandler(stream or sys.stderr)
        ]
    )

    # Reduce noise from lower-level libraries while keeping our logs verbose
    for noisy in NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(logging.WARNING)

    return log_file
