"""User-facing notifications for the command line shell."""

import logging
import sys

logger: logging.Logger = logging.getLogger(__name__)

_LOG_LEVELS: dict[str, int] = {
    "success": logging.INFO,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}

_PREFIXES: dict[str, str] = {
    "success": "OK",
    "info": "Info",
    "warning": "Warning",
    "error": "Error",
}


def notify(message: str, kind: str = "info") -> None:
    """
    Show a short notification to the user and mirror it to the log.

    Errors and warnings go to stderr, everything else to stdout.

    Args:
        message: Text to show
        kind: One of 'success', 'info', 'warning', 'error'
    """
    if kind not in _PREFIXES:
        logger.debug(f"Unknown notification kind '{kind}', using 'info'")
        kind = "info"

    stream = sys.stderr if kind in ("warning", "error") else sys.stdout
    print(f"{_PREFIXES[kind]}: {message}", file=stream)
    logger.log(_LOG_LEVELS[kind], message)
