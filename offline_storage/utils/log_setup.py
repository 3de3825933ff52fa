"""
Console logging setup for applications embedding the storage library.
"""

import logging

from rich.console import Console
from rich.logging import RichHandler

console = Console()


def configure_logging(verbose: int = 0) -> logging.Logger:
    """
    Routes the library's log records through a rich console handler.

    Args:
        verbose: 0 for warnings and above, 1 for info, 2 or more for debug.

    Returns:
        The package logger.
    """
    log_level = "WARNING"
    if verbose == 1:
        log_level = "INFO"
    elif verbose >= 2:
        log_level = "DEBUG"

    log = logging.getLogger("offline_storage")
    if not any(isinstance(h, RichHandler) for h in log.handlers):
        handler = RichHandler(
            console=console,
            rich_tracebacks=True,
            show_path=False,
            show_level=False,
            markup=True,
        )
        handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))
        log.addHandler(handler)
    log.setLevel(log_level)
    return log
