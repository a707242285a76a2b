"""
Logging helpers. Every module logs under the `harbor` namespace; the CLI
decides the level once at startup.
"""
import logging

from rich.console import Console
from rich.logging import RichHandler

ROOT_LOGGER = "harbor"

_handler = None


def setup_logging(verbose: bool = False):
    """
    Attaches a Rich console handler writing to stderr to the `harbor` logger.
    Calling it again replaces the previous handler.

    :param verbose: Log at DEBUG instead of WARNING.
    """
    global _handler

    root = logging.getLogger(ROOT_LOGGER)
    root.setLevel(logging.DEBUG if verbose else logging.WARNING)

    if _handler is not None:
        root.removeHandler(_handler)
    _handler = RichHandler(console=Console(stderr=True), show_path=False)
    _handler.setFormatter(logging.Formatter("%(message)s"))
    root.addHandler(_handler)


def get_logger(name: str) -> logging.Logger:
    """
    Returns a logger for a module.

    :param name: Usually `__name__`; anything outside the namespace is nested under it.
    """
    if name != ROOT_LOGGER and not name.startswith(ROOT_LOGGER + "."):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.getLogger(name)
