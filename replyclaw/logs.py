"""Process-wide logging setup on top of loguru."""

import sys

from loguru import logger

_verbose = False


def set_verbose(enabled: bool) -> None:
    global _verbose
    _verbose = bool(enabled)


def should_log_verbose() -> bool:
    return _verbose


def log_verbose(message: str) -> None:
    """Debug line emitted only when verbose logging is on."""
    if _verbose:
        logger.opt(depth=1).debug(message)


def configure_logging(level: str = "INFO", verbose: bool = False) -> None:
    """Reset loguru sinks to a single stderr sink."""
    set_verbose(verbose)
    logger.remove()
    logger.add(
        sys.stderr,
        level="DEBUG" if verbose else level.upper(),
        format="{time:HH:mm:ss} | {level: <7} | {extra[subsystem]: <11} | {message}",
    )
    logger.configure(extra={"subsystem": "replyclaw"})
