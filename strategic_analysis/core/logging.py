"""
Logging utilities for the API process.

Provides a consistent logging format and the handler that turns unhandled
event-loop faults into a logged process exit.
"""

import asyncio
import logging
import os
import sys
from typing import Any

_FATAL_EXIT_CODE = 1

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging with the service-wide format."""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        stream=sys.stdout,
    )
    # The Google client stack is chatty at INFO.
    logging.getLogger("google").setLevel(logging.WARNING)


def _fatal_loop_exception(loop: asyncio.AbstractEventLoop, context: dict[str, Any]) -> None:
    exc = context.get("exception")
    if exc is None:
        # Transport and unclosed-resource notices carry no exception.
        loop.default_exception_handler(context)
        return
    logger.critical(
        "Unhandled asynchronous fault: %s",
        context.get("message", "no message"),
        exc_info=exc,
    )
    logging.shutdown()
    os._exit(_FATAL_EXIT_CODE)


def install_fatal_exception_handler(loop: asyncio.AbstractEventLoop) -> None:
    """Terminate the process when the loop reports an unhandled exception.

    Contexts without an exception are passed to the default handler.
    """
    loop.set_exception_handler(_fatal_loop_exception)


__all__ = ["configure_logging", "install_fatal_exception_handler"]
