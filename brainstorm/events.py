"""Advisory progress events for the driving surface."""

import logging
from collections.abc import Callable

logger = logging.getLogger("brainstorm.progress")

ProgressCallback = Callable[[str], None]


def emit(on_progress: ProgressCallback | None, message: str) -> None:
    """Log a progress event and forward it to the observer, if any."""
    logger.debug(message)
    if on_progress is not None:
        on_progress(message)
