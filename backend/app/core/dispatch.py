"""
Best-effort dispatch for side effects (email, push, broadcast).

A side effect never fails the primary mutation that triggered it: failures
are logged at the point of the call and reported as ``False``.
"""

import logging
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger(__name__)

FailureLogger = Callable[[str, BaseException], None]


def log_failure(description: str, error: BaseException) -> None:
    """Default failure logger."""
    logger.warning(f"Best-effort {description} failed: {error!r}")


async def best_effort(
    action: Awaitable[Any],
    description: str,
    on_failure: Optional[FailureLogger] = None,
) -> bool:
    """
    Await ``action`` and swallow any exception it raises.

    Returns True when the action completed, False otherwise.
    """
    try:
        await action
        return True
    except Exception as e:
        (on_failure or log_failure)(description, e)
        return False


def best_effort_task(
    factory: Callable[..., Awaitable[Any]],
    *args: Any,
    description: str,
    **kwargs: Any,
) -> Callable[[], Awaitable[bool]]:
    """
    Wrap a coroutine factory for FastAPI ``BackgroundTasks``.

    The coroutine is created lazily so nothing runs until the response
    has been sent.
    """
    async def run() -> bool:
        return await best_effort(factory(*args, **kwargs), description)

    return run
