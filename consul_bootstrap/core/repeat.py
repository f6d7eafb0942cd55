"""
Retry engine: run an async operation until it succeeds

There is no attempt limit and no overall timeout. A loop only ends when the
operation succeeds, a FatalBootstrapError is raised, or the surrounding task
is cancelled.
"""
import asyncio
import random
from typing import Any, Awaitable, Callable, Optional, TypeVar

from .errors import FatalBootstrapError
from ..utils.logger import get_logger

T = TypeVar("T")

logger = get_logger(__name__)

Operation = Callable[[], Awaitable[Any]]
Handler = Callable[[Any, Optional[BaseException]], Any]


def _pass_through(result: Any, error: Optional[BaseException]) -> Any:
    if error is not None:
        raise error
    return result


async def _sleep(interval_ms: int, jitter_ms: int) -> None:
    delay = interval_ms / 1000
    if jitter_ms:
        delay += random.uniform(0, jitter_ms) / 1000
    # interval_ms == 0 still yields to the event loop but otherwise retries at once
    await asyncio.sleep(delay)


async def repeat_until(
    description: str,
    interval_ms: int,
    operation: Operation,
    handler: Handler,
    *,
    jitter_ms: int = 0,
) -> Any:
    """
    Run operation until handler accepts its outcome

    Args:
        description: Human readable name of the operation, used in logs
        interval_ms: Delay between attempts in milliseconds (0 retries at once)
        operation: Zero-argument coroutine function
        handler: Called as handler(result, error) after every attempt. Its
            return value ends the loop; an exception it raises becomes the
            failure reason for the next attempt.
        jitter_ms: Upper bound of a random delay added to interval_ms

    Returns:
        Whatever handler returned for the accepted attempt

    Raises:
        FatalBootstrapError: raised by operation or handler, never retried
    """
    last_error_message: Optional[str] = None
    failures = 0

    while True:
        try:
            try:
                result = await operation()
            except FatalBootstrapError:
                raise
            except Exception as e:
                accepted = handler(None, e)
            else:
                accepted = handler(result, None)
            if asyncio.iscoroutine(accepted):
                accepted = await accepted
        except FatalBootstrapError:
            raise
        except Exception as e:
            failures += 1
            message = str(e)
            logger.debug("Attempt %d of \"%s\" failed: %r", failures, description, e)
            if message != last_error_message:
                logger.warning(
                    f"Failed to run function \"{description}\". "
                    f"Reason: '{message}'. "
                    f"Will quietly retry every {interval_ms} milliseconds until there's a change."
                )
            last_error_message = message
            await _sleep(interval_ms, jitter_ms)
            continue

        if failures:
            logger.info(f"Successfully ran function \"{description}\" after {failures} failed attempts")
        else:
            logger.info(f"Successfully ran function \"{description}\"")
        return accepted


async def repeat_until_success(
    description: str,
    interval_ms: int,
    operation: Callable[[], Awaitable[T]],
    *,
    jitter_ms: int = 0,
) -> T:
    """Run operation until it returns without raising and return its result"""
    return await repeat_until(description, interval_ms, operation, _pass_through, jitter_ms=jitter_ms)
