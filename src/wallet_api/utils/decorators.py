"""Timing and retry decorators shared by the services."""
import functools
import logging
import time
from typing import Any, Callable, Optional, Tuple, Type, TypeVar, cast

logger = logging.getLogger(__name__)

F = TypeVar('F', bound=Callable[..., Any])


def log_execution_time(func: F) -> F:
    """Log how long each call of ``func`` took, and whether it raised."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        started = time.perf_counter()
        try:
            return func(*args, **kwargs)
        except Exception as e:
            logger.warning(
                f"{func.__qualname__} raised {type(e).__name__} after "
                f"{time.perf_counter() - started:.3f}s: {e}"
            )
            raise
        finally:
            logger.debug(f"{func.__qualname__} took {time.perf_counter() - started:.3f}s")
    return cast(F, wrapper)


def retry(
    max_attempts: int = 3,
    delay: float = 0.0,
    backoff: float = 2.0,
    exceptions: Tuple[Type[BaseException], ...] = (Exception,),
    logger_name: Optional[str] = None,
):
    """Re-run the wrapped function when it raises one of ``exceptions``.

    Args:
        max_attempts: Total number of calls, counting the first one
        delay: Seconds to wait before the second call; 0 retries immediately
        backoff: Multiplier applied to the wait after every failed call
        exceptions: Exception types worth another attempt; anything else propagates
        logger_name: Logger to report retries on (defaults to this module's)

    The last exception is re-raised once the attempts are used up.
    """
    retry_logger = logging.getLogger(logger_name) if logger_name else logger

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            wait = delay
            for attempt in range(1, max_attempts + 1):
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    if attempt == max_attempts:
                        retry_logger.error(f"{func.__name__} gave up after {max_attempts} attempts: {e}")
                        raise
                    retry_logger.info(f"{func.__name__} attempt {attempt}/{max_attempts} failed: {e}")
                    if wait:
                        time.sleep(wait)
                        wait *= backoff
        return cast(F, wrapper)

    return decorator
