"""Decorator utilities for cross-cutting concerns."""
import time
import logging
import functools
from typing import Any, Callable, TypeVar, cast

# Setup logging
logger = logging.getLogger(__name__)

F = TypeVar('F', bound=Callable[..., Any])


def log_execution_time(func: F) -> F:
    """Decorator to log how long a Lambda handler ran.

    Expects the `(event, context)` handler signature; the Lambda request id is
    taken from the context when there is one.

    Args:
        func: The handler to decorate

    Returns:
        Decorated handler that logs execution time and re-raises failures
    """
    @functools.wraps(func)
    def wrapper(event, context=None, *args, **kwargs):
        request_id = getattr(context, 'aws_request_id', None) or 'local'
        start_time = time.time()
        try:
            result = func(event, context, *args, **kwargs)
            duration = time.time() - start_time
            logger.info(f"{func.__module__}.{func.__name__} [{request_id}] completed in {duration:.2f}s")
            return result
        except Exception as e:
            duration = time.time() - start_time
            logger.error(f"{func.__module__}.{func.__name__} [{request_id}] failed after {duration:.2f}s: {str(e)}")
            raise
    return cast(F, wrapper)
