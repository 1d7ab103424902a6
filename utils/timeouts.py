"""
Bounded calls to external collaborators.

The durable store, calendar providers and notification backends are outside
our control, so every call into them goes through ``call_with_timeout``.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout

from core.exceptions import APIException, ExternalServiceException

logger = logging.getLogger(__name__)

# Shared pool; a collaborator that hangs past its timeout keeps one worker busy
# until it returns on its own.
_executor = ThreadPoolExecutor(max_workers=8, thread_name_prefix="collaborator")


def call_with_timeout(func, *args, timeout=5.0, collaborator="collaborator", **kwargs):
    """
    Run ``func`` in a worker thread and wait at most ``timeout`` seconds.

    Args:
        func: Callable to invoke
        timeout (float): Seconds to wait for the result
        collaborator (str): Name used in errors and logs

    Returns:
        Whatever ``func`` returns

    Raises:
        ExternalServiceException: If ``func`` fails or does not finish in time.
            Engine exceptions raised by ``func`` propagate unchanged.
    """
    future = _executor.submit(func, *args, **kwargs)
    try:
        return future.result(timeout=timeout)
    except FutureTimeout:
        future.cancel()
        logger.error(f"{collaborator} did not respond within {timeout} seconds")
        raise ExternalServiceException(
            f"{collaborator} timed out after {timeout} seconds",
            collaborator=collaborator,
        )
    except APIException:
        raise
    except Exception as e:
        logger.error(f"{collaborator} call failed: {e}")
        raise ExternalServiceException(str(e), collaborator=collaborator)
