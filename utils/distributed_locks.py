import functools
import logging
import time
import uuid
from contextlib import contextmanager

from django.core.cache import cache

from core.exceptions import ServiceUnavailableException

logger = logging.getLogger(__name__)


class DistributedLock:
    """
    A distributed lock over one or more keys using Django's cache backend.

    Keys are acquired in sorted order so that two callers contending for
    overlapping key sets can never deadlock. Either every key is held or none.
    """

    def __init__(self, keys, expires=60, timeout=10, poll_interval=0.05):
        """
        Initialize a distributed lock.

        Args:
            keys (str | iterable): Lock key or keys, e.g. ``"owner:42"``
            expires (int): The number of seconds after which each key expires
            timeout (float): The maximum number of seconds to wait for all keys
            poll_interval (float): The interval in seconds between attempts
        """
        if isinstance(keys, str):
            keys = [keys]
        self.keys = [f"lock:{key}" for key in sorted(set(keys))]
        self.expires = expires
        self.timeout = timeout
        self.poll_interval = poll_interval
        self._lock_id = str(uuid.uuid4())
        self._held = []

    @property
    def acquired(self):
        return bool(self.keys) and len(self._held) == len(self.keys)

    def acquire(self):
        """
        Attempt to acquire every key.

        Returns:
            bool: True if all keys were acquired, False otherwise
        """
        deadline = time.monotonic() + self.timeout

        for key in self.keys:
            while not cache.add(key, self._lock_id, self.expires):
                if time.monotonic() >= deadline:
                    logger.warning(
                        f"Failed to acquire lock for {key} after {self.timeout} seconds"
                    )
                    self.release()
                    return False
                time.sleep(self.poll_interval)

            logger.debug(f"Lock acquired for {key}")
            self._held.append(key)

        return True

    def release(self):
        """
        Release the keys owned by this instance, in reverse order.

        Returns:
            int: Number of keys released
        """
        released = 0
        for key in reversed(self._held):
            # Only release keys still owned by this instance
            if cache.get(key) == self._lock_id:
                cache.delete(key)
                released += 1
                logger.debug(f"Lock released for {key}")
            else:
                logger.warning(
                    f"Lock for {key} expired or was taken over before release"
                )
        self._held = []
        return released


@contextmanager
def distributed_lock(keys, expires=60, timeout=10, poll_interval=0.05):
    """
    Hold a distributed lock for the duration of the block.

    Raises:
        ServiceUnavailableException: If the keys cannot be acquired in time
    """
    lock = DistributedLock(keys, expires, timeout, poll_interval)
    if not lock.acquire():
        raise ServiceUnavailableException(
            f"Could not acquire lock for {', '.join(lock.keys)} within {timeout} seconds"
        )
    try:
        yield lock
    finally:
        lock.release()


def with_distributed_lock(key_func=None, expires=60, timeout=10, poll_interval=0.05):
    """
    Decorator that runs a function only while holding a distributed lock.

    If the lock is already held elsewhere the call is skipped and returns
    None, which suits periodic jobs where a concurrent run makes this one
    redundant.

    Args:
        key_func (callable, optional): Returns the lock key(s) from the call
            arguments. Defaults to the function's qualified name.
    """

    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            keys = key_func(*args, **kwargs) if key_func else func.__qualname__

            lock = DistributedLock(keys, expires, timeout, poll_interval)
            if not lock.acquire():
                logger.warning(f"Failed to acquire lock for {keys}, execution skipped")
                return None
            try:
                return func(*args, **kwargs)
            finally:
                lock.release()

        return wrapper

    return decorator
