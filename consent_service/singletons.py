"""Process-wide cached instances (the database handle, the loaded config) that may expire."""
import threading
from datetime import timedelta

from consent_service.clock import CLOCK

SQL_DATABASE_INDEX = 0
MAIN_CONFIG_INDEX = 1

_lock = threading.RLock()
# index -> (instance, expiration time or None)
_instances = {}


def reset_for_tests():
    with _lock:
        _instances.clear()


def _cached(cache_index):
    instance, expires = _instances.get(cache_index, (None, None))
    if instance is not None and (expires is None or expires >= CLOCK.now()):
        return instance
    return None


def get(cache_index, constructor, cache_ttl_seconds=None):
    """Returns the instance cached under cache_index, building it with constructor() when it is
    missing or older than cache_ttl_seconds."""
    instance = _cached(cache_index)
    if instance is not None:
        return instance

    with _lock:
        instance = _cached(cache_index)
        if instance is None:
            instance = constructor()
            expires = CLOCK.now() + timedelta(seconds=cache_ttl_seconds) if cache_ttl_seconds is not None else None
            _instances[cache_index] = (instance, expires)
        return instance


def invalidate(cache_index):
    with _lock:
        _instances.pop(cache_index, None)
