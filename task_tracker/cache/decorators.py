from functools import wraps
from typing import Callable

from task_tracker.cache.layer import task_cache


def async_cached(key_builder: Callable[..., str], ttl: int = None):
    """
    Read-through caching for an async loader. key_builder receives the same
    args/kwargs. Models are cached as their JSON-mode dump, so callers always
    get a dict back.
    Example:
      @async_cached(lambda task_id, *_, **__: f"task:{task_id}")
      async def load_task(task_id, db): ...
    """

    def decorator(fn: Callable):
        @wraps(fn)
        async def wrapper(*args, **kwargs):
            async def loader():
                value = await fn(*args, **kwargs)
                if hasattr(value, "model_dump"):
                    return value.model_dump(mode="json")
                return value

            return await task_cache.get(key_builder(*args, **kwargs), loader=loader, ttl=ttl)

        return wrapper

    return decorator


def async_invalidate(key_builder: Callable[..., str]):
    """Invalidate the key once the wrapped write has finished."""

    def decorator(fn: Callable):
        @wraps(fn)
        async def wrapper(*args, **kwargs):
            try:
                return await fn(*args, **kwargs)
            finally:
                await task_cache.invalidate(key_builder(*args, **kwargs))

        return wrapper

    return decorator
