"""Tag-based invalidation for memoized read views."""

from __future__ import annotations

from collections import defaultdict
from typing import Callable

from flask import current_app

from eventdesk.extensions import cache

SCHOOLS = 'schools'
ADMIN_DASHBOARD = 'admin-dashboard'
EVENTS = 'events'

_tagged: dict[str, list[Callable]] = defaultdict(list)


def cached_view(tag: str, timeout: int | None = None):
    """Memoize a read view and register it under an invalidation tag."""
    def decorator(func):
        memoized = cache.memoize(timeout=timeout)(func)
        _tagged[tag].append(memoized)
        return memoized
    return decorator


def invalidate(*tags: str) -> None:
    for tag in tags:
        for view in _tagged.get(tag, []):
            try:
                cache.delete_memoized(view)
            except Exception as exc:
                # entries still expire after CACHE_DEFAULT_TIMEOUT
                current_app.logger.warning(f"Cache invalidation for '{tag}' failed: {exc}")


def invalidate_registration_views() -> None:
    invalidate(SCHOOLS, ADMIN_DASHBOARD, EVENTS)


__all__ = [
    'SCHOOLS',
    'ADMIN_DASHBOARD',
    'EVENTS',
    'cached_view',
    'invalidate',
    'invalidate_registration_views',
]
