from __future__ import annotations

import functools
import time

from django.conf import settings
from django.core.cache import cache
from django.http import HttpRequest, JsonResponse

WINDOW_SECONDS = 60


def allow_ai_request(user_id: int) -> bool:
    """Count one AI call for this user in the current one-minute window."""

    window = int(time.time() // WINDOW_SECONDS)
    key = f"ai-throttle:{user_id}:{window}"
    cache.add(key, 0, timeout=WINDOW_SECONDS)
    try:
        count = cache.incr(key)
    except ValueError:
        # Key expired between add and incr
        cache.set(key, 1, timeout=WINDOW_SECONDS)
        count = 1
    return count <= settings.AI_REQUESTS_PER_MINUTE


def ai_rate_limited(view):
    """Apply the per-user AI request budget to a token_required view."""

    @functools.wraps(view)
    def wrapper(request: HttpRequest, *args, user_id: int, **kwargs):
        if not allow_ai_request(user_id):
            return JsonResponse(
                {"success": False, "kind": "rate_limited", "message": "Too many AI requests, please try again later."},
                status=429,
            )
        return view(request, *args, user_id=user_id, **kwargs)

    return wrapper
