"""Bearer tokens for the JSON API.

Tokens are signed with the project's SECRET_KEY through django.core.signing and
expire after AUTH_TOKEN_MAX_AGE seconds. The identity is resolved once here and
handed to views as an explicit `user_id` argument.
"""

from __future__ import annotations

import functools
import logging
from typing import Optional

from django.conf import settings
from django.core import signing
from django.http import HttpRequest, JsonResponse

logger = logging.getLogger(__name__)

TOKEN_SALT = "core.auth.bearer"


def issue_token(user) -> str:
    return signing.dumps({"uid": user.pk}, salt=TOKEN_SALT)


def resolve_token(token: str) -> Optional[int]:
    """Return the user id carried by a valid token, or None."""
    try:
        payload = signing.loads(token, salt=TOKEN_SALT, max_age=settings.AUTH_TOKEN_MAX_AGE)
    except signing.SignatureExpired:
        logger.info("Rejected expired bearer token")
        return None
    except signing.BadSignature:
        return None
    user_id = payload.get("uid") if isinstance(payload, dict) else None
    return user_id if isinstance(user_id, int) else None


def _bearer_token(request: HttpRequest) -> Optional[str]:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def token_required(view):
    """Reject unauthenticated calls and pass the caller's id as `user_id`."""

    @functools.wraps(view)
    def wrapper(request: HttpRequest, *args, **kwargs):
        token = _bearer_token(request)
        user_id = resolve_token(token) if token else None
        if user_id is None:
            return JsonResponse(
                {"success": False, "kind": "unauthorized", "message": "Authentication required"},
                status=401,
            )
        return view(request, *args, user_id=user_id, **kwargs)

    return wrapper
