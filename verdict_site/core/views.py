from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional, Tuple

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import DatabaseError
from django.http import HttpRequest, JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from .auth import issue_token, token_required
from .forms import (
    ChatMessageForm,
    ConclusionForm,
    CreateRoomForm,
    JoinRoomForm,
    LoginForm,
    SignupForm,
)
from .services.chat_service import ChatService
from .services.comparison_service import ComparisonService
from .services.results import ErrorKind, ServiceResult
from .services.room_service import RoomService
from .throttle import ai_rate_limited

logger = logging.getLogger(__name__)

STATUS_BY_KIND = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.UNAUTHORIZED: 401,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.CONFLICT: 409,
    ErrorKind.PRECONDITION: 400,
    ErrorKind.DATA_INTEGRITY: 500,
    ErrorKind.UPSTREAM_FAILURE: 502,
    ErrorKind.STORE_FAILURE: 503,
}


def _parse_json(request: HttpRequest) -> Tuple[Optional[Dict[str, Any]], Optional[JsonResponse]]:
    if not request.body:
        return {}, None
    try:
        data = json.loads(request.body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None, JsonResponse({"success": False, "kind": "invalid_request", "message": "Invalid JSON"}, status=400)
    if not isinstance(data, dict):
        return None, JsonResponse(
            {"success": False, "kind": "invalid_request", "message": "Expected a JSON object"}, status=400
        )
    return data, None


def _validated(request: HttpRequest, form_class):
    """Return (cleaned_data, None) or (None, error response)."""

    data, error = _parse_json(request)
    if error:
        return None, error
    form = form_class(data)
    if not form.is_valid():
        return None, JsonResponse(
            {
                "success": False,
                "kind": "invalid_request",
                "message": "Validation error",
                "errors": {field: [str(e) for e in errs] for field, errs in form.errors.items()},
            },
            status=400,
        )
    return form.cleaned_data, None


def _respond(result: ServiceResult, success_status: int = 200, message: str = "") -> JsonResponse:
    if result.ok:
        payload: Dict[str, Any] = {"success": True}
        if message:
            payload["message"] = message
        if isinstance(result.value, dict):
            payload.update(result.value)
        return JsonResponse(payload, status=success_status)
    return JsonResponse({"success": False, **result.error.as_dict()}, status=STATUS_BY_KIND[result.error.kind])


# ----------------------------------------------------------------------
# Accounts
# ----------------------------------------------------------------------


@csrf_exempt
@require_http_methods(["POST"])
def signup_api(request: HttpRequest) -> JsonResponse:
    cleaned, error = _validated(request, SignupForm)
    if error:
        return error

    User = get_user_model()
    try:
        user = User.objects.create_user(
            username=cleaned["username"],
            email=cleaned["email"],
            password=cleaned["password"],
        )
    except DatabaseError:
        logger.exception("Unable to create user %s", cleaned["username"])
        return JsonResponse(
            {"success": False, "kind": ErrorKind.STORE_FAILURE.value, "message": "Error creating user"}, status=503
        )

    return JsonResponse(
        {"success": True, "message": "User created successfully", "token": issue_token(user)},
        status=201,
    )


@csrf_exempt
@require_http_methods(["POST"])
def login_api(request: HttpRequest) -> JsonResponse:
    cleaned, error = _validated(request, LoginForm)
    if error:
        return error

    user = get_user_model().objects.filter(email__iexact=cleaned["email"]).first()
    if user is None or not user.is_active or not user.check_password(cleaned["password"]):
        return JsonResponse(
            {"success": False, "kind": ErrorKind.UNAUTHORIZED.value, "message": "Invalid credentials"}, status=401
        )
    return JsonResponse({"success": True, "message": "Login successful", "token": issue_token(user)})


# ----------------------------------------------------------------------
# Rooms
# ----------------------------------------------------------------------


@csrf_exempt
@require_http_methods(["POST"])
@token_required
def create_room_api(request: HttpRequest, user_id: int) -> JsonResponse:
    cleaned, error = _validated(request, CreateRoomForm)
    if error:
        return error
    result = RoomService().create_room(user_id, cleaned["guiding_question"], cleaned["password"])
    return _respond(result, success_status=201, message="Room created successfully")


@csrf_exempt
@require_http_methods(["POST"])
@token_required
def join_room_api(request: HttpRequest, room_id: str, user_id: int) -> JsonResponse:
    cleaned, error = _validated(request, JoinRoomForm)
    if error:
        return error
    result = RoomService().join_room(user_id, room_id, cleaned["password"])
    return _respond(result, message="Successfully joined room")


@require_http_methods(["GET"])
@token_required
def room_status_api(request: HttpRequest, room_id: str, user_id: int) -> JsonResponse:
    return _respond(RoomService().get_status(user_id, room_id))


@require_http_methods(["GET"])
@token_required
def session_info_api(request: HttpRequest, room_id: str, user_id: int) -> JsonResponse:
    return _respond(RoomService().get_session_info(user_id, room_id))


def _after_submission(result: ServiceResult, room_id: str) -> None:
    if result.ok and result.value["triggered_comparison"] and settings.AUTO_COMPARE_ON_COMPLETE:
        ComparisonService().start_comparison(room_id)


@csrf_exempt
@require_http_methods(["POST"])
@token_required
def submit_conclusion_api(request: HttpRequest, room_id: str, user_id: int) -> JsonResponse:
    cleaned, error = _validated(request, ConclusionForm)
    if error:
        return error
    result = RoomService().submit_conclusion(user_id, room_id, cleaned["conclusion"])
    _after_submission(result, room_id)
    return _respond(result, message="Conclusion submitted successfully")


@csrf_exempt
@require_http_methods(["POST"])
@token_required
def conclude_from_chat_api(request: HttpRequest, room_id: str, user_id: int) -> JsonResponse:
    result = RoomService().submit_conclusion_from_chat(user_id, room_id)
    _after_submission(result, room_id)
    return _respond(result, message="Conclusion set from last AI response")


# ----------------------------------------------------------------------
# Chat
# ----------------------------------------------------------------------


@csrf_exempt
@require_http_methods(["POST"])
@token_required
def init_chat_api(request: HttpRequest, room_id: str, user_id: int) -> JsonResponse:
    return _respond(ChatService().init_chat(user_id, room_id))


@csrf_exempt
@require_http_methods(["POST"])
@token_required
@ai_rate_limited
def send_message_api(request: HttpRequest, room_id: str, user_id: int) -> JsonResponse:
    cleaned, error = _validated(request, ChatMessageForm)
    if error:
        return error
    return _respond(ChatService().send_message(user_id, room_id, cleaned["message"]))


@require_http_methods(["GET"])
@token_required
def chat_history_api(request: HttpRequest, room_id: str, user_id: int) -> JsonResponse:
    return _respond(ChatService().get_history(user_id, room_id))


# ----------------------------------------------------------------------
# Comparison
# ----------------------------------------------------------------------


@csrf_exempt
@require_http_methods(["POST"])
@token_required
@ai_rate_limited
def compare_room_api(request: HttpRequest, room_id: str, user_id: int) -> JsonResponse:
    return _respond(ComparisonService().compare_room(room_id, user_id=user_id))
