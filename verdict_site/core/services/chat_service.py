from __future__ import annotations

import logging
from typing import Dict, List, Optional

from prompts.prompts import FIRST_TURN_TEMPLATE

from ..models import ChatSession, MessageRole
from .ai_gateway import OpenAIGateway, get_ai_gateway
from .lookups import load_participant_room
from .results import ErrorKind, ServiceResult, store_guarded

logger = logging.getLogger(__name__)


class ChatService:
    """Handles each participant's private conversation with the assistant."""

    def __init__(self, gateway: Optional[OpenAIGateway] = None) -> None:
        self._gateway = gateway

    @property
    def gateway(self) -> OpenAIGateway:
        if self._gateway is None:
            self._gateway = get_ai_gateway()
        return self._gateway

    def _session_for(self, room_id: str, user_id: int) -> ChatSession:
        # get_or_create re-reads on IntegrityError, so two first requests converge on one row
        session, created = ChatSession.objects.get_or_create(room_id=room_id, user_id=user_id)
        if created:
            logger.info("Chat session %s created for user %s in room %s", session.id, user_id, room_id)
        return session

    @store_guarded("loading a chat session")
    def get_or_create_session(self, room_id: str, user_id: int) -> ServiceResult:
        return ServiceResult.success(self._session_for(room_id, user_id))

    @store_guarded("initializing a chat session")
    def init_chat(self, user_id: int, room_id: str) -> ServiceResult:
        room, _, failure = load_participant_room(room_id, user_id)
        if failure:
            return failure
        session = self._session_for(room.id, user_id)
        return ServiceResult.success({"session_id": session.id, "messages": session.history()})

    @store_guarded("sending a chat message")
    def send_message(self, user_id: int, room_id: str, message: str) -> ServiceResult:
        """Store the user's turn, ask the assistant, store and return its reply.

        On the first turn the copy sent to the model is framed with the room's
        guiding question; the stored message is never rewritten. When the model
        call fails the user turn stays stored and no reply is added.
        """

        room, _, failure = load_participant_room(room_id, user_id)
        if failure:
            return failure

        session = self._session_for(room.id, user_id)
        session.append_message(MessageRole.USER, message)

        history = session.history()
        is_first_turn = len(history) == 1

        outgoing: List[Dict[str, str]] = [{"role": turn["role"], "content": turn["content"]} for turn in history]
        if is_first_turn and room.guiding_question:
            outgoing[-1] = {
                "role": MessageRole.USER.value,
                "content": FIRST_TURN_TEMPLATE.format(question=room.guiding_question, message=message),
            }

        reply = self.gateway.generate(outgoing)
        if not reply.ok:
            logger.warning("No assistant reply for user %s in room %s: %s", user_id, room.id, reply.error.message)
            return reply

        session.append_message(MessageRole.ASSISTANT, reply.value)
        return ServiceResult.success({"response": reply.value, "messages": session.history()})

    @store_guarded("reading chat history")
    def get_history(self, user_id: int, room_id: str) -> ServiceResult:
        session = ChatSession.objects.filter(room_id=room_id, user_id=user_id).first()
        if session is None:
            return ServiceResult.fail(ErrorKind.NOT_FOUND, "Chat session not found")
        return ServiceResult.success(
            {"session_id": session.id, "status": session.status, "messages": session.history()}
        )

    @store_guarded("reading the last assistant message")
    def last_assistant_message(self, room_id: str, user_id: int) -> ServiceResult:
        """Most recent assistant turn of the session, newest first."""

        session = ChatSession.objects.filter(room_id=room_id, user_id=user_id).first()
        if session is None:
            return ServiceResult.fail(ErrorKind.NOT_FOUND, "Chat session not found")

        latest = session.messages.filter(role=MessageRole.ASSISTANT).order_by("-created_at", "-id").first()
        if latest is None:
            return ServiceResult.fail(ErrorKind.NOT_FOUND, "No AI responses found in chat")
        return ServiceResult.success(latest.as_dict())
