"""Room lifecycle: creation, joining, conclusion submission and status projection."""

from __future__ import annotations

import logging
from typing import Optional

from django.contrib.auth.hashers import check_password, make_password
from django.db import IntegrityError, transaction
from django.utils import timezone

from ..models import (
    MAX_PARTICIPANTS,
    ChatSession,
    ChatSessionStatus,
    Conclusion,
    Participant,
    Room,
    RoomStatus,
)
from .chat_service import ChatService
from .lookups import NOT_A_PARTICIPANT, find_user, load_participant_room
from .results import ErrorKind, ServiceResult, store_guarded

logger = logging.getLogger(__name__)

ALREADY_SUBMITTED = "You have already submitted a conclusion"


class RoomService:
    """Owns the room state machine: active -> comparing -> completed.

    join and submit lock the room row for the duration of their transaction,
    which makes the "check, write, re-evaluate" sequence per-room serial. The
    participant flag and the status are additionally written with conditional
    updates so that a lost race shows up as zero updated rows, never as a
    second write.
    """

    def __init__(self, chat_service: Optional[ChatService] = None) -> None:
        self.chat_service = chat_service or ChatService()

    # ------------------------------------------------------------------
    # Room membership
    # ------------------------------------------------------------------

    @store_guarded("creating a room")
    def create_room(self, creator_user_id: int, guiding_question: str, password: str) -> ServiceResult:
        user = find_user(creator_user_id)
        if user is None:
            return ServiceResult.fail(ErrorKind.NOT_FOUND, "User not found")

        with transaction.atomic():
            room = Room.objects.create(
                guiding_question=guiding_question,
                password=make_password(password),
                creator_user_id=user.pk,
            )
            Participant.objects.create(
                room=room,
                user_id=user.pk,
                username=user.get_username(),
                position=0,
            )

        logger.info("Room %s created by user %s", room.id, user.pk)
        return ServiceResult.success({"room_id": room.id})

    @store_guarded("joining a room")
    def join_room(self, user_id: int, room_id: str, password: str) -> ServiceResult:
        with transaction.atomic():
            room = Room.objects.select_for_update().filter(pk=room_id).first()
            if room is None:
                return ServiceResult.fail(ErrorKind.NOT_FOUND, "Room not found")

            user = find_user(user_id)
            if user is None:
                return ServiceResult.fail(ErrorKind.NOT_FOUND, "User not found")

            if not check_password(password, room.password):
                return ServiceResult.fail(ErrorKind.UNAUTHORIZED, "Invalid password")

            participants = room.ordered_participants()
            if any(p.user_id == user.pk for p in participants):
                return ServiceResult.fail(ErrorKind.CONFLICT, "You are already in this room")
            if len(participants) >= MAX_PARTICIPANTS:
                return ServiceResult.fail(ErrorKind.CONFLICT, "Room is full")

            try:
                with transaction.atomic():
                    Participant.objects.create(
                        room=room,
                        user_id=user.pk,
                        username=user.get_username(),
                        position=len(participants),
                    )
            except IntegrityError:
                # The position/user constraints caught a join that raced past the lock
                if room.participants.filter(user_id=user.pk).exists():
                    return ServiceResult.fail(ErrorKind.CONFLICT, "You are already in this room")
                return ServiceResult.fail(ErrorKind.CONFLICT, "Room is full")

        logger.info("User %s joined room %s", user.pk, room.id)
        return ServiceResult.success({"room_id": room.id})

    # ------------------------------------------------------------------
    # Conclusions
    # ------------------------------------------------------------------

    @store_guarded("submitting a conclusion")
    def submit_conclusion(self, user_id: int, room_id: str, conclusion_text: str) -> ServiceResult:
        """Record the caller's conclusion and move the room to comparing once both are in.

        `is_complete` reports whether every participant has now submitted;
        `triggered_comparison` is true only for the one call whose status
        update moved the room out of active.
        """

        with transaction.atomic():
            room = Room.objects.select_for_update().filter(pk=room_id).first()
            if room is None:
                return ServiceResult.fail(ErrorKind.NOT_FOUND, "Room not found")

            participant = room.find_participant(user_id)
            if participant is None:
                return ServiceResult.fail(ErrorKind.FORBIDDEN, NOT_A_PARTICIPANT)
            if participant.has_submitted:
                return ServiceResult.fail(ErrorKind.CONFLICT, ALREADY_SUBMITTED)

            submitted_at = timezone.now()
            marked = Participant.objects.filter(pk=participant.pk, has_submitted=False).update(
                has_submitted=True,
                submitted_at=submitted_at,
            )
            if not marked:
                logger.info("Duplicate submission by user %s in room %s rejected", user_id, room.id)
                return ServiceResult.fail(ErrorKind.CONFLICT, ALREADY_SUBMITTED)

            Conclusion.objects.create(
                room=room,
                user_id=participant.user_id,
                content=conclusion_text,
                submitted_at=submitted_at,
            )
            ChatSession.objects.filter(room_id=room.id, user_id=participant.user_id).update(
                status=ChatSessionStatus.CONCLUDED
            )

            participants = room.ordered_participants()
            is_complete = len(participants) >= MAX_PARTICIPANTS and all(p.has_submitted for p in participants)
            triggered = False
            if is_complete:
                triggered = (
                    Room.objects.filter(pk=room.pk, status=RoomStatus.ACTIVE).update(status=RoomStatus.COMPARING)
                    == 1
                )

        logger.info("User %s submitted a conclusion in room %s", participant.user_id, room.id)
        if triggered:
            logger.info("Room %s moved to %s", room.id, RoomStatus.COMPARING)
        return ServiceResult.success({"is_complete": is_complete, "triggered_comparison": triggered})

    @store_guarded("submitting a conclusion from chat")
    def submit_conclusion_from_chat(self, user_id: int, room_id: str) -> ServiceResult:
        """Use the caller's latest assistant reply as their conclusion."""

        _, _, failure = load_participant_room(room_id, user_id)
        if failure:
            return failure

        last = self.chat_service.last_assistant_message(room_id, user_id)
        if not last.ok:
            return ServiceResult.fail(ErrorKind.PRECONDITION, "No AI responses found in chat")
        return self.submit_conclusion(user_id, room_id, last.value["content"])

    # ------------------------------------------------------------------
    # Read-only projections
    # ------------------------------------------------------------------

    @store_guarded("reading room status")
    def get_status(self, user_id: int, room_id: str) -> ServiceResult:
        room, participant, failure = load_participant_room(room_id, user_id)
        if failure:
            return failure

        participants = room.ordered_participants()
        return ServiceResult.success(
            {
                "id": room.id,
                "guiding_question": room.guiding_question,
                "created": room.created_at.isoformat(),
                "participant_count": len(participants),
                "conclusion_count": room.conclusions.count(),
                "room_status": room.status,
                "has_submitted": participant.has_submitted,
                "participants": [
                    {"username": p.username, "has_submitted": p.has_submitted} for p in participants
                ],
                "comparison_session_id": room.comparison_session_id,
                "final_verdict": room.final_verdict,
            }
        )

    @store_guarded("reading session info")
    def get_session_info(self, user_id: int, room_id: str) -> ServiceResult:
        """Return the room creator's chat session id for any participant."""

        room, _, failure = load_participant_room(room_id, user_id)
        if failure:
            return failure

        creator_session = ChatSession.objects.filter(room_id=room.id, user_id=room.creator_user_id).first()
        if creator_session is None:
            return ServiceResult.fail(ErrorKind.NOT_FOUND, "No active chat session found for this room")

        return ServiceResult.success(
            {
                "session_id": creator_session.id,
                "room_status": room.status,
                "guiding_question": room.guiding_question,
            }
        )
