"""Produces the final verdict for a room exactly once."""

from __future__ import annotations

import logging
import threading
import uuid
from datetime import timedelta
from typing import Dict, List, Optional

from django.conf import settings
from django.db import close_old_connections
from django.db.models import Q
from django.utils import timezone

from ..models import MAX_PARTICIPANTS, Room, RoomStatus
from .ai_gateway import OpenAIGateway, get_ai_gateway
from .lookups import NOT_A_PARTICIPANT
from .results import ErrorKind, ServiceResult, store_guarded

NOT_READY = "Room is not ready for comparison. Both participants must submit their conclusions first."

# Slack added on top of the gateway call budget before a claim counts as abandoned
LEASE_MARGIN_SECONDS = 30


def claim_lease_seconds() -> float:
    """How long a comparison claim stays live.

    Never shorter than one worst-case gateway call, so a run that is still
    waiting on the model cannot have its claim taken over.
    """
    budget = settings.OPENAI_CALL_BUDGET_SECONDS + LEASE_MARGIN_SECONDS
    return max(float(settings.COMPARISON_LEASE_SECONDS), budget)


class ComparisonService:
    """Runs the adjudication step once both conclusions are in.

    A run first claims the room by writing a fresh comparison_session_id with
    a conditional update (status still comparing, no live claim). Only the
    claimant calls the model, and the verdict write is conditioned on the same
    claim, so repeated or concurrent calls collapse into one model call and one
    verdict. A failed call releases the claim and leaves the room comparing.
    """

    def __init__(self, gateway: Optional[OpenAIGateway] = None) -> None:
        self._gateway = gateway
        self.logger = logging.getLogger(__name__)

    @property
    def gateway(self) -> OpenAIGateway:
        if self._gateway is None:
            self._gateway = get_ai_gateway()
        return self._gateway

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def start_comparison(self, room_id: str, in_background: bool = True) -> Optional[ServiceResult]:
        """Produce the verdict for a room that just moved to comparing.

        Submissions use the default and return at once while a daemon thread
        adjudicates; clients see the verdict through the room status. Passing
        in_background=False adjudicates on the caller's thread and returns the
        compare_room result.
        """

        if not in_background:
            return self.compare_room(room_id)

        thread = threading.Thread(
            target=self._adjudicate_in_background,
            args=(room_id,),
            daemon=True,
        )
        thread.start()
        return None

    @store_guarded("comparing conclusions")
    def compare_room(self, room_id: str, user_id: Optional[int] = None) -> ServiceResult:
        room = Room.objects.filter(pk=room_id).first()
        if room is None:
            return ServiceResult.fail(ErrorKind.NOT_FOUND, "Room not found")

        participants = {p.user_id: p for p in room.ordered_participants()}
        if user_id is not None and user_id not in participants:
            return ServiceResult.fail(ErrorKind.FORBIDDEN, NOT_A_PARTICIPANT)

        if room.status != RoomStatus.COMPARING:
            return self._not_comparing(room)

        conclusions = list(room.conclusions.order_by("submitted_at", "id"))
        if len(conclusions) != MAX_PARTICIPANTS:
            self.logger.error(
                "Room %s is comparing with %d conclusions and %d participants",
                room.id,
                len(conclusions),
                len(participants),
            )
            return ServiceResult.fail(ErrorKind.DATA_INTEGRITY, "Invalid number of conclusions for comparison")

        authors = [participants.get(conclusion.user_id) for conclusion in conclusions]
        if None in authors:
            self.logger.error(
                "Room %s has conclusions from non-participants: conclusion authors %s, participants %s",
                room.id,
                [conclusion.user_id for conclusion in conclusions],
                sorted(participants),
            )
            return ServiceResult.fail(ErrorKind.DATA_INTEGRITY, "Could not find participants for conclusions")

        token = self._claim(room)
        if token is None:
            return self._claim_refused(room.pk)

        first, second = conclusions
        reply = self.gateway.compare(
            first.content,
            second.content,
            room.guiding_question,
            authors[0].username,
            authors[1].username,
        )
        if not reply.ok:
            self._release(room.pk, token)
            self.logger.warning("Comparison for room %s failed: %s", room.id, reply.error.message)
            return reply

        written = Room.objects.filter(
            pk=room.pk,
            status=RoomStatus.COMPARING,
            comparison_session_id=token,
        ).update(
            status=RoomStatus.COMPLETED,
            final_verdict=reply.value,
            completed_at=timezone.now(),
        )
        if not written:
            self.logger.warning("Comparison claim %s on room %s expired before the verdict was stored", token, room.id)
            return ServiceResult.fail(ErrorKind.PRECONDITION, "Comparison claim expired before the verdict was stored")

        self.logger.info("Room %s moved to %s", room.id, RoomStatus.COMPLETED)
        return ServiceResult.success(
            {
                "comparison": reply.value,
                "guiding_question": room.guiding_question,
                "conclusions": self._describe(conclusions, authors),
            }
        )

    # ------------------------------------------------------------------
    # Execution helpers
    # ------------------------------------------------------------------

    def _adjudicate_in_background(self, room_id: str) -> None:
        """Adjudicate off the request thread on its own database connection."""

        close_old_connections()
        try:
            result = self.compare_room(room_id)
            if not result.ok:
                self.logger.warning(
                    "Background comparison for room %s ended with %s: %s",
                    room_id,
                    result.error.kind.value,
                    result.error.message,
                )
        finally:
            close_old_connections()

    def _claim(self, room: Room) -> Optional[str]:
        now = timezone.now()
        abandoned_before = now - timedelta(seconds=claim_lease_seconds())
        token = str(uuid.uuid4())
        claimed = (
            Room.objects.filter(pk=room.pk, status=RoomStatus.COMPARING)
            .filter(Q(comparison_session_id__isnull=True) | Q(comparison_started_at__lt=abandoned_before))
            .update(comparison_session_id=token, comparison_started_at=now)
        )
        return token if claimed else None

    def _release(self, room_pk: str, token: str) -> None:
        Room.objects.filter(
            pk=room_pk,
            status=RoomStatus.COMPARING,
            comparison_session_id=token,
        ).update(comparison_session_id=None, comparison_started_at=None)

    def _not_comparing(self, room: Room) -> ServiceResult:
        if room.status == RoomStatus.COMPLETED:
            return ServiceResult.fail(ErrorKind.PRECONDITION, "Conclusions in this room have already been compared")
        return ServiceResult.fail(ErrorKind.PRECONDITION, NOT_READY)

    def _claim_refused(self, room_pk: str) -> ServiceResult:
        current = Room.objects.filter(pk=room_pk).first()
        if current is not None and current.status != RoomStatus.COMPARING:
            return self._not_comparing(current)
        return ServiceResult.fail(ErrorKind.PRECONDITION, "A comparison for this room is already in progress")

    def _describe(self, conclusions, authors) -> List[Dict[str, object]]:
        return [
            {
                "user_id": conclusion.user_id,
                "username": author.username,
                "conclusion": conclusion.content,
                "submitted_at": conclusion.submitted_at.isoformat(),
            }
            for conclusion, author in zip(conclusions, authors)
        ]
