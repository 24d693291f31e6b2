from __future__ import annotations

from typing import Optional, Tuple

from django.contrib.auth import get_user_model

from ..models import Participant, Room
from .results import ErrorKind, ServiceResult

NOT_A_PARTICIPANT = "You are not a participant in this room"


def find_user(user_id):
    """Return the user with this id, or None."""
    return get_user_model().objects.filter(pk=user_id).first()


def load_participant_room(
    room_id: str, user_id: int
) -> Tuple[Optional[Room], Optional[Participant], Optional[ServiceResult]]:
    """Fetch a room together with the caller's membership.

    The third element is a ready failure result (NotFound or Forbidden) when
    either lookup misses.
    """
    room = Room.objects.filter(pk=room_id).first()
    if room is None:
        return None, None, ServiceResult.fail(ErrorKind.NOT_FOUND, "Room not found")
    participant = room.find_participant(user_id)
    if participant is None:
        return room, None, ServiceResult.fail(ErrorKind.FORBIDDEN, NOT_A_PARTICIPANT)
    return room, participant, None
