from __future__ import annotations

import uuid

from django.db import models
from django.utils import timezone

MAX_PARTICIPANTS = 2


def new_opaque_id() -> str:
    return str(uuid.uuid4())


class RoomStatus(models.TextChoices):
    ACTIVE = "active", "Active"
    COMPARING = "comparing", "Comparing"
    COMPLETED = "completed", "Completed"


class Room(models.Model):
    """A password-gated discussion room pairing two participants around one question.

    Status only moves forward: active -> comparing -> completed. Every write
    that advances it is a conditional update on the previous status, so the
    row itself is the serialization point for both participants.

    comparison_session_id doubles as the claim token of the comparison run:
    it is set before the AI call and kept once the verdict is stored.
    """

    id = models.CharField(max_length=36, primary_key=True, default=new_opaque_id, editable=False)
    guiding_question = models.TextField()
    password = models.CharField(max_length=128)
    creator_user_id = models.PositiveIntegerField()
    status = models.CharField(max_length=16, choices=RoomStatus.choices, default=RoomStatus.ACTIVE)
    final_verdict = models.TextField(null=True, blank=True)
    comparison_session_id = models.CharField(max_length=36, null=True, blank=True)
    comparison_started_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ("-created_at",)

    def __str__(self) -> str:
        return f"Room<{self.id}, {self.status}>"

    def ordered_participants(self) -> list["Participant"]:
        """Participants in join order; the first one is the creator."""
        return list(self.participants.order_by("position"))

    def find_participant(self, user_id: int) -> "Participant | None":
        return self.participants.filter(user_id=user_id).first()


class Participant(models.Model):
    room = models.ForeignKey(Room, on_delete=models.CASCADE, related_name="participants")
    user_id = models.PositiveIntegerField()
    # Display name captured when the user entered the room
    username = models.CharField(max_length=150)
    position = models.PositiveSmallIntegerField()
    has_submitted = models.BooleanField(default=False)
    submitted_at = models.DateTimeField(null=True, blank=True)
    joined_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ("room_id", "position")
        constraints = [
            models.UniqueConstraint(fields=("room", "user_id"), name="unique_participant_per_room"),
            models.UniqueConstraint(fields=("room", "position"), name="unique_participant_position"),
            models.CheckConstraint(
                condition=models.Q(position__lt=MAX_PARTICIPANTS),
                name="participant_position_below_capacity",
            ),
        ]

    def __str__(self) -> str:
        return f"Participant<room={self.room_id}, user={self.user_id}, submitted={self.has_submitted}>"


class Conclusion(models.Model):
    room = models.ForeignKey(Room, on_delete=models.CASCADE, related_name="conclusions")
    user_id = models.PositiveIntegerField()
    content = models.TextField()
    submitted_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ("submitted_at", "id")
        constraints = [
            models.UniqueConstraint(fields=("room", "user_id"), name="unique_conclusion_per_user"),
        ]

    def __str__(self) -> str:
        return f"Conclusion<room={self.room_id}, user={self.user_id}>"


class ChatSessionStatus(models.TextChoices):
    ACTIVE = "active", "Active"
    CONCLUDED = "concluded", "Concluded"


class ChatSession(models.Model):
    """One user's running transcript with the assistant inside a room.

    Looked up by (room_id, user_id). room_id is a plain column rather than a
    foreign key: sessions are not removed together with their room.
    """

    id = models.CharField(max_length=36, primary_key=True, default=new_opaque_id, editable=False)
    room_id = models.CharField(max_length=36, db_index=True)
    user_id = models.PositiveIntegerField()
    status = models.CharField(
        max_length=16,
        choices=ChatSessionStatus.choices,
        default=ChatSessionStatus.ACTIVE,
    )
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ("room_id", "user_id")
        constraints = [
            models.UniqueConstraint(fields=("room_id", "user_id"), name="unique_chat_session_per_user"),
        ]

    def __str__(self) -> str:
        return f"ChatSession<room={self.room_id}, user={self.user_id}>"

    def append_message(self, role: str, content: str) -> "ChatMessage":
        """Persist one chat turn. Content is stored exactly as given."""
        return self.messages.create(role=role, content=content)

    def ordered_messages(self) -> list["ChatMessage"]:
        return list(self.messages.order_by("created_at", "id"))

    def history(self) -> list[dict]:
        return [message.as_dict() for message in self.ordered_messages()]


class MessageRole(models.TextChoices):
    USER = "user", "User"
    ASSISTANT = "assistant", "Assistant"


class ChatMessage(models.Model):
    session = models.ForeignKey(ChatSession, on_delete=models.CASCADE, related_name="messages")
    role = models.CharField(max_length=16, choices=MessageRole.choices)
    content = models.TextField()
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ("created_at", "id")

    def __str__(self) -> str:
        return f"ChatMessage<session={self.session_id}, role={self.role}>"

    def as_dict(self) -> dict:
        return {
            "role": self.role,
            "content": self.content,
            "timestamp": self.created_at.isoformat(),
        }
