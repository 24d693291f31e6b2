from django.contrib import admin

from .models import ChatMessage, ChatSession, Conclusion, Participant, Room


class ParticipantInline(admin.TabularInline):
    model = Participant
    extra = 0
    readonly_fields = ("user_id", "username", "position", "has_submitted", "submitted_at", "joined_at")
    can_delete = False


class ConclusionInline(admin.TabularInline):
    model = Conclusion
    extra = 0
    readonly_fields = ("user_id", "content", "submitted_at")
    can_delete = False


@admin.register(Room)
class RoomAdmin(admin.ModelAdmin):
    list_display = ("id", "guiding_question", "status", "creator_user_id", "created_at")
    list_filter = ("status", "created_at")
    search_fields = ("id", "guiding_question")
    # Status and verdict only change through the room services
    readonly_fields = (
        "id",
        "password",
        "creator_user_id",
        "status",
        "final_verdict",
        "comparison_session_id",
        "comparison_started_at",
        "completed_at",
        "created_at",
    )
    inlines = (ParticipantInline, ConclusionInline)


class ChatMessageInline(admin.TabularInline):
    model = ChatMessage
    extra = 0
    readonly_fields = ("role", "content", "created_at")
    can_delete = False


@admin.register(ChatSession)
class ChatSessionAdmin(admin.ModelAdmin):
    list_display = ("id", "room_id", "user_id", "status", "created_at")
    list_filter = ("status",)
    search_fields = ("room_id", "user_id")
    readonly_fields = ("id", "room_id", "user_id", "created_at")
    inlines = (ChatMessageInline,)
