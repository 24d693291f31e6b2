from datetime import timedelta

from django.test import TestCase, override_settings
from django.utils import timezone

from core.models import Conclusion, Room, RoomStatus
from core.services.chat_service import ChatService
from core.services.comparison_service import ComparisonService, claim_lease_seconds
from core.services.results import ErrorKind
from core.services.room_service import RoomService

from .helpers import FakeGateway, make_user


class ComparisonServiceTests(TestCase):
    def setUp(self):
        self.alice = make_user("alice")
        self.bob = make_user("bob")
        self.gateway = FakeGateway(verdict="Both agree on the basics.")
        self.comparisons = ComparisonService(gateway=self.gateway)
        self.rooms = RoomService(chat_service=ChatService(gateway=FakeGateway()))
        self.room_id = self.rooms.create_room(self.alice.pk, "Is X good?", "pw").value["room_id"]
        self.rooms.join_room(self.bob.pk, self.room_id, "pw")

    def room(self):
        return Room.objects.get(pk=self.room_id)

    def submit_both(self):
        self.rooms.submit_conclusion(self.alice.pk, self.room_id, "Yes, X is good.")
        self.rooms.submit_conclusion(self.bob.pk, self.room_id, "No, X is bad.")
        self.assertEqual(self.room().status, RoomStatus.COMPARING)

    def test_comparing_an_active_room_does_not_call_the_model(self):
        self.rooms.submit_conclusion(self.alice.pk, self.room_id, "Yes")
        result = self.comparisons.compare_room(self.room_id, user_id=self.alice.pk)

        self.assertEqual(result.kind, ErrorKind.PRECONDITION)
        self.assertEqual(self.gateway.compare_calls, [])
        self.assertEqual(self.room().status, RoomStatus.ACTIVE)

    def test_successful_comparison_completes_the_room(self):
        self.submit_both()
        result = self.comparisons.compare_room(self.room_id, user_id=self.bob.pk)

        self.assertTrue(result.ok)
        self.assertEqual(result.value["comparison"], "Both agree on the basics.")
        self.assertEqual(result.value["guiding_question"], "Is X good?")
        self.assertEqual(
            [(c["username"], c["conclusion"]) for c in result.value["conclusions"]],
            [("alice", "Yes, X is good."), ("bob", "No, X is bad.")],
        )
        self.assertEqual(
            self.gateway.compare_calls,
            [("Yes, X is good.", "No, X is bad.", "Is X good?", "alice", "bob")],
        )

        room = self.room()
        self.assertEqual(room.status, RoomStatus.COMPLETED)
        self.assertEqual(room.final_verdict, "Both agree on the basics.")
        self.assertIsNotNone(room.completed_at)

    def test_second_comparison_is_rejected_and_verdict_kept(self):
        self.submit_both()
        self.comparisons.compare_room(self.room_id)
        self.gateway.verdict = "A different verdict"

        again = self.comparisons.compare_room(self.room_id)

        self.assertEqual(again.kind, ErrorKind.PRECONDITION)
        self.assertEqual(again.error.message, "Conclusions in this room have already been compared")
        self.assertEqual(len(self.gateway.compare_calls), 1)
        self.assertEqual(self.room().final_verdict, "Both agree on the basics.")

    def test_gateway_failure_leaves_room_comparing(self):
        self.submit_both()
        self.gateway.failure = "AI service error: timed out"

        result = self.comparisons.compare_room(self.room_id)

        self.assertEqual(result.kind, ErrorKind.UPSTREAM_FAILURE)
        room = self.room()
        self.assertEqual(room.status, RoomStatus.COMPARING)
        self.assertIsNone(room.final_verdict)
        self.assertIsNone(room.comparison_session_id)

        self.gateway.failure = None
        retry = self.comparisons.compare_room(self.room_id)
        self.assertTrue(retry.ok)
        self.assertEqual(self.room().status, RoomStatus.COMPLETED)

    def test_live_claim_blocks_a_concurrent_run(self):
        self.submit_both()
        Room.objects.filter(pk=self.room_id).update(
            comparison_session_id="other-run",
            comparison_started_at=timezone.now(),
        )

        result = self.comparisons.compare_room(self.room_id)

        self.assertEqual(result.kind, ErrorKind.PRECONDITION)
        self.assertEqual(result.error.message, "A comparison for this room is already in progress")
        self.assertEqual(self.gateway.compare_calls, [])

    def test_abandoned_claim_can_be_retaken(self):
        self.submit_both()
        Room.objects.filter(pk=self.room_id).update(
            comparison_session_id="crashed-run",
            comparison_started_at=timezone.now() - timedelta(seconds=claim_lease_seconds() + 5),
        )

        result = self.comparisons.compare_room(self.room_id)

        self.assertTrue(result.ok)
        self.assertNotEqual(self.room().comparison_session_id, "crashed-run")

    def test_missing_conclusion_is_a_data_integrity_failure(self):
        self.submit_both()
        Conclusion.objects.filter(room_id=self.room_id, user_id=self.bob.pk).delete()

        with self.assertLogs("core.services.comparison_service", level="ERROR"):
            result = self.comparisons.compare_room(self.room_id)

        self.assertEqual(result.kind, ErrorKind.DATA_INTEGRITY)
        self.assertEqual(self.gateway.compare_calls, [])
        self.assertEqual(self.room().status, RoomStatus.COMPARING)

    def test_conclusion_from_a_stranger_is_a_data_integrity_failure(self):
        self.submit_both()
        stranger = make_user("stranger")
        Conclusion.objects.filter(room_id=self.room_id, user_id=self.bob.pk).update(user_id=stranger.pk)

        with self.assertLogs("core.services.comparison_service", level="ERROR"):
            result = self.comparisons.compare_room(self.room_id)

        self.assertEqual(result.kind, ErrorKind.DATA_INTEGRITY)

    def test_outsider_and_missing_room(self):
        self.submit_both()
        outsider = make_user("mallory")
        self.assertEqual(self.comparisons.compare_room(self.room_id, user_id=outsider.pk).kind, ErrorKind.FORBIDDEN)
        self.assertEqual(self.comparisons.compare_room("missing").kind, ErrorKind.NOT_FOUND)
        self.assertEqual(self.gateway.compare_calls, [])

    def test_inline_start_returns_the_result(self):
        self.submit_both()
        result = self.comparisons.start_comparison(self.room_id, in_background=False)
        self.assertTrue(result.ok)
        self.assertEqual(self.room().status, RoomStatus.COMPLETED)


class ReentrantGateway(FakeGateway):
    """Calls compare_room again while its own model call is still running."""

    def __init__(self, service_factory, room_id, **kwargs):
        super().__init__(**kwargs)
        self.service_factory = service_factory
        self.room_id = room_id
        self.reentered = False
        self.nested_results = []

    def compare(self, *args):
        if not self.reentered:
            self.reentered = True
            self.nested_results.append(self.service_factory().compare_room(self.room_id))
        return super().compare(*args)


class ComparisonLeaseTests(TestCase):
    def setUp(self):
        self.alice = make_user("alice")
        self.bob = make_user("bob")
        rooms = RoomService(chat_service=ChatService(gateway=FakeGateway()))
        self.room_id = rooms.create_room(self.alice.pk, "Is X good?", "pw").value["room_id"]
        rooms.join_room(self.bob.pk, self.room_id, "pw")
        rooms.submit_conclusion(self.alice.pk, self.room_id, "Yes")
        rooms.submit_conclusion(self.bob.pk, self.room_id, "No")

    @override_settings(COMPARISON_LEASE_SECONDS=0, OPENAI_CALL_BUDGET_SECONDS=180.0)
    def test_lease_is_never_shorter_than_a_gateway_call(self):
        self.assertGreaterEqual(claim_lease_seconds(), 180.0)

    @override_settings(COMPARISON_LEASE_SECONDS=0)
    def test_running_comparison_keeps_its_claim(self):
        gateway = ReentrantGateway(lambda: ComparisonService(gateway=gateway), self.room_id, verdict="Only verdict")

        result = ComparisonService(gateway=gateway).compare_room(self.room_id)

        self.assertTrue(result.ok)
        self.assertEqual(len(gateway.compare_calls), 1)
        self.assertEqual(gateway.nested_results[0].kind, ErrorKind.PRECONDITION)
        self.assertEqual(Room.objects.get(pk=self.room_id).final_verdict, "Only verdict")
