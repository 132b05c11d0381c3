"""Tests for accepting partner invites."""

from __future__ import annotations

import datetime

from padelhub.errors import PreconditionError, RejectReason
from padelhub.roster.services import RosterService
from tests.mock_utils import RosterTestCase


def at(minute):
    return datetime.datetime(2026, 10, 1, 18, minute, tzinfo=datetime.timezone.utc)


class AcceptInviteTestCase(RosterTestCase):
    """Test case for RosterService.accept_invite."""

    def setUp(self) -> None:
        super().setUp()
        for user_id in ("alice", "bob", "carol", "dave", "erin", "frank"):
            self.add_user(user_id)
        self.add_team_event(slots=1)

    def seed(self, collection, doc_id, **data):
        self.db.collection(collection).document(doc_id).set(
            {"eventId": "event1", **data}
        )

    def test_accept_confirms_team_and_takes_a_seat(self) -> None:
        invite = RosterService.send_invite("alice", "event1", "bob", db=self.db)

        result = RosterService.accept_invite("bob", invite.team_id, db=self.db)

        self.assertTrue(result.changed)
        self.assertEqual(result.status, "CONFIRMED")
        team = self.team(invite.team_id)
        self.assertEqual(team["status"], "CONFIRMED")
        self.assertTrue(team["player1Confirmed"])
        self.assertTrue(team["player2Confirmed"])
        registration = self.registration(invite.registration_id)
        self.assertEqual(registration["status"], "CONFIRMED")
        self.assertEqual(registration["partnerStatus"], "CONFIRMED")
        self.assertEqual(registration["playerId"], "alice")
        self.assertEqual(registration["player2Id"], "bob")
        self.assertTrue(registration["holdsSeat"])
        self.assertEqual(self.event()["registrationsCount"], 1)
        self.assertEqual(self.notification_types_for("alice"), ["partner_accepted"])
        self.assertCountersConsistent()

    def test_second_team_is_waitlisted_when_full(self) -> None:
        first = RosterService.send_invite("alice", "event1", "bob", db=self.db)
        RosterService.accept_invite("bob", first.team_id, db=self.db)
        second = RosterService.send_invite("carol", "event1", "dave", db=self.db)

        result = RosterService.accept_invite("dave", second.team_id, db=self.db)

        self.assertEqual(result.status, "WAITLIST")
        self.assertEqual(self.team(second.team_id)["status"], "WAITLIST")
        registration = self.registration(second.registration_id)
        self.assertEqual(registration["status"], "WAITLIST")
        self.assertEqual(registration["waitlistPosition"], 1)
        event = self.event()
        self.assertEqual(event["registrationsCount"], 1)
        self.assertEqual(event["waitlistCount"], 1)
        self.assertCountersConsistent()

    def test_late_accepted_invite_queues_behind_waiting_teams(self) -> None:
        self.add_user("gina")
        self.add_user("hugo")
        early = RosterService.send_invite("gina", "event1", "hugo", db=self.db)
        first = RosterService.send_invite("alice", "event1", "bob", db=self.db)
        RosterService.accept_invite("bob", first.team_id, db=self.db)
        second = RosterService.send_invite("carol", "event1", "dave", db=self.db)
        RosterService.accept_invite("dave", second.team_id, db=self.db)
        third = RosterService.send_invite("erin", "event1", "frank", db=self.db)
        RosterService.accept_invite("frank", third.team_id, db=self.db)
        RosterService.withdraw("carol", second.registration_id, db=self.db)

        late = RosterService.accept_invite("hugo", early.team_id, db=self.db)

        self.assertEqual(late.status, "WAITLIST")
        # Both waiting teams now share a position
        self.assertEqual(self.registration(third.registration_id)["waitlistPosition"], 2)
        self.assertEqual(self.registration(early.registration_id)["waitlistPosition"], 2)

        result = RosterService.withdraw("alice", first.registration_id, db=self.db)

        self.assertEqual(result.promoted_registration_ids, [third.registration_id])
        self.assertEqual(self.registration(third.registration_id)["status"], "CONFIRMED")
        self.assertEqual(self.team(third.team_id)["status"], "CONFIRMED")
        self.assertEqual(self.registration(early.registration_id)["status"], "WAITLIST")
        self.assertEqual(self.team(early.team_id)["status"], "WAITLIST")
        event = self.event()
        self.assertEqual(event["registrationsCount"], 1)
        self.assertEqual(event["waitlistCount"], 1)
        self.assertCountersConsistent()

    def test_accepting_twice_changes_nothing(self) -> None:
        invite = RosterService.send_invite("alice", "event1", "bob", db=self.db)
        RosterService.accept_invite("bob", invite.team_id, db=self.db)
        version = self.event()["rosterVersion"]

        again = RosterService.accept_invite("bob", invite.team_id, db=self.db)

        self.assertFalse(again.changed)
        self.assertEqual(again.status, "CONFIRMED")
        self.assertEqual(self.event()["rosterVersion"], version)
        self.assertEqual(self.event()["registrationsCount"], 1)

    def test_accepting_a_withdrawn_invite_consumes_the_notification(self) -> None:
        invite = RosterService.send_invite("alice", "event1", "bob", db=self.db)
        [notification] = self.notifications_for("bob")
        RosterService.dissolve_team("alice", invite.team_id, "CANCEL", db=self.db)

        result = RosterService.accept_invite(
            "bob", invite.team_id, notification["notificationId"], db=self.db
        )

        self.assertFalse(result.changed)
        self.assertIsNone(result.status)
        read = [
            n for n in self.notifications_for("bob")
            if n["notificationId"] == notification["notificationId"]
        ]
        self.assertTrue(read[0]["read"])

    def test_accept_marks_the_invite_notification_read(self) -> None:
        invite = RosterService.send_invite("alice", "event1", "bob", db=self.db)
        [notification] = self.notifications_for("bob")

        RosterService.accept_invite(
            "bob", invite.team_id, notification["notificationId"], db=self.db
        )

        [after] = self.notifications_for("bob")
        self.assertTrue(after["read"])

    def test_team_keeps_the_seat_a_player_already_holds(self) -> None:
        first = RosterService.send_invite("alice", "event1", "bob", db=self.db)
        RosterService.accept_invite("bob", first.team_id, db=self.db)
        RosterService.dissolve_team("bob", first.team_id, "LEAVE", db=self.db)
        # alice now holds the confirmed seat on her own
        invite = RosterService.send_invite("carol", "event1", "alice", db=self.db)
        self.assertEqual(invite.mode, "MERGE_P1")
        self.assertEqual(invite.registration_id, first.registration_id)

        result = RosterService.accept_invite("alice", invite.team_id, db=self.db)

        self.assertEqual(result.status, "CONFIRMED")
        self.assertEqual(self.event()["registrationsCount"], 1)
        registration = self.registration(first.registration_id)
        self.assertEqual(registration["playerId"], "alice")
        self.assertEqual(registration["player2Id"], "carol")
        self.assertCountersConsistent()

    def test_extra_seat_is_released_to_the_waitlist(self) -> None:
        self.add_team_event(slots=2)
        self.db.collection("events").document("event1").update(
            {"registrationsCount": 2, "waitlistCount": 1}
        )
        self.seed(
            "registrations",
            "r-alice",
            playerId="alice",
            status="CONFIRMED",
            partnerStatus="NONE",
            lookingForPartner=True,
            holdsSeat=True,
            waitlistPosition=0,
            registeredAt=at(0),
        )
        self.seed(
            "registrations",
            "r-dave",
            playerId="dave",
            status="CONFIRMED",
            partnerStatus="NONE",
            lookingForPartner=True,
            holdsSeat=True,
            waitlistPosition=0,
            registeredAt=at(1),
        )
        self.seed(
            "registrations",
            "r-erin",
            playerId="erin",
            player2Id="frank",
            teamId="t-ef",
            status="WAITLIST",
            partnerStatus="CONFIRMED",
            lookingForPartner=False,
            holdsSeat=True,
            waitlistPosition=1,
            registeredAt=at(2),
        )
        self.seed(
            "teams",
            "t-ef",
            player1Id="erin",
            player2Id="frank",
            player1Confirmed=True,
            player2Confirmed=True,
            status="WAITLIST",
        )
        self.assertCountersConsistent()

        invite = RosterService.send_invite("alice", "event1", "dave", db=self.db)
        result = RosterService.accept_invite("dave", invite.team_id, db=self.db)

        self.assertEqual(result.status, "CONFIRMED")
        self.assertEqual(result.promoted_registration_ids, ["r-erin"])
        self.assertEqual(self.registration("r-alice")["status"], "CANCELLED")
        self.assertEqual(self.registration("r-erin")["status"], "CONFIRMED")
        self.assertEqual(self.team("t-ef")["status"], "CONFIRMED")
        self.assertIn("waitlist_promoted", self.notification_types_for("erin"))
        self.assertIn("waitlist_promoted", self.notification_types_for("frank"))
        event = self.event()
        self.assertEqual(event["registrationsCount"], 2)
        self.assertEqual(event["waitlistCount"], 0)
        self.assertCountersConsistent()

    def test_other_pending_invites_are_dissolved(self) -> None:
        elsewhere = RosterService.send_invite("alice", "event1", "bob", db=self.db)
        invite = RosterService.send_invite("carol", "event1", "bob", db=self.db)

        result = RosterService.accept_invite("bob", invite.team_id, db=self.db)

        self.assertEqual(result.dissolved_team_ids, [elsewhere.team_id])
        self.assertIsNone(self.team(elsewhere.team_id))
        self.assertIn("partner_joined_other", self.notification_types_for("alice"))
        # alice keeps her registration as a free agent
        reverted = self.registration(elsewhere.registration_id)
        self.assertEqual(reverted["status"], "CONFIRMED")
        self.assertTrue(reverted["lookingForPartner"])
        self.assertIsNone(reverted["teamId"])
        self.assertIsNone(reverted["player2Id"])
        self.assertFalse(reverted["holdsSeat"])
        self.assertCountersConsistent()

    def test_acceptor_paired_elsewhere(self) -> None:
        self.seed(
            "teams",
            "t-done",
            player1Id="bob",
            player2Id="dave",
            player1Confirmed=True,
            player2Confirmed=True,
            status="WAITLIST",
        )
        self.seed(
            "teams",
            "t-open",
            player1Id="alice",
            player2Id="bob",
            player1Confirmed=True,
            player2Confirmed=False,
            status="PENDING",
        )
        with self.assertRaises(PreconditionError) as ctx:
            RosterService.accept_invite("bob", "t-open", db=self.db)
        self.assertEqual(ctx.exception.reason, RejectReason.ALREADY_PAIRED)

    def test_inviter_cannot_accept(self) -> None:
        invite = RosterService.send_invite("alice", "event1", "bob", db=self.db)
        with self.assertRaises(PreconditionError) as ctx:
            RosterService.accept_invite("alice", invite.team_id, db=self.db)
        self.assertEqual(ctx.exception.reason, RejectReason.NOTHING_TO_ACCEPT)

    def test_outsider_cannot_accept(self) -> None:
        invite = RosterService.send_invite("alice", "event1", "bob", db=self.db)
        with self.assertRaises(PreconditionError) as ctx:
            RosterService.accept_invite("carol", invite.team_id, db=self.db)
        self.assertEqual(ctx.exception.reason, RejectReason.NOT_TEAM_MEMBER)

    def test_invite_dissolved_while_accepting_is_a_no_op(self) -> None:
        abandoned = RosterService.send_invite("bob", "event1", "alice", db=self.db)
        chosen = RosterService.send_invite("carol", "event1", "bob", db=self.db)
        # bob settles on carol between alice's read and her commit
        self.db.on_transaction = lambda: RosterService.accept_invite(
            "bob", chosen.team_id, db=self.db
        )

        result = RosterService.accept_invite("alice", abandoned.team_id, db=self.db)

        self.assertFalse(result.changed)
        self.assertIsNone(self.team(abandoned.team_id))
        self.assertEqual(self.team(chosen.team_id)["status"], "CONFIRMED")
        self.assertEqual(self.registration(chosen.registration_id)["player2Id"], "bob")
        self.assertEqual(self.event()["registrationsCount"], 1)
        self.assertEqual(self.event()["waitlistCount"], 0)
        self.assertCountersConsistent()
