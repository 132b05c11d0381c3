"""Tests for retrying roster operations."""

from __future__ import annotations

import unittest

from google.api_core.exceptions import Aborted, NotFound

from padelhub import create_app
from padelhub.errors import ConcurrencyConflictError
from padelhub.roster.orchestrator import Settled, is_contention, run_roster_operation
from padelhub.roster.services import RosterService
from tests.mock_utils import RosterTestCase


class IsContentionTestCase(unittest.TestCase):
    """Test case for recognising lost write races."""

    def test_aborted(self) -> None:
        self.assertTrue(is_contention(Aborted("lock timeout")))

    def test_wrapped_aborted(self) -> None:
        try:
            try:
                raise Aborted("lock timeout")
            except Aborted as e:
                raise ValueError("Failed to commit transaction in 1 attempts.") from e
        except ValueError as wrapped:
            self.assertTrue(is_contention(wrapped))

    def test_commit_failure_message(self) -> None:
        self.assertTrue(is_contention(ValueError("Failed to commit transaction in 1 attempts.")))

    def test_other_errors(self) -> None:
        self.assertFalse(is_contention(ValueError("bad value")))
        self.assertFalse(is_contention(NotFound("gone")))


class RunRosterOperationTestCase(RosterTestCase):
    """Test case for the pre-fetch and commit retry loop."""

    def setUp(self) -> None:
        super().setUp()
        for user_id in ("xavier", "yara", "zoe"):
            self.add_user(user_id)
        self.add_event(slots=2)

    def test_contention_is_retried(self) -> None:
        self.db.aborts = 1

        with self.assertLogs(level="WARNING") as logs:
            result = RosterService.register("xavier", "event1", db=self.db)

        self.assertEqual(result.status, "CONFIRMED")
        self.assertEqual(len(self.db.transactions), 2)
        self.assertEqual(self.event()["registrationsCount"], 1)
        self.assertIn("contention", logs.output[0])
        self.assertCountersConsistent()

    def test_gives_up_after_max_attempts(self) -> None:
        self.db.aborts = 10

        with self.assertLogs(level="WARNING"):
            with self.assertRaises(ConcurrencyConflictError) as ctx:
                RosterService.register("xavier", "event1", db=self.db)

        self.assertEqual(ctx.exception.attempts, 5)
        self.assertEqual(ctx.exception.operation, "register")
        self.assertEqual(ctx.exception.status_code, 409)
        self.assertEqual(len(self.db.transactions), 5)
        self.assertIsNone(self.registration("event1_xavier"))
        self.assertEqual(self.event()["registrationsCount"], 0)

    def test_attempt_bound_comes_from_app_config(self) -> None:
        self.db.aborts = 10
        app = create_app({"TESTING": True, "ROSTER_MAX_ATTEMPTS": 2})

        with app.app_context(), self.assertLogs(level="WARNING"):
            with self.assertRaises(ConcurrencyConflictError) as ctx:
                RosterService.register("xavier", "event1", db=self.db)

        self.assertEqual(ctx.exception.attempts, 2)
        self.assertEqual(len(self.db.transactions), 2)

    def test_stale_plan_is_rebuilt(self) -> None:
        RosterService.register("xavier", "event1", db=self.db)

        def yara_takes_the_last_seat():
            RosterService.register("yara", "event1", db=self.db)

        self.db.on_transaction = yara_takes_the_last_seat
        with self.assertLogs(level="WARNING") as logs:
            result = RosterService.register("zoe", "event1", db=self.db)

        self.assertEqual(result.status, "WAITLIST")
        self.assertEqual(result.waitlist_position, 1)
        self.assertIn("stale", logs.output[0])
        event = self.event()
        self.assertEqual(event["registrationsCount"], 2)
        self.assertEqual(event["waitlistCount"], 1)
        self.assertEqual(event["rosterVersion"], 3)
        self.assertCountersConsistent()

    def test_settled_plan_skips_the_transaction(self) -> None:
        result = run_roster_operation(
            self.db, "noop", lambda: Settled("done"), lambda transaction, plan: None
        )
        self.assertEqual(result, "done")
        self.assertEqual(self.db.transactions, [])
