"""Tests for the counter audit script."""

import unittest
from unittest.mock import patch

from mockfirestore import MockFirestore

from scripts.audit_counters import audit_open_events, main
from tests.conftest import patch_mockfirestore


class AuditScriptTestCase(unittest.TestCase):
    """Test case for scripts/audit_counters.py."""

    def setUp(self):
        patch_mockfirestore()
        self.db = MockFirestore()
        for event_id, status, count in (
            ("open", "Upcoming", 1),
            ("past", "Past", 4),
        ):
            self.db.collection("events").document(event_id).set(
                {
                    "eventName": event_id.title(),
                    "slotsAvailable": 4,
                    "registrationsCount": count,
                    "waitlistCount": 0,
                    "status": status,
                }
            )

    def test_reports_drift_in_open_events_only(self):
        with patch("builtins.print") as mock_print:
            self.assertEqual(audit_open_events(self.db), 1)
        printed = " ".join(str(call.args[0]) for call in mock_print.call_args_list)
        self.assertIn("Event open", printed)
        self.assertNotIn("Event past", printed)

    def test_consistent_events(self):
        self.db.collection("registrations").document("r1").set(
            {
                "eventId": "open",
                "playerId": "alice",
                "status": "CONFIRMED",
                "holdsSeat": True,
            }
        )
        self.assertEqual(audit_open_events(self.db), 0)

    @patch("scripts.audit_counters.firestore.client")
    @patch("scripts.audit_counters.initialize_app")
    def test_main_exits_nonzero_on_drift(self, mock_init, mock_client):
        mock_client.return_value = self.db
        with patch("builtins.print"), self.assertRaises(SystemExit) as ctx:
            main()
        self.assertEqual(ctx.exception.code, 2)
