"""Mock utilities for Firestore transactions and roster fixtures."""

from __future__ import annotations

import datetime
import unittest
from typing import Any, Callable, Optional
from unittest.mock import patch

from google.api_core.exceptions import Aborted
from mockfirestore import MockFirestore

from padelhub.constants import UNIT_PLAYERS, UNIT_TEAMS
from padelhub.roster.audit import audit_event
from tests.conftest import patch_mockfirestore


class MockTransaction:
    """Mock for firestore.Transaction that buffers writes until commit."""

    def __init__(self, db: Any, abort: bool = False) -> None:
        self.db = db
        self.abort = abort
        self.writes: list[Callable[[], Any]] = []
        self.committed = False
        self._id = "mock-transaction-id"
        self._max_attempts = 1
        self._read_only = False

    def get(self, ref: Any) -> Any:
        return ref.get()

    def set(self, doc_ref: Any, data: dict[str, Any], merge: bool = False) -> None:
        self.writes.append(lambda: doc_ref.set(data, merge=merge))

    def update(self, doc_ref: Any, data: dict[str, Any]) -> None:
        self.writes.append(lambda: doc_ref.update(data))

    def delete(self, doc_ref: Any) -> None:
        self.writes.append(doc_ref.delete)

    def commit(self) -> None:
        """Apply the buffered writes, or drop them all when contention is simulated."""
        if self.abort:
            self.writes = []
            raise Aborted("Transaction lock timeout.")
        for write in self.writes:
            write()
        self.writes = []
        self.committed = True


def mock_transactional(func: Callable[..., Any]) -> Callable[..., Any]:
    """Stand-in for firestore.transactional that commits once the function returns."""

    def wrapper(transaction: MockTransaction, *args: Any, **kwargs: Any) -> Any:
        result = func(transaction, *args, **kwargs)
        transaction.commit()
        return result

    return wrapper


class RosterMockFirestore(MockFirestore):
    """Mock Firestore with controllable transactions.

    ``aborts`` makes that many upcoming commits fail with contention.
    ``on_transaction`` runs once, right after the next pre-fetch, and stands
    in for another request writing to the store before our commit.
    """

    def __init__(self) -> None:
        super().__init__()
        self.aborts = 0
        self.on_transaction: Optional[Callable[[], Any]] = None
        self.transactions: list[MockTransaction] = []

    def transaction(self, **kwargs: Any) -> MockTransaction:
        hook, self.on_transaction = self.on_transaction, None
        if hook is not None:
            hook()
        abort = self.aborts > 0
        if abort:
            self.aborts -= 1
        transaction = MockTransaction(self, abort=abort)
        self.transactions.append(transaction)
        return transaction


class RosterTestCase(unittest.TestCase):
    """Base test case wiring the roster services to a mock Firestore."""

    def setUp(self) -> None:
        patch_mockfirestore()
        self.db = RosterMockFirestore()
        transactional = patch(
            "padelhub.roster.orchestrator.firestore.transactional",
            side_effect=mock_transactional,
        )
        transactional.start()
        self.addCleanup(transactional.stop)

    def add_user(self, user_id: str, name: Optional[str] = None) -> None:
        self.db.collection("users").document(user_id).set(
            {"fullName": name or user_id.title()}
        )

    def add_event(
        self,
        event_id: str = "event1",
        slots: int = 2,
        unit_type: str = UNIT_PLAYERS,
        status: str = "Upcoming",
    ) -> str:
        self.db.collection("events").document(event_id).set(
            {
                "eventId": event_id,
                "eventName": f"Padel Night {event_id}",
                "slotsAvailable": slots,
                "unitType": unit_type,
                "registrationsCount": 0,
                "waitlistCount": 0,
                "dateTime": datetime.datetime(2026, 11, 7, 19, 0),
                "status": status,
            }
        )
        return event_id

    def add_team_event(self, event_id: str = "event1", slots: int = 1) -> str:
        return self.add_event(event_id, slots=slots, unit_type=UNIT_TEAMS)

    def event(self, event_id: str = "event1") -> dict[str, Any]:
        return self.db.collection("events").document(event_id).get().to_dict()

    def registration(self, registration_id: str) -> Optional[dict[str, Any]]:
        snapshot = self.db.collection("registrations").document(registration_id).get()
        return snapshot.to_dict() if snapshot.exists else None

    def team(self, team_id: str) -> Optional[dict[str, Any]]:
        snapshot = self.db.collection("teams").document(team_id).get()
        return snapshot.to_dict() if snapshot.exists else None

    def notifications_for(self, user_id: str) -> list[dict[str, Any]]:
        return [
            doc.to_dict()
            for doc in self.db.collection("notifications").stream()
            if doc.exists and doc.to_dict().get("userId") == user_id
        ]

    def notification_types_for(self, user_id: str) -> list[str]:
        return [n["type"] for n in self.notifications_for(user_id)]

    def assertCountersConsistent(self, event_id: str = "event1") -> None:
        result = audit_event(event_id, db=self.db)
        self.assertTrue(result.consistent, result.to_dict())
