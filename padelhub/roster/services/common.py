"""Reads and writes shared by the roster services."""

from __future__ import annotations

import datetime
from typing import TYPE_CHECKING, Any, Iterable, Optional

from firebase_admin import firestore

from padelhub.constants import (
    CLOSED_EVENT_STATUSES,
    DEFAULT_PROMOTION_SCAN_LIMIT,
    EVENTS_COLLECTION,
    NOTIFICATIONS_COLLECTION,
    REGISTRATIONS_COLLECTION,
    TEAMS_COLLECTION,
)
from padelhub.errors import NotFoundError, PreconditionError, RejectReason, StaleReadError

from ..allocator import Allocation, allocate, order_waitlist, release
from ..models import (
    LIVE_REGISTRATION_STATUSES,
    Counters,
    Doc,
    NotificationType,
    PartnerStatus,
    RegistrationStatus,
    TeamStatus,
    holds_seat,
)
from ..notifications import NotificationEmitter, mark_read
from ..pairing import Footprint
from ..utils import config_value, fetch_player_name, format_event_date

if TYPE_CHECKING:
    from google.cloud.firestore_v1.client import Client
    from google.cloud.firestore_v1.transaction import Transaction


def utc_now() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def roster_version(event: Doc) -> int:
    return int(event.get("rosterVersion") or 0)


def get_event(db: Client, event_id: str) -> Doc:
    """Read an event outside a transaction, raising NotFoundError if missing."""
    event = Doc.from_snapshot(db.collection(EVENTS_COLLECTION).document(event_id).get())
    if event is None:
        raise NotFoundError("Event not found.")
    return event


def ensure_open(event: Doc) -> None:
    if event.get("status") in CLOSED_EVENT_STATUSES:
        raise PreconditionError(RejectReason.EVENT_CLOSED)


def get_document(db: Client, collection: str, doc_id: str | None) -> Optional[Doc]:
    if not doc_id:
        return None
    return Doc.from_snapshot(db.collection(collection).document(doc_id).get())


def _stream(query: Any) -> tuple[Doc, ...]:
    return tuple(Doc(id=s.id, data=s.to_dict() or {}) for s in query.stream())


def _event_query(db: Client, collection: str, event_id: str) -> Any:
    return db.collection(collection).where(
        filter=firestore.FieldFilter("eventId", "==", event_id)
    )


def _live_registrations(db: Client, event_id: str, field: str, user_id: str) -> Any:
    return (
        _event_query(db, REGISTRATIONS_COLLECTION, event_id)
        .where(filter=firestore.FieldFilter(field, "==", user_id))
        .where(filter=firestore.FieldFilter("status", "in", LIVE_REGISTRATION_STATUSES))
    )


def _teams(db: Client, event_id: str, field: str, user_id: str) -> Any:
    return _event_query(db, TEAMS_COLLECTION, event_id).where(
        filter=firestore.FieldFilter(field, "==", user_id)
    )


def load_footprint(db: Client, event_id: str, user_id: str) -> Footprint:
    """Query a player's live registrations and teams for an event."""
    return Footprint(
        user_id=user_id,
        primary=_stream(_live_registrations(db, event_id, "playerId", user_id)),
        secondary=_stream(_live_registrations(db, event_id, "player2Id", user_id)),
        teams=_stream(_teams(db, event_id, "player1Id", user_id))
        + _stream(_teams(db, event_id, "player2Id", user_id)),
    )


def find_team_registration(db: Client, team_id: str) -> Optional[Doc]:
    """Find the live registration linked to a team."""
    query = (
        db.collection(REGISTRATIONS_COLLECTION)
        .where(filter=firestore.FieldFilter("teamId", "==", team_id))
        .where(filter=firestore.FieldFilter("status", "in", LIVE_REGISTRATION_STATUSES))
    )
    found = _stream(query)
    return found[0] if found else None


def waitlist_candidates(
    db: Client, event_id: str, exclude: Iterable[str] = ()
) -> tuple[Doc, ...]:
    """Fetch the head of an event's waitlist in promotion order."""
    exclude = set(exclude)
    limit = int(
        config_value("ROSTER_PROMOTION_SCAN_LIMIT", DEFAULT_PROMOTION_SCAN_LIMIT)
    )
    query = (
        _event_query(db, REGISTRATIONS_COLLECTION, event_id)
        .where(
            filter=firestore.FieldFilter(
                "status", "==", RegistrationStatus.WAITLIST.value
            )
        )
        .order_by("waitlistPosition")
        .limit(limit + len(exclude))
    )
    return tuple(
        order_waitlist(
            d for d in _stream(query) if d.id not in exclude and holds_seat(d.data)
        )
    )


def player_names(db: Client, *user_ids: str | None) -> dict[str, str]:
    return {uid: fetch_player_name(db, uid) for uid in user_ids if uid}


def free_agent_fields(status: str | None = None) -> dict[str, Any]:
    """Fields of a registration with nobody paired to it."""
    fields: dict[str, Any] = {
        "player2Id": None,
        "fullNameP2": None,
        "teamId": None,
        "lookingForPartner": True,
        "partnerStatus": PartnerStatus.NONE.value,
    }
    if status is None or status == RegistrationStatus.PENDING.value:
        # An invite-only registration becomes a plain free agent
        fields["status"] = RegistrationStatus.CONFIRMED.value
    return fields


class RosterCommit:
    """Reads and writes of one roster commit.

    All reads go through this object before the first write is issued. The
    event is read first and must still carry the roster version the plan was
    built against; every commit bumps it, so two commits planned against the
    same roster can never both land.
    """

    def __init__(
        self,
        db: Client,
        transaction: Transaction,
        event_id: str,
        expected_version: int,
    ) -> None:
        self.db = db
        self.transaction = transaction
        self.event_ref = db.collection(EVENTS_COLLECTION).document(event_id)
        event = Doc.from_snapshot(self.event_ref.get(transaction=transaction))
        if event is None:
            raise StaleReadError(f"event {event_id} disappeared")
        if roster_version(event) != expected_version:
            raise StaleReadError(
                f"event {event_id} roster moved from version {expected_version} "
                f"to {roster_version(event)}"
            )
        self.event = event
        self.counters = Counters.from_event(event.data)
        self.notifications = NotificationEmitter(
            db,
            event_id,
            event.get("eventName", ""),
            event_date=format_event_date(event.get("dateTime")),
        )
        self.candidates: list[Doc] = []
        self.candidate_teams: dict[str, Doc] = {}
        self.promoted: list[Doc] = []
        self._notification: tuple[Any, Any, str] | None = None

    def ref(self, collection: str, doc_id: str) -> Any:
        return self.db.collection(collection).document(doc_id)

    def read(self, collection: str, doc_id: str | None) -> Optional[Doc]:
        if not doc_id:
            return None
        snapshot = self.ref(collection, doc_id).get(transaction=self.transaction)
        return Doc.from_snapshot(snapshot)

    def read_existing(self, collection: str, doc_id: str) -> Doc:
        """Read a document the plan relies on, failing as stale if it is gone."""
        doc = self.read(collection, doc_id)
        if doc is None:
            raise StaleReadError(f"{collection}/{doc_id} disappeared")
        return doc

    def read_notification(self, notification_id: str | None, user_id: str) -> None:
        if notification_id:
            ref = self.ref(NOTIFICATIONS_COLLECTION, notification_id)
            self._notification = (
                ref,
                ref.get(transaction=self.transaction),
                user_id,
            )

    def read_candidates(self, candidates: Iterable[Doc]) -> None:
        """Re-read prefetched waitlist candidates, keeping the ones still waiting."""
        fresh = []
        for candidate in candidates:
            doc = self.read(REGISTRATIONS_COLLECTION, candidate.id)
            if (
                doc is not None
                and doc.get("status") == RegistrationStatus.WAITLIST.value
                and holds_seat(doc.data)
            ):
                fresh.append(doc)
        for doc in fresh:
            team = self.read(TEAMS_COLLECTION, doc.get("teamId"))
            if team is not None:
                self.candidate_teams[doc.id] = team
        self.candidates = order_waitlist(fresh)

    def allocate(self) -> Allocation:
        allocation = allocate(self.counters)
        self.counters = allocation.counters
        return allocation

    def release(self, status: str) -> list[Doc]:
        """Vacate a seat, promoting from the candidates read earlier."""
        result = release(self.counters, status, self.candidates)
        self.counters = result.counters
        promoted_ids = {doc.id for doc in result.promoted}
        self.candidates = [c for c in self.candidates if c.id not in promoted_ids]
        self.promoted.extend(result.promoted)
        return result.promoted

    def set(self, collection: str, doc_id: str, data: dict[str, Any]) -> None:
        self.transaction.set(self.ref(collection, doc_id), data)

    def update(self, collection: str, doc_id: str, data: dict[str, Any]) -> None:
        self.transaction.update(self.ref(collection, doc_id), data)

    def delete(self, collection: str, doc_id: str) -> None:
        self.transaction.delete(self.ref(collection, doc_id))

    def finish(self) -> list[str]:
        """Write promotions, counters and notifications, closing the commit."""
        for reg in self.promoted:
            self.update(
                REGISTRATIONS_COLLECTION,
                reg.id,
                {
                    "status": RegistrationStatus.CONFIRMED.value,
                    "waitlistPosition": 0,
                    "updatedAt": firestore.SERVER_TIMESTAMP,
                },
            )
            team = self.candidate_teams.get(reg.id)
            if team is not None:
                self.update(
                    TEAMS_COLLECTION, team.id, {"status": TeamStatus.CONFIRMED.value}
                )
            self.notifications.notify(
                reg.get("playerId"), NotificationType.WAITLIST_PROMOTED, reg.get("teamId")
            )
            if reg.get("partnerStatus") == PartnerStatus.CONFIRMED.value:
                self.notifications.notify(
                    reg.get("player2Id"),
                    NotificationType.WAITLIST_PROMOTED,
                    reg.get("teamId"),
                )

        if self._notification is not None:
            mark_read(self.transaction, *self._notification)

        self.transaction.update(
            self.event_ref,
            {**self.counters.as_update(), "rosterVersion": roster_version(self.event) + 1},
        )
        self.notifications.flush(self.transaction)
        return [reg.id for reg in self.promoted]


def acknowledge(
    db: Client,
    transaction: Transaction,
    notification_id: str | None,
    user_id: str,
) -> None:
    """Mark a notification read without touching the roster."""
    if not notification_id:
        return
    ref = db.collection(NOTIFICATIONS_COLLECTION).document(notification_id)
    mark_read(transaction, ref, ref.get(transaction=transaction), user_id)
