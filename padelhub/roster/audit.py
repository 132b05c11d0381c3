"""Read-only consistency checks of an event roster."""

from __future__ import annotations

from collections import Counter as Tally
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from firebase_admin import firestore

from padelhub.constants import EVENTS_COLLECTION, REGISTRATIONS_COLLECTION, TEAMS_COLLECTION
from padelhub.errors import NotFoundError

from .models import (
    FINAL_TEAM_STATUSES,
    SEAT_STATUSES,
    Counters,
    RegistrationStatus,
    holds_seat,
    team_flags_consistent,
)

if TYPE_CHECKING:
    from google.cloud.firestore_v1.client import Client


@dataclass
class CounterAudit:
    """Stored event counters compared with the seats actually held."""

    event_id: str
    stored: Counters
    confirmed_seats: int
    waitlist_seats: int
    problems: list[str] = field(default_factory=list)

    @property
    def consistent(self) -> bool:
        return (
            self.stored.registrations_count == self.confirmed_seats
            and self.stored.waitlist_count == self.waitlist_seats
            and not self.problems
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "eventId": self.event_id,
            "registrationsCount": self.stored.registrations_count,
            "waitlistCount": self.stored.waitlist_count,
            "confirmedSeats": self.confirmed_seats,
            "waitlistSeats": self.waitlist_seats,
            "problems": self.problems,
            "consistent": self.consistent,
        }


def audit_event(event_id: str, db: Client | None = None) -> CounterAudit:
    """Check an event's counters and teams against its registrations.

    Nothing is written; fixing a drifted roster is left to an operator.
    """
    if db is None:
        db = firestore.client()
    event_doc = db.collection(EVENTS_COLLECTION).document(event_id).get()
    if not event_doc.exists:
        raise NotFoundError("Event not found.")

    registrations = [
        (doc.id, doc.to_dict() or {})
        for doc in db.collection(REGISTRATIONS_COLLECTION)
        .where(filter=firestore.FieldFilter("eventId", "==", event_id))
        .where(filter=firestore.FieldFilter("status", "in", list(SEAT_STATUSES)))
        .stream()
    ]
    seats = [(doc_id, data) for doc_id, data in registrations if holds_seat(data)]
    audit = CounterAudit(
        event_id=event_id,
        stored=Counters.from_event(event_doc.to_dict() or {}),
        confirmed_seats=sum(
            1 for _, d in seats if d["status"] == RegistrationStatus.CONFIRMED.value
        ),
        waitlist_seats=sum(
            1 for _, d in seats if d["status"] == RegistrationStatus.WAITLIST.value
        ),
    )

    seats_by_team = {d.get("teamId"): d for _, d in seats if d.get("teamId")}
    paired = Tally()
    teams = (
        db.collection(TEAMS_COLLECTION)
        .where(filter=firestore.FieldFilter("eventId", "==", event_id))
        .stream()
    )
    for team_doc in teams:
        team = team_doc.to_dict() or {}
        if not team_flags_consistent(team):
            audit.problems.append(
                f"Team {team_doc.id} is {team.get('status')} with inconsistent "
                "confirmations"
            )
        if team.get("status") not in FINAL_TEAM_STATUSES:
            continue
        paired.update([team.get("player1Id"), team.get("player2Id")])
        seat = seats_by_team.get(team_doc.id)
        if seat is None or seat.get("status") != team.get("status"):
            audit.problems.append(
                f"Team {team_doc.id} is {team.get('status')} without a matching seat"
            )

    for user_id, count in paired.items():
        if count > 1:
            audit.problems.append(f"User {user_id} is on {count} finalized teams")
    return audit
