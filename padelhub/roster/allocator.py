"""Seat allocation arithmetic for event capacity."""

from __future__ import annotations

import datetime
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING

from .models import Counters, RegistrationStatus

if TYPE_CHECKING:
    from collections.abc import Iterable

    from .models import Doc

_EPOCH = datetime.datetime.min.replace(tzinfo=datetime.timezone.utc)


@dataclass(frozen=True)
class Allocation:
    """Outcome of granting a seat to a new occupant."""

    status: str
    waitlist_position: int
    counters: Counters


@dataclass(frozen=True)
class Release:
    """Outcome of vacating a seat."""

    counters: Counters
    promoted: list[Doc]


def _timestamp(value: object) -> datetime.datetime:
    if not isinstance(value, datetime.datetime):
        return _EPOCH
    if value.tzinfo is None:
        return value.replace(tzinfo=datetime.timezone.utc)
    return value


def _waitlist_key(candidate: Doc) -> tuple[int, datetime.datetime]:
    # Positions repeat once an earlier entry leaves the waitlist.
    joined = candidate.get("waitlistedAt") or candidate.get("registeredAt")
    return int(candidate.get("waitlistPosition") or 0), _timestamp(joined)


def order_waitlist(candidates: Iterable[Doc]) -> list[Doc]:
    """Order waitlisted registrations first-in first-out.

    Lower waitlistPosition wins; equal positions fall back to the time the
    seat joined the waitlist (waitlistedAt), then to registeredAt.
    """
    return sorted(candidates, key=_waitlist_key)


def allocate(counters: Counters) -> Allocation:
    """Grant a seat: confirmed while capacity remains, else the next waitlist spot."""
    if counters.registrations_count < counters.slots_available:
        return Allocation(
            status=RegistrationStatus.CONFIRMED.value,
            waitlist_position=0,
            counters=replace(
                counters, registrations_count=counters.registrations_count + 1
            ),
        )
    position = counters.waitlist_count + 1
    return Allocation(
        status=RegistrationStatus.WAITLIST.value,
        waitlist_position=position,
        counters=replace(counters, waitlist_count=position),
    )


def release(
    counters: Counters, status: str, candidates: Iterable[Doc] = ()
) -> Release:
    """Vacate a seat held with the given status.

    Vacating a confirmed seat promotes the earliest waitlisted candidates into
    the open seats; each promotion moves one entry off the waitlist and leaves
    the confirmed count where it was. Vacating a waitlist seat only shrinks the
    waitlist. Counters are clamped at zero.
    """
    if status == RegistrationStatus.WAITLIST.value:
        return Release(
            counters=replace(
                counters, waitlist_count=max(counters.waitlist_count - 1, 0)
            ),
            promoted=[],
        )
    if status != RegistrationStatus.CONFIRMED.value:
        return Release(counters=counters, promoted=[])

    remaining = replace(
        counters, registrations_count=max(counters.registrations_count - 1, 0)
    )
    promoted = order_waitlist(candidates)[: remaining.open_seats]
    return Release(
        counters=replace(
            remaining,
            registrations_count=remaining.registrations_count + len(promoted),
            waitlist_count=max(remaining.waitlist_count - len(promoted), 0),
        ),
        promoted=promoted,
    )


def best_seat(holders: Iterable[Doc]) -> Doc | None:
    """Pick the seat a merged pairing keeps: confirmed over waitlisted, oldest first."""
    holders = list(holders)
    for status in (RegistrationStatus.CONFIRMED.value, RegistrationStatus.WAITLIST.value):
        ordered = order_waitlist(h for h in holders if h.get("status") == status)
        if ordered:
            return ordered[0]
    return None
