"""Accepting partner invites."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from firebase_admin import firestore

from padelhub.constants import REGISTRATIONS_COLLECTION, TEAMS_COLLECTION
from padelhub.errors import PreconditionError, RejectReason, StaleReadError

from ..allocator import best_seat
from ..models import (
    FINAL_TEAM_STATUSES,
    AcceptResult,
    Doc,
    NotificationType,
    PartnerStatus,
    RegistrationStatus,
    TeamStatus,
    confirmation_field,
    holds_seat,
    other_member,
)
from ..orchestrator import Settled, run_roster_operation
from ..pairing import Orphan, find_orphans
from .common import (
    RosterCommit,
    acknowledge,
    ensure_open,
    find_team_registration,
    free_agent_fields,
    get_document,
    get_event,
    load_footprint,
    player_names,
    roster_version,
    utc_now,
    waitlist_candidates,
)

if TYPE_CHECKING:
    from google.cloud.firestore_v1.client import Client
    from google.cloud.firestore_v1.transaction import Transaction


@dataclass(frozen=True)
class AcceptPlan:
    team: Doc
    acceptor_id: str
    partner_id: str
    version: int
    shared: Doc
    superseded: tuple[Doc, ...]
    orphans: tuple[Orphan, ...]
    candidates: tuple[Doc, ...]
    names: dict[str, str]
    notification_id: Optional[str] = None

    @property
    def flag(self) -> str:
        return confirmation_field(self.team.data, self.acceptor_id)

    @property
    def member_ids(self) -> tuple[str, str]:
        return self.acceptor_id, self.partner_id


@dataclass(frozen=True)
class AcknowledgePlan:
    """Accepting something already resolved only consumes the notification."""

    result: AcceptResult
    acceptor_id: str
    notification_id: str


class AcceptanceService:
    """Service class for accepting partner invites."""

    @staticmethod
    def _plan(
        db: Client, acceptor_id: str, team_id: str, notification_id: Optional[str]
    ) -> AcceptPlan | AcknowledgePlan | Settled:
        team = get_document(db, TEAMS_COLLECTION, team_id)
        if team is None or team.get("status") in FINAL_TEAM_STATUSES:
            if team is not None and confirmation_field(team.data, acceptor_id) is None:
                raise PreconditionError(RejectReason.NOT_TEAM_MEMBER)
            result = AcceptResult(
                team_id=team_id,
                status=team.get("status") if team else None,
                changed=False,
            )
            if notification_id:
                return AcknowledgePlan(result, acceptor_id, notification_id)
            return Settled(result)

        flag = confirmation_field(team.data, acceptor_id)
        if flag is None:
            raise PreconditionError(RejectReason.NOT_TEAM_MEMBER)
        if team.get(flag):
            raise PreconditionError(RejectReason.NOTHING_TO_ACCEPT)
        partner_id = other_member(team.data, acceptor_id)

        event_id = team.get("eventId")
        event = get_event(db, event_id)
        ensure_open(event)
        acceptor = load_footprint(db, event_id, acceptor_id)
        partner = load_footprint(db, event_id, partner_id)
        if acceptor.finalized_teams(exclude=team_id):
            raise PreconditionError(RejectReason.ALREADY_PAIRED)
        if partner.finalized_teams(exclude=team_id):
            raise PreconditionError(RejectReason.PARTNER_UNAVAILABLE)

        shared = find_team_registration(db, team_id)
        if shared is None:
            unlinked = [r for r in acceptor.primary if not r.get("teamId")]
            unlinked.sort(key=lambda r: not holds_seat(r.data))
            if not unlinked:
                raise PreconditionError(RejectReason.REGISTRATION_MISSING)
            shared = unlinked[0]

        superseded = {
            r.id: r for r in acceptor.primary + partner.primary if r.id != shared.id
        }
        orphans = find_orphans(team_id, (acceptor, partner))
        seat_holders = [r for r in [shared, *superseded.values()] if holds_seat(r.data)]
        candidates: tuple[Doc, ...] = ()
        if len(seat_holders) > 1:
            candidates = waitlist_candidates(
                db, event_id, exclude=[shared.id, *superseded]
            )
        third_parties = [o.third_party_id for o in orphans if o.third_party_id]
        return AcceptPlan(
            team=team,
            acceptor_id=acceptor_id,
            partner_id=partner_id,
            version=roster_version(event),
            shared=shared,
            superseded=tuple(superseded.values()),
            orphans=tuple(orphans),
            candidates=candidates,
            names=player_names(db, acceptor_id, partner_id, *third_parties),
            notification_id=notification_id,
        )

    @staticmethod
    def _commit(
        db: Client, transaction: Transaction, plan: AcceptPlan | AcknowledgePlan
    ) -> AcceptResult:
        if isinstance(plan, AcknowledgePlan):
            acknowledge(db, transaction, plan.notification_id, plan.acceptor_id)
            return plan.result

        roster = RosterCommit(db, transaction, plan.team.get("eventId"), plan.version)
        team = roster.read_existing(TEAMS_COLLECTION, plan.team.id)
        if team.get("status") != TeamStatus.PENDING.value or team.get(plan.flag):
            raise StaleReadError(f"team {team.id} is no longer waiting on the acceptor")
        shared = roster.read_existing(REGISTRATIONS_COLLECTION, plan.shared.id)
        superseded = [
            roster.read_existing(REGISTRATIONS_COLLECTION, r.id) for r in plan.superseded
        ]
        superseded_ids = {r.id for r in superseded}
        orphan_teams = {
            o.team.id: roster.read(TEAMS_COLLECTION, o.team.id) for o in plan.orphans
        }
        reverts = {}
        for orphan in plan.orphans:
            for reg in orphan.registrations:
                if reg.id in superseded_ids or reg.id == shared.id:
                    continue
                fresh = roster.read(REGISTRATIONS_COLLECTION, reg.id)
                if fresh is not None and fresh.get("teamId") == orphan.team.id:
                    reverts[fresh.id] = fresh
        roster.read_candidates(plan.candidates)
        roster.read_notification(plan.notification_id, plan.acceptor_id)

        seat_holders = [r for r in [shared, *superseded] if holds_seat(r.data)]
        seat = best_seat(seat_holders)
        if seat is not None:
            status = seat.get("status")
            position = int(seat.get("waitlistPosition") or 0)
            waitlisted_at = seat.get("waitlistedAt") or seat.get("registeredAt")
            for holder in seat_holders:
                if holder.id != seat.id:
                    roster.release(holder.get("status"))
        else:
            allocation = roster.allocate()
            status, position = allocation.status, allocation.waitlist_position
            waitlisted_at = utc_now()
        if status != RegistrationStatus.WAITLIST.value:
            waitlisted_at = None

        roster.update(
            TEAMS_COLLECTION, team.id, {plan.flag: True, "status": status}
        )
        owner = shared.get("playerId")
        if owner not in plan.member_ids:
            owner = plan.acceptor_id
        secondary = other_member(team.data, owner)
        roster.update(
            REGISTRATIONS_COLLECTION,
            shared.id,
            {
                "playerId": owner,
                "player2Id": secondary,
                "fullNameP1": plan.names[owner],
                "fullNameP2": plan.names[secondary],
                "teamId": team.id,
                "status": status,
                "waitlistPosition": position,
                "waitlistedAt": waitlisted_at,
                "holdsSeat": True,
                "partnerStatus": PartnerStatus.CONFIRMED.value,
                "lookingForPartner": False,
                "updatedAt": firestore.SERVER_TIMESTAMP,
            },
        )
        for reg in superseded:
            roster.update(
                REGISTRATIONS_COLLECTION,
                reg.id,
                {
                    "status": RegistrationStatus.CANCELLED.value,
                    "holdsSeat": False,
                    "lookingForPartner": False,
                    "updatedAt": firestore.SERVER_TIMESTAMP,
                },
            )

        dissolved = []
        for orphan in plan.orphans:
            if orphan_teams.get(orphan.team.id) is None:
                continue
            roster.delete(TEAMS_COLLECTION, orphan.team.id)
            dissolved.append(orphan.team.id)
            roster.notifications.notify(
                orphan.third_party_id,
                NotificationType.PARTNER_JOINED_OTHER,
                orphan.team.id,
                orphan.member_id,
                from_name=plan.names[orphan.member_id],
            )
        for reg in reverts.values():
            roster.update(
                REGISTRATIONS_COLLECTION,
                reg.id,
                {
                    **free_agent_fields(reg.get("status")),
                    "updatedAt": firestore.SERVER_TIMESTAMP,
                },
            )

        roster.notifications.notify(
            plan.partner_id,
            NotificationType.PARTNER_ACCEPTED,
            team.id,
            plan.acceptor_id,
            from_name=plan.names[plan.acceptor_id],
        )
        promoted = roster.finish()
        return AcceptResult(
            team_id=team.id,
            status=status,
            dissolved_team_ids=dissolved,
            promoted_registration_ids=promoted,
        )

    @staticmethod
    def accept_invite(
        acceptor_id: str,
        team_id: str,
        notification_id: Optional[str] = None,
        db: Client | None = None,
    ) -> AcceptResult:
        """Accept a pending partner invite.

        The team takes over the best seat either player already held, or a new
        one from the allocator. The players' other registrations are cancelled
        and their other pending teams are dissolved.
        """
        if db is None:
            db = firestore.client()
        return run_roster_operation(
            db,
            "accept_invite",
            lambda: AcceptanceService._plan(db, acceptor_id, team_id, notification_id),
            lambda transaction, plan: AcceptanceService._commit(db, transaction, plan),
        )
