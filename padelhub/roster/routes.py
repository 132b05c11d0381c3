"""Routes for the roster blueprint."""

from __future__ import annotations

from dataclasses import asdict
from typing import Any

from firebase_admin import firestore
from flask import current_app, jsonify, request, session

from padelhub.auth.decorators import login_required
from padelhub.core.types import APIResponse
from padelhub.errors import ValidationError

from . import bp
from .services import RosterService


def _respond(message: str, data: dict[str, Any] | None, status: int = 200) -> Any:
    body: APIResponse = {"success": True, "message": message, "data": data}
    return jsonify(body), status


def _payload() -> dict[str, Any]:
    return request.get_json(silent=True) or {}


@bp.route("/events/<string:event_id>/register", methods=["POST"])
@login_required
def register(event_id):
    """Register the current user for an event."""
    result = RosterService.register(
        session["user_id"], event_id, db=firestore.client()
    )
    return _respond("You are registered.", asdict(result), 201)


@bp.route("/registrations/<string:registration_id>/withdraw", methods=["POST"])
@login_required
def withdraw(registration_id):
    """Withdraw one of the current user's registrations."""
    result = RosterService.withdraw(
        session["user_id"], registration_id, db=firestore.client()
    )
    return _respond("Your registration was withdrawn.", asdict(result))


@bp.route("/events/<string:event_id>/invites", methods=["POST"])
@login_required
def send_invite(event_id):
    """Invite a partner to team up for an event."""
    partner_id = _payload().get("partnerId")
    if not partner_id or not isinstance(partner_id, str):
        raise ValidationError("A partnerId is required.")
    result = RosterService.send_invite(
        session["user_id"], event_id, partner_id, db=firestore.client()
    )
    current_app.logger.info(
        f"User {session['user_id']} invited {partner_id} to event {event_id} "
        f"({result.mode})"
    )
    return _respond("Invite sent.", asdict(result), 201)


@bp.route("/teams/<string:team_id>/accept", methods=["POST"])
@login_required
def accept_invite(team_id):
    """Accept a partner invite."""
    result = RosterService.accept_invite(
        session["user_id"],
        team_id,
        _payload().get("notificationId"),
        db=firestore.client(),
    )
    message = "You are teamed up." if result.changed else "Nothing left to accept."
    return _respond(message, asdict(result))


@bp.route("/teams/<string:team_id>/dissolve", methods=["POST"])
@login_required
def dissolve_team(team_id):
    """Decline, cancel or leave a team."""
    payload = _payload()
    action = str(payload.get("action") or "").upper()
    if not action:
        raise ValidationError("An action is required.")
    result = RosterService.dissolve_team(
        session["user_id"],
        team_id,
        action,
        payload.get("notificationId"),
        db=firestore.client(),
    )
    return _respond("The team was dissolved.", asdict(result))


@bp.route("/events/<string:event_id>/audit", methods=["GET"])
@login_required(admin_required=True)
def audit(event_id):
    """Compare an event's counters with its seats."""
    result = RosterService.audit_event(event_id, db=firestore.client())
    if not result.consistent:
        current_app.logger.warning(
            f"Roster audit of event {event_id} found drift: {result.problems}"
        )
    return _respond("Audit complete.", result.to_dict())
