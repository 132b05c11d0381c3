"""Utility functions for the roster blueprint."""

from __future__ import annotations

import datetime
from typing import TYPE_CHECKING, Any

from flask import current_app, has_app_context

from padelhub.constants import EVENT_DATE_FORMAT, UNKNOWN_PLAYER_NAME, USERS_COLLECTION

if TYPE_CHECKING:
    from google.cloud.firestore_v1.client import Client


def config_value(key: str, default: Any) -> Any:
    """Read a setting from the app config, or the default outside a request."""
    if has_app_context():
        return current_app.config.get(key, default)
    return default


def display_name(user_data: dict[str, Any] | None, fallback: str | None = None) -> str:
    """Pick the best available display name from a user profile."""
    user_data = user_data or {}
    for key in ("fullName", "fullname", "displayName", "name"):
        value = user_data.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    parts = [user_data.get("firstName"), user_data.get("lastName")]
    joined = " ".join(p.strip() for p in parts if isinstance(p, str) and p.strip())
    if joined:
        return joined
    return fallback or UNKNOWN_PLAYER_NAME


def fetch_player_name(db: Client, user_id: str, fallback: str | None = None) -> str:
    """Look up a player's display name from their user profile."""
    user_doc = db.collection(USERS_COLLECTION).document(user_id).get()
    return display_name(user_doc.to_dict() if user_doc.exists else None, fallback)


def format_event_date(value: Any) -> str:
    """Format an event's dateTime as dd-mm-yy, or an empty string if unknown."""
    if isinstance(value, str):
        try:
            value = datetime.datetime.fromisoformat(value)
        except ValueError:
            return ""
    if isinstance(value, datetime.datetime):
        return value.strftime(EVENT_DATE_FORMAT)
    return ""
