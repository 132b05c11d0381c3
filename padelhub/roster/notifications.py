"""Notifications emitted by roster operations."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from firebase_admin import firestore

from padelhub.constants import NOTIFICATIONS_COLLECTION

from .models import Notification, NotificationType

if TYPE_CHECKING:
    from google.cloud.firestore_v1.client import Client
    from google.cloud.firestore_v1.transaction import Transaction


TEMPLATES = {
    NotificationType.PARTNER_INVITE: (
        "New partner invite",
        "{from_name} invited you to team up for {event_name}.",
    ),
    NotificationType.PARTNER_ACCEPTED: (
        "Invite accepted",
        "{from_name} accepted your invite. You are teamed up for {event_name} "
        "on {event_date}.",
    ),
    NotificationType.PARTNER_DECLINED: (
        "Invite declined",
        "{from_name} declined your invite for {event_name}.",
    ),
    NotificationType.PARTNER_JOINED_OTHER: (
        "Partner unavailable",
        "{from_name} teamed up with someone else for {event_name}. "
        "You are looking for a partner again.",
    ),
    NotificationType.INVITE_CANCELLED: (
        "Invite cancelled",
        "{from_name} cancelled their invite for {event_name}.",
    ),
    NotificationType.PARTNER_LEFT: (
        "Partner left",
        "{from_name} left your team for {event_name}. "
        "You are looking for a partner again.",
    ),
    NotificationType.TEAM_WITHDRAWN: (
        "Team withdrawn",
        "{from_name} withdrew your team from {event_name}.",
    ),
    NotificationType.WAITLIST_PROMOTED: (
        "You're in!",
        "A spot opened up and you are now confirmed for {event_name}.",
    ),
}


class NotificationEmitter:
    """Collects notifications during a commit and writes them with it.

    A notification that cannot be built is logged and dropped; it never fails
    the roster change it describes.
    """

    def __init__(self, db: Client, event_id: str, event_name: str = "", **context):
        self.db = db
        self.event_id = event_id
        self.context = {"event_name": event_name or "the event", **context}
        self.pending: list[Notification] = []

    def notify(
        self,
        user_id: str | None,
        notification_type: NotificationType,
        team_id: str | None = None,
        from_user_id: str | None = None,
        **context: Any,
    ) -> None:
        """Queue a notification for user_id."""
        if not user_id:
            return
        try:
            title, template = TEMPLATES[notification_type]
            message = template.format(**{**self.context, **context})
            payload: Notification = {
                "userId": user_id,
                "type": notification_type.value,
                "title": title,
                "message": message,
                "eventId": self.event_id,
                "teamId": team_id,
                "fromUserId": from_user_id,
                "read": False,
            }
        except (KeyError, IndexError, ValueError) as e:
            logging.error(
                f"Skipping {notification_type} notification for {user_id}: {e}"
            )
            return
        self.pending.append(payload)

    def flush(self, transaction: Transaction) -> list[str]:
        """Write the queued notifications as part of the transaction."""
        ids = []
        for payload in self.pending:
            ref = self.db.collection(NOTIFICATIONS_COLLECTION).document()
            transaction.set(
                ref,
                {
                    **payload,
                    "notificationId": ref.id,
                    "createdAt": firestore.SERVER_TIMESTAMP,
                },
            )
            ids.append(ref.id)
        self.pending = []
        return ids


def mark_read(transaction: Transaction, ref: Any, snapshot: Any, user_id: str) -> bool:
    """Mark a notification read if it still exists and belongs to user_id.

    The snapshot must have been read inside the same transaction.
    """
    if snapshot is None or not snapshot.exists:
        return False
    data = snapshot.to_dict() or {}
    if data.get("userId") != user_id or data.get("read"):
        return False
    transaction.update(ref, {"read": True})
    return True
