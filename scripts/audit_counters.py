"""
Audit script comparing each event's stored counters with the seats it holds.
"""

from __future__ import annotations

import os
import sys
from typing import TYPE_CHECKING

import firebase_admin
from firebase_admin import credentials, firestore

from padelhub.constants import CLOSED_EVENT_STATUSES, EVENTS_COLLECTION
from padelhub.roster.audit import audit_event

if TYPE_CHECKING:
    from google.cloud.firestore_v1.client import Client


def initialize_app() -> firebase_admin.App:
    """Initializes the Firebase app from the key file named in AUDIT_KEY_PATH."""
    key_path = os.environ.get("AUDIT_KEY_PATH")
    if not key_path:
        print("Error: AUDIT_KEY_PATH environment variable must be set.")
        sys.exit(1)
    return firebase_admin.initialize_app(credentials.Certificate(key_path), name="audit")


def audit_open_events(db: Client) -> int:
    """Audits every event still taking registrations, returning the drift count."""
    drifted = 0
    for event_doc in db.collection(EVENTS_COLLECTION).stream():
        event = event_doc.to_dict() or {}
        if event.get("status") in CLOSED_EVENT_STATUSES:
            continue
        result = audit_event(event_doc.id, db=db)
        if result.consistent:
            continue
        drifted += 1
        print(f"Event {event_doc.id} ({event.get('eventName', 'unnamed')}):")
        print(
            f"  stored {result.stored.registrations_count} confirmed / "
            f"{result.stored.waitlist_count} waitlisted, "
            f"held {result.confirmed_seats} / {result.waitlist_seats}"
        )
        for problem in result.problems:
            print(f"  {problem}")
    return drifted


def main() -> None:
    """Main entry point for the audit script."""
    try:
        app = initialize_app()
        drifted = audit_open_events(firestore.client(app=app))
    except Exception as e:
        print(f"\nAn error occurred during the audit: {e}")
        sys.exit(1)

    if drifted:
        print(f"\n{drifted} event(s) have drifted counters.")
        sys.exit(2)
    print("\nAll event counters are consistent.")


if __name__ == "__main__":
    main()
