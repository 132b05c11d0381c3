"""Global constants for the padelhub application."""

# Collection names
USERS_COLLECTION = "users"
EVENTS_COLLECTION = "events"
REGISTRATIONS_COLLECTION = "registrations"
TEAMS_COLLECTION = "teams"
NOTIFICATIONS_COLLECTION = "notifications"

# Event unit types
UNIT_PLAYERS = "Players"
UNIT_TEAMS = "Teams"

# Events in these states no longer accept registrations
CLOSED_EVENT_STATUSES = ("Past", "Cancelled", "Completed")

# Transaction orchestration
DEFAULT_MAX_ATTEMPTS = 5
# Waitlist entries fetched per promotion scan, enough to break position ties
DEFAULT_PROMOTION_SCAN_LIMIT = 5

# Display fallbacks
UNKNOWN_PLAYER_NAME = "Unknown Player"
EVENT_DATE_FORMAT = "%d-%m-%y"
