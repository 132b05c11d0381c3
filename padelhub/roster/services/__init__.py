"""Services for the roster blueprint."""

from .acceptance import AcceptanceService
from .dissolution import DissolutionService
from .invites import InviteService
from .registration import RegistrationService
from ..audit import audit_event as _audit_event


class RosterService:
    """Service class for the partner-pairing and roster operations of an event."""

    register = staticmethod(RegistrationService.register)
    withdraw = staticmethod(RegistrationService.withdraw)
    send_invite = staticmethod(InviteService.send_invite)
    accept_invite = staticmethod(AcceptanceService.accept_invite)
    dissolve_team = staticmethod(DissolutionService.dissolve_team)
    audit_event = staticmethod(_audit_event)


__all__ = [
    "AcceptanceService",
    "DissolutionService",
    "InviteService",
    "RegistrationService",
    "RosterService",
]
