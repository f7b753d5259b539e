from .registration import RegistrationService
from .teams import TeamService
from .tickets import CheckInResult, TicketService, TicketVerification

__all__ = [
    "RegistrationService",
    "TeamService",
    "TicketService",
    "CheckInResult",
    "TicketVerification",
]
