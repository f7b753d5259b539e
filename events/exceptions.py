"""
Registration & ticketing error taxonomy.

Every error is recoverable and returned to the caller. ``code`` is stable and
meant for client-side translation ("Event Full", "Already Used", ...);
``status_code`` is what the API layer answers with.
"""


class TicketingError(Exception):
    code = "ticketing_error"
    status_code = 400
    default_message = "Registration could not be processed."

    def __init__(self, message=None, **context):
        self.message = message or self.default_message
        self.context = context
        super().__init__(self.message)

    def as_dict(self):
        data = {"code": self.code, "detail": self.message}
        data.update(self.context)
        return data


# --- Registration ---------------------------------------------------------

class EventNotFound(TicketingError):
    code = "event_not_found"
    status_code = 404
    default_message = "Event not found."


class EventNotOpen(TicketingError):
    code = "event_not_open"
    status_code = 409
    default_message = "Event is not open for registration."


class AlreadyRegistered(TicketingError):
    code = "already_registered"
    status_code = 409
    default_message = "Already registered for this event."


class CapacityExceeded(TicketingError):
    code = "capacity_exceeded"
    status_code = 409
    default_message = "Event is full."


class RegistrationFormInvalid(TicketingError):
    code = "registration_form_invalid"
    default_message = "Registration form is incomplete."


class RegistrationNotFound(TicketingError):
    code = "registration_not_found"
    status_code = 404
    default_message = "Registration not found."


class InvalidRegistrationState(TicketingError):
    code = "invalid_registration_state"
    status_code = 409
    default_message = "Registration cannot change from its current status."


class AlreadyResolved(TicketingError):
    """Duplicate or late payment callback."""
    code = "already_resolved"
    status_code = 409
    default_message = "Payment for this registration was already resolved."


class PaymentSignatureInvalid(TicketingError):
    code = "payment_signature_invalid"
    status_code = 403
    default_message = "Payment callback signature mismatch."


# --- Teams ----------------------------------------------------------------

class TeamChoiceRequired(TicketingError):
    code = "team_choice_required"
    default_message = "This is a team event: create a team or join one with a code."


class TeamCodeInvalid(TicketingError):
    code = "team_code_invalid"
    status_code = 404
    default_message = "No open team matches this code."


class TeamFull(TicketingError):
    code = "team_full"
    status_code = 409
    default_message = "This team is full."


class AlreadyOnTeam(TicketingError):
    code = "already_on_team"
    status_code = 409
    default_message = "Already a member of a team for this event."


class TeamSizeBelowMinimum(TicketingError):
    code = "team_size_below_minimum"
    status_code = 409
    default_message = "Team has fewer members than the event requires."


# --- Tickets --------------------------------------------------------------

class TicketNotIssuable(TicketingError):
    code = "ticket_not_issuable"
    status_code = 409
    default_message = "Tickets are only issued for confirmed registrations."


class TicketInvalid(TicketingError):
    code = "ticket_invalid"
    status_code = 404
    default_message = "Invalid ticket."


class TicketNotFound(TicketInvalid):
    code = "ticket_not_found"
    default_message = "No ticket matches this code."


class TicketAlreadyUsed(TicketingError):
    code = "ticket_already_used"
    status_code = 409
    default_message = "Ticket was already used."

    def __init__(self, message=None, used_at=None, **context):
        self.used_at = used_at
        super().__init__(message, **context)


# --- Storage --------------------------------------------------------------

class StorageConflict(TicketingError):
    """Transient lock / serialization failure; safe to retry."""
    code = "storage_conflict"
    status_code = 503
    default_message = "The request collided with another update. Please retry."
