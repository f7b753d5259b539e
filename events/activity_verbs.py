# events/activity_verbs.py
"""
Activity verbs written to DomainActivity by the ticketing subscribers.

Use these constants instead of string literals so the ledger can be
filtered by category.
"""

# Registration
REGISTRATION_CREATED = "registration.created"
REGISTRATION_CONFIRMED = "registration.confirmed"
REGISTRATION_CANCELED = "registration.canceled"

# Payment
PAYMENT_FAILED = "payment.failed"

# Tickets
TICKET_ISSUED = "ticket.issued"
TICKET_CHECKED_IN = "ticket.checked_in"

# Teams
TEAM_CREATED = "team.created"
TEAM_MEMBER_JOINED = "team.member_joined"
TEAM_DISBANDED = "team.disbanded"

# Grouped by category for filtering
VERB_CATEGORIES = {
    "registration": [
        REGISTRATION_CREATED, REGISTRATION_CONFIRMED, REGISTRATION_CANCELED,
    ],
    "payment": [
        PAYMENT_FAILED,
    ],
    "ticket": [
        TICKET_ISSUED, TICKET_CHECKED_IN,
    ],
    "team": [
        TEAM_CREATED, TEAM_MEMBER_JOINED, TEAM_DISBANDED,
    ],
}

