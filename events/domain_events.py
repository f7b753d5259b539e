# events/domain_events.py
"""
Signals emitted by the ticketing services once the surrounding transaction
commits. Receivers live in ``events.signals``; the services themselves know
nothing about notifications or the activity ledger.
"""
from django.db import transaction
from django.dispatch import Signal

# kwargs: registration
registration_created = Signal()
registration_confirmed = Signal()
registration_cancelled = Signal()
payment_failed = Signal()

# kwargs: ticket
ticket_issued = Signal()
# kwargs: ticket, scanned_by
ticket_checked_in = Signal()

# kwargs: team, user
team_created = Signal()
team_joined = Signal()
# kwargs: team
team_disbanded = Signal()


def emit_on_commit(signal, sender, **kwargs):
    """Send ``signal`` after commit; dropped if the transaction rolls back."""
    transaction.on_commit(lambda: signal.send(sender=sender, **kwargs))
