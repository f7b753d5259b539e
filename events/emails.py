# events/emails.py
from django.conf import settings
from django.core.mail import EmailMessage, send_mail
from django.urls import NoReverseMatch, reverse

from events.services.tickets import TicketService


def build_ticket_url(request, ticket):
    """
    Absolute URL of the ticket endpoint. Falls back to a relative path
    when there is no request (Celery).
    """
    try:
        path = reverse("registration-ticket", args=[ticket.registration_id])
    except NoReverseMatch:
        path = f"/api/events/registrations/{ticket.registration_id}/ticket/"
    if request is not None:
        return request.build_absolute_uri(path)
    return path


def send_ticket_email(ticket, request=None):
    """
    Mail the attendee their ticket with the QR code attached as a PNG.
    """
    user = ticket.user
    event = ticket.event

    if not getattr(user, "email", None):
        return False

    subject = f"Your ticket for {event.title}"
    message = (
        f"Hi {user.display_name},\n\n"
        f"You're in! Your ticket for:\n"
        f"  {event.title}\n"
        f"  Venue: {event.venue or 'TBA'}\n"
        f"  Starts: {event.start_time or 'TBA'}\n\n"
        f"Ticket code: {ticket.qr_code}\n"
        f"Show the attached QR code at the entrance.\n"
        f"You can also open your ticket here:\n"
        f"{build_ticket_url(request, ticket)}\n\n"
        f"See you there,\n"
        f"FindMyEvent"
    )

    email = EmailMessage(
        subject=subject,
        body=message,
        from_email=settings.DEFAULT_FROM_EMAIL,
        to=[user.email],
    )
    email.attach(f"ticket_{ticket.qr_code}.png", TicketService.render_qr_png(ticket), "image/png")
    email.send(fail_silently=False)
    return True


def send_cancellation_email(registration):
    user = registration.user
    event = registration.event

    if not getattr(user, "email", None):
        return False

    reason = (registration.cancel_reason or "").replace("_", " ")
    suffix = f" ({reason})" if reason else ""

    message = (
        f"Hi {user.display_name},\n\n"
        f"Your registration for {event.title} has been cancelled{suffix}.\n"
        f"Any ticket issued for it is no longer valid.\n\n"
        f"FindMyEvent"
    )

    send_mail(
        subject=f"Registration cancelled: {event.title}",
        message=message,
        from_email=settings.DEFAULT_FROM_EMAIL,
        recipient_list=[user.email],
        fail_silently=True,
    )
    return True
