# events/services/payments.py
"""
Payment gateway adapter.

The gateway processes the money; this side only consumes its callback
``{registrationId, outcome, transactionRef}``. When PAYMENT_WEBHOOK_SECRET is
set the raw body must carry an HMAC-SHA256 hex digest in the
``X-Payment-Signature`` header.
"""
from dataclasses import dataclass
from typing import Optional
import hashlib
import hmac
import logging

from django.conf import settings

from events.exceptions import AlreadyResolved, PaymentSignatureInvalid
from .registration import RegistrationService

logger = logging.getLogger('findmyevent.payments')

SIGNATURE_HEADER = "HTTP_X_PAYMENT_SIGNATURE"


@dataclass
class PaymentCallback:
    registration_id: int
    outcome: str
    transaction_ref: Optional[str] = None


def compute_signature(body, secret):
    if isinstance(body, str):
        body = body.encode("utf-8")
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def verify_signature(body, signature):
    secret = settings.PAYMENT_WEBHOOK_SECRET
    if not secret:
        return
    if not signature or not hmac.compare_digest(compute_signature(body, secret), signature.strip()):
        logger.warning("Payment callback rejected: bad signature")
        raise PaymentSignatureInvalid()


def handle_callback(callback):
    """
    Returns (registration, applied). A repeated callback for an already
    resolved payment is acknowledged with ``applied=False``.
    """
    try:
        registration = RegistrationService.confirm_payment(
            callback.registration_id,
            callback.outcome,
            transaction_ref=callback.transaction_ref,
        )
    except AlreadyResolved:
        logger.info(
            "Payment callback for registration %s ignored: already resolved",
            callback.registration_id,
        )
        return None, False

    logger.info(
        "Payment callback applied: registration %s -> %s",
        registration.pk, registration.status,
    )
    return registration, True
