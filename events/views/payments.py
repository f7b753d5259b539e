from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.permissions import AllowAny
from rest_framework.throttling import ScopedRateThrottle
from rest_framework import status

from events.serializers import PaymentCallbackSerializer
from events.services.payments import (
    SIGNATURE_HEADER,
    PaymentCallback,
    handle_callback,
    verify_signature,
)


class PaymentCallbackView(APIView):
    """
    POST /api/events/payments/callback/
    Body: {"registrationId": 12, "outcome": "success" | "failure", "transactionRef": "..."}

    Called server-to-server by the payment gateway. Repeated callbacks are
    acknowledged with "applied": false so the gateway stops retrying.
    """
    authentication_classes = []
    permission_classes = [AllowAny]
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "payment-callback"

    def post(self, request):
        # Raw body first; DRF parsing consumes the stream
        verify_signature(request.body, request.META.get(SIGNATURE_HEADER))

        serializer = PaymentCallbackSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        registration, applied = handle_callback(PaymentCallback(**serializer.validated_data))

        body = {"acknowledged": True, "applied": applied}
        if registration is not None:
            body.update(
                registrationId=registration.pk,
                status=registration.status,
                paymentStatus=registration.payment_status,
            )
        return Response(body, status=status.HTTP_200_OK)
