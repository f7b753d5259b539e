from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from rest_framework.throttling import ScopedRateThrottle
from rest_framework import status
import logging

from events.models import ScanLog
from events.serializers import EventSummarySerializer, TicketSerializer
from events.services import CheckInResult, TicketService
from events.stores import TicketStore
from users.serializers import UserSummarySerializer
from .generics import api_error, client_ip, user_can_scan_event, user_is_system_admin

logger = logging.getLogger('findmyevent.events')

SCANNER_ROLES = ("crew", "organizer", "admin")


def user_has_scanner_role(user):
    return user_is_system_admin(user) or getattr(user, "role", None) in SCANNER_ROLES


class TicketVerifyView(APIView):
    """
    GET /api/events/tickets/<qr_code>/verify/

    Read-only lookup for crew: who holds this ticket and is it still good.
    """
    permission_classes = [IsAuthenticated]
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "qr-scan"

    def get(self, request, qr_code):
        if not user_has_scanner_role(request.user):
            return api_error("Not authorized to verify tickets.", status.HTTP_403_FORBIDDEN)

        verification = TicketService.verify(qr_code)
        if not user_can_scan_event(request.user, verification.event):
            return api_error("Not authorized to verify tickets for this event.", status.HTTP_403_FORBIDDEN)

        return Response({
            "ticket": TicketSerializer(verification.ticket).data,
            "event": EventSummarySerializer(verification.event).data,
            "user": UserSummarySerializer(verification.user).data,
        })


class ScanQRView(APIView):
    """
    POST /api/events/scan/<qr_code>/

    Single-use check-in. Every attempt is written to ScanLog.
    Response: {valid, status: checked_in|already_used|invalid, ticket?, event?, user?, usedAt?}
    """
    permission_classes = [IsAuthenticated]
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "qr-scan"

    def post(self, request, qr_code):
        ip_address = client_ip(request)
        scanner = request.user
        qr_code_str = str(qr_code).strip()

        if not user_has_scanner_role(scanner):
            return api_error("Not authorized to scan tickets.", status.HTTP_403_FORBIDDEN)

        ticket = TicketStore().get_by_qr(qr_code_str)
        if ticket is not None and not user_can_scan_event(scanner, ticket.event):
            return api_error("Not authorized to scan for this event.", status.HTTP_403_FORBIDDEN)

        result = TicketService.check_in(qr_code_str, scanned_by=scanner)

        ScanLog.objects.create(
            event=result.ticket.event if result.ticket else None,
            ticket=result.ticket,
            scanned_by=scanner,
            qr_code=qr_code_str[:128],
            ip_address=ip_address,
            outcome=result.status,
        )

        if result.status == CheckInResult.INVALID:
            return Response(
                {"valid": False, "status": result.status, "message": "Invalid ticket"},
                status=status.HTTP_404_NOT_FOUND,
            )

        ticket = result.ticket
        return Response({
            "valid": result.valid,
            "status": result.status,
            "message": "Check-in successful" if result.valid else "Already checked in",
            "ticket": TicketSerializer(ticket).data,
            "event": EventSummarySerializer(ticket.event).data,
            "user": UserSummarySerializer(ticket.user).data,
            "usedAt": result.used_at.isoformat() if result.used_at else None,
            "scanned_by": getattr(scanner, "username", None),
        }, status=status.HTTP_200_OK)
