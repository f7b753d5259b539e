from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from rest_framework.pagination import LimitOffsetPagination
from rest_framework.throttling import ScopedRateThrottle
from rest_framework import status
from django.shortcuts import get_object_or_404
from django.http import HttpResponse  # For CSV export
import logging

from events.exceptions import EventNotFound, RegistrationNotFound, TicketNotFound
from events.models import Event, Registration
from events.serializers import (
    CancelRequestSerializer,
    RegisterRequestSerializer,
    RegistrationSerializer,
    TicketSerializer,
)
from events.services import RegistrationService, TicketService
from events.services.export import write_registrations_csv
from .generics import api_error, user_can_edit_event

logger = logging.getLogger('findmyevent.events')


def _registration_with_relations(registration_id):
    return (
        Registration.objects
        .select_related("user", "event", "team", "ticket")
        .get(pk=registration_id)
    )


def _get_registration_for_caller(request, reg_id):
    """
    The attendee themselves or a manager of the event may act on a
    registration; anyone else gets a 404 so ids cannot be guessed.
    """
    reg = (
        Registration.objects
        .select_related("user", "event", "team", "ticket")
        .filter(pk=reg_id)
        .first()
    )
    if reg is None:
        raise RegistrationNotFound(registration_id=reg_id)
    if reg.user_id != request.user.id and not user_can_edit_event(request.user, reg.event):
        raise RegistrationNotFound(registration_id=reg_id)
    return reg


class RegisterEventView(APIView):
    """
    POST /api/events/<event_id>/register/
    Body: {teamChoice?, teamCode?, teamName?, teamMembers?, formResponses?}
    """
    permission_classes = [IsAuthenticated]
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "registration"

    def post(self, request, event_id):
        serializer = RegisterRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        registration = RegistrationService.register(
            request.user,
            event_id,
            team_choice=data.get("team_choice"),
            team_code=data.get("team_code"),
            team_members=data.get("team_members"),
            form_responses=data.get("form_responses"),
            team_name=data.get("team_name", ""),
        )

        reg = _registration_with_relations(registration.pk)
        return Response(RegistrationSerializer(reg).data, status=status.HTTP_201_CREATED)


class EventRegistrationStatusView(APIView):
    """GET /api/events/<event_id>/registration/ - the caller's registration."""
    permission_classes = [IsAuthenticated]

    def get(self, request, event_id):
        regs = (
            Registration.objects
            .filter(event_id=event_id, user=request.user)
            .select_related("user", "event", "team", "ticket")
        )
        reg = (
            regs.filter(status__in=Registration.ACTIVE_STATUSES).first()
            or regs.order_by("-registered_at", "-id").first()
        )

        if not reg:
            return Response({"registered": False}, status=200)

        return Response({
            "registered": reg.is_active,
            "registration": RegistrationSerializer(reg).data,
        }, status=200)


class EventRegistrationsView(APIView):
    """GET /api/events/<event_id>/registrations/?status=confirmed"""
    permission_classes = [IsAuthenticated]

    def get(self, request, event_id):
        event = Event.objects.filter(pk=event_id).first()
        if event is None:
            raise EventNotFound(event_id=event_id)

        if not user_can_edit_event(request.user, event):
            return api_error("You do not have permission to view registrations for this event.", status.HTTP_403_FORBIDDEN)

        regs = (
            Registration.objects
            .filter(event=event)
            .select_related("user", "team", "ticket")
            .order_by("-registered_at", "-id")
        )
        status_filter = request.query_params.get("status")
        if status_filter:
            regs = regs.filter(status=status_filter)

        paginator = LimitOffsetPagination()
        result_page = paginator.paginate_queryset(regs, request)
        serializer = RegistrationSerializer(result_page, many=True)
        return paginator.get_paginated_response(serializer.data)


class EventRegistrationExportView(APIView):
    """GET /api/events/<event_id>/registrations/export/ - CSV download."""
    permission_classes = [IsAuthenticated]

    def get(self, request, event_id):
        event = get_object_or_404(Event, pk=event_id)

        if not user_can_edit_event(request.user, event):
            return api_error("Permission denied", status.HTTP_403_FORBIDDEN)

        response = HttpResponse(
            content_type="text/csv",
            headers={"Content-Disposition": f'attachment; filename="registrations_{event_id}.csv"'},
        )
        write_registrations_csv(response, event, status=request.query_params.get("status"))

        logger.info("Registrations exported for event %s by user %s", event.pk, request.user.pk)
        return response


class CancelRegistrationView(APIView):
    """POST /api/events/registrations/<reg_id>/cancel/  Body: {reason?}"""
    permission_classes = [IsAuthenticated]

    def post(self, request, reg_id):
        reg = _get_registration_for_caller(request, reg_id)

        serializer = CancelRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        reason = serializer.validated_data["reason"]
        if not reason:
            reason = "attendee_request" if reg.user_id == request.user.id else "organizer_request"

        RegistrationService.cancel(reg.pk, reason=reason)
        return Response(RegistrationSerializer(_registration_with_relations(reg.pk)).data)


class RegistrationTicketView(APIView):
    """GET /api/events/registrations/<reg_id>/ticket/"""
    permission_classes = [IsAuthenticated]

    def get(self, request, reg_id):
        reg = _get_registration_for_caller(request, reg_id)
        ticket = getattr(reg, "ticket", None)
        if ticket is None:
            raise TicketNotFound(registration_id=reg.pk)
        return Response(TicketSerializer(ticket).data)


class RegistrationQRImageView(APIView):
    """GET /api/events/registrations/<reg_id>/ticket/qr_image/ - PNG of the ticket code."""
    permission_classes = [IsAuthenticated]
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "qr-image"

    def get(self, request, reg_id):
        reg = _get_registration_for_caller(request, reg_id)
        ticket = getattr(reg, "ticket", None)
        if ticket is None:
            raise TicketNotFound(registration_id=reg.pk)

        response = HttpResponse(TicketService.render_qr_png(ticket), content_type="image/png")
        response["Cache-Control"] = "no-store"
        return response
