from django.urls import path
from .views import (
    RegisterEventView,
    EventRegistrationStatusView,
    EventRegistrationsView,
    EventRegistrationExportView,
    CancelRegistrationView,
    RegistrationTicketView,
    RegistrationQRImageView,
    ScanQRView,
    TicketVerifyView,
    EventTeamListView,
    TeamDetailView,
    FinalizeTeamsView,
    PaymentCallbackView,
)

urlpatterns = [
    # Registration
    path(
        "<int:event_id>/register/",
        RegisterEventView.as_view(),
        name="event-register",
    ),

    # Caller's registration status (GET ONLY)
    path(
        "<int:event_id>/registration/",
        EventRegistrationStatusView.as_view(),
        name="event-registration-status",
    ),

    # Organizer views
    path(
        "<int:event_id>/registrations/",
        EventRegistrationsView.as_view(),
        name="event-registrations",
    ),
    path(
        "<int:event_id>/registrations/export/",
        EventRegistrationExportView.as_view(),
        name="event-registrations-export",
    ),

    path("registrations/<int:reg_id>/cancel/", CancelRegistrationView.as_view(), name="registration-cancel"),
    path("registrations/<int:reg_id>/ticket/", RegistrationTicketView.as_view(), name="registration-ticket"),
    path("registrations/<int:reg_id>/ticket/qr_image/", RegistrationQRImageView.as_view(), name="registration-qr-image"),

    # Payment gateway
    path("payments/callback/", PaymentCallbackView.as_view(), name="payment-callback"),

    # QR + check-in
    path("tickets/<str:qr_code>/verify/", TicketVerifyView.as_view(), name="ticket-verify"),
    path("scan/<str:qr_code>/", ScanQRView.as_view(), name="scan-qr"),

    # Teams
    path("<int:event_id>/teams/", EventTeamListView.as_view(), name="event-teams"),
    path("<int:event_id>/teams/finalize/", FinalizeTeamsView.as_view(), name="event-teams-finalize"),
    path("teams/<str:code>/", TeamDetailView.as_view(), name="team-detail"),
]
