from .registrations import (
    RegisterEventView,
    EventRegistrationStatusView,
    EventRegistrationsView,
    EventRegistrationExportView,
    CancelRegistrationView,
    RegistrationTicketView,
    RegistrationQRImageView,
)
from .scan import ScanQRView, TicketVerifyView
from .teams import EventTeamListView, TeamDetailView, FinalizeTeamsView
from .payments import PaymentCallbackView
from .generics import api_error
