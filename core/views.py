from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.pagination import LimitOffsetPagination
from django.db import connections
from django.db.utils import OperationalError
from django.conf import settings
import time

from events.activity_verbs import VERB_CATEGORIES
from .models import DomainActivity
from .serializers import DomainActivitySerializer


class HealthCheckView(APIView):
    """
    Lightweight health endpoint for uptime checks.
    - Checks DB connectivity
    - Returns env and simple latency
    """
    permission_classes = [AllowAny]
    authentication_classes = []  # public endpoint

    def get(self, request, *args, **kwargs):
        start = time.time()

        db_ok = True
        try:
            connections["default"].cursor()
        except OperationalError:
            db_ok = False

        duration_ms = int((time.time() - start) * 1000)

        return Response(
            {
                "status": "ok" if db_ok else "degraded",
                "db": db_ok,
                "env": getattr(settings, "ENV", "unknown"),
                "latency_ms": duration_ms,
            }
        )


class MyActivityView(APIView):
    """
    GET /api/core/me/activity/?category=ticket
    The caller's own registration / ticket history from the activity ledger.
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        qs = (
            DomainActivity.objects
            .filter(actor=request.user)
            .select_related("actor", "content_type")
        )
        category = request.query_params.get("category")
        if category in VERB_CATEGORIES:
            qs = qs.filter(verb__in=VERB_CATEGORIES[category])

        paginator = LimitOffsetPagination()
        page = paginator.paginate_queryset(qs, request)
        return paginator.get_paginated_response(DomainActivitySerializer(page, many=True).data)
