"""
Treatment Finder API Views

- ingestion and the messaging outcome webhook sit behind the shared-secret gate
- opportunity listing, detail and contact actions are open to the
  practice network
"""

import logging

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError
from django.utils import timezone
from django_filters.rest_framework import DjangoFilterBackend
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import NotFound
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from treatment_finder.integrations.scheduling import SchedulingLinkError, SchedulingLinkSigner
from treatment_finder.models import Opportunity
from treatment_finder.services import contact_workflow
from treatment_finder.services.ranking import parse_limit, rank_opportunities
from treatment_finder.services.reconciliation import (
    ReconciliationError,
    ReconciliationService,
    SnapshotError,
)

from .authentication import SharedSecretAuthentication
from .exceptions import IngestFailed, UnknownOpportunity
from .filters import OpportunityFilter
from .permissions import HasSharedSecret
from .serializers import (
    ContactDispatchResponseSerializer,
    ContactDispatchSerializer,
    HealthCheckSerializer,
    IngestResponseSerializer,
    MessagingOutcomeSerializer,
    OpportunityDetailSerializer,
    RankedOpportunitySerializer,
    SnapshotSerializer,
    StatusOverrideResponseSerializer,
    StatusOverrideSerializer,
)
from .throttling import ContactThrottle, IngestionThrottle

logger = logging.getLogger(__name__)


class IngestView(APIView):
    """
    Snapshot ingestion endpoint.

    Accepts a JSON array of treatment-plan snapshots and applies it as one
    atomic batch. A body that is not an array is an empty batch.
    """

    authentication_classes = [SharedSecretAuthentication]
    permission_classes = [HasSharedSecret]
    throttle_classes = [IngestionThrottle]

    @extend_schema(
        summary="Ingest treatment-plan snapshots",
        tags=["Ingestion"],
        request=SnapshotSerializer(many=True),
        responses={200: IngestResponseSerializer, 400: dict, 401: dict, 500: dict},
    )
    def post(self, request):
        items = request.data if isinstance(request.data, list) else []

        try:
            result = ReconciliationService().ingest_batch(items)
        except SnapshotError as e:
            raise IngestFailed(details=e.message)
        except ReconciliationError as e:
            raise IngestFailed(details=e.message, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)

        return Response({"ok": True, "count": result.count})


class OpportunityViewSet(viewsets.GenericViewSet):
    """
    Ranked opportunity worklist and per-opportunity outreach actions.
    """

    queryset = Opportunity.objects.select_related("patient")
    serializer_class = OpportunityDetailSerializer
    filter_backends = [DjangoFilterBackend]
    filterset_class = OpportunityFilter
    permission_classes = [AllowAny]

    def get_signer(self):
        return SchedulingLinkSigner()

    @extend_schema(
        summary="List opportunities by priority",
        tags=["Opportunities"],
        parameters=[
            OpenApiParameter("limit", int, description="Maximum rows (default 100, max 500)"),
        ],
        responses={200: RankedOpportunitySerializer(many=True)},
    )
    def list(self, request):
        queryset = self.filter_queryset(self.get_queryset())
        limit = parse_limit(request.query_params.get("limit"))
        rows = rank_opportunities(queryset, limit=limit, today=timezone.localdate())
        return Response(RankedOpportunitySerializer(rows, many=True).data)

    @extend_schema(
        summary="Opportunity detail with procedures and a scheduling link",
        tags=["Opportunities"],
        responses={200: OpportunityDetailSerializer, 404: dict},
    )
    def retrieve(self, request, pk=None):
        opportunity = self.get_object()

        try:
            scheduling_link = self.get_signer().link_for(opportunity.patient_id)
        except SchedulingLinkError as e:
            logger.error(f"Scheduling link unavailable for opportunity {opportunity.id}: {e}")
            scheduling_link = None

        serializer = self.get_serializer(
            opportunity, context={"request": request, "scheduling_link": scheduling_link}
        )
        return Response(serializer.data)

    @extend_schema(
        summary="Override opportunity status",
        tags=["Outreach"],
        request=StatusOverrideSerializer,
        responses={200: StatusOverrideResponseSerializer, 404: dict},
    )
    @action(detail=True, methods=["post"], url_path="status")
    def set_status(self, request, pk=None):
        serializer = StatusOverrideSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            opportunity = contact_workflow.override_status(
                pk, serializer.validated_data.get("status")
            )
        except (Opportunity.DoesNotExist, DjangoValidationError):
            raise NotFound()

        return Response({"ok": True, "id": opportunity.id, "status": opportunity.status})

    @extend_schema(
        summary="Send outreach for an opportunity",
        tags=["Outreach"],
        request=ContactDispatchSerializer,
        responses={200: ContactDispatchResponseSerializer, 404: dict},
    )
    @action(detail=True, methods=["post"], throttle_classes=[ContactThrottle])
    def contact(self, request, pk=None):
        serializer = ContactDispatchSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            result = contact_workflow.dispatch_contact(
                pk,
                channel=serializer.validated_data.get("channel"),
                template_key=serializer.validated_data.get("templateKey"),
                link_signer=self.get_signer(),
            )
        except (Opportunity.DoesNotExist, DjangoValidationError):
            raise NotFound()

        return Response({"ok": result.ok, "vendor_response": result.vendor_response})


class MessagingOutcomeWebhookView(APIView):
    """
    Delivery and reply outcomes reported by the messaging vendor.

    The whole body is stored on the contact log; status changes only when
    the callback carries one.
    """

    authentication_classes = [SharedSecretAuthentication]
    permission_classes = [HasSharedSecret]

    @extend_schema(
        summary="Record a messaging outcome",
        tags=["Outreach"],
        request=MessagingOutcomeSerializer,
        responses={200: dict, 400: dict, 401: dict},
    )
    def post(self, request):
        serializer = MessagingOutcomeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        payload = request.data.dict() if hasattr(request.data, "dict") else dict(request.data)

        try:
            contact_workflow.record_outcome(payload)
        except (IntegrityError, DjangoValidationError) as e:
            logger.warning(f"Outcome for unknown opportunity rejected: {e.__class__.__name__}")
            raise UnknownOpportunity()

        return Response({"ok": True})


class HealthCheckView(APIView):
    """
    Health check endpoint (no auth required).
    Returns application health status, version, and timestamp.
    """

    authentication_classes = []
    permission_classes = []

    @extend_schema(
        tags=["Health"],
        responses={200: HealthCheckSerializer},
        description="Check API health status",
    )
    def get(self, request):
        return Response(
            {
                "status": "healthy",
                "version": "1.0.0",
                "timestamp": timezone.now().isoformat(),
            }
        )
