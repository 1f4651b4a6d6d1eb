"""
Quality check views for the Order Fulfillment lifecycle engine.
"""

from rest_framework import viewsets, mixins, status, filters
from django_filters.rest_framework import DjangoFilterBackend

from ..models import QualityCheck
from ..services import QualityService
from ..serializers.quality_serializers import QualityCheckSerializer, QualityCheckCreateSerializer
from ..permissions import IsFulfillmentStaff
from ..utils import parse_uuid
from .responses import service_response, actor_for


class QualityCheckViewSet(mixins.ListModelMixin, mixins.RetrieveModelMixin, viewsets.GenericViewSet):
    """ViewSet for quality checks. Checks are append-only."""

    permission_classes = [IsFulfillmentStaff]
    filter_backends = [DjangoFilterBackend, filters.OrderingFilter]
    filterset_fields = ['order', 'check_type', 'overall_result']
    ordering = ['-checked_at']

    def get_queryset(self):
        org_pk = parse_uuid(self.kwargs.get('org_id'))
        if org_pk is None:
            return QualityCheck.objects.none()
        return QualityCheck.objects.filter(org_id=org_pk).select_related('order')

    def get_serializer_class(self):
        if self.action == 'create':
            return QualityCheckCreateSerializer
        return QualityCheckSerializer

    def create(self, request, org_id=None):
        """Record a quality check and apply the quality gate."""
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        data = dict(serializer.validated_data)
        data['org_id'] = org_id
        data['checked_by'] = actor_for(request)
        result = QualityService.create_quality_check(data)
        return service_response(result, success_status=status.HTTP_201_CREATED)
