"""
Shipment views for the Order Fulfillment lifecycle engine.
"""

from rest_framework import viewsets, mixins, status, filters
from rest_framework.decorators import action
from django_filters.rest_framework import DjangoFilterBackend

from ..models import Shipment
from ..services import ShippingService
from ..serializers.shipment_serializers import (
    ShipmentListSerializer, ShipmentDetailSerializer, PartialShipmentCreateSerializer,
    ShipShipmentSerializer, DeliverShipmentSerializer, BulkShipSerializer
)
from ..permissions import IsFulfillmentStaff
from ..utils import parse_uuid
from .responses import service_response, actor_for


class ShipmentViewSet(mixins.ListModelMixin, mixins.RetrieveModelMixin, viewsets.GenericViewSet):
    """
    ViewSet for shipments of an organization.

    Shipments are created and moved through their lifecycle by the shipping
    service only; there is no direct update or delete.
    """

    permission_classes = [IsFulfillmentStaff]
    filter_backends = [DjangoFilterBackend, filters.OrderingFilter]
    filterset_fields = ['status', 'order', 'carrier']
    ordering_fields = ['created_at', 'shipped_at', 'delivered_at']
    ordering = ['-created_at']

    def get_queryset(self):
        org_pk = parse_uuid(self.kwargs.get('org_id'))
        if org_pk is None:
            return Shipment.objects.none()
        return (
            Shipment.objects.filter(org_id=org_pk)
            .select_related('order')
            .prefetch_related('items__order_item')
        )

    def get_serializer_class(self):
        """Return appropriate serializer based on action."""
        if self.action == 'list':
            return ShipmentListSerializer
        elif self.action == 'create':
            return PartialShipmentCreateSerializer
        elif self.action == 'ship':
            return ShipShipmentSerializer
        elif self.action == 'deliver':
            return DeliverShipmentSerializer
        elif self.action == 'bulk_ship':
            return BulkShipSerializer
        else:
            return ShipmentDetailSerializer

    def create(self, request, org_id=None):
        """Create a (partial) shipment for an order."""
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        data = dict(serializer.validated_data)
        order_id = data.pop('order_id')
        result = ShippingService.create_partial_shipment(
            order_id, org_id, data, actor=actor_for(request)
        )
        return service_response(result, success_status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'])
    def ship(self, request, org_id=None, pk=None):
        """Hand a prepared shipment to the carrier."""
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = ShippingService.ship_shipment(
            pk, org_id, serializer.validated_data, actor=actor_for(request)
        )
        return service_response(result)

    @action(detail=True, methods=['post'])
    def deliver(self, request, org_id=None, pk=None):
        """Confirm delivery of a shipment."""
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = ShippingService.mark_delivered(
            pk, org_id, serializer.validated_data, actor=actor_for(request)
        )
        return service_response(result)

    @action(detail=False, methods=['post'], url_path='bulk-ship')
    def bulk_ship(self, request, org_id=None):
        """Create and ship one shipment per order; results are reported per order."""
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        data = serializer.validated_data
        result = ShippingService.bulk_ship(
            data['orders'], org_id, notes=data['notes'], actor=actor_for(request)
        )
        return service_response(result)
