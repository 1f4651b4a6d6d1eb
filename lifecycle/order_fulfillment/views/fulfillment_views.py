"""
Fulfillment views for the Order Fulfillment lifecycle engine.

All routes are scoped by the organization id captured in the URL.
"""

from rest_framework import viewsets, status
from rest_framework.decorators import action
from rest_framework.response import Response

from ..exceptions import BusinessException
from ..models import Order, OrderStatus
from ..services import (
    EventLogService, OrderService, StatusService, MilestoneService,
    CompletionService, ShippingService, AutoCompletionEvaluator
)
from ..serializers.fulfillment_serializers import (
    FulfillmentMilestoneSerializer, FulfillmentEventSerializer, PendingOrderSerializer,
    StartFulfillmentSerializer, MilestoneUpdateSerializer, CompleteOrderSerializer,
    StatusTransitionSerializer, BulkStatusTransitionSerializer, DashboardFilterSerializer,
    RecordNotificationSerializer
)
from ..permissions import IsFulfillmentStaff, CanCompleteOrders
from ..utils import parse_uuid
from .responses import service_response, error_response, actor_for

# Orders that can still have fulfillment started
STARTABLE_ORDER_STATUSES = (OrderStatus.CONFIRMED, OrderStatus.PROCESSING)

MAX_EVENT_HISTORY = 200


class FulfillmentOrderViewSet(viewsets.ViewSet):
    """
    ViewSet for the fulfillment lifecycle of orders.

    Provides the derived status view and the workflow actions of an order.
    """

    permission_classes = [IsFulfillmentStaff]

    def _get_order(self, org_id, pk):
        return OrderService.get_order(pk, org_id)

    def retrieve(self, request, org_id=None, pk=None):
        """Derived fulfillment status of an order."""
        try:
            self._get_order(org_id, pk)
        except BusinessException as e:
            return error_response(e.to_dict())

        return Response({
            'success': True,
            'data': StatusService.get_fulfillment_status(pk, org_id)
        })

    @action(detail=True, methods=['post'])
    def start(self, request, org_id=None, pk=None):
        """Seed the milestone checklist and start fulfillment."""
        serializer = StartFulfillmentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = MilestoneService.start_fulfillment(
            pk, org_id, actor=actor_for(request), options=serializer.validated_data
        )
        return service_response(result, success_status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['get'])
    def milestones(self, request, org_id=None, pk=None):
        """List the milestones of an order in sequence."""
        try:
            order = self._get_order(org_id, pk)
        except BusinessException as e:
            return error_response(e.to_dict())

        serializer = FulfillmentMilestoneSerializer(MilestoneService.get_milestones(order), many=True)
        return Response({
            'success': True,
            'data': serializer.data
        })

    @action(
        detail=True, methods=['patch', 'post'],
        url_path=r'milestones/(?P<milestone_code>[^/.]+)', url_name='milestone-update'
    )
    def update_milestone(self, request, org_id=None, pk=None, milestone_code=None):
        """Update one milestone of an order."""
        serializer = MilestoneUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        updates = dict(serializer.validated_data)
        updates['completed_by'] = actor_for(request)
        result = MilestoneService.update_milestone(pk, org_id, milestone_code, updates)
        return service_response(result)

    @action(detail=True, methods=['post'], permission_classes=[CanCompleteOrders])
    def complete(self, request, org_id=None, pk=None):
        """Complete an order manually."""
        serializer = CompleteOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = CompletionService.complete_order(
            pk, org_id, serializer.validated_data, actor=actor_for(request)
        )
        return service_response(result, success_status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'], url_path='auto-complete', permission_classes=[CanCompleteOrders])
    def auto_complete(self, request, org_id=None, pk=None):
        """Evaluate the organization's auto-completion rules for an order."""
        return service_response(AutoCompletionEvaluator.run_for_org(pk, org_id))

    @action(detail=True, methods=['get', 'post'], url_path='shipping-status')
    def shipping_status(self, request, org_id=None, pk=None):
        """
        Shipping summary of an order.

        POST re-checks the summary and converges the shipping milestones.
        """
        if request.method == 'POST':
            result = ShippingService.check_order_shipping_status(pk, org_id, actor=actor_for(request))
        else:
            result = ShippingService.get_order_shipping_status(pk, org_id)
        return service_response(result)

    @action(detail=True, methods=['post'])
    def transition(self, request, org_id=None, pk=None):
        """Move an order to another macro status."""
        serializer = StatusTransitionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = OrderService.update_status(
            pk, org_id,
            serializer.validated_data['status'],
            actor=actor_for(request),
            notes=serializer.validated_data['notes']
        )
        return service_response(result)

    @action(detail=True, methods=['get'])
    def events(self, request, org_id=None, pk=None):
        """Event history of an order, newest first."""
        try:
            order = self._get_order(org_id, pk)
        except BusinessException as e:
            return error_response(e.to_dict())

        try:
            limit = min(int(request.query_params.get('limit', 50)), MAX_EVENT_HISTORY)
        except ValueError:
            return Response({
                'success': False,
                'error': {
                    'code': 'VALIDATION_ERROR',
                    'message': 'limit must be an integer'
                }
            }, status=status.HTTP_400_BAD_REQUEST)

        events = EventLogService.history(order.id, order.org_id, limit=max(limit, 1))
        return Response({
            'success': True,
            'data': FulfillmentEventSerializer(events, many=True).data
        })

    @action(detail=True, methods=['post'])
    def notifications(self, request, org_id=None, pk=None):
        """Record that a customer notification was sent."""
        serializer = RecordNotificationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = EventLogService.record_notification(
            pk, org_id,
            serializer.validated_data['event_code'],
            actor=actor_for(request),
            notes=serializer.validated_data['notes'],
            metadata=serializer.validated_data['metadata']
        )
        return service_response(result, success_status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'], url_path='sync-manufacturing')
    def sync_manufacturing(self, request, org_id=None, pk=None):
        """Re-read work orders and complete production when they are all finished."""
        result = MilestoneService.sync_manufacturing_status(pk, org_id, actor=actor_for(request))
        return service_response(result)

    @action(detail=False, methods=['post'], url_path='bulk-transition')
    def bulk_transition(self, request, org_id=None):
        """Apply one status change to several orders."""
        serializer = BulkStatusTransitionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = OrderService.bulk_update_status(
            serializer.validated_data['order_ids'], org_id,
            serializer.validated_data['status'],
            actor=actor_for(request),
            notes=serializer.validated_data['notes']
        )
        return service_response(result)

    @action(detail=False, methods=['get'])
    def dashboard(self, request, org_id=None):
        """Fulfillment dashboard of the organization."""
        serializer = DashboardFilterSerializer(data=request.query_params)
        serializer.is_valid(raise_exception=True)

        return Response({
            'success': True,
            'data': StatusService.get_fulfillment_dashboard(org_id, serializer.validated_data)
        })

    @action(detail=False, methods=['get'])
    def pending(self, request, org_id=None):
        """Orders that are confirmed but have no fulfillment started yet."""
        org_pk = parse_uuid(org_id)
        if org_pk is None:
            orders = Order.objects.none()
        else:
            orders = Order.objects.filter(
                org_id=org_pk,
                status__in=STARTABLE_ORDER_STATUSES,
                milestones__isnull=True
            ).order_by('due_date', 'created_at')

        return Response({
            'success': True,
            'data': PendingOrderSerializer(orders, many=True).data
        })

    @action(detail=False, methods=['get'])
    def stats(self, request, org_id=None):
        """Organization-wide fulfillment statistics."""
        return service_response(StatusService.get_fulfillment_stats(org_id))
