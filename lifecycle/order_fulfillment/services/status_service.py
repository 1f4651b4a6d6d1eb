"""
Status aggregation for the Order Fulfillment lifecycle engine.

The fulfillment status of an order is derived on every read from its
milestones, shipments, quality checks and completion record. It is never
stored. Read operations here degrade instead of raising so dashboards stay
renderable.
"""

import logging
from typing import Dict, Any, List, Optional
from django.conf import settings
from django.db.models import Avg, Count
from django.utils import timezone

from ..models import (
    Order, OrderStatus, FulfillmentMilestone, FulfillmentEvent, MilestoneStatus,
    MilestoneCode, FulfillmentStatus, EventCode, QualityCheck, CompletionRecord,
    Shipment, ShipmentStatus
)
from ..exceptions import ValidationException
from ..utils import parse_uuid
from .event_log import EventLogService
from .ledger import ShipmentLedger, ShippingStatus
from .results import service_operation, success
from .snapshots import (
    milestone_snapshot, event_snapshot, quality_snapshot, completion_snapshot
)

logger = logging.getLogger(__name__)

# Order statuses listed on the fulfillment dashboard
DASHBOARD_ORDER_STATUSES = (
    OrderStatus.CONFIRMED, OrderStatus.PROCESSING, OrderStatus.SHIPPED, OrderStatus.DELIVERED,
)

DEFAULT_PRIORITY = 5


def _dashboard_page_size() -> int:
    return getattr(settings, 'FULFILLMENT', {}).get('DASHBOARD_PAGE_SIZE', 50)


def _average(values) -> Optional[float]:
    values = [value for value in values if value is not None]
    if not values:
        return None
    return round(sum(values) / len(values), 1)


class StatusService:
    """Service class for derived fulfillment views."""

    @staticmethod
    def resolve_overall_status(milestones: List[FulfillmentMilestone], shipping_status: Optional[str],
                               has_completion_record: bool) -> str:
        """Pick the overall fulfillment status, highest priority first."""
        if has_completion_record:
            return FulfillmentStatus.COMPLETED
        if shipping_status == ShippingStatus.DELIVERED:
            return FulfillmentStatus.DELIVERED
        if shipping_status == ShippingStatus.SHIPPED:
            return FulfillmentStatus.SHIPPED
        if any(m.milestone_code == MilestoneCode.READY_TO_SHIP and m.is_completed for m in milestones):
            return FulfillmentStatus.READY_TO_SHIP
        if any(m.is_completed for m in milestones):
            return FulfillmentStatus.PREPARATION
        return FulfillmentStatus.NOT_STARTED

    @staticmethod
    def get_fulfillment_status(order_id, org_id) -> Dict[str, Any]:
        """
        Derived fulfillment view of one order.

        Never raises. Any failure returns the ``EXCEPTION`` view with a single
        critical blocker.
        """
        try:
            order_pk = parse_uuid(order_id)
            org_pk = parse_uuid(org_id)
            if order_pk is None or org_pk is None:
                raise ValueError(f"Invalid order or organization id: {order_id}, {org_id}")

            milestones = list(
                FulfillmentMilestone.objects.filter(order_id=order_pk, org_id=org_pk).order_by('sequence')
            )
            events = EventLogService.history(order_pk, org_pk)
            shipping = ShipmentLedger.summarize(order_pk, org_pk)
            quality_checks = list(
                QualityCheck.objects.filter(order_id=order_pk, org_id=org_pk).order_by('-checked_at')
            )
            completion_record = CompletionRecord.objects.filter(order_id=order_pk, org_id=org_pk).first()

            completed = [m for m in milestones if m.is_completed]
            total = len(milestones)
            progress = round(100 * len(completed) / total) if total else 0

            in_progress = next((m for m in milestones if m.status == MilestoneStatus.IN_PROGRESS), None)
            if in_progress is not None:
                current_milestone = in_progress.milestone_name
            elif completed:
                current_milestone = completed[-1].milestone_name
            else:
                current_milestone = None

            next_pending = next((m for m in milestones if m.status == MilestoneStatus.PENDING), None)

            blockers = [
                {
                    'type': 'milestone_blocked',
                    'milestone_code': m.milestone_code,
                    'description': f"{m.milestone_name}: {m.blocked_reason or 'No reason provided'}",
                    'severity': 'high',
                }
                for m in milestones if m.is_blocked
            ]

            return {
                'order_id': str(order_pk),
                'overall_status': StatusService.resolve_overall_status(
                    milestones, shipping['shipping_status'], completion_record is not None
                ),
                'fulfillment_progress': progress,
                'current_milestone': current_milestone,
                'next_milestone': next_pending.milestone_name if next_pending else None,
                'milestones': [milestone_snapshot(m) for m in milestones],
                'events': [event_snapshot(e) for e in events],
                'shipping': shipping,
                'quality_checks': [quality_snapshot(c) for c in quality_checks],
                'completion_record': completion_snapshot(completion_record),
                'blockers': blockers,
            }
        except Exception:
            logger.exception(f"Failed to load fulfillment status for order {order_id}")
            return {
                'order_id': str(order_id),
                'overall_status': FulfillmentStatus.EXCEPTION,
                'fulfillment_progress': 0,
                'current_milestone': None,
                'next_milestone': None,
                'milestones': [],
                'events': [],
                'shipping': None,
                'quality_checks': [],
                'completion_record': None,
                'blockers': [{
                    'type': 'system_error',
                    'description': 'Failed to load fulfillment status',
                    'severity': 'critical',
                }],
            }

    @staticmethod
    def _empty_dashboard() -> Dict[str, Any]:
        return {
            'summary': {
                'total_orders': 0,
                'in_fulfillment': 0,
                'ready_to_ship': 0,
                'shipped': 0,
                'completed': 0,
                'overdue': 0,
            },
            'orders': [],
            'milestone_stats': {},
            'avg_days_to_completion': None,
        }

    @staticmethod
    def _order_priority(order_id) -> int:
        started = (
            FulfillmentEvent.objects
            .filter(order_id=order_id, event_code=EventCode.FULFILLMENT_STARTED)
            .order_by('-created_at')
            .first()
        )
        if started is None:
            return DEFAULT_PRIORITY
        return started.metadata.get('priority') or DEFAULT_PRIORITY

    @staticmethod
    def avg_days_to_completion(org_pk) -> Optional[float]:
        records = CompletionRecord.objects.filter(org_id=org_pk).select_related('order')
        return _average([
            (record.completed_at - record.order.created_at).total_seconds() / 86400
            for record in records
        ])

    @staticmethod
    def milestone_stats(org_pk) -> Dict[str, int]:
        """Completed milestone count per milestone code."""
        rows = (
            FulfillmentMilestone.objects
            .filter(org_id=org_pk, status=MilestoneStatus.COMPLETED)
            .values('milestone_code')
            .annotate(count=Count('id'))
        )
        return {row['milestone_code']: row['count'] for row in rows}

    @staticmethod
    def get_fulfillment_dashboard(org_id, filters: Dict[str, Any] = None) -> Dict[str, Any]:
        """
        Dashboard of orders in fulfillment for an organization.

        Args:
            filters: Optional ``status_code``, ``is_overdue``, ``limit`` and ``offset``

        Returns:
            Dict with ``summary``, ``orders``, ``milestone_stats`` and
            ``avg_days_to_completion``. Degrades to an empty dashboard on failure.
        """
        filters = filters or {}
        try:
            org_pk = parse_uuid(org_id)
            if org_pk is None:
                raise ValueError(f"Invalid organization id: {org_id}")

            queryset = Order.objects.filter(org_id=org_pk, status__in=DASHBOARD_ORDER_STATUSES)
            if filters.get('status_code'):
                queryset = queryset.filter(status=filters['status_code'])
            queryset = queryset.order_by('-created_at')

            offset = int(filters.get('offset') or 0)
            limit = filters.get('limit', _dashboard_page_size())
            if limit is None:
                orders = list(queryset[offset:])
            else:
                orders = list(queryset[offset:offset + int(limit)])

            dashboard = StatusService._empty_dashboard()
            summary = dashboard['summary']
            now = timezone.now()

            for order in orders:
                summary['total_orders'] += 1
                status = StatusService.get_fulfillment_status(order.id, org_pk)
                overall_status = status['overall_status']
                is_overdue = order.is_overdue

                if is_overdue:
                    summary['overdue'] += 1

                if overall_status in (FulfillmentStatus.PREPARATION, FulfillmentStatus.PACKAGING):
                    summary['in_fulfillment'] += 1
                elif overall_status == FulfillmentStatus.READY_TO_SHIP:
                    summary['ready_to_ship'] += 1
                elif overall_status in (FulfillmentStatus.SHIPPED, FulfillmentStatus.IN_TRANSIT):
                    summary['shipped'] += 1
                elif overall_status == FulfillmentStatus.COMPLETED:
                    summary['completed'] += 1

                if filters.get('is_overdue') and not is_overdue:
                    continue

                dashboard['orders'].append({
                    'order_id': str(order.id),
                    'order_number': order.order_number,
                    'customer_name': order.customer_name or 'Unknown',
                    'total_amount': order.total_amount,
                    'status_code': order.status,
                    'fulfillment_status': overall_status,
                    'current_milestone': status['current_milestone'],
                    'days_in_fulfillment': (now - order.created_at).days,
                    'estimated_completion': order.due_date,
                    'is_overdue': is_overdue,
                    'priority': StatusService._order_priority(order.id),
                    'blockers': len(status['blockers']),
                    'last_activity': status['events'][0]['created_at'] if status['events'] else None,
                })

            dashboard['milestone_stats'] = StatusService.milestone_stats(org_pk)
            dashboard['avg_days_to_completion'] = StatusService.avg_days_to_completion(org_pk)
            return dashboard
        except Exception:
            logger.exception(f"Failed to build fulfillment dashboard for organization {org_id}")
            return StatusService._empty_dashboard()

    @staticmethod
    @service_operation("load fulfillment statistics")
    def get_fulfillment_stats(org_id) -> Dict[str, Any]:
        """
        Organization-wide fulfillment statistics.

        Returns:
            Result with the dashboard ``summary``, ``milestone_stats``,
            ``avg_days_to_completion``, ``avg_quality_score``,
            ``on_time_delivery_rate`` and ``avg_customer_satisfaction``
        """
        org_pk = parse_uuid(org_id)
        if org_pk is None:
            raise ValidationException(f"Invalid organization id: {org_id}", {'org_id': str(org_id)})

        dashboard = StatusService.get_fulfillment_dashboard(org_pk, {'limit': None})

        avg_quality = QualityCheck.objects.filter(
            org_id=org_pk, quality_score__isnull=False
        ).aggregate(avg=Avg('quality_score'))['avg']

        avg_satisfaction = CompletionRecord.objects.filter(
            org_id=org_pk, customer_satisfaction_score__isnull=False
        ).aggregate(avg=Avg('customer_satisfaction_score'))['avg']

        delivered = Shipment.objects.filter(
            org_id=org_pk,
            status=ShipmentStatus.DELIVERED,
            estimated_delivery_date__isnull=False,
            actual_delivery_date__isnull=False,
        )
        outcomes = [shipment.is_on_time for shipment in delivered]
        on_time_rate = round(100 * sum(outcomes) / len(outcomes), 1) if outcomes else None

        return success(
            summary=dashboard['summary'],
            milestone_stats=dashboard['milestone_stats'],
            avg_days_to_completion=dashboard['avg_days_to_completion'],
            avg_quality_score=round(float(avg_quality), 2) if avg_quality is not None else None,
            on_time_delivery_rate=on_time_rate,
            avg_customer_satisfaction=round(float(avg_satisfaction), 2) if avg_satisfaction is not None else None,
        )
