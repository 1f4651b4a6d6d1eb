"""
Event log service for the Order Fulfillment lifecycle engine.

Every state change in the engine appends one event here. Events are never
updated or deleted.
"""

import logging
from typing import Dict, Any, List
from django.db import transaction

from ..models import FulfillmentEvent, EventType, Order
from ..exceptions import ValidationException
from ..utils import get_scoped
from .results import service_operation, success
from .snapshots import event_snapshot

logger = logging.getLogger(__name__)


class EventLogService:
    """Service class for appending and reading fulfillment events."""

    @staticmethod
    def record(order: Order, event_code: str, event_type: str, *, actor=None, notes: str = '',
               metadata: Dict[str, Any] = None, status_before: str = None,
               status_after: str = None, order_item_id=None, work_order_id=None) -> FulfillmentEvent:
        """
        Append an event for an order.

        Args:
            order: Order the event belongs to
            event_code: Event code (see ``EventCode``)
            event_type: One of ``EventType``
            actor: Opaque identifier of the acting user
            metadata: Extra JSON payload

        Returns:
            Created FulfillmentEvent instance
        """
        event = FulfillmentEvent.objects.create(
            org_id=order.org_id,
            order=order,
            event_code=event_code,
            event_type=event_type,
            status_before=status_before,
            status_after=status_after,
            order_item_id=order_item_id,
            work_order_id=work_order_id,
            actor_user_id=str(actor) if actor is not None else None,
            notes=notes or '',
            metadata=metadata or {},
        )
        logger.debug(f"Recorded {event_code} for order {order.order_number}")
        return event

    @staticmethod
    def history(order_id, org_id, limit: int = 50) -> List[FulfillmentEvent]:
        """Latest events of an order, newest first."""
        queryset = FulfillmentEvent.objects.filter(order_id=order_id, org_id=org_id)
        return list(queryset.order_by('-created_at')[:limit])

    @staticmethod
    @service_operation("record notification")
    def record_notification(order_id, org_id, event_code: str, actor=None, notes: str = '',
                            metadata: Dict[str, Any] = None) -> Dict[str, Any]:
        """
        Record that a notification was sent for an order.

        Notification events with codes ``SHIPPED`` and ``DELIVERED`` satisfy the
        auto-completion notification criterion.
        """
        if not event_code:
            raise ValidationException("event_code is required", {'event_code': 'required'})

        with transaction.atomic():
            order = get_scoped(Order.objects.all(), "Order", order_id, org_id)

            event = EventLogService.record(
                order, event_code, EventType.NOTIFICATION,
                actor=actor, notes=notes, metadata=metadata
            )

        logger.info(f"Notification {event_code} recorded for order {order.order_number}")
        return success(event=event_snapshot(event))
