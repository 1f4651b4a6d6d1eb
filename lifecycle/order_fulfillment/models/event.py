"""
Fulfillment event log model.

The event log is the durable history of everything that happened to an order
during fulfillment. Rows are append-only.
"""

import uuid
from django.core.serializers.json import DjangoJSONEncoder
from django.db import models
from django.utils import timezone

from .base import ImmutableModel


class FulfillmentStatus(models.TextChoices):
    """Derived fulfillment status. Computed on read, never stored on the order."""
    NOT_STARTED = 'NOT_STARTED', 'Not Started'
    PREPARATION = 'PREPARATION', 'Preparation'
    PACKAGING = 'PACKAGING', 'Packaging'
    READY_TO_SHIP = 'READY_TO_SHIP', 'Ready to Ship'
    SHIPPED = 'SHIPPED', 'Shipped'
    IN_TRANSIT = 'IN_TRANSIT', 'In Transit'
    DELIVERED = 'DELIVERED', 'Delivered'
    COMPLETED = 'COMPLETED', 'Completed'
    EXCEPTION = 'EXCEPTION', 'Exception'
    CANCELLED = 'CANCELLED', 'Cancelled'


class EventType(models.TextChoices):
    STATUS_CHANGE = 'status_change', 'Status Change'
    MILESTONE = 'milestone', 'Milestone'
    QUALITY_CHECK = 'quality_check', 'Quality Check'
    SHIPMENT = 'shipment', 'Shipment'
    DELIVERY = 'delivery', 'Delivery'
    COMPLETION = 'completion', 'Completion'
    NOTIFICATION = 'notification', 'Notification'


class EventCode:
    """Event codes written by the engine."""
    FULFILLMENT_STARTED = 'FULFILLMENT_STARTED'
    STATUS_CHANGED = 'STATUS_CHANGED'
    MILESTONE_UPDATED = 'MILESTONE_UPDATED'
    READY_FOR_PACKAGING = 'READY_FOR_PACKAGING'
    SHIPPED = 'SHIPPED'
    DELIVERED = 'DELIVERED'
    QUALITY_CHECK_PASSED = 'QUALITY_CHECK_PASSED'
    QUALITY_CHECK_FAILED = 'QUALITY_CHECK_FAILED'
    COMPLETED = 'COMPLETED'

    # Notification events
    INVENTORY_UPDATED = 'INVENTORY_UPDATED'
    CUSTOMER_NOTIFICATION_SENT = 'CUSTOMER_NOTIFICATION_SENT'
    INVOICE_GENERATED = 'INVOICE_GENERATED'
    PAYMENT_CAPTURED = 'PAYMENT_CAPTURED'
    ANALYTICS_UPDATED = 'ANALYTICS_UPDATED'


class FulfillmentEvent(ImmutableModel):
    """
    Append-only record of a fulfillment occurrence.

    ``status_before``/``status_after`` hold either order statuses (for
    ``STATUS_CHANGED``) or fulfillment statuses (for shipment and delivery
    events). The latest ``status_after`` is informational only; the derived
    fulfillment status is recomputed from milestones and shipments.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    org_id = models.UUIDField(db_index=True)
    order = models.ForeignKey(
        'Order',
        on_delete=models.CASCADE,
        related_name='fulfillment_events'
    )
    order_item_id = models.UUIDField(null=True, blank=True)
    work_order_id = models.UUIDField(null=True, blank=True)

    event_code = models.CharField(max_length=50, db_index=True)
    event_type = models.CharField(max_length=20, choices=EventType.choices)
    status_before = models.CharField(max_length=30, blank=True, null=True)
    status_after = models.CharField(max_length=30, blank=True, null=True)

    actor_user_id = models.CharField(max_length=100, blank=True, null=True)
    notes = models.TextField(blank=True, default='')
    metadata = models.JSONField(default=dict, blank=True, encoder=DjangoJSONEncoder)

    created_at = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['order', 'created_at']),
            models.Index(fields=['org_id', 'event_type', 'event_code']),
        ]

    def __str__(self):
        return f"{self.event_code} on {self.order_id}"
