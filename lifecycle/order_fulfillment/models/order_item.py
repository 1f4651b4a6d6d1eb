"""
OrderItem and WorkOrder models for the Order Fulfillment lifecycle engine.
"""

import uuid
from decimal import Decimal
from django.db import models
from django.utils import timezone


class OrderItem(models.Model):
    """
    Individual line within an order.

    ``quantity`` is the ordered quantity; shipped quantities are derived from
    shipment items, never stored here.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order = models.ForeignKey(
        'Order',
        on_delete=models.CASCADE,
        related_name='items',
        help_text="Order this item belongs to"
    )

    product_sku = models.CharField(max_length=100)
    product_name = models.CharField(max_length=255, blank=True)

    quantity = models.PositiveIntegerField(help_text="Quantity ordered by the customer")
    unit_price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal('0.00'),
        help_text="Price per unit"
    )
    line_total = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal('0.00'),
        help_text="Total price for this line item (quantity * unit_price)"
    )

    metadata = models.JSONField(default=dict, blank=True)

    class Meta:
        ordering = ['order', 'product_sku']
        indexes = [
            models.Index(fields=['order', 'product_sku']),
        ]

    def __str__(self):
        return f"{self.product_sku} - {self.quantity} units"

    def save(self, *args, **kwargs):
        self.line_total = self.quantity * self.unit_price
        super().save(*args, **kwargs)


class WorkOrderStatus(models.TextChoices):
    """Manufacturing work order status."""
    PENDING = 'pending', 'Pending'
    IN_PROGRESS = 'in_progress', 'In Progress'
    COMPLETED = 'completed', 'Completed'
    SHIPPED = 'shipped', 'Shipped'
    CANCELLED = 'cancelled', 'Cancelled'


# Work order statuses that count as finished manufacturing
FINISHED_WORK_ORDER_STATUSES = (WorkOrderStatus.COMPLETED, WorkOrderStatus.SHIPPED)


class WorkOrder(models.Model):
    """Manufacturing work order producing an order item."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order_item = models.ForeignKey(
        OrderItem,
        on_delete=models.CASCADE,
        related_name='work_orders'
    )
    status = models.CharField(
        max_length=20,
        choices=WorkOrderStatus.choices,
        default=WorkOrderStatus.PENDING
    )
    completed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['created_at']

    def __str__(self):
        return f"Work order for {self.order_item.product_sku} ({self.status})"

    @property
    def is_finished(self):
        return self.status in FINISHED_WORK_ORDER_STATUSES
