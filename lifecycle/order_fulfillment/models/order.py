"""
Order model for the Order Fulfillment lifecycle engine.

Orders are owned by the order management side of the system; the fulfillment
engine reads them and moves their macro status as a side effect.
"""

import uuid
from decimal import Decimal
from django.db import models
from django.utils import timezone


class OrderStatus(models.TextChoices):
    """Macro order status, governed by the workflow transition table."""
    DRAFT = 'draft', 'Draft'
    PENDING = 'pending', 'Pending'
    CONFIRMED = 'confirmed', 'Confirmed'
    PROCESSING = 'processing', 'Processing'
    SHIPPED = 'shipped', 'Shipped'
    DELIVERED = 'delivered', 'Delivered'
    COMPLETED = 'completed', 'Completed'
    CANCELLED = 'cancelled', 'Cancelled'


class Order(models.Model):
    """
    Customer order referenced by the fulfillment lifecycle.

    Belongs to exactly one organization; every lookup is scoped by ``org_id``.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    org_id = models.UUIDField(
        db_index=True,
        help_text="Organization that owns the order"
    )
    order_number = models.CharField(
        max_length=50,
        unique=True,
        help_text="Unique order identifier (auto-generated)"
    )

    # Customer contact
    customer_name = models.CharField(max_length=255, blank=True)
    customer_email = models.EmailField(blank=True)

    status = models.CharField(
        max_length=20,
        choices=OrderStatus.choices,
        default=OrderStatus.DRAFT,
        help_text="Current macro order status"
    )

    # Financial information
    total_amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal('0.00'),
        help_text="Total order amount"
    )
    amount_paid = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal('0.00'),
        help_text="Amount captured so far"
    )

    due_date = models.DateField(null=True, blank=True)
    notes = models.TextField(blank=True)

    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['org_id', 'status']),
            models.Index(fields=['created_at']),
        ]

    def __str__(self):
        return f"Order {self.order_number} ({self.status})"

    def save(self, *args, **kwargs):
        """Override save to auto-generate order number if not provided."""
        if not self.order_number:
            timestamp = timezone.now().strftime('%Y%m%d%H%M%S')
            self.order_number = f"ORD-{timestamp}-{str(self.id)[:8].upper()}"
        super().save(*args, **kwargs)

    @property
    def is_paid_in_full(self):
        return self.amount_paid >= self.total_amount

    @property
    def is_overdue(self):
        return bool(self.due_date and self.due_date < timezone.localdate())

    @property
    def is_completed(self):
        return self.status == OrderStatus.COMPLETED
