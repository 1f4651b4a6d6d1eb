"""
Shipment models for the Order Fulfillment lifecycle engine.

An order may ship in several partial shipments. The shipment items are the
ledger: the quantity already shipped for an order item is the sum of its
shipment item rows.
"""

import uuid
from django.db import models
from django.utils import timezone


class ShipmentStatus(models.TextChoices):
    """Shipment status enumeration following the delivery lifecycle."""
    PREPARING = 'preparing', 'Preparing'
    SHIPPED = 'shipped', 'Shipped'
    DELIVERED = 'delivered', 'Delivered'


class Shipment(models.Model):
    """
    Physical shipment carrying some quantity of one or more order items.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    org_id = models.UUIDField(db_index=True)
    order = models.ForeignKey(
        'Order',
        on_delete=models.CASCADE,
        related_name='shipments',
        help_text="Order this shipment belongs to"
    )

    # Shipment identification
    shipment_number = models.CharField(
        max_length=50,
        help_text="Shipment identifier, unique within the organization ({PREFIX}-{YEAR}-{SEQ})"
    )

    # Shipping details
    carrier = models.CharField(
        max_length=100,
        help_text="Shipping carrier (FedEx, UPS, DHL, etc.)"
    )
    service = models.CharField(max_length=100, blank=True)
    tracking_number = models.CharField(
        max_length=100,
        blank=True,
        help_text="Carrier tracking number"
    )
    tracking_url = models.URLField(max_length=500, blank=True)
    label_url = models.URLField(max_length=500, blank=True)
    shipping_address = models.JSONField(default=dict, blank=True)

    status = models.CharField(
        max_length=20,
        choices=ShipmentStatus.choices,
        default=ShipmentStatus.PREPARING,
        help_text="Current shipment status"
    )

    shipping_cost = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    weight = models.DecimalField(
        max_digits=8,
        decimal_places=2,
        null=True,
        blank=True,
        help_text="Shipment weight in kg"
    )

    # Delivery information
    estimated_delivery_date = models.DateField(null=True, blank=True)
    actual_delivery_date = models.DateTimeField(null=True, blank=True)
    recipient_name = models.CharField(
        max_length=100,
        blank=True,
        help_text="Person who received the shipment"
    )

    # Timestamps
    shipped_at = models.DateTimeField(null=True, blank=True)
    delivered_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    notes = models.TextField(
        blank=True,
        help_text="Shipment notes or special delivery instructions"
    )

    class Meta:
        ordering = ['-created_at']
        unique_together = ['org_id', 'shipment_number']
        indexes = [
            models.Index(fields=['org_id', 'status']),
            models.Index(fields=['carrier', 'tracking_number']),
            models.Index(fields=['order', 'status']),
        ]

    def __str__(self):
        return f"Shipment {self.shipment_number} - {self.carrier} ({self.status})"

    @property
    def is_delivered(self):
        return self.status == ShipmentStatus.DELIVERED

    @property
    def is_on_time(self):
        """Whether delivery happened on or before the estimated date; None if unknown."""
        if not self.actual_delivery_date or not self.estimated_delivery_date:
            return None
        return self.actual_delivery_date.date() <= self.estimated_delivery_date


class ShipmentItem(models.Model):
    """Quantity of one order item carried by a shipment."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    shipment = models.ForeignKey(
        Shipment,
        on_delete=models.CASCADE,
        related_name='items',
        help_text="Shipment containing this item"
    )
    order_item = models.ForeignKey(
        'OrderItem',
        on_delete=models.CASCADE,
        related_name='shipment_items',
        help_text="Order item being shipped"
    )
    quantity = models.PositiveIntegerField()
    notes = models.TextField(blank=True)

    class Meta:
        ordering = ['shipment', 'order_item']

    def __str__(self):
        return f"{self.quantity} x {self.order_item.product_sku} in {self.shipment.shipment_number}"


class ShipmentSequence(models.Model):
    """
    Per-organization, per-year counter for shipment numbers.

    Callers must lock the row (``select_for_update``) inside a transaction
    before incrementing it.
    """

    org_id = models.UUIDField()
    year = models.PositiveSmallIntegerField()
    last_value = models.PositiveIntegerField(default=0)

    class Meta:
        unique_together = ['org_id', 'year']

    def __str__(self):
        return f"{self.org_id}/{self.year}: {self.last_value}"

    @classmethod
    def next_value(cls, org_id, year: int) -> int:
        """Increment and return the counter. Must run inside ``transaction.atomic``."""
        cls.objects.get_or_create(org_id=org_id, year=year)
        sequence = cls.objects.select_for_update().get(org_id=org_id, year=year)
        sequence.last_value += 1
        sequence.save(update_fields=['last_value'])
        return sequence.last_value
