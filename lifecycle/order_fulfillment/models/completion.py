"""
Completion record model.
"""

import uuid
from django.core.serializers.json import DjangoJSONEncoder
from django.db import models
from django.utils import timezone

from .base import ImmutableModel


class CompletionType(models.TextChoices):
    MANUAL = 'manual', 'Manual'
    AUTOMATIC = 'automatic', 'Automatic'
    EXCEPTION = 'exception', 'Exception'


class CompletionRecord(ImmutableModel):
    """
    Proof that an order was completed. At most one per order.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    org_id = models.UUIDField(db_index=True)
    order = models.OneToOneField(
        'Order',
        on_delete=models.CASCADE,
        related_name='completion_record'
    )

    completion_type = models.CharField(
        max_length=20,
        choices=CompletionType.choices,
        default=CompletionType.MANUAL
    )
    completed_by = models.CharField(max_length=100, blank=True, null=True)
    completed_at = models.DateTimeField(default=timezone.now)
    verification_method = models.CharField(max_length=100, blank=True)

    # Customer and quality feedback
    customer_satisfaction_score = models.PositiveSmallIntegerField(null=True, blank=True)
    customer_feedback = models.TextField(blank=True)
    quality_score = models.DecimalField(max_digits=5, decimal_places=2, null=True, blank=True)
    defects_reported = models.PositiveIntegerField(default=0)

    # Billing flags
    invoice_generated = models.BooleanField(default=False)
    final_payment_captured = models.BooleanField(default=False)

    notes = models.TextField(blank=True)
    metadata = models.JSONField(default=dict, blank=True, encoder=DjangoJSONEncoder)

    class Meta:
        ordering = ['-completed_at']

    def __str__(self):
        return f"Completion of {self.order_id} ({self.completion_type})"
