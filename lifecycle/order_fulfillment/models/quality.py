"""
Quality check model.
"""

import uuid
from django.core.serializers.json import DjangoJSONEncoder
from django.db import models
from django.utils import timezone

from .base import ImmutableModel


class QualityResult(models.TextChoices):
    PASS = 'pass', 'Pass'
    FAIL = 'fail', 'Fail'


class QualityCheck(ImmutableModel):
    """
    Immutable record of an inspection performed on an order.

    Failing checks are recorded like passing ones; gating is applied by the
    quality service through the ``QUALITY_APPROVED`` milestone.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    org_id = models.UUIDField(db_index=True)
    order = models.ForeignKey(
        'Order',
        on_delete=models.CASCADE,
        related_name='quality_checks'
    )
    order_item = models.ForeignKey(
        'OrderItem',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='quality_checks'
    )
    work_order = models.ForeignKey(
        'WorkOrder',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='quality_checks'
    )

    check_type = models.CharField(
        max_length=50,
        help_text="Inspection type, e.g. final_inspection or pre_shipment"
    )
    checked_by = models.CharField(max_length=100)
    check_criteria = models.JSONField(default=dict, blank=True, encoder=DjangoJSONEncoder)
    overall_result = models.CharField(max_length=10, choices=QualityResult.choices)
    quality_score = models.DecimalField(max_digits=5, decimal_places=2, null=True, blank=True)
    defects_found = models.JSONField(default=list, blank=True, encoder=DjangoJSONEncoder)
    notes = models.TextField(blank=True)
    checked_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ['-checked_at']
        indexes = [
            models.Index(fields=['order', 'check_type']),
        ]

    def __str__(self):
        return f"{self.check_type} ({self.overall_result})"

    @property
    def passed(self):
        return self.overall_result == QualityResult.PASS
