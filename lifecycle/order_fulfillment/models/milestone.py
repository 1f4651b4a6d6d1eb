"""
Fulfillment milestone model.

Every order in fulfillment carries the same fixed, ordered checklist of
milestones, seeded once when fulfillment starts.
"""

import uuid
from django.db import models
from django.utils import timezone


class MilestoneStatus(models.TextChoices):
    PENDING = 'pending', 'Pending'
    IN_PROGRESS = 'in_progress', 'In Progress'
    COMPLETED = 'completed', 'Completed'
    BLOCKED = 'blocked', 'Blocked'


class MilestoneCode(models.TextChoices):
    ORDER_CONFIRMED = 'ORDER_CONFIRMED', 'Order Confirmed'
    PRODUCTION_COMPLETED = 'PRODUCTION_COMPLETED', 'Production Completed'
    QUALITY_APPROVED = 'QUALITY_APPROVED', 'Quality Approved'
    READY_TO_SHIP = 'READY_TO_SHIP', 'Ready to Ship'
    SHIPPED = 'SHIPPED', 'Shipped'
    DELIVERED = 'DELIVERED', 'Delivered'
    COMPLETED = 'COMPLETED', 'Completed'


class MilestoneType(models.TextChoices):
    STANDARD = 'standard', 'Standard'
    QUALITY_GATE = 'quality_gate', 'Quality Gate'


# (code, name, type) in fulfillment order
DEFAULT_MILESTONES = [
    (MilestoneCode.ORDER_CONFIRMED, MilestoneCode.ORDER_CONFIRMED.label, MilestoneType.STANDARD),
    (MilestoneCode.PRODUCTION_COMPLETED, MilestoneCode.PRODUCTION_COMPLETED.label, MilestoneType.STANDARD),
    (MilestoneCode.QUALITY_APPROVED, MilestoneCode.QUALITY_APPROVED.label, MilestoneType.QUALITY_GATE),
    (MilestoneCode.READY_TO_SHIP, MilestoneCode.READY_TO_SHIP.label, MilestoneType.STANDARD),
    (MilestoneCode.SHIPPED, MilestoneCode.SHIPPED.label, MilestoneType.STANDARD),
    (MilestoneCode.DELIVERED, MilestoneCode.DELIVERED.label, MilestoneType.STANDARD),
    (MilestoneCode.COMPLETED, MilestoneCode.COMPLETED.label, MilestoneType.STANDARD),
]


class FulfillmentMilestone(models.Model):
    """
    One step of an order's fulfillment checklist.

    Mutated in place as work progresses; every change is mirrored by a
    ``MILESTONE_UPDATED`` event in the event log.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    org_id = models.UUIDField(db_index=True)
    order = models.ForeignKey(
        'Order',
        on_delete=models.CASCADE,
        related_name='milestones'
    )

    milestone_code = models.CharField(max_length=50, choices=MilestoneCode.choices)
    milestone_name = models.CharField(max_length=100)
    milestone_type = models.CharField(
        max_length=20,
        choices=MilestoneType.choices,
        default=MilestoneType.STANDARD
    )
    sequence = models.PositiveSmallIntegerField(help_text="Position in the fulfillment checklist")

    status = models.CharField(
        max_length=20,
        choices=MilestoneStatus.choices,
        default=MilestoneStatus.PENDING
    )
    planned_date = models.DateField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    completed_by = models.CharField(max_length=100, blank=True, null=True)
    blocked_reason = models.TextField(blank=True, null=True)
    notes = models.TextField(blank=True, null=True)

    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['order', 'sequence']
        unique_together = ['order', 'milestone_code']
        indexes = [
            models.Index(fields=['org_id', 'milestone_code', 'status']),
        ]

    def __str__(self):
        return f"{self.milestone_name} ({self.status})"

    @property
    def is_completed(self):
        return self.status == MilestoneStatus.COMPLETED

    @property
    def is_blocked(self):
        return self.status == MilestoneStatus.BLOCKED
