"""
Per-organization auto-completion rule overrides.
"""

from django.db import models
from django.utils import timezone


class FulfillmentRuleSet(models.Model):
    """
    Persisted overrides of the auto-completion rules for one organization.

    A ``None`` value leaves the settings default in place.
    """

    RULE_FIELDS = (
        'require_payment',
        'require_quality_check',
        'require_notifications',
        'auto_generate_invoice',
        'auto_capture_payment',
        'auto_update_inventory',
        'enable_customer_notifications',
    )

    org_id = models.UUIDField(unique=True)

    require_payment = models.BooleanField(null=True, blank=True)
    require_quality_check = models.BooleanField(null=True, blank=True)
    require_notifications = models.BooleanField(null=True, blank=True)
    auto_generate_invoice = models.BooleanField(null=True, blank=True)
    auto_capture_payment = models.BooleanField(null=True, blank=True)
    auto_update_inventory = models.BooleanField(null=True, blank=True)
    enable_customer_notifications = models.BooleanField(null=True, blank=True)

    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"Fulfillment rules for {self.org_id}"

    def as_overrides(self):
        return {
            field: getattr(self, field)
            for field in self.RULE_FIELDS
            if getattr(self, field) is not None
        }
