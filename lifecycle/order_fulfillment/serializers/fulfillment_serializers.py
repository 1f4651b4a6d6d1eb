"""
Fulfillment serializers for the Order Fulfillment lifecycle engine.
"""

from rest_framework import serializers

from ..models import (
    Order, OrderStatus, FulfillmentMilestone, FulfillmentEvent, MilestoneStatus, CompletionType
)


class FulfillmentMilestoneSerializer(serializers.ModelSerializer):
    """Serializer for FulfillmentMilestone model."""

    class Meta:
        model = FulfillmentMilestone
        fields = [
            'id', 'milestone_code', 'milestone_name', 'milestone_type', 'sequence',
            'status', 'planned_date', 'completed_at', 'completed_by',
            'blocked_reason', 'notes', 'updated_at'
        ]
        read_only_fields = fields


class FulfillmentEventSerializer(serializers.ModelSerializer):
    """Serializer for FulfillmentEvent model."""

    class Meta:
        model = FulfillmentEvent
        fields = [
            'id', 'event_code', 'event_type', 'status_before', 'status_after',
            'order_item_id', 'work_order_id', 'actor_user_id', 'notes',
            'metadata', 'created_at'
        ]
        read_only_fields = fields


class PendingOrderSerializer(serializers.ModelSerializer):
    """Serializer for orders waiting for fulfillment to start."""

    item_count = serializers.SerializerMethodField()

    class Meta:
        model = Order
        fields = [
            'id', 'order_number', 'customer_name', 'status', 'total_amount',
            'due_date', 'item_count', 'created_at'
        ]

    def get_item_count(self, obj):
        return obj.items.count()


class StartFulfillmentSerializer(serializers.Serializer):
    notes = serializers.CharField(required=False, allow_blank=True)
    priority = serializers.IntegerField(required=False, min_value=1, max_value=10)
    planned_ship_date = serializers.DateField(required=False, allow_null=True)
    special_instructions = serializers.CharField(required=False, allow_blank=True)


class MilestoneUpdateSerializer(serializers.Serializer):
    """Serializer for updating one milestone."""

    status = serializers.ChoiceField(choices=MilestoneStatus.choices, required=False)
    notes = serializers.CharField(required=False, allow_blank=True)
    blocked_reason = serializers.CharField(required=False, allow_blank=True)

    def validate(self, data):
        if data.get('status') == MilestoneStatus.BLOCKED and not data.get('blocked_reason'):
            raise serializers.ValidationError({'blocked_reason': "Required when blocking a milestone"})
        return data


class CompleteOrderSerializer(serializers.Serializer):
    """Serializer for manual order completion."""

    completion_type = serializers.ChoiceField(choices=CompletionType.choices, default=CompletionType.MANUAL)
    verification_method = serializers.CharField(required=False, allow_blank=True)
    customer_satisfaction_score = serializers.IntegerField(required=False, min_value=1, max_value=5)
    customer_feedback = serializers.CharField(required=False, allow_blank=True)
    quality_score = serializers.DecimalField(max_digits=5, decimal_places=2, required=False)
    defects_reported = serializers.IntegerField(required=False, min_value=0)
    generate_invoice = serializers.BooleanField(default=False)
    capture_payment = serializers.BooleanField(default=False)
    notes = serializers.CharField(required=False, allow_blank=True)


class StatusTransitionSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=OrderStatus.choices)
    notes = serializers.CharField(required=False, allow_blank=True, default='')


class BulkStatusTransitionSerializer(StatusTransitionSerializer):
    order_ids = serializers.ListField(child=serializers.UUIDField(), allow_empty=False)


class DashboardFilterSerializer(serializers.Serializer):
    """Query parameters of the fulfillment dashboard."""

    status_code = serializers.ChoiceField(choices=OrderStatus.choices, required=False)
    is_overdue = serializers.BooleanField(required=False, default=False)
    limit = serializers.IntegerField(required=False, min_value=1, max_value=500)
    offset = serializers.IntegerField(required=False, min_value=0, default=0)


class RecordNotificationSerializer(serializers.Serializer):
    event_code = serializers.CharField(max_length=50)
    notes = serializers.CharField(required=False, allow_blank=True, default='')
    metadata = serializers.JSONField(required=False, default=dict)
