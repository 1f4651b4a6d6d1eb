"""
Quality check serializers for the Order Fulfillment lifecycle engine.
"""

from rest_framework import serializers

from ..models import QualityCheck, QualityResult


class QualityCheckSerializer(serializers.ModelSerializer):
    """Serializer for QualityCheck model."""

    order_number = serializers.CharField(source='order.order_number', read_only=True)

    class Meta:
        model = QualityCheck
        fields = [
            'id', 'order', 'order_number', 'order_item', 'work_order', 'check_type',
            'checked_by', 'check_criteria', 'overall_result', 'quality_score',
            'defects_found', 'notes', 'checked_at'
        ]
        read_only_fields = fields


class QualityCheckCreateSerializer(serializers.Serializer):
    """Serializer for recording a quality check."""

    order_id = serializers.UUIDField()
    order_item_id = serializers.UUIDField(required=False, allow_null=True)
    work_order_id = serializers.UUIDField(required=False, allow_null=True)
    check_type = serializers.CharField(max_length=50)
    overall_result = serializers.ChoiceField(choices=QualityResult.choices)
    check_criteria = serializers.JSONField(required=False, default=dict)
    quality_score = serializers.DecimalField(
        max_digits=5, decimal_places=2, required=False, allow_null=True, min_value=0, max_value=100
    )
    defects_found = serializers.ListField(child=serializers.JSONField(), required=False, default=list)
    notes = serializers.CharField(required=False, allow_blank=True)
