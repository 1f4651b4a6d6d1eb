"""
Shipment serializers for the Order Fulfillment lifecycle engine.
"""

from rest_framework import serializers

from ..models import Shipment, ShipmentItem


class ShipmentItemSerializer(serializers.ModelSerializer):
    """Serializer for ShipmentItem model."""

    product_sku = serializers.CharField(source='order_item.product_sku', read_only=True)
    product_name = serializers.CharField(source='order_item.product_name', read_only=True)

    class Meta:
        model = ShipmentItem
        fields = ['id', 'order_item', 'product_sku', 'product_name', 'quantity', 'notes']
        read_only_fields = fields


class ShipmentListSerializer(serializers.ModelSerializer):
    """Serializer for shipment listing."""

    order_number = serializers.CharField(source='order.order_number', read_only=True)
    total_quantity = serializers.SerializerMethodField()
    has_tracking = serializers.SerializerMethodField()

    class Meta:
        model = Shipment
        fields = [
            'id', 'shipment_number', 'order', 'order_number', 'carrier', 'status',
            'tracking_number', 'has_tracking', 'total_quantity',
            'estimated_delivery_date', 'shipped_at', 'delivered_at', 'created_at'
        ]

    def get_total_quantity(self, obj):
        return sum(item.quantity for item in obj.items.all())

    def get_has_tracking(self, obj):
        return bool(obj.tracking_number)


class ShipmentDetailSerializer(serializers.ModelSerializer):
    """Serializer for shipment details."""

    order_number = serializers.CharField(source='order.order_number', read_only=True)
    items = ShipmentItemSerializer(many=True, read_only=True)
    is_on_time = serializers.SerializerMethodField()

    class Meta:
        model = Shipment
        fields = [
            'id', 'shipment_number', 'order', 'order_number', 'carrier', 'service',
            'tracking_number', 'tracking_url', 'label_url', 'shipping_address',
            'status', 'shipping_cost', 'weight', 'estimated_delivery_date',
            'actual_delivery_date', 'recipient_name', 'notes', 'shipped_at',
            'delivered_at', 'created_at', 'updated_at', 'items', 'is_on_time'
        ]
        read_only_fields = fields

    def get_is_on_time(self, obj):
        return obj.is_on_time


class ShipmentItemRequestSerializer(serializers.Serializer):
    order_item_id = serializers.UUIDField()
    quantity = serializers.IntegerField(min_value=1)
    notes = serializers.CharField(required=False, allow_blank=True)


class PartialShipmentCreateSerializer(serializers.Serializer):
    """Serializer for creating a (partial) shipment."""

    order_id = serializers.UUIDField()
    items = ShipmentItemRequestSerializer(many=True, allow_empty=False)
    carrier = serializers.CharField(max_length=100)
    service = serializers.CharField(max_length=100, required=False, allow_blank=True)
    tracking_number = serializers.CharField(max_length=100, required=False, allow_blank=True)
    shipping_address = serializers.JSONField(required=False, default=dict)
    estimated_delivery_date = serializers.DateField(required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True)


class ShipShipmentSerializer(serializers.Serializer):
    """Serializer for tracking details stamped when a shipment ships."""

    tracking_number = serializers.CharField(max_length=100, required=False, allow_blank=True)
    tracking_url = serializers.URLField(max_length=500, required=False, allow_blank=True)
    label_url = serializers.URLField(max_length=500, required=False, allow_blank=True)
    shipping_cost = serializers.DecimalField(max_digits=10, decimal_places=2, required=False, min_value=0)
    weight = serializers.DecimalField(max_digits=8, decimal_places=2, required=False, min_value=0)
    actual_ship_date = serializers.DateTimeField(required=False)


class DeliverShipmentSerializer(serializers.Serializer):
    delivery_date = serializers.DateTimeField(required=False)
    delivery_method = serializers.CharField(max_length=50, required=False, allow_blank=True)
    recipient_name = serializers.CharField(max_length=100, required=False, allow_blank=True)
    delivery_notes = serializers.CharField(required=False, allow_blank=True)
    photo_url = serializers.URLField(max_length=500, required=False, allow_blank=True)


class BulkShipOrderSerializer(serializers.Serializer):
    """One order of a bulk shipping request. Without items the whole remainder ships."""

    order_id = serializers.UUIDField()
    carrier = serializers.CharField(max_length=100)
    service = serializers.CharField(max_length=100, required=False, allow_blank=True)
    tracking_number = serializers.CharField(max_length=100, required=False, allow_blank=True)
    tracking_url = serializers.URLField(max_length=500, required=False, allow_blank=True)
    shipping_cost = serializers.DecimalField(max_digits=10, decimal_places=2, required=False, min_value=0)
    weight = serializers.DecimalField(max_digits=8, decimal_places=2, required=False, min_value=0)
    shipping_address = serializers.JSONField(required=False, default=dict)
    estimated_delivery_date = serializers.DateField(required=False, allow_null=True)
    items = ShipmentItemRequestSerializer(many=True, required=False)


class BulkShipSerializer(serializers.Serializer):
    orders = BulkShipOrderSerializer(many=True, allow_empty=False)
    notes = serializers.CharField(required=False, allow_blank=True, default='')
