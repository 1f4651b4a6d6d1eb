"""
Shipment ledger queries.

Shipped and delivered quantities are always derived from shipment item rows,
never stored on the order item.
"""

from typing import Dict, Any, Iterable

from django.db.models import Sum

from ..models import OrderItem, Shipment, ShipmentItem, ShipmentStatus
from .snapshots import shipment_snapshot


class ShippingStatus:
    PREPARING = 'preparing'
    PARTIALLY_SHIPPED = 'partially_shipped'
    SHIPPED = 'shipped'
    DELIVERED = 'delivered'


# Shipments whose items count as shipped
SHIPPED_STATUSES = (ShipmentStatus.SHIPPED, ShipmentStatus.DELIVERED)


class ShipmentLedger:
    """Read-side of the shipment ledger."""

    @staticmethod
    def shipped_quantities(order_item_ids: Iterable) -> Dict[Any, int]:
        """
        Quantity already allocated to shipments per order item, whatever the
        shipment status.
        """
        rows = (
            ShipmentItem.objects
            .filter(order_item_id__in=list(order_item_ids))
            .values('order_item_id')
            .annotate(total=Sum('quantity'))
        )
        return {row['order_item_id']: row['total'] or 0 for row in rows}

    @staticmethod
    def summarize(order_id, org_id) -> Dict[str, Any]:
        """
        Shipping totals for an order.

        Returns:
            Dict with ``total_items``, ``shipped_items``, ``delivered_items``,
            ``remaining_items``, ``is_fully_shipped``, ``is_fully_delivered``,
            ``shipments`` and ``shipping_status``
        """
        total_items = (
            OrderItem.objects.filter(order_id=order_id, order__org_id=org_id)
            .aggregate(total=Sum('quantity'))['total'] or 0
        )
        ledger_rows = ShipmentItem.objects.filter(
            shipment__order_id=order_id, shipment__org_id=org_id
        )
        shipped_items = (
            ledger_rows.filter(shipment__status__in=SHIPPED_STATUSES)
            .aggregate(total=Sum('quantity'))['total'] or 0
        )
        delivered_items = (
            ledger_rows.filter(shipment__status=ShipmentStatus.DELIVERED)
            .aggregate(total=Sum('quantity'))['total'] or 0
        )

        shipments = list(
            Shipment.objects.filter(order_id=order_id, org_id=org_id)
            .prefetch_related('items')
            .order_by('created_at')
        )

        remaining_items = total_items - shipped_items
        is_fully_shipped = remaining_items <= 0
        is_fully_delivered = delivered_items >= total_items

        if not shipments:
            shipping_status = None
        elif is_fully_delivered:
            shipping_status = ShippingStatus.DELIVERED
        elif is_fully_shipped:
            shipping_status = ShippingStatus.SHIPPED
        elif shipped_items > 0:
            shipping_status = ShippingStatus.PARTIALLY_SHIPPED
        else:
            shipping_status = ShippingStatus.PREPARING

        return {
            'order_id': str(order_id),
            'total_items': total_items,
            'shipped_items': shipped_items,
            'delivered_items': delivered_items,
            'remaining_items': remaining_items,
            'is_fully_shipped': is_fully_shipped,
            'is_fully_delivered': is_fully_delivered,
            'shipments': [shipment_snapshot(shipment) for shipment in shipments],
            'shipping_status': shipping_status,
        }
