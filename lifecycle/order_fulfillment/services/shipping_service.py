"""
Shipping Service for the Order Fulfillment lifecycle engine.

Handles partial shipment creation, shipping, delivery and the convergence of
shipment state into the ``SHIPPED``/``DELIVERED`` milestones.
"""

import logging
import uuid
from decimal import Decimal, InvalidOperation
from typing import Dict, Any, List
from django.db import DatabaseError, transaction
from django.utils import timezone

from ..models import (
    Order, OrderItem, OrderStatus, Shipment, ShipmentItem, ShipmentSequence, ShipmentStatus,
    MilestoneCode, EventType, EventCode, FulfillmentStatus
)
from ..exceptions import BusinessException, ValidationException
from ..utils import coerce_date, coerce_datetime, get_scoped, parse_uuid
from .auto_completion import AutoCompletionEvaluator
from .event_log import EventLogService
from .ledger import ShipmentLedger
from .milestone_service import MilestoneService
from .order_service import OrderService
from .results import SYSTEM_ERROR, service_operation, success, failure
from .snapshots import shipment_snapshot
from .workflow import validate_shipment_workflow

logger = logging.getLogger(__name__)


def _to_decimal(value, field: str):
    if value is None or value == '':
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise ValidationException(f"Invalid {field}: {value}", {field: str(value)})


class ShippingService:
    """Service class for shipping operations."""

    @staticmethod
    def generate_shipment_number(org_id, year: int = None) -> str:
        """
        Next shipment number for an organization: ``{PREFIX}-{YEAR}-{SEQ:05d}``.

        PREFIX is the first six hex digits of the organization id, so numbers
        are unique within an organization only. Must run inside
        ``transaction.atomic``; the sequence row stays locked until commit.
        """
        org_pk = parse_uuid(org_id)
        year = year or timezone.now().year
        sequence = ShipmentSequence.next_value(org_pk, year)
        return f"{org_pk.hex[:6].upper()}-{year}-{sequence:05d}"

    @staticmethod
    def _normalize_items(items: List[Dict[str, Any]]) -> Dict[uuid.UUID, Dict[str, Any]]:
        """
        Validate requested quantities and merge requests naming the same item.

        Lines are merged by parsed UUID, so one item spelled two ways (case,
        hyphens) counts as one line.

        Returns:
            Mapping of order item UUID to ``{'quantity', 'notes'}``, in request order
        """
        requested = {}
        for item in items:
            raw_id = item.get('order_item_id')
            order_item_pk = parse_uuid(raw_id) if raw_id else None
            if order_item_pk is None:
                raise ValidationException(
                    f"Invalid order item id: {raw_id}",
                    {'order_item_id': str(raw_id)}
                )
            quantity = item.get('quantity')
            if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
                raise ValidationException(
                    f"Quantity for item {order_item_pk} must be a positive integer",
                    {'order_item_id': str(order_item_pk), 'quantity': quantity}
                )
            entry = requested.setdefault(order_item_pk, {'quantity': 0, 'notes': ''})
            entry['quantity'] += quantity
            if item.get('notes'):
                entry['notes'] = item['notes']
        return requested

    @staticmethod
    def _validate_quantities(order: Order, requested: Dict[uuid.UUID, Dict[str, Any]]) -> Dict[uuid.UUID, OrderItem]:
        """
        Check every requested quantity against what is left to ship.

        Locks the order item rows so concurrent shipments for the same items
        serialize on this check.

        Raises:
            ValidationException: If an item is foreign to the order or over-shipped
        """
        order_items = {
            item.id: item
            for item in OrderItem.objects.select_for_update().filter(order=order, id__in=list(requested))
        }
        for order_item_pk in requested:
            if order_item_pk not in order_items:
                raise ValidationException(
                    f"Order item {order_item_pk} not found",
                    {'order_item_id': str(order_item_pk)}
                )

        already_shipped = ShipmentLedger.shipped_quantities(order_items)

        for order_item_pk, order_item in order_items.items():
            quantity = requested[order_item_pk]['quantity']
            remaining = order_item.quantity - already_shipped.get(order_item_pk, 0)
            if quantity > remaining:
                raise ValidationException(
                    f"Cannot ship {quantity} of item {order_item_pk}. Only {remaining} remaining.",
                    {
                        'order_item_id': str(order_item_pk),
                        'requested_quantity': quantity,
                        'remaining_quantity': remaining,
                    }
                )
        return order_items

    @staticmethod
    @service_operation("create partial shipment")
    def create_partial_shipment(order_id, org_id, shipment_data: Dict[str, Any], actor=None) -> Dict[str, Any]:
        """
        Create a shipment for part (or all) of an order.

        Args:
            order_id: Order UUID
            org_id: Organization UUID
            shipment_data: ``items`` (list of ``order_item_id``/``quantity``/``notes``),
                ``carrier`` and optional ``service``, ``tracking_number``,
                ``shipping_address``, ``estimated_delivery_date``, ``notes``
            actor: Opaque identifier of the acting user

        Returns:
            Result with the created ``shipment``
        """
        shipment_data = shipment_data or {}
        items = shipment_data.get('items') or []
        if not items:
            raise ValidationException("Shipment must contain at least one item", {'items': 'required'})
        if not shipment_data.get('carrier'):
            raise ValidationException("Carrier is required", {'carrier': 'required'})

        requested = ShippingService._normalize_items(items)
        estimated_delivery_date = coerce_date(
            shipment_data.get('estimated_delivery_date'), 'estimated_delivery_date'
        )

        with transaction.atomic():
            order = OrderService.get_order(order_id, org_id, lock=True)
            order_items = ShippingService._validate_quantities(order, requested)
            shipment_number = ShippingService.generate_shipment_number(order.org_id)

            try:
                # Shipment and its items are written together or not at all
                with transaction.atomic():
                    shipment = Shipment.objects.create(
                        org_id=order.org_id,
                        order=order,
                        shipment_number=shipment_number,
                        carrier=shipment_data['carrier'],
                        service=shipment_data.get('service') or '',
                        tracking_number=shipment_data.get('tracking_number') or '',
                        shipping_address=shipment_data.get('shipping_address') or {},
                        estimated_delivery_date=estimated_delivery_date,
                        status=ShipmentStatus.PREPARING,
                        notes=shipment_data.get('notes') or '',
                    )
                    ShipmentItem.objects.bulk_create([
                        ShipmentItem(
                            shipment=shipment,
                            order_item=order_items[order_item_id],
                            quantity=entry['quantity'],
                            notes=entry['notes'],
                        )
                        for order_item_id, entry in requested.items()
                    ])
            except DatabaseError:
                logger.error(f"Shipment {shipment_number} rolled back: item insert failed")
                raise

            EventLogService.record(
                order, EventCode.READY_FOR_PACKAGING, EventType.SHIPMENT,
                actor=actor,
                notes=f"Partial shipment created: {shipment_number}",
                status_after=FulfillmentStatus.PACKAGING,
                metadata={
                    'shipment_id': str(shipment.id),
                    'shipment_number': shipment_number,
                    'item_count': len(requested),
                    'carrier': shipment.carrier,
                }
            )

        logger.info(
            f"Shipment {shipment_number} created for order {order.order_number} "
            f"with {sum(entry['quantity'] for entry in requested.values())} unit(s)"
        )
        return success(shipment=shipment_snapshot(shipment))

    @staticmethod
    @service_operation("ship shipment")
    def ship_shipment(shipment_id, org_id, tracking_details: Dict[str, Any] = None, actor=None) -> Dict[str, Any]:
        """
        Mark a shipment as handed to the carrier.

        Args:
            tracking_details: Optional ``tracking_number``, ``tracking_url``,
                ``label_url``, ``shipping_cost``, ``weight``, ``actual_ship_date``

        Returns:
            Result with the ``shipment`` and the order ``shipping_status``
        """
        tracking_details = tracking_details or {}

        with transaction.atomic():
            shipment = get_scoped(Shipment.objects.all(), "Shipment", shipment_id, org_id, lock=True)
            order = OrderService.get_order(shipment.order_id, org_id, lock=True)
            validate_shipment_workflow(shipment, ShipmentStatus.SHIPPED)

            for field in ('tracking_number', 'tracking_url', 'label_url'):
                if tracking_details.get(field):
                    setattr(shipment, field, tracking_details[field])

            shipping_cost = _to_decimal(tracking_details.get('shipping_cost'), 'shipping_cost')
            if shipping_cost is not None:
                shipment.shipping_cost = shipping_cost
            weight = _to_decimal(tracking_details.get('weight'), 'weight')
            if weight is not None:
                shipment.weight = weight

            shipment.shipped_at = (
                coerce_datetime(tracking_details.get('actual_ship_date'), 'actual_ship_date')
                or timezone.now()
            )
            shipment.status = ShipmentStatus.SHIPPED
            shipment.save()

            EventLogService.record(
                order, EventCode.SHIPPED, EventType.SHIPMENT,
                actor=actor,
                notes=f"Shipment shipped: {shipment.shipment_number}",
                status_after=FulfillmentStatus.SHIPPED,
                metadata={
                    'shipment_id': str(shipment.id),
                    'shipment_number': shipment.shipment_number,
                    'tracking_number': shipment.tracking_number,
                    'carrier': shipment.carrier,
                }
            )

            shipping_status = ShippingService._check_order_shipping_status(order, actor)

        logger.info(f"Shipment {shipment.shipment_number} shipped via {shipment.carrier}")
        return success(shipment=shipment_snapshot(shipment), shipping_status=shipping_status)

    @staticmethod
    @service_operation("mark shipment as delivered")
    def mark_delivered(shipment_id, org_id, delivery_data: Dict[str, Any] = None, actor=None) -> Dict[str, Any]:
        """
        Record delivery of a shipped shipment.

        When this completes delivery of the whole order the auto-completion
        rules are evaluated. Their outcome is reported under ``auto_completion``
        and never turns the delivery into a failure.

        Args:
            delivery_data: Optional ``delivery_date``, ``delivery_method``,
                ``recipient_name``, ``delivery_notes``, ``photo_url``
        """
        delivery_data = delivery_data or {}

        with transaction.atomic():
            shipment = get_scoped(Shipment.objects.all(), "Shipment", shipment_id, org_id, lock=True)
            order = OrderService.get_order(shipment.order_id, org_id, lock=True)
            validate_shipment_workflow(shipment, ShipmentStatus.DELIVERED)

            now = timezone.now()
            shipment.status = ShipmentStatus.DELIVERED
            shipment.actual_delivery_date = (
                coerce_datetime(delivery_data.get('delivery_date'), 'delivery_date') or now
            )
            shipment.delivered_at = now
            if delivery_data.get('recipient_name'):
                shipment.recipient_name = delivery_data['recipient_name']
            if delivery_data.get('delivery_notes'):
                shipment.notes = delivery_data['delivery_notes']
            shipment.save()

            EventLogService.record(
                order, EventCode.DELIVERED, EventType.DELIVERY,
                actor=actor,
                notes=f"Shipment delivered: {shipment.shipment_number}",
                status_after=FulfillmentStatus.DELIVERED,
                metadata={
                    'shipment_id': str(shipment.id),
                    'delivery_date': shipment.actual_delivery_date,
                    'delivery_method': delivery_data.get('delivery_method'),
                    'recipient_name': delivery_data.get('recipient_name'),
                    'photo_url': delivery_data.get('photo_url'),
                }
            )

            shipping_status = ShippingService._check_order_shipping_status(order, actor)

        logger.info(f"Shipment {shipment.shipment_number} delivered")

        auto_completion = None
        if shipping_status['is_fully_delivered']:
            auto_completion = AutoCompletionEvaluator.run_for_org(order.id, order.org_id)

        return success(
            shipment=shipment_snapshot(shipment),
            shipping_status=shipping_status,
            auto_completion=auto_completion,
        )

    @staticmethod
    @service_operation("load order shipping status")
    def get_order_shipping_status(order_id, org_id) -> Dict[str, Any]:
        """Shipping totals and shipments of an order."""
        order = OrderService.get_order(order_id, org_id)
        return success(**ShipmentLedger.summarize(order.id, order.org_id))

    @staticmethod
    @service_operation("check order shipping status")
    def check_order_shipping_status(order_id, org_id, actor=None) -> Dict[str, Any]:
        """Re-derive milestone and order status from the shipment ledger."""
        with transaction.atomic():
            order = OrderService.get_order(order_id, org_id, lock=True)
            shipping_status = ShippingService._check_order_shipping_status(order, actor)
        return success(**shipping_status)

    @staticmethod
    def _remaining_items(order_id, org_id) -> List[Dict[str, Any]]:
        """Every order item line with quantity still unshipped."""
        order = OrderService.get_order(order_id, org_id)
        order_items = list(order.items.all())
        already_shipped = ShipmentLedger.shipped_quantities(item.id for item in order_items)
        remaining = [
            {'order_item_id': str(item.id), 'quantity': item.quantity - already_shipped.get(item.id, 0)}
            for item in order_items
        ]
        remaining = [line for line in remaining if line['quantity'] > 0]
        if not remaining:
            raise ValidationException(
                f"Nothing left to ship for order {order.order_number}", {'order_id': str(order.id)}
            )
        return remaining

    @staticmethod
    def _ship_order(entry: Dict[str, Any], org_id, notes: str, actor=None) -> Dict[str, Any]:
        order_id = entry.get('order_id')
        items = entry.get('items') or ShippingService._remaining_items(order_id, org_id)

        created = ShippingService.create_partial_shipment(order_id, org_id, {
            'items': items,
            'carrier': entry.get('carrier'),
            'service': entry.get('service'),
            'shipping_address': entry.get('shipping_address'),
            'estimated_delivery_date': entry.get('estimated_delivery_date'),
            'notes': notes,
        }, actor=actor)
        if not created['success']:
            return created

        return ShippingService.ship_shipment(created['shipment']['id'], org_id, {
            'tracking_number': entry.get('tracking_number'),
            'tracking_url': entry.get('tracking_url'),
            'shipping_cost': entry.get('shipping_cost'),
            'weight': entry.get('weight'),
        }, actor=actor)

    @staticmethod
    @service_operation("bulk ship orders")
    def bulk_ship(orders: List[Dict[str, Any]], org_id, notes: str = '', actor=None) -> Dict[str, Any]:
        """
        Create and ship one shipment per order.

        Each entry carries ``order_id``, ``carrier`` and optional ``service``,
        ``tracking_number``, ``tracking_url``, ``shipping_cost``, ``weight``,
        ``shipping_address``, ``estimated_delivery_date`` and ``items``. Without
        ``items`` everything still unshipped on the order goes out.

        Each order is handled in its own transaction: a shipment that cannot
        be shipped is not left behind, and one failing order does not prevent
        the others.

        Returns:
            Result with per-order ``results`` and ``shipped``/``failed`` counts
        """
        if not orders:
            raise ValidationException("orders must not be empty", {'orders': 'required'})

        results = []
        for entry in orders:
            order_id = entry.get('order_id')
            try:
                with transaction.atomic():
                    outcome = ShippingService._ship_order(entry, org_id, notes, actor=actor)
                    if not outcome['success']:
                        transaction.set_rollback(True)
            except BusinessException as e:
                outcome = failure(e.code, e.message, e.details)
            except DatabaseError:
                logger.exception(f"Bulk shipping failed for order {order_id}")
                outcome = failure(SYSTEM_ERROR, "Failed to ship order")

            if not outcome['success']:
                logger.warning(f"Bulk shipping rejected for order {order_id}: {outcome['error']['message']}")
            results.append({'order_id': str(order_id), **outcome})

        shipped = sum(1 for result in results if result['success'])
        logger.info(f"Bulk shipping: {shipped}/{len(results)} orders shipped")
        return success(
            results=results,
            shipped=shipped,
            failed=len(results) - shipped,
        )

    @staticmethod
    def _check_order_shipping_status(order: Order, actor=None) -> Dict[str, Any]:
        """
        Complete ``SHIPPED``/``DELIVERED`` once the ledger covers every ordered unit.

        Returns:
            The shipment ledger summary
        """
        summary = ShipmentLedger.summarize(order.id, order.org_id)

        if summary['is_fully_shipped']:
            MilestoneService.complete_if_pending(
                order, MilestoneCode.SHIPPED,
                actor=actor,
                notes=f"All items shipped across {len(summary['shipments'])} shipment(s)"
            )
            OrderService.advance_status(order, OrderStatus.SHIPPED, actor=actor, notes="All items shipped")

        if summary['is_fully_delivered']:
            delivered = [s for s in summary['shipments'] if s['status'] == ShipmentStatus.DELIVERED]
            MilestoneService.complete_if_pending(
                order, MilestoneCode.DELIVERED,
                actor=actor,
                notes=f"All items delivered across {len(delivered)} shipment(s)"
            )
            OrderService.advance_status(order, OrderStatus.DELIVERED, actor=actor, notes="All items delivered")

        return summary
