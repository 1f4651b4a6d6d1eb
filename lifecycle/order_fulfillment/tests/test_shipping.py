"""
Tests for partial shipments and the shipment ledger.
"""

import datetime
import uuid
from unittest import mock
from django.db import DatabaseError, transaction
from django.test import TestCase
from django.utils import timezone

from ..adapters.integrations import switch_to_mock_integrations
from ..models import (
    Shipment, ShipmentItem, ShipmentStatus, FulfillmentEvent, EventCode, EventType,
    MilestoneCode, MilestoneStatus, OrderStatus
)
from ..services import ShippingService, ShipmentLedger
from .helpers import ORG_ID, OTHER_ORG_ID, create_order, create_started_order


class ShipmentNumberTest(TestCase):
    """Test shipment number generation."""

    def test_numbers_are_sequential_per_org_and_year(self):
        with transaction.atomic():
            first = ShippingService.generate_shipment_number(ORG_ID, year=2026)
            second = ShippingService.generate_shipment_number(ORG_ID, year=2026)
            other_org = ShippingService.generate_shipment_number(OTHER_ORG_ID, year=2026)
            next_year = ShippingService.generate_shipment_number(ORG_ID, year=2027)

        self.assertEqual(first, '111111-2026-00001')
        self.assertEqual(second, '111111-2026-00002')
        self.assertEqual(other_org, '222222-2026-00001')
        self.assertEqual(next_year, '111111-2027-00001')

    def test_organizations_sharing_a_prefix(self):
        first_org = uuid.UUID('abcdef00-0000-0000-0000-000000000000')
        second_org = uuid.UUID('abcdef11-0000-0000-0000-000000000000')
        results = []
        for org_id in (first_org, second_org):
            order = create_order(org_id=org_id, quantities=(2,))
            results.append(ShippingService.create_partial_shipment(order.id, org_id, {
                'carrier': 'UPS',
                'items': [{'order_item_id': str(order.items.get().id), 'quantity': 2}],
            }))

        self.assertTrue(all(result['success'] for result in results), results)
        numbers = {result['shipment']['shipment_number'] for result in results}
        self.assertEqual(len(numbers), 1)
        self.assertRegex(numbers.pop(), r'^ABCDEF-\d{4}-00001$')
        self.assertEqual(Shipment.objects.filter(org_id=second_org).count(), 1)


class PartialShipmentTest(TestCase):
    """Test shipment creation and quantity validation."""

    def setUp(self):
        switch_to_mock_integrations()
        self.order = create_started_order(quantities=(10,))
        self.item = self.order.items.get()

    def create_shipment(self, quantity, **extra):
        data = {
            'carrier': 'UPS',
            'service': 'Ground',
            'items': [{'order_item_id': str(self.item.id), 'quantity': quantity}],
        }
        data.update(extra)
        return ShippingService.create_partial_shipment(self.order.id, ORG_ID, data, actor='shipper-1')

    def test_create_partial_shipment(self):
        result = self.create_shipment(6, estimated_delivery_date='2026-11-02')

        self.assertTrue(result['success'])
        shipment = result['shipment']
        self.assertEqual(shipment['status'], ShipmentStatus.PREPARING)
        self.assertEqual(shipment['total_quantity'], 6)
        self.assertEqual(shipment['estimated_delivery_date'], datetime.date(2026, 11, 2))
        self.assertRegex(shipment['shipment_number'], r'^111111-\d{4}-00001$')

        event = FulfillmentEvent.objects.get(order=self.order, event_code=EventCode.READY_FOR_PACKAGING)
        self.assertEqual(event.event_type, EventType.SHIPMENT)
        self.assertEqual(event.metadata['shipment_number'], shipment['shipment_number'])
        self.assertEqual(event.metadata['item_count'], 1)
        self.assertEqual(event.metadata['carrier'], 'UPS')

    def test_over_shipment_is_rejected(self):
        self.assertTrue(self.create_shipment(6)['success'])

        result = self.create_shipment(5)

        self.assertFalse(result['success'])
        self.assertEqual(result['error']['code'], 'VALIDATION_ERROR')
        self.assertEqual(
            result['error']['message'],
            f"Cannot ship 5 of item {self.item.id}. Only 4 remaining."
        )
        self.assertEqual(result['error']['details']['remaining_quantity'], 4)
        self.assertEqual(result['error']['details']['requested_quantity'], 5)
        self.assertEqual(Shipment.objects.filter(order=self.order).count(), 1)

    def test_remaining_quantity_can_still_ship(self):
        self.assertTrue(self.create_shipment(6)['success'])

        result = self.create_shipment(4)

        self.assertTrue(result['success'])
        self.assertEqual(result['shipment']['shipment_number'][-5:], '00002')

    def test_duplicate_lines_are_merged(self):
        result = ShippingService.create_partial_shipment(self.order.id, ORG_ID, {
            'carrier': 'DHL',
            'items': [
                {'order_item_id': str(self.item.id), 'quantity': 3},
                {'order_item_id': str(self.item.id), 'quantity': 2},
            ],
        })

        self.assertTrue(result['success'])
        self.assertEqual(len(result['shipment']['items']), 1)
        self.assertEqual(result['shipment']['items'][0]['quantity'], 5)

    def test_merged_lines_cannot_exceed_ordered_quantity(self):
        result = ShippingService.create_partial_shipment(self.order.id, ORG_ID, {
            'carrier': 'DHL',
            'items': [
                {'order_item_id': str(self.item.id), 'quantity': 6},
                {'order_item_id': str(self.item.id), 'quantity': 6},
            ],
        })

        self.assertEqual(result['error']['code'], 'VALIDATION_ERROR')
        self.assertEqual(result['error']['details']['requested_quantity'], 12)

    def test_differently_spelled_ids_are_merged(self):
        result = ShippingService.create_partial_shipment(self.order.id, ORG_ID, {
            'carrier': 'DHL',
            'items': [
                {'order_item_id': str(self.item.id), 'quantity': 6},
                {'order_item_id': str(self.item.id).upper(), 'quantity': 3},
                {'order_item_id': self.item.id.hex, 'quantity': 3},
            ],
        })

        self.assertEqual(result['error']['code'], 'VALIDATION_ERROR')
        self.assertEqual(result['error']['details']['requested_quantity'], 12)
        self.assertEqual(result['error']['details']['remaining_quantity'], 10)
        self.assertFalse(ShipmentItem.objects.exists())

        merged = ShippingService.create_partial_shipment(self.order.id, ORG_ID, {
            'carrier': 'DHL',
            'items': [
                {'order_item_id': str(self.item.id), 'quantity': 6},
                {'order_item_id': str(self.item.id).upper(), 'quantity': 4},
            ],
        })

        self.assertTrue(merged['success'])
        self.assertEqual(len(merged['shipment']['items']), 1)
        self.assertEqual(ShipmentLedger.shipped_quantities([self.item.id]), {self.item.id: 10})

    def test_malformed_item_id(self):
        result = ShippingService.create_partial_shipment(self.order.id, ORG_ID, {
            'carrier': 'UPS',
            'items': [{'order_item_id': 'SKU-001', 'quantity': 1}],
        })

        self.assertEqual(result['error']['code'], 'VALIDATION_ERROR')
        self.assertEqual(result['error']['message'], 'Invalid order item id: SKU-001')
        self.assertFalse(Shipment.objects.exists())

    def test_invalid_quantities(self):
        for quantity in (0, -1, 1.5, True, '3'):
            result = self.create_shipment(quantity)
            self.assertEqual(result['error']['code'], 'VALIDATION_ERROR', quantity)
        self.assertFalse(Shipment.objects.exists())

    def test_item_of_another_order(self):
        other = create_order()
        foreign_item = other.items.get()

        result = ShippingService.create_partial_shipment(self.order.id, ORG_ID, {
            'carrier': 'UPS',
            'items': [{'order_item_id': str(foreign_item.id), 'quantity': 1}],
        })

        self.assertEqual(result['error']['code'], 'VALIDATION_ERROR')
        self.assertEqual(result['error']['message'], f"Order item {foreign_item.id} not found")

    def test_carrier_and_items_are_required(self):
        result = ShippingService.create_partial_shipment(self.order.id, ORG_ID, {
            'items': [{'order_item_id': str(self.item.id), 'quantity': 1}],
        })
        self.assertEqual(result['error']['code'], 'VALIDATION_ERROR')

        result = ShippingService.create_partial_shipment(self.order.id, ORG_ID, {'carrier': 'UPS', 'items': []})
        self.assertEqual(result['error']['code'], 'VALIDATION_ERROR')

    def test_unknown_order(self):
        result = ShippingService.create_partial_shipment(uuid.uuid4(), ORG_ID, {
            'carrier': 'UPS',
            'items': [{'order_item_id': str(self.item.id), 'quantity': 1}],
        })

        self.assertEqual(result['error']['code'], 'NOT_FOUND')

    def test_failed_item_insert_leaves_no_shipment(self):
        with mock.patch.object(ShipmentItem.objects, 'bulk_create', side_effect=DatabaseError('disk full')):
            result = self.create_shipment(6)

        self.assertFalse(result['success'])
        self.assertEqual(result['error']['code'], 'SYSTEM_ERROR')
        self.assertEqual(result['error']['message'], 'Failed to create partial shipment')
        self.assertFalse(Shipment.objects.filter(order=self.order).exists())
        self.assertFalse(
            FulfillmentEvent.objects.filter(order=self.order, event_code=EventCode.READY_FOR_PACKAGING).exists()
        )

        # The sequence value was rolled back with the shipment
        retry = self.create_shipment(6)
        self.assertTrue(retry['shipment']['shipment_number'].endswith('-00001'))


class ShipmentLifecycleTest(TestCase):
    """Test shipping, delivery and the order shipping summary."""

    def setUp(self):
        switch_to_mock_integrations()
        self.order = create_started_order(quantities=(10,))
        self.item = self.order.items.get()

    def create_shipment(self, quantity, **extra):
        data = {
            'carrier': 'FedEx',
            'items': [{'order_item_id': str(self.item.id), 'quantity': quantity}],
        }
        data.update(extra)
        result = ShippingService.create_partial_shipment(self.order.id, ORG_ID, data)
        self.assertTrue(result['success'], result)
        return result['shipment']['id']

    def test_partial_shipping_summary(self):
        first = self.create_shipment(6)
        self.create_shipment(4)

        summary = ShipmentLedger.summarize(self.order.id, ORG_ID)
        self.assertEqual(summary['shipping_status'], 'preparing')
        self.assertEqual(summary['shipped_items'], 0)
        self.assertEqual(summary['remaining_items'], 10)

        result = ShippingService.ship_shipment(first, ORG_ID, {'tracking_number': '1Z999'}, actor='shipper-1')

        self.assertTrue(result['success'])
        self.assertEqual(result['shipment']['tracking_number'], '1Z999')
        shipping = result['shipping_status']
        self.assertEqual(shipping['shipped_items'], 6)
        self.assertEqual(shipping['remaining_items'], 4)
        self.assertFalse(shipping['is_fully_shipped'])
        self.assertEqual(shipping['shipping_status'], 'partially_shipped')

        shipped_milestone = self.order.milestones.get(milestone_code=MilestoneCode.SHIPPED)
        self.assertEqual(shipped_milestone.status, MilestoneStatus.PENDING)
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, OrderStatus.PROCESSING)

    def test_shipping_everything_completes_shipped_milestone(self):
        first = self.create_shipment(6)
        second = self.create_shipment(4)

        ShippingService.ship_shipment(first, ORG_ID)
        result = ShippingService.ship_shipment(second, ORG_ID, {'shipping_cost': '12.50', 'weight': 3})

        self.assertTrue(result['shipping_status']['is_fully_shipped'])
        self.assertEqual(result['shipping_status']['shipping_status'], 'shipped')

        milestone = self.order.milestones.get(milestone_code=MilestoneCode.SHIPPED)
        self.assertEqual(milestone.status, MilestoneStatus.COMPLETED)
        self.assertEqual(milestone.notes, 'All items shipped across 2 shipment(s)')

        self.order.refresh_from_db()
        self.assertEqual(self.order.status, OrderStatus.SHIPPED)
        shipment = Shipment.objects.get(id=second)
        self.assertEqual(str(shipment.shipping_cost), '12.50')

    def test_delivery_completes_delivered_milestone(self):
        shipment_id = self.create_shipment(10, estimated_delivery_date='2026-11-02')
        ShippingService.ship_shipment(shipment_id, ORG_ID)

        delivered_at = timezone.make_aware(datetime.datetime(2026, 11, 1, 15, 30))
        result = ShippingService.mark_delivered(
            shipment_id, ORG_ID, {'delivery_date': delivered_at, 'recipient_name': 'J. Doe'}
        )

        self.assertTrue(result['success'])
        self.assertTrue(result['shipping_status']['is_fully_delivered'])
        self.assertEqual(result['shipping_status']['shipping_status'], 'delivered')
        self.assertEqual(result['shipment']['actual_delivery_date'], delivered_at)

        shipment = Shipment.objects.get(id=shipment_id)
        self.assertEqual(shipment.recipient_name, 'J. Doe')
        self.assertTrue(shipment.is_on_time)

        milestone = self.order.milestones.get(milestone_code=MilestoneCode.DELIVERED)
        self.assertEqual(milestone.status, MilestoneStatus.COMPLETED)
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, OrderStatus.DELIVERED)

        event = FulfillmentEvent.objects.get(order=self.order, event_code=EventCode.DELIVERED)
        self.assertEqual(event.event_type, EventType.DELIVERY)

        # No quality check recorded, so the order is not auto-completed
        self.assertFalse(result['auto_completion']['completed'])
        self.assertFalse(result['auto_completion']['criteria']['quality_passed'])

    def test_shipment_cannot_be_delivered_before_shipping(self):
        shipment_id = self.create_shipment(10)

        result = ShippingService.mark_delivered(shipment_id, ORG_ID)

        self.assertEqual(result['error']['code'], 'VALIDATION_ERROR')
        self.assertEqual(Shipment.objects.get(id=shipment_id).status, ShipmentStatus.PREPARING)

    def test_shipment_cannot_ship_twice(self):
        shipment_id = self.create_shipment(10)
        ShippingService.ship_shipment(shipment_id, ORG_ID)
        ShippingService.mark_delivered(shipment_id, ORG_ID)

        result = ShippingService.ship_shipment(shipment_id, ORG_ID)

        self.assertEqual(result['error']['code'], 'VALIDATION_ERROR')

    def test_shipment_of_another_organization(self):
        shipment_id = self.create_shipment(10)

        result = ShippingService.ship_shipment(shipment_id, OTHER_ORG_ID)

        self.assertEqual(result['error']['code'], 'NOT_FOUND')

    def test_order_shipping_status(self):
        self.create_shipment(3)

        result = ShippingService.get_order_shipping_status(self.order.id, ORG_ID)

        self.assertTrue(result['success'])
        self.assertEqual(result['total_items'], 10)
        self.assertEqual(len(result['shipments']), 1)
        self.assertEqual(result['shipments'][0]['total_quantity'], 3)

    def test_order_without_shipments_has_no_shipping_status(self):
        result = ShippingService.get_order_shipping_status(self.order.id, ORG_ID)

        self.assertIsNone(result['shipping_status'])
        self.assertEqual(result['remaining_items'], 10)

    def test_recheck_is_idempotent(self):
        shipment_id = self.create_shipment(10)
        ShippingService.ship_shipment(shipment_id, ORG_ID)
        updates_before = FulfillmentEvent.objects.filter(
            order=self.order, event_code=EventCode.MILESTONE_UPDATED
        ).count()

        result = ShippingService.check_order_shipping_status(self.order.id, ORG_ID)

        self.assertTrue(result['success'])
        self.assertEqual(
            FulfillmentEvent.objects.filter(order=self.order, event_code=EventCode.MILESTONE_UPDATED).count(),
            updates_before
        )


class BulkShipTest(TestCase):
    """Test shipping several orders in one request."""

    def setUp(self):
        switch_to_mock_integrations()

    def test_each_order_ships_its_remainder(self):
        first = create_started_order(quantities=(10, 2))
        second = create_started_order(quantities=(5,))
        second_item = second.items.get()
        ShippingService.create_partial_shipment(second.id, ORG_ID, {
            'carrier': 'UPS', 'items': [{'order_item_id': str(second_item.id), 'quantity': 3}],
        })

        result = ShippingService.bulk_ship([
            {'order_id': first.id, 'carrier': 'FedEx', 'tracking_number': '1Z001'},
            {'order_id': second.id, 'carrier': 'FedEx', 'shipping_cost': '7.25'},
        ], ORG_ID, notes='Evening pickup', actor='shipper-1')

        self.assertTrue(result['success'], result)
        self.assertEqual(result['shipped'], 2)
        self.assertEqual(result['failed'], 0)
        self.assertEqual(result['results'][0]['order_id'], str(first.id))
        self.assertTrue(result['results'][0]['shipping_status']['is_fully_shipped'])

        shipment = Shipment.objects.get(order=first)
        self.assertEqual(shipment.status, ShipmentStatus.SHIPPED)
        self.assertEqual(shipment.tracking_number, '1Z001')
        self.assertEqual(shipment.notes, 'Evening pickup')
        self.assertEqual(sum(shipment.items.values_list('quantity', flat=True)), 12)

        bulk_shipment = Shipment.objects.get(order=second, status=ShipmentStatus.SHIPPED)
        self.assertEqual(bulk_shipment.items.get().quantity, 2)
        first.refresh_from_db()
        self.assertEqual(first.status, OrderStatus.SHIPPED)

    def test_explicit_items_ship_partially(self):
        order = create_started_order(quantities=(10,))
        item = order.items.get()

        result = ShippingService.bulk_ship([{
            'order_id': order.id,
            'carrier': 'DHL',
            'items': [{'order_item_id': item.id, 'quantity': 4}],
        }], ORG_ID)

        self.assertEqual(result['shipped'], 1)
        shipping = result['results'][0]['shipping_status']
        self.assertEqual(shipping['shipped_items'], 4)
        self.assertEqual(shipping['remaining_items'], 6)

    def test_failing_order_does_not_stop_the_others(self):
        shippable = create_started_order(quantities=(3,))
        missing_id = uuid.uuid4()

        result = ShippingService.bulk_ship([
            {'order_id': missing_id, 'carrier': 'FedEx'},
            {'order_id': shippable.id, 'carrier': 'FedEx'},
        ], ORG_ID)

        self.assertTrue(result['success'])
        self.assertEqual(result['shipped'], 1)
        self.assertEqual(result['failed'], 1)
        self.assertEqual(result['results'][0]['order_id'], str(missing_id))
        self.assertEqual(result['results'][0]['error']['code'], 'NOT_FOUND')
        self.assertTrue(result['results'][1]['success'])

    def test_fully_shipped_order_is_reported(self):
        order = create_started_order(quantities=(2,))
        ShippingService.bulk_ship([{'order_id': order.id, 'carrier': 'FedEx'}], ORG_ID)

        result = ShippingService.bulk_ship([{'order_id': order.id, 'carrier': 'FedEx'}], ORG_ID)

        self.assertEqual(result['failed'], 1)
        self.assertIn('Nothing left to ship', result['results'][0]['error']['message'])
        self.assertEqual(Shipment.objects.filter(order=order).count(), 1)

    def test_rejected_ship_leaves_no_prepared_shipment(self):
        order = create_started_order(quantities=(4,))
        rejected = {
            'success': False,
            'error': {'code': 'VALIDATION_ERROR', 'message': 'Carrier rejected the pickup', 'details': {}},
        }

        with mock.patch.object(ShippingService, 'ship_shipment', return_value=rejected):
            result = ShippingService.bulk_ship([{'order_id': order.id, 'carrier': 'FedEx'}], ORG_ID)

        self.assertEqual(result['failed'], 1)
        self.assertEqual(result['results'][0]['error']['message'], 'Carrier rejected the pickup')
        self.assertFalse(Shipment.objects.filter(order=order).exists())
        self.assertFalse(ShipmentItem.objects.filter(shipment__order=order).exists())

    def test_storage_error_is_reported_per_order(self):
        order = create_started_order(quantities=(4,))

        with mock.patch.object(ShippingService, 'ship_shipment', side_effect=DatabaseError('connection reset')):
            result = ShippingService.bulk_ship([{'order_id': order.id, 'carrier': 'FedEx'}], ORG_ID)

        self.assertTrue(result['success'])
        self.assertEqual(result['results'][0]['error']['code'], 'SYSTEM_ERROR')
        self.assertFalse(Shipment.objects.filter(order=order).exists())

    def test_empty_batch_is_rejected(self):
        result = ShippingService.bulk_ship([], ORG_ID)

        self.assertEqual(result['error']['code'], 'VALIDATION_ERROR')
