"""
Tests for quality gating and order completion.
"""

import uuid
from decimal import Decimal
from django.test import TestCase, override_settings

from ..adapters.integrations import (
    FailingIntegration, PAYMENT_CAPTURE, register_integration, switch_to_mock_integrations
)
from ..exceptions import ImmutableRecordError
from ..models import (
    CompletionRecord, CompletionType, EventCode, FulfillmentEvent, MilestoneCode,
    MilestoneStatus, Order, OrderStatus, QualityCheck, QualityResult
)
from ..services import CompletionService, MilestoneService, QualityService
from .helpers import ORG_ID, create_order, create_started_order


def record_check(order, check_type='final_inspection', result=QualityResult.PASS, **extra):
    data = {
        'org_id': ORG_ID,
        'order_id': order.id,
        'check_type': check_type,
        'overall_result': result,
        'checked_by': 'qa-1',
    }
    data.update(extra)
    return QualityService.create_quality_check(data)


class QualityGateTest(TestCase):
    """Test how quality checks drive the QUALITY_APPROVED milestone."""

    def setUp(self):
        self.order = create_started_order()

    def quality_milestone(self):
        return self.order.milestones.get(milestone_code=MilestoneCode.QUALITY_APPROVED)

    def test_passing_critical_check_approves_quality(self):
        result = record_check(self.order, quality_score=Decimal('96.5'))

        self.assertTrue(result['success'])
        self.assertEqual(result['quality_check']['overall_result'], QualityResult.PASS)
        self.assertEqual(self.quality_milestone().status, MilestoneStatus.COMPLETED)
        self.assertTrue(
            FulfillmentEvent.objects.filter(order=self.order, event_code=EventCode.QUALITY_CHECK_PASSED).exists()
        )

    def test_failing_critical_check_blocks_quality(self):
        result = record_check(
            self.order, result=QualityResult.FAIL,
            defects_found=[{'code': 'SCRATCH'}, {'code': 'DENT'}]
        )

        self.assertTrue(result['success'])
        milestone = self.quality_milestone()
        self.assertEqual(milestone.status, MilestoneStatus.BLOCKED)
        self.assertEqual(milestone.blocked_reason, 'final_inspection check failed with 2 defect(s)')
        self.assertTrue(
            FulfillmentEvent.objects.filter(order=self.order, event_code=EventCode.QUALITY_CHECK_FAILED).exists()
        )

    def test_earlier_critical_failure_keeps_gate_closed(self):
        record_check(self.order, result=QualityResult.FAIL)
        record_check(self.order, check_type='pre_shipment', result=QualityResult.PASS)

        self.assertFalse(QualityService.critical_checks_passed(self.order))
        self.assertEqual(self.quality_milestone().status, MilestoneStatus.BLOCKED)

    def test_non_critical_check_does_not_gate(self):
        result = record_check(self.order, check_type='visual', result=QualityResult.FAIL)

        self.assertTrue(result['success'])
        self.assertEqual(self.quality_milestone().status, MilestoneStatus.PENDING)
        self.assertFalse(QualityService.critical_checks_passed(self.order))

    @override_settings(FULFILLMENT={'CRITICAL_QUALITY_CHECK_TYPES': ('visual',)})
    def test_critical_check_types_come_from_settings(self):
        record_check(self.order, check_type='visual', result=QualityResult.PASS)

        self.assertEqual(self.quality_milestone().status, MilestoneStatus.COMPLETED)

    def test_check_on_order_without_milestones_is_still_recorded(self):
        order = create_order()

        result = record_check(order)

        self.assertTrue(result['success'])
        self.assertEqual(order.quality_checks.count(), 1)

    def test_check_can_reference_an_order_item(self):
        item = self.order.items.get()

        result = record_check(self.order, order_item_id=str(item.id))

        self.assertTrue(result['success'])
        event = FulfillmentEvent.objects.get(order=self.order, event_code=EventCode.QUALITY_CHECK_PASSED)
        self.assertEqual(event.order_item_id, item.id)

    def test_item_of_another_order_is_rejected(self):
        foreign_item = create_order().items.get()

        result = record_check(self.order, order_item_id=str(foreign_item.id))

        self.assertEqual(result['error']['code'], 'VALIDATION_ERROR')
        self.assertFalse(self.order.quality_checks.exists())

    def test_invalid_result(self):
        result = record_check(self.order, result='maybe')

        self.assertEqual(result['error']['code'], 'VALIDATION_ERROR')

    def test_quality_checks_are_append_only(self):
        record_check(self.order)
        check = QualityCheck.objects.get(order=self.order)

        check.notes = 'edited'
        with self.assertRaises(ImmutableRecordError):
            check.save()
        with self.assertRaises(ImmutableRecordError):
            check.delete()
        with self.assertRaises(ImmutableRecordError):
            QualityCheck.objects.filter(order=self.order).update(notes='edited')


class CompleteOrderTest(TestCase):
    """Test the completion authority."""

    def setUp(self):
        switch_to_mock_integrations()
        self.order = create_started_order()

    def finish_milestones(self):
        for code in (
            MilestoneCode.PRODUCTION_COMPLETED, MilestoneCode.QUALITY_APPROVED,
            MilestoneCode.SHIPPED, MilestoneCode.DELIVERED,
        ):
            MilestoneService.apply_update(self.order, code, status=MilestoneStatus.COMPLETED)
        Order.objects.filter(id=self.order.id).update(status=OrderStatus.DELIVERED)

    def test_pending_milestones_block_completion(self):
        result = CompletionService.complete_order(self.order.id, ORG_ID, actor='manager-1')

        self.assertFalse(result['success'])
        self.assertEqual(result['error']['code'], 'VALIDATION_ERROR')
        self.assertEqual(
            result['error']['details']['pending_milestones'],
            ['MANUFACTURING_COMPLETED', 'QUALITY_CHECK_PASSED', 'SHIPPED', 'DELIVERED']
        )
        self.assertTrue(result['error']['message'].startswith('Cannot complete order: pending milestones - '))
        self.assertFalse(CompletionRecord.objects.exists())

    def test_complete_order(self):
        self.finish_milestones()

        result = CompletionService.complete_order(self.order.id, ORG_ID, {
            'customer_satisfaction_score': 5,
            'customer_feedback': 'Great',
            'quality_score': Decimal('97.00'),
            'notes': 'Closed out',
        }, actor='manager-1')

        self.assertTrue(result['success'])
        record = result['completion_record']
        self.assertEqual(record['completion_type'], CompletionType.MANUAL)
        self.assertEqual(record['completed_by'], 'manager-1')
        self.assertEqual(record['customer_satisfaction_score'], 5)
        self.assertEqual(result['integrations'], {})

        self.order.refresh_from_db()
        self.assertEqual(self.order.status, OrderStatus.COMPLETED)
        completed = self.order.milestones.get(milestone_code=MilestoneCode.COMPLETED)
        self.assertEqual(completed.status, MilestoneStatus.COMPLETED)

        event = FulfillmentEvent.objects.get(order=self.order, event_code=EventCode.COMPLETED)
        self.assertEqual(event.metadata['customer_satisfaction_score'], 5)
        self.assertFalse(event.metadata['invoice_generated'])

    def test_second_completion_is_a_conflict(self):
        self.finish_milestones()
        self.assertTrue(CompletionService.complete_order(self.order.id, ORG_ID)['success'])

        result = CompletionService.complete_order(self.order.id, ORG_ID)

        self.assertEqual(result['error']['code'], 'CONFLICT')
        self.assertEqual(result['error']['message'], 'Completion record already exists for this order')
        self.assertEqual(CompletionRecord.objects.filter(order=self.order).count(), 1)

    def test_completion_ignores_the_transition_table(self):
        self.finish_milestones()
        Order.objects.filter(id=self.order.id).update(status=OrderStatus.PROCESSING)

        result = CompletionService.complete_order(self.order.id, ORG_ID)

        self.assertTrue(result['success'])
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, OrderStatus.COMPLETED)

    def test_invoice_generation(self):
        self.finish_milestones()

        result = CompletionService.complete_order(self.order.id, ORG_ID, {'generate_invoice': True})

        invoice = result['integrations']['invoice']
        self.assertEqual(invoice['status'], 'ok')
        self.assertEqual(invoice['invoice_number'], f"INV-{self.order.order_number}")
        self.assertTrue(result['completion_record']['invoice_generated'])
        self.assertTrue(
            FulfillmentEvent.objects.filter(order=self.order, event_code=EventCode.INVOICE_GENERATED).exists()
        )

    def test_failed_payment_capture_does_not_undo_completion(self):
        register_integration(PAYMENT_CAPTURE, FailingIntegration('Gateway timeout'))
        self.finish_milestones()

        result = CompletionService.complete_order(self.order.id, ORG_ID, {'capture_payment': True})

        self.assertTrue(result['success'])
        self.assertEqual(result['integrations']['payment_capture'], {'status': 'failed', 'error': 'Gateway timeout'})
        self.assertTrue(CompletionRecord.objects.filter(order=self.order).exists())
        self.assertFalse(
            FulfillmentEvent.objects.filter(order=self.order, event_code=EventCode.PAYMENT_CAPTURED).exists()
        )

    def test_unknown_completion_type(self):
        self.finish_milestones()

        result = CompletionService.complete_order(self.order.id, ORG_ID, {'completion_type': 'forced'})

        self.assertEqual(result['error']['code'], 'VALIDATION_ERROR')

    def test_unknown_order(self):
        result = CompletionService.complete_order(uuid.uuid4(), ORG_ID)

        self.assertEqual(result['error']['code'], 'NOT_FOUND')

    def test_completion_records_are_append_only(self):
        self.finish_milestones()
        CompletionService.complete_order(self.order.id, ORG_ID)
        record = CompletionRecord.objects.get(order=self.order)

        with self.assertRaises(ImmutableRecordError):
            record.save()
