"""
Completion Authority for the Order Fulfillment lifecycle engine.

The only writer of completion records. An order is completed once, after its
critical milestones are done; billing integrations are asked afterwards and
their failures never undo the completion.
"""

import logging
from typing import Dict, Any, Iterable, List, Mapping
from asgiref.sync import async_to_sync
from django.db import transaction

from ..adapters import integrations as integration_registry
from ..models import (
    Order, OrderStatus, CompletionRecord, CompletionType, MilestoneCode, MilestoneStatus,
    EventType, EventCode, FulfillmentStatus
)
from ..exceptions import ConflictException, ValidationException
from .event_log import EventLogService
from .milestone_service import MilestoneService
from .order_service import OrderService
from .results import service_operation, success
from .snapshots import completion_snapshot

logger = logging.getLogger(__name__)

# Requirement code -> milestone codes that satisfy it
CRITICAL_MILESTONES = {
    'MANUFACTURING_COMPLETED': ('MANUFACTURING_COMPLETED', MilestoneCode.PRODUCTION_COMPLETED),
    'QUALITY_CHECK_PASSED': ('QUALITY_CHECK_PASSED', MilestoneCode.QUALITY_APPROVED),
    'SHIPPED': (MilestoneCode.SHIPPED,),
    'DELIVERED': (MilestoneCode.DELIVERED,),
}

# Integration name -> event recorded when it succeeds
INTEGRATION_EVENTS = {
    integration_registry.INVENTORY: EventCode.INVENTORY_UPDATED,
    integration_registry.NOTIFICATION: EventCode.CUSTOMER_NOTIFICATION_SENT,
    integration_registry.INVOICE: EventCode.INVOICE_GENERATED,
    integration_registry.PAYMENT_CAPTURE: EventCode.PAYMENT_CAPTURED,
    integration_registry.ANALYTICS: EventCode.ANALYTICS_UPDATED,
}


class CompletionService:
    """Service class for order completion."""

    @staticmethod
    def pending_requirements(order: Order) -> List[str]:
        """Critical requirements not yet satisfied by a completed milestone."""
        completed_codes = set(
            order.milestones
            .filter(status=MilestoneStatus.COMPLETED)
            .values_list('milestone_code', flat=True)
        )
        return [
            requirement
            for requirement, codes in CRITICAL_MILESTONES.items()
            if not completed_codes.intersection(codes)
        ]

    @staticmethod
    def _integration_payload(order: Order) -> Dict[str, Any]:
        return {
            'order_id': str(order.id),
            'org_id': str(order.org_id),
            'order_number': order.order_number,
            'customer_name': order.customer_name,
            'customer_email': order.customer_email,
            'total_amount': str(order.total_amount),
            'balance_due': str(max(order.total_amount - order.amount_paid, 0)),
            'items': [
                {'product_sku': item.product_sku, 'quantity': item.quantity}
                for item in order.items.all()
            ],
        }

    @staticmethod
    def run_integrations(order: Order, names: Iterable[str], actor=None,
                         integrations: Mapping[str, Any] = None) -> Dict[str, Dict[str, Any]]:
        """
        Call integrations one after another.

        ``integrations`` overrides registry entries by name; names it does not
        cover come from the module registry.

        Each success records a notification event. Failures are logged and
        reported in the returned outcomes; they are never raised.

        Returns:
            Mapping of integration name to outcome
        """
        payload = CompletionService._integration_payload(order)
        registry = {**integration_registry.get_integrations(), **(integrations or {})}
        outcomes = {}
        for name in names:
            try:
                integration = registry[name]
                outcome = async_to_sync(integration.run)(payload)
                if outcome.get('status') != 'skipped':
                    EventLogService.record(
                        order, INTEGRATION_EVENTS[name], EventType.NOTIFICATION,
                        actor=actor,
                        notes=f"{name} integration completed",
                        metadata=outcome,
                    )
            except Exception as e:
                logger.error(f"Integration {name} failed for order {order.order_number}: {e}")
                outcomes[name] = {'status': 'failed', 'error': str(e)}
                continue

            outcomes[name] = outcome
            logger.info(f"Integration {name} for order {order.order_number}: {outcome.get('status')}")
        return outcomes

    @staticmethod
    @service_operation("complete order")
    def complete_order(order_id, org_id, completion_data: Dict[str, Any] = None, actor=None,
                       integrations: Mapping[str, Any] = None) -> Dict[str, Any]:
        """
        Complete an order.

        Args:
            order_id: Order UUID
            org_id: Organization UUID
            completion_data: Optional ``completion_type``, ``verification_method``,
                ``customer_satisfaction_score``, ``customer_feedback``,
                ``quality_score``, ``defects_reported``, ``generate_invoice``,
                ``capture_payment``, ``notes``
            actor: Opaque identifier of the acting user
            integrations: Optional billing integrations overriding the registry

        Returns:
            Result with the ``completion_record`` and billing ``integrations`` outcomes
        """
        completion_data = completion_data or {}
        completion_type = completion_data.get('completion_type') or CompletionType.MANUAL
        if completion_type not in CompletionType.values:
            raise ValidationException(
                f"Unknown completion type: {completion_type}", {'completion_type': completion_type}
            )
        generate_invoice = bool(completion_data.get('generate_invoice'))
        capture_payment = bool(completion_data.get('capture_payment'))

        with transaction.atomic():
            order = OrderService.get_order(order_id, org_id, lock=True)

            if CompletionRecord.objects.filter(order=order).exists():
                raise ConflictException("Completion record already exists for this order")

            pending = CompletionService.pending_requirements(order)
            if pending:
                raise ValidationException(
                    f"Cannot complete order: pending milestones - {', '.join(pending)}",
                    {'pending_milestones': pending}
                )

            record = CompletionRecord.objects.create(
                org_id=order.org_id,
                order=order,
                completion_type=completion_type,
                completed_by=str(actor) if actor is not None else None,
                verification_method=completion_data.get('verification_method') or '',
                customer_satisfaction_score=completion_data.get('customer_satisfaction_score'),
                customer_feedback=completion_data.get('customer_feedback') or '',
                quality_score=completion_data.get('quality_score'),
                defects_reported=completion_data.get('defects_reported') or 0,
                invoice_generated=generate_invoice,
                final_payment_captured=capture_payment,
                notes=completion_data.get('notes') or '',
            )
            record.refresh_from_db()

            MilestoneService.apply_update(
                order, MilestoneCode.COMPLETED,
                status=MilestoneStatus.COMPLETED,
                completed_by=actor,
                notes="Order completed successfully",
            )
            OrderService.set_status(
                order, OrderStatus.COMPLETED, actor=actor,
                notes="Order completed", validate=False
            )

            EventLogService.record(
                order, EventCode.COMPLETED, EventType.COMPLETION,
                actor=actor,
                notes=completion_data.get('notes') or "Order completed successfully",
                status_after=FulfillmentStatus.COMPLETED,
                metadata={
                    'completion_type': completion_type,
                    'customer_satisfaction_score': record.customer_satisfaction_score,
                    'quality_score': record.quality_score,
                    'invoice_generated': generate_invoice,
                    'payment_captured': capture_payment,
                }
            )

        logger.info(f"Order {order.order_number} completed ({completion_type})")

        billing = []
        if generate_invoice:
            billing.append(integration_registry.INVOICE)
        if capture_payment:
            billing.append(integration_registry.PAYMENT_CAPTURE)
        outcomes = CompletionService.run_integrations(order, billing, actor=actor, integrations=integrations)

        return success(completion_record=completion_snapshot(record), integrations=outcomes)
