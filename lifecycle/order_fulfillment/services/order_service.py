"""
Order Service for the Order Fulfillment lifecycle engine.

Moves the macro order status. External callers go through ``update_status``
and ``bulk_update_status``, which always consult the transition table; engine
side effects use ``advance_status``, which moves the order only when the
table allows it.
"""

import logging
from typing import Dict, Any, List
from django.db import DatabaseError, transaction

from ..models import Order, OrderStatus, EventType, EventCode, FINISHED_WORK_ORDER_STATUSES
from ..exceptions import BusinessException, ValidationException
from ..utils import get_scoped
from .event_log import EventLogService
from .results import SYSTEM_ERROR, service_operation, success, failure
from .workflow import OrderWorkflow, validate_order_workflow

logger = logging.getLogger(__name__)


class OrderService:
    """Service class for order status operations."""

    @staticmethod
    def get_order(order_id, org_id, lock: bool = False) -> Order:
        """
        Load an order within its organization.

        Raises:
            NotFoundException: If the order does not exist for the organization
        """
        return get_scoped(Order.objects.all(), "Order", order_id, org_id, lock=lock)

    @staticmethod
    def set_status(order: Order, new_status: str, actor=None, notes: str = '',
                   validate: bool = True) -> Order:
        """
        Change the order status and log a ``STATUS_CHANGED`` event.

        Args:
            order: Order instance (locked by the caller when needed)
            new_status: Status to move to
            validate: Consult the transition table first

        Raises:
            InvalidTransitionException: If ``validate`` and the transition is not allowed
        """
        if validate:
            validate_order_workflow(order, new_status)

        old_status = order.status
        if old_status == new_status:
            return order

        order.status = new_status
        order.save(update_fields=['status', 'updated_at'])

        EventLogService.record(
            order, EventCode.STATUS_CHANGED, EventType.STATUS_CHANGE,
            actor=actor,
            notes=notes,
            status_before=old_status,
            status_after=new_status,
        )

        logger.info(f"Order {order.order_number} status changed {old_status} -> {new_status}")
        return order

    @staticmethod
    def advance_status(order: Order, new_status: str, actor=None, notes: str = '') -> bool:
        """
        Move the order only if the transition table allows it.

        Returns:
            True if the order now has ``new_status``
        """
        if order.status == new_status:
            return True
        if not OrderWorkflow.can_transition(order.status, new_status):
            logger.debug(
                f"Order {order.order_number} stays {order.status}; "
                f"{new_status} is not reachable"
            )
            return False
        OrderService.set_status(order, new_status, actor=actor, notes=notes, validate=False)
        return True

    @staticmethod
    @service_operation("update order status")
    def update_status(order_id, org_id, new_status: str, actor=None, notes: str = '') -> Dict[str, Any]:
        """
        Validated order status change.

        Returns:
            Result with ``order_id``, ``previous_status`` and ``status``
        """
        if new_status not in OrderStatus.values:
            raise ValidationException(f"Unknown order status: {new_status}", {'status': new_status})

        with transaction.atomic():
            order = OrderService.get_order(order_id, org_id, lock=True)
            previous_status = order.status
            OrderService.set_status(order, new_status, actor=actor, notes=notes)

        return success(
            order_id=str(order.id),
            previous_status=previous_status,
            status=order.status,
        )

    @staticmethod
    @service_operation("bulk update order status")
    def bulk_update_status(order_ids: List, org_id, new_status: str, actor=None,
                           notes: str = '') -> Dict[str, Any]:
        """
        Apply the same status change to several orders.

        Each order is validated and saved in its own transaction; a rejection or
        storage error on one order is reported for that order and does not
        prevent the others.

        Returns:
            Result with per-order ``results`` and ``updated``/``failed`` counts
        """
        if not order_ids:
            raise ValidationException("order_ids must not be empty", {'order_ids': 'required'})
        if new_status not in OrderStatus.values:
            raise ValidationException(f"Unknown order status: {new_status}", {'status': new_status})

        results = []
        for order_id in order_ids:
            try:
                with transaction.atomic():
                    order = OrderService.get_order(order_id, org_id, lock=True)
                    previous_status = order.status
                    OrderService.set_status(order, new_status, actor=actor, notes=notes)
                results.append(success(
                    order_id=str(order_id),
                    previous_status=previous_status,
                    status=new_status,
                ))
            except BusinessException as e:
                logger.warning(f"Bulk status update rejected for order {order_id}: {e.message}")
                results.append({'order_id': str(order_id), **failure(e.code, e.message, e.details)})
            except DatabaseError:
                logger.exception(f"Bulk status update failed for order {order_id}")
                results.append({
                    'order_id': str(order_id),
                    **failure(SYSTEM_ERROR, "Failed to update order status"),
                })

        updated = sum(1 for result in results if result['success'])
        logger.info(f"Bulk status update to {new_status}: {updated}/{len(results)} orders updated")
        return success(
            results=results,
            updated=updated,
            failed=len(results) - updated,
        )

    @staticmethod
    def is_manufacturing_complete(order: Order) -> bool:
        """
        Whether manufacturing is finished for the order.

        Requires at least one order item; every work order of those items
        (possibly none) must be completed or shipped.
        """
        items = list(order.items.prefetch_related('work_orders'))
        if not items:
            return False
        return all(
            work_order.status in FINISHED_WORK_ORDER_STATUSES
            for item in items
            for work_order in item.work_orders.all()
        )
