"""
Quality Control service for the Order Fulfillment lifecycle engine.

Quality checks are recorded whatever their outcome. Critical check types gate
the ``QUALITY_APPROVED`` milestone: a failing critical check blocks it, and it
completes once every critical check on the order has passed.
"""

import logging
from typing import Dict, Any
from django.conf import settings
from django.db import transaction

from ..models import (
    Order, OrderItem, WorkOrder, QualityCheck, QualityResult, MilestoneCode,
    MilestoneStatus, EventType, EventCode
)
from ..exceptions import ValidationException
from ..utils import parse_uuid
from .event_log import EventLogService
from .milestone_service import MilestoneService
from .order_service import OrderService
from .results import service_operation, success
from .snapshots import quality_snapshot

logger = logging.getLogger(__name__)

DEFAULT_CRITICAL_CHECK_TYPES = ('final_inspection', 'pre_shipment')


def critical_check_types():
    return tuple(
        getattr(settings, 'FULFILLMENT', {}).get('CRITICAL_QUALITY_CHECK_TYPES', DEFAULT_CRITICAL_CHECK_TYPES)
    )


class QualityService:
    """Service class for quality check operations."""

    @staticmethod
    def critical_checks_passed(order: Order) -> bool:
        """At least one critical check exists and all critical checks passed."""
        results = list(
            order.quality_checks
            .filter(check_type__in=critical_check_types())
            .values_list('overall_result', flat=True)
        )
        return bool(results) and all(result == QualityResult.PASS for result in results)

    @staticmethod
    def _related(model, order: Order, value, field: str):
        if not value:
            return None
        pk = parse_uuid(value)
        lookup = {'order_item__order': order} if model is WorkOrder else {'order': order}
        instance = model.objects.filter(id=pk, **lookup).first() if pk else None
        if instance is None:
            raise ValidationException(f"{model.__name__} {value} not found on order", {field: str(value)})
        return instance

    @staticmethod
    def _apply_gate(order: Order, check: QualityCheck) -> None:
        if check.check_type not in critical_check_types():
            return

        if not order.milestones.filter(milestone_code=MilestoneCode.QUALITY_APPROVED).exists():
            logger.warning(
                f"Order {order.order_number} has no {MilestoneCode.QUALITY_APPROVED} milestone; "
                f"quality gate not applied"
            )
            return

        if not check.passed:
            defect_count = len(check.defects_found or [])
            MilestoneService.apply_update(
                order, MilestoneCode.QUALITY_APPROVED,
                status=MilestoneStatus.BLOCKED,
                completed_by=check.checked_by,
                blocked_reason=f"{check.check_type} check failed with {defect_count} defect(s)",
            )
        elif QualityService.critical_checks_passed(order):
            MilestoneService.complete_if_pending(
                order, MilestoneCode.QUALITY_APPROVED,
                actor=check.checked_by,
                notes=f"Critical quality checks passed ({check.check_type})"
            )

    @staticmethod
    @service_operation("create quality check")
    def create_quality_check(data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Record a quality check for an order.

        Args:
            data: ``org_id``, ``order_id``, ``check_type``, ``overall_result``
                (``pass``/``fail``), ``checked_by`` and optional
                ``check_criteria``, ``quality_score``, ``defects_found``,
                ``notes``, ``order_item_id``, ``work_order_id``

        Returns:
            Result with the recorded ``quality_check``
        """
        data = data or {}
        if not data.get('check_type'):
            raise ValidationException("check_type is required", {'check_type': 'required'})
        if data.get('overall_result') not in QualityResult.values:
            raise ValidationException(
                f"overall_result must be one of: {', '.join(QualityResult.values)}",
                {'overall_result': data.get('overall_result')}
            )

        with transaction.atomic():
            order = OrderService.get_order(data.get('order_id'), data.get('org_id'), lock=True)
            order_item = QualityService._related(OrderItem, order, data.get('order_item_id'), 'order_item_id')
            work_order = QualityService._related(WorkOrder, order, data.get('work_order_id'), 'work_order_id')

            check = QualityCheck.objects.create(
                org_id=order.org_id,
                order=order,
                order_item=order_item,
                work_order=work_order,
                check_type=data['check_type'],
                checked_by=str(data.get('checked_by') or ''),
                check_criteria=data.get('check_criteria') or {},
                overall_result=data['overall_result'],
                quality_score=data.get('quality_score'),
                defects_found=data.get('defects_found') or [],
                notes=data.get('notes') or '',
            )
            check.refresh_from_db()

            event_code = (
                EventCode.QUALITY_CHECK_PASSED if check.passed else EventCode.QUALITY_CHECK_FAILED
            )
            EventLogService.record(
                order, event_code, EventType.QUALITY_CHECK,
                actor=check.checked_by or None,
                notes=check.notes,
                order_item_id=order_item.id if order_item else None,
                work_order_id=work_order.id if work_order else None,
                metadata={
                    'check_type': check.check_type,
                    'overall_result': check.overall_result,
                    'quality_score': check.quality_score,
                    'defects_found': check.defects_found,
                }
            )

            QualityService._apply_gate(order, check)

        logger.info(
            f"Quality check {check.check_type} recorded for order {order.order_number}: "
            f"{check.overall_result}"
        )
        return success(quality_check=quality_snapshot(check))
