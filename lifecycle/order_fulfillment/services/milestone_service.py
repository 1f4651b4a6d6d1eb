"""
Milestone tracking for the Order Fulfillment lifecycle engine.

Seeds the fixed milestone checklist when fulfillment starts and applies
milestone updates. Each update appends a ``MILESTONE_UPDATED`` event.
"""

import logging
from typing import Dict, Any, List
from django.db import transaction
from django.utils import timezone

from ..models import (
    Order, OrderStatus, FulfillmentMilestone, MilestoneStatus, MilestoneCode,
    DEFAULT_MILESTONES, EventType, EventCode, FulfillmentStatus
)
from ..exceptions import ConflictException, NotFoundException, ValidationException
from ..utils import coerce_date, parse_uuid
from .event_log import EventLogService
from .order_service import OrderService
from .results import service_operation, success
from .snapshots import milestone_snapshot
from .status_service import StatusService

logger = logging.getLogger(__name__)

DEFAULT_PRIORITY = 5


class MilestoneService:
    """Service class for milestone operations."""

    @staticmethod
    def get_milestones(order: Order) -> List[FulfillmentMilestone]:
        return list(order.milestones.order_by('sequence'))

    @staticmethod
    @service_operation("start fulfillment process")
    def start_fulfillment(order_id, org_id, actor=None, options: Dict[str, Any] = None) -> Dict[str, Any]:
        """
        Start fulfillment for an order.

        Args:
            order_id: Order UUID
            org_id: Organization UUID
            actor: Opaque identifier of the acting user
            options: Optional ``notes``, ``priority``, ``planned_ship_date``,
                ``special_instructions``

        Returns:
            Result with the derived ``fulfillment_status``
        """
        options = options or {}

        with transaction.atomic():
            order_pk = parse_uuid(order_id)
            if order_pk and FulfillmentMilestone.objects.filter(
                order_id=order_pk, org_id=parse_uuid(org_id)
            ).exists():
                raise ConflictException("Fulfillment already started for this order")

            order = OrderService.get_order(order_id, org_id, lock=True)

            # Re-check under the order lock
            if order.milestones.exists():
                raise ConflictException("Fulfillment already started for this order")

            now = timezone.now()
            planned_ship_date = coerce_date(options.get('planned_ship_date'), 'planned_ship_date')
            notes = options.get('notes')

            milestones = []
            for sequence, (code, name, milestone_type) in enumerate(DEFAULT_MILESTONES, start=1):
                confirmed = code == MilestoneCode.ORDER_CONFIRMED
                milestones.append(FulfillmentMilestone(
                    org_id=order.org_id,
                    order=order,
                    milestone_code=code,
                    milestone_name=name,
                    milestone_type=milestone_type,
                    sequence=sequence,
                    status=MilestoneStatus.COMPLETED if confirmed else MilestoneStatus.PENDING,
                    planned_date=planned_ship_date,
                    completed_at=now if confirmed else None,
                    completed_by=str(actor) if confirmed and actor is not None else None,
                    notes=notes if confirmed else None,
                ))
            FulfillmentMilestone.objects.bulk_create(milestones)

            EventLogService.record(
                order, EventCode.FULFILLMENT_STARTED, EventType.STATUS_CHANGE,
                actor=actor,
                notes=notes,
                status_after=FulfillmentStatus.PREPARATION,
                metadata={
                    'priority': options.get('priority') or DEFAULT_PRIORITY,
                    'planned_ship_date': planned_ship_date,
                    'special_instructions': options.get('special_instructions'),
                }
            )

        logger.info(f"Fulfillment started for order {order.order_number}")
        return success(fulfillment_status=StatusService.get_fulfillment_status(order.id, order.org_id))

    @staticmethod
    def apply_update(order: Order, milestone_code: str, status: str = None, completed_by=None,
                     notes: str = None, blocked_reason: str = None) -> FulfillmentMilestone:
        """
        Apply a milestone update and log it.

        Raises:
            ValidationException: If ``status`` is not a milestone status
            NotFoundException: If the order has no such milestone
        """
        if status is not None and status not in MilestoneStatus.values:
            raise ValidationException(f"Unknown milestone status: {status}", {'status': status})

        milestone = order.milestones.filter(milestone_code=milestone_code).first()
        if milestone is None:
            raise NotFoundException("Milestone", milestone_code)

        if status == MilestoneStatus.COMPLETED:
            milestone.status = status
            milestone.completed_at = timezone.now()
            milestone.completed_by = str(completed_by) if completed_by is not None else None
        elif status == MilestoneStatus.BLOCKED:
            milestone.status = status
            milestone.blocked_reason = blocked_reason
        elif status:
            milestone.status = status

        if notes:
            milestone.notes = notes

        milestone.save()

        EventLogService.record(
            order, EventCode.MILESTONE_UPDATED, EventType.MILESTONE,
            actor=completed_by,
            notes=notes,
            metadata={
                'milestone_code': milestone_code,
                'new_status': status,
                'blocked_reason': blocked_reason,
            }
        )

        logger.info(f"Milestone {milestone_code} of order {order.order_number} set to {milestone.status}")
        return milestone

    @staticmethod
    @service_operation("update milestone")
    def update_milestone(order_id, org_id, milestone_code: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        """
        Update one milestone of an order.

        Args:
            updates: ``status``, ``completed_by``, ``notes``, ``blocked_reason``

        Returns:
            Result with the updated ``milestone``
        """
        updates = updates or {}

        with transaction.atomic():
            order = OrderService.get_order(order_id, org_id)
            milestone = MilestoneService.apply_update(
                order,
                milestone_code,
                status=updates.get('status'),
                completed_by=updates.get('completed_by'),
                notes=updates.get('notes'),
                blocked_reason=updates.get('blocked_reason'),
            )

        return success(milestone=milestone_snapshot(milestone))

    @staticmethod
    def complete_if_pending(order: Order, milestone_code: str, actor=None, notes: str = None) -> bool:
        """
        Complete a milestone unless it is already completed.

        Missing milestones are skipped with a warning; the order may not be in
        fulfillment yet.

        Returns:
            True if the milestone was updated
        """
        milestone = order.milestones.filter(milestone_code=milestone_code).first()
        if milestone is None:
            logger.warning(
                f"Order {order.order_number} has no {milestone_code} milestone; "
                f"fulfillment not started"
            )
            return False
        if milestone.is_completed:
            return False
        MilestoneService.apply_update(
            order, milestone_code,
            status=MilestoneStatus.COMPLETED,
            completed_by=actor,
            notes=notes,
        )
        return True

    @staticmethod
    def sync_production_milestone(order: Order, actor=None) -> bool:
        """
        Reflect finished manufacturing on the milestones and the order status.

        Returns:
            True if manufacturing is complete
        """
        if not OrderService.is_manufacturing_complete(order):
            return False

        MilestoneService.complete_if_pending(
            order, MilestoneCode.PRODUCTION_COMPLETED,
            actor=actor,
            notes="All work orders completed"
        )
        if order.status == OrderStatus.CONFIRMED:
            OrderService.advance_status(
                order, OrderStatus.PROCESSING, actor=actor,
                notes="Manufacturing completed"
            )
        return True

    @staticmethod
    @service_operation("sync manufacturing status")
    def sync_manufacturing_status(order_id, org_id, actor=None) -> Dict[str, Any]:
        """
        Re-read work order statuses and complete ``PRODUCTION_COMPLETED`` when
        all of them are finished.

        Returns:
            Result with ``manufacturing_complete`` and the order ``status``
        """
        with transaction.atomic():
            order = OrderService.get_order(order_id, org_id, lock=True)
            complete = MilestoneService.sync_production_milestone(order, actor=actor)

        return success(
            order_id=str(order.id),
            manufacturing_complete=complete,
            status=order.status,
        )
