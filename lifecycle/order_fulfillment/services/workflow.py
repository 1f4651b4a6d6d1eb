"""
Workflow rules for the Order Fulfillment lifecycle engine.

Holds the allowed macro order status transitions and the shipment status
transitions, and enforces them.
"""

from ..exceptions import InvalidTransitionException
from ..models import Order, OrderStatus, Shipment, ShipmentStatus


class StatusWorkflow:
    """Base class for status transition tables."""

    ALLOWED_TRANSITIONS = {}
    entity_type = "entity"

    @classmethod
    def allowed_from(cls, current_status: str) -> list:
        return list(cls.ALLOWED_TRANSITIONS.get(current_status, []))

    @classmethod
    def can_transition(cls, current_status: str, new_status: str) -> bool:
        """
        Check a transition without raising.

        Self-transitions are always allowed; unknown statuses never are.
        """
        if current_status == new_status:
            return True
        return new_status in cls.ALLOWED_TRANSITIONS.get(current_status, [])

    @classmethod
    def validate_status_transition(cls, current_status: str, new_status: str) -> None:
        """
        Validate if a status transition is allowed.

        Args:
            current_status: Status the entity is in
            new_status: New status to transition to

        Raises:
            InvalidTransitionException: If transition is not allowed
        """
        if cls.can_transition(current_status, new_status):
            return

        raise InvalidTransitionException(
            current_status=current_status,
            attempted_status=new_status,
            allowed_transitions=cls.allowed_from(current_status),
            entity_type=cls.entity_type
        )

    @classmethod
    def validate_transition(cls, entity, new_status: str) -> None:
        cls.validate_status_transition(entity.status, new_status)


class OrderWorkflow(StatusWorkflow):
    """Workflow rules for Order state transitions."""

    entity_type = "order"

    ALLOWED_TRANSITIONS = {
        OrderStatus.DRAFT: [OrderStatus.PENDING, OrderStatus.CANCELLED],
        OrderStatus.PENDING: [OrderStatus.CONFIRMED, OrderStatus.CANCELLED],
        OrderStatus.CONFIRMED: [OrderStatus.PROCESSING, OrderStatus.CANCELLED],
        OrderStatus.PROCESSING: [OrderStatus.SHIPPED, OrderStatus.CANCELLED],
        OrderStatus.SHIPPED: [OrderStatus.DELIVERED],
        OrderStatus.DELIVERED: [OrderStatus.COMPLETED],
        OrderStatus.COMPLETED: [],  # Final state
        OrderStatus.CANCELLED: [],  # Final state
    }


class ShipmentWorkflow(StatusWorkflow):
    """Workflow rules for Shipment state transitions."""

    entity_type = "shipment"

    ALLOWED_TRANSITIONS = {
        ShipmentStatus.PREPARING: [ShipmentStatus.SHIPPED],
        ShipmentStatus.SHIPPED: [ShipmentStatus.DELIVERED],
        ShipmentStatus.DELIVERED: [],  # Final state
    }


def is_valid_transition(from_status: str, to_status: str) -> bool:
    """Whether an order may move from ``from_status`` to ``to_status``."""
    return OrderWorkflow.can_transition(from_status, to_status)


def validate_order_transition(from_status: str, to_status: str) -> None:
    """
    Validate an order status pair.

    Raises:
        InvalidTransitionException: If transition is not allowed
    """
    OrderWorkflow.validate_status_transition(from_status, to_status)


def validate_order_workflow(order: Order, new_status: str) -> None:
    """
    Validate order workflow transition.

    Args:
        order: Order instance
        new_status: New status to transition to

    Raises:
        InvalidTransitionException: If transition is not allowed
    """
    OrderWorkflow.validate_transition(order, new_status)


def validate_shipment_workflow(shipment: Shipment, new_status: str) -> None:
    """
    Validate shipment workflow transition.

    Args:
        shipment: Shipment instance
        new_status: New status to transition to

    Raises:
        InvalidTransitionException: If transition is not allowed
    """
    ShipmentWorkflow.validate_transition(shipment, new_status)
