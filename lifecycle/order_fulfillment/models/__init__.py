"""
Order Fulfillment Lifecycle Models
"""

from .order import Order, OrderStatus
from .order_item import OrderItem, WorkOrder, WorkOrderStatus, FINISHED_WORK_ORDER_STATUSES
from .milestone import (
    FulfillmentMilestone, MilestoneStatus, MilestoneCode, MilestoneType, DEFAULT_MILESTONES
)
from .event import FulfillmentEvent, FulfillmentStatus, EventType, EventCode
from .shipment import Shipment, ShipmentStatus, ShipmentItem, ShipmentSequence
from .quality import QualityCheck, QualityResult
from .completion import CompletionRecord, CompletionType
from .rules import FulfillmentRuleSet

__all__ = [
    # Order models
    'Order', 'OrderStatus',
    'OrderItem', 'WorkOrder', 'WorkOrderStatus', 'FINISHED_WORK_ORDER_STATUSES',

    # Milestones
    'FulfillmentMilestone', 'MilestoneStatus', 'MilestoneCode', 'MilestoneType',
    'DEFAULT_MILESTONES',

    # Event log
    'FulfillmentEvent', 'FulfillmentStatus', 'EventType', 'EventCode',

    # Shipment models
    'Shipment', 'ShipmentStatus', 'ShipmentItem', 'ShipmentSequence',

    # Quality and completion
    'QualityCheck', 'QualityResult',
    'CompletionRecord', 'CompletionType',

    # Rules
    'FulfillmentRuleSet',
]
