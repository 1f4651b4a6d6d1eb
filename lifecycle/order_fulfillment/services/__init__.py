"""
Order Fulfillment Lifecycle Services
"""

from .workflow import (
    is_valid_transition, validate_order_transition,
    validate_order_workflow, validate_shipment_workflow
)
from .event_log import EventLogService
from .order_service import OrderService
from .ledger import ShipmentLedger
from .status_service import StatusService
from .milestone_service import MilestoneService
from .quality_service import QualityService
from .completion_service import CompletionService
from .auto_completion import AutoCompletionRules, AutoCompletionEvaluator
from .shipping_service import ShippingService

__all__ = [
    # Workflow validators
    'is_valid_transition', 'validate_order_transition',
    'validate_order_workflow', 'validate_shipment_workflow',

    # Services
    'EventLogService', 'OrderService', 'ShipmentLedger', 'StatusService',
    'MilestoneService', 'QualityService', 'CompletionService', 'ShippingService',

    # Auto-completion
    'AutoCompletionRules', 'AutoCompletionEvaluator',
]
