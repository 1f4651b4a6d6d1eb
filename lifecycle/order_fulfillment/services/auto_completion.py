"""
Auto-completion of delivered orders.

After a delivery the evaluator checks the organization's completion rules
and, when every criterion holds, completes the order on behalf of the system
and fires the post-completion integrations.
"""

import dataclasses
import logging
from dataclasses import dataclass
from typing import Dict, Any, Mapping
from django.conf import settings
from django.db import transaction

from ..adapters import integrations as integration_registry
from ..exceptions import ValidationException
from ..utils import parse_uuid
from ..models import (
    EventType, EventCode, CompletionRecord, CompletionType, FulfillmentRuleSet
)
from .completion_service import CompletionService
from .ledger import ShipmentLedger
from .milestone_service import MilestoneService
from .order_service import OrderService
from .quality_service import QualityService
from .results import service_operation, success
from .snapshots import completion_snapshot

logger = logging.getLogger(__name__)

SYSTEM_ACTOR = 'system'

# Notification events that must exist when notifications are required
REQUIRED_NOTIFICATIONS = (EventCode.SHIPPED, EventCode.DELIVERED)


TRUE_VALUES = ('true', '1', 'yes', 'on')
FALSE_VALUES = ('false', '0', 'no', 'off', '')


def parse_flag(name: str, value) -> bool:
    """
    Read a rule flag from settings, env-derived strings or stored overrides.

    Raises:
        ValidationException: If a string value is not a recognised boolean
    """
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in TRUE_VALUES:
            return True
        if normalized in FALSE_VALUES:
            return False
        raise ValidationException(f"Invalid value for {name}: {value}", {name: value})
    return bool(value)


@dataclass(frozen=True)
class AutoCompletionRules:
    """Business rules deciding whether a delivered order completes on its own."""

    require_payment: bool = False
    require_quality_check: bool = True
    require_notifications: bool = False
    auto_generate_invoice: bool = True
    auto_capture_payment: bool = False
    auto_update_inventory: bool = True
    enable_customer_notifications: bool = True

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> 'AutoCompletionRules':
        """Build rules from a mapping, ignoring unknown keys."""
        names = {field.name for field in dataclasses.fields(cls)}
        return cls(**{key: parse_flag(key, value) for key, value in values.items() if key in names})

    @classmethod
    def for_org(cls, org_id) -> 'AutoCompletionRules':
        """Settings defaults overlaid with the organization's stored overrides."""
        values = dict(getattr(settings, 'FULFILLMENT', {}).get('AUTO_COMPLETION_RULES', {}))
        rule_set = FulfillmentRuleSet.objects.filter(org_id=org_id).first()
        if rule_set is not None:
            values.update(rule_set.as_overrides())
        return cls.from_mapping(values)


class AutoCompletionEvaluator:
    """Evaluates auto-completion criteria for one order at a time."""

    def __init__(self, rules: AutoCompletionRules = None, integrations: Mapping[str, Any] = None):
        """
        Args:
            rules: Completion rules; the defaults when omitted
            integrations: Integrations overriding the module registry by name
        """
        self.rules = rules or AutoCompletionRules()
        self.integrations = integrations

    @classmethod
    @service_operation("evaluate auto-completion")
    def run_for_org(cls, order_id, org_id, integrations: Mapping[str, Any] = None) -> Dict[str, Any]:
        """Resolve the organization's rules and evaluate one order."""
        rules = AutoCompletionRules.for_org(parse_uuid(org_id))
        return cls(rules=rules, integrations=integrations).evaluate(order_id, org_id)

    def check_criteria(self, order) -> Dict[str, bool]:
        """
        Evaluate every criterion. Optional criteria switched off by the rules
        count as met.
        """
        rules = self.rules
        shipping = ShipmentLedger.summarize(order.id, order.org_id)

        if rules.require_notifications:
            sent = set(
                order.fulfillment_events
                .filter(event_type=EventType.NOTIFICATION, event_code__in=REQUIRED_NOTIFICATIONS)
                .values_list('event_code', flat=True)
            )
            notifications_sent = all(code in sent for code in REQUIRED_NOTIFICATIONS)
        else:
            notifications_sent = True

        return {
            'all_items_delivered': shipping['is_fully_delivered'] and shipping['total_items'] > 0,
            'payment_complete': order.is_paid_in_full if rules.require_payment else True,
            'quality_passed': QualityService.critical_checks_passed(order) if rules.require_quality_check else True,
            'notifications_sent': notifications_sent,
            'manufacturing_complete': OrderService.is_manufacturing_complete(order),
        }

    def post_completion_integrations(self):
        names = []
        if self.rules.auto_update_inventory:
            names.append(integration_registry.INVENTORY)
        if self.rules.enable_customer_notifications:
            names.append(integration_registry.NOTIFICATION)
        names.append(integration_registry.ANALYTICS)
        return names

    @service_operation("evaluate auto-completion")
    def evaluate(self, order_id, org_id) -> Dict[str, Any]:
        """
        Complete the order if every criterion holds.

        Returns:
            Result with ``completed``, the ``criteria`` outcomes, the
            ``integrations`` outcomes and the ``completion_record`` when completed
        """
        order = OrderService.get_order(order_id, org_id)

        existing = CompletionRecord.objects.filter(order=order).first()
        if existing is not None:
            return success(
                completed=False,
                already_completed=True,
                criteria={},
                integrations={},
                completion_record=completion_snapshot(existing),
            )

        criteria = self.check_criteria(order)
        if not all(criteria.values()):
            unmet = ', '.join(name for name, met in criteria.items() if not met)
            logger.info(f"Order {order.order_number} not auto-completed; unmet criteria: {unmet}")
            return success(completed=False, criteria=criteria, integrations={}, completion_record=None)

        with transaction.atomic():
            locked = OrderService.get_order(order.id, order.org_id, lock=True)
            MilestoneService.sync_production_milestone(locked, actor=SYSTEM_ACTOR)

        result = CompletionService.complete_order(
            order.id, order.org_id,
            {
                'completion_type': CompletionType.AUTOMATIC,
                'verification_method': 'auto_completion_rules',
                'notes': 'Order auto-completed based on fulfillment rules',
                'generate_invoice': self.rules.auto_generate_invoice,
                'capture_payment': self.rules.auto_capture_payment,
            },
            actor=SYSTEM_ACTOR,
            integrations=self.integrations,
        )
        if not result['success']:
            logger.warning(
                f"Auto-completion of order {order.order_number} rejected: {result['error']['message']}"
            )
            return {**result, 'completed': False, 'criteria': criteria}

        logger.info(f"Order {order.order_number} auto-completed")

        order.refresh_from_db()
        integrations = dict(result.get('integrations', {}))
        integrations.update(
            CompletionService.run_integrations(
                order, self.post_completion_integrations(),
                actor=SYSTEM_ACTOR, integrations=self.integrations
            )
        )

        return success(
            completed=True,
            criteria=criteria,
            integrations=integrations,
            completion_record=result['completion_record'],
        )
