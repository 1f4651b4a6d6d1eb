"""
Post-completion integrations for the Order Fulfillment lifecycle engine.

Inventory, customer notification, billing and analytics systems are reached
through one async call each. The engine invokes them after an order is
completed; a failing integration never undoes the completion.
"""

from abc import ABC, abstractmethod
from typing import Dict, Any, List

INVENTORY = 'inventory'
NOTIFICATION = 'notification'
INVOICE = 'invoice'
PAYMENT_CAPTURE = 'payment_capture'
ANALYTICS = 'analytics'


class IntegrationError(Exception):
    """Raised by an integration that could not do its job."""


class FulfillmentIntegration(ABC):
    """
    Interface for an external system notified about completed orders.

    Implementations must be idempotent: the owner of the external system may
    retry them independently of the engine.
    """

    @abstractmethod
    async def run(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        Perform the integration for one order.

        Args:
            payload: Order snapshot with ``order_id``, ``org_id``,
                ``order_number``, ``customer_email``, ``total_amount`` and ``items``

        Returns:
            Outcome dict with a ``status`` of ``ok`` or ``skipped``

        Raises:
            IntegrationError: If the external system rejected the call
        """
        pass


class MockIntegration(FulfillmentIntegration):
    """Deterministic mock that records every payload it receives."""

    def __init__(self):
        self.calls: List[Dict[str, Any]] = []

    async def run(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        self.calls.append(payload)
        return self.handle(payload)

    def handle(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return {'status': 'ok'}


class MockInventoryIntegration(MockIntegration):
    """Pretends to decrement stock for every delivered item."""

    def handle(self, payload):
        adjustments = [
            {'product_sku': item['product_sku'], 'quantity': -item['quantity']}
            for item in payload.get('items', [])
        ]
        return {'status': 'ok', 'adjustments': adjustments}


class MockNotificationIntegration(MockIntegration):
    """Pretends to email the customer. Skipped when the order has no email."""

    def handle(self, payload):
        if not payload.get('customer_email'):
            return {'status': 'skipped', 'reason': 'No customer email on order'}
        return {'status': 'ok', 'recipient': payload['customer_email']}


class MockInvoiceIntegration(MockIntegration):
    """Pretends to issue one invoice per order; repeated calls return the same number."""

    def __init__(self):
        super().__init__()
        self.invoices: Dict[str, str] = {}

    def handle(self, payload):
        order_id = payload['order_id']
        if order_id not in self.invoices:
            self.invoices[order_id] = f"INV-{payload['order_number']}"
        return {'status': 'ok', 'invoice_number': self.invoices[order_id]}


class MockPaymentCaptureIntegration(MockIntegration):
    """Pretends to capture the outstanding order balance."""

    def handle(self, payload):
        return {'status': 'ok', 'captured_amount': payload.get('balance_due', '0.00')}


class MockAnalyticsIntegration(MockIntegration):
    def handle(self, payload):
        return {'status': 'ok', 'metric': 'order_completed'}


class FailingIntegration(FulfillmentIntegration):
    """Integration that always fails. Useful to exercise failure handling."""

    def __init__(self, message: str = "Integration unavailable"):
        self.message = message

    async def run(self, payload):
        raise IntegrationError(self.message)


def _mock_integrations() -> Dict[str, FulfillmentIntegration]:
    return {
        INVENTORY: MockInventoryIntegration(),
        NOTIFICATION: MockNotificationIntegration(),
        INVOICE: MockInvoiceIntegration(),
        PAYMENT_CAPTURE: MockPaymentCaptureIntegration(),
        ANALYTICS: MockAnalyticsIntegration(),
    }


# Global integration registry - in production, real clients are registered at startup
integrations = _mock_integrations()


def get_integrations() -> Dict[str, FulfillmentIntegration]:
    """Return the current integration registry."""
    return integrations


def register_integration(name: str, integration: FulfillmentIntegration):
    """
    Replace the integration registered under ``name``.

    Args:
        name: Integration name (``inventory``, ``notification``, ``invoice``,
            ``payment_capture`` or ``analytics``)
        integration: Implementation of FulfillmentIntegration
    """
    integrations[name] = integration


def switch_to_mock_integrations():
    """Reset the registry to fresh mock integrations for testing."""
    global integrations
    integrations = _mock_integrations()
