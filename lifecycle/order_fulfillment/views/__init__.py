"""
Order Fulfillment Lifecycle Views
"""

from .fulfillment_views import FulfillmentOrderViewSet
from .shipment_views import ShipmentViewSet
from .quality_views import QualityCheckViewSet

__all__ = [
    'FulfillmentOrderViewSet',
    'ShipmentViewSet',
    'QualityCheckViewSet',
]
