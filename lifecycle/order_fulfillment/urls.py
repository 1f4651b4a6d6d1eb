"""
URL configuration for the Order Fulfillment lifecycle engine.

Every route is scoped by the organization id.
"""

from rest_framework.routers import DefaultRouter

from .views import FulfillmentOrderViewSet, ShipmentViewSet, QualityCheckViewSet

ORG_PREFIX = r'orgs/(?P<org_id>[^/.]+)/fulfillment'

router = DefaultRouter()
router.register(rf'{ORG_PREFIX}/orders', FulfillmentOrderViewSet, basename='fulfillment-order')
router.register(rf'{ORG_PREFIX}/shipments', ShipmentViewSet, basename='fulfillment-shipment')
router.register(rf'{ORG_PREFIX}/quality-checks', QualityCheckViewSet, basename='fulfillment-quality-check')

urlpatterns = router.urls
