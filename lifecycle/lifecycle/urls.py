"""
URL configuration for lifecycle project.

The `urlpatterns` list routes URLs to views. For more information please see:
    https://docs.djangoproject.com/en/5.2/topics/http/urls/
"""
from django.contrib import admin
from django.http import JsonResponse
from django.urls import path, include
from django.views.decorators.http import require_http_methods
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView


@require_http_methods(["GET"])
def api_root(request):
    """API root view with available endpoints."""
    return JsonResponse({
        'message': 'Order Fulfillment Lifecycle API',
        'version': '1.0.0',
        'endpoints': {
            'authentication': {
                'token': '/api/auth/token/',
                'token_refresh': '/api/auth/token/refresh/',
            },
            'fulfillment': {
                'orders': '/api/orgs/<org_id>/fulfillment/orders/<order_id>/',
                'dashboard': '/api/orgs/<org_id>/fulfillment/orders/dashboard/',
                'pending': '/api/orgs/<org_id>/fulfillment/orders/pending/',
                'stats': '/api/orgs/<org_id>/fulfillment/orders/stats/',
                'shipments': '/api/orgs/<org_id>/fulfillment/shipments/',
                'quality_checks': '/api/orgs/<org_id>/fulfillment/quality-checks/',
            },
        }
    })


urlpatterns = [
    path("admin/", admin.site.urls),

    # API endpoints
    path('api/', api_root, name='api-root'),  # Exact match for /api/ (must be first)
    path('api/auth/token/', TokenObtainPairView.as_view(), name='token_obtain_pair'),
    path('api/auth/token/refresh/', TokenRefreshView.as_view(), name='token_refresh'),
    path('api/', include('order_fulfillment.urls')),
]
