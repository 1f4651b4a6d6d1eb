"""
Custom permissions for the Order Fulfillment lifecycle engine.
"""

from rest_framework.permissions import BasePermission

FULFILLMENT_STAFF_GROUP = 'fulfillment_staff'
COMPLETION_GROUPS = ['fulfillment_manager', 'order_supervisor']


class IsFulfillmentStaff(BasePermission):
    """
    Permission that allows access only to fulfillment staff users.

    Checks if user is staff or belongs to the 'fulfillment_staff' group.
    """

    def has_permission(self, request, view):
        user = request.user
        if not user or not user.is_authenticated:
            return False

        if user.is_staff:
            return True

        return user.groups.filter(name=FULFILLMENT_STAFF_GROUP).exists()


class CanCompleteOrders(BasePermission):
    """
    Permission for closing orders out manually.

    Restricted to fulfillment managers or order supervisors.
    """

    def has_permission(self, request, view):
        user = request.user
        if not user or not user.is_authenticated:
            return False

        return (
            user.is_staff or
            user.groups.filter(name__in=COMPLETION_GROUPS).exists()
        )
