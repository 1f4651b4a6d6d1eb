"""
Django admin configuration for the Order Fulfillment lifecycle engine.
"""

from django.contrib import admin
from .models import (
    Order, OrderItem, WorkOrder, FulfillmentMilestone, FulfillmentEvent,
    Shipment, ShipmentItem, QualityCheck, CompletionRecord, FulfillmentRuleSet
)


class AppendOnlyAdmin(admin.ModelAdmin):
    """Admin for append-only records: viewable, never edited or deleted."""

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    readonly_fields = ['line_total']


class ShipmentItemInline(admin.TabularInline):
    model = ShipmentItem
    extra = 0


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ['order_number', 'org_id', 'customer_name', 'status', 'total_amount', 'due_date', 'created_at']
    list_filter = ['status', 'created_at']
    search_fields = ['order_number', 'customer_name', 'customer_email']
    readonly_fields = ['id', 'order_number', 'created_at', 'updated_at']
    inlines = [OrderItemInline]


@admin.register(WorkOrder)
class WorkOrderAdmin(admin.ModelAdmin):
    list_display = ['id', 'order_item', 'status', 'completed_at']
    list_filter = ['status']
    search_fields = ['order_item__product_sku', 'order_item__order__order_number']


@admin.register(FulfillmentMilestone)
class FulfillmentMilestoneAdmin(admin.ModelAdmin):
    list_display = ['order', 'sequence', 'milestone_code', 'milestone_type', 'status', 'completed_at']
    list_filter = ['status', 'milestone_code', 'milestone_type']
    search_fields = ['order__order_number']
    readonly_fields = ['id', 'created_at', 'updated_at']


@admin.register(FulfillmentEvent)
class FulfillmentEventAdmin(AppendOnlyAdmin):
    list_display = ['order', 'event_code', 'event_type', 'status_after', 'actor_user_id', 'created_at']
    list_filter = ['event_type', 'event_code', 'created_at']
    search_fields = ['order__order_number', 'notes']


@admin.register(Shipment)
class ShipmentAdmin(admin.ModelAdmin):
    list_display = ['shipment_number', 'order', 'carrier', 'status', 'tracking_number', 'shipped_at', 'delivered_at']
    list_filter = ['status', 'carrier', 'created_at']
    search_fields = ['shipment_number', 'tracking_number', 'order__order_number']
    readonly_fields = ['id', 'shipment_number', 'created_at', 'updated_at']
    inlines = [ShipmentItemInline]


@admin.register(QualityCheck)
class QualityCheckAdmin(AppendOnlyAdmin):
    list_display = ['order', 'check_type', 'overall_result', 'quality_score', 'checked_by', 'checked_at']
    list_filter = ['overall_result', 'check_type']
    search_fields = ['order__order_number']


@admin.register(CompletionRecord)
class CompletionRecordAdmin(AppendOnlyAdmin):
    list_display = ['order', 'completion_type', 'completed_by', 'customer_satisfaction_score', 'completed_at']
    list_filter = ['completion_type', 'invoice_generated', 'final_payment_captured']
    search_fields = ['order__order_number']


@admin.register(FulfillmentRuleSet)
class FulfillmentRuleSetAdmin(admin.ModelAdmin):
    list_display = ['org_id', 'require_payment', 'require_quality_check', 'require_notifications', 'updated_at']
    search_fields = ['org_id']
