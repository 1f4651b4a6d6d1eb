"""
Plain-dict views of fulfillment records, as returned by service operations.
"""

from typing import Dict, Any


def milestone_snapshot(milestone) -> Dict[str, Any]:
    return {
        'id': str(milestone.id),
        'milestone_code': milestone.milestone_code,
        'milestone_name': milestone.milestone_name,
        'milestone_type': milestone.milestone_type,
        'sequence': milestone.sequence,
        'status': milestone.status,
        'planned_date': milestone.planned_date,
        'completed_at': milestone.completed_at,
        'completed_by': milestone.completed_by,
        'blocked_reason': milestone.blocked_reason,
        'notes': milestone.notes,
    }


def event_snapshot(event) -> Dict[str, Any]:
    return {
        'id': str(event.id),
        'event_code': event.event_code,
        'event_type': event.event_type,
        'status_before': event.status_before,
        'status_after': event.status_after,
        'order_item_id': str(event.order_item_id) if event.order_item_id else None,
        'work_order_id': str(event.work_order_id) if event.work_order_id else None,
        'actor_user_id': event.actor_user_id,
        'notes': event.notes,
        'metadata': event.metadata,
        'created_at': event.created_at,
    }


def shipment_snapshot(shipment) -> Dict[str, Any]:
    items = [
        {
            'id': str(item.id),
            'order_item_id': str(item.order_item_id),
            'quantity': item.quantity,
            'notes': item.notes,
        }
        for item in shipment.items.all()
    ]
    return {
        'id': str(shipment.id),
        'shipment_number': shipment.shipment_number,
        'carrier': shipment.carrier,
        'service': shipment.service,
        'status': shipment.status,
        'tracking_number': shipment.tracking_number,
        'tracking_url': shipment.tracking_url,
        'shipped_at': shipment.shipped_at,
        'delivered_at': shipment.delivered_at,
        'estimated_delivery_date': shipment.estimated_delivery_date,
        'actual_delivery_date': shipment.actual_delivery_date,
        'items': items,
        'total_quantity': sum(item['quantity'] for item in items),
    }


def quality_snapshot(check) -> Dict[str, Any]:
    return {
        'id': str(check.id),
        'check_type': check.check_type,
        'overall_result': check.overall_result,
        'quality_score': check.quality_score,
        'defects_found': check.defects_found,
        'checked_by': check.checked_by,
        'checked_at': check.checked_at,
        'notes': check.notes,
    }


def completion_snapshot(record) -> Dict[str, Any]:
    if record is None:
        return None
    return {
        'id': str(record.id),
        'completion_type': record.completion_type,
        'completed_by': record.completed_by,
        'completed_at': record.completed_at,
        'verification_method': record.verification_method,
        'customer_satisfaction_score': record.customer_satisfaction_score,
        'quality_score': record.quality_score,
        'defects_reported': record.defects_reported,
        'invoice_generated': record.invoice_generated,
        'final_payment_captured': record.final_payment_captured,
        'notes': record.notes,
    }
