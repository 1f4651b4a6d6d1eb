"""
Shared test data builders for Order Fulfillment tests.
"""

import uuid
from decimal import Decimal

from ..models import Order, OrderItem, OrderStatus, WorkOrder, WorkOrderStatus
from ..services import MilestoneService

ORG_ID = uuid.UUID('11111111-1111-1111-1111-111111111111')
OTHER_ORG_ID = uuid.UUID('22222222-2222-2222-2222-222222222222')


def create_order(org_id=ORG_ID, status=OrderStatus.PROCESSING, quantities=(10,),
                 work_order_status=None, **fields):
    """
    Create an order with one item per entry of ``quantities``.

    When ``work_order_status`` is given every item gets one work order in that status.
    """
    fields.setdefault('customer_name', 'Acme Corp')
    fields.setdefault('customer_email', 'buyer@acme.test')
    fields.setdefault('total_amount', Decimal('100.00'))
    order = Order.objects.create(org_id=org_id, status=status, **fields)

    for index, quantity in enumerate(quantities, start=1):
        item = OrderItem.objects.create(
            order=order,
            product_sku=f'SKU-{index:03d}',
            product_name=f'Product {index}',
            quantity=quantity,
            unit_price=Decimal('10.00'),
        )
        if work_order_status is not None:
            WorkOrder.objects.create(order_item=item, status=work_order_status)
    return order


def create_started_order(org_id=ORG_ID, **kwargs):
    """Create an order and start its fulfillment."""
    kwargs.setdefault('work_order_status', WorkOrderStatus.COMPLETED)
    order = create_order(org_id=org_id, **kwargs)
    result = MilestoneService.start_fulfillment(order.id, order.org_id, actor='planner-1')
    assert result['success'], result
    order.refresh_from_db()
    return order
