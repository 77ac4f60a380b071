"""
Order status tracking: status history, milestones, at-risk detection and
automatic transitions driven by purchase order progress.

Also hosts the customer-scoped views used by the customer tracking API.
"""
import logging
from datetime import datetime, time, timedelta

from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from backend.core.choices import PRODUCT_TYPE_LMR
from backend.core.exceptions import InvalidOperationError, NotFoundError, ValidationFailedError
from backend.core.utils import normalize_page_params

from .models import CustomerOrder, OrderMilestone, OrderStatus, OrderStatusHistory

logger = logging.getLogger(__name__)

AT_RISK_WINDOW_DAYS = 3
URGENT_WINDOW_DAYS = 1
SUBMITTED_ATTENTION_HOURS = 24
UNDER_REVIEW_ATTENTION_HOURS = 48

LMR_PRODUCTION_DAYS = 7
FFV_PRODUCTION_DAYS = 5

MILESTONE_ORDER_SUBMITTED = 'Order Submitted'
MILESTONE_REVIEW_COMPLETED = 'Review Completed'
MILESTONE_PLANNING_COMPLETED = 'Planning Completed'
MILESTONE_SUPPLIER_CONFIRMATION = 'Supplier Confirmation'
MILESTONE_PRODUCTION_COMPLETED = 'Production Completed'
MILESTONE_DELIVERY_COMPLETED = 'Delivery Completed'

# Entering a status completes the milestone that was waiting on it
COMPLETED_BY_STATUS = {
    OrderStatus.UNDER_REVIEW: MILESTONE_ORDER_SUBMITTED,
    OrderStatus.PLANNING_IN_PROGRESS: MILESTONE_REVIEW_COMPLETED,
    OrderStatus.PURCHASE_ORDERS_CREATED: MILESTONE_PLANNING_COMPLETED,
    OrderStatus.IN_PRODUCTION: MILESTONE_SUPPLIER_CONFIRMATION,
    OrderStatus.READY_FOR_DELIVERY: MILESTONE_PRODUCTION_COMPLETED,
    OrderStatus.DELIVERED: MILESTONE_DELIVERY_COMPLETED,
}

ACTIVE_STATUSES = [s for s in OrderStatus.values() if s not in OrderStatus.CLOSED]


def _aware(day, at=time(0, 0)):
    return timezone.make_aware(datetime.combine(day, at))


def _get_order(order_id, customer_id=None):
    queryset = CustomerOrder.objects.all()
    if customer_id is not None:
        queryset = queryset.filter(customer_id=customer_id)
    try:
        return queryset.get(pk=order_id)
    except (CustomerOrder.DoesNotExist, ValueError, TypeError):
        raise NotFoundError(f"Order with ID {order_id} not found")


def add_order_milestone(order, name, description='', target_date=None, notes=None):
    milestone = OrderMilestone.objects.create(
        order=order,
        name=name,
        description=description,
        target_date=target_date,
        notes=notes,
    )
    logger.info(f"Milestone '{name}' added to order {order.order_number}")
    return milestone


def _create_milestone_if_missing(order, name, description, target_date):
    if not order.milestones.filter(name=name).exists():
        add_order_milestone(order, name, description, target_date)


def _complete_milestones(order, new_status):
    pending = order.milestones.filter(status=OrderMilestone.STATUS_PENDING)

    if new_status == OrderStatus.CANCELLED:
        pending.update(status=OrderMilestone.STATUS_CANCELLED, updated_at=timezone.now())
        return

    name = COMPLETED_BY_STATUS.get(new_status)
    if not name:
        return
    for milestone in pending.filter(name=name):
        milestone.mark_completed()
        milestone.save()


def _create_automatic_milestones(order, new_status):
    now = timezone.now()
    if new_status == OrderStatus.UNDER_REVIEW:
        _create_milestone_if_missing(
            order, MILESTONE_REVIEW_COMPLETED,
            "Order review and validation completed", now + timedelta(days=1),
        )
    elif new_status == OrderStatus.PLANNING_IN_PROGRESS:
        _create_milestone_if_missing(
            order, MILESTONE_PLANNING_COMPLETED,
            "Procurement planning and supplier allocation completed", now + timedelta(days=2),
        )
    elif new_status == OrderStatus.PURCHASE_ORDERS_CREATED:
        _create_milestone_if_missing(
            order, MILESTONE_SUPPLIER_CONFIRMATION,
            "All suppliers confirm purchase orders", now + timedelta(days=3),
        )
    elif new_status == OrderStatus.IN_PRODUCTION:
        production_days = LMR_PRODUCTION_DAYS if order.product_type == PRODUCT_TYPE_LMR else FFV_PRODUCTION_DAYS
        _create_milestone_if_missing(
            order, MILESTONE_PRODUCTION_COMPLETED,
            "All items produced and ready for shipment", now + timedelta(days=production_days),
        )
    elif new_status == OrderStatus.READY_FOR_DELIVERY:
        buffer_days = (order.requested_delivery_date - now.date()).days
        target = order.requested_delivery_date
        if buffer_days > 1:
            target = target - timedelta(days=1)
        _create_milestone_if_missing(
            order, MILESTONE_DELIVERY_COMPLETED, "Order delivered to customer", _aware(target),
        )


def create_initial_tracking(order, user=None):
    """History row and first milestone for a newly submitted order"""
    OrderStatusHistory.objects.create(
        order=order,
        from_status=None,
        to_status=order.status,
        changed_by=user if user and user.is_authenticated else None,
        notes='Order submitted',
    )
    add_order_milestone(
        order, MILESTONE_ORDER_SUBMITTED, "Order received and queued for review",
        timezone.now() + timedelta(days=1),
    )


@transaction.atomic
def apply_status_change(order, new_status, user=None, notes=None, reason=None):
    """
    Transition `order` and record the change: status history, completed
    milestones and the next automatic milestone. Returns the previous status.
    """
    if new_status not in OrderStatus.values():
        raise ValidationFailedError(f"Invalid order status: {new_status}")

    previous_status = order.status
    if not order.can_transition_to(new_status):
        raise InvalidOperationError(
            f"Cannot transition order from {previous_status} to {new_status}",
            code='invalid_transition',
        )

    order.transition_to(new_status)
    order.save(update_fields=['status', 'updated_at'])

    OrderStatusHistory.objects.create(
        order=order,
        from_status=previous_status,
        to_status=new_status,
        changed_by=user if user and user.is_authenticated else None,
        notes=notes,
        reason=reason,
    )
    _complete_milestones(order, new_status)
    _create_automatic_milestones(order, new_status)

    logger.info(f"Order {order.order_number} status updated from {previous_status} to {new_status}")
    return previous_status


def get_order_status_history(order_id, customer_id=None):
    order = _get_order(order_id, customer_id)
    return order.status_history.select_related('changed_by').order_by('changed_at', 'id')


def get_order_milestones(order_id, customer_id=None):
    order = _get_order(order_id, customer_id)
    return order.milestones.order_by('target_date', 'id')


def validate_status_transition(order_id, new_status):
    order = _get_order(order_id)
    allowed = sorted(OrderStatus.TRANSITIONS.get(order.status, set()))
    return {
        'order_id': order.id,
        'current_status': order.status,
        'requested_status': new_status,
        'is_valid': new_status in allowed,
        'allowed_statuses': allowed,
    }


def get_at_risk_orders():
    """Overdue orders, plus orders due soon that have not left review"""
    today = timezone.now().date()
    threshold = today + timedelta(days=AT_RISK_WINDOW_DAYS)
    return CustomerOrder.objects.filter(status__in=ACTIVE_STATUSES).filter(
        Q(requested_delivery_date__lt=today)
        | Q(
            requested_delivery_date__lte=threshold,
            status__in=[OrderStatus.SUBMITTED, OrderStatus.UNDER_REVIEW],
        )
    ).prefetch_related('items').order_by('requested_delivery_date')


def get_orders_requiring_attention():
    now = timezone.now()
    urgent_threshold = now.date() + timedelta(days=URGENT_WINDOW_DAYS)
    return CustomerOrder.objects.filter(status__in=ACTIVE_STATUSES).filter(
        Q(requested_delivery_date__lte=urgent_threshold)
        | Q(status=OrderStatus.SUBMITTED, created_at__lt=now - timedelta(hours=SUBMITTED_ATTENTION_HOURS))
        | Q(status=OrderStatus.UNDER_REVIEW, updated_at__lt=now - timedelta(hours=UNDER_REVIEW_ATTENTION_HOURS))
    ).prefetch_related('items').order_by('requested_delivery_date')


def process_automatic_status_transitions(user=None):
    """
    Advance orders whose purchase orders have all progressed:
    AwaitingSupplierConfirmation -> InProduction once every live PO is
    Confirmed or InProduction, InProduction -> ReadyForDelivery once every
    live PO is ReadyForShipment. Cancelled POs are ignored; orders without
    live POs are left alone.
    """
    from backend.orders.services import transition_order
    from backend.procurement.models import PurchaseOrderStatus

    rules = [
        (
            OrderStatus.AWAITING_SUPPLIER_CONFIRMATION, OrderStatus.IN_PRODUCTION,
            {PurchaseOrderStatus.CONFIRMED, PurchaseOrderStatus.IN_PRODUCTION},
            "Automatically transitioned - all purchase orders confirmed",
        ),
        (
            OrderStatus.IN_PRODUCTION, OrderStatus.READY_FOR_DELIVERY,
            {PurchaseOrderStatus.READY_FOR_SHIPMENT},
            "Automatically transitioned - all items ready for delivery",
        ),
    ]

    transitioned = []
    for from_status, to_status, required, note in rules:
        for order in CustomerOrder.objects.filter(status=from_status).prefetch_related('purchase_orders'):
            statuses = [
                po.status for po in order.purchase_orders.all()
                if po.status != PurchaseOrderStatus.CANCELLED
            ]
            if statuses and all(s in required for s in statuses):
                transition_order(order, to_status, user=user, notes=note)
                transitioned.append({
                    'order_id': order.id,
                    'order_number': order.order_number,
                    'from_status': from_status,
                    'to_status': to_status,
                })

    logger.info(f"Automatic status transitions processed: {len(transitioned)} orders advanced")
    return transitioned


# --- Customer-scoped tracking ---

def get_customer_orders(customer_id, filters=None, page=1, page_size=20):
    """
    Orders of one customer, newest first. Filters: start_date/end_date
    (created), status, product_type, is_at_risk.
    """
    filters = filters or {}
    page, page_size = normalize_page_params(page, page_size)
    queryset = CustomerOrder.objects.filter(customer_id=customer_id).prefetch_related('items')

    if filters.get('start_date'):
        queryset = queryset.filter(created_at__gte=_aware(filters['start_date']))
    if filters.get('end_date'):
        queryset = queryset.filter(created_at__lte=_aware(filters['end_date'], time.max))
    if filters.get('status'):
        queryset = queryset.filter(status=filters['status'])
    if filters.get('product_type'):
        queryset = queryset.filter(product_type=filters['product_type'])
    if filters.get('is_at_risk'):
        queryset = queryset.filter(
            status__in=ACTIVE_STATUSES, requested_delivery_date__lt=timezone.now().date()
        )
    return queryset.order_by('-created_at'), page, page_size


def get_customer_order(order_id, customer_id):
    order = _get_order(order_id, customer_id)
    return CustomerOrder.objects.prefetch_related('items').get(pk=order.pk)


def get_recent_orders(customer_id, count=5):
    return list(
        CustomerOrder.objects.filter(customer_id=customer_id)
        .prefetch_related('items').order_by('-created_at')[:count]
    )


def get_order_timeline(order_id, customer_id):
    """Status changes and milestones of one order merged in time order"""
    order = _get_order(order_id, customer_id)
    events = []
    for entry in order.status_history.all():
        events.append({
            'type': 'status_change',
            'timestamp': entry.changed_at,
            'title': f"Status changed to {entry.to_status}",
            'from_status': entry.from_status,
            'to_status': entry.to_status,
            'notes': entry.notes,
        })
    for milestone in order.milestones.all():
        events.append({
            'type': 'milestone',
            'timestamp': milestone.actual_date or milestone.target_date,
            'title': milestone.name,
            'description': milestone.description,
            'status': milestone.status,
            'target_date': milestone.target_date,
            'actual_date': milestone.actual_date,
            'is_overdue': milestone.is_overdue,
        })
    events.sort(key=lambda e: (e['timestamp'] is None, e['timestamp'] or timezone.now()))
    return {'order_id': order.id, 'order_number': order.order_number, 'status': order.status, 'events': events}


def get_order_tracking_summary(customer_id):
    orders = list(CustomerOrder.objects.filter(customer_id=customer_id))
    today = timezone.now().date()

    summary = {
        'customer_id': customer_id,
        'customer_name': orders[0].customer_name if orders else customer_id,
        'total_orders': len(orders),
        'active_orders': 0,
        'delivered_orders': 0,
        'cancelled_orders': 0,
        'overdue_orders': 0,
        'status_breakdown': {},
        'last_order_date': None,
        'next_delivery_date': None,
    }
    if not orders:
        return summary

    active = [o for o in orders if o.status in ACTIVE_STATUSES]
    summary['active_orders'] = len(active)
    summary['delivered_orders'] = sum(1 for o in orders if o.status == OrderStatus.DELIVERED)
    summary['cancelled_orders'] = sum(1 for o in orders if o.status == OrderStatus.CANCELLED)
    summary['overdue_orders'] = sum(1 for o in active if o.requested_delivery_date < today)
    for order in orders:
        summary['status_breakdown'][order.status] = summary['status_breakdown'].get(order.status, 0) + 1
    summary['last_order_date'] = max(o.created_at for o in orders)
    if active:
        summary['next_delivery_date'] = min(o.requested_delivery_date for o in active)
    return summary
