"""
Customer order management: creation, editing, listing and status changes.
"""
import logging
import random
from datetime import timedelta
from decimal import Decimal

from django.db import transaction
from django.db.models import Count, DecimalField, ExpressionWrapper, F, Sum
from django.db.models.functions import Coalesce
from django.utils import timezone

from backend.core.choices import PRODUCT_TYPES
from backend.core.exceptions import InvalidOperationError, NotFoundError, ValidationFailedError
from backend.core.models import AuditLog
from backend.core.utils import create_audit_log, normalize_page_params, parse_date

from . import tracking
from .filters import CustomerOrderFilter
from .models import CustomerOrder, OrderItem, OrderStatus

logger = logging.getLogger(__name__)

ORDER_ITEM_FIELDS = ('product_code', 'description', 'quantity', 'unit', 'specifications', 'unit_price')
DASHBOARD_DELIVERY_WINDOW_DAYS = 30
DASHBOARD_TOP_CUSTOMERS = 10


def generate_order_number():
    """ORD-YYYYMMDD-NNNN with a random suffix, regenerated until unique"""
    while True:
        order_number = f"ORD-{timezone.now().strftime('%Y%m%d')}-{random.randint(1000, 9999)}"
        if not CustomerOrder.objects.filter(order_number=order_number).exists():
            return order_number


def order_queryset():
    return CustomerOrder.objects.select_related('created_by', 'assigned_planner').prefetch_related('items')


def get_order(order_id):
    try:
        return order_queryset().get(pk=order_id)
    except (CustomerOrder.DoesNotExist, ValueError, TypeError):
        raise NotFoundError(f"Order with ID {order_id} not found")


def _order_snapshot(order):
    return {
        'order_number': order.order_number,
        'customer_id': order.customer_id,
        'customer_name': order.customer_name,
        'product_type': order.product_type,
        'requested_delivery_date': order.requested_delivery_date.isoformat(),
        'status': order.status,
        'total_quantity': order.total_quantity,
    }


def _validate_delivery_date(delivery_date):
    if delivery_date is None:
        raise ValidationFailedError("Requested delivery date is required")
    if delivery_date <= timezone.now().date():
        raise ValidationFailedError("Requested delivery date must be in the future")


def _validate_items(items):
    if not items:
        raise ValidationFailedError("Order must contain at least one item")
    for index, item in enumerate(items, start=1):
        if not item.get('product_code'):
            raise ValidationFailedError(f"Item {index}: product code is required")
        if int(item.get('quantity') or 0) < 1:
            raise ValidationFailedError(f"Item {index}: quantity must be at least 1")
        unit_price = item.get('unit_price')
        if unit_price is not None and Decimal(str(unit_price)) < 0:
            raise ValidationFailedError(f"Item {index}: unit price cannot be negative")


def _create_items(order, items):
    OrderItem.objects.bulk_create([
        OrderItem(order=order, **{field: item.get(field) for field in ORDER_ITEM_FIELDS if field in item})
        for item in items
    ])


@transaction.atomic
def create_order(data, user=None, request=None):
    """
    Create a customer order in Submitted status.
    `data` carries customer_id, customer_name, product_type,
    requested_delivery_date, notes and items.
    """
    if not data.get('customer_id'):
        raise ValidationFailedError("Customer ID is required")
    if not data.get('customer_name'):
        raise ValidationFailedError("Customer name is required")
    if data.get('product_type') not in PRODUCT_TYPES:
        raise ValidationFailedError(f"Invalid product type: {data.get('product_type')}")
    _validate_delivery_date(data.get('requested_delivery_date'))
    items = data.get('items') or []
    _validate_items(items)

    order = CustomerOrder.objects.create(
        order_number=generate_order_number(),
        customer_id=data['customer_id'],
        customer_name=data['customer_name'],
        product_type=data['product_type'],
        requested_delivery_date=data['requested_delivery_date'],
        notes=data.get('notes'),
        status=OrderStatus.SUBMITTED,
        created_by=user if user and user.is_authenticated else None,
    )
    _create_items(order, items)
    tracking.create_initial_tracking(order, user)

    order = get_order(order.id)
    create_audit_log(
        request=request,
        user=user,
        action='order_create',
        entity_type='CustomerOrder',
        entity_id=order.id,
        entity_reference=order.order_number,
        new_values=_order_snapshot(order),
    )
    logger.info(f"Order created: {order.order_number} for customer {order.customer_id} ({order.total_quantity} units)")
    return order


def list_orders(filters=None, page=1, page_size=20):
    """
    Filtered order queryset with normalized paging.
    Returns (queryset, page, page_size); bad filter values raise ValidationFailedError.
    """
    page, page_size = normalize_page_params(page, page_size)
    filterset = CustomerOrderFilter(filters or {}, queryset=order_queryset())
    if not filterset.is_valid():
        raise ValidationFailedError("Invalid order filters", errors=filterset.errors)
    queryset = filterset.qs.order_by('requested_delivery_date', 'created_at')
    return queryset, page, page_size


@transaction.atomic
def transition_order(order, new_status, user=None, notes=None, reason=None, request=None, notify=True):
    """Change the status of a loaded order, with history, audit and notification"""
    previous_status = tracking.apply_status_change(order, new_status, user=user, notes=notes, reason=reason)

    create_audit_log(
        request=request,
        user=user,
        action='order_status_change',
        entity_type='CustomerOrder',
        entity_id=order.id,
        entity_reference=order.order_number,
        old_values={'status': previous_status},
        new_values={'status': new_status},
        additional_data={'notes': notes} if notes else None,
    )

    if notify:
        from backend.notifications.services import send_order_status_change_notification
        send_order_status_change_notification(order, previous_status, new_status)
    return order


def update_order_status(order_id, new_status, user=None, notes=None, reason=None, request=None):
    order = get_order(order_id)
    try:
        transition_order(order, new_status, user=user, notes=notes, reason=reason, request=request)
    except (InvalidOperationError, ValidationFailedError) as e:
        logger.warning(f"Status change refused for order {order.order_number}: {e.message}")
        create_audit_log(
            request=request,
            user=user,
            action='order_status_change',
            entity_type='CustomerOrder',
            entity_id=order.id,
            entity_reference=order.order_number,
            old_values={'status': order.status},
            new_values={'status': new_status},
            result=AuditLog.RESULT_VALIDATION_ERROR,
            error_message=e.message,
        )
        raise
    return get_order(order.id)


@transaction.atomic
def update_order(order_id, data, user=None, request=None):
    """Edit an order still in Submitted or UnderReview; `items` replaces the item list"""
    order = get_order(order_id)
    if order.status not in OrderStatus.EDITABLE:
        raise InvalidOperationError(f"Cannot update order in {order.status} status")

    old_values = _order_snapshot(order)

    if 'requested_delivery_date' in data:
        _validate_delivery_date(data['requested_delivery_date'])
        order.requested_delivery_date = data['requested_delivery_date']
    if 'product_type' in data:
        if data['product_type'] not in PRODUCT_TYPES:
            raise ValidationFailedError(f"Invalid product type: {data['product_type']}")
        order.product_type = data['product_type']
    for field in ('customer_name', 'notes'):
        if field in data:
            setattr(order, field, data[field])
    if 'assigned_planner' in data:
        order.assigned_planner = data['assigned_planner']
    order.save()

    items = data.get('items')
    if items is not None:
        _validate_items(items)
        order.items.all().delete()
        _create_items(order, items)

    order = get_order(order.id)
    create_audit_log(
        request=request,
        user=user,
        action='order_update',
        entity_type='CustomerOrder',
        entity_id=order.id,
        entity_reference=order.order_number,
        old_values=old_values,
        new_values=_order_snapshot(order),
    )
    logger.info(f"Order updated: {order.order_number}")
    return order


@transaction.atomic
def delete_order(order_id, user=None, request=None):
    order = get_order(order_id)
    if order.status != OrderStatus.SUBMITTED:
        raise InvalidOperationError(f"Cannot delete order in {order.status} status")

    snapshot = _order_snapshot(order)
    order_number = order.order_number
    entity_id = order.id
    order.delete()

    create_audit_log(
        request=request,
        user=user,
        action='order_delete',
        entity_type='CustomerOrder',
        entity_id=entity_id,
        entity_reference=order_number,
        old_values=snapshot,
    )
    logger.info(f"Order deleted: {order_number}")
    return True


def get_orders_by_delivery_date(start_date, end_date):
    start_date = parse_date(start_date, 'start_date')
    end_date = parse_date(end_date, 'end_date')
    if not start_date or not end_date:
        raise ValidationFailedError("Both start_date and end_date are required")
    if start_date > end_date:
        raise ValidationFailedError("Start date must be before or equal to end date")
    return order_queryset().filter(
        requested_delivery_date__range=(start_date, end_date)
    ).order_by('requested_delivery_date', 'created_at')


def _item_value_expression():
    return ExpressionWrapper(
        F('items__quantity') * Coalesce(F('items__unit_price'), Decimal('0')),
        output_field=DecimalField(max_digits=14, decimal_places=2),
    )


def get_dashboard_summary(filters=None):
    """
    Order counts and values for the planner dashboard.
    Filters: product_type, customer_id, start_date/end_date (requested delivery).
    """
    filters = filters or {}
    queryset = CustomerOrder.objects.all()
    if filters.get('product_type'):
        queryset = queryset.filter(product_type=filters['product_type'])
    if filters.get('customer_id'):
        queryset = queryset.filter(customer_id=filters['customer_id'])
    if filters.get('start_date'):
        queryset = queryset.filter(requested_delivery_date__gte=filters['start_date'])
    if filters.get('end_date'):
        queryset = queryset.filter(requested_delivery_date__lte=filters['end_date'])

    today = timezone.now().date()
    status_counts = {
        row['status']: row['count']
        for row in queryset.values('status').annotate(count=Count('id'))
    }
    product_type_counts = {
        row['product_type']: row['count']
        for row in queryset.values('product_type').annotate(count=Count('id'))
    }
    overdue = queryset.filter(requested_delivery_date__lt=today).exclude(status__in=OrderStatus.CLOSED).count()

    return {
        'total_orders': queryset.count(),
        'status_counts': {status: status_counts.get(status, 0) for status in OrderStatus.values()},
        'product_type_counts': {pt: product_type_counts.get(pt, 0) for pt in PRODUCT_TYPES},
        'overdue_orders': overdue,
        'orders_by_delivery_date': get_orders_by_delivery_window(queryset),
        'top_customers': get_top_customers(queryset),
        'total_value': queryset.aggregate(total=Sum(_item_value_expression()))['total'] or Decimal('0.00'),
    }


def get_orders_by_delivery_window(queryset=None, days=DASHBOARD_DELIVERY_WINDOW_DAYS):
    """Open orders due in the next `days` days grouped by delivery date"""
    queryset = CustomerOrder.objects.all() if queryset is None else queryset
    today = timezone.now().date()
    rows = (
        queryset.filter(requested_delivery_date__range=(today, today + timedelta(days=days)))
        .exclude(status__in=OrderStatus.CLOSED)
        .values('requested_delivery_date')
        .annotate(order_count=Count('id', distinct=True), total_quantity=Coalesce(Sum('items__quantity'), 0))
        .order_by('requested_delivery_date')
    )
    return [
        {
            'delivery_date': row['requested_delivery_date'].isoformat(),
            'order_count': row['order_count'],
            'total_quantity': row['total_quantity'],
        }
        for row in rows
    ]


def get_top_customers(queryset=None, limit=DASHBOARD_TOP_CUSTOMERS):
    queryset = CustomerOrder.objects.all() if queryset is None else queryset
    rows = (
        queryset.values('customer_id', 'customer_name')
        .annotate(
            order_count=Count('id', distinct=True),
            total_quantity=Coalesce(Sum('items__quantity'), 0),
            total_value=Sum(_item_value_expression()),
        )
        .order_by('-order_count', '-total_quantity', 'customer_id')[:limit]
    )
    return [
        {
            'customer_id': row['customer_id'],
            'customer_name': row['customer_name'],
            'order_count': row['order_count'],
            'total_quantity': row['total_quantity'],
            'total_value': row['total_value'] or Decimal('0.00'),
        }
        for row in rows
    ]
