"""
Supplier portal operations. Every call is scoped to the supplier the
authenticated user belongs to.
"""
import logging

from django.db import transaction
from django.db.models import Avg, Sum
from django.utils import timezone

from backend.core.cache_utils import SUPPLIER_DASHBOARD_CACHE_TTL, SUPPLIER_DASHBOARD_PREFIX, cached_query
from backend.core.exceptions import (
    InvalidOperationError, NotFoundError, UnauthorizedAccessError, ValidationFailedError,
)
from backend.core.models import AuditLog
from backend.core.utils import create_audit_log, normalize_page_params
from backend.notifications.services import send_email_notification, send_planner_supplier_response_notification
from backend.suppliers.services import get_supplier

from . import services
from .filters import PurchaseOrderHistoryFilter
from .models import PurchaseOrder, PurchaseOrderStatus

logger = logging.getLogger(__name__)

DELIVERY_BUFFER_WARNING_DAYS = 2
DASHBOARD_LIST_SIZE = 5


def get_supplier_purchase_orders(supplier_id, status=None):
    return services.get_purchase_orders_by_supplier(supplier_id, status)


def get_supplier_purchase_order(purchase_order_id, supplier_id, user=None, request=None):
    purchase_order = services.get_purchase_order(purchase_order_id)
    if purchase_order.supplier_id != supplier_id:
        logger.warning(
            f"Supplier {supplier_id} attempted to access purchase order "
            f"{purchase_order.purchase_order_number} of supplier {purchase_order.supplier_id}"
        )
        create_audit_log(
            request=request,
            user=user,
            action='view',
            entity_type='PurchaseOrder',
            entity_id=purchase_order.id,
            entity_reference=purchase_order.purchase_order_number,
            result=AuditLog.RESULT_UNAUTHORIZED,
            error_message=f"Purchase order not authorized for supplier {supplier_id}",
        )
        raise UnauthorizedAccessError(
            f"Purchase order {purchase_order_id} is not authorized for supplier {supplier_id}"
        )
    return purchase_order


def _delivery_dates(item_updates):
    return {
        update['purchase_order_item_id']: update['estimated_delivery_date']
        for update in item_updates or []
        if update.get('estimated_delivery_date')
    }


def _check_delivery_dates(purchase_order, item_updates):
    dates = _delivery_dates(item_updates)
    if not dates:
        return
    result = validate_delivery_dates(purchase_order.id, dates)
    if not result['is_valid']:
        messages = [error['message'] for error in result['errors']]
        raise ValidationFailedError(
            f"Delivery date validation failed: {', '.join(messages)}", errors=result['errors']
        )


@transaction.atomic
def confirm_purchase_order(purchase_order_id, supplier_id, user=None, notes=None, item_updates=None, request=None):
    purchase_order = get_supplier_purchase_order(purchase_order_id, supplier_id, user=user, request=request)
    if not purchase_order.can_transition_to(PurchaseOrderStatus.CONFIRMED):
        raise InvalidOperationError(
            f"Purchase order {purchase_order.purchase_order_number} cannot be confirmed "
            f"from status {purchase_order.status}"
        )
    _check_delivery_dates(purchase_order, item_updates)
    purchase_order = services.confirm_purchase_order(
        purchase_order.id, user=user, supplier_notes=notes, item_updates=item_updates, request=request
    )
    send_planner_supplier_response_notification(purchase_order, 'confirmed', notes)
    logger.info(f"Supplier confirmed {purchase_order.purchase_order_number}")
    return purchase_order


@transaction.atomic
def reject_purchase_order(purchase_order_id, supplier_id, user=None, reason=None, request=None):
    purchase_order = get_supplier_purchase_order(purchase_order_id, supplier_id, user=user, request=request)
    if not purchase_order.can_transition_to(PurchaseOrderStatus.REJECTED):
        raise InvalidOperationError(
            f"Purchase order {purchase_order.purchase_order_number} cannot be rejected "
            f"from status {purchase_order.status}"
        )
    purchase_order = services.reject_purchase_order(purchase_order.id, user=user, reason=reason, request=request)
    send_planner_supplier_response_notification(purchase_order, 'rejected', reason)
    logger.info(f"Supplier rejected {purchase_order.purchase_order_number}: {reason}")
    return purchase_order


@transaction.atomic
def update_purchase_order_items(purchase_order_id, supplier_id, user=None, item_updates=None, request=None):
    purchase_order = get_supplier_purchase_order(purchase_order_id, supplier_id, user=user, request=request)
    if purchase_order.status in PurchaseOrderStatus.CLOSED:
        raise InvalidOperationError(
            f"Cannot update items of purchase order in {purchase_order.status} status"
        )
    if not item_updates:
        raise ValidationFailedError("At least one item update is required")

    _check_delivery_dates(purchase_order, item_updates)
    services.apply_item_updates(purchase_order, item_updates)
    purchase_order.save(update_fields=['total_value', 'updated_at'])

    create_audit_log(
        request=request,
        user=user,
        action='po_item_update',
        entity_type='PurchaseOrder',
        entity_id=purchase_order.id,
        entity_reference=purchase_order.purchase_order_number,
        new_values={
            'items_updated': [u['purchase_order_item_id'] for u in item_updates],
            'total_value': str(purchase_order.total_value),
        },
    )
    logger.info(f"Updated {len(item_updates)} items of purchase order {purchase_order.purchase_order_number}")
    return services.get_purchase_order(purchase_order.id)


def validate_delivery_dates(purchase_order_id, estimated_delivery_dates):
    """
    Check supplier delivery estimates ({item_id: date}) against the
    purchase order's required delivery date.
    """
    purchase_order = services.get_purchase_order(purchase_order_id)
    required = purchase_order.required_delivery_date
    today = timezone.now().date()
    errors = []
    warnings = []

    for item_id, estimated in estimated_delivery_dates.items():
        if estimated <= today:
            errors.append({'item_id': item_id, 'message': "Estimated delivery date cannot be in the past"})
            continue
        if estimated > required:
            errors.append({
                'item_id': item_id,
                'message': (
                    f"Estimated delivery date ({estimated:%Y-%m-%d}) is after "
                    f"required delivery date ({required:%Y-%m-%d})"
                ),
            })
            continue
        buffer_days = (required - estimated).days
        if buffer_days < DELIVERY_BUFFER_WARNING_DAYS:
            warnings.append({
                'item_id': item_id,
                'message': f"Estimated delivery date leaves only {buffer_days} day(s) buffer before required delivery",
            })

    return {
        'is_valid': not errors,
        'customer_required_date': required,
        'errors': errors,
        'warnings': warnings,
    }


def _order_brief(purchase_order):
    return {
        'id': purchase_order.id,
        'purchase_order_number': purchase_order.purchase_order_number,
        'customer_order_number': purchase_order.customer_order.order_number,
        'status': purchase_order.status,
        'required_delivery_date': purchase_order.required_delivery_date,
        'total_quantity': purchase_order.total_quantity,
        'total_value': purchase_order.total_value,
    }


@cached_query(cache_ttl=SUPPLIER_DASHBOARD_CACHE_TTL, key_prefix=SUPPLIER_DASHBOARD_PREFIX)
def get_supplier_dashboard_summary(supplier_id):
    supplier = get_supplier(supplier_id)
    orders = PurchaseOrder.objects.filter(supplier_id=supplier_id).select_related('customer_order').prefetch_related('items')
    today = timezone.now().date()

    pending = orders.filter(status=PurchaseOrderStatus.SENT_TO_SUPPLIER)
    confirmed = orders.filter(status=PurchaseOrderStatus.CONFIRMED)
    in_production = orders.filter(status=PurchaseOrderStatus.IN_PRODUCTION)
    overdue = orders.filter(required_delivery_date__lt=today).exclude(status__in=PurchaseOrderStatus.CLOSED)
    upcoming = orders.filter(
        status__in=[PurchaseOrderStatus.CONFIRMED, PurchaseOrderStatus.IN_PRODUCTION],
        required_delivery_date__gte=today,
    ).order_by('required_delivery_date')[:DASHBOARD_LIST_SIZE]
    delivered = orders.filter(status=PurchaseOrderStatus.DELIVERED, delivered_at__isnull=False)
    last_delivery = delivered.order_by('-delivered_at').values_list('delivered_at', flat=True).first()

    performance = getattr(supplier, 'performance', None)
    now = timezone.now()
    return {
        'supplier_id': supplier.id,
        'supplier_name': supplier.name,
        'pending_orders_count': pending.count(),
        'confirmed_orders_count': confirmed.count(),
        'in_production_orders_count': in_production.count(),
        'overdue_orders_count': overdue.count(),
        'total_pending_value': pending.aggregate(total=Sum('total_value'))['total'] or 0,
        'total_confirmed_value': confirmed.aggregate(total=Sum('total_value'))['total'] or 0,
        'recent_orders': [_order_brief(po) for po in orders.order_by('-created_at')[:DASHBOARD_LIST_SIZE]],
        'upcoming_deliveries': [_order_brief(po) for po in upcoming],
        'performance': {
            'on_time_delivery_rate': performance.on_time_delivery_rate if performance else 0.0,
            'quality_score': performance.quality_score if performance else 0.0,
            'total_orders_completed': performance.total_orders_completed if performance else 0,
            'orders_completed_this_month': delivered.filter(
                delivered_at__year=now.year, delivered_at__month=now.month
            ).count(),
            'average_order_value': orders.aggregate(avg=Avg('total_value'))['avg'] or 0,
            'last_delivery': last_delivery,
        },
    }


def notify_supplier_of_new_order(purchase_order_id):
    """Email the supplier about a purchase order; False when it cannot be sent"""
    try:
        purchase_order = services.get_purchase_order(purchase_order_id)
    except NotFoundError:
        return False

    subject = f"New Purchase Order: {purchase_order.purchase_order_number}"
    message = (
        f"You have received a new purchase order {purchase_order.purchase_order_number} "
        f"for customer order {purchase_order.customer_order.order_number}. "
        f"Please review and confirm by {purchase_order.required_delivery_date:%Y-%m-%d}."
    )
    try:
        send_email_notification(
            purchase_order.supplier.contact_email,
            subject=subject,
            body=message,
            metadata={'purchase_order_id': purchase_order.id, 'supplier_id': purchase_order.supplier_id},
        )
    except Exception as e:
        logger.error(f"Failed to notify supplier {purchase_order.supplier_id} of {purchase_order.purchase_order_number}: {str(e)}")
        return False
    return True


def get_supplier_order_history(supplier_id, filters=None, page=1, page_size=20):
    """Returns (queryset, page, page_size) of the supplier's purchase orders"""
    get_supplier(supplier_id)
    page, page_size = normalize_page_params(page, page_size)
    queryset = services.purchase_order_queryset().filter(supplier_id=supplier_id)
    filterset = PurchaseOrderHistoryFilter(filters or {}, queryset=queryset)
    if not filterset.is_valid():
        raise ValidationFailedError("Invalid history filters", errors=filterset.errors)
    return filterset.qs, page, page_size
