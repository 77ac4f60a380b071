"""
Procurement planning: turn a validated distribution plan into purchase
orders, and drive purchase orders through confirmation and delivery.
"""
import logging
import re
from decimal import Decimal, InvalidOperation

from django.db import transaction
from django.utils import timezone

from backend.core.exceptions import InvalidOperationError, NotFoundError, ValidationFailedError
from backend.core.models import AuditLog
from backend.core.utils import create_audit_log
from backend.notifications.services import send_supplier_order_notification
from backend.orders.models import OrderStatus
from backend.orders.services import get_order, transition_order
from backend.suppliers.models import Supplier, SupplierCapability
from backend.suppliers.services import get_supplier, update_supplier_performance

from . import distribution
from .models import PurchaseOrder, PurchaseOrderItem, PurchaseOrderStatus

logger = logging.getLogger(__name__)

# Statuses reachable through update_purchase_order_status; confirm/reject have their own operations
LIFECYCLE_STATUSES = (
    PurchaseOrderStatus.IN_PRODUCTION,
    PurchaseOrderStatus.READY_FOR_SHIPMENT,
    PurchaseOrderStatus.SHIPPED,
    PurchaseOrderStatus.DELIVERED,
    PurchaseOrderStatus.CANCELLED,
)


def purchase_order_queryset():
    return PurchaseOrder.objects.select_related(
        'supplier', 'customer_order', 'created_by'
    ).prefetch_related('items')


def get_purchase_order(purchase_order_id):
    try:
        return purchase_order_queryset().get(pk=purchase_order_id)
    except (PurchaseOrder.DoesNotExist, ValueError, TypeError):
        raise NotFoundError(f"Purchase order {purchase_order_id} not found")


def _validate_status(status_value):
    if status_value and status_value not in PurchaseOrderStatus.values():
        raise ValidationFailedError(f"Invalid purchase order status: {status_value}")


def suggest_distribution(order_id, strategy=distribution.STRATEGY_BALANCED):
    order = get_order(order_id)
    return distribution.generate_distribution_suggestion(order, strategy)


def validate_distribution_plan(order_id, allocations):
    try:
        order = get_order(order_id)
    except NotFoundError:
        result = distribution.DistributionValidationResult()
        result.add_error(f"Customer order {order_id} not found")
        return result
    return distribution.validate_distribution(order, allocations)


def get_purchase_orders_by_supplier(supplier_id, status=None):
    get_supplier(supplier_id)
    _validate_status(status)
    queryset = purchase_order_queryset().filter(supplier_id=supplier_id)
    if status:
        queryset = queryset.filter(status=status)
    return queryset.order_by('-created_at')


def get_purchase_orders_by_customer_order(order_id):
    get_order(order_id)
    return purchase_order_queryset().filter(customer_order_id=order_id).order_by('-created_at')


def generate_purchase_order_number(order, supplier):
    """PO-{order number}-{first three supplier letters}-{sequence}"""
    supplier_code = re.sub(r'[^A-Za-z0-9]', '', supplier.name)[:3].upper() or 'SUP'
    sequence = PurchaseOrder.objects.filter(customer_order=order).count() + 1
    while True:
        number = f"PO-{order.order_number}-{supplier_code}-{sequence:03d}"
        if not PurchaseOrder.objects.filter(purchase_order_number=number).exists():
            return number
        sequence += 1


def _locked_capability(supplier_id, product_type):
    return SupplierCapability.objects.select_for_update().filter(
        supplier_id=supplier_id, product_type=product_type
    ).first()


def _reserve_capacity(supplier, product_type, quantity):
    capability = _locked_capability(supplier.id, product_type)
    if capability is None:
        raise InvalidOperationError(f"Supplier {supplier.name} cannot handle product type {product_type}")
    try:
        capability.reserve(quantity)
    except ValueError as e:
        raise InvalidOperationError(f"Supplier {supplier.name}: {e}")
    capability.save(update_fields=['current_commitments', 'updated_at'])


def _release_capacity(purchase_order):
    capability = _locked_capability(purchase_order.supplier_id, purchase_order.customer_order.product_type)
    if capability is None:
        return
    quantity = purchase_order.total_quantity
    capability.release(quantity)
    capability.save(update_fields=['current_commitments', 'updated_at'])
    logger.info(
        f"Released {quantity} units of {capability.product_type} capacity for supplier "
        f"{purchase_order.supplier_id} ({purchase_order.purchase_order_number})"
    )


def _create_purchase_order(order, supplier, quantity, line_remaining, user=None, notes=None):
    """
    Create one PO for `quantity` units. `line_remaining` maps order item id to
    units not yet allocated in this batch and is updated in place.
    """
    purchase_order = PurchaseOrder.objects.create(
        purchase_order_number=generate_purchase_order_number(order, supplier),
        customer_order=order,
        supplier=supplier,
        status=PurchaseOrderStatus.CREATED,
        required_delivery_date=order.requested_delivery_date,
        notes=notes,
        created_by=user if user and user.is_authenticated else None,
    )

    # Smallest order lines are filled first
    remaining = quantity
    for order_item in order.items.order_by('quantity', 'id'):
        if remaining <= 0:
            break
        allocated = min(remaining, line_remaining.get(order_item.id, 0))
        if allocated <= 0:
            continue
        PurchaseOrderItem.objects.create(
            purchase_order=purchase_order,
            order_item=order_item,
            product_code=order_item.product_code,
            description=order_item.description,
            allocated_quantity=allocated,
            unit=order_item.unit,
            unit_price=order_item.unit_price,
            specifications=order_item.specifications,
        )
        remaining -= allocated
        line_remaining[order_item.id] -= allocated

    errors = purchase_order.validate()
    if errors:
        raise ValidationFailedError(
            f"Purchase order {purchase_order.purchase_order_number} is invalid", errors=errors
        )

    purchase_order.calculate_total_value()
    purchase_order.transition_to(PurchaseOrderStatus.SENT_TO_SUPPLIER)
    purchase_order.save()
    _reserve_capacity(supplier, order.product_type, quantity)
    return purchase_order


def create_purchase_orders(order_id, allocations, user=None, notes=None, request=None):
    """
    Create one purchase order per allocation of a validated distribution plan.
    `allocations` is a list of dicts with supplier_id and allocated_quantity.
    """
    order = get_order(order_id)
    try:
        purchase_orders = _create_purchase_orders(order, allocations, user=user, notes=notes, request=request)
    except (InvalidOperationError, ValidationFailedError) as e:
        logger.warning(f"Purchase order creation refused for order {order.order_number}: {e.message}")
        create_audit_log(
            request=request,
            user=user,
            action='po_create',
            entity_type='CustomerOrder',
            entity_id=order.id,
            entity_reference=order.order_number,
            new_values={'allocations': allocations},
            result=AuditLog.RESULT_VALIDATION_ERROR,
            error_message=e.message,
        )
        raise

    for purchase_order in purchase_orders:
        send_supplier_order_notification(purchase_order)
    return purchase_orders


@transaction.atomic
def _create_purchase_orders(order, allocations, user=None, notes=None, request=None):
    if order.status != OrderStatus.PLANNING_IN_PROGRESS:
        raise InvalidOperationError(
            f"Customer order {order.order_number} is not in planning state. Current status: {order.status}"
        )

    result = distribution.validate_distribution(order, allocations)
    if not result.is_valid:
        raise ValidationFailedError(
            f"Distribution plan validation failed: {', '.join(result.errors)}", errors=result.errors
        )

    logger.info(f"Creating purchase orders for order {order.order_number} with {len(allocations)} allocations")
    suppliers = Supplier.objects.in_bulk([a['supplier_id'] for a in allocations])
    line_remaining = {item.id: item.quantity for item in order.items.all()}
    purchase_orders = []
    for allocation in allocations:
        supplier = suppliers[allocation['supplier_id']]
        quantity = int(allocation['allocated_quantity'])
        purchase_order = _create_purchase_order(order, supplier, quantity, line_remaining, user=user, notes=notes)
        purchase_orders.append(purchase_order)

        create_audit_log(
            request=request,
            user=user,
            action='po_create',
            entity_type='PurchaseOrder',
            entity_id=purchase_order.id,
            entity_reference=purchase_order.purchase_order_number,
            new_values={
                'customer_order': order.order_number,
                'supplier_id': supplier.id,
                'allocated_quantity': quantity,
                'total_value': str(purchase_order.total_value),
            },
        )
        logger.debug(
            f"Created purchase order {purchase_order.purchase_order_number} for supplier "
            f"{supplier.name} with {quantity} units"
        )

    transition_order(
        order, OrderStatus.PURCHASE_ORDERS_CREATED, user=user,
        notes=f"Created {len(purchase_orders)} purchase orders", request=request,
    )
    logger.info(f"Created {len(purchase_orders)} purchase orders for order {order.order_number}")
    return [get_purchase_order(po.id) for po in purchase_orders]


def _to_decimal(value, field_name):
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationFailedError(f"Invalid {field_name}: {value}")


def apply_item_update(item, data):
    """Apply supplier-provided details to a purchase order item (not saved)"""
    try:
        if data.get('packaging_details'):
            item.packaging_details = data['packaging_details']
            if data.get('delivery_method'):
                item.delivery_method = data['delivery_method']
        if data.get('estimated_delivery_date'):
            item.set_estimated_delivery_date(data['estimated_delivery_date'])
        if data.get('unit_price') is not None:
            unit_price = _to_decimal(data['unit_price'], 'unit price')
            if unit_price < 0:
                raise ValidationFailedError("Unit price cannot be negative")
            item.unit_price = unit_price
        if data.get('supplier_notes'):
            item.add_supplier_notes(data['supplier_notes'])
        if data.get('specifications'):
            item.specifications = data['specifications']
    except ValueError as e:
        raise ValidationFailedError(f"Item {item.id}: {e}")
    return item


def apply_item_updates(purchase_order, item_updates):
    """Apply a list of item updates keyed by purchase_order_item_id"""
    items = {item.id: item for item in purchase_order.items.all()}
    for update in item_updates or []:
        item_id = update.get('purchase_order_item_id')
        item = items.get(item_id)
        if item is None:
            raise ValidationFailedError(
                f"Item {item_id} does not belong to purchase order {purchase_order.purchase_order_number}"
            )
        apply_item_update(item, update)
        item.save()
    purchase_order.calculate_total_value()


def _sync_customer_order_status(order, user=None, request=None):
    """
    Move the customer order along as suppliers confirm: the first confirmation
    moves it to AwaitingSupplierConfirmation, the last one to InProduction.
    """
    statuses = list(
        order.purchase_orders.exclude(status=PurchaseOrderStatus.CANCELLED).values_list('status', flat=True)
    )
    if not statuses:
        return

    if order.status == OrderStatus.PURCHASE_ORDERS_CREATED and PurchaseOrderStatus.CONFIRMED in statuses:
        transition_order(
            order, OrderStatus.AWAITING_SUPPLIER_CONFIRMATION, user=user,
            notes="Supplier confirmation received", request=request,
        )

    if order.status == OrderStatus.AWAITING_SUPPLIER_CONFIRMATION and all(
        status == PurchaseOrderStatus.CONFIRMED for status in statuses
    ):
        transition_order(
            order, OrderStatus.IN_PRODUCTION, user=user,
            notes="All purchase orders confirmed, moved to production", request=request,
        )


@transaction.atomic
def confirm_purchase_order(purchase_order_id, user=None, supplier_notes=None, item_updates=None, request=None):
    purchase_order = get_purchase_order(purchase_order_id)
    if purchase_order.status != PurchaseOrderStatus.SENT_TO_SUPPLIER:
        raise InvalidOperationError(
            f"Purchase order {purchase_order.purchase_order_number} cannot be confirmed. "
            f"Current status: {purchase_order.status}"
        )

    purchase_order.confirm(supplier_notes)
    apply_item_updates(purchase_order, item_updates)
    purchase_order.save()

    create_audit_log(
        request=request,
        user=user,
        action='po_confirm',
        entity_type='PurchaseOrder',
        entity_id=purchase_order.id,
        entity_reference=purchase_order.purchase_order_number,
        old_values={'status': PurchaseOrderStatus.SENT_TO_SUPPLIER},
        new_values={'status': purchase_order.status, 'total_value': str(purchase_order.total_value)},
    )
    logger.info(f"Purchase order {purchase_order.purchase_order_number} confirmed by supplier")

    _sync_customer_order_status(purchase_order.customer_order, user=user, request=request)
    return get_purchase_order(purchase_order.id)


@transaction.atomic
def reject_purchase_order(purchase_order_id, user=None, reason=None, request=None):
    purchase_order = get_purchase_order(purchase_order_id)
    if purchase_order.status != PurchaseOrderStatus.SENT_TO_SUPPLIER:
        raise InvalidOperationError(
            f"Purchase order {purchase_order.purchase_order_number} cannot be rejected. "
            f"Current status: {purchase_order.status}"
        )
    try:
        purchase_order.reject(reason)
    except ValueError as e:
        raise ValidationFailedError(str(e))
    purchase_order.save()
    _release_capacity(purchase_order)

    create_audit_log(
        request=request,
        user=user,
        action='po_reject',
        entity_type='PurchaseOrder',
        entity_id=purchase_order.id,
        entity_reference=purchase_order.purchase_order_number,
        old_values={'status': PurchaseOrderStatus.SENT_TO_SUPPLIER},
        new_values={'status': purchase_order.status, 'rejection_reason': purchase_order.rejection_reason},
    )
    logger.info(f"Purchase order {purchase_order.purchase_order_number} rejected: {purchase_order.rejection_reason}")
    return get_purchase_order(purchase_order.id)


@transaction.atomic
def update_purchase_order_item(item_id, data, user=None, request=None):
    try:
        item = PurchaseOrderItem.objects.select_related('purchase_order').get(pk=item_id)
    except (PurchaseOrderItem.DoesNotExist, ValueError, TypeError):
        raise NotFoundError(f"Purchase order item {item_id} not found")

    purchase_order = item.purchase_order
    if purchase_order.status in PurchaseOrderStatus.CLOSED:
        raise InvalidOperationError(
            f"Cannot update items of purchase order in {purchase_order.status} status"
        )

    old_values = {
        'packaging_details': item.packaging_details,
        'estimated_delivery_date': item.estimated_delivery_date.isoformat() if item.estimated_delivery_date else None,
        'unit_price': str(item.unit_price) if item.unit_price is not None else None,
    }
    apply_item_update(item, data)
    item.save()
    purchase_order.calculate_total_value()
    purchase_order.save(update_fields=['total_value', 'updated_at'])

    create_audit_log(
        request=request,
        user=user,
        action='po_item_update',
        entity_type='PurchaseOrderItem',
        entity_id=item.id,
        entity_reference=purchase_order.purchase_order_number,
        old_values=old_values,
        new_values={
            'packaging_details': item.packaging_details,
            'estimated_delivery_date': item.estimated_delivery_date.isoformat() if item.estimated_delivery_date else None,
            'unit_price': str(item.unit_price) if item.unit_price is not None else None,
        },
    )
    logger.info(f"Purchase order item {item.id} updated ({purchase_order.purchase_order_number})")
    return item


@transaction.atomic
def update_purchase_order_status(purchase_order_id, new_status, user=None, notes=None, request=None):
    """Forward lifecycle after confirmation, or cancellation"""
    _validate_status(new_status)
    purchase_order = get_purchase_order(purchase_order_id)
    previous_status = purchase_order.status

    if new_status not in LIFECYCLE_STATUSES:
        raise InvalidOperationError(
            f"Use the confirm or reject operation to move a purchase order to {new_status}"
        )
    if not purchase_order.can_transition_to(new_status):
        raise InvalidOperationError(
            f"Cannot transition purchase order from {previous_status} to {new_status}",
            code='invalid_transition',
        )

    purchase_order.transition_to(new_status)
    if notes:
        purchase_order.notes = f"{purchase_order.notes}\n{notes}" if purchase_order.notes else notes
    purchase_order.save()

    if new_status == PurchaseOrderStatus.DELIVERED:
        delivered_on = timezone.localdate(purchase_order.delivered_at)
        update_supplier_performance(
            purchase_order.supplier_id,
            on_time=delivered_on <= purchase_order.required_delivery_date,
            delivery_days=max((purchase_order.delivered_at - purchase_order.created_at).days, 0),
            user=user,
            request=request,
        )
        _release_capacity(purchase_order)
    elif new_status == PurchaseOrderStatus.CANCELLED and previous_status in PurchaseOrderStatus.COMMITTED:
        _release_capacity(purchase_order)

    create_audit_log(
        request=request,
        user=user,
        action='po_status_change',
        entity_type='PurchaseOrder',
        entity_id=purchase_order.id,
        entity_reference=purchase_order.purchase_order_number,
        old_values={'status': previous_status},
        new_values={'status': new_status},
        additional_data={'notes': notes} if notes else None,
    )
    logger.info(
        f"Purchase order {purchase_order.purchase_order_number} status updated "
        f"from {previous_status} to {new_status}"
    )
    return get_purchase_order(purchase_order.id)
