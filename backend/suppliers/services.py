"""
Supplier management: supplier records, per-product-type capacity and
performance metrics, and the eligibility rules planners rely on.
"""
import logging

from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from backend.core.cache_utils import cached_query, SUPPLIER_CACHE_TTL, SUPPLIER_PREFIX
from backend.core.choices import PRODUCT_TYPES
from backend.core.exceptions import NotFoundError, ValidationFailedError
from backend.core.models import AuditLog
from backend.core.utils import create_audit_log

from .models import Supplier, SupplierCapability, SupplierPerformanceMetrics

logger = logging.getLogger(__name__)

ELIGIBILITY_MIN_ON_TIME_RATE = 0.7
ELIGIBILITY_MIN_QUALITY_SCORE = 2.5

SUPPLIER_FIELDS = (
    'name', 'contact_email', 'contact_phone', 'address', 'contact_person_name', 'notes',
)
CAPABILITY_FIELDS = (
    'max_monthly_capacity', 'current_commitments', 'quality_rating', 'lead_time_days',
    'estimated_unit_cost', 'certifications', 'is_active',
)


def supplier_queryset():
    return Supplier.objects.select_related('performance').prefetch_related('capabilities')


def _validate_product_type(product_type):
    if product_type not in PRODUCT_TYPES:
        raise ValidationFailedError(f"Invalid product type: {product_type}")


def get_supplier(supplier_id):
    try:
        return supplier_queryset().get(pk=supplier_id)
    except (Supplier.DoesNotExist, ValueError, TypeError):
        raise NotFoundError(f"Supplier with ID {supplier_id} not found")


def list_suppliers(filters=None):
    """
    Filter suppliers. Supported keys: is_active, product_type, search
    (name, contact person or email), min_capacity (with product_type).
    """
    filters = filters or {}
    queryset = supplier_queryset()

    is_active = filters.get('is_active')
    if is_active is not None:
        queryset = queryset.filter(is_active=is_active)

    product_type = filters.get('product_type')
    if product_type:
        queryset = queryset.filter(
            capabilities__product_type=product_type, capabilities__is_active=True
        )

    search = filters.get('search')
    if search:
        queryset = queryset.filter(
            Q(name__icontains=search)
            | Q(contact_person_name__icontains=search)
            | Q(contact_email__icontains=search)
        )

    suppliers = list(queryset.distinct().order_by('name'))

    min_capacity = filters.get('min_capacity')
    if product_type and min_capacity:
        suppliers = [s for s in suppliers if s.get_available_capacity(product_type) >= int(min_capacity)]
    return suppliers


@cached_query(cache_ttl=SUPPLIER_CACHE_TTL, key_prefix=SUPPLIER_PREFIX)
def get_available_suppliers(product_type, required_capacity=0):
    """Active suppliers whose active capability covers `required_capacity`"""
    _validate_product_type(product_type)
    queryset = supplier_queryset().filter(
        is_active=True,
        capabilities__product_type=product_type,
        capabilities__is_active=True,
    ).distinct()
    suppliers = [
        supplier for supplier in queryset
        if supplier.get_available_capacity(product_type) >= required_capacity
    ]
    suppliers.sort(key=lambda s: (
        -_performance_score(s),
        -s.get_available_capacity(product_type),
        s.name,
    ))
    return suppliers


def _performance_score(supplier):
    performance = getattr(supplier, 'performance', None)
    return performance.overall_performance_score if performance else 0.0


def _supplier_snapshot(supplier):
    return {field: getattr(supplier, field) for field in SUPPLIER_FIELDS + ('is_active',)}


@transaction.atomic
def create_supplier(data, user=None, request=None):
    """
    Create a supplier with optional `capabilities` (list of dicts) and
    initial performance metrics.
    """
    capabilities = data.get('capabilities') or []
    supplier = Supplier.objects.create(
        **{field: data.get(field) for field in SUPPLIER_FIELDS if field in data},
        is_active=data.get('is_active', True),
    )

    seen = set()
    for capability_data in capabilities:
        product_type = capability_data.get('product_type')
        _validate_product_type(product_type)
        if product_type in seen:
            raise ValidationFailedError(f"Duplicate capability for product type {product_type}")
        seen.add(product_type)
        capability = SupplierCapability(
            supplier=supplier,
            product_type=product_type,
            **{field: capability_data[field] for field in CAPABILITY_FIELDS if field in capability_data},
        )
        try:
            capability.validate_capacity()
        except ValueError as e:
            raise ValidationFailedError(str(e))
        capability.save()

    SupplierPerformanceMetrics.objects.create(
        supplier=supplier,
        on_time_delivery_rate=data.get('initial_on_time_delivery_rate', 1.0),
        quality_score=data.get('initial_quality_score', 3.0),
    )

    create_audit_log(
        request=request,
        user=user,
        action='supplier_create',
        entity_type='Supplier',
        entity_id=supplier.id,
        entity_reference=supplier.name,
        new_values=_supplier_snapshot(supplier),
    )
    logger.info(f"Supplier created: {supplier.name} (id={supplier.id})")
    return get_supplier(supplier.id)


@transaction.atomic
def update_supplier(supplier_id, data, user=None, request=None):
    supplier = get_supplier(supplier_id)
    old_values = _supplier_snapshot(supplier)

    for field in SUPPLIER_FIELDS + ('is_active',):
        if field in data:
            setattr(supplier, field, data[field])
    supplier.save()

    create_audit_log(
        request=request,
        user=user,
        action='supplier_update',
        entity_type='Supplier',
        entity_id=supplier.id,
        entity_reference=supplier.name,
        old_values=old_values,
        new_values=_supplier_snapshot(supplier),
    )
    logger.info(f"Supplier updated: {supplier.name} (id={supplier.id})")
    return get_supplier(supplier.id)


@transaction.atomic
def update_supplier_capacity(supplier_id, product_type, max_monthly_capacity,
                             current_commitments=None, user=None, request=None, **extra):
    """
    Set capacity for a product type, creating the capability when missing.
    `extra` may carry quality_rating, lead_time_days, estimated_unit_cost,
    certifications or is_active.
    """
    _validate_product_type(product_type)
    supplier = get_supplier(supplier_id)

    if max_monthly_capacity is None or int(max_monthly_capacity) < 0:
        raise ValidationFailedError("Maximum monthly capacity must be zero or greater")

    capability, created = SupplierCapability.objects.select_for_update().get_or_create(
        supplier=supplier, product_type=product_type
    )
    old_values = {
        'max_monthly_capacity': capability.max_monthly_capacity,
        'current_commitments': capability.current_commitments,
    }

    capability.max_monthly_capacity = int(max_monthly_capacity)
    if current_commitments is not None:
        if int(current_commitments) < 0:
            raise ValidationFailedError("Current commitments cannot be negative")
        capability.current_commitments = int(current_commitments)
    for field in CAPABILITY_FIELDS:
        if field in extra and extra[field] is not None:
            setattr(capability, field, extra[field])

    try:
        capability.validate_capacity()
    except ValueError as e:
        raise ValidationFailedError(str(e))
    capability.save()

    create_audit_log(
        request=request,
        user=user,
        action='supplier_capacity_update',
        entity_type='SupplierCapability',
        entity_id=capability.id,
        entity_reference=f"{supplier.name} - {product_type}",
        old_values={} if created else old_values,
        new_values={
            'max_monthly_capacity': capability.max_monthly_capacity,
            'current_commitments': capability.current_commitments,
        },
    )
    logger.info(
        f"Capacity for supplier {supplier.id} / {product_type} set to "
        f"{capability.current_commitments}/{capability.max_monthly_capacity}"
    )
    return capability


def get_supplier_performance(supplier_id):
    supplier = get_supplier(supplier_id)
    performance = getattr(supplier, 'performance', None)
    if performance is None:
        raise NotFoundError(f"Performance metrics for supplier {supplier_id} not found")
    return performance


@transaction.atomic
def update_supplier_performance(supplier_id, on_time=None, quality_score=None,
                                delivery_days=None, customer_satisfaction_rate=None,
                                user=None, request=None):
    """Record a completed delivery and/or rating against a supplier"""
    supplier = get_supplier(supplier_id)
    performance, _ = SupplierPerformanceMetrics.objects.select_for_update().get_or_create(supplier=supplier)
    old_values = {
        'on_time_delivery_rate': performance.on_time_delivery_rate,
        'quality_score': performance.quality_score,
        'total_orders_completed': performance.total_orders_completed,
    }

    try:
        # Weighted averages use the completed count before this delivery
        if quality_score is not None:
            performance.update_quality_score(quality_score)
        if delivery_days is not None:
            performance.update_average_delivery_days(delivery_days)
        if on_time is not None:
            performance.update_on_time_delivery(bool(on_time))
    except ValueError as e:
        raise ValidationFailedError(str(e))

    if customer_satisfaction_rate is not None:
        rate = float(customer_satisfaction_rate)
        if rate < 0 or rate > 1:
            raise ValidationFailedError("Customer satisfaction rate must be between 0 and 1")
        performance.customer_satisfaction_rate = rate
    performance.last_updated = timezone.now()
    performance.save()

    create_audit_log(
        request=request,
        user=user,
        action='supplier_performance_update',
        entity_type='SupplierPerformanceMetrics',
        entity_id=performance.id,
        entity_reference=supplier.name,
        old_values=old_values,
        new_values={
            'on_time_delivery_rate': performance.on_time_delivery_rate,
            'quality_score': performance.quality_score,
            'total_orders_completed': performance.total_orders_completed,
        },
    )
    return performance


def validate_supplier_eligibility(supplier_id, product_type, required_quantity):
    """
    Check a supplier against the planning rules.
    Returns {'is_eligible', 'reasons'}; reasons lists every failed rule.
    """
    supplier = get_supplier(supplier_id)
    reasons = []

    if not supplier.is_active:
        reasons.append("Supplier is not active")
    if not supplier.can_handle_product_type(product_type):
        reasons.append(f"Supplier does not handle product type {product_type}")
    elif not supplier.has_capacity_for(product_type, required_quantity):
        reasons.append(
            f"Insufficient capacity. Requested: {required_quantity}, "
            f"Available: {supplier.get_available_capacity(product_type)}"
        )

    performance = getattr(supplier, 'performance', None)
    if performance is None:
        reasons.append("Supplier has no performance metrics")
    else:
        if performance.on_time_delivery_rate < ELIGIBILITY_MIN_ON_TIME_RATE:
            reasons.append(
                f"On-time delivery rate {performance.on_time_delivery_rate:.0%} is below "
                f"{ELIGIBILITY_MIN_ON_TIME_RATE:.0%}"
            )
        if performance.quality_score < ELIGIBILITY_MIN_QUALITY_SCORE:
            reasons.append(
                f"Quality score {performance.quality_score:.2f} is below {ELIGIBILITY_MIN_QUALITY_SCORE}"
            )

    return {'is_eligible': not reasons, 'reasons': reasons}


@cached_query(cache_ttl=SUPPLIER_CACHE_TTL, key_prefix=SUPPLIER_PREFIX)
def get_suppliers_by_performance(product_type, min_on_time_rate=0.8, min_quality_score=3.0):
    """Qualified suppliers ordered by overall score, then available capacity"""
    _validate_product_type(product_type)
    queryset = supplier_queryset().filter(
        is_active=True,
        capabilities__product_type=product_type,
        capabilities__is_active=True,
        performance__on_time_delivery_rate__gte=min_on_time_rate,
        performance__quality_score__gte=min_quality_score,
    ).distinct()
    return sorted(
        queryset,
        key=lambda s: (-_performance_score(s), -s.get_available_capacity(product_type), s.name),
    )


def _set_active(supplier_id, is_active, user=None, request=None):
    supplier = get_supplier(supplier_id)
    if supplier.is_active == is_active:
        return supplier
    supplier.is_active = is_active
    supplier.save(update_fields=['is_active', 'updated_at'])

    create_audit_log(
        request=request,
        user=user,
        action='supplier_activate' if is_active else 'supplier_deactivate',
        entity_type='Supplier',
        entity_id=supplier.id,
        entity_reference=supplier.name,
        old_values={'is_active': not is_active},
        new_values={'is_active': is_active},
    )
    logger.info(f"Supplier {supplier.id} {'activated' if is_active else 'deactivated'}")
    return supplier


def activate_supplier(supplier_id, user=None, request=None):
    return _set_active(supplier_id, True, user=user, request=request)


def deactivate_supplier(supplier_id, user=None, request=None):
    return _set_active(supplier_id, False, user=user, request=request)


@cached_query(cache_ttl=SUPPLIER_CACHE_TTL, key_prefix=SUPPLIER_PREFIX)
def get_total_available_capacity(product_type):
    """Summed spare capacity of active suppliers for a product type"""
    _validate_product_type(product_type)
    capabilities = SupplierCapability.objects.filter(
        product_type=product_type, is_active=True, supplier__is_active=True
    )
    return sum(capability.available_capacity for capability in capabilities)


def get_supplier_capabilities(supplier_id):
    supplier = get_supplier(supplier_id)
    return list(supplier.capabilities.all().order_by('product_type'))


def log_rejected_supplier_action(action, supplier_id, message, user=None, request=None,
                                 result=AuditLog.RESULT_VALIDATION_ERROR):
    """Audit a supplier operation that was refused"""
    logger.warning(f"Supplier {action} refused for {supplier_id}: {message}")
    create_audit_log(
        request=request,
        user=user,
        action=action,
        entity_type='Supplier',
        entity_id=supplier_id,
        result=result,
        error_message=message,
    )
