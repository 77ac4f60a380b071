"""
Supplier distribution algorithm.

Splits a customer order's quantity across eligible suppliers using one of
four strategies and validates planner-supplied distribution plans against
supplier capacity. The allocation functions are pure: they work on
SupplierCandidate snapshots, so they can be exercised without a database.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, ROUND_HALF_EVEN
from typing import List, Optional

from django.utils import timezone

from backend.suppliers.models import Supplier

logger = logging.getLogger(__name__)

MIN_PERFORMANCE_THRESHOLD = 0.7
PREFERRED_SUPPLIER_BONUS = Decimal('0.2')
RELIABLE_SUPPLIER_BONUS = Decimal('0.1')
MIN_ALLOCATION_QUANTITY = 1

# Balanced strategy weighting
PERFORMANCE_WEIGHT = Decimal('0.6')
CAPACITY_WEIGHT = Decimal('0.4')

# Remaining capacity below this share of available capacity triggers a warning
CAPACITY_WARNING_RATIO = 0.1

STRATEGY_EVEN = 'even'
STRATEGY_PERFORMANCE = 'performance_based'
STRATEGY_CAPACITY = 'capacity_based'
STRATEGY_BALANCED = 'balanced'
STRATEGY_CUSTOM = 'custom'

STRATEGY_CHOICES = [
    (STRATEGY_EVEN, 'Even distribution'),
    (STRATEGY_PERFORMANCE, 'Performance based'),
    (STRATEGY_CAPACITY, 'Capacity based'),
    (STRATEGY_BALANCED, 'Balanced'),
    (STRATEGY_CUSTOM, 'Custom'),
]
STRATEGIES = [value for value, _ in STRATEGY_CHOICES]


@dataclass
class SupplierCandidate:
    """Snapshot of a supplier's capacity and track record for one product type."""

    supplier_id: int
    supplier_name: str
    available_capacity: int
    max_monthly_capacity: int = 0
    current_commitments: int = 0
    quality_rating: float = 0.0
    on_time_delivery_rate: float = 0.0
    quality_score: float = 0.0
    overall_performance_score: float = 0.0
    is_preferred_supplier: bool = False
    is_reliable_supplier: bool = False
    product_type: Optional[str] = None

    @property
    def capacity_utilization_rate(self) -> float:
        if self.max_monthly_capacity <= 0:
            return 0.0
        return self.current_commitments / self.max_monthly_capacity

    @classmethod
    def from_supplier(cls, supplier, capability, performance):
        return cls(
            supplier_id=supplier.id,
            supplier_name=supplier.name,
            available_capacity=capability.available_capacity,
            max_monthly_capacity=capability.max_monthly_capacity,
            current_commitments=capability.current_commitments,
            quality_rating=float(capability.quality_rating),
            on_time_delivery_rate=performance.on_time_delivery_rate,
            quality_score=performance.quality_score,
            overall_performance_score=performance.overall_performance_score,
            is_preferred_supplier=performance.is_preferred_supplier,
            is_reliable_supplier=performance.is_reliable_supplier,
            product_type=capability.product_type,
        )

    def to_dict(self):
        return {
            'supplier_id': self.supplier_id,
            'supplier_name': self.supplier_name,
            'available_capacity': self.available_capacity,
            'max_monthly_capacity': self.max_monthly_capacity,
            'current_commitments': self.current_commitments,
            'capacity_utilization_rate': round(self.capacity_utilization_rate, 4),
            'quality_rating': self.quality_rating,
            'on_time_delivery_rate': self.on_time_delivery_rate,
            'quality_score': self.quality_score,
            'overall_performance_score': self.overall_performance_score,
            'is_preferred_supplier': self.is_preferred_supplier,
            'is_reliable_supplier': self.is_reliable_supplier,
            'product_type': self.product_type,
        }


@dataclass
class SupplierAllocation:
    """Quantity assigned to one supplier within a distribution."""

    supplier_id: int
    supplier_name: str
    allocated_quantity: int
    allocation_percentage: float = 0.0
    available_capacity: int = 0
    performance_score: float = 0.0
    quality_rating: float = 0.0
    on_time_delivery_rate: float = 0.0
    allocation_reason: Optional[str] = None

    def to_dict(self):
        return {
            'supplier_id': self.supplier_id,
            'supplier_name': self.supplier_name,
            'allocated_quantity': self.allocated_quantity,
            'allocation_percentage': round(self.allocation_percentage, 2),
            'available_capacity': self.available_capacity,
            'performance_score': self.performance_score,
            'quality_rating': self.quality_rating,
            'on_time_delivery_rate': self.on_time_delivery_rate,
            'allocation_reason': self.allocation_reason,
        }


@dataclass
class DistributionSuggestion:
    customer_order_id: Optional[int]
    total_quantity: int
    product_type: Optional[str]
    strategy: str = STRATEGY_BALANCED
    allocations: List[SupplierAllocation] = field(default_factory=list)
    total_capacity_utilization: float = 0.0
    notes: Optional[str] = None
    generated_at: datetime = field(default_factory=timezone.now)

    @property
    def total_allocated_quantity(self) -> int:
        return sum(a.allocated_quantity for a in self.allocations)

    @property
    def is_fully_allocated(self) -> bool:
        return self.total_allocated_quantity == self.total_quantity

    @property
    def unallocated_quantity(self) -> int:
        return max(0, self.total_quantity - self.total_allocated_quantity)

    def to_dict(self):
        return {
            'customer_order_id': self.customer_order_id,
            'total_quantity': self.total_quantity,
            'product_type': self.product_type,
            'strategy': self.strategy,
            'allocations': [a.to_dict() for a in self.allocations],
            'total_allocated_quantity': self.total_allocated_quantity,
            'is_fully_allocated': self.is_fully_allocated,
            'unallocated_quantity': self.unallocated_quantity,
            'total_capacity_utilization': round(self.total_capacity_utilization, 4),
            'notes': self.notes,
            'generated_at': self.generated_at.isoformat(),
        }


@dataclass
class SupplierCapacityValidation:
    supplier_id: int
    supplier_name: str
    requested_quantity: int
    available_capacity: int
    has_sufficient_capacity: bool
    capacity_shortfall: int = 0
    validation_message: Optional[str] = None

    def to_dict(self):
        return {
            'supplier_id': self.supplier_id,
            'supplier_name': self.supplier_name,
            'requested_quantity': self.requested_quantity,
            'available_capacity': self.available_capacity,
            'has_sufficient_capacity': self.has_sufficient_capacity,
            'capacity_shortfall': self.capacity_shortfall,
            'validation_message': self.validation_message,
        }


@dataclass
class DistributionValidationResult:
    is_valid: bool = True
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    supplier_validations: List[SupplierCapacityValidation] = field(default_factory=list)

    def add_error(self, message):
        self.errors.append(message)
        self.is_valid = False

    def add_warning(self, message):
        self.warnings.append(message)

    def to_dict(self):
        return {
            'is_valid': self.is_valid,
            'errors': list(self.errors),
            'warnings': list(self.warnings),
            'supplier_validations': [v.to_dict() for v in self.supplier_validations],
        }


def get_eligible_suppliers(product_type, required_quantity=0) -> List[SupplierCandidate]:
    """
    Active suppliers with an active capability for `product_type`, spare
    capacity and an overall score of at least MIN_PERFORMANCE_THRESHOLD,
    best score first. `required_quantity` is informational: partial
    capacity still qualifies.
    """
    suppliers = Supplier.objects.filter(
        is_active=True,
        capabilities__product_type=product_type,
        capabilities__is_active=True,
    ).select_related('performance').prefetch_related('capabilities').distinct()

    candidates = []
    for supplier in suppliers:
        performance = getattr(supplier, 'performance', None)
        if performance is None:
            logger.debug(f"Skipping supplier {supplier.id}: no performance data")
            continue

        capability = supplier.get_capability(product_type, active_only=True)
        if capability is None or capability.available_capacity < MIN_ALLOCATION_QUANTITY:
            logger.debug(f"Skipping supplier {supplier.id}: no spare {product_type} capacity")
            continue

        if performance.overall_performance_score < MIN_PERFORMANCE_THRESHOLD:
            logger.debug(
                f"Skipping supplier {supplier.id}: score {performance.overall_performance_score} "
                f"below {MIN_PERFORMANCE_THRESHOLD}"
            )
            continue

        candidates.append(SupplierCandidate.from_supplier(supplier, capability, performance))

    candidates.sort(key=lambda c: c.overall_performance_score, reverse=True)
    logger.info(
        f"Found {len(candidates)} eligible suppliers for {product_type} "
        f"(required quantity {required_quantity})"
    )
    return candidates


def _decimal(value):
    return Decimal(str(value))


def _share(weight, total_weight, total_quantity):
    """Proportional share of `total_quantity`, exact halves rounded to even"""
    return int((weight / total_weight * total_quantity).quantize(Decimal(1), rounding=ROUND_HALF_EVEN))


def performance_weight(candidate):
    weight = _decimal(candidate.overall_performance_score)
    if candidate.is_preferred_supplier:
        weight += PREFERRED_SUPPLIER_BONUS
    elif candidate.is_reliable_supplier:
        weight += RELIABLE_SUPPLIER_BONUS
    return weight


def composite_score(candidate):
    """Blend of performance weight and spare-capacity share"""
    utilization = Decimal(0)
    if candidate.max_monthly_capacity > 0:
        utilization = Decimal(candidate.current_commitments) / Decimal(candidate.max_monthly_capacity)
    capacity_score = 1 - utilization
    return performance_weight(candidate) * PERFORMANCE_WEIGHT + capacity_score * CAPACITY_WEIGHT


def _allocation(candidate, quantity, total_quantity, reason):
    return SupplierAllocation(
        supplier_id=candidate.supplier_id,
        supplier_name=candidate.supplier_name,
        allocated_quantity=quantity,
        allocation_percentage=quantity / total_quantity * 100,
        available_capacity=candidate.available_capacity,
        performance_score=candidate.overall_performance_score,
        quality_rating=candidate.quality_rating,
        on_time_delivery_rate=candidate.on_time_delivery_rate,
        allocation_reason=reason,
    )


def _even_distribution(candidates, total_quantity):
    allocations = []
    remaining = total_quantity
    base, remainder = divmod(total_quantity, len(candidates))

    for index, candidate in enumerate(candidates):
        if remaining <= 0:
            break
        target = base + (1 if index < remainder else 0)
        quantity = min(target, candidate.available_capacity, remaining)
        if quantity >= MIN_ALLOCATION_QUANTITY:
            allocations.append(_allocation(candidate, quantity, total_quantity, "Even distribution"))
            remaining -= quantity
    return allocations


def _performance_based_distribution(candidates, total_quantity):
    total_weight = sum(performance_weight(c) for c in candidates)
    if total_weight <= 0:
        return _even_distribution(candidates, total_quantity)

    allocations = []
    remaining = total_quantity
    for candidate in sorted(candidates, key=lambda c: c.overall_performance_score, reverse=True):
        if remaining <= 0:
            break
        target = _share(performance_weight(candidate), total_weight, total_quantity)
        quantity = min(target, candidate.available_capacity, remaining)
        if quantity >= MIN_ALLOCATION_QUANTITY:
            allocations.append(_allocation(
                candidate, quantity, total_quantity,
                f"Performance-based (score: {candidate.overall_performance_score:.2f})",
            ))
            remaining -= quantity
    return allocations


def _capacity_based_distribution(candidates, total_quantity):
    allocations = []
    remaining = total_quantity
    for candidate in sorted(candidates, key=lambda c: c.available_capacity, reverse=True):
        if remaining <= 0:
            break
        quantity = min(candidate.available_capacity, remaining)
        if quantity >= MIN_ALLOCATION_QUANTITY:
            allocations.append(_allocation(
                candidate, quantity, total_quantity,
                f"Capacity-based (available: {candidate.available_capacity})",
            ))
            remaining -= quantity
    return allocations


def _balanced_distribution(candidates, total_quantity):
    scored = sorted(
        ((candidate, composite_score(candidate)) for candidate in candidates),
        key=lambda pair: pair[1],
        reverse=True,
    )
    total_score = sum(score for _, score in scored)
    if total_score <= 0:
        return _even_distribution(candidates, total_quantity)

    allocations = []
    remaining = total_quantity
    for candidate, score in scored:
        if remaining <= 0:
            break
        target = _share(score, total_score, total_quantity)
        quantity = min(target, candidate.available_capacity, remaining)
        if quantity >= MIN_ALLOCATION_QUANTITY:
            allocations.append(_allocation(
                candidate, quantity, total_quantity,
                f"Balanced (composite score: {score:.2f})",
            ))
            remaining -= quantity

    # Rounding and capacity caps can leave units over; top up allocated suppliers
    if remaining > 0:
        by_id = {c.supplier_id: c for c in candidates}
        for allocation in sorted(allocations, key=lambda a: a.performance_score, reverse=True):
            spare = by_id[allocation.supplier_id].available_capacity - allocation.allocated_quantity
            extra = min(spare, remaining)
            if extra > 0:
                allocation.allocated_quantity += extra
                allocation.allocation_percentage = allocation.allocated_quantity / total_quantity * 100
                remaining -= extra
                if remaining <= 0:
                    break
    return allocations


_STRATEGY_HANDLERS = {
    STRATEGY_EVEN: _even_distribution,
    STRATEGY_PERFORMANCE: _performance_based_distribution,
    STRATEGY_CAPACITY: _capacity_based_distribution,
    STRATEGY_BALANCED: _balanced_distribution,
}


def calculate_optimal_distribution(candidates, total_quantity, strategy=STRATEGY_BALANCED):
    """
    Allocate `total_quantity` across `candidates`.
    Unknown strategies (including custom) use the balanced strategy.
    """
    if not candidates or total_quantity <= 0:
        return []
    handler = _STRATEGY_HANDLERS.get(strategy, _balanced_distribution)
    logger.debug(
        f"Distributing {total_quantity} units across {len(candidates)} suppliers using {strategy}"
    )
    return handler(list(candidates), total_quantity)


def calculate_total_capacity_utilization(candidates, allocations):
    """Allocated units over available capacity of the allocated suppliers"""
    if not candidates or not allocations:
        return 0.0
    by_id = {c.supplier_id: c for c in candidates}
    used = 0
    available = 0
    for allocation in allocations:
        candidate = by_id.get(allocation.supplier_id)
        if candidate is not None:
            used += allocation.allocated_quantity
            available += candidate.available_capacity
    return used / available if available > 0 else 0.0


def generate_distribution_suggestion(order, strategy=STRATEGY_BALANCED):
    """Suggest a distribution for a customer order"""
    total_quantity = order.total_quantity
    logger.info(
        f"Generating distribution suggestion for order {order.order_number}: "
        f"{total_quantity} units of {order.product_type} ({strategy})"
    )

    candidates = get_eligible_suppliers(order.product_type, total_quantity)
    if not candidates:
        logger.warning(f"No eligible suppliers found for product type {order.product_type}")
        return DistributionSuggestion(
            customer_order_id=order.id,
            total_quantity=total_quantity,
            product_type=order.product_type,
            strategy=strategy,
            notes="No eligible suppliers available for this product type",
        )

    allocations = calculate_optimal_distribution(candidates, total_quantity, strategy)
    suggestion = DistributionSuggestion(
        customer_order_id=order.id,
        total_quantity=total_quantity,
        product_type=order.product_type,
        strategy=strategy,
        allocations=allocations,
        total_capacity_utilization=calculate_total_capacity_utilization(candidates, allocations),
    )

    if not suggestion.is_fully_allocated:
        suggestion.notes = (
            f"Unable to fully allocate order. {suggestion.unallocated_quantity} units remain unallocated."
        )
        logger.warning(
            f"Order {order.order_number} could not be fully allocated, "
            f"{suggestion.unallocated_quantity} units missing"
        )
    return suggestion


def validate_distribution(order, allocations):
    """
    Check planner allocations (dicts with supplier_id and allocated_quantity)
    against supplier state and the order total.
    """
    result = DistributionValidationResult()

    if not allocations:
        result.add_error("Distribution plan must contain at least one allocation")
        return result

    supplier_ids = [a.get('supplier_id') for a in allocations]
    suppliers = {
        s.id: s for s in Supplier.objects.filter(id__in=[i for i in supplier_ids if i is not None])
        .prefetch_related('capabilities')
    }

    seen = set()
    for allocation in allocations:
        supplier_id = allocation.get('supplier_id')
        quantity = int(allocation.get('allocated_quantity') or 0)

        if supplier_id in seen:
            result.add_error(f"Supplier {supplier_id} appears more than once in the plan")
            continue
        seen.add(supplier_id)

        if quantity < MIN_ALLOCATION_QUANTITY:
            result.add_error(f"Allocated quantity for supplier {supplier_id} must be at least {MIN_ALLOCATION_QUANTITY}")
            continue

        supplier = suppliers.get(supplier_id)
        if supplier is None:
            result.add_error(f"Supplier {supplier_id} not found")
            continue
        if not supplier.is_active:
            result.add_error(f"Supplier {supplier.name} is not active")
            continue

        available = supplier.get_available_capacity(order.product_type)
        validation = SupplierCapacityValidation(
            supplier_id=supplier.id,
            supplier_name=supplier.name,
            requested_quantity=quantity,
            available_capacity=available,
            has_sufficient_capacity=available >= quantity,
        )
        if not validation.has_sufficient_capacity:
            validation.capacity_shortfall = quantity - available
            validation.validation_message = f"Insufficient capacity. Requested: {quantity}, Available: {available}"
            result.add_error(validation.validation_message)
        elif available - quantity < available * CAPACITY_WARNING_RATIO:
            validation.validation_message = "Allocation will use >90% of available capacity"
            result.add_warning(validation.validation_message)
        result.supplier_validations.append(validation)

    total_allocated = sum(int(a.get('allocated_quantity') or 0) for a in allocations)
    total_quantity = order.total_quantity
    if total_allocated > total_quantity:
        result.add_error(
            f"Allocated quantity {total_allocated} exceeds order quantity {total_quantity}"
        )
    elif total_allocated < total_quantity:
        result.add_warning(
            f"Allocated quantity {total_allocated} is less than order quantity {total_quantity}"
        )
    return result
