from decimal import Decimal

from django.core.validators import MinValueValidator, MaxValueValidator
from django.db import models
from django.utils import timezone

from backend.core.choices import PRODUCT_TYPE_CHOICES

RELIABLE_MIN_ON_TIME_RATE = 0.85
RELIABLE_MIN_QUALITY_SCORE = 3.5
PREFERRED_MIN_ON_TIME_RATE = 0.95
PREFERRED_MIN_QUALITY_SCORE = 4.0


class Supplier(models.Model):
    """Supplier that receives purchase orders"""
    name = models.CharField(max_length=200)
    contact_email = models.EmailField(max_length=255)
    contact_phone = models.CharField(max_length=20)
    address = models.CharField(max_length=500)
    contact_person_name = models.CharField(max_length=100, blank=True, null=True)
    notes = models.TextField(blank=True, null=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    def get_capability(self, product_type, active_only=False):
        for capability in self.capabilities.all():
            if capability.product_type == product_type and (capability.is_active or not active_only):
                return capability
        return None

    def get_available_capacity(self, product_type):
        capability = self.get_capability(product_type)
        return capability.available_capacity if capability else 0

    def can_handle_product_type(self, product_type):
        return self.get_capability(product_type, active_only=True) is not None

    def has_capacity_for(self, product_type, required_quantity):
        capability = self.get_capability(product_type, active_only=True)
        return capability is not None and capability.available_capacity >= required_quantity

    def get_quality_rating(self, product_type):
        capability = self.get_capability(product_type)
        return capability.quality_rating if capability else Decimal('0')

    class Meta:
        db_table = 'suppliers'
        ordering = ['name']
        indexes = [
            models.Index(fields=['is_active'], name='idx_supplier_active'),
            models.Index(fields=['name'], name='idx_supplier_name'),
        ]


class SupplierCapability(models.Model):
    """Monthly capacity and commitments of a supplier for one product type"""
    supplier = models.ForeignKey(Supplier, on_delete=models.CASCADE, related_name='capabilities')
    product_type = models.CharField(max_length=10, choices=PRODUCT_TYPE_CHOICES)
    max_monthly_capacity = models.PositiveIntegerField(default=0)
    current_commitments = models.PositiveIntegerField(default=0)
    quality_rating = models.DecimalField(
        max_digits=3, decimal_places=2, default=Decimal('3.00'),
        validators=[MinValueValidator(Decimal('0')), MaxValueValidator(Decimal('5'))]
    )
    lead_time_days = models.PositiveIntegerField(default=0)
    estimated_unit_cost = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    certifications = models.CharField(max_length=500, blank=True, null=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.supplier.name} - {self.product_type}"

    @property
    def available_capacity(self):
        return max(self.max_monthly_capacity - self.current_commitments, 0)

    @property
    def capacity_utilization_rate(self):
        if self.max_monthly_capacity <= 0:
            return 0.0
        return self.current_commitments / self.max_monthly_capacity

    def validate_capacity(self):
        if self.current_commitments > self.max_monthly_capacity:
            raise ValueError("Current commitments cannot exceed maximum monthly capacity")

    def can_accommodate(self, quantity):
        return self.is_active and self.available_capacity >= quantity

    def reserve(self, quantity):
        """Add `quantity` to current commitments"""
        if quantity > self.available_capacity:
            raise ValueError(
                f"Insufficient capacity. Requested: {quantity}, Available: {self.available_capacity}"
            )
        self.current_commitments += quantity

    def release(self, quantity):
        self.current_commitments = max(self.current_commitments - quantity, 0)

    class Meta:
        db_table = 'supplier_capabilities'
        ordering = ['supplier', 'product_type']
        constraints = [
            models.UniqueConstraint(fields=['supplier', 'product_type'], name='uniq_supplier_product_type'),
        ]
        indexes = [
            models.Index(fields=['product_type', 'is_active'], name='idx_capability_type_active'),
        ]


class SupplierPerformanceMetrics(models.Model):
    """Delivery and quality track record of a supplier"""
    supplier = models.OneToOneField(Supplier, on_delete=models.CASCADE, related_name='performance')
    on_time_delivery_rate = models.FloatField(
        default=0.0, validators=[MinValueValidator(0.0), MaxValueValidator(1.0)]
    )
    quality_score = models.FloatField(
        default=0.0, validators=[MinValueValidator(0.0), MaxValueValidator(5.0)]
    )
    total_orders_completed = models.PositiveIntegerField(default=0)
    total_orders_on_time = models.PositiveIntegerField(default=0)
    total_orders_late = models.PositiveIntegerField(default=0)
    total_orders_cancelled = models.PositiveIntegerField(default=0)
    average_delivery_days = models.FloatField(null=True, blank=True)
    customer_satisfaction_rate = models.FloatField(
        null=True, blank=True, validators=[MinValueValidator(0.0), MaxValueValidator(1.0)]
    )
    last_updated = models.DateTimeField(default=timezone.now)

    def __str__(self):
        return f"{self.supplier.name} performance ({self.overall_performance_score})"

    @property
    def overall_performance_score(self):
        """Weighted score in 0..1, rounded to 3 decimals"""
        quality = self.quality_score / 5.0
        if self.customer_satisfaction_rate is not None:
            score = (
                self.on_time_delivery_rate * 0.4
                + quality * 0.4
                + self.customer_satisfaction_rate * 0.2
            )
        else:
            score = self.on_time_delivery_rate * 0.5 + quality * 0.5
        return round(score, 3)

    @property
    def is_reliable_supplier(self):
        return (
            self.on_time_delivery_rate >= RELIABLE_MIN_ON_TIME_RATE
            and self.quality_score >= RELIABLE_MIN_QUALITY_SCORE
        )

    @property
    def is_preferred_supplier(self):
        return (
            self.on_time_delivery_rate >= PREFERRED_MIN_ON_TIME_RATE
            and self.quality_score >= PREFERRED_MIN_QUALITY_SCORE
        )

    @property
    def cancellation_rate(self):
        total = self.total_orders_completed + self.total_orders_cancelled
        if total == 0:
            return 0.0
        return self.total_orders_cancelled / total

    def recalculate_on_time_delivery_rate(self):
        if self.total_orders_completed > 0:
            self.on_time_delivery_rate = self.total_orders_on_time / self.total_orders_completed
        else:
            self.on_time_delivery_rate = 0.0

    def update_on_time_delivery(self, was_on_time):
        self.total_orders_completed += 1
        if was_on_time:
            self.total_orders_on_time += 1
        else:
            self.total_orders_late += 1
        self.recalculate_on_time_delivery_rate()
        self.last_updated = timezone.now()

    def update_quality_score(self, new_score):
        new_score = float(new_score)
        if new_score < 0 or new_score > 5:
            raise ValueError("Quality score must be between 0 and 5")
        completed = self.total_orders_completed
        if completed > 0:
            self.quality_score = ((self.quality_score * completed) + new_score) / (completed + 1)
        else:
            self.quality_score = new_score
        self.last_updated = timezone.now()

    def update_average_delivery_days(self, delivery_days):
        if delivery_days < 0:
            raise ValueError("Delivery days cannot be negative")
        completed = self.total_orders_completed
        if self.average_delivery_days is not None and completed > 0:
            self.average_delivery_days = ((self.average_delivery_days * completed) + delivery_days) / (completed + 1)
        else:
            self.average_delivery_days = float(delivery_days)
        self.last_updated = timezone.now()

    def record_cancellation(self):
        self.total_orders_cancelled += 1
        self.last_updated = timezone.now()

    class Meta:
        db_table = 'supplier_performance_metrics'
        verbose_name_plural = 'supplier performance metrics'
