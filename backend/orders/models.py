from decimal import Decimal

from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone

from backend.core.choices import PRODUCT_TYPE_CHOICES
from backend.core.models import User


class OrderStatus:
    SUBMITTED = 'Submitted'
    UNDER_REVIEW = 'UnderReview'
    PLANNING_IN_PROGRESS = 'PlanningInProgress'
    PURCHASE_ORDERS_CREATED = 'PurchaseOrdersCreated'
    AWAITING_SUPPLIER_CONFIRMATION = 'AwaitingSupplierConfirmation'
    IN_PRODUCTION = 'InProduction'
    READY_FOR_DELIVERY = 'ReadyForDelivery'
    DELIVERED = 'Delivered'
    CANCELLED = 'Cancelled'

    CHOICES = [
        (SUBMITTED, 'Submitted'),
        (UNDER_REVIEW, 'Under Review'),
        (PLANNING_IN_PROGRESS, 'Planning In Progress'),
        (PURCHASE_ORDERS_CREATED, 'Purchase Orders Created'),
        (AWAITING_SUPPLIER_CONFIRMATION, 'Awaiting Supplier Confirmation'),
        (IN_PRODUCTION, 'In Production'),
        (READY_FOR_DELIVERY, 'Ready For Delivery'),
        (DELIVERED, 'Delivered'),
        (CANCELLED, 'Cancelled'),
    ]

    # Forward chain; Cancelled is reachable from every non-terminal status
    TRANSITIONS = {
        SUBMITTED: {UNDER_REVIEW, CANCELLED},
        UNDER_REVIEW: {PLANNING_IN_PROGRESS, CANCELLED},
        PLANNING_IN_PROGRESS: {PURCHASE_ORDERS_CREATED, CANCELLED},
        PURCHASE_ORDERS_CREATED: {AWAITING_SUPPLIER_CONFIRMATION, CANCELLED},
        AWAITING_SUPPLIER_CONFIRMATION: {IN_PRODUCTION, CANCELLED},
        IN_PRODUCTION: {READY_FOR_DELIVERY, CANCELLED},
        READY_FOR_DELIVERY: {DELIVERED, CANCELLED},
        DELIVERED: set(),
        CANCELLED: set(),
    }

    CLOSED = (DELIVERED, CANCELLED)
    EDITABLE = (SUBMITTED, UNDER_REVIEW)

    @classmethod
    def values(cls):
        return [value for value, _ in cls.CHOICES]


class CustomerOrder(models.Model):
    """Order placed by a customer for one product type"""
    order_number = models.CharField(max_length=50, unique=True)
    customer_id = models.CharField(max_length=100)
    customer_name = models.CharField(max_length=200)
    product_type = models.CharField(max_length=10, choices=PRODUCT_TYPE_CHOICES)
    requested_delivery_date = models.DateField()
    status = models.CharField(max_length=40, choices=OrderStatus.CHOICES, default=OrderStatus.SUBMITTED)
    notes = models.TextField(blank=True, null=True)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='customer_orders')
    assigned_planner = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='planned_orders')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.order_number

    @property
    def total_quantity(self):
        return sum(item.quantity for item in self.items.all())

    @property
    def total_value(self):
        return sum((item.total_price for item in self.items.all()), Decimal('0.00'))

    @property
    def is_overdue(self):
        return (
            self.status not in OrderStatus.CLOSED
            and self.requested_delivery_date < timezone.now().date()
        )

    def can_transition_to(self, new_status):
        return new_status in OrderStatus.TRANSITIONS.get(self.status, set())

    def transition_to(self, new_status):
        if not self.can_transition_to(new_status):
            raise ValueError(f"Cannot transition order from {self.status} to {new_status}")
        self.status = new_status

    class Meta:
        db_table = 'customer_orders'
        ordering = ['requested_delivery_date', '-created_at']
        indexes = [
            models.Index(fields=['status'], name='idx_order_status'),
            models.Index(fields=['customer_id'], name='idx_order_customer'),
            models.Index(fields=['requested_delivery_date'], name='idx_order_delivery_date'),
            models.Index(fields=['product_type', 'status'], name='idx_order_type_status'),
        ]


class OrderItem(models.Model):
    """Customer order line"""
    order = models.ForeignKey(CustomerOrder, on_delete=models.CASCADE, related_name='items')
    product_code = models.CharField(max_length=50)
    description = models.CharField(max_length=500)
    quantity = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    unit = models.CharField(max_length=20)
    specifications = models.CharField(max_length=1000, blank=True, null=True)
    unit_price = models.DecimalField(
        max_digits=12, decimal_places=2, null=True, blank=True,
        validators=[MinValueValidator(Decimal('0'))]
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.product_code} x {self.quantity}"

    @property
    def total_price(self):
        if self.unit_price is None:
            return Decimal('0.00')
        return self.unit_price * self.quantity

    class Meta:
        db_table = 'order_items'
        ordering = ['id']


class OrderStatusHistory(models.Model):
    """One status change of a customer order"""
    order = models.ForeignKey(CustomerOrder, on_delete=models.CASCADE, related_name='status_history')
    from_status = models.CharField(max_length=40, choices=OrderStatus.CHOICES, blank=True, null=True)
    to_status = models.CharField(max_length=40, choices=OrderStatus.CHOICES)
    changed_at = models.DateTimeField(default=timezone.now)
    changed_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='order_status_changes')
    notes = models.CharField(max_length=1000, blank=True, null=True)
    reason = models.CharField(max_length=500, blank=True, null=True)

    def __str__(self):
        return f"{self.order.order_number}: {self.from_status} -> {self.to_status}"

    class Meta:
        db_table = 'order_status_history'
        ordering = ['changed_at', 'id']
        verbose_name_plural = 'order status history'


class OrderMilestone(models.Model):
    """Tracked delivery milestone of a customer order"""
    STATUS_PENDING = 'pending'
    STATUS_COMPLETED = 'completed'
    STATUS_OVERDUE = 'overdue'
    STATUS_CANCELLED = 'cancelled'
    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_OVERDUE, 'Overdue'),
        (STATUS_CANCELLED, 'Cancelled'),
    ]

    order = models.ForeignKey(CustomerOrder, on_delete=models.CASCADE, related_name='milestones')
    name = models.CharField(max_length=100)
    description = models.CharField(max_length=500, blank=True)
    target_date = models.DateTimeField(null=True, blank=True)
    actual_date = models.DateTimeField(null=True, blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING)
    notes = models.CharField(max_length=1000, blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.order.order_number}: {self.name}"

    @property
    def is_overdue(self):
        return (
            self.status == self.STATUS_PENDING
            and self.target_date is not None
            and self.target_date < timezone.now()
        )

    def mark_completed(self, notes=None):
        self.status = self.STATUS_COMPLETED
        self.actual_date = timezone.now()
        if notes:
            self.notes = notes

    class Meta:
        db_table = 'order_milestones'
        ordering = ['target_date', 'id']
