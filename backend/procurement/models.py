from datetime import timezone as dt_timezone
from decimal import Decimal

from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone

from backend.core.models import User
from backend.orders.models import CustomerOrder, OrderItem
from backend.suppliers.models import Supplier

SUPPLIER_NOTES_MAX_LENGTH = 500


class PurchaseOrderStatus:
    CREATED = 'Created'
    SENT_TO_SUPPLIER = 'SentToSupplier'
    CONFIRMED = 'Confirmed'
    REJECTED = 'Rejected'
    IN_PRODUCTION = 'InProduction'
    READY_FOR_SHIPMENT = 'ReadyForShipment'
    SHIPPED = 'Shipped'
    DELIVERED = 'Delivered'
    CANCELLED = 'Cancelled'

    CHOICES = [
        (CREATED, 'Created'),
        (SENT_TO_SUPPLIER, 'Sent To Supplier'),
        (CONFIRMED, 'Confirmed'),
        (REJECTED, 'Rejected'),
        (IN_PRODUCTION, 'In Production'),
        (READY_FOR_SHIPMENT, 'Ready For Shipment'),
        (SHIPPED, 'Shipped'),
        (DELIVERED, 'Delivered'),
        (CANCELLED, 'Cancelled'),
    ]

    TRANSITIONS = {
        CREATED: {SENT_TO_SUPPLIER, CANCELLED},
        SENT_TO_SUPPLIER: {CONFIRMED, REJECTED, CANCELLED},
        CONFIRMED: {IN_PRODUCTION, CANCELLED},
        REJECTED: {CANCELLED},
        IN_PRODUCTION: {READY_FOR_SHIPMENT, CANCELLED},
        READY_FOR_SHIPMENT: {SHIPPED, CANCELLED},
        SHIPPED: {DELIVERED, CANCELLED},
        DELIVERED: set(),
        CANCELLED: set(),
    }

    CLOSED = (DELIVERED, CANCELLED)
    # Statuses that hold supplier capacity
    COMMITTED = (SENT_TO_SUPPLIER, CONFIRMED, IN_PRODUCTION, READY_FOR_SHIPMENT, SHIPPED)

    @classmethod
    def values(cls):
        return [value for value, _ in cls.CHOICES]


class PurchaseOrder(models.Model):
    """Supplier-facing share of a customer order"""
    purchase_order_number = models.CharField(max_length=80, unique=True)
    customer_order = models.ForeignKey(CustomerOrder, on_delete=models.PROTECT, related_name='purchase_orders')
    supplier = models.ForeignKey(Supplier, on_delete=models.PROTECT, related_name='purchase_orders')
    status = models.CharField(max_length=30, choices=PurchaseOrderStatus.CHOICES, default=PurchaseOrderStatus.CREATED)
    required_delivery_date = models.DateField()
    total_value = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))
    notes = models.TextField(blank=True, null=True)
    supplier_notes = models.TextField(blank=True, null=True)
    rejection_reason = models.CharField(max_length=1000, blank=True, null=True)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='created_purchase_orders')
    confirmed_at = models.DateTimeField(null=True, blank=True)
    rejected_at = models.DateTimeField(null=True, blank=True)
    shipped_at = models.DateTimeField(null=True, blank=True)
    delivered_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.purchase_order_number

    @property
    def total_quantity(self):
        return sum(item.allocated_quantity for item in self.items.all())

    @property
    def is_overdue(self):
        return (
            self.status not in PurchaseOrderStatus.CLOSED
            and self.required_delivery_date < timezone.now().date()
        )

    @property
    def days_until_delivery(self):
        return (self.required_delivery_date - timezone.now().date()).days

    @property
    def is_awaiting_supplier_response(self):
        return self.status == PurchaseOrderStatus.SENT_TO_SUPPLIER

    @property
    def is_confirmed(self):
        return self.status == PurchaseOrderStatus.CONFIRMED

    @property
    def is_rejected(self):
        return self.status == PurchaseOrderStatus.REJECTED

    def can_transition_to(self, new_status):
        return new_status in PurchaseOrderStatus.TRANSITIONS.get(self.status, set())

    def transition_to(self, new_status, reason=None):
        """Move to `new_status`, stamping the matching timestamp"""
        if not self.can_transition_to(new_status):
            raise ValueError(f"Cannot transition purchase order from {self.status} to {new_status}")

        now = timezone.now()
        if new_status == PurchaseOrderStatus.CONFIRMED:
            self.confirmed_at = now
        elif new_status == PurchaseOrderStatus.REJECTED:
            self.rejected_at = now
            self.rejection_reason = reason
        elif new_status == PurchaseOrderStatus.SHIPPED:
            self.shipped_at = now
        elif new_status == PurchaseOrderStatus.DELIVERED:
            self.delivered_at = now
        self.status = new_status

    def confirm(self, notes=None):
        self.transition_to(PurchaseOrderStatus.CONFIRMED)
        if notes:
            self.supplier_notes = notes

    def reject(self, reason):
        if not reason or not reason.strip():
            raise ValueError("Rejection reason is required")
        self.transition_to(PurchaseOrderStatus.REJECTED, reason=reason.strip())

    def calculate_total_value(self):
        self.total_value = sum((item.total_price for item in self.items.all()), Decimal('0.00'))
        return self.total_value

    def validate(self):
        """Return a list of problems; empty when the PO is well-formed"""
        errors = []
        if not self.purchase_order_number or not self.purchase_order_number.strip():
            errors.append("Purchase order number is required")
        if self.required_delivery_date and self.required_delivery_date < timezone.now().date():
            errors.append("Required delivery date cannot be in the past")
        if not self.pk or not self.items.exists():
            errors.append("Purchase order must have at least one item")
        return errors

    class Meta:
        db_table = 'purchase_orders'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status'], name='idx_po_status'),
            models.Index(fields=['supplier', 'status'], name='idx_po_supplier_status'),
            models.Index(fields=['required_delivery_date'], name='idx_po_delivery_date'),
        ]


class PurchaseOrderItem(models.Model):
    """Purchase order line, allocated from a customer order item"""
    purchase_order = models.ForeignKey(PurchaseOrder, on_delete=models.CASCADE, related_name='items')
    order_item = models.ForeignKey(OrderItem, on_delete=models.PROTECT, related_name='purchase_order_items')
    product_code = models.CharField(max_length=50)
    description = models.CharField(max_length=500)
    allocated_quantity = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    unit = models.CharField(max_length=20)
    packaging_details = models.CharField(max_length=500, blank=True, null=True)
    delivery_method = models.CharField(max_length=100, blank=True, null=True)
    estimated_delivery_date = models.DateField(null=True, blank=True)
    unit_price = models.DecimalField(
        max_digits=12, decimal_places=2, null=True, blank=True,
        validators=[MinValueValidator(Decimal('0'))]
    )
    specifications = models.CharField(max_length=1000, blank=True, null=True)
    supplier_notes = models.CharField(max_length=SUPPLIER_NOTES_MAX_LENGTH, blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.product_code} x {self.allocated_quantity}"

    @property
    def total_price(self):
        if self.unit_price is None:
            return Decimal('0.00')
        return self.unit_price * self.allocated_quantity

    def set_estimated_delivery_date(self, delivery_date):
        if delivery_date <= timezone.now().date():
            raise ValueError("Estimated delivery date must be in the future")
        if delivery_date > self.purchase_order.required_delivery_date:
            raise ValueError("Estimated delivery date cannot be after the required delivery date")
        self.estimated_delivery_date = delivery_date

    def add_supplier_notes(self, text):
        """Append a timestamped note"""
        stamp = timezone.now().astimezone(dt_timezone.utc).strftime('%Y-%m-%d %H:%M')
        notes = f"{self.supplier_notes or ''}\n{stamp}: {text}"
        if len(notes) > SUPPLIER_NOTES_MAX_LENGTH:
            raise ValueError(f"Supplier notes cannot exceed {SUPPLIER_NOTES_MAX_LENGTH} characters")
        self.supplier_notes = notes

    class Meta:
        db_table = 'purchase_order_items'
        ordering = ['id']
