from django.contrib.auth.models import AbstractUser
from django.db import models


class User(AbstractUser):
    """Extended user model with procurement-specific links"""
    phone = models.CharField(max_length=20, blank=True, null=True)
    # Set for Supplier-role users: the supplier whose portal they act in
    supplier = models.ForeignKey(
        'suppliers.Supplier', on_delete=models.SET_NULL, null=True, blank=True, related_name='users'
    )
    # Set for Customer-role users: the customer identifier stamped on their orders
    customer_id = models.CharField(max_length=100, blank=True, null=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'users'

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}".strip()


class AuditLog(models.Model):
    """Audit log for business-critical operations"""
    ACTION_CHOICES = [
        ('create', 'Create'),
        ('update', 'Update'),
        ('delete', 'Delete'),
        ('view', 'View'),
        ('login', 'Login'),
        ('logout', 'Logout'),
        ('password_change', 'Password Changed'),
        ('user_create', 'User Created'),
        ('order_create', 'Customer Order Created'),
        ('order_update', 'Customer Order Updated'),
        ('order_delete', 'Customer Order Deleted'),
        ('order_status_change', 'Customer Order Status Changed'),
        ('po_create', 'Purchase Orders Created'),
        ('po_confirm', 'Purchase Order Confirmed'),
        ('po_reject', 'Purchase Order Rejected'),
        ('po_status_change', 'Purchase Order Status Changed'),
        ('po_item_update', 'Purchase Order Item Updated'),
        ('supplier_create', 'Supplier Created'),
        ('supplier_update', 'Supplier Updated'),
        ('supplier_capacity_update', 'Supplier Capacity Updated'),
        ('supplier_performance_update', 'Supplier Performance Updated'),
        ('supplier_activate', 'Supplier Activated'),
        ('supplier_deactivate', 'Supplier Deactivated'),
        ('template_create', 'Notification Template Created'),
        ('template_update', 'Notification Template Updated'),
        ('export', 'Export'),
    ]

    RESULT_SUCCESS = 'success'
    RESULT_FAILED = 'failed'
    RESULT_UNAUTHORIZED = 'unauthorized'
    RESULT_VALIDATION_ERROR = 'validation_error'
    RESULT_CHOICES = [
        (RESULT_SUCCESS, 'Success'),
        (RESULT_FAILED, 'Failed'),
        (RESULT_UNAUTHORIZED, 'Unauthorized'),
        (RESULT_VALIDATION_ERROR, 'Validation Error'),
    ]

    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='audit_logs')
    username = models.CharField(max_length=150, blank=True, null=True)
    user_role = models.CharField(max_length=50, blank=True, null=True)
    action = models.CharField(max_length=50, choices=ACTION_CHOICES)
    entity_type = models.CharField(max_length=100)
    entity_id = models.CharField(max_length=100)
    entity_reference = models.CharField(max_length=255, blank=True, null=True, help_text="Human-readable reference (e.g., order number, purchase order number)")
    old_values = models.JSONField(default=dict, blank=True)
    new_values = models.JSONField(default=dict, blank=True)
    additional_data = models.JSONField(default=dict, blank=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.CharField(max_length=500, blank=True, null=True)
    result = models.CharField(max_length=20, choices=RESULT_CHOICES, default=RESULT_SUCCESS)
    error_message = models.CharField(max_length=1000, blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.action} {self.entity_type}:{self.entity_id} ({self.result})"

    class Meta:
        db_table = 'audit_logs'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['-created_at'], name='idx_audit_created'),
            models.Index(fields=['action'], name='idx_audit_action'),
            models.Index(fields=['entity_type', 'entity_id'], name='idx_audit_entity'),
            models.Index(fields=['entity_reference'], name='idx_audit_reference'),
            models.Index(fields=['result'], name='idx_audit_result'),
        ]
