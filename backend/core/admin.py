from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from .models import User, AuditLog


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    list_display = ['username', 'email', 'supplier', 'customer_id', 'is_active', 'is_staff', 'date_joined']
    list_filter = ['is_active', 'is_staff', 'groups', 'date_joined']
    search_fields = ['username', 'email', 'customer_id', 'supplier__name']
    ordering = ['username']
    raw_id_fields = ['supplier']
    fieldsets = BaseUserAdmin.fieldsets + (
        ('Planner Access', {'fields': ('phone', 'supplier', 'customer_id')}),
    )
    add_fieldsets = BaseUserAdmin.add_fieldsets + (
        ('Planner Access', {'fields': ('phone', 'supplier', 'customer_id')}),
    )


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = ['created_at', 'username', 'action', 'entity_type', 'entity_reference', 'result']
    list_filter = ['action', 'entity_type', 'result', 'created_at']
    search_fields = ['username', 'entity_id', 'entity_reference', 'error_message']
    ordering = ['-created_at']
    readonly_fields = [
        'user', 'username', 'user_role', 'action', 'entity_type', 'entity_id', 'entity_reference',
        'old_values', 'new_values', 'additional_data', 'ip_address', 'user_agent', 'result',
        'error_message', 'created_at',
    ]

    def has_add_permission(self, request):
        return False
