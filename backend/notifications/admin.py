from django.contrib import admin
from .models import NotificationTemplate, NotificationLog, CustomerNotificationPreference


@admin.register(NotificationTemplate)
class NotificationTemplateAdmin(admin.ModelAdmin):
    list_display = ['name', 'notification_type', 'subject', 'is_active', 'updated_at']
    list_filter = ['notification_type', 'is_active']
    search_fields = ['name', 'subject']
    ordering = ['name']


@admin.register(NotificationLog)
class NotificationLogAdmin(admin.ModelAdmin):
    list_display = ['id', 'notification_type', 'recipient', 'subject', 'status', 'priority', 'retry_count', 'created_at']
    list_filter = ['notification_type', 'status', 'priority', 'created_at']
    search_fields = ['recipient', 'subject']
    readonly_fields = ['created_at', 'sent_at', 'delivered_at']
    ordering = ['-created_at']
    date_hierarchy = 'created_at'


@admin.register(CustomerNotificationPreference)
class CustomerNotificationPreferenceAdmin(admin.ModelAdmin):
    list_display = ['customer_id', 'email', 'phone', 'email_enabled', 'sms_enabled']
    search_fields = ['customer_id', 'email']
