from rest_framework import serializers

from .models import (
    NotificationTemplate, NotificationLog, CustomerNotificationPreference, NOTIFICATION_TYPE_CHOICES
)


class NotificationTemplateSerializer(serializers.ModelSerializer):
    placeholders = serializers.SerializerMethodField()

    class Meta:
        model = NotificationTemplate
        fields = ['id', 'name', 'description', 'notification_type', 'subject', 'body', 'is_active',
                  'required_parameters', 'placeholders', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']
        # Uniqueness is checked by the service so the error uses the standard payload
        extra_kwargs = {'name': {'validators': []}}

    def get_placeholders(self, obj):
        return obj.placeholders()


class NotificationLogSerializer(serializers.ModelSerializer):
    class Meta:
        model = NotificationLog
        fields = ['id', 'notification_type', 'recipient', 'subject', 'message', 'status', 'priority',
                  'error_message', 'sent_at', 'delivered_at', 'retry_count', 'external_message_id',
                  'metadata', 'created_at']


class CustomerNotificationPreferenceSerializer(serializers.ModelSerializer):
    class Meta:
        model = CustomerNotificationPreference
        fields = ['customer_id', 'email', 'phone', 'email_enabled', 'sms_enabled',
                  'notify_on_status_change', 'notify_on_delivery', 'notify_on_delay', 'updated_at']
        read_only_fields = ['customer_id', 'updated_at']


class BulkNotificationSerializer(serializers.Serializer):
    notification_type = serializers.ChoiceField(choices=NOTIFICATION_TYPE_CHOICES)
    recipients = serializers.ListField(child=serializers.CharField(max_length=255), allow_empty=False)
    subject = serializers.CharField(max_length=200, required=False, allow_blank=True)
    message = serializers.CharField(required=False, allow_blank=True)
    template_name = serializers.CharField(max_length=100, required=False, allow_blank=True)
    template_data = serializers.DictField(required=False)
    priority = serializers.ChoiceField(choices=NotificationLog.PRIORITY_CHOICES, default=NotificationLog.PRIORITY_NORMAL)

    def validate(self, attrs):
        if not attrs.get('message') and not attrs.get('template_name'):
            raise serializers.ValidationError("Either message or template_name is required")
        return attrs
