import re

from django.db import models
from django.utils import timezone

PLACEHOLDER_PATTERN = re.compile(r'\{(\w+)\}')

TYPE_EMAIL = 'email'
TYPE_SMS = 'sms'
NOTIFICATION_TYPE_CHOICES = [
    (TYPE_EMAIL, 'Email'),
    (TYPE_SMS, 'SMS'),
]


def render_placeholders(text, parameters):
    """Replace `{key}` placeholders; unknown keys are left untouched"""
    if not text:
        return text
    for key, value in (parameters or {}).items():
        text = text.replace('{' + str(key) + '}', '' if value is None else str(value))
    return text


class NotificationTemplate(models.Model):
    """Reusable email/SMS message with `{key}` placeholders"""
    name = models.CharField(max_length=100, unique=True)
    description = models.CharField(max_length=500, blank=True)
    notification_type = models.CharField(max_length=10, choices=NOTIFICATION_TYPE_CHOICES, default=TYPE_EMAIL)
    subject = models.CharField(max_length=200, blank=True)
    body = models.TextField()
    is_active = models.BooleanField(default=True)
    required_parameters = models.JSONField(default=list, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    def render_subject(self, parameters):
        return render_placeholders(self.subject, parameters)

    def render_body(self, parameters):
        return render_placeholders(self.body, parameters)

    def validate_parameters(self, parameters):
        """Return the required parameter names missing from `parameters`"""
        parameters = parameters or {}
        return [name for name in (self.required_parameters or []) if name not in parameters]

    def placeholders(self):
        return sorted(set(PLACEHOLDER_PATTERN.findall(f"{self.subject} {self.body}")))

    class Meta:
        db_table = 'notification_templates'
        ordering = ['name']


class NotificationLog(models.Model):
    """One attempted email or SMS delivery"""
    STATUS_PENDING = 'pending'
    STATUS_SENT = 'sent'
    STATUS_DELIVERED = 'delivered'
    STATUS_FAILED = 'failed'
    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_SENT, 'Sent'),
        (STATUS_DELIVERED, 'Delivered'),
        (STATUS_FAILED, 'Failed'),
    ]

    PRIORITY_LOW = 'low'
    PRIORITY_NORMAL = 'normal'
    PRIORITY_HIGH = 'high'
    PRIORITY_URGENT = 'urgent'
    PRIORITY_CHOICES = [
        (PRIORITY_LOW, 'Low'),
        (PRIORITY_NORMAL, 'Normal'),
        (PRIORITY_HIGH, 'High'),
        (PRIORITY_URGENT, 'Urgent'),
    ]

    MAX_RETRIES = 3

    notification_type = models.CharField(max_length=10, choices=NOTIFICATION_TYPE_CHOICES)
    recipient = models.CharField(max_length=255)
    subject = models.CharField(max_length=200, blank=True)
    message = models.TextField()
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING)
    priority = models.CharField(max_length=10, choices=PRIORITY_CHOICES, default=PRIORITY_NORMAL)
    error_message = models.CharField(max_length=1000, blank=True, null=True)
    sent_at = models.DateTimeField(null=True, blank=True)
    delivered_at = models.DateTimeField(null=True, blank=True)
    retry_count = models.PositiveIntegerField(default=0)
    external_message_id = models.CharField(max_length=255, blank=True, null=True)
    metadata = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.notification_type} to {self.recipient} ({self.status})"

    def mark_sent(self, external_message_id=None):
        self.status = self.STATUS_SENT
        self.sent_at = timezone.now()
        self.error_message = None
        if external_message_id:
            self.external_message_id = external_message_id

    def mark_delivered(self):
        self.status = self.STATUS_DELIVERED
        self.delivered_at = timezone.now()

    def mark_failed(self, error_message):
        self.status = self.STATUS_FAILED
        self.error_message = (error_message or '')[:1000]
        self.retry_count += 1

    def can_retry(self, max_retries=MAX_RETRIES):
        return self.status == self.STATUS_FAILED and self.retry_count < max_retries

    class Meta:
        db_table = 'notification_logs'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status'], name='idx_notification_status'),
            models.Index(fields=['recipient'], name='idx_notification_recipient'),
        ]


class CustomerNotificationPreference(models.Model):
    """How and when a customer wants to hear about their orders"""
    customer_id = models.CharField(max_length=100, unique=True)
    email = models.EmailField(max_length=255, blank=True, null=True)
    phone = models.CharField(max_length=20, blank=True, null=True)
    email_enabled = models.BooleanField(default=True)
    sms_enabled = models.BooleanField(default=False)
    notify_on_status_change = models.BooleanField(default=True)
    notify_on_delivery = models.BooleanField(default=True)
    notify_on_delay = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"Preferences for {self.customer_id}"

    class Meta:
        db_table = 'customer_notification_preferences'
