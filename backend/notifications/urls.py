from django.urls import path
from .views import (
    template_list_create, template_detail, notification_log_list,
    bulk_notification, retry_notifications, customer_notification_preferences
)

urlpatterns = [
    # Notification endpoints
    path('notifications/templates/', template_list_create, name='notification-template-list-create'),
    path('notifications/templates/<int:pk>/', template_detail, name='notification-template-detail'),
    path('notifications/logs/', notification_log_list, name='notification-log-list'),
    path('notifications/bulk/', bulk_notification, name='notification-bulk'),
    path('notifications/retry/', retry_notifications, name='notification-retry'),

    # Customer preferences
    path('customer/notifications/preferences/', customer_notification_preferences,
         name='customer-notification-preferences'),
]
