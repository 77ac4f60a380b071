from django.urls import path
from .views import (
    order_list_create, order_detail, order_status, order_history, order_milestones,
    orders_by_delivery_date, order_dashboard, at_risk_orders, orders_requiring_attention,
    process_transitions,
    customer_order_list, customer_order_detail, customer_order_history, customer_order_timeline,
    customer_recent_orders, customer_order_summary
)

urlpatterns = [
    # Planner order endpoints
    path('orders/', order_list_create, name='order-list-create'),
    path('orders/by-delivery-date/', orders_by_delivery_date, name='order-by-delivery-date'),
    path('orders/dashboard/', order_dashboard, name='order-dashboard'),
    path('orders/at-risk/', at_risk_orders, name='order-at-risk'),
    path('orders/requiring-attention/', orders_requiring_attention, name='order-requiring-attention'),
    path('orders/process-transitions/', process_transitions, name='order-process-transitions'),
    path('orders/<int:pk>/', order_detail, name='order-detail'),
    path('orders/<int:pk>/status/', order_status, name='order-status'),
    path('orders/<int:pk>/history/', order_history, name='order-history'),
    path('orders/<int:pk>/milestones/', order_milestones, name='order-milestones'),

    # Customer tracking endpoints
    path('customer/orders/', customer_order_list, name='customer-order-list'),
    path('customer/orders/recent/', customer_recent_orders, name='customer-order-recent'),
    path('customer/orders/summary/', customer_order_summary, name='customer-order-summary'),
    path('customer/orders/<int:pk>/', customer_order_detail, name='customer-order-detail'),
    path('customer/orders/<int:pk>/history/', customer_order_history, name='customer-order-history'),
    path('customer/orders/<int:pk>/timeline/', customer_order_timeline, name='customer-order-timeline'),
]
