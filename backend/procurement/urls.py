from django.urls import path
from .views import (
    distribution_suggestion, validate_distribution, purchase_order_list_create,
    supplier_purchase_orders, customer_order_purchase_orders, purchase_order_detail,
    purchase_order_confirm, purchase_order_reject, purchase_order_status, purchase_order_item_update,
    portal_dashboard, portal_order_list, portal_order_history, portal_order_detail,
    portal_order_confirm, portal_order_reject, portal_order_items, portal_validate_delivery_dates
)

urlpatterns = [
    # Procurement planning endpoints
    path('procurement/suggestions/<int:order_id>/', distribution_suggestion, name='procurement-suggestion'),
    path('procurement/validate/<int:order_id>/', validate_distribution, name='procurement-validate'),
    path('procurement/purchase-orders/', purchase_order_list_create, name='purchase-order-list-create'),
    path('procurement/purchase-orders/<int:pk>/', purchase_order_detail, name='purchase-order-detail'),
    path('procurement/purchase-orders/<int:pk>/confirm/', purchase_order_confirm, name='purchase-order-confirm'),
    path('procurement/purchase-orders/<int:pk>/reject/', purchase_order_reject, name='purchase-order-reject'),
    path('procurement/purchase-orders/<int:pk>/status/', purchase_order_status, name='purchase-order-status'),
    path('procurement/items/<int:item_id>/', purchase_order_item_update, name='purchase-order-item-update'),
    path('procurement/supplier/<int:supplier_id>/purchase-orders/', supplier_purchase_orders,
         name='procurement-supplier-purchase-orders'),
    path('procurement/customer-order/<int:order_id>/purchase-orders/', customer_order_purchase_orders,
         name='procurement-customer-order-purchase-orders'),

    # Supplier portal endpoints
    path('supplier-portal/dashboard/', portal_dashboard, name='supplier-portal-dashboard'),
    path('supplier-portal/orders/', portal_order_list, name='supplier-portal-order-list'),
    path('supplier-portal/orders/history/', portal_order_history, name='supplier-portal-order-history'),
    path('supplier-portal/orders/<int:pk>/', portal_order_detail, name='supplier-portal-order-detail'),
    path('supplier-portal/orders/<int:pk>/confirm/', portal_order_confirm, name='supplier-portal-order-confirm'),
    path('supplier-portal/orders/<int:pk>/reject/', portal_order_reject, name='supplier-portal-order-reject'),
    path('supplier-portal/orders/<int:pk>/items/', portal_order_items, name='supplier-portal-order-items'),
    path('supplier-portal/orders/<int:pk>/validate-delivery-dates/', portal_validate_delivery_dates,
         name='supplier-portal-validate-delivery-dates'),
]
