from django.urls import path
from .views import (
    supplier_list_create, supplier_detail, supplier_capacity, supplier_performance,
    supplier_activate, supplier_deactivate, supplier_eligibility,
    available_suppliers, suppliers_by_performance, total_available_capacity
)

urlpatterns = [
    # Supplier endpoints
    path('suppliers/', supplier_list_create, name='supplier-list-create'),
    path('suppliers/available/', available_suppliers, name='supplier-available'),
    path('suppliers/by-performance/', suppliers_by_performance, name='supplier-by-performance'),
    path('suppliers/capacity/<str:product_type>/', total_available_capacity, name='supplier-total-capacity'),
    path('suppliers/<int:pk>/', supplier_detail, name='supplier-detail'),
    path('suppliers/<int:pk>/capacity/<str:product_type>/', supplier_capacity, name='supplier-capacity'),
    path('suppliers/<int:pk>/performance/', supplier_performance, name='supplier-performance'),
    path('suppliers/<int:pk>/activate/', supplier_activate, name='supplier-activate'),
    path('suppliers/<int:pk>/deactivate/', supplier_deactivate, name='supplier-deactivate'),
    path('suppliers/<int:pk>/eligibility/', supplier_eligibility, name='supplier-eligibility'),
]
