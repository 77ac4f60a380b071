"""
URL configuration for the procurement planner.

All API endpoints live under /api/v1/.
"""
from django.contrib import admin
from django.urls import path, include

admin.site.site_header = "Procurement Planner Admin Panel"
admin.site.site_title = "Procurement Planner Admin Portal"
admin.site.index_title = "Welcome to the Procurement Planner Admin Portal"

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/v1/', include('backend.core.urls')),
    path('api/v1/', include('backend.suppliers.urls')),
    path('api/v1/', include('backend.orders.urls')),
    path('api/v1/', include('backend.procurement.urls')),
    path('api/v1/', include('backend.notifications.urls')),
    path('api/v1/', include('backend.reports.urls')),
]
