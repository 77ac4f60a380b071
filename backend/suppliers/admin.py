from django.contrib import admin
from .models import Supplier, SupplierCapability, SupplierPerformanceMetrics


class SupplierCapabilityInline(admin.TabularInline):
    model = SupplierCapability
    extra = 0


@admin.register(Supplier)
class SupplierAdmin(admin.ModelAdmin):
    list_display = ['name', 'contact_email', 'contact_phone', 'is_active', 'created_at']
    list_filter = ['is_active', 'created_at']
    search_fields = ['name', 'contact_email', 'contact_person_name']
    ordering = ['name']
    inlines = [SupplierCapabilityInline]


@admin.register(SupplierCapability)
class SupplierCapabilityAdmin(admin.ModelAdmin):
    list_display = ['supplier', 'product_type', 'max_monthly_capacity', 'current_commitments', 'quality_rating', 'is_active']
    list_filter = ['product_type', 'is_active']
    search_fields = ['supplier__name']


@admin.register(SupplierPerformanceMetrics)
class SupplierPerformanceMetricsAdmin(admin.ModelAdmin):
    list_display = ['supplier', 'on_time_delivery_rate', 'quality_score', 'total_orders_completed', 'last_updated']
    search_fields = ['supplier__name']
    readonly_fields = ['last_updated']
