from django.contrib import admin
from .models import PurchaseOrder, PurchaseOrderItem


class PurchaseOrderItemInline(admin.TabularInline):
    model = PurchaseOrderItem
    extra = 0
    readonly_fields = ['order_item', 'allocated_quantity']


@admin.register(PurchaseOrder)
class PurchaseOrderAdmin(admin.ModelAdmin):
    list_display = ['purchase_order_number', 'customer_order', 'supplier', 'status', 'required_delivery_date', 'total_value', 'created_at']
    list_filter = ['status', 'created_at']
    search_fields = ['purchase_order_number', 'customer_order__order_number', 'supplier__name']
    readonly_fields = ['purchase_order_number', 'confirmed_at', 'rejected_at', 'shipped_at', 'delivered_at', 'created_at', 'updated_at']
    ordering = ['-created_at']
    date_hierarchy = 'created_at'
    inlines = [PurchaseOrderItemInline]
