from django.contrib import admin
from .models import CustomerOrder, OrderItem, OrderStatusHistory, OrderMilestone


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0


@admin.register(CustomerOrder)
class CustomerOrderAdmin(admin.ModelAdmin):
    list_display = ['order_number', 'customer_id', 'customer_name', 'product_type', 'status', 'requested_delivery_date', 'created_at']
    list_filter = ['status', 'product_type', 'created_at']
    search_fields = ['order_number', 'customer_id', 'customer_name']
    readonly_fields = ['order_number', 'created_at', 'updated_at']
    ordering = ['requested_delivery_date']
    date_hierarchy = 'created_at'
    inlines = [OrderItemInline]


@admin.register(OrderStatusHistory)
class OrderStatusHistoryAdmin(admin.ModelAdmin):
    list_display = ['order', 'from_status', 'to_status', 'changed_by', 'changed_at']
    list_filter = ['to_status', 'changed_at']
    search_fields = ['order__order_number']
    ordering = ['-changed_at']


@admin.register(OrderMilestone)
class OrderMilestoneAdmin(admin.ModelAdmin):
    list_display = ['order', 'name', 'status', 'target_date', 'actual_date']
    list_filter = ['status', 'name']
    search_fields = ['order__order_number', 'name']
