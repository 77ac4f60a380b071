import django_filters

from backend.core.choices import PRODUCT_TYPE_CHOICES

from .models import PurchaseOrder, PurchaseOrderStatus


class PurchaseOrderHistoryFilter(django_filters.FilterSet):
    """Filter for a supplier's purchase order history"""
    start_date = django_filters.DateFilter(field_name='created_at', lookup_expr='date__gte')
    end_date = django_filters.DateFilter(field_name='created_at', lookup_expr='date__lte')
    status = django_filters.ChoiceFilter(choices=PurchaseOrderStatus.CHOICES)
    product_type = django_filters.ChoiceFilter(
        field_name='customer_order__product_type', choices=PRODUCT_TYPE_CHOICES
    )
    customer_name = django_filters.CharFilter(field_name='customer_order__customer_name', lookup_expr='icontains')
    min_value = django_filters.NumberFilter(field_name='total_value', lookup_expr='gte')
    max_value = django_filters.NumberFilter(field_name='total_value', lookup_expr='lte')
    sort_by = django_filters.OrderingFilter(
        fields=(
            ('created_at', 'created_at'),
            ('required_delivery_date', 'required_delivery_date'),
            ('total_value', 'total_value'),
            ('status', 'status'),
        )
    )

    class Meta:
        model = PurchaseOrder
        fields = ['start_date', 'end_date', 'status', 'product_type', 'customer_name', 'min_value', 'max_value']
