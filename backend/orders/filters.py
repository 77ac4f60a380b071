import django_filters
from django.db.models import Q
from django.utils import timezone

from backend.core.choices import PRODUCT_TYPE_CHOICES

from .models import CustomerOrder, OrderStatus


class CustomerOrderFilter(django_filters.FilterSet):
    """Filter for customer orders (planner order list)"""
    search = django_filters.CharFilter(method='filter_search', label='Search')
    customer_id = django_filters.CharFilter(field_name='customer_id', lookup_expr='exact')
    customer_name = django_filters.CharFilter(field_name='customer_name', lookup_expr='icontains')
    product_type = django_filters.ChoiceFilter(choices=PRODUCT_TYPE_CHOICES)
    status = django_filters.ChoiceFilter(choices=OrderStatus.CHOICES)
    delivery_date_from = django_filters.DateFilter(field_name='requested_delivery_date', lookup_expr='gte')
    delivery_date_to = django_filters.DateFilter(field_name='requested_delivery_date', lookup_expr='lte')
    created_from = django_filters.DateFilter(field_name='created_at', lookup_expr='date__gte')
    created_to = django_filters.DateFilter(field_name='created_at', lookup_expr='date__lte')
    is_overdue = django_filters.BooleanFilter(method='filter_overdue', label='Overdue')
    assigned_planner = django_filters.NumberFilter(field_name='assigned_planner_id')

    class Meta:
        model = CustomerOrder
        fields = [
            'search', 'customer_id', 'customer_name', 'product_type', 'status',
            'delivery_date_from', 'delivery_date_to', 'created_from', 'created_to',
            'is_overdue', 'assigned_planner',
        ]

    def filter_search(self, queryset, name, value):
        """Match order number or customer name"""
        if not value:
            return queryset
        value = value.strip()
        return queryset.filter(Q(order_number__icontains=value) | Q(customer_name__icontains=value))

    def filter_overdue(self, queryset, name, value):
        if value is None:
            return queryset
        today = timezone.now().date()
        overdue = Q(requested_delivery_date__lt=today) & ~Q(status__in=OrderStatus.CLOSED)
        if value:
            return queryset.filter(overdue)
        return queryset.exclude(overdue)
