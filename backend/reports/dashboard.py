"""
Cached planner dashboard queries. Entries are dropped by the cache
signals whenever orders or purchase orders change.
"""
from backend.core.cache_utils import DASHBOARD_CACHE_TTL, DASHBOARD_PREFIX, cached_query
from backend.orders import services as order_services
from backend.orders.models import CustomerOrder


def _filtered_orders(product_type=None, customer_id=None, start_date=None, end_date=None):
    queryset = CustomerOrder.objects.all()
    if product_type:
        queryset = queryset.filter(product_type=product_type)
    if customer_id:
        queryset = queryset.filter(customer_id=customer_id)
    if start_date:
        queryset = queryset.filter(requested_delivery_date__gte=start_date)
    if end_date:
        queryset = queryset.filter(requested_delivery_date__lte=end_date)
    return queryset


@cached_query(cache_ttl=DASHBOARD_CACHE_TTL, key_prefix=DASHBOARD_PREFIX)
def get_dashboard_summary(product_type=None, customer_id=None, start_date=None, end_date=None):
    return order_services.get_dashboard_summary({
        'product_type': product_type,
        'customer_id': customer_id,
        'start_date': start_date,
        'end_date': end_date,
    })


@cached_query(cache_ttl=DASHBOARD_CACHE_TTL, key_prefix=DASHBOARD_PREFIX)
def get_orders_by_delivery_date(product_type=None, customer_id=None, start_date=None, end_date=None):
    queryset = _filtered_orders(product_type, customer_id, start_date, end_date)
    return order_services.get_orders_by_delivery_window(queryset)


@cached_query(cache_ttl=DASHBOARD_CACHE_TTL, key_prefix=DASHBOARD_PREFIX)
def get_top_customers(product_type=None, customer_id=None, start_date=None, end_date=None, limit=10):
    queryset = _filtered_orders(product_type, customer_id, start_date, end_date)
    return order_services.get_top_customers(queryset, limit=limit)
