"""
Management reports over customer orders, purchase orders and suppliers.

Each report is a plain dict so it can be returned by the API as-is or
handed to export_report.
"""
import csv
import io
import json
import logging
from datetime import date, datetime, time
from decimal import Decimal

from django.core.serializers.json import DjangoJSONEncoder
from django.utils import timezone

from backend.core.cache_utils import REPORTS_CACHE_TTL, REPORTS_PREFIX, cached_query
from backend.core.exceptions import ValidationFailedError
from backend.orders.models import CustomerOrder, OrderStatus, OrderStatusHistory
from backend.procurement.models import PurchaseOrder, PurchaseOrderStatus
from backend.suppliers.models import SupplierCapability

logger = logging.getLogger('backend.reports')

EXPORT_FORMATS = ('csv', 'json', 'excel')

DELAY_CATEGORIES = (
    ('Minor (1-2 days)', 0, 2),
    ('Moderate (3-7 days)', 2, 7),
    ('Major (8+ days)', 7, None),
)

GRADE_THRESHOLDS = (
    (95, 'A+'),
    (90, 'A'),
    (85, 'B+'),
    (80, 'B'),
    (75, 'C+'),
    (70, 'C'),
)

# Stage name, status the stage starts at, status that ends it
FULFILLMENT_STAGES = (
    ('Order Submission to Review', OrderStatus.SUBMITTED, OrderStatus.UNDER_REVIEW),
    ('Review to Purchase Order Creation', OrderStatus.UNDER_REVIEW, OrderStatus.PURCHASE_ORDERS_CREATED),
    ('Purchase Order to Delivery', OrderStatus.PURCHASE_ORDERS_CREATED, OrderStatus.DELIVERED),
)


def get_performance_grade(on_time_rate):
    for threshold, grade in GRADE_THRESHOLDS:
        if on_time_rate >= threshold:
            return grade
    return 'D'


def _percentage(part, total):
    return round(float(part) / float(total) * 100, 2) if total else 0.0


def _average(values):
    values = list(values)
    return round(sum(values) / len(values), 2) if values else 0.0


def _days_between(start, end):
    return (end - start).total_seconds() / 86400


def _window(from_date, to_date):
    if from_date is None or to_date is None:
        raise ValidationFailedError("from_date and to_date are required")
    if from_date > to_date:
        raise ValidationFailedError("from_date must be before or equal to to_date")
    start = timezone.make_aware(datetime.combine(from_date, time.min))
    end = timezone.make_aware(datetime.combine(to_date, time.max))
    return start, end


def _order_value(order):
    return sum((item.total_price for item in order.items.all()), Decimal('0.00'))


def _is_on_time(purchase_order):
    return timezone.localdate(purchase_order.delivered_at) <= purchase_order.required_delivery_date


def _delay_days(purchase_order):
    return max((timezone.localdate(purchase_order.delivered_at) - purchase_order.required_delivery_date).days, 0)


def _delivery_days(purchase_order):
    return _days_between(purchase_order.created_at, purchase_order.delivered_at)


def _delivered_purchase_orders(start, end, supplier_id=None, product_type=None):
    queryset = PurchaseOrder.objects.select_related('supplier', 'customer_order').filter(
        status=PurchaseOrderStatus.DELIVERED,
        delivered_at__gte=start,
        delivered_at__lte=end,
    )
    if supplier_id:
        queryset = queryset.filter(supplier_id=supplier_id)
    if product_type:
        queryset = queryset.filter(customer_order__product_type=product_type)
    return list(queryset)


def _delivery_stats(delivered):
    on_time = [po for po in delivered if _is_on_time(po)]
    late = [po for po in delivered if not _is_on_time(po)]
    return {
        'total_deliveries': len(delivered),
        'on_time_deliveries': len(on_time),
        'late_deliveries': len(late),
        'on_time_rate': _percentage(len(on_time), len(delivered)),
        'average_delivery_days': _average(_delivery_days(po) for po in delivered),
        'average_delay_days': _average(_delay_days(po) for po in late),
    }


def _month_starts(from_date, to_date):
    current = from_date.replace(day=1)
    while current <= to_date:
        yield current
        current = current.replace(year=current.year + 1, month=1) if current.month == 12 else current.replace(month=current.month + 1)


def _capacity_utilization(purchase_orders, capabilities):
    """Allocated units over the suppliers' monthly capacity, as a percentage"""
    allocated = sum(po.total_quantity for po in purchase_orders)
    capacity = sum(c.max_monthly_capacity for c in capabilities)
    return _percentage(allocated, capacity)


# --- Performance metrics ---

@cached_query(cache_ttl=REPORTS_CACHE_TTL, key_prefix=REPORTS_PREFIX)
def generate_performance_metrics_report(from_date, to_date, product_type=None, supplier_id=None,
                                        include_order_metrics=True, include_supplier_metrics=True,
                                        include_delivery_metrics=True):
    start, end = _window(from_date, to_date)
    logger.info(f"Generating performance metrics report {from_date} - {to_date}")

    orders = CustomerOrder.objects.filter(created_at__gte=start, created_at__lte=end).prefetch_related('items')
    if product_type:
        orders = orders.filter(product_type=product_type)
    orders = list(orders)

    report = {
        'generated_at': timezone.now(),
        'from_date': from_date,
        'to_date': to_date,
        'order_metrics': None,
        'supplier_metrics': [],
        'delivery_metrics': None,
        'trends': [],
    }

    if include_order_metrics:
        total_value = sum((_order_value(o) for o in orders), Decimal('0.00'))
        completed = sum(1 for o in orders if o.status == OrderStatus.DELIVERED)
        report['order_metrics'] = {
            'total_orders': len(orders),
            'completed_orders': completed,
            'pending_orders': sum(1 for o in orders if o.status not in OrderStatus.CLOSED),
            'cancelled_orders': sum(1 for o in orders if o.status == OrderStatus.CANCELLED),
            'total_value': total_value,
            'completion_rate': _percentage(completed, len(orders)),
            'average_order_value': round(total_value / len(orders), 2) if orders else Decimal('0.00'),
        }

    if include_supplier_metrics:
        report['supplier_metrics'] = _supplier_metrics(start, end, supplier_id, product_type)

    if include_delivery_metrics:
        report['delivery_metrics'] = _delivery_stats(
            _delivered_purchase_orders(start, end, supplier_id, product_type)
        )

    previous = None
    for month in _month_starts(from_date, to_date):
        count = sum(1 for o in orders if timezone.localdate(o.created_at).replace(day=1) == month)
        report['trends'].append({
            'period': month,
            'metric_name': 'Monthly Orders',
            'value': count,
            'change_from_previous': count - previous if previous is not None else 0,
        })
        previous = count
    return report


def _supplier_metrics(start, end, supplier_id=None, product_type=None):
    purchase_orders = PurchaseOrder.objects.filter(created_at__gte=start, created_at__lte=end).select_related(
        'supplier__performance', 'customer_order'
    ).prefetch_related('items', 'supplier__capabilities')
    if supplier_id:
        purchase_orders = purchase_orders.filter(supplier_id=supplier_id)
    if product_type:
        purchase_orders = purchase_orders.filter(customer_order__product_type=product_type)

    groups = {}
    for po in purchase_orders:
        groups.setdefault(po.supplier, []).append(po)

    metrics = []
    for supplier, supplier_orders in groups.items():
        performance = getattr(supplier, 'performance', None)
        metrics.append({
            'supplier_id': supplier.id,
            'supplier_name': supplier.name,
            'orders_assigned': len(supplier_orders),
            'orders_completed': sum(1 for po in supplier_orders if po.status == PurchaseOrderStatus.DELIVERED),
            'total_value': sum((po.total_value for po in supplier_orders), Decimal('0.00')),
            'on_time_delivery_rate': performance.on_time_delivery_rate if performance else 0.0,
            'quality_score': performance.quality_score if performance else 0.0,
            'capacity_utilization': _capacity_utilization(supplier_orders, supplier.capabilities.all()),
        })
    metrics.sort(key=lambda m: m['total_value'], reverse=True)
    return metrics


# --- Supplier distribution ---

def _distributions(purchase_orders):
    total_value = sum((po.total_value for po in purchase_orders), Decimal('0.00'))
    groups = {}
    for po in purchase_orders:
        groups.setdefault(po.supplier, []).append(po)

    rows = []
    for supplier, supplier_orders in groups.items():
        value = sum((po.total_value for po in supplier_orders), Decimal('0.00'))
        rows.append({
            'supplier_id': supplier.id,
            'supplier_name': supplier.name,
            'order_count': len(supplier_orders),
            'total_quantity': sum(po.total_quantity for po in supplier_orders),
            'total_value': value,
            'percentage': _percentage(value, total_value),
            'capacity_utilization': _capacity_utilization(supplier_orders, supplier.capabilities.all()),
        })
    rows.sort(key=lambda r: r['total_value'], reverse=True)
    return rows


@cached_query(cache_ttl=REPORTS_CACHE_TTL, key_prefix=REPORTS_PREFIX)
def generate_supplier_distribution_report(from_date, to_date, product_type=None,
                                          group_by_product_type=True, include_capacity_utilization=True):
    start, end = _window(from_date, to_date)
    logger.info(f"Generating supplier distribution report {from_date} - {to_date}")

    queryset = PurchaseOrder.objects.filter(created_at__gte=start, created_at__lte=end).select_related(
        'supplier', 'customer_order'
    ).prefetch_related('items', 'supplier__capabilities')
    if product_type:
        queryset = queryset.filter(customer_order__product_type=product_type)
    purchase_orders = list(queryset)
    total_value = sum((po.total_value for po in purchase_orders), Decimal('0.00'))

    report = {
        'generated_at': timezone.now(),
        'from_date': from_date,
        'to_date': to_date,
        'total_orders': len(purchase_orders),
        'total_value': total_value,
        'distributions': _distributions(purchase_orders),
        'product_type_distributions': [],
        'capacity_utilizations': [],
    }

    if group_by_product_type:
        by_type = {}
        for po in purchase_orders:
            by_type.setdefault(po.customer_order.product_type, []).append(po)
        for type_name, type_orders in sorted(by_type.items()):
            value = sum((po.total_value for po in type_orders), Decimal('0.00'))
            report['product_type_distributions'].append({
                'product_type': type_name,
                'order_count': len(type_orders),
                'total_value': value,
                'percentage': _percentage(value, total_value),
                'supplier_breakdown': _distributions(type_orders),
            })

    if include_capacity_utilization:
        capabilities = SupplierCapability.objects.filter(
            is_active=True, supplier__is_active=True
        ).select_related('supplier')
        if product_type:
            capabilities = capabilities.filter(product_type=product_type)
        for capability in capabilities:
            used = sum(
                po.total_quantity for po in purchase_orders
                if po.supplier_id == capability.supplier_id
                and po.customer_order.product_type == capability.product_type
            )
            report['capacity_utilizations'].append({
                'supplier_id': capability.supplier_id,
                'supplier_name': capability.supplier.name,
                'product_type': capability.product_type,
                'max_capacity': capability.max_monthly_capacity,
                'used_capacity': used,
                'utilization_rate': _percentage(used, capability.max_monthly_capacity),
                'available_capacity': max(capability.max_monthly_capacity - used, 0),
            })
    return report


# --- Order fulfillment ---

def _fulfillment_days(order, delivered_at):
    return _days_between(order.created_at, delivered_at)


def _delivered_at_by_order(order_ids):
    rows = OrderStatusHistory.objects.filter(
        order_id__in=order_ids, to_status=OrderStatus.DELIVERED
    ).values_list('order_id', 'changed_at')
    return dict(rows)


def _fulfillment_timelines(orders):
    history = {}
    for entry in OrderStatusHistory.objects.filter(order__in=orders).order_by('changed_at'):
        history.setdefault(entry.order_id, {}).setdefault(entry.to_status, entry.changed_at)

    timelines = []
    for stage, from_status, to_status in FULFILLMENT_STAGES:
        durations = []
        for order in orders:
            reached = history.get(order.id, {})
            if from_status in reached and to_status in reached:
                durations.append(_days_between(reached[from_status], reached[to_status]))
        timelines.append({
            'stage': stage,
            'average_days': _average(durations),
            'min_days': round(min(durations), 2) if durations else 0.0,
            'max_days': round(max(durations), 2) if durations else 0.0,
            'order_count': len(durations),
        })
    return timelines


@cached_query(cache_ttl=REPORTS_CACHE_TTL, key_prefix=REPORTS_PREFIX)
def generate_order_fulfillment_report(from_date, to_date, customer_id=None, product_type=None,
                                      group_by_status=True, group_by_customer=True, include_timelines=True):
    start, end = _window(from_date, to_date)
    logger.info(f"Generating order fulfillment report {from_date} - {to_date}")

    queryset = CustomerOrder.objects.filter(created_at__gte=start, created_at__lte=end).prefetch_related('items')
    if customer_id:
        queryset = queryset.filter(customer_id=customer_id)
    if product_type:
        queryset = queryset.filter(product_type=product_type)
    orders = list(queryset)
    delivered_at = _delivered_at_by_order([o.id for o in orders])

    def average_fulfillment(group):
        return _average(
            _fulfillment_days(o, delivered_at[o.id]) for o in group
            if o.status == OrderStatus.DELIVERED and o.id in delivered_at
        )

    report = {
        'generated_at': timezone.now(),
        'from_date': from_date,
        'to_date': to_date,
        'total_orders': len(orders),
        'status_summaries': [],
        'customer_summaries': [],
        'timelines': [],
        'average_fulfillment_days': average_fulfillment(orders),
    }

    if group_by_status:
        by_status = {}
        for order in orders:
            by_status.setdefault(order.status, []).append(order)
        now = timezone.now()
        for status_name, group in by_status.items():
            report['status_summaries'].append({
                'status': status_name,
                'count': len(group),
                'percentage': _percentage(len(group), len(orders)),
                'total_value': sum((_order_value(o) for o in group), Decimal('0.00')),
                'average_days_in_status': _average(_days_between(o.updated_at, now) for o in group),
            })
        report['status_summaries'].sort(key=lambda s: s['count'], reverse=True)

    if group_by_customer:
        by_customer = {}
        for order in orders:
            by_customer.setdefault((order.customer_id, order.customer_name), []).append(order)
        for (cust_id, cust_name), group in by_customer.items():
            delivered = sum(1 for o in group if o.status == OrderStatus.DELIVERED)
            report['customer_summaries'].append({
                'customer_id': cust_id,
                'customer_name': cust_name,
                'order_count': len(group),
                'total_value': sum((_order_value(o) for o in group), Decimal('0.00')),
                'completion_rate': _percentage(delivered, len(group)),
                'average_fulfillment_days': average_fulfillment(group),
            })
        report['customer_summaries'].sort(key=lambda s: s['total_value'], reverse=True)

    if include_timelines:
        report['timelines'] = _fulfillment_timelines(orders)
    return report


# --- Delivery performance ---

@cached_query(cache_ttl=REPORTS_CACHE_TTL, key_prefix=REPORTS_PREFIX)
def generate_delivery_performance_report(from_date, to_date, supplier_id=None, product_type=None,
                                         group_by_supplier=True, include_delay_analysis=True, group_by_month=True):
    start, end = _window(from_date, to_date)
    logger.info(f"Generating delivery performance report {from_date} - {to_date}")

    delivered = _delivered_purchase_orders(start, end, supplier_id, product_type)
    stats = _delivery_stats(delivered)
    report = {
        'generated_at': timezone.now(),
        'from_date': from_date,
        'to_date': to_date,
        'total_deliveries': stats['total_deliveries'],
        'on_time_delivery_rate': stats['on_time_rate'],
        'average_delivery_days': stats['average_delivery_days'],
        'supplier_performances': [],
        'delay_analyses': [],
        'monthly_trends': [],
    }

    if group_by_supplier:
        by_supplier = {}
        for po in delivered:
            by_supplier.setdefault(po.supplier, []).append(po)
        for supplier, group in by_supplier.items():
            supplier_stats = _delivery_stats(group)
            report['supplier_performances'].append({
                'supplier_id': supplier.id,
                'supplier_name': supplier.name,
                'total_deliveries': supplier_stats['total_deliveries'],
                'on_time_deliveries': supplier_stats['on_time_deliveries'],
                'on_time_rate': supplier_stats['on_time_rate'],
                'average_delivery_days': supplier_stats['average_delivery_days'],
                'average_delay_days': supplier_stats['average_delay_days'],
                'performance_grade': get_performance_grade(supplier_stats['on_time_rate']),
            })
        report['supplier_performances'].sort(key=lambda p: p['on_time_rate'], reverse=True)

    if include_delay_analysis:
        report['delay_analyses'] = delay_analysis(delivered)

    if group_by_month:
        by_month = {}
        for po in delivered:
            by_month.setdefault(timezone.localdate(po.delivered_at).replace(day=1), []).append(po)
        previous_rate = None
        for month in sorted(by_month):
            month_stats = _delivery_stats(by_month[month])
            report['monthly_trends'].append({
                'month': month,
                'total_deliveries': month_stats['total_deliveries'],
                'on_time_rate': month_stats['on_time_rate'],
                'average_delivery_days': month_stats['average_delivery_days'],
                'change_from_previous_month': (
                    round(month_stats['on_time_rate'] - previous_rate, 2) if previous_rate is not None else 0.0
                ),
            })
            previous_rate = month_stats['on_time_rate']
    return report


def delay_analysis(delivered):
    """Late deliveries bucketed into minor, moderate and major delays"""
    late = [po for po in delivered if not _is_on_time(po)]
    if not late:
        return []

    analyses = []
    for category, lower, upper in DELAY_CATEGORIES:
        bucket = [
            po for po in late
            if _delay_days(po) > lower and (upper is None or _delay_days(po) <= upper)
        ]
        analyses.append({
            'delay_category': category,
            'count': len(bucket),
            'percentage': _percentage(len(bucket), len(late)),
            'average_delay_days': _average(_delay_days(po) for po in bucket),
        })
    return analyses


# --- Export ---

def _csv_value(value):
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return value


def _write_section(writer, name, rows):
    writer.writerow([])
    writer.writerow([name])
    if not rows:
        return
    columns = [key for key, value in rows[0].items() if not isinstance(value, (list, dict))]
    writer.writerow(columns)
    for row in rows:
        writer.writerow([_csv_value(row.get(column)) for column in columns])


def report_to_csv(report):
    """Flatten a report dict: scalars first, then one block per list or nested dict"""
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(['Field', 'Value'])
    sections = []
    for key, value in report.items():
        if isinstance(value, list):
            sections.append((key, value))
        elif isinstance(value, dict):
            sections.append((key, [value]))
        elif value is not None:
            writer.writerow([key, _csv_value(value)])
    for name, rows in sections:
        _write_section(writer, name, rows)
    return buffer.getvalue()


def export_report(report, export_format='csv'):
    """
    Serialize a report. Returns (content, content_type, file_extension);
    "excel" is served as CSV.
    """
    export_format = (export_format or 'csv').lower()
    if export_format not in EXPORT_FORMATS:
        raise ValidationFailedError(f"Unsupported export format: {export_format}")

    if export_format == 'json':
        return json.dumps(report, cls=DjangoJSONEncoder, indent=2), 'application/json', 'json'
    return report_to_csv(report), 'text/csv', 'csv'
