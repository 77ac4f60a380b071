"""
Comprehensive test suite for Reports module
Tests: Performance metrics, supplier distribution, order fulfillment, delivery performance,
exports, dashboard endpoints and cache invalidation
"""
import json
from datetime import timedelta
from decimal import Decimal

from django.core.cache import cache
from django.test import TestCase, override_settings
from django.utils import timezone
from rest_framework import status

from backend.core.cache_utils import make_cache_key
from backend.core.exceptions import ValidationFailedError
from backend.core.models import AuditLog
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.orders import services as order_services
from backend.orders.models import OrderStatus
from backend.procurement import portal
from backend.procurement import services as procurement_services
from backend.procurement.models import PurchaseOrder, PurchaseOrderStatus
from . import dashboard, services

LOCMEM_CACHES = {
    'default': {
        'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
        'LOCATION': 'reports-tests',
    }
}

DELIVERY_CHAIN = [
    OrderStatus.UNDER_REVIEW,
    OrderStatus.PLANNING_IN_PROGRESS,
    OrderStatus.PURCHASE_ORDERS_CREATED,
    OrderStatus.AWAITING_SUPPLIER_CONFIRMATION,
    OrderStatus.IN_PRODUCTION,
    OrderStatus.READY_FOR_DELIVERY,
    OrderStatus.DELIVERED,
]


def delivered_purchase_order(order, supplier, days_late=0, quantity=None):
    """A delivered PO; `days_late` > 0 puts the required date in the past"""
    today = timezone.now().date()
    required = today - timedelta(days=days_late) if days_late else order.requested_delivery_date
    purchase_order = TestDataFactory.create_purchase_order(
        order, supplier, quantity=quantity, status=PurchaseOrderStatus.DELIVERED, required_delivery_date=required
    )
    PurchaseOrder.objects.filter(pk=purchase_order.pk).update(delivered_at=timezone.now())
    return purchase_order


class ReportHelperTests(TestCase):
    """Test grading, date windows and export formats"""

    def test_performance_grade(self):
        cases = [(100, 'A+'), (95, 'A+'), (92.5, 'A'), (85, 'B+'), (80, 'B'), (79.99, 'C+'), (70, 'C'), (69.9, 'D'), (0, 'D')]
        for rate, grade in cases:
            self.assertEqual(services.get_performance_grade(rate), grade)

    def test_date_window_validation(self):
        today = timezone.now().date()
        with self.assertRaises(ValidationFailedError) as ctx:
            services.generate_performance_metrics_report(None, today)
        self.assertEqual(ctx.exception.message, "from_date and to_date are required")
        with self.assertRaises(ValidationFailedError) as ctx:
            services.generate_delivery_performance_report(today, today - timedelta(days=1))
        self.assertEqual(ctx.exception.message, "from_date must be before or equal to to_date")

    def test_export_formats(self):
        """Test CSV, JSON and Excel exports"""
        report = {
            'generated_at': timezone.now(),
            'total_orders': 2,
            'total_value': Decimal('12.50'),
            'order_metrics': {'total_orders': 2, 'completion_rate': 50.0},
            'distributions': [{'supplier_name': 'Alpha', 'total_value': Decimal('12.50'), 'nested': []}],
            'notes': None,
        }
        content, content_type, extension = services.export_report(report, 'csv')
        self.assertEqual((content_type, extension), ('text/csv', 'csv'))
        lines = content.splitlines()
        self.assertEqual(lines[0], 'Field,Value')
        self.assertIn('total_value,12.50', lines)
        self.assertIn('distributions', lines)
        self.assertIn('supplier_name,total_value', lines)
        self.assertNotIn('notes', content)

        content, content_type, extension = services.export_report(report, 'JSON')
        self.assertEqual((content_type, extension), ('application/json', 'json'))
        self.assertEqual(json.loads(content)['total_value'], '12.50')

        content, content_type, extension = services.export_report(report, 'excel')
        self.assertEqual(extension, 'csv')

        with self.assertRaises(ValidationFailedError):
            services.export_report(report, 'pdf')


class ReportGenerationTests(TestCase):
    """Test report contents over a small data set"""

    def setUp(self):
        self.today = timezone.now().date()
        self.from_date = self.today - timedelta(days=30)
        self.alpha = TestDataFactory.create_supplier(name='Alpha Radio', max_capacity=1000)
        self.beta = TestDataFactory.create_supplier(name='Beta Parts', max_capacity=500)

        self.delivered = TestDataFactory.create_order(customer_id='CUST-A', status=OrderStatus.DELIVERED)
        self.pending = TestDataFactory.create_order(customer_id='CUST-A')
        self.cancelled = TestDataFactory.create_order(customer_id='CUST-B', status=OrderStatus.CANCELLED)

    def test_performance_metrics(self):
        delivered_purchase_order(self.delivered, self.alpha, quantity=60)
        delivered_purchase_order(self.delivered, self.beta, quantity=40, days_late=3)

        report = services.generate_performance_metrics_report(self.from_date, self.today)
        metrics = report['order_metrics']
        self.assertEqual(metrics['total_orders'], 3)
        self.assertEqual(metrics['completed_orders'], 1)
        self.assertEqual(metrics['pending_orders'], 1)
        self.assertEqual(metrics['cancelled_orders'], 1)
        self.assertEqual(metrics['total_value'], Decimal('3000.00'))
        self.assertEqual(metrics['completion_rate'], 33.33)
        self.assertEqual(metrics['average_order_value'], Decimal('1000.00'))

        self.assertEqual([m['supplier_name'] for m in report['supplier_metrics']], ['Alpha Radio', 'Beta Parts'])
        self.assertEqual(report['supplier_metrics'][0]['capacity_utilization'], 6.0)
        self.assertEqual(report['delivery_metrics']['total_deliveries'], 2)
        self.assertEqual(report['delivery_metrics']['on_time_rate'], 50.0)
        self.assertEqual(report['delivery_metrics']['average_delay_days'], 3.0)
        self.assertEqual(sum(t['value'] for t in report['trends']), 3)

    def test_performance_metrics_sections_optional(self):
        report = services.generate_performance_metrics_report(
            self.from_date, self.today, include_order_metrics=False,
            include_supplier_metrics=False, include_delivery_metrics=False,
        )
        self.assertIsNone(report['order_metrics'])
        self.assertEqual(report['supplier_metrics'], [])
        self.assertIsNone(report['delivery_metrics'])

    def test_supplier_distribution(self):
        TestDataFactory.create_purchase_order(self.pending, self.alpha, quantity=60)
        TestDataFactory.create_purchase_order(self.pending, self.beta, quantity=40)

        report = services.generate_supplier_distribution_report(self.from_date, self.today)
        self.assertEqual(report['total_orders'], 2)
        self.assertEqual(report['total_value'], Decimal('1000.00'))
        self.assertEqual(
            [(d['supplier_name'], d['percentage']) for d in report['distributions']],
            [('Alpha Radio', 60.0), ('Beta Parts', 40.0)]
        )
        self.assertEqual(len(report['product_type_distributions']), 1)
        self.assertEqual(report['product_type_distributions'][0]['percentage'], 100.0)

        utilization = {u['supplier_name']: u for u in report['capacity_utilizations']}
        self.assertEqual(utilization['Alpha Radio']['utilization_rate'], 6.0)
        self.assertEqual(utilization['Beta Parts']['utilization_rate'], 8.0)
        self.assertEqual(utilization['Beta Parts']['available_capacity'], 460)

    def test_order_fulfillment(self):
        """Test fulfillment timelines come from status history"""
        order = TestDataFactory.create_order(customer_id='CUST-C')
        for new_status in DELIVERY_CHAIN:
            order_services.update_order_status(order.id, new_status)

        report = services.generate_order_fulfillment_report(self.from_date, self.today)
        self.assertEqual(report['total_orders'], 4)
        statuses = {s['status']: s['count'] for s in report['status_summaries']}
        self.assertEqual(statuses[OrderStatus.DELIVERED], 2)
        self.assertEqual(statuses[OrderStatus.SUBMITTED], 1)

        customers = {c['customer_id']: c for c in report['customer_summaries']}
        self.assertEqual(customers['CUST-A']['order_count'], 2)
        self.assertEqual(customers['CUST-A']['completion_rate'], 50.0)
        self.assertEqual(customers['CUST-C']['completion_rate'], 100.0)

        self.assertEqual([t['order_count'] for t in report['timelines']], [1, 1, 1])
        self.assertGreaterEqual(report['average_fulfillment_days'], 0.0)

        report = services.generate_order_fulfillment_report(self.from_date, self.today, customer_id='CUST-B',
                                                            include_timelines=False)
        self.assertEqual(report['total_orders'], 1)
        self.assertEqual(report['timelines'], [])

    def test_delivery_performance(self):
        """Test on-time rates, grades and delay buckets"""
        delivered_purchase_order(self.delivered, self.alpha)
        delivered_purchase_order(self.delivered, self.alpha, days_late=3)
        delivered_purchase_order(self.delivered, self.beta, days_late=10)

        report = services.generate_delivery_performance_report(self.from_date, self.today)
        self.assertEqual(report['total_deliveries'], 3)
        self.assertEqual(report['on_time_delivery_rate'], 33.33)

        performances = report['supplier_performances']
        self.assertEqual([p['supplier_name'] for p in performances], ['Alpha Radio', 'Beta Parts'])
        self.assertEqual(performances[0]['on_time_rate'], 50.0)
        self.assertEqual(performances[0]['performance_grade'], 'D')
        self.assertEqual(performances[1]['average_delay_days'], 10.0)

        buckets = {d['delay_category']: d['count'] for d in report['delay_analyses']}
        self.assertEqual(buckets, {'Minor (1-2 days)': 0, 'Moderate (3-7 days)': 1, 'Major (8+ days)': 1})
        self.assertEqual(len(report['monthly_trends']), 1)
        self.assertEqual(report['monthly_trends'][0]['change_from_previous_month'], 0.0)

        filtered = services.generate_delivery_performance_report(self.from_date, self.today, supplier_id=self.beta.id)
        self.assertEqual(filtered['total_deliveries'], 1)
        self.assertEqual(filtered['on_time_delivery_rate'], 0.0)

    def test_no_late_deliveries(self):
        delivered_purchase_order(self.delivered, self.alpha)
        report = services.generate_delivery_performance_report(self.from_date, self.today)
        self.assertEqual(report['delay_analyses'], [])
        self.assertEqual(report['supplier_performances'][0]['performance_grade'], 'A+')


class ReportAPITests(TestCase):
    """Test report and dashboard endpoints"""

    def setUp(self):
        self.user = TestDataFactory.create_planner()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        supplier = TestDataFactory.create_supplier(name='Alpha Radio')
        order = TestDataFactory.create_order(customer_id='CUST-A', delivery_in_days=5)
        delivered_purchase_order(order, supplier)

    def test_reports(self):
        """Test each report renders with the default date range"""
        for name in ('performance-metrics', 'supplier-distribution', 'order-fulfillment', 'delivery-performance'):
            response = self.client.get(f'/api/v1/reports/{name}/')
            self.assertEqual(response.status_code, status.HTTP_200_OK, name)
            self.assertEqual(response.data['to_date'], timezone.now().date())
            self.assertEqual(response.data['from_date'], timezone.now().date() - timedelta(days=30))

    def test_report_parameter_errors(self):
        response = self.client.get('/api/v1/reports/delivery-performance/', {
            'from_date': '2030-02-01', 'to_date': '2030-01-01'
        })
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        response = self.client.get('/api/v1/reports/order-fulfillment/', {'from_date': 'last month'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        response = self.client.get('/api/v1/reports/performance-metrics/', {'supplier_id': 'alpha'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        response = self.client.get('/api/v1/reports/sales-summary/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_export(self):
        """Test report download is an attachment and audited"""
        response = self.client.get('/api/v1/reports/delivery-performance/export/', {'format_type': 'json'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response['Content-Type'], 'application/json')
        self.assertIn('attachment; filename="delivery_performance_', response['Content-Disposition'])
        self.assertEqual(json.loads(response.content)['total_deliveries'], 1)
        self.assertTrue(AuditLog.objects.filter(
            action='export', entity_type='Report', entity_id='delivery-performance'
        ).exists())

        response = self.client.get('/api/v1/reports/supplier-distribution/export/')
        self.assertEqual(response['Content-Type'], 'text/csv')
        self.assertTrue(response['Content-Disposition'].endswith('.csv"'))

        response = self.client.get('/api/v1/reports/supplier-distribution/export/', {'format_type': 'pdf'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_dashboard_endpoints(self):
        TestDataFactory.create_order(customer_id='CUST-B', delivery_in_days=10)
        TestDataFactory.create_order(customer_id='CUST-B', delivery_in_days=10)

        response = self.client.get('/api/v1/reports/dashboard/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total_orders'], 3)

        response = self.client.get('/api/v1/reports/dashboard/delivery-dates/')
        self.assertEqual([row['order_count'] for row in response.data], [1, 2])

        response = self.client.get('/api/v1/reports/dashboard/top-customers/', {'limit': 1})
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['customer_id'], 'CUST-B')

        response = self.client.get('/api/v1/reports/dashboard/top-customers/', {'limit': 'all'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        response = self.client.get('/api/v1/reports/dashboard/', {'start_date': 'today'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_customer_forbidden(self):
        self.client.authenticate_user(TestDataFactory.create_customer_user())
        response = self.client.get('/api/v1/reports/performance-metrics/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


@override_settings(CACHES=LOCMEM_CACHES)
class CacheInvalidationTests(TestCase):
    """Test cached queries are dropped when the underlying data changes"""

    def setUp(self):
        cache.clear()

    def test_cache_key(self):
        self.assertEqual(make_cache_key('reports', 'a', x=1), make_cache_key('reports', 'a', x=1))
        self.assertNotEqual(make_cache_key('reports', 'a', x=1), make_cache_key('reports', 'a', x=2))
        self.assertTrue(make_cache_key('dashboard', 'a').startswith('dashboard:'))

    def test_dashboard_cache_invalidated_on_order_change(self):
        TestDataFactory.create_order()
        self.assertEqual(dashboard.get_dashboard_summary()['total_orders'], 1)

        # Invalidation waits for commit, so the cached summary is still served
        TestDataFactory.create_order()
        self.assertEqual(dashboard.get_dashboard_summary()['total_orders'], 1)

        with self.captureOnCommitCallbacks(execute=True):
            TestDataFactory.create_order()
        self.assertEqual(dashboard.get_dashboard_summary()['total_orders'], 3)

    def test_report_cache(self):
        today = timezone.now().date()
        from_date = today - timedelta(days=7)
        TestDataFactory.create_order()
        first = services.generate_order_fulfillment_report(from_date, today)
        self.assertEqual(first['total_orders'], 1)

        TestDataFactory.create_order()
        self.assertEqual(services.generate_order_fulfillment_report(from_date, today)['total_orders'], 1)
        self.assertEqual(services.generate_order_fulfillment_report.uncached(from_date, today)['total_orders'], 2)

    def test_supplier_dashboard_invalidated_on_purchase_order_change(self):
        supplier = TestDataFactory.create_supplier()
        order = TestDataFactory.create_order(status=OrderStatus.PLANNING_IN_PROGRESS)
        with self.captureOnCommitCallbacks(execute=True):
            purchase_order = procurement_services.create_purchase_orders(order.id, [
                {'supplier_id': supplier.id, 'allocated_quantity': 100}
            ])[0]
        self.assertEqual(portal.get_supplier_dashboard_summary(supplier.id)['pending_orders_count'], 1)

        with self.captureOnCommitCallbacks(execute=True):
            procurement_services.confirm_purchase_order(purchase_order.id)
        summary = portal.get_supplier_dashboard_summary(supplier.id)
        self.assertEqual(summary['pending_orders_count'], 0)
        self.assertEqual(summary['confirmed_orders_count'], 1)
