"""
Comprehensive test suite for Orders module
Tests: Order creation and editing, status workflow, milestones, at-risk detection,
automatic transitions, customer tracking API and edge cases
"""
from datetime import timedelta
from decimal import Decimal
from io import StringIO

from django.core import mail
from django.core.management import call_command
from django.test import TestCase
from django.utils import timezone
from rest_framework import status

from backend.core.exceptions import InvalidOperationError, ValidationFailedError
from backend.core.models import AuditLog
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.orders import services, tracking
from backend.orders.models import CustomerOrder, OrderMilestone, OrderStatus, OrderStatusHistory
from backend.procurement.models import PurchaseOrderStatus

FULL_CHAIN = [
    OrderStatus.UNDER_REVIEW,
    OrderStatus.PLANNING_IN_PROGRESS,
    OrderStatus.PURCHASE_ORDERS_CREATED,
    OrderStatus.AWAITING_SUPPLIER_CONFIRMATION,
    OrderStatus.IN_PRODUCTION,
    OrderStatus.READY_FOR_DELIVERY,
    OrderStatus.DELIVERED,
]


def order_payload(**overrides):
    data = {
        'customer_id': 'CUST-001',
        'customer_name': 'Contoso',
        'product_type': 'LMR',
        'requested_delivery_date': (timezone.now().date() + timedelta(days=30)).isoformat(),
        'items': [
            {'product_code': 'LMR-100', 'description': 'Radio unit', 'quantity': 60, 'unit': 'pcs', 'unit_price': '12.50'},
            {'product_code': 'LMR-200', 'description': 'Antenna', 'quantity': 40, 'unit': 'pcs'}
        ]
    }
    data.update(overrides)
    return data


class CustomerOrderModelTests(TestCase):
    """Test CustomerOrder model methods"""

    def test_totals(self):
        """Test total quantity and value over items"""
        order = TestDataFactory.create_order(quantities=(10, 5), unit_price=Decimal('2.50'))
        self.assertEqual(order.total_quantity, 15)
        self.assertEqual(order.total_value, Decimal('37.50'))

    def test_is_overdue(self):
        """Test overdue only applies to open orders past their date"""
        order = TestDataFactory.create_order(delivery_in_days=-1)
        self.assertTrue(order.is_overdue)
        order.status = OrderStatus.DELIVERED
        self.assertFalse(order.is_overdue)

    def test_transitions(self):
        """Test the allowed transition table"""
        order = CustomerOrder(status=OrderStatus.SUBMITTED)
        self.assertTrue(order.can_transition_to(OrderStatus.UNDER_REVIEW))
        self.assertTrue(order.can_transition_to(OrderStatus.CANCELLED))
        self.assertFalse(order.can_transition_to(OrderStatus.IN_PRODUCTION))
        order.status = OrderStatus.DELIVERED
        self.assertFalse(order.can_transition_to(OrderStatus.CANCELLED))
        with self.assertRaises(ValueError):
            order.transition_to(OrderStatus.CANCELLED)


class OrderServiceTests(TestCase):
    """Test order creation, editing and status changes"""

    def setUp(self):
        self.planner = TestDataFactory.create_planner()

    def test_create_order_initial_tracking(self):
        """Test a new order gets a history row and the first milestone"""
        order = services.create_order(
            {
                'customer_id': 'CUST-9',
                'customer_name': 'Fabrikam',
                'product_type': 'FFV',
                'requested_delivery_date': timezone.now().date() + timedelta(days=10),
                'items': [{'product_code': 'F-1', 'description': 'Crates', 'quantity': 5, 'unit': 'box'}],
            },
            user=self.planner,
        )
        self.assertEqual(order.status, OrderStatus.SUBMITTED)
        self.assertTrue(order.order_number.startswith('ORD-'))
        self.assertEqual(order.status_history.count(), 1)
        self.assertEqual(list(order.milestones.values_list('name', flat=True)), [tracking.MILESTONE_ORDER_SUBMITTED])
        self.assertTrue(AuditLog.objects.filter(action='order_create', entity_id=str(order.id)).exists())

    def test_create_order_validation(self):
        """Test required data for new orders"""
        base = {
            'customer_id': 'C',
            'customer_name': 'N',
            'product_type': 'LMR',
            'requested_delivery_date': timezone.now().date() + timedelta(days=5),
            'items': [{'product_code': 'X', 'description': 'X', 'quantity': 1, 'unit': 'pcs'}],
        }
        for override, message in [
            ({'requested_delivery_date': timezone.now().date()}, "Requested delivery date must be in the future"),
            ({'items': []}, "Order must contain at least one item"),
            ({'product_type': 'XYZ'}, "Invalid product type: XYZ"),
            ({'customer_name': ''}, "Customer name is required"),
        ]:
            with self.assertRaises(ValidationFailedError) as ctx:
                services.create_order({**base, **override})
            self.assertEqual(ctx.exception.message, message)
        self.assertEqual(CustomerOrder.objects.count(), 0)

    def test_full_status_chain(self):
        """Test walking an order to Delivered records history and completes milestones"""
        order = TestDataFactory.create_order()
        for new_status in FULL_CHAIN:
            services.update_order_status(order.id, new_status, user=self.planner)

        order.refresh_from_db()
        self.assertEqual(order.status, OrderStatus.DELIVERED)
        self.assertEqual(order.status_history.count(), len(FULL_CHAIN) + 1)
        milestones = order.milestones.all()
        self.assertEqual(milestones.count(), 6)
        self.assertFalse(milestones.exclude(status=OrderMilestone.STATUS_COMPLETED).exists())

    def test_invalid_transition_is_refused_and_audited(self):
        """Test skipping ahead in the workflow fails"""
        order = TestDataFactory.create_order()
        with self.assertRaises(InvalidOperationError) as ctx:
            services.update_order_status(order.id, OrderStatus.DELIVERED, user=self.planner)
        self.assertEqual(ctx.exception.message, "Cannot transition order from Submitted to Delivered")
        self.assertEqual(ctx.exception.code, 'invalid_transition')
        order.refresh_from_db()
        self.assertEqual(order.status, OrderStatus.SUBMITTED)
        self.assertTrue(AuditLog.objects.filter(
            action='order_status_change', result=AuditLog.RESULT_VALIDATION_ERROR
        ).exists())

    def test_unknown_status(self):
        """Test unknown statuses are rejected"""
        order = TestDataFactory.create_order()
        with self.assertRaises(ValidationFailedError):
            services.update_order_status(order.id, 'Shipped')

    def test_cancel_cancels_pending_milestones(self):
        """Test cancelling an order cancels its pending milestones"""
        order = TestDataFactory.create_order()
        services.update_order_status(order.id, OrderStatus.UNDER_REVIEW, user=self.planner)
        services.update_order_status(order.id, OrderStatus.CANCELLED, user=self.planner, reason='Customer request')

        statuses = set(order.milestones.values_list('name', 'status'))
        self.assertIn((tracking.MILESTONE_ORDER_SUBMITTED, OrderMilestone.STATUS_COMPLETED), statuses)
        self.assertIn((tracking.MILESTONE_REVIEW_COMPLETED, OrderMilestone.STATUS_CANCELLED), statuses)
        last = OrderStatusHistory.objects.filter(order=order).last()
        self.assertEqual(last.reason, 'Customer request')

    def test_status_change_emails_customer(self):
        """Test the order creator is emailed about status changes"""
        customer = TestDataFactory.create_customer_user(email='buyer@contoso.test')
        order = TestDataFactory.create_order(customer_id=customer.customer_id, created_by=customer)
        services.update_order_status(order.id, OrderStatus.UNDER_REVIEW, user=self.planner)
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ['buyer@contoso.test'])
        self.assertIn(order.order_number, mail.outbox[0].subject)

    def test_update_order_replaces_items(self):
        """Test editing an order while it can still change"""
        order = TestDataFactory.create_order(quantities=(10,))
        updated = services.update_order(order.id, {
            'customer_name': 'Renamed',
            'items': [
                {'product_code': 'A', 'description': 'A', 'quantity': 3, 'unit': 'pcs'},
                {'product_code': 'B', 'description': 'B', 'quantity': 4, 'unit': 'pcs'},
            ],
        })
        self.assertEqual(updated.customer_name, 'Renamed')
        self.assertEqual(updated.total_quantity, 7)

    def test_update_order_after_planning_started(self):
        """Test orders in planning can no longer be edited"""
        order = TestDataFactory.create_order(status=OrderStatus.PLANNING_IN_PROGRESS)
        with self.assertRaises(InvalidOperationError):
            services.update_order(order.id, {'customer_name': 'Too late'})

    def test_delete_only_submitted(self):
        """Test only submitted orders can be deleted"""
        order = TestDataFactory.create_order(status=OrderStatus.UNDER_REVIEW)
        with self.assertRaises(InvalidOperationError):
            services.delete_order(order.id)
        submitted = TestDataFactory.create_order()
        self.assertTrue(services.delete_order(submitted.id))
        self.assertFalse(CustomerOrder.objects.filter(pk=submitted.id).exists())

    def test_orders_by_delivery_date(self):
        """Test the delivery date range query"""
        soon = TestDataFactory.create_order(delivery_in_days=5)
        TestDataFactory.create_order(delivery_in_days=40)
        today = timezone.now().date()
        orders = services.get_orders_by_delivery_date(today, today + timedelta(days=10))
        self.assertEqual(list(orders), [soon])
        with self.assertRaises(ValidationFailedError):
            services.get_orders_by_delivery_date(today + timedelta(days=10), today)

    def test_dashboard_summary(self):
        """Test dashboard counts and values"""
        TestDataFactory.create_order(customer_id='A', quantities=(10,), unit_price=Decimal('1.00'))
        TestDataFactory.create_order(customer_id='A', quantities=(5,), unit_price=Decimal('2.00'),
                                     status=OrderStatus.UNDER_REVIEW)
        TestDataFactory.create_order(customer_id='B', product_type='FFV', delivery_in_days=-2)

        summary = services.get_dashboard_summary()
        self.assertEqual(summary['total_orders'], 3)
        self.assertEqual(summary['status_counts'][OrderStatus.SUBMITTED], 2)
        self.assertEqual(summary['product_type_counts'], {'LMR': 2, 'FFV': 1})
        self.assertEqual(summary['overdue_orders'], 1)
        self.assertEqual(summary['total_value'], Decimal('1020.00'))
        self.assertEqual(summary['top_customers'][0]['customer_id'], 'A')
        self.assertEqual(summary['top_customers'][0]['order_count'], 2)

        filtered = services.get_dashboard_summary({'product_type': 'FFV'})
        self.assertEqual(filtered['total_orders'], 1)


class OrderTrackingTests(TestCase):
    """Test at-risk detection and automatic transitions"""

    def setUp(self):
        self.supplier = TestDataFactory.create_supplier()

    def test_at_risk_orders(self):
        """Test overdue and soon-due unreviewed orders are at risk"""
        soon = TestDataFactory.create_order(delivery_in_days=2)
        overdue = TestDataFactory.create_order(delivery_in_days=-1, status=OrderStatus.IN_PRODUCTION)
        TestDataFactory.create_order(delivery_in_days=2, status=OrderStatus.PLANNING_IN_PROGRESS)
        TestDataFactory.create_order(delivery_in_days=10)
        TestDataFactory.create_order(delivery_in_days=-1, status=OrderStatus.DELIVERED)
        self.assertEqual(list(tracking.get_at_risk_orders()), [overdue, soon])

    def test_orders_requiring_attention(self):
        """Test urgent and stale orders need attention"""
        urgent = TestDataFactory.create_order(delivery_in_days=1, status=OrderStatus.IN_PRODUCTION)
        stale = TestDataFactory.create_order(delivery_in_days=20)
        CustomerOrder.objects.filter(pk=stale.pk).update(created_at=timezone.now() - timedelta(hours=30))
        TestDataFactory.create_order(delivery_in_days=20)
        self.assertEqual(list(tracking.get_orders_requiring_attention()), [urgent, stale])

    def test_validate_status_transition(self):
        """Test reporting allowed next statuses"""
        order = TestDataFactory.create_order()
        result = tracking.validate_status_transition(order.id, OrderStatus.UNDER_REVIEW)
        self.assertTrue(result['is_valid'])
        self.assertEqual(result['allowed_statuses'], [OrderStatus.CANCELLED, OrderStatus.UNDER_REVIEW])

    def test_automatic_transitions(self):
        """Test orders advance once all live purchase orders progressed"""
        confirmed = TestDataFactory.create_order(status=OrderStatus.AWAITING_SUPPLIER_CONFIRMATION)
        TestDataFactory.create_purchase_order(confirmed, self.supplier, status=PurchaseOrderStatus.CONFIRMED)
        TestDataFactory.create_purchase_order(confirmed, self.supplier, status=PurchaseOrderStatus.CANCELLED)

        waiting = TestDataFactory.create_order(status=OrderStatus.AWAITING_SUPPLIER_CONFIRMATION)
        TestDataFactory.create_purchase_order(waiting, self.supplier, status=PurchaseOrderStatus.CONFIRMED)
        TestDataFactory.create_purchase_order(waiting, self.supplier, status=PurchaseOrderStatus.SENT_TO_SUPPLIER)

        ready = TestDataFactory.create_order(status=OrderStatus.IN_PRODUCTION)
        TestDataFactory.create_purchase_order(ready, self.supplier, status=PurchaseOrderStatus.READY_FOR_SHIPMENT)

        TestDataFactory.create_order(status=OrderStatus.AWAITING_SUPPLIER_CONFIRMATION)

        transitioned = tracking.process_automatic_status_transitions()
        self.assertEqual(len(transitioned), 2)

        confirmed.refresh_from_db()
        waiting.refresh_from_db()
        ready.refresh_from_db()
        self.assertEqual(confirmed.status, OrderStatus.IN_PRODUCTION)
        self.assertEqual(waiting.status, OrderStatus.AWAITING_SUPPLIER_CONFIRMATION)
        self.assertEqual(ready.status, OrderStatus.READY_FOR_DELIVERY)

    def test_process_transitions_command(self):
        """Test the management command reports advanced orders"""
        order = TestDataFactory.create_order(status=OrderStatus.IN_PRODUCTION)
        TestDataFactory.create_purchase_order(order, self.supplier, status=PurchaseOrderStatus.READY_FOR_SHIPMENT)
        out = StringIO()
        call_command('process_order_transitions', '--show-at-risk', stdout=out)
        self.assertIn('Processed transitions: 1 orders advanced', out.getvalue())
        self.assertIn('At-risk orders: 0', out.getvalue())

    def test_timeline_and_summary(self):
        """Test the customer timeline and summary"""
        order = TestDataFactory.create_order(customer_id='CUST-T')
        services.update_order_status(order.id, OrderStatus.UNDER_REVIEW)
        TestDataFactory.create_order(customer_id='CUST-T', status=OrderStatus.DELIVERED)

        timeline = tracking.get_order_timeline(order.id, 'CUST-T')
        types = [event['type'] for event in timeline['events']]
        self.assertEqual(types.count('status_change'), 2)
        self.assertEqual(types.count('milestone'), 2)

        summary = tracking.get_order_tracking_summary('CUST-T')
        self.assertEqual(summary['total_orders'], 2)
        self.assertEqual(summary['active_orders'], 1)
        self.assertEqual(summary['delivered_orders'], 1)
        self.assertEqual(summary['next_delivery_date'], order.requested_delivery_date)

    def test_summary_without_orders(self):
        """Test the summary of a customer with no orders"""
        summary = tracking.get_order_tracking_summary('NOBODY')
        self.assertEqual(summary['total_orders'], 0)
        self.assertIsNone(summary['next_delivery_date'])


class OrderAPITests(TestCase):
    """Test planner order API endpoints"""

    def setUp(self):
        self.user = TestDataFactory.create_planner()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_create_order(self):
        """Test creating an order via API"""
        response = self.client.post('/api/v1/orders/', order_payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], OrderStatus.SUBMITTED)
        self.assertEqual(response.data['total_quantity'], 100)
        self.assertEqual(len(response.data['items']), 2)

    def test_create_order_without_items(self):
        """Test creating an order without items should fail"""
        response = self.client.post('/api/v1/orders/', order_payload(items=[]), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], "Order must contain at least one item")

    def test_create_order_past_date(self):
        """Test the delivery date must be in the future"""
        yesterday = (timezone.now().date() - timedelta(days=1)).isoformat()
        response = self.client.post('/api/v1/orders/', order_payload(requested_delivery_date=yesterday), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_create_order_zero_quantity(self):
        """Test item quantities must be positive"""
        payload = order_payload(items=[{'product_code': 'X', 'description': 'X', 'quantity': 0, 'unit': 'pcs'}])
        response = self.client.post('/api/v1/orders/', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_list_orders_with_filters(self):
        """Test listing orders with paging and filters"""
        TestDataFactory.create_order(customer_id='A')
        TestDataFactory.create_order(customer_id='B', status=OrderStatus.UNDER_REVIEW)
        response = self.client.get('/api/v1/orders/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 2)

        response = self.client.get('/api/v1/orders/', {'status': OrderStatus.UNDER_REVIEW})
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['customer_id'], 'B')

    def test_list_orders_invalid_filter(self):
        """Test invalid filter values are reported"""
        response = self.client.get('/api/v1/orders/', {'status': 'Lost'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_update_status(self):
        """Test moving an order through the API"""
        order = TestDataFactory.create_order()
        response = self.client.patch(f'/api/v1/orders/{order.id}/status/', {
            'status': OrderStatus.UNDER_REVIEW,
            'notes': 'Looks complete'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], OrderStatus.UNDER_REVIEW)

        response = self.client.get(f'/api/v1/orders/{order.id}/history/')
        self.assertEqual(len(response.data), 2)
        self.assertEqual(response.data[1]['notes'], 'Looks complete')
        self.assertEqual(response.data[1]['changed_by_username'], self.user.username)

    def test_update_status_invalid_transition(self):
        """Test invalid transitions return 400 with a code"""
        order = TestDataFactory.create_order()
        response = self.client.patch(f'/api/v1/orders/{order.id}/status/', {
            'status': OrderStatus.IN_PRODUCTION
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['code'], 'invalid_transition')

    def test_check_transition(self):
        """Test the transition check endpoint"""
        order = TestDataFactory.create_order()
        response = self.client.get(f'/api/v1/orders/{order.id}/status/', {'status': OrderStatus.DELIVERED})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['is_valid'])

    def test_add_milestone(self):
        """Test adding a manual milestone"""
        order = TestDataFactory.create_order()
        response = self.client.post(f'/api/v1/orders/{order.id}/milestones/', {
            'name': 'Customs clearance',
            'target_date': (timezone.now() + timedelta(days=7)).isoformat()
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], OrderMilestone.STATUS_PENDING)

        response = self.client.get(f'/api/v1/orders/{order.id}/milestones/')
        self.assertEqual(len(response.data), 2)

    def test_update_and_delete(self):
        """Test editing and deleting a submitted order"""
        order = TestDataFactory.create_order()
        response = self.client.patch(f'/api/v1/orders/{order.id}/', {'assigned_planner': self.user.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['assigned_planner_username'], self.user.username)

        response = self.client.delete(f'/api/v1/orders/{order.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)

        response = self.client.get(f'/api/v1/orders/{order.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_by_delivery_date_requires_range(self):
        """Test the delivery date query needs both ends"""
        response = self.client.get('/api/v1/orders/by-delivery-date/', {'start_date': '2030-01-01'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        response = self.client.get('/api/v1/orders/by-delivery-date/', {'start_date': 'soon', 'end_date': '2030-01-01'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_dashboard_and_risk_endpoints(self):
        """Test dashboard and risk lists"""
        TestDataFactory.create_order(delivery_in_days=1)
        response = self.client.get('/api/v1/orders/dashboard/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total_orders'], 1)

        response = self.client.get('/api/v1/orders/at-risk/')
        self.assertEqual(len(response.data), 1)
        response = self.client.get('/api/v1/orders/requiring-attention/')
        self.assertEqual(len(response.data), 1)

    def test_process_transitions_endpoint(self):
        """Test triggering automatic transitions"""
        response = self.client.post('/api/v1/orders/process-transitions/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['transitioned_count'], 0)


class CustomerOrderAPITests(TestCase):
    """Test customer-scoped order access"""

    def setUp(self):
        self.customer = TestDataFactory.create_customer_user(customer_id='CUST-A')
        self.other_order = TestDataFactory.create_order(customer_id='CUST-B')
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.customer)

    def test_customer_creates_under_own_id(self):
        """Test customers cannot place orders for someone else"""
        response = self.client.post('/api/v1/orders/', order_payload(customer_id='CUST-B'), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['customer_id'], 'CUST-A')

    def test_customer_list_is_scoped(self):
        """Test customers only list their own orders"""
        TestDataFactory.create_order(customer_id='CUST-A')
        response = self.client.get('/api/v1/orders/', {'customer_id': 'CUST-B'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['customer_id'], 'CUST-A')

        response = self.client.get('/api/v1/customer/orders/')
        self.assertEqual(response.data['count'], 1)

    def test_customer_cannot_use_planner_endpoints(self):
        """Test order management stays with planners"""
        response = self.client.get(f'/api/v1/orders/{self.other_order.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_other_customers_order_is_hidden(self):
        """Test another customer's order looks like it does not exist"""
        for suffix in ('', 'history/', 'timeline/'):
            response = self.client.get(f'/api/v1/customer/orders/{self.other_order.id}/{suffix}')
            self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_own_order_tracking(self):
        """Test customers can follow their own orders"""
        order = TestDataFactory.create_order(customer_id='CUST-A')
        response = self.client.get(f'/api/v1/customer/orders/{order.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['order_number'], order.order_number)

        response = self.client.get(f'/api/v1/customer/orders/{order.id}/history/')
        self.assertEqual(len(response.data['status_history']), 1)
        self.assertEqual(len(response.data['milestones']), 1)

        response = self.client.get(f'/api/v1/customer/orders/{order.id}/timeline/')
        self.assertEqual(response.data['order_number'], order.order_number)

    def test_recent_and_summary(self):
        """Test recent orders and the tracking summary"""
        for _ in range(3):
            TestDataFactory.create_order(customer_id='CUST-A')
        response = self.client.get('/api/v1/customer/orders/recent/', {'count': 2})
        self.assertEqual(len(response.data), 2)

        response = self.client.get('/api/v1/customer/orders/summary/')
        self.assertEqual(response.data['total_orders'], 3)
        self.assertEqual(response.data['customer_id'], 'CUST-A')

    def test_customer_list_filters(self):
        """Test customer order list filters"""
        TestDataFactory.create_order(customer_id='CUST-A', delivery_in_days=-3, status=OrderStatus.IN_PRODUCTION)
        TestDataFactory.create_order(customer_id='CUST-A')
        response = self.client.get('/api/v1/customer/orders/', {'is_at_risk': 'true'})
        self.assertEqual(response.data['count'], 1)
        response = self.client.get('/api/v1/customer/orders/', {'start_date': 'yesterday'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_supplier_user_cannot_track_orders(self):
        """Test suppliers have no access to customer tracking"""
        supplier_user = TestDataFactory.create_supplier_user(TestDataFactory.create_supplier())
        self.client.authenticate_user(supplier_user)
        response = self.client.get('/api/v1/customer/orders/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
