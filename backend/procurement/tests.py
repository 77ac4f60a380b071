"""
Comprehensive test suite for Procurement module
Tests: Distribution strategies, distribution validation, purchase order creation,
confirmation and rejection, lifecycle, supplier portal and API endpoints
"""
from datetime import timedelta
from decimal import Decimal

from django.core import mail
from django.test import TestCase
from django.utils import timezone
from rest_framework import status

from backend.core.exceptions import InvalidOperationError, UnauthorizedAccessError, ValidationFailedError
from backend.core.models import AuditLog
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.orders.models import OrderStatus
from backend.suppliers.models import SupplierCapability
from . import distribution, portal, services
from .distribution import SupplierCandidate
from .models import PurchaseOrder, PurchaseOrderItem, PurchaseOrderStatus


def candidate(supplier_id, available, score, max_capacity=None, commitments=0, **kwargs):
    return SupplierCandidate(
        supplier_id=supplier_id,
        supplier_name=f'Supplier {supplier_id}',
        available_capacity=available,
        max_monthly_capacity=max_capacity if max_capacity is not None else available + commitments,
        current_commitments=commitments,
        overall_performance_score=score,
        **kwargs
    )


def commitments_of(supplier, product_type='LMR'):
    return SupplierCapability.objects.get(supplier=supplier, product_type=product_type).current_commitments


class DistributionStrategyTests(TestCase):
    """Test the allocation strategies on supplier snapshots"""

    def test_even_distribution_spreads_remainder(self):
        """Test even split gives the remainder to the first suppliers"""
        candidates = [candidate(1, 1000, 0.9), candidate(2, 1000, 0.8), candidate(3, 1000, 0.75)]
        allocations = distribution.calculate_optimal_distribution(candidates, 100, distribution.STRATEGY_EVEN)
        self.assertEqual([a.allocated_quantity for a in allocations], [34, 33, 33])

    def test_even_distribution_respects_capacity(self):
        """Test even split never exceeds a supplier's capacity"""
        candidates = [candidate(1, 10, 0.9), candidate(2, 1000, 0.8)]
        allocations = distribution.calculate_optimal_distribution(candidates, 100, distribution.STRATEGY_EVEN)
        self.assertEqual([a.allocated_quantity for a in allocations], [10, 50])

    def test_performance_based_distribution(self):
        """Test performance split is proportional to score"""
        candidates = [candidate(2, 1000, 0.6), candidate(1, 1000, 0.9)]
        allocations = distribution.calculate_optimal_distribution(
            candidates, 100, distribution.STRATEGY_PERFORMANCE
        )
        self.assertEqual([(a.supplier_id, a.allocated_quantity) for a in allocations], [(1, 60), (2, 40)])
        self.assertEqual(allocations[0].allocation_percentage, 60.0)

    def test_preferred_bonus(self):
        """Test preferred suppliers get a larger share"""
        plain = candidate(1, 1000, 0.8)
        preferred = candidate(2, 1000, 0.8, is_preferred_supplier=True)
        allocations = distribution.calculate_optimal_distribution(
            [plain, preferred], 100, distribution.STRATEGY_PERFORMANCE
        )
        by_id = {a.supplier_id: a.allocated_quantity for a in allocations}
        self.assertGreater(by_id[2], by_id[1])

    def test_exact_half_shares_round_to_even(self):
        """Test shares landing exactly on .5 round half to even and leave nothing unallocated"""
        # Shares are exactly 4.5 and 3.5 of 8
        candidates = [candidate(1, 1000, 0.909), candidate(2, 1000, 0.707)]
        allocations = distribution.calculate_optimal_distribution(
            candidates, 8, distribution.STRATEGY_PERFORMANCE
        )
        self.assertEqual([(a.supplier_id, a.allocated_quantity) for a in allocations], [(1, 4), (2, 4)])

        # 2.5 rounds down to 2, 7.5 up to 8
        candidates = [candidate(1, 1000, 0.75), candidate(2, 1000, 0.25)]
        allocations = distribution.calculate_optimal_distribution(
            candidates, 10, distribution.STRATEGY_PERFORMANCE
        )
        self.assertEqual([(a.supplier_id, a.allocated_quantity) for a in allocations], [(1, 8), (2, 2)])

    def test_capacity_based_distribution(self):
        """Test capacity split fills the largest supplier first"""
        candidates = [candidate(1, 30, 0.9), candidate(2, 100, 0.8)]
        allocations = distribution.calculate_optimal_distribution(candidates, 120, distribution.STRATEGY_CAPACITY)
        self.assertEqual([(a.supplier_id, a.allocated_quantity) for a in allocations], [(2, 100), (1, 20)])
        utilization = distribution.calculate_total_capacity_utilization(candidates, allocations)
        self.assertAlmostEqual(utilization, 120 / 130)

    def test_balanced_distribution(self):
        """Test balanced split favours spare capacity and performance and allocates everything"""
        candidates = [
            candidate(1, 1000, 0.9, max_capacity=1000),
            candidate(2, 500, 0.8, max_capacity=1000, commitments=500),
        ]
        allocations = distribution.calculate_optimal_distribution(candidates, 100)
        self.assertEqual([(a.supplier_id, a.allocated_quantity) for a in allocations], [(1, 58), (2, 42)])

    def test_balanced_tops_up_rounding_and_caps(self):
        """Test balanced split moves units a capped supplier could not take"""
        candidates = [candidate(1, 1000, 0.9), candidate(2, 5, 0.85)]
        allocations = distribution.calculate_optimal_distribution(candidates, 100)
        self.assertEqual(sum(a.allocated_quantity for a in allocations), 100)
        self.assertEqual({a.supplier_id: a.allocated_quantity for a in allocations}[2], 5)

    def test_custom_strategy_uses_balanced(self):
        """Test unknown strategies fall back to balanced"""
        candidates = [candidate(1, 1000, 0.9), candidate(2, 1000, 0.7)]
        balanced = distribution.calculate_optimal_distribution(candidates, 77)
        for strategy in (distribution.STRATEGY_CUSTOM, 'nonsense'):
            custom = distribution.calculate_optimal_distribution(candidates, 77, strategy)
            self.assertEqual(
                [a.allocated_quantity for a in custom], [a.allocated_quantity for a in balanced]
            )

    def test_nothing_to_distribute(self):
        """Test empty inputs allocate nothing"""
        self.assertEqual(distribution.calculate_optimal_distribution([], 100), [])
        self.assertEqual(distribution.calculate_optimal_distribution([candidate(1, 10, 0.9)], 0), [])
        self.assertEqual(distribution.calculate_total_capacity_utilization([], []), 0.0)


class DistributionServiceTests(TestCase):
    """Test eligibility, suggestions and distribution plan validation"""

    def setUp(self):
        self.alpha = TestDataFactory.create_supplier(name='Alpha Radio', max_capacity=1000)
        self.beta = TestDataFactory.create_supplier(name='Beta Parts', max_capacity=100, on_time_rate=0.9,
                                                    quality_score=4.0)
        self.order = TestDataFactory.create_order(quantities=(60, 40), status=OrderStatus.PLANNING_IN_PROGRESS)

    def test_eligible_suppliers(self):
        """Test only active, scoring suppliers with spare capacity qualify"""
        TestDataFactory.create_supplier(name='Weak', on_time_rate=0.5, quality_score=2.0)
        TestDataFactory.create_supplier(name='Full', max_capacity=100, commitments=100)
        TestDataFactory.create_supplier(name='Closed', is_active=False)
        TestDataFactory.create_supplier(name='Unrated', with_performance=False)
        TestDataFactory.create_supplier(name='Fresh', product_type='FFV')

        candidates = distribution.get_eligible_suppliers('LMR', 100)
        self.assertEqual([c.supplier_name for c in candidates], ['Alpha Radio', 'Beta Parts'])
        self.assertTrue(candidates[0].is_preferred_supplier)

    def test_suggestion_for_order(self):
        """Test a suggestion covers the whole order"""
        suggestion = services.suggest_distribution(self.order.id)
        data = suggestion.to_dict()
        self.assertEqual(data['total_quantity'], 100)
        self.assertTrue(data['is_fully_allocated'])
        self.assertEqual(data['strategy'], distribution.STRATEGY_BALANCED)
        self.assertIsNone(data['notes'])

    def test_suggestion_without_suppliers(self):
        """Test suggestion notes when no supplier can take the order"""
        order = TestDataFactory.create_order(product_type='FFV')
        suggestion = services.suggest_distribution(order.id)
        self.assertEqual(suggestion.allocations, [])
        self.assertEqual(suggestion.notes, "No eligible suppliers available for this product type")
        self.assertEqual(suggestion.unallocated_quantity, 100)

    def test_partial_suggestion(self):
        """Test notes report units left over"""
        order = TestDataFactory.create_order(quantities=(1500,))
        suggestion = services.suggest_distribution(order.id, distribution.STRATEGY_CAPACITY)
        self.assertEqual(suggestion.total_allocated_quantity, 1100)
        self.assertIn("400 units remain unallocated", suggestion.notes)

    def test_valid_plan(self):
        result = distribution.validate_distribution(self.order, [
            {'supplier_id': self.alpha.id, 'allocated_quantity': 60},
            {'supplier_id': self.beta.id, 'allocated_quantity': 40},
        ])
        self.assertTrue(result.is_valid)
        self.assertEqual(result.warnings, [])
        self.assertEqual(len(result.supplier_validations), 2)

    def test_plan_warnings(self):
        """Test near-full capacity and under-allocation are warnings"""
        result = distribution.validate_distribution(self.order, [
            {'supplier_id': self.beta.id, 'allocated_quantity': 95},
        ])
        self.assertTrue(result.is_valid)
        self.assertEqual(result.warnings, [
            "Allocation will use >90% of available capacity",
            "Allocated quantity 95 is less than order quantity 100",
        ])

    def test_plan_errors(self):
        """Test each kind of invalid allocation"""
        inactive = TestDataFactory.create_supplier(name='Closed', is_active=False)
        cases = [
            ([], "Distribution plan must contain at least one allocation"),
            ([{'supplier_id': self.alpha.id, 'allocated_quantity': 50},
              {'supplier_id': self.alpha.id, 'allocated_quantity': 50}],
             f"Supplier {self.alpha.id} appears more than once in the plan"),
            ([{'supplier_id': self.alpha.id, 'allocated_quantity': 0}],
             f"Allocated quantity for supplier {self.alpha.id} must be at least 1"),
            ([{'supplier_id': 999999, 'allocated_quantity': 10}], "Supplier 999999 not found"),
            ([{'supplier_id': inactive.id, 'allocated_quantity': 10}], "Supplier Closed is not active"),
            ([{'supplier_id': self.beta.id, 'allocated_quantity': 150}],
             "Insufficient capacity. Requested: 150, Available: 100"),
            ([{'supplier_id': self.alpha.id, 'allocated_quantity': 150}],
             "Allocated quantity 150 exceeds order quantity 100"),
        ]
        for allocations, message in cases:
            result = distribution.validate_distribution(self.order, allocations)
            self.assertFalse(result.is_valid)
            self.assertIn(message, result.errors)

    def test_validate_plan_for_missing_order(self):
        result = services.validate_distribution_plan(999999, [{'supplier_id': self.alpha.id, 'allocated_quantity': 1}])
        self.assertEqual(result.errors, ["Customer order 999999 not found"])


class PurchaseOrderServiceTests(TestCase):
    """Test purchase order creation and lifecycle"""

    def setUp(self):
        self.planner = TestDataFactory.create_planner()
        self.alpha = TestDataFactory.create_supplier(name='Alpha Radio', max_capacity=1000)
        self.beta = TestDataFactory.create_supplier(name='Beta Parts', max_capacity=500)
        self.order = TestDataFactory.create_order(quantities=(60, 40), status=OrderStatus.PLANNING_IN_PROGRESS)
        self.allocations = [
            {'supplier_id': self.alpha.id, 'allocated_quantity': 70},
            {'supplier_id': self.beta.id, 'allocated_quantity': 30},
        ]

    def create_purchase_orders(self):
        return services.create_purchase_orders(self.order.id, self.allocations, user=self.planner)

    def test_create_purchase_orders(self):
        """Test POs are sent, capacity reserved and the order advanced"""
        purchase_orders = self.create_purchase_orders()

        self.assertEqual(len(purchase_orders), 2)
        alpha_po = purchase_orders[0]
        self.assertEqual(alpha_po.status, PurchaseOrderStatus.SENT_TO_SUPPLIER)
        self.assertEqual(alpha_po.purchase_order_number, f'PO-{self.order.order_number}-ALP-001')
        self.assertEqual(alpha_po.total_quantity, 70)
        self.assertEqual(alpha_po.required_delivery_date, self.order.requested_delivery_date)
        self.assertEqual(purchase_orders[1].purchase_order_number, f'PO-{self.order.order_number}-BET-002')

        self.assertEqual(commitments_of(self.alpha), 70)
        self.assertEqual(commitments_of(self.beta), 30)
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, OrderStatus.PURCHASE_ORDERS_CREATED)
        self.assertEqual(AuditLog.objects.filter(action='po_create', result=AuditLog.RESULT_SUCCESS).count(), 2)

        subjects = sorted(message.subject for message in mail.outbox)
        self.assertEqual(subjects, sorted(f"New Purchase Order - {po.purchase_order_number}" for po in purchase_orders))

    def test_smallest_lines_filled_first(self):
        """Test allocations draw on the smallest order lines first without over-allocating a line"""
        alpha_po, beta_po = self.create_purchase_orders()
        self.assertEqual(
            [(item.product_code, item.allocated_quantity) for item in alpha_po.items.all()],
            [('P-002', 40), ('P-001', 30)]
        )
        self.assertEqual(
            [(item.product_code, item.allocated_quantity) for item in beta_po.items.all()],
            [('P-001', 30)]
        )

        per_line = {}
        for item in PurchaseOrderItem.objects.filter(purchase_order__customer_order=self.order):
            per_line[item.product_code] = per_line.get(item.product_code, 0) + item.allocated_quantity
        self.assertEqual(per_line, {'P-001': 60, 'P-002': 40})

    def test_purchase_order_number_skips_taken_sequence(self):
        """Test a colliding number advances the sequence"""
        other_order = TestDataFactory.create_order()
        taken = TestDataFactory.create_purchase_order(other_order, self.alpha)
        PurchaseOrder.objects.filter(pk=taken.pk).update(
            purchase_order_number=f'PO-{self.order.order_number}-ALP-001'
        )

        self.assertEqual(
            services.generate_purchase_order_number(self.order, self.alpha),
            f'PO-{self.order.order_number}-ALP-002'
        )
        alpha_po, beta_po = self.create_purchase_orders()
        self.assertEqual(alpha_po.purchase_order_number, f'PO-{self.order.order_number}-ALP-002')
        self.assertEqual(beta_po.purchase_order_number, f'PO-{self.order.order_number}-BET-002')

    def test_create_requires_planning_status(self):
        """Test orders must be in planning"""
        order = TestDataFactory.create_order()
        with self.assertRaises(InvalidOperationError):
            services.create_purchase_orders(order.id, self.allocations, user=self.planner)
        self.assertTrue(AuditLog.objects.filter(
            action='po_create', result=AuditLog.RESULT_VALIDATION_ERROR, entity_id=str(order.id)
        ).exists())

    def test_create_with_invalid_plan(self):
        """Test nothing is created when the plan fails validation"""
        self.allocations[1]['allocated_quantity'] = 600
        with self.assertRaises(ValidationFailedError) as ctx:
            self.create_purchase_orders()
        self.assertIn("Insufficient capacity. Requested: 600, Available: 500", ctx.exception.errors)
        self.assertEqual(PurchaseOrder.objects.count(), 0)
        self.assertEqual(commitments_of(self.alpha), 0)

    def test_confirmations_advance_order(self):
        """Test first confirmation awaits the rest, the last one starts production"""
        first, second = self.create_purchase_orders()

        services.confirm_purchase_order(first.id, user=self.planner, supplier_notes='Will ship in batches')
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, OrderStatus.AWAITING_SUPPLIER_CONFIRMATION)

        confirmed = services.confirm_purchase_order(second.id, user=self.planner)
        self.assertIsNotNone(confirmed.confirmed_at)
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, OrderStatus.IN_PRODUCTION)

        with self.assertRaises(InvalidOperationError):
            services.confirm_purchase_order(second.id)

    def test_confirm_with_item_updates(self):
        """Test supplier prices update the PO value"""
        first, _ = self.create_purchase_orders()
        item = first.items.first()
        confirmed = services.confirm_purchase_order(first.id, item_updates=[
            {'purchase_order_item_id': item.id, 'unit_price': '2.00', 'packaging_details': 'Pallets'}
        ])
        self.assertEqual(confirmed.items.get(pk=item.id).packaging_details, 'Pallets')
        # 40 units at 2.00 plus 30 units at the original 10.00
        self.assertEqual(confirmed.total_value, Decimal('380.00'))

    def test_reject_requires_reason(self):
        """Test rejecting without a reason fails"""
        first, _ = self.create_purchase_orders()
        with self.assertRaises(ValidationFailedError) as ctx:
            services.reject_purchase_order(first.id, reason='  ')
        self.assertEqual(ctx.exception.message, "Rejection reason is required")

    def test_reject_releases_capacity(self):
        first, _ = self.create_purchase_orders()
        rejected = services.reject_purchase_order(first.id, reason='No capacity this month')
        self.assertEqual(rejected.status, PurchaseOrderStatus.REJECTED)
        self.assertEqual(rejected.rejection_reason, 'No capacity this month')
        self.assertEqual(commitments_of(self.alpha), 0)

    def test_lifecycle_to_delivery(self):
        """Test delivery records supplier performance and frees capacity"""
        first, _ = self.create_purchase_orders()
        services.confirm_purchase_order(first.id)
        for new_status in (PurchaseOrderStatus.IN_PRODUCTION, PurchaseOrderStatus.READY_FOR_SHIPMENT,
                           PurchaseOrderStatus.SHIPPED):
            services.update_purchase_order_status(first.id, new_status, user=self.planner)
        delivered = services.update_purchase_order_status(
            first.id, PurchaseOrderStatus.DELIVERED, user=self.planner, notes='Signed by warehouse'
        )

        self.assertIsNotNone(delivered.shipped_at)
        self.assertIsNotNone(delivered.delivered_at)
        self.assertIn('Signed by warehouse', delivered.notes)
        self.assertEqual(commitments_of(self.alpha), 0)
        self.alpha.performance.refresh_from_db()
        self.assertEqual(self.alpha.performance.total_orders_completed, 1)
        self.assertEqual(self.alpha.performance.on_time_delivery_rate, 1.0)

    def test_status_update_rules(self):
        """Test confirm/reject are not reachable through status updates and skips are refused"""
        first, second = self.create_purchase_orders()
        with self.assertRaises(InvalidOperationError):
            services.update_purchase_order_status(first.id, PurchaseOrderStatus.CONFIRMED)
        with self.assertRaises(InvalidOperationError) as ctx:
            services.update_purchase_order_status(first.id, PurchaseOrderStatus.SHIPPED)
        self.assertEqual(ctx.exception.code, 'invalid_transition')
        with self.assertRaises(ValidationFailedError):
            services.update_purchase_order_status(first.id, 'Lost')

        services.update_purchase_order_status(second.id, PurchaseOrderStatus.CANCELLED)
        self.assertEqual(commitments_of(self.beta), 0)

    def test_item_update_validation(self):
        """Test estimated delivery dates must fit the required date"""
        first, _ = self.create_purchase_orders()
        item = first.items.first()
        with self.assertRaises(ValidationFailedError):
            services.update_purchase_order_item(item.id, {
                'estimated_delivery_date': first.required_delivery_date + timedelta(days=1)
            })
        updated = services.update_purchase_order_item(item.id, {
            'estimated_delivery_date': first.required_delivery_date - timedelta(days=3),
            'supplier_notes': 'Partial shipment possible',
        })
        self.assertIn('Partial shipment possible', updated.supplier_notes)

    def test_lists_by_supplier_and_order(self):
        self.create_purchase_orders()
        self.assertEqual(services.get_purchase_orders_by_supplier(self.alpha.id).count(), 1)
        self.assertEqual(
            services.get_purchase_orders_by_supplier(self.alpha.id, PurchaseOrderStatus.CONFIRMED).count(), 0
        )
        self.assertEqual(services.get_purchase_orders_by_customer_order(self.order.id).count(), 2)


class SupplierPortalTests(TestCase):
    """Test supplier-scoped portal operations"""

    def setUp(self):
        self.alpha = TestDataFactory.create_supplier(name='Alpha Radio')
        self.beta = TestDataFactory.create_supplier(name='Beta Parts')
        self.supplier_user = TestDataFactory.create_supplier_user(self.alpha)
        self.order = TestDataFactory.create_order(status=OrderStatus.PLANNING_IN_PROGRESS, delivery_in_days=20)
        self.alpha_po, self.beta_po = services.create_purchase_orders(self.order.id, [
            {'supplier_id': self.alpha.id, 'allocated_quantity': 50},
            {'supplier_id': self.beta.id, 'allocated_quantity': 50},
        ])

    def test_foreign_purchase_order_is_unauthorized(self):
        """Test suppliers cannot reach another supplier's purchase order"""
        with self.assertRaises(UnauthorizedAccessError):
            portal.get_supplier_purchase_order(self.beta_po.id, self.alpha.id, user=self.supplier_user)
        self.assertTrue(AuditLog.objects.filter(
            action='view', result=AuditLog.RESULT_UNAUTHORIZED, entity_id=str(self.beta_po.id)
        ).exists())
        with self.assertRaises(UnauthorizedAccessError):
            portal.reject_purchase_order(self.beta_po.id, self.alpha.id, reason='Not ours')

    def test_validate_delivery_dates(self):
        """Test delivery estimates against the required date"""
        required = self.alpha_po.required_delivery_date
        result = portal.validate_delivery_dates(self.alpha_po.id, {
            1: timezone.now().date(),
            2: required + timedelta(days=1),
            3: required - timedelta(days=1),
            4: required - timedelta(days=5),
        })
        self.assertFalse(result['is_valid'])
        self.assertEqual(result['customer_required_date'], required)
        self.assertEqual([e['item_id'] for e in result['errors']], [1, 2])
        self.assertEqual(result['errors'][0]['message'], "Estimated delivery date cannot be in the past")
        self.assertEqual([w['item_id'] for w in result['warnings']], [3])

    def test_confirm_checks_delivery_dates(self):
        item = self.alpha_po.items.first()
        with self.assertRaises(ValidationFailedError):
            portal.confirm_purchase_order(self.alpha_po.id, self.alpha.id, item_updates=[
                {'purchase_order_item_id': item.id,
                 'estimated_delivery_date': self.alpha_po.required_delivery_date + timedelta(days=2)}
            ])
        confirmed = portal.confirm_purchase_order(self.alpha_po.id, self.alpha.id, notes='OK', item_updates=[
            {'purchase_order_item_id': item.id,
             'estimated_delivery_date': self.alpha_po.required_delivery_date - timedelta(days=4)}
        ])
        self.assertEqual(confirmed.status, PurchaseOrderStatus.CONFIRMED)
        self.assertEqual(confirmed.supplier_notes, 'OK')

    def test_update_items_rules(self):
        with self.assertRaises(ValidationFailedError):
            portal.update_purchase_order_items(self.alpha_po.id, self.alpha.id, item_updates=[])
        with self.assertRaises(ValidationFailedError):
            portal.update_purchase_order_items(self.alpha_po.id, self.alpha.id, item_updates=[
                {'purchase_order_item_id': self.beta_po.items.first().id, 'packaging_details': 'Boxes'}
            ])

    def test_dashboard_summary(self):
        summary = portal.get_supplier_dashboard_summary(self.alpha.id)
        self.assertEqual(summary['supplier_name'], 'Alpha Radio')
        self.assertEqual(summary['pending_orders_count'], 1)
        self.assertEqual(summary['confirmed_orders_count'], 0)
        self.assertEqual(len(summary['recent_orders']), 1)
        self.assertEqual(summary['performance']['quality_score'], 4.5)

    def test_notify_supplier_of_new_order(self):
        mail.outbox = []
        self.assertTrue(portal.notify_supplier_of_new_order(self.alpha_po.id))
        self.assertEqual(mail.outbox[0].subject, f"New Purchase Order: {self.alpha_po.purchase_order_number}")
        self.assertEqual(mail.outbox[0].to, [self.alpha.contact_email])
        self.assertFalse(portal.notify_supplier_of_new_order(999999))

    def test_supplier_response_emails_planner(self):
        """Test the assigned planner hears about confirmations and rejections"""
        planner = TestDataFactory.create_planner()
        self.order.assigned_planner = planner
        self.order.save()
        mail.outbox = []

        portal.confirm_purchase_order(self.alpha_po.id, self.alpha.id, notes='Ships Friday')
        portal.reject_purchase_order(self.beta_po.id, self.beta.id, reason='No capacity')

        planner_mail = [message for message in mail.outbox if message.to == [planner.email]]
        self.assertEqual([message.subject for message in planner_mail], [
            f"Purchase Order Confirmed - {self.alpha_po.purchase_order_number}",
            f"Purchase Order Rejected - {self.beta_po.purchase_order_number}",
        ])
        self.assertIn('Ships Friday', planner_mail[0].body)
        self.assertIn('No capacity', planner_mail[1].body)

    def test_supplier_response_without_planner_sends_nothing(self):
        mail.outbox = []
        rejected = portal.reject_purchase_order(self.beta_po.id, self.beta.id, reason='No capacity')
        self.assertEqual(rejected.status, PurchaseOrderStatus.REJECTED)
        self.assertFalse(any('Rejected' in message.subject for message in mail.outbox))

    def test_order_history_filters(self):
        queryset, page, page_size = portal.get_supplier_order_history(
            self.alpha.id, {'status': PurchaseOrderStatus.SENT_TO_SUPPLIER, 'sort_by': '-total_value'}
        )
        self.assertEqual(list(queryset), [self.alpha_po])
        with self.assertRaises(ValidationFailedError):
            portal.get_supplier_order_history(self.alpha.id, {'status': 'Lost'})


class ProcurementAPITests(TestCase):
    """Test planner procurement endpoints"""

    def setUp(self):
        self.planner = TestDataFactory.create_planner()
        self.supplier = TestDataFactory.create_supplier(name='Alpha Radio', max_capacity=1000)
        self.order = TestDataFactory.create_order(status=OrderStatus.PLANNING_IN_PROGRESS)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.planner)

    def test_suggestion_endpoint(self):
        response = self.client.get(f'/api/v1/procurement/suggestions/{self.order.id}/', {'strategy': 'even'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['strategy'], 'even')
        self.assertEqual(response.data['allocations'][0]['allocated_quantity'], 100)

        response = self.client.get('/api/v1/procurement/suggestions/999999/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_validate_endpoint(self):
        response = self.client.post(f'/api/v1/procurement/validate/{self.order.id}/', {
            'allocations': [{'supplier_id': self.supplier.id, 'allocated_quantity': 120}]
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['is_valid'])

    def test_create_and_drive_purchase_orders(self):
        """Test creating, confirming and advancing a PO through the API"""
        response = self.client.post('/api/v1/procurement/purchase-orders/', {
            'customer_order_id': self.order.id,
            'allocations': [{'supplier_id': self.supplier.id, 'allocated_quantity': 100}],
            'notes': 'Rush'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        po_id = response.data[0]['id']
        self.assertEqual(response.data[0]['status'], PurchaseOrderStatus.SENT_TO_SUPPLIER)

        response = self.client.post(f'/api/v1/procurement/purchase-orders/{po_id}/confirm/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, OrderStatus.IN_PRODUCTION)

        response = self.client.patch(f'/api/v1/procurement/purchase-orders/{po_id}/status/', {
            'status': PurchaseOrderStatus.SHIPPED
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['code'], 'invalid_transition')

        response = self.client.patch(f'/api/v1/procurement/purchase-orders/{po_id}/status/', {
            'status': PurchaseOrderStatus.IN_PRODUCTION
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        response = self.client.get('/api/v1/procurement/purchase-orders/', {'status': PurchaseOrderStatus.IN_PRODUCTION})
        self.assertEqual(response.data['count'], 1)
        response = self.client.get(f'/api/v1/procurement/customer-order/{self.order.id}/purchase-orders/')
        self.assertEqual(len(response.data), 1)
        response = self.client.get(f'/api/v1/procurement/supplier/{self.supplier.id}/purchase-orders/')
        self.assertEqual(len(response.data), 1)

    def test_create_for_wrong_status(self):
        order = TestDataFactory.create_order()
        response = self.client.post('/api/v1/procurement/purchase-orders/', {
            'customer_order_id': order.id,
            'allocations': [{'supplier_id': self.supplier.id, 'allocated_quantity': 100}]
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['code'], 'invalid_operation')

    def test_reject_without_reason(self):
        purchase_order = services.create_purchase_orders(self.order.id, [
            {'supplier_id': self.supplier.id, 'allocated_quantity': 100}
        ])[0]
        response = self.client.post(f'/api/v1/procurement/purchase-orders/{purchase_order.id}/reject/', {},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], "Rejection reason is required")

    def test_customer_forbidden(self):
        self.client.authenticate_user(TestDataFactory.create_customer_user())
        response = self.client.get('/api/v1/procurement/purchase-orders/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class SupplierPortalAPITests(TestCase):
    """Test supplier portal endpoints"""

    def setUp(self):
        self.alpha = TestDataFactory.create_supplier(name='Alpha Radio')
        self.beta = TestDataFactory.create_supplier(name='Beta Parts')
        order = TestDataFactory.create_order(status=OrderStatus.PLANNING_IN_PROGRESS, delivery_in_days=20)
        self.alpha_po, self.beta_po = services.create_purchase_orders(order.id, [
            {'supplier_id': self.alpha.id, 'allocated_quantity': 50},
            {'supplier_id': self.beta.id, 'allocated_quantity': 50},
        ])
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(TestDataFactory.create_supplier_user(self.alpha))

    def test_dashboard_and_lists(self):
        response = self.client.get('/api/v1/supplier-portal/dashboard/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['supplier_id'], self.alpha.id)

        response = self.client.get('/api/v1/supplier-portal/orders/')
        self.assertEqual([po['id'] for po in response.data], [self.alpha_po.id])

        response = self.client.get('/api/v1/supplier-portal/orders/history/', {'sort_by': '-created_at'})
        self.assertEqual(response.data['count'], 1)

    def test_other_suppliers_order_forbidden(self):
        response = self.client.get(f'/api/v1/supplier-portal/orders/{self.beta_po.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data['code'], 'unauthorized')

        response = self.client.post(f'/api/v1/supplier-portal/orders/{self.beta_po.id}/confirm/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_confirm_and_update_items(self):
        item = self.alpha_po.items.first()
        response = self.client.post(f'/api/v1/supplier-portal/orders/{self.alpha_po.id}/confirm/', {
            'supplier_notes': 'Confirmed',
            'item_updates': [{
                'purchase_order_item_id': item.id,
                'estimated_delivery_date': (self.alpha_po.required_delivery_date - timedelta(days=3)).isoformat()
            }]
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], PurchaseOrderStatus.CONFIRMED)

        response = self.client.patch(f'/api/v1/supplier-portal/orders/{self.alpha_po.id}/items/', {
            'item_updates': [{'purchase_order_item_id': item.id, 'packaging_details': 'Crates',
                              'delivery_method': 'Truck'}]
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['items'][0]['delivery_method'], 'Truck')

    def test_reject(self):
        response = self.client.post(f'/api/v1/supplier-portal/orders/{self.alpha_po.id}/reject/', {
            'reason': 'Tooling unavailable'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['rejection_reason'], 'Tooling unavailable')

    def test_validate_delivery_dates_endpoint(self):
        item = self.alpha_po.items.first()
        late = (self.alpha_po.required_delivery_date + timedelta(days=1)).isoformat()
        response = self.client.post(
            f'/api/v1/supplier-portal/orders/{self.alpha_po.id}/validate-delivery-dates/',
            {'estimated_delivery_dates': {str(item.id): late}},
            format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['is_valid'])
        self.assertEqual(response.data['errors'][0]['item_id'], item.id)

    def test_planner_has_no_portal(self):
        self.client.authenticate_user(TestDataFactory.create_planner())
        response = self.client.get('/api/v1/supplier-portal/dashboard/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
