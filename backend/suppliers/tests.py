"""
Comprehensive test suite for Suppliers module
Tests: Capacity math, performance scoring, eligibility rules, supplier API and edge cases
"""
from decimal import Decimal

from django.test import TestCase
from rest_framework import status

from backend.core.models import AuditLog
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.suppliers import services
from backend.suppliers.models import Supplier, SupplierCapability, SupplierPerformanceMetrics


class SupplierModelTests(TestCase):
    """Test capability and performance model methods"""

    def setUp(self):
        self.supplier = TestDataFactory.create_supplier(max_capacity=1000, commitments=250)
        self.capability = self.supplier.capabilities.get()

    def test_available_capacity(self):
        """Test available capacity and utilization"""
        self.assertEqual(self.capability.available_capacity, 750)
        self.assertEqual(self.capability.capacity_utilization_rate, 0.25)
        self.assertEqual(self.supplier.get_available_capacity('LMR'), 750)
        self.assertEqual(self.supplier.get_available_capacity('FFV'), 0)

    def test_utilization_with_zero_capacity(self):
        """Test utilization of an empty capability is zero"""
        capability = SupplierCapability(max_monthly_capacity=0, current_commitments=0)
        self.assertEqual(capability.capacity_utilization_rate, 0.0)

    def test_reserve_and_release(self):
        """Test reserving and releasing capacity"""
        self.capability.reserve(700)
        self.assertEqual(self.capability.current_commitments, 950)
        with self.assertRaises(ValueError):
            self.capability.reserve(51)
        self.capability.release(2000)
        self.assertEqual(self.capability.current_commitments, 0)

    def test_inactive_capability_not_handled(self):
        """Test inactive capabilities do not count as handling the product type"""
        self.capability.is_active = False
        self.capability.save()
        supplier = Supplier.objects.prefetch_related('capabilities').get(pk=self.supplier.pk)
        self.assertFalse(supplier.can_handle_product_type('LMR'))
        self.assertFalse(supplier.has_capacity_for('LMR', 1))

    def test_overall_score_without_satisfaction(self):
        """Test the overall score averages delivery and quality"""
        metrics = SupplierPerformanceMetrics(on_time_delivery_rate=0.9, quality_score=4.0)
        self.assertEqual(metrics.overall_performance_score, 0.85)

    def test_overall_score_with_satisfaction(self):
        """Test customer satisfaction contributes a fifth of the score"""
        metrics = SupplierPerformanceMetrics(
            on_time_delivery_rate=0.9, quality_score=4.0, customer_satisfaction_rate=0.5
        )
        self.assertEqual(metrics.overall_performance_score, 0.78)

    def test_reliable_and_preferred(self):
        """Test reliability thresholds"""
        metrics = SupplierPerformanceMetrics(on_time_delivery_rate=0.9, quality_score=3.8)
        self.assertTrue(metrics.is_reliable_supplier)
        self.assertFalse(metrics.is_preferred_supplier)
        metrics.on_time_delivery_rate = 0.96
        metrics.quality_score = 4.2
        self.assertTrue(metrics.is_preferred_supplier)

    def test_quality_score_running_average(self):
        """Test new quality ratings are averaged over completed orders"""
        metrics = SupplierPerformanceMetrics(quality_score=4.0, total_orders_completed=2)
        metrics.update_quality_score(1)
        self.assertEqual(metrics.quality_score, 3.0)
        with self.assertRaises(ValueError):
            metrics.update_quality_score(6)

    def test_on_time_delivery_tracking(self):
        """Test on-time rate follows completed deliveries"""
        metrics = SupplierPerformanceMetrics()
        metrics.update_on_time_delivery(True)
        metrics.update_on_time_delivery(False)
        self.assertEqual(metrics.total_orders_completed, 2)
        self.assertEqual(metrics.total_orders_late, 1)
        self.assertEqual(metrics.on_time_delivery_rate, 0.5)

    def test_cancellation_rate(self):
        """Test cancellation rate over completed and cancelled orders"""
        metrics = SupplierPerformanceMetrics(total_orders_completed=3)
        self.assertEqual(metrics.cancellation_rate, 0.0)
        metrics.record_cancellation()
        self.assertEqual(metrics.cancellation_rate, 0.25)


class SupplierServiceTests(TestCase):
    """Test supplier queries and eligibility rules"""

    def setUp(self):
        self.best = TestDataFactory.create_supplier(name='Best', max_capacity=1000, commitments=200,
                                                    on_time_rate=0.98, quality_score=4.8)
        self.good = TestDataFactory.create_supplier(name='Good', max_capacity=500,
                                                    on_time_rate=0.85, quality_score=3.6)
        self.inactive = TestDataFactory.create_supplier(name='Inactive', is_active=False)
        self.fresh_only = TestDataFactory.create_supplier(name='Fresh', product_type='FFV')

    def test_available_suppliers_ordered_by_score(self):
        """Test available suppliers are active, capable and best first"""
        suppliers = services.get_available_suppliers('LMR', 100)
        self.assertEqual([s.name for s in suppliers], ['Best', 'Good'])

    def test_available_suppliers_respect_required_capacity(self):
        """Test suppliers without enough spare capacity are left out"""
        suppliers = services.get_available_suppliers('LMR', 600)
        self.assertEqual([s.name for s in suppliers], ['Best'])

    def test_suppliers_by_performance(self):
        """Test performance thresholds filter suppliers"""
        suppliers = services.get_suppliers_by_performance('LMR', min_on_time_rate=0.9, min_quality_score=4.0)
        self.assertEqual([s.name for s in suppliers], ['Best'])

    def test_total_available_capacity(self):
        """Test spare capacity is summed over active suppliers only"""
        self.assertEqual(services.get_total_available_capacity('LMR'), 800 + 500)
        self.assertEqual(services.get_total_available_capacity('FFV'), 1000)

    def test_invalid_product_type(self):
        """Test unknown product types are refused"""
        with self.assertRaises(services.ValidationFailedError):
            services.get_total_available_capacity('XYZ')

    def test_eligibility_passes(self):
        """Test a healthy supplier is eligible"""
        result = services.validate_supplier_eligibility(self.best.id, 'LMR', 500)
        self.assertTrue(result['is_eligible'])
        self.assertEqual(result['reasons'], [])

    def test_eligibility_lists_every_failure(self):
        """Test every failed rule is reported"""
        weak = TestDataFactory.create_supplier(max_capacity=100, on_time_rate=0.5, quality_score=2.0,
                                               is_active=False)
        result = services.validate_supplier_eligibility(weak.id, 'LMR', 500)
        self.assertFalse(result['is_eligible'])
        self.assertEqual(len(result['reasons']), 4)
        self.assertIn("Supplier is not active", result['reasons'])
        self.assertTrue(any(r.startswith('Insufficient capacity') for r in result['reasons']))

    def test_eligibility_wrong_product_type(self):
        """Test a supplier without the capability is not eligible"""
        result = services.validate_supplier_eligibility(self.fresh_only.id, 'LMR', 1)
        self.assertIn("Supplier does not handle product type LMR", result['reasons'])

    def test_get_supplier_not_found(self):
        """Test missing suppliers raise NotFoundError"""
        with self.assertRaises(services.NotFoundError):
            services.get_supplier(999999)

    def test_create_supplier_defaults_performance(self):
        """Test new suppliers start with default performance metrics"""
        supplier = services.create_supplier({
            'name': 'Newco',
            'contact_email': 'newco@test.com',
            'contact_phone': '123',
            'address': 'Somewhere',
            'capabilities': [{'product_type': 'LMR', 'max_monthly_capacity': 300}],
        })
        self.assertEqual(supplier.performance.on_time_delivery_rate, 1.0)
        self.assertEqual(supplier.performance.quality_score, 3.0)
        self.assertEqual(supplier.get_available_capacity('LMR'), 300)

    def test_deactivate_is_idempotent(self):
        """Test deactivating twice writes one audit entry"""
        services.deactivate_supplier(self.best.id)
        services.deactivate_supplier(self.best.id)
        self.assertEqual(AuditLog.objects.filter(action='supplier_deactivate').count(), 1)


class SupplierAPITests(TestCase):
    """Test Supplier API endpoints"""

    def setUp(self):
        self.user = TestDataFactory.create_planner()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.supplier = TestDataFactory.create_supplier(name='Acme Metals', max_capacity=1000, commitments=800)

    def test_create_supplier(self):
        """Test creating a supplier with capabilities"""
        data = {
            'name': 'Northwind',
            'contact_email': 'orders@northwind.test',
            'contact_phone': '5550100',
            'address': '1 Harbor Road',
            'capabilities': [
                {'product_type': 'LMR', 'max_monthly_capacity': 500, 'quality_rating': '4.50'},
                {'product_type': 'FFV', 'max_monthly_capacity': 200}
            ],
            'initial_on_time_delivery_rate': 0.9
        }
        response = self.client.post('/api/v1/suppliers/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(len(response.data['capabilities']), 2)
        self.assertEqual(response.data['performance']['on_time_delivery_rate'], 0.9)
        self.assertTrue(AuditLog.objects.filter(action='supplier_create', entity_reference='Northwind').exists())

    def test_create_supplier_duplicate_capability(self):
        """Test duplicate product types are refused and nothing is saved"""
        data = {
            'name': 'Twice',
            'contact_email': 'twice@test.com',
            'contact_phone': '1',
            'address': 'A',
            'capabilities': [
                {'product_type': 'LMR', 'max_monthly_capacity': 1},
                {'product_type': 'LMR', 'max_monthly_capacity': 2}
            ]
        }
        response = self.client.post('/api/v1/suppliers/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(Supplier.objects.filter(name='Twice').exists())

    def test_create_supplier_missing_fields(self):
        """Test required contact fields"""
        response = self.client.post('/api/v1/suppliers/', {'name': 'Incomplete'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('contact_email', response.data)

    def test_list_and_filter(self):
        """Test listing suppliers with filters"""
        TestDataFactory.create_supplier(name='Fresh Farms', product_type='FFV')
        response = self.client.get('/api/v1/suppliers/', {'product_type': 'FFV'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([s['name'] for s in response.data], ['Fresh Farms'])

        response = self.client.get('/api/v1/suppliers/', {'search': 'acme'})
        self.assertEqual(len(response.data), 1)

        response = self.client.get('/api/v1/suppliers/', {'product_type': 'LMR', 'min_capacity': 300})
        self.assertEqual(response.data, [])

    def test_list_invalid_min_capacity(self):
        """Test non-numeric capacity filters are refused"""
        response = self.client.get('/api/v1/suppliers/', {'min_capacity': 'lots'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_update_supplier(self):
        """Test partial update of supplier details"""
        response = self.client.patch(f'/api/v1/suppliers/{self.supplier.id}/', {'contact_person_name': 'Jo'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['contact_person_name'], 'Jo')

    def test_get_missing_supplier(self):
        """Test 404 for unknown suppliers"""
        response = self.client.get('/api/v1/suppliers/999999/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['code'], 'not_found')

    def test_get_capacity(self):
        """Test reading capacity for a product type"""
        response = self.client.get(f'/api/v1/suppliers/{self.supplier.id}/capacity/LMR/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['available_capacity'], 200)

        response = self.client.get(f'/api/v1/suppliers/{self.supplier.id}/capacity/FFV/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_set_capacity_creates_capability(self):
        """Test setting capacity for a new product type"""
        response = self.client.put(f'/api/v1/suppliers/{self.supplier.id}/capacity/FFV/', {
            'max_monthly_capacity': 400,
            'lead_time_days': 5
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['available_capacity'], 400)
        self.assertEqual(response.data['lead_time_days'], 5)

    def test_set_capacity_below_commitments(self):
        """Test capacity cannot drop below current commitments and the refusal is audited"""
        response = self.client.put(f'/api/v1/suppliers/{self.supplier.id}/capacity/LMR/', {
            'max_monthly_capacity': 500
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(self.supplier.capabilities.get().max_monthly_capacity, 1000)
        self.assertTrue(AuditLog.objects.filter(
            action='supplier_capacity_update', result=AuditLog.RESULT_VALIDATION_ERROR
        ).exists())

    def test_set_capacity_commitments_over_max(self):
        """Test request validation of commitments against capacity"""
        response = self.client.put(f'/api/v1/suppliers/{self.supplier.id}/capacity/LMR/', {
            'max_monthly_capacity': 100,
            'current_commitments': 101
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('current_commitments', response.data)

    def test_record_performance(self):
        """Test recording deliveries updates rates and averages"""
        url = f'/api/v1/suppliers/{self.supplier.id}/performance/'
        response = self.client.post(url, {'on_time': True, 'quality_score': 3.0}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['quality_score'], 3.0)
        self.assertEqual(response.data['on_time_delivery_rate'], 1.0)

        response = self.client.post(url, {'on_time': False, 'quality_score': 5.0}, format='json')
        self.assertEqual(response.data['quality_score'], 4.0)
        self.assertEqual(response.data['on_time_delivery_rate'], 0.5)
        self.assertEqual(response.data['total_orders_completed'], 2)

    def test_record_performance_out_of_range(self):
        """Test out-of-range ratings are refused"""
        response = self.client.post(f'/api/v1/suppliers/{self.supplier.id}/performance/',
                                    {'customer_satisfaction_rate': 1.5}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_activate_deactivate(self):
        """Test toggling supplier activity"""
        response = self.client.post(f'/api/v1/suppliers/{self.supplier.id}/deactivate/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['is_active'])
        response = self.client.post(f'/api/v1/suppliers/{self.supplier.id}/activate/')
        self.assertTrue(response.data['is_active'])

    def test_eligibility_endpoint(self):
        """Test the eligibility check over the API"""
        response = self.client.get(f'/api/v1/suppliers/{self.supplier.id}/eligibility/',
                                   {'product_type': 'LMR', 'quantity': 300})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['is_eligible'])

        response = self.client.get(f'/api/v1/suppliers/{self.supplier.id}/eligibility/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_available_and_total_capacity(self):
        """Test capacity lookups across suppliers"""
        response = self.client.get('/api/v1/suppliers/available/', {'product_type': 'LMR', 'required_capacity': 100})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)

        response = self.client.get('/api/v1/suppliers/capacity/LMR/')
        self.assertEqual(response.data['total_available_capacity'], 200)

    def test_by_performance_endpoint(self):
        """Test the performance ranking endpoint"""
        response = self.client.get('/api/v1/suppliers/by-performance/', {
            'product_type': 'LMR', 'min_on_time_rate': 0.99
        })
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data, [])

    def test_customer_cannot_manage_suppliers(self):
        """Test supplier management is limited to planners"""
        customer = TestDataFactory.create_customer_user()
        self.client.authenticate_user(customer)
        response = self.client.get('/api/v1/suppliers/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_quality_rating_decimal(self):
        """Test capability quality rating is kept as a decimal"""
        capability = self.supplier.capabilities.get()
        self.assertEqual(capability.quality_rating, Decimal('4.00'))
