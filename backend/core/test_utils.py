"""
Test utilities and factories for creating test data
"""
from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken
from backend.core.choices import PRODUCT_TYPE_LMR, ROLE_ADMINISTRATOR, ROLE_PLANNER, ROLE_SUPPLIER, ROLE_CUSTOMER
from backend.orders import tracking
from backend.orders.models import CustomerOrder, OrderItem, OrderStatus
from backend.procurement.models import PurchaseOrder, PurchaseOrderItem, PurchaseOrderStatus
from backend.suppliers.models import Supplier, SupplierCapability, SupplierPerformanceMetrics
from backend.notifications.models import NotificationTemplate
from datetime import timedelta
from decimal import Decimal
from django.utils import timezone
import random
import string

User = get_user_model()


class TestDataFactory:
    """Factory class for creating test data"""

    @staticmethod
    def random_string(length=10):
        """Generate a random string"""
        return ''.join(random.choices(string.ascii_letters + string.digits, k=length))

    @staticmethod
    def create_user(username=None, email=None, password='testpass123', role=None,
                    supplier=None, customer_id=None, is_staff=False, is_superuser=False):
        """Create a test user, optionally in one of the role groups"""
        if not username:
            username = f'testuser_{TestDataFactory.random_string(6)}'
        if not email:
            email = f'{username}@test.com'
        user = User.objects.create_user(
            username=username,
            email=email,
            password=password,
            is_staff=is_staff,
            is_superuser=is_superuser,
            supplier=supplier,
            customer_id=customer_id,
        )
        if role:
            group, _ = Group.objects.get_or_create(name=role)
            user.groups.add(group)
        return user

    @staticmethod
    def create_admin(**kwargs):
        return TestDataFactory.create_user(role=ROLE_ADMINISTRATOR, **kwargs)

    @staticmethod
    def create_planner(**kwargs):
        return TestDataFactory.create_user(role=ROLE_PLANNER, **kwargs)

    @staticmethod
    def create_customer_user(customer_id=None, **kwargs):
        if not customer_id:
            customer_id = f'CUST-{TestDataFactory.random_string(6).upper()}'
        return TestDataFactory.create_user(role=ROLE_CUSTOMER, customer_id=customer_id, **kwargs)

    @staticmethod
    def create_supplier_user(supplier, **kwargs):
        return TestDataFactory.create_user(role=ROLE_SUPPLIER, supplier=supplier, **kwargs)

    @staticmethod
    def create_supplier(name=None, product_type=PRODUCT_TYPE_LMR, max_capacity=1000, commitments=0,
                        on_time_rate=0.95, quality_score=4.5, customer_satisfaction_rate=None,
                        quality_rating=Decimal('4.00'), is_active=True, with_performance=True):
        """Create a supplier with one capability and performance metrics"""
        if not name:
            name = f'Supplier_{TestDataFactory.random_string(6)}'
        supplier = Supplier.objects.create(
            name=name,
            contact_email=f'{TestDataFactory.random_string(8).lower()}@supplier.test',
            contact_phone=f'9{random.randint(100000000, 999999999)}',
            address=f'Test Address {name}',
            is_active=is_active,
        )
        if product_type:
            SupplierCapability.objects.create(
                supplier=supplier,
                product_type=product_type,
                max_monthly_capacity=max_capacity,
                current_commitments=commitments,
                quality_rating=quality_rating,
            )
        if with_performance:
            SupplierPerformanceMetrics.objects.create(
                supplier=supplier,
                on_time_delivery_rate=on_time_rate,
                quality_score=quality_score,
                customer_satisfaction_rate=customer_satisfaction_rate,
            )
        return supplier

    @staticmethod
    def create_order(customer_id=None, customer_name=None, product_type=PRODUCT_TYPE_LMR, quantities=(100,),
                     unit_price=Decimal('10.00'), delivery_in_days=30, status=OrderStatus.SUBMITTED,
                     created_by=None):
        """Create a customer order with one item per quantity, bypassing the status workflow"""
        if not customer_id:
            customer_id = f'CUST-{TestDataFactory.random_string(6).upper()}'
        order = CustomerOrder.objects.create(
            order_number=f'ORD-{timezone.now().strftime("%Y%m%d")}-{TestDataFactory.random_string(6).upper()}',
            customer_id=customer_id,
            customer_name=customer_name or f'Customer {customer_id}',
            product_type=product_type,
            requested_delivery_date=timezone.now().date() + timedelta(days=delivery_in_days),
            status=status,
            created_by=created_by,
        )
        for index, quantity in enumerate(quantities, start=1):
            OrderItem.objects.create(
                order=order,
                product_code=f'P-{index:03d}',
                description=f'Test item {index}',
                quantity=quantity,
                unit='pcs',
                unit_price=unit_price,
            )
        tracking.create_initial_tracking(order, created_by)
        return order

    @staticmethod
    def create_purchase_order(order, supplier, quantity=None, status=PurchaseOrderStatus.SENT_TO_SUPPLIER,
                              required_delivery_date=None):
        """Create a purchase order covering the first item of `order`"""
        order_item = order.items.first()
        if quantity is None:
            quantity = order_item.quantity
        purchase_order = PurchaseOrder.objects.create(
            purchase_order_number=f'PO-{order.order_number}-{TestDataFactory.random_string(4).upper()}',
            customer_order=order,
            supplier=supplier,
            status=status,
            required_delivery_date=required_delivery_date or order.requested_delivery_date,
        )
        PurchaseOrderItem.objects.create(
            purchase_order=purchase_order,
            order_item=order_item,
            product_code=order_item.product_code,
            description=order_item.description,
            allocated_quantity=quantity,
            unit=order_item.unit,
            unit_price=order_item.unit_price,
        )
        purchase_order.calculate_total_value()
        purchase_order.save()
        return purchase_order

    @staticmethod
    def create_notification_template(name=None, subject='Order {OrderNumber}',
                                     body='Hello {CustomerName}, order {OrderNumber} is {NewStatus}.',
                                     notification_type='email', is_active=True):
        if not name:
            name = f'Template_{TestDataFactory.random_string(6)}'
        return NotificationTemplate.objects.create(
            name=name,
            subject=subject,
            body=body,
            notification_type=notification_type,
            is_active=is_active,
        )


class AuthenticatedAPIClient(APIClient):
    """APIClient with authentication helper"""

    def authenticate_user(self, user):
        """Authenticate the client with a user"""
        refresh = RefreshToken.for_user(user)
        self.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
        return self

    def logout(self):
        """Remove authentication"""
        self.credentials()
