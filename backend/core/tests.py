"""
Comprehensive test suite for Core module
Tests: Authentication, role permissions, user management, audit logging, paging and edge cases
"""
from datetime import timedelta
from io import StringIO

from django.contrib.auth.models import Group
from django.core.management import call_command
from django.test import TestCase
from django.utils import timezone
from rest_framework import status
from rest_framework_simplejwt.tokens import AccessToken

from backend.core.choices import ROLES, ROLE_ADMINISTRATOR, ROLE_PLANNER, ROLE_SUPPLIER, ROLE_CUSTOMER
from backend.core.models import AuditLog, User
from backend.core.permissions import get_customer_id, get_primary_role, get_user_roles
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.core.utils import create_audit_log, normalize_page_params


class RoleTests(TestCase):
    """Test role resolution from groups"""

    def test_primary_role_prefers_highest_privilege(self):
        """Test a user in several groups reports the most privileged role"""
        user = TestDataFactory.create_user(role=ROLE_CUSTOMER)
        user.groups.add(Group.objects.create(name=ROLE_PLANNER))
        self.assertEqual(get_primary_role(user), ROLE_PLANNER)
        self.assertCountEqual(get_user_roles(user), [ROLE_PLANNER, ROLE_CUSTOMER])

    def test_superuser_without_group_is_administrator(self):
        """Test staff accounts outside the role groups act as Administrator"""
        user = TestDataFactory.create_user(is_staff=True, is_superuser=True)
        self.assertEqual(get_user_roles(user), [ROLE_ADMINISTRATOR])

    def test_user_without_role(self):
        """Test a plain user has no role"""
        user = TestDataFactory.create_user()
        self.assertEqual(get_user_roles(user), [])
        self.assertIsNone(get_primary_role(user))

    def test_customer_id_falls_back_to_username(self):
        """Test the customer identifier defaults to the username"""
        user = TestDataFactory.create_user(username='acme', role=ROLE_CUSTOMER)
        self.assertEqual(get_customer_id(user), 'acme')
        user.customer_id = 'CUST-1'
        self.assertEqual(get_customer_id(user), 'CUST-1')


class AuditLogUtilityTests(TestCase):
    """Test audit log helpers"""

    def setUp(self):
        self.user = TestDataFactory.create_planner()

    def test_create_audit_log(self):
        """Test an audit entry stores user, role and values"""
        entry = create_audit_log(
            user=self.user, action='supplier_update', entity_type='Supplier', entity_id=7,
            old_values={'name': 'Old'}, new_values={'name': 'New'}
        )
        self.assertIsNotNone(entry)
        self.assertEqual(entry.username, self.user.username)
        self.assertEqual(entry.user_role, ROLE_PLANNER)
        self.assertEqual(entry.entity_id, '7')
        self.assertEqual(entry.result, AuditLog.RESULT_SUCCESS)

    def test_create_audit_log_missing_fields_is_skipped(self):
        """Test entries without action, entity type or id are not written"""
        self.assertIsNone(create_audit_log(user=self.user, action='update', entity_type='Supplier'))
        self.assertIsNone(create_audit_log(user=self.user, entity_type='Supplier', entity_id=1))
        self.assertEqual(AuditLog.objects.count(), 0)

    def test_error_message_truncated(self):
        """Test long error messages are capped"""
        entry = create_audit_log(
            user=self.user, action='update', entity_type='Supplier', entity_id=1,
            result=AuditLog.RESULT_FAILED, error_message='x' * 2000
        )
        self.assertEqual(len(entry.error_message), 1000)

    def test_normalize_page_params(self):
        """Test invalid paging values fall back to defaults"""
        self.assertEqual(normalize_page_params(0, 20), (1, 20))
        self.assertEqual(normalize_page_params(3, 0), (3, 20))
        self.assertEqual(normalize_page_params(2, 101), (2, 20))
        self.assertEqual(normalize_page_params(2, 100), (2, 100))


class AuthAPITests(TestCase):
    """Test authentication endpoints"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.supplier = TestDataFactory.create_supplier()
        self.user = TestDataFactory.create_supplier_user(self.supplier, username='supplier_user')

    def test_login_returns_tokens_and_user(self):
        """Test login returns token pair with role claims"""
        response = self.client.post('/api/v1/auth/login/', {
            'username': 'supplier_user',
            'password': 'testpass123'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)
        self.assertIn('refresh', response.data)
        self.assertEqual(response.data['user']['username'], 'supplier_user')

        token = AccessToken(response.data['access'])
        self.assertEqual(token['role'], ROLE_SUPPLIER)
        self.assertEqual(token['supplier_id'], self.supplier.id)
        self.assertTrue(AuditLog.objects.filter(action='login', entity_id=str(self.user.id)).exists())

    def test_login_wrong_password(self):
        """Test login with a bad password is rejected"""
        response = self.client.post('/api/v1/auth/login/', {
            'username': 'supplier_user',
            'password': 'wrong'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_login_inactive_user(self):
        """Test deactivated users cannot log in"""
        self.user.is_active = False
        self.user.save()
        response = self.client.post('/api/v1/auth/login/', {
            'username': 'supplier_user',
            'password': 'testpass123'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_refresh_and_logout(self):
        """Test refreshing a token and blacklisting it on logout"""
        login = self.client.post('/api/v1/auth/login/', {
            'username': 'supplier_user',
            'password': 'testpass123'
        }, format='json')
        refresh = login.data['refresh']

        response = self.client.post('/api/v1/auth/refresh/', {'refresh': refresh}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)
        rotated = response.data.get('refresh', refresh)

        self.client.authenticate_user(self.user)
        response = self.client.post('/api/v1/auth/logout/', {'refresh': rotated}, format='json')
        self.assertEqual(response.status_code, status.HTTP_205_RESET_CONTENT)

        response = self.client.post('/api/v1/auth/refresh/', {'refresh': rotated}, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_refresh_with_garbage_token(self):
        """Test an invalid refresh token is rejected"""
        response = self.client.post('/api/v1/auth/refresh/', {'refresh': 'not-a-token'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_me(self):
        """Test the current user endpoint"""
        self.client.authenticate_user(self.user)
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['role'], ROLE_SUPPLIER)
        self.assertIn(ROLE_SUPPLIER, response.data['groups'])

    def test_me_requires_authentication(self):
        """Test anonymous access is refused"""
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_change_password(self):
        """Test changing the password"""
        self.client.authenticate_user(self.user)
        response = self.client.post('/api/v1/auth/change-password/', {
            'current_password': 'testpass123',
            'new_password': 'Sturdy-Harbor-2024',
            'confirm_password': 'Sturdy-Harbor-2024'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.user.refresh_from_db()
        self.assertTrue(self.user.check_password('Sturdy-Harbor-2024'))

    def test_change_password_wrong_current(self):
        """Test a wrong current password is refused and audited"""
        self.client.authenticate_user(self.user)
        response = self.client.post('/api/v1/auth/change-password/', {
            'current_password': 'nope',
            'new_password': 'Sturdy-Harbor-2024',
            'confirm_password': 'Sturdy-Harbor-2024'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertTrue(AuditLog.objects.filter(
            action='password_change', result=AuditLog.RESULT_VALIDATION_ERROR
        ).exists())


class UserAPITests(TestCase):
    """Test user management endpoints"""

    def setUp(self):
        self.admin = TestDataFactory.create_admin()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)

    def test_create_user_with_role(self):
        """Test an administrator can create a planner"""
        response = self.client.post('/api/v1/users/', {
            'username': 'new_planner',
            'email': 'planner@test.com',
            'password': 'Sturdy-Harbor-2024',
            'password_confirm': 'Sturdy-Harbor-2024',
            'role': ROLE_PLANNER
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['role'], ROLE_PLANNER)
        user = User.objects.get(username='new_planner')
        self.assertTrue(user.groups.filter(name=ROLE_PLANNER).exists())
        self.assertTrue(AuditLog.objects.filter(action='user_create', entity_id=str(user.id)).exists())

    def test_create_user_password_mismatch(self):
        """Test mismatched passwords are refused"""
        response = self.client.post('/api/v1/users/', {
            'username': 'mismatch',
            'password': 'Sturdy-Harbor-2024',
            'password_confirm': 'Other-Harbor-2024',
            'role': ROLE_CUSTOMER
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('password', response.data)

    def test_create_user_invalid_role(self):
        """Test unknown roles are refused"""
        response = self.client.post('/api/v1/users/', {
            'username': 'badrole',
            'password': 'Sturdy-Harbor-2024',
            'password_confirm': 'Sturdy-Harbor-2024',
            'role': 'Janitor'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_change_role(self):
        """Test updating a user's role replaces the role group"""
        user = TestDataFactory.create_customer_user()
        response = self.client.patch(f'/api/v1/users/{user.id}/', {'role': ROLE_PLANNER}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(get_user_roles(user), [ROLE_PLANNER])

    def test_deactivate_user(self):
        """Test deleting a user deactivates it"""
        user = TestDataFactory.create_planner()
        response = self.client.delete(f'/api/v1/users/{user.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        user.refresh_from_db()
        self.assertFalse(user.is_active)

    def test_cannot_deactivate_self(self):
        """Test administrators cannot deactivate their own account"""
        response = self.client.delete(f'/api/v1/users/{self.admin.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_planner_cannot_manage_users(self):
        """Test user management is administrator only"""
        planner = TestDataFactory.create_planner()
        self.client.authenticate_user(planner)
        response = self.client.get('/api/v1/users/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class AuditLogAPITests(TestCase):
    """Test audit log query, report and export endpoints"""

    def setUp(self):
        self.admin = TestDataFactory.create_admin()
        self.planner = TestDataFactory.create_planner()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)
        for entity_id in range(3):
            create_audit_log(user=self.planner, action='supplier_update', entity_type='Supplier', entity_id=entity_id)
        create_audit_log(
            user=self.planner, action='order_status_change', entity_type='CustomerOrder', entity_id=1,
            result=AuditLog.RESULT_VALIDATION_ERROR, error_message='Cannot transition order'
        )

    def test_list_with_filters(self):
        """Test filtering audit logs by entity type and result"""
        response = self.client.get('/api/v1/audit-logs/', {'entity_type': 'Supplier'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 3)

        response = self.client.get('/api/v1/audit-logs/', {'result': AuditLog.RESULT_VALIDATION_ERROR})
        self.assertEqual(response.data['count'], 1)

    def test_list_paging(self):
        """Test paging metadata and page size normalization"""
        response = self.client.get('/api/v1/audit-logs/', {'page_size': 2, 'entity_type': 'Supplier'})
        self.assertEqual(len(response.data['results']), 2)
        self.assertEqual(response.data['total_pages'], 2)
        self.assertEqual(response.data['next'], 2)

        response = self.client.get('/api/v1/audit-logs/', {'page_size': 500, 'page': 0})
        self.assertEqual(response.data['page_size'], 20)
        self.assertEqual(response.data['page'], 1)

    def test_entity_trail(self):
        """Test the audit trail of a single entity"""
        response = self.client.get('/api/v1/audit-logs/entity/CustomerOrder/1/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['action'], 'order_status_change')

    def test_user_trail(self):
        """Test the audit trail of a single user"""
        response = self.client.get(f'/api/v1/audit-logs/user/{self.planner.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 4)

    def test_report(self):
        """Test the grouped audit report"""
        now = timezone.now()
        response = self.client.post('/api/v1/audit-logs/report/', {
            'from_date': (now - timedelta(days=1)).isoformat(),
            'to_date': (now + timedelta(days=1)).isoformat()
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total_actions'], 4)
        self.assertEqual(response.data['failed_actions'], 1)
        categories = {row['category'] for row in response.data['summary']}
        self.assertEqual(categories, {'User', 'Action', 'Entity Type'})

    def test_report_invalid_range(self):
        """Test a report window that ends before it starts"""
        now = timezone.now()
        response = self.client.post('/api/v1/audit-logs/report/', {
            'from_date': now.isoformat(),
            'to_date': (now - timedelta(days=1)).isoformat()
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_export_csv(self):
        """Test exporting audit logs as CSV"""
        response = self.client.get('/api/v1/audit-logs/export/', {'entity_type': 'Supplier'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response['Content-Type'], 'text/csv')
        self.assertIn('attachment', response['Content-Disposition'])
        lines = response.content.decode().strip().splitlines()
        self.assertEqual(lines[0], 'Timestamp,Action,EntityType,EntityId,Username,UserRole,IpAddress,Result,ErrorMessage')
        self.assertEqual(len(lines), 4)
        self.assertTrue(AuditLog.objects.filter(action='export', entity_type='AuditLog').exists())

    def test_export_unknown_format(self):
        """Test unsupported export formats are refused"""
        response = self.client.get('/api/v1/audit-logs/export/', {'format_type': 'pdf'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_planner_cannot_read_audit_logs(self):
        """Test audit logs are administrator only"""
        self.client.authenticate_user(self.planner)
        response = self.client.get('/api/v1/audit-logs/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class CreateUserGroupsCommandTests(TestCase):
    """Test the role group management command"""

    def test_creates_all_role_groups(self):
        """Test every role group exists after running the command twice"""
        call_command('create_user_groups', stdout=StringIO())
        out = StringIO()
        call_command('create_user_groups', stdout=out)
        self.assertEqual(set(Group.objects.values_list('name', flat=True)), set(ROLES))
        self.assertIn('0 groups created', out.getvalue())
