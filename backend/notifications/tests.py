"""
Comprehensive test suite for Notifications module
Tests: Templates, email and SMS delivery, delivery logs, retries, bulk sends,
customer preferences and API endpoints
"""
from unittest.mock import MagicMock, patch

import requests
from django.core import mail
from django.test import TestCase, override_settings
from rest_framework import status

from backend.core.exceptions import ValidationFailedError
from backend.core.models import AuditLog
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.orders.models import OrderStatus
from . import services
from .models import CustomerNotificationPreference, NotificationLog, NotificationTemplate, render_placeholders


class NotificationTemplateModelTests(TestCase):
    """Test template rendering helpers"""

    def test_render_placeholders(self):
        """Test known keys are replaced and unknown ones kept"""
        text = render_placeholders('Order {OrderNumber} for {Customer}', {'OrderNumber': 'ORD-1', 'Other': 1})
        self.assertEqual(text, 'Order ORD-1 for {Customer}')
        self.assertEqual(render_placeholders('Value: {Value}', {'Value': None}), 'Value: ')

    def test_parameters_and_placeholders(self):
        template = NotificationTemplate(
            name='Delay', subject='Order {OrderNumber}', body='Dear {CustomerName}, {OrderNumber} is late',
            required_parameters=['OrderNumber', 'CustomerName'],
        )
        self.assertEqual(template.placeholders(), ['CustomerName', 'OrderNumber'])
        self.assertEqual(template.validate_parameters({'OrderNumber': 'X'}), ['CustomerName'])


class NotificationServiceTests(TestCase):
    """Test email and SMS sending"""

    def test_send_email_with_template(self):
        """Test a named template renders subject and body"""
        TestDataFactory.create_notification_template(name='Welcome', subject='Hi {CustomerName}',
                                                     body='Welcome aboard {CustomerName}')
        log = services.send_email_notification(
            'buyer@contoso.test', template_name='Welcome', template_data={'CustomerName': 'Contoso'}
        )
        self.assertEqual(log.status, NotificationLog.STATUS_SENT)
        self.assertIsNotNone(log.sent_at)
        self.assertEqual(log.metadata['template_name'], 'Welcome')
        self.assertEqual(mail.outbox[0].subject, 'Hi Contoso')
        self.assertEqual(mail.outbox[0].body, 'Welcome aboard Contoso')

    def test_inactive_template_uses_default_body(self):
        TestDataFactory.create_notification_template(name=services.TEMPLATE_ORDER_STATUS_CHANGE,
                                                     body='Custom body', is_active=False)
        services.send_email_notification(
            'buyer@contoso.test', subject='Update',
            template_name=services.TEMPLATE_ORDER_STATUS_CHANGE,
            template_data={'CustomerName': 'Contoso', 'OrderNumber': 'ORD-1', 'PreviousStatus': 'Submitted',
                           'NewStatus': 'UnderReview', 'DeliveryDate': '2030-01-01'},
        )
        self.assertIn('changed from Submitted to UnderReview', mail.outbox[0].body)

    def test_email_requires_recipient(self):
        with self.assertRaises(ValidationFailedError):
            services.send_email_notification('', subject='Nothing', body='Nothing')
        self.assertEqual(NotificationLog.objects.count(), 0)

    def test_email_failure_is_logged_and_raised(self):
        with patch('backend.notifications.services.EmailMessage.send', side_effect=OSError('SMTP down')):
            with self.assertRaises(OSError):
                services.send_email_notification('buyer@contoso.test', subject='S', body='B')
        log = NotificationLog.objects.get()
        self.assertEqual(log.status, NotificationLog.STATUS_FAILED)
        self.assertEqual(log.error_message, 'SMTP down')
        self.assertEqual(log.retry_count, 1)

    def test_retry_failed_notifications(self):
        """Test failed notifications are resent until retries run out"""
        with patch('backend.notifications.services.EmailMessage.send', side_effect=OSError('SMTP down')):
            with self.assertRaises(OSError):
                services.send_email_notification('buyer@contoso.test', subject='S', body='B')
            result = services.retry_failed_notifications()
        self.assertEqual(result, {'retried': 1, 'succeeded': 0, 'failed': 1})
        self.assertEqual(NotificationLog.objects.get().retry_count, 2)

        result = services.retry_failed_notifications()
        self.assertEqual(result['succeeded'], 1)
        self.assertEqual(NotificationLog.objects.get().status, NotificationLog.STATUS_SENT)
        self.assertEqual(len(mail.outbox), 1)

    def test_retry_skips_exhausted(self):
        NotificationLog.objects.create(
            notification_type='email', recipient='x@test.com', subject='S', message='B',
            status=NotificationLog.STATUS_FAILED, retry_count=NotificationLog.MAX_RETRIES,
        )
        self.assertEqual(services.retry_failed_notifications()['retried'], 0)

    @override_settings(SMS_GATEWAY_URL='')
    def test_sms_without_gateway(self):
        """Test SMS is only logged when no gateway is configured"""
        with patch('backend.notifications.services.requests.post') as post:
            log = services.send_sms_notification('+15550100', message='Your order shipped')
        post.assert_not_called()
        self.assertEqual(log.status, NotificationLog.STATUS_SENT)
        self.assertEqual(log.subject, 'SMS Notification')

    @override_settings(SMS_GATEWAY_URL='https://sms.example.test/send', SMS_GATEWAY_TOKEN='secret')
    def test_sms_through_gateway(self):
        response = MagicMock()
        response.json.return_value = {'message_id': 'msg-42'}
        with patch('backend.notifications.services.requests.post', return_value=response) as post:
            log = services.send_sms_notification('+15550100', message='Ready')
        self.assertEqual(log.external_message_id, 'msg-42')
        _, kwargs = post.call_args
        self.assertEqual(kwargs['json']['to'], '+15550100')
        self.assertEqual(kwargs['headers']['Authorization'], 'Bearer secret')

    @override_settings(SMS_GATEWAY_URL='https://sms.example.test/send')
    def test_sms_gateway_failure(self):
        with patch('backend.notifications.services.requests.post',
                   side_effect=requests.exceptions.ConnectionError('gateway down')):
            with self.assertRaises(requests.exceptions.RequestException):
                services.send_sms_notification('+15550100', message='Ready')
        self.assertEqual(NotificationLog.objects.get().status, NotificationLog.STATUS_FAILED)

    def test_bulk_notification(self):
        """Test one bad recipient does not stop the others"""
        result = services.send_bulk_notification(
            'email', ['a@contoso.test', '', 'b@contoso.test'], subject='Notice', message='Plant closed Friday'
        )
        self.assertEqual(result, {'total': 3, 'sent': 2, 'failed': 1, 'failed_recipients': ['']})
        self.assertEqual(len(mail.outbox), 2)
        with self.assertRaises(ValidationFailedError):
            services.send_bulk_notification('fax', ['a@contoso.test'], message='x')

    def test_customer_preferences_respected(self):
        """Test opted-out customers get nothing and SMS goes to opted-in phones"""
        order = TestDataFactory.create_order(customer_id='CUST-P')
        CustomerNotificationPreference.objects.create(
            customer_id='CUST-P', email='pref@contoso.test', phone='+15550111',
            sms_enabled=True, notify_on_status_change=False,
        )
        sent = services.send_order_status_change_notification(order, OrderStatus.SUBMITTED, OrderStatus.UNDER_REVIEW)
        self.assertEqual(sent, [])
        self.assertEqual(len(mail.outbox), 0)

        sent = services.send_order_status_change_notification(order, OrderStatus.READY_FOR_DELIVERY,
                                                              OrderStatus.DELIVERED)
        self.assertEqual([log.notification_type for log in sent], ['email', 'sms'])
        self.assertEqual(mail.outbox[0].to, ['pref@contoso.test'])
        self.assertEqual(mail.outbox[0].subject, f"Order Status Update - {order.order_number}")

    def test_customer_update_notification(self):
        user = TestDataFactory.create_customer_user(email='owner@contoso.test')
        order = TestDataFactory.create_order(customer_id=user.customer_id, created_by=user)
        services.send_customer_order_update_notification(order, 'Supplier delayed by two days')
        self.assertEqual(mail.outbox[0].subject, f"Order Update - {order.order_number}")
        self.assertIn('Supplier delayed by two days', mail.outbox[0].body)

    def test_template_name_must_be_unique(self):
        services.create_template({'name': 'Delay', 'body': 'Late'})
        with self.assertRaises(ValidationFailedError):
            services.create_template({'name': 'Delay', 'body': 'Late again'})
        other = services.create_template({'name': 'Other', 'body': 'Other'})
        with self.assertRaises(ValidationFailedError):
            services.update_template(other.id, {'name': 'Delay'})


class NotificationAPITests(TestCase):
    """Test notification API endpoints"""

    def setUp(self):
        self.user = TestDataFactory.create_planner()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_template_crud(self):
        response = self.client.post('/api/v1/notifications/templates/', {
            'name': 'DelayNotice',
            'notification_type': 'email',
            'subject': 'Order {OrderNumber} delayed',
            'body': 'Dear {CustomerName}, sorry.',
            'required_parameters': ['OrderNumber']
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['placeholders'], ['CustomerName', 'OrderNumber'])
        template_id = response.data['id']

        response = self.client.post('/api/v1/notifications/templates/', {
            'name': 'DelayNotice', 'body': 'Duplicate'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['code'], 'validation_error')

        response = self.client.patch(f'/api/v1/notifications/templates/{template_id}/', {
            'is_active': False
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['is_active'])

        response = self.client.get('/api/v1/notifications/templates/', {'active_only': 'true'})
        self.assertEqual(response.data, [])

        response = self.client.get('/api/v1/notifications/templates/999999/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

        response = self.client.delete(f'/api/v1/notifications/templates/{template_id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(NotificationTemplate.objects.filter(pk=template_id).exists())
        self.assertTrue(AuditLog.objects.filter(
            action='delete', entity_type='NotificationTemplate', entity_reference='DelayNotice'
        ).exists())
        response = self.client.delete(f'/api/v1/notifications/templates/{template_id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_bulk_and_logs(self):
        response = self.client.post('/api/v1/notifications/bulk/', {
            'notification_type': 'email',
            'recipients': ['a@contoso.test', 'b@contoso.test'],
            'subject': 'Notice',
            'message': 'Holiday schedule',
            'priority': 'high'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['sent'], 2)

        response = self.client.get('/api/v1/notifications/logs/', {'recipient': 'a@contoso'})
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['priority'], 'high')

    def test_bulk_requires_content(self):
        response = self.client.post('/api/v1/notifications/bulk/', {
            'notification_type': 'sms', 'recipients': ['+15550100']
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_retry_endpoint(self):
        response = self.client.post('/api/v1/notifications/retry/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['retried'], 0)

    def test_customer_preferences(self):
        """Test customers read defaults and save their preferences"""
        customer = TestDataFactory.create_customer_user(customer_id='CUST-N', email='n@contoso.test')
        self.client.authenticate_user(customer)

        response = self.client.get('/api/v1/customer/notifications/preferences/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['email'], 'n@contoso.test')
        self.assertTrue(response.data['notify_on_status_change'])
        self.assertFalse(CustomerNotificationPreference.objects.exists())

        response = self.client.put('/api/v1/customer/notifications/preferences/', {
            'phone': '+15550123', 'sms_enabled': True, 'notify_on_delay': False, 'customer_id': 'HIJACK'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        preferences = CustomerNotificationPreference.objects.get()
        self.assertEqual(preferences.customer_id, 'CUST-N')
        self.assertTrue(preferences.sms_enabled)
        self.assertFalse(preferences.notify_on_delay)

    def test_supplier_has_no_preferences(self):
        self.client.authenticate_user(TestDataFactory.create_supplier_user(TestDataFactory.create_supplier()))
        response = self.client.get('/api/v1/customer/notifications/preferences/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_customer_cannot_manage_templates(self):
        self.client.authenticate_user(TestDataFactory.create_customer_user())
        response = self.client.get('/api/v1/notifications/templates/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
