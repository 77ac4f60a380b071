"""
Email and SMS notifications.

Every attempt is recorded as a NotificationLog. Email goes through Django's
mail framework; SMS is posted to an HTTP gateway when SMS_GATEWAY_URL is
configured and only logged otherwise.
"""
import logging

import requests
from django.conf import settings
from django.core.mail import EmailMessage
from django.db import transaction

from backend.core.exceptions import NotFoundError, ValidationFailedError
from backend.core.utils import create_audit_log

from .models import (
    CustomerNotificationPreference, NotificationLog, NotificationTemplate,
    render_placeholders, TYPE_EMAIL, TYPE_SMS,
)

logger = logging.getLogger(__name__)

TEMPLATE_ORDER_STATUS_CHANGE = 'OrderStatusChange'
TEMPLATE_SUPPLIER_NEW_ORDER = 'SupplierNewOrder'
TEMPLATE_CUSTOMER_ORDER_UPDATE = 'CustomerOrderUpdate'
TEMPLATE_PLANNER_SUPPLIER_RESPONSE = 'PlannerSupplierResponse'

# Used when no active template with the given name exists
DEFAULT_BODIES = {
    TEMPLATE_ORDER_STATUS_CHANGE: (
        "Dear {CustomerName},\n\n"
        "The status of your order {OrderNumber} changed from {PreviousStatus} to {NewStatus}.\n"
        "Requested delivery date: {DeliveryDate}."
    ),
    TEMPLATE_SUPPLIER_NEW_ORDER: (
        "Dear {SupplierName},\n\n"
        "Purchase order {PurchaseOrderNumber} for customer order {CustomerOrderNumber} "
        "has been sent to you.\n"
        "Required delivery date: {DeliveryDate}. Total value: {TotalValue}."
    ),
    TEMPLATE_CUSTOMER_ORDER_UPDATE: (
        "Dear {CustomerName},\n\n"
        "Update on order {OrderNumber} (current status {CurrentStatus}):\n{UpdateMessage}"
    ),
    TEMPLATE_PLANNER_SUPPLIER_RESPONSE: (
        "{SupplierName} {Response} purchase order {PurchaseOrderNumber} "
        "for customer order {CustomerOrderNumber}.\n{SupplierNotes}"
    ),
}

TEMPLATE_FIELDS = ('name', 'description', 'notification_type', 'subject', 'body', 'is_active', 'required_parameters')


def _get_active_template(name):
    if not name:
        return None
    return NotificationTemplate.objects.filter(name=name, is_active=True).first()


def _render(template_name, template_data, subject, body):
    """Resolve subject/body from a named template, the built-in default or the given text"""
    template = _get_active_template(template_name)
    if template is not None:
        missing = template.validate_parameters(template_data)
        if missing:
            logger.warning(f"Template {template_name} rendered without parameters: {', '.join(missing)}")
        return (template.render_subject(template_data) or subject or ''), template.render_body(template_data)

    if not body and template_name in DEFAULT_BODIES:
        body = DEFAULT_BODIES[template_name]
    return render_placeholders(subject or '', template_data), render_placeholders(body or '', template_data)


def send_email_notification(to, subject=None, body=None, template_name=None, template_data=None,
                            priority=NotificationLog.PRIORITY_NORMAL, cc=None, bcc=None, metadata=None):
    """
    Send an email and record it. On failure the log is marked failed and
    the error is re-raised.
    """
    if not to:
        raise ValidationFailedError("Email recipient is required")

    subject, body = _render(template_name, template_data, subject, body)
    log = NotificationLog.objects.create(
        notification_type=TYPE_EMAIL,
        recipient=to,
        subject=subject[:200],
        message=body,
        priority=priority,
        metadata={**(metadata or {}), 'template_name': template_name} if template_name else (metadata or {}),
    )

    try:
        _deliver_email(log, cc=cc, bcc=bcc)
    except Exception as e:
        log.mark_failed(str(e))
        log.save()
        logger.error(f"Failed to send email to {to}: {str(e)}")
        raise

    logger.info(f"Email sent to {to}: {subject}")
    return log


def _deliver_email(log, cc=None, bcc=None):
    message = EmailMessage(
        subject=log.subject,
        body=log.message,
        from_email=settings.DEFAULT_FROM_EMAIL,
        to=[log.recipient],
        cc=[cc] if isinstance(cc, str) else cc,
        bcc=[bcc] if isinstance(bcc, str) else bcc,
    )
    message.send(fail_silently=False)
    log.mark_sent()
    log.save()


def send_sms_notification(phone_number, message=None, template_name=None, template_data=None,
                          priority=NotificationLog.PRIORITY_NORMAL, metadata=None):
    """Send an SMS through the configured gateway and record it"""
    if not phone_number:
        raise ValidationFailedError("Phone number is required")

    _, body = _render(template_name, template_data, None, message)
    log = NotificationLog.objects.create(
        notification_type=TYPE_SMS,
        recipient=phone_number,
        subject='SMS Notification',
        message=body,
        priority=priority,
        metadata=metadata or {},
    )

    try:
        _deliver_sms(log)
    except requests.exceptions.RequestException as e:
        log.mark_failed(str(e))
        log.save()
        logger.error(f"Failed to send SMS to {phone_number}: {str(e)}")
        raise

    return log


def _deliver_sms(log):
    gateway_url = getattr(settings, 'SMS_GATEWAY_URL', '')
    if not gateway_url:
        logger.info(f"SMS gateway not configured; SMS to {log.recipient}: {log.message}")
        log.mark_sent()
        log.save()
        return

    headers = {'Content-Type': 'application/json'}
    token = getattr(settings, 'SMS_GATEWAY_TOKEN', '')
    if token:
        headers['Authorization'] = f"Bearer {token}"

    response = requests.post(
        gateway_url,
        json={'to': log.recipient, 'message': log.message, 'priority': log.priority},
        headers=headers,
        timeout=getattr(settings, 'SMS_GATEWAY_TIMEOUT', 10),
    )
    response.raise_for_status()

    external_id = None
    try:
        payload = response.json()
        external_id = payload.get('message_id') or payload.get('id')
    except ValueError:
        pass

    log.mark_sent(external_message_id=str(external_id) if external_id else None)
    log.save()
    logger.info(f"SMS sent to {log.recipient} via gateway")


def get_customer_preferences(customer_id):
    return CustomerNotificationPreference.objects.filter(customer_id=customer_id).first()


def _customer_contacts(order):
    """(email, phone, preferences) for the customer of an order"""
    preferences = get_customer_preferences(order.customer_id)
    email = preferences.email if preferences and preferences.email else None
    phone = preferences.phone if preferences and preferences.phone else None
    if not email and order.created_by_id and order.created_by.email:
        email = order.created_by.email
    return email, phone, preferences


def _notify_customer(order, preference_flag, subject, template_name, template_data, sms_text):
    email, phone, preferences = _customer_contacts(order)
    sent = []

    if preferences is not None and not getattr(preferences, preference_flag):
        logger.debug(f"Customer {order.customer_id} opted out of {preference_flag}")
        return sent

    email_enabled = preferences.email_enabled if preferences else True
    if email_enabled and email:
        try:
            sent.append(send_email_notification(
                email, subject=subject, template_name=template_name, template_data=template_data,
                metadata={'order_id': order.id},
            ))
        except Exception as e:
            logger.error(f"Failed to send email notification for order {order.order_number}: {str(e)}")
    elif email_enabled:
        logger.warning(f"No email address on file for customer {order.customer_id}")

    if preferences and preferences.sms_enabled and phone:
        try:
            sent.append(send_sms_notification(phone, message=sms_text, metadata={'order_id': order.id}))
        except Exception as e:
            logger.error(f"Failed to send SMS notification for order {order.order_number}: {str(e)}")
    return sent


def send_order_status_change_notification(order, previous_status, new_status):
    """Tell the customer their order moved; failures are logged, not raised"""
    logger.info(f"Sending status change notification for order {order.order_number}")
    template_data = {
        'OrderNumber': order.order_number,
        'CustomerName': order.customer_name,
        'PreviousStatus': previous_status,
        'NewStatus': new_status,
        'DeliveryDate': order.requested_delivery_date.strftime('%Y-%m-%d'),
    }
    preference_flag = 'notify_on_delivery' if new_status == 'Delivered' else 'notify_on_status_change'
    return _notify_customer(
        order,
        preference_flag,
        subject=f"Order Status Update - {order.order_number}",
        template_name=TEMPLATE_ORDER_STATUS_CHANGE,
        template_data=template_data,
        sms_text=f"Order {order.order_number} is now {new_status}.",
    )


def send_supplier_order_notification(purchase_order):
    """Tell a supplier about a new purchase order; failures are logged, not raised"""
    supplier = purchase_order.supplier
    template_data = {
        'PurchaseOrderNumber': purchase_order.purchase_order_number,
        'SupplierName': supplier.name,
        'CustomerOrderNumber': purchase_order.customer_order.order_number,
        'DeliveryDate': purchase_order.required_delivery_date.strftime('%Y-%m-%d'),
        'TotalValue': str(purchase_order.total_value),
    }
    try:
        return send_email_notification(
            supplier.contact_email,
            subject=f"New Purchase Order - {purchase_order.purchase_order_number}",
            template_name=TEMPLATE_SUPPLIER_NEW_ORDER,
            template_data=template_data,
            priority=NotificationLog.PRIORITY_HIGH,
            metadata={'purchase_order_id': purchase_order.id, 'supplier_id': supplier.id},
        )
    except Exception as e:
        logger.error(
            f"Failed to send supplier notification for purchase order "
            f"{purchase_order.purchase_order_number}: {str(e)}"
        )
        return None


def send_planner_supplier_response_notification(purchase_order, response, supplier_notes=None):
    """
    Email the order's assigned planner (or the PO's creator) that a supplier
    confirmed or rejected a purchase order. Returns the log, or None when
    there is nobody to tell or sending failed.
    """
    order = purchase_order.customer_order
    planner = order.assigned_planner or purchase_order.created_by
    if planner is None or not planner.email:
        logger.warning(
            f"No planner email for purchase order {purchase_order.purchase_order_number}; "
            f"supplier response '{response}' not emailed"
        )
        return None

    template_data = {
        'PurchaseOrderNumber': purchase_order.purchase_order_number,
        'SupplierName': purchase_order.supplier.name,
        'CustomerOrderNumber': order.order_number,
        'Response': response,
        'SupplierNotes': supplier_notes or '',
    }
    try:
        return send_email_notification(
            planner.email,
            subject=f"Purchase Order {response.capitalize()} - {purchase_order.purchase_order_number}",
            template_name=TEMPLATE_PLANNER_SUPPLIER_RESPONSE,
            template_data=template_data,
            priority=NotificationLog.PRIORITY_HIGH,
            metadata={'purchase_order_id': purchase_order.id, 'planner_id': planner.id},
        )
    except Exception as e:
        logger.error(
            f"Failed to notify planner about purchase order "
            f"{purchase_order.purchase_order_number}: {str(e)}"
        )
        return None


def send_customer_order_update_notification(order, update_message):
    template_data = {
        'OrderNumber': order.order_number,
        'CustomerName': order.customer_name,
        'UpdateMessage': update_message,
        'CurrentStatus': order.status,
    }
    return _notify_customer(
        order,
        'notify_on_delay',
        subject=f"Order Update - {order.order_number}",
        template_name=TEMPLATE_CUSTOMER_ORDER_UPDATE,
        template_data=template_data,
        sms_text=f"Order {order.order_number}: {update_message}",
    )


def send_bulk_notification(notification_type, recipients, subject=None, message=None,
                           template_name=None, template_data=None,
                           priority=NotificationLog.PRIORITY_NORMAL):
    """Send to each recipient in turn; per-recipient failures are counted, not raised"""
    if notification_type not in (TYPE_EMAIL, TYPE_SMS):
        raise ValidationFailedError(f"Unsupported notification type: {notification_type}")

    logger.info(f"Sending bulk {notification_type} notification to {len(recipients)} recipients")
    sent, failed = 0, []
    for recipient in recipients:
        try:
            if notification_type == TYPE_EMAIL:
                send_email_notification(
                    recipient, subject=subject, body=message, template_name=template_name,
                    template_data=template_data, priority=priority,
                )
            else:
                send_sms_notification(
                    recipient, message=message, template_name=template_name,
                    template_data=template_data, priority=priority,
                )
            sent += 1
        except Exception as e:
            logger.error(f"Failed to send bulk notification to {recipient}: {str(e)}")
            failed.append(recipient)

    return {'total': len(recipients), 'sent': sent, 'failed': len(failed), 'failed_recipients': failed}


def retry_failed_notifications(max_retries=NotificationLog.MAX_RETRIES):
    """Resend failed notifications that still have retries left"""
    retried, succeeded = 0, 0
    for log in NotificationLog.objects.filter(status=NotificationLog.STATUS_FAILED, retry_count__lt=max_retries):
        if not log.can_retry(max_retries):
            continue
        retried += 1
        try:
            if log.notification_type == TYPE_EMAIL:
                _deliver_email(log)
            else:
                _deliver_sms(log)
            succeeded += 1
        except Exception as e:
            log.mark_failed(str(e))
            log.save()
            logger.warning(f"Retry {log.retry_count} for notification {log.id} failed: {str(e)}")

    logger.info(f"Retried {retried} failed notifications, {succeeded} succeeded")
    return {'retried': retried, 'succeeded': succeeded, 'failed': retried - succeeded}


# --- Templates ---

def list_templates(notification_type=None, active_only=False):
    queryset = NotificationTemplate.objects.all()
    if notification_type:
        queryset = queryset.filter(notification_type=notification_type)
    if active_only:
        queryset = queryset.filter(is_active=True)
    return queryset


def get_template(template_id):
    try:
        return NotificationTemplate.objects.get(pk=template_id)
    except NotificationTemplate.DoesNotExist:
        raise NotFoundError(f"Notification template with ID {template_id} not found")


@transaction.atomic
def create_template(data, user=None, request=None):
    if NotificationTemplate.objects.filter(name=data.get('name')).exists():
        raise ValidationFailedError(f"Template '{data.get('name')}' already exists")
    template = NotificationTemplate.objects.create(
        **{field: data[field] for field in TEMPLATE_FIELDS if field in data}
    )
    create_audit_log(
        request=request,
        user=user,
        action='template_create',
        entity_type='NotificationTemplate',
        entity_id=template.id,
        entity_reference=template.name,
        new_values={'name': template.name, 'notification_type': template.notification_type},
    )
    logger.info(f"Notification template created: {template.name}")
    return template


@transaction.atomic
def update_template(template_id, data, user=None, request=None):
    template = get_template(template_id)
    old_values = {'subject': template.subject, 'body': template.body, 'is_active': template.is_active}

    new_name = data.get('name')
    if new_name and new_name != template.name and NotificationTemplate.objects.filter(name=new_name).exists():
        raise ValidationFailedError(f"Template '{new_name}' already exists")

    for field in TEMPLATE_FIELDS:
        if field in data:
            setattr(template, field, data[field])
    template.save()

    create_audit_log(
        request=request,
        user=user,
        action='template_update',
        entity_type='NotificationTemplate',
        entity_id=template.id,
        entity_reference=template.name,
        old_values=old_values,
        new_values={'subject': template.subject, 'body': template.body, 'is_active': template.is_active},
    )
    return template


@transaction.atomic
def delete_template(template_id, user=None, request=None):
    template = get_template(template_id)
    create_audit_log(
        request=request,
        user=user,
        action='delete',
        entity_type='NotificationTemplate',
        entity_id=template.id,
        entity_reference=template.name,
        old_values={'name': template.name, 'notification_type': template.notification_type},
    )
    logger.info(f"Notification template deleted: {template.name}")
    template.delete()


@transaction.atomic
def update_customer_preferences(customer_id, data):
    preferences, _ = CustomerNotificationPreference.objects.get_or_create(customer_id=customer_id)
    for field in ('email', 'phone', 'email_enabled', 'sms_enabled',
                  'notify_on_status_change', 'notify_on_delivery', 'notify_on_delay'):
        if field in data:
            setattr(preferences, field, data[field])
    preferences.save()
    return preferences
