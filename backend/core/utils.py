"""Utility functions for audit logging, pagination and request parsing"""
import logging
from datetime import datetime

from django.core.paginator import Paginator

from .exceptions import ValidationFailedError
from .models import AuditLog
from .permissions import get_primary_role

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


def get_client_ip(request):
    """Extract client IP address from request"""
    if not request or not hasattr(request, 'META'):
        return None
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        ip = x_forwarded_for.split(',')[0].strip()
    else:
        ip = request.META.get('REMOTE_ADDR')
    return ip or None


def create_audit_log(request=None, action=None, entity_type=None, entity_id=None,
                     old_values=None, new_values=None, user=None, entity_reference=None,
                     result=AuditLog.RESULT_SUCCESS, error_message=None, additional_data=None):
    """
    Create an audit log entry

    Args:
        request: Django request object (for user, IP and user agent) - optional if user is provided
        action: Action type (order_create, po_confirm, etc.)
        entity_type: Name of the entity being acted upon
        entity_id: ID of the entity (as string)
        old_values / new_values: Dictionaries describing the change
        user: Optional user override (defaults to request.user if request provided)
        entity_reference: Human-readable reference (order number, PO number)
        result: success / failed / unauthorized / validation_error
        error_message: Reason for a non-successful result
        additional_data: Any extra context
    """
    try:
        audit_user = None
        if user:
            audit_user = user
        elif request and hasattr(request, 'user'):
            audit_user = request.user
        if audit_user is not None and not audit_user.is_authenticated:
            audit_user = None

        if not action or not entity_type or entity_id in (None, ''):
            logger.warning(f"Audit log creation skipped: missing required fields (action={action}, entity_type={entity_type}, entity_id={entity_id})")
            return None

        user_agent = None
        if request is not None and hasattr(request, 'META'):
            user_agent = (request.META.get('HTTP_USER_AGENT') or '')[:500] or None

        return AuditLog.objects.create(
            user=audit_user,
            username=audit_user.username if audit_user else None,
            user_role=get_primary_role(audit_user) if audit_user else None,
            action=action,
            entity_type=entity_type,
            entity_id=str(entity_id),
            entity_reference=entity_reference,
            old_values=old_values or {},
            new_values=new_values or {},
            additional_data=additional_data or {},
            ip_address=get_client_ip(request) if request else None,
            user_agent=user_agent,
            result=result,
            error_message=(error_message or '')[:1000] or None,
        )
    except Exception as e:
        # Don't fail the main operation if audit logging fails
        logger.error(f"Failed to create audit log: {str(e)}")
        return None


def get_page_params(request, default_page_size=DEFAULT_PAGE_SIZE):
    """
    Read `page` and `page_size` query params.
    page < 1 becomes 1; page_size outside 1..100 becomes the default.
    """
    try:
        page = int(request.query_params.get('page', 1))
    except (TypeError, ValueError):
        page = 1
    try:
        page_size = int(request.query_params.get('page_size', default_page_size))
    except (TypeError, ValueError):
        page_size = default_page_size
    return normalize_page_params(page, page_size, default_page_size)


def normalize_page_params(page, page_size, default_page_size=DEFAULT_PAGE_SIZE):
    if page < 1:
        page = 1
    if page_size < 1 or page_size > MAX_PAGE_SIZE:
        page_size = default_page_size
    return page, page_size


def paginate(queryset, page, page_size, serializer_class, context=None):
    """Paginate a queryset into the standard list payload"""
    paginator = Paginator(queryset, page_size)
    page_obj = paginator.get_page(page)
    serializer = serializer_class(page_obj, many=True, context=context or {})
    return {
        'results': serializer.data,
        'count': paginator.count,
        'next': page_obj.next_page_number() if page_obj.has_next() else None,
        'previous': page_obj.previous_page_number() if page_obj.has_previous() else None,
        'page': page_obj.number,
        'page_size': page_size,
        'total_pages': paginator.num_pages,
    }


def parse_date(value, field_name='date'):
    """Parse a YYYY-MM-DD string; raises ValidationFailedError with a readable message"""
    if value in (None, ''):
        return None
    if hasattr(value, 'year'):
        return value
    try:
        return datetime.strptime(str(value)[:10], '%Y-%m-%d').date()
    except ValueError:
        raise ValidationFailedError(f"Invalid {field_name}: expected YYYY-MM-DD")
