"""
Audit trail queries, reports and exports.

Entries are written with `backend.core.utils.create_audit_log`; this module
reads them back.
"""
import csv
import io
import logging

from django.db.models import Count

from .exceptions import ValidationFailedError
from .filters import AuditLogFilter
from .models import AuditLog
from .utils import create_audit_log, normalize_page_params

logger = logging.getLogger(__name__)

EXPORT_HEADER = [
    'Timestamp', 'Action', 'EntityType', 'EntityId', 'Username',
    'UserRole', 'IpAddress', 'Result', 'ErrorMessage',
]
EXPORT_FORMATS = ('csv', 'excel')

log = create_audit_log


def filter_audit_logs(filters=None):
    filterset = AuditLogFilter(filters or {}, queryset=AuditLog.objects.select_related('user'))
    if not filterset.is_valid():
        raise ValidationFailedError("Invalid audit log filters", errors=filterset.errors)
    return filterset.qs


def get_audit_logs(filters=None, page=1, page_size=20):
    """Returns (queryset, page, page_size); newest first unless sort_by is given"""
    page, page_size = normalize_page_params(page, page_size)
    return filter_audit_logs(filters), page, page_size


def get_entity_audit_trail(entity_type, entity_id):
    return AuditLog.objects.select_related('user').filter(
        entity_type=entity_type, entity_id=str(entity_id)
    ).order_by('created_at', 'id')


def get_user_audit_trail(user_id, from_date=None, to_date=None):
    queryset = AuditLog.objects.select_related('user').filter(user_id=user_id)
    if from_date:
        queryset = queryset.filter(created_at__gte=from_date)
    if to_date:
        queryset = queryset.filter(created_at__lte=to_date)
    return queryset.order_by('-created_at', '-id')


def _group(queryset, field, category, total):
    rows = queryset.values(field).annotate(count=Count('id')).order_by('-count', field)
    return [
        {
            'category': category,
            'value': row[field] or 'Unknown',
            'count': row['count'],
            'percentage': round(row['count'] / total * 100, 2) if total else 0.0,
        }
        for row in rows
    ]


def generate_audit_report(from_date, to_date, entity_type=None, action=None, user_id=None,
                          include_successful=True, include_failed=True,
                          group_by_user=True, group_by_action=True, group_by_entity_type=True):
    """Totals and grouped breakdowns of audit activity in a time window"""
    if from_date and to_date and from_date > to_date:
        raise ValidationFailedError("from_date must be before to_date")

    queryset = AuditLog.objects.filter(created_at__gte=from_date, created_at__lte=to_date)
    if entity_type:
        queryset = queryset.filter(entity_type=entity_type)
    if action:
        queryset = queryset.filter(action__icontains=action)
    if user_id:
        queryset = queryset.filter(user_id=user_id)
    if not include_successful:
        queryset = queryset.exclude(result=AuditLog.RESULT_SUCCESS)
    if not include_failed:
        queryset = queryset.filter(result=AuditLog.RESULT_SUCCESS)

    total = queryset.count()
    successful = queryset.filter(result=AuditLog.RESULT_SUCCESS).count()

    summary = []
    if group_by_user:
        summary.extend(_group(queryset, 'username', 'User', total))
    if group_by_action:
        summary.extend(_group(queryset, 'action', 'Action', total))
    if group_by_entity_type:
        summary.extend(_group(queryset, 'entity_type', 'Entity Type', total))

    return {
        'from_date': from_date,
        'to_date': to_date,
        'total_actions': total,
        'successful_actions': successful,
        'failed_actions': total - successful,
        'summary': summary,
        'details': queryset.select_related('user').order_by('-created_at'),
    }


def export_audit_logs(filters=None, export_format='csv'):
    """
    Render filtered audit logs as CSV text. "excel" is served as CSV.
    """
    export_format = (export_format or 'csv').lower()
    if export_format not in EXPORT_FORMATS:
        raise ValidationFailedError(f"Unsupported export format: {export_format}")

    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(EXPORT_HEADER)
    count = 0
    for entry in filter_audit_logs(filters).iterator():
        writer.writerow([
            entry.created_at.strftime('%Y-%m-%d %H:%M:%S'),
            entry.action,
            entry.entity_type,
            entry.entity_id,
            entry.username or '',
            entry.user_role or '',
            entry.ip_address or '',
            entry.result,
            entry.error_message or '',
        ])
        count += 1

    logger.info(f"Exported {count} audit log entries as {export_format}")
    return buffer.getvalue()
