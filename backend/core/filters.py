import django_filters

from .models import AuditLog


class AuditLogFilter(django_filters.FilterSet):
    """Filter for the audit log listing and export"""
    user_id = django_filters.NumberFilter(field_name='user_id')
    username = django_filters.CharFilter(field_name='username', lookup_expr='icontains')
    action = django_filters.CharFilter(field_name='action', lookup_expr='icontains')
    entity_type = django_filters.CharFilter(field_name='entity_type', lookup_expr='exact')
    entity_id = django_filters.CharFilter(field_name='entity_id', lookup_expr='exact')
    result = django_filters.ChoiceFilter(choices=AuditLog.RESULT_CHOICES)
    ip_address = django_filters.CharFilter(field_name='ip_address', lookup_expr='exact')
    from_date = django_filters.IsoDateTimeFilter(field_name='created_at', lookup_expr='gte')
    to_date = django_filters.IsoDateTimeFilter(field_name='created_at', lookup_expr='lte')
    sort_by = django_filters.OrderingFilter(
        fields=(
            ('created_at', 'timestamp'),
            ('action', 'action'),
            ('entity_type', 'entity_type'),
            ('username', 'username'),
            ('result', 'result'),
        )
    )

    class Meta:
        model = AuditLog
        fields = ['user_id', 'username', 'action', 'entity_type', 'entity_id', 'result', 'ip_address']
