import logging
from datetime import timedelta

from django.http import HttpResponse
from django.utils import timezone
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated

from backend.core.exceptions import ServiceError, ValidationFailedError, error_response
from backend.core.permissions import IsPlanner
from backend.core.utils import create_audit_log, parse_date
from . import dashboard, services

logger = logging.getLogger('backend.reports')

DEFAULT_REPORT_DAYS = 30


def _flag(request, name, default=True):
    value = request.query_params.get(name)
    if value in (None, ''):
        return default
    return value.lower() in ('true', '1', 'yes')


def _optional_int(request, name):
    value = request.query_params.get(name)
    if value in (None, ''):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationFailedError(f"{name} must be an integer")


def _date_range(request):
    """from_date / to_date, defaulting to the last 30 days"""
    to_date = parse_date(request.query_params.get('to_date'), 'to_date') or timezone.now().date()
    from_date = (
        parse_date(request.query_params.get('from_date'), 'from_date')
        or to_date - timedelta(days=DEFAULT_REPORT_DAYS)
    )
    return from_date, to_date


def _performance_metrics(request):
    from_date, to_date = _date_range(request)
    return services.generate_performance_metrics_report(
        from_date, to_date,
        product_type=request.query_params.get('product_type') or None,
        supplier_id=_optional_int(request, 'supplier_id'),
        include_order_metrics=_flag(request, 'include_order_metrics'),
        include_supplier_metrics=_flag(request, 'include_supplier_metrics'),
        include_delivery_metrics=_flag(request, 'include_delivery_metrics'),
    )


def _supplier_distribution(request):
    from_date, to_date = _date_range(request)
    return services.generate_supplier_distribution_report(
        from_date, to_date,
        product_type=request.query_params.get('product_type') or None,
        group_by_product_type=_flag(request, 'group_by_product_type'),
        include_capacity_utilization=_flag(request, 'include_capacity_utilization'),
    )


def _order_fulfillment(request):
    from_date, to_date = _date_range(request)
    return services.generate_order_fulfillment_report(
        from_date, to_date,
        customer_id=request.query_params.get('customer_id') or None,
        product_type=request.query_params.get('product_type') or None,
        group_by_status=_flag(request, 'group_by_status'),
        group_by_customer=_flag(request, 'group_by_customer'),
        include_timelines=_flag(request, 'include_timelines'),
    )


def _delivery_performance(request):
    from_date, to_date = _date_range(request)
    return services.generate_delivery_performance_report(
        from_date, to_date,
        supplier_id=_optional_int(request, 'supplier_id'),
        product_type=request.query_params.get('product_type') or None,
        group_by_supplier=_flag(request, 'group_by_supplier'),
        include_delay_analysis=_flag(request, 'include_delay_analysis'),
        group_by_month=_flag(request, 'group_by_month'),
    )


REPORT_BUILDERS = {
    'performance-metrics': _performance_metrics,
    'supplier-distribution': _supplier_distribution,
    'order-fulfillment': _order_fulfillment,
    'delivery-performance': _delivery_performance,
}


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsPlanner])
def report_detail(request, report_name):
    """Generate one of the planning reports"""
    try:
        report = REPORT_BUILDERS[report_name](request)
    except ServiceError as e:
        return error_response(e)
    return Response(report)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsPlanner])
def report_export(request, report_name):
    """Download a report as CSV (also for ?format_type=excel) or JSON"""
    export_format = request.query_params.get('format_type', 'csv')
    try:
        report = REPORT_BUILDERS[report_name](request)
        content, content_type, extension = services.export_report(report, export_format)
    except ServiceError as e:
        return error_response(e)

    create_audit_log(request=request, action='export', entity_type='Report', entity_id=report_name,
                     additional_data={'format': export_format})
    logger.info(f"Report {report_name} exported as {export_format}")
    filename = f"{report_name.replace('-', '_')}_{timezone.now().strftime('%Y%m%d_%H%M%S')}.{extension}"
    response = HttpResponse(content, content_type=content_type)
    response['Content-Disposition'] = f'attachment; filename="{filename}"'
    return response


def _dashboard_filters(request):
    return {
        'product_type': request.query_params.get('product_type') or None,
        'customer_id': request.query_params.get('customer_id') or None,
        'start_date': parse_date(request.query_params.get('start_date'), 'start_date'),
        'end_date': parse_date(request.query_params.get('end_date'), 'end_date'),
    }


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsPlanner])
def dashboard_summary(request):
    try:
        return Response(dashboard.get_dashboard_summary(**_dashboard_filters(request)))
    except ServiceError as e:
        return error_response(e)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsPlanner])
def dashboard_delivery_dates(request):
    try:
        return Response(dashboard.get_orders_by_delivery_date(**_dashboard_filters(request)))
    except ServiceError as e:
        return error_response(e)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsPlanner])
def dashboard_top_customers(request):
    try:
        limit = _optional_int(request, 'limit') or 10
        return Response(dashboard.get_top_customers(**_dashboard_filters(request), limit=limit))
    except ServiceError as e:
        return error_response(e)
