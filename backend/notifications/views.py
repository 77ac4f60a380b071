from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated

from backend.core.exceptions import ServiceError, error_response
from backend.core.permissions import IsPlanner, IsPlannerOrCustomer, get_customer_id
from backend.core.utils import get_page_params, paginate
from . import services
from .models import NotificationLog, CustomerNotificationPreference
from .serializers import (
    NotificationTemplateSerializer, NotificationLogSerializer,
    CustomerNotificationPreferenceSerializer, BulkNotificationSerializer
)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsPlanner])
def template_list_create(request):
    """List all notification templates or create a new one"""
    if request.method == 'GET':
        templates = services.list_templates(
            notification_type=request.query_params.get('notification_type') or None,
            active_only=request.query_params.get('active_only', '').lower() in ('true', '1'),
        )
        return Response(NotificationTemplateSerializer(templates, many=True).data)

    serializer = NotificationTemplateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    try:
        template = services.create_template(serializer.validated_data, user=request.user, request=request)
    except ServiceError as e:
        return error_response(e)
    return Response(NotificationTemplateSerializer(template).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsPlanner])
def template_detail(request, pk):
    try:
        if request.method == 'DELETE':
            services.delete_template(pk, user=request.user, request=request)
            return Response(status=status.HTTP_204_NO_CONTENT)
        template = services.get_template(pk)
        if request.method == 'PATCH':
            serializer = NotificationTemplateSerializer(template, data=request.data, partial=True)
            if not serializer.is_valid():
                return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
            template = services.update_template(pk, serializer.validated_data, user=request.user, request=request)
    except ServiceError as e:
        return error_response(e)
    return Response(NotificationTemplateSerializer(template).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsPlanner])
def notification_log_list(request):
    """Sent and failed notifications, newest first"""
    page, page_size = get_page_params(request)
    queryset = NotificationLog.objects.all()
    for param in ('status', 'notification_type', 'priority'):
        value = request.query_params.get(param)
        if value:
            queryset = queryset.filter(**{param: value})
    recipient = request.query_params.get('recipient')
    if recipient:
        queryset = queryset.filter(recipient__icontains=recipient)
    return Response(paginate(queryset.order_by('-created_at'), page, page_size, NotificationLogSerializer))


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsPlanner])
def bulk_notification(request):
    serializer = BulkNotificationSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data
    try:
        result = services.send_bulk_notification(
            data['notification_type'],
            data['recipients'],
            subject=data.get('subject'),
            message=data.get('message'),
            template_name=data.get('template_name') or None,
            template_data=data.get('template_data'),
            priority=data['priority'],
        )
    except ServiceError as e:
        return error_response(e)
    return Response(result)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsPlanner])
def retry_notifications(request):
    return Response(services.retry_failed_notifications())


@api_view(['GET', 'PUT', 'PATCH'])
@permission_classes([IsAuthenticated, IsPlannerOrCustomer])
def customer_notification_preferences(request):
    """Notification preferences of the requesting customer"""
    customer_id = get_customer_id(request.user)
    if request.method == 'GET':
        preferences = services.get_customer_preferences(customer_id)
        if preferences is None:
            # Unsaved defaults
            preferences = CustomerNotificationPreference(customer_id=customer_id, email=request.user.email or None)
        return Response(CustomerNotificationPreferenceSerializer(preferences).data)

    serializer = CustomerNotificationPreferenceSerializer(data=request.data, partial=True)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    preferences = services.update_customer_preferences(customer_id, serializer.validated_data)
    return Response(CustomerNotificationPreferenceSerializer(preferences).data)
