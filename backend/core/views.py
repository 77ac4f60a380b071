import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer, TokenRefreshSerializer
from rest_framework_simplejwt.exceptions import AuthenticationFailed, InvalidToken, TokenError
from rest_framework_simplejwt.tokens import RefreshToken
from django.contrib.auth import get_user_model
from django.core.exceptions import ObjectDoesNotExist
from django.http import HttpResponse
from django.shortcuts import get_object_or_404
from django.utils import timezone

from . import audit
from .exceptions import ServiceError, error_response
from .models import AuditLog
from .permissions import IsAdministrator, get_primary_role
from .serializers import (
    UserSerializer, UserCreateSerializer, UserUpdateSerializer, ChangePasswordSerializer,
    LogoutSerializer, AuditLogSerializer, AuditReportRequestSerializer
)
from .utils import create_audit_log, get_page_params, paginate

logger = logging.getLogger(__name__)

User = get_user_model()


class CustomTokenObtainPairSerializer(TokenObtainPairSerializer):
    def validate(self, attrs):
        data = super().validate(attrs)
        # Ensure user is active
        if not self.user.is_active:
            raise AuthenticationFailed('User account is disabled.')
        data['user'] = UserSerializer(self.user).data
        create_audit_log(request=self.context.get('request'), user=self.user, action='login',
                         entity_type='User', entity_id=self.user.id, entity_reference=self.user.username)
        logger.info(f"User {self.user.username} logged in")
        return data

    @classmethod
    def get_token(cls, user):
        token = super().get_token(user)
        token['username'] = user.username
        token['groups'] = list(user.groups.values_list('name', flat=True))
        token['role'] = get_primary_role(user)
        token['supplier_id'] = user.supplier_id
        token['customer_id'] = user.customer_id
        return token


class CustomTokenObtainPairView(TokenObtainPairView):
    serializer_class = CustomTokenObtainPairSerializer


class CustomTokenRefreshSerializer(TokenRefreshSerializer):
    """Token refresh that reports deleted users as an invalid token"""
    def validate(self, attrs):
        try:
            return super().validate(attrs)
        except (InvalidToken, TokenError):
            raise InvalidToken('Token is invalid or expired.')
        except ObjectDoesNotExist:
            # User referenced in token doesn't exist anymore
            raise InvalidToken('Token is invalid. User no longer exists.')


class CustomTokenRefreshView(TokenRefreshView):
    serializer_class = CustomTokenRefreshSerializer


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def logout(request):
    """Blacklist the refresh token"""
    serializer = LogoutSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    try:
        RefreshToken(serializer.validated_data['refresh']).blacklist()
    except TokenError as e:
        return Response({'error': str(e), 'code': 'invalid_token'}, status=status.HTTP_400_BAD_REQUEST)

    create_audit_log(request=request, action='logout', entity_type='User',
                     entity_id=request.user.id, entity_reference=request.user.username)
    return Response(status=status.HTTP_205_RESET_CONTENT)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def user_me(request):
    """Current user with groups and role"""
    user_data = UserSerializer(request.user).data
    user_data['groups'] = list(request.user.groups.values_list('name', flat=True))
    return Response(user_data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def change_password(request):
    serializer = ChangePasswordSerializer(data=request.data, context={'request': request})
    if not serializer.is_valid():
        create_audit_log(request=request, action='password_change', entity_type='User',
                         entity_id=request.user.id, entity_reference=request.user.username,
                         result=AuditLog.RESULT_VALIDATION_ERROR, error_message=str(serializer.errors))
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    request.user.set_password(serializer.validated_data['new_password'])
    request.user.save()
    create_audit_log(request=request, action='password_change', entity_type='User',
                     entity_id=request.user.id, entity_reference=request.user.username)
    return Response({'message': 'Password changed successfully'})


# User views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsAdministrator])
def user_list_create(request):
    """List all users or create a new user"""
    if request.method == 'GET':
        users = User.objects.all().prefetch_related('groups').order_by('username')
        serializer = UserSerializer(users, many=True)
        return Response(serializer.data)

    serializer = UserCreateSerializer(data=request.data)
    if serializer.is_valid():
        user = serializer.save()
        create_audit_log(request=request, action='user_create', entity_type='User', entity_id=user.id,
                         entity_reference=user.username, new_values={'role': get_primary_role(user)})
        return Response(UserSerializer(user).data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsAdministrator])
def user_detail(request, pk):
    """Retrieve, update or deactivate a user"""
    user = get_object_or_404(User, pk=pk)

    if request.method == 'GET':
        return Response(UserSerializer(user).data)
    elif request.method == 'PATCH':
        serializer = UserUpdateSerializer(user, data=request.data, partial=True)
        if serializer.is_valid():
            serializer.save()
            create_audit_log(request=request, action='update', entity_type='User', entity_id=user.id,
                             entity_reference=user.username, new_values=request.data)
            return Response(UserSerializer(user).data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        if user.pk == request.user.pk:
            return Response({'error': 'You cannot deactivate your own account'}, status=status.HTTP_400_BAD_REQUEST)
        user.is_active = False
        user.save(update_fields=['is_active', 'updated_at'])
        create_audit_log(request=request, action='delete', entity_type='User', entity_id=user.id,
                         entity_reference=user.username)
        return Response(status=status.HTTP_204_NO_CONTENT)


# AuditLog views (read-only)
@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdministrator])
def audit_log_list(request):
    """List audit logs with filtering, sorting and paging"""
    page, page_size = get_page_params(request)
    try:
        queryset, page, page_size = audit.get_audit_logs(request.query_params, page, page_size)
    except ServiceError as e:
        return error_response(e)
    return Response(paginate(queryset, page, page_size, AuditLogSerializer))


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdministrator])
def audit_log_detail(request, pk):
    audit_log = get_object_or_404(AuditLog, pk=pk)
    return Response(AuditLogSerializer(audit_log).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdministrator])
def entity_audit_trail(request, entity_type, entity_id):
    logs = audit.get_entity_audit_trail(entity_type, entity_id)
    return Response(AuditLogSerializer(logs, many=True).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdministrator])
def user_audit_trail(request, user_id):
    get_object_or_404(User, pk=user_id)
    logs = audit.get_user_audit_trail(
        user_id,
        from_date=request.query_params.get('from_date') or None,
        to_date=request.query_params.get('to_date') or None,
    )
    return Response(AuditLogSerializer(logs, many=True).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdministrator])
def audit_report(request):
    serializer = AuditReportRequestSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    try:
        report = audit.generate_audit_report(**serializer.validated_data)
    except ServiceError as e:
        return error_response(e)
    report['details'] = AuditLogSerializer(report['details'], many=True).data
    return Response(report)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdministrator])
def audit_export(request):
    """Download filtered audit logs as CSV"""
    export_format = request.query_params.get('format_type', 'csv')
    try:
        content = audit.export_audit_logs(request.query_params, export_format)
    except ServiceError as e:
        return error_response(e)

    create_audit_log(request=request, action='export', entity_type='AuditLog', entity_id='export',
                     additional_data={'format': export_format})
    filename = f"audit_logs_{timezone.now().strftime('%Y%m%d_%H%M%S')}.csv"
    response = HttpResponse(content, content_type='text/csv')
    response['Content-Disposition'] = f'attachment; filename="{filename}"'
    return response
