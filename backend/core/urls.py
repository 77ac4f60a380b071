from django.urls import path
from .views import (
    CustomTokenObtainPairView, CustomTokenRefreshView, logout, user_me, change_password,
    user_list_create, user_detail,
    audit_log_list, audit_log_detail, entity_audit_trail, user_audit_trail,
    audit_report, audit_export
)

urlpatterns = [
    # Auth endpoints
    path('auth/login/', CustomTokenObtainPairView.as_view(), name='token_obtain_pair'),
    path('auth/refresh/', CustomTokenRefreshView.as_view(), name='token_refresh'),
    path('auth/logout/', logout, name='logout'),
    path('auth/me/', user_me, name='user-me'),
    path('auth/change-password/', change_password, name='change-password'),

    # User endpoints
    path('users/', user_list_create, name='user-list-create'),
    path('users/<int:pk>/', user_detail, name='user-detail'),

    # AuditLog endpoints
    path('audit-logs/', audit_log_list, name='audit-log-list'),
    path('audit-logs/report/', audit_report, name='audit-log-report'),
    path('audit-logs/export/', audit_export, name='audit-log-export'),
    path('audit-logs/entity/<str:entity_type>/<str:entity_id>/', entity_audit_trail, name='audit-log-entity'),
    path('audit-logs/user/<int:user_id>/', user_audit_trail, name='audit-log-user'),
    path('audit-logs/<int:pk>/', audit_log_detail, name='audit-log-detail'),
]
