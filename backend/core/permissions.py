"""
Role-based access control on top of Django groups.

Mapping:
- Administrator → everything
- LMRPlanner → orders, planning, suppliers, reports
- Supplier → supplier portal (own purchase orders only)
- Customer → own customer orders
"""
from rest_framework.permissions import BasePermission

from .choices import (
    ROLES, ROLE_ADMINISTRATOR, ROLE_PLANNER, ROLE_SUPPLIER, ROLE_CUSTOMER
)


def get_user_roles(user):
    """
    Return the application roles of a user.
    Superusers/staff outside any application group are treated as Administrator.
    """
    if not user or not user.is_authenticated:
        return []
    group_names = list(user.groups.values_list('name', flat=True))
    roles = [name for name in group_names if name in ROLES]
    if not roles and (user.is_superuser or user.is_staff):
        return [ROLE_ADMINISTRATOR]
    return roles


def get_primary_role(user):
    """Highest-privilege role of the user, or None"""
    roles = get_user_roles(user)
    for role in ROLES:
        if role in roles:
            return role
    return None


def user_has_role(user, *roles):
    user_roles = get_user_roles(user)
    return any(role in user_roles for role in roles)


def get_customer_id(user):
    """Customer identifier used to scope customer order access"""
    return getattr(user, 'customer_id', None) or user.username


class RolePermission(BasePermission):
    """Grant access when the user holds any of `allowed_roles`"""
    allowed_roles = ()
    message = 'You do not have the required role to perform this action.'

    def has_permission(self, request, view):
        return bool(
            request.user
            and request.user.is_authenticated
            and user_has_role(request.user, *self.allowed_roles)
        )


class IsAdministrator(RolePermission):
    allowed_roles = (ROLE_ADMINISTRATOR,)


class IsPlanner(RolePermission):
    allowed_roles = (ROLE_ADMINISTRATOR, ROLE_PLANNER)


class IsPlannerOrSupplier(RolePermission):
    allowed_roles = (ROLE_ADMINISTRATOR, ROLE_PLANNER, ROLE_SUPPLIER)


class IsPlannerOrCustomer(RolePermission):
    allowed_roles = (ROLE_ADMINISTRATOR, ROLE_PLANNER, ROLE_CUSTOMER)


class IsSupplierOrAdministrator(RolePermission):
    allowed_roles = (ROLE_ADMINISTRATOR, ROLE_SUPPLIER)


class IsSupplierUser(BasePermission):
    """Supplier-role user linked to a supplier record"""
    message = 'Supplier access requires a user linked to a supplier.'

    def has_permission(self, request, view):
        user = request.user
        return bool(
            user and user.is_authenticated
            and user_has_role(user, ROLE_SUPPLIER)
            and getattr(user, 'supplier_id', None)
        )


class IsCustomer(RolePermission):
    allowed_roles = (ROLE_CUSTOMER,)
