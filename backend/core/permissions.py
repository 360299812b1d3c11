"""Role based permissions for tenant members"""
from rest_framework.permissions import BasePermission, SAFE_METHODS

MANAGER_MANAGEABLE_ROLES = ['staff', 'readonly']
ALL_ROLES = ['admin', 'manager', 'staff', 'readonly']


class IsTenantMember(BasePermission):
    """Authenticated, active and attached to a tenant. Read-only users may only read."""
    message = 'You do not have permission to perform this action'

    def has_permission(self, request, view):
        user = request.user
        if not user or not user.is_authenticated or not user.is_active:
            return False
        if user.tenant_id is None:
            self.message = 'User is not a member of any organization'
            return False
        if request.method not in SAFE_METHODS and not user.can_write:
            self.message = 'Read-only users cannot make changes'
            return False
        return True


class IsTenantManager(IsTenantMember):
    """Admins and managers"""

    def has_permission(self, request, view):
        if not super().has_permission(request, view):
            return False
        if not request.user.can_manage_users:
            self.message = 'You do not have permission to manage users'
            return False
        return True


class IsTenantAdmin(IsTenantMember):
    def has_permission(self, request, view):
        if not super().has_permission(request, view):
            return False
        if request.user.role != 'admin':
            self.message = 'Only admins can perform this action'
            return False
        return True


class IsPlatformAdmin(BasePermission):
    message = 'Access denied. Platform admin required.'

    def has_permission(self, request, view):
        user = request.user
        return bool(user and user.is_authenticated and user.is_active and user.is_platform_admin)


def can_manage_role(current_role, target_role):
    """Admins manage everyone; managers only staff and read-only users"""
    if current_role == 'admin':
        return True
    if current_role == 'manager':
        return target_role in MANAGER_MANAGEABLE_ROLES
    return False


def assignable_roles(user):
    if user.role == 'admin':
        return list(ALL_ROLES)
    if user.role == 'manager':
        return list(MANAGER_MANAGEABLE_ROLES)
    return []
