import logging
from rest_framework import serializers, status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated, AllowAny
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer, TokenRefreshSerializer
from rest_framework_simplejwt.exceptions import InvalidToken, TokenError, AuthenticationFailed
from django.contrib.auth import get_user_model
from django.core.exceptions import ObjectDoesNotExist
from django.db import transaction
from django.shortcuts import get_object_or_404
from .filters import AuditLogFilter
from .models import AuditLog
from .i18n import get_locale, get_messages, LOCALES, LOCALE_NAMES
from .permissions import IsTenantMember, IsTenantManager, IsTenantAdmin, can_manage_role, assignable_roles
from .serializers import (
    UserSerializer, UserCreateSerializer, UserUpdateSerializer,
    ProfileSerializer, OrganizationSerializer, AuditLogSerializer
)
from .utils import apply_filters, create_audit_log, compute_changes

User = get_user_model()
logger = logging.getLogger('backend.core')


class CustomTokenObtainPairSerializer(TokenObtainPairSerializer):
    def validate(self, attrs):
        data = super().validate(attrs)
        if not self.user.is_active:
            raise AuthenticationFailed('User account is disabled.')
        data['user'] = UserSerializer(self.user).data
        create_audit_log(action='login', resource_type='user', resource_id=self.user.id,
                         resource_name=self.user.name or self.user.email, user=self.user,
                         request=self.context.get('request'))
        return data

    @classmethod
    def get_token(cls, user):
        token = super().get_token(user)
        token['email'] = user.email
        token['role'] = user.role
        token['tenant_id'] = user.tenant_id
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
        except (ObjectDoesNotExist, User.DoesNotExist):
            raise InvalidToken('Token is invalid. User no longer exists.')


class CustomTokenRefreshView(TokenRefreshView):
    serializer_class = CustomTokenRefreshSerializer


def tokens_for_user(user):
    token = CustomTokenObtainPairSerializer.get_token(user)
    return {'access': str(token.access_token), 'refresh': str(token)}


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def user_me(request):
    """Current user"""
    return Response(UserSerializer(request.user).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def logout(request):
    create_audit_log(request=request, action='logout', resource_type='user', resource_id=request.user.id,
                     resource_name=request.user.name or request.user.email)
    return Response({'success': True})


# User views
@api_view(['GET', 'POST'])
@permission_classes([IsTenantMember])
def user_list_create(request):
    """List the tenant's users or create one (admin/manager)"""
    if request.method == 'GET':
        users = User.objects.filter(tenant=request.user.tenant).order_by('name')
        return Response(UserSerializer(users, many=True).data)

    if not request.user.can_manage_users:
        return Response({'error': 'You do not have permission to create users'}, status=status.HTTP_403_FORBIDDEN)

    serializer = UserCreateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data

    if not can_manage_role(request.user.role, data['role']):
        return Response({'role': ['You can only create Staff or Read Only users']}, status=status.HTTP_400_BAD_REQUEST)

    user = User.objects.create_user(
        email=data['email'],
        password=data['password'],
        name=data['name'],
        role=data['role'],
        is_active=data['active'],
        tenant=request.user.tenant,
    )
    logger.info(f"User {user.email} created by {request.user.email}")
    create_audit_log(
        request=request, action='create', resource_type='user', resource_id=user.id, resource_name=user.name,
        new_values={'email': user.email, 'name': user.name, 'role': user.role, 'active': user.is_active},
    )
    return Response(UserSerializer(user).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes([IsTenantMember])
def user_detail(request, pk):
    """Retrieve, update or delete a user of the current tenant"""
    target = get_object_or_404(User, pk=pk, tenant=request.user.tenant)

    if request.method == 'GET':
        return Response(UserSerializer(target).data)

    verb = 'update' if request.method == 'PUT' else 'delete'
    if not request.user.can_manage_users:
        return Response({'error': f'You do not have permission to {verb} users'}, status=status.HTTP_403_FORBIDDEN)
    if not can_manage_role(request.user.role, target.role):
        action_word = 'edit' if verb == 'update' else 'delete'
        return Response({'error': f'You can only {action_word} Staff or Read Only users'}, status=status.HTTP_403_FORBIDDEN)

    old_values = {'name': target.name, 'role': target.role, 'active': target.is_active}

    if request.method == 'PUT':
        serializer = UserUpdateSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        data = serializer.validated_data
        if not can_manage_role(request.user.role, data['role']):
            return Response({'role': ['You can only assign Staff or Read Only roles']}, status=status.HTTP_400_BAD_REQUEST)
        if target.pk == request.user.pk and request.user.role == 'admin' and data['role'] != 'admin':
            return Response({'role': ['You cannot change your own admin role']}, status=status.HTTP_400_BAD_REQUEST)
        if target.pk == request.user.pk and not data['active']:
            return Response({'error': 'You cannot deactivate yourself'}, status=status.HTTP_400_BAD_REQUEST)

        target.name = data['name']
        target.role = data['role']
        target.is_active = data['active']
        target.save(update_fields=['name', 'role', 'is_active', 'updated_at'])
        new_values = {'name': target.name, 'role': target.role, 'active': target.is_active}
        create_audit_log(request=request, action='update', resource_type='user', resource_id=target.id,
                         resource_name=target.name, old_values=old_values, new_values=new_values,
                         changes=compute_changes(old_values, new_values))
        return Response(UserSerializer(target).data)

    # DELETE
    if target.pk == request.user.pk:
        return Response({'error': 'You cannot delete yourself'}, status=status.HTTP_400_BAD_REQUEST)
    create_audit_log(request=request, action='delete', resource_type='user', resource_id=target.id,
                     resource_name=target.name, old_values={'email': target.email, **old_values})
    logger.info(f"User {target.email} deleted by {request.user.email}")
    target.delete()
    return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST'])
@permission_classes([IsTenantManager])
def user_toggle_active(request, pk):
    """Activate or deactivate a user: body {"active": bool}"""
    target = get_object_or_404(User, pk=pk, tenant=request.user.tenant)
    if 'active' in request.data:
        try:
            active = serializers.BooleanField().to_internal_value(request.data['active'])
        except serializers.ValidationError:
            return Response({'active': ['Must be a valid boolean']}, status=status.HTTP_400_BAD_REQUEST)
    else:
        active = not target.is_active

    if not can_manage_role(request.user.role, target.role):
        return Response({'error': 'You can only manage Staff or Read Only users'}, status=status.HTTP_403_FORBIDDEN)
    if target.pk == request.user.pk and not active:
        return Response({'error': 'You cannot deactivate yourself'}, status=status.HTTP_400_BAD_REQUEST)

    old_active = target.is_active
    target.is_active = active
    target.save(update_fields=['is_active', 'updated_at'])
    create_audit_log(request=request, action='update', resource_type='user', resource_id=target.id,
                     resource_name=target.name, old_values={'active': old_active}, new_values={'active': active},
                     notes='User activated' if active else 'User deactivated')
    return Response({'success': True, 'active': active})


@api_view(['GET'])
@permission_classes([IsTenantMember])
def user_assignable_roles(request):
    return Response({'roles': assignable_roles(request.user)})


@api_view(['PATCH'])
@permission_classes([IsAuthenticated])
def profile_update(request):
    """Change the current user's display name"""
    serializer = ProfileSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    old_name = request.user.name
    request.user.name = serializer.validated_data['name']
    request.user.save(update_fields=['name', 'updated_at'])
    create_audit_log(request=request, action='update', resource_type='user', resource_id=request.user.id,
                     resource_name=request.user.name, old_values={'name': old_name},
                     new_values={'name': request.user.name}, notes='Profile name updated')
    return Response(UserSerializer(request.user).data)


@api_view(['GET', 'PUT'])
@permission_classes([IsTenantMember])
def organization_settings(request):
    """Tenant name and settings; updates are admin only"""
    tenant = request.user.tenant
    current = {
        'name': tenant.name,
        'default_currency': tenant.get_setting('default_currency') or 'USD',
        'require_adjustment_approval': bool(tenant.get_setting('require_adjustment_approval')),
    }
    if request.method == 'GET':
        return Response({**current, 'settings': tenant.settings, 'max_users': tenant.max_users})

    if not IsTenantAdmin().has_permission(request, None):
        return Response({'error': 'Only admins can update organization settings'}, status=status.HTTP_403_FORBIDDEN)

    serializer = OrganizationSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data

    with transaction.atomic():
        tenant.name = data['name']
        tenant.settings = {
            **(tenant.settings or {}),
            'default_currency': data['default_currency'],
            'require_adjustment_approval': data['require_adjustment_approval'],
        }
        tenant.save(update_fields=['name', 'settings', 'updated_at'])

    new_values = dict(data)
    create_audit_log(request=request, action='update', resource_type='tenant', resource_id=tenant.id,
                     resource_name=tenant.name, old_values=current, new_values=new_values,
                     changes=compute_changes(current, new_values), notes='Organization settings updated')
    return Response({**new_values, 'settings': tenant.settings, 'max_users': tenant.max_users})


# AuditLog views
@api_view(['GET'])
@permission_classes([IsTenantManager])
def audit_log_list(request):
    """List audit logs of the current tenant"""
    queryset = apply_filters(AuditLogFilter, request, AuditLog.objects.filter(tenant=request.user.tenant))

    try:
        limit = int(request.query_params.get('limit', 50))
        offset = int(request.query_params.get('offset', 0))
    except ValueError:
        return Response({'error': 'limit and offset must be integers'}, status=status.HTTP_400_BAD_REQUEST)
    if limit < 1 or offset < 0:
        return Response({'error': 'limit must be positive and offset not negative'},
                        status=status.HTTP_400_BAD_REQUEST)

    queryset = queryset.order_by('-created_at', '-id')
    count = queryset.count()
    page = queryset[offset:offset + limit]
    return Response({'data': AuditLogSerializer(page, many=True).data, 'count': count})


@api_view(['GET'])
@permission_classes([IsTenantManager])
def audit_log_detail(request, pk):
    audit_log = get_object_or_404(AuditLog, pk=pk, tenant=request.user.tenant)
    return Response(AuditLogSerializer(audit_log).data)


@api_view(['GET'])
@permission_classes([AllowAny])
def i18n_messages(request):
    """Message bundle for the cookie-selected locale"""
    locale = get_locale(request)
    return Response({
        'locale': locale,
        'locales': [{'code': code, 'name': LOCALE_NAMES[code]} for code in LOCALES],
        'messages': get_messages(locale),
    })
