import logging
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import AllowAny
from django.contrib.auth import get_user_model
from django.db import transaction
from django.db.models import Count, Q
from django.shortcuts import get_object_or_404
from django.utils import timezone
from backend.core.i18n import get_locale
from backend.core.permissions import IsTenantManager, IsPlatformAdmin, can_manage_role
from backend.core.serializers import UserSerializer
from backend.core.views import tokens_for_user
from backend.core.utils import create_audit_log, compute_changes
from .models import Tenant, UserInvitation
from .serializers import (
    TenantSerializer, TenantCreateSerializer, TenantUpdateSerializer,
    UserInvitationSerializer, InviteUserSerializer, AcceptInvitationSerializer
)
from . import services

logger = logging.getLogger('backend.tenants')
User = get_user_model()


# Tenant-level invitation views
@api_view(['GET', 'POST'])
@permission_classes([IsTenantManager])
def invitation_list_create(request):
    """Pending invitations of the current tenant, or invite a new user"""
    tenant = request.user.tenant
    if request.method == 'GET':
        invitations = UserInvitation.objects.filter(tenant=tenant).pending().order_by('-created_at')
        return Response(UserInvitationSerializer(invitations, many=True).data)

    serializer = InviteUserSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data

    if not can_manage_role(request.user.role, data['role']):
        return Response({'role': ['You can only invite Staff or Read Only users']}, status=status.HTTP_400_BAD_REQUEST)

    try:
        invitation = services.create_invitation(
            tenant, data['email'], data['role'], invited_by=request.user, locale=get_locale(request)
        )
    except services.InvitationError as e:
        logger.warning(f"Invitation for {data['email']} rejected: {e}")
        return Response(e.as_response_data(), status=status.HTTP_400_BAD_REQUEST)

    create_audit_log(request=request, action='create', resource_type='invitation', resource_id=invitation.id,
                     resource_name=invitation.email,
                     new_values={'email': invitation.email, 'role': invitation.role},
                     notes='User invited')
    return Response(UserInvitationSerializer(invitation).data, status=status.HTTP_201_CREATED)


@api_view(['DELETE'])
@permission_classes([IsTenantManager])
def invitation_cancel(request, pk):
    invitation = get_object_or_404(UserInvitation, pk=pk, tenant=request.user.tenant, accepted_at__isnull=True)
    create_audit_log(request=request, action='cancel', resource_type='invitation', resource_id=invitation.id,
                     resource_name=invitation.email, old_values={'email': invitation.email, 'role': invitation.role})
    invitation.delete()
    return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST'])
@permission_classes([IsTenantManager])
def invitation_resend(request, pk):
    invitation = get_object_or_404(UserInvitation, pk=pk, tenant=request.user.tenant)
    try:
        services.resend_invitation(invitation, locale=get_locale(request))
    except services.InvitationError as e:
        return Response(e.as_response_data(), status=status.HTTP_400_BAD_REQUEST)
    create_audit_log(request=request, action='update', resource_type='invitation', resource_id=invitation.id,
                     resource_name=invitation.email, notes='Invitation resent')
    return Response(UserInvitationSerializer(invitation).data)


@api_view(['GET'])
@permission_classes([IsTenantManager])
def tenant_user_stats(request):
    return Response(services.get_tenant_user_stats(request.user.tenant))


@api_view(['GET'])
@permission_classes([AllowAny])
def invitation_by_token(request, token):
    """Public: invitation details for the accept page"""
    try:
        invitation = services.get_valid_invitation(token)
    except services.InvitationError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
    return Response({
        'email': invitation.email,
        'role': invitation.role,
        'tenant_name': invitation.tenant.name,
        'invited_by_name': invitation.invited_by_name,
        'expires_at': invitation.expires_at,
    })


@api_view(['POST'])
@permission_classes([AllowAny])
def invitation_accept(request, token):
    """Public: create the invited user's account"""
    serializer = AcceptInvitationSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    try:
        user, invitation = services.accept_invitation(
            token, serializer.validated_data['name'], serializer.validated_data['password']
        )
    except services.InvitationError as e:
        return Response(e.as_response_data(), status=status.HTTP_400_BAD_REQUEST)

    create_audit_log(request=request, action='create', resource_type='user', resource_id=user.id,
                     resource_name=user.name, user=user, tenant=invitation.tenant,
                     new_values={'email': user.email, 'name': user.name, 'role': user.role},
                     notes='User accepted invitation')

    return Response({'user': UserSerializer(user).data, **tokens_for_user(user)}, status=status.HTTP_201_CREATED)


# Platform admin views
def _tenants_with_counts():
    now = timezone.now()
    return Tenant.objects.annotate(
        user_count=Count('users', distinct=True),
        pending_invitations=Count(
            'invitations',
            filter=Q(invitations__accepted_at__isnull=True, invitations__expires_at__gt=now),
            distinct=True,
        ),
    )


@api_view(['GET', 'POST'])
@permission_classes([IsPlatformAdmin])
def tenant_list_create(request):
    """All tenants, or create a tenant and invite its first admin"""
    if request.method == 'GET':
        tenants = _tenants_with_counts().order_by('-created_at')
        return Response(TenantSerializer(tenants, many=True).data)

    serializer = TenantCreateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data

    if User.objects.filter(email__iexact=data['admin_email']).exists():
        return Response({'admin_email': ['This email is already registered']}, status=status.HTTP_400_BAD_REQUEST)

    with transaction.atomic():
        tenant = Tenant.objects.create(name=data['name'], max_users=data['max_users'])

    try:
        invitation = services.create_invitation(
            tenant, data['admin_email'], 'admin', invited_by=request.user, locale=get_locale(request)
        )
    except services.InvitationError as e:
        # The tenant stays; the admin can be re-invited later
        logger.warning(f"Admin invitation for new tenant {tenant.id} failed: {e}")
        invitation = None

    create_audit_log(request=request, action='create', resource_type='tenant', resource_id=tenant.id,
                     resource_name=tenant.name, tenant=tenant,
                     new_values={'name': tenant.name, 'max_users': tenant.max_users, 'admin_email': data['admin_email']})
    return Response({
        'success': True,
        'tenant_id': tenant.id,
        'invitation_sent': invitation is not None,
    }, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsPlatformAdmin])
def tenant_detail(request, pk):
    tenant = get_object_or_404(_tenants_with_counts(), pk=pk)

    if request.method == 'GET':
        users = User.objects.filter(tenant=tenant).order_by('name')
        invitations = UserInvitation.objects.filter(tenant=tenant).order_by('-created_at')
        return Response({
            'tenant': TenantSerializer(tenant).data,
            'users': UserSerializer(users, many=True).data,
            'invitations': UserInvitationSerializer(invitations, many=True).data,
        })

    if request.method == 'PATCH':
        serializer = TenantUpdateSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        data = serializer.validated_data
        user_count = User.objects.filter(tenant=tenant).count()
        if data['max_users'] < user_count:
            return Response({'max_users': [f'Cannot set below current user count ({user_count})']},
                            status=status.HTTP_400_BAD_REQUEST)
        old_values = {'name': tenant.name, 'max_users': tenant.max_users}
        tenant.name = data['name']
        tenant.max_users = data['max_users']
        tenant.save(update_fields=['name', 'max_users', 'updated_at'])
        new_values = {'name': tenant.name, 'max_users': tenant.max_users}
        create_audit_log(request=request, action='update', resource_type='tenant', resource_id=tenant.id,
                         resource_name=tenant.name, tenant=tenant, old_values=old_values, new_values=new_values,
                         changes=compute_changes(old_values, new_values))
        return Response(TenantSerializer(_tenants_with_counts().get(pk=tenant.pk)).data)

    # DELETE: users, invitations, stock history and all tenant rows go with it
    tenant_id, old_values = tenant.id, {'name': tenant.name, 'max_users': tenant.max_users}
    logger.info(f"Platform admin {request.user.email} deleting tenant {tenant_id} ({tenant.name})")
    services.delete_tenant(tenant)
    create_audit_log(request=request, action='delete', resource_type='tenant', resource_id=tenant_id,
                     resource_name=old_values['name'], old_values=old_values)
    return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST'])
@permission_classes([IsPlatformAdmin])
def tenant_invite_user(request, pk):
    """Platform admin invites a user into any tenant"""
    tenant = get_object_or_404(Tenant, pk=pk)
    serializer = InviteUserSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    try:
        invitation = services.create_invitation(
            tenant, serializer.validated_data['email'], serializer.validated_data['role'],
            invited_by=request.user, locale=get_locale(request)
        )
    except services.InvitationError as e:
        return Response(e.as_response_data(), status=status.HTTP_400_BAD_REQUEST)
    create_audit_log(request=request, action='create', resource_type='invitation', resource_id=invitation.id,
                     resource_name=invitation.email, tenant=tenant,
                     new_values={'email': invitation.email, 'role': invitation.role})
    return Response(UserInvitationSerializer(invitation).data, status=status.HTTP_201_CREATED)
