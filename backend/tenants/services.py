"""Invitation rules and tenant lifecycle shared by tenant admins and platform admins"""
import logging
from datetime import timedelta

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import transaction
from django.utils import timezone

from backend.documents.services import delete_tenant_documents
from backend.inventory.models import Adjustment, CycleCount, StockMovement, Transfer
from backend.purchasing.models import PurchaseOrder
from backend.returns.models import Return
from backend.shipping.models import Shipment
from .email import send_invitation_email
from .models import UserInvitation, generate_invitation_token

logger = logging.getLogger('backend.tenants')
User = get_user_model()


class InvitationError(Exception):
    def __init__(self, message, field=None):
        super().__init__(message)
        self.field = field

    def as_response_data(self):
        if self.field:
            return {self.field: [str(self)]}
        return {'error': str(self)}


def invitation_expiry():
    return timezone.now() + timedelta(hours=settings.INVITATION_EXPIRY_HOURS)


def get_tenant_user_stats(tenant):
    current_users = User.objects.filter(tenant=tenant).count()
    pending = UserInvitation.objects.filter(tenant=tenant).pending().count()
    return {
        'current_users': current_users,
        'pending_invitations': pending,
        'max_users': tenant.max_users,
        'can_add_user': current_users + pending < tenant.max_users,
    }


def create_invitation(tenant, email, role, invited_by=None, locale='en', check_limit=True):
    """
    Create and send an invitation.

    Raises InvitationError when the email is taken, the user limit is reached
    or a pending invitation already exists. A failed send removes the invitation.
    """
    email = email.lower()
    if User.objects.filter(tenant=tenant, email__iexact=email).exists():
        raise InvitationError('A user with this email already exists in your organization', field='email')
    if User.objects.filter(email__iexact=email).exists():
        raise InvitationError('This email is already registered', field='email')

    if check_limit and not get_tenant_user_stats(tenant)['can_add_user']:
        raise InvitationError(f'User limit reached ({tenant.max_users} users). Contact your administrator to increase the limit.')

    UserInvitation.objects.filter(tenant=tenant, email__iexact=email).expired().delete()
    if UserInvitation.objects.filter(tenant=tenant, email__iexact=email).pending().exists():
        raise InvitationError('An invitation has already been sent to this email', field='email')

    with transaction.atomic():
        invitation = UserInvitation.objects.create(
            tenant=tenant,
            email=email,
            role=role,
            invited_by=invited_by,
            invited_by_name=(invited_by.name or invited_by.email) if invited_by else None,
            expires_at=invitation_expiry(),
        )

    result = send_invitation_email(invitation, locale=locale)
    if not result['success']:
        logger.warning(f"Invitation email to {email} failed: {result['error']}")
        invitation.delete()
        raise InvitationError(f"Failed to send invitation email: {result['error']}")

    logger.info(f"Invitation sent to {email} for tenant {tenant.id}")
    return invitation


def resend_invitation(invitation, locale='en'):
    """New token and expiry, then send again"""
    if invitation.accepted_at is not None:
        raise InvitationError('Invitation has already been used')

    invitation.token = generate_invitation_token()
    invitation.expires_at = invitation_expiry()
    invitation.save(update_fields=['token', 'expires_at'])

    result = send_invitation_email(invitation, locale=locale)
    if not result['success']:
        raise InvitationError(f"Failed to send invitation email: {result['error']}")
    return invitation


def get_valid_invitation(token):
    invitation = UserInvitation.objects.select_related('tenant').filter(token=token).first()
    if invitation is None:
        raise InvitationError('Invitation not found')
    if invitation.accepted_at is not None:
        raise InvitationError('Invitation has already been used')
    if invitation.is_expired:
        raise InvitationError('Invitation has expired')
    return invitation


def accept_invitation(token, name, password):
    """Create the invited user and mark the invitation accepted"""
    with transaction.atomic():
        invitation = get_valid_invitation(token)
        invitation = UserInvitation.objects.select_for_update().get(pk=invitation.pk)
        if invitation.accepted_at is not None:
            raise InvitationError('Invitation has already been used')
        if User.objects.filter(email__iexact=invitation.email).exists():
            raise InvitationError('This email is already registered', field='email')

        user = User.objects.create_user(
            email=invitation.email,
            password=password,
            name=name,
            role=invitation.role,
            tenant=invitation.tenant,
            is_active=True,
        )
        invitation.accepted_at = timezone.now()
        invitation.save(update_fields=['accepted_at'])
    logger.info(f"Invitation {invitation.id} accepted by {user.email}")
    return user, invitation


def delete_tenant(tenant):
    """
    Delete a tenant with everything it owns.

    Stock movements, stock documents and attachments go first: they hold
    PROTECT keys to products, locations and parties that the tenant cascade
    would otherwise refuse to remove.
    """
    tenant_id = tenant.id
    with transaction.atomic():
        document_count = delete_tenant_documents(tenant)
        StockMovement.objects.filter(tenant=tenant).delete()
        for model in (PurchaseOrder, Shipment, Return, Adjustment, Transfer, CycleCount):
            model.objects.filter(tenant=tenant).delete()
        UserInvitation.objects.filter(tenant=tenant).delete()
        User.objects.filter(tenant=tenant).delete()
        tenant.delete()
    logger.info(f"Deleted tenant {tenant_id} with {document_count} documents")
