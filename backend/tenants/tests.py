"""
Test suite for Tenants module
Tests: invitations, the public accept flow, user limits and platform tenant administration
"""
from datetime import timedelta
from unittest.mock import patch
import requests
from django.core.files.base import ContentFile
from django.core.files.storage import default_storage
from django.core.management import call_command
from django.test import TestCase, override_settings
from django.utils import timezone
from rest_framework import status
from backend.catalog.models import Product
from backend.core.models import AuditLog, User
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.documents.models import Document
from backend.errorlogs.models import ErrorLog
from backend.inventory.models import StockMovement
from backend.purchasing.models import PurchaseOrder
from backend.tenants.email import render_invitation_email, send_email
from backend.tenants.models import Tenant, UserInvitation

EMAIL_OK = {'success': True, 'error': None}


@patch('backend.tenants.services.send_invitation_email', return_value=EMAIL_OK)
class InvitationAPITests(TestCase):

    def setUp(self):
        self.tenant = TestDataFactory.create_tenant(name='Acme', max_users=3)
        self.admin = TestDataFactory.create_user(self.tenant, role='admin', name='Alice')
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)

    def _invite(self, email='new@test.com', role='staff'):
        return self.client.post('/api/v1/invitations/', {'email': email, 'role': role}, format='json')

    def test_invite_user(self, send_mock):
        response = self._invite(email='New@Test.com')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['email'], 'new@test.com')
        self.assertEqual(response.data['invited_by_name'], 'Alice')
        self.assertFalse(response.data['is_expired'])
        send_mock.assert_called_once()

    def test_invite_existing_email_rejected(self, send_mock):
        response = self._invite(email=self.admin.email)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('email', response.data)

    def test_duplicate_pending_invitation_rejected(self, send_mock):
        self._invite()
        response = self._invite()
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_expired_invitation_replaced(self, send_mock):
        self._invite()
        UserInvitation.objects.update(expires_at=timezone.now() - timedelta(hours=1))
        response = self._invite()
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(UserInvitation.objects.count(), 1)

    def test_user_limit_counts_pending_invitations(self, send_mock):
        self._invite(email='one@test.com')
        self._invite(email='two@test.com')
        response = self._invite(email='three@test.com')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('User limit reached', response.data['error'])

        response = self.client.get('/api/v1/invitations/stats/')
        self.assertEqual(response.data, {'current_users': 1, 'pending_invitations': 2, 'max_users': 3,
                                         'can_add_user': False})

    def test_failed_email_removes_invitation(self, send_mock):
        send_mock.return_value = {'success': False, 'error': 'Email service is not configured'}
        response = self._invite()
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(UserInvitation.objects.exists())

    def test_manager_cannot_invite_admin(self, send_mock):
        manager = TestDataFactory.create_user(self.tenant, role='manager')
        self.client.authenticate_user(manager)
        response = self._invite(role='admin')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(self._invite(role='readonly').status_code, status.HTTP_201_CREATED)

    def test_staff_cannot_invite(self, send_mock):
        self.client.authenticate_user(TestDataFactory.create_user(self.tenant, role='staff'))
        response = self._invite()
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_list_pending_only(self, send_mock):
        self._invite(email='one@test.com')
        self._invite(email='two@test.com')
        UserInvitation.objects.filter(email='two@test.com').update(accepted_at=timezone.now())
        response = self.client.get('/api/v1/invitations/')
        self.assertEqual([i['email'] for i in response.data], ['one@test.com'])

    def test_cancel_invitation(self, send_mock):
        invitation_id = self._invite().data['id']
        response = self.client.delete(f'/api/v1/invitations/{invitation_id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(UserInvitation.objects.filter(pk=invitation_id).exists())

    def test_resend_rotates_token(self, send_mock):
        invitation_id = self._invite().data['id']
        old_token = UserInvitation.objects.get(pk=invitation_id).token
        response = self.client.post(f'/api/v1/invitations/{invitation_id}/resend/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertNotEqual(UserInvitation.objects.get(pk=invitation_id).token, old_token)
        self.assertEqual(send_mock.call_count, 2)


@patch('backend.tenants.services.send_invitation_email', return_value=EMAIL_OK)
class AcceptInvitationTests(TestCase):

    def setUp(self):
        self.tenant = TestDataFactory.create_tenant(name='Acme')
        self.admin = TestDataFactory.create_user(self.tenant, role='admin')
        self.client = AuthenticatedAPIClient()
        self.invitation = UserInvitation.objects.create(
            tenant=self.tenant, email='invitee@test.com', role='manager', invited_by=self.admin,
            invited_by_name='Alice', expires_at=timezone.now() + timedelta(hours=48),
        )

    def test_invitation_details(self, send_mock):
        response = self.client.get(f'/api/v1/invitations/token/{self.invitation.token}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['tenant_name'], 'Acme')
        self.assertEqual(response.data['role'], 'manager')

    def test_unknown_token(self, send_mock):
        response = self.client.get('/api/v1/invitations/token/nope/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Invitation not found')

    def test_accept_creates_user_and_logs_in(self, send_mock):
        response = self.client.post(f'/api/v1/invitations/token/{self.invitation.token}/accept/',
                                    {'name': 'Invitee', 'password': 'longenough'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertIn('access', response.data)
        self.assertIn('refresh', response.data)
        user = User.objects.get(email='invitee@test.com')
        self.assertEqual(user.tenant, self.tenant)
        self.assertEqual(user.role, 'manager')
        self.assertTrue(user.check_password('longenough'))

        self.invitation.refresh_from_db()
        self.assertIsNotNone(self.invitation.accepted_at)

        response = self.client.post(f'/api/v1/invitations/token/{self.invitation.token}/accept/',
                                    {'name': 'Again', 'password': 'longenough'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Invitation has already been used')

    def test_short_password_rejected(self, send_mock):
        response = self.client.post(f'/api/v1/invitations/token/{self.invitation.token}/accept/',
                                    {'name': 'Invitee', 'password': 'short'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('password', response.data)

    def test_expired_invitation_rejected(self, send_mock):
        self.invitation.expires_at = timezone.now() - timedelta(minutes=1)
        self.invitation.save()
        response = self.client.post(f'/api/v1/invitations/token/{self.invitation.token}/accept/',
                                    {'name': 'Invitee', 'password': 'longenough'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Invitation has expired')


@patch('backend.tenants.services.send_invitation_email', return_value=EMAIL_OK)
class PlatformTenantAPITests(TestCase):

    def setUp(self):
        self.platform_admin = TestDataFactory.create_platform_admin()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.platform_admin)

    def test_tenant_admin_denied(self, send_mock):
        self.client.authenticate_user(TestDataFactory.create_user(role='admin'))
        response = self.client.get('/api/v1/admin/tenants/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_create_tenant_invites_admin(self, send_mock):
        response = self.client.post('/api/v1/admin/tenants/',
                                    {'name': 'Globex', 'max_users': 5, 'admin_email': 'boss@globex.com'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data['invitation_sent'])
        tenant = Tenant.objects.get(pk=response.data['tenant_id'])
        invitation = UserInvitation.objects.get(tenant=tenant)
        self.assertEqual(invitation.role, 'admin')
        self.assertEqual(tenant.get_setting('default_currency'), 'USD')

    def test_create_tenant_keeps_tenant_when_email_fails(self, send_mock):
        send_mock.return_value = {'success': False, 'error': 'down'}
        response = self.client.post('/api/v1/admin/tenants/',
                                    {'name': 'Globex', 'max_users': 5, 'admin_email': 'boss@globex.com'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertFalse(response.data['invitation_sent'])
        self.assertTrue(Tenant.objects.filter(name='Globex').exists())

    def test_list_with_counts(self, send_mock):
        tenant = TestDataFactory.create_tenant()
        TestDataFactory.create_user(tenant)
        TestDataFactory.create_user(tenant)
        response = self.client.get('/api/v1/admin/tenants/')
        row = next(t for t in response.data if t['id'] == tenant.id)
        self.assertEqual(row['user_count'], 2)
        self.assertEqual(row['pending_invitations'], 0)

    def test_max_users_not_below_user_count(self, send_mock):
        tenant = TestDataFactory.create_tenant()
        TestDataFactory.create_user(tenant)
        TestDataFactory.create_user(tenant)
        response = self.client.patch(f'/api/v1/admin/tenants/{tenant.id}/', {'name': 'Renamed', 'max_users': 1},
                                     format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        response = self.client.patch(f'/api/v1/admin/tenants/{tenant.id}/', {'name': 'Renamed', 'max_users': 2},
                                     format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['name'], 'Renamed')

    def test_delete_tenant_removes_users(self, send_mock):
        tenant = TestDataFactory.create_tenant()
        user = TestDataFactory.create_user(tenant)
        response = self.client.delete(f'/api/v1/admin/tenants/{tenant.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(User.objects.filter(pk=user.id).exists())

    def test_delete_tenant_with_stock_history(self, send_mock):
        tenant = TestDataFactory.create_tenant()
        user = TestDataFactory.create_user(tenant)
        location = TestDataFactory.create_location(tenant)
        product = TestDataFactory.create_product(tenant)
        TestDataFactory.add_stock(tenant, product, location, '5')
        po = TestDataFactory.create_purchase_order(tenant, location=location, lines=[(product, '2', '1.00')])
        TestDataFactory.create_shipment(tenant, location, lines=[(product, '1')])
        path = default_storage.save(f'{tenant.id}/product/{product.id}/spec.pdf', ContentFile(b'%PDF'))
        Document.objects.create(tenant=tenant, entity_type='product', entity_id=product.id, file_name='spec.pdf',
                                file_size=4, mime_type='application/pdf', storage_path=path, uploaded_by=user)

        with self.captureOnCommitCallbacks(execute=True):
            response = self.client.delete(f'/api/v1/admin/tenants/{tenant.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Tenant.objects.filter(pk=tenant.id).exists())
        self.assertFalse(Product.objects.filter(pk=product.id).exists())
        self.assertFalse(StockMovement.objects.filter(tenant_id=tenant.id).exists())
        self.assertFalse(PurchaseOrder.objects.filter(pk=po.id).exists())
        self.assertFalse(default_storage.exists(path))
        self.assertTrue(AuditLog.objects.filter(action='delete', resource_type='tenant',
                                                resource_id=str(tenant.id)).exists())

    def test_failed_tenant_delete_writes_no_audit_row(self, send_mock):
        tenant = TestDataFactory.create_tenant()
        with patch('backend.tenants.services.delete_tenant', side_effect=RuntimeError('db down')):
            response = self.client.delete(f'/api/v1/admin/tenants/{tenant.id}/')
        self.assertEqual(response.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.assertTrue(Tenant.objects.filter(pk=tenant.id).exists())
        self.assertFalse(AuditLog.objects.filter(action='delete', resource_type='tenant').exists())

    def test_invite_into_any_tenant(self, send_mock):
        tenant = TestDataFactory.create_tenant()
        response = self.client.post(f'/api/v1/admin/tenants/{tenant.id}/invite/',
                                    {'email': 'ops@test.com', 'role': 'manager'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['tenant'], tenant.id)


class InvitationEmailTests(TestCase):

    def test_render_invitation(self):
        subject, html_body, text_body = render_invitation_email(
            'Alice <admin>', 'Acme', 'staff', 'http://app/invite/accept?token=abc'
        )
        self.assertEqual(subject, "You're invited to join Acme")
        self.assertIn('Alice &lt;admin&gt;', html_body)
        self.assertIn('Staff', text_body)
        self.assertIn('http://app/invite/accept?token=abc', text_body)

    @override_settings(RESEND_API_KEY='')
    def test_send_without_api_key(self):
        result = send_email('a@test.com', 'Hi', '<p>Hi</p>', 'Hi')
        self.assertFalse(result['success'])

    @override_settings(RESEND_API_KEY='re_test')
    @patch('backend.tenants.email.requests.post')
    def test_send_posts_to_resend(self, post_mock):
        post_mock.return_value.status_code = 200
        result = send_email('a@test.com', 'Hi', '<p>Hi</p>', 'Hi')
        self.assertEqual(result, {'success': True, 'error': None})
        payload = post_mock.call_args.kwargs['json']
        self.assertEqual(payload['to'], ['a@test.com'])
        self.assertEqual(post_mock.call_args.kwargs['headers']['Authorization'], 'Bearer re_test')

    @override_settings(RESEND_API_KEY='re_test')
    @patch('backend.tenants.email.requests.post')
    def test_send_reports_provider_error(self, post_mock):
        post_mock.return_value.status_code = 422
        post_mock.return_value.json.return_value = {'message': 'Invalid from address'}
        result = send_email('a@test.com', 'Hi', '<p>Hi</p>', 'Hi')
        self.assertEqual(result, {'success': False, 'error': 'Invalid from address'})

    @override_settings(RESEND_API_KEY='re_test')
    @patch('backend.tenants.email.requests.post', side_effect=requests.exceptions.ConnectionError('refused'))
    def test_send_transport_error_logged_as_api(self, post_mock):
        result = send_email('a@test.com', 'Hi', '<p>Hi</p>', 'Hi')
        self.assertFalse(result['success'])
        error_log = ErrorLog.objects.get()
        self.assertEqual(error_log.error_type, 'api')
        self.assertEqual(error_log.metadata['context'], 'send_email')


class CreateTenantCommandTests(TestCase):

    def test_creates_tenant_and_admin(self):
        call_command('create_tenant', 'Initech', admin_email='Root@Initech.com', admin_password='secret123')
        tenant = Tenant.objects.get(name='Initech')
        admin = User.objects.get(email='root@initech.com')
        self.assertEqual(admin.tenant, tenant)
        self.assertEqual(admin.role, 'admin')
