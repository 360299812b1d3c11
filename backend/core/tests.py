"""
Test suite for Core module
Tests: authentication, users and roles, settings, audit logs, i18n, shared helpers
"""
from decimal import Decimal
from django.core.cache import cache
from django.test import TestCase
from django.utils import timezone
from rest_framework import status
from backend.core.cache_utils import get_tenant_cached, invalidate_stock_cache
from backend.core.exceptions import InsufficientStockError, api_exception_handler
from backend.core.models import AuditLog, User
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.core.utils import compute_changes, next_document_number


class AuthTests(TestCase):

    def setUp(self):
        self.user = TestDataFactory.create_user(email='login@test.com', password='testpass123', name='Login User')
        self.client = AuthenticatedAPIClient()

    def test_login(self):
        response = self.client.post('/api/v1/auth/login/', {'email': 'login@test.com', 'password': 'testpass123'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)
        self.assertIn('refresh', response.data)
        self.assertEqual(response.data['user']['email'], 'login@test.com')
        self.assertEqual(response.data['user']['tenant'], self.user.tenant_id)
        self.assertTrue(AuditLog.objects.filter(action='login', user=self.user, tenant=self.user.tenant).exists())

    def test_login_wrong_password(self):
        response = self.client.post('/api/v1/auth/login/', {'email': 'login@test.com', 'password': 'wrong'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_login_inactive_user(self):
        self.user.is_active = False
        self.user.save()
        response = self.client.post('/api/v1/auth/login/', {'email': 'login@test.com', 'password': 'testpass123'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_refresh(self):
        response = self.client.post('/api/v1/auth/login/', {'email': 'login@test.com', 'password': 'testpass123'},
                                    format='json')
        response = self.client.post('/api/v1/auth/refresh/', {'refresh': response.data['refresh']}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)

    def test_refresh_invalid_token(self):
        response = self.client.post('/api/v1/auth/refresh/', {'refresh': 'garbage'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_me_and_logout(self):
        self.client.authenticate_user(self.user)
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.data['name'], 'Login User')
        response = self.client.post('/api/v1/auth/logout/')
        self.assertEqual(response.data, {'success': True})
        self.assertTrue(AuditLog.objects.filter(action='logout', user=self.user).exists())

    def test_me_requires_authentication(self):
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)


class UserManagementTests(TestCase):

    def setUp(self):
        self.tenant = TestDataFactory.create_tenant()
        self.admin = TestDataFactory.create_user(self.tenant, role='admin')
        self.manager = TestDataFactory.create_user(self.tenant, role='manager')
        self.staff = TestDataFactory.create_user(self.tenant, role='staff')
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)

    def _create(self, role='staff', email='new@test.com'):
        return self.client.post('/api/v1/users/', {'email': email, 'name': 'New', 'role': role,
                                                    'password': 'secret1'}, format='json')

    def test_list_only_own_tenant(self):
        TestDataFactory.create_user(TestDataFactory.create_tenant())
        response = self.client.get('/api/v1/users/')
        self.assertEqual(len(response.data), 3)

    def test_admin_creates_any_role(self):
        response = self._create(role='admin', email='Second@Test.com')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        user = User.objects.get(pk=response.data['id'])
        self.assertEqual(user.email, 'second@test.com')
        self.assertEqual(user.tenant, self.tenant)

    def test_duplicate_email_rejected(self):
        response = self._create(email=self.staff.email)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_manager_limited_to_staff_and_readonly(self):
        self.client.authenticate_user(self.manager)
        self.assertEqual(self._create(role='manager').status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(self._create(role='readonly').status_code, status.HTTP_201_CREATED)

        response = self.client.put(f'/api/v1/users/{self.admin.id}/', {'name': 'X', 'role': 'staff'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_staff_cannot_create(self):
        self.client.authenticate_user(self.staff)
        self.assertEqual(self._create().status_code, status.HTTP_403_FORBIDDEN)

    def test_update_user_records_changes(self):
        response = self.client.put(f'/api/v1/users/{self.staff.id}/', {'name': 'Renamed', 'role': 'manager'},
                                   format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        log = AuditLog.objects.filter(action='update', resource_type='user').latest('id')
        self.assertEqual(log.changes['role'], {'old': 'staff', 'new': 'manager'})

    def test_admin_cannot_demote_self(self):
        response = self.client.put(f'/api/v1/users/{self.admin.id}/', {'name': 'Me', 'role': 'staff'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_cannot_delete_self(self):
        response = self.client.delete(f'/api/v1/users/{self.admin.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_delete_user(self):
        response = self.client.delete(f'/api/v1/users/{self.staff.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(User.objects.filter(pk=self.staff.id).exists())

    def test_other_tenant_user_not_found(self):
        outsider = TestDataFactory.create_user(TestDataFactory.create_tenant())
        response = self.client.get(f'/api/v1/users/{outsider.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_toggle_active(self):
        response = self.client.post(f'/api/v1/users/{self.staff.id}/active/', {'active': False}, format='json')
        self.assertEqual(response.data, {'success': True, 'active': False})
        self.staff.refresh_from_db()
        self.assertFalse(self.staff.is_active)

        response = self.client.post(f'/api/v1/users/{self.admin.id}/active/', {'active': False}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_toggle_active_parses_form_strings(self):
        response = self.client.post(f'/api/v1/users/{self.staff.id}/active/', {'active': 'false'})
        self.assertEqual(response.data, {'success': True, 'active': False})
        self.staff.refresh_from_db()
        self.assertFalse(self.staff.is_active)

        response = self.client.post(f'/api/v1/users/{self.staff.id}/active/', {'active': 'maybe'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.staff.refresh_from_db()
        self.assertFalse(self.staff.is_active)

    def test_deactivated_user_loses_access(self):
        self.staff.is_active = False
        self.staff.save()
        self.client.authenticate_user(self.staff)
        response = self.client.get('/api/v1/locations/')
        self.assertIn(response.status_code, [status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN])

    def test_assignable_roles(self):
        self.assertEqual(self.client.get('/api/v1/users/assignable-roles/').data['roles'],
                         ['admin', 'manager', 'staff', 'readonly'])
        self.client.authenticate_user(self.manager)
        self.assertEqual(self.client.get('/api/v1/users/assignable-roles/').data['roles'], ['staff', 'readonly'])


class SettingsTests(TestCase):

    def setUp(self):
        self.tenant = TestDataFactory.create_tenant(name='Acme')
        self.admin = TestDataFactory.create_user(self.tenant, role='admin')
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)

    def test_profile_update(self):
        response = self.client.patch('/api/v1/settings/profile/', {'name': 'New Name'}, format='json')
        self.assertEqual(response.data['name'], 'New Name')
        response = self.client.patch('/api/v1/settings/profile/', {'name': ''}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_organization_defaults(self):
        response = self.client.get('/api/v1/settings/organization/')
        self.assertEqual(response.data['name'], 'Acme')
        self.assertEqual(response.data['default_currency'], 'USD')
        self.assertFalse(response.data['require_adjustment_approval'])

    def test_organization_update(self):
        response = self.client.put('/api/v1/settings/organization/', {
            'name': 'Acme Ltd', 'default_currency': 'EUR', 'require_adjustment_approval': True,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.tenant.refresh_from_db()
        self.assertEqual(self.tenant.name, 'Acme Ltd')
        self.assertTrue(self.tenant.requires_adjustment_approval)
        log = AuditLog.objects.get(resource_type='tenant', action='update')
        self.assertEqual(log.changes['default_currency'], {'old': 'USD', 'new': 'EUR'})

    def test_organization_update_admin_only(self):
        self.client.authenticate_user(TestDataFactory.create_user(self.tenant, role='manager'))
        response = self.client.put('/api/v1/settings/organization/', {
            'name': 'Hijacked', 'default_currency': 'EUR', 'require_adjustment_approval': False,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class AuditLogAPITests(TestCase):

    def setUp(self):
        self.tenant = TestDataFactory.create_tenant()
        self.manager = TestDataFactory.create_user(self.tenant, role='manager')
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.manager)
        for _ in range(3):
            self.client.post('/api/v1/locations/', {'name': TestDataFactory.random_string(), 'type': 'warehouse'},
                             format='json')

    def test_list(self):
        response = self.client.get('/api/v1/audit-logs/?resource_type=location&limit=2')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 3)
        self.assertEqual(len(response.data['data']), 2)
        self.assertEqual(response.data['data'][0]['user_email'], self.manager.email)

    def test_other_tenant_logs_hidden(self):
        other = TestDataFactory.create_user(TestDataFactory.create_tenant(), role='admin')
        self.client.authenticate_user(other)
        self.assertEqual(self.client.get('/api/v1/audit-logs/').data['count'], 0)

    def test_staff_denied(self):
        self.client.authenticate_user(TestDataFactory.create_user(self.tenant, role='staff'))
        response = self.client.get('/api/v1/audit-logs/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_invalid_limit(self):
        response = self.client.get('/api/v1/audit-logs/?limit=all')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_negative_offset_rejected(self):
        response = self.client.get('/api/v1/audit-logs/?offset=-1')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        response = self.client.get('/api/v1/audit-logs/?limit=0')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_malformed_filters_rejected(self):
        for query in ('start_date=notadate', 'end_date=2024-13-01', 'user_id=abc'):
            response = self.client.get(f'/api/v1/audit-logs/?{query}')
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST, query)

    def test_date_and_user_filters(self):
        today = timezone.localdate().isoformat()
        response = self.client.get(f'/api/v1/audit-logs/?resource_type=location&start_date={today}&user_id={self.manager.id}')
        self.assertEqual(response.data['count'], 3)
        response = self.client.get('/api/v1/audit-logs/?start_date=2999-01-01')
        self.assertEqual(response.data['count'], 0)


class I18nTests(TestCase):

    def test_default_locale(self):
        response = self.client.get('/api/v1/i18n/messages/')
        self.assertEqual(response.data['locale'], 'en')
        self.assertEqual(response.data['messages']['roles']['admin'], 'Administrator')
        self.assertEqual(len(response.data['locales']), 4)

    def test_cookie_locale(self):
        self.client.cookies['locale'] = 'ja'
        response = self.client.get('/api/v1/i18n/messages/')
        self.assertEqual(response.data['locale'], 'ja')
        self.assertEqual(response.data['messages']['roles']['admin'], '管理者')

    def test_unknown_locale_falls_back(self):
        self.client.cookies['locale'] = 'xx'
        response = self.client.get('/api/v1/i18n/messages/')
        self.assertEqual(response.data['locale'], 'en')


class HelperTests(TestCase):

    def test_document_numbers_per_tenant_and_prefix(self):
        tenant = TestDataFactory.create_tenant()
        other = TestDataFactory.create_tenant()
        self.assertEqual(next_document_number(tenant, 'PO'), 'PO-000001')
        self.assertEqual(next_document_number(tenant, 'PO'), 'PO-000002')
        self.assertEqual(next_document_number(tenant, 'SHP'), 'SHP-000001')
        self.assertEqual(next_document_number(other, 'PO'), 'PO-000001')
        self.assertEqual(next_document_number(tenant, 'SUP', width=4), 'SUP-0001')

    def test_compute_changes(self):
        changes = compute_changes(
            {'name': 'A', 'cost': Decimal('1.50'), 'updated_at': 'x'},
            {'name': 'A', 'cost': Decimal('2.00'), 'updated_at': 'y'},
        )
        self.assertEqual(changes, {'cost': {'old': '1.50', 'new': '2.00'}})

    def test_tenant_cache_generations(self):
        cache.clear()
        calls = []

        def build():
            calls.append(1)
            return {'value': len(calls)}

        self.assertEqual(get_tenant_cached(1, 'stock', build, location=2), {'value': 1})
        self.assertEqual(get_tenant_cached(1, 'stock', build, location=2), {'value': 1})
        self.assertEqual(get_tenant_cached(2, 'stock', build, location=2), {'value': 2})
        invalidate_stock_cache(1)
        self.assertEqual(get_tenant_cached(1, 'stock', build, location=2), {'value': 3})

    def test_business_errors_become_400(self):
        response = api_exception_handler(InsufficientStockError('Insufficient stock'), {})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data, {'error': 'Insufficient stock'})
