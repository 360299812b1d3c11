"""
Test suite for Error Logs module
Tests: public error reporting, deduplication, platform admin triage
"""
from django.test import TestCase
from rest_framework import status
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.errorlogs.models import ErrorLog
from backend.errorlogs.services import generate_fingerprint, log_server_error, upsert_error_log

STACK = "TypeError: x is undefined\n    at render (app.js:10:5)\n    at main (app.js:20:1)"


class ErrorFingerprintTests(TestCase):

    def test_line_numbers_ignored(self):
        moved = STACK.replace('10:5', '12:9')
        self.assertEqual(generate_fingerprint('boom', STACK, '/a'), generate_fingerprint('boom', moved, '/a'))

    def test_url_distinguishes(self):
        self.assertNotEqual(generate_fingerprint('boom', STACK, '/a'), generate_fingerprint('boom', STACK, '/b'))

    def test_upsert_bumps_open_error(self):
        first = upsert_error_log('boom', STACK, url='/a')
        second = upsert_error_log('boom', STACK, url='/a')
        self.assertEqual(first.id, second.id)
        self.assertEqual(second.occurrence_count, 2)
        self.assertGreaterEqual(second.last_seen_at, first.first_seen_at)

    def test_resolved_error_recurs_as_new_row(self):
        first = upsert_error_log('boom', STACK, url='/a')
        first.status = 'resolved'
        first.save()
        second = upsert_error_log('boom', STACK, url='/a')
        self.assertNotEqual(first.id, second.id)
        self.assertEqual(ErrorLog.objects.count(), 2)

    def test_log_server_error_never_raises(self):
        # message is required at the database level
        self.assertIsNone(log_server_error(message=None))


class ReportErrorAPITests(TestCase):

    def setUp(self):
        self.client = AuthenticatedAPIClient()

    def test_anonymous_report(self):
        response = self.client.post('/api/v1/errors/', {
            'message': 'Cannot read property of undefined',
            'stack_trace': STACK,
            'url': '/products',
            'severity': 'warning',
        }, format='json', HTTP_USER_AGENT='TestBrowser/1.0')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        error_log = ErrorLog.objects.get(pk=response.data['id'])
        self.assertEqual(error_log.error_type, 'client')
        self.assertEqual(error_log.severity, 'warning')
        self.assertEqual(error_log.user_agent, 'TestBrowser/1.0')
        self.assertIsNone(error_log.user)

    def test_authenticated_report_records_user_and_tenant(self):
        user = TestDataFactory.create_user()
        self.client.authenticate_user(user)
        response = self.client.post('/api/v1/errors/', {'message': 'boom'}, format='json')
        error_log = ErrorLog.objects.get(pk=response.data['id'])
        self.assertEqual(error_log.user, user)
        self.assertEqual(error_log.tenant, user.tenant)

    def test_repeat_report_deduplicated(self):
        self.client.post('/api/v1/errors/', {'message': 'boom', 'url': '/x'}, format='json')
        self.client.post('/api/v1/errors/', {'message': 'boom', 'url': '/x'}, format='json')
        self.assertEqual(ErrorLog.objects.count(), 1)
        self.assertEqual(ErrorLog.objects.get().occurrence_count, 2)

    def test_message_required(self):
        response = self.client.post('/api/v1/errors/', {'severity': 'error'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_invalid_severity(self):
        response = self.client.post('/api/v1/errors/', {'message': 'boom', 'severity': 'meh'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class ErrorLogAdminAPITests(TestCase):

    def setUp(self):
        self.admin = TestDataFactory.create_platform_admin()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)
        self.error = upsert_error_log('database timeout', error_type='database', severity='fatal')
        self.other = upsert_error_log('validation failed', error_type='validation', severity='warning')

    def test_tenant_admin_denied(self):
        self.client.authenticate_user(TestDataFactory.create_user(role='admin'))
        response = self.client.get('/api/v1/admin/errors/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_list_with_filters(self):
        response = self.client.get('/api/v1/admin/errors/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 2)

        response = self.client.get('/api/v1/admin/errors/?severity=fatal')
        self.assertEqual([e['id'] for e in response.data['results']], [self.error.id])

        response = self.client.get('/api/v1/admin/errors/?search=validation')
        self.assertEqual(response.data['count'], 1)

    def test_resolve_and_reopen(self):
        response = self.client.patch(f'/api/v1/admin/errors/{self.error.id}/',
                                     {'status': 'resolved', 'resolution_note': 'Index added'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['resolved_by'], self.admin.id)
        self.assertEqual(response.data['resolution_note'], 'Index added')
        self.assertIsNotNone(response.data['resolved_at'])

        response = self.client.patch(f'/api/v1/admin/errors/{self.error.id}/', {'status': 'open'}, format='json')
        self.assertIsNone(response.data['resolved_by'])
        self.assertIsNone(response.data['resolved_at'])

    def test_invalid_status(self):
        response = self.client.patch(f'/api/v1/admin/errors/{self.error.id}/', {'status': 'done'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_bulk_status(self):
        response = self.client.post('/api/v1/admin/errors/bulk-status/',
                                    {'ids': [self.error.id, self.other.id], 'status': 'ignored'}, format='json')
        self.assertEqual(response.data['updated'], 2)
        self.assertEqual(ErrorLog.objects.filter(status='ignored', resolved_by=self.admin).count(), 2)

    def test_bulk_delete(self):
        response = self.client.post('/api/v1/admin/errors/bulk-delete/', {'ids': [self.error.id]}, format='json')
        self.assertEqual(response.data['deleted'], 1)
        self.assertFalse(ErrorLog.objects.filter(pk=self.error.id).exists())

    def test_bulk_requires_ids(self):
        response = self.client.post('/api/v1/admin/errors/bulk-delete/', {'ids': []}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_stats(self):
        response = self.client.get('/api/v1/admin/errors/stats/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total'], 2)
        self.assertEqual(response.data['by_severity'], {'fatal': 1, 'warning': 1})
        self.assertEqual(response.data['by_status'], {'open': 2})
        self.assertEqual(len(response.data['trend']), 7)
        self.assertEqual(response.data['trend'][-1]['count'], 2)

    def test_delete(self):
        response = self.client.delete(f'/api/v1/admin/errors/{self.error.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
