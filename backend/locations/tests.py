"""
Test suite for Locations module
"""
from django.test import TestCase
from rest_framework import status
from backend.core.models import AuditLog
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.locations.models import Location


class LocationAPITests(TestCase):

    def setUp(self):
        self.tenant = TestDataFactory.create_tenant()
        self.user = TestDataFactory.create_user(self.tenant)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_create_location(self):
        response = self.client.post('/api/v1/locations/', {'name': 'Main Warehouse', 'type': 'warehouse'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        location = Location.objects.get(pk=response.data['id'])
        self.assertEqual(location.tenant, self.tenant)
        self.assertTrue(AuditLog.objects.filter(action='create', resource_type='location').exists())

    def test_duplicate_name_rejected(self):
        TestDataFactory.create_location(self.tenant, name='Main')
        response = self.client.post('/api/v1/locations/', {'name': 'main'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_list_filters_by_type(self):
        TestDataFactory.create_location(self.tenant, type='warehouse')
        TestDataFactory.create_location(self.tenant, type='store')
        TestDataFactory.create_location(TestDataFactory.create_tenant())
        response = self.client.get('/api/v1/locations/')
        self.assertEqual(len(response.data), 2)
        response = self.client.get('/api/v1/locations/?type=store')
        self.assertEqual(len(response.data), 1)

    def test_parent_cycle_rejected(self):
        parent = TestDataFactory.create_location(self.tenant)
        child = TestDataFactory.create_location(self.tenant, parent=parent)
        response = self.client.patch(f'/api/v1/locations/{parent.id}/', {'parent': child.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_parent_from_other_tenant_rejected(self):
        foreign = TestDataFactory.create_location(TestDataFactory.create_tenant())
        response = self.client.post('/api/v1/locations/', {'name': 'Shop', 'parent': foreign.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_delete_location_with_stock_blocked(self):
        location = TestDataFactory.create_location(self.tenant)
        product = TestDataFactory.create_product(self.tenant)
        TestDataFactory.add_stock(self.tenant, product, location, '3')
        response = self.client.delete(f'/api/v1/locations/{location.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Cannot delete location with existing inventory')
        self.assertTrue(Location.objects.filter(pk=location.id).exists())

    def test_delete_location_referenced_by_documents_blocked(self):
        location = TestDataFactory.create_location(self.tenant)
        TestDataFactory.create_purchase_order(self.tenant, location=location)
        response = self.client.delete(f'/api/v1/locations/{location.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_delete_empty_location(self):
        location = TestDataFactory.create_location(self.tenant)
        response = self.client.delete(f'/api/v1/locations/{location.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertTrue(AuditLog.objects.filter(action='delete', resource_type='location').exists())

    def test_other_tenant_location_not_found(self):
        location = TestDataFactory.create_location(TestDataFactory.create_tenant())
        response = self.client.get(f'/api/v1/locations/{location.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
