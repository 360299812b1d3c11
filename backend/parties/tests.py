"""
Test suite for Parties module
Tests: suppliers and customers, generated codes, address validation, delete guards
"""
from django.test import TestCase
from rest_framework import status
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.parties.models import Customer, Supplier


class SupplierAPITests(TestCase):

    def setUp(self):
        self.tenant = TestDataFactory.create_tenant()
        self.user = TestDataFactory.create_user(self.tenant)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_create_supplier_generates_code(self):
        response = self.client.post('/api/v1/suppliers/', {'name': 'Acme'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['code'], 'SUP-0001')

    def test_generated_code_skips_manual_codes(self):
        self.client.post('/api/v1/suppliers/', {'name': 'Manual', 'code': 'SUP-0001'}, format='json')
        response = self.client.post('/api/v1/suppliers/', {'name': 'Acme'}, format='json')
        self.assertEqual(response.data['code'], 'SUP-0002')

    def test_duplicate_code_rejected(self):
        TestDataFactory.create_supplier(self.tenant, code='ACME')
        response = self.client.post('/api/v1/suppliers/', {'name': 'Acme', 'code': 'ACME'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_address_keeps_known_fields(self):
        address = {'street': '1 Main St', 'city': 'Springfield', 'country': ''}
        response = self.client.post('/api/v1/suppliers/', {'name': 'Acme', 'address': address}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['address'], {'street': '1 Main St', 'city': 'Springfield'})

    def test_unknown_address_field_rejected(self):
        response = self.client.post('/api/v1/suppliers/', {'name': 'Acme', 'address': {'planet': 'Mars'}},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_search(self):
        TestDataFactory.create_supplier(self.tenant, name='Acme Foods')
        TestDataFactory.create_supplier(self.tenant, name='Globex')
        response = self.client.get('/api/v1/suppliers/?search=acme')
        self.assertEqual(len(response.data), 1)

    def test_delete_unused_supplier(self):
        supplier = TestDataFactory.create_supplier(self.tenant)
        response = self.client.delete(f'/api/v1/suppliers/{supplier.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Supplier.objects.filter(pk=supplier.id).exists())

    def test_other_tenant_supplier_not_found(self):
        supplier = TestDataFactory.create_supplier(TestDataFactory.create_tenant())
        response = self.client.get(f'/api/v1/suppliers/{supplier.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class CustomerAPITests(TestCase):

    def setUp(self):
        self.tenant = TestDataFactory.create_tenant()
        self.user = TestDataFactory.create_user(self.tenant)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_create_customer_generates_code(self):
        response = self.client.post('/api/v1/customers/', {'name': 'Jane Doe', 'email': 'jane@example.com'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['code'], 'CUST-0001')

    def test_update_customer(self):
        customer = TestDataFactory.create_customer(self.tenant)
        response = self.client.patch(f'/api/v1/customers/{customer.id}/', {'phone': '555-0100'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        customer.refresh_from_db()
        self.assertEqual(customer.phone, '555-0100')

    def test_delete_customer_with_shipments_blocked(self):
        customer = TestDataFactory.create_customer(self.tenant)
        location = TestDataFactory.create_location(self.tenant)
        TestDataFactory.create_shipment(self.tenant, location, customer=customer)
        response = self.client.delete(f'/api/v1/customers/{customer.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertTrue(Customer.objects.filter(pk=customer.id).exists())

    def test_active_filter(self):
        TestDataFactory.create_customer(self.tenant)
        inactive = TestDataFactory.create_customer(self.tenant)
        inactive.active = False
        inactive.save()
        response = self.client.get('/api/v1/customers/?active=false')
        self.assertEqual([c['id'] for c in response.data], [inactive.id])
