"""
Test suite for Shipping module
Tests: shipment CRUD, availability check on confirm, shipping at average cost, cancel rules
"""
from django.test import TestCase
from rest_framework import status
from decimal import Decimal
from backend.core.models import AuditLog
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.inventory.models import StockMovement
from backend.inventory.services import available_qty, remove_stock
from backend.shipping.models import Shipment


class ShipmentAPITests(TestCase):

    def setUp(self):
        self.tenant = TestDataFactory.create_tenant()
        self.user = TestDataFactory.create_user(self.tenant)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.location = TestDataFactory.create_location(self.tenant)
        self.customer = TestDataFactory.create_customer(self.tenant, name='Jane')
        self.product = TestDataFactory.create_product(self.tenant)
        TestDataFactory.add_stock(self.tenant, self.product, self.location, '10', '3.00')

    def _create(self, qty='4', **overrides):
        data = {
            'location': self.location.id,
            'customer': self.customer.id,
            'lines': [{'product': self.product.id, 'qty': qty}],
        }
        data.update(overrides)
        return self.client.post('/api/v1/shipments/', data, format='json')

    def test_create_shipment(self):
        response = self._create()
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['shipment_number'], 'SHP-000001')
        self.assertEqual(response.data['display_customer_name'], 'Jane')
        self.assertIsNone(response.data['lines'][0]['unit_cost'])

    def test_create_for_walk_in_customer(self):
        response = self._create(customer=None, customer_name='  Counter sale ')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['display_customer_name'], 'Counter sale')

    def test_customer_from_other_tenant_rejected(self):
        foreign = TestDataFactory.create_customer(TestDataFactory.create_tenant())
        response = self._create(customer=foreign.id)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_negative_quantity_rejected(self):
        response = self._create(qty='-1')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_confirm_checks_availability(self):
        shipment_id = self._create(qty='11').data['id']
        response = self.client.post(f'/api/v1/shipments/{shipment_id}/confirm/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('Insufficient stock', response.data['error'])
        self.assertEqual(Shipment.objects.get(pk=shipment_id).status, 'draft')

    def test_confirm_sums_lines_of_same_product(self):
        lines = [{'product': self.product.id, 'qty': '6'}, {'product': self.product.id, 'qty': '6'}]
        shipment_id = self._create(lines=lines).data['id']
        response = self.client.post(f'/api/v1/shipments/{shipment_id}/confirm/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_confirm_does_not_move_stock(self):
        shipment_id = self._create().data['id']
        response = self.client.post(f'/api/v1/shipments/{shipment_id}/confirm/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'confirmed')
        self.assertEqual(available_qty(self.tenant, self.product, self.location), Decimal('10'))

    def test_ship(self):
        shipment_id = self._create().data['id']
        self.client.post(f'/api/v1/shipments/{shipment_id}/confirm/')
        response = self.client.post(f'/api/v1/shipments/{shipment_id}/ship/', {'ship_date': '2026-03-01'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'completed')
        self.assertEqual(response.data['ship_date'], '2026-03-01')
        self.assertEqual(Decimal(response.data['lines'][0]['unit_cost']), Decimal('3.00'))
        self.assertEqual(available_qty(self.tenant, self.product, self.location), Decimal('6'))

        movement = StockMovement.objects.get(movement_type='ship')
        self.assertEqual(movement.qty, Decimal('-4'))
        self.assertEqual(movement.reference_id, shipment_id)
        self.assertTrue(AuditLog.objects.filter(action='ship', resource_id=str(shipment_id)).exists())

    def test_ship_defaults_date_to_today(self):
        shipment_id = self._create().data['id']
        self.client.post(f'/api/v1/shipments/{shipment_id}/confirm/')
        self.client.post(f'/api/v1/shipments/{shipment_id}/ship/')
        self.assertIsNotNone(Shipment.objects.get(pk=shipment_id).ship_date)

    def test_ship_draft_fails(self):
        shipment_id = self._create().data['id']
        response = self.client.post(f'/api/v1/shipments/{shipment_id}/ship/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Can only ship confirmed shipments')

    def test_ship_fails_when_stock_moved_after_confirm(self):
        shipment_id = self._create(qty='8').data['id']
        self.client.post(f'/api/v1/shipments/{shipment_id}/confirm/')
        remove_stock(self.tenant, self.product, self.location, Decimal('5'), 'ship')

        response = self.client.post(f'/api/v1/shipments/{shipment_id}/ship/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(Shipment.objects.get(pk=shipment_id).status, 'confirmed')
        self.assertEqual(available_qty(self.tenant, self.product, self.location), Decimal('5'))

    def test_cancel_confirmed(self):
        shipment_id = self._create().data['id']
        self.client.post(f'/api/v1/shipments/{shipment_id}/confirm/')
        response = self.client.post(f'/api/v1/shipments/{shipment_id}/cancel/')
        self.assertEqual(response.data['status'], 'cancelled')

    def test_cancel_shipped_fails(self):
        shipment_id = self._create().data['id']
        self.client.post(f'/api/v1/shipments/{shipment_id}/confirm/')
        self.client.post(f'/api/v1/shipments/{shipment_id}/ship/')
        response = self.client.post(f'/api/v1/shipments/{shipment_id}/cancel/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_delete_draft(self):
        shipment_id = self._create().data['id']
        response = self.client.delete(f'/api/v1/shipments/{shipment_id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)

    def test_list_search_by_customer(self):
        self._create()
        self._create(customer=None, customer_name='Someone else')
        response = self.client.get('/api/v1/shipments/?search=jane')
        self.assertEqual(response.data['count'], 1)

    def test_list_rejects_malformed_filters(self):
        for query in ('customer=abc', 'location=x', 'date_to=notadate'):
            response = self.client.get(f'/api/v1/shipments/?{query}')
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST, query)
        response = self.client.get(f'/api/v1/shipments/?customer={self.customer.id}')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_other_tenant_shipment_not_found(self):
        other_tenant = TestDataFactory.create_tenant()
        shipment = TestDataFactory.create_shipment(other_tenant, TestDataFactory.create_location(other_tenant))
        response = self.client.get(f'/api/v1/shipments/{shipment.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
