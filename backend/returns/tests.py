"""
Test suite for Returns module
Tests: customer and supplier returns, partner validation, processing and cancel rules
"""
from django.test import TestCase
from rest_framework import status
from decimal import Decimal
from backend.core.models import AuditLog
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.inventory.models import StockMovement
from backend.inventory.services import available_qty, get_balance
from backend.returns.models import Return


class ReturnAPITests(TestCase):

    def setUp(self):
        self.tenant = TestDataFactory.create_tenant()
        self.user = TestDataFactory.create_user(self.tenant)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.location = TestDataFactory.create_location(self.tenant)
        self.customer = TestDataFactory.create_customer(self.tenant, name='Jane')
        self.supplier = TestDataFactory.create_supplier(self.tenant, name='Acme')
        self.product = TestDataFactory.create_product(self.tenant, current_cost=Decimal('5.00'))
        TestDataFactory.add_stock(self.tenant, self.product, self.location, '10', '5.00')

    def _create(self, return_type='customer', partner=None, qty='2', unit_cost=None, **overrides):
        partner = partner or (self.customer if return_type == 'customer' else self.supplier)
        line = {'product': self.product.id, 'qty': qty}
        if unit_cost is not None:
            line['unit_cost'] = unit_cost
        data = {
            'return_type': return_type,
            'location': self.location.id,
            'partner_id': partner.id,
            'reason': 'Damaged in transit',
            'lines': [line],
        }
        data.update(overrides)
        return self.client.post('/api/v1/returns/', data, format='json')

    def test_create_fills_partner_name(self):
        response = self._create()
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['return_number'], 'RET-000001')
        self.assertEqual(response.data['partner_name'], 'Jane')

    def test_unknown_partner_rejected(self):
        data = {
            'return_type': 'supplier',
            'location': self.location.id,
            'partner_id': self.supplier.id + 1000,
            'lines': [{'product': self.product.id, 'qty': '1'}],
        }
        response = self.client.post('/api/v1/returns/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['partner_id'], ['Supplier not found'])

    def test_explicit_partner_name_kept(self):
        response = self._create(partner_name='Jane (store credit)')
        self.assertEqual(response.data['partner_name'], 'Jane (store credit)')

    def test_edit_processed_return_fails(self):
        return_id = self._create().data['id']
        self.client.post(f'/api/v1/returns/{return_id}/process/')
        response = self.client.patch(f'/api/v1/returns/{return_id}/', {'notes': 'late'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_partner_from_other_tenant_rejected(self):
        foreign = TestDataFactory.create_customer(TestDataFactory.create_tenant())
        response = self._create(partner=foreign)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('partner_id', response.data)

    def test_process_customer_return_adds_stock(self):
        return_id = self._create(unit_cost='8.00').data['id']
        response = self.client.post(f'/api/v1/returns/{return_id}/process/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'completed')
        self.assertIsNotNone(response.data['processed_at'])

        balance = get_balance(self.tenant, self.product, self.location)
        self.assertEqual(balance.qty_on_hand, Decimal('12'))
        self.assertEqual(balance.avg_cost, Decimal('5.5'))
        movement = StockMovement.objects.get(movement_type='return_in')
        self.assertEqual(movement.reference_type, 'return')
        self.assertEqual(movement.reason, 'Damaged in transit')
        self.assertTrue(AuditLog.objects.filter(action='return', resource_id=str(return_id)).exists())

    def test_customer_return_without_cost_uses_current_cost(self):
        return_id = self._create().data['id']
        response = self.client.post(f'/api/v1/returns/{return_id}/process/')
        self.assertEqual(Decimal(response.data['lines'][0]['unit_cost']), Decimal('5.00'))

    def test_process_supplier_return_removes_stock(self):
        return_id = self._create(return_type='supplier', qty='3').data['id']
        response = self.client.post(f'/api/v1/returns/{return_id}/process/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(available_qty(self.tenant, self.product, self.location), Decimal('7'))
        self.assertEqual(StockMovement.objects.get(movement_type='return_out').qty, Decimal('-3'))

    def test_supplier_return_insufficient_stock(self):
        return_id = self._create(return_type='supplier', qty='11').data['id']
        response = self.client.post(f'/api/v1/returns/{return_id}/process/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(Return.objects.get(pk=return_id).status, 'draft')
        self.assertEqual(available_qty(self.tenant, self.product, self.location), Decimal('10'))

    def test_process_twice_fails(self):
        return_id = self._create().data['id']
        self.client.post(f'/api/v1/returns/{return_id}/process/')
        response = self.client.post(f'/api/v1/returns/{return_id}/process/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(available_qty(self.tenant, self.product, self.location), Decimal('12'))

    def test_cancel_and_delete_rules(self):
        return_id = self._create().data['id']
        response = self.client.post(f'/api/v1/returns/{return_id}/cancel/')
        self.assertEqual(response.data['status'], 'cancelled')
        response = self.client.delete(f'/api/v1/returns/{return_id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_list_filters_by_type(self):
        self._create()
        self._create(return_type='supplier')
        response = self.client.get('/api/v1/returns/?return_type=supplier')
        self.assertEqual(response.data['count'], 1)

    def test_list_rejects_malformed_filters(self):
        for query in ('location=abc', 'return_type=vendor', 'status=lost'):
            response = self.client.get(f'/api/v1/returns/?{query}')
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST, query)

    def test_other_tenant_return_not_found(self):
        other_tenant = TestDataFactory.create_tenant()
        ret = Return.objects.create(tenant=other_tenant, return_number='RET-000001', return_type='customer',
                                    location=TestDataFactory.create_location(other_tenant))
        response = self.client.post(f'/api/v1/returns/{ret.id}/process/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
