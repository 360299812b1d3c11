"""
Test suite for Purchasing module
Tests: purchase order CRUD, confirm/receive/cancel workflow, weighted average cost, tenant isolation
"""
from django.core.cache import cache
from django.test import TestCase
from rest_framework import status
from decimal import Decimal
from django.utils import timezone
from datetime import timedelta
from backend.core.models import AuditLog
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.purchasing.models import PurchaseOrder, PurchaseOrderLine
from backend.inventory.models import InventoryBalance, StockMovement


class PurchaseOrderModelTests(TestCase):
    """Test PurchaseOrder and PurchaseOrderLine model methods"""

    def setUp(self):
        self.tenant = TestDataFactory.create_tenant()
        self.product = TestDataFactory.create_product(self.tenant)
        self.other_product = TestDataFactory.create_product(self.tenant)

    def test_purchase_order_str(self):
        po = TestDataFactory.create_purchase_order(self.tenant)
        po.po_number = 'PO-000042'
        po.save()
        self.assertEqual(str(po), 'PO-000042')

    def test_purchase_order_total(self):
        po = TestDataFactory.create_purchase_order(self.tenant, lines=[
            (self.product, '10', '100.00'),
            (self.other_product, '5', '50.00'),
        ])
        self.assertEqual(po.get_total(), Decimal('1250.00'))

    def test_line_outstanding(self):
        po = TestDataFactory.create_purchase_order(self.tenant, lines=[(self.product, '10', '2.50')])
        line = po.lines.get()
        line.qty_received = Decimal('4')
        line.save()
        self.assertEqual(line.qty_outstanding, Decimal('6'))
        self.assertEqual(line.get_line_total(), Decimal('25.00'))


class PurchaseOrderAPITests(TestCase):
    """Test purchase order CRUD endpoints"""

    def setUp(self):
        self.tenant = TestDataFactory.create_tenant()
        self.user = TestDataFactory.create_user(self.tenant)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.supplier = TestDataFactory.create_supplier(self.tenant)
        self.location = TestDataFactory.create_location(self.tenant)
        self.product = TestDataFactory.create_product(self.tenant)

    def _payload(self, **overrides):
        data = {
            'supplier': self.supplier.id,
            'location': self.location.id,
            'order_date': timezone.localdate().isoformat(),
            'lines': [{'product': self.product.id, 'qty_ordered': '10', 'unit_cost': '5.00'}],
        }
        data.update(overrides)
        return data

    def test_create_purchase_order(self):
        """Creating a PO allocates a number and starts in draft"""
        response = self.client.post('/api/v1/purchase-orders/', self._payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['po_number'], 'PO-000001')
        self.assertEqual(response.data['status'], 'draft')
        self.assertEqual(len(response.data['lines']), 1)
        self.assertEqual(Decimal(response.data['total']), Decimal('50.00'))

        po = PurchaseOrder.objects.get(pk=response.data['id'])
        self.assertEqual(po.tenant, self.tenant)
        self.assertEqual(po.created_by, self.user)
        self.assertTrue(AuditLog.objects.filter(action='create', resource_type='purchase_order',
                                                resource_id=str(po.id)).exists())

    def test_numbers_increase_per_tenant(self):
        self.client.post('/api/v1/purchase-orders/', self._payload(), format='json')
        response = self.client.post('/api/v1/purchase-orders/', self._payload(), format='json')
        self.assertEqual(response.data['po_number'], 'PO-000002')

    def test_create_without_lines_fails(self):
        response = self.client.post('/api/v1/purchase-orders/', self._payload(lines=[]), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('lines', response.data)

    def test_create_with_zero_quantity_fails(self):
        lines = [{'product': self.product.id, 'qty_ordered': '0', 'unit_cost': '5.00'}]
        response = self.client.post('/api/v1/purchase-orders/', self._payload(lines=lines), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(PurchaseOrder.objects.count(), 0)

    def test_create_with_fractional_quantity_for_each_product_fails(self):
        lines = [{'product': self.product.id, 'qty_ordered': '1.5', 'unit_cost': '5.00'}]
        response = self.client.post('/api/v1/purchase-orders/', self._payload(lines=lines), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_create_with_fractional_quantity_for_weighed_product(self):
        flour = TestDataFactory.create_product(self.tenant, base_uom='KG')
        lines = [{'product': flour.id, 'qty_ordered': '1.5', 'unit_cost': '5.00'}]
        response = self.client.post('/api/v1/purchase-orders/', self._payload(lines=lines), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

    def test_create_with_duplicate_product_fails(self):
        lines = [
            {'product': self.product.id, 'qty_ordered': '1', 'unit_cost': '5.00'},
            {'product': self.product.id, 'qty_ordered': '2', 'unit_cost': '5.00'},
        ]
        response = self.client.post('/api/v1/purchase-orders/', self._payload(lines=lines), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_expected_date_before_order_date_fails(self):
        yesterday = (timezone.localdate() - timedelta(days=1)).isoformat()
        response = self.client.post('/api/v1/purchase-orders/', self._payload(expected_date=yesterday), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('expected_date', response.data)

    def test_supplier_from_other_tenant_rejected(self):
        other_supplier = TestDataFactory.create_supplier(TestDataFactory.create_tenant())
        response = self.client.post('/api/v1/purchase-orders/', self._payload(supplier=other_supplier.id),
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('supplier', response.data)

    def test_product_from_other_tenant_rejected(self):
        foreign = TestDataFactory.create_product(TestDataFactory.create_tenant())
        lines = [{'product': foreign.id, 'qty_ordered': '1', 'unit_cost': '5.00'}]
        response = self.client.post('/api/v1/purchase-orders/', self._payload(lines=lines), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_list_purchase_orders(self):
        TestDataFactory.create_purchase_order(self.tenant, self.supplier, self.location)
        TestDataFactory.create_purchase_order(self.tenant, self.supplier, self.location, status='confirmed')
        TestDataFactory.create_purchase_order(TestDataFactory.create_tenant())

        response = self.client.get('/api/v1/purchase-orders/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 2)

        response = self.client.get('/api/v1/purchase-orders/?status=confirmed')
        self.assertEqual(response.data['count'], 1)

    def test_list_rejects_malformed_filters(self):
        for query in ('supplier=abc', 'location=x', 'date_from=notadate', 'status=shipped'):
            response = self.client.get(f'/api/v1/purchase-orders/?{query}')
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST, query)

    def test_list_filters_by_supplier_and_date(self):
        other_supplier = TestDataFactory.create_supplier(self.tenant)
        TestDataFactory.create_purchase_order(self.tenant, self.supplier, self.location)
        TestDataFactory.create_purchase_order(self.tenant, other_supplier, self.location)

        response = self.client.get(f'/api/v1/purchase-orders/?supplier={other_supplier.id}')
        self.assertEqual(response.data['count'], 1)
        response = self.client.get('/api/v1/purchase-orders/?date_from=2999-01-01')
        self.assertEqual(response.data['count'], 0)

    def test_other_tenant_purchase_order_not_found(self):
        po = TestDataFactory.create_purchase_order(TestDataFactory.create_tenant())
        response = self.client.get(f'/api/v1/purchase-orders/{po.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_update_draft_replaces_lines(self):
        po = TestDataFactory.create_purchase_order(self.tenant, self.supplier, self.location,
                                                   lines=[(self.product, '10', '5.00')])
        other = TestDataFactory.create_product(self.tenant)
        data = {'lines': [{'product': other.id, 'qty_ordered': '3', 'unit_cost': '2.00'}]}
        response = self.client.patch(f'/api/v1/purchase-orders/{po.id}/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(list(po.lines.values_list('product_id', flat=True)), [other.id])

    def test_update_confirmed_fails(self):
        po = TestDataFactory.create_purchase_order(self.tenant, status='confirmed')
        response = self.client.patch(f'/api/v1/purchase-orders/{po.id}/', {'notes': 'late'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_delete_draft(self):
        po = TestDataFactory.create_purchase_order(self.tenant, lines=[(self.product, '1', '1.00')])
        response = self.client.delete(f'/api/v1/purchase-orders/{po.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(PurchaseOrder.objects.filter(pk=po.id).exists())
        self.assertFalse(PurchaseOrderLine.objects.filter(purchase_order_id=po.id).exists())

    def test_readonly_user_cannot_create(self):
        reader = TestDataFactory.create_user(self.tenant, role='readonly')
        self.client.authenticate_user(reader)
        response = self.client.post('/api/v1/purchase-orders/', self._payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_unauthenticated_request_rejected(self):
        self.client.logout()
        response = self.client.get('/api/v1/purchase-orders/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)


class PurchaseOrderWorkflowTests(TestCase):
    """Test confirm, receive and cancel"""

    def setUp(self):
        self.tenant = TestDataFactory.create_tenant()
        self.user = TestDataFactory.create_user(self.tenant)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.location = TestDataFactory.create_location(self.tenant)
        self.product = TestDataFactory.create_product(self.tenant, current_cost=Decimal('10.00'))
        self.other_product = TestDataFactory.create_product(self.tenant)
        self.po = TestDataFactory.create_purchase_order(
            self.tenant, location=self.location,
            lines=[(self.product, '10', '20.00'), (self.other_product, '4', '3.00')],
        )
        self.line = self.po.lines.get(product=self.product)
        self.other_line = self.po.lines.get(product=self.other_product)

    def _confirm(self):
        return self.client.post(f'/api/v1/purchase-orders/{self.po.id}/confirm/')

    def _receive(self, *entries):
        lines = [{'line_id': line.id, 'qty_to_receive': qty} for line, qty in entries]
        return self.client.post(f'/api/v1/purchase-orders/{self.po.id}/receive/', {'lines': lines}, format='json')

    def test_confirm(self):
        response = self._confirm()
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'confirmed')
        self.assertTrue(AuditLog.objects.filter(action='confirm', resource_id=str(self.po.id)).exists())

    def test_confirm_twice_fails(self):
        self._confirm()
        response = self._confirm()
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_receive_draft_fails(self):
        response = self._receive((self.line, '5'))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'PO must be confirmed before receiving')
        self.assertFalse(InventoryBalance.objects.exists())

    def test_partial_receive(self):
        self._confirm()
        response = self._receive((self.line, '4'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'partial')

        balance = InventoryBalance.objects.get(product=self.product, location=self.location)
        self.assertEqual(balance.qty_on_hand, Decimal('4'))
        self.assertEqual(balance.avg_cost, Decimal('20.00'))

        movement = StockMovement.objects.get(product=self.product)
        self.assertEqual(movement.movement_type, 'receive')
        self.assertEqual(movement.reference_type, 'po')
        self.assertEqual(movement.reference_id, self.po.id)
        self.assertEqual(movement.qty, Decimal('4'))

        self.line.refresh_from_db()
        self.assertEqual(self.line.qty_received, Decimal('4'))
        self.product.refresh_from_db()
        self.assertEqual(self.product.current_cost, Decimal('20.00'))

    def test_receive_refreshes_cached_product_list(self):
        cache.clear()
        self._confirm()
        response = self.client.get('/api/v1/products/')
        row = next(r for r in response.data['results'] if r['id'] == self.product.id)
        self.assertEqual(Decimal(row['current_cost']), Decimal('10.00'))

        with self.captureOnCommitCallbacks(execute=True):
            self._receive((self.line, '2'))

        response = self.client.get('/api/v1/products/')
        row = next(r for r in response.data['results'] if r['id'] == self.product.id)
        self.assertEqual(Decimal(row['current_cost']), Decimal('20.00'))

    def test_full_receive_completes(self):
        self._confirm()
        self._receive((self.line, '4'))
        response = self._receive((self.line, '6'), (self.other_line, '4'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'completed')
        self.assertEqual(InventoryBalance.objects.get(product=self.product).qty_on_hand, Decimal('10'))
        self.assertEqual(AuditLog.objects.filter(action='receive', resource_id=str(self.po.id)).count(), 2)

    def test_zero_quantities_are_skipped(self):
        self._confirm()
        response = self._receive((self.line, '0'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'confirmed')
        self.assertFalse(StockMovement.objects.exists())

    def test_receive_uses_weighted_average_cost(self):
        TestDataFactory.add_stock(self.tenant, self.product, self.location, '10', '10.00')
        self._confirm()
        self._receive((self.line, '10'))
        balance = InventoryBalance.objects.get(product=self.product, location=self.location)
        self.assertEqual(balance.qty_on_hand, Decimal('20'))
        self.assertEqual(balance.avg_cost, Decimal('15.00'))

    def test_over_receive_rolls_back_whole_receipt(self):
        """A bad line leaves every other line of the same receipt unapplied"""
        self._confirm()
        response = self._receive((self.line, '5'), (self.other_line, '5'))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('Cannot receive more than ordered', response.data['error'])

        self.assertFalse(InventoryBalance.objects.exists())
        self.assertFalse(StockMovement.objects.exists())
        self.line.refresh_from_db()
        self.assertEqual(self.line.qty_received, Decimal('0'))
        self.po.refresh_from_db()
        self.assertEqual(self.po.status, 'confirmed')

    def test_receive_unknown_line_fails(self):
        self._confirm()
        foreign = TestDataFactory.create_purchase_order(self.tenant, lines=[(self.product, '1', '1.00')])
        response = self._receive((foreign.lines.get(), '1'))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_receive_with_lot_and_expiry(self):
        self._confirm()
        expiry = (timezone.localdate() + timedelta(days=90)).isoformat()
        data = {'lines': [{'line_id': self.line.id, 'qty_to_receive': '2', 'lot_number': ' LOT-1 ',
                           'expiry_date': expiry}]}
        response = self.client.post(f'/api/v1/purchase-orders/{self.po.id}/receive/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        balance = InventoryBalance.objects.get(product=self.product)
        self.assertEqual(balance.lot_number, 'LOT-1')
        self.assertEqual(balance.expiry_date.isoformat(), expiry)

    def test_receive_completed_fails(self):
        self._confirm()
        self._receive((self.line, '10'), (self.other_line, '4'))
        response = self._receive((self.line, '1'))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'PO is already completed')

    def test_cancel_confirmed(self):
        self._confirm()
        response = self.client.post(f'/api/v1/purchase-orders/{self.po.id}/cancel/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'cancelled')

        response = self._receive((self.line, '1'))
        self.assertEqual(response.data['error'], 'Cannot receive cancelled PO')

    def test_cancel_partial_fails(self):
        self._confirm()
        self._receive((self.line, '1'))
        response = self.client.post(f'/api/v1/purchase-orders/{self.po.id}/cancel/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_supplier_delete_blocked_by_purchase_order(self):
        response = self.client.delete(f'/api/v1/suppliers/{self.po.supplier_id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
