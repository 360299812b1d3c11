"""
Test suite for Inventory module
Tests: stock engine (add/remove/set), stock queries, adjustments, transfers, cycle counts
"""
from io import StringIO
from django.core.cache import cache
from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import TestCase
from rest_framework import status
from decimal import Decimal
from django.utils import timezone
from backend.core.cache_utils import get_generation
from backend.core.exceptions import InventoryError, InsufficientStockError
from backend.core.models import AuditLog
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.inventory.models import InventoryBalance, StockMovement, Adjustment, Transfer, CycleCount
from backend.inventory import services


class StockEngineTests(TestCase):
    """Test add_stock, remove_stock and set_stock"""

    def setUp(self):
        self.tenant = TestDataFactory.create_tenant()
        self.location = TestDataFactory.create_location(self.tenant)
        self.product = TestDataFactory.create_product(self.tenant, current_cost=Decimal('4.00'))

    def test_add_stock_creates_balance_and_movement(self):
        balance = services.add_stock(self.tenant, self.product, self.location, Decimal('10'), Decimal('2.50'),
                                     'receive', reference_type='po', reference_id=7)
        self.assertEqual(balance.qty_on_hand, Decimal('10'))
        self.assertEqual(balance.avg_cost, Decimal('2.50'))
        movement = StockMovement.objects.get()
        self.assertEqual(movement.qty, Decimal('10'))
        self.assertEqual(movement.unit_cost, Decimal('2.50'))
        self.assertEqual(movement.reference_id, 7)

    def test_add_stock_weighted_average(self):
        services.add_stock(self.tenant, self.product, self.location, Decimal('10'), Decimal('10'), 'receive')
        balance = services.add_stock(self.tenant, self.product, self.location, Decimal('30'), Decimal('20'),
                                     'receive')
        self.assertEqual(balance.qty_on_hand, Decimal('40'))
        self.assertEqual(balance.avg_cost, Decimal('17.5'))
        self.assertEqual(InventoryBalance.objects.count(), 1)

    def test_add_stock_after_depletion_takes_new_cost(self):
        services.add_stock(self.tenant, self.product, self.location, Decimal('5'), Decimal('10'), 'receive')
        services.remove_stock(self.tenant, self.product, self.location, Decimal('5'), 'ship')
        balance = services.add_stock(self.tenant, self.product, self.location, Decimal('5'), Decimal('30'),
                                     'receive')
        self.assertEqual(balance.avg_cost, Decimal('30'))

    def test_add_stock_rejects_non_positive_qty(self):
        with self.assertRaises(InventoryError):
            services.add_stock(self.tenant, self.product, self.location, Decimal('0'), Decimal('1'), 'receive')

    def test_lots_are_separate_balances(self):
        services.add_stock(self.tenant, self.product, self.location, Decimal('5'), Decimal('1'), 'receive',
                           lot_number='A')
        services.add_stock(self.tenant, self.product, self.location, Decimal('7'), Decimal('1'), 'receive',
                           lot_number='B')
        services.add_stock(self.tenant, self.product, self.location, Decimal('1'), Decimal('1'), 'receive',
                           lot_number='  ')
        self.assertEqual(InventoryBalance.objects.count(), 3)
        self.assertEqual(services.available_qty(self.tenant, self.product, self.location, 'A'), Decimal('5'))
        self.assertEqual(services.available_qty(self.tenant, self.product, self.location), Decimal('1'))

    def test_remove_stock_returns_average_cost(self):
        services.add_stock(self.tenant, self.product, self.location, Decimal('10'), Decimal('3'), 'receive')
        cost = services.remove_stock(self.tenant, self.product, self.location, Decimal('4'), 'ship')
        self.assertEqual(cost, Decimal('3'))
        balance = services.get_balance(self.tenant, self.product, self.location)
        self.assertEqual(balance.qty_on_hand, Decimal('6'))
        self.assertEqual(balance.avg_cost, Decimal('3'))
        self.assertEqual(StockMovement.objects.filter(movement_type='ship').get().qty, Decimal('-4'))

    def test_remove_stock_insufficient(self):
        services.add_stock(self.tenant, self.product, self.location, Decimal('2'), Decimal('3'), 'receive')
        with self.assertRaises(InsufficientStockError):
            services.remove_stock(self.tenant, self.product, self.location, Decimal('3'), 'ship')
        self.assertEqual(services.available_qty(self.tenant, self.product, self.location), Decimal('2'))

    def test_remove_stock_without_balance(self):
        with self.assertRaises(InsufficientStockError):
            services.remove_stock(self.tenant, self.product, self.location, Decimal('1'), 'ship')

    def test_depleted_balance_is_kept(self):
        services.add_stock(self.tenant, self.product, self.location, Decimal('2'), Decimal('3'), 'receive')
        services.remove_stock(self.tenant, self.product, self.location, Decimal('2'), 'ship')
        balance = InventoryBalance.objects.get()
        self.assertEqual(balance.qty_on_hand, Decimal('0'))

    def test_set_stock_records_variance(self):
        services.add_stock(self.tenant, self.product, self.location, Decimal('10'), Decimal('3'), 'receive')
        variance = services.set_stock(self.tenant, self.product, self.location, Decimal('7'))
        self.assertEqual(variance, Decimal('-3'))
        movement = StockMovement.objects.get(movement_type='count_variance')
        self.assertEqual(movement.qty, Decimal('-3'))
        self.assertEqual(movement.reason, 'count_variance')

    def test_set_stock_no_change_records_nothing(self):
        services.add_stock(self.tenant, self.product, self.location, Decimal('10'), Decimal('3'), 'receive')
        self.assertEqual(services.set_stock(self.tenant, self.product, self.location, Decimal('10')), 0)
        self.assertFalse(StockMovement.objects.filter(movement_type='count_variance').exists())

    def test_set_stock_creates_balance_at_current_cost(self):
        services.set_stock(self.tenant, self.product, self.location, Decimal('5'))
        balance = InventoryBalance.objects.get()
        self.assertEqual(balance.qty_on_hand, Decimal('5'))
        self.assertEqual(balance.avg_cost, Decimal('4.00'))

    def test_set_stock_rejects_negative(self):
        with self.assertRaises(InventoryError):
            services.set_stock(self.tenant, self.product, self.location, Decimal('-1'))

    def test_balance_sum_matches_movements(self):
        services.add_stock(self.tenant, self.product, self.location, Decimal('10'), Decimal('3'), 'receive')
        services.remove_stock(self.tenant, self.product, self.location, Decimal('4'), 'ship')
        services.set_stock(self.tenant, self.product, self.location, Decimal('9'))
        total = sum(StockMovement.objects.values_list('qty', flat=True), Decimal('0'))
        self.assertEqual(total, services.available_qty(self.tenant, self.product, self.location))


class StockQueryAPITests(TestCase):

    def setUp(self):
        cache.clear()
        self.tenant = TestDataFactory.create_tenant()
        self.user = TestDataFactory.create_user(self.tenant)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.location = TestDataFactory.create_location(self.tenant)
        self.product = TestDataFactory.create_product(self.tenant)

    def test_stock_list(self):
        TestDataFactory.add_stock(self.tenant, self.product, self.location, '5', '2.00')
        other_tenant = TestDataFactory.create_tenant()
        TestDataFactory.add_stock(other_tenant, TestDataFactory.create_product(other_tenant),
                                  TestDataFactory.create_location(other_tenant), '9')
        response = self.client.get('/api/v1/stock/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)
        row = response.data['results'][0]
        self.assertEqual(Decimal(row['qty_on_hand']), Decimal('5'))
        self.assertEqual(Decimal(row['inventory_value']), Decimal('10.00'))

    def test_stock_list_reflects_new_movements(self):
        TestDataFactory.add_stock(self.tenant, self.product, self.location, '5')
        self.client.get('/api/v1/stock/')
        with self.captureOnCommitCallbacks(execute=True):
            TestDataFactory.add_stock(self.tenant, TestDataFactory.create_product(self.tenant), self.location, '1')
        response = self.client.get('/api/v1/stock/')
        self.assertEqual(response.data['count'], 2)

    def test_stock_cache_invalidated_only_on_commit(self):
        before = get_generation(self.tenant.id, 'stock')
        with self.captureOnCommitCallbacks() as callbacks:
            TestDataFactory.add_stock(self.tenant, self.product, self.location, '5')
            self.assertEqual(get_generation(self.tenant.id, 'stock'), before)
        self.assertEqual(get_generation(self.tenant.id, 'stock'), before)
        for callback in callbacks:
            callback()
        self.assertGreater(get_generation(self.tenant.id, 'stock'), before)

    def test_depleted_stock(self):
        TestDataFactory.add_stock(self.tenant, self.product, self.location, '2')
        services.remove_stock(self.tenant, self.product, self.location, Decimal('2'), 'ship')
        response = self.client.get('/api/v1/stock/depleted/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)
        self.assertIsNotNone(response.data['results'][0]['last_movement_at'])

    def test_stock_at_location(self):
        TestDataFactory.add_stock(self.tenant, self.product, self.location, '2')
        TestDataFactory.add_stock(self.tenant, self.product, TestDataFactory.create_location(self.tenant), '3')
        response = self.client.get(f'/api/v1/stock/locations/{self.location.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)

    def test_stock_at_other_tenant_location_not_found(self):
        location = TestDataFactory.create_location(TestDataFactory.create_tenant())
        response = self.client.get(f'/api/v1/stock/locations/{location.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_movement_history_includes_document(self):
        po = TestDataFactory.create_purchase_order(self.tenant, location=self.location,
                                                   lines=[(self.product, '5', '1.00')])
        services.add_stock(self.tenant, self.product, self.location, Decimal('5'), Decimal('1'), 'receive',
                           reference_type='po', reference_id=po.id)
        response = self.client.get(f'/api/v1/stock/movements/?product={self.product.id}')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['document_number'], po.po_number)
        self.assertEqual(response.data[0]['partner_name'], po.supplier.name)


class AdjustmentAPITests(TestCase):

    def setUp(self):
        self.tenant = TestDataFactory.create_tenant()
        self.user = TestDataFactory.create_user(self.tenant, role='staff')
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.location = TestDataFactory.create_location(self.tenant)
        self.product = TestDataFactory.create_product(self.tenant)
        TestDataFactory.add_stock(self.tenant, self.product, self.location, '10', '4.00')

    def _create(self, *lines, reason='damage'):
        data = {
            'location': self.location.id,
            'reason': reason,
            'lines': [{'product': product.id, 'qty': qty} for product, qty in lines],
        }
        return self.client.post('/api/v1/adjustments/', data, format='json')

    def test_create_adjustment(self):
        response = self._create((self.product, '-2'))
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['adjustment_number'], 'ADJ-000001')
        self.assertEqual(response.data['status'], 'draft')

    def test_zero_quantity_rejected(self):
        response = self._create((self.product, '0'))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_post_negative_adjustment(self):
        adjustment_id = self._create((self.product, '-3')).data['id']
        response = self.client.post(f'/api/v1/adjustments/{adjustment_id}/post/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'completed')
        self.assertIsNotNone(response.data['posted_at'])
        self.assertEqual(Decimal(response.data['lines'][0]['unit_cost']), Decimal('4.00'))
        self.assertEqual(services.available_qty(self.tenant, self.product, self.location), Decimal('7'))

        movement = StockMovement.objects.get(reference_type='adjustment')
        self.assertEqual(movement.qty, Decimal('-3'))
        self.assertEqual(movement.reason, 'damage')
        self.assertTrue(AuditLog.objects.filter(action='adjust', resource_id=str(adjustment_id)).exists())

    def test_post_positive_adjustment_uses_balance_cost(self):
        adjustment_id = self._create((self.product, '5'), reason='correction').data['id']
        self.client.post(f'/api/v1/adjustments/{adjustment_id}/post/')
        balance = services.get_balance(self.tenant, self.product, self.location)
        self.assertEqual(balance.qty_on_hand, Decimal('15'))
        self.assertEqual(balance.avg_cost, Decimal('4.00'))

    def test_post_insufficient_stock_rolls_back(self):
        other = TestDataFactory.create_product(self.tenant)
        adjustment_id = self._create((self.product, '-1'), (other, '-1')).data['id']
        response = self.client.post(f'/api/v1/adjustments/{adjustment_id}/post/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('Insufficient stock', response.data['error'])
        self.assertEqual(services.available_qty(self.tenant, self.product, self.location), Decimal('10'))
        self.assertEqual(Adjustment.objects.get(pk=adjustment_id).status, 'draft')

    def test_post_twice_fails(self):
        adjustment_id = self._create((self.product, '-1')).data['id']
        self.client.post(f'/api/v1/adjustments/{adjustment_id}/post/')
        response = self.client.post(f'/api/v1/adjustments/{adjustment_id}/post/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(services.available_qty(self.tenant, self.product, self.location), Decimal('9'))

    def test_approval_required_when_tenant_requires_it(self):
        self.tenant.settings = {**self.tenant.settings, 'require_adjustment_approval': True}
        self.tenant.save()
        adjustment_id = self._create((self.product, '-1')).data['id']

        response = self.client.post(f'/api/v1/adjustments/{adjustment_id}/post/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Adjustment must be approved before posting')

        response = self.client.post(f'/api/v1/adjustments/{adjustment_id}/approve/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        manager = TestDataFactory.create_user(self.tenant, role='manager')
        self.client.authenticate_user(manager)
        response = self.client.post(f'/api/v1/adjustments/{adjustment_id}/approve/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['approved_by'], manager.id)

        response = self.client.post(f'/api/v1/adjustments/{adjustment_id}/post/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_edit_completed_fails(self):
        adjustment_id = self._create((self.product, '-1')).data['id']
        self.client.post(f'/api/v1/adjustments/{adjustment_id}/post/')
        response = self.client.patch(f'/api/v1/adjustments/{adjustment_id}/', {'notes': 'x'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_cancel(self):
        adjustment_id = self._create((self.product, '-1')).data['id']
        response = self.client.post(f'/api/v1/adjustments/{adjustment_id}/cancel/')
        self.assertEqual(response.data['status'], 'cancelled')
        response = self.client.post(f'/api/v1/adjustments/{adjustment_id}/post/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_other_tenant_adjustment_not_found(self):
        adjustment_id = self._create((self.product, '-1')).data['id']
        self.client.authenticate_user(TestDataFactory.create_user())
        response = self.client.post(f'/api/v1/adjustments/{adjustment_id}/post/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class TransferAPITests(TestCase):

    def setUp(self):
        self.tenant = TestDataFactory.create_tenant()
        self.user = TestDataFactory.create_user(self.tenant)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.source = TestDataFactory.create_location(self.tenant, name='Warehouse')
        self.destination = TestDataFactory.create_location(self.tenant, name='Store', type='store')
        self.product = TestDataFactory.create_product(self.tenant)
        TestDataFactory.add_stock(self.tenant, self.product, self.source, '10', '6.00')

    def _create(self, qty='4', **overrides):
        data = {
            'from_location': self.source.id,
            'to_location': self.destination.id,
            'lines': [{'product': self.product.id, 'qty': qty}],
        }
        data.update(overrides)
        return self.client.post('/api/v1/transfers/', data, format='json')

    def test_same_location_rejected(self):
        response = self._create(to_location=self.source.id)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('to_location', response.data)

    def test_send_and_receive(self):
        transfer_id = self._create().data['id']

        response = self.client.post(f'/api/v1/transfers/{transfer_id}/send/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'confirmed')
        self.assertEqual(services.available_qty(self.tenant, self.product, self.source), Decimal('6'))
        self.assertEqual(services.available_qty(self.tenant, self.product, self.destination), Decimal('0'))

        response = self.client.post(f'/api/v1/transfers/{transfer_id}/receive/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'completed')
        balance = services.get_balance(self.tenant, self.product, self.destination)
        self.assertEqual(balance.qty_on_hand, Decimal('4'))
        self.assertEqual(balance.avg_cost, Decimal('6.00'))

        types = set(StockMovement.objects.filter(reference_type='transfer').values_list('movement_type', flat=True))
        self.assertEqual(types, {'transfer_out', 'transfer_in'})
        self.assertTrue(AuditLog.objects.filter(action='transfer', resource_id=str(transfer_id)).exists())
        self.assertTrue(AuditLog.objects.filter(action='receive', resource_id=str(transfer_id)).exists())

    def test_send_insufficient_stock(self):
        transfer_id = self._create(qty='11').data['id']
        response = self.client.post(f'/api/v1/transfers/{transfer_id}/send/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(Transfer.objects.get(pk=transfer_id).status, 'draft')
        self.assertEqual(services.available_qty(self.tenant, self.product, self.source), Decimal('10'))

    def test_receive_before_send_fails(self):
        transfer_id = self._create().data['id']
        response = self.client.post(f'/api/v1/transfers/{transfer_id}/receive/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Can only receive sent transfers')

    def test_cancel_sent_fails(self):
        transfer_id = self._create().data['id']
        self.client.post(f'/api/v1/transfers/{transfer_id}/send/')
        response = self.client.post(f'/api/v1/transfers/{transfer_id}/cancel/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_list_filters_by_either_location(self):
        self._create()
        response = self.client.get(f'/api/v1/transfers/?location={self.destination.id}')
        self.assertEqual(response.data['count'], 1)


class CycleCountAPITests(TestCase):

    def setUp(self):
        self.tenant = TestDataFactory.create_tenant()
        self.user = TestDataFactory.create_user(self.tenant)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.location = TestDataFactory.create_location(self.tenant)
        self.product = TestDataFactory.create_product(self.tenant)
        self.other_product = TestDataFactory.create_product(self.tenant)
        TestDataFactory.add_stock(self.tenant, self.product, self.location, '10', '2.00')

    def _create(self):
        data = {
            'location': self.location.id,
            'count_date': timezone.localdate().isoformat(),
            'lines': [{'product': self.product.id}, {'product': self.other_product.id}],
        }
        return self.client.post('/api/v1/cycle-counts/', data, format='json')

    def _enter(self, count, *entries):
        lines = [{'line_id': line['id'], 'counted_qty': qty} for line, qty in zip(count['lines'], entries)]
        return self.client.post(f"/api/v1/cycle-counts/{count['id']}/counts/", {'lines': lines}, format='json')

    def test_create_snapshots_system_qty(self):
        response = self._create()
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['count_number'], 'CNT-000001')
        system_qtys = [Decimal(line['system_qty']) for line in response.data['lines']]
        self.assertEqual(system_qtys, [Decimal('10'), Decimal('0')])

    def test_post_requires_all_lines_counted(self):
        count = self._create().data
        self._enter(count, '8')
        response = self.client.post(f"/api/v1/cycle-counts/{count['id']}/post/")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'All lines must be counted before posting')

    def test_post_sets_stock_to_counted(self):
        count = self._create().data
        response = self._enter(count, '8', '3')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(Decimal(response.data['lines'][0]['variance']), Decimal('-2'))

        response = self.client.post(f"/api/v1/cycle-counts/{count['id']}/post/")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'completed')
        self.assertEqual(services.available_qty(self.tenant, self.product, self.location), Decimal('8'))
        self.assertEqual(services.available_qty(self.tenant, self.other_product, self.location), Decimal('3'))
        self.assertEqual(StockMovement.objects.filter(movement_type='count_variance').count(), 2)

        log = AuditLog.objects.get(action='count', resource_id=str(count['id']))
        self.assertEqual(Decimal(log.new_values['total_variance']), Decimal('5'))

    def test_matching_count_records_no_movement(self):
        count = self._create().data
        self._enter(count, '10', '0')
        self.client.post(f"/api/v1/cycle-counts/{count['id']}/post/")
        self.assertFalse(StockMovement.objects.filter(movement_type='count_variance').exists())

    def test_fractional_count_rejected_for_each_product(self):
        count = self._create().data
        response = self._enter(count, '8.5')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_unknown_line_rejected_without_partial_update(self):
        count = self._create().data
        lines = [{'line_id': count['lines'][0]['id'], 'counted_qty': '5'}, {'line_id': 999999, 'counted_qty': '1'}]
        response = self.client.post(f"/api/v1/cycle-counts/{count['id']}/counts/", {'lines': lines}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIsNone(CycleCount.objects.get(pk=count['id']).lines.first().counted_qty)

    def test_delete_draft(self):
        count = self._create().data
        response = self.client.delete(f"/api/v1/cycle-counts/{count['id']}/")
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)

    def test_cancel_then_post_fails(self):
        count = self._create().data
        self._enter(count, '1', '1')
        self.client.post(f"/api/v1/cycle-counts/{count['id']}/cancel/")
        response = self.client.post(f"/api/v1/cycle-counts/{count['id']}/post/")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(services.available_qty(self.tenant, self.product, self.location), Decimal('10'))


class CheckStockBalancesCommandTests(TestCase):

    def setUp(self):
        self.tenant = TestDataFactory.create_tenant()
        self.location = TestDataFactory.create_location(self.tenant)
        self.product = TestDataFactory.create_product(self.tenant)

    def test_engine_keeps_balances_in_sync(self):
        services.add_stock(self.tenant, self.product, self.location, Decimal('10'), Decimal('1'), 'receive',
                           lot_number='L1')
        services.remove_stock(self.tenant, self.product, self.location, Decimal('3'), 'ship', lot_number='L1')
        out = StringIO()
        call_command('check_stock_balances', '--fail-on-mismatch', stdout=out)
        self.assertIn('All balances match', out.getvalue())

    def test_reports_direct_balance_edits(self):
        services.add_stock(self.tenant, self.product, self.location, Decimal('10'), Decimal('1'), 'receive')
        InventoryBalance.objects.update(qty_on_hand=Decimal('12'))
        out = StringIO()
        call_command('check_stock_balances', stdout=out)
        self.assertIn('1 discrepancies found', out.getvalue())
        self.assertIn(f'product={self.product.id}', out.getvalue())
        with self.assertRaises(CommandError):
            call_command('check_stock_balances', '--fail-on-mismatch', stdout=StringIO())
