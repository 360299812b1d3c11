"""
Test suite for Reports module
Tests: low stock, expiring stock, valuation, movement history, dashboard and CSV export
"""
from datetime import timedelta
from decimal import Decimal
from django.core.cache import cache
from django.test import TestCase
from django.utils import timezone
from rest_framework import status
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.inventory.services import remove_stock


class ReportsTests(TestCase):
    """Test report endpoints"""

    def setUp(self):
        cache.clear()
        self.tenant = TestDataFactory.create_tenant()
        self.user = TestDataFactory.create_user(self.tenant)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.warehouse = TestDataFactory.create_location(self.tenant, name='Main Warehouse')
        self.store = TestDataFactory.create_location(self.tenant, name='Store', type='store')

    def test_low_stock(self):
        short = TestDataFactory.create_product(self.tenant, sku='A-1', reorder_point=Decimal('5'))
        TestDataFactory.add_stock(self.tenant, short, self.warehouse, '2')
        TestDataFactory.add_stock(self.tenant, short, self.store, '1')
        empty = TestDataFactory.create_product(self.tenant, sku='B-1', reorder_point=Decimal('3'))
        plenty = TestDataFactory.create_product(self.tenant, sku='C-1', reorder_point=Decimal('5'))
        TestDataFactory.add_stock(self.tenant, plenty, self.warehouse, '20')
        TestDataFactory.create_product(self.tenant, sku='D-1')

        response = self.client.get('/api/v1/reports/low-stock/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([r['sku'] for r in response.data['results']], ['A-1', 'B-1'])
        first = response.data['results'][0]
        self.assertEqual(Decimal(str(first['total_on_hand'])), Decimal('3'))
        self.assertEqual(Decimal(str(first['shortage'])), Decimal('2'))
        self.assertEqual(Decimal(str(response.data['results'][1]['total_on_hand'])), Decimal('0'))
        self.assertEqual(empty.id, response.data['results'][1]['product_id'])

    def test_low_stock_category_filter(self):
        category = TestDataFactory.create_category(self.tenant)
        TestDataFactory.create_product(self.tenant, category=category, reorder_point=Decimal('1'))
        TestDataFactory.create_product(self.tenant, reorder_point=Decimal('1'))
        response = self.client.get(f'/api/v1/reports/low-stock/?category={category.id}')
        self.assertEqual(response.data['count'], 1)

    def test_expiring(self):
        product = TestDataFactory.create_product(self.tenant)
        today = timezone.localdate()
        TestDataFactory.add_stock(self.tenant, product, self.warehouse, '5', lot_number='L1',
                                  expiry_date=today + timedelta(days=10))
        TestDataFactory.add_stock(self.tenant, product, self.warehouse, '5', lot_number='L0',
                                  expiry_date=today - timedelta(days=2))
        TestDataFactory.add_stock(self.tenant, product, self.warehouse, '5', lot_number='L2',
                                  expiry_date=today + timedelta(days=60))
        TestDataFactory.add_stock(self.tenant, product, self.warehouse, '5')

        response = self.client.get('/api/v1/reports/expiring/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([r['lot_number'] for r in response.data['results']], ['L0', 'L1'])
        self.assertEqual(response.data['results'][0]['days_until_expiry'], -2)

        response = self.client.get('/api/v1/reports/expiring/?days=90')
        self.assertEqual(response.data['count'], 3)

    def test_expiring_invalid_days(self):
        response = self.client.get('/api/v1/reports/expiring/?days=soon')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'days must be a number')

    def test_malformed_report_filters_rejected(self):
        for url in ('/api/v1/reports/valuation/?location=abc', '/api/v1/reports/low-stock/?category=x',
                    '/api/v1/reports/expiring/?location=abc'):
            response = self.client.get(url)
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST, url)

    def test_valuation(self):
        product = TestDataFactory.create_product(self.tenant)
        TestDataFactory.add_stock(self.tenant, product, self.warehouse, '10', '2.50')
        TestDataFactory.add_stock(self.tenant, product, self.store, '4', '3.00')

        response = self.client.get('/api/v1/reports/valuation/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 2)
        self.assertEqual(Decimal(str(response.data['total_qty'])), Decimal('14'))
        self.assertEqual(Decimal(str(response.data['total_value'])), Decimal('37'))
        by_location = {row['location_name']: row for row in response.data['by_location']}
        self.assertEqual(Decimal(str(by_location['Store']['total_value'])), Decimal('12'))

        response = self.client.get(f'/api/v1/reports/valuation/?location={self.store.id}')
        self.assertEqual(response.data['count'], 1)

    def test_valuation_excludes_other_tenants(self):
        other_tenant = TestDataFactory.create_tenant()
        other_product = TestDataFactory.create_product(other_tenant)
        TestDataFactory.add_stock(other_tenant, other_product, TestDataFactory.create_location(other_tenant), '5')
        response = self.client.get('/api/v1/reports/valuation/')
        self.assertEqual(response.data['count'], 0)

    def test_movements(self):
        product = TestDataFactory.create_product(self.tenant)
        TestDataFactory.add_stock(self.tenant, product, self.warehouse, '10', '1.00')
        remove_stock(self.tenant, product, self.warehouse, Decimal('4'), 'ship')

        response = self.client.get('/api/v1/reports/movements/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 2)
        self.assertEqual(Decimal(str(response.data['total_in'])), Decimal('10'))
        self.assertEqual(Decimal(str(response.data['total_out'])), Decimal('4'))

        response = self.client.get('/api/v1/reports/movements/?movement_type=ship')
        self.assertEqual(response.data['count'], 1)

    def test_movements_date_validation(self):
        response = self.client.get('/api/v1/reports/movements/?start_date=yesterday')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        response = self.client.get('/api/v1/reports/movements/?start_date=2026-02-30')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        response = self.client.get('/api/v1/reports/movements/?start_date=2026-03-10&end_date=2026-03-01')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_movements_outside_range_excluded(self):
        product = TestDataFactory.create_product(self.tenant)
        TestDataFactory.add_stock(self.tenant, product, self.warehouse, '1')
        response = self.client.get('/api/v1/reports/movements/?start_date=2020-01-01&end_date=2020-01-31')
        self.assertEqual(response.data['count'], 0)

    def test_csv_export(self):
        product = TestDataFactory.create_product(self.tenant, sku='CSV-1', name='Widget "Pro"')
        TestDataFactory.add_stock(self.tenant, product, self.warehouse, '2', '1.50')

        response = self.client.get('/api/v1/reports/valuation/?format=csv')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response['Content-Type'].startswith('text/csv'))
        self.assertIn('valuation.csv', response['Content-Disposition'])
        content = b''.join(response.streaming_content).decode()
        lines = content.strip().splitlines()
        self.assertTrue(lines[0].startswith('"SKU","Product"'))
        self.assertIn('"Widget ""Pro""",,"Main Warehouse",,,', lines[1])
        self.assertNotIn('""', lines[1].replace('""Pro""', ''))
        self.assertTrue(lines[1].split(',')[-1].startswith('3.0'))

    def test_dashboard(self):
        product = TestDataFactory.create_product(self.tenant, reorder_point=Decimal('50'))
        TestDataFactory.add_stock(self.tenant, product, self.warehouse, '10', '2.00')
        TestDataFactory.create_purchase_order(self.tenant, location=self.warehouse,
                                              lines=[(product, '5', '2.00')], status='confirmed')

        response = self.client.get('/api/v1/reports/dashboard/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['active_products'], 1)
        self.assertEqual(response.data['low_stock_count'], 1)
        self.assertEqual(Decimal(str(response.data['total_value'])), Decimal('20'))
        self.assertEqual(response.data['movements_today'], 1)
        self.assertEqual(response.data['open_documents']['purchase_orders'], 1)

    def test_requires_authentication(self):
        self.client.logout()
        response = self.client.get('/api/v1/reports/dashboard/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
