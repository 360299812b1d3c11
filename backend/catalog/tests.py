"""
Test suite for Catalog module
Tests: categories, products, SKU uniqueness per tenant, delete guards, product list cache
"""
from django.core.cache import cache
from django.test import TestCase
from rest_framework import status
from decimal import Decimal
from backend.core.models import AuditLog
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.catalog.models import Category, Product


class ProductModelTests(TestCase):

    def setUp(self):
        self.tenant = TestDataFactory.create_tenant()

    def test_whole_unit_products_reject_fractions(self):
        product = TestDataFactory.create_product(self.tenant, base_uom='EA')
        self.assertTrue(product.is_valid_qty(Decimal('3')))
        self.assertFalse(product.is_valid_qty(Decimal('2.5')))
        self.assertFalse(product.allow_decimal_qty)

    def test_weighed_products_accept_fractions(self):
        product = TestDataFactory.create_product(self.tenant, base_uom='KG')
        self.assertTrue(product.is_valid_qty(Decimal('2.5')))

    def test_str(self):
        product = TestDataFactory.create_product(self.tenant, name='Widget', sku='W-1')
        self.assertEqual(str(product), 'Widget (W-1)')


class CategoryAPITests(TestCase):

    def setUp(self):
        self.tenant = TestDataFactory.create_tenant()
        self.user = TestDataFactory.create_user(self.tenant)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_create_category(self):
        response = self.client.post('/api/v1/categories/', {'name': 'Beverages'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(Category.objects.get(pk=response.data['id']).tenant, self.tenant)

    def test_duplicate_name_rejected(self):
        TestDataFactory.create_category(self.tenant, name='Beverages')
        response = self.client.post('/api/v1/categories/', {'name': 'beverages'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_same_name_in_other_tenant_allowed(self):
        TestDataFactory.create_category(TestDataFactory.create_tenant(), name='Beverages')
        response = self.client.post('/api/v1/categories/', {'name': 'Beverages'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

    def test_list_counts_products(self):
        category = TestDataFactory.create_category(self.tenant)
        TestDataFactory.create_product(self.tenant, category=category)
        response = self.client.get('/api/v1/categories/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data[0]['product_count'], 1)

    def test_category_cannot_be_own_parent(self):
        category = TestDataFactory.create_category(self.tenant)
        response = self.client.patch(f'/api/v1/categories/{category.id}/', {'parent': category.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_delete_category_with_products_blocked(self):
        category = TestDataFactory.create_category(self.tenant)
        TestDataFactory.create_product(self.tenant, category=category)
        response = self.client.delete(f'/api/v1/categories/{category.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_delete_empty_category(self):
        category = TestDataFactory.create_category(self.tenant)
        response = self.client.delete(f'/api/v1/categories/{category.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)


class ProductAPITests(TestCase):

    def setUp(self):
        cache.clear()
        self.tenant = TestDataFactory.create_tenant()
        self.user = TestDataFactory.create_user(self.tenant)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.location = TestDataFactory.create_location(self.tenant)

    def _payload(self, **overrides):
        data = {'sku': 'SKU-001', 'name': 'Widget', 'base_uom': 'EA', 'current_cost': '2.50',
                'reorder_point': '5'}
        data.update(overrides)
        return data

    def test_create_product(self):
        response = self.client.post('/api/v1/products/', self._payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['sku'], 'SKU-001')
        self.assertFalse(response.data['allow_decimal_qty'])
        self.assertTrue(AuditLog.objects.filter(action='create', resource_type='product',
                                                resource_name='SKU-001').exists())

    def test_duplicate_sku_rejected(self):
        TestDataFactory.create_product(self.tenant, sku='SKU-001')
        response = self.client.post('/api/v1/products/', self._payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('sku', response.data)

    def test_same_sku_in_other_tenant_allowed(self):
        TestDataFactory.create_product(TestDataFactory.create_tenant(), sku='SKU-001')
        response = self.client.post('/api/v1/products/', self._payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

    def test_negative_cost_rejected(self):
        response = self.client.post('/api/v1/products/', self._payload(current_cost='-1'), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_pack_fields_must_be_set_together(self):
        response = self.client.post('/api/v1/products/', self._payload(pack_uom_name='Case'), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        response = self.client.post('/api/v1/products/', self._payload(pack_uom_name='Case',
                                                                       pack_qty_in_base='12'), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

    def test_category_from_other_tenant_rejected(self):
        category = TestDataFactory.create_category(TestDataFactory.create_tenant())
        response = self.client.post('/api/v1/products/', self._payload(category=category.id), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_list_is_tenant_scoped_and_paginated(self):
        TestDataFactory.create_product(self.tenant)
        TestDataFactory.create_product(self.tenant)
        TestDataFactory.create_product(TestDataFactory.create_tenant())
        response = self.client.get('/api/v1/products/?limit=1')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 2)
        self.assertEqual(len(response.data['results']), 1)
        self.assertEqual(response.data['total_pages'], 2)

    def test_list_search(self):
        TestDataFactory.create_product(self.tenant, name='Blue Widget', sku='BW-1')
        TestDataFactory.create_product(self.tenant, name='Red Gadget', sku='RG-1')
        response = self.client.get('/api/v1/products/?search=widget')
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['sku'], 'BW-1')

    def test_created_product_visible_after_cached_list(self):
        self.client.get('/api/v1/products/')
        self.client.post('/api/v1/products/', self._payload(), format='json')
        response = self.client.get('/api/v1/products/')
        self.assertEqual(response.data['count'], 1)

    def test_other_tenant_product_not_found(self):
        product = TestDataFactory.create_product(TestDataFactory.create_tenant())
        response = self.client.get(f'/api/v1/products/{product.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_update_records_changes(self):
        product = TestDataFactory.create_product(self.tenant, name='Old name')
        response = self.client.patch(f'/api/v1/products/{product.id}/', {'name': 'New name'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        log = AuditLog.objects.get(action='update', resource_type='product')
        self.assertEqual(log.changes['name'], {'old': 'Old name', 'new': 'New name'})

    def test_delete_product_with_stock_blocked(self):
        product = TestDataFactory.create_product(self.tenant)
        TestDataFactory.add_stock(self.tenant, product, self.location, '1')
        response = self.client.delete(f'/api/v1/products/{product.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertTrue(Product.objects.filter(pk=product.id).exists())

    def test_delete_unused_product(self):
        product = TestDataFactory.create_product(self.tenant)
        response = self.client.delete(f'/api/v1/products/{product.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)

    def test_toggle_active(self):
        product = TestDataFactory.create_product(self.tenant)
        response = self.client.post(f'/api/v1/products/{product.id}/toggle-active/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['active'])
        product.refresh_from_db()
        self.assertFalse(product.active)
