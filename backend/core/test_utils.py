"""
Test utilities and factories for creating test data
"""
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken
from backend.tenants.models import Tenant
from backend.locations.models import Location
from backend.catalog.models import Category, Product
from backend.parties.models import Customer, Supplier
from backend.purchasing.models import PurchaseOrder, PurchaseOrderLine
from backend.shipping.models import Shipment, ShipmentLine
from backend.inventory.services import add_stock
from decimal import Decimal
from django.utils import timezone
import random
import string

User = get_user_model()


class TestDataFactory:
    """Factory class for creating test data"""

    @staticmethod
    def random_string(length=10):
        """Generate a random string"""
        return ''.join(random.choices(string.ascii_letters + string.digits, k=length))

    @staticmethod
    def create_tenant(name=None, max_users=10, **settings):
        """Create a test tenant; keyword arguments override default settings"""
        tenant = Tenant.objects.create(name=name or f'Tenant_{TestDataFactory.random_string(6)}', max_users=max_users)
        if settings:
            tenant.settings = {**tenant.settings, **settings}
            tenant.save(update_fields=['settings'])
        return tenant

    @staticmethod
    def create_user(tenant=None, email=None, password='testpass123', role='admin', name=None, is_active=True):
        """Create a test user; a tenant is created when none is given"""
        if tenant is None:
            tenant = TestDataFactory.create_tenant()
        if not email:
            email = f'user_{TestDataFactory.random_string(6).lower()}@test.com'
        return User.objects.create_user(
            email=email,
            password=password,
            tenant=tenant,
            role=role,
            name=name or email.split('@')[0],
            is_active=is_active,
        )

    @staticmethod
    def create_platform_admin(email=None, password='testpass123'):
        if not email:
            email = f'platform_{TestDataFactory.random_string(6).lower()}@test.com'
        return User.objects.create_user(email=email, password=password, name='Platform Admin',
                                        role='admin', is_platform_admin=True)

    @staticmethod
    def create_location(tenant, name=None, type='warehouse', parent=None):
        """Create a test location"""
        return Location.objects.create(
            tenant=tenant,
            name=name or f'Location_{TestDataFactory.random_string(6)}',
            type=type,
            parent=parent,
        )

    @staticmethod
    def create_category(tenant, name=None, parent=None):
        """Create a test category"""
        return Category.objects.create(
            tenant=tenant,
            name=name or f'Category_{TestDataFactory.random_string(6)}',
            parent=parent,
        )

    @staticmethod
    def create_product(tenant, name=None, sku=None, category=None, base_uom='EA', current_cost=None,
                       reorder_point=None, reorder_qty=None, **extra):
        """Create a test product"""
        if not name:
            name = f'Product_{TestDataFactory.random_string(6)}'
        if not sku:
            sku = f'SKU_{TestDataFactory.random_string(8)}'
        return Product.objects.create(
            tenant=tenant,
            name=name,
            sku=sku,
            category=category,
            base_uom=base_uom,
            current_cost=current_cost if current_cost is not None else Decimal('10.00'),
            reorder_point=reorder_point if reorder_point is not None else Decimal('0'),
            reorder_qty=reorder_qty if reorder_qty is not None else Decimal('0'),
            **extra
        )

    @staticmethod
    def create_customer(tenant, name=None, code=None, email=None):
        """Create a test customer"""
        if not name:
            name = f'Customer_{TestDataFactory.random_string(6)}'
        return Customer.objects.create(
            tenant=tenant,
            name=name,
            code=code or f'CUST-{TestDataFactory.random_string(6).upper()}',
            email=email or f'{name.lower()}@test.com',
        )

    @staticmethod
    def create_supplier(tenant, name=None, code=None, email=None):
        """Create a test supplier"""
        if not name:
            name = f'Supplier_{TestDataFactory.random_string(6)}'
        return Supplier.objects.create(
            tenant=tenant,
            name=name,
            code=code or f'SUP-{TestDataFactory.random_string(6).upper()}',
            email=email or f'{name.lower()}@test.com',
        )

    @staticmethod
    def add_stock(tenant, product, location, qty, unit_cost='10.00', lot_number=None, expiry_date=None):
        """Put stock on hand through the stock engine, recording an adjustment movement"""
        return add_stock(tenant, product, location, Decimal(str(qty)), Decimal(str(unit_cost)), 'adjustment',
                         lot_number=lot_number, expiry_date=expiry_date)

    @staticmethod
    def create_purchase_order(tenant, supplier=None, location=None, lines=None, status='draft', user=None):
        """
        Create a test purchase order.

        lines is a list of (product, qty_ordered, unit_cost) tuples.
        """
        if supplier is None:
            supplier = TestDataFactory.create_supplier(tenant)
        if location is None:
            location = TestDataFactory.create_location(tenant)
        po = PurchaseOrder.objects.create(
            tenant=tenant,
            po_number=f'PO-{TestDataFactory.random_string(6).upper()}',
            supplier=supplier,
            location=location,
            order_date=timezone.localdate(),
            status=status,
            created_by=user,
        )
        for product, qty, unit_cost in lines or []:
            PurchaseOrderLine.objects.create(purchase_order=po, product=product, qty_ordered=Decimal(str(qty)),
                                             unit_cost=Decimal(str(unit_cost)))
        return po

    @staticmethod
    def create_shipment(tenant, location, lines=None, customer=None, status='draft', user=None):
        """
        Create a test shipment.

        lines is a list of (product, qty) tuples.
        """
        shipment = Shipment.objects.create(
            tenant=tenant,
            shipment_number=f'SHP-{TestDataFactory.random_string(6).upper()}',
            location=location,
            customer=customer,
            customer_name=None if customer else 'Walk-in',
            status=status,
            created_by=user,
        )
        for product, qty in lines or []:
            ShipmentLine.objects.create(shipment=shipment, product=product, qty=Decimal(str(qty)))
        return shipment


class AuthenticatedAPIClient(APIClient):
    """APIClient with authentication helper"""

    def authenticate_user(self, user):
        """Authenticate the client with a user"""
        refresh = RefreshToken.for_user(user)
        self.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
        return self

    def logout(self):
        """Remove authentication"""
        self.credentials()
