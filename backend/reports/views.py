import logging
from datetime import timedelta
from decimal import Decimal
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from django.db.models import Sum, F, Q, DecimalField
from django.db.models.functions import Coalesce
from django.utils import timezone
from django.utils.dateparse import parse_date

from backend.catalog.models import Product
from backend.core.cache_utils import get_tenant_cached, REPORTS_CACHE_TTL
from backend.core.permissions import IsTenantMember
from backend.core.utils import apply_filters
from backend.inventory.filters import StockMovementFilter
from backend.inventory.models import InventoryBalance, StockMovement
from .exports import csv_response, wants_csv
from .filters import BalanceReportFilter, LowStockFilter

logger = logging.getLogger('backend.reports')

DEFAULT_EXPIRY_DAYS = 30
MOVEMENT_REPORT_LIMIT = 5000

LOW_STOCK_COLUMNS = [
    ('sku', 'SKU'), ('name', 'Product'), ('category_name', 'Category'), ('base_uom', 'UOM'),
    ('total_on_hand', 'On Hand'), ('reorder_point', 'Reorder Point'), ('reorder_qty', 'Reorder Qty'),
    ('shortage', 'Shortage'),
]
EXPIRING_COLUMNS = [
    ('sku', 'SKU'), ('name', 'Product'), ('location_name', 'Location'), ('lot_number', 'Lot'),
    ('expiry_date', 'Expiry Date'), ('days_until_expiry', 'Days Until Expiry'), ('qty_on_hand', 'Qty On Hand'),
]
VALUATION_COLUMNS = [
    ('sku', 'SKU'), ('name', 'Product'), ('category_name', 'Category'), ('location_name', 'Location'),
    ('lot_number', 'Lot'), ('expiry_date', 'Expiry Date'), ('qty_on_hand', 'Qty On Hand'),
    ('avg_cost', 'Avg Cost'), ('inventory_value', 'Value'),
]
MOVEMENT_COLUMNS = [
    ('created_at', 'Date'), ('sku', 'SKU'), ('name', 'Product'), ('location_name', 'Location'),
    ('movement_type', 'Type'), ('qty', 'Qty'), ('unit_cost', 'Unit Cost'), ('extended_cost', 'Extended Cost'),
    ('reference_type', 'Reference'), ('lot_number', 'Lot'), ('reason', 'Reason'), ('created_by_name', 'User'),
]


def _report_response(request, data, columns, filename):
    if wants_csv(request):
        return csv_response(filename, columns, data['results'])
    return Response(data)


@api_view(['GET'])
@permission_classes([IsTenantMember])
def low_stock_report(request):
    """Active products whose total stock across locations is at or below the reorder point"""
    tenant = request.user.tenant
    logger.info(f"User {request.user.email} requested low stock report")

    def build():
        products = Product.objects.filter(tenant=tenant, active=True, reorder_point__gt=0).select_related(
            'category'
        ).annotate(
            total_on_hand=Coalesce(Sum('balances__qty_on_hand'), Decimal('0'),
                                   output_field=DecimalField(max_digits=14, decimal_places=3))
        ).filter(total_on_hand__lte=F('reorder_point')).order_by('sku')

        products = apply_filters(LowStockFilter, request, products)

        results = [{
            'product_id': p.id,
            'sku': p.sku,
            'name': p.name,
            'category_name': p.category.name if p.category else None,
            'base_uom': p.base_uom,
            'total_on_hand': p.total_on_hand,
            'reorder_point': p.reorder_point,
            'reorder_qty': p.reorder_qty,
            'shortage': p.reorder_point - p.total_on_hand,
        } for p in products]
        return {'results': results, 'count': len(results)}

    data = get_tenant_cached(tenant.id, 'reports', build, ttl=REPORTS_CACHE_TTL,
                             report='low_stock', category=request.query_params.get('category'))
    return _report_response(request, data, LOW_STOCK_COLUMNS, 'low-stock.csv')


@api_view(['GET'])
@permission_classes([IsTenantMember])
def expiring_report(request):
    """Stock on hand expiring within ?days= (default 30), soonest first; already expired stock included"""
    tenant = request.user.tenant
    try:
        days = int(request.query_params.get('days', DEFAULT_EXPIRY_DAYS))
    except (TypeError, ValueError):
        return Response({'error': 'days must be a number'}, status=status.HTTP_400_BAD_REQUEST)
    location_id = request.query_params.get('location')

    def build():
        today = timezone.localdate()
        balances = InventoryBalance.objects.filter(
            tenant=tenant, qty_on_hand__gt=0, expiry_date__isnull=False,
            expiry_date__lte=today + timedelta(days=days),
        ).select_related('product', 'location').order_by('expiry_date', 'product__sku')
        balances = apply_filters(BalanceReportFilter, request, balances)

        results = [{
            'balance_id': b.id,
            'product_id': b.product_id,
            'sku': b.product.sku,
            'name': b.product.name,
            'location_id': b.location_id,
            'location_name': b.location.name,
            'lot_number': b.lot_number,
            'expiry_date': b.expiry_date,
            'days_until_expiry': (b.expiry_date - today).days,
            'qty_on_hand': b.qty_on_hand,
        } for b in balances]
        return {'results': results, 'count': len(results), 'days': days}

    data = get_tenant_cached(tenant.id, 'reports', build, ttl=REPORTS_CACHE_TTL,
                             report='expiring', days=days, location=location_id,
                             category=request.query_params.get('category'),
                             today=str(timezone.localdate()))
    return _report_response(request, data, EXPIRING_COLUMNS, 'expiring.csv')


@api_view(['GET'])
@permission_classes([IsTenantMember])
def valuation_report(request):
    """Inventory value per balance, per location and in total"""
    tenant = request.user.tenant
    location_id = request.query_params.get('location')
    category_id = request.query_params.get('category')

    def build():
        balances = InventoryBalance.objects.filter(tenant=tenant, qty_on_hand__gt=0).select_related(
            'product', 'product__category', 'location'
        ).order_by('location__name', 'product__sku')
        balances = apply_filters(BalanceReportFilter, request, balances)

        results = []
        by_location = {}
        total_value = Decimal('0')
        total_qty = Decimal('0')
        for b in balances:
            value = b.inventory_value
            results.append({
                'balance_id': b.id,
                'product_id': b.product_id,
                'sku': b.product.sku,
                'name': b.product.name,
                'category_name': b.product.category.name if b.product.category else None,
                'location_id': b.location_id,
                'location_name': b.location.name,
                'lot_number': b.lot_number,
                'expiry_date': b.expiry_date,
                'qty_on_hand': b.qty_on_hand,
                'avg_cost': b.avg_cost,
                'inventory_value': value,
            })
            location_total = by_location.setdefault(b.location_id, {
                'location_id': b.location_id,
                'location_name': b.location.name,
                'total_qty': Decimal('0'),
                'total_value': Decimal('0'),
            })
            location_total['total_qty'] += b.qty_on_hand
            location_total['total_value'] += value
            total_qty += b.qty_on_hand
            total_value += value

        return {
            'results': results,
            'count': len(results),
            'by_location': list(by_location.values()),
            'total_qty': total_qty,
            'total_value': total_value,
        }

    data = get_tenant_cached(tenant.id, 'reports', build, ttl=REPORTS_CACHE_TTL,
                             report='valuation', location=location_id, category=category_id)
    return _report_response(request, data, VALUATION_COLUMNS, 'valuation.csv')


@api_view(['GET'])
@permission_classes([IsTenantMember])
def movement_report(request):
    """Movements in a date range (default last 30 days) with type, location and product filters"""
    tenant = request.user.tenant
    params = request.query_params.copy()
    today = timezone.localdate()
    if not params.get('start_date'):
        params['start_date'] = str(today - timedelta(days=30))
    if not params.get('end_date'):
        params['end_date'] = str(today)
    try:
        start_date, end_date = parse_date(params['start_date']), parse_date(params['end_date'])
    except ValueError:
        start_date = end_date = None
    if start_date is None or end_date is None:
        return Response({'error': 'Dates must be in YYYY-MM-DD format'}, status=status.HTTP_400_BAD_REQUEST)
    if start_date > end_date:
        return Response({'error': 'start_date must be before end_date'}, status=status.HTTP_400_BAD_REQUEST)

    movements = StockMovement.objects.filter(tenant=tenant).select_related('product', 'location', 'created_by')
    movements = apply_filters(StockMovementFilter, request, movements, data=params).order_by('-created_at', '-id')

    results = []
    total_in = Decimal('0')
    total_out = Decimal('0')
    for m in movements[:MOVEMENT_REPORT_LIMIT]:
        if m.qty > 0:
            total_in += m.qty
        else:
            total_out += -m.qty
        results.append({
            'id': m.id,
            'created_at': m.created_at,
            'product_id': m.product_id,
            'sku': m.product.sku,
            'name': m.product.name,
            'location_id': m.location_id,
            'location_name': m.location.name,
            'movement_type': m.movement_type,
            'qty': m.qty,
            'unit_cost': m.unit_cost,
            'extended_cost': m.extended_cost,
            'reference_type': m.reference_type,
            'reference_id': m.reference_id,
            'lot_number': m.lot_number,
            'expiry_date': m.expiry_date,
            'reason': m.reason,
            'created_by_name': m.created_by.name if m.created_by else None,
        })

    data = {
        'results': results,
        'count': len(results),
        'start_date': start_date,
        'end_date': end_date,
        'total_in': total_in,
        'total_out': total_out,
    }
    return _report_response(request, data, MOVEMENT_COLUMNS, f'movements-{start_date}-{end_date}.csv')


@api_view(['GET'])
@permission_classes([IsTenantMember])
def dashboard_summary(request):
    """Headline numbers for the dashboard"""
    tenant = request.user.tenant

    def build():
        balances = InventoryBalance.objects.filter(tenant=tenant, qty_on_hand__gt=0)
        total_value = sum((b.inventory_value for b in balances.only('qty_on_hand', 'avg_cost')), Decimal('0'))
        low_stock = Product.objects.filter(tenant=tenant, active=True, reorder_point__gt=0).annotate(
            total_on_hand=Coalesce(Sum('balances__qty_on_hand'), Decimal('0'),
                                   output_field=DecimalField(max_digits=14, decimal_places=3))
        ).filter(total_on_hand__lte=F('reorder_point')).count()
        today = timezone.localdate()
        expiring = balances.filter(expiry_date__isnull=False,
                                   expiry_date__lte=today + timedelta(days=DEFAULT_EXPIRY_DAYS)).count()
        return {
            'active_products': Product.objects.filter(tenant=tenant, active=True).count(),
            'stock_lines': balances.count(),
            'total_value': total_value,
            'low_stock_count': low_stock,
            'expiring_count': expiring,
            'movements_today': StockMovement.objects.filter(tenant=tenant, created_at__date=today).count(),
            'open_documents': {
                'purchase_orders': tenant.purchase_orders.filter(Q(status='confirmed') | Q(status='partial')).count(),
                'shipments': tenant.shipments.filter(status='confirmed').count(),
            },
        }

    return Response(get_tenant_cached(tenant.id, 'reports', build, ttl=REPORTS_CACHE_TTL, report='dashboard',
                                      today=str(timezone.localdate())))
