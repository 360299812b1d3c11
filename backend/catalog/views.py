import logging
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from django.db import IntegrityError
from django.db.models import Count, ProtectedError
from django.shortcuts import get_object_or_404
from backend.core.cache_utils import get_tenant_cached, invalidate_catalog_cache, PRODUCTS_LIST_CACHE_TTL
from backend.core.permissions import IsTenantMember
from backend.core.utils import apply_filters, create_audit_log, model_snapshot, paginate
from backend.inventory.models import InventoryBalance
from backend.purchasing.models import PurchaseOrderLine
from .filters import ProductFilter
from .models import Category, Product
from .serializers import CategorySerializer, ProductSerializer, ProductListSerializer

logger = logging.getLogger('backend.catalog')

CATEGORY_AUDIT_FIELDS = ['name', 'parent']
PRODUCT_AUDIT_FIELDS = ['sku', 'name', 'barcode', 'category', 'base_uom', 'pack_uom_name', 'pack_qty_in_base',
                        'current_cost', 'reorder_point', 'reorder_qty', 'track_expiry', 'track_lot', 'active']


# Category views
@api_view(['GET', 'POST'])
@permission_classes([IsTenantMember])
def category_list_create(request):
    """List the tenant's categories or create a new one"""
    tenant = request.user.tenant
    if request.method == 'GET':
        categories = Category.objects.filter(tenant=tenant).select_related('parent').annotate(
            product_count=Count('products')
        ).order_by('name')
        return Response(CategorySerializer(categories, many=True, context={'tenant': tenant}).data)

    serializer = CategorySerializer(data=request.data, context={'tenant': tenant})
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    try:
        category = serializer.save()
    except IntegrityError:
        return Response({'name': ['Category name already exists']}, status=status.HTTP_400_BAD_REQUEST)
    create_audit_log(request=request, action='create', resource_type='category', resource_id=category.id,
                     resource_name=category.name, new_values=model_snapshot(category, CATEGORY_AUDIT_FIELDS))
    invalidate_catalog_cache(tenant.id)
    return Response(CategorySerializer(category, context={'tenant': tenant}).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsTenantMember])
def category_detail(request, pk):
    """Retrieve, update or delete a category"""
    tenant = request.user.tenant
    category = get_object_or_404(Category, pk=pk, tenant=tenant)

    if request.method == 'GET':
        return Response(CategorySerializer(category, context={'tenant': tenant}).data)

    if request.method in ('PUT', 'PATCH'):
        old_values = model_snapshot(category, CATEGORY_AUDIT_FIELDS)
        serializer = CategorySerializer(category, data=request.data, partial=request.method == 'PATCH',
                                        context={'tenant': tenant})
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        try:
            category = serializer.save()
        except IntegrityError:
            return Response({'name': ['Category name already exists']}, status=status.HTTP_400_BAD_REQUEST)
        create_audit_log(request=request, action='update', resource_type='category', resource_id=category.id,
                         resource_name=category.name, old_values=old_values,
                         new_values=model_snapshot(category, CATEGORY_AUDIT_FIELDS))
        invalidate_catalog_cache(tenant.id)
        return Response(serializer.data)

    # DELETE
    product_count = category.products.count()
    if product_count:
        return Response({
            'error': f'Cannot delete category with existing products ({product_count}). Reassign or delete the products first.'
        }, status=status.HTTP_400_BAD_REQUEST)
    if category.children.exists():
        return Response({'error': 'Cannot delete category with subcategories'}, status=status.HTTP_400_BAD_REQUEST)

    create_audit_log(request=request, action='delete', resource_type='category', resource_id=category.id,
                     resource_name=category.name, old_values=model_snapshot(category, CATEGORY_AUDIT_FIELDS))
    category.delete()
    invalidate_catalog_cache(tenant.id)
    return Response(status=status.HTTP_204_NO_CONTENT)


# Product views
@api_view(['GET', 'POST'])
@permission_classes([IsTenantMember])
def product_list_create(request):
    """List products (filterable, paginated) or create a new product"""
    tenant = request.user.tenant
    if request.method == 'GET':
        def build():
            queryset = Product.objects.filter(tenant=tenant).select_related('category').order_by('name')
            queryset = apply_filters(ProductFilter, request, queryset)
            return paginate(request, queryset, ProductListSerializer)

        data = get_tenant_cached(tenant.id, 'products', build, ttl=PRODUCTS_LIST_CACHE_TTL,
                                 query=sorted(request.query_params.items()))
        return Response(data)

    serializer = ProductSerializer(data=request.data, context={'tenant': tenant})
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    try:
        product = serializer.save()
    except IntegrityError:
        return Response({'sku': ['SKU already exists']}, status=status.HTTP_400_BAD_REQUEST)

    logger.info(f"Product {product.sku} created in tenant {tenant.id}")
    create_audit_log(request=request, action='create', resource_type='product', resource_id=product.id,
                     resource_name=product.sku, new_values=model_snapshot(product, PRODUCT_AUDIT_FIELDS))
    invalidate_catalog_cache(tenant.id)
    return Response(ProductSerializer(product, context={'tenant': tenant}).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsTenantMember])
def product_detail(request, pk):
    """Retrieve, update or delete a product"""
    tenant = request.user.tenant
    product = get_object_or_404(Product.objects.select_related('category'), pk=pk, tenant=tenant)

    if request.method == 'GET':
        return Response(ProductSerializer(product, context={'tenant': tenant}).data)

    if request.method in ('PUT', 'PATCH'):
        old_values = model_snapshot(product, PRODUCT_AUDIT_FIELDS)
        serializer = ProductSerializer(product, data=request.data, partial=request.method == 'PATCH',
                                       context={'tenant': tenant})
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        try:
            product = serializer.save()
        except IntegrityError:
            return Response({'sku': ['SKU already exists']}, status=status.HTTP_400_BAD_REQUEST)
        create_audit_log(request=request, action='update', resource_type='product', resource_id=product.id,
                         resource_name=product.sku, old_values=old_values,
                         new_values=model_snapshot(product, PRODUCT_AUDIT_FIELDS))
        invalidate_catalog_cache(tenant.id)
        return Response(serializer.data)

    # DELETE
    if InventoryBalance.objects.filter(tenant=tenant, product=product).exists():
        return Response({'error': 'Cannot delete product with existing inventory. Deactivate it instead.'},
                        status=status.HTTP_400_BAD_REQUEST)
    if PurchaseOrderLine.objects.filter(product=product).exists():
        return Response({'error': 'Cannot delete product referenced by purchase orders. Deactivate it instead.'},
                        status=status.HTTP_400_BAD_REQUEST)

    old_values = model_snapshot(product, PRODUCT_AUDIT_FIELDS)
    try:
        product.delete()
    except ProtectedError:
        return Response({'error': 'Cannot delete product referenced by other records. Deactivate it instead.'},
                        status=status.HTTP_400_BAD_REQUEST)
    create_audit_log(request=request, action='delete', resource_type='product', resource_id=pk,
                     resource_name=old_values['sku'], old_values=old_values)
    invalidate_catalog_cache(tenant.id)
    return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST'])
@permission_classes([IsTenantMember])
def product_toggle_active(request, pk):
    """Activate or deactivate a product"""
    tenant = request.user.tenant
    product = get_object_or_404(Product, pk=pk, tenant=tenant)
    old_active = product.active
    product.active = not product.active
    product.save(update_fields=['active', 'updated_at'])
    create_audit_log(request=request, action='update', resource_type='product', resource_id=product.id,
                     resource_name=product.sku, old_values={'active': old_active},
                     new_values={'active': product.active},
                     notes='Product activated' if product.active else 'Product deactivated')
    invalidate_catalog_cache(tenant.id)
    return Response({'success': True, 'active': product.active})
