import logging
from collections import defaultdict
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from django.db import transaction
from django.shortcuts import get_object_or_404
from django.utils import timezone
from backend.core.exceptions import InventoryError, InsufficientStockError, InvalidTransitionError
from backend.core.permissions import IsTenantMember
from backend.core.utils import apply_filters, create_audit_log, document_snapshot, paginate
from backend.documents.services import delete_entity_documents
from backend.inventory.services import available_qty, remove_stock
from .filters import ShipmentFilter
from .models import Shipment
from .serializers import ShipmentSerializer, ShipSerializer

logger = logging.getLogger('backend.shipping')

SHIPMENT_AUDIT_FIELDS = ['shipment_number', 'location', 'customer', 'customer_name', 'ship_date', 'status', 'notes']
SHIPMENT_LINE_AUDIT_FIELDS = ['product', 'qty', 'lot_number', 'expiry_date', 'unit_cost']


def _context(request):
    return {'tenant': request.user.tenant, 'user': request.user, 'request': request}


def check_availability(tenant, shipment, lines):
    """Raise InsufficientStockError unless every line can be filled from the shipment's location"""
    required = defaultdict(lambda: 0)
    products = {}
    for line in lines:
        key = (line.product_id, line.lot_number, line.expiry_date)
        required[key] += line.qty
        products[key] = line.product
    for (product_id, lot_number, expiry_date), qty in required.items():
        product = products[(product_id, lot_number, expiry_date)]
        if available_qty(tenant, product, shipment.location, lot_number, expiry_date) < qty:
            raise InsufficientStockError(f'Insufficient stock for {product.sku}')


@api_view(['GET', 'POST'])
@permission_classes([IsTenantMember])
def shipment_list_create(request):
    """List shipments or create a draft shipment"""
    tenant = request.user.tenant
    if request.method == 'GET':
        queryset = Shipment.objects.filter(tenant=tenant).select_related(
            'location', 'customer', 'created_by'
        ).prefetch_related('lines__product')

        queryset = apply_filters(ShipmentFilter, request, queryset)
        return Response(paginate(request, queryset, ShipmentSerializer, context=_context(request)))

    serializer = ShipmentSerializer(data=request.data, context=_context(request))
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    with transaction.atomic():
        shipment = serializer.save()
    logger.info(f"Shipment {shipment.shipment_number} created in tenant {tenant.id}")
    create_audit_log(request=request, action='create', resource_type='shipment', resource_id=shipment.id,
                     resource_name=shipment.shipment_number,
                     new_values=document_snapshot(shipment, SHIPMENT_AUDIT_FIELDS, SHIPMENT_LINE_AUDIT_FIELDS))
    return Response(ShipmentSerializer(shipment, context=_context(request)).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsTenantMember])
def shipment_detail(request, pk):
    """Retrieve a shipment, or edit or delete a draft one"""
    tenant = request.user.tenant
    shipment = get_object_or_404(Shipment, pk=pk, tenant=tenant)

    if request.method == 'GET':
        return Response(ShipmentSerializer(shipment, context=_context(request)).data)

    if request.method in ('PUT', 'PATCH'):
        if shipment.status != 'draft':
            return Response({'error': 'Can only edit draft shipments'}, status=status.HTTP_400_BAD_REQUEST)
        old_values = document_snapshot(shipment, SHIPMENT_AUDIT_FIELDS, SHIPMENT_LINE_AUDIT_FIELDS)
        serializer = ShipmentSerializer(shipment, data=request.data, partial=request.method == 'PATCH',
                                        context=_context(request))
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        with transaction.atomic():
            shipment = serializer.save()
        create_audit_log(request=request, action='update', resource_type='shipment', resource_id=shipment.id,
                         resource_name=shipment.shipment_number, old_values=old_values,
                         new_values=document_snapshot(shipment, SHIPMENT_AUDIT_FIELDS, SHIPMENT_LINE_AUDIT_FIELDS))
        return Response(ShipmentSerializer(shipment, context=_context(request)).data)

    # DELETE
    if shipment.status != 'draft':
        return Response({'error': 'Can only delete draft shipments'}, status=status.HTTP_400_BAD_REQUEST)
    old_values = document_snapshot(shipment, SHIPMENT_AUDIT_FIELDS, SHIPMENT_LINE_AUDIT_FIELDS)
    with transaction.atomic():
        shipment.delete()
    delete_entity_documents(tenant, 'shipment', pk)
    create_audit_log(request=request, action='delete', resource_type='shipment', resource_id=pk,
                     resource_name=old_values['shipment_number'], old_values=old_values)
    return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST'])
@permission_classes([IsTenantMember])
def shipment_confirm(request, pk):
    """Confirm a draft shipment once its location holds enough stock for every line"""
    tenant = request.user.tenant
    try:
        with transaction.atomic():
            shipment = get_object_or_404(Shipment.objects.select_for_update(), pk=pk, tenant=tenant)
            if shipment.status != 'draft':
                raise InvalidTransitionError('Can only confirm draft shipments')
            check_availability(tenant, shipment, shipment.lines.select_related('product'))
            shipment.status = 'confirmed'
            shipment.save(update_fields=['status', 'updated_at'])
    except InventoryError as e:
        logger.warning(f"Shipment {pk} not confirmed: {e}")
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

    create_audit_log(request=request, action='confirm', resource_type='shipment', resource_id=shipment.id,
                     resource_name=shipment.shipment_number, old_values={'status': 'draft'},
                     new_values={'status': 'confirmed'})
    return Response(ShipmentSerializer(shipment, context=_context(request)).data)


@api_view(['POST'])
@permission_classes([IsTenantMember])
def shipment_ship(request, pk):
    """Remove a confirmed shipment's stock; lines are costed at the balance average cost"""
    tenant = request.user.tenant
    serializer = ShipSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    try:
        with transaction.atomic():
            shipment = get_object_or_404(Shipment.objects.select_for_update(), pk=pk, tenant=tenant)
            if shipment.status != 'confirmed':
                raise InvalidTransitionError('Can only ship confirmed shipments')

            shipped_items = []
            for line in shipment.lines.select_related('product'):
                line.unit_cost = remove_stock(
                    tenant, line.product, shipment.location, line.qty, 'ship',
                    reference_type='shipment', reference_id=shipment.id, lot_number=line.lot_number,
                    expiry_date=line.expiry_date, user=request.user,
                )
                line.save(update_fields=['unit_cost'])
                shipped_items.append({'product': line.product_id, 'qty': line.qty})

            shipment.status = 'completed'
            shipment.ship_date = serializer.validated_data.get('ship_date') or shipment.ship_date or timezone.localdate()
            shipment.save(update_fields=['status', 'ship_date', 'updated_at'])
    except InventoryError as e:
        logger.warning(f"Shipment {pk} not shipped: {e}")
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

    logger.info(f"Shipment {shipment.shipment_number} shipped ({len(shipped_items)} lines)")
    create_audit_log(request=request, action='ship', resource_type='shipment', resource_id=shipment.id,
                     resource_name=shipment.shipment_number, old_values={'status': 'confirmed'},
                     new_values={'status': 'completed', 'shipped_items': shipped_items,
                                 'ship_date': shipment.ship_date},
                     notes=f'Shipped {len(shipped_items)} item(s)')
    return Response(ShipmentSerializer(shipment, context=_context(request)).data)


@api_view(['POST'])
@permission_classes([IsTenantMember])
def shipment_cancel(request, pk):
    tenant = request.user.tenant
    with transaction.atomic():
        shipment = get_object_or_404(Shipment.objects.select_for_update(), pk=pk, tenant=tenant)
        if shipment.status not in ('draft', 'confirmed'):
            return Response({'error': 'Can only cancel draft or confirmed shipments'},
                            status=status.HTTP_400_BAD_REQUEST)
        old_status = shipment.status
        shipment.status = 'cancelled'
        shipment.save(update_fields=['status', 'updated_at'])
    create_audit_log(request=request, action='cancel', resource_type='shipment', resource_id=shipment.id,
                     resource_name=shipment.shipment_number, old_values={'status': old_status},
                     new_values={'status': 'cancelled'})
    return Response(ShipmentSerializer(shipment, context=_context(request)).data)
