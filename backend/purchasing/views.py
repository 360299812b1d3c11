import logging
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from django.db import transaction
from django.shortcuts import get_object_or_404
from django.utils import timezone
from backend.core.cache_utils import invalidate_catalog_cache
from backend.core.exceptions import InventoryError, InvalidTransitionError
from backend.core.permissions import IsTenantMember
from backend.core.utils import apply_filters, create_audit_log, document_snapshot, paginate
from backend.documents.services import delete_entity_documents
from backend.inventory.services import add_stock, normalize_lot
from .filters import PurchaseOrderFilter
from .models import PurchaseOrder
from .serializers import PurchaseOrderSerializer, ReceiveSerializer

logger = logging.getLogger('backend.purchasing')

PO_AUDIT_FIELDS = ['po_number', 'supplier', 'location', 'order_date', 'expected_date', 'status', 'notes']
PO_LINE_AUDIT_FIELDS = ['product', 'qty_ordered', 'qty_received', 'unit_cost']


def _context(request):
    return {'tenant': request.user.tenant, 'user': request.user, 'request': request}


@api_view(['GET', 'POST'])
@permission_classes([IsTenantMember])
def purchase_order_list_create(request):
    """List purchase orders or create a draft one"""
    tenant = request.user.tenant
    if request.method == 'GET':
        queryset = PurchaseOrder.objects.filter(tenant=tenant).select_related(
            'supplier', 'location', 'created_by'
        ).prefetch_related('lines__product')

        queryset = apply_filters(PurchaseOrderFilter, request, queryset)

        return Response(paginate(request, queryset, PurchaseOrderSerializer, context=_context(request)))

    serializer = PurchaseOrderSerializer(data=request.data, context=_context(request))
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    with transaction.atomic():
        po = serializer.save()
    logger.info(f"Purchase order {po.po_number} created in tenant {tenant.id}")
    create_audit_log(request=request, action='create', resource_type='purchase_order', resource_id=po.id,
                     resource_name=po.po_number,
                     new_values=document_snapshot(po, PO_AUDIT_FIELDS, PO_LINE_AUDIT_FIELDS))
    return Response(PurchaseOrderSerializer(po, context=_context(request)).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsTenantMember])
def purchase_order_detail(request, pk):
    """Retrieve a purchase order, or edit or delete a draft one"""
    tenant = request.user.tenant
    po = get_object_or_404(PurchaseOrder, pk=pk, tenant=tenant)

    if request.method == 'GET':
        return Response(PurchaseOrderSerializer(po, context=_context(request)).data)

    if request.method in ('PUT', 'PATCH'):
        if po.status != 'draft':
            return Response({'error': 'Can only edit draft purchase orders'}, status=status.HTTP_400_BAD_REQUEST)
        old_values = document_snapshot(po, PO_AUDIT_FIELDS, PO_LINE_AUDIT_FIELDS)
        serializer = PurchaseOrderSerializer(po, data=request.data, partial=request.method == 'PATCH',
                                             context=_context(request))
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        with transaction.atomic():
            po = serializer.save()
        create_audit_log(request=request, action='update', resource_type='purchase_order', resource_id=po.id,
                         resource_name=po.po_number, old_values=old_values,
                         new_values=document_snapshot(po, PO_AUDIT_FIELDS, PO_LINE_AUDIT_FIELDS))
        return Response(PurchaseOrderSerializer(po, context=_context(request)).data)

    # DELETE
    if po.status != 'draft':
        return Response({'error': 'Can only delete draft purchase orders'}, status=status.HTTP_400_BAD_REQUEST)
    old_values = document_snapshot(po, PO_AUDIT_FIELDS, PO_LINE_AUDIT_FIELDS)
    with transaction.atomic():
        po.delete()
    delete_entity_documents(tenant, 'purchase_order', pk)
    create_audit_log(request=request, action='delete', resource_type='purchase_order', resource_id=pk,
                     resource_name=old_values['po_number'], old_values=old_values)
    return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST'])
@permission_classes([IsTenantMember])
def purchase_order_confirm(request, pk):
    tenant = request.user.tenant
    with transaction.atomic():
        po = get_object_or_404(PurchaseOrder.objects.select_for_update(), pk=pk, tenant=tenant)
        if po.status != 'draft':
            return Response({'error': 'Can only confirm draft purchase orders'}, status=status.HTTP_400_BAD_REQUEST)
        po.status = 'confirmed'
        po.save(update_fields=['status', 'updated_at'])
    logger.info(f"Purchase order {po.po_number} confirmed")
    create_audit_log(request=request, action='confirm', resource_type='purchase_order', resource_id=po.id,
                     resource_name=po.po_number, old_values={'status': 'draft'}, new_values={'status': 'confirmed'})
    return Response(PurchaseOrderSerializer(po, context=_context(request)).data)


@api_view(['POST'])
@permission_classes([IsTenantMember])
def purchase_order_receive(request, pk):
    """
    Receive goods against a confirmed purchase order.

    Each line with a positive quantity adds stock at the line cost and
    updates the product's current cost. The order becomes completed once
    every line is fully received, partial otherwise.
    """
    tenant = request.user.tenant
    serializer = ReceiveSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    received_date = serializer.validated_data.get('received_date') or timezone.localdate()

    try:
        with transaction.atomic():
            po = get_object_or_404(PurchaseOrder.objects.select_for_update(), pk=pk, tenant=tenant)
            if po.status == 'draft':
                raise InvalidTransitionError('PO must be confirmed before receiving')
            if po.status == 'completed':
                raise InvalidTransitionError('PO is already completed')
            if po.status == 'cancelled':
                raise InvalidTransitionError('Cannot receive cancelled PO')

            old_status = po.status
            lines = {line.id: line for line in po.lines.select_related('product')}
            received_items = []
            for entry in serializer.validated_data['lines']:
                qty = entry['qty_to_receive']
                if qty <= 0:
                    continue
                line = lines.get(entry['line_id'])
                if line is None:
                    raise InventoryError(f"Line {entry['line_id']} does not belong to this purchase order")
                if line.qty_received + qty > line.qty_ordered:
                    raise InventoryError(f"Cannot receive more than ordered for {line.product.sku}")
                if not line.product.is_valid_qty(qty):
                    raise InventoryError(f'{line.product.sku} only accepts whole-number quantities')

                lot_number = normalize_lot(entry.get('lot_number'))
                add_stock(tenant, line.product, po.location, qty, line.unit_cost, 'receive',
                          reference_type='po', reference_id=po.id, lot_number=lot_number,
                          expiry_date=entry.get('expiry_date'), user=request.user)
                line.qty_received += qty
                line.save(update_fields=['qty_received'])

                line.product.current_cost = line.unit_cost
                line.product.save(update_fields=['current_cost', 'updated_at'])
                received_items.append({'product': line.product_id, 'qty': qty})

            all_lines = lines.values()
            if all(line.qty_received >= line.qty_ordered for line in all_lines):
                po.status = 'completed'
            elif any(line.qty_received > 0 for line in all_lines):
                po.status = 'partial'
            else:
                po.status = 'confirmed'
            po.save(update_fields=['status', 'updated_at'])
            if received_items:
                transaction.on_commit(lambda: invalidate_catalog_cache(tenant.id))
    except InventoryError as e:
        logger.warning(f"Purchase order {pk} not received: {e}")
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

    logger.info(f"Purchase order {po.po_number} received {len(received_items)} lines, now {po.status}")
    create_audit_log(request=request, action='receive', resource_type='purchase_order', resource_id=po.id,
                     resource_name=po.po_number, old_values={'status': old_status},
                     new_values={'status': po.status, 'received_items': received_items,
                                 'received_date': received_date},
                     notes=f'Received {len(received_items)} item(s) on {received_date}')
    return Response(PurchaseOrderSerializer(po, context=_context(request)).data)


@api_view(['POST'])
@permission_classes([IsTenantMember])
def purchase_order_cancel(request, pk):
    tenant = request.user.tenant
    with transaction.atomic():
        po = get_object_or_404(PurchaseOrder.objects.select_for_update(), pk=pk, tenant=tenant)
        if po.status not in ('draft', 'confirmed'):
            return Response({'error': 'Can only cancel draft or confirmed purchase orders'},
                            status=status.HTTP_400_BAD_REQUEST)
        old_status = po.status
        po.status = 'cancelled'
        po.save(update_fields=['status', 'updated_at'])
    create_audit_log(request=request, action='cancel', resource_type='purchase_order', resource_id=po.id,
                     resource_name=po.po_number, old_values={'status': old_status},
                     new_values={'status': 'cancelled'})
    return Response(PurchaseOrderSerializer(po, context=_context(request)).data)
