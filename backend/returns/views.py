import logging
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from django.db import transaction
from django.shortcuts import get_object_or_404
from django.utils import timezone
from backend.core.exceptions import InventoryError, InvalidTransitionError
from backend.core.permissions import IsTenantMember
from backend.core.utils import apply_filters, create_audit_log, document_snapshot, paginate
from backend.documents.services import delete_entity_documents
from backend.inventory.services import add_stock, remove_stock
from .filters import ReturnFilter
from .models import Return
from .serializers import ReturnSerializer

logger = logging.getLogger('backend.returns')

RETURN_AUDIT_FIELDS = ['return_number', 'return_type', 'location', 'partner_id', 'partner_name', 'reason',
                       'status', 'notes']
RETURN_LINE_AUDIT_FIELDS = ['product', 'qty', 'lot_number', 'expiry_date', 'unit_cost']


def _context(request):
    return {'tenant': request.user.tenant, 'user': request.user, 'request': request}


@api_view(['GET', 'POST'])
@permission_classes([IsTenantMember])
def return_list_create(request):
    """List returns or create a draft return"""
    tenant = request.user.tenant
    if request.method == 'GET':
        queryset = Return.objects.filter(tenant=tenant).select_related(
            'location', 'created_by'
        ).prefetch_related('lines__product')

        queryset = apply_filters(ReturnFilter, request, queryset)
        return Response(paginate(request, queryset, ReturnSerializer, context=_context(request)))

    serializer = ReturnSerializer(data=request.data, context=_context(request))
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    with transaction.atomic():
        ret = serializer.save()
    logger.info(f"Return {ret.return_number} created in tenant {tenant.id}")
    create_audit_log(request=request, action='create', resource_type='return', resource_id=ret.id,
                     resource_name=ret.return_number,
                     new_values=document_snapshot(ret, RETURN_AUDIT_FIELDS, RETURN_LINE_AUDIT_FIELDS))
    return Response(ReturnSerializer(ret, context=_context(request)).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsTenantMember])
def return_detail(request, pk):
    """Retrieve a return, or edit or delete a draft one"""
    tenant = request.user.tenant
    ret = get_object_or_404(Return, pk=pk, tenant=tenant)

    if request.method == 'GET':
        return Response(ReturnSerializer(ret, context=_context(request)).data)

    if request.method in ('PUT', 'PATCH'):
        if ret.status != 'draft':
            return Response({'error': 'Can only edit draft returns'}, status=status.HTTP_400_BAD_REQUEST)
        old_values = document_snapshot(ret, RETURN_AUDIT_FIELDS, RETURN_LINE_AUDIT_FIELDS)
        serializer = ReturnSerializer(ret, data=request.data, partial=request.method == 'PATCH',
                                      context=_context(request))
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        with transaction.atomic():
            ret = serializer.save()
        create_audit_log(request=request, action='update', resource_type='return', resource_id=ret.id,
                         resource_name=ret.return_number, old_values=old_values,
                         new_values=document_snapshot(ret, RETURN_AUDIT_FIELDS, RETURN_LINE_AUDIT_FIELDS))
        return Response(ReturnSerializer(ret, context=_context(request)).data)

    # DELETE
    if ret.status != 'draft':
        return Response({'error': 'Can only delete draft returns'}, status=status.HTTP_400_BAD_REQUEST)
    old_values = document_snapshot(ret, RETURN_AUDIT_FIELDS, RETURN_LINE_AUDIT_FIELDS)
    with transaction.atomic():
        ret.delete()
    delete_entity_documents(tenant, 'return', pk)
    create_audit_log(request=request, action='delete', resource_type='return', resource_id=pk,
                     resource_name=old_values['return_number'], old_values=old_values)
    return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST'])
@permission_classes([IsTenantMember])
def return_process(request, pk):
    """
    Apply a draft return to stock.

    Customer returns bring stock back in at the line cost (or the product's
    current cost); supplier returns take stock out.
    """
    tenant = request.user.tenant
    try:
        with transaction.atomic():
            ret = get_object_or_404(Return.objects.select_for_update(), pk=pk, tenant=tenant)
            if ret.status != 'draft':
                raise InvalidTransitionError('Can only process draft returns')

            returned_items = []
            for line in ret.lines.select_related('product'):
                stock_args = dict(reference_type='return', reference_id=ret.id, lot_number=line.lot_number,
                                  expiry_date=line.expiry_date, reason=ret.reason, user=request.user)
                if ret.return_type == 'customer':
                    unit_cost = line.unit_cost if line.unit_cost is not None else line.product.current_cost
                    add_stock(tenant, line.product, ret.location, line.qty, unit_cost, 'return_in', **stock_args)
                else:
                    unit_cost = remove_stock(tenant, line.product, ret.location, line.qty, 'return_out',
                                             **stock_args)
                if line.unit_cost is None:
                    line.unit_cost = unit_cost
                    line.save(update_fields=['unit_cost'])
                returned_items.append({'product': line.product_id, 'qty': line.qty})

            ret.status = 'completed'
            ret.processed_at = timezone.now()
            ret.save(update_fields=['status', 'processed_at', 'updated_at'])
    except InventoryError as e:
        logger.warning(f"Return {pk} not processed: {e}")
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

    logger.info(f"{ret.return_type.title()} return {ret.return_number} processed ({len(returned_items)} lines)")
    create_audit_log(request=request, action='return', resource_type='return', resource_id=ret.id,
                     resource_name=ret.return_number, old_values={'status': 'draft'},
                     new_values={'status': 'completed', 'returned_items': returned_items},
                     notes=f'Processed {ret.return_type} return with {len(returned_items)} item(s)')
    return Response(ReturnSerializer(ret, context=_context(request)).data)


@api_view(['POST'])
@permission_classes([IsTenantMember])
def return_cancel(request, pk):
    tenant = request.user.tenant
    with transaction.atomic():
        ret = get_object_or_404(Return.objects.select_for_update(), pk=pk, tenant=tenant)
        if ret.status != 'draft':
            return Response({'error': 'Can only cancel draft returns'}, status=status.HTTP_400_BAD_REQUEST)
        ret.status = 'cancelled'
        ret.save(update_fields=['status', 'updated_at'])
    create_audit_log(request=request, action='cancel', resource_type='return', resource_id=ret.id,
                     resource_name=ret.return_number, old_values={'status': 'draft'},
                     new_values={'status': 'cancelled'})
    return Response(ReturnSerializer(ret, context=_context(request)).data)
