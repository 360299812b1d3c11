import logging
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from django.db import transaction
from django.db.models import OuterRef, Subquery
from django.shortcuts import get_object_or_404
from django.utils import timezone
from backend.core.cache_utils import get_tenant_cached, STOCK_LIST_CACHE_TTL
from backend.core.exceptions import InventoryError, InvalidTransitionError
from backend.core.permissions import IsTenantMember
from backend.core.utils import apply_filters, create_audit_log, document_snapshot, paginate
from backend.locations.models import Location
from backend.purchasing.models import PurchaseOrder
from backend.returns.models import Return
from backend.shipping.models import Shipment
from .filters import InventoryBalanceFilter, StockMovementFilter, StockDocumentFilter, TransferFilter
from .models import InventoryBalance, StockMovement, Adjustment, Transfer, CycleCount
from .serializers import (
    InventoryBalanceSerializer, DepletedStockSerializer, StockMovementSerializer,
    AdjustmentSerializer, TransferSerializer, CycleCountSerializer, CountEntriesSerializer
)
from .services import add_stock, remove_stock, set_stock, get_balance, ZERO

logger = logging.getLogger('backend.inventory')

ADJUSTMENT_AUDIT_FIELDS = ['adjustment_number', 'location', 'reason', 'notes', 'status']
TRANSFER_AUDIT_FIELDS = ['transfer_number', 'from_location', 'to_location', 'notes', 'status']
CYCLE_COUNT_AUDIT_FIELDS = ['count_number', 'location', 'count_date', 'notes', 'status']
LINE_AUDIT_FIELDS = ['product', 'qty', 'lot_number', 'expiry_date', 'unit_cost']
COUNT_LINE_AUDIT_FIELDS = ['product', 'lot_number', 'expiry_date', 'system_qty', 'counted_qty']

MOVEMENT_HISTORY_LIMIT = 100


def _error(exc):
    return Response({'error': str(exc)}, status=status.HTTP_400_BAD_REQUEST)


def _document_context(request):
    return {'tenant': request.user.tenant, 'user': request.user, 'request': request}


# Stock queries
@api_view(['GET'])
@permission_classes([IsTenantMember])
def stock_balance_list(request):
    """Balances with stock on hand, filterable by location, product, category and search"""
    tenant = request.user.tenant

    def build():
        queryset = InventoryBalance.objects.filter(tenant=tenant, qty_on_hand__gt=0).select_related(
            'product', 'product__category', 'location'
        ).order_by('product__name', 'location__name', 'expiry_date')
        queryset = apply_filters(InventoryBalanceFilter, request, queryset)
        return paginate(request, queryset, InventoryBalanceSerializer, default_limit=50)

    data = get_tenant_cached(tenant.id, 'stock', build, ttl=STOCK_LIST_CACHE_TTL,
                             view='balances', query=sorted(request.query_params.items()))
    return Response(data)


@api_view(['GET'])
@permission_classes([IsTenantMember])
def stock_at_location(request, location_id):
    """Every balance with stock at one location, unpaginated, for document line pickers"""
    tenant = request.user.tenant
    location = get_object_or_404(Location, pk=location_id, tenant=tenant)
    balances = InventoryBalance.objects.filter(
        tenant=tenant, location=location, qty_on_hand__gt=0
    ).select_related('product', 'product__category', 'location').order_by('product__name', 'expiry_date')
    return Response(InventoryBalanceSerializer(balances, many=True).data)


@api_view(['GET'])
@permission_classes([IsTenantMember])
def depleted_stock_list(request):
    """Balances that have run out, with the time of their last movement"""
    tenant = request.user.tenant

    def build():
        last_movement = StockMovement.objects.filter(
            tenant=tenant, product=OuterRef('product'), location=OuterRef('location')
        ).order_by('-created_at').values('created_at')[:1]
        queryset = InventoryBalance.objects.filter(tenant=tenant, qty_on_hand=0).select_related(
            'product', 'product__category', 'location'
        ).annotate(last_movement_at=Subquery(last_movement)).order_by('-last_movement_at', 'product__name')
        queryset = apply_filters(InventoryBalanceFilter, request, queryset)
        return paginate(request, queryset, DepletedStockSerializer, default_limit=50)

    data = get_tenant_cached(tenant.id, 'stock', build, ttl=STOCK_LIST_CACHE_TTL,
                             view='depleted', query=sorted(request.query_params.items()))
    return Response(data)


def _movement_references(tenant, movements):
    """
    Map (reference_type, reference_id) to the referenced document's number,
    partner and, for transfers, the location names.
    """
    ids = {}
    for movement in movements:
        if movement.reference_type and movement.reference_id:
            ids.setdefault(movement.reference_type, set()).add(movement.reference_id)

    references = {}
    if ids.get('po'):
        for po in PurchaseOrder.objects.filter(tenant=tenant, id__in=ids['po']).select_related('supplier'):
            references[('po', po.id)] = {'document_number': po.po_number, 'partner_name': po.supplier.name}
    if ids.get('shipment'):
        for shipment in Shipment.objects.filter(tenant=tenant, id__in=ids['shipment']).select_related('customer'):
            references[('shipment', shipment.id)] = {
                'document_number': shipment.shipment_number,
                'partner_name': shipment.display_customer_name,
            }
    if ids.get('return'):
        for ret in Return.objects.filter(tenant=tenant, id__in=ids['return']):
            references[('return', ret.id)] = {'document_number': ret.return_number, 'partner_name': ret.partner_name}
    if ids.get('transfer'):
        transfers = Transfer.objects.filter(tenant=tenant, id__in=ids['transfer']).select_related(
            'from_location', 'to_location'
        )
        for transfer in transfers:
            references[('transfer', transfer.id)] = {
                'document_number': transfer.transfer_number,
                'from_location_name': transfer.from_location.name,
                'to_location_name': transfer.to_location.name,
            }
    if ids.get('adjustment'):
        for adjustment in Adjustment.objects.filter(tenant=tenant, id__in=ids['adjustment']):
            references[('adjustment', adjustment.id)] = {'document_number': adjustment.adjustment_number}
    if ids.get('cycle_count'):
        for count in CycleCount.objects.filter(tenant=tenant, id__in=ids['cycle_count']):
            references[('cycle_count', count.id)] = {'document_number': count.count_number}
    return references


@api_view(['GET'])
@permission_classes([IsTenantMember])
def movement_history(request):
    """Latest movements for a product and/or location, enriched with their source document"""
    tenant = request.user.tenant
    queryset = StockMovement.objects.filter(tenant=tenant).select_related('product', 'location', 'created_by')
    queryset = apply_filters(StockMovementFilter, request, queryset).order_by('-created_at', '-id')
    movements = list(queryset[:MOVEMENT_HISTORY_LIMIT])

    references = _movement_references(tenant, movements)
    results = []
    for movement, data in zip(movements, StockMovementSerializer(movements, many=True).data):
        data.update({'document_number': None, 'partner_name': None,
                     'from_location_name': None, 'to_location_name': None})
        data.update(references.get((movement.reference_type, movement.reference_id), {}))
        results.append(data)
    return Response(results)


# Adjustments
@api_view(['GET', 'POST'])
@permission_classes([IsTenantMember])
def adjustment_list_create(request):
    """List adjustments or create a draft adjustment"""
    tenant = request.user.tenant
    if request.method == 'GET':
        queryset = Adjustment.objects.filter(tenant=tenant).select_related(
            'location', 'created_by', 'approved_by'
        ).prefetch_related('lines__product')
        queryset = apply_filters(StockDocumentFilter, request, queryset)
        return Response(paginate(request, queryset, AdjustmentSerializer, context=_document_context(request)))

    serializer = AdjustmentSerializer(data=request.data, context=_document_context(request))
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    with transaction.atomic():
        adjustment = serializer.save()
    logger.info(f"Adjustment {adjustment.adjustment_number} created in tenant {tenant.id}")
    create_audit_log(request=request, action='create', resource_type='adjustment', resource_id=adjustment.id,
                     resource_name=adjustment.adjustment_number,
                     new_values=document_snapshot(adjustment, ADJUSTMENT_AUDIT_FIELDS, LINE_AUDIT_FIELDS))
    return Response(AdjustmentSerializer(adjustment, context=_document_context(request)).data,
                    status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'PATCH'])
@permission_classes([IsTenantMember])
def adjustment_detail(request, pk):
    """Retrieve an adjustment or edit a draft one"""
    tenant = request.user.tenant
    adjustment = get_object_or_404(Adjustment, pk=pk, tenant=tenant)
    if request.method == 'GET':
        return Response(AdjustmentSerializer(adjustment, context=_document_context(request)).data)

    if adjustment.status != 'draft':
        return Response({'error': 'Can only edit draft adjustments'}, status=status.HTTP_400_BAD_REQUEST)
    old_values = document_snapshot(adjustment, ADJUSTMENT_AUDIT_FIELDS, LINE_AUDIT_FIELDS)
    serializer = AdjustmentSerializer(adjustment, data=request.data, partial=request.method == 'PATCH',
                                      context=_document_context(request))
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    with transaction.atomic():
        adjustment = serializer.save()
    create_audit_log(request=request, action='update', resource_type='adjustment', resource_id=adjustment.id,
                     resource_name=adjustment.adjustment_number, old_values=old_values,
                     new_values=document_snapshot(adjustment, ADJUSTMENT_AUDIT_FIELDS, LINE_AUDIT_FIELDS))
    return Response(AdjustmentSerializer(adjustment, context=_document_context(request)).data)


@api_view(['POST'])
@permission_classes([IsTenantMember])
def adjustment_approve(request, pk):
    """Approve a draft adjustment (admins and managers)"""
    tenant = request.user.tenant
    if request.user.role not in ('admin', 'manager'):
        return Response({'error': 'Only admins and managers can approve adjustments'},
                        status=status.HTTP_403_FORBIDDEN)
    with transaction.atomic():
        adjustment = get_object_or_404(Adjustment.objects.select_for_update(), pk=pk, tenant=tenant)
        if adjustment.status != 'draft':
            return Response({'error': 'Can only approve draft adjustments'}, status=status.HTTP_400_BAD_REQUEST)
        if adjustment.approved_at:
            return Response({'error': 'Adjustment is already approved'}, status=status.HTTP_400_BAD_REQUEST)
        adjustment.approved_by = request.user
        adjustment.approved_at = timezone.now()
        adjustment.save(update_fields=['approved_by', 'approved_at', 'updated_at'])

    create_audit_log(request=request, action='approve', resource_type='adjustment', resource_id=adjustment.id,
                     resource_name=adjustment.adjustment_number,
                     new_values={'approved_by': request.user.id, 'approved_at': adjustment.approved_at})
    return Response(AdjustmentSerializer(adjustment, context=_document_context(request)).data)


@api_view(['POST'])
@permission_classes([IsTenantMember])
def adjustment_post(request, pk):
    """
    Apply a draft adjustment to stock.

    Positive lines add stock at the line cost (falling back to the balance
    average cost), negative lines remove stock. Either every line is applied
    or none is.
    """
    tenant = request.user.tenant
    try:
        with transaction.atomic():
            adjustment = get_object_or_404(Adjustment.objects.select_for_update(), pk=pk, tenant=tenant)
            if adjustment.status != 'draft':
                raise InvalidTransitionError('Can only post draft adjustments')
            if tenant.requires_adjustment_approval and not adjustment.approved_at:
                raise InvalidTransitionError('Adjustment must be approved before posting')

            adjusted_items = []
            for line in adjustment.lines.select_related('product'):
                stock_args = dict(
                    movement_type='adjustment', reference_type='adjustment', reference_id=adjustment.id,
                    lot_number=line.lot_number, expiry_date=line.expiry_date, reason=adjustment.reason,
                    notes=adjustment.notes, user=request.user,
                )
                if line.qty > 0:
                    unit_cost = line.unit_cost
                    if unit_cost is None:
                        balance = get_balance(tenant, line.product, adjustment.location,
                                              line.lot_number, line.expiry_date)
                        unit_cost = balance.avg_cost if balance else ZERO
                    add_stock(tenant, line.product, adjustment.location, line.qty, unit_cost, **stock_args)
                else:
                    unit_cost = remove_stock(tenant, line.product, adjustment.location, -line.qty, **stock_args)
                line.unit_cost = unit_cost
                line.save(update_fields=['unit_cost'])
                adjusted_items.append({'product': line.product_id, 'qty': line.qty})

            adjustment.status = 'completed'
            adjustment.posted_at = timezone.now()
            adjustment.save(update_fields=['status', 'posted_at', 'updated_at'])
    except InventoryError as e:
        logger.warning(f"Adjustment {pk} not posted: {e}")
        return _error(e)

    logger.info(f"Adjustment {adjustment.adjustment_number} posted ({len(adjusted_items)} lines)")
    create_audit_log(request=request, action='adjust', resource_type='adjustment', resource_id=adjustment.id,
                     resource_name=adjustment.adjustment_number, old_values={'status': 'draft'},
                     new_values={'status': 'completed', 'adjusted_items': adjusted_items},
                     notes=f'Posted adjustment with {len(adjusted_items)} item(s), reason: {adjustment.reason}')
    return Response(AdjustmentSerializer(adjustment, context=_document_context(request)).data)


@api_view(['POST'])
@permission_classes([IsTenantMember])
def adjustment_cancel(request, pk):
    tenant = request.user.tenant
    with transaction.atomic():
        adjustment = get_object_or_404(Adjustment.objects.select_for_update(), pk=pk, tenant=tenant)
        if adjustment.status != 'draft':
            return Response({'error': 'Can only cancel draft adjustments'}, status=status.HTTP_400_BAD_REQUEST)
        adjustment.status = 'cancelled'
        adjustment.save(update_fields=['status', 'updated_at'])
    create_audit_log(request=request, action='cancel', resource_type='adjustment', resource_id=adjustment.id,
                     resource_name=adjustment.adjustment_number, old_values={'status': 'draft'},
                     new_values={'status': 'cancelled'})
    return Response(AdjustmentSerializer(adjustment, context=_document_context(request)).data)


# Transfers
@api_view(['GET', 'POST'])
@permission_classes([IsTenantMember])
def transfer_list_create(request):
    """List transfers or create a draft transfer"""
    tenant = request.user.tenant
    if request.method == 'GET':
        queryset = Transfer.objects.filter(tenant=tenant).select_related(
            'from_location', 'to_location', 'created_by'
        ).prefetch_related('lines__product')
        queryset = apply_filters(TransferFilter, request, queryset)
        return Response(paginate(request, queryset, TransferSerializer, context=_document_context(request)))

    serializer = TransferSerializer(data=request.data, context=_document_context(request))
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    with transaction.atomic():
        transfer = serializer.save()
    logger.info(f"Transfer {transfer.transfer_number} created in tenant {tenant.id}")
    create_audit_log(request=request, action='create', resource_type='transfer', resource_id=transfer.id,
                     resource_name=transfer.transfer_number,
                     new_values=document_snapshot(transfer, TRANSFER_AUDIT_FIELDS, LINE_AUDIT_FIELDS))
    return Response(TransferSerializer(transfer, context=_document_context(request)).data,
                    status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'PATCH'])
@permission_classes([IsTenantMember])
def transfer_detail(request, pk):
    """Retrieve a transfer or edit a draft one"""
    tenant = request.user.tenant
    transfer = get_object_or_404(Transfer, pk=pk, tenant=tenant)
    if request.method == 'GET':
        return Response(TransferSerializer(transfer, context=_document_context(request)).data)

    if transfer.status != 'draft':
        return Response({'error': 'Can only edit draft transfers'}, status=status.HTTP_400_BAD_REQUEST)
    old_values = document_snapshot(transfer, TRANSFER_AUDIT_FIELDS, LINE_AUDIT_FIELDS)
    serializer = TransferSerializer(transfer, data=request.data, partial=request.method == 'PATCH',
                                    context=_document_context(request))
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    with transaction.atomic():
        transfer = serializer.save()
    create_audit_log(request=request, action='update', resource_type='transfer', resource_id=transfer.id,
                     resource_name=transfer.transfer_number, old_values=old_values,
                     new_values=document_snapshot(transfer, TRANSFER_AUDIT_FIELDS, LINE_AUDIT_FIELDS))
    return Response(TransferSerializer(transfer, context=_document_context(request)).data)


@api_view(['POST'])
@permission_classes([IsTenantMember])
def transfer_send(request, pk):
    """Take a draft transfer's stock out of the source location"""
    tenant = request.user.tenant
    try:
        with transaction.atomic():
            transfer = get_object_or_404(Transfer.objects.select_for_update(), pk=pk, tenant=tenant)
            if transfer.status != 'draft':
                raise InvalidTransitionError('Can only send draft transfers')

            transferred_items = []
            for line in transfer.lines.select_related('product'):
                line.unit_cost = remove_stock(
                    tenant, line.product, transfer.from_location, line.qty, 'transfer_out',
                    reference_type='transfer', reference_id=transfer.id, lot_number=line.lot_number,
                    expiry_date=line.expiry_date, notes=f'Transfer to {transfer.to_location.name}',
                    user=request.user,
                )
                line.save(update_fields=['unit_cost'])
                transferred_items.append({'product': line.product_id, 'qty': line.qty})

            transfer.status = 'confirmed'
            transfer.sent_at = timezone.now()
            transfer.save(update_fields=['status', 'sent_at', 'updated_at'])
    except InventoryError as e:
        logger.warning(f"Transfer {pk} not sent: {e}")
        return _error(e)

    logger.info(f"Transfer {transfer.transfer_number} sent from location {transfer.from_location_id}")
    create_audit_log(request=request, action='transfer', resource_type='transfer', resource_id=transfer.id,
                     resource_name=transfer.transfer_number, old_values={'status': 'draft'},
                     new_values={'status': 'confirmed', 'transferred_items': transferred_items},
                     notes=f'Sent {len(transferred_items)} item(s) from {transfer.from_location.name} '
                           f'to {transfer.to_location.name}')
    return Response(TransferSerializer(transfer, context=_document_context(request)).data)


@api_view(['POST'])
@permission_classes([IsTenantMember])
def transfer_receive(request, pk):
    """Put a sent transfer's stock into the destination location"""
    tenant = request.user.tenant
    try:
        with transaction.atomic():
            transfer = get_object_or_404(Transfer.objects.select_for_update(), pk=pk, tenant=tenant)
            if transfer.status != 'confirmed':
                raise InvalidTransitionError('Can only receive sent transfers')

            for line in transfer.lines.select_related('product'):
                add_stock(
                    tenant, line.product, transfer.to_location, line.qty, line.unit_cost, 'transfer_in',
                    reference_type='transfer', reference_id=transfer.id, lot_number=line.lot_number,
                    expiry_date=line.expiry_date, notes=f'Transfer from {transfer.from_location.name}',
                    user=request.user,
                )

            transfer.status = 'completed'
            transfer.received_at = timezone.now()
            transfer.save(update_fields=['status', 'received_at', 'updated_at'])
    except InventoryError as e:
        logger.warning(f"Transfer {pk} not received: {e}")
        return _error(e)

    logger.info(f"Transfer {transfer.transfer_number} received at location {transfer.to_location_id}")
    create_audit_log(request=request, action='receive', resource_type='transfer', resource_id=transfer.id,
                     resource_name=transfer.transfer_number, old_values={'status': 'confirmed'},
                     new_values={'status': 'completed'})
    return Response(TransferSerializer(transfer, context=_document_context(request)).data)


@api_view(['POST'])
@permission_classes([IsTenantMember])
def transfer_cancel(request, pk):
    tenant = request.user.tenant
    with transaction.atomic():
        transfer = get_object_or_404(Transfer.objects.select_for_update(), pk=pk, tenant=tenant)
        if transfer.status != 'draft':
            return Response({'error': 'Can only cancel draft transfers'}, status=status.HTTP_400_BAD_REQUEST)
        transfer.status = 'cancelled'
        transfer.save(update_fields=['status', 'updated_at'])
    create_audit_log(request=request, action='cancel', resource_type='transfer', resource_id=transfer.id,
                     resource_name=transfer.transfer_number, old_values={'status': 'draft'},
                     new_values={'status': 'cancelled'})
    return Response(TransferSerializer(transfer, context=_document_context(request)).data)


# Cycle counts
@api_view(['GET', 'POST'])
@permission_classes([IsTenantMember])
def cycle_count_list_create(request):
    """List cycle counts or start a new one, snapshotting system quantities"""
    tenant = request.user.tenant
    if request.method == 'GET':
        queryset = CycleCount.objects.filter(tenant=tenant).select_related(
            'location', 'created_by'
        ).prefetch_related('lines__product')
        queryset = apply_filters(StockDocumentFilter, request, queryset)
        return Response(paginate(request, queryset, CycleCountSerializer, context=_document_context(request)))

    serializer = CycleCountSerializer(data=request.data, context=_document_context(request))
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    with transaction.atomic():
        count = serializer.save()
    logger.info(f"Cycle count {count.count_number} created in tenant {tenant.id}")
    create_audit_log(request=request, action='create', resource_type='cycle_count', resource_id=count.id,
                     resource_name=count.count_number,
                     new_values=document_snapshot(count, CYCLE_COUNT_AUDIT_FIELDS, COUNT_LINE_AUDIT_FIELDS))
    return Response(CycleCountSerializer(count, context=_document_context(request)).data,
                    status=status.HTTP_201_CREATED)


@api_view(['GET', 'DELETE'])
@permission_classes([IsTenantMember])
def cycle_count_detail(request, pk):
    """Retrieve a cycle count or delete a draft one"""
    tenant = request.user.tenant
    count = get_object_or_404(CycleCount, pk=pk, tenant=tenant)
    if request.method == 'GET':
        return Response(CycleCountSerializer(count, context=_document_context(request)).data)

    if count.status != 'draft':
        return Response({'error': 'Can only delete draft cycle counts'}, status=status.HTTP_400_BAD_REQUEST)
    old_values = document_snapshot(count, CYCLE_COUNT_AUDIT_FIELDS, COUNT_LINE_AUDIT_FIELDS)
    count.delete()
    create_audit_log(request=request, action='delete', resource_type='cycle_count', resource_id=pk,
                     resource_name=old_values['count_number'], old_values=old_values)
    return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST'])
@permission_classes([IsTenantMember])
def cycle_count_enter(request, pk):
    """Record counted quantities on a draft cycle count"""
    tenant = request.user.tenant
    serializer = CountEntriesSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    with transaction.atomic():
        count = get_object_or_404(CycleCount.objects.select_for_update(), pk=pk, tenant=tenant)
        if count.status != 'draft':
            return Response({'error': 'Can only update draft cycle counts'}, status=status.HTTP_400_BAD_REQUEST)

        lines = {line.id: line for line in count.lines.select_related('product')}
        entries = serializer.validated_data['lines']
        for entry in entries:
            line = lines.get(entry['line_id'])
            if line is None:
                return Response({'error': f"Line {entry['line_id']} does not belong to this count"},
                                status=status.HTTP_400_BAD_REQUEST)
            if not line.product.is_valid_qty(entry['counted_qty']):
                return Response({'error': f'{line.product.sku} only accepts whole-number quantities'},
                                status=status.HTTP_400_BAD_REQUEST)
        for entry in entries:
            line = lines[entry['line_id']]
            line.counted_qty = entry['counted_qty']
            line.save(update_fields=['counted_qty'])

    create_audit_log(request=request, action='update', resource_type='cycle_count', resource_id=count.id,
                     resource_name=count.count_number,
                     new_values={'counted': [{'line_id': e['line_id'], 'counted_qty': e['counted_qty']}
                                             for e in serializer.validated_data['lines']]})
    return Response(CycleCountSerializer(count, context=_document_context(request)).data)


@api_view(['POST'])
@permission_classes([IsTenantMember])
def cycle_count_post(request, pk):
    """Set stock to the counted quantities of a fully counted draft"""
    tenant = request.user.tenant
    try:
        with transaction.atomic():
            count = get_object_or_404(CycleCount.objects.select_for_update(), pk=pk, tenant=tenant)
            if count.status != 'draft':
                raise InvalidTransitionError('Can only post draft cycle counts')
            lines = list(count.lines.select_related('product'))
            if any(line.counted_qty is None for line in lines):
                raise InventoryError('All lines must be counted before posting')

            total_variance = ZERO
            adjusted = 0
            for line in lines:
                if line.variance == 0:
                    continue
                set_stock(tenant, line.product, count.location, line.counted_qty,
                          reference_type='cycle_count', reference_id=count.id, lot_number=line.lot_number,
                          expiry_date=line.expiry_date, notes=f'Cycle count {count.count_number}',
                          user=request.user)
                total_variance += abs(line.variance)
                adjusted += 1

            count.status = 'completed'
            count.posted_at = timezone.now()
            count.save(update_fields=['status', 'posted_at', 'updated_at'])
    except InventoryError as e:
        logger.warning(f"Cycle count {pk} not posted: {e}")
        return _error(e)

    logger.info(f"Cycle count {count.count_number} posted, {adjusted} lines adjusted")
    create_audit_log(request=request, action='count', resource_type='cycle_count', resource_id=count.id,
                     resource_name=count.count_number, old_values={'status': 'draft'},
                     new_values={'status': 'completed', 'lines_adjusted': adjusted,
                                 'total_variance': total_variance},
                     notes=f'Posted count with {adjusted} variance line(s), total absolute variance {total_variance}')
    return Response(CycleCountSerializer(count, context=_document_context(request)).data)


@api_view(['POST'])
@permission_classes([IsTenantMember])
def cycle_count_cancel(request, pk):
    tenant = request.user.tenant
    with transaction.atomic():
        count = get_object_or_404(CycleCount.objects.select_for_update(), pk=pk, tenant=tenant)
        if count.status != 'draft':
            return Response({'error': 'Can only cancel draft cycle counts'}, status=status.HTTP_400_BAD_REQUEST)
        count.status = 'cancelled'
        count.save(update_fields=['status', 'updated_at'])
    create_audit_log(request=request, action='cancel', resource_type='cycle_count', resource_id=count.id,
                     resource_name=count.count_number, old_values={'status': 'draft'},
                     new_values={'status': 'cancelled'})
    return Response(CycleCountSerializer(count, context=_document_context(request)).data)
