import logging
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from django.shortcuts import get_object_or_404
from django.db import IntegrityError
from django.db.models import ProtectedError
from backend.core.cache_utils import invalidate_stock_cache
from backend.core.permissions import IsTenantMember
from backend.core.utils import create_audit_log, model_snapshot
from backend.inventory.models import InventoryBalance
from .models import Location
from .serializers import LocationSerializer

logger = logging.getLogger('backend.locations')

LOCATION_AUDIT_FIELDS = ['name', 'type', 'parent', 'active']


@api_view(['GET', 'POST'])
@permission_classes([IsTenantMember])
def location_list_create(request):
    """List the tenant's locations or create a new location"""
    tenant = request.user.tenant
    if request.method == 'GET':
        locations = Location.objects.filter(tenant=tenant).select_related('parent').order_by('name')
        active = request.query_params.get('active')
        if active in ('true', 'false'):
            locations = locations.filter(active=active == 'true')
        location_type = request.query_params.get('type')
        if location_type:
            locations = locations.filter(type=location_type)
        return Response(LocationSerializer(locations, many=True, context={'tenant': tenant}).data)

    serializer = LocationSerializer(data=request.data, context={'tenant': tenant})
    if not serializer.is_valid():
        logger.warning(f"Location creation validation failed: {serializer.errors}")
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    try:
        location = serializer.save()
    except IntegrityError:
        return Response({'name': ['Location name already exists']}, status=status.HTTP_400_BAD_REQUEST)

    logger.info(f"Location '{location.name}' created by {request.user.email}")
    create_audit_log(request=request, action='create', resource_type='location', resource_id=location.id,
                     resource_name=location.name, new_values=model_snapshot(location, LOCATION_AUDIT_FIELDS))
    return Response(LocationSerializer(location, context={'tenant': tenant}).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsTenantMember])
def location_detail(request, pk):
    """Retrieve, update or delete a location"""
    tenant = request.user.tenant
    location = get_object_or_404(Location, pk=pk, tenant=tenant)

    if request.method == 'GET':
        return Response(LocationSerializer(location, context={'tenant': tenant}).data)

    if request.method in ('PUT', 'PATCH'):
        old_values = model_snapshot(location, LOCATION_AUDIT_FIELDS)
        serializer = LocationSerializer(location, data=request.data, partial=request.method == 'PATCH',
                                        context={'tenant': tenant})
        if not serializer.is_valid():
            logger.warning(f"Location update validation failed: {serializer.errors}")
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        try:
            location = serializer.save()
        except IntegrityError:
            return Response({'name': ['Location name already exists']}, status=status.HTTP_400_BAD_REQUEST)
        create_audit_log(request=request, action='update', resource_type='location', resource_id=location.id,
                         resource_name=location.name, old_values=old_values,
                         new_values=model_snapshot(location, LOCATION_AUDIT_FIELDS))
        invalidate_stock_cache(tenant.id)
        return Response(serializer.data)

    # DELETE
    if InventoryBalance.objects.filter(tenant=tenant, location=location).exclude(qty_on_hand=0).exists():
        logger.warning(f"Refused to delete location {pk}: inventory on hand")
        return Response({'error': 'Cannot delete location with existing inventory'}, status=status.HTTP_400_BAD_REQUEST)

    old_values = model_snapshot(location, LOCATION_AUDIT_FIELDS)
    logger.info(f"User {request.user.email} deleting location {pk} ({location.name})")
    try:
        location.delete()
    except ProtectedError:
        return Response({'error': 'Cannot delete location referenced by stock documents. Deactivate it instead.'},
                        status=status.HTTP_400_BAD_REQUEST)
    create_audit_log(request=request, action='delete', resource_type='location', resource_id=pk,
                     resource_name=old_values['name'], old_values=old_values)
    invalidate_stock_cache(tenant.id)
    return Response(status=status.HTTP_204_NO_CONTENT)
