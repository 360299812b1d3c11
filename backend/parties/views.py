import logging
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from django.db import IntegrityError
from django.db.models import Q
from django.shortcuts import get_object_or_404
from backend.core.permissions import IsTenantMember
from backend.core.utils import create_audit_log, model_snapshot
from .models import Supplier, Customer
from .serializers import SupplierSerializer, CustomerSerializer

logger = logging.getLogger('backend.parties')

PARTY_AUDIT_FIELDS = ['code', 'name', 'contact_name', 'email', 'phone', 'address', 'active']


def _list_create(request, model, serializer_class, resource_type):
    tenant = request.user.tenant
    if request.method == 'GET':
        queryset = model.objects.filter(tenant=tenant).order_by('name')
        search = request.query_params.get('search')
        if search:
            queryset = queryset.filter(
                Q(name__icontains=search) |
                Q(code__icontains=search) |
                Q(email__icontains=search) |
                Q(phone__icontains=search)
            )
        active = request.query_params.get('active')
        if active in ('true', 'false'):
            queryset = queryset.filter(active=active == 'true')
        return Response(serializer_class(queryset, many=True, context={'tenant': tenant}).data)

    serializer = serializer_class(data=request.data, context={'tenant': tenant})
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    try:
        party = serializer.save()
    except IntegrityError:
        return Response({'code': ['Code already exists']}, status=status.HTTP_400_BAD_REQUEST)
    logger.info(f"{resource_type.title()} {party.code} created in tenant {tenant.id}")
    create_audit_log(request=request, action='create', resource_type=resource_type, resource_id=party.id,
                     resource_name=party.name, new_values=model_snapshot(party, PARTY_AUDIT_FIELDS))
    return Response(serializer_class(party, context={'tenant': tenant}).data, status=status.HTTP_201_CREATED)


def _detail(request, pk, model, serializer_class, resource_type, in_use):
    tenant = request.user.tenant
    party = get_object_or_404(model, pk=pk, tenant=tenant)

    if request.method == 'GET':
        return Response(serializer_class(party, context={'tenant': tenant}).data)

    if request.method in ('PUT', 'PATCH'):
        old_values = model_snapshot(party, PARTY_AUDIT_FIELDS)
        serializer = serializer_class(party, data=request.data, partial=request.method == 'PATCH',
                                      context={'tenant': tenant})
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        try:
            party = serializer.save()
        except IntegrityError:
            return Response({'code': ['Code already exists']}, status=status.HTTP_400_BAD_REQUEST)
        create_audit_log(request=request, action='update', resource_type=resource_type, resource_id=party.id,
                         resource_name=party.name, old_values=old_values,
                         new_values=model_snapshot(party, PARTY_AUDIT_FIELDS))
        return Response(serializer.data)

    # DELETE
    blocked = in_use(party)
    if blocked:
        logger.warning(f"Refused to delete {resource_type} {pk}: {blocked}")
        return Response({'error': blocked}, status=status.HTTP_400_BAD_REQUEST)
    old_values = model_snapshot(party, PARTY_AUDIT_FIELDS)
    party.delete()
    create_audit_log(request=request, action='delete', resource_type=resource_type, resource_id=pk,
                     resource_name=old_values['name'], old_values=old_values)
    return Response(status=status.HTTP_204_NO_CONTENT)


def _supplier_in_use(supplier):
    if supplier.purchase_orders.exists():
        return 'Cannot delete supplier with existing purchase orders. Deactivate instead.'
    return None


def _customer_in_use(customer):
    if customer.shipments.exists():
        return 'Cannot delete customer with existing shipments. Deactivate instead.'
    return None


# Supplier views
@api_view(['GET', 'POST'])
@permission_classes([IsTenantMember])
def supplier_list_create(request):
    """List all suppliers or create a new supplier"""
    return _list_create(request, Supplier, SupplierSerializer, 'supplier')


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsTenantMember])
def supplier_detail(request, pk):
    """Retrieve, update or delete a supplier"""
    return _detail(request, pk, Supplier, SupplierSerializer, 'supplier', _supplier_in_use)


# Customer views
@api_view(['GET', 'POST'])
@permission_classes([IsTenantMember])
def customer_list_create(request):
    """List all customers or create a new customer"""
    return _list_create(request, Customer, CustomerSerializer, 'customer')


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsTenantMember])
def customer_detail(request, pk):
    """Retrieve, update or delete a customer"""
    return _detail(request, pk, Customer, CustomerSerializer, 'customer', _customer_in_use)
