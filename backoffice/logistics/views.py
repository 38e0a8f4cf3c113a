import logging

from django.db import transaction
from django.shortcuts import get_object_or_404
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated

from backoffice.catalog.models import Product
from backoffice.core.authorization import AuthorizationContext, can_view_page, IsManagerOrReadOnly, IsManager
from backoffice.core.utils import create_audit_log
from .models import Vehicle, Issuance, Shipment
from .serializers import (
    VehicleSerializer, IssuanceSerializer, ShipmentSerializer,
    ShipmentDetailSerializer, ConfirmDeliverySerializer
)

logger = logging.getLogger(__name__)


# Vehicle views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, can_view_page('/vehicles'), IsManagerOrReadOnly])
def vehicle_list_create(request):
    """List the fleet or register a vehicle"""
    if request.method == 'GET':
        vehicles = Vehicle.objects.all()
        status_filter = request.query_params.get('status')
        if status_filter:
            vehicles = vehicles.filter(status__iexact=status_filter)
        serializer = VehicleSerializer(vehicles, many=True)
        return Response(serializer.data)
    else:
        serializer = VehicleSerializer(data=request.data)
        if serializer.is_valid():
            vehicle = serializer.save()
            create_audit_log(request, 'create', 'Vehicle', vehicle.id, object_name=vehicle.plate_number)
            return Response(serializer.data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, can_view_page('/vehicles'), IsManagerOrReadOnly])
def vehicle_detail(request, pk):
    """Retrieve, update or delete a vehicle"""
    vehicle = get_object_or_404(Vehicle, pk=pk)

    if request.method == 'GET':
        serializer = VehicleSerializer(vehicle)
        return Response(serializer.data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = VehicleSerializer(vehicle, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        create_audit_log(request, 'delete', 'Vehicle', vehicle.id, object_name=vehicle.plate_number)
        vehicle.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


# Issuance views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, can_view_page('/issuance')])
def issuance_list_create(request):
    """List issuances or issue materials to a client"""
    if request.method == 'GET':
        issuances = Issuance.objects.select_related('client').prefetch_related('items', 'items__product')
        client_id = request.query_params.get('client')
        if client_id:
            issuances = issuances.filter(client_id=client_id)
        serializer = IssuanceSerializer(issuances, many=True)
        return Response(serializer.data)
    else:
        data = request.data.copy()
        items_data = data.pop('items', None)
        serializer = IssuanceSerializer(data=data, context={'items_data': items_data, 'request': request})
        if serializer.is_valid():
            issuance = serializer.save(issued_by=request.user)
            create_audit_log(request, 'create', 'Issuance', issuance.id, object_name=issuance.issuance_number)
            return Response(IssuanceSerializer(issuance).data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, can_view_page('/issuance')])
def issuance_detail(request, pk):
    """Retrieve an issuance, edit its notes and date, or cancel it (managers)"""
    issuance = get_object_or_404(Issuance.objects.select_related('client'), pk=pk)

    if request.method == 'GET':
        serializer = IssuanceSerializer(issuance)
        return Response(serializer.data)
    elif request.method == 'PATCH':
        serializer = IssuanceSerializer(issuance, data=request.data, partial=True)
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE - issued quantities go back into stock
        if not AuthorizationContext.for_request(request).can_manage:
            return Response({'error': IsManager.message}, status=status.HTTP_403_FORBIDDEN)
        with transaction.atomic():
            for item in issuance.items.all():
                product = Product.objects.select_for_update().get(pk=item.product_id)
                product.stock += item.quantity
                product.save(update_fields=['stock', 'last_updated'])
                product.record_stock(product.stock)
            create_audit_log(request, 'delete', 'Issuance', issuance.id, object_name=issuance.issuance_number)
            issuance.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


# Shipment views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, can_view_page('/logistics')])
def shipment_list_create(request):
    """List shipments or schedule one for an issuance"""
    if request.method == 'GET':
        shipments = Shipment.objects.select_related('issuance', 'issuance__client', 'vehicle')
        status_filter = request.query_params.get('status')
        if status_filter:
            shipments = shipments.filter(status__iexact=status_filter)
        serializer = ShipmentSerializer(shipments, many=True)
        return Response(serializer.data)
    else:
        serializer = ShipmentSerializer(data=request.data)
        if serializer.is_valid():
            shipment = serializer.save()
            create_audit_log(request, 'create', 'Shipment', shipment.id, object_name=shipment.shipment_number)
            return Response(serializer.data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, can_view_page('/logistics')])
def shipment_detail(request, pk):
    """Shipment with its issuance, client and products resolved"""
    shipment = get_object_or_404(
        Shipment.objects.select_related('issuance', 'issuance__client', 'vehicle'), pk=pk
    )
    if shipment.issuance is None:
        logger.warning(f"Shipment {shipment.shipment_number} has lost its issuance")
        return Response({'error': 'Shipment not found.'}, status=status.HTTP_404_NOT_FOUND)

    if request.method == 'GET':
        serializer = ShipmentDetailSerializer(shipment)
        return Response(serializer.data)
    elif request.method in ('PUT', 'PATCH'):
        old_status = shipment.status
        serializer = ShipmentSerializer(shipment, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            shipment = serializer.save()
            if shipment.status != old_status:
                create_audit_log(
                    request, 'status_change', 'Shipment', shipment.id,
                    changes={'status': {'old': old_status, 'new': shipment.status}},
                    object_name=shipment.shipment_number
                )
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        if not AuthorizationContext.for_request(request).can_manage:
            return Response({'error': IsManager.message}, status=status.HTTP_403_FORBIDDEN)
        create_audit_log(request, 'delete', 'Shipment', shipment.id, object_name=shipment.shipment_number)
        shipment.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST'])
@permission_classes([IsAuthenticated, can_view_page('/logistics')])
def shipment_confirm_delivery(request, pk):
    """Record proof of delivery (signature and photo) and close the shipment"""
    serializer = ConfirmDeliverySerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    with transaction.atomic():
        shipment = get_object_or_404(Shipment.objects.select_for_update(), pk=pk)
        if shipment.issuance_id is None:
            return Response({'error': 'Shipment not found.'}, status=status.HTTP_404_NOT_FOUND)
        if shipment.status == Shipment.STATUS_DELIVERED:
            return Response({'error': 'This shipment has already been delivered.'}, status=status.HTTP_400_BAD_REQUEST)

        old_status = shipment.status
        shipment.status = Shipment.STATUS_DELIVERED
        shipment.actual_delivery_date = timezone.localdate()
        shipment.signature = serializer.validated_data['signature']
        shipment.delivery_photo_url = serializer.validated_data['delivery_photo_url']
        shipment.save()

    create_audit_log(
        request, 'delivery_confirm', 'Shipment', shipment.id,
        changes={'status': {'old': old_status, 'new': shipment.status}},
        object_name=shipment.shipment_number
    )
    logger.info(f"Shipment {shipment.shipment_number} delivered")
    return Response(ShipmentDetailSerializer(shipment).data)
