from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.db.models import ProtectedError
from django.shortcuts import get_object_or_404

from backoffice.core.authorization import can_view_page, IsManagerOrReadOnly, IsApprover
from backoffice.core.utils import create_audit_log
from .filters import ClientFilter, SupplierFilter
from .models import Client, Supplier, Worker
from .serializers import ClientSerializer, SupplierSerializer, SupplierStatusSerializer, WorkerSerializer


# Client views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, can_view_page('/clients'), IsManagerOrReadOnly])
def client_list_create(request):
    """List all clients or create a new client"""
    if request.method == 'GET':
        clients = ClientFilter(request.query_params, queryset=Client.objects.all()).qs
        serializer = ClientSerializer(clients, many=True)
        return Response(serializer.data)
    else:
        serializer = ClientSerializer(data=request.data)
        if serializer.is_valid():
            client = serializer.save()
            create_audit_log(request, 'create', 'Client', client.id, object_name=client.name)
            return Response(serializer.data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, can_view_page('/clients'), IsManagerOrReadOnly])
def client_detail(request, pk):
    """Retrieve, update or delete a client"""
    client = get_object_or_404(Client, pk=pk)

    if request.method == 'GET':
        serializer = ClientSerializer(client)
        return Response(serializer.data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = ClientSerializer(client, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        try:
            client.delete()
        except ProtectedError:
            return Response(
                {'error': 'Client has orders or issuances and can not be deleted.'},
                status=status.HTTP_400_BAD_REQUEST
            )
        create_audit_log(request, 'delete', 'Client', pk, object_name=client.name)
        return Response(status=status.HTTP_204_NO_CONTENT)


# Supplier views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, can_view_page('/suppliers'), IsManagerOrReadOnly])
def supplier_list_create(request):
    """List suppliers (?status=, ?search=) or register a new supplier as Pending"""
    if request.method == 'GET':
        queryset = Supplier.objects.prefetch_related('supplied_products').all()
        suppliers = SupplierFilter(request.query_params, queryset=queryset).qs
        serializer = SupplierSerializer(suppliers, many=True)
        return Response(serializer.data)
    else:
        serializer = SupplierSerializer(data=request.data)
        if serializer.is_valid():
            supplier = serializer.save()
            create_audit_log(request, 'create', 'Supplier', supplier.id, object_name=supplier.name)
            return Response(serializer.data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, can_view_page('/suppliers'), IsManagerOrReadOnly])
def supplier_detail(request, pk):
    """Retrieve, update or delete a supplier"""
    supplier = get_object_or_404(Supplier, pk=pk)

    if request.method == 'GET':
        serializer = SupplierSerializer(supplier)
        return Response(serializer.data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = SupplierSerializer(supplier, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        try:
            supplier.delete()
        except ProtectedError:
            return Response(
                {'error': 'Supplier has purchase orders and can not be deleted.'},
                status=status.HTTP_400_BAD_REQUEST
            )
        create_audit_log(request, 'delete', 'Supplier', pk, object_name=supplier.name)
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST'])
@permission_classes([IsAuthenticated, can_view_page('/suppliers'), IsApprover])
def supplier_set_status(request, pk):
    """Approve or reject a supplier"""
    supplier = get_object_or_404(Supplier, pk=pk)
    serializer = SupplierStatusSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    old_status = supplier.status
    supplier.status = serializer.validated_data['status']
    supplier.save(update_fields=['status', 'updated_at'])
    create_audit_log(
        request, 'status_change', 'Supplier', supplier.id,
        changes={'status': {'old': old_status, 'new': supplier.status}}, object_name=supplier.name
    )
    return Response(SupplierSerializer(supplier).data)


# Worker views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, can_view_page('/tool-booking')])
def worker_list_create(request):
    """List workers or add one while booking a tool"""
    if request.method == 'GET':
        serializer = WorkerSerializer(Worker.objects.all(), many=True)
        return Response(serializer.data)
    else:
        serializer = WorkerSerializer(data=request.data)
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, can_view_page('/tool-booking'), IsManagerOrReadOnly])
def worker_detail(request, pk):
    """Retrieve, update or delete a worker"""
    worker = get_object_or_404(Worker, pk=pk)

    if request.method == 'GET':
        return Response(WorkerSerializer(worker).data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = WorkerSerializer(worker, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        worker.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)
