from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.shortcuts import get_object_or_404

from backoffice.core.authorization import AuthorizationContext, can_view_page, IsManager
from backoffice.core.utils import create_audit_log
from .filters import OrderFilter, PurchaseOrderFilter
from .models import Order, PurchaseOrder
from .serializers import OrderSerializer, PurchaseOrderSerializer
from .services import receive_purchase_order, PurchaseOrderStateError


def split_items(request):
    """Separate nested items from the parent payload"""
    data = request.data.copy()
    items_data = data.pop('items', None)
    return data, items_data


def forbidden_unless_manager(request):
    if not AuthorizationContext.for_request(request).can_manage:
        return Response({'error': 'Only managers can delete this record.'}, status=status.HTTP_403_FORBIDDEN)
    return None


# Order views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, can_view_page('/orders')])
def order_list_create(request):
    """List client orders or create one together with its items"""
    if request.method == 'GET':
        queryset = Order.objects.select_related('client').prefetch_related('items', 'items__product')
        orders = OrderFilter(request.query_params, queryset=queryset).qs
        serializer = OrderSerializer(orders, many=True)
        return Response(serializer.data)
    else:
        data, items_data = split_items(request)
        serializer = OrderSerializer(data=data, context={'items_data': items_data, 'request': request})
        if serializer.is_valid():
            order = serializer.save(created_by=request.user)
            create_audit_log(request, 'create', 'Order', order.id, object_name=order.order_number)
            return Response(OrderSerializer(order).data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, can_view_page('/orders')])
def order_detail(request, pk):
    """Retrieve, update or delete an order"""
    order = get_object_or_404(Order.objects.select_related('client').prefetch_related('items', 'items__product'), pk=pk)

    if request.method == 'GET':
        serializer = OrderSerializer(order)
        return Response(serializer.data)
    elif request.method in ('PUT', 'PATCH'):
        old_status = order.status
        data, items_data = split_items(request)
        serializer = OrderSerializer(
            order,
            data=data,
            partial=request.method == 'PATCH',
            context={'items_data': items_data, 'request': request}
        )
        if serializer.is_valid():
            order = serializer.save()
            if order.status != old_status:
                create_audit_log(
                    request, 'status_change', 'Order', order.id,
                    changes={'status': {'old': old_status, 'new': order.status}}, object_name=order.order_number
                )
            return Response(OrderSerializer(Order.objects.get(pk=order.pk)).data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        denied = forbidden_unless_manager(request)
        if denied:
            return denied
        create_audit_log(request, 'delete', 'Order', order.id, object_name=order.order_number)
        order.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


# Purchase order views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, can_view_page('/purchase-orders')])
def purchase_order_list_create(request):
    """List purchase orders or create one together with its items"""
    if request.method == 'GET':
        queryset = PurchaseOrder.objects.select_related('supplier').prefetch_related('items', 'items__product')
        purchase_orders = PurchaseOrderFilter(request.query_params, queryset=queryset).qs
        serializer = PurchaseOrderSerializer(purchase_orders, many=True)
        return Response(serializer.data)
    else:
        data, items_data = split_items(request)
        serializer = PurchaseOrderSerializer(data=data, context={'items_data': items_data, 'request': request})
        if serializer.is_valid():
            purchase_order = serializer.save(created_by=request.user)
            create_audit_log(request, 'create', 'PurchaseOrder', purchase_order.id, object_name=purchase_order.po_number)
            return Response(PurchaseOrderSerializer(purchase_order).data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, can_view_page('/purchase-orders')])
def purchase_order_detail(request, pk):
    """Retrieve, update or delete a purchase order"""
    purchase_order = get_object_or_404(
        PurchaseOrder.objects.select_related('supplier').prefetch_related('items', 'items__product'), pk=pk
    )

    if request.method == 'GET':
        serializer = PurchaseOrderSerializer(purchase_order)
        return Response(serializer.data)
    elif request.method in ('PUT', 'PATCH'):
        data, items_data = split_items(request)
        serializer = PurchaseOrderSerializer(
            purchase_order,
            data=data,
            partial=request.method == 'PATCH',
            context={'items_data': items_data, 'request': request}
        )
        if serializer.is_valid():
            purchase_order = serializer.save()
            return Response(PurchaseOrderSerializer(PurchaseOrder.objects.get(pk=purchase_order.pk)).data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        denied = forbidden_unless_manager(request)
        if denied:
            return denied
        if purchase_order.status == PurchaseOrder.STATUS_RECEIVED:
            return Response({'error': 'A received purchase order can not be deleted.'}, status=status.HTTP_400_BAD_REQUEST)
        create_audit_log(request, 'delete', 'PurchaseOrder', purchase_order.id, object_name=purchase_order.po_number)
        purchase_order.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST'])
@permission_classes([IsAuthenticated, can_view_page('/purchase-orders'), IsManager])
def purchase_order_receive(request, pk):
    """Book the delivered goods into stock"""
    get_object_or_404(PurchaseOrder, pk=pk)
    try:
        purchase_order, received = receive_purchase_order(pk)
    except PurchaseOrderStateError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

    create_audit_log(
        request, 'po_receive', 'PurchaseOrder', purchase_order.id,
        changes={'received': received}, object_name=purchase_order.po_number
    )
    return Response(PurchaseOrderSerializer(PurchaseOrder.objects.get(pk=purchase_order.pk)).data)
