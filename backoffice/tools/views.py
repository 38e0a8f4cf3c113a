import logging

from django.db import transaction
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated

from backoffice.core.authorization import (
    AuthorizationContext, can_view_page, IsManager, IsManagerOrReadOnly, IsApprover
)
from backoffice.core.utils import create_audit_log
from . import lifecycle
from .filters import ToolFilter, ToolBookingFilter
from .lifecycle import ToolStateError, BookingStateError
from .models import Tool, ToolBooking, ToolWish
from .serializers import (
    ToolSerializer, ToolMovementSerializer, ConditionSerializer, AssignSerializer,
    CheckOutSerializer, NotesSerializer, ToolBookingSerializer, BookingReviewSerializer,
    ToolWishSerializer, ToolWishStatusSerializer
)

logger = logging.getLogger(__name__)

TOOL_RELATED = ('assigned_to', 'borrowed_by', 'borrowed_for')


def state_error_response(error):
    return Response({'error': str(error)}, status=status.HTTP_400_BAD_REQUEST)


def run_transition(request, pk, payload_serializer, transition):
    """Validate the payload, run a lifecycle transition and return the tool"""
    get_object_or_404(Tool, pk=pk)
    serializer = payload_serializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    try:
        tool = transition(serializer.validated_data)
    except ToolStateError as e:
        return state_error_response(e)
    tool = Tool.objects.select_related(*TOOL_RELATED).get(pk=tool.pk)
    return Response(ToolSerializer(tool).data)


# Tool views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, can_view_page('/tools'), IsManagerOrReadOnly])
def tool_list_create(request):
    """List tools (?status=, ?condition=, ?defective=, ?search=) or add a tool"""
    if request.method == 'GET':
        queryset = Tool.objects.select_related(*TOOL_RELATED).all()
        tools = ToolFilter(request.query_params, queryset=queryset).qs
        serializer = ToolSerializer(tools, many=True)
        return Response(serializer.data)
    else:
        serializer = ToolSerializer(data=request.data)
        if serializer.is_valid():
            tool = serializer.save()
            create_audit_log(request, 'create', 'Tool', tool.id, object_name=tool.name)
            return Response(serializer.data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, can_view_page('/tools'), IsManagerOrReadOnly])
def tool_detail(request, pk):
    """Retrieve, update or delete a tool"""
    tool = get_object_or_404(Tool.objects.select_related(*TOOL_RELATED), pk=pk)

    if request.method == 'GET':
        serializer = ToolSerializer(tool)
        return Response(serializer.data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = ToolSerializer(tool, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            create_audit_log(request, 'update', 'Tool', tool.id, changes=request.data, object_name=tool.name)
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        if tool.status in (Tool.STATUS_IN_USE, Tool.STATUS_ASSIGNED):
            return Response({'error': f"'{tool.name}' is {tool.status} and can not be deleted."},
                            status=status.HTTP_400_BAD_REQUEST)
        create_audit_log(request, 'delete', 'Tool', tool.id, object_name=tool.name)
        tool.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET'])
@permission_classes([IsAuthenticated, can_view_page('/tools')])
def tool_history(request, pk):
    """Lifecycle movements of a tool, newest first"""
    tool = get_object_or_404(Tool, pk=pk)
    movements = tool.movements.select_related('holder', 'worker', 'performed_by')
    return Response(ToolMovementSerializer(movements, many=True).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, can_view_page('/tool-accountability'), IsManager])
def tool_assign(request, pk):
    """Assign an available tool to a user for accountability"""
    return run_transition(request, pk, AssignSerializer, lambda data: lifecycle.assign_for_accountability(
        pk, data['user'], performed_by=request.user, request=request, notes=data['notes']
    ))


@api_view(['POST'])
@permission_classes([IsAuthenticated, can_view_page('/tool-accountability'), IsManager])
def tool_recall(request, pk):
    """Recall an assigned tool with the condition it came back in"""
    return run_transition(request, pk, ConditionSerializer, lambda data: lifecycle.recall(
        pk, data['condition'], performed_by=request.user, request=request, notes=data['notes']
    ))


@api_view(['POST'])
@permission_classes([IsAuthenticated, can_view_page('/tools'), IsManager])
def tool_check_out(request, pk):
    """Lend an available tool; the borrower defaults to the caller"""
    return run_transition(request, pk, CheckOutSerializer, lambda data: lifecycle.check_out(
        pk, data.get('borrower') or request.user, worker=data.get('worker'), due_date=data.get('due_date'),
        performed_by=request.user, request=request, notes=data['notes']
    ))


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def tool_return(request, pk):
    """Return a borrowed tool. Managers or the borrower."""
    tool = get_object_or_404(Tool, pk=pk)
    context = AuthorizationContext.for_request(request)
    if not context.can_manage and tool.borrowed_by_id != request.user.pk:
        return Response({'error': 'Only the borrower or a manager can return this tool.'},
                        status=status.HTTP_403_FORBIDDEN)
    return run_transition(request, pk, ConditionSerializer, lambda data: lifecycle.return_tool(
        pk, data['condition'], performed_by=request.user, request=request, notes=data['notes']
    ))


@api_view(['POST'])
@permission_classes([IsAuthenticated, can_view_page('/tool-maintenance'), IsManager])
def tool_start_maintenance(request, pk):
    return run_transition(request, pk, NotesSerializer, lambda data: lifecycle.start_maintenance(
        pk, performed_by=request.user, request=request, notes=data['notes']
    ))


@api_view(['POST'])
@permission_classes([IsAuthenticated, can_view_page('/tool-maintenance'), IsManager])
def tool_complete_maintenance(request, pk):
    return run_transition(request, pk, NotesSerializer, lambda data: lifecycle.complete_maintenance(
        pk, performed_by=request.user, request=request, notes=data['notes']
    ))


@api_view(['GET'])
@permission_classes([IsAuthenticated, can_view_page('/my-tools')])
def my_tools(request):
    """Tools the caller is accountable for and tools the caller has borrowed"""
    accountable = Tool.objects.select_related(*TOOL_RELATED).filter(assigned_to=request.user)
    borrowed = Tool.objects.select_related(*TOOL_RELATED).filter(
        borrowed_by=request.user, status=Tool.STATUS_IN_USE
    )
    return Response({
        'accountability': ToolSerializer(accountable, many=True).data,
        'borrowed': ToolSerializer(borrowed, many=True).data,
    })


# Booking views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, can_view_page('/tool-booking')])
def booking_list_create(request):
    """Approvers see every booking, others their own requests"""
    if request.method == 'GET':
        queryset = ToolBooking.objects.select_related('requested_by', 'requested_for', 'reviewed_by') \
            .prefetch_related('tools')
        if not AuthorizationContext.for_request(request).can_approve:
            queryset = queryset.filter(requested_by=request.user)
        bookings = ToolBookingFilter(request.query_params, queryset=queryset).qs
        return Response(ToolBookingSerializer(bookings, many=True).data)
    else:
        serializer = ToolBookingSerializer(data=request.data)
        if serializer.is_valid():
            booking = serializer.save(requested_by=request.user)
            create_audit_log(request, 'create', 'ToolBooking', booking.id, object_name=str(booking))
            return Response(ToolBookingSerializer(booking).data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'DELETE'])
@permission_classes([IsAuthenticated])
def booking_detail(request, pk):
    """Retrieve a booking, or withdraw it while it is still pending"""
    booking = get_object_or_404(ToolBooking, pk=pk)
    context = AuthorizationContext.for_request(request)
    is_owner = booking.requested_by_id == request.user.pk

    if not (is_owner or context.can_approve):
        return Response({'error': 'Permission denied'}, status=status.HTTP_403_FORBIDDEN)

    if request.method == 'GET':
        return Response(ToolBookingSerializer(booking).data)
    else:  # DELETE
        if not context.can_manage and booking.status != ToolBooking.STATUS_PENDING:
            return Response({'error': 'Only pending bookings can be withdrawn.'}, status=status.HTTP_400_BAD_REQUEST)
        booking.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsApprover])
def booking_approve(request, pk):
    """Approve a booking, moving all of its tools or none of them"""
    get_object_or_404(ToolBooking, pk=pk)
    try:
        booking = lifecycle.approve_booking(pk, performed_by=request.user, request=request)
    except (ToolStateError, BookingStateError) as e:
        return state_error_response(e)
    return Response(ToolBookingSerializer(booking).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsApprover])
def booking_reject(request, pk):
    get_object_or_404(ToolBooking, pk=pk)
    serializer = BookingReviewSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    try:
        booking = lifecycle.reject_booking(pk, performed_by=request.user,
                                           reason=serializer.validated_data['reason'], request=request)
    except BookingStateError as e:
        return state_error_response(e)
    return Response(ToolBookingSerializer(booking).data)


# Wishlist views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, can_view_page('/tool-wishlist')])
def wish_list_create(request):
    """Everyone on the wishlist page sees all wishes"""
    if request.method == 'GET':
        wishes = ToolWish.objects.select_related('requested_by')
        status_filter = request.query_params.get('status')
        if status_filter:
            wishes = wishes.filter(status__iexact=status_filter)
        return Response(ToolWishSerializer(wishes, many=True).data)
    else:
        serializer = ToolWishSerializer(data=request.data)
        if serializer.is_valid():
            serializer.save(requested_by=request.user)
            return Response(serializer.data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'DELETE'])
@permission_classes([IsAuthenticated, can_view_page('/tool-wishlist')])
def wish_detail(request, pk):
    """Retrieve a wish; admins and the requester can remove it"""
    wish = get_object_or_404(ToolWish.objects.select_related('requested_by'), pk=pk)

    if request.method == 'GET':
        return Response(ToolWishSerializer(wish).data)
    else:  # DELETE
        context = AuthorizationContext.for_request(request)
        if not (context.is_admin or wish.requested_by_id == request.user.pk):
            return Response({'error': 'Only the requester or an admin can remove this wish.'},
                            status=status.HTTP_403_FORBIDDEN)
        wish.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsApprover])
def wish_set_status(request, pk):
    """Approve or reject a wish; approving with create_tool adds it to the tools"""
    wish = get_object_or_404(ToolWish, pk=pk)
    serializer = ToolWishStatusSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data

    with transaction.atomic():
        old_status = wish.status
        wish.status = data['status']
        if data['create_tool'] and wish.created_tool_id is None:
            tool = Tool.objects.create(
                name=wish.tool_name,
                serial_number=data['serial_number'] or None,
                condition=Tool.CONDITION_GOOD,
                status=Tool.STATUS_AVAILABLE,
            )
            wish.created_tool = tool
            create_audit_log(request, 'create', 'Tool', tool.id, object_name=tool.name,
                             changes={'wish': wish.pk})
        wish.save()
        create_audit_log(request, 'status_change', 'ToolWish', wish.id, object_name=wish.tool_name,
                         changes={'status': {'old': old_status, 'new': wish.status}})
    return Response(ToolWishSerializer(wish).data)
