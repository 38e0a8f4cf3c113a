"""
Tool lifecycle.

    Available --assign_for_accountability--> Assigned --recall--> Available | Under Maintenance
    Available --check_out--> In Use --return_tool--> Available | Under Maintenance
    Available --start_maintenance--> Under Maintenance --complete_maintenance--> Available

Every transition locks the tool row, checks the current status, and records a
ToolMovement plus an audit log entry in the same transaction. Calling an
operation from any other status raises ToolStateError and changes nothing.
"""
import logging

from django.db import transaction
from django.utils import timezone

from backoffice.core.utils import create_audit_log
from .models import Tool, ToolMovement, ToolBooking

logger = logging.getLogger(__name__)


class ToolStateError(Exception):
    """Raised when a lifecycle operation is not allowed in the tool's current status"""

    def __init__(self, tool, operation, allowed):
        self.tool_id = tool.pk
        self.status = tool.status
        self.operation = operation
        super().__init__(
            f"Can not {operation} '{tool.name}': it is {tool.status}, expected {' or '.join(allowed)}."
        )


class BookingStateError(Exception):
    """Raised when a booking has already been reviewed"""


def _lock(tool):
    return Tool.objects.select_for_update().get(pk=getattr(tool, 'pk', tool))


def _require(tool, operation, *allowed):
    if tool.status not in allowed:
        raise ToolStateError(tool, operation, allowed)


def _check_condition(condition):
    valid = [value for value, _label in Tool.CONDITION_CHOICES]
    if condition not in valid:
        raise ValueError(f"Unknown condition {condition!r}, expected one of {', '.join(valid)}")


def _status_for_condition(condition):
    """Tools coming back in bad shape go straight to maintenance"""
    if condition == Tool.CONDITION_GOOD:
        return Tool.STATUS_AVAILABLE
    return Tool.STATUS_MAINTENANCE


def _record(tool, action, from_status, audit_action, performed_by=None, request=None,
            holder=None, worker=None, notes=''):
    ToolMovement.objects.create(
        tool=tool,
        action=action,
        from_status=from_status,
        to_status=tool.status,
        condition=tool.condition,
        holder=holder,
        worker=worker,
        performed_by=performed_by,
        notes=notes or '',
    )
    create_audit_log(
        request=request,
        action=audit_action,
        model_name='Tool',
        object_id=tool.pk,
        user=performed_by,
        object_name=tool.name,
        changes={
            'status': {'old': from_status, 'new': tool.status},
            'condition': tool.condition,
            'holder': holder.pk if holder else None,
            'notes': notes or '',
        },
    )
    logger.info(f"Tool {tool.pk} '{tool.name}': {action} {from_status} -> {tool.status}")


def _clear_borrow(tool):
    tool.borrowed_by = None
    tool.borrowed_for = None
    tool.borrowed_at = None
    tool.due_date = None


def assign_for_accountability(tool, user, performed_by=None, request=None, notes=''):
    """Hand an available tool to `user` for long-term accountability"""
    with transaction.atomic():
        tool = _lock(tool)
        _require(tool, 'assign', Tool.STATUS_AVAILABLE)
        from_status = tool.status
        tool.status = Tool.STATUS_ASSIGNED
        tool.assigned_to = user
        tool.save()
        _record(tool, ToolMovement.ACTION_ASSIGN, from_status, 'tool_assign',
                performed_by=performed_by, request=request, holder=user, notes=notes)
    return tool


def recall(tool, condition, performed_by=None, request=None, notes=''):
    """Take an assigned tool back, recording the condition it came back in"""
    _check_condition(condition)
    with transaction.atomic():
        tool = _lock(tool)
        _require(tool, 'recall', Tool.STATUS_ASSIGNED)
        from_status = tool.status
        holder = tool.assigned_to
        tool.status = _status_for_condition(condition)
        tool.condition = condition
        tool.assigned_to = None
        tool.save()
        _record(tool, ToolMovement.ACTION_RECALL, from_status, 'tool_recall',
                performed_by=performed_by, request=request, holder=holder, notes=notes)
    return tool


def check_out(tool, borrower, worker=None, due_date=None, performed_by=None, request=None, notes=''):
    """Lend an available tool to `borrower`, optionally on behalf of a worker"""
    with transaction.atomic():
        tool = _lock(tool)
        _require(tool, 'check out', Tool.STATUS_AVAILABLE)
        from_status = tool.status
        tool.status = Tool.STATUS_IN_USE
        tool.borrowed_by = borrower
        tool.borrowed_for = worker
        tool.borrowed_at = timezone.now()
        tool.due_date = due_date
        tool.save()
        _record(tool, ToolMovement.ACTION_CHECK_OUT, from_status, 'tool_checkout',
                performed_by=performed_by, request=request, holder=borrower, worker=worker, notes=notes)
    return tool


def return_tool(tool, condition, performed_by=None, request=None, notes=''):
    """Bring a borrowed tool back"""
    _check_condition(condition)
    with transaction.atomic():
        tool = _lock(tool)
        _require(tool, 'return', Tool.STATUS_IN_USE)
        from_status = tool.status
        holder = tool.borrowed_by
        worker = tool.borrowed_for
        tool.status = _status_for_condition(condition)
        tool.condition = condition
        _clear_borrow(tool)
        tool.save()
        _record(tool, ToolMovement.ACTION_RETURN, from_status, 'tool_return',
                performed_by=performed_by, request=request, holder=holder, worker=worker, notes=notes)
    return tool


def start_maintenance(tool, performed_by=None, request=None, notes=''):
    with transaction.atomic():
        tool = _lock(tool)
        _require(tool, 'send to maintenance', Tool.STATUS_AVAILABLE)
        from_status = tool.status
        tool.status = Tool.STATUS_MAINTENANCE
        tool.save()
        _record(tool, ToolMovement.ACTION_MAINTENANCE_START, from_status, 'tool_maintenance',
                performed_by=performed_by, request=request, notes=notes)
    return tool


def complete_maintenance(tool, performed_by=None, request=None, notes=''):
    """Repaired tools are available again and in good condition"""
    with transaction.atomic():
        tool = _lock(tool)
        _require(tool, 'complete maintenance of', Tool.STATUS_MAINTENANCE)
        from_status = tool.status
        tool.status = Tool.STATUS_AVAILABLE
        tool.condition = Tool.CONDITION_GOOD
        tool.save()
        _record(tool, ToolMovement.ACTION_MAINTENANCE_COMPLETE, from_status, 'tool_maintenance',
                performed_by=performed_by, request=request, notes=notes)
    return tool


def approve_booking(booking, performed_by, request=None):
    """Approve a pending booking and move every tool in it.

    All tools move or none do: one unavailable tool rolls the whole approval back.
    """
    with transaction.atomic():
        booking = ToolBooking.objects.select_for_update().get(pk=getattr(booking, 'pk', booking))
        if booking.status != ToolBooking.STATUS_PENDING:
            raise BookingStateError(f"Booking #{booking.pk} is already {booking.status}.")

        note = f"Booking #{booking.pk}"
        for tool in booking.tools.order_by('pk'):
            if booking.booking_type == ToolBooking.TYPE_ACCOUNTABILITY:
                assign_for_accountability(tool, booking.requested_by, performed_by=performed_by,
                                          request=request, notes=note)
            else:
                check_out(tool, booking.requested_by, worker=booking.requested_for, due_date=booking.end_date,
                          performed_by=performed_by, request=request, notes=note)

        booking.status = ToolBooking.STATUS_APPROVED
        booking.reviewed_by = performed_by
        booking.reviewed_at = timezone.now()
        booking.save()
        create_audit_log(request=request, action='booking_approve', model_name='ToolBooking',
                         object_id=booking.pk, user=performed_by, object_name=str(booking))
    return booking


def reject_booking(booking, performed_by, reason='', request=None):
    with transaction.atomic():
        booking = ToolBooking.objects.select_for_update().get(pk=getattr(booking, 'pk', booking))
        if booking.status != ToolBooking.STATUS_PENDING:
            raise BookingStateError(f"Booking #{booking.pk} is already {booking.status}.")
        booking.status = ToolBooking.STATUS_REJECTED
        booking.reviewed_by = performed_by
        booking.reviewed_at = timezone.now()
        booking.rejection_reason = reason or ''
        booking.save()
        create_audit_log(request=request, action='booking_reject', model_name='ToolBooking',
                         object_id=booking.pk, user=performed_by, object_name=str(booking),
                         changes={'reason': reason or ''})
    return booking
