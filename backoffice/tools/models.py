from django.db import models

from backoffice.core.models import User
from backoffice.parties.models import Worker


class Tool(models.Model):
    """Tool owned by the company, tracked through its lifecycle"""
    STATUS_AVAILABLE = 'Available'
    STATUS_IN_USE = 'In Use'
    STATUS_ASSIGNED = 'Assigned'
    STATUS_MAINTENANCE = 'Under Maintenance'
    STATUS_CHOICES = [
        (STATUS_AVAILABLE, 'Available'),
        (STATUS_IN_USE, 'In Use'),
        (STATUS_ASSIGNED, 'Assigned'),
        (STATUS_MAINTENANCE, 'Under Maintenance'),
    ]

    CONDITION_GOOD = 'Good'
    CONDITION_NEEDS_REPAIR = 'Needs Repair'
    CONDITION_DAMAGED = 'Damaged'
    CONDITION_CHOICES = [
        (CONDITION_GOOD, 'Good'),
        (CONDITION_NEEDS_REPAIR, 'Needs Repair'),
        (CONDITION_DAMAGED, 'Damaged'),
    ]
    DEFECTIVE_CONDITIONS = (CONDITION_NEEDS_REPAIR, CONDITION_DAMAGED)

    name = models.CharField(max_length=200, db_index=True)
    serial_number = models.CharField(max_length=100, unique=True, blank=True, null=True)
    description = models.TextField(blank=True)
    location = models.CharField(max_length=100, blank=True)
    purchase_date = models.DateField(null=True, blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_AVAILABLE, db_index=True)
    condition = models.CharField(max_length=20, choices=CONDITION_CHOICES, default=CONDITION_GOOD)
    # Long-term accountability
    assigned_to = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='accountable_tools')
    # Current borrow record
    borrowed_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='borrowed_tools')
    borrowed_for = models.ForeignKey(Worker, on_delete=models.SET_NULL, null=True, blank=True, related_name='borrowed_tools')
    borrowed_at = models.DateTimeField(null=True, blank=True)
    due_date = models.DateField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.name} ({self.serial_number or 'no serial'})"

    @property
    def is_defective(self):
        return self.condition in self.DEFECTIVE_CONDITIONS

    class Meta:
        db_table = 'tools'
        ordering = ['name']


class ToolMovement(models.Model):
    """One lifecycle transition of a tool"""
    ACTION_ASSIGN = 'assign'
    ACTION_RECALL = 'recall'
    ACTION_CHECK_OUT = 'check_out'
    ACTION_RETURN = 'return'
    ACTION_MAINTENANCE_START = 'maintenance_start'
    ACTION_MAINTENANCE_COMPLETE = 'maintenance_complete'
    ACTION_CHOICES = [
        (ACTION_ASSIGN, 'Assigned for accountability'),
        (ACTION_RECALL, 'Recalled'),
        (ACTION_CHECK_OUT, 'Checked out'),
        (ACTION_RETURN, 'Returned'),
        (ACTION_MAINTENANCE_START, 'Sent to maintenance'),
        (ACTION_MAINTENANCE_COMPLETE, 'Maintenance completed'),
    ]

    tool = models.ForeignKey(Tool, on_delete=models.CASCADE, related_name='movements')
    action = models.CharField(max_length=30, choices=ACTION_CHOICES)
    from_status = models.CharField(max_length=20)
    to_status = models.CharField(max_length=20)
    condition = models.CharField(max_length=20)
    holder = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='tool_movements')
    worker = models.ForeignKey(Worker, on_delete=models.SET_NULL, null=True, blank=True, related_name='tool_movements')
    performed_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='performed_tool_movements')
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'tool_movements'
        ordering = ['-created_at', '-id']


class ToolBooking(models.Model):
    """Request to borrow tools or take them into accountability"""
    TYPE_BORROW = 'Borrow'
    TYPE_ACCOUNTABILITY = 'Accountability'
    TYPE_CHOICES = [
        (TYPE_BORROW, 'Borrow'),
        (TYPE_ACCOUNTABILITY, 'Accountability'),
    ]

    STATUS_PENDING = 'Pending'
    STATUS_APPROVED = 'Approved'
    STATUS_REJECTED = 'Rejected'
    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_APPROVED, 'Approved'),
        (STATUS_REJECTED, 'Rejected'),
    ]

    tools = models.ManyToManyField(Tool, related_name='bookings')
    requested_by = models.ForeignKey(User, on_delete=models.CASCADE, related_name='tool_bookings')
    requested_for = models.ForeignKey(Worker, on_delete=models.SET_NULL, null=True, blank=True, related_name='tool_bookings')
    booking_type = models.CharField(max_length=20, choices=TYPE_CHOICES, default=TYPE_BORROW)
    start_date = models.DateField(null=True, blank=True)
    end_date = models.DateField(null=True, blank=True)
    notes = models.TextField(blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING, db_index=True)
    reviewed_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='reviewed_tool_bookings')
    reviewed_at = models.DateTimeField(null=True, blank=True)
    rejection_reason = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.booking_type} booking #{self.pk}"

    class Meta:
        db_table = 'tool_bookings'
        ordering = ['-created_at']


class ToolWish(models.Model):
    """Wishlist entry for a tool the company does not have yet"""
    STATUS_PENDING = 'Pending'
    STATUS_APPROVED = 'Approved'
    STATUS_REJECTED = 'Rejected'
    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_APPROVED, 'Approved'),
        (STATUS_REJECTED, 'Rejected'),
    ]

    tool_name = models.CharField(max_length=200)
    reason = models.TextField(blank=True)
    requested_by = models.ForeignKey(User, on_delete=models.CASCADE, related_name='tool_wishes')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING)
    created_tool = models.ForeignKey(Tool, on_delete=models.SET_NULL, null=True, blank=True, related_name='wishes')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.tool_name

    class Meta:
        db_table = 'tool_wishes'
        ordering = ['-created_at']
