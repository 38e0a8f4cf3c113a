from django.contrib.auth.models import AbstractUser
from django.db import models


class User(AbstractUser):
    """Back-office user with a role and per-page permissions"""
    ROLE_ADMIN = 'Admin'
    ROLE_MANAGER = 'Manager'
    ROLE_APPROVER = 'Approver'
    ROLE_STAFF = 'Staff'
    ROLE_CHOICES = [
        (ROLE_ADMIN, 'Admin'),
        (ROLE_MANAGER, 'Manager'),
        (ROLE_APPROVER, 'Approver'),
        (ROLE_STAFF, 'Staff'),
    ]

    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default=ROLE_STAFF, db_index=True)
    # Page paths this user may open, e.g. ["/tools", "/tool-booking"]. Admin and Manager ignore it.
    permissions = models.JSONField(default=list, blank=True)
    phone = models.CharField(max_length=20, blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def get_display_first_name(self):
        """First name, or the local part of the e-mail, or a generic greeting"""
        if self.first_name:
            return self.first_name
        if self.email:
            return self.email.split('@')[0]
        return 'User'

    class Meta:
        db_table = 'users'


class Setting(models.Model):
    """System settings"""
    key = models.CharField(max_length=100, unique=True)
    value = models.TextField()
    description = models.TextField(blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.key

    class Meta:
        db_table = 'settings'


class AuditLog(models.Model):
    """Audit log for critical operations"""
    ACTION_CHOICES = [
        ('create', 'Create'),
        ('update', 'Update'),
        ('delete', 'Delete'),
        ('status_change', 'Status Changed'),
        ('stock_update', 'Stock Updated'),
        ('tool_assign', 'Tool Assigned'),
        ('tool_recall', 'Tool Recalled'),
        ('tool_checkout', 'Tool Checked Out'),
        ('tool_return', 'Tool Returned'),
        ('tool_maintenance', 'Tool Maintenance'),
        ('booking_approve', 'Booking Approved'),
        ('booking_reject', 'Booking Rejected'),
        ('delivery_confirm', 'Delivery Confirmed'),
        ('po_receive', 'Purchase Order Received'),
    ]

    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, related_name='audit_logs')
    action = models.CharField(max_length=50, choices=ACTION_CHOICES)
    model_name = models.CharField(max_length=100)
    object_id = models.CharField(max_length=100)
    object_name = models.CharField(max_length=255, blank=True, null=True, help_text="Human-readable name of the object (e.g., tool name, order number)")
    changes = models.JSONField(default=dict, blank=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'audit_logs'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['-created_at'], name='idx_audit_created'),
            models.Index(fields=['action'], name='idx_audit_action'),
            models.Index(fields=['model_name'], name='idx_audit_model'),
        ]
