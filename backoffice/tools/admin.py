from django.contrib import admin
from .models import Tool, ToolMovement, ToolBooking, ToolWish


class ToolMovementInline(admin.TabularInline):
    model = ToolMovement
    fk_name = 'tool'
    extra = 0
    readonly_fields = ['action', 'from_status', 'to_status', 'condition', 'holder', 'worker', 'performed_by', 'notes', 'created_at']


@admin.register(Tool)
class ToolAdmin(admin.ModelAdmin):
    list_display = ['name', 'serial_number', 'status', 'condition', 'assigned_to', 'borrowed_by', 'due_date']
    list_filter = ['status', 'condition']
    search_fields = ['name', 'serial_number']
    # Lifecycle fields are changed through the API actions
    readonly_fields = ['status', 'assigned_to', 'borrowed_by', 'borrowed_for', 'borrowed_at', 'due_date']
    inlines = [ToolMovementInline]


@admin.register(ToolBooking)
class ToolBookingAdmin(admin.ModelAdmin):
    list_display = ['id', 'booking_type', 'requested_by', 'requested_for', 'status', 'start_date', 'end_date']
    list_filter = ['status', 'booking_type']


@admin.register(ToolWish)
class ToolWishAdmin(admin.ModelAdmin):
    list_display = ['tool_name', 'requested_by', 'status', 'created_at']
    list_filter = ['status']
    search_fields = ['tool_name']
