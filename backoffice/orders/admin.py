from django.contrib import admin
from .models import Order, OrderItem, PurchaseOrder, PurchaseOrderItem


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ['order_number', 'client', 'status', 'order_date', 'created_at']
    list_filter = ['status', 'order_date']
    search_fields = ['order_number', 'client__name']
    inlines = [OrderItemInline]


class PurchaseOrderItemInline(admin.TabularInline):
    model = PurchaseOrderItem
    extra = 0


@admin.register(PurchaseOrder)
class PurchaseOrderAdmin(admin.ModelAdmin):
    list_display = ['po_number', 'supplier', 'status', 'order_date', 'expected_date', 'received_at']
    list_filter = ['status', 'order_date']
    search_fields = ['po_number', 'supplier__name']
    readonly_fields = ['received_at']
    inlines = [PurchaseOrderItemInline]
