from django.contrib import admin
from .models import Client, Supplier, Worker


@admin.register(Client)
class ClientAdmin(admin.ModelAdmin):
    list_display = ['name', 'project_name', 'contact_person', 'phone', 'email', 'created_at']
    search_fields = ['name', 'project_name', 'contact_person', 'email']
    ordering = ['name']


@admin.register(Supplier)
class SupplierAdmin(admin.ModelAdmin):
    list_display = ['name', 'contact_person', 'supplier_type', 'status', 'phone', 'created_at']
    list_filter = ['status', 'supplier_type']
    search_fields = ['name', 'contact_person', 'email']
    filter_horizontal = ['supplied_products']
    ordering = ['name']


@admin.register(Worker)
class WorkerAdmin(admin.ModelAdmin):
    list_display = ['name', 'position', 'phone']
    search_fields = ['name', 'position']
