from django.contrib import admin
from .models import Vehicle, Issuance, IssuanceItem, Shipment


@admin.register(Vehicle)
class VehicleAdmin(admin.ModelAdmin):
    list_display = ['plate_number', 'vehicle_type', 'make', 'model', 'year', 'status', 'registration_expiry_date']
    list_filter = ['status', 'vehicle_type']
    search_fields = ['plate_number', 'make', 'model']


class IssuanceItemInline(admin.TabularInline):
    model = IssuanceItem
    extra = 0


@admin.register(Issuance)
class IssuanceAdmin(admin.ModelAdmin):
    list_display = ['issuance_number', 'client', 'date', 'issued_by']
    search_fields = ['issuance_number', 'client__name']
    inlines = [IssuanceItemInline]


@admin.register(Shipment)
class ShipmentAdmin(admin.ModelAdmin):
    list_display = ['shipment_number', 'issuance', 'vehicle', 'status', 'estimated_delivery_date', 'actual_delivery_date']
    list_filter = ['status']
    search_fields = ['shipment_number', 'issuance__issuance_number']
