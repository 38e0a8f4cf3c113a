from django.urls import path
from .views import (
    vehicle_list_create, vehicle_detail,
    issuance_list_create, issuance_detail,
    shipment_list_create, shipment_detail, shipment_confirm_delivery,
)

urlpatterns = [
    # Vehicle endpoints
    path('vehicles/', vehicle_list_create, name='vehicle-list-create'),
    path('vehicles/<int:pk>/', vehicle_detail, name='vehicle-detail'),

    # Issuance endpoints
    path('issuances/', issuance_list_create, name='issuance-list-create'),
    path('issuances/<int:pk>/', issuance_detail, name='issuance-detail'),

    # Shipment endpoints
    path('shipments/', shipment_list_create, name='shipment-list-create'),
    path('shipments/<int:pk>/', shipment_detail, name='shipment-detail'),
    path('shipments/<int:pk>/confirm-delivery/', shipment_confirm_delivery, name='shipment-confirm-delivery'),
]
