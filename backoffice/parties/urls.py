from django.urls import path
from .views import (
    client_list_create, client_detail,
    supplier_list_create, supplier_detail, supplier_set_status,
    worker_list_create, worker_detail,
)

urlpatterns = [
    # Client endpoints
    path('clients/', client_list_create, name='client-list-create'),
    path('clients/<int:pk>/', client_detail, name='client-detail'),

    # Supplier endpoints
    path('suppliers/', supplier_list_create, name='supplier-list-create'),
    path('suppliers/<int:pk>/', supplier_detail, name='supplier-detail'),
    path('suppliers/<int:pk>/status/', supplier_set_status, name='supplier-set-status'),

    # Worker endpoints
    path('workers/', worker_list_create, name='worker-list-create'),
    path('workers/<int:pk>/', worker_detail, name='worker-detail'),
]
