"""
URL configuration for the back-office project.

Every app mounts its routes under `api/v1/`.
"""
from django.contrib import admin
from django.urls import path, include

admin.site.site_header = "Back Office Admin Panel"
admin.site.site_title = "Back Office Admin Portal"
admin.site.index_title = "Warehouse, Logistics & Tools"

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/v1/', include('backoffice.core.urls')),
    path('api/v1/', include('backoffice.catalog.urls')),
    path('api/v1/', include('backoffice.parties.urls')),
    path('api/v1/', include('backoffice.orders.urls')),
    path('api/v1/', include('backoffice.logistics.urls')),
    path('api/v1/', include('backoffice.tools.urls')),
    path('api/v1/', include('backoffice.tasks.urls')),
    path('api/v1/', include('backoffice.reports.urls')),
]
