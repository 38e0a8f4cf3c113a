from django.urls import path
from .views import tool_status, analytics

urlpatterns = [
    path('reports/tool-status/', tool_status, name='report-tool-status'),
    path('reports/analytics/', analytics, name='report-analytics'),
]
