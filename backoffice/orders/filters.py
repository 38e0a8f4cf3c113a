import django_filters
from django.db.models import Q

from .models import Order, PurchaseOrder


class OrderFilter(django_filters.FilterSet):
    status = django_filters.CharFilter(field_name='status', lookup_expr='iexact')
    client = django_filters.NumberFilter(field_name='client_id')
    date_from = django_filters.DateFilter(field_name='order_date', lookup_expr='gte')
    date_to = django_filters.DateFilter(field_name='order_date', lookup_expr='lte')
    search = django_filters.CharFilter(method='filter_search')

    class Meta:
        model = Order
        fields = ['status', 'client', 'date_from', 'date_to', 'search']

    def filter_search(self, queryset, name, value):
        return queryset.filter(Q(order_number__icontains=value) | Q(client__name__icontains=value))


class PurchaseOrderFilter(django_filters.FilterSet):
    status = django_filters.CharFilter(field_name='status', lookup_expr='iexact')
    supplier = django_filters.NumberFilter(field_name='supplier_id')
    search = django_filters.CharFilter(method='filter_search')

    class Meta:
        model = PurchaseOrder
        fields = ['status', 'supplier', 'search']

    def filter_search(self, queryset, name, value):
        return queryset.filter(Q(po_number__icontains=value) | Q(supplier__name__icontains=value))
