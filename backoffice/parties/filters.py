import django_filters
from django.db.models import Q

from .models import Client, Supplier


class ClientFilter(django_filters.FilterSet):
    search = django_filters.CharFilter(method='filter_search')

    class Meta:
        model = Client
        fields = ['search']

    def filter_search(self, queryset, name, value):
        return queryset.filter(
            Q(name__icontains=value) | Q(project_name__icontains=value) | Q(contact_person__icontains=value)
        )


class SupplierFilter(django_filters.FilterSet):
    """`?status=approved` matches regardless of case"""
    status = django_filters.CharFilter(field_name='status', lookup_expr='iexact')
    search = django_filters.CharFilter(method='filter_search')

    class Meta:
        model = Supplier
        fields = ['status', 'search']

    def filter_search(self, queryset, name, value):
        return queryset.filter(
            Q(name__icontains=value) | Q(contact_person__icontains=value) | Q(supplier_type__icontains=value)
        )
