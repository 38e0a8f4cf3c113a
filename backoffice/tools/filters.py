import django_filters
from django.db.models import Q

from .models import Tool, ToolBooking


class ToolFilter(django_filters.FilterSet):
    status = django_filters.CharFilter(field_name='status', lookup_expr='iexact')
    condition = django_filters.CharFilter(field_name='condition', lookup_expr='iexact')
    assigned_to = django_filters.NumberFilter(field_name='assigned_to_id')
    defective = django_filters.BooleanFilter(method='filter_defective')
    search = django_filters.CharFilter(method='filter_search')

    class Meta:
        model = Tool
        fields = ['status', 'condition', 'assigned_to', 'defective', 'search']

    def filter_defective(self, queryset, name, value):
        if value:
            return queryset.filter(condition__in=Tool.DEFECTIVE_CONDITIONS)
        return queryset.exclude(condition__in=Tool.DEFECTIVE_CONDITIONS)

    def filter_search(self, queryset, name, value):
        return queryset.filter(Q(name__icontains=value) | Q(serial_number__icontains=value))


class ToolBookingFilter(django_filters.FilterSet):
    status = django_filters.CharFilter(field_name='status', lookup_expr='iexact')
    booking_type = django_filters.CharFilter(field_name='booking_type', lookup_expr='iexact')

    class Meta:
        model = ToolBooking
        fields = ['status', 'booking_type']
