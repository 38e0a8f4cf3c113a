import django_filters
from django.db.models import F, Q

from backoffice.core.hierarchy import descendant_ids
from .models import Category, Product


class ProductFilter(django_filters.FilterSet):
    """Filters for the warehouse inventory list"""
    search = django_filters.CharFilter(method='filter_search')
    category = django_filters.NumberFilter(method='filter_category')
    low_stock = django_filters.BooleanFilter(method='filter_low_stock')

    class Meta:
        model = Product
        fields = ['search', 'category', 'low_stock']

    def filter_search(self, queryset, name, value):
        value = value.strip()
        if not value:
            return queryset
        return queryset.filter(Q(name__icontains=value) | Q(sku__icontains=value) | Q(location__icontains=value))

    def filter_category(self, queryset, name, value):
        """Products in the category or any of its sub-categories"""
        category_id = int(value)
        category_ids = descendant_ids(Category.objects.values('id', 'parent'), category_id)
        category_ids.add(category_id)
        return queryset.filter(category_id__in=category_ids)

    def filter_low_stock(self, queryset, name, value):
        if value:
            return queryset.filter(stock__lte=F('reorder_level'))
        return queryset.filter(stock__gt=F('reorder_level'))
