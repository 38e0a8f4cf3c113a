from rest_framework import serializers

from backoffice.core.hierarchy import parent_map, would_create_cycle
from backoffice.core.utils import to_title_case
from .models import Category, Product, StockHistory


def category_parent_map():
    return parent_map(Category.objects.values('id', 'parent'))


class CategorySerializer(serializers.ModelSerializer):
    class Meta:
        model = Category
        fields = ['id', 'name', 'parent', 'description', 'created_at', 'updated_at']

    def validate_name(self, value):
        value = to_title_case(value.strip())
        if not value:
            raise serializers.ValidationError("Category name is required.")
        return value

    def validate_parent(self, value):
        if value is None or self.instance is None:
            return value
        if would_create_cycle(category_parent_map(), self.instance.pk, value.pk):
            raise serializers.ValidationError("A category can not be moved under itself or one of its sub-categories.")
        return value


class StockHistorySerializer(serializers.ModelSerializer):
    class Meta:
        model = StockHistory
        fields = ['id', 'date', 'stock', 'date_updated']


class ProductSerializer(serializers.ModelSerializer):
    category_name = serializers.CharField(source='category.name', read_only=True)
    is_low_stock = serializers.BooleanField(read_only=True)

    class Meta:
        model = Product
        fields = [
            'id', 'name', 'sku', 'category', 'category_name', 'description',
            'stock', 'unit', 'location', 'reorder_level', 'unit_price',
            'is_low_stock', 'created_at', 'last_updated',
        ]
        read_only_fields = ['created_at', 'last_updated']

    def validate_stock(self, value):
        if value < 0:
            raise serializers.ValidationError("Stock can not be negative.")
        return value

    def create(self, validated_data):
        product = super().create(validated_data)
        product.record_stock(product.stock)
        return product

    def update(self, instance, validated_data):
        old_stock = instance.stock
        product = super().update(instance, validated_data)
        if 'stock' in validated_data and product.stock != old_stock:
            product.record_stock(product.stock)
        return product


class ProductDetailSerializer(ProductSerializer):
    history = StockHistorySerializer(many=True, read_only=True)

    class Meta(ProductSerializer.Meta):
        fields = ProductSerializer.Meta.fields + ['history']
