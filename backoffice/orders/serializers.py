from django.db import transaction
from rest_framework import serializers

from backoffice.catalog.models import Product
from backoffice.core.utils import generate_reference_number
from backoffice.parties.models import Supplier
from .models import Order, OrderItem, PurchaseOrder, PurchaseOrderItem


class LineItemWriteSerializer(serializers.Serializer):
    """Incoming line item; unit price defaults to the product's price"""
    product = serializers.PrimaryKeyRelatedField(queryset=Product.objects.all())
    quantity = serializers.IntegerField(min_value=1)
    unit_price = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0, required=False)


def validate_items_data(items_data, required):
    if items_data is None:
        if required:
            raise serializers.ValidationError({'items': 'At least one item is required.'})
        return None
    if not isinstance(items_data, list):
        raise serializers.ValidationError({'items': 'Expected a list of items.'})
    if required and not items_data:
        raise serializers.ValidationError({'items': 'At least one item is required.'})
    serializer = LineItemWriteSerializer(data=items_data, many=True)
    if not serializer.is_valid():
        raise serializers.ValidationError({'items': serializer.errors})
    return serializer.validated_data


class NestedItemsMixin:
    """Create/replace line items passed in context['items_data'] together with the parent"""
    item_model = None
    item_parent_field = None

    def validate(self, attrs):
        attrs = super().validate(attrs)
        self.validated_items = validate_items_data(
            self.context.get('items_data'), required=self.instance is None
        )
        return attrs

    def _write_items(self, parent, items):
        self.item_model.objects.bulk_create([
            self.item_model(**{
                self.item_parent_field: parent,
                'product': item['product'],
                'quantity': item['quantity'],
                'unit_price': item.get('unit_price', item['product'].unit_price),
            })
            for item in items
        ])

    def create(self, validated_data):
        with transaction.atomic():
            instance = super().create(validated_data)
            self._write_items(instance, self.validated_items)
        return instance

    def update(self, instance, validated_data):
        with transaction.atomic():
            instance = super().update(instance, validated_data)
            if self.validated_items is not None:
                instance.items.all().delete()
                self._write_items(instance, self.validated_items)
        return instance


class OrderItemSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source='product.name', read_only=True)
    line_total = serializers.SerializerMethodField()

    class Meta:
        model = OrderItem
        fields = ['id', 'product', 'product_name', 'quantity', 'unit_price', 'line_total']

    def get_line_total(self, obj):
        return float(obj.get_line_total())


class OrderSerializer(NestedItemsMixin, serializers.ModelSerializer):
    item_model = OrderItem
    item_parent_field = 'order'

    items = OrderItemSerializer(many=True, read_only=True)
    client_name = serializers.CharField(source='client.name', read_only=True)
    total = serializers.SerializerMethodField()

    class Meta:
        model = Order
        fields = [
            'id', 'order_number', 'client', 'client_name', 'status', 'order_date', 'notes',
            'created_by', 'created_at', 'updated_at', 'items', 'total'
        ]
        read_only_fields = ['order_number', 'created_by', 'created_at', 'updated_at']

    def get_total(self, obj):
        return float(obj.get_total())

    def create(self, validated_data):
        validated_data['order_number'] = generate_reference_number('ORD', Order, 'order_number')
        return super().create(validated_data)


class PurchaseOrderItemSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source='product.name', read_only=True)
    line_total = serializers.SerializerMethodField()

    class Meta:
        model = PurchaseOrderItem
        fields = ['id', 'product', 'product_name', 'quantity', 'unit_price', 'line_total']

    def get_line_total(self, obj):
        return float(obj.get_line_total())


class PurchaseOrderSerializer(NestedItemsMixin, serializers.ModelSerializer):
    item_model = PurchaseOrderItem
    item_parent_field = 'purchase_order'

    items = PurchaseOrderItemSerializer(many=True, read_only=True)
    supplier_name = serializers.CharField(source='supplier.name', read_only=True)
    total = serializers.SerializerMethodField()

    class Meta:
        model = PurchaseOrder
        fields = [
            'id', 'po_number', 'supplier', 'supplier_name', 'status', 'order_date', 'expected_date',
            'received_at', 'notes', 'created_by', 'created_at', 'updated_at', 'items', 'total'
        ]
        read_only_fields = ['po_number', 'received_at', 'created_by', 'created_at', 'updated_at']

    def get_total(self, obj):
        return float(obj.get_total())

    def validate_supplier(self, value):
        if value.status != Supplier.STATUS_APPROVED:
            raise serializers.ValidationError("Purchase orders can only be placed with approved suppliers.")
        return value

    def validate_status(self, value):
        if value == PurchaseOrder.STATUS_RECEIVED:
            raise serializers.ValidationError("Use the receive action to mark a purchase order as received.")
        return value

    def validate(self, attrs):
        if self.instance is not None and self.instance.status == PurchaseOrder.STATUS_RECEIVED:
            raise serializers.ValidationError("A received purchase order can not be changed.")
        return super().validate(attrs)

    def create(self, validated_data):
        validated_data['po_number'] = generate_reference_number('PO', PurchaseOrder, 'po_number')
        return super().create(validated_data)
