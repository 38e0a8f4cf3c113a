from rest_framework import serializers

from backoffice.core.utils import to_title_case
from .models import Client, Supplier, Worker


class ClientSerializer(serializers.ModelSerializer):
    class Meta:
        model = Client
        fields = ['id', 'name', 'project_name', 'contact_person', 'email', 'phone', 'address', 'created_at', 'updated_at']


class SupplierSerializer(serializers.ModelSerializer):
    supplied_product_names = serializers.SerializerMethodField()

    class Meta:
        model = Supplier
        fields = [
            'id', 'name', 'contact_person', 'email', 'phone', 'cellphone_number', 'address',
            'supplier_type', 'notes', 'status', 'supplied_products', 'supplied_product_names',
            'created_at', 'updated_at'
        ]
        read_only_fields = ['status', 'created_at', 'updated_at']

    def get_supplied_product_names(self, obj):
        return [product.name for product in obj.supplied_products.all()]

    def validate_name(self, value):
        value = to_title_case(value.strip())
        if not value:
            raise serializers.ValidationError("Supplier name is required.")
        return value


class SupplierStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=[Supplier.STATUS_APPROVED, Supplier.STATUS_REJECTED])


class WorkerSerializer(serializers.ModelSerializer):
    class Meta:
        model = Worker
        fields = ['id', 'name', 'position', 'phone', 'created_at']
