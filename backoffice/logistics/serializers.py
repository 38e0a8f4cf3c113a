from django.db import transaction
from django.utils import timezone
from rest_framework import serializers

from backoffice.catalog.models import Product
from backoffice.catalog.serializers import ProductSerializer
from backoffice.core.utils import generate_reference_number
from backoffice.parties.serializers import ClientSerializer
from .models import Vehicle, Issuance, IssuanceItem, Shipment, add_years


class VehicleSerializer(serializers.ModelSerializer):
    expiry_status = serializers.SerializerMethodField()

    class Meta:
        model = Vehicle
        fields = [
            'id', 'vehicle_type', 'plate_number', 'make', 'model', 'year', 'weight_limit', 'size_limit',
            'description', 'status', 'registration_date', 'registration_expiry_date', 'expiry_status',
            'created_at', 'updated_at'
        ]
        read_only_fields = ['created_at', 'updated_at']

    def get_expiry_status(self, obj):
        return obj.expiry_status()

    def validate_year(self, value):
        latest = timezone.localdate().year + 1
        if value < 1900 or value > latest:
            raise serializers.ValidationError(f"Year must be between 1900 and {latest}.")
        return value

    def validate_plate_number(self, value):
        value = value.strip().upper()
        existing = Vehicle.objects.filter(plate_number__iexact=value)
        if self.instance is not None:
            existing = existing.exclude(pk=self.instance.pk)
        if existing.exists():
            raise serializers.ValidationError("A vehicle with this plate number already exists.")
        return value

    def validate(self, attrs):
        registration_date = attrs.get('registration_date')
        if registration_date and not attrs.get('registration_expiry_date'):
            attrs['registration_expiry_date'] = add_years(registration_date, 1)
        expiry = attrs.get('registration_expiry_date')
        if registration_date and expiry and expiry < registration_date:
            raise serializers.ValidationError({
                'registration_expiry_date': 'Expiry can not be before the registration date.'
            })
        return attrs


class IssuanceItemSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source='product.name', read_only=True)

    class Meta:
        model = IssuanceItem
        fields = ['id', 'product', 'product_name', 'quantity']


class IssuanceItemWriteSerializer(serializers.Serializer):
    product = serializers.PrimaryKeyRelatedField(queryset=Product.objects.all())
    quantity = serializers.IntegerField(min_value=1)


class IssuanceSerializer(serializers.ModelSerializer):
    """Issuing deducts stock; items are fixed once the issuance exists"""
    items = IssuanceItemSerializer(many=True, read_only=True)
    client_name = serializers.CharField(source='client.name', read_only=True)

    class Meta:
        model = Issuance
        fields = ['id', 'issuance_number', 'client', 'client_name', 'date', 'notes', 'issued_by', 'created_at', 'items']
        read_only_fields = ['issuance_number', 'issued_by', 'created_at']

    def validate(self, attrs):
        if self.instance is None:
            items_data = self.context.get('items_data')
            if not isinstance(items_data, list) or not items_data:
                raise serializers.ValidationError({'items': 'At least one item is required.'})
            items = IssuanceItemWriteSerializer(data=items_data, many=True)
            if not items.is_valid():
                raise serializers.ValidationError({'items': items.errors})
            self.validated_items = items.validated_data
        return attrs

    def create(self, validated_data):
        validated_data['issuance_number'] = generate_reference_number('ISS', Issuance, 'issuance_number')
        with transaction.atomic():
            issuance = super().create(validated_data)
            for item in self.validated_items:
                product = Product.objects.select_for_update().get(pk=item['product'].pk)
                if product.stock < item['quantity']:
                    raise serializers.ValidationError({
                        'items': f"Not enough stock for {product.name}: {product.stock} available, {item['quantity']} requested."
                    })
                product.stock -= item['quantity']
                product.save(update_fields=['stock', 'last_updated'])
                product.record_stock(product.stock)
                IssuanceItem.objects.create(issuance=issuance, product=product, quantity=item['quantity'])
        return issuance


class ShipmentSerializer(serializers.ModelSerializer):
    issuance_number = serializers.CharField(source='issuance.issuance_number', read_only=True)
    client_name = serializers.CharField(source='issuance.client.name', read_only=True)
    vehicle_plate_number = serializers.CharField(source='vehicle.plate_number', read_only=True)

    class Meta:
        model = Shipment
        fields = [
            'id', 'shipment_number', 'issuance', 'issuance_number', 'client_name', 'vehicle',
            'vehicle_plate_number', 'status', 'estimated_delivery_date', 'actual_delivery_date',
            'delivery_photo_url', 'signature', 'created_at', 'updated_at'
        ]
        read_only_fields = ['shipment_number', 'actual_delivery_date', 'delivery_photo_url', 'signature',
                            'created_at', 'updated_at']

    def validate_issuance(self, value):
        if value is None:
            raise serializers.ValidationError("A shipment needs an issuance.")
        return value

    def validate_status(self, value):
        if value == Shipment.STATUS_DELIVERED:
            raise serializers.ValidationError("Use confirm delivery to mark a shipment as delivered.")
        if self.instance is not None and self.instance.status == Shipment.STATUS_DELIVERED:
            raise serializers.ValidationError("A delivered shipment can not change status.")
        return value

    def create(self, validated_data):
        validated_data['shipment_number'] = generate_reference_number('SHP', Shipment, 'shipment_number')
        return super().create(validated_data)


class ShipmentIssuanceSerializer(IssuanceSerializer):
    """Issuance with client and products resolved, for the delivery screen"""
    client = ClientSerializer(read_only=True)
    items = serializers.SerializerMethodField()

    class Meta(IssuanceSerializer.Meta):
        pass

    def get_items(self, obj):
        return [
            {'quantity': item.quantity, 'product': ProductSerializer(item.product).data}
            for item in obj.items.select_related('product', 'product__category')
        ]


class ShipmentDetailSerializer(ShipmentSerializer):
    issuance = ShipmentIssuanceSerializer(read_only=True)


class ConfirmDeliverySerializer(serializers.Serializer):
    signature = serializers.CharField()
    delivery_photo_url = serializers.URLField(max_length=500)
