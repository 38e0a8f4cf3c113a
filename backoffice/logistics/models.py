from datetime import date

from django.db import models
from django.utils import timezone

from backoffice.catalog.models import Product
from backoffice.core.models import User
from backoffice.parties.models import Client

EXPIRY_WARNING_DAYS = 60


def add_years(value, years):
    """Same day `years` later; 29 February falls back to the 28th"""
    try:
        return value.replace(year=value.year + years)
    except ValueError:
        return value.replace(year=value.year + years, day=28)


class Vehicle(models.Model):
    """Fleet vehicle used for deliveries"""
    STATUS_AVAILABLE = 'Available'
    STATUS_IN_USE = 'In Use'
    STATUS_MAINTENANCE = 'Under Maintenance'
    STATUS_CHOICES = [
        (STATUS_AVAILABLE, 'Available'),
        (STATUS_IN_USE, 'In Use'),
        (STATUS_MAINTENANCE, 'Under Maintenance'),
    ]

    vehicle_type = models.CharField(max_length=100)
    plate_number = models.CharField(max_length=50, unique=True)
    make = models.CharField(max_length=100)
    model = models.CharField(max_length=100)
    year = models.PositiveIntegerField()
    weight_limit = models.CharField(max_length=100, blank=True)
    size_limit = models.CharField(max_length=100, blank=True)
    description = models.TextField(blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_AVAILABLE)
    registration_date = models.DateField(null=True, blank=True)
    registration_expiry_date = models.DateField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.make} {self.model} ({self.plate_number})"

    def save(self, *args, **kwargs):
        if self.registration_date and not self.registration_expiry_date:
            self.registration_expiry_date = add_years(self.registration_date, 1)
        super().save(*args, **kwargs)

    def expiry_status(self, today=None):
        """None, or how long ago the registration expired / how soon it expires"""
        if not self.registration_expiry_date:
            return None
        today = today or timezone.localdate()
        days = (self.registration_expiry_date - today).days
        if days < 0:
            return {'state': 'expired', 'days': -days, 'message': f'Expired {-days} days ago'}
        if days <= EXPIRY_WARNING_DAYS:
            return {'state': 'expiring', 'days': days, 'message': f'Expires in {days} days'}
        return None

    class Meta:
        db_table = 'vehicles'
        ordering = ['plate_number']


class Issuance(models.Model):
    """Materials issued from the warehouse to a client"""
    issuance_number = models.CharField(max_length=100, unique=True)
    client = models.ForeignKey(Client, on_delete=models.PROTECT, related_name='issuances')
    date = models.DateField(default=date.today)
    notes = models.TextField(blank=True)
    issued_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='issuances')
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return self.issuance_number

    class Meta:
        db_table = 'issuances'
        ordering = ['-date', '-created_at']


class IssuanceItem(models.Model):
    issuance = models.ForeignKey(Issuance, on_delete=models.CASCADE, related_name='items')
    product = models.ForeignKey(Product, on_delete=models.PROTECT, related_name='issuance_items')
    quantity = models.PositiveIntegerField()

    class Meta:
        db_table = 'issuance_items'
        ordering = ['id']


class Shipment(models.Model):
    """Delivery of an issuance to the client site"""
    STATUS_PENDING = 'Pending'
    STATUS_IN_TRANSIT = 'In Transit'
    STATUS_DELIVERED = 'Delivered'
    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_IN_TRANSIT, 'In Transit'),
        (STATUS_DELIVERED, 'Delivered'),
    ]

    shipment_number = models.CharField(max_length=100, unique=True)
    # Nulled when the issuance is removed; such shipments can no longer be opened
    issuance = models.ForeignKey(Issuance, on_delete=models.SET_NULL, null=True, blank=True, related_name='shipments')
    vehicle = models.ForeignKey(Vehicle, on_delete=models.SET_NULL, null=True, blank=True, related_name='shipments')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING)
    estimated_delivery_date = models.DateField(null=True, blank=True)
    actual_delivery_date = models.DateField(null=True, blank=True)
    delivery_photo_url = models.URLField(max_length=500, blank=True)
    signature = models.TextField(blank=True, help_text='Signature image as a data URL')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.shipment_number

    class Meta:
        db_table = 'shipments'
        ordering = ['-created_at']
