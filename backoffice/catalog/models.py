from decimal import Decimal

from django.db import models
from django.utils import timezone

from backoffice.core.utils import to_title_case


class Category(models.Model):
    """Product categories, nested through `parent`"""
    name = models.CharField(max_length=200, db_index=True)
    parent = models.ForeignKey('self', on_delete=models.CASCADE, null=True, blank=True, related_name='children')
    description = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    def save(self, *args, **kwargs):
        self.name = to_title_case(self.name)
        super().save(*args, **kwargs)

    class Meta:
        db_table = 'categories'
        verbose_name_plural = 'categories'
        ordering = ['name']


class Product(models.Model):
    """Warehouse inventory item"""
    name = models.CharField(max_length=200, db_index=True)
    sku = models.CharField(max_length=100, unique=True, blank=True, null=True)
    category = models.ForeignKey(Category, on_delete=models.SET_NULL, null=True, blank=True, related_name='products')
    description = models.TextField(blank=True)
    stock = models.IntegerField(default=0)
    unit = models.CharField(max_length=30, default='pcs')
    location = models.CharField(max_length=100, blank=True, help_text='Warehouse bin / shelf')
    reorder_level = models.IntegerField(default=0)
    unit_price = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    created_at = models.DateTimeField(auto_now_add=True)
    last_updated = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.name} ({self.sku or 'NO-SKU'})"

    @property
    def is_low_stock(self):
        return self.stock <= self.reorder_level

    def record_stock(self, stock):
        """Append a history entry for the current stock level"""
        now = timezone.now()
        return StockHistory.objects.create(
            product=self,
            date=now.date(),
            stock=stock,
            date_updated=now,
        )

    class Meta:
        db_table = 'products'
        ordering = ['name']


class StockHistory(models.Model):
    """Stock level snapshots, one per stock change"""
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name='history')
    date = models.DateField()
    stock = models.IntegerField()
    date_updated = models.DateTimeField()

    class Meta:
        db_table = 'stock_history'
        ordering = ['-date_updated', '-id']
