from django.contrib import admin
from .models import Category, Product, StockHistory


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ['name', 'parent', 'created_at']
    list_filter = ['created_at']
    search_fields = ['name']
    ordering = ['name']


class StockHistoryInline(admin.TabularInline):
    model = StockHistory
    extra = 0
    readonly_fields = ['date', 'stock', 'date_updated']


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ['name', 'sku', 'category', 'stock', 'reorder_level', 'location', 'last_updated']
    list_filter = ['category', 'created_at']
    search_fields = ['name', 'sku', 'description', 'location']
    ordering = ['name']
    readonly_fields = ['created_at', 'last_updated']
    inlines = [StockHistoryInline]
