# apps/catalog/admin.py
from django.contrib import admin
from .models import Product


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = (
        "name",
        "sku",
        "category",
        "price",
        "stock",
        "is_active",
        "featured",
    )
    search_fields = ("name", "sku", "description")
    list_filter = ("category", "is_active", "featured")
    list_editable = ("price", "stock", "is_active", "featured")
    readonly_fields = ("created_at", "updated_at")
