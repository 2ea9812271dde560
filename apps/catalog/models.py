# apps/catalog/models.py
from django.core.validators import MinValueValidator
from django.db import models

from apps.utils.models import TimestampedModel


class Product(TimestampedModel):
    """
    Sellable item. `stock` is decremented in place at checkout
    (see apps.inventory.services.InventoryService).
    """

    class Category(models.TextChoices):
        TOPS = "Tops", "Tops"
        BOTTOMS = "Bottoms", "Bottoms"
        DRESSES = "Dresses", "Dresses"
        OUTERWEAR = "Outerwear", "Outerwear"
        ACCESSORIES = "Accessories", "Accessories"
        SHOES = "Shoes", "Shoes"

    name = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    category = models.CharField(max_length=20, choices=Category.choices, db_index=True)

    price = models.DecimalField(max_digits=10, decimal_places=2, validators=[MinValueValidator(0)])
    discount_price = models.DecimalField(
        max_digits=10, decimal_places=2, null=True, blank=True, validators=[MinValueValidator(0)]
    )

    # Non-negative by intent; validated on edit, not constrained in the database
    stock = models.IntegerField(default=0, validators=[MinValueValidator(0)])

    sizes = models.JSONField(default=list, blank=True)
    colors = models.JSONField(default=list, blank=True)
    sku = models.CharField(max_length=64, unique=True, null=True, blank=True)
    image_url = models.URLField(blank=True)

    is_active = models.BooleanField(default=True, db_index=True)
    featured = models.BooleanField(default=False)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["category", "is_active"], name="catalog_product_cat_active_idx"),
        ]

    def __str__(self):
        return self.name

    @property
    def in_stock(self):
        return self.stock > 0
