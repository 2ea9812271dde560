from django.db import models
from .order import Order
from apps.catalog.models import Product


class OrderItem(models.Model):
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name='items')
    # Kept nullable so catalog deletions never rewrite order history
    product = models.ForeignKey(Product, on_delete=models.SET_NULL, null=True, related_name='order_items')

    # Snapshot fields, copied at checkout
    product_name = models.CharField(max_length=255)
    unit_price = models.DecimalField(max_digits=10, decimal_places=2)

    quantity = models.PositiveIntegerField()
    size = models.CharField(max_length=20, blank=True)
    color = models.CharField(max_length=50, blank=True)

    class Meta:
        ordering = ["id"]

    @property
    def line_total(self):
        return self.unit_price * self.quantity

    def __str__(self):
        return f"{self.quantity}x {self.product_name}"
