from decimal import Decimal

from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models


class SiteSettings(models.Model):
    """
    Single-row store configuration edited from the admin.

    The business figures below are informational; checkout pricing in
    apps.orders.services uses its own fixed rates and does not read them.
    """
    SINGLETON_ID = 1

    store_name = models.CharField(max_length=100, default="Storefront")
    contact_email = models.EmailField(blank=True)
    contact_phone = models.CharField(max_length=20, blank=True)
    address = models.TextField(blank=True)

    currency = models.CharField(max_length=3, default="BDT")
    tax_rate = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        default=Decimal("8.00"),
        validators=[MinValueValidator(0), MaxValueValidator(100)],
        help_text="Percent",
    )
    shipping_fee = models.DecimalField(
        max_digits=10, decimal_places=2, default=Decimal("10.00"), validators=[MinValueValidator(0)]
    )
    free_shipping_threshold = models.DecimalField(
        max_digits=10, decimal_places=2, default=Decimal("100.00"), validators=[MinValueValidator(0)]
    )

    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Site settings"
        verbose_name_plural = "Site settings"

    def __str__(self):
        return self.store_name

    def save(self, *args, **kwargs):
        self.pk = self.SINGLETON_ID
        super().save(*args, **kwargs)

    @classmethod
    def load(cls):
        obj, _ = cls.objects.get_or_create(pk=cls.SINGLETON_ID)
        return obj
