from decimal import Decimal

from django.test import TestCase

from apps.catalog.models import Product
from apps.orders.services import OrderService

from .models import SiteSettings


class SiteSettingsTests(TestCase):
    def test_load_creates_singleton_with_business_defaults(self):
        settings = SiteSettings.load()

        self.assertEqual(settings.pk, SiteSettings.SINGLETON_ID)
        self.assertEqual(settings.currency, "BDT")
        self.assertEqual(settings.tax_rate, Decimal("8.00"))
        self.assertEqual(settings.shipping_fee, Decimal("10.00"))
        self.assertEqual(settings.free_shipping_threshold, Decimal("100.00"))

    def test_save_always_targets_single_row(self):
        SiteSettings(store_name="First").save()
        SiteSettings(store_name="Second").save()

        self.assertEqual(SiteSettings.objects.count(), 1)
        self.assertEqual(SiteSettings.load().store_name, "Second")

    def test_checkout_ignores_configured_tax_and_shipping(self):
        # Two separate sources: checkout keeps its fixed 8% and flat fee
        settings = SiteSettings.load()
        settings.tax_rate = Decimal("15.00")
        settings.shipping_fee = Decimal("25.00")
        settings.save()

        product = Product.objects.create(
            name="Canvas Belt", category=Product.Category.ACCESSORIES, price=Decimal("20.00"), stock=3
        )
        order = OrderService.place_order(None, [{"product_id": product.id, "quantity": 1}])

        self.assertEqual(order.tax, Decimal("1.60"))
        self.assertEqual(order.shipping, Decimal("10.00"))
        self.assertEqual(order.total, Decimal("31.60"))
