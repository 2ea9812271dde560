from decimal import Decimal

from django.db import transaction
from django.test import TestCase

from apps.catalog.models import Product
from apps.inventory.services import InventoryService
from apps.utils.exceptions import BusinessLogicException


class InventoryServiceTests(TestCase):
    def setUp(self):
        self.product = Product.objects.create(
            name="Linen Shirt",
            category=Product.Category.TOPS,
            price=Decimal("25.00"),
            stock=5,
        )

    def test_deduct_persists_immediately(self):
        InventoryService.deduct(self.product, 3)

        self.product.refresh_from_db()
        self.assertEqual(self.product.stock, 2)

    def test_deduct_exact_stock_reaches_zero(self):
        InventoryService.deduct(self.product, 5)

        self.product.refresh_from_db()
        self.assertEqual(self.product.stock, 0)

    def test_deduct_insufficient_stock_names_product(self):
        with self.assertRaises(BusinessLogicException) as ctx:
            InventoryService.deduct(self.product, 6)

        self.assertEqual(ctx.exception.message, "Insufficient stock for Linen Shirt")
        self.assertEqual(ctx.exception.code, "insufficient_stock")
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock, 5)

    def test_get_product_missing_returns_none(self):
        self.assertIsNone(InventoryService.get_product("00000000-0000-0000-0000-000000000000"))

    def test_lock_products_returns_map_keyed_by_id(self):
        other = Product.objects.create(
            name="Chinos", category=Product.Category.BOTTOMS, price=Decimal("40.00"), stock=1
        )
        with transaction.atomic():
            locked = InventoryService.lock_products([other.pk, self.product.pk, other.pk])

        self.assertEqual(set(locked), {str(self.product.pk), str(other.pk)})
        self.assertEqual(locked[str(other.pk)].name, "Chinos")
