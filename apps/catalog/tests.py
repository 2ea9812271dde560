# apps/catalog/tests.py
import os
import tempfile
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import TestCase
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APIClient, APITestCase

from apps.accounts.models import Role
from .models import Product

User = get_user_model()


class ProductViewSetTests(APITestCase):
    def setUp(self):
        cache.clear()
        self.client = APIClient()
        self.staff = User.objects.create_user(
            email="admin@example.com", password="testpass", first_name="Ada", last_name="Admin", role=Role.ADMIN
        )
        self.customer = User.objects.create_user(
            email="cust@example.com", password="testpass", first_name="Cy", last_name="Cust"
        )
        self.tee = Product.objects.create(
            name="Cotton Tee", category=Product.Category.TOPS, price=Decimal("15.00"), stock=20, featured=True
        )
        self.boots = Product.objects.create(
            name="Leather Boots", category=Product.Category.SHOES, price=Decimal("120.00"), stock=0
        )
        self.hidden = Product.objects.create(
            name="Old Stock Coat", category=Product.Category.OUTERWEAR, price=Decimal("80.00"), stock=3,
            is_active=False,
        )
        self.list_url = reverse("products-list")

    def test_public_list_only_active_products(self):
        resp = self.client.get(self.list_url)

        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        names = {p["name"] for p in resp.json()["data"]}
        self.assertEqual(names, {"Cotton Tee", "Leather Boots"})

    def test_staff_list_includes_inactive(self):
        self.client.force_authenticate(self.staff)

        resp = self.client.get(self.list_url)

        self.assertEqual(resp.json()["pagination"]["total"], 3)

    def test_filters(self):
        resp = self.client.get(self.list_url, {"category": "Shoes"})
        self.assertEqual([p["name"] for p in resp.json()["data"]], ["Leather Boots"])

        resp = self.client.get(self.list_url, {"in_stock": "true"})
        self.assertEqual([p["name"] for p in resp.json()["data"]], ["Cotton Tee"])

        resp = self.client.get(self.list_url, {"min_price": "100"})
        self.assertEqual([p["name"] for p in resp.json()["data"]], ["Leather Boots"])

        resp = self.client.get(self.list_url, {"ordering": "price"})
        self.assertEqual([p["name"] for p in resp.json()["data"]], ["Cotton Tee", "Leather Boots"])

    def test_retrieve(self):
        resp = self.client.get(reverse("products-detail", args=[self.tee.id]))

        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        data = resp.json()["data"]
        self.assertEqual(data["stock"], 20)
        self.assertTrue(data["in_stock"])

    def test_categories(self):
        resp = self.client.get(reverse("products-categories"))

        self.assertEqual(
            resp.json()["data"],
            ["Tops", "Bottoms", "Dresses", "Outerwear", "Accessories", "Shoes"],
        )

    def test_customer_cannot_create(self):
        self.client.force_authenticate(self.customer)

        resp = self.client.post(
            self.list_url, {"name": "Hat", "category": "Accessories", "price": "10.00", "stock": 1}, format="json"
        )

        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)

    def test_staff_create_and_update_stock(self):
        self.client.force_authenticate(self.staff)

        resp = self.client.post(
            self.list_url,
            {"name": "Wool Hat", "category": "Accessories", "price": "10.00", "stock": 4, "sizes": ["S", "M"]},
            format="json",
        )
        self.assertEqual(resp.status_code, status.HTTP_201_CREATED)
        product_id = resp.json()["data"]["id"]

        resp = self.client.patch(reverse("products-detail", args=[product_id]), {"stock": 9}, format="json")

        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(Product.objects.get(pk=product_id).stock, 9)

    def test_negative_stock_rejected(self):
        self.client.force_authenticate(self.staff)

        resp = self.client.patch(reverse("products-detail", args=[self.tee.id]), {"stock": -1}, format="json")

        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("stock", resp.json()["errors"])

    def test_discount_cannot_exceed_price(self):
        self.client.force_authenticate(self.staff)

        resp = self.client.patch(
            reverse("products-detail", args=[self.tee.id]), {"discount_price": "20.00"}, format="json"
        )

        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("discount_price", resp.json()["errors"])

    def test_staff_delete(self):
        self.client.force_authenticate(self.staff)

        resp = self.client.delete(reverse("products-detail", args=[self.boots.id]))

        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertFalse(Product.objects.filter(pk=self.boots.id).exists())


class ImportCatalogCommandTests(TestCase):
    def write_csv(self, content):
        fd, path = tempfile.mkstemp(suffix=".csv")
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
        self.addCleanup(os.remove, path)
        return path

    def test_import_creates_and_updates(self):
        Product.objects.create(
            name="Old Name", category=Product.Category.TOPS, price=Decimal("1.00"), stock=1, sku="TEE-1"
        )
        path = self.write_csv(
            "sku,name,category,price,stock,sizes,colors\n"
            "TEE-1,Cotton Tee,Tops,15.00,20,S|M|L,White\n"
            "JEAN-1,Slim Jeans,Bottoms,45.50,8,30|32,Blue|Black\n"
            "BAD-1,Mystery,Gadgets,5.00,1,,\n"
        )

        call_command("import_catalog", path)

        tee = Product.objects.get(sku="TEE-1")
        self.assertEqual(tee.name, "Cotton Tee")
        self.assertEqual(tee.stock, 20)
        self.assertEqual(tee.sizes, ["S", "M", "L"])
        jeans = Product.objects.get(sku="JEAN-1")
        self.assertEqual(jeans.price, Decimal("45.50"))
        self.assertEqual(jeans.colors, ["Blue", "Black"])
        self.assertFalse(Product.objects.filter(sku="BAD-1").exists())

    def test_invalid_row_aborts_whole_import(self):
        path = self.write_csv(
            "sku,name,category,price,stock\n"
            "TEE-2,Tee,Tops,15.00,2\n"
            "TEE-3,Tee,Tops,abc,2\n"
        )

        with self.assertRaises(CommandError):
            call_command("import_catalog", path)

        self.assertEqual(Product.objects.count(), 0)

    def test_missing_file(self):
        with self.assertRaises(CommandError):
            call_command("import_catalog", "/nonexistent/catalog.csv")
