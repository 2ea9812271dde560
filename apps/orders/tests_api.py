# apps/orders/tests_api.py
import uuid
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.test import override_settings
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APIClient, APITestCase
from rest_framework_simplejwt.tokens import AccessToken

from apps.accounts.models import Role
from apps.catalog.models import Product
from apps.orders.models import Order, ReturnRequest
from apps.orders.services import OrderService
from apps.utils.models import IdempotencyKey

User = get_user_model()


class OrderAPITestCase(APITestCase):
    def setUp(self):
        cache.clear()
        self.client = APIClient()
        self.customer = User.objects.create_user(
            email="customer@example.com", password="testpass123", first_name="Cara", last_name="Customer"
        )
        self.other = User.objects.create_user(
            email="other@example.com", password="testpass123", first_name="Otto", last_name="Other"
        )
        self.employee = User.objects.create_user(
            email="staff@example.com", password="testpass123", first_name="Eli", last_name="Employee",
            role=Role.EMPLOYEE,
        )
        self.product_a = Product.objects.create(
            name="Denim Jacket", category=Product.Category.OUTERWEAR, price=Decimal("50.00"), stock=10
        )
        self.product_b = Product.objects.create(
            name="Silk Scarf", category=Product.Category.ACCESSORIES, price=Decimal("30.00"), stock=5
        )
        self.checkout_url = reverse("orders-list")

    def checkout_payload(self, *lines):
        return {
            "items": [{"productId": str(p.id), "quantity": q} for p, q in lines],
            "shippingAddress": {"street": "1 Main St", "city": "Dhaka", "zipCode": "1207", "country": "BD"},
            "notes": "",
        }


class CheckoutAPITests(OrderAPITestCase):
    def test_checkout_creates_order_with_summaries(self):
        self.client.force_authenticate(self.customer)

        resp = self.client.post(
            self.checkout_url, self.checkout_payload((self.product_a, 2), (self.product_b, 1)), format="json"
        )

        self.assertEqual(resp.status_code, status.HTTP_201_CREATED)
        body = resp.json()
        self.assertTrue(body["success"])
        data = body["data"]
        self.assertEqual(data["status"], "Pending")
        self.assertEqual(Decimal(str(data["subtotal"])), Decimal("130.00"))
        self.assertEqual(Decimal(str(data["tax"])), Decimal("10.40"))
        self.assertEqual(Decimal(str(data["shipping"])), Decimal("0.00"))
        self.assertEqual(Decimal(str(data["total"])), Decimal("140.40"))
        self.assertEqual(data["customer"]["email"], "customer@example.com")
        self.assertEqual(data["customer"]["first_name"], "Cara")
        self.assertEqual(data["items"][0]["product"]["name"], "Denim Jacket")
        self.assertEqual(data["items"][0]["product"]["id"], str(self.product_a.id))
        self.assertNotIn("X-Store-Idempotency", resp)

        self.product_a.refresh_from_db()
        self.assertEqual(self.product_a.stock, 8)

    def test_checkout_accepts_camel_case_body(self):
        payload = {
            "items": [{"productId": str(self.product_a.id), "quantity": 1, "size": "M", "color": "Blue"}],
            "shippingAddress": {
                "street": "12 Lake Rd", "city": "Chittagong", "state": "CTG", "zipCode": "4000", "country": "BD",
            },
            "notes": "Leave at the door",
        }

        resp = self.client.post(self.checkout_url, payload, format="json")

        self.assertEqual(resp.status_code, status.HTTP_201_CREATED)
        order = Order.objects.get(pk=resp.json()["data"]["id"])
        self.assertEqual(order.shipping_address["zip_code"], "4000")
        self.assertEqual(order.shipping_address["city"], "Chittagong")
        self.assertEqual(order.notes, "Leave at the door")
        item = order.items.get()
        self.assertEqual((item.quantity, item.size, item.color), (1, "M", "Blue"))

    def test_checkout_rejects_snake_case_item_keys(self):
        payload = {
            "items": [{"product_id": str(self.product_a.id), "quantity": 1}],
            "shippingAddress": {},
        }

        resp = self.client.post(self.checkout_url, payload, format="json")

        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("productId", str(resp.json()["errors"]["items"]))

    def test_guest_checkout_allowed(self):
        resp = self.client.post(self.checkout_url, self.checkout_payload((self.product_b, 1)), format="json")

        self.assertEqual(resp.status_code, status.HTTP_201_CREATED)
        self.assertIsNone(resp.json()["data"]["customer"])
        self.assertEqual(Decimal(str(resp.json()["data"]["total"])), Decimal("42.40"))

    def test_unknown_product_returns_400(self):
        missing = uuid.uuid4()
        payload = {
            "items": [{"productId": str(missing), "quantity": 1}],
            "shippingAddress": {},
        }

        resp = self.client.post(self.checkout_url, payload, format="json")

        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(resp.json(), {
            "success": False,
            "message": f"Product not found: {missing}",
            "code": "product_not_found",
        })
        self.assertEqual(Order.objects.count(), 0)

    def test_insufficient_stock_returns_400(self):
        resp = self.client.post(self.checkout_url, self.checkout_payload((self.product_b, 9)), format="json")

        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(resp.json()["success"])
        self.assertEqual(resp.json()["message"], "Insufficient stock for Silk Scarf")

    def test_malformed_payload_returns_field_errors(self):
        resp = self.client.post(
            self.checkout_url,
            {"items": [{"productId": "not-a-uuid", "quantity": 0}], "shippingAddress": {}},
            format="json",
        )

        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        body = resp.json()
        self.assertEqual(body["message"], "Validation failed")
        self.assertIn("items", body["errors"])

    def test_empty_cart_rejected(self):
        resp = self.client.post(self.checkout_url, {"items": [], "shippingAddress": {}}, format="json")

        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("items", resp.json()["errors"])

    def test_idempotency_key_replays_original_order(self):
        payload = self.checkout_payload((self.product_a, 1))

        first = self.client.post(self.checkout_url, payload, format="json", HTTP_IDEMPOTENCY_KEY="retry-123")
        second = self.client.post(self.checkout_url, payload, format="json", HTTP_IDEMPOTENCY_KEY="retry-123")

        self.assertEqual(first.status_code, status.HTTP_201_CREATED)
        self.assertEqual(second.status_code, status.HTTP_201_CREATED)
        self.assertEqual(second["Idempotent-Replayed"], "true")
        self.assertEqual(first.json()["data"]["id"], second.json()["data"]["id"])
        self.assertEqual(Order.objects.count(), 1)
        self.product_a.refresh_from_db()
        self.assertEqual(self.product_a.stock, 9)
        self.assertTrue(IdempotencyKey.objects.filter(key="retry-123").exists())

    def test_idempotency_key_reused_with_different_body(self):
        self.client.post(
            self.checkout_url, self.checkout_payload((self.product_a, 1)), format="json",
            HTTP_IDEMPOTENCY_KEY="retry-456",
        )

        resp = self.client.post(
            self.checkout_url, self.checkout_payload((self.product_b, 1)), format="json",
            HTTP_IDEMPOTENCY_KEY="retry-456",
        )

        self.assertEqual(resp.status_code, 422)
        self.assertEqual(Order.objects.count(), 1)

    def test_in_flight_idempotency_key_conflicts(self):
        cache.add("idemp_lock:busy-key", "someone-else", timeout=60)

        resp = self.client.post(
            self.checkout_url, self.checkout_payload((self.product_a, 1)), format="json",
            HTTP_IDEMPOTENCY_KEY="busy-key",
        )

        self.assertEqual(resp.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(Order.objects.count(), 0)

    def test_failed_checkout_is_not_remembered(self):
        self.client.post(
            self.checkout_url, self.checkout_payload((self.product_b, 9)), format="json",
            HTTP_IDEMPOTENCY_KEY="retry-789",
        )

        self.assertFalse(IdempotencyKey.objects.filter(key="retry-789").exists())

    def test_stored_key_expires_after_thirty_minutes(self):
        self.client.post(
            self.checkout_url, self.checkout_payload((self.product_a, 1)), format="json",
            HTTP_IDEMPOTENCY_KEY="ttl-1",
        )

        rec = IdempotencyKey.objects.get(key="ttl-1")
        lifetime = rec.expires_at - rec.created_at
        self.assertAlmostEqual(lifetime.total_seconds(), 30 * 60, delta=5)

    def bearer(self, user):
        return f"Bearer {AccessToken.for_user(user)}"

    def test_idempotency_key_replays_for_same_customer(self):
        payload = self.checkout_payload((self.product_a, 1))

        first = self.client.post(
            self.checkout_url, payload, format="json",
            HTTP_IDEMPOTENCY_KEY="cara-1", HTTP_AUTHORIZATION=self.bearer(self.customer),
        )
        second = self.client.post(
            self.checkout_url, payload, format="json",
            HTTP_IDEMPOTENCY_KEY="cara-1", HTTP_AUTHORIZATION=self.bearer(self.customer),
        )

        self.assertEqual(first.json()["data"]["customer"]["email"], "customer@example.com")
        self.assertEqual(second["Idempotent-Replayed"], "true")
        self.assertEqual(first.json()["data"]["id"], second.json()["data"]["id"])
        self.assertEqual(IdempotencyKey.objects.get(key="cara-1").caller, str(self.customer.pk))

    def test_idempotency_key_not_replayed_to_another_customer(self):
        payload = self.checkout_payload((self.product_a, 1))
        self.client.post(
            self.checkout_url, payload, format="json",
            HTTP_IDEMPOTENCY_KEY="cara-2", HTTP_AUTHORIZATION=self.bearer(self.customer),
        )

        resp = self.client.post(
            self.checkout_url, payload, format="json",
            HTTP_IDEMPOTENCY_KEY="cara-2", HTTP_AUTHORIZATION=self.bearer(self.other),
        )

        self.assertEqual(resp.status_code, 422)
        self.assertNotIn("Idempotent-Replayed", resp)
        self.assertNotIn("data", resp.json())
        self.assertEqual(Order.objects.count(), 1)
        self.product_a.refresh_from_db()
        self.assertEqual(self.product_a.stock, 9)

    def test_guest_cannot_replay_customer_key(self):
        payload = self.checkout_payload((self.product_a, 1))
        self.client.post(
            self.checkout_url, payload, format="json",
            HTTP_IDEMPOTENCY_KEY="cara-3", HTTP_AUTHORIZATION=self.bearer(self.customer),
        )

        resp = self.client.post(self.checkout_url, payload, format="json", HTTP_IDEMPOTENCY_KEY="cara-3")

        self.assertEqual(resp.status_code, 422)
        self.assertEqual(Order.objects.count(), 1)


class OrderReadAPITests(OrderAPITestCase):
    def setUp(self):
        super().setUp()
        self.mine = OrderService.place_order(self.customer, [{"product_id": self.product_a.id, "quantity": 1}])
        self.theirs = OrderService.place_order(self.other, [{"product_id": self.product_b.id, "quantity": 1}])
        OrderService.update_status(self.theirs, Order.Status.SHIPPED)

    def test_list_requires_authentication(self):
        resp = self.client.get(self.checkout_url)

        self.assertEqual(resp.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertFalse(resp.json()["success"])

    def test_customer_sees_only_own_orders(self):
        self.client.force_authenticate(self.customer)

        resp = self.client.get(self.checkout_url)

        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        body = resp.json()
        self.assertEqual([o["id"] for o in body["data"]], [str(self.mine.id)])
        self.assertEqual(body["pagination"], {"page": 1, "limit": 10, "total": 1, "pages": 1})

    def test_staff_sees_all_and_filters_by_status(self):
        self.client.force_authenticate(self.employee)

        resp = self.client.get(self.checkout_url)
        self.assertEqual(resp.json()["pagination"]["total"], 2)

        resp = self.client.get(self.checkout_url, {"status": "Shipped"})
        self.assertEqual([o["order_number"] for o in resp.json()["data"]], [self.theirs.order_number])

    def test_pagination_limit(self):
        self.client.force_authenticate(self.employee)

        resp = self.client.get(self.checkout_url, {"limit": 1, "page": 2})

        body = resp.json()
        self.assertEqual(len(body["data"]), 1)
        self.assertEqual(body["pagination"], {"page": 2, "limit": 1, "total": 2, "pages": 2})

    def test_retrieve_other_customers_order_is_404(self):
        self.client.force_authenticate(self.customer)

        resp = self.client.get(reverse("orders-detail", args=[self.theirs.id]))

        self.assertEqual(resp.status_code, status.HTTP_404_NOT_FOUND)
        self.assertFalse(resp.json()["success"])

    def test_retrieve_own_order(self):
        self.client.force_authenticate(self.customer)

        resp = self.client.get(reverse("orders-detail", args=[self.mine.id]))

        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.json()["data"]["order_number"], self.mine.order_number)

    def test_track_is_public_and_includes_return_request(self):
        resp = self.client.get(reverse("orders-track", args=[self.mine.order_number]))

        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        data = resp.json()["data"]
        self.assertEqual(data["id"], str(self.mine.id))
        self.assertIsNone(data["return_request"])

        OrderService.update_status(self.mine, Order.Status.DELIVERED)
        ReturnRequest.objects.create(order=self.mine, customer=self.customer, type="return", reason="Too big")

        resp = self.client.get(reverse("orders-track", args=[self.mine.order_number]))
        self.assertEqual(resp.json()["data"]["return_request"]["reason"], "Too big")

    def test_track_unknown_order_number(self):
        resp = self.client.get(reverse("orders-track", args=["ORD-NOPE0000"]))

        self.assertEqual(resp.status_code, status.HTTP_404_NOT_FOUND)


class OrderStatusAPITests(OrderAPITestCase):
    def setUp(self):
        super().setUp()
        self.order = OrderService.place_order(self.customer, [{"product_id": self.product_a.id, "quantity": 1}])
        self.url = reverse("orders-update-status", args=[self.order.id])

    def test_staff_can_set_status(self):
        self.client.force_authenticate(self.employee)

        resp = self.client.patch(self.url, {"status": "Shipped"}, format="json")

        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.json()["data"]["status"], "Shipped")

    def test_backwards_transition_is_accepted(self):
        self.client.force_authenticate(self.employee)

        self.client.patch(self.url, {"status": "Delivered"}, format="json")
        resp = self.client.patch(self.url, {"status": "Pending"}, format="json")

        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.Status.PENDING)

    @override_settings(ORDER_STRICT_STATUS_TRANSITIONS=True)
    def test_strict_mode_rejects_backwards_transition(self):
        self.client.force_authenticate(self.employee)
        OrderService.update_status(self.order, Order.Status.PROCESSING)

        resp = self.client.patch(self.url, {"status": "Pending"}, format="json")

        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(resp.json()["code"], "invalid_transition")

    def test_invalid_status_value(self):
        self.client.force_authenticate(self.employee)

        resp = self.client.patch(self.url, {"status": "Teleported"}, format="json")

        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("status", resp.json()["errors"])

    def test_customer_cannot_set_status(self):
        self.client.force_authenticate(self.customer)

        resp = self.client.patch(self.url, {"status": "Delivered"}, format="json")

        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)

    def test_unknown_order_is_404(self):
        self.client.force_authenticate(self.employee)

        resp = self.client.patch(
            reverse("orders-update-status", args=[uuid.uuid4()]), {"status": "Shipped"}, format="json"
        )

        self.assertEqual(resp.status_code, status.HTTP_404_NOT_FOUND)


class ReturnRequestAPITests(OrderAPITestCase):
    def setUp(self):
        super().setUp()
        self.order = OrderService.place_order(self.customer, [{"product_id": self.product_a.id, "quantity": 2}])
        self.url = reverse("orders-return-request", args=[self.order.id])

    def test_requires_authentication(self):
        resp = self.client.post(self.url, {"type": "return", "reason": "Too small"}, format="json")

        self.assertEqual(resp.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_rejected_until_delivered(self):
        self.client.force_authenticate(self.customer)

        resp = self.client.post(self.url, {"type": "return", "reason": "Too small"}, format="json")

        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(resp.json()["message"], "Can only request return/exchange for delivered orders")

    def test_create_then_duplicate(self):
        OrderService.update_status(self.order, Order.Status.DELIVERED)
        self.client.force_authenticate(self.customer)

        resp = self.client.post(self.url, {"type": "return", "reason": "Too small"}, format="json")

        self.assertEqual(resp.status_code, status.HTTP_201_CREATED)
        data = resp.json()["data"]
        self.assertEqual(data["status"], "pending")
        self.assertEqual(data["items"], [{"product": str(self.product_a.id), "quantity": 2, "condition": "new"}])

        resp = self.client.post(self.url, {"type": "exchange", "reason": "Changed my mind"}, format="json")

        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(resp.json()["message"], "Return/exchange request already exists for this order")

    def test_invalid_type(self):
        OrderService.update_status(self.order, Order.Status.DELIVERED)
        self.client.force_authenticate(self.customer)

        resp = self.client.post(self.url, {"type": "refund", "reason": "x"}, format="json")

        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("type", resp.json()["errors"])

    def test_unknown_order_is_404(self):
        self.client.force_authenticate(self.customer)

        resp = self.client.post(
            reverse("orders-return-request", args=[uuid.uuid4()]),
            {"type": "return", "reason": "Too small"},
            format="json",
        )

        self.assertEqual(resp.status_code, status.HTTP_404_NOT_FOUND)
