# apps/orders/tests.py
import uuid
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.test import TestCase, override_settings

from apps.catalog.models import Product
from apps.orders.models import Order, OrderItem, ReturnRequest
from apps.orders.services import OrderService, ReturnRequestService, calculate_totals
from apps.utils.exceptions import BusinessLogicException

User = get_user_model()


def make_product(name, price, stock, category=Product.Category.TOPS):
    return Product.objects.create(name=name, category=category, price=Decimal(price), stock=stock)


class CalculateTotalsTests(TestCase):
    def test_free_shipping_above_threshold(self):
        totals = calculate_totals(Decimal("130.00"))

        self.assertEqual(totals["subtotal"], Decimal("130.00"))
        self.assertEqual(totals["tax"], Decimal("10.40"))
        self.assertEqual(totals["shipping"], Decimal("0.00"))
        self.assertEqual(totals["total"], Decimal("140.40"))

    def test_flat_shipping_below_threshold(self):
        totals = calculate_totals(Decimal("20.00"))

        self.assertEqual(totals["tax"], Decimal("1.60"))
        self.assertEqual(totals["shipping"], Decimal("10.00"))
        self.assertEqual(totals["total"], Decimal("31.60"))

    def test_exactly_threshold_still_pays_shipping(self):
        totals = calculate_totals(Decimal("100.00"))

        self.assertEqual(totals["shipping"], Decimal("10.00"))
        self.assertEqual(totals["total"], Decimal("118.00"))

    def test_just_above_threshold_ships_free(self):
        self.assertEqual(calculate_totals(Decimal("100.01"))["shipping"], Decimal("0.00"))


class PlaceOrderTests(TestCase):
    def setUp(self):
        self.customer = User.objects.create_user(
            email="shopper@example.com", password="testpass123", first_name="Sam", last_name="Shopper"
        )
        self.product_a = make_product("Denim Jacket", "50.00", 10, Product.Category.OUTERWEAR)
        self.product_b = make_product("Silk Scarf", "30.00", 5, Product.Category.ACCESSORIES)
        self.address = {"street": "1 Main St", "city": "Dhaka", "country": "BD"}

    def test_single_item_subtotal_and_stock_decrement(self):
        order = OrderService.place_order(
            self.customer,
            [{"product_id": self.product_a.id, "quantity": 3}],
            self.address,
        )

        self.assertEqual(order.subtotal, Decimal("150.00"))
        self.assertEqual(order.status, Order.Status.PENDING)
        self.product_a.refresh_from_db()
        self.assertEqual(self.product_a.stock, 7)

    def test_two_item_cart_totals(self):
        order = OrderService.place_order(
            self.customer,
            [
                {"product_id": self.product_a.id, "quantity": 2},
                {"product_id": self.product_b.id, "quantity": 1},
            ],
            self.address,
            notes="Leave at the door",
        )

        order.refresh_from_db()
        self.assertEqual(order.subtotal, Decimal("130.00"))
        self.assertEqual(order.tax, Decimal("10.40"))
        self.assertEqual(order.shipping, Decimal("0.00"))
        self.assertEqual(order.total, Decimal("140.40"))
        self.assertEqual(order.notes, "Leave at the door")
        self.assertEqual(order.shipping_address["city"], "Dhaka")
        self.assertTrue(order.order_number.startswith("ORD-"))

        names = list(order.items.values_list("product_name", flat=True))
        self.assertEqual(names, ["Denim Jacket", "Silk Scarf"])

    def test_items_keep_price_snapshot(self):
        order = OrderService.place_order(
            self.customer,
            [{"product_id": self.product_b.id, "quantity": 1, "size": "M", "color": "Red"}],
        )

        self.product_b.price = Decimal("99.00")
        self.product_b.save()

        item = OrderItem.objects.get(order=order)
        self.assertEqual(item.unit_price, Decimal("30.00"))
        self.assertEqual(item.size, "M")
        self.assertEqual(item.color, "Red")
        order.refresh_from_db()
        self.assertEqual(order.subtotal, Decimal("30.00"))

    def test_guest_checkout_has_no_customer(self):
        order = OrderService.place_order(None, [{"product_id": self.product_b.id, "quantity": 1}])

        self.assertIsNone(order.customer)

    def test_unknown_product_rejected_without_side_effects(self):
        missing = uuid.uuid4()

        with self.assertRaises(BusinessLogicException) as ctx:
            OrderService.place_order(
                self.customer,
                [
                    {"product_id": self.product_a.id, "quantity": 1},
                    {"product_id": missing, "quantity": 1},
                ],
            )

        self.assertEqual(ctx.exception.message, f"Product not found: {missing}")
        self.assertEqual(Order.objects.count(), 0)
        self.product_a.refresh_from_db()
        self.assertEqual(self.product_a.stock, 10)

    def test_insufficient_stock_names_product(self):
        with self.assertRaises(BusinessLogicException) as ctx:
            OrderService.place_order(self.customer, [{"product_id": self.product_b.id, "quantity": 6}])

        self.assertEqual(ctx.exception.message, "Insufficient stock for Silk Scarf")
        self.assertEqual(Order.objects.count(), 0)

    def test_insufficient_stock_keeps_earlier_decrements(self):
        # Known gap of best-effort checkout: lines before the failing one
        # have already been decremented and are not restored.
        with self.assertRaises(BusinessLogicException):
            OrderService.place_order(
                self.customer,
                [
                    {"product_id": self.product_a.id, "quantity": 4},
                    {"product_id": self.product_b.id, "quantity": 50},
                ],
            )

        self.assertEqual(Order.objects.count(), 0)
        self.product_a.refresh_from_db()
        self.product_b.refresh_from_db()
        self.assertEqual(self.product_a.stock, 6)
        self.assertEqual(self.product_b.stock, 5)

    def test_repeated_product_lines_share_stock(self):
        with self.assertRaises(BusinessLogicException):
            OrderService.place_order(
                self.customer,
                [
                    {"product_id": self.product_b.id, "quantity": 3},
                    {"product_id": self.product_b.id, "quantity": 3},
                ],
            )

        self.product_b.refresh_from_db()
        self.assertEqual(self.product_b.stock, 2)

    @override_settings(ORDER_ATOMIC_CHECKOUT=True)
    def test_atomic_checkout_rolls_back_all_decrements(self):
        with self.assertRaises(BusinessLogicException):
            OrderService.place_order(
                self.customer,
                [
                    {"product_id": self.product_a.id, "quantity": 4},
                    {"product_id": self.product_b.id, "quantity": 50},
                ],
            )

        self.assertEqual(Order.objects.count(), 0)
        self.product_a.refresh_from_db()
        self.assertEqual(self.product_a.stock, 10)

    @override_settings(ORDER_ATOMIC_CHECKOUT=True)
    def test_atomic_checkout_success(self):
        order = OrderService.place_order(
            self.customer,
            [
                {"product_id": self.product_a.id, "quantity": 2},
                {"product_id": self.product_b.id, "quantity": 1},
            ],
        )

        self.assertEqual(order.total, Decimal("140.40"))
        self.product_a.refresh_from_db()
        self.product_b.refresh_from_db()
        self.assertEqual(self.product_a.stock, 8)
        self.assertEqual(self.product_b.stock, 4)

    @override_settings(ORDER_ATOMIC_CHECKOUT=True)
    def test_atomic_checkout_unknown_product(self):
        with self.assertRaises(BusinessLogicException) as ctx:
            OrderService.place_order(self.customer, [{"product_id": uuid.uuid4(), "quantity": 1}])

        self.assertEqual(ctx.exception.code, "product_not_found")


class UpdateStatusTests(TestCase):
    def setUp(self):
        product = make_product("Sneakers", "20.00", 5, Product.Category.SHOES)
        self.order = OrderService.place_order(None, [{"product_id": product.id, "quantity": 1}])

    def test_every_status_accepted(self):
        for value in Order.Status.values:
            OrderService.update_status(self.order, value)
            self.order.refresh_from_db()
            self.assertEqual(self.order.status, value)

    def test_backwards_transition_accepted_by_default(self):
        # Permissive by default: nothing stops Delivered -> Pending
        OrderService.update_status(self.order, Order.Status.DELIVERED)
        OrderService.update_status(self.order, Order.Status.PENDING)

        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.Status.PENDING)

    def test_unknown_status_rejected(self):
        with self.assertRaises(BusinessLogicException) as ctx:
            OrderService.update_status(self.order, "Lost")

        self.assertEqual(ctx.exception.code, "invalid_status")

    @override_settings(ORDER_STRICT_STATUS_TRANSITIONS=True)
    def test_strict_mode_allows_forward_moves(self):
        for value in (Order.Status.PROCESSING, Order.Status.SHIPPED, Order.Status.DELIVERED):
            OrderService.update_status(self.order, value)

        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.Status.DELIVERED)

    @override_settings(ORDER_STRICT_STATUS_TRANSITIONS=True)
    def test_strict_mode_rejects_backwards_move(self):
        self.order.status = Order.Status.DELIVERED
        self.order.save()

        with self.assertRaises(BusinessLogicException) as ctx:
            OrderService.update_status(self.order, Order.Status.PENDING)

        self.assertEqual(ctx.exception.code, "invalid_transition")
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.Status.DELIVERED)

    @override_settings(ORDER_STRICT_STATUS_TRANSITIONS=True)
    def test_strict_mode_same_status_is_noop(self):
        OrderService.update_status(self.order, Order.Status.PENDING)

        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.Status.PENDING)


class ReturnRequestServiceTests(TestCase):
    def setUp(self):
        self.customer = User.objects.create_user(
            email="returns@example.com", password="testpass123", first_name="Rae", last_name="Turner"
        )
        self.product = make_product("Midi Dress", "45.00", 5, Product.Category.DRESSES)
        self.order = OrderService.place_order(
            self.customer, [{"product_id": self.product.id, "quantity": 2}]
        )

    def deliver(self):
        OrderService.update_status(self.order, Order.Status.DELIVERED)

    def test_requires_delivered_order(self):
        with self.assertRaises(BusinessLogicException) as ctx:
            ReturnRequestService.create_request(self.order, self.customer, "return", "Too small")

        self.assertEqual(ctx.exception.message, "Can only request return/exchange for delivered orders")
        self.assertFalse(ReturnRequest.objects.exists())

    def test_defaults_items_to_order_items(self):
        self.deliver()

        rr = ReturnRequestService.create_request(self.order, self.customer, "return", "Too small")

        self.assertEqual(rr.status, ReturnRequest.Status.PENDING)
        self.assertEqual(rr.refund_status, ReturnRequest.RefundStatus.PENDING)
        self.assertEqual(
            rr.items,
            [{"product": str(self.product.id), "quantity": 2, "condition": "new"}],
        )

    def test_explicit_items_are_stored(self):
        self.deliver()

        rr = ReturnRequestService.create_request(
            self.order,
            self.customer,
            "exchange",
            "Wrong colour",
            items=[{"product": self.product.id, "quantity": 1, "condition": "used"}],
        )

        self.assertEqual(rr.type, ReturnRequest.Type.EXCHANGE)
        self.assertEqual(rr.items, [{"product": str(self.product.id), "quantity": 1, "condition": "used"}])

    def test_second_request_rejected_regardless_of_type(self):
        self.deliver()
        ReturnRequestService.create_request(self.order, self.customer, "return", "Too small")

        with self.assertRaises(BusinessLogicException) as ctx:
            ReturnRequestService.create_request(self.order, self.customer, "exchange", "Different reason")

        self.assertEqual(ctx.exception.message, "Return/exchange request already exists for this order")
        self.assertEqual(ReturnRequest.objects.filter(order=self.order).count(), 1)
