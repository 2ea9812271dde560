import logging
from decimal import Decimal, ROUND_HALF_UP

from django.conf import settings
from django.db import IntegrityError, transaction

from apps.inventory.services import InventoryService
from apps.utils.exceptions import BusinessLogicException

from .models import Order, OrderItem, ReturnRequest

logger = logging.getLogger(__name__)

# Checkout pricing. SiteSettings carries its own tax/shipping figures which
# are not read here.
TAX_RATE = Decimal("0.08")
FREE_SHIPPING_THRESHOLD = Decimal("100")
FLAT_SHIPPING_FEE = Decimal("10")
CENTS = Decimal("0.01")


def calculate_totals(subtotal: Decimal) -> dict:
    """
    tax = 8% of subtotal (to the cent), shipping free strictly above 100.
    """
    subtotal = subtotal.quantize(CENTS)
    tax = (subtotal * TAX_RATE).quantize(CENTS, rounding=ROUND_HALF_UP)
    shipping = Decimal("0.00") if subtotal > FREE_SHIPPING_THRESHOLD else FLAT_SHIPPING_FEE
    return {
        "subtotal": subtotal,
        "tax": tax,
        "shipping": shipping.quantize(CENTS),
        "total": subtotal + tax + shipping,
    }


class OrderService:

    @staticmethod
    def place_order(customer, items: list, shipping_address: dict = None, notes: str = "") -> Order:
        """
        Validates each line against the catalog, decrements stock and
        persists the order.

        Default mode is best-effort: every decrement is saved as soon as its
        line passes, so a later line short on stock leaves earlier decrements
        in place. With ORDER_ATOMIC_CHECKOUT the whole sequence runs in one
        transaction over locked product rows and a failure undoes it all.
        """
        if getattr(settings, "ORDER_ATOMIC_CHECKOUT", False):
            with transaction.atomic():
                locked = InventoryService.lock_products(item["product_id"] for item in items)
                return OrderService._place_order(
                    customer, items, shipping_address, notes,
                    lookup=lambda product_id: locked.get(str(product_id)),
                )

        return OrderService._place_order(
            customer, items, shipping_address, notes,
            lookup=InventoryService.get_product,
        )

    @staticmethod
    def _place_order(customer, items, shipping_address, notes, lookup) -> Order:
        # Resolve every line first so an unknown product never leaves stock touched
        products = {}
        for item in items:
            key = str(item["product_id"])
            if key not in products:
                product = lookup(item["product_id"])
                if product is None:
                    raise BusinessLogicException(
                        f"Product not found: {item['product_id']}", code="product_not_found"
                    )
                products[key] = product

        subtotal = Decimal("0.00")
        lines = []

        for item in items:
            product = products[str(item["product_id"])]
            quantity = item["quantity"]

            InventoryService.deduct(product, quantity)
            subtotal += product.price * quantity

            lines.append(OrderItem(
                product=product,
                product_name=product.name,
                unit_price=product.price,
                quantity=quantity,
                size=item.get("size") or "",
                color=item.get("color") or "",
            ))

        with transaction.atomic():
            order = Order.objects.create(
                customer=customer,
                shipping_address=shipping_address or {},
                notes=notes or "",
                **calculate_totals(subtotal),
            )
            for line in lines:
                line.order = order
            OrderItem.objects.bulk_create(lines)

        logger.info(
            f"Order {order.order_number} placed: {len(lines)} line(s), total {order.total}",
            extra={
                "order_id": str(order.id),
                "order_number": order.order_number,
                "user_id": str(customer.pk) if customer else None,
            },
        )
        return order

    @staticmethod
    def update_status(order: Order, new_status: str) -> Order:
        """
        Sets the order status. Any of the enumerated values is accepted unless
        ORDER_STRICT_STATUS_TRANSITIONS is on, in which case the move must be in
        Order.ALLOWED_TRANSITIONS.
        """
        if new_status not in Order.Status.values:
            raise BusinessLogicException(f"Invalid status: {new_status}", code="invalid_status")

        old_status = order.status
        strict = getattr(settings, "ORDER_STRICT_STATUS_TRANSITIONS", False)
        if strict and not order.can_transition_to(new_status):
            raise BusinessLogicException(
                f"Cannot change order status from {old_status} to {new_status}",
                code="invalid_transition",
            )

        order.status = new_status
        order.save(update_fields=["status", "updated_at"])

        logger.info(
            f"Order {order.order_number} status {old_status} -> {new_status}",
            extra={"order_id": str(order.id), "order_number": order.order_number},
        )
        return order


class ReturnRequestService:

    @staticmethod
    def default_items(order: Order) -> list:
        return [
            {
                "product": str(item.product_id) if item.product_id else None,
                "quantity": item.quantity,
                "condition": ReturnRequest.ItemCondition.NEW.value,
            }
            for item in order.items.all()
        ]

    @staticmethod
    def create_request(order: Order, customer, request_type: str, reason: str, items: list = None) -> ReturnRequest:
        if order.status != Order.Status.DELIVERED:
            raise BusinessLogicException(
                "Can only request return/exchange for delivered orders", code="order_not_delivered"
            )

        if ReturnRequest.objects.filter(order=order).exists():
            raise BusinessLogicException(
                "Return/exchange request already exists for this order", code="duplicate_return_request"
            )

        if items:
            items = [
                {
                    "product": str(i["product"]),
                    "quantity": i["quantity"],
                    "condition": i.get("condition") or ReturnRequest.ItemCondition.NEW.value,
                }
                for i in items
            ]
        else:
            items = ReturnRequestService.default_items(order)

        try:
            with transaction.atomic():
                return_request = ReturnRequest.objects.create(
                    order=order,
                    customer=customer,
                    type=request_type,
                    reason=reason,
                    items=items,
                )
        except IntegrityError:
            # Lost a race with a concurrent request for the same order
            raise BusinessLogicException(
                "Return/exchange request already exists for this order", code="duplicate_return_request"
            )

        logger.info(
            f"{request_type.capitalize()} request {return_request.id} opened for order {order.order_number}",
            extra={"order_id": str(order.id), "user_id": str(customer.pk) if customer else None},
        )
        return return_request
