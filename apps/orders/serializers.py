from rest_framework import serializers

from apps.accounts.serializers import CustomerSummarySerializer
from apps.catalog.serializers import ProductSummarySerializer

from .models import Order, OrderItem, ReturnRequest


# --- Input ---

class CheckoutItemSerializer(serializers.Serializer):
    productId = serializers.UUIDField(source="product_id")
    quantity = serializers.IntegerField(min_value=1)
    size = serializers.CharField(required=False, allow_blank=True, max_length=20)
    color = serializers.CharField(required=False, allow_blank=True, max_length=50)


class ShippingAddressSerializer(serializers.Serializer):
    street = serializers.CharField(required=False, allow_blank=True, max_length=255)
    city = serializers.CharField(required=False, allow_blank=True, max_length=100)
    state = serializers.CharField(required=False, allow_blank=True, max_length=100)
    zipCode = serializers.CharField(source="zip_code", required=False, allow_blank=True, max_length=20)
    country = serializers.CharField(required=False, allow_blank=True, max_length=100)


class CheckoutSerializer(serializers.Serializer):
    items = CheckoutItemSerializer(many=True, allow_empty=False)
    shippingAddress = ShippingAddressSerializer(source="shipping_address")
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class OrderStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Order.Status.choices)


class ReturnRequestItemSerializer(serializers.Serializer):
    product = serializers.UUIDField()
    quantity = serializers.IntegerField(min_value=1)
    condition = serializers.ChoiceField(
        choices=ReturnRequest.ItemCondition.choices,
        default=ReturnRequest.ItemCondition.NEW,
    )


class ReturnRequestCreateSerializer(serializers.Serializer):
    type = serializers.ChoiceField(choices=ReturnRequest.Type.choices)
    reason = serializers.CharField()
    items = ReturnRequestItemSerializer(many=True, required=False)


# --- Output ---

class OrderItemSerializer(serializers.ModelSerializer):
    product = ProductSummarySerializer(read_only=True)
    line_total = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)

    class Meta:
        model = OrderItem
        fields = ["product", "product_name", "quantity", "unit_price", "size", "color", "line_total"]


class ReturnRequestSerializer(serializers.ModelSerializer):
    class Meta:
        model = ReturnRequest
        fields = [
            "id", "order", "customer", "type", "reason", "items", "status",
            "refund_amount", "refund_status", "admin_notes", "tracking_number",
            "created_at", "updated_at",
        ]
        read_only_fields = fields


class OrderSerializer(serializers.ModelSerializer):
    customer = CustomerSummarySerializer(read_only=True)
    items = OrderItemSerializer(many=True, read_only=True)

    class Meta:
        model = Order
        fields = [
            "id", "order_number", "customer", "items",
            "subtotal", "tax", "shipping", "total",
            "status", "shipping_address", "notes",
            "created_at", "updated_at",
        ]
        read_only_fields = fields


class OrderTrackingSerializer(OrderSerializer):
    return_request = serializers.SerializerMethodField()

    class Meta(OrderSerializer.Meta):
        fields = OrderSerializer.Meta.fields + ["return_request"]
        read_only_fields = fields

    def get_return_request(self, obj):
        return_request = getattr(obj, "return_request", None)
        if return_request is None:
            return None
        return ReturnRequestSerializer(return_request).data
