# apps/catalog/serializers.py
from rest_framework import serializers
from .models import Product


class ProductSerializer(serializers.ModelSerializer):
    in_stock = serializers.BooleanField(read_only=True)

    class Meta:
        model = Product
        fields = [
            "id",
            "name",
            "description",
            "category",
            "price",
            "discount_price",
            "stock",
            "in_stock",
            "sizes",
            "colors",
            "sku",
            "image_url",
            "is_active",
            "featured",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "created_at", "updated_at"]

    def validate_stock(self, value):
        if value < 0:
            raise serializers.ValidationError("Stock cannot be negative.")
        return value

    def validate(self, attrs):
        price = attrs.get("price", getattr(self.instance, "price", None))
        discount = attrs.get("discount_price")
        if discount is not None and price is not None and discount > price:
            raise serializers.ValidationError(
                {"discount_price": "Discount price cannot exceed the regular price."}
            )
        return attrs


class ProductSummarySerializer(serializers.ModelSerializer):
    """
    Compact product block embedded in order responses.
    """
    class Meta:
        model = Product
        fields = ["id", "name", "price", "image_url"]
