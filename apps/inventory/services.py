import logging
from typing import Dict, Iterable, Optional

from apps.catalog.models import Product
from apps.utils.exceptions import BusinessLogicException

logger = logging.getLogger(__name__)


class InventoryService:
    """
    Stock changes made by checkout pass through here.
    """

    @staticmethod
    def get_product(product_id) -> Optional[Product]:
        return Product.objects.filter(pk=product_id).first()

    @staticmethod
    def lock_products(product_ids: Iterable) -> Dict[str, Product]:
        """
        Locks product rows in deterministic order to prevent deadlocks.
        Must be called inside transaction.atomic().
        """
        ordered_ids = sorted({str(pid) for pid in product_ids})
        products = (
            Product.objects
            .select_for_update()
            .filter(pk__in=ordered_ids)
            .order_by("pk")
        )
        return {str(p.pk): p for p in products}

    @staticmethod
    def deduct(product: Product, quantity: int) -> Product:
        """
        Checks availability and persists the decrement immediately.
        """
        if product.stock < quantity:
            logger.info(
                f"Insufficient stock for {product.pk}: requested {quantity}, available {product.stock}",
                extra={"product_id": str(product.pk)},
            )
            raise BusinessLogicException(
                f"Insufficient stock for {product.name}", code="insufficient_stock"
            )

        product.stock -= quantity
        product.save(update_fields=["stock", "updated_at"])
        return product
