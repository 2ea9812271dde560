from django.db import models
from django.conf import settings
from apps.utils.models import TimestampedModel
from .order import Order


class ReturnRequest(TimestampedModel):
    """
    Return or exchange request for a delivered order, at most one per order.
    Staff move it through its statuses by hand in the admin.
    """

    class Type(models.TextChoices):
        RETURN = "return", "Return"
        EXCHANGE = "exchange", "Exchange"

    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        APPROVED = "approved", "Approved"
        REJECTED = "rejected", "Rejected"
        PROCESSING = "processing", "Processing"
        COMPLETED = "completed", "Completed"

    class RefundStatus(models.TextChoices):
        PENDING = "pending", "Pending"
        PROCESSING = "processing", "Processing"
        COMPLETED = "completed", "Completed"
        FAILED = "failed", "Failed"

    class ItemCondition(models.TextChoices):
        NEW = "new", "New"
        USED = "used", "Used"
        DAMAGED = "damaged", "Damaged"

    order = models.OneToOneField(Order, on_delete=models.CASCADE, related_name='return_request')
    customer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='return_requests',
        null=True,
        blank=True,
    )
    type = models.CharField(max_length=10, choices=Type.choices)
    reason = models.TextField()
    # [{"product": "<uuid>", "quantity": 1, "condition": "new"}]
    items = models.JSONField(default=list, blank=True)

    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING, db_index=True)
    refund_amount = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    refund_status = models.CharField(max_length=20, choices=RefundStatus.choices, default=RefundStatus.PENDING)
    admin_notes = models.TextField(blank=True)
    tracking_number = models.CharField(max_length=100, blank=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return f"{self.get_type_display()} for {self.order.order_number} [{self.status}]"
