from django.db import models
from django.utils import timezone
import uuid


class TimestampedModel(models.Model):
    """
    Common timestamps for all models
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class IdempotencyKey(models.Model):
    """
    Stored response for a client-supplied Idempotency-Key header.
    Written by IdempotencyMiddleware, purged by a periodic task.
    """
    key = models.CharField(max_length=255, unique=True)
    route = models.CharField(max_length=255)
    # Authenticated user id, blank for guests
    caller = models.CharField(max_length=64, blank=True, default="")
    request_hash = models.CharField(max_length=64)
    response_status = models.PositiveSmallIntegerField()
    response_body = models.JSONField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    expires_at = models.DateTimeField(db_index=True)

    def __str__(self):
        return f"{self.key} -> {self.route} [{self.response_status}]"

    def is_expired(self):
        return self.expires_at <= timezone.now()
