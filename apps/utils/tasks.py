from celery import shared_task
from django.utils import timezone
import logging

from .models import IdempotencyKey

logger = logging.getLogger(__name__)


@shared_task
def purge_expired_idempotency_keys():
    deleted, _ = IdempotencyKey.objects.filter(expires_at__lte=timezone.now()).delete()
    if deleted:
        logger.info(f"Purged {deleted} expired idempotency keys")
    return deleted
