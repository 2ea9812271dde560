import hashlib
import json
import logging
import time
from datetime import timedelta

from django.conf import settings
from django.core.cache import cache
from django.db import DatabaseError
from django.http import JsonResponse
from django.utils import timezone
from django.utils.deprecation import MiddlewareMixin
from rest_framework.exceptions import AuthenticationFailed
from rest_framework_simplejwt.authentication import JWTAuthentication

from .exceptions import server_error_payload
from .models import IdempotencyKey

logger = logging.getLogger(__name__)

IDEMPOTENCY_HEADER = "HTTP_IDEMPOTENCY_KEY"
STORE_HEADER = "X-Store-Idempotency"
MAX_REQUEST_BODY_SIZE = 2 * 1024 * 1024  # 2MB
LOCK_TIMEOUT = 60


def _caller_id(request):
    """
    Id of the user behind the request, or "" for guests.

    DRF authenticates inside the view, so bearer tokens are resolved here.
    A bad token counts as a guest; the view still rejects it.
    """
    user = getattr(request, "user", None)
    if user is not None and user.is_authenticated:
        return str(user.pk)
    try:
        authenticated = JWTAuthentication().authenticate(request)
    except AuthenticationFailed:
        return ""
    return str(authenticated[0].pk) if authenticated else ""


class GlobalExceptionMiddleware(MiddlewareMixin):
    """
    Last line of defense for non-DRF views.
    """
    def process_exception(self, request, exception):
        logger.exception(f"Unhandled Middleware Exception: {exception}")
        if request.path.startswith('/api/'):
            return JsonResponse(server_error_payload(exception), status=500)
        return None  # Django's default 500 handler for HTML


class RequestLogMiddleware:
    """
    One log line per API request with status and timing.
    """
    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        started = time.monotonic()
        response = self.get_response(request)

        if request.path.startswith('/api/'):
            duration_ms = round((time.monotonic() - started) * 1000, 2)
            user = getattr(request, "user", None)
            user_id = str(user.pk) if user is not None and user.is_authenticated else None
            level = logging.WARNING if response.status_code >= 500 else logging.INFO
            logger.log(
                level,
                f"{request.method} {request.path} -> {response.status_code} ({duration_ms}ms)",
                extra={
                    "status_code": response.status_code,
                    "duration_ms": duration_ms,
                    "user_id": user_id,
                },
            )
        return response


class IdempotencyMiddleware(MiddlewareMixin):
    """
    Replays the stored response for a repeated Idempotency-Key.

    Views opt in by setting the X-Store-Idempotency header on the response
    they want remembered.
    """
    def process_request(self, request):
        if request.method not in ('POST', 'PATCH'):
            return None

        key = request.META.get(IDEMPOTENCY_HEADER)
        if not key:
            return None

        if int(request.META.get('CONTENT_LENGTH') or 0) > MAX_REQUEST_BODY_SIZE:
            logger.warning("Idempotency: Request body too large, skipping.")
            return None

        if request.content_type.startswith("multipart/form-data"):
            return None

        # Concurrency lock, one in-flight request per key
        lock_key = f"idemp_lock:{key}"
        request_id = f"{timezone.now().timestamp()}:{id(request)}"

        if not cache.add(lock_key, request_id, timeout=LOCK_TIMEOUT):
            return JsonResponse(
                {"success": False, "message": "Request is currently being processed. Please wait."},
                status=409,
            )

        request_hash = hashlib.sha256(request.body or b"").hexdigest()
        caller = _caller_id(request)

        rec = IdempotencyKey.objects.filter(key=key).first()
        if rec is not None:
            if rec.is_expired():
                rec.delete()
            else:
                cache.delete(lock_key)
                if rec.caller != caller or rec.route != request.path:
                    logger.warning(
                        f"Idempotency: key reused by another caller or route ({request.path})",
                        extra={"path": request.path, "user_id": caller or None},
                    )
                    return JsonResponse(
                        {"success": False, "message": "Idempotency key belongs to a different request."},
                        status=422,
                    )
                if rec.request_hash != request_hash:
                    return JsonResponse(
                        {
                            "success": False,
                            "message": "Idempotency key was already used with a different request body.",
                        },
                        status=422,
                    )
                logger.info(f"Idempotency: replaying stored response for {rec.route}")
                response = JsonResponse(
                    rec.response_body,
                    status=rec.response_status,
                    safe=isinstance(rec.response_body, dict),
                )
                response["Idempotent-Replayed"] = "true"
                return response

        request._idempotency_key = key
        request._idempotency_request_hash = request_hash
        request._idempotency_caller = caller
        request._idempotency_lock_key = lock_key
        request._idempotency_req_id = request_id
        return None

    def process_response(self, request, response):
        key = getattr(request, "_idempotency_key", None)
        lock_key = getattr(request, "_idempotency_lock_key", None)
        req_id = getattr(request, "_idempotency_req_id", None)

        # Only release the lock if this request still owns it
        if lock_key and req_id and cache.get(lock_key) == req_id:
            cache.delete(lock_key)

        should_store = response.get(STORE_HEADER, "0") == "1"
        if response.has_header(STORE_HEADER):
            del response[STORE_HEADER]

        if not key or not should_store:
            return response

        if not (200 <= response.status_code < 500):
            return response

        content_type = response.get("Content-Type", "").split(";")[0].strip()
        body_bytes = getattr(response, "content", b"") or b""
        if content_type != "application/json" or len(body_bytes) > MAX_REQUEST_BODY_SIZE:
            logger.warning("Idempotency: Skipping store (unsupported or oversized body)")
            return response

        ttl = getattr(settings, "IDEMPOTENCY_KEY_TTL", 30)
        try:
            IdempotencyKey.objects.update_or_create(
                key=key,
                defaults={
                    "route": request.path,
                    "caller": request._idempotency_caller,
                    "request_hash": request._idempotency_request_hash,
                    "response_status": response.status_code,
                    "response_body": json.loads(body_bytes.decode("utf-8")),
                    "expires_at": timezone.now() + timedelta(minutes=ttl),
                },
            )
        except DatabaseError:
            logger.exception("Error storing idempotency data")

        return response
