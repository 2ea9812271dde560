# apps/utils/tests.py
import json
import logging
from datetime import timedelta

from django.test import RequestFactory, TestCase, override_settings
from django.utils import timezone
from rest_framework import status
from rest_framework.exceptions import NotFound, ValidationError

from .exceptions import BusinessLogicException, custom_exception_handler
from .logging import JSONFormatter
from .middleware import GlobalExceptionMiddleware
from .models import IdempotencyKey
from .tasks import purge_expired_idempotency_keys
from .utils import generate_order_number


class ExceptionHandlerTests(TestCase):
    def test_business_exception_envelope(self):
        resp = custom_exception_handler(
            BusinessLogicException("Insufficient stock for Tee", code="insufficient_stock"), {}
        )

        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(resp.data, {
            "success": False,
            "message": "Insufficient stock for Tee",
            "code": "insufficient_stock",
        })

    def test_business_exception_custom_status(self):
        resp = custom_exception_handler(BusinessLogicException("Gone", status_code=410), {})

        self.assertEqual(resp.status_code, 410)

    def test_validation_error_keeps_field_detail(self):
        resp = custom_exception_handler(ValidationError({"quantity": ["Must be positive."]}), {})

        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(resp.data["message"], "Validation failed")
        self.assertEqual(resp.data["errors"], {"quantity": ["Must be positive."]})

    def test_drf_error_flattened(self):
        resp = custom_exception_handler(NotFound("Order not found"), {})

        self.assertEqual(resp.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(resp.data, {"success": False, "message": "Order not found"})

    @override_settings(DEBUG=False)
    def test_unhandled_error_is_500_without_stack(self):
        with self.assertLogs("apps.utils.exceptions", level="ERROR"):
            resp = custom_exception_handler(RuntimeError("database exploded"), {})

        self.assertEqual(resp.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.assertEqual(resp.data, {"success": False, "message": "database exploded"})

    @override_settings(DEBUG=True)
    def test_unhandled_error_includes_stack_in_debug(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError as exc:
            with self.assertLogs("apps.utils.exceptions", level="ERROR"):
                resp = custom_exception_handler(exc, {})

        self.assertIn("RuntimeError: boom", resp.data["stack"])


class GlobalExceptionMiddlewareTests(TestCase):
    def setUp(self):
        self.middleware = GlobalExceptionMiddleware(lambda request: None)
        self.factory = RequestFactory()

    @override_settings(DEBUG=False)
    def test_api_paths_get_json_500(self):
        with self.assertLogs("apps.utils.middleware", level="ERROR"):
            resp = self.middleware.process_exception(self.factory.get("/api/orders/"), ValueError("bad"))

        self.assertEqual(resp.status_code, 500)
        self.assertEqual(json.loads(resp.content), {"success": False, "message": "bad"})

    def test_other_paths_fall_through(self):
        with self.assertLogs("apps.utils.middleware", level="ERROR"):
            resp = self.middleware.process_exception(self.factory.get("/admin/"), ValueError("bad"))

        self.assertIsNone(resp)


class JSONFormatterTests(TestCase):
    def make_record(self, msg, args=None, **extra):
        record = logging.LogRecord("apps.orders", logging.INFO, __file__, 10, msg, args, None)
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_context_fields_included(self):
        line = JSONFormatter().format(self.make_record("placed", order_id="abc", user_id="u1"))

        payload = json.loads(line)
        self.assertEqual(payload["msg"], "placed")
        self.assertEqual(payload["order_id"], "abc")
        self.assertEqual(payload["user_id"], "u1")
        self.assertEqual(payload["lvl"], "INFO")

    def test_sensitive_keys_redacted(self):
        record = self.make_record({"user": "x", "password": "hunter2", "nested": {"token": "t"}})

        payload = json.loads(JSONFormatter().format(record))

        self.assertNotIn("hunter2", payload["msg"])
        self.assertIn("***REDACTED***", payload["msg"])


class IdempotencyKeyPurgeTests(TestCase):
    def test_purges_only_expired(self):
        now = timezone.now()
        IdempotencyKey.objects.create(
            key="old", route="/api/orders/", request_hash="h", response_status=201,
            response_body={}, expires_at=now - timedelta(minutes=1),
        )
        IdempotencyKey.objects.create(
            key="fresh", route="/api/orders/", request_hash="h", response_status=201,
            response_body={}, expires_at=now + timedelta(minutes=30),
        )

        deleted = purge_expired_idempotency_keys()

        self.assertEqual(deleted, 1)
        self.assertEqual(list(IdempotencyKey.objects.values_list("key", flat=True)), ["fresh"])


class HealthCheckTests(TestCase):
    def test_health_ok(self):
        resp = self.client.get("/api/health/")

        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["status"], "ok")


class OrderNumberTests(TestCase):
    def test_format(self):
        number = generate_order_number()

        self.assertTrue(number.startswith("ORD-"))
        self.assertEqual(len(number), 12)
        self.assertEqual(number, number.upper())
