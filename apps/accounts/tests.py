import os
from io import StringIO
from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.contrib.auth.models import AnonymousUser
from django.core.management import call_command
from django.test import TestCase
from rest_framework.test import APIRequestFactory

from .models import Role
from .permissions import IsAdminRole, IsStaffOrReadOnly, IsStaffRole

User = get_user_model()


class UserManagerTests(TestCase):
    def test_create_user_normalizes_email_and_defaults_to_customer(self):
        user = User.objects.create_user(
            email="Jane@EXAMPLE.com", password="s3cret-pass", first_name="Jane", last_name="Doe"
        )

        self.assertEqual(user.email, "Jane@example.com")
        self.assertEqual(user.role, Role.CUSTOMER)
        self.assertFalse(user.is_staff)
        self.assertTrue(user.check_password("s3cret-pass"))
        self.assertEqual(user.full_name, "Jane Doe")

    def test_create_user_requires_email(self):
        with self.assertRaises(ValueError):
            User.objects.create_user(email="", password="x")

    def test_create_user_without_password_is_unusable(self):
        user = User.objects.create_user(email="nopass@example.com", first_name="No", last_name="Pass")

        self.assertFalse(user.has_usable_password())

    def test_create_superuser_is_admin(self):
        admin = User.objects.create_superuser(
            email="root@example.com", password="s3cret-pass", first_name="Root", last_name="User"
        )

        self.assertTrue(admin.is_staff)
        self.assertTrue(admin.is_superuser)
        self.assertEqual(admin.role, Role.ADMIN)

    def test_create_superuser_rejects_non_staff(self):
        with self.assertRaises(ValueError):
            User.objects.create_superuser(email="bad@example.com", password="x", is_staff=False)


class PermissionTests(TestCase):
    def setUp(self):
        self.factory = APIRequestFactory()
        self.admin = User.objects.create_user(
            email="admin@example.com", first_name="A", last_name="Admin", role=Role.ADMIN
        )
        self.employee = User.objects.create_user(
            email="emp@example.com", first_name="E", last_name="Employee", role=Role.EMPLOYEE
        )
        self.customer = User.objects.create_user(email="cust@example.com", first_name="C", last_name="Customer")
        self.django_staff = User.objects.create_user(
            email="ops@example.com", first_name="O", last_name="Ops", is_staff=True
        )

    def request(self, user, method="get"):
        request = getattr(self.factory, method)("/")
        request.user = user
        return request

    def test_staff_role(self):
        perm = IsStaffRole()
        self.assertTrue(perm.has_permission(self.request(self.admin), None))
        self.assertTrue(perm.has_permission(self.request(self.employee), None))
        self.assertTrue(perm.has_permission(self.request(self.django_staff), None))
        self.assertFalse(perm.has_permission(self.request(self.customer), None))
        self.assertFalse(perm.has_permission(self.request(AnonymousUser()), None))

    def test_admin_role(self):
        perm = IsAdminRole()
        self.assertTrue(perm.has_permission(self.request(self.admin), None))
        self.assertFalse(perm.has_permission(self.request(self.employee), None))

    def test_staff_or_read_only(self):
        perm = IsStaffOrReadOnly()
        self.assertTrue(perm.has_permission(self.request(AnonymousUser()), None))
        self.assertFalse(perm.has_permission(self.request(self.customer, "post"), None))
        self.assertTrue(perm.has_permission(self.request(self.employee, "post"), None))


class CreateAdminCommandTests(TestCase):
    @patch.dict(os.environ, {"ADMIN_EMAIL": "boss@example.com", "ADMIN_PASSWORD": "very-secret-1"})
    def test_creates_then_updates_admin(self):
        out = StringIO()
        with self.settings(DEBUG=True):
            call_command("create_admin", stdout=out)
            call_command("create_admin", stdout=out)

        user = User.objects.get(email="boss@example.com")
        self.assertTrue(user.is_superuser)
        self.assertEqual(user.role, Role.ADMIN)
        self.assertTrue(user.check_password("very-secret-1"))
        self.assertIn("Created admin", out.getvalue())
        self.assertIn("Updated admin", out.getvalue())

    @patch.dict(os.environ, {"ADMIN_EMAIL": "boss@example.com", "ADMIN_PASSWORD": "x"})
    def test_refuses_in_production_without_override(self):
        err = StringIO()
        with self.settings(DEBUG=False):
            call_command("create_admin", stderr=err)

        self.assertIn("Production Lock", err.getvalue())
        self.assertFalse(User.objects.filter(email="boss@example.com").exists())
