# users/tests/test_users.py

from io import StringIO

from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import TestCase
from rest_framework.test import APIClient

from permissions.roles import CAP_CATALOG_MANAGE, CAP_INVENTORY_RECEIVE, CAP_INVENTORY_VIEW, CAP_POS_SELL
from products.tests.utils import make_branch, make_user
from users.models import User

ME_URL = "/api/auth/me/"


class MeViewTests(TestCase):
    def test_me_returns_role_branch_and_capabilities(self):
        branch = make_branch()
        user = make_user("cashier", branch=branch)
        client = APIClient()
        client.force_authenticate(user)

        res = client.get(ME_URL)

        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.data["role"], "cashier")
        self.assertEqual(res.data["branch_id"], branch.pk)
        self.assertEqual(res.data["branch_name"], "Main Branch")
        self.assertEqual(res.data["capabilities"], sorted([CAP_INVENTORY_VIEW, CAP_POS_SELL]))

    def test_superuser_gets_every_capability(self):
        user = User.objects.create_superuser(email="root@example.com", password="password123")
        client = APIClient()
        client.force_authenticate(user)

        res = client.get(ME_URL)

        self.assertIn(CAP_CATALOG_MANAGE, res.data["capabilities"])
        self.assertIn(CAP_INVENTORY_RECEIVE, res.data["capabilities"])

    def test_anonymous_is_401(self):
        self.assertEqual(APIClient().get(ME_URL).status_code, 401)

    def test_username_is_derived_from_email(self):
        user = make_user("pharmacist", email="Jane.Doe@example.com")
        self.assertEqual(user.username, "jane.doe")


class SeedUsersCommandTests(TestCase):
    def test_seed_is_idempotent(self):
        branch = make_branch()
        out = StringIO()

        call_command("seed_users", "--branch", "MAIN", stdout=out)
        call_command("seed_users", "--branch", "MAIN", stdout=out)

        self.assertEqual(User.objects.count(), 4)
        self.assertEqual(User.objects.get(username="cashier").branch, branch)
        self.assertIsNone(User.objects.get(username="admin").branch)
        self.assertTrue(User.objects.get(username="admin").is_superuser)

    def test_unknown_branch_fails(self):
        with self.assertRaises(CommandError):
            call_command("seed_users", "--branch", "NOPE", stdout=StringIO())
