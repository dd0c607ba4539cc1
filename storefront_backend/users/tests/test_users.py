from django.contrib.auth import get_user_model
from django.test import TestCase
from rest_framework.test import APIClient

User = get_user_model()


class UserManagerTests(TestCase):
    def test_email_is_the_identity(self):
        user = User.objects.create_user(email="Buyer@Example.com", password="pass")

        self.assertEqual(user.email, "Buyer@example.com")
        self.assertTrue(user.check_password("pass"))
        self.assertFalse(user.is_staff)

    def test_email_required(self):
        with self.assertRaises(ValueError):
            User.objects.create_user(email="", password="pass")

    def test_superuser_flags(self):
        admin = User.objects.create_superuser(email="admin@example.com", password="pass")

        self.assertTrue(admin.is_staff)
        self.assertTrue(admin.is_superuser)


class JWTLoginTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        User.objects.create_user(email="buyer@example.com", password="pass")

    def test_jwt_login_grants_access_to_orders(self):
        res = self.client.post(
            "/api/auth/jwt/create/",
            {"email": "buyer@example.com", "password": "pass"},
            format="json",
        )
        self.assertEqual(res.status_code, 200)

        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {res.data['access']}")
        orders = self.client.get("/api/orders")

        self.assertEqual(orders.status_code, 200)
        self.assertEqual(orders.data["total"], 0)

    def test_anonymous_cannot_list_orders(self):
        res = self.client.get("/api/orders")

        self.assertIn(res.status_code, (401, 403))
