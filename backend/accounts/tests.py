from django.test import TestCase
from rest_framework.test import APIRequestFactory

from accounts.models import User
from accounts.views import LoginView, RefreshTokenView, RegisterView
from drivers.models import DriverProfile


class AuthViewTests(TestCase):
    def setUp(self):
        self.factory = APIRequestFactory()

    def _post(self, view_class, path, data):
        return view_class.as_view()(self.factory.post(path, data, format="json"))

    def test_register_driver_creates_offline_profile(self):
        response = self._post(RegisterView, "/api/auth/register/", {
            "username": "karim",
            "password": "driver1234",
            "role": "driver",
            "phone_number": "01811111111",
        })

        self.assertEqual(response.status_code, 201)
        self.assertIn("access", response.data["tokens"])
        profile = DriverProfile.objects.get(user__username="karim")
        self.assertEqual(profile.status, DriverProfile.OFFLINE)

    def test_register_rider_has_no_driver_profile(self):
        response = self._post(RegisterView, "/api/auth/register/", {
            "username": "nadia",
            "password": "rider1234",
        })

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["user"]["role"], User.RIDER)
        self.assertFalse(DriverProfile.objects.exists())

    def test_login_and_refresh(self):
        User.objects.create_user(username="nadia", password="rider1234")

        response = self._post(LoginView, "/api/auth/login/", {"username": "nadia", "password": "rider1234"})
        self.assertEqual(response.status_code, 200)

        refresh = self._post(RefreshTokenView, "/api/auth/refresh/", {"refresh": response.data["tokens"]["refresh"]})
        self.assertEqual(refresh.status_code, 200)
        self.assertIn("access", refresh.data)

    def test_bad_credentials(self):
        response = self._post(LoginView, "/api/auth/login/", {"username": "ghost", "password": "nope"})
        self.assertEqual(response.status_code, 400)

    def test_invalid_refresh_token(self):
        response = self._post(RefreshTokenView, "/api/auth/refresh/", {"refresh": "not-a-token"})
        self.assertEqual(response.status_code, 401)
