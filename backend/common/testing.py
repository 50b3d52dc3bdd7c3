"""Shared fixtures for the test suites."""

from django.contrib.auth import get_user_model

from drivers.models import DriverProfile

User = get_user_model()

# Dhaka: pickup near Gulshan, dropoff ~3.6 km south-south-west
PICKUP = (23.8103, 90.4125)
DROPOFF = (23.7800, 90.4000)
NEAR_PICKUP = (23.8150, 90.4150)   # ~0.6 km from pickup
FAR_AWAY = (23.9500, 90.5500)      # ~20 km from pickup


def make_rider(username="rider", **extra):
    extra.setdefault("first_name", username.title())
    return User.objects.create_user(
        username=username,
        password="pass1234",
        role=User.RIDER,
        phone_number="01700000000",
        **extra
    )


def make_driver(username="driver", location=NEAR_PICKUP, status=DriverProfile.ONLINE):
    user = User.objects.create_user(
        username=username,
        password="driver1234",
        role=User.DRIVER,
        phone_number="01800000000",
    )
    DriverProfile.objects.create(
        user=user,
        status=status,
        current_latitude=location[0] if location else None,
        current_longitude=location[1] if location else None,
    )
    return user


def request_payload(pickup=PICKUP, dropoff=DROPOFF, **overrides):
    data = {
        "pickup_latitude": pickup[0],
        "pickup_longitude": pickup[1],
        "dropoff_latitude": dropoff[0],
        "dropoff_longitude": dropoff[1],
        "pickup_address": "Gulshan 1, Dhaka",
        "dropoff_address": "Tejgaon, Dhaka",
    }
    data.update(overrides)
    return data
