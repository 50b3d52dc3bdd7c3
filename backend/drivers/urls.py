from django.urls import path
from .views import (
    DriverStatusView,
    DriverLocationUpdateView,
    NearbyRequestsView,
    DriverCurrentRideView,
    DriverRideHistoryView,
)

urlpatterns = [
    path("status/", DriverStatusView.as_view(), name="driver-status"),
    path("location/", DriverLocationUpdateView.as_view(), name="driver-location"),
    path("nearby-requests/", NearbyRequestsView.as_view(), name="driver-nearby-requests"),
    path("current-ride/", DriverCurrentRideView.as_view(), name="driver-current-ride"),
    path("history/", DriverRideHistoryView.as_view(), name="driver-history"),
]
