from django.contrib import admin
from django.urls import path, include

from .views import health_check

urlpatterns = [
    path('admin/', admin.site.urls),
    path("health/", health_check),  # Health check endpoint

    # Authentication endpoints (register, login, refresh)
    path('api/auth/', include('accounts.urls')),

    # Driver APIs (status, location, nearby requests, current ride, history)
    path('api/driver/', include('drivers.urls')),

    # Ride endpoints (requests, accept/reject, ride status, rider polling)
    path('api/rides/', include('rides.urls')),
]
