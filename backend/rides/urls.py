from django.urls import path
from . import views

app_name = 'rides'

urlpatterns = [
    # Rider APIs
    path('fare-estimate/', views.fare_estimate, name='fare-estimate'),
    path('request/', views.create_ride_request, name='create-request'),
    path('rider/active/', views.get_active_phase, name='rider-active'),
    path('rider/history/', views.rider_ride_history, name='rider-history'),
    path('requests/<int:request_id>/cancel/', views.cancel_ride_request, name='cancel-request'),

    # Driver Ride Actions
    path('requests/<int:request_id>/accept/', views.accept_ride_request, name='accept-request'),
    path('requests/<int:request_id>/reject/', views.reject_ride_request, name='reject-request'),
    path('<int:ride_id>/status/', views.update_ride_status, name='ride-status'),
]
