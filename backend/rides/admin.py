"""Tells what to show in the Django admin interface for rides app"""

from django.contrib import admin
from .models import DriverResponse, Ride, RideRequest


@admin.register(RideRequest)
class RideRequestAdmin(admin.ModelAdmin):
    """Ride Request admin"""
    list_display = ['id', 'rider', 'status', 'estimated_fare', 'created_at', 'expires_at', 'matched_at']
    list_filter = ['status', 'created_at']
    search_fields = ['rider__username', 'pickup_address', 'dropoff_address']
    readonly_fields = ['pickup_geohash', 'created_at', 'expires_at', 'matched_at', 'cancelled_at']
    date_hierarchy = 'created_at'


@admin.register(Ride)
class RideAdmin(admin.ModelAdmin):
    list_display = ['id', 'request', 'rider', 'driver', 'status', 'assigned_at', 'started_at', 'completed_at']
    list_filter = ['status']
    search_fields = ['rider__username', 'driver__username']
    readonly_fields = ['request', 'assigned_at', 'started_at', 'completed_at', 'cancelled_at']


@admin.register(DriverResponse)
class DriverResponseAdmin(admin.ModelAdmin):
    list_display = ("request", "driver", "response_status", "response_time")
    list_filter = ("response_status",)
    search_fields = ("request__id", "driver__username")
