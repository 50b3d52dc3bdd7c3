from rest_framework import serializers

from accounts.serializers import UserBasicSerializer
from drivers.serializers import DriverBasicSerializer
from .models import Ride, RideRequest


class RideRequestSerializer(serializers.ModelSerializer):
    """Serializer for Ride Requests"""
    rider = UserBasicSerializer(read_only=True)

    class Meta:
        model = RideRequest
        fields = ['id', 'rider', 'pickup_latitude', 'pickup_longitude', 'pickup_address',
                  'dropoff_latitude', 'dropoff_longitude', 'dropoff_address', 'status',
                  'estimated_fare', 'estimated_distance_km', 'estimated_duration_min',
                  'created_at', 'expires_at', 'matched_at', 'cancelled_at']
        read_only_fields = fields


class RideSerializer(serializers.ModelSerializer):
    """Serializer for Rides, with the assigned driver and the request's estimate"""
    request_id = serializers.IntegerField(read_only=True)
    rider = UserBasicSerializer(read_only=True)
    driver = DriverBasicSerializer(read_only=True, source='driver.driver_profile')
    estimated_fare = serializers.IntegerField(source='request.estimated_fare', read_only=True)
    estimated_distance_km = serializers.DecimalField(
        source='request.estimated_distance_km', max_digits=8, decimal_places=2, read_only=True
    )
    estimated_duration_min = serializers.IntegerField(source='request.estimated_duration_min', read_only=True)

    class Meta:
        model = Ride
        fields = ['id', 'request_id', 'rider', 'driver', 'pickup_latitude', 'pickup_longitude',
                  'pickup_address', 'dropoff_latitude', 'dropoff_longitude', 'dropoff_address',
                  'status', 'estimated_fare', 'estimated_distance_km', 'estimated_duration_min',
                  'final_fare', 'assigned_at', 'started_at', 'completed_at', 'cancelled_at']
        read_only_fields = fields


class RouteSerializer(serializers.Serializer):
    """Pickup and dropoff points (used for fare previews)"""
    pickup_latitude = serializers.FloatField(min_value=-90, max_value=90)
    pickup_longitude = serializers.FloatField(min_value=-180, max_value=180)
    dropoff_latitude = serializers.FloatField(min_value=-90, max_value=90)
    dropoff_longitude = serializers.FloatField(min_value=-180, max_value=180)


class RideRequestCreateSerializer(RouteSerializer):
    """Serializer for creating ride requests"""
    pickup_address = serializers.CharField(max_length=500)
    dropoff_address = serializers.CharField(max_length=500)


class RideStatusUpdateSerializer(serializers.Serializer):
    """Serializer for driver ride status updates"""
    status = serializers.ChoiceField(choices=[Ride.STARTED, Ride.COMPLETED, Ride.CANCELLED])
