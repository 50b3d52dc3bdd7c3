from rest_framework import serializers
from drivers.models import DriverProfile
from common.utils import dispatch_setting


class DriverProfileSerializer(serializers.ModelSerializer):
    """
    Driver availability and last known location
    """
    username = serializers.CharField(source="user.username", read_only=True)

    class Meta:
        model = DriverProfile
        fields = [
            "id",
            "username",
            "status",
            "current_latitude",
            "current_longitude",
            "last_location_update",
        ]
        read_only_fields = fields


class DriverBasicSerializer(serializers.ModelSerializer):
    """
    Lite version of driver info for ride details (sent to riders).
    """
    id = serializers.IntegerField(source="user.id", read_only=True)
    username = serializers.CharField(source="user.username", read_only=True)
    name = serializers.CharField(source="user.display_name", read_only=True)
    phone_number = serializers.CharField(source="user.phone_number", read_only=True)

    class Meta:
        model = DriverProfile
        fields = [
            "id",
            "username",
            "name",
            "phone_number",
            "current_latitude",
            "current_longitude",
        ]


class DriverStatusSerializer(serializers.Serializer):
    """
    Serializer for updating driver availability (online/offline).
    """
    status = serializers.ChoiceField(choices=[DriverProfile.ONLINE, DriverProfile.OFFLINE])


class LocationUpdateSerializer(serializers.Serializer):
    """
    Validates latitude/longitude sent by a driver.

    Expected body:
    {
        "latitude": <float>,
        "longitude": <float>
    }
    """
    latitude = serializers.FloatField(min_value=-90, max_value=90)
    longitude = serializers.FloatField(min_value=-180, max_value=180)


class NearbyQuerySerializer(LocationUpdateSerializer):
    """Query parameters for the nearby requests endpoint."""
    radius = serializers.FloatField(required=False, min_value=1)

    def validate_radius(self, value):
        max_radius = dispatch_setting("MAX_SEARCH_RADIUS_METERS")
        if value > max_radius:
            raise serializers.ValidationError(f"Radius cannot exceed {max_radius} meters.")
        return value


class NearbyRequestSerializer(serializers.Serializer):
    """An open ride request ranked by distance from the driver."""
    request_id = serializers.IntegerField(source="ride_request.id")
    rider_name = serializers.CharField()
    pickup_latitude = serializers.DecimalField(source="ride_request.pickup_latitude", max_digits=9, decimal_places=6)
    pickup_longitude = serializers.DecimalField(source="ride_request.pickup_longitude", max_digits=9, decimal_places=6)
    pickup_address = serializers.CharField(source="ride_request.pickup_address")
    dropoff_latitude = serializers.DecimalField(source="ride_request.dropoff_latitude", max_digits=9, decimal_places=6)
    dropoff_longitude = serializers.DecimalField(source="ride_request.dropoff_longitude", max_digits=9, decimal_places=6)
    dropoff_address = serializers.CharField(source="ride_request.dropoff_address")
    estimated_fare = serializers.IntegerField(source="ride_request.estimated_fare")
    estimated_distance_km = serializers.DecimalField(source="ride_request.estimated_distance_km", max_digits=8, decimal_places=2)
    estimated_duration_min = serializers.IntegerField(source="ride_request.estimated_duration_min")
    created_at = serializers.DateTimeField(source="ride_request.created_at")
    expires_at = serializers.DateTimeField(source="ride_request.expires_at")
    distance_meters = serializers.IntegerField()
