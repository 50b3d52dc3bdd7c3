from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated

from accounts.permissions import IsDriver
from common.utils.responses import error_response
from drivers.serializers import (
    DriverProfileSerializer,
    DriverStatusSerializer,
    LocationUpdateSerializer,
    NearbyQuerySerializer,
    NearbyRequestSerializer,
)
from rides.models import Ride
from rides.serializers import RideSerializer
from services import matching
from services.ride_management import RideServiceError

from drivers import services


class DriverStatusView(APIView):
    permission_classes = [IsAuthenticated, IsDriver]

    def get(self, request):
        profile = services.get_driver_profile(request.user)
        return Response(DriverProfileSerializer(profile).data)

    def put(self, request):
        profile = services.get_driver_profile(request.user)

        serializer = DriverStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        new_status = serializer.validated_data["status"]

        try:
            services.update_driver_status(profile, new_status)
        except RideServiceError as exc:
            return error_response(exc)

        return Response({
            "message": f"Status updated to {new_status}",
            "status": new_status
        })


class DriverLocationUpdateView(APIView):
    """Location heartbeat; also switches an offline driver online."""
    permission_classes = [IsAuthenticated, IsDriver]

    def get(self, request):
        profile = services.get_driver_profile(request.user)

        return Response({
            "latitude": float(profile.current_latitude) if profile.current_latitude is not None else None,
            "longitude": float(profile.current_longitude) if profile.current_longitude is not None else None,
            "last_updated": profile.last_location_update,
            "status": profile.status,
        })

    def post(self, request):
        profile = services.get_driver_profile(request.user)

        serializer = LocationUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        lat = serializer.validated_data["latitude"]
        lon = serializer.validated_data["longitude"]

        services.update_driver_location(profile, round(lat, 6), round(lon, 6))

        return Response({
            "message": "Location updated",
            "latitude": lat,
            "longitude": lon,
            "status": profile.status
        })


class NearbyRequestsView(APIView):
    """Open ride requests around the driver, closest first."""
    permission_classes = [IsAuthenticated, IsDriver]

    def get(self, request):
        serializer = NearbyQuerySerializer(data=request.query_params)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            nearby = matching.find_nearby_requests(
                request.user,
                data["latitude"],
                data["longitude"],
                radius_meters=data.get("radius"),
            )
        except RideServiceError as exc:
            return error_response(exc)

        serialized = NearbyRequestSerializer(nearby, many=True)
        return Response({"requests": serialized.data, "count": len(serialized.data)})


class DriverCurrentRideView(APIView):
    permission_classes = [IsAuthenticated, IsDriver]

    def get(self, request):
        ride = (
            Ride.objects.filter(driver=request.user, status__in=Ride.ACTIVE_STATUSES)
            .select_related("request", "rider", "driver__driver_profile")
            .first()
        )
        if not ride:
            return Response({"message": "No active ride"}, status=404)

        return Response(RideSerializer(ride).data)


class DriverRideHistoryView(APIView):
    permission_classes = [IsAuthenticated, IsDriver]

    def get(self, request):
        rides = (
            Ride.objects.filter(driver=request.user, status__in=Ride.TERMINAL_STATUSES)
            .select_related("request", "rider", "driver__driver_profile")[:50]
        )
        serializer = RideSerializer(rides, many=True)

        return Response({"count": len(serializer.data), "rides": serializer.data})
