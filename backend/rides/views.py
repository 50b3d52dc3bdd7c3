import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated

from accounts.permissions import IsDriver, IsRider
from common.utils.responses import error_response
from services import matching, ride_management
from services.ride_management import RideServiceError
from .models import Ride
from .serializers import (
    RideRequestSerializer,
    RideRequestCreateSerializer,
    RideSerializer,
    RideStatusUpdateSerializer,
    RouteSerializer,
)

logger = logging.getLogger(__name__)


# ==================== Rider Ride APIs ====================

@api_view(['GET'])
@permission_classes([IsAuthenticated, IsRider])
def fare_estimate(request):
    """Preview fare, distance and duration without creating a request"""
    serializer = RouteSerializer(data=request.query_params)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    try:
        estimate = ride_management.estimate_fare(**serializer.validated_data)
    except RideServiceError as exc:
        return error_response(exc)

    return Response({
        'distance_km': float(estimate.distance_km),
        'estimated_fare': estimate.estimated_fare,
        'estimated_duration_min': estimate.estimated_duration_min,
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsRider])
def create_ride_request(request):
    """Create a new open ride request, visible to nearby drivers for 5 minutes"""
    serializer = RideRequestCreateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    try:
        ride_request = ride_management.create_ride_request(
            rider=request.user,
            **serializer.validated_data
        )
    except RideServiceError as exc:
        return error_response(exc)

    return Response({
        'success': True,
        'request': RideRequestSerializer(ride_request).data,
        'message': 'Searching for nearby drivers...',
    }, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsRider])
def get_active_phase(request):
    """
    Get rider's current phase (POLLING ENDPOINT)

    Rider app polls this every few seconds; phase is one of
    idle, searching, matched, in_progress, completed.
    """
    result = ride_management.get_active_phase(request.user)

    response_data = {'phase': result.phase}
    if result.message:
        response_data['message'] = result.message
    if result.ride_request is not None:
        response_data['request'] = RideRequestSerializer(result.ride_request).data
    if result.ride is not None:
        response_data['ride'] = RideSerializer(result.ride).data

    return Response(response_data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsRider])
def rider_ride_history(request):
    """Completed and cancelled rides for the rider, newest first"""
    rides = (
        Ride.objects.filter(rider=request.user, status__in=Ride.TERMINAL_STATUSES)
        .select_related('request', 'rider', 'driver__driver_profile')[:50]
    )
    serializer = RideSerializer(rides, many=True)
    return Response({'count': len(serializer.data), 'rides': serializer.data})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsRider])
def cancel_ride_request(request, request_id):
    """Cancel the rider's own request while it is still open"""
    try:
        ride_request = ride_management.cancel_ride_request(request.user, request_id)
    except RideServiceError as exc:
        return error_response(exc)

    return Response({
        'success': True,
        'message': 'Ride request cancelled',
        'request': RideRequestSerializer(ride_request).data,
    })


# ==================== Driver Ride Actions ====================

@api_view(['POST'])
@permission_classes([IsAuthenticated, IsDriver])
def accept_ride_request(request, request_id):
    """Accept an open ride request; only one driver can win it."""
    try:
        ride = matching.accept_ride_request(request.user, request_id)
    except RideServiceError as exc:
        return error_response(exc)

    return Response({
        'success': True,
        'message': 'Ride accepted. Navigate to pickup location.',
        'ride': RideSerializer(ride).data,
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsDriver])
def reject_ride_request(request, request_id):
    """Decline a ride request so it stops showing up for this driver."""
    try:
        matching.reject_ride_request(request.user, request_id)
    except RideServiceError as exc:
        return error_response(exc)

    return Response({
        'success': True,
        'request_id': request_id,
        'message': 'Ride request rejected',
    })


@api_view(['PUT', 'PATCH'])
@permission_classes([IsAuthenticated, IsDriver])
def update_ride_status(request, ride_id):
    """
    Update ride status - CALLED BY ASSIGNED DRIVER

    started -> sets started_at
    completed -> sets completed_at, freezes the fare, driver back online
    cancelled -> driver back online
    """
    serializer = RideStatusUpdateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    try:
        ride = ride_management.update_ride_status(
            request.user, ride_id, serializer.validated_data['status']
        )
    except RideServiceError as exc:
        return error_response(exc)

    return Response({
        'success': True,
        'ride': RideSerializer(ride).data,
    })
