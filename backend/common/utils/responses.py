"""Shared HTTP rendering of ride service errors."""

from rest_framework.response import Response


def error_response(exc) -> Response:
    """Render a RideServiceError as {"success": false, "error", "message"}."""
    return Response(
        {"success": False, "error": exc.error_code, "message": exc.message},
        status=exc.status_code,
    )
