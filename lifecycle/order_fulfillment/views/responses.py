"""
Response helpers turning service results into API responses.
"""

from rest_framework import status
from rest_framework.response import Response

ERROR_STATUS_CODES = {
    'NOT_FOUND': status.HTTP_404_NOT_FOUND,
    'CONFLICT': status.HTTP_409_CONFLICT,
    'VALIDATION_ERROR': status.HTTP_400_BAD_REQUEST,
    'IMMUTABLE_RECORD': status.HTTP_409_CONFLICT,
    'SYSTEM_ERROR': status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def error_response(error):
    """Wrap an error dict in the failure envelope."""
    return Response({
        'success': False,
        'error': error
    }, status=ERROR_STATUS_CODES.get(error.get('code'), status.HTTP_400_BAD_REQUEST))


def service_response(result, success_status=status.HTTP_200_OK):
    """Wrap a service result in the API envelope, mapping error codes to HTTP statuses."""
    if not result.get('success'):
        return error_response(result['error'])

    data = {key: value for key, value in result.items() if key != 'success'}
    return Response({
        'success': True,
        'data': data
    }, status=success_status)


def actor_for(request):
    """Opaque actor identifier recorded on events and milestones."""
    user = request.user
    if user and user.is_authenticated:
        return str(user.pk)
    return None
