from django.db.models import ProtectedError
from rest_framework import status
from rest_framework.exceptions import APIException
from rest_framework.views import exception_handler


class Conflict(APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Resource already exists.'
    default_code = 'conflict'


def api_exception_handler(exc, context):
    """DRF's default handler, with the status code echoed in the body."""
    if isinstance(exc, ProtectedError):
        blockers = sorted({str(obj._meta.verbose_name_plural) for obj in exc.protected_objects})
        exc = Conflict(f"Cannot delete: still referenced by {', '.join(blockers)}.")
    response = exception_handler(exc, context)
    if response is not None and isinstance(response.data, dict):
        response.data['status_code'] = response.status_code
    return response
