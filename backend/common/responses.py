"""Render ServiceResult objects as DRF responses."""

from rest_framework import status
from rest_framework.response import Response

from services.exceptions import NOT_FOUND, TRANSIENT


def error_status(result) -> int:
    if result.error_kind == NOT_FOUND:
        return status.HTTP_404_NOT_FOUND
    if result.error_kind == TRANSIENT:
        return status.HTTP_503_SERVICE_UNAVAILABLE
    if "auth" in result.errors:
        return status.HTTP_403_FORBIDDEN
    return status.HTTP_400_BAD_REQUEST


def result_response(result, data=None, success_status=status.HTTP_200_OK) -> Response:
    """
    Success -> `success_status` with the result dict plus `data`.
    Failure -> 404 / 403 / 503 / 400 depending on the error.
    """
    body = result.as_dict()
    if not result.success:
        return Response(body, status=error_status(result))
    if data:
        body.update(data)
    return Response(body, status=success_status)
