from rest_framework import status
from rest_framework.response import Response

from marketplace.services.base import ErrorCodes, ServiceResult

KIND_STATUS = {
    "validation": status.HTTP_400_BAD_REQUEST,
    "conflict": status.HTTP_409_CONFLICT,
    "not_found": status.HTTP_404_NOT_FOUND,
    "permission": status.HTTP_403_FORBIDDEN,
    "external": status.HTTP_502_BAD_GATEWAY,
    "internal": status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def error_response(result: ServiceResult) -> Response:
    """
    Render a failed ServiceResult as {"error": CODE, "detail": ..., **context}
    with the HTTP status of its error kind.
    """
    body = {"error": result.error, "detail": result.error_detail}
    body.update(result.context or {})
    return Response(body, status=KIND_STATUS[result.kind])


def validation_error_response(errors) -> Response:
    return Response(
        {"error": ErrorCodes.VALIDATION_ERROR, "detail": "Invalid request", "fields": errors},
        status=status.HTTP_400_BAD_REQUEST,
    )
