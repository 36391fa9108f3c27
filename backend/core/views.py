from __future__ import annotations

import logging

from rest_framework import status, views
from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response

from core.entities import Entity
from core.exceptions import BookingCoreError

logger = logging.getLogger(__name__)


def error_response(exc: BookingCoreError, http_status=None) -> Response:
    return Response(exc.as_response_body(), status=http_status or exc.http_status)


def serializer_error_response(errors, kind: str = "ValidationError") -> Response:
    return Response(
        {"detail": "Invalid request payload.", "error": kind, "fields": errors},
        status=status.HTTP_400_BAD_REQUEST,
    )


class EntityAPIView(views.APIView):
    """
    Base view for entity-scoped endpoints. Booking core errors raised by a
    handler are rendered as ``{"detail": ..., "error": kind}``.
    """

    def entity_from_query(self, request) -> Entity:
        return Entity.from_mapping(request.query_params)

    def handle_exception(self, exc):
        if isinstance(exc, BookingCoreError):
            logger.info("%s %s rejected: %s (%s)", self.request.method, self.request.path, exc.message, exc.kind)
            return error_response(exc)
        return super().handle_exception(exc)

    def paginate(self, request, queryset, serialize):
        paginator = PageNumberPagination()
        page = paginator.paginate_queryset(queryset, request, view=self)
        return paginator.get_paginated_response([serialize(obj) for obj in page])
