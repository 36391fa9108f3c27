from __future__ import annotations

import logging

from rest_framework.response import Response

from core.entities import Entity
from core.exceptions import BookingValidationError
from core.views import EntityAPIView, serializer_error_response

from .serializers import PriceRequestSerializer, TariffVersionSerializer, error_kind
from .services.rate_engine import RateEngine, build_price_request
from .services.tariff_table import TariffTable, active_tariff_version

logger = logging.getLogger(__name__)


def optional_entity(data) -> Entity | None:
    """Entity from a mapping, or None when neither key is given (global tariff)."""
    if not (data.get("entityType") or data.get("entityId")):
        return None
    return Entity.from_mapping(data)


class PriceCalculateView(EntityAPIView):
    """Price a shipment without booking it. Never touches the allocator."""

    def post(self, request):
        payload = request.data
        if not hasattr(payload, "get"):
            raise BookingValidationError("Request body must be a JSON object.")
        entity_data = payload.get("entity") or {}
        if not hasattr(entity_data, "get"):
            raise BookingValidationError("'entity' must be an object.")
        entity = optional_entity(entity_data)

        ser = PriceRequestSerializer(data=payload)
        if not ser.is_valid():
            return serializer_error_response(ser.errors, kind=error_kind(ser.errors))
        price_request = build_price_request(ser.validated_data)
        version = active_tariff_version(entity)
        breakdown = RateEngine(TariffTable.from_version(version)).price(price_request)
        logger.debug("Quoted %s for %s", breakdown.final_price, entity or "default tariff")
        return Response({"request": price_request.as_dict(), "priceBreakdown": breakdown.as_dict()})


class ActiveTariffView(EntityAPIView):
    def get(self, request):
        entity = optional_entity(request.query_params)
        version = active_tariff_version(entity)
        return Response(TariffVersionSerializer(version).data)
