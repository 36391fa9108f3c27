from __future__ import annotations

from typing import Any, Mapping

from rest_framework import serializers

from core.exceptions import BookingValidationError, InvalidServiceType

from .dataclasses import (
    BY_FLIGHT,
    DELIVERY_TYPES,
    PriceRequest,
    SERVICE_PRIORITY_LEGACY,
    SERVICE_TYPES,
    TRANSPORT_MODES,
)
from .models import TariffVersion
from .services.rate_engine import build_price_request
from .zones import PINCODE_RE


class ServiceTypeField(serializers.ChoiceField):
    """Case-insensitive service type; the legacy ``priority`` value is accepted."""

    def __init__(self, **kwargs):
        super().__init__(choices=SERVICE_TYPES + (SERVICE_PRIORITY_LEGACY,), **kwargs)

    def to_internal_value(self, data):
        if isinstance(data, str):
            data = data.strip().lower()
        return super().to_internal_value(data)


class PriceRequestSerializer(serializers.Serializer):
    serviceType = ServiceTypeField()
    weight = serializers.DecimalField(max_digits=None, decimal_places=None)
    toPincode = serializers.RegexField(PINCODE_RE, error_messages={"invalid": "Expected a six digit pincode."})
    fromPincode = serializers.RegexField(
        PINCODE_RE, required=False, allow_null=True, allow_blank=True,
        error_messages={"invalid": "Expected a six digit pincode."},
    )
    transportMode = serializers.ChoiceField(
        choices=TRANSPORT_MODES, required=False, allow_null=True, allow_blank=True
    )
    deliveryType = serializers.ChoiceField(
        choices=DELIVERY_TYPES, required=False, allow_null=True, allow_blank=True
    )
    byAir = serializers.BooleanField(required=False, allow_null=True)
    priority = serializers.BooleanField(required=False, allow_null=True)

    def validate_weight(self, value):
        if value <= 0:
            raise serializers.ValidationError("Weight must be a positive number.")
        return value

    def validate(self, attrs):
        # byAir and transportMode describe the same choice; they must agree
        mode = attrs.get("transportMode") or None
        by_air = attrs.get("byAir")
        if mode is not None:
            flight = mode == BY_FLIGHT
            if by_air is None:
                attrs["byAir"] = flight
            elif by_air != flight:
                raise serializers.ValidationError(
                    {"byAir": f"byAir={str(by_air).lower()} contradicts transportMode '{mode}'."}
                )
        return attrs


class ShipmentSerializer(PriceRequestSerializer):
    """Shipment section of a booking; ``toPincode`` falls back to the destination."""
    toPincode = serializers.RegexField(
        PINCODE_RE, required=False, error_messages={"invalid": "Expected a six digit pincode."}
    )


def error_kind(errors: Mapping[str, Any]) -> str:
    """Error kind for serializer errors of a pricing or booking payload."""
    shipment = errors.get("shipmentData")
    if "serviceType" in errors or (isinstance(shipment, Mapping) and "serviceType" in shipment):
        return InvalidServiceType.kind
    return BookingValidationError.kind


def _flatten(errors: Mapping[str, Any]) -> str:
    return "; ".join(
        f"{name}: {' '.join(str(m) for m in messages)}" for name, messages in errors.items()
    )


def parse_price_request(payload: Mapping[str, Any]) -> PriceRequest:
    """Validate a camelCase pricing payload, raising the booking core error kinds."""
    ser = PriceRequestSerializer(data=dict(payload))
    if not ser.is_valid():
        errors = ser.errors
        if "serviceType" in errors:
            raise InvalidServiceType(
                f"Unsupported service type {payload.get('serviceType')!r}. "
                f"Expected one of: {', '.join(SERVICE_TYPES)}."
            )
        raise BookingValidationError(_flatten(errors), fields=errors)
    return build_price_request(ser.validated_data)


class TariffVersionSerializer(serializers.ModelSerializer):
    effectiveFrom = serializers.DateTimeField(source='effective_from')
    entityType = serializers.CharField(source='entity_type')
    entityId = serializers.CharField(source='entity_id')
    tables = serializers.SerializerMethodField()

    class Meta:
        model = TariffVersion
        fields = ["id", "name", "status", "entityType", "entityId", "effectiveFrom", "tables"]

    def get_tables(self, obj):
        return obj.tables()
