from __future__ import annotations

from rest_framework import serializers

from consignments.models import ConsignmentUsage
from core.entities import ENTITY_TYPE_CHOICES
from pricing.serializers import ShipmentSerializer
from pricing.zones import PINCODE_RE


class EntitySerializer(serializers.Serializer):
    entityType = serializers.ChoiceField(choices=ENTITY_TYPE_CHOICES)
    entityId = serializers.CharField(max_length=64)


class BookingRequestSerializer(serializers.Serializer):
    entity = EntitySerializer()
    originData = serializers.DictField()
    destinationData = serializers.DictField()
    shipmentData = ShipmentSerializer()
    invoiceData = serializers.DictField(required=False, default=dict)
    paymentData = serializers.DictField(required=False, default=dict)

    def validate(self, attrs):
        if not attrs["shipmentData"].get("toPincode"):
            pincode = attrs["destinationData"].get("pincode")
            if not PINCODE_RE.match(str(pincode or "").strip()):
                raise serializers.ValidationError(
                    {"destinationData": {"pincode": ["Expected a six digit pincode."]}}
                )
        return attrs


class BookingSerializer(serializers.ModelSerializer):
    consignmentNumber = serializers.IntegerField(source='consignment_number')
    bookingReference = serializers.CharField(source='booking_reference')
    entityType = serializers.CharField(source='entity_type')
    entityId = serializers.CharField(source='entity_id')
    bookingData = serializers.JSONField(source='booking_data')
    priceBreakdown = serializers.JSONField(source='price_breakdown')
    tariffVersionId = serializers.IntegerField(source='tariff_version_id', allow_null=True)
    freightCharges = serializers.DecimalField(source='freight_charges', max_digits=18, decimal_places=6)
    totalAmount = serializers.DecimalField(source='total_amount', max_digits=18, decimal_places=6)
    paymentType = serializers.CharField(source='payment_type')
    paymentStatus = serializers.CharField(source='payment_status')
    createdAt = serializers.DateTimeField(source='created_at')

    class Meta:
        model = ConsignmentUsage
        fields = [
            "id", "consignmentNumber", "bookingReference", "entityType", "entityId",
            "bookingData", "priceBreakdown", "tariffVersionId", "freightCharges",
            "totalAmount", "paymentType", "status", "paymentStatus", "createdAt",
        ]


class TrackingSerializer(serializers.ModelSerializer):
    """Public projection: no prices, no contact details."""
    consignmentNumber = serializers.IntegerField(source='consignment_number')
    bookingReference = serializers.CharField(source='booking_reference')
    origin = serializers.SerializerMethodField()
    destination = serializers.SerializerMethodField()
    bookedAt = serializers.DateTimeField(source='created_at')

    class Meta:
        model = ConsignmentUsage
        fields = ["consignmentNumber", "bookingReference", "status", "origin", "destination", "bookedAt"]

    def get_origin(self, obj):
        return _place(obj, "originData")

    def get_destination(self, obj):
        return _place(obj, "destinationData")


def _place(obj: ConsignmentUsage, section: str) -> dict:
    data = (obj.booking_data or {}).get(section) or {}
    return {key: data.get(key) for key in ("city", "state", "pincode")}
