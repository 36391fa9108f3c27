"""
Booking orchestration: price, allocate a consignment number, persist.

Pricing runs before the allocator so an unpriceable shipment never consumes a
number. Allocation and persistence share one ``transaction.atomic()`` block;
any failure after the reservation rolls the reservation back with it.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional

from django.core.exceptions import ValidationError
from django.db import DatabaseError, transaction

from consignments.models import ConsignmentUsage
from consignments.services.allocation import AllocationService
from core.entities import Entity
from core.exceptions import BookingValidationError, PersistenceFailure
from pricing.serializers import parse_price_request
from pricing.services.rate_engine import RateEngine
from pricing.services.tariff_table import TariffTable, active_tariff_version

logger = logging.getLogger(__name__)

BOOKING_SECTIONS = ("originData", "destinationData", "shipmentData", "invoiceData", "paymentData")
PAYMENT_TYPES = ("FP", "TP")


def _section(details: Mapping[str, Any], name: str, required: bool = True) -> Dict[str, Any]:
    value = details.get(name)
    if value is None and not required:
        return {}
    if not isinstance(value, Mapping):
        raise BookingValidationError(f"'{name}' must be an object.")
    return dict(value)


def pricing_payload(details: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Pricing inputs of a booking: the shipment section, with the destination
    pincode defaulting to ``destinationData.pincode``.
    """
    shipment = _section(details, "shipmentData")
    destination = _section(details, "destinationData")
    payload = dict(shipment)
    payload.setdefault("toPincode", destination.get("pincode"))
    return payload


class BookingOrchestrator:
    def __init__(self, allocator: Optional[AllocationService] = None):
        self.allocator = allocator or AllocationService()

    def quote(self, entity: Entity, details: Mapping[str, Any]):
        """Validate and price a booking without touching the allocator."""
        request = parse_price_request(pricing_payload(details))
        version = active_tariff_version(entity)
        breakdown = RateEngine(TariffTable.from_version(version)).price(request)
        return version, breakdown

    def create_booking(self, entity: Entity, details: Mapping[str, Any]) -> ConsignmentUsage:
        sections = {
            name: _section(details, name, required=name in ("originData", "destinationData", "shipmentData"))
            for name in BOOKING_SECTIONS
        }
        payment_type = str(sections["paymentData"].get("paymentType") or "FP").upper()
        if payment_type not in PAYMENT_TYPES:
            raise BookingValidationError(
                f"Invalid paymentType '{payment_type}'. Allowed: {', '.join(PAYMENT_TYPES)}."
            )

        version, breakdown = self.quote(entity, details)

        try:
            with transaction.atomic():
                usage = self.allocator.allocate(entity)
                usage.finalize(
                    booking_reference=usage.booking_reference,
                    booking_data=sections,
                    price_breakdown=breakdown.as_dict(),
                    tariff_version=version,
                    freight_charges=breakdown.base_price,
                    total_amount=breakdown.final_price,
                    payment_type=payment_type,
                )
        except (DatabaseError, ValidationError) as exc:
            logger.error("Booking for %s rolled back: %s", entity, exc)
            raise PersistenceFailure(
                "The booking could not be saved. No consignment number was consumed.",
                entity=str(entity),
            ) from exc

        logger.info(
            "Booked consignment %s for %s (ref %s, total %s)",
            usage.consignment_number, entity, usage.booking_reference, breakdown.final_price,
        )
        return usage


def booking_response(usage: ConsignmentUsage) -> Dict[str, Any]:
    return {
        "consignmentNumber": usage.consignment_number,
        "bookingReference": usage.booking_reference,
        "priceBreakdown": usage.price_breakdown,
    }
