from __future__ import annotations

import logging
from decimal import Context, Decimal, ROUND_HALF_EVEN, localcontext
from typing import Any, Mapping

from core.exceptions import InvalidServiceType, UnsupportedReverseRoute

from ..dataclasses import (
    BY_FLIGHT,
    BY_ROAD,
    BY_TRAIN,
    NORMAL,
    PriceBreakdown,
    PriceRequest,
    SERVICE_DOX,
    SERVICE_NON_DOX,
    SERVICE_PRIORITY_LEGACY,
)
from ..zones import classify, reverse_destination_class
from .tariff_table import TariffTable, WeightSlab
from .utils import GST_RATE, money_str, round_up_to_next_whole

logger = logging.getLogger(__name__)

DOX_FIRST_SLAB_GM = Decimal("250")
DOX_SECOND_SLAB_GM = Decimal("500")
ADDITIONAL_STEP_GM = Decimal("500")
SURFACE_MODES = (BY_ROAD, BY_TRAIN)

# Fixed arithmetic context so prices never depend on the caller's context
PRICING_CONTEXT = Context(prec=28, rounding=ROUND_HALF_EVEN)


def build_price_request(data: Mapping[str, Any]) -> PriceRequest:
    """
    Build a PriceRequest from ``PriceRequestSerializer.validated_data``.

    The legacy ``serviceType="priority"`` is read as a priority DOX shipment.
    """
    service_type = data["serviceType"]
    priority = bool(data.get("priority"))
    if service_type == SERVICE_PRIORITY_LEGACY:
        service_type, priority = SERVICE_DOX, True
    return PriceRequest(
        to_pincode=data["toPincode"],
        weight=data["weight"],
        service_type=service_type,
        from_pincode=data.get("fromPincode") or None,
        by_air=bool(data.get("byAir")),
        priority=priority,
        transport_mode=data.get("transportMode") or None,
        delivery_type=data.get("deliveryType") or None,
    )


def _additional_steps(weight_gm: Decimal) -> Decimal:
    return round_up_to_next_whole((weight_gm - DOX_SECOND_SLAB_GM) / ADDITIONAL_STEP_GM)


class RateEngine:
    """Pure pricing over one tariff table: no clock, no I/O, no shared state."""

    def __init__(self, tariff: TariffTable):
        self.tariff = tariff

    def price(self, request: PriceRequest) -> PriceBreakdown:
        with localcontext(PRICING_CONTEXT):
            if request.is_reverse:
                breakdown = self._price_reverse(request)
            elif request.service_type == SERVICE_DOX:
                breakdown = self._price_dox(request)
            elif request.service_type == SERVICE_NON_DOX:
                breakdown = self._price_non_dox(request)
            else:
                raise InvalidServiceType(f"Unsupported service type '{request.service_type}'.")
            breakdown = self._with_gst(breakdown)
        logger.debug(
            "Priced %s to %s (%s): base=%s final=%s",
            request.service_type, request.to_pincode, breakdown.zone,
            breakdown.base_price, breakdown.final_price,
        )
        return breakdown

    def _with_gst(self, b: PriceBreakdown) -> PriceBreakdown:
        gst_amount = b.base_price * GST_RATE
        return PriceBreakdown(
            service_type=b.service_type,
            zone=b.zone,
            transport_mode=b.transport_mode,
            delivery_type=b.delivery_type,
            requested_weight=b.requested_weight,
            chargeable_weight=b.chargeable_weight,
            minimum_weight_applied=b.minimum_weight_applied,
            price_per_unit=b.price_per_unit,
            units=b.units,
            base_price=b.base_price,
            gst_rate=GST_RATE,
            gst_amount=gst_amount,
            final_price=b.base_price + gst_amount,
            weight_unit=b.weight_unit,
            weight_slab=b.weight_slab,
            priority=b.priority,
            tariff_version_id=self.tariff.version_id,
            applied_rates=b.applied_rates,
        )

    def _forward_mode(self, request: PriceRequest) -> str:
        # byAir selects the forward rate, so it also decides the reported mode
        if request.by_air:
            return BY_FLIGHT
        return request.transport_mode if request.transport_mode in SURFACE_MODES else BY_ROAD

    def _price_reverse(self, request: PriceRequest) -> PriceBreakdown:
        dest = reverse_destination_class(request.to_pincode)
        if dest is None:
            raise UnsupportedReverseRoute(
                f"Reverse pricing is only available to Assam or North-East destinations, "
                f"not {request.to_pincode}.",
                toPincode=request.to_pincode,
            )
        mode = request.transport_mode or BY_ROAD
        delivery_type = request.delivery_type or NORMAL
        rate = self.tariff.reverse_rate(dest, mode, delivery_type)
        floor = self.tariff.min_weight(mode)
        chargeable = max(request.weight, floor)
        return PriceBreakdown(
            service_type=request.service_type,
            zone=classify(request.to_pincode, is_air_route=mode == BY_FLIGHT).value,
            transport_mode=mode,
            delivery_type=delivery_type,
            requested_weight=request.weight,
            chargeable_weight=chargeable,
            minimum_weight_applied=chargeable > request.weight,
            price_per_unit=rate,
            units=chargeable,
            base_price=rate * chargeable,
            weight_unit="kg",
            weight_slab=f"{money_str(request.weight)}kg (min: {money_str(chargeable)}kg)",
            priority=request.priority,
            applied_rates={
                f"reversePricing.{dest.value}.{mode}.{delivery_type}": money_str(rate),
                f"minChargeableWeight.{mode}": money_str(floor),
            },
        )

    def _price_dox(self, request: PriceRequest) -> PriceBreakdown:
        zone = classify(request.to_pincode, is_air_route=request.by_air)
        column = self.tariff.zone_column(zone)
        weight = request.weight

        if request.priority:
            base_slab = WeightSlab.UP_TO_500GM
            base_rate = self.tariff.priority_rate(base_slab, zone)
            table = "priorityPricing"
        elif weight <= DOX_FIRST_SLAB_GM:
            base_slab = WeightSlab.UP_TO_250GM
            base_rate = self.tariff.dox_rate(base_slab, zone)
            table = "doxPricing"
        else:
            base_slab = WeightSlab.FROM_251_TO_500GM
            base_rate = self.tariff.dox_rate(base_slab, zone)
            table = "doxPricing"
        applied = {f"{table}.{base_slab.value}.{column.value}": money_str(base_rate)}

        if weight <= DOX_SECOND_SLAB_GM:
            units, price_per_unit, base_price = Decimal("1"), base_rate, base_rate
            slab_label = base_slab.value
        else:
            steps = _additional_steps(weight)
            if request.priority:
                step_rate = self.tariff.priority_rate(WeightSlab.ADD_500GM, zone)
            else:
                step_rate = self.tariff.dox_rate(WeightSlab.ADD_500GM, zone)
            applied[f"{table}.{WeightSlab.ADD_500GM.value}.{column.value}"] = money_str(step_rate)
            units, price_per_unit = steps, step_rate
            base_price = base_rate + steps * step_rate
            slab_label = f"500gm + {money_str(steps)} × 500gm"

        return PriceBreakdown(
            service_type=request.service_type,
            zone=zone.value,
            transport_mode=self._forward_mode(request),
            delivery_type=request.delivery_type,
            requested_weight=weight,
            chargeable_weight=weight,
            minimum_weight_applied=False,
            price_per_unit=price_per_unit,
            units=units,
            base_price=base_price,
            weight_unit="gm",
            weight_slab=slab_label,
            priority=request.priority,
            applied_rates=applied,
        )

    def _price_non_dox(self, request: PriceRequest) -> PriceBreakdown:
        zone = classify(request.to_pincode, is_air_route=request.by_air)
        column = self.tariff.zone_column(zone)
        rate = self.tariff.non_dox_rate(zone, by_air=request.by_air)
        table = "nonDoxAirPricing" if request.by_air else "nonDoxSurfacePricing"
        # Forward non-DOX is charged on the requested weight, no floor
        return PriceBreakdown(
            service_type=request.service_type,
            zone=zone.value,
            transport_mode=self._forward_mode(request),
            delivery_type=request.delivery_type,
            requested_weight=request.weight,
            chargeable_weight=request.weight,
            minimum_weight_applied=False,
            price_per_unit=rate,
            units=request.weight,
            base_price=rate * request.weight,
            weight_unit="kg",
            weight_slab=f"{money_str(request.weight)}kg",
            priority=request.priority,
            applied_rates={f"{table}.{column.value}": money_str(rate)},
        )


def price(request: PriceRequest, tariff: TariffTable) -> PriceBreakdown:
    return RateEngine(tariff).price(request)
