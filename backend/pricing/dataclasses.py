from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Optional

from .services.utils import GST_RATE, ZERO, money_str

SERVICE_DOX = "dox"
SERVICE_NON_DOX = "non-dox"
SERVICE_PRIORITY_LEGACY = "priority"
SERVICE_TYPES = (SERVICE_DOX, SERVICE_NON_DOX)

BY_ROAD = "byRoad"
BY_TRAIN = "byTrain"
BY_FLIGHT = "byFlight"
TRANSPORT_MODES = (BY_ROAD, BY_TRAIN, BY_FLIGHT)

NORMAL = "normal"
PRIORITY = "priority"
DELIVERY_TYPES = (NORMAL, PRIORITY)


@dataclass(frozen=True)
class PriceRequest:
    to_pincode: str
    weight: Decimal
    service_type: str
    from_pincode: Optional[str] = None
    by_air: bool = False
    priority: bool = False
    transport_mode: Optional[str] = None
    delivery_type: Optional[str] = None

    @property
    def is_reverse(self) -> bool:
        return bool(self.from_pincode) and self.service_type == SERVICE_NON_DOX

    def as_dict(self) -> Dict[str, Any]:
        return {
            "fromPincode": self.from_pincode,
            "toPincode": self.to_pincode,
            "weight": money_str(self.weight),
            "serviceType": self.service_type,
            "byAir": self.by_air,
            "priority": self.priority,
            "transportMode": self.transport_mode,
            "deliveryType": self.delivery_type,
        }


@dataclass(frozen=True)
class PriceBreakdown:
    service_type: str
    zone: str
    transport_mode: str
    delivery_type: Optional[str]
    requested_weight: Decimal
    chargeable_weight: Decimal
    minimum_weight_applied: bool
    price_per_unit: Decimal
    units: Decimal
    base_price: Decimal
    gst_rate: Decimal = GST_RATE
    gst_amount: Decimal = ZERO
    final_price: Decimal = ZERO
    weight_unit: str = "kg"
    weight_slab: str = ""
    priority: bool = False
    tariff_version_id: Optional[int] = None
    applied_rates: Dict[str, str] = field(default_factory=dict)

    def as_dict(self) -> Dict[str, Any]:
        """JSON-safe snapshot; money stays exact, serialised as strings."""
        return {
            "serviceType": self.service_type,
            "zone": self.zone,
            "transportMode": self.transport_mode,
            "deliveryType": self.delivery_type,
            "priority": self.priority,
            "requestedWeight": money_str(self.requested_weight),
            "chargeableWeight": money_str(self.chargeable_weight),
            "weightUnit": self.weight_unit,
            "weightSlab": self.weight_slab,
            "minimumWeightApplied": self.minimum_weight_applied,
            "pricePerUnit": money_str(self.price_per_unit),
            "units": money_str(self.units),
            "basePrice": money_str(self.base_price),
            "gstRate": money_str(self.gst_rate),
            "gstAmount": money_str(self.gst_amount),
            "finalPrice": money_str(self.final_price),
            "tariffVersionId": self.tariff_version_id,
            "appliedRates": dict(self.applied_rates),
        }
