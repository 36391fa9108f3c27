"""
Pincode → pricing zone classification.

The numeric bands are business-mandated constants for the India network and
must match exactly.
"""
from __future__ import annotations

import re
from enum import Enum
from typing import Tuple, Union

from core.exceptions import BookingValidationError

PINCODE_RE = re.compile(r"^[1-9][0-9]{5}$")


class Zone(str, Enum):
    ASSAM = "assam"
    NE_BY_SURFACE = "neBySurface"
    NE_BY_AIR_AGT_IMP = "neByAirAgtImp"
    KOLKATA = "kolkata"
    REST_OF_INDIA = "restOfIndia"


class DestinationClass(str, Enum):
    """Reverse-pricing destination column."""
    TO_ASSAM = "toAssam"
    TO_NORTH_EAST = "toNorthEast"


ASSAM_BAND: Tuple[int, int] = (781000, 788999)
KOLKATA_BAND: Tuple[int, int] = (700000, 700999)
# Tripura (799xxx) and Manipur (795xxx): AGT IMP on air routes only
AIR_SENSITIVE_NE_BANDS = (
    (795000, 795999),
    (799000, 799999),
)
# Arunachal Pradesh, Meghalaya, Mizoram, Nagaland, Sikkim
SURFACE_NE_BANDS = (
    (790000, 791999),
    (793000, 793999),
    (796000, 796999),
    (797000, 797999),
    (737000, 737999),
)


def parse_pincode(pincode: Union[str, int]) -> int:
    raw = str(pincode).strip() if pincode is not None else ""
    if not PINCODE_RE.match(raw):
        raise BookingValidationError(f"Malformed pincode '{pincode}'. Expected six digits.")
    return int(raw)


def _in_bands(pin: int, bands) -> bool:
    return any(lo <= pin <= hi for lo, hi in bands)


def is_assam(pincode) -> bool:
    pin = parse_pincode(pincode)
    return ASSAM_BAND[0] <= pin <= ASSAM_BAND[1]


def is_north_east(pincode) -> bool:
    pin = parse_pincode(pincode)
    return _in_bands(pin, AIR_SENSITIVE_NE_BANDS) or _in_bands(pin, SURFACE_NE_BANDS)


def classify(pincode, is_air_route: bool = False) -> Zone:
    """Map a destination pincode to its forward-pricing zone."""
    pin = parse_pincode(pincode)
    if ASSAM_BAND[0] <= pin <= ASSAM_BAND[1]:
        return Zone.ASSAM
    if KOLKATA_BAND[0] <= pin <= KOLKATA_BAND[1]:
        return Zone.KOLKATA
    if _in_bands(pin, AIR_SENSITIVE_NE_BANDS):
        return Zone.NE_BY_AIR_AGT_IMP if is_air_route else Zone.NE_BY_SURFACE
    if _in_bands(pin, SURFACE_NE_BANDS):
        return Zone.NE_BY_SURFACE
    return Zone.REST_OF_INDIA


def reverse_destination_class(pincode) -> Union[DestinationClass, None]:
    """Reverse-pricing column for a destination, or None when unsupported."""
    if is_assam(pincode):
        return DestinationClass.TO_ASSAM
    if is_north_east(pincode):
        return DestinationClass.TO_NORTH_EAST
    return None
