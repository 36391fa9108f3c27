"""
Strongly typed view over a tariff version.

Tariff JSON is validated once, when the table is built: unknown keys, missing
zone/slab/mode entries and non-numeric rates are configuration errors. A
missing rate is never read back as zero.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from core.exceptions import TariffConfigurationMissing

from ..dataclasses import DELIVERY_TYPES, TRANSPORT_MODES
from ..zones import DestinationClass, Zone

logger = logging.getLogger(__name__)


class WeightSlab(str, Enum):
    UP_TO_250GM = "01gm-250gm"
    FROM_251_TO_500GM = "251gm-500gm"
    UP_TO_500GM = "01gm-500gm"
    ADD_500GM = "add500gm"


DOX_SLABS = (WeightSlab.UP_TO_250GM, WeightSlab.FROM_251_TO_500GM, WeightSlab.ADD_500GM)
PRIORITY_SLABS = (WeightSlab.UP_TO_500GM, WeightSlab.ADD_500GM)

REQUIRED_ZONES = (Zone.ASSAM, Zone.NE_BY_SURFACE, Zone.NE_BY_AIR_AGT_IMP, Zone.REST_OF_INDIA)
# Kolkata folds into restOfIndia unless a dedicated column is configured
OPTIONAL_ZONES = (Zone.KOLKATA,)

TABLE_KEYS = (
    "doxPricing",
    "nonDoxSurfacePricing",
    "nonDoxAirPricing",
    "priorityPricing",
    "reversePricing",
    "minChargeableWeight",
)

DEFAULT_TARIFF_PATH = Path(__file__).resolve().parent.parent / "config" / "default_tariff.json"

_TABLE_CACHE: Dict[int, "TariffTable"] = {}


def _rate(value: Any, path: str, errors: List[str]) -> Optional[Decimal]:
    if isinstance(value, bool) or value is None or isinstance(value, (dict, list)):
        errors.append(f"{path}: expected a number, got {value!r}")
        return None
    try:
        rate = Decimal(str(value))
    except InvalidOperation:
        errors.append(f"{path}: expected a number, got {value!r}")
        return None
    if not rate.is_finite() or rate < 0:
        errors.append(f"{path}: rate must be a finite, non-negative number")
        return None
    return rate


def _check_keys(node: Any, allowed, required, path: str, errors: List[str]) -> bool:
    if not isinstance(node, Mapping):
        errors.append(f"{path}: expected an object")
        return False
    allowed_values = {getattr(k, "value", k) for k in allowed}
    for key in node:
        if key not in allowed_values:
            errors.append(f"{path}: unknown key '{key}'")
    for key in required:
        key = getattr(key, "value", key)
        if key not in node:
            errors.append(f"{path}.{key}: missing entry")
    return True


def _zone_row(node: Any, path: str, errors: List[str]) -> Dict[Zone, Decimal]:
    row: Dict[Zone, Decimal] = {}
    if not _check_keys(node, REQUIRED_ZONES + OPTIONAL_ZONES, REQUIRED_ZONES, path, errors):
        return row
    for zone in REQUIRED_ZONES + OPTIONAL_ZONES:
        if zone.value in node:
            rate = _rate(node[zone.value], f"{path}.{zone.value}", errors)
            if rate is not None:
                row[zone] = rate
    return row


def _slab_table(node: Any, slabs, path: str, errors: List[str]) -> Dict[WeightSlab, Dict[Zone, Decimal]]:
    table: Dict[WeightSlab, Dict[Zone, Decimal]] = {}
    if not _check_keys(node, slabs, slabs, path, errors):
        return table
    for slab in slabs:
        if slab.value in node:
            table[slab] = _zone_row(node[slab.value], f"{path}.{slab.value}", errors)
    return table


def _reverse_table(node: Any, path: str, errors: List[str]):
    table: Dict[DestinationClass, Dict[str, Dict[str, Decimal]]] = {}
    if not _check_keys(node, list(DestinationClass), list(DestinationClass), path, errors):
        return table
    for dest in DestinationClass:
        if dest.value not in node:
            continue
        dest_path = f"{path}.{dest.value}"
        modes = node[dest.value]
        table[dest] = {}
        if not _check_keys(modes, TRANSPORT_MODES, TRANSPORT_MODES, dest_path, errors):
            continue
        for mode in TRANSPORT_MODES:
            if mode not in modes:
                continue
            mode_path = f"{dest_path}.{mode}"
            deliveries = modes[mode]
            table[dest][mode] = {}
            if not _check_keys(deliveries, DELIVERY_TYPES, DELIVERY_TYPES, mode_path, errors):
                continue
            for delivery in DELIVERY_TYPES:
                if delivery in deliveries:
                    rate = _rate(deliveries[delivery], f"{mode_path}.{delivery}", errors)
                    if rate is not None:
                        table[dest][mode][delivery] = rate
    return table


def _min_weights(node: Any, path: str, errors: List[str]) -> Dict[str, Decimal]:
    weights: Dict[str, Decimal] = {}
    if not _check_keys(node, TRANSPORT_MODES, TRANSPORT_MODES, path, errors):
        return weights
    for mode in TRANSPORT_MODES:
        if mode in node:
            w = _rate(node[mode], f"{path}.{mode}", errors)
            if w is not None:
                weights[mode] = w
    return weights


def _zone_rows(parsed: Dict[str, Any]) -> Dict[str, Dict[Zone, Decimal]]:
    rows = {
        "nonDoxSurfacePricing": parsed["non_dox_surface"],
        "nonDoxAirPricing": parsed["non_dox_air"],
    }
    for key, table in (("doxPricing", parsed["dox"]), ("priorityPricing", parsed["priority"])):
        for slab, row in table.items():
            rows[f"{key}.{slab.value}"] = row
    return rows


def _check_kolkata_column(parsed: Dict[str, Any], errors: List[str]):
    # All zone rows carry a kolkata rate or none do
    rows = _zone_rows(parsed)
    with_column = [path for path, row in rows.items() if Zone.KOLKATA in row]
    if with_column and len(with_column) < len(rows):
        missing = sorted(set(rows) - set(with_column))
        errors.append(
            f"{Zone.KOLKATA.value}: column must be set in every zone row or none; "
            f"missing in {', '.join(missing)}"
        )


def _parse(config: Any):
    errors: List[str] = []
    parsed: Dict[str, Any] = {}
    if not _check_keys(config, TABLE_KEYS, TABLE_KEYS, "tariff", errors):
        return parsed, errors
    parsed["dox"] = _slab_table(config.get("doxPricing"), DOX_SLABS, "doxPricing", errors)
    parsed["priority"] = _slab_table(config.get("priorityPricing"), PRIORITY_SLABS, "priorityPricing", errors)
    parsed["non_dox_surface"] = _zone_row(config.get("nonDoxSurfacePricing"), "nonDoxSurfacePricing", errors)
    parsed["non_dox_air"] = _zone_row(config.get("nonDoxAirPricing"), "nonDoxAirPricing", errors)
    parsed["reverse"] = _reverse_table(config.get("reversePricing"), "reversePricing", errors)
    parsed["min_chargeable_weight"] = _min_weights(
        config.get("minChargeableWeight"), "minChargeableWeight", errors
    )
    _check_kolkata_column(parsed, errors)
    return parsed, errors


def validate_tariff_config(config: Any) -> List[str]:
    """
    Validate that a tariff configuration is complete and well formed.

    Returns:
        List[str]: validation errors (empty if valid)
    """
    _, errors = _parse(config)
    return errors


def load_tariff_file(path=None) -> dict:
    """Read a tariff JSON file (defaults to the bundled seed tariff)."""
    path = Path(path) if path else DEFAULT_TARIFF_PATH
    if not path.exists():
        raise TariffConfigurationMissing(f"Tariff file not found: {path}")
    try:
        with open(path, "r", encoding="utf-8") as f:
            config = json.load(f)
    except json.JSONDecodeError as e:
        raise TariffConfigurationMissing(f"Invalid JSON in tariff file {path}: {e}")
    logger.info("Loaded tariff configuration from %s", path)
    return config


@dataclass(frozen=True)
class TariffTable:
    dox: Dict[WeightSlab, Dict[Zone, Decimal]]
    priority: Dict[WeightSlab, Dict[Zone, Decimal]]
    non_dox_surface: Dict[Zone, Decimal]
    non_dox_air: Dict[Zone, Decimal]
    reverse: Dict[DestinationClass, Dict[str, Dict[str, Decimal]]]
    min_chargeable_weight: Dict[str, Decimal]
    version_id: Optional[int] = None
    name: str = ""
    has_kolkata_column: bool = field(default=False, compare=False)

    @classmethod
    def from_config(cls, config: Any, *, version_id: Optional[int] = None, name: str = "") -> "TariffTable":
        parsed, errors = _parse(config)
        if errors:
            logger.error("Tariff %s rejected: %s", version_id or name or "<unsaved>", "; ".join(errors))
            raise TariffConfigurationMissing(
                "Tariff configuration is incomplete: " + "; ".join(errors),
                tariff_version_id=version_id,
            )
        has_kolkata = any(Zone.KOLKATA in row for row in _zone_rows(parsed).values())
        return cls(version_id=version_id, name=name, has_kolkata_column=has_kolkata, **parsed)

    @classmethod
    def from_version(cls, version) -> "TariffTable":
        cached = _TABLE_CACHE.get(version.pk)
        if cached is not None:
            return cached
        table = cls.from_config(version.tables(), version_id=version.pk, name=version.name)
        # Versions are immutable, so the parsed table can be shared
        _TABLE_CACHE[version.pk] = table
        return table

    def zone_column(self, zone: Zone) -> Zone:
        if zone is Zone.KOLKATA and not self.has_kolkata_column:
            return Zone.REST_OF_INDIA
        return zone

    def _lookup(self, row: Mapping, key, path: str) -> Decimal:
        try:
            return row[key]
        except KeyError:
            raise TariffConfigurationMissing(
                f"No tariff entry for {path}", tariff_version_id=self.version_id
            )

    def dox_rate(self, slab: WeightSlab, zone: Zone) -> Decimal:
        column = self.zone_column(zone)
        return self._lookup(self.dox.get(slab, {}), column, f"doxPricing.{slab.value}.{column.value}")

    def priority_rate(self, slab: WeightSlab, zone: Zone) -> Decimal:
        column = self.zone_column(zone)
        return self._lookup(self.priority.get(slab, {}), column, f"priorityPricing.{slab.value}.{column.value}")

    def non_dox_rate(self, zone: Zone, by_air: bool) -> Decimal:
        column = self.zone_column(zone)
        if by_air:
            return self._lookup(self.non_dox_air, column, f"nonDoxAirPricing.{column.value}")
        return self._lookup(self.non_dox_surface, column, f"nonDoxSurfacePricing.{column.value}")

    def reverse_rate(self, dest: DestinationClass, mode: str, delivery_type: str) -> Decimal:
        modes = self.reverse.get(dest, {})
        return self._lookup(
            modes.get(mode, {}), delivery_type, f"reversePricing.{dest.value}.{mode}.{delivery_type}"
        )

    def min_weight(self, mode: str) -> Decimal:
        return self._lookup(self.min_chargeable_weight, mode, f"minChargeableWeight.{mode}")


def clear_tariff_cache():
    _TABLE_CACHE.clear()


def active_tariff_version(entity=None, at=None):
    """Approved tariff version in force for ``entity`` (or the global default)."""
    from ..models import TariffVersion

    version = TariffVersion.objects.active_for(entity, at)
    if version is None:
        raise TariffConfigurationMissing(
            "No approved tariff is in force" + (f" for {entity}" if entity else "") + "."
        )
    return version


def get_active_tariff(entity=None, at=None) -> TariffTable:
    return TariffTable.from_version(active_tariff_version(entity, at))
