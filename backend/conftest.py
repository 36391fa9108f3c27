import copy
import json

import pytest

from core.entities import Entity
from pricing.services.tariff_table import DEFAULT_TARIFF_PATH, clear_tariff_cache


@pytest.fixture(autouse=True)
def _fresh_tariff_cache():
    # Rolled-back test transactions can hand out the same TariffVersion pk again
    clear_tariff_cache()
    yield
    clear_tariff_cache()


@pytest.fixture(scope="session")
def _seed_tariff():
    with open(DEFAULT_TARIFF_PATH, "r", encoding="utf-8") as f:
        return json.load(f)


@pytest.fixture
def tariff_config(_seed_tariff):
    """A mutable copy of the bundled seed tariff."""
    return copy.deepcopy(_seed_tariff)


@pytest.fixture
def corporate():
    return Entity("corporate", "CORP-001")


@pytest.fixture
def office():
    return Entity("office", "OFF-042")


@pytest.fixture
def make_tariff(db, tariff_config):
    from pricing.models import TariffVersion

    def _make(config=None, entity=None, approve=True, **kwargs):
        config = config or tariff_config
        version = TariffVersion.objects.create(
            name=kwargs.pop("name", "Seed tariff"),
            entity_type=entity.entity_type if entity else "",
            entity_id=entity.entity_id if entity else "",
            dox_pricing=config["doxPricing"],
            non_dox_surface_pricing=config["nonDoxSurfacePricing"],
            non_dox_air_pricing=config["nonDoxAirPricing"],
            priority_pricing=config["priorityPricing"],
            reverse_pricing=config["reversePricing"],
            min_chargeable_weight=config["minChargeableWeight"],
            **kwargs,
        )
        if approve:
            version.approve()
        return version

    return _make


@pytest.fixture
def make_range(db):
    from consignments.models import RangeAssignment

    def _make(entity, start, end, **kwargs):
        return RangeAssignment.objects.create(
            entity_type=entity.entity_type,
            entity_id=entity.entity_id,
            start_number=start,
            end_number=end,
            **kwargs,
        )

    return _make


@pytest.fixture
def booking_details():
    return {
        "originData": {"name": "Sender", "city": "Delhi", "state": "Delhi", "pincode": "110001"},
        "destinationData": {"name": "Receiver", "city": "Guwahati", "state": "Assam", "pincode": "781001"},
        "shipmentData": {"serviceType": "dox", "weight": 300},
        "invoiceData": {"invoiceNumber": "INV-1", "invoiceValue": 1500},
        "paymentData": {"paymentType": "FP"},
    }
