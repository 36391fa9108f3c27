from decimal import Decimal, localcontext

import pytest

from core.exceptions import BookingValidationError, InvalidServiceType, UnsupportedReverseRoute
from pricing.dataclasses import PriceRequest
from pricing.serializers import parse_price_request
from pricing.services.rate_engine import RateEngine
from pricing.services.tariff_table import TariffTable


@pytest.fixture
def engine(tariff_config):
    return RateEngine(TariffTable.from_config(tariff_config, version_id=7))


def quote(engine, **payload):
    return engine.price(parse_price_request(payload))


class TestDoxSlabs:
    def test_up_to_250gm(self, engine):
        b = quote(engine, serviceType="dox", weight=250, toPincode="110001")
        assert b.weight_slab == "01gm-250gm"
        assert b.base_price == Decimal("70")
        assert b.weight_unit == "gm"

    def test_251gm_moves_to_second_slab(self, engine):
        b = quote(engine, serviceType="dox", weight=251, toPincode="110001")
        assert b.weight_slab == "251gm-500gm"
        assert b.base_price == Decimal("95")

    def test_500gm_is_still_second_slab(self, engine):
        b = quote(engine, serviceType="dox", weight=500, toPincode="781001")
        assert b.weight_slab == "251gm-500gm"
        assert b.base_price == Decimal("40")

    def test_additional_500gm_steps_round_up(self, engine):
        b = quote(engine, serviceType="dox", weight=1100, toPincode="110001")
        # 95 for the first 500gm + ceil(600 / 500) = 2 steps of 60
        assert b.units == Decimal("2")
        assert b.price_per_unit == Decimal("60")
        assert b.base_price == Decimal("215")
        assert b.weight_slab == "500gm + 2 × 500gm"
        assert b.applied_rates == {
            "doxPricing.251gm-500gm.restOfIndia": "95",
            "doxPricing.add500gm.restOfIndia": "60",
        }

    def test_exact_step_boundary(self, engine):
        b = quote(engine, serviceType="dox", weight=1000, toPincode="110001")
        assert b.units == Decimal("1")
        assert b.base_price == Decimal("155")

    def test_air_route_to_manipur_uses_agt_imp_column(self, engine):
        b = quote(engine, serviceType="dox", weight=200, toPincode="795001", byAir=True)
        assert b.zone == "neByAirAgtImp"
        assert b.transport_mode == "byFlight"
        assert b.base_price == Decimal("60")

    def test_kolkata_priced_as_rest_of_india(self, engine):
        b = quote(engine, serviceType="dox", weight=200, toPincode="700001")
        assert b.zone == "kolkata"
        assert b.base_price == Decimal("70")

    def test_from_pincode_does_not_make_dox_reverse(self, engine):
        b = quote(engine, serviceType="dox", weight=200, toPincode="781001", fromPincode="110001")
        assert b.weight_slab == "01gm-250gm"
        assert b.minimum_weight_applied is False


class TestPriority:
    def test_up_to_500gm(self, engine):
        b = quote(engine, serviceType="dox", priority=True, weight=400, toPincode="781001")
        assert b.weight_slab == "01gm-500gm"
        assert b.base_price == Decimal("90")
        assert b.priority is True

    def test_additional_steps(self, engine):
        b = quote(engine, serviceType="dox", priority=True, weight=1200, toPincode="781001")
        assert b.base_price == Decimal("90") + 2 * Decimal("45")

    def test_legacy_priority_service_type(self, engine):
        request = parse_price_request({"serviceType": "priority", "weight": 400, "toPincode": "781001"})
        assert request.service_type == "dox"
        assert request.priority is True
        assert engine.price(request).base_price == Decimal("90")


class TestNonDox:
    def test_surface_rate_times_weight(self, engine):
        b = quote(engine, serviceType="non-dox", weight="3.5", toPincode="781001")
        assert b.base_price == Decimal("157.5")
        assert b.weight_unit == "kg"
        assert b.transport_mode == "byRoad"

    def test_air_rate(self, engine):
        b = quote(engine, serviceType="non-dox", weight=2, toPincode="110001", byAir=True)
        assert b.base_price == Decimal("320")
        assert b.applied_rates == {"nonDoxAirPricing.restOfIndia": "160"}

    def test_no_minimum_weight_on_forward(self, engine):
        b = quote(engine, serviceType="non-dox", weight="0.5", toPincode="781001")
        assert b.chargeable_weight == Decimal("0.5")
        assert b.minimum_weight_applied is False
        assert b.base_price == Decimal("22.5")


class TestReverse:
    def test_minimum_chargeable_weight_by_road(self, engine):
        b = quote(engine, serviceType="non-dox", weight=50, toPincode="781001", fromPincode="110001")
        assert b.transport_mode == "byRoad"
        assert b.delivery_type == "normal"
        assert b.chargeable_weight == Decimal("500")
        assert b.minimum_weight_applied is True
        assert b.base_price == Decimal("6000")
        assert b.final_price == Decimal("7080")
        assert b.weight_slab == "50kg (min: 500kg)"

    def test_weight_above_floor(self, engine):
        b = quote(
            engine, serviceType="non-dox", weight=30, toPincode="795001", fromPincode="110001",
            transportMode="byFlight", deliveryType="priority",
        )
        assert b.zone == "neByAirAgtImp"
        assert b.chargeable_weight == Decimal("30")
        assert b.minimum_weight_applied is False
        assert b.base_price == Decimal("3150")
        assert b.applied_rates["reversePricing.toNorthEast.byFlight.priority"] == "105"

    def test_train_floor(self, engine):
        b = quote(
            engine, serviceType="non-dox", weight=40, toPincode="793001", fromPincode="110001",
            transportMode="byTrain",
        )
        assert b.chargeable_weight == Decimal("100")
        assert b.base_price == Decimal("2600")

    def test_unsupported_destination(self, engine):
        with pytest.raises(UnsupportedReverseRoute):
            quote(engine, serviceType="non-dox", weight=50, toPincode="110001", fromPincode="781001")


class TestGst:
    @pytest.mark.parametrize("payload", [
        {"serviceType": "dox", "weight": 1700, "toPincode": "797001"},
        {"serviceType": "non-dox", "weight": "7.333", "toPincode": "110001", "byAir": True},
        {"serviceType": "non-dox", "weight": 612, "toPincode": "781001", "fromPincode": "400001"},
    ])
    def test_gst_is_exactly_18_percent_of_base(self, engine, payload):
        b = quote(engine, **payload)
        assert b.gst_rate == Decimal("0.18")
        assert b.gst_amount == b.base_price * Decimal("0.18")
        assert b.final_price == b.base_price + b.gst_amount

    def test_money_is_not_rounded(self, engine):
        b = quote(engine, serviceType="non-dox", weight="1.111", toPincode="781001")
        assert b.base_price == Decimal("49.995")
        assert b.gst_amount == Decimal("8.9991")
        assert b.as_dict()["finalPrice"] == "58.9941"

    def test_breakdown_carries_tariff_version(self, engine):
        b = quote(engine, serviceType="dox", weight=100, toPincode="781001")
        assert b.tariff_version_id == 7
        assert b.as_dict()["tariffVersionId"] == 7


class TestDeterminism:
    def test_same_input_same_breakdown(self, engine):
        payload = {"serviceType": "non-dox", "weight": "12.75", "toPincode": "799001", "byAir": True}
        first = quote(engine, **payload)
        second = quote(engine, **payload)
        assert first == second
        assert first.as_dict() == second.as_dict()

    def test_caller_decimal_context_does_not_leak_in(self, engine):
        payload = {"serviceType": "non-dox", "weight": "1.111", "toPincode": "781001"}
        expected = quote(engine, **payload)
        with localcontext() as ctx:
            ctx.prec = 3
            assert quote(engine, **payload) == expected


class TestReportedTransportMode:
    def test_flight_mode_implies_air_rate(self, engine):
        b = quote(engine, serviceType="non-dox", weight=2, toPincode="110001", transportMode="byFlight")
        assert b.transport_mode == "byFlight"
        assert b.applied_rates == {"nonDoxAirPricing.restOfIndia": "160"}

    def test_train_is_reported_for_surface(self, engine):
        b = quote(engine, serviceType="non-dox", weight=2, toPincode="781001", transportMode="byTrain")
        assert b.transport_mode == "byTrain"
        assert b.applied_rates == {"nonDoxSurfacePricing.assam": "45"}

    @pytest.mark.parametrize("mode, by_air", [("byFlight", False), ("byRoad", True), ("byTrain", True)])
    def test_contradicting_flags_rejected(self, mode, by_air):
        with pytest.raises(BookingValidationError) as exc:
            parse_price_request({
                "serviceType": "non-dox", "weight": 2, "toPincode": "110001",
                "transportMode": mode, "byAir": by_air,
            })
        assert "byAir" in exc.value.context["fields"]

    def test_engine_reports_mode_from_by_air(self, engine):
        request = PriceRequest(
            to_pincode="110001", weight=Decimal("2"), service_type="non-dox",
            by_air=False, transport_mode="byFlight",
        )
        b = engine.price(request)
        assert b.transport_mode == "byRoad"
        assert b.applied_rates == {"nonDoxSurfacePricing.restOfIndia": "90"}


class TestRequestValidation:
    @pytest.mark.parametrize("service_type", ["express", "", None, 5])
    def test_unknown_service_type(self, service_type):
        with pytest.raises(InvalidServiceType):
            parse_price_request({"serviceType": service_type, "weight": 1, "toPincode": "781001"})

    @pytest.mark.parametrize("weight", [0, -1, "-0.5", "abc", True, None, "", "NaN", "Infinity"])
    def test_weight_must_be_positive_number(self, weight):
        with pytest.raises(BookingValidationError) as exc:
            parse_price_request({"serviceType": "dox", "weight": weight, "toPincode": "781001"})
        assert "weight" in exc.value.context["fields"]

    def test_missing_fields_are_listed(self):
        with pytest.raises(BookingValidationError) as exc:
            parse_price_request({"serviceType": "dox"})
        assert set(exc.value.context["fields"]) == {"weight", "toPincode"}

    def test_malformed_pincode(self):
        with pytest.raises(BookingValidationError):
            parse_price_request({"serviceType": "dox", "weight": 1, "toPincode": "7810"})
        with pytest.raises(BookingValidationError):
            parse_price_request({"serviceType": "dox", "weight": 1, "toPincode": "781001", "fromPincode": "x"})

    def test_unknown_transport_mode_and_delivery_type(self):
        with pytest.raises(BookingValidationError):
            parse_price_request({"serviceType": "non-dox", "weight": 1, "toPincode": "781001", "transportMode": "byBus"})
        with pytest.raises(BookingValidationError):
            parse_price_request({"serviceType": "non-dox", "weight": 1, "toPincode": "781001", "deliveryType": "urgent"})

    def test_flags_must_be_booleans(self):
        with pytest.raises(BookingValidationError):
            parse_price_request({"serviceType": "dox", "weight": 1, "toPincode": "781001", "byAir": "sometimes"})

    def test_service_type_is_case_insensitive(self):
        request = parse_price_request({"serviceType": " Non-Dox ", "weight": "2", "toPincode": 781001})
        assert request == PriceRequest(to_pincode="781001", weight=Decimal("2"), service_type="non-dox")

    def test_blank_optional_fields_are_absent(self):
        request = parse_price_request({
            "serviceType": "dox", "weight": "100", "toPincode": "781001",
            "fromPincode": "", "transportMode": "", "deliveryType": None, "byAir": None,
        })
        assert (request.from_pincode, request.transport_mode, request.delivery_type) == (None, None, None)
        assert request.by_air is False
