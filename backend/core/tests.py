import pytest

from core.entities import Entity
from core.exceptions import AllocationConflict, BookingCoreError, BookingValidationError, RangeExhausted


class TestEntity:
    def test_from_mapping_accepts_both_spellings(self):
        assert Entity.from_mapping({"entityType": "Corporate", "entityId": " C1 "}) == Entity("corporate", "C1")
        assert Entity.from_mapping({"entity_type": "office", "entity_id": 42}) == Entity("office", "42")

    @pytest.mark.parametrize("data", [{}, {"entityType": "partner", "entityId": "1"}, {"entityType": "office"}])
    def test_invalid_entities(self, data):
        with pytest.raises(BookingValidationError):
            Entity.from_mapping(data)

    def test_filter_kwargs(self):
        assert Entity("office", "7").filter_kwargs() == {"entity_type": "office", "entity_id": "7"}


class TestErrors:
    def test_response_body(self):
        exc = RangeExhausted("all used", entity="corporate:C1")
        assert exc.as_response_body() == {
            "detail": "all used",
            "error": "RangeExhausted",
            "context": {"entity": "corporate:C1"},
        }
        assert exc.http_status == 400

    def test_conflict_is_409(self):
        assert AllocationConflict().http_status == 409
        assert isinstance(AllocationConflict(), BookingCoreError)
