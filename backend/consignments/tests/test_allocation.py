import threading
from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal
from unittest.mock import patch

import pytest
from django.db import IntegrityError, connection

from consignments.models import ConsignmentUsage, RangeAssignment
from consignments.services.allocation import AllocationService
from consignments.services.ledger import RangeLedger, UsageLedger, validate_range_request
from core.exceptions import AllocationConflict, BookingValidationError, RangeExhausted

pytestmark = pytest.mark.django_db


@pytest.fixture
def allocator():
    return AllocationService(max_attempts=3, backoff_seconds=0)


def book(allocator, entity):
    return allocator.allocate(entity, status=ConsignmentUsage.STATUS_ACTIVE)


class TestAllocate:
    def test_numbers_are_handed_out_in_order(self, allocator, make_range, corporate):
        make_range(corporate, 100, 102)
        assert [book(allocator, corporate).consignment_number for _ in range(3)] == [100, 101, 102]

    def test_exhausted_range(self, allocator, make_range, corporate):
        make_range(corporate, 100, 101)
        book(allocator, corporate)
        book(allocator, corporate)
        with pytest.raises(RangeExhausted):
            book(allocator, corporate)
        assert ConsignmentUsage.objects.count() == 2

    def test_no_assignment(self, allocator, corporate):
        with pytest.raises(RangeExhausted):
            book(allocator, corporate)
        assert ConsignmentUsage.objects.count() == 0

    def test_continues_into_next_range(self, allocator, make_range, corporate):
        make_range(corporate, 200, 205)
        make_range(corporate, 100, 102)
        for _ in range(3):
            book(allocator, corporate)
        usage = book(allocator, corporate)
        assert usage.consignment_number == 200
        assert usage.range_assignment.start_number == 200

    def test_gaps_are_filled_first(self, allocator, make_range, corporate):
        r = make_range(corporate, 100, 105)
        for number in (100, 101, 103):
            ConsignmentUsage.objects.create(
                entity_type="corporate", entity_id=corporate.entity_id,
                consignment_number=number, range_assignment=r, booking_reference=f"BK-{number}",
            )
        assert book(allocator, corporate).consignment_number == 102

    def test_revoked_range_is_skipped(self, allocator, make_range, corporate):
        make_range(corporate, 100, 102).revoke()
        make_range(corporate, 300, 302)
        assert book(allocator, corporate).consignment_number == 300

    def test_entities_are_independent(self, allocator, make_range, corporate, office):
        make_range(corporate, 100, 102)
        make_range(office, 500, 502)
        book(allocator, corporate)
        assert book(allocator, office).consignment_number == 500
        assert book(allocator, corporate).consignment_number == 101

    def test_default_is_reserved_placeholder(self, allocator, make_range, corporate):
        make_range(corporate, 100, 102)
        usage = allocator.allocate(corporate)
        assert usage.is_reserved
        assert usage.booking_reference.startswith("BK-")


class TestConcurrency:
    def test_conflict_is_retried(self, allocator, make_range, corporate):
        make_range(corporate, 100, 105)
        book(allocator, corporate)
        # First attempt sees a stale snapshot and collides on 100
        with patch.object(UsageLedger, "used_numbers", side_effect=[set(), {100}]):
            usage = book(allocator, corporate)
        assert usage.consignment_number == 101
        assert ConsignmentUsage.objects.count() == 2

    def test_gives_up_after_bounded_attempts(self, make_range, corporate):
        make_range(corporate, 100, 105)
        allocator = AllocationService(max_attempts=3, backoff_seconds=0.05)
        book(allocator, corporate)
        with patch.object(UsageLedger, "used_numbers", return_value=set()), \
                patch("consignments.services.allocation.time.sleep") as sleep:
            with pytest.raises(AllocationConflict) as exc:
                book(allocator, corporate)
        assert exc.value.http_status == 409
        assert [c.args[0] for c in sleep.call_args_list] == [0.05, 0.1]
        assert ConsignmentUsage.objects.count() == 1

    def test_attempts_default_from_settings(self, settings):
        settings.ALLOCATION_MAX_ATTEMPTS = 7
        settings.ALLOCATION_BACKOFF_SECONDS = 0.2
        allocator = AllocationService()
        assert (allocator.max_attempts, allocator.backoff_seconds) == (7, 0.2)


class TestPeekReleaseSummary:
    def test_peek_does_not_consume(self, allocator, make_range, corporate):
        make_range(corporate, 100, 102)
        assert allocator.peek_next(corporate) == 100
        assert allocator.peek_next(corporate) == 100
        assert ConsignmentUsage.objects.count() == 0

    def test_release_frees_the_number(self, allocator, make_range, corporate):
        make_range(corporate, 100, 102)
        usage = allocator.allocate(corporate)
        allocator.release(usage)
        assert allocator.allocate(corporate).consignment_number == 100

    def test_booked_number_cannot_be_released(self, allocator, make_range, corporate):
        make_range(corporate, 100, 102)
        usage = book(allocator, corporate)
        with pytest.raises(BookingValidationError):
            allocator.release(usage)
        assert ConsignmentUsage.objects.count() == 1

    def test_summary_without_assignment(self, allocator, corporate):
        summary = allocator.summary(corporate)
        assert summary.has_assignment is False
        assert summary.as_dict()["availableCount"] == 0

    def test_summary(self, allocator, make_range, corporate):
        make_range(corporate, 100, 102)
        make_range(corporate, 200, 205)
        for _ in range(3):
            book(allocator, corporate)
        summary = allocator.summary(corporate)
        assert summary.total_assigned == 9
        assert summary.used_count == 3
        assert summary.available_count == 6
        assert summary.usage_percentage == Decimal("33.33")
        assert [a["rangeDisplay"] for a in summary.assignments] == ["100 - 102", "200 - 205"]


class TestRangeLedger:
    def test_assign_range(self, corporate):
        r = RangeLedger().assign_range(corporate, 871026572, 871026671, assigned_to_name="Acme")
        assert r.total_numbers == 100
        assert r.assigned_to_name == "Acme"

    def test_below_minimum(self):
        assert validate_range_request(1000, 2000) == ["Start number must be at least 871026572."]

    def test_block_too_large(self):
        errors = validate_range_request(871026572, 871026572 + 10000)
        assert errors == ["A single assignment may not exceed 10000 numbers."]

    def test_overlap_with_any_active_range_refused(self, corporate, office):
        ledger = RangeLedger()
        ledger.assign_range(corporate, 871026572, 871026671)
        with pytest.raises(BookingValidationError) as exc:
            ledger.assign_range(office, 871026600, 871026700)
        assert "overlaps" in exc.value.message

    def test_limits_come_from_settings(self, settings):
        settings.CONSIGNMENT_MIN_NUMBER = 1
        settings.CONSIGNMENT_MAX_BLOCK_SIZE = 5
        assert validate_range_request(1, 5) == []
        assert validate_range_request(1, 6) == ["A single assignment may not exceed 5 numbers."]

    def test_database_overlap_rejection_is_reported(self, corporate):
        with patch.object(RangeAssignment.objects, "create",
                          side_effect=IntegrityError("range_active_no_overlap")):
            with pytest.raises(BookingValidationError) as exc:
                RangeLedger().assign_range(corporate, 871026572, 871026671)
        assert "overlaps an active range" in exc.value.message


@pytest.mark.skipif(connection.vendor != "postgresql", reason="needs concurrent writers on PostgreSQL")
@pytest.mark.django_db(transaction=True)
class TestConcurrentWriters:
    def test_parallel_allocations_get_distinct_numbers(self, make_range, corporate):
        workers = 8
        make_range(corporate, 100, 100 + workers - 1)
        start = threading.Barrier(workers)

        def worker():
            try:
                start.wait()
                allocator = AllocationService(max_attempts=workers + 2, backoff_seconds=0)
                return book(allocator, corporate).consignment_number
            finally:
                connection.close()

        with ThreadPoolExecutor(max_workers=workers) as pool:
            numbers = [f.result() for f in [pool.submit(worker) for _ in range(workers)]]

        assert sorted(numbers) == list(range(100, 100 + workers))
        assert ConsignmentUsage.objects.count() == workers

    def test_parallel_overlapping_assignments(self, corporate, office):
        start = threading.Barrier(2)

        def worker(entity):
            try:
                start.wait()
                return RangeLedger().assign_range(entity, 871026572, 871026671)
            except BookingValidationError as exc:
                return exc
            finally:
                connection.close()

        with ThreadPoolExecutor(max_workers=2) as pool:
            results = [f.result() for f in [pool.submit(worker, e) for e in (corporate, office)]]

        assert sum(isinstance(r, BookingValidationError) for r in results) == 1
        assert RangeAssignment.objects.active().count() == 1
