"""
Consignment number allocation.

The lowest unused number across an entity's active ranges is reserved by
inserting its usage row. The unique constraint on
``(entity_type, entity_id, consignment_number)`` is the arbiter between
concurrent writers: losers get an ``IntegrityError`` and retry with backoff.
"""
from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from django.conf import settings
from django.db import IntegrityError, transaction

from core.entities import Entity
from core.exceptions import AllocationConflict, BookingValidationError, RangeExhausted

from ..models import ConsignmentUsage, RangeAssignment
from .ledger import RangeLedger, UsageLedger

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AllocationSummary:
    has_assignment: bool
    total_assigned: int
    used_count: int
    available_count: int
    usage_percentage: Decimal
    assignments: List[Dict[str, Any]] = field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "hasAssignment": self.has_assignment,
            "totalAssigned": self.total_assigned,
            "usedCount": self.used_count,
            "availableCount": self.available_count,
            "usagePercentage": float(self.usage_percentage),
            "assignments": list(self.assignments),
        }


def new_booking_reference() -> str:
    return f"BK-{uuid.uuid4().hex[:12].upper()}"


class AllocationService:
    def __init__(self, ranges: Optional[RangeLedger] = None, usages: Optional[UsageLedger] = None,
                 max_attempts: Optional[int] = None, backoff_seconds: Optional[float] = None):
        self.ranges = ranges or RangeLedger()
        self.usages = usages or UsageLedger()
        self.max_attempts = max_attempts or settings.ALLOCATION_MAX_ATTEMPTS
        self.backoff_seconds = (
            settings.ALLOCATION_BACKOFF_SECONDS if backoff_seconds is None else backoff_seconds
        )

    def next_free_number(self, entity: Entity) -> Tuple[int, RangeAssignment]:
        """
        Walk the active ranges in ascending order and return the first number
        with no usage row, together with the range it belongs to.
        """
        active = self.ranges.active_ranges(entity)
        if not active:
            raise RangeExhausted(
                f"No consignment range is assigned to {entity}. Contact the administrator.",
                entity=str(entity),
            )
        used = self.usages.used_numbers(entity, active)
        for assignment in active:
            for number in range(assignment.start_number, assignment.end_number + 1):
                if number not in used:
                    return number, assignment
        raise RangeExhausted(
            f"All assigned consignment numbers of {entity} are used. Contact the administrator.",
            entity=str(entity),
        )

    def peek_next(self, entity: Entity) -> int:
        """Advisory only: another booking may take the number first."""
        number, _ = self.next_free_number(entity)
        return number

    def allocate(self, entity: Entity, **usage_fields) -> ConsignmentUsage:
        """
        Reserve the lowest free number for ``entity``.

        Returns the inserted usage row. Unless ``status`` is passed the row is
        a ``reserved`` placeholder that the caller finalises in the same
        transaction.
        """
        usage_fields.setdefault('status', ConsignmentUsage.STATUS_RESERVED)
        usage_fields.setdefault('booking_reference', new_booking_reference())

        for attempt in range(1, self.max_attempts + 1):
            number, assignment = self.next_free_number(entity)
            try:
                with transaction.atomic():
                    usage = self.usages.record(entity, number, assignment, **usage_fields)
            except IntegrityError:
                logger.warning(
                    "Consignment number %s for %s was taken concurrently (attempt %s/%s)",
                    number, entity, attempt, self.max_attempts,
                )
                if attempt < self.max_attempts:
                    time.sleep(self.backoff_seconds * (2 ** (attempt - 1)))
                continue
            logger.info("Allocated consignment number %s to %s", number, entity)
            return usage

        logger.error("Giving up allocating for %s after %s attempts", entity, self.max_attempts)
        raise AllocationConflict(
            "Could not allocate a consignment number due to concurrent bookings. Please retry.",
            entity=str(entity),
            attempts=self.max_attempts,
        )

    def release(self, usage: ConsignmentUsage) -> None:
        """Compensating release of a placeholder that was never finalised."""
        if not usage.is_reserved:
            raise BookingValidationError(
                f"Consignment number {usage.consignment_number} is already booked and cannot be released."
            )
        ConsignmentUsage.objects.filter(pk=usage.pk, status=ConsignmentUsage.STATUS_RESERVED).delete()
        logger.warning("Released reserved consignment number %s of %s", usage.consignment_number, usage.entity)

    def summary(self, entity: Entity) -> AllocationSummary:
        active = self.ranges.active_ranges(entity)
        if not active:
            return AllocationSummary(
                has_assignment=False,
                total_assigned=0,
                used_count=0,
                available_count=0,
                usage_percentage=Decimal("0"),
            )
        total = sum(r.total_numbers for r in active)
        used = self.usages.count(entity, active)
        percentage = (Decimal(used) * 100 / Decimal(total)).quantize(Decimal("0.01")) if total else Decimal("0")
        assignments = [
            {
                "id": r.pk,
                "startNumber": r.start_number,
                "endNumber": r.end_number,
                "totalNumbers": r.total_numbers,
                "rangeDisplay": r.range_display,
                "assignedAt": r.assigned_at.isoformat() if r.assigned_at else None,
            }
            for r in active
        ]
        return AllocationSummary(
            has_assignment=True,
            total_assigned=total,
            used_count=used,
            available_count=total - used,
            usage_percentage=percentage,
            assignments=assignments,
        )
