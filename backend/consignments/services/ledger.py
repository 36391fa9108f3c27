"""
Durable records behind consignment allocation.

``RangeLedger`` owns the numeric blocks granted to an entity. ``UsageLedger``
is the append-only record of numbers already consumed.
"""
from __future__ import annotations

import logging
from typing import List, Optional, Set

from django.conf import settings
from django.db import IntegrityError, connection, transaction
from django.db.models import Q

from core.entities import Entity
from core.exceptions import BookingValidationError

from ..models import ConsignmentUsage, RangeAssignment

logger = logging.getLogger(__name__)


def _lock_range_table():
    """
    Hold off concurrent range writers until this transaction ends. Row locks
    cannot cover a range that does not exist yet.
    """
    if connection.vendor == "postgresql":
        with connection.cursor() as cursor:
            cursor.execute(
                f"LOCK TABLE {RangeAssignment._meta.db_table} IN SHARE ROW EXCLUSIVE MODE"
            )


def validate_range_request(start_number: int, end_number: int) -> List[str]:
    """
    Validate an administrative range assignment.

    Returns:
        List[str]: validation errors (empty if valid)
    """
    errors: List[str] = []
    min_number = settings.CONSIGNMENT_MIN_NUMBER
    max_block = settings.CONSIGNMENT_MAX_BLOCK_SIZE

    if start_number < min_number:
        errors.append(f"Start number must be at least {min_number}.")
    if end_number < start_number:
        errors.append("End number must be greater than or equal to start number.")
    elif end_number - start_number + 1 > max_block:
        errors.append(f"A single assignment may not exceed {max_block} numbers.")

    clash = RangeAssignment.objects.active().overlapping(start_number, end_number).first()
    if clash is not None:
        errors.append(
            f"Range {start_number} - {end_number} overlaps the active range "
            f"{clash.range_display} assigned to {clash.entity}."
        )
    return errors


class RangeLedger:
    """Numeric ranges granted to entities."""

    def active_ranges(self, entity: Entity) -> List[RangeAssignment]:
        return list(RangeAssignment.objects.active().for_entity(entity).order_by('start_number'))

    def all_ranges(self, entity: Entity) -> List[RangeAssignment]:
        return list(RangeAssignment.objects.for_entity(entity).order_by('start_number'))

    @transaction.atomic
    def assign_range(self, entity: Entity, start_number: int, end_number: int, *,
                     assigned_to_name: str = "", assigned_by: str = "", notes: str = "") -> RangeAssignment:
        _lock_range_table()
        errors = validate_range_request(start_number, end_number)
        if errors:
            raise BookingValidationError("; ".join(errors), entity=str(entity))

        try:
            with transaction.atomic():
                assignment = RangeAssignment.objects.create(
                    entity_type=entity.entity_type,
                    entity_id=entity.entity_id,
                    assigned_to_name=assigned_to_name,
                    start_number=start_number,
                    end_number=end_number,
                    assigned_by=assigned_by,
                    notes=notes,
                )
        except IntegrityError as exc:
            # range_active_no_overlap rejected a concurrent overlapping insert
            logger.warning("Range %s - %s for %s refused by the database: %s", start_number, end_number, entity, exc)
            raise BookingValidationError(
                f"Range {start_number} - {end_number} overlaps an active range.", entity=str(entity)
            ) from exc
        logger.info(
            "Assigned consignment range %s to %s (%s numbers)",
            assignment.range_display, entity, assignment.total_numbers,
        )
        return assignment

    def revoke(self, assignment: RangeAssignment) -> RangeAssignment:
        if assignment.is_active:
            assignment.revoke()
            logger.info("Revoked consignment range %s of %s", assignment.range_display, assignment.entity)
        return assignment


class UsageLedger:
    """Consumed consignment numbers, unique per entity."""

    def _within(self, entity: Entity, ranges: Optional[List[RangeAssignment]]):
        qs = ConsignmentUsage.objects.for_entity(entity)
        if ranges is not None:
            bounds = Q()
            for r in ranges:
                bounds |= Q(consignment_number__gte=r.start_number, consignment_number__lte=r.end_number)
            qs = qs.filter(bounds) if ranges else qs.none()
        return qs

    def used_numbers(self, entity: Entity, ranges: Optional[List[RangeAssignment]] = None) -> Set[int]:
        return set(self._within(entity, ranges).values_list('consignment_number', flat=True))

    def count(self, entity: Entity, ranges: Optional[List[RangeAssignment]] = None) -> int:
        return self._within(entity, ranges).count()

    def list(self, entity: Entity):
        return (ConsignmentUsage.objects.for_entity(entity)
                .select_related('range_assignment', 'tariff_version'))

    def get(self, entity: Entity, consignment_number: int) -> Optional[ConsignmentUsage]:
        return self.list(entity).filter(consignment_number=consignment_number).first()

    def record(self, entity: Entity, consignment_number: int, assignment: RangeAssignment,
               **fields) -> ConsignmentUsage:
        """
        Insert one usage row. Raises ``IntegrityError`` when the number is
        already taken; callers retry inside a savepoint.
        """
        if not assignment.contains(consignment_number):
            raise BookingValidationError(
                f"Consignment number {consignment_number} is outside range {assignment.range_display}."
            )
        return ConsignmentUsage.objects.create(
            entity_type=entity.entity_type,
            entity_id=entity.entity_id,
            consignment_number=consignment_number,
            range_assignment=assignment,
            **fields,
        )
