from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import F, Q

from core.entities import ENTITY_TYPE_CHOICES, Entity


class RangeAssignmentQuerySet(models.QuerySet):
    def active(self):
        return self.filter(is_active=True)

    def for_entity(self, entity: Entity):
        return self.filter(**entity.filter_kwargs())

    def overlapping(self, start_number: int, end_number: int):
        return self.filter(start_number__lte=end_number, end_number__gte=start_number)


class RangeAssignment(models.Model):
    """A contiguous block of consignment numbers granted to one entity."""
    entity_type = models.CharField(max_length=16, choices=ENTITY_TYPE_CHOICES)
    entity_id = models.CharField(max_length=64)
    assigned_to_name = models.CharField(max_length=200, blank=True, default="")
    start_number = models.BigIntegerField()
    end_number = models.BigIntegerField()
    total_numbers = models.PositiveIntegerField(editable=False)
    assigned_by = models.CharField(max_length=150, blank=True, default="")
    assigned_at = models.DateTimeField(auto_now_add=True)
    is_active = models.BooleanField(default=True)
    notes = models.CharField(max_length=500, blank=True, default="")

    objects = RangeAssignmentQuerySet.as_manager()

    class Meta:
        db_table = 'consignment_range_assignments'
        ordering = ['start_number']
        constraints = [
            models.CheckConstraint(
                condition=Q(start_number__lte=F('end_number')),
                name='range_start_lte_end',
            ),
        ]
        indexes = [
            models.Index(fields=['entity_type', 'entity_id', 'is_active', 'start_number'], name='range_entity_active_idx'),
            models.Index(fields=['start_number', 'end_number'], name='range_bounds_idx'),
        ]

    def __str__(self):
        return f"{self.entity_type}:{self.entity_id} {self.range_display}"

    @property
    def range_display(self) -> str:
        return f"{self.start_number} - {self.end_number}"

    @property
    def entity(self) -> Entity:
        return Entity(self.entity_type, self.entity_id)

    def contains(self, number: int) -> bool:
        return self.start_number <= number <= self.end_number

    def clashing_ranges(self):
        """Other active ranges, of any entity, sharing a number with this one."""
        return (RangeAssignment.objects.active()
                .overlapping(self.start_number, self.end_number)
                .exclude(pk=self.pk))

    def reactivation_error(self):
        """Why this revoked range cannot be switched back on, or None."""
        clash = self.clashing_ranges().first()
        if clash is None:
            return None
        return (f"Range {self.range_display} overlaps the active range {clash.range_display} "
                f"assigned to {clash.entity} and cannot be reactivated.")

    def clean(self):
        if self.start_number is None or self.end_number is None:
            return
        if self.end_number < self.start_number:
            raise ValidationError("End number must be greater than or equal to start number.")
        if self.is_active:
            clash = self.clashing_ranges().filter(entity_type=self.entity_type, entity_id=self.entity_id)
            if clash.exists():
                raise ValidationError("Active ranges of one entity must not overlap.")

    def save(self, *args, **kwargs):
        update_fields = kwargs.get('update_fields')
        if self.pk and not (update_fields and set(update_fields) <= {'is_active'}):
            raise ValidationError("Range assignments are immutable; only is_active may change.")
        if self.pk and self.is_active and not self._stored_is_active():
            error = self.reactivation_error()
            if error:
                raise ValidationError(error)
        if not self.pk:
            self.clean()
            self.total_numbers = self.end_number - self.start_number + 1
        return super().save(*args, **kwargs)

    def _stored_is_active(self):
        return (RangeAssignment.objects.filter(pk=self.pk)
                .values_list('is_active', flat=True).first())

    def revoke(self):
        self.is_active = False
        self.save(update_fields=['is_active'])


class ConsignmentUsageQuerySet(models.QuerySet):
    def for_entity(self, entity: Entity):
        return self.filter(**entity.filter_kwargs())


class ConsignmentUsage(models.Model):
    """One consumed consignment number. Append-only; status flags may flip."""
    STATUS_RESERVED = 'reserved'
    STATUS_ACTIVE = 'active'
    STATUS_CANCELLED = 'cancelled'
    STATUS_COMPLETED = 'completed'
    STATUS_CHOICES = [
        (STATUS_RESERVED, 'Reserved'),
        (STATUS_ACTIVE, 'Active'),
        (STATUS_CANCELLED, 'Cancelled'),
        (STATUS_COMPLETED, 'Completed'),
    ]
    PAYMENT_STATUS_CHOICES = [('unpaid', 'Unpaid'), ('paid', 'Paid'), ('invoiced', 'Invoiced')]
    PAYMENT_TYPE_CHOICES = [('FP', 'Freight Paid'), ('TP', 'To Pay')]

    MUTABLE_FIELDS = {'status', 'payment_status'}
    FINALIZE_FIELDS = {
        'status', 'booking_reference', 'booking_data', 'price_breakdown',
        'tariff_version', 'freight_charges', 'total_amount', 'payment_type',
    }

    entity_type = models.CharField(max_length=16, choices=ENTITY_TYPE_CHOICES)
    entity_id = models.CharField(max_length=64)
    consignment_number = models.BigIntegerField()
    range_assignment = models.ForeignKey(
        RangeAssignment, on_delete=models.PROTECT, related_name='usages'
    )
    tariff_version = models.ForeignKey(
        'pricing.TariffVersion', on_delete=models.PROTECT, null=True, blank=True,
        related_name='usages',
    )
    booking_reference = models.CharField(max_length=64)
    booking_data = models.JSONField(default=dict, blank=True)
    price_breakdown = models.JSONField(default=dict, blank=True)
    freight_charges = models.DecimalField(max_digits=18, decimal_places=6, default=0)
    total_amount = models.DecimalField(max_digits=18, decimal_places=6, default=0)
    payment_type = models.CharField(max_length=2, choices=PAYMENT_TYPE_CHOICES, default='FP')
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_ACTIVE)
    payment_status = models.CharField(max_length=16, choices=PAYMENT_STATUS_CHOICES, default='unpaid')
    created_at = models.DateTimeField(auto_now_add=True)

    objects = ConsignmentUsageQuerySet.as_manager()

    class Meta:
        db_table = 'consignment_usage'
        ordering = ['-created_at', '-id']
        constraints = [
            models.UniqueConstraint(
                fields=['entity_type', 'entity_id', 'consignment_number'],
                name='uniq_usage_entity_consignment_number',
            ),
        ]
        indexes = [
            models.Index(fields=['entity_type', 'entity_id', '-created_at'], name='usage_entity_created_idx'),
            models.Index(fields=['consignment_number'], name='usage_number_idx'),
            models.Index(fields=['booking_reference'], name='usage_booking_ref_idx'),
        ]

    def __str__(self):
        return f"{self.consignment_number} ({self.entity_type}:{self.entity_id})"

    @property
    def entity(self) -> Entity:
        return Entity(self.entity_type, self.entity_id)

    @property
    def is_reserved(self) -> bool:
        return self.status == self.STATUS_RESERVED

    def save(self, *args, **kwargs):
        if self.pk:
            allowed = self.MUTABLE_FIELDS
            if self._stored_status() == self.STATUS_RESERVED:
                allowed = allowed | self.FINALIZE_FIELDS
            update_fields = kwargs.get('update_fields')
            if not update_fields or not set(update_fields) <= allowed:
                raise ValidationError("Consignment usage records are immutable once booked.")
        return super().save(*args, **kwargs)

    def _stored_status(self):
        return (ConsignmentUsage.objects.filter(pk=self.pk)
                .values_list('status', flat=True).first())

    def finalize(self, *, booking_reference, booking_data, price_breakdown,
                 tariff_version=None, freight_charges=0, total_amount=0, payment_type='FP'):
        """Turn a reserved placeholder into the booked record, exactly once."""
        if not self.is_reserved:
            raise ValidationError("Only a reserved consignment number can be finalized.")
        self.booking_reference = booking_reference
        self.booking_data = booking_data
        self.price_breakdown = price_breakdown
        self.tariff_version = tariff_version
        self.freight_charges = freight_charges
        self.total_amount = total_amount
        self.payment_type = payment_type
        self.status = self.STATUS_ACTIVE
        self.save(update_fields=sorted(self.FINALIZE_FIELDS))
