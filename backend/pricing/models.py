from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q
from django.utils.timezone import now

from core.entities import ENTITY_TYPE_CHOICES, Entity


class TariffVersionQuerySet(models.QuerySet):
    def approved(self):
        return self.filter(status=TariffVersion.STATUS_APPROVED)

    def effective_at(self, at=None):
        return self.filter(effective_from__lte=at or now())

    def global_default(self):
        return self.filter(entity_type='', entity_id='')

    def active_for(self, entity: Entity = None, at=None):
        """
        Latest approved version in force at ``at``. A tariff negotiated for the
        entity wins over the global default.
        """
        qs = self.approved().effective_at(at).order_by('-effective_from', '-id')
        if entity is not None:
            own = qs.filter(**entity.filter_kwargs()).first()
            if own:
                return own
        return qs.global_default().first()


class TariffVersion(models.Model):
    """Immutable rate tables. Only the approval status may change after creation."""
    STATUS_PENDING = 'pending'
    STATUS_APPROVED = 'approved'
    STATUS_REJECTED = 'rejected'
    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending approval'),
        (STATUS_APPROVED, 'Approved'),
        (STATUS_REJECTED, 'Rejected'),
    ]
    MUTABLE_FIELDS = {'status', 'notes'}

    name = models.CharField(max_length=200)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_PENDING)
    # Blank entity = global default tariff
    entity_type = models.CharField(max_length=16, choices=ENTITY_TYPE_CHOICES, blank=True, default='')
    entity_id = models.CharField(max_length=64, blank=True, default='')
    effective_from = models.DateTimeField(default=now)
    dox_pricing = models.JSONField()
    non_dox_surface_pricing = models.JSONField()
    non_dox_air_pricing = models.JSONField()
    priority_pricing = models.JSONField()
    reverse_pricing = models.JSONField()
    min_chargeable_weight = models.JSONField()
    notes = models.TextField(blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True)

    objects = TariffVersionQuerySet.as_manager()

    class Meta:
        db_table = 'tariff_versions'
        ordering = ['-effective_from', '-id']
        constraints = [
            models.CheckConstraint(
                condition=(Q(entity_type='', entity_id='') | (~Q(entity_type='') & ~Q(entity_id=''))),
                name='tariff_entity_both_or_neither',
            ),
        ]
        indexes = [
            models.Index(fields=['status', 'entity_type', 'entity_id', '-effective_from'], name='tariff_lookup_idx'),
        ]

    def __str__(self):
        owner = f"{self.entity_type}:{self.entity_id}" if self.entity_type else "default"
        return f"{self.name} ({owner}, from {self.effective_from:%Y-%m-%d})"

    @property
    def is_approved(self) -> bool:
        return self.status == self.STATUS_APPROVED

    def tables(self) -> dict:
        """Rate tables in the camelCase layout used by tariff JSON files."""
        return {
            'doxPricing': self.dox_pricing,
            'nonDoxSurfacePricing': self.non_dox_surface_pricing,
            'nonDoxAirPricing': self.non_dox_air_pricing,
            'priorityPricing': self.priority_pricing,
            'reversePricing': self.reverse_pricing,
            'minChargeableWeight': self.min_chargeable_weight,
        }

    def clean(self):
        from .services.tariff_table import validate_tariff_config

        errors = validate_tariff_config(self.tables())
        if errors:
            raise ValidationError(errors)

    def save(self, *args, **kwargs):
        if self.pk:
            update_fields = kwargs.get('update_fields')
            if not update_fields or not set(update_fields) <= self.MUTABLE_FIELDS:
                raise ValidationError("Tariff versions are immutable; publish a new version instead.")
        else:
            self.clean()
        return super().save(*args, **kwargs)

    def approve(self):
        self.status = self.STATUS_APPROVED
        self.save(update_fields=['status'])

    def reject(self, reason: str = ''):
        self.status = self.STATUS_REJECTED
        if reason:
            self.notes = reason
        self.save(update_fields=['status', 'notes'])
