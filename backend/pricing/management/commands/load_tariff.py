from datetime import datetime
from pathlib import Path

from django.core.management.base import BaseCommand, CommandError
from django.db import transaction
from django.utils import timezone

from core.entities import ENTITY_TYPES, Entity
from core.exceptions import BookingCoreError
from pricing.models import TariffVersion
from pricing.services.tariff_table import DEFAULT_TARIFF_PATH, load_tariff_file, validate_tariff_config


class Command(BaseCommand):
    help = "Loads a tariff JSON file as a new, immutable tariff version."

    def add_arguments(self, parser):
        parser.add_argument("path", nargs="?", default=str(DEFAULT_TARIFF_PATH))
        parser.add_argument("--name", default="", help="Version name (defaults to the file name)")
        parser.add_argument("--entity-type", choices=ENTITY_TYPES, dest="entity_type")
        parser.add_argument("--entity-id", dest="entity_id")
        parser.add_argument("--effective-from", dest="effective_from", help="ISO date or datetime")
        parser.add_argument("--approve", action="store_true", help="Approve the version immediately")
        parser.add_argument("--dry-run", action="store_true", dest="dry_run", help="Validate only")

    def handle(self, *args, **options):
        try:
            config = load_tariff_file(options["path"])
            entity = None
            if options["entity_type"] or options["entity_id"]:
                entity = Entity(options["entity_type"] or "", options["entity_id"] or "")
        except BookingCoreError as e:
            raise CommandError(e.message)

        errors = validate_tariff_config(config)
        if errors:
            for error in errors:
                self.stdout.write(f"  - {error}")
            raise CommandError(f"Tariff file has {len(errors)} error(s); nothing was loaded.")

        if options["dry_run"]:
            self.stdout.write(self.style.SUCCESS("Tariff file is valid."))
            return

        effective_from = timezone.now()
        if options["effective_from"]:
            try:
                effective_from = datetime.fromisoformat(options["effective_from"])
            except ValueError:
                raise CommandError(f"Invalid --effective-from '{options['effective_from']}'.")
            if timezone.is_naive(effective_from):
                effective_from = timezone.make_aware(effective_from)

        with transaction.atomic():
            version = TariffVersion.objects.create(
                name=options["name"] or Path(options["path"]).name,
                entity_type=entity.entity_type if entity else "",
                entity_id=entity.entity_id if entity else "",
                effective_from=effective_from,
                dox_pricing=config["doxPricing"],
                non_dox_surface_pricing=config["nonDoxSurfacePricing"],
                non_dox_air_pricing=config["nonDoxAirPricing"],
                priority_pricing=config["priorityPricing"],
                reverse_pricing=config["reversePricing"],
                min_chargeable_weight=config["minChargeableWeight"],
            )
            if options["approve"]:
                version.approve()

        self.stdout.write(self.style.SUCCESS(
            f"Loaded tariff version {version.id} '{version.name}' ({version.get_status_display()})."
        ))
