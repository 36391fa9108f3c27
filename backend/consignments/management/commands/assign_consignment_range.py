from django.core.management.base import BaseCommand, CommandError

from consignments.services.ledger import RangeLedger
from core.entities import ENTITY_TYPES, Entity
from core.exceptions import BookingCoreError


class Command(BaseCommand):
    help = "Assigns a block of consignment numbers to a corporate client or office user."

    def add_arguments(self, parser):
        parser.add_argument("entity_type", choices=ENTITY_TYPES)
        parser.add_argument("entity_id")
        parser.add_argument("start_number", type=int)
        parser.add_argument("end_number", type=int)
        parser.add_argument("--name", default="", help="Display name of the assignee")
        parser.add_argument("--assigned-by", default="", dest="assigned_by")
        parser.add_argument("--notes", default="")

    def handle(self, *args, **options):
        try:
            entity = Entity(options["entity_type"], options["entity_id"])
            assignment = RangeLedger().assign_range(
                entity,
                options["start_number"],
                options["end_number"],
                assigned_to_name=options["name"],
                assigned_by=options["assigned_by"],
                notes=options["notes"],
            )
        except BookingCoreError as e:
            raise CommandError(e.message)

        self.stdout.write(self.style.SUCCESS(
            f"Assigned {assignment.range_display} ({assignment.total_numbers} numbers) to {entity}."
        ))
