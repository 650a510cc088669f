from django.core.management.base import BaseCommand
from django.utils import timezone

from feerules.models import FeeRule
from feerules.services import FeeSchedulingService


class Command(BaseCommand):
    help = "Activate scheduled fee rules whose effective date has been reached"

    def add_arguments(self, parser):
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Show which rules would be activated without changing them",
        )

    def handle(self, *args, **options):
        today = timezone.localdate()
        rules = FeeRule.objects.scheduled().not_deleted().effective_date_reached(today)

        if not rules.exists():
            self.stdout.write("No scheduled fee rules are due for activation.")
            return

        self.stdout.write(f"Found {rules.count()} scheduled fee rules due for activation:")
        for rule in rules:
            self.stdout.write(f"  {rule.reference} {rule.name} (effective {rule.effective_date})")

        if options["dry_run"]:
            self.stdout.write(self.style.WARNING("Dry run, no rules were activated."))
            return

        result = FeeSchedulingService().activate_scheduled_rules()
        for error in result["errors"]:
            self.stderr.write(error)

        self.stdout.write(
            self.style.SUCCESS(f"Activated {result['activated_count']} fee rules.")
        )
