from django.core.management.base import BaseCommand, CommandError

from feerules.services import FeeSchedulingService


class Command(BaseCommand):
    help = "Apply every active fee rule to the users it targets"

    def handle(self, *args, **options):
        self.stdout.write("Applying active fee rules...")
        result = FeeSchedulingService().apply_active_fee_rules()

        for detail in result["details"]:
            self.stdout.write(
                f"  {detail['rule_reference']} {detail['rule_name']}: "
                f"applied={detail['applied_count']} skipped={detail['skipped_count']}"
            )
        for error in result["errors"]:
            self.stderr.write(error)

        if not result["success"]:
            raise CommandError("Fee rule application was rolled back.")

        self.stdout.write(
            self.style.SUCCESS(
                f"Created {result['applied_count']} fee applications."
            )
        )
