from django.core.management.base import BaseCommand

from feerules.services import FeeSchedulingService


class Command(BaseCommand):
    help = "Periodic fee sweep: activate scheduled rules, apply active rules, mark overdue fees"

    def handle(self, *args, **options):
        service = FeeSchedulingService()

        activated = service.activate_scheduled_rules()
        self.stdout.write(f"Activated {activated['activated_count']} scheduled fee rules.")

        applied = service.apply_active_fee_rules()
        if applied["success"]:
            self.stdout.write(f"Created {applied['applied_count']} fee applications.")
        else:
            self.stderr.write("Fee rule application was rolled back.")

        overdue = service.mark_overdue_fees()
        self.stdout.write(f"Marked {overdue['marked_count']} fee applications overdue.")

        errors = activated["errors"] + applied["errors"] + overdue["errors"]
        for error in errors:
            self.stderr.write(error)

        self.stdout.write(self.style.SUCCESS("Fee schedule run complete."))
