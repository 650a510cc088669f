from django.core.management.base import BaseCommand

from feerules.services import FeeSchedulingService


class Command(BaseCommand):
    help = "Mark pending fee applications past their due date as overdue"

    def handle(self, *args, **options):
        result = FeeSchedulingService().mark_overdue_fees()
        for error in result["errors"]:
            self.stderr.write(error)
        self.stdout.write(
            self.style.SUCCESS(f"Marked {result['marked_count']} fee applications overdue.")
        )
