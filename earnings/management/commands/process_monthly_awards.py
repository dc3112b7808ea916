from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone

from earnings.periods import previous_month
from earnings.services import AwardsService


class Command(BaseCommand):
    help = 'Evaluate monthly trainer awards and lifetime milestones (defaults to last month)'

    def add_arguments(self, parser):
        parser.add_argument('--year', type=int)
        parser.add_argument('--month', type=int)

    def handle(self, *args, **options):
        year, month = options['year'], options['month']
        if (year is None) != (month is None):
            raise CommandError('Pass both --year and --month, or neither.')
        if year is None:
            today = timezone.localdate()
            year, month = previous_month(today.year, today.month)
        if not 1 <= month <= 12:
            raise CommandError(f'Invalid month {month}.')

        created = AwardsService.process_monthly_awards(year, month)
        summary = AwardsService.get_monthly_summary(year, month)
        self.stdout.write(self.style.SUCCESS(
            f'{year}-{month:02d}: {created} new awards '
            f'({summary["total_awards"]} total, {summary["total_points"]} points)'
        ))
