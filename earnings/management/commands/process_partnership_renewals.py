from django.core.management.base import BaseCommand

from earnings.services import PartnershipService


class Command(BaseCommand):
    help = 'Roll due auto-renewing ad partnerships into their next billing period'

    def handle(self, *args, **options):
        renewed = PartnershipService.process_renewals()
        self.stdout.write(self.style.SUCCESS(f'{renewed} partnerships renewed'))
