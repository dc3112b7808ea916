from django.core.management.base import BaseCommand

from earnings.services import DeliveryService


class Command(BaseCommand):
    help = 'Text trainers about product deliveries scheduled for tomorrow'

    def handle(self, *args, **options):
        results = DeliveryService.send_delivery_reminders()
        self.stdout.write(self.style.SUCCESS(
            f'Reminders: {results["checked"]} checked, '
            f'{results["sent"]} sent, {results["failed"]} failed'
        ))
