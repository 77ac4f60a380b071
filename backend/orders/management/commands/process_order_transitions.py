"""
Django management command to advance orders whose purchase orders have all
progressed. Meant to run periodically (cron).
"""
from django.core.management.base import BaseCommand

from backend.orders.tracking import process_automatic_status_transitions, get_at_risk_orders


class Command(BaseCommand):
    help = 'Apply automatic customer order status transitions driven by purchase order progress'

    def add_arguments(self, parser):
        parser.add_argument(
            '--show-at-risk',
            action='store_true',
            help='List at-risk orders after processing',
        )

    def handle(self, *args, **options):
        transitioned = process_automatic_status_transitions()

        for entry in transitioned:
            self.stdout.write(
                f"  {entry['order_number']}: {entry['from_status']} -> {entry['to_status']}"
            )
        self.stdout.write(self.style.SUCCESS(f"Processed transitions: {len(transitioned)} orders advanced"))

        if options.get('show_at_risk'):
            at_risk = get_at_risk_orders()
            self.stdout.write(f"\nAt-risk orders: {at_risk.count()}")
            for order in at_risk:
                self.stdout.write(
                    self.style.WARNING(
                        f"  {order.order_number} ({order.status}) due {order.requested_delivery_date:%Y-%m-%d}"
                    )
                )
