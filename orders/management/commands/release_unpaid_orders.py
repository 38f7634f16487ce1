import logging
from datetime import timedelta

from django.conf import settings
from django.core.management.base import BaseCommand
from django.utils import timezone

from accounts.utils import SYSTEM_ACTOR
from marketplace.errors import MarketplaceError
from orders.models import Order
from orders.notify_utils import build_event_dispatcher
from orders.status_utils import OrderStatusMachine

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = "Cancel PENDING orders that were never paid and give their reserved stock back"

    def add_arguments(self, parser):
        parser.add_argument(
            "--hours",
            type=int,
            default=None,
            help="Release orders older than this many hours (default: UNPAID_ORDER_HOLD_HOURS)",
        )
        parser.add_argument("--dry-run", action="store_true", help="List the orders without cancelling them")

    def handle(self, *args, **options):
        hours = options["hours"] if options["hours"] is not None else settings.UNPAID_ORDER_HOLD_HOURS
        cutoff = timezone.now() - timedelta(hours=hours)

        stale = (
            Order.objects.filter(order_status=Order.Status.PENDING, created_at__lt=cutoff)
            .exclude(payment_status=Order.PaymentStatus.COMPLETED)
            .order_by("created_at")
        )

        if options["dry_run"]:
            for order in stale:
                self.stdout.write(f"{order.order_number} ({order.created_at:%Y-%m-%d %H:%M}) would be released")
            return

        machine = OrderStatusMachine(events=build_event_dispatcher())
        released = 0
        for order in stale:
            try:
                if machine.transition(SYSTEM_ACTOR, order.pk, Order.Status.CANCELLED).changed:
                    released += 1
            except MarketplaceError as e:
                logger.error(f"Could not release order {order.order_number}: {e.message}")
                self.stderr.write(f"{order.order_number}: {e.message}")

        logger.info(f"Released {released} unpaid order(s) older than {hours}h")
        self.stdout.write(self.style.SUCCESS(f"Released {released} unpaid order(s)"))
