"""Recovery sweep for paid orders whose processing was never started.

Orders in ``PAYMENT_CONFIRMED`` are the durable record of pending work: if a
dispatch was lost (worker restart, scheduling error) this command runs
``process_order`` for them in the current process. Running it while the
original dispatch is still in flight is safe; only one caller wins the
``PAYMENT_CONFIRMED -> PROCESSING`` transition.

Typical use is a cron entry every few minutes::

    python manage.py process_pending_orders --older-than 120
"""

import logging
from datetime import timedelta

from django.core.management.base import BaseCommand
from django.utils import timezone

from apps.orders.domain import OrderStatus
from apps.orders.providers import get_order_controller

logger = logging.getLogger("orders.sweep")


class Command(BaseCommand):
    help = "Run process_order for paid orders that are still waiting (at-least-once recovery)."

    def add_arguments(self, parser):
        parser.add_argument("--order-id", type=int, help="Process a single order and exit.")
        parser.add_argument(
            "--older-than",
            type=int,
            default=60,
            help="Only orders confirmed at least this many seconds ago (default 60).",
        )
        parser.add_argument("--limit", type=int, default=100, help="Maximum orders per run (default 100).")
        parser.add_argument(
            "--fail-stale-after",
            type=int,
            default=None,
            help="Also mark orders stuck in PROCESSING for this many seconds as FAILED.",
        )

    def handle(self, *args, **opts):
        controller = get_order_controller()

        if opts["order_id"]:
            order = controller.process_order(opts["order_id"])
            if order is None:
                self.stderr.write(f"order {opts['order_id']} not found")
                return
            self.stdout.write(f"order {order.id}: {order.status.value}")
            return

        now = timezone.now()
        repo = controller.repository
        pending = repo.ids_in_status(
            OrderStatus.PAYMENT_CONFIRMED,
            updated_before=now - timedelta(seconds=opts["older_than"]),
            limit=opts["limit"],
        )
        processed = 0
        for order_id in pending:
            try:
                controller.process_order(order_id)
                processed += 1
            except Exception:
                logger.exception("sweep failed to process order", extra={"order_id": order_id})

        failed = 0
        if opts["fail_stale_after"] is not None:
            stale = repo.ids_in_status(
                OrderStatus.PROCESSING,
                updated_before=now - timedelta(seconds=opts["fail_stale_after"]),
                limit=opts["limit"],
            )
            for order_id in stale:
                order = controller.fail_stale_order(order_id)
                if order is not None and order.status == OrderStatus.FAILED:
                    failed += 1

        logger.info("sweep finished", extra={"processed": processed, "failed_stale": failed})
        self.stdout.write(f"processed {processed} pending order(s), failed {failed} stale order(s)")
