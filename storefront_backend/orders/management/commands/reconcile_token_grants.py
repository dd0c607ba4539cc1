# orders/management/commands/reconcile_token_grants.py

from __future__ import annotations

from datetime import datetime

from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone

from orders.models import Order
from products.services.catalog import products_for_items
from tokens.models import TokenGrant
from tokens.services.grants import compute_token_grant
from tokens.services.token_ledger import TokenLedger


def _parse_date(s: str | None):
    if not s:
        return None
    try:
        return datetime.strptime(s, "%Y-%m-%d").date()
    except ValueError:
        return None


class Command(BaseCommand):
    help = "Credit token grants that are missing for recorded orders (safe to re-run)."

    def add_arguments(self, parser):
        parser.add_argument("--order", dest="order_number", help="Only this order number")
        parser.add_argument("--since", dest="since", help="Only orders created on/after YYYY-MM-DD")
        parser.add_argument("--dry-run", action="store_true", help="Show actions without writing to DB")

    def handle(self, *args, **options):
        order_number = (options.get("order_number") or "").strip()
        since = _parse_date(options.get("since"))
        dry_run = bool(options.get("dry_run"))

        if options.get("since") and not since:
            raise CommandError("Invalid --since date. Use YYYY-MM-DD")

        qs = Order.objects.order_by("created_at")
        if order_number:
            qs = qs.filter(order_number=order_number)
            if not qs.exists():
                raise CommandError(f"Order not found: {order_number}")
        if since:
            start = timezone.make_aware(datetime.combine(since, datetime.min.time()))
            qs = qs.filter(created_at__gte=start)

        granted_refs = set(TokenGrant.objects.values_list("reference", flat=True))
        ledger = TokenLedger()

        self.stdout.write(self.style.MIGRATE_HEADING("Reconcile token grants"))
        if dry_run:
            self.stdout.write("DRY RUN: no database changes will be saved.\n")

        credited = 0
        skipped = 0
        failed = 0

        for order in qs.iterator():
            if order.order_number in granted_refs:
                skipped += 1
                continue

            tokens = compute_token_grant(order.items or [], products_for_items(order.items or []))
            if tokens <= 0:
                skipped += 1
                continue

            if dry_run:
                self.stdout.write(f"Would credit {tokens} tokens for {order.order_number}")
                credited += 1
                continue

            outcome = ledger.credit(
                order.user_id,
                tokens,
                reference=order.order_number,
                source=TokenGrant.SOURCE_RECONCILIATION,
            )
            if outcome.credited:
                credited += 1
                self.stdout.write(self.style.SUCCESS(f"Credited {tokens} tokens for {order.order_number}"))
            elif outcome.already_applied:
                skipped += 1
            else:
                failed += 1
                self.stderr.write(self.style.ERROR(f"Could not credit tokens for {order.order_number}"))

        self.stdout.write(f"Credited: {credited}  Skipped: {skipped}  Failed: {failed}")
