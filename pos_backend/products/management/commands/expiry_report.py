# products/management/commands/expiry_report.py

from __future__ import annotations

from datetime import datetime

from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone

from branches.models import Branch
from products.services.catalog import list_products
from products.services.expiry import ALL_BUCKET, STATS_BUCKETS, ExpiryTier, classify_expiry


def _parse_date(s: str | None):
    if not s:
        return None
    try:
        return datetime.strptime(s, "%Y-%m-%d").date()
    except ValueError:
        return None


class Command(BaseCommand):
    help = "Print the expiry risk report (per-tier counts and value at risk)."

    def add_arguments(self, parser):
        parser.add_argument("--today", help="Report date YYYY-MM-DD (default: today)")
        parser.add_argument("--branch", type=str, default="", help="Branch code (default: all branches)")
        parser.add_argument(
            "--tier",
            type=str,
            default=ALL_BUCKET,
            choices=[ALL_BUCKET, *ExpiryTier.values],
            help="Only list items in this tier.",
        )

    def handle(self, *args, **options):
        today = _parse_date(options.get("today"))
        if options.get("today") and not today:
            raise CommandError("Invalid --today date. Use YYYY-MM-DD")
        today = today or timezone.localdate()

        branch_id = None
        code = (options.get("branch") or "").strip()
        if code:
            branch = Branch.objects.filter(code=code).first()
            if branch is None:
                raise CommandError(f"Unknown branch code '{code}'.")
            branch_id = branch.pk

        report = classify_expiry(list_products(branch_id), today)

        self.stdout.write(f"Expiry report for {today.isoformat()}")
        for key in STATS_BUCKETS:
            stats = report.stats[key]
            self.stdout.write(f"  {key:<9} count={stats.count:<5} value={stats.value}")

        for item in report.for_tier(options.get("tier")):
            line = (
                f"{str(item.status):<9} {item.days_remaining:>5}d  {item.product_name} "
                f"[{item.batch_number}] qty={item.quantity} value={item.value_at_risk}"
            )
            if item.status == ExpiryTier.CRITICAL:
                self.stdout.write(self.style.ERROR(line))
            elif item.status == ExpiryTier.WARNING:
                self.stdout.write(self.style.WARNING(line))
            else:
                self.stdout.write(line)
