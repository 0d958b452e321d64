from django.core.management.base import BaseCommand, CommandError

from inventory_core.models import Company
from inventory_core.services.ledger import rebuild_stock


class Command(BaseCommand):
    help = (
        "Recompute cached stock balances from the stock movement log and "
        "report (or repair) any drift."
    )

    def add_arguments(self, parser):
        parser.add_argument(
            "--company",
            help="Slug of the company to check (default: all companies).",
        )
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Only report drift, do not rewrite stock balances.",
        )

    def handle(self, *args, **options):
        companies = Company.objects.order_by("pk")
        if options["company"]:
            companies = companies.filter(slug=options["company"])
            if not companies.exists():
                raise CommandError(f"Company {options['company']!r} not found")

        fix = not options["dry_run"]
        total = 0
        for company in companies:
            drifted = rebuild_stock(company, fix=fix)
            total += len(drifted)
            for stock, cached, expected in drifted:
                self.stdout.write(
                    self.style.WARNING(
                        f"{company.slug}: {stock.product} @ {stock.warehouse} "
                        f"cached={cached} ledger={expected}"
                    )
                )

        if total == 0:
            self.stdout.write(self.style.SUCCESS("Stock balances match the ledger."))
        elif fix:
            self.stdout.write(self.style.SUCCESS(f"Repaired {total} stock balance(s)."))
        else:
            self.stdout.write(self.style.NOTICE(f"{total} stock balance(s) drifted."))
