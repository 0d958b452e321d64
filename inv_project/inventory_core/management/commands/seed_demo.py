from django.core.management import call_command
from django.core.management.base import BaseCommand

from inventory_core.models import Company, SalesOrder


class Command(BaseCommand):
    help = (
        "Seed a demo tenant once (wraps create_demo_tenant). A company that "
        "already holds sales orders is left alone unless --force is given."
    )

    def add_arguments(self, parser):
        parser.add_argument(
            "--company",
            default="Demo Ltd",
            help="Name of the demo company (default: Demo Ltd)",
        )
        parser.add_argument("--username", default="demo", help="Demo user to create.")
        parser.add_argument("--password", default="demo123", help="Demo user's password.")
        parser.add_argument(
            "--force",
            action="store_true",
            help="Add another demo chain even if the company is already seeded.",
        )

    def handle(self, *args, **options):
        name = options["company"]
        company = Company.objects.filter(name=name).first()
        if (
            company is not None
            and SalesOrder.objects.for_company(company).exists()
            and not options["force"]
        ):
            self.stdout.write(self.style.WARNING(f"{name} is already seeded, skipping."))
            return

        self.stdout.write(self.style.NOTICE(f"Seeding demo data for {name}..."))
        call_command(
            "create_demo_tenant",
            company_name=name,
            username=options["username"],
            password=options["password"],
            stdout=self.stdout,
        )
        self.stdout.write(self.style.SUCCESS("Demo data seeded successfully!"))
