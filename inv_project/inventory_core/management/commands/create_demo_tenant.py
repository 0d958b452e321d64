from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils.text import slugify

from inventory_core.models import Company, Customer, Product, Vendor, Warehouse
from inventory_core.services.delivery import create_delivery_challan
from inventory_core.services.receiving import create_goods_receipt
from inventory_core.services.sales import approve_sales_order, create_sales_order

User = get_user_model()


class Command(BaseCommand):
    help = (
        "Create a demo tenant (company), user, warehouses, parties and a "
        "receipt -> order -> delivery chain for trying the engine out."
    )

    # Define command-line arguments
    def add_arguments(self, parser):
        parser.add_argument(
            "--company-name",
            default="Demo Company",
            help="Name of the demo company to create.",
        )
        parser.add_argument(
            "--username", default="demo", help="Username for the demo user."
        )
        parser.add_argument(
            "--password", default="demo123", help="Password for the demo user."
        )

    @transaction.atomic
    def handle(self, *args, **options):
        company_name = options["company_name"]

        # Convert company name into a slug, append -1, -2 ... while taken
        base = slugify(company_name) or "company"
        slug, i = base, 1
        while Company.objects.filter(slug=slug).exclude(name=company_name).exists():
            slug = f"{base}-{i}"
            i += 1

        company, _ = Company.objects.get_or_create(
            name=company_name, defaults={"slug": slug}
        )
        self.stdout.write(self.style.SUCCESS(f"Created company: {company}"))

        user, created = User.objects.get_or_create(
            username=options["username"],
            defaults={"email": f"{options['username']}@example.com"},
        )
        if created:
            user.set_password(options["password"])
            user.save()
        self.stdout.write(self.style.SUCCESS(f"Created user: {user.username}"))

        main, _ = Warehouse.objects.get_or_create(
            company=company, code="MAIN", defaults={"name": "Main warehouse", "is_default": True}
        )
        Warehouse.objects.get_or_create(
            company=company, code="OVERFLOW", defaults={"name": "Overflow warehouse"}
        )

        widget, _ = Product.objects.get_or_create(
            company=company,
            sku="WIDGET",
            defaults={
                "name": "Widget",
                "sale_price": Decimal("25.00"),
                "purchase_price": Decimal("15.00"),
            },
        )
        customer, _ = Customer.objects.get_or_create(
            company=company,
            name=f"{company_name} Customer",
            defaults={"credit_limit": Decimal("10000.00")},
        )
        vendor, _ = Vendor.objects.get_or_create(
            company=company, name=f"{company_name} Supplier"
        )
        self.stdout.write(self.style.SUCCESS("Created warehouses, product and parties"))

        receipt = create_goods_receipt(
            company,
            user,
            {
                "vendor_id": vendor.pk,
                "warehouse_id": main.pk,
                "items": [
                    {"product_id": widget.pk, "quantity": "100", "unit_price": "15.00"}
                ],
            },
        )
        self.stdout.write(self.style.SUCCESS(f"Received stock: {receipt.number}"))

        order = create_sales_order(
            company,
            user,
            {
                "customer_id": customer.pk,
                "items": [
                    {
                        "product_id": widget.pk,
                        "quantity": "10",
                        "unit_price": "25.00",
                        "tax_rate": "18",
                    }
                ],
            },
        )
        approve_sales_order(company, user, order.pk)
        challan = create_delivery_challan(
            company,
            user,
            {
                "customer_id": customer.pk,
                "sales_order_id": order.pk,
                "items": [
                    {"product_id": widget.pk, "quantity": "10", "unit_price": "25.00", "tax_rate": "18"}
                ],
            },
        )
        self.stdout.write(
            self.style.SUCCESS(f"Created order {order.number} and delivery {challan.number}")
        )
        self.stdout.write(self.style.SUCCESS("Demo tenant setup complete!"))
