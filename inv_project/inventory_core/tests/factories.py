from decimal import Decimal

from django.contrib.auth import get_user_model
from django.test import TestCase

from ..models import Company, Customer, Product, Vendor, Warehouse
from ..services.stock import adjust_stock


def make_company(name="Test Co", slug=None):
    return Company.objects.create(name=name, slug=slug or name.lower().replace(" ", "-"))


def make_user(username="tester"):
    return get_user_model().objects.create_user(username=username, password="pw")


def make_warehouse(company, code="W1", is_default=False, **kwargs):
    return Warehouse.objects.create(
        company=company, code=code, name=f"Warehouse {code}", is_default=is_default, **kwargs
    )


def make_product(company, sku="P1", **kwargs):
    kwargs.setdefault("name", f"Product {sku}")
    kwargs.setdefault("sale_price", Decimal("100.00"))
    kwargs.setdefault("purchase_price", Decimal("60.00"))
    return Product.objects.create(company=company, sku=sku, **kwargs)


def make_customer(company, name="Customer C", **kwargs):
    return Customer.objects.create(company=company, name=name, **kwargs)


def make_vendor(company, name="Vendor V", **kwargs):
    return Vendor.objects.create(company=company, name=name, **kwargs)


def item(product, quantity, unit_price="100.00", **extra):
    """One payload line item, the shape the services receive."""
    line = {
        "product_id": product.pk,
        "quantity": str(quantity),
        "unit_price": str(unit_price),
    }
    line.update(extra)
    return line


def put_stock(company, user, product, warehouse, quantity):
    """Raise (or lower) stock through the ledger, like a stock count would."""
    return adjust_stock(
        company,
        user,
        {
            "product_id": product.pk,
            "warehouse_id": warehouse.pk,
            "quantity": str(quantity),
            "reason": "Opening stock count",
        },
    )


class TenantTestCase(TestCase):
    """One company with two warehouses, two products and a customer/vendor."""

    def setUp(self):
        self.company = make_company()
        self.user = make_user()
        self.w1 = make_warehouse(self.company, "W1", is_default=True)
        self.w2 = make_warehouse(self.company, "W2")
        self.p1 = make_product(self.company, "P1")
        self.p2 = make_product(self.company, "P2")
        self.customer = make_customer(self.company)
        self.vendor = make_vendor(self.company)
