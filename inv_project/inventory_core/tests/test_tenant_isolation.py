from decimal import Decimal

import pytest
from django.test import TestCase

from ..exceptions import DuplicateEntry, NotFound
from ..models import Customer, SalesOrder, SalesOrderLine, Stock, Vendor
from ..services.invoicing import convert_order_to_invoice
from ..services.sales import approve_sales_order, create_sales_order
from ..services.stock import adjust_stock
from .factories import (item, make_company, make_customer, make_product,
                        make_user, make_warehouse, put_stock)


class TenantIsolationManagerTests(TestCase):
    def setUp(self):
        self.user = make_user()
        self.company_a = make_company("Company A")
        self.company_b = make_company("Company B", slug="com_b")

        # same SKU and warehouse code in both companies
        self.w_a = make_warehouse(self.company_a, "MAIN", is_default=True)
        self.w_b = make_warehouse(self.company_b, "MAIN", is_default=True)
        self.p_a = make_product(self.company_a, "SKU-1")
        self.p_b = make_product(self.company_b, "SKU-1")
        self.c_a = make_customer(self.company_a, "Shared Name")
        self.c_b = make_customer(self.company_b, "Shared Name")

        put_stock(self.company_a, self.user, self.p_a, self.w_a, 10)
        self.order_a = create_sales_order(
            self.company_a,
            self.user,
            {"customer_id": self.c_a.pk, "items": [item(self.p_a, 2)]},
        )

    def test_for_company_returns_only_that_company_objects(self):
        self.assertListEqual(
            list(Customer.objects.for_company(self.company_a).values_list("pk", flat=True)),
            [self.c_a.pk],
        )
        self.assertFalse(SalesOrder.objects.for_company(self.company_b).exists())
        # lines are scoped through their document
        self.assertEqual(SalesOrderLine.objects.for_company(self.company_a).count(), 1)
        self.assertEqual(SalesOrderLine.objects.for_company(self.company_b).count(), 0)
        self.assertEqual(Stock.objects.for_company(self.company_b).count(), 0)

    def test_get_other_company_object_raises_not_found(self):
        with self.assertRaises(NotFound):
            SalesOrder.objects.get_for_company(self.company_b, self.order_a.pk)
        # NotFound is still a DoesNotExist-style lookup failure
        with self.assertRaises(SalesOrder.DoesNotExist):
            SalesOrder.objects.for_company(self.company_b).get(pk=self.order_a.pk)

    def test_services_do_not_touch_other_tenants_documents(self):
        with self.assertRaises(NotFound):
            approve_sales_order(self.company_b, self.user, self.order_a.pk)
        with self.assertRaises(NotFound):
            convert_order_to_invoice(self.company_b, self.user, self.order_a.pk, allow_partial=True)

        self.order_a.refresh_from_db()
        self.assertEqual(self.order_a.status, "DRAFT")

    def test_other_tenants_party_and_product_are_not_found(self):
        put_stock(self.company_b, self.user, self.p_b, self.w_b, 10)
        with self.assertRaises(NotFound):
            create_sales_order(
                self.company_b,
                self.user,
                {"customer_id": self.c_a.pk, "items": [item(self.p_b, 1)]},
            )
        with self.assertRaises(NotFound):
            create_sales_order(
                self.company_b,
                self.user,
                {"customer_id": self.c_b.pk, "items": [item(self.p_a, 1)]},
            )
        self.assertFalse(SalesOrder.objects.for_company(self.company_b).exists())

    def test_numbering_is_per_company(self):
        put_stock(self.company_b, self.user, self.p_b, self.w_b, 10)
        order_b = create_sales_order(
            self.company_b,
            self.user,
            {"customer_id": self.c_b.pk, "items": [item(self.p_b, 1)]},
        )
        self.assertEqual(self.order_a.number, "SO-0001")
        self.assertEqual(order_b.number, "SO-0001")

    def test_party_email_is_unique_per_company(self):
        make_customer(self.company_a, "First", email="buyer@example.com")
        with self.assertRaises(DuplicateEntry):
            make_customer(self.company_a, "Second", email="BUYER@example.com")
        # the same address is fine in another tenant
        make_customer(self.company_b, "Second", email="buyer@example.com")

        Vendor.objects.create(company=self.company_a, name="Supplier", email="sales@example.com")
        with self.assertRaises(DuplicateEntry):
            Vendor.objects.create(company=self.company_a, name="Other", email="sales@example.com")


@pytest.mark.django_db
def test_stock_adjustment_stays_within_tenant(django_user_model):
    user = django_user_model.objects.create_user(username="alice", password="pw")
    c1 = make_company("Company A", slug="com_a")
    c2 = make_company("Company B", slug="com_b")
    w1 = make_warehouse(c1, "MAIN", is_default=True)
    w2 = make_warehouse(c2, "MAIN", is_default=True)
    p1 = make_product(c1, "SKU-1")

    adjust_stock(
        c1,
        user,
        {"product_id": p1.pk, "quantity": "5", "reason": "Opening stock count"},
    )

    assert Stock.objects.get(product=p1).warehouse == w1
    assert Stock.objects.get(product=p1).quantity == Decimal("5")

    # c2 can neither see c1's product nor post into its own warehouse with it
    with pytest.raises(NotFound):
        adjust_stock(
            c2,
            user,
            {
                "product_id": p1.pk,
                "warehouse_id": w2.pk,
                "quantity": "5",
                "reason": "Opening stock count",
            },
        )
    assert not Stock.objects.for_company(c2).exists()
