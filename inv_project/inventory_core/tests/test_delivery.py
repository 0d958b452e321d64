from decimal import Decimal

from ..exceptions import InsufficientStock, InvalidStatusTransition, NotFound, ValidationError
from ..lifecycle import DocumentStatus
from ..models import DeliveryChallan, SalesOrderLine, StockMovement
from ..services import ledger
from ..services.delivery import create_delivery_challan, delete_delivery_challan
from ..services.invoicing import create_invoice, delete_invoice
from ..services.sales import approve_sales_order, create_sales_order
from .factories import (TenantTestCase, item, make_company, make_customer,
                        make_product, make_warehouse, put_stock)

S = DocumentStatus


class DeliveryTestCase(TenantTestCase):
    def setUp(self):
        super().setUp()
        put_stock(self.company, self.user, self.p1, self.w1, 10)
        put_stock(self.company, self.user, self.p2, self.w2, 10)
        self.order = create_sales_order(
            self.company,
            self.user,
            {
                "customer_id": self.customer.pk,
                "items": [item(self.p1, 4), item(self.p2, 6, "25.00")],
            },
        )
        approve_sales_order(self.company, self.user, self.order.pk)

    def deliver(self, *items, **data):
        data.setdefault("customer_id", self.customer.pk)
        data.setdefault("sales_order_id", self.order.pk)
        data["items"] = list(items)
        return create_delivery_challan(self.company, self.user, data)

    def delivered(self):
        return {
            line.product_id: line.delivered_qty
            for line in SalesOrderLine.objects.filter(document=self.order)
        }


class DeliveryChallanTests(DeliveryTestCase):
    def test_each_line_leaves_its_own_warehouse(self):
        challan = self.deliver(
            item(self.p1, 4),
            item(self.p2, 6, "25.00", warehouse_id=self.w2.pk),
            vehicle_no="KA-01-1234",
            driver_name="Ravi",
        )

        self.assertEqual(challan.number, "DC-0001")
        self.assertEqual(challan.status, S.APPROVED)
        self.assertEqual(challan.vehicle_no, "KA-01-1234")
        self.assertEqual(challan.total, Decimal("550.00"))
        self.assertEqual(
            {line.product_id: line.warehouse_id for line in challan.lines.all()},
            {self.p1.pk: self.w1.pk, self.p2.pk: self.w2.pk},
        )
        self.assertEqual(ledger.stock_on_hand(self.p1, self.w1), Decimal("6"))
        self.assertEqual(ledger.stock_on_hand(self.p2, self.w2), Decimal("4"))
        self.assertEqual(self.delivered(), {self.p1.pk: Decimal("4"), self.p2.pk: Decimal("6")})

        self.order.refresh_from_db()
        self.assertEqual(self.order.status, S.RECEIVED)

    def test_warehouse_without_stock_fails_whole_challan(self):
        # P2 sits in W2 only; the default warehouse is W1
        with self.assertRaises(InsufficientStock):
            self.deliver(item(self.p1, 4), item(self.p2, 1, "25.00"))

        self.assertFalse(DeliveryChallan.objects.exists())
        self.assertEqual(ledger.stock_on_hand(self.p1, self.w1), Decimal("10"))
        self.assertEqual(self.delivered(), {self.p1.pk: Decimal("0"), self.p2.pk: Decimal("0")})

    def test_product_not_on_order(self):
        p3 = make_product(self.company, "P3")
        put_stock(self.company, self.user, p3, self.w1, 5)
        with self.assertRaises(ValidationError):
            self.deliver(item(p3, 1))
        self.assertEqual(ledger.stock_on_hand(p3, self.w1), Decimal("5"))

    def test_order_of_another_customer(self):
        stranger = make_customer(self.company, "Stranger")
        with self.assertRaises(ValidationError):
            self.deliver(item(self.p1, 1), customer_id=stranger.pk)

    def test_delivery_without_order(self):
        challan = self.deliver(item(self.p1, 2), sales_order_id=None)
        self.assertIsNone(challan.sales_order_id)
        self.assertEqual(ledger.stock_on_hand(self.p1, self.w1), Decimal("8"))

    def test_foreign_warehouse_is_not_found(self):
        foreign = make_warehouse(make_company("Other Co"), "X1")
        with self.assertRaises(NotFound):
            self.deliver(item(self.p1, 1), warehouse_id=foreign.pk)


class DeliveryReversalTests(DeliveryTestCase):
    def test_delete_restores_stock_and_order(self):
        before_stock = ledger.stock_on_hand(self.p1, self.w1)
        challan = self.deliver(item(self.p1, 3))
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, S.RECEIVED)

        reversals = delete_delivery_challan(self.company, self.user, challan.pk)

        self.assertEqual(len(reversals), 1)
        self.assertEqual(reversals[0].quantity, Decimal("3"))
        self.assertEqual(reversals[0].reference_type, "DELIVERY_CHALLAN-REVERSAL")
        self.assertEqual(ledger.stock_on_hand(self.p1, self.w1), before_stock)
        self.assertEqual(
            ledger.stock_on_hand(self.p1, self.w1), ledger.ledger_balance(self.p1, self.w1)
        )
        self.assertEqual(self.delivered()[self.p1.pk], Decimal("0"))

        # the original movement is kept next to its reversal
        self.assertEqual(
            StockMovement.objects.filter(reference_id=challan.pk).count(), 2
        )
        self.assertFalse(DeliveryChallan.objects.filter(pk=challan.pk).exists())
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, S.APPROVED)

    def test_partial_reversal_keeps_other_deliveries(self):
        first = self.deliver(item(self.p1, 1))
        self.deliver(item(self.p1, 3), item(self.p2, 6, "25.00", warehouse_id=self.w2.pk))
        self.order.refresh_from_db()
        self.assertTrue(self.order.is_fully_delivered())

        delete_delivery_challan(self.company, self.user, first.pk)

        self.assertEqual(self.delivered()[self.p1.pk], Decimal("3"))
        self.assertEqual(ledger.stock_on_hand(self.p1, self.w1), Decimal("7"))
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, S.RECEIVED)

    def test_invoiced_challan_cannot_be_deleted(self):
        challan = self.deliver(item(self.p1, 2))
        invoice = create_invoice(
            self.company,
            self.user,
            {
                "customer_id": self.customer.pk,
                "delivery_challan_id": challan.pk,
                "items": [item(self.p1, 2)],
            },
        )

        with self.assertRaises(InvalidStatusTransition):
            delete_delivery_challan(self.company, self.user, challan.pk)
        self.assertEqual(ledger.stock_on_hand(self.p1, self.w1), Decimal("8"))

        # once the invoice is cancelled the delivery can be undone, the
        # challan row stays because the cancelled invoice still points at it
        delete_invoice(self.company, self.user, invoice.pk)
        delete_delivery_challan(self.company, self.user, challan.pk)
        challan.refresh_from_db()
        self.assertEqual(challan.status, S.CANCELLED)
        self.assertEqual(ledger.stock_on_hand(self.p1, self.w1), Decimal("10"))
