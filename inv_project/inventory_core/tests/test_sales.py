import datetime
from decimal import Decimal

from ..exceptions import (CreditLimitExceeded, InsufficientStock,
                          InvalidStatusTransition, ValidationError)
from ..lifecycle import DocumentStatus
from ..models import (AuditLog, Customer, SalesOrder, SalesQuotation, Stock,
                      StockMovement)
from ..services import ledger
from ..services.delivery import create_delivery_challan, delete_delivery_challan
from ..services.invoicing import convert_order_to_invoice
from ..services.numbering import peek_document_number
from ..services.sales import (approve_sales_order, approve_sales_quotation,
                              convert_quotation_to_order,
                              create_sales_order, create_sales_quotation,
                              delete_sales_quotation, send_sales_quotation,
                              update_sales_order, update_sales_quotation)
from .factories import TenantTestCase, item, make_product, put_stock

S = DocumentStatus


class SalesTestCase(TenantTestCase):
    def order(self, *items, **data):
        data.update(customer_id=self.customer.pk, items=list(items))
        return create_sales_order(self.company, self.user, data)

    def deliver(self, order, *items, **data):
        data.update(customer_id=order.customer_id, sales_order_id=order.pk, items=list(items))
        return create_delivery_challan(self.company, self.user, data)


class EndToEndDeliveryTests(SalesTestCase):
    def test_order_passes_company_wide_and_delivery_needs_warehouse_stock(self):
        # P1: nothing in W1, some stock elsewhere
        put_stock(self.company, self.user, self.p1, self.w2, 5)

        order = self.order(item(self.p1, 5))
        self.assertEqual(order.status, S.DRAFT)
        self.assertEqual(ledger.stock_on_hand(self.p1, self.w2), Decimal("5"))

        with self.assertRaises(InsufficientStock):
            self.deliver(order, item(self.p1, 5), warehouse_id=self.w1.pk)
        self.assertFalse(StockMovement.objects.filter(reference_type="DELIVERY_CHALLAN").exists())

        put_stock(self.company, self.user, self.p1, self.w1, 10)
        challan = self.deliver(order, item(self.p1, 5), warehouse_id=self.w1.pk)

        self.assertEqual(ledger.stock_on_hand(self.p1, self.w1), Decimal("5"))
        movement = StockMovement.objects.get(
            reference_type="DELIVERY_CHALLAN", reference_id=challan.pk
        )
        self.assertEqual(movement.quantity, Decimal("-5"))
        self.assertEqual(movement.balance_after, Decimal("5"))
        self.assertEqual(movement.reference_number, challan.number)

        order.refresh_from_db()
        self.assertEqual(order.lines.get().delivered_qty, Decimal("5"))
        self.assertEqual(order.status, S.RECEIVED)


class QuotationConversionTests(SalesTestCase):
    def quotation(self):
        return create_sales_quotation(
            self.company,
            self.user,
            {
                "customer_id": self.customer.pk,
                "valid_till": datetime.date(2030, 1, 31),
                "items": [item(self.p1, 6, "100.00"), item(self.p2, 4, "100.00")],
            },
        )

    def test_convert_copies_lines_and_completes_quotation(self):
        quotation = self.quotation()
        self.assertEqual(quotation.number, "SQ-0001")
        self.assertEqual(quotation.total, Decimal("1000.00"))

        order = convert_quotation_to_order(self.company, self.user, quotation.pk)

        self.assertEqual(SalesOrder.objects.for_company(self.company).count(), 1)
        self.assertEqual(order.status, S.DRAFT)
        self.assertEqual(order.quotation_id, quotation.pk)
        self.assertEqual(order.total, Decimal("1000.00"))
        self.assertEqual(
            [(line.product_id, line.quantity, line.unit_price) for line in order.lines.all()],
            [(line.product_id, line.quantity, line.unit_price) for line in quotation.lines.all()],
        )
        quotation.refresh_from_db()
        self.assertEqual(quotation.status, S.COMPLETED)

    def test_second_conversion_fails(self):
        quotation = self.quotation()
        convert_quotation_to_order(self.company, self.user, quotation.pk)

        with self.assertRaises(InvalidStatusTransition):
            convert_quotation_to_order(self.company, self.user, quotation.pk)
        self.assertEqual(SalesOrder.objects.for_company(self.company).count(), 1)

    def test_conversion_is_a_snapshot(self):
        quotation = self.quotation()
        # price and eligibility changes after quoting do not leak into the order
        self.p1.sale_price = Decimal("999.00")
        self.p1.is_saleable = False
        self.p1.save()

        order = convert_quotation_to_order(self.company, self.user, quotation.pk)
        self.assertEqual(order.total, Decimal("1000.00"))

    def test_send_approve_and_convert(self):
        quotation = self.quotation()
        send_sales_quotation(self.company, self.user, quotation.pk)
        approve_sales_quotation(self.company, self.user, quotation.pk)

        order = convert_quotation_to_order(
            self.company, self.user, quotation.pk, {"delivery_date": datetime.date(2030, 2, 1)}
        )
        self.assertEqual(order.delivery_date, datetime.date(2030, 2, 1))

    def test_update_replaces_items_and_recomputes_totals(self):
        quotation = self.quotation()
        updated = update_sales_quotation(
            self.company,
            self.user,
            quotation.pk,
            {"items": [item(self.p1, 2, "50.00", tax_rate="10")], "reference_no": "RFQ-9"},
        )
        self.assertEqual(updated.lines.count(), 1)
        self.assertEqual(updated.subtotal, Decimal("100.00"))
        self.assertEqual(updated.tax_amount, Decimal("10.00"))
        self.assertEqual(updated.total, Decimal("110.00"))
        self.assertEqual(updated.reference_no, "RFQ-9")

    def test_only_drafts_can_be_deleted(self):
        draft = self.quotation()
        delete_sales_quotation(self.company, self.user, draft.pk)
        draft.refresh_from_db()
        self.assertEqual(draft.status, S.CANCELLED)

        sent = self.quotation()
        send_sales_quotation(self.company, self.user, sent.pk)
        with self.assertRaises(InvalidStatusTransition):
            delete_sales_quotation(self.company, self.user, sent.pk)

    def test_completed_quotation_is_frozen(self):
        quotation = self.quotation()
        convert_quotation_to_order(self.company, self.user, quotation.pk)
        with self.assertRaises(InvalidStatusTransition):
            update_sales_quotation(self.company, self.user, quotation.pk, {"notes": "x"})


class OrderGuardTests(SalesTestCase):
    def test_insufficient_stock_writes_nothing(self):
        put_stock(self.company, self.user, self.p1, self.w1, 10)
        stock_rows = Stock.objects.count()
        movements = StockMovement.objects.count()

        with self.assertRaises(InsufficientStock) as ctx:
            self.order(item(self.p1, 5), item(self.p2, 1))

        self.assertEqual(ctx.exception.product, self.p2)
        self.assertFalse(SalesOrder.objects.exists())
        self.assertEqual(Stock.objects.count(), stock_rows)
        self.assertEqual(StockMovement.objects.count(), movements)
        self.assertFalse(AuditLog.objects.filter(object_type="SalesOrder").exists())
        # the failed create did not consume a number
        self.assertEqual(peek_document_number(self.company, "sales_order"), "SO-0001")

    def test_credit_limit_is_enforced(self):
        put_stock(self.company, self.user, self.p1, self.w1, 10)
        customer = Customer.objects.create(
            company=self.company,
            name="Tight Ltd",
            credit_limit=Decimal("1000.00"),
            current_balance=Decimal("900.00"),
        )

        with self.assertRaises(CreditLimitExceeded):
            create_sales_order(
                self.company,
                self.user,
                {"customer_id": customer.pk, "items": [item(self.p1, 2, "100.00")]},
            )

        customer.refresh_from_db()
        self.assertEqual(customer.current_balance, Decimal("900.00"))
        self.assertFalse(SalesOrder.objects.exists())

    def test_inactive_customer(self):
        self.customer.is_active = False
        self.customer.save()
        with self.assertRaises(ValidationError):
            self.order(item(self.p1, 1))

    def test_untracked_products_need_no_stock(self):
        service = make_product(self.company, "INSTALL", track_inventory=False)
        order = self.order(item(service, 3, "40.00"))
        self.assertEqual(order.total, Decimal("120.00"))


class OrderToInvoiceTests(SalesTestCase):
    def setUp(self):
        super().setUp()
        put_stock(self.company, self.user, self.p1, self.w1, 3)
        put_stock(self.company, self.user, self.p1, self.w2, 10)
        self.customer.credit_days = 15
        self.customer.save()
        self.sales_order = self.order(
            item(self.p1, 5, "100.00", tax_rate="18"), date=datetime.date(2030, 3, 1)
        )
        approve_sales_order(self.company, self.user, self.sales_order.pk)

    def test_full_chain(self):
        first = self.deliver(self.sales_order, item(self.p1, 3), warehouse_id=self.w1.pk)
        self.sales_order.refresh_from_db()
        self.assertEqual(self.sales_order.status, S.RECEIVED)
        self.assertFalse(self.sales_order.is_fully_delivered())

        self.deliver(self.sales_order, item(self.p1, 2), warehouse_id=self.w2.pk)
        self.assertTrue(self.sales_order.is_fully_delivered())

        invoice = convert_order_to_invoice(
            self.company, self.user, self.sales_order.pk, {"delivery_challan_id": first.pk}
        )

        self.assertEqual(invoice.number, "INV-0001")
        self.assertEqual(invoice.status, S.APPROVED)
        self.assertEqual(invoice.total, Decimal("590.00"))
        self.assertEqual(invoice.balance_amount, Decimal("590.00"))
        self.assertEqual(invoice.due_date, datetime.date(2030, 3, 16))
        self.assertEqual(invoice.delivery_challan_id, first.pk)
        self.assertEqual(invoice.lines.get().quantity, Decimal("5"))

        self.customer.refresh_from_db()
        self.assertEqual(self.customer.current_balance, Decimal("590.00"))
        self.sales_order.refresh_from_db()
        self.assertEqual(self.sales_order.status, S.COMPLETED)

        with self.assertRaises(InvalidStatusTransition):
            convert_order_to_invoice(self.company, self.user, self.sales_order.pk)

    def test_requires_full_delivery_unless_partial_allowed(self):
        self.deliver(self.sales_order, item(self.p1, 1))
        with self.assertRaises(ValidationError):
            convert_order_to_invoice(self.company, self.user, self.sales_order.pk)

        invoice = convert_order_to_invoice(
            self.company, self.user, self.sales_order.pk, allow_partial=True
        )
        self.assertEqual(invoice.total, self.sales_order.total)

    def test_draft_order_cannot_be_invoiced(self):
        draft = self.order(item(self.p1, 1))
        with self.assertRaises(InvalidStatusTransition):
            convert_order_to_invoice(self.company, self.user, draft.pk, allow_partial=True)
        self.customer.refresh_from_db()
        self.assertEqual(self.customer.current_balance, Decimal("0.00"))

    def test_items_frozen_once_delivered(self):
        self.deliver(self.sales_order, item(self.p1, 1))
        with self.assertRaises(InvalidStatusTransition):
            update_sales_order(
                self.company, self.user, self.sales_order.pk, {"items": [item(self.p1, 9)]}
            )
        # header fields can still change
        order = update_sales_order(
            self.company, self.user, self.sales_order.pk, {"shipping_address": "Dock 4"}
        )
        self.assertEqual(order.shipping_address, "Dock 4")

    def test_delivery_cannot_exceed_order(self):
        with self.assertRaises(ValidationError):
            self.deliver(self.sales_order, item(self.p1, 6))
        self.deliver(self.sales_order, item(self.p1, 3))
        with self.assertRaises(ValidationError):
            self.deliver(self.sales_order, item(self.p1, 3))
        self.sales_order.refresh_from_db()
        self.assertEqual(self.sales_order.lines.get().delivered_qty, Decimal("3"))

    def test_quotation_number_sequence_is_independent(self):
        self.assertEqual(self.sales_order.number, "SO-0001")
        self.assertFalse(SalesQuotation.objects.exists())
        self.assertEqual(peek_document_number(self.company, "sales_quotation"), "SQ-0001")


class OrderStatusTests(SalesTestCase):
    def setUp(self):
        super().setUp()
        put_stock(self.company, self.user, self.p1, self.w1, 10)
        self.sales_order = self.order(item(self.p1, 5))

    def status(self):
        return SalesOrder.objects.get(pk=self.sales_order.pk).status

    def test_unapproved_order_returns_to_draft_when_delivery_is_undone(self):
        challan = self.deliver(self.sales_order, item(self.p1, 5))
        self.assertEqual(self.status(), S.RECEIVED)

        delete_delivery_challan(self.company, self.user, challan.pk)
        self.assertEqual(self.status(), S.DRAFT)
        with self.assertRaises(InvalidStatusTransition):
            convert_order_to_invoice(
                self.company, self.user, self.sales_order.pk, allow_partial=True
            )

    def test_approving_a_delivered_order_keeps_it_received(self):
        challan = self.deliver(self.sales_order, item(self.p1, 5))
        order = approve_sales_order(self.company, self.user, self.sales_order.pk)
        self.assertEqual(order.status, S.RECEIVED)
        self.assertIsNotNone(order.approved_at)
        with self.assertRaises(InvalidStatusTransition):
            approve_sales_order(self.company, self.user, self.sales_order.pk)

        delete_delivery_challan(self.company, self.user, challan.pk)
        self.assertEqual(self.status(), S.APPROVED)

    def test_update_cannot_set_fulfilment_statuses(self):
        for status in (S.RECEIVED, S.COMPLETED, S.CANCELLED):
            with self.assertRaises(InvalidStatusTransition):
                update_sales_order(
                    self.company, self.user, self.sales_order.pk, {"status": status}
                )
            self.assertEqual(self.status(), S.DRAFT)

        order = update_sales_order(
            self.company, self.user, self.sales_order.pk, {"status": S.APPROVED}
        )
        self.assertEqual(order.status, S.APPROVED)
        self.assertIsNotNone(order.approved_at)

    def test_quotation_update_cannot_complete_it(self):
        quotation = create_sales_quotation(
            self.company,
            self.user,
            {"customer_id": self.customer.pk, "items": [item(self.p1, 1)]},
        )
        with self.assertRaises(InvalidStatusTransition):
            update_sales_quotation(self.company, self.user, quotation.pk, {"status": S.COMPLETED})
        self.assertEqual(SalesQuotation.objects.get(pk=quotation.pk).status, S.DRAFT)
