from decimal import Decimal

from ..exceptions import InsufficientStock, InvalidStatusTransition, ValidationError
from ..lifecycle import DocumentStatus
from ..models import ReturnReason, StockMovement
from ..services import ledger
from ..services.billing import approve_bill, create_bill
from ..services.invoicing import approve_invoice, create_invoice, delete_invoice
from ..services.returns import (approve_purchase_return, create_purchase_return,
                                create_sales_return, delete_purchase_return)
from .factories import TenantTestCase, item, put_stock

S = DocumentStatus


class SalesReturnTests(TenantTestCase):
    def setUp(self):
        super().setUp()
        put_stock(self.company, self.user, self.p1, self.w1, 10)
        self.invoice = create_invoice(
            self.company,
            self.user,
            {"customer_id": self.customer.pk, "items": [item(self.p1, 4)]},
        )
        approve_invoice(self.company, self.user, self.invoice.pk)

    def give_back(self, quantity, reason=ReturnReason.DAMAGED, **data):
        data.setdefault("customer_id", self.customer.pk)
        data.setdefault("invoice_id", self.invoice.pk)
        data["items"] = data.get("items") or [item(self.p1, quantity, return_reason=reason)]
        return create_sales_return(self.company, self.user, data)

    def test_return_restocks_and_credits_customer(self):
        self.customer.refresh_from_db()
        self.assertEqual(self.customer.current_balance, Decimal("400.00"))

        sales_return = self.give_back(1, reason=ReturnReason.DAMAGED)

        self.assertEqual(sales_return.number, "SR-0001")
        self.assertEqual(sales_return.status, S.APPROVED)
        self.assertEqual(sales_return.total, Decimal("100.00"))
        self.assertEqual(ledger.stock_on_hand(self.p1, self.w1), Decimal("11"))
        movement = StockMovement.objects.get(
            reference_type=sales_return.reference_type, reference_id=sales_return.pk
        )
        self.assertEqual(movement.quantity, Decimal("1"))
        self.assertIn("DAMAGED", movement.notes)

        self.customer.refresh_from_db()
        self.assertEqual(self.customer.current_balance, Decimal("300.00"))

    def test_return_into_another_warehouse(self):
        self.give_back(2, warehouse_id=self.w2.pk)
        self.assertEqual(ledger.stock_on_hand(self.p1, self.w2), Decimal("2"))
        self.assertEqual(ledger.stock_on_hand(self.p1, self.w1), Decimal("10"))

    def test_unknown_reason_is_rejected(self):
        with self.assertRaises(ValidationError):
            self.give_back(1, reason="CHANGED_MIND")
        with self.assertRaises(ValidationError):
            self.give_back(1, reason=None)
        self.assertEqual(ledger.stock_on_hand(self.p1, self.w1), Decimal("10"))

    def test_cumulative_returns_cannot_exceed_invoice(self):
        self.give_back(3)
        with self.assertRaises(ValidationError):
            self.give_back(2)
        self.give_back(1)
        self.assertEqual(ledger.stock_on_hand(self.p1, self.w1), Decimal("14"))

    def test_product_must_be_on_invoice(self):
        with self.assertRaises(ValidationError):
            self.give_back(
                1, items=[item(self.p2, 1, return_reason=ReturnReason.WRONG_ITEM)]
            )

    def test_draft_invoice_cannot_take_returns(self):
        draft = create_invoice(
            self.company,
            self.user,
            {"customer_id": self.customer.pk, "items": [item(self.p1, 1)]},
        )
        with self.assertRaises(ValidationError):
            self.give_back(1, invoice_id=draft.pk)

    def test_invoice_with_returns_cannot_be_cancelled(self):
        self.give_back(1)
        with self.assertRaises(InvalidStatusTransition):
            delete_invoice(self.company, self.user, self.invoice.pk)
        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.status, S.APPROVED)

    def test_return_without_invoice(self):
        sales_return = self.give_back(2, invoice_id=None)
        self.assertIsNone(sales_return.invoice_id)
        self.customer.refresh_from_db()
        self.assertEqual(self.customer.current_balance, Decimal("200.00"))


class PurchaseReturnTests(TenantTestCase):
    def setUp(self):
        super().setUp()
        put_stock(self.company, self.user, self.p1, self.w1, 10)
        self.bill = create_bill(
            self.company,
            self.user,
            {"vendor_id": self.vendor.pk, "items": [item(self.p1, 5, "60.00")]},
        )
        approve_bill(self.company, self.user, self.bill.pk)

    def send_back(self, quantity, **data):
        data.setdefault("vendor_id", self.vendor.pk)
        data.setdefault("bill_id", self.bill.pk)
        data["items"] = [item(self.p1, quantity, "60.00", return_reason=ReturnReason.DEFECTIVE)]
        return create_purchase_return(self.company, self.user, data)

    def vendor_balance(self):
        self.vendor.refresh_from_db()
        return self.vendor.current_balance

    def test_stock_leaves_now_balance_moves_on_approval(self):
        self.assertEqual(self.vendor_balance(), Decimal("300.00"))

        purchase_return = self.send_back(2)
        self.assertEqual(purchase_return.number, "PR-0001")
        self.assertEqual(purchase_return.status, S.DRAFT)
        self.assertEqual(ledger.stock_on_hand(self.p1, self.w1), Decimal("8"))
        self.assertEqual(self.vendor_balance(), Decimal("300.00"))

        approve_purchase_return(self.company, self.user, purchase_return.pk)
        self.assertEqual(self.vendor_balance(), Decimal("180.00"))

        with self.assertRaises(InvalidStatusTransition):
            delete_purchase_return(self.company, self.user, purchase_return.pk)
        self.assertEqual(ledger.stock_on_hand(self.p1, self.w1), Decimal("8"))

    def test_deleting_draft_restores_stock(self):
        purchase_return = self.send_back(3)
        delete_purchase_return(self.company, self.user, purchase_return.pk)

        purchase_return.refresh_from_db()
        self.assertEqual(purchase_return.status, S.CANCELLED)
        self.assertEqual(ledger.stock_on_hand(self.p1, self.w1), Decimal("10"))
        self.assertEqual(self.vendor_balance(), Decimal("300.00"))
        # a cancelled return frees its quantity again
        self.send_back(5)

    def test_cannot_return_more_than_on_hand(self):
        with self.assertRaises(InsufficientStock):
            self.send_back(2, warehouse_id=self.w2.pk)
        self.assertEqual(ledger.stock_on_hand(self.p1, self.w2), Decimal("0"))

    def test_cannot_return_more_than_billed(self):
        self.send_back(4)
        with self.assertRaises(ValidationError):
            self.send_back(2)
