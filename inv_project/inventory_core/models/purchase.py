from decimal import Decimal

from django.db import models

from ..lifecycle import DocumentKind, DocumentStatus
from ..managers import LineManager, TenantManager
from .documents import Document, DocumentLine, ReturnReason
from .party import Vendor
from .warehouse import Warehouse


# ---------- Purchase quotation ----------
class PurchaseQuotation(Document):
    kind = DocumentKind.QUOTATION
    number_type = "purchase_quotation"

    vendor = models.ForeignKey(
        Vendor, on_delete=models.PROTECT, related_name="quotations"
    )
    valid_till = models.DateField(null=True, blank=True)
    reference_no = models.CharField(max_length=64, blank=True, default="")

    objects = TenantManager()

    def dependent_documents(self):
        deps = []
        if self.orders.exclude(status=DocumentStatus.CANCELLED).exists():
            deps.append("purchase orders")
        return deps


class PurchaseQuotationLine(DocumentLine):
    document = models.ForeignKey(
        PurchaseQuotation, on_delete=models.CASCADE, related_name="lines"
    )

    objects = LineManager()


# ---------- Purchase order ----------
class PurchaseOrder(Document):
    kind = DocumentKind.ORDER
    number_type = "purchase_order"

    vendor = models.ForeignKey(
        Vendor, on_delete=models.PROTECT, related_name="purchase_orders"
    )
    quotation = models.ForeignKey(
        PurchaseQuotation,
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="orders",
    )
    expected_date = models.DateField(null=True, blank=True)
    delivery_address = models.TextField(blank=True, default="")
    approved_at = models.DateTimeField(null=True, blank=True)

    objects = TenantManager()

    def dependent_documents(self):
        deps = []
        if self.goods_receipts.exclude(status=DocumentStatus.CANCELLED).exists():
            deps.append("goods receipts")
        if self.bills.exclude(status=DocumentStatus.CANCELLED).exists():
            deps.append("bills")
        return deps

    def is_fully_received(self):
        return all(line.received_qty >= line.quantity for line in self.lines.all())

    def any_received(self):
        return any(line.received_qty > 0 for line in self.lines.all())


class PurchaseOrderLine(DocumentLine):
    document = models.ForeignKey(
        PurchaseOrder, on_delete=models.CASCADE, related_name="lines"
    )
    # accepted quantity of all live goods receipts
    received_qty = models.DecimalField(
        max_digits=14, decimal_places=4, default=Decimal("0")
    )

    objects = LineManager()

    @property
    def pending_qty(self):
        return max(self.quantity - self.received_qty, Decimal("0"))


# ---------- Goods receipt (GRN) ----------
class GoodsReceipt(Document):
    kind = DocumentKind.RECEIPT
    number_type = "goods_receipt"
    reference_type = "GOODS_RECEIPT"

    vendor = models.ForeignKey(
        Vendor, on_delete=models.PROTECT, related_name="goods_receipts"
    )
    purchase_order = models.ForeignKey(
        PurchaseOrder,
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="goods_receipts",
    )
    warehouse = models.ForeignKey(
        Warehouse, on_delete=models.PROTECT, related_name="goods_receipts"
    )
    vendor_invoice_no = models.CharField(max_length=64, blank=True, default="")

    objects = TenantManager()

    def dependent_documents(self):
        deps = []
        if self.bills.exclude(status=DocumentStatus.CANCELLED).exists():
            deps.append("bills")
        return deps


class GoodsReceiptLine(DocumentLine):
    # quantity is the accepted quantity, the only part that reaches stock
    document = models.ForeignKey(
        GoodsReceipt, on_delete=models.CASCADE, related_name="lines"
    )
    order_line = models.ForeignKey(
        PurchaseOrderLine,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="receipt_lines",
    )
    ordered_qty = models.DecimalField(
        max_digits=14, decimal_places=4, default=Decimal("0")
    )
    rejected_qty = models.DecimalField(
        max_digits=14, decimal_places=4, default=Decimal("0")
    )

    objects = LineManager()

    @property
    def received_qty(self):
        return self.quantity + self.rejected_qty


# ---------- Bill ----------
class Bill(Document):
    kind = DocumentKind.INVOICE
    number_type = "bill"

    vendor = models.ForeignKey(Vendor, on_delete=models.PROTECT, related_name="bills")
    purchase_order = models.ForeignKey(
        PurchaseOrder,
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="bills",
    )
    goods_receipt = models.ForeignKey(
        GoodsReceipt,
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="bills",
    )
    vendor_bill_no = models.CharField(max_length=64, blank=True, default="")
    due_date = models.DateField(null=True, blank=True)

    paid_amount = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )
    balance_amount = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )

    objects = TenantManager()

    def dependent_documents(self):
        deps = []
        if self.returns.exclude(status=DocumentStatus.CANCELLED).exists():
            deps.append("purchase returns")
        if self.paid_amount > 0:
            deps.append("payments")
        return deps


class BillLine(DocumentLine):
    document = models.ForeignKey(Bill, on_delete=models.CASCADE, related_name="lines")

    objects = LineManager()


# ---------- Purchase return (debit note) ----------
class PurchaseReturn(Document):
    kind = DocumentKind.RETURN
    number_type = "purchase_return"
    reference_type = "PURCHASE_RETURN"

    vendor = models.ForeignKey(
        Vendor, on_delete=models.PROTECT, related_name="purchase_returns"
    )
    bill = models.ForeignKey(
        Bill,
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="returns",
    )
    warehouse = models.ForeignKey(
        Warehouse, on_delete=models.PROTECT, related_name="purchase_returns"
    )
    reason = models.TextField(blank=True, default="")

    objects = TenantManager()


class PurchaseReturnLine(DocumentLine):
    document = models.ForeignKey(
        PurchaseReturn, on_delete=models.CASCADE, related_name="lines"
    )
    return_reason = models.CharField(max_length=20, choices=ReturnReason.choices)

    objects = LineManager()
