from decimal import Decimal

from django.db import models

from ..lifecycle import DocumentKind, DocumentStatus
from ..managers import LineManager, TenantManager
from .documents import Document, DocumentLine, ReturnReason
from .party import Customer
from .warehouse import Warehouse


# ---------- Sales quotation ----------
class SalesQuotation(Document):
    kind = DocumentKind.QUOTATION
    number_type = "sales_quotation"

    customer = models.ForeignKey(
        Customer, on_delete=models.PROTECT, related_name="quotations"
    )
    valid_till = models.DateField(null=True, blank=True)
    reference_no = models.CharField(max_length=64, blank=True, default="")
    shipping_address = models.TextField(blank=True, default="")

    objects = TenantManager()

    def dependent_documents(self):
        deps = []
        if self.orders.exclude(status=DocumentStatus.CANCELLED).exists():
            deps.append("sales orders")
        return deps


class SalesQuotationLine(DocumentLine):
    document = models.ForeignKey(
        SalesQuotation, on_delete=models.CASCADE, related_name="lines"
    )

    objects = LineManager()


# ---------- Sales order ----------
class SalesOrder(Document):
    kind = DocumentKind.ORDER
    number_type = "sales_order"

    customer = models.ForeignKey(
        Customer, on_delete=models.PROTECT, related_name="sales_orders"
    )
    # predecessor document, lines were copied from it
    quotation = models.ForeignKey(
        SalesQuotation,
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="orders",
    )
    delivery_date = models.DateField(null=True, blank=True)
    shipping_address = models.TextField(blank=True, default="")
    # set once by approval; a reversed fulfilment falls back on it
    approved_at = models.DateTimeField(null=True, blank=True)

    objects = TenantManager()

    def dependent_documents(self):
        deps = []
        if self.delivery_challans.exclude(status=DocumentStatus.CANCELLED).exists():
            deps.append("delivery challans")
        if self.invoices.exclude(status=DocumentStatus.CANCELLED).exists():
            deps.append("invoices")
        return deps

    def is_fully_delivered(self):
        return all(line.delivered_qty >= line.quantity for line in self.lines.all())

    def any_delivered(self):
        return any(line.delivered_qty > 0 for line in self.lines.all())


class SalesOrderLine(DocumentLine):
    document = models.ForeignKey(
        SalesOrder, on_delete=models.CASCADE, related_name="lines"
    )
    # running total of delivered quantity, kept in step by delivery challans
    delivered_qty = models.DecimalField(
        max_digits=14, decimal_places=4, default=Decimal("0")
    )

    objects = LineManager()

    @property
    def remaining_qty(self):
        return max(self.quantity - self.delivered_qty, Decimal("0"))


# ---------- Delivery challan ----------
class DeliveryChallan(Document):
    kind = DocumentKind.DELIVERY
    number_type = "delivery_challan"
    reference_type = "DELIVERY_CHALLAN"

    customer = models.ForeignKey(
        Customer, on_delete=models.PROTECT, related_name="delivery_challans"
    )
    sales_order = models.ForeignKey(
        SalesOrder,
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="delivery_challans",
    )
    shipping_address = models.TextField(blank=True, default="")
    vehicle_no = models.CharField(max_length=32, blank=True, default="")
    driver_name = models.CharField(max_length=100, blank=True, default="")
    driver_phone = models.CharField(max_length=32, blank=True, default="")
    transport_mode = models.CharField(max_length=32, blank=True, default="")

    objects = TenantManager()

    def dependent_documents(self):
        deps = []
        if self.invoices.exclude(status=DocumentStatus.CANCELLED).exists():
            deps.append("invoices")
        return deps


class DeliveryChallanLine(DocumentLine):
    document = models.ForeignKey(
        DeliveryChallan, on_delete=models.CASCADE, related_name="lines"
    )
    warehouse = models.ForeignKey(
        Warehouse, on_delete=models.PROTECT, related_name="+"
    )
    # the order line this delivery fulfils
    order_line = models.ForeignKey(
        SalesOrderLine,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="delivery_lines",
    )

    objects = LineManager()


# ---------- Invoice ----------
class Invoice(Document):
    kind = DocumentKind.INVOICE
    number_type = "invoice"

    customer = models.ForeignKey(
        Customer, on_delete=models.PROTECT, related_name="invoices"
    )
    sales_order = models.ForeignKey(
        SalesOrder,
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="invoices",
    )
    delivery_challan = models.ForeignKey(
        DeliveryChallan,
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="invoices",
    )
    due_date = models.DateField(null=True, blank=True)
    shipping_address = models.TextField(blank=True, default="")

    paid_amount = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )
    # total - paid_amount
    balance_amount = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )

    objects = TenantManager()

    def dependent_documents(self):
        deps = []
        if self.returns.exclude(status=DocumentStatus.CANCELLED).exists():
            deps.append("sales returns")
        if self.paid_amount > 0:
            deps.append("payments")
        return deps


class InvoiceLine(DocumentLine):
    document = models.ForeignKey(
        Invoice, on_delete=models.CASCADE, related_name="lines"
    )

    objects = LineManager()


# ---------- Sales return ----------
class SalesReturn(Document):
    kind = DocumentKind.RETURN
    number_type = "sales_return"
    reference_type = "SALES_RETURN"

    customer = models.ForeignKey(
        Customer, on_delete=models.PROTECT, related_name="sales_returns"
    )
    invoice = models.ForeignKey(
        Invoice,
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="returns",
    )
    reason = models.TextField(blank=True, default="")
    # refunds are settled separately
    refund_amount = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )

    objects = TenantManager()


class SalesReturnLine(DocumentLine):
    document = models.ForeignKey(
        SalesReturn, on_delete=models.CASCADE, related_name="lines"
    )
    return_reason = models.CharField(max_length=20, choices=ReturnReason.choices)
    warehouse = models.ForeignKey(
        Warehouse, on_delete=models.PROTECT, related_name="+"
    )

    objects = LineManager()
