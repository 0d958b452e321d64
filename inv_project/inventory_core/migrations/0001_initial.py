from decimal import Decimal

import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models

STATUS_CHOICES = [
    ("DRAFT", "Draft"),
    ("SENT", "Sent"),
    ("APPROVED", "Approved"),
    ("RECEIVED", "Received"),
    ("COMPLETED", "Completed"),
    ("CANCELLED", "Cancelled"),
]

MOVEMENT_TYPE_CHOICES = [
    ("PURCHASE", "Purchase"),
    ("SALE", "Sale"),
    ("RETURN", "Return"),
    ("ADJUSTMENT", "Adjustment"),
    ("TRANSFER", "Transfer"),
]

RETURN_REASON_CHOICES = [
    ("DAMAGED", "Damaged"),
    ("DEFECTIVE", "Defective"),
    ("WRONG_ITEM", "Wrong item"),
    ("QUALITY_ISSUE", "Quality issue"),
    ("OTHER", "Other"),
]


def money():
    return models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)


def qty(default=True):
    if default:
        return models.DecimalField(decimal_places=4, default=Decimal("0"), max_digits=14)
    return models.DecimalField(decimal_places=4, max_digits=14)


def fk(to, on_delete=django.db.models.deletion.PROTECT, **kwargs):
    return models.ForeignKey(on_delete=on_delete, to=to, **kwargs)


def optional_fk(to, related_name, on_delete=django.db.models.deletion.PROTECT):
    return models.ForeignKey(
        blank=True, null=True, on_delete=on_delete, related_name=related_name, to=to
    )


# Every document table shares the header columns of the abstract Document
# model, every line table the columns of DocumentLine.


def document_fields(*extra):
    return [
        ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
        ("number", models.CharField(max_length=64)),
        ("date", models.DateField(default=django.utils.timezone.localdate)),
        ("status", models.CharField(choices=STATUS_CHOICES, default="DRAFT", max_length=20)),
        ("subtotal", money()),
        ("tax_amount", money()),
        ("discount_amount", money()),
        ("total", money()),
        ("notes", models.TextField(blank=True, default="")),
        ("terms", models.TextField(blank=True, default="")),
        ("created_at", models.DateTimeField(auto_now_add=True)),
        ("updated_at", models.DateTimeField(auto_now=True)),
        ("company", fk("inventory_core.company", django.db.models.deletion.CASCADE)),
        (
            "created_by",
            models.ForeignKey(
                blank=True,
                null=True,
                on_delete=django.db.models.deletion.SET_NULL,
                related_name="+",
                to=settings.AUTH_USER_MODEL,
            ),
        ),
        *extra,
    ]


def document_options(name):
    return {
        "ordering": ["-date", "-id"],
        "abstract": False,
        "constraints": [
            models.UniqueConstraint(
                fields=("company", "number"), name=f"uq_{name}_company_number"
            )
        ],
    }


def line_fields(document, *extra):
    return [
        ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
        ("description", models.TextField(blank=True, default="")),
        ("quantity", qty(default=False)),
        ("unit_price", models.DecimalField(decimal_places=4, default=Decimal("0.00"), max_digits=18)),
        ("tax_rate", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=6)),
        ("discount_amount", money()),
        ("amount", money()),
        ("product", fk("inventory_core.product", related_name="+")),
        (
            "document",
            fk(document, django.db.models.deletion.CASCADE, related_name="lines"),
        ),
        *extra,
    ]


def line_options(name):
    return {
        "ordering": ["id"],
        "abstract": False,
        "constraints": [
            models.CheckConstraint(
                condition=models.Q(("quantity__gt", 0), ("unit_price__gte", 0)),
                name=f"{name}_positive_amounts",
            )
        ],
    }


def party_fields(*extra):
    return [
        ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
        ("name", models.CharField(max_length=200)),
        ("email", models.EmailField(blank=True, max_length=254, null=True)),
        ("phone", models.CharField(blank=True, default="", max_length=32)),
        ("address", models.TextField(blank=True, default="")),
        ("current_balance", money()),
        ("is_active", models.BooleanField(default=True)),
        ("created_at", models.DateTimeField(auto_now_add=True)),
        *extra,
        ("company", fk("inventory_core.company", django.db.models.deletion.CASCADE)),
    ]


def party_options(name):
    return {
        "indexes": [models.Index(fields=["company", "name"], name=f"ix_{name}_company_name")],
        "constraints": [
            models.UniqueConstraint(fields=("company", "name"), name=f"uq_company_{name}_name"),
            models.UniqueConstraint(fields=("company", "email"), name=f"uq_company_{name}_email"),
        ],
    }


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        # ---------- Tenant and master data ----------
        migrations.CreateModel(
            name="Company",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=200)),
                ("slug", models.SlugField(max_length=80, unique=True)),
                ("currency_code", models.CharField(default="USD", max_length=10)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={"verbose_name_plural": "companies"},
        ),
        migrations.CreateModel(
            name="Customer",
            fields=party_fields(
                ("credit_limit", money()),
                ("credit_days", models.PositiveIntegerField(default=30)),
            ),
            options=party_options("customer"),
        ),
        migrations.CreateModel(
            name="Vendor",
            fields=party_fields(
                ("payment_terms_days", models.PositiveIntegerField(default=30)),
            ),
            options=party_options("vendor"),
        ),
        migrations.CreateModel(
            name="Product",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("sku", models.CharField(max_length=80)),
                ("name", models.CharField(max_length=200)),
                ("unit", models.CharField(blank=True, default="pcs", max_length=20)),
                ("is_active", models.BooleanField(default=True)),
                ("is_saleable", models.BooleanField(default=True)),
                ("is_purchasable", models.BooleanField(default=True)),
                ("track_inventory", models.BooleanField(default=True)),
                ("sale_price", models.DecimalField(decimal_places=4, default=Decimal("0.00"), max_digits=18)),
                ("purchase_price", models.DecimalField(decimal_places=4, default=Decimal("0.00"), max_digits=18)),
                ("company", fk("inventory_core.company", django.db.models.deletion.CASCADE)),
            ],
            options={
                "indexes": [models.Index(fields=["company", "name"], name="ix_product_company_name")],
                "constraints": [
                    models.UniqueConstraint(fields=("company", "sku"), name="uq_company_product_sku")
                ],
            },
        ),
        migrations.CreateModel(
            name="Warehouse",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("code", models.CharField(max_length=20)),
                ("name", models.CharField(max_length=200)),
                ("is_default", models.BooleanField(default=False)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("company", fk("inventory_core.company", django.db.models.deletion.CASCADE)),
            ],
            options={
                "ordering": ["id"],
                "constraints": [
                    models.UniqueConstraint(fields=("company", "code"), name="uq_company_warehouse_code")
                ],
            },
        ),
        migrations.CreateModel(
            name="NumberSeries",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("code", models.CharField(max_length=50)),
                ("prefix", models.CharField(max_length=20)),
                ("next_number", models.PositiveIntegerField(default=1)),
                (
                    "company",
                    fk(
                        "inventory_core.company",
                        django.db.models.deletion.CASCADE,
                        related_name="number_series",
                    ),
                ),
            ],
            options={
                "ordering": ["code"],
                "constraints": [
                    models.UniqueConstraint(fields=("company", "code"), name="uq_company_number_series")
                ],
            },
        ),
        migrations.CreateModel(
            name="AuditLog",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("action", models.CharField(max_length=50)),
                ("object_type", models.CharField(max_length=100)),
                ("object_id", models.CharField(max_length=100)),
                ("changes", models.JSONField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "company",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        to="inventory_core.company",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "indexes": [
                    models.Index(fields=["company", "created_at"], name="ix_audit_company_created"),
                    models.Index(
                        fields=["company", "object_type", "object_id"],
                        name="ix_audit_company_object",
                    ),
                ],
            },
        ),
        # ---------- Stock ledger ----------
        migrations.CreateModel(
            name="Stock",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("quantity", qty()),
                ("reserved_qty", qty()),
                ("available_qty", qty()),
                ("value_amount", money()),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("company", fk("inventory_core.company", django.db.models.deletion.CASCADE)),
                ("product", fk("inventory_core.product", related_name="stock_levels")),
                ("warehouse", fk("inventory_core.warehouse", related_name="stock_levels")),
            ],
            options={
                "indexes": [
                    models.Index(fields=["company", "product"], name="ix_stock_company_product")
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("product", "warehouse"), name="uq_stock_product_warehouse"
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("quantity__gte", 0)), name="stock_non_negative"
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="StockMovement",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("movement_type", models.CharField(choices=MOVEMENT_TYPE_CHOICES, max_length=20)),
                ("quantity", qty(default=False)),
                ("unit_price", models.DecimalField(decimal_places=4, default=Decimal("0.00"), max_digits=18)),
                ("total_value", money()),
                ("balance_after", qty(default=False)),
                ("reference_type", models.CharField(max_length=50)),
                ("reference_id", models.PositiveBigIntegerField(blank=True, null=True)),
                ("reference_number", models.CharField(blank=True, default="", max_length=64)),
                ("notes", models.TextField(blank=True, default="")),
                ("movement_date", models.DateTimeField(default=django.utils.timezone.now)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("company", fk("inventory_core.company", django.db.models.deletion.CASCADE)),
                ("product", fk("inventory_core.product", related_name="movements")),
                ("warehouse", fk("inventory_core.warehouse", related_name="movements")),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["id"],
                "indexes": [
                    models.Index(fields=["product", "warehouse"], name="ix_movement_product_wh"),
                    models.Index(
                        fields=["company", "reference_type", "reference_id"],
                        name="ix_movement_reference",
                    ),
                ],
            },
        ),
        # ---------- Sales documents ----------
        migrations.CreateModel(
            name="SalesQuotation",
            fields=document_fields(
                ("valid_till", models.DateField(blank=True, null=True)),
                ("reference_no", models.CharField(blank=True, default="", max_length=64)),
                ("shipping_address", models.TextField(blank=True, default="")),
                ("customer", fk("inventory_core.customer", related_name="quotations")),
            ),
            options=document_options("salesquotation"),
        ),
        migrations.CreateModel(
            name="SalesQuotationLine",
            fields=line_fields("inventory_core.salesquotation"),
            options=line_options("salesquotationline"),
        ),
        migrations.CreateModel(
            name="SalesOrder",
            fields=document_fields(
                ("delivery_date", models.DateField(blank=True, null=True)),
                ("shipping_address", models.TextField(blank=True, default="")),
                ("customer", fk("inventory_core.customer", related_name="sales_orders")),
                ("quotation", optional_fk("inventory_core.salesquotation", "orders")),
            ),
            options=document_options("salesorder"),
        ),
        migrations.CreateModel(
            name="SalesOrderLine",
            fields=line_fields(
                "inventory_core.salesorder",
                ("delivered_qty", qty()),
            ),
            options=line_options("salesorderline"),
        ),
        migrations.CreateModel(
            name="DeliveryChallan",
            fields=document_fields(
                ("shipping_address", models.TextField(blank=True, default="")),
                ("vehicle_no", models.CharField(blank=True, default="", max_length=32)),
                ("driver_name", models.CharField(blank=True, default="", max_length=100)),
                ("driver_phone", models.CharField(blank=True, default="", max_length=32)),
                ("transport_mode", models.CharField(blank=True, default="", max_length=32)),
                ("customer", fk("inventory_core.customer", related_name="delivery_challans")),
                ("sales_order", optional_fk("inventory_core.salesorder", "delivery_challans")),
            ),
            options=document_options("deliverychallan"),
        ),
        migrations.CreateModel(
            name="DeliveryChallanLine",
            fields=line_fields(
                "inventory_core.deliverychallan",
                ("warehouse", fk("inventory_core.warehouse", related_name="+")),
                (
                    "order_line",
                    optional_fk(
                        "inventory_core.salesorderline",
                        "delivery_lines",
                        django.db.models.deletion.SET_NULL,
                    ),
                ),
            ),
            options=line_options("deliverychallanline"),
        ),
        migrations.CreateModel(
            name="Invoice",
            fields=document_fields(
                ("due_date", models.DateField(blank=True, null=True)),
                ("shipping_address", models.TextField(blank=True, default="")),
                ("paid_amount", money()),
                ("balance_amount", money()),
                ("customer", fk("inventory_core.customer", related_name="invoices")),
                ("sales_order", optional_fk("inventory_core.salesorder", "invoices")),
                ("delivery_challan", optional_fk("inventory_core.deliverychallan", "invoices")),
            ),
            options=document_options("invoice"),
        ),
        migrations.CreateModel(
            name="InvoiceLine",
            fields=line_fields("inventory_core.invoice"),
            options=line_options("invoiceline"),
        ),
        migrations.CreateModel(
            name="SalesReturn",
            fields=document_fields(
                ("reason", models.TextField(blank=True, default="")),
                ("refund_amount", money()),
                ("customer", fk("inventory_core.customer", related_name="sales_returns")),
                ("invoice", optional_fk("inventory_core.invoice", "returns")),
            ),
            options=document_options("salesreturn"),
        ),
        migrations.CreateModel(
            name="SalesReturnLine",
            fields=line_fields(
                "inventory_core.salesreturn",
                ("return_reason", models.CharField(choices=RETURN_REASON_CHOICES, max_length=20)),
                ("warehouse", fk("inventory_core.warehouse", related_name="+")),
            ),
            options=line_options("salesreturnline"),
        ),
        # ---------- Purchase documents ----------
        migrations.CreateModel(
            name="PurchaseQuotation",
            fields=document_fields(
                ("valid_till", models.DateField(blank=True, null=True)),
                ("reference_no", models.CharField(blank=True, default="", max_length=64)),
                ("vendor", fk("inventory_core.vendor", related_name="quotations")),
            ),
            options=document_options("purchasequotation"),
        ),
        migrations.CreateModel(
            name="PurchaseQuotationLine",
            fields=line_fields("inventory_core.purchasequotation"),
            options=line_options("purchasequotationline"),
        ),
        migrations.CreateModel(
            name="PurchaseOrder",
            fields=document_fields(
                ("expected_date", models.DateField(blank=True, null=True)),
                ("delivery_address", models.TextField(blank=True, default="")),
                ("vendor", fk("inventory_core.vendor", related_name="purchase_orders")),
                ("quotation", optional_fk("inventory_core.purchasequotation", "orders")),
            ),
            options=document_options("purchaseorder"),
        ),
        migrations.CreateModel(
            name="PurchaseOrderLine",
            fields=line_fields(
                "inventory_core.purchaseorder",
                ("received_qty", qty()),
            ),
            options=line_options("purchaseorderline"),
        ),
        migrations.CreateModel(
            name="GoodsReceipt",
            fields=document_fields(
                ("vendor_invoice_no", models.CharField(blank=True, default="", max_length=64)),
                ("vendor", fk("inventory_core.vendor", related_name="goods_receipts")),
                ("purchase_order", optional_fk("inventory_core.purchaseorder", "goods_receipts")),
                ("warehouse", fk("inventory_core.warehouse", related_name="goods_receipts")),
            ),
            options=document_options("goodsreceipt"),
        ),
        migrations.CreateModel(
            name="GoodsReceiptLine",
            fields=line_fields(
                "inventory_core.goodsreceipt",
                (
                    "order_line",
                    optional_fk(
                        "inventory_core.purchaseorderline",
                        "receipt_lines",
                        django.db.models.deletion.SET_NULL,
                    ),
                ),
                ("ordered_qty", qty()),
                ("rejected_qty", qty()),
            ),
            options=line_options("goodsreceiptline"),
        ),
        migrations.CreateModel(
            name="Bill",
            fields=document_fields(
                ("vendor_bill_no", models.CharField(blank=True, default="", max_length=64)),
                ("due_date", models.DateField(blank=True, null=True)),
                ("paid_amount", money()),
                ("balance_amount", money()),
                ("vendor", fk("inventory_core.vendor", related_name="bills")),
                ("purchase_order", optional_fk("inventory_core.purchaseorder", "bills")),
                ("goods_receipt", optional_fk("inventory_core.goodsreceipt", "bills")),
            ),
            options=document_options("bill"),
        ),
        migrations.CreateModel(
            name="BillLine",
            fields=line_fields("inventory_core.bill"),
            options=line_options("billline"),
        ),
        migrations.CreateModel(
            name="PurchaseReturn",
            fields=document_fields(
                ("reason", models.TextField(blank=True, default="")),
                ("vendor", fk("inventory_core.vendor", related_name="purchase_returns")),
                ("bill", optional_fk("inventory_core.bill", "returns")),
                ("warehouse", fk("inventory_core.warehouse", related_name="purchase_returns")),
            ),
            options=document_options("purchasereturn"),
        ),
        migrations.CreateModel(
            name="PurchaseReturnLine",
            fields=line_fields(
                "inventory_core.purchasereturn",
                ("return_reason", models.CharField(choices=RETURN_REASON_CHOICES, max_length=20)),
            ),
            options=line_options("purchasereturnline"),
        ),
    ]
