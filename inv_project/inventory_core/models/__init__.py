from .auditlog import AuditLog
from .company import Company
from .documents import Document, DocumentLine, ReturnReason
from .number_series import NumberSeries
from .party import Customer, Vendor
from .product import Product
from .purchase import (Bill, BillLine, GoodsReceipt, GoodsReceiptLine,
                       PurchaseOrder, PurchaseOrderLine, PurchaseQuotation,
                       PurchaseQuotationLine, PurchaseReturn,
                       PurchaseReturnLine)
from .sales import (DeliveryChallan, DeliveryChallanLine, Invoice,
                    InvoiceLine, SalesOrder, SalesOrderLine, SalesQuotation,
                    SalesQuotationLine, SalesReturn, SalesReturnLine)
from .stock import MovementType, Stock, StockMovement
from .warehouse import Warehouse
