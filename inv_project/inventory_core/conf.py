from django.conf import settings

# Defaults for the INVENTORY_CORE settings dict
DEFAULTS = {
    "NUMBER_WIDTH": 4,
    "DEFAULT_CREDIT_DAYS": 30,
    "MIN_ADJUSTMENT_REASON_LENGTH": 10,
    "DOCUMENT_PREFIXES": {
        "sales_quotation": "SQ",
        "sales_order": "SO",
        "delivery_challan": "DC",
        "invoice": "INV",
        "sales_return": "SR",
        "purchase_quotation": "PQ",
        "purchase_order": "PO",
        "goods_receipt": "GRN",
        "bill": "BILL",
        "purchase_return": "PR",
        "stock_adjustment": "ADJ",
        "stock_transfer": "TRF",
    },
}


def get_setting(name):
    """Read one engine setting, falling back to DEFAULTS."""
    overrides = getattr(settings, "INVENTORY_CORE", {}) or {}
    if name == "DOCUMENT_PREFIXES":
        # allow overriding a single prefix without restating all of them
        return {**DEFAULTS[name], **overrides.get(name, {})}
    return overrides.get(name, DEFAULTS[name])
