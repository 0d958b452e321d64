from decimal import Decimal

from django.test import override_settings

from ..exceptions import InsufficientStock, NotFound, ValidationError
from ..models import AuditLog, MovementType, StockMovement
from ..services import ledger
from ..services.stock import adjust_stock, transfer_stock
from .factories import TenantTestCase, make_company, make_product, make_warehouse, put_stock


class StockAdjustmentTests(TenantTestCase):
    def adjust(self, quantity, reason="Cycle count correction", **data):
        data.setdefault("product_id", self.p1.pk)
        data.setdefault("warehouse_id", self.w1.pk)
        data.update(quantity=str(quantity), reason=reason)
        return adjust_stock(self.company, self.user, data)

    def test_adjustment_posts_numbered_movement(self):
        movement = self.adjust(7)

        self.assertEqual(movement.movement_type, MovementType.ADJUSTMENT)
        self.assertEqual(movement.reference_number, "ADJ-0001")
        self.assertEqual(movement.balance_after, Decimal("7"))
        self.assertEqual(movement.notes, "Cycle count correction")
        self.assertEqual(ledger.stock_on_hand(self.p1, self.w1), Decimal("7"))
        self.assertTrue(
            AuditLog.objects.filter(action="adjust", object_id=str(movement.pk)).exists()
        )

        movement = self.adjust(-2, reason="Water damage in aisle 3")
        self.assertEqual(movement.reference_number, "ADJ-0002")
        self.assertEqual(ledger.stock_on_hand(self.p1, self.w1), Decimal("5"))

    def test_reason_is_required(self):
        with self.assertRaises(ValidationError):
            self.adjust(3, reason="count")
        with self.assertRaises(ValidationError):
            self.adjust(3, reason="          ")
        self.assertFalse(StockMovement.objects.exists())

    @override_settings(INVENTORY_CORE={"MIN_ADJUSTMENT_REASON_LENGTH": 3})
    def test_reason_length_is_configurable(self):
        self.adjust(1, reason="lost")
        self.assertEqual(ledger.stock_on_hand(self.p1, self.w1), Decimal("1"))

    def test_zero_and_untracked_rejected(self):
        with self.assertRaises(ValidationError):
            self.adjust(0)
        service = make_product(self.company, "SVC", track_inventory=False)
        with self.assertRaises(ValidationError):
            self.adjust(1, product_id=service.pk)

    def test_cannot_go_below_zero(self):
        self.adjust(2)
        with self.assertRaises(InsufficientStock):
            self.adjust(-3)
        self.assertEqual(ledger.stock_on_hand(self.p1, self.w1), Decimal("2"))

    def test_default_warehouse_is_used(self):
        self.adjust(4, warehouse_id=None)
        self.assertEqual(ledger.stock_on_hand(self.p1, self.w1), Decimal("4"))


class StockTransferTests(TenantTestCase):
    def setUp(self):
        super().setUp()
        put_stock(self.company, self.user, self.p1, self.w1, 10)

    def transfer(self, quantity, source=None, destination=None, **data):
        data.update(
            product_id=self.p1.pk,
            quantity=str(quantity),
            from_warehouse_id=(source or self.w1).pk,
            to_warehouse_id=(destination or self.w2).pk,
        )
        return transfer_stock(self.company, self.user, data)

    def test_transfer_posts_both_legs(self):
        outward, inward = self.transfer(4)

        self.assertEqual(outward.quantity, Decimal("-4"))
        self.assertEqual(inward.quantity, Decimal("4"))
        self.assertEqual(outward.reference_number, "TRF-0001")
        self.assertEqual(inward.reference_number, outward.reference_number)
        self.assertEqual(outward.movement_type, MovementType.TRANSFER)
        self.assertEqual(ledger.stock_on_hand(self.p1, self.w1), Decimal("6"))
        self.assertEqual(ledger.stock_on_hand(self.p1, self.w2), Decimal("4"))
        self.assertEqual(ledger.available_quantity(self.p1), Decimal("10"))

    def test_same_warehouse_rejected(self):
        with self.assertRaises(ValidationError):
            self.transfer(1, destination=self.w1)

    def test_insufficient_source_stock(self):
        with self.assertRaises(InsufficientStock):
            self.transfer(11)
        self.assertEqual(ledger.stock_on_hand(self.p1, self.w2), Decimal("0"))
        self.assertEqual(ledger.stock_on_hand(self.p1, self.w1), Decimal("10"))

    def test_non_positive_quantity_rejected(self):
        with self.assertRaises(ValidationError):
            self.transfer(0)

    def test_foreign_destination(self):
        foreign = make_warehouse(make_company("Other Co"), "X1")
        with self.assertRaises(NotFound):
            self.transfer(1, destination=foreign)
        self.assertEqual(ledger.stock_on_hand(self.p1, self.w1), Decimal("10"))
