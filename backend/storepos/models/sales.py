from __future__ import annotations

from ..extensions import db
from storepos.money import decimal_str
from storepos.time_utils import to_utc_z

TRANSACTION_KIND_SALE = "SALE"
TRANSACTION_KIND_REFUND = "REFUND"


class Transaction(db.Model):
    """
    Append-only financial record for a SALE or a REFUND.

    WHY: Transactions are created and finalized in one database transaction;
    there is no draft state. A row becomes visible only together with its
    code, its lines, and the inventory movement it caused.

    INVARIANTS:
    - total = subtotal + tax_total (positive for SALE, <= 0 for REFUND)
    - code is unique once assigned; assigned before commit
    - reference_transaction_id is set only on REFUND and points at a SALE

    cashier_name is a snapshot so later user edits do not rewrite history.
    """
    __tablename__ = "transactions"
    __table_args__ = (
        db.UniqueConstraint("code", name="uq_transactions_code"),
        db.Index("ix_transactions_store_created", "store_id", "created_at"),
        db.Index("ix_transactions_kind_created", "kind", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    register_id = db.Column(db.Integer, db.ForeignKey("registers.id"), nullable=False, index=True)

    # Attribution (cashier_name is denormalized)
    cashier_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    cashier_name = db.Column(db.String(64), nullable=True)

    subtotal = db.Column(db.Numeric(14, 4), nullable=False)
    tax_total = db.Column(db.Numeric(14, 4), nullable=False)
    total = db.Column(db.Numeric(14, 4), nullable=False)

    # Label only, never authorized
    payment_method = db.Column(db.String(32), nullable=False)

    # Human-scannable TC#, nullable only until assigned inside the posting unit
    code = db.Column(db.String(64), nullable=True)

    kind = db.Column(db.String(16), nullable=False, default=TRANSACTION_KIND_SALE, index=True)
    reference_transaction_id = db.Column(
        db.Integer, db.ForeignKey("transactions.id"), nullable=True, index=True
    )

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    store = db.relationship("Store")
    register = db.relationship("Register")
    cashier = db.relationship("User")
    reference_transaction = db.relationship(
        "Transaction",
        remote_side=[id],
        backref=db.backref("refunds", lazy=True),
    )

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "store_id": str(self.store_id),
            "store_code": self.store.code if self.store else None,
            "store_name": self.store.name if self.store else None,
            "register_id": str(self.register_id),
            "register_code": self.register.code if self.register else None,
            "register_name": self.register.name if self.register else None,
            "cashier_id": str(self.cashier_id) if self.cashier_id is not None else None,
            "cashier_name": self.cashier_name,
            "subtotal": decimal_str(self.subtotal),
            "tax_total": decimal_str(self.tax_total),
            "total": decimal_str(self.total),
            "payment_method": self.payment_method,
            "code": self.code,
            "kind": self.kind,
            "reference_transaction_id": (
                str(self.reference_transaction_id)
                if self.reference_transaction_id is not None
                else None
            ),
            "created_at": to_utc_z(self.created_at),
        }


class TransactionLine(db.Model):
    """
    One product entry within a transaction.

    Quantity and money amounts are signed: positive on SALE lines, negated
    mirrors on REFUND lines (unit_price stays unsigned). Reports can then sum
    rows across kinds to get net figures.

    Product name/sku/barcode/category are copied at write time.
    """
    __tablename__ = "transaction_lines"
    __table_args__ = (
        db.Index("ix_transaction_lines_product", "product_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(db.Integer, db.ForeignKey("transactions.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)

    # Snapshot of product data at write time
    product_name = db.Column(db.String(255), nullable=False)
    sku = db.Column(db.String(64), nullable=True)
    barcode = db.Column(db.String(64), nullable=True)
    category = db.Column(db.String(120), nullable=True)

    quantity = db.Column(db.Numeric(14, 3), nullable=False)
    unit_price = db.Column(db.Numeric(14, 4), nullable=False)
    line_total = db.Column(db.Numeric(14, 4), nullable=False)
    tax_amount = db.Column(db.Numeric(14, 4), nullable=False)

    # REFUND lines point at the SALE line they reverse
    refunded_line_id = db.Column(
        db.Integer, db.ForeignKey("transaction_lines.id"), nullable=True, index=True
    )

    transaction = db.relationship(
        "Transaction",
        backref=db.backref("lines", lazy=True, order_by="TransactionLine.id"),
    )
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "transaction_id": str(self.transaction_id),
            "product_id": str(self.product_id),
            "product_name": self.product_name,
            "sku": self.sku,
            "barcode": self.barcode,
            "category": self.category,
            "quantity": decimal_str(self.quantity),
            "unit_price": decimal_str(self.unit_price),
            "line_total": decimal_str(self.line_total),
            "tax_amount": decimal_str(self.tax_amount),
            "refunded_line_id": (
                str(self.refunded_line_id) if self.refunded_line_id is not None else None
            ),
        }
