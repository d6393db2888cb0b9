from __future__ import annotations

from ..extensions import db
from storepos.time_utils import to_utc_z


class Store(db.Model):
    """
    Physical store location.

    Stores are provisioned up front (CLI) and never deleted by the application.
    `code` is short and human-facing; it is embedded in every transaction code.
    """
    __tablename__ = "stores"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(16), nullable=False, unique=True, index=True)
    name = db.Column(db.String(120), nullable=False)
    address = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(64), nullable=True)

    # IANA zone used for the wall-clock parts of transaction codes and receipts
    timezone = db.Column(db.String(64), nullable=False, default="UTC")

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Store id={self.id} code={self.code!r} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "code": self.code,
            "name": self.name,
            "address": self.address,
            "phone": self.phone,
            "timezone": self.timezone,
        }


DEFAULT_RECEIPT_HEADER = "{{store_name}}\n{{store_address}}\n{{store_phone}}\n"
DEFAULT_RECEIPT_FOOTER = (
    "Thank you for shopping with us!\n"
    "TC#: {{tc_number}}\n"
    "Date: {{date}}\n"
    "Cashier: {{cashier_name}}\n"
    "Type: {{tx_type}}\n"
)


class ReceiptTemplate(db.Model):
    """Per-store receipt header/footer with {{placeholder}} substitution."""
    __tablename__ = "receipt_templates"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, unique=True)
    header = db.Column(db.Text, nullable=False, default="")
    footer = db.Column(db.Text, nullable=False, default="")
    show_tax_breakdown = db.Column(db.Boolean, nullable=False, default=True)

    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    store = db.relationship("Store", backref=db.backref("receipt_template", uselist=False, lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": str(self.id) if self.id is not None else None,
            "store_id": str(self.store_id),
            "header": self.header or "",
            "footer": self.footer or "",
            "options": {"show_tax_breakdown": bool(self.show_tax_breakdown)},
            "updated_at": to_utc_z(self.updated_at),
        }
