from __future__ import annotations

from ..extensions import db


class Register(db.Model):
    """
    Physical POS register/terminal.

    WHY: Track which device processed each transaction. The register code is
    part of every transaction code printed on receipts.
    """
    __tablename__ = "registers"
    __table_args__ = (
        db.UniqueConstraint("store_id", "code", name="uq_registers_store_code"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)

    # Human-readable identifier (e.g., "R1", "FRONT")
    code = db.Column(db.String(16), nullable=False)
    name = db.Column(db.String(128), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    store = db.relationship("Store", backref=db.backref("registers", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "store_id": str(self.store_id),
            "code": self.code,
            "name": self.name,
        }
