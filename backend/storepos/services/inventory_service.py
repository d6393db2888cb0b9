# Overview: Service-layer operations for inventory; encapsulates business logic and database work.

# backend/storepos/services/inventory_service.py

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import InventoryRecord, Product, Store
from ..validation import ValidationError
from storepos.money import quantize_quantity, ZERO
"""
Inventory Invariants (authoritative)

- InventoryRecord holds one mutable quantity per (store, product).
- The transaction engine changes it only through adjust_quantity(), a relative
  UPDATE executed inside the engine's atomic unit. Concurrent postings against
  the same row serialize on the row write, so no decrement is lost.
- set_quantity() is the administrative absolute override. It is not part of
  the engine's concurrency contract and may race with postings.
- A missing row means zero; both paths upsert.
"""


def get_quantity(store_id: int, product_id: int) -> Decimal:
    qty = (
        db.session.query(InventoryRecord.quantity)
        .filter_by(store_id=store_id, product_id=product_id)
        .scalar()
    )
    return Decimal(qty) if qty is not None else ZERO


def adjust_quantity(store_id: int, product_id: int, delta) -> None:
    """
    Relative change: quantity = quantity + delta.

    Does not commit; the caller owns the transaction. Upserts a zero-based row
    when none exists. A concurrent insert of the same row surfaces as
    IntegrityError for the caller to classify.
    """
    delta = quantize_quantity(delta)
    stmt = (
        update(InventoryRecord)
        .where(
            InventoryRecord.store_id == store_id,
            InventoryRecord.product_id == product_id,
        )
        .values(quantity=InventoryRecord.quantity + delta)
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    if not result.rowcount:
        db.session.add(InventoryRecord(store_id=store_id, product_id=product_id, quantity=delta))
        db.session.flush()


def list_inventory(store_id: int) -> list[InventoryRecord]:
    """Inventory overview for a store, ordered by product name."""
    return (
        db.session.query(InventoryRecord)
        .join(Product, Product.id == InventoryRecord.product_id)
        .filter(InventoryRecord.store_id == store_id)
        .order_by(Product.name.asc(), Product.id.asc())
        .all()
    )


def set_quantity(store_id: int, product_id: int, quantity) -> InventoryRecord:
    """
    Administrative absolute set (upsert). Commits.

    Raises ValidationError for unknown store or product.
    """
    store = db.session.get(Store, store_id)
    if store is None:
        raise ValidationError("Invalid storeId")

    product = db.session.get(Product, product_id)
    if product is None:
        raise ValidationError("Invalid productId")

    try:
        qty = quantize_quantity(quantity)
    except ValueError:
        raise ValidationError("quantity must be a number within range")

    record = (
        db.session.query(InventoryRecord)
        .filter_by(store_id=store_id, product_id=product_id)
        .first()
    )
    if record is None:
        record = InventoryRecord(store_id=store_id, product_id=product_id, quantity=qty)
        db.session.add(record)
    else:
        record.quantity = qty

    try:
        db.session.commit()
    except IntegrityError:
        # Lost an insert race with another writer; fall back to updating the winner's row
        db.session.rollback()
        record = (
            db.session.query(InventoryRecord)
            .filter_by(store_id=store_id, product_id=product_id)
            .one()
        )
        record.quantity = qty
        db.session.commit()

    return record
