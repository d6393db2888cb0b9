# backend/storepos/services/products_service.py
"""
Products Service

The catalog is shared by all stores; per-store stock lives in InventoryRecord.
Lookups used by the register (search, barcode) return active products only.
"""
from __future__ import annotations

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Product, Store, InventoryRecord
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    ValidationError,
    enforce_rules_product,
    validate_payload,
)
from storepos.money import quantize_quantity

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={"sku", "barcode", "name", "category", "price", "tax_rate", "active"},
    required_on_create={"sku", "name", "price", "tax_rate"},
)

PRODUCT_MUTABLE_FIELDS = PRODUCT_POLICY.writable_fields


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def _classify_integrity_error(exc: IntegrityError) -> ConflictError | None:
    """Map a uniqueness violation to a user-facing message by constraint or column name."""
    msg = str(exc.orig).lower() if exc.orig is not None else str(exc).lower()
    if "uq_products_sku" in msg or "products.sku" in msg:
        return ConflictError("SKU already exists")
    if "uq_products_barcode" in msg or "products.barcode" in msg:
        return ConflictError("Barcode already exists")
    return None


def _commit_product() -> None:
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        conflict = _classify_integrity_error(exc)
        if conflict is not None:
            raise conflict
        raise


def list_products(search: str | None = None, include_inactive: bool = False) -> list[Product]:
    """Case-insensitive substring search on name, SKU and barcode."""
    query = db.session.query(Product)
    if not include_inactive:
        query = query.filter(Product.active.is_(True))

    search = (search or "").strip()
    if search:
        pattern = f"%{search}%"
        query = query.filter(
            or_(
                Product.name.ilike(pattern),
                Product.sku.ilike(pattern),
                Product.barcode.ilike(pattern),
            )
        )

    return query.order_by(Product.name.asc(), Product.id.asc()).all()


def get_product(product_id: int) -> Product | None:
    return db.session.get(Product, product_id)


def get_product_by_barcode(barcode: str) -> Product | None:
    barcode = (barcode or "").strip()
    if not barcode:
        return None
    return (
        db.session.query(Product)
        .filter(Product.barcode == barcode, Product.active.is_(True))
        .first()
    )


def create_product(payload: dict, *, store_id: int | None = None, quantity=None) -> Product:
    """
    Create a product and, when store_id is given, its initial inventory record.

    Raises:
        ValidationError: invalid fields or unknown store
        ConflictError: duplicate SKU or barcode
    """
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
    enforce_rules_product(patch)

    store = None
    if store_id is not None:
        store = db.session.get(Store, store_id)
        if store is None:
            raise ValidationError("Invalid storeId")

    product = Product(active=True)
    apply_product_patch(product, patch)
    db.session.add(product)

    if store is not None:
        try:
            qty = quantize_quantity(quantity if quantity is not None else 0)
        except ValueError:
            raise ValidationError("quantity must be a number")
        product.inventory_records.append(InventoryRecord(store_id=store.id, quantity=qty))

    _commit_product()
    return product


def update_product(product_id: int, payload: dict) -> Product:
    """
    Partial update. Historical transaction lines are unaffected because they
    carry their own price/tax/name snapshot.
    """
    product = db.session.get(Product, product_id)
    if product is None:
        raise LookupError("Product not found")

    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
    enforce_rules_product(patch)
    apply_product_patch(product, patch)

    _commit_product()
    return product
