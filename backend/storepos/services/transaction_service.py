"""
Transaction Engine - SALE and REFUND posting

WHY: A posting turns a cart (or a set of refund lines) into a durable,
internally consistent financial record and moves inventory in the same
database transaction. Either everything is visible after commit, or nothing.

POSTING UNIT (both kinds):
1. Resolve and validate every reference (no writes yet)
2. Price lines with Decimal arithmetic
3. Insert the transaction row, flush to obtain its id
4. Generate the TC# from store/register codes, id and store-local time
5. Insert lines with product snapshots
6. Adjust inventory relatively (SALE: -q, REFUND: +q)
7. Commit
8. After commit: render receipt text, notify the print agent

Only PersistenceFailure can escape once step 3 begins, and the session is
rolled back before it is raised.

SIGN CONVENTION:
REFUND rows are negated mirrors of SALE rows (quantity, line_total,
tax_amount, subtotal, tax_total, total). unit_price stays unsigned.
Aggregations can sum across kinds without branching.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from flask import current_app
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..models import InventoryRecord, Product, Register, Store, Transaction, TransactionLine
from ..models.sales import TRANSACTION_KIND_REFUND, TRANSACTION_KIND_SALE
from ..validation import ValidationError
from storepos.money import MAX_AMOUNT, ZERO, quantize_money, quantize_quantity, to_decimal
from storepos.time_utils import to_store_local, utcnow
from . import inventory_service, ledger_service, print_service, receipt_service
from .code_service import generate_code
from .concurrency import claim_rows, run_with_retry


# =============================================================================
# ERRORS
# =============================================================================

class TransactionError(Exception):
    """Base for posting and lookup errors. Carries a stable machine-readable kind."""
    kind = "TransactionError"
    http_status = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": str(self), "kind": self.kind, "details": self.details}


class InvalidReference(TransactionError):
    """Unknown or mismatched store, register, product, or original line."""
    kind = "InvalidReference"


class InvalidState(TransactionError):
    """Refunding a non-SALE, or a SALE without lines."""
    kind = "InvalidState"


class QuantityExceeded(TransactionError):
    kind = "QuantityExceeded"


class EmptyCart(TransactionError):
    kind = "EmptyCart"


class EmptyRefund(TransactionError):
    kind = "EmptyRefund"


class InsufficientStock(TransactionError):
    """Only raised when ALLOW_NEGATIVE_INVENTORY is off."""
    kind = "InsufficientStock"
    http_status = 409


class NotFound(TransactionError):
    kind = "NotFound"
    http_status = 404


class PersistenceFailure(TransactionError):
    """Storage or commit failure. No partial effect is visible; safe to retry."""
    kind = "PersistenceFailure"
    http_status = 500

    def __init__(self, message: str, details: dict | None = None, retryable: bool = True):
        super().__init__(message, details)
        self.retryable = retryable

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["retryable"] = self.retryable
        return data


# =============================================================================
# INPUT / OUTPUT SHAPES
# =============================================================================

@dataclass(frozen=True)
class CashierIdentity:
    id: int | None
    name: str

    @classmethod
    def from_user(cls, user) -> "CashierIdentity":
        if user is None:
            return cls(id=None, name="")
        return cls(id=user.id, name=user.username)


@dataclass(frozen=True)
class CartItem:
    product_id: int
    quantity: Decimal


@dataclass(frozen=True)
class RefundItem:
    original_line_id: int
    quantity: Decimal


@dataclass
class PostingResult:
    transaction: Transaction
    lines: list[TransactionLine]
    receipt_text: str

    def to_dict(self) -> dict:
        return {
            "transaction": self.transaction.to_dict(),
            "items": [line.to_dict() for line in self.lines],
            "receipt_text": self.receipt_text,
        }


@dataclass
class _PricedLine:
    product: Product
    quantity: Decimal
    unit_price: Decimal
    line_total: Decimal
    tax_amount: Decimal


def _first(item: dict, *keys):
    for key in keys:
        if key in item and item[key] is not None:
            return item[key]
    return None


def _coerce_id(value, label: str) -> int:
    if value is None or isinstance(value, bool):
        raise InvalidReference(f"Invalid {label}: {value}", details={label: value})
    if isinstance(value, int):
        return value
    text = str(value).strip()
    if not text.isdigit():
        raise InvalidReference(f"Invalid {label}: {value}", details={label: value})
    return int(text)


def _coerce_quantity(value, label: str) -> Decimal:
    if value is None or isinstance(value, bool):
        raise InvalidReference(f"Invalid quantity for {label}", details={"quantity": value})
    try:
        return quantize_quantity(value)
    except ValueError:
        raise InvalidReference(f"Invalid quantity for {label}", details={"quantity": value})


def parse_cart(items) -> list[CartItem]:
    """Normalize request items ({product_id|productId, quantity}) into CartItems."""
    if items is None:
        return []
    if not isinstance(items, list):
        raise ValidationError("items must be a list")

    cart: list[CartItem] = []
    for item in items:
        if isinstance(item, CartItem):
            cart.append(item)
            continue
        if not isinstance(item, dict):
            raise ValidationError("Invalid item in items array")
        raw_id = _first(item, "product_id", "productId")
        product_id = _coerce_id(raw_id, "product_id")
        quantity = _coerce_quantity(item.get("quantity"), f"product {product_id}")
        cart.append(CartItem(product_id=product_id, quantity=quantity))
    return cart


def parse_refund_items(items) -> list[RefundItem]:
    """
    Normalize refund request items ({original_line_id|originalLineId|
    transactionItemId, quantity}). Zero quantities are dropped here.
    """
    if items is None:
        return []
    if not isinstance(items, list):
        raise ValidationError("items must be a list")

    refund: list[RefundItem] = []
    for item in items:
        if isinstance(item, RefundItem):
            entry = item
        else:
            if not isinstance(item, dict):
                raise ValidationError("Invalid item entry in items array")
            raw_id = _first(item, "original_line_id", "originalLineId", "transactionItemId", "line_id")
            line_id = _coerce_id(raw_id, "original_line_id")
            quantity = _coerce_quantity(item.get("quantity"), f"line {line_id}")
            entry = RefundItem(original_line_id=line_id, quantity=quantity)

        if entry.quantity == 0:
            continue
        if entry.quantity < 0:
            raise InvalidReference(
                f"Refund quantity for line {entry.original_line_id} must be positive",
                details={"original_line_id": str(entry.original_line_id)},
            )
        refund.append(entry)
    return refund


# =============================================================================
# INTERNAL HELPERS
# =============================================================================

def _run_posting(op):
    """
    Run a posting unit with retry, classifying storage failures.

    Domain errors raised during validation roll back the (read-only) session
    and propagate unchanged.
    """
    try:
        return run_with_retry(op)
    except TransactionError:
        db.session.rollback()
        raise
    except IntegrityError as exc:
        db.session.rollback()
        current_app.logger.warning("Posting rejected by a uniqueness constraint: %s", exc.orig)
        raise PersistenceFailure(
            "Transaction could not be recorded due to a conflicting write; retry",
            retryable=True,
        ) from exc
    except (OperationalError, StaleDataError) as exc:
        db.session.rollback()
        current_app.logger.warning("Posting failed after retries: %s", exc)
        raise PersistenceFailure("Transaction could not be recorded; retry", retryable=True) from exc
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Posting failed")
        raise PersistenceFailure("Transaction could not be recorded", retryable=False) from exc


def _resolve_store_register(store_id, register_id) -> tuple[Store, Register]:
    store_pk = _coerce_id(store_id, "store_id")
    register_pk = _coerce_id(register_id, "register_id")

    store = db.session.get(Store, store_pk)
    if store is None:
        raise InvalidReference("Invalid storeId", details={"store_id": str(store_pk)})

    register = (
        db.session.query(Register)
        .filter_by(id=register_pk, store_id=store.id)
        .first()
    )
    if register is None:
        raise InvalidReference(
            "Invalid registerId for store",
            details={"store_id": str(store.id), "register_id": str(register_pk)},
        )
    return store, register


def _price_cart(cart: list[CartItem]) -> list[_PricedLine]:
    priced: list[_PricedLine] = []
    for item in cart:
        if item.quantity <= 0:
            raise InvalidReference(
                f"Invalid quantity for productId: {item.product_id}",
                details={"product_id": str(item.product_id)},
            )
        product = db.session.get(Product, item.product_id)
        if product is None or not product.active:
            raise InvalidReference(
                f"Invalid productId: {item.product_id}",
                details={"product_id": str(item.product_id)},
            )

        unit_price = to_decimal(product.price)
        line_total = quantize_money(unit_price * item.quantity)
        tax_amount = quantize_money(line_total * to_decimal(product.tax_rate) / 100)

        priced.append(_PricedLine(
            product=product,
            quantity=item.quantity,
            unit_price=unit_price,
            line_total=line_total,
            tax_amount=tax_amount,
        ))
    return priced


def _check_stock(store_id: int, priced: list[_PricedLine]) -> None:
    requested: dict[int, Decimal] = {}
    for line in priced:
        requested[line.product.id] = requested.get(line.product.id, ZERO) + line.quantity

    insufficient = []
    for product_id, qty in requested.items():
        on_hand = inventory_service.get_quantity(store_id, product_id)
        if on_hand < qty:
            insufficient.append({
                "product_id": str(product_id),
                "requested_quantity": str(qty),
                "on_hand": str(on_hand),
            })

    if insufficient:
        raise InsufficientStock(
            "Insufficient inventory to post sale",
            details={"items": insufficient},
        )


def _assign_code(tx: Transaction, store: Store, register: Register) -> None:
    local_time = to_store_local(tx.created_at, store.timezone)
    ledger_service.assign_code(tx, generate_code(store.code, register.code, tx.id, local_time))


def _finish(tx: Transaction, lines: list[TransactionLine]) -> PostingResult:
    """Post-commit side effects; the financial record is already durable."""
    current_app.logger.info(
        "Posted %s transaction id=%s code=%s total=%s", tx.kind, tx.id, tx.code, tx.total
    )
    try:
        receipt_text = receipt_service.render_receipt(tx, lines)
    except Exception:
        # The posting stands; the receipt can be fetched again later
        current_app.logger.exception("Receipt rendering failed for transaction id=%s", tx.id)
        db.session.rollback()
        receipt_text = ""
    print_service.notify_transaction(tx.id)
    return PostingResult(transaction=tx, lines=lines, receipt_text=receipt_text)


# =============================================================================
# SALE POSTING
# =============================================================================

def post_sale(
    *,
    store_id,
    register_id,
    cashier: CashierIdentity,
    payment_method: str,
    items,
) -> PostingResult:
    """
    Post a SALE for a cart of (product, quantity) lines.

    Raises:
        EmptyCart: no lines
        InvalidReference: unknown store/register/product, inactive product,
            register not in store, quantity <= 0
        ValidationError: unsupported payment method
        InsufficientStock: only when negative inventory is disallowed
        PersistenceFailure: storage failure; nothing was written
    """
    cart = parse_cart(items)
    if not cart:
        raise EmptyCart("items is required and must be non-empty")

    method = (payment_method or "").strip().upper()
    allowed = current_app.config.get("PAYMENT_METHODS") or ()
    if not method or (allowed and method not in allowed):
        raise ValidationError(
            f"paymentMethod must be one of: {', '.join(allowed)}" if allowed else "paymentMethod is required"
        )

    allow_negative = current_app.config.get("ALLOW_NEGATIVE_INVENTORY", True)
    store_pk = _coerce_id(store_id, "store_id")
    product_ids = sorted({item.product_id for item in cart})

    def _op():
        if not allow_negative:
            # Stock read below must see every concurrent sale that commits first
            claim_rows(
                InventoryRecord.quantity,
                InventoryRecord.store_id == store_pk,
                InventoryRecord.product_id.in_(product_ids),
            )

        store, register = _resolve_store_register(store_pk, register_id)
        priced = _price_cart(cart)
        if not allow_negative:
            _check_stock(store.id, priced)

        subtotal = sum((line.line_total for line in priced), ZERO)
        tax_total = sum((line.tax_amount for line in priced), ZERO)
        if subtotal + tax_total > MAX_AMOUNT:
            raise InvalidReference(
                "Transaction total is out of range",
                details={"total": str(subtotal + tax_total)},
            )

        tx = ledger_service.insert_transaction(
            store_id=store.id,
            register_id=register.id,
            cashier_id=cashier.id,
            cashier_name=cashier.name,
            subtotal=subtotal,
            tax_total=tax_total,
            total=subtotal + tax_total,
            payment_method=method,
            kind=TRANSACTION_KIND_SALE,
            created_at=utcnow(),
        )
        _assign_code(tx, store, register)

        lines = ledger_service.insert_lines(tx, [
            TransactionLine(
                product_id=line.product.id,
                product_name=line.product.name,
                sku=line.product.sku,
                barcode=line.product.barcode,
                category=line.product.category,
                quantity=line.quantity,
                unit_price=line.unit_price,
                line_total=line.line_total,
                tax_amount=line.tax_amount,
            )
            for line in priced
        ])

        for line in priced:
            inventory_service.adjust_quantity(store.id, line.product.id, -line.quantity)

        db.session.commit()
        return tx, lines

    tx, lines = _run_posting(_op)
    return _finish(tx, lines)


# =============================================================================
# REFUND POSTING
# =============================================================================

def _per_unit_tax(line: TransactionLine) -> Decimal:
    quantity = abs(to_decimal(line.quantity))
    if quantity != 0:
        return to_decimal(line.tax_amount) / quantity
    # Zero-quantity sale lines should not exist; derive from the product rate
    product = line.product
    rate = to_decimal(product.tax_rate) if product is not None else ZERO
    return to_decimal(line.unit_price) * rate / 100


def post_refund(
    *,
    original_transaction_id,
    items,
    cashier: CashierIdentity,
) -> PostingResult:
    """
    Post a REFUND against a prior SALE.

    The original transaction row is locked for the duration of the unit and
    the refundable bound is validated against committed state inside it.

    Raises:
        NotFound: original transaction does not exist
        InvalidState: original is not a SALE, or has no lines
        InvalidReference: line id not on the original, negative quantity
        QuantityExceeded: quantity above what remains refundable
        EmptyRefund: nothing left after dropping zero-quantity entries
        PersistenceFailure: storage failure; nothing was written
    """
    requested = parse_refund_items(items)
    cumulative = current_app.config.get("ENFORCE_CUMULATIVE_REFUND_LIMIT", True)

    try:
        original_pk = _coerce_id(original_transaction_id, "transaction_id")
    except InvalidReference:
        raise NotFound("Original transaction not found")

    def _op():
        # Serializes refunds of one SALE, so the bound below sees committed refunds
        claim_rows(Transaction.kind, Transaction.id == original_pk)
        original = ledger_service.get_transaction(original_pk, lock=True)
        if original is None:
            raise NotFound("Original transaction not found")

        if original.kind != TRANSACTION_KIND_SALE:
            raise InvalidState(
                "Only SALE transactions can be refunded",
                details={"transaction_id": str(original.id), "kind": original.kind},
            )

        original_lines = ledger_service.get_lines(original.id)
        if not original_lines:
            raise InvalidState("Original transaction has no items")

        if not requested:
            raise EmptyRefund("No valid items to refund")

        by_id = {line.id: line for line in original_lines}
        already = ledger_service.refunded_quantities(by_id.keys()) if cumulative else {}

        # A line may be listed more than once; bound the combined quantity
        requested_totals: dict[int, Decimal] = {}
        for item in requested:
            if item.original_line_id not in by_id:
                raise InvalidReference(
                    f"Invalid transactionItemId: {item.original_line_id}",
                    details={"original_line_id": str(item.original_line_id)},
                )
            requested_totals[item.original_line_id] = (
                requested_totals.get(item.original_line_id, ZERO) + item.quantity
            )

        for line_id, qty in requested_totals.items():
            line = by_id[line_id]
            purchased = abs(to_decimal(line.quantity))
            refunded = already.get(line_id, ZERO)
            if qty > purchased - refunded:
                raise QuantityExceeded(
                    f"Refund quantity for item {line_id} exceeds original quantity",
                    details={
                        "original_line_id": str(line_id),
                        "requested_quantity": str(qty),
                        "purchased_quantity": str(purchased),
                        "already_refunded": str(refunded),
                    },
                )

        subtotal = ZERO
        tax_total = ZERO
        refund_lines: list[TransactionLine] = []
        for item in requested:
            line = by_id[item.original_line_id]
            unit_price = to_decimal(line.unit_price)
            line_subtotal = quantize_money(unit_price * item.quantity)
            line_tax = quantize_money(_per_unit_tax(line) * item.quantity)
            subtotal += line_subtotal
            tax_total += line_tax

            refund_lines.append(TransactionLine(
                product_id=line.product_id,
                product_name=line.product_name,
                sku=line.sku,
                barcode=line.barcode,
                category=line.category,
                quantity=-item.quantity,
                unit_price=unit_price,
                line_total=-line_subtotal,
                tax_amount=-line_tax,
                refunded_line_id=line.id,
            ))

        store = original.store
        register = original.register

        tx = ledger_service.insert_transaction(
            store_id=store.id,
            register_id=register.id,
            cashier_id=cashier.id,
            cashier_name=cashier.name,
            subtotal=-subtotal,
            tax_total=-tax_total,
            total=-(subtotal + tax_total),
            payment_method=original.payment_method,
            kind=TRANSACTION_KIND_REFUND,
            reference_transaction_id=original.id,
            created_at=utcnow(),
        )
        _assign_code(tx, store, register)

        lines = ledger_service.insert_lines(tx, refund_lines)

        for item in requested:
            line = by_id[item.original_line_id]
            inventory_service.adjust_quantity(store.id, line.product_id, item.quantity)

        db.session.commit()
        return tx, lines

    tx, lines = _run_posting(_op)
    return _finish(tx, lines)


# =============================================================================
# QUERIES
# =============================================================================

def _get_or_404(transaction_id) -> Transaction:
    try:
        pk = _coerce_id(transaction_id, "transaction_id")
    except InvalidReference:
        raise NotFound("Transaction not found")
    tx = ledger_service.get_transaction(pk)
    if tx is None:
        raise NotFound("Transaction not found")
    return tx


def get_transaction_detail(transaction_id) -> tuple[Transaction, list[TransactionLine]]:
    tx = _get_or_404(transaction_id)
    return tx, ledger_service.get_lines(tx.id)


def get_transaction_by_code(code: str) -> tuple[Transaction, list[TransactionLine]]:
    tx = ledger_service.get_transaction_by_code(code)
    if tx is None:
        raise NotFound("Transaction not found", details={"code": code})
    return tx, ledger_service.get_lines(tx.id)


def get_receipt(transaction_id) -> tuple[Transaction, str]:
    tx, lines = get_transaction_detail(transaction_id)
    return tx, receipt_service.render_receipt(tx, lines)
