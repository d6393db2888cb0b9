# Overview: Plain-text receipt rendering and per-store receipt templates.

"""
Receipt rendering

render_receipt() is a pure formatting function over a committed transaction,
its lines, and the store's template. It performs no writes.

Layout:
    <header>

    *** REFUND ***            (refunds only)
    TC#: ...
    Date: ...                 (store local wall clock)
    Cashier: ...              (when known)
    Store: NAME (CODE)
    Register: CODE
    Payment: METHOD

    Items:
    - NAME xQTY @ PRICE = LINE_TOTAL

    Subtotal: ...
    Tax:      ...             (when show_tax_breakdown)
    Total:    ...

    <footer>
"""

from __future__ import annotations

import re

from ..extensions import db
from ..models import ReceiptTemplate, Store, Transaction, TransactionLine
from ..models.tenancy import DEFAULT_RECEIPT_FOOTER, DEFAULT_RECEIPT_HEADER
from ..validation import ValidationError
from storepos.money import format_money, format_quantity
from storepos.time_utils import to_store_local

_PLACEHOLDER = re.compile(r"{{(\w+)}}")

DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def apply_template(text: str | None, context: dict) -> str:
    """Replace {{key}} with context[key]; unknown or None keys render empty."""
    if not text:
        return ""

    def _sub(match):
        value = context.get(match.group(1))
        return "" if value is None else str(value)

    return _PLACEHOLDER.sub(_sub, text)


def get_template(store_id: int) -> ReceiptTemplate:
    """Stored template, or an unsaved default instance when the store has none."""
    template = db.session.query(ReceiptTemplate).filter_by(store_id=store_id).first()
    if template is None:
        template = ReceiptTemplate(
            store_id=store_id,
            header=DEFAULT_RECEIPT_HEADER,
            footer=DEFAULT_RECEIPT_FOOTER,
            show_tax_breakdown=True,
        )
    return template


def update_template(store_id: int, header, footer, show_tax_breakdown=None) -> ReceiptTemplate:
    if db.session.get(Store, store_id) is None:
        raise LookupError("Store not found")
    if header is None or footer is None:
        raise ValidationError("header and footer are required")

    template = db.session.query(ReceiptTemplate).filter_by(store_id=store_id).first()
    if template is None:
        template = ReceiptTemplate(store_id=store_id)
        db.session.add(template)

    template.header = str(header)
    template.footer = str(footer)
    if show_tax_breakdown is not None:
        template.show_tax_breakdown = bool(show_tax_breakdown)
    elif template.show_tax_breakdown is None:
        template.show_tax_breakdown = True

    db.session.commit()
    return template


def build_context(tx: Transaction) -> dict:
    store = tx.store
    register = tx.register
    local_dt = to_store_local(tx.created_at, store.timezone)
    return {
        "store_name": store.name,
        "store_address": store.address or "",
        "store_phone": store.phone or "",
        "store_code": store.code,
        "register_code": register.code,
        "tc_number": tx.code,
        "date": local_dt.strftime(DATE_FORMAT),
        "cashier_name": tx.cashier_name or "",
        "tx_type": tx.kind,
        "payment_method": tx.payment_method,
        "subtotal": format_money(tx.subtotal),
        "tax_total": format_money(tx.tax_total),
        "total": format_money(tx.total),
    }


def render_receipt(tx: Transaction, lines: list[TransactionLine] | None = None) -> str:
    if lines is None:
        lines = (
            db.session.query(TransactionLine)
            .filter_by(transaction_id=tx.id)
            .order_by(TransactionLine.id.asc())
            .all()
        )

    template = get_template(tx.store_id)
    context = build_context(tx)

    out: list[str] = []

    header = apply_template(template.header, context).rstrip()
    if header:
        out.append(header)

    out.append("")
    if tx.kind == "REFUND":
        out.append("*** REFUND ***")
    out.append(f"TC#: {tx.code}")
    out.append(f"Date: {context['date']}")
    if tx.cashier_name:
        out.append(f"Cashier: {tx.cashier_name}")
    out.append(f"Store: {tx.store.name} ({tx.store.code})")
    out.append(f"Register: {tx.register.code}")
    out.append(f"Payment: {tx.payment_method}")
    out.append("")
    out.append("Items:")

    for line in lines:
        qty = format_quantity(abs(line.quantity))
        price = format_money(line.unit_price)
        out.append(f"- {line.product_name} x{qty} @ {price} = {format_money(line.line_total)}")

    out.append("")
    out.append(f"Subtotal: {context['subtotal']}")
    if template.show_tax_breakdown:
        out.append(f"Tax:      {context['tax_total']}")
    out.append(f"Total:    {context['total']}")
    out.append("")

    footer = apply_template(template.footer, context).rstrip()
    if footer:
        out.append(footer)

    return "\n".join(out)
