# Overview: Ledger store for transactions and transaction lines.

from __future__ import annotations

from decimal import Decimal
from typing import Iterable

from sqlalchemy import func

from ..extensions import db
from ..models import Transaction, TransactionLine
from .concurrency import lock_for_update
from storepos.money import quantize_quantity
"""
Ledger Invariants (authoritative)

- Append-only: transactions and lines are inserted, never deleted. The only
  update is the one-time code backfill inside the posting unit.
- Nothing here commits. Every write joins the caller's session transaction,
  and the transaction engine owns commit and rollback.
- A transaction becomes visible to other sessions only after commit, which
  happens after its code has been assigned.
"""


def insert_transaction(**fields) -> Transaction:
    """Insert a transaction row and flush so its identifier is assigned."""
    tx = Transaction(**fields)
    db.session.add(tx)
    db.session.flush()
    return tx


def assign_code(tx: Transaction, code: str) -> None:
    """Backfill the code; the unique index rejects collisions at flush."""
    tx.code = code
    db.session.flush()


def insert_lines(tx: Transaction, lines: Iterable[TransactionLine]) -> list[TransactionLine]:
    rows = []
    for line in lines:
        line.transaction_id = tx.id
        db.session.add(line)
        rows.append(line)
    db.session.flush()
    return rows


def get_transaction(transaction_id: int, *, lock: bool = False) -> Transaction | None:
    query = db.session.query(Transaction).filter_by(id=transaction_id)
    if lock:
        query = lock_for_update(query)
    return query.first()


def get_transaction_by_code(code: str) -> Transaction | None:
    code = (code or "").strip()
    if not code:
        return None
    return db.session.query(Transaction).filter_by(code=code).first()


def get_lines(transaction_id: int) -> list[TransactionLine]:
    return (
        db.session.query(TransactionLine)
        .filter_by(transaction_id=transaction_id)
        .order_by(TransactionLine.id.asc())
        .all()
    )


def refunded_quantities(sale_line_ids: Iterable[int]) -> dict[int, Decimal]:
    """
    Quantity already refunded per SALE line, as positive numbers.

    REFUND lines store negated quantities, so the sum is flipped.
    """
    ids = list(sale_line_ids)
    if not ids:
        return {}

    rows = (
        db.session.query(
            TransactionLine.refunded_line_id,
            func.coalesce(func.sum(TransactionLine.quantity), 0),
        )
        .filter(TransactionLine.refunded_line_id.in_(ids))
        .group_by(TransactionLine.refunded_line_id)
        .all()
    )
    return {line_id: -quantize_quantity(total) for line_id, total in rows}
