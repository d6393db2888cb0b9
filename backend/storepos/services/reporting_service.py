# Overview: Service-layer operations for reporting; encapsulates business logic and database work.

"""
Sales summary semantics

- Range bounds are calendar dates (YYYY-MM-DD, UTC), inclusive on both ends.
- Default range is the 7 days ending today.
- REFUND rows are stored negated, so net figures are plain sums across kinds.
  Only the sales/refunds split branches on kind.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta

from sqlalchemy import case, func

from storepos.extensions import db
from storepos.models import Store, Transaction, TransactionLine
from storepos.models.sales import TRANSACTION_KIND_REFUND, TRANSACTION_KIND_SALE
from storepos.money import decimal_str, quantize_money, round_quantity
from storepos.time_utils import utcnow

DEFAULT_RANGE_DAYS = 7


class ReportError(Exception):
    """Raised when report generation fails."""
    pass


def _parse_day(value: str | None, field: str) -> date | None:
    if not value:
        return None
    try:
        return date.fromisoformat(value.strip())
    except ValueError:
        raise ReportError(f"{field} must be a date (YYYY-MM-DD)")


def _resolve_range(start: str | None, end: str | None) -> tuple[date, date]:
    end_day = _parse_day(end, "to") or utcnow().date()
    start_day = _parse_day(start, "from") or end_day - timedelta(days=DEFAULT_RANGE_DAYS - 1)
    if start_day > end_day:
        raise ReportError("from must be on or before to")
    return start_day, end_day


def _money(value) -> str:
    return decimal_str(quantize_money(value or 0))


def _qty(value) -> str:
    return decimal_str(round_quantity(value or 0))


def _totals_columns():
    return (
        func.coalesce(func.sum(case((Transaction.kind == TRANSACTION_KIND_SALE, Transaction.total), else_=0)), 0)
        .label("sales_total"),
        func.coalesce(func.sum(case((Transaction.kind == TRANSACTION_KIND_REFUND, Transaction.total), else_=0)), 0)
        .label("refunds_total"),
        func.coalesce(func.sum(Transaction.total), 0).label("net_total"),
        func.count(Transaction.id).label("tx_count"),
    )


def _totals_row(row) -> dict:
    return {
        "sales_total": _money(row.sales_total),
        "refunds_total": _money(row.refunds_total),
        "net_total": _money(row.net_total),
        "tx_count": int(row.tx_count or 0),
    }


def sales_summary(
    *,
    start: str | None = None,
    end: str | None = None,
    store_id: int | None = None,
) -> dict:
    start_day, end_day = _resolve_range(start, end)
    start_dt = datetime.combine(start_day, time.min)
    end_dt = datetime.combine(end_day, time.max)

    if store_id is not None and db.session.get(Store, store_id) is None:
        raise ReportError("Store not found")

    filters = [Transaction.created_at >= start_dt, Transaction.created_at <= end_dt]
    if store_id is not None:
        filters.append(Transaction.store_id == store_id)

    summary_row = db.session.query(*_totals_columns()).filter(*filters).one()

    day_expr = func.date(Transaction.created_at)
    by_day = (
        db.session.query(day_expr.label("day"), *_totals_columns())
        .filter(*filters)
        .group_by(day_expr)
        .order_by(day_expr)
        .all()
    )

    cashier_expr = func.coalesce(Transaction.cashier_name, "Unknown")
    by_cashier = (
        db.session.query(cashier_expr.label("cashier_name"), *_totals_columns())
        .filter(*filters)
        .group_by(cashier_expr)
        .order_by(cashier_expr)
        .all()
    )

    net_sales = func.coalesce(func.sum(TransactionLine.line_total), 0)
    by_product = (
        db.session.query(
            TransactionLine.product_id,
            func.max(TransactionLine.product_name).label("product_name"),
            func.max(TransactionLine.sku).label("sku"),
            func.max(TransactionLine.barcode).label("barcode"),
            func.coalesce(func.sum(TransactionLine.quantity), 0).label("net_qty"),
            net_sales.label("net_sales"),
            func.coalesce(func.sum(TransactionLine.tax_amount), 0).label("net_tax"),
        )
        .join(Transaction, Transaction.id == TransactionLine.transaction_id)
        .filter(*filters)
        .group_by(TransactionLine.product_id)
        .order_by(net_sales.desc())
        .all()
    )

    category_expr = func.coalesce(TransactionLine.category, "Uncategorized")
    by_category = (
        db.session.query(
            category_expr.label("category"),
            func.coalesce(func.sum(TransactionLine.quantity), 0).label("net_qty"),
            net_sales.label("net_sales"),
            func.coalesce(func.sum(TransactionLine.tax_amount), 0).label("net_tax"),
        )
        .join(Transaction, Transaction.id == TransactionLine.transaction_id)
        .filter(*filters)
        .group_by(category_expr)
        .order_by(net_sales.desc())
        .all()
    )

    return {
        "range": {
            "from": start_day.isoformat(),
            "to": end_day.isoformat(),
            "store_id": str(store_id) if store_id is not None else None,
        },
        "summary": _totals_row(summary_row),
        "by_day": [{"day": str(row.day), **_totals_row(row)} for row in by_day],
        "by_cashier": [{"cashier_name": row.cashier_name, **_totals_row(row)} for row in by_cashier],
        "by_product": [
            {
                "product_id": str(row.product_id),
                "product_name": row.product_name,
                "sku": row.sku,
                "barcode": row.barcode,
                "net_qty": _qty(row.net_qty),
                "net_sales": _money(row.net_sales),
                "net_tax": _money(row.net_tax),
            }
            for row in by_product
        ],
        "by_category": [
            {
                "category": row.category,
                "net_qty": _qty(row.net_qty),
                "net_sales": _money(row.net_sales),
                "net_tax": _money(row.net_tax),
            }
            for row in by_category
        ],
    }
