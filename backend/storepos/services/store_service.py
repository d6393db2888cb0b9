# Overview: Store and register lookups.

from __future__ import annotations

from ..extensions import db
from ..models import Register, Store


def list_stores() -> list[Store]:
    return db.session.query(Store).order_by(Store.code.asc()).all()


def get_store(store_id: int) -> Store | None:
    return db.session.get(Store, store_id)


def list_registers(store_id: int) -> list[Register]:
    return (
        db.session.query(Register)
        .filter_by(store_id=store_id)
        .order_by(Register.code.asc())
        .all()
    )
