# Overview: Transaction code (TC#) generation.

"""
TC# format: YYYYMMDD-STORECODE-REGCODE-HHMM-SEQ

- Date and time come from the store's local wall clock at posting time.
- SEQ is the transaction identifier left-padded with zeros to 6 characters.
  Identifiers longer than 6 characters are embedded as-is, never truncated.

The generator is a pure function and guarantees nothing about uniqueness.
The unique index on transactions.code is the arbiter, so it must be called
only after the transaction row has its identifier, and the result written
back before the posting commits.
"""

from __future__ import annotations

from datetime import datetime

SEQ_WIDTH = 6


def generate_code(store_code: str, register_code: str, transaction_id, timestamp: datetime) -> str:
    """Build the code for a transaction; identical inputs give identical output."""
    if not store_code:
        raise ValueError("store_code is required")
    if not register_code:
        raise ValueError("register_code is required")
    if transaction_id is None or str(transaction_id) == "":
        raise ValueError("transaction_id is required")

    date_part = f"{timestamp.year:04d}{timestamp.month:02d}{timestamp.day:02d}"
    time_part = f"{timestamp.hour:02d}{timestamp.minute:02d}"
    seq_part = str(transaction_id).zfill(SEQ_WIDTH)

    return f"{date_part}-{store_code}-{register_code}-{time_part}-{seq_part}"
