# Overview: Best-effort notification of the external print agent.

"""
Print agent relay

After a posting commits, the print agent is told which transaction to print.
The agent fetches the receipt itself. Delivery is fire-and-forget:
- nothing is sent when PRINT_AGENT_BASE is unset
- failures are logged on the application logger and never raised
- the posting response never waits on the agent (thread dispatch)

PRINT_AGENT_DISPATCH = "inline" sends synchronously; tests use it.
"""

from __future__ import annotations

import threading

import httpx
from flask import current_app

PRINT_PATH = "/print/transaction"


def _deliver(app, url: str, transaction_id: str, timeout: float) -> bool:
    try:
        response = httpx.post(url, json={"transactionId": transaction_id}, timeout=timeout)
        response.raise_for_status()
    except Exception:
        app.logger.exception("Print agent error for transaction %s", transaction_id)
        return False
    app.logger.debug("Print agent accepted transaction %s", transaction_id)
    return True


def notify_transaction(transaction_id) -> threading.Thread | None:
    """
    Dispatch a print request for a committed transaction.

    Returns the worker thread when dispatched asynchronously, else None.
    """
    app = current_app._get_current_object()
    base = app.config.get("PRINT_AGENT_BASE")
    if not base or transaction_id is None:
        return None

    url = base.rstrip("/") + PRINT_PATH
    timeout = float(app.config.get("PRINT_AGENT_TIMEOUT", 5))
    tx_id = str(transaction_id)

    if app.config.get("PRINT_AGENT_DISPATCH", "thread") == "inline":
        _deliver(app, url, tx_id, timeout)
        return None

    worker = threading.Thread(
        target=_deliver,
        args=(app, url, tx_id, timeout),
        name=f"print-agent-{tx_id}",
        daemon=True,
    )
    worker.start()
    return worker
