"""Read-side tools: get_total and ledger_status."""

from __future__ import annotations

import importlib.metadata
import platform
from typing import Any

from ipn_ledger.config import LedgerConfig
from ipn_ledger.ledger import cents_to_decimal
from ipn_ledger.ledger_store import LedgerStore


def get_total_tool(store: LedgerStore) -> dict[str, Any]:
    """Return the committed donation total.

    Read-only: no side effects, no locking. Raises ``StoreNotLoadedError``
    if the store has not been loaded; the HTTP layer turns that into 503.

    Returns dict with:
        raised: Total in dollars as a number (``25.0``).
        raised_cents: Exact total in integer cents.
    """
    cents = store.current_total()
    return {
        "raised": float(cents_to_decimal(cents)),
        "raised_cents": cents,
    }


def ledger_status_tool(config: LedgerConfig, store: LedgerStore) -> dict[str, Any]:
    """Report IPN configuration and ledger health for diagnostics.

    Call during setup to confirm the service points at the intended PayPal
    environment, or when the total stops moving.
    """
    result: dict[str, Any] = {
        "ipn_environment": "sandbox" if config.sandbox else "live",
        "ipn_url": config.ipn_url,
        "accepted_currency": config.accepted_currency,
        "ledger_path": config.ledger_path,
        "verify_timeout_secs": config.verify_timeout_secs,
    }

    versions: dict[str, str] = {"python": platform.python_version()}
    for pkg in ("ipn-ledger", "fastapi", "httpx"):
        try:
            versions[pkg.replace("-", "_")] = importlib.metadata.version(pkg)
        except importlib.metadata.PackageNotFoundError:
            versions[pkg.replace("-", "_")] = "unknown"
    result["versions"] = versions

    result["store"] = store.health()
    return result
