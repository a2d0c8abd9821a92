"""Abstract persistence interface for the donation ledger.

Defines the VaultBackend Protocol that LedgerStore depends on.
The file-backed implementation lives in ``ipn_ledger.vaults``.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class VaultBackend(Protocol):
    """Async durable backend for the ledger document.

    ``store_ledger`` must not return until the document would survive a
    crash, and must replace the previous document all-or-nothing.
    """

    async def store_ledger(self, ledger_json: str) -> None: ...

    async def fetch_ledger(self) -> str | None: ...
