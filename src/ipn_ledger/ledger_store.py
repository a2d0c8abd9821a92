"""Ledger store: the single owner of the donation total.

The in-memory ``DonationLedger`` is the working copy; the vault is the
durable copy. ``try_apply()`` does not return ``APPLIED`` until the vault
write has completed, and readers only ever see totals that were committed.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from ipn_ledger.constants import MAX_AMOUNT_CENTS
from ipn_ledger.ledger import ApplyResult, DonationLedger

if TYPE_CHECKING:
    from ipn_ledger.vault_backend import VaultBackend

logger = logging.getLogger(__name__)


class StoreUnavailableError(Exception):
    """The ledger could not be durably read or written."""


class StoreNotLoadedError(StoreUnavailableError):
    """The store was used before ``load()`` completed."""


class LedgerStore:
    """Durable, idempotent running total.

    - ``load()`` reads the vault once at startup.
    - ``current_total()`` returns the last committed total without locking.
    - ``try_apply()`` checks, records and persists inside one critical
      section, so a ``txn_id`` can be applied at most once.
    - A failed vault write is retried ``commit_retries`` times, then the
      in-memory change is rolled back and ``StoreUnavailableError`` raised.
    """

    def __init__(
        self,
        vault: VaultBackend,
        commit_retries: int = 1,
        commit_retry_delay: float = 0.5,
    ) -> None:
        self._vault = vault
        self._commit_retries = commit_retries
        self._commit_retry_delay = commit_retry_delay
        self._ledger: DonationLedger | None = None
        self._committed_total: int = 0
        self._lock = asyncio.Lock()
        self._last_commit_at: str | None = None
        self._total_commits: int = 0
        self._failed_commits: int = 0

    @property
    def loaded(self) -> bool:
        return self._ledger is not None

    async def load(self) -> DonationLedger:
        """Load the ledger from the vault; empty ledger if none exists.

        Raises ``StoreUnavailableError`` if the vault cannot be read and lets
        ``LedgerCorruptError`` propagate: starting from zero would erase the
        recorded total.
        """
        async with self._lock:
            if self._ledger is not None:
                return self._ledger
            try:
                ledger_json = await self._vault.fetch_ledger()
            except OSError as exc:
                raise StoreUnavailableError(f"Failed to read ledger: {exc}") from exc

            ledger = DonationLedger() if ledger_json is None else DonationLedger.from_json(ledger_json)
            self._ledger = ledger
            self._committed_total = ledger.total_cents
            logger.info(
                "Ledger loaded: %d cents from %d applied notification(s).",
                ledger.total_cents, len(ledger.applied),
            )
            return ledger

    def current_total(self) -> int:
        """Return the latest committed total in cents."""
        if self._ledger is None:
            raise StoreNotLoadedError("Ledger store has not been loaded.")
        return self._committed_total

    async def try_apply(self, txn_id: str, amount_cents: int) -> ApplyResult:
        """Apply ``amount_cents`` under ``txn_id`` exactly once."""
        async with self._lock:
            ledger = self._ledger
            if ledger is None:
                raise StoreNotLoadedError("Ledger store has not been loaded.")

            if ledger.is_applied(txn_id):
                return ApplyResult.ALREADY_APPLIED

            if (
                not txn_id
                or isinstance(amount_cents, bool)
                or not isinstance(amount_cents, int)
                or not 0 < amount_cents <= MAX_AMOUNT_CENTS
            ):
                logger.warning(
                    "Rejected apply for %r: amount %r is not a valid cent count.",
                    txn_id, amount_cents,
                )
                return ApplyResult.REJECTED

            previous_applied_at = ledger.last_applied_at
            applied_at = datetime.now(timezone.utc).isoformat()
            ledger.apply(txn_id, amount_cents, applied_at)

            try:
                committed = await self._commit(ledger)
            except BaseException:
                # Cancelled mid-write; the vault may or may not hold the change.
                ledger.revert(txn_id, previous_applied_at)
                logger.critical(
                    "Ledger commit interrupted for %s (%d cents); change rolled back.",
                    txn_id, amount_cents,
                )
                raise

            if not committed:
                ledger.revert(txn_id, previous_applied_at)
                logger.critical(
                    "Ledger commit failed for %s (%d cents); change rolled back.",
                    txn_id, amount_cents,
                )
                raise StoreUnavailableError(
                    f"Failed to persist ledger for transaction {txn_id}."
                )

            self._committed_total = ledger.total_cents
            return ApplyResult.APPLIED

    async def _commit(self, ledger: DonationLedger) -> bool:
        """Write the ledger to the vault with retry. Returns True on success."""
        try:
            ledger_json = ledger.to_json()
        except (TypeError, ValueError):
            logger.error("Failed to serialize ledger.", exc_info=True)
            self._failed_commits += 1
            return False
        max_attempts = 1 + self._commit_retries
        for attempt in range(max_attempts):
            try:
                await self._vault.store_ledger(ledger_json)
                self._last_commit_at = datetime.now(timezone.utc).isoformat()
                self._total_commits += 1
                return True
            except Exception:
                if attempt < max_attempts - 1:
                    logger.warning(
                        "Commit attempt %d/%d failed, retrying in %.1fs...",
                        attempt + 1, max_attempts, self._commit_retry_delay,
                        exc_info=True,
                    )
                    await asyncio.sleep(self._commit_retry_delay)
                else:
                    logger.error(
                        "Failed to commit ledger after %d attempt(s).",
                        max_attempts, exc_info=True,
                    )
        self._failed_commits += 1
        return False

    @property
    def applied_count(self) -> int:
        return len(self._ledger.applied) if self._ledger is not None else 0

    def health(self) -> dict[str, object]:
        """Return store health metrics for monitoring."""
        return {
            "loaded": self.loaded,
            "committed_total_cents": self._committed_total,
            "applied_notifications": self.applied_count,
            "last_commit_at": self._last_commit_at,
            "total_commits": self._total_commits,
            "failed_commits": self._failed_commits,
            "commit_retries": self._commit_retries,
            "commit_retry_delay": self._commit_retry_delay,
        }
