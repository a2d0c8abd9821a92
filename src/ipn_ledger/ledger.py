"""Donation ledger: running total plus the record of applied notifications.

Pure data model, no I/O. All amounts are integer US cents. The ledger
keeps one ``AppliedNotification`` per PayPal ``txn_id``; the total is always
the sum of their amounts.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any

from ipn_ledger.constants import CENTS_PER_UNIT

logger = logging.getLogger(__name__)

_SCHEMA_VERSION = 1


class LedgerCorruptError(Exception):
    """Persisted ledger data could not be parsed."""


class ApplyResult(str, Enum):
    APPLIED = "applied"
    ALREADY_APPLIED = "already_applied"
    REJECTED = "rejected"


def cents_to_decimal(cents: int) -> Decimal:
    """Convert integer cents to an exact two-place Decimal amount."""
    return (Decimal(cents) / CENTS_PER_UNIT).quantize(Decimal("0.01"))


# ---------------------------------------------------------------------------
# AppliedNotification
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AppliedNotification:
    """Append-only record of one accepted notification."""

    txn_id: str
    amount_cents: int
    applied_at: str = ""  # ISO datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "amount_cents": self.amount_cents,
            "applied_at": self.applied_at,
        }

    @classmethod
    def from_dict(cls, txn_id: str, data: dict[str, Any]) -> AppliedNotification:
        return cls(
            txn_id=txn_id,
            amount_cents=int(data["amount_cents"]),
            applied_at=str(data.get("applied_at", "")),
        )


# ---------------------------------------------------------------------------
# DonationLedger
# ---------------------------------------------------------------------------


@dataclass
class DonationLedger:
    """Running donation total and the set of applied transaction ids.

    ``apply()`` is the only mutation that grows the total. ``revert()`` exists
    solely to undo an ``apply()`` whose durable write failed.
    """

    total_cents: int = 0
    applied: dict[str, AppliedNotification] = field(default_factory=dict)
    last_applied_at: str | None = None

    def is_applied(self, txn_id: str) -> bool:
        return txn_id in self.applied

    def apply(self, txn_id: str, amount_cents: int, applied_at: str) -> AppliedNotification:
        """Record ``txn_id`` and add its amount. Caller checks for duplicates."""
        record = AppliedNotification(
            txn_id=txn_id, amount_cents=amount_cents, applied_at=applied_at,
        )
        self.applied[txn_id] = record
        self.total_cents += amount_cents
        self.last_applied_at = applied_at
        return record

    def revert(self, txn_id: str, previous_applied_at: str | None) -> None:
        """Undo the ``apply()`` of ``txn_id`` (failed commit)."""
        record = self.applied.pop(txn_id, None)
        if record is not None:
            self.total_cents -= record.amount_cents
            self.last_applied_at = previous_applied_at

    def records_sum(self) -> int:
        return sum(r.amount_cents for r in self.applied.values())

    def is_balanced(self) -> bool:
        """Accounting identity: total equals the sum of applied amounts."""
        return self.total_cents == self.records_sum()

    # -- serialization --------------------------------------------------------

    def to_json(self) -> str:
        """Serialize to JSON string with schema version."""
        return json.dumps({
            "v": _SCHEMA_VERSION,
            "total_cents": self.total_cents,
            "last_applied_at": self.last_applied_at,
            "applied": {
                txn_id: rec.to_dict() for txn_id, rec in self.applied.items()
            },
        }, indent=2)

    @classmethod
    def from_json(cls, data: str) -> DonationLedger:
        """Deserialize from JSON.

        Raises ``LedgerCorruptError`` on unparseable data: a donation total
        must never silently reset to zero. A stored total that disagrees with
        its records is repaired to the record sum.
        """
        try:
            obj = json.loads(data)
        except (json.JSONDecodeError, TypeError) as exc:
            raise LedgerCorruptError(f"Ledger data is not valid JSON: {exc}") from exc

        if not isinstance(obj, dict):
            raise LedgerCorruptError("Ledger data is not a JSON object.")

        raw_applied = obj.get("applied", {})
        if not isinstance(raw_applied, dict):
            raise LedgerCorruptError("Ledger 'applied' section is not an object.")

        applied: dict[str, AppliedNotification] = {}
        try:
            for txn_id, rec_data in raw_applied.items():
                if not isinstance(rec_data, dict):
                    raise LedgerCorruptError(f"Record for {txn_id!r} is not an object.")
                applied[txn_id] = AppliedNotification.from_dict(txn_id, rec_data)
            total_cents = int(obj.get("total_cents", 0))
        except (KeyError, TypeError, ValueError) as exc:
            raise LedgerCorruptError(f"Ledger record is malformed: {exc}") from exc

        ledger = cls(
            total_cents=total_cents,
            applied=applied,
            last_applied_at=obj.get("last_applied_at"),
        )
        if not ledger.is_balanced():
            logger.error(
                "Ledger total %d cents disagrees with %d applied record(s) "
                "summing to %d cents; using the record sum.",
                ledger.total_cents, len(applied), ledger.records_sum(),
            )
            ledger.total_cents = ledger.records_sum()
        return ledger
