"""IPN Ledger: PayPal IPN donation total.

Verifies PayPal Instant Payment Notifications and keeps a durable,
idempotent running total of completed donations.
"""

__version__ = "0.1.0"

from ipn_ledger.config import LedgerConfig
from ipn_ledger.constants import IPNOutcome, IPN_LIVE_URL, IPN_SANDBOX_URL
from ipn_ledger.ledger import AppliedNotification, ApplyResult, DonationLedger, LedgerCorruptError
from ipn_ledger.ipn_client import (
    IPNClient,
    IPNError,
    VerificationResult,
    VerificationStatus,
)
from ipn_ledger.vault_backend import VaultBackend
from ipn_ledger.ledger_store import LedgerStore, StoreNotLoadedError, StoreUnavailableError
from ipn_ledger.vaults import FileVault

__all__ = [
    "LedgerConfig",
    "IPNOutcome",
    "IPN_LIVE_URL",
    "IPN_SANDBOX_URL",
    "AppliedNotification",
    "ApplyResult",
    "DonationLedger",
    "LedgerCorruptError",
    "IPNClient",
    "IPNError",
    "VerificationResult",
    "VerificationStatus",
    "VaultBackend",
    "LedgerStore",
    "StoreNotLoadedError",
    "StoreUnavailableError",
    "FileVault",
]
