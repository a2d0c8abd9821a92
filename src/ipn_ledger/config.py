"""IPN ledger configuration: plain frozen dataclass, no pydantic.

The service builds this from its pydantic-settings ``Settings``; tests and
embedding applications construct it directly.
"""

from dataclasses import dataclass

from ipn_ledger.constants import DEFAULT_CURRENCY, IPN_LIVE_URL, IPN_SANDBOX_URL


@dataclass(frozen=True)
class LedgerConfig:
    ledger_path: str = "donations.json"
    sandbox: bool = False
    accepted_currency: str = DEFAULT_CURRENCY
    verify_timeout_secs: float = 30.0
    commit_retries: int = 1
    commit_retry_delay: float = 0.5

    @property
    def ipn_url(self) -> str:
        return IPN_SANDBOX_URL if self.sandbox else IPN_LIVE_URL
