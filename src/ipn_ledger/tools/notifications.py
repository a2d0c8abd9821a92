"""Notification handling: parse → verify → business rules → apply → acknowledge."""

from __future__ import annotations

import codecs
import logging
from decimal import Decimal
from typing import Any
from urllib.parse import parse_qsl

from ipn_ledger.constants import (
    CENTS_PER_UNIT,
    DEFAULT_CURRENCY,
    MAX_AMOUNT_CENTS,
    PAYMENT_STATUS_COMPLETED,
    IPNOutcome,
)
from ipn_ledger.ipn_client import IPNClient, VerificationStatus
from ipn_ledger.ledger import ApplyResult
from ipn_ledger.ledger_store import LedgerStore

logger = logging.getLogger(__name__)

ACKNOWLEDGED = "acknowledged"


def parse_notification(raw_body: bytes) -> dict[str, str] | None:
    """Parse a form-encoded IPN body. Returns None if it is not well formed.

    Percent-escapes are decoded with the charset the notification declares
    in its own ``charset`` field, UTF-8 when absent. The first value of a
    repeated key wins.
    """
    if not raw_body:
        return None
    try:
        text = raw_body.decode("ascii")
    except UnicodeDecodeError:
        return None

    try:
        # latin-1 never fails, which is enough to find the charset field
        first_pass = parse_qsl(text, keep_blank_values=True, strict_parsing=True, encoding="latin-1")
    except ValueError:
        return None

    charset = "utf-8"
    for key, value in first_pass:
        if key == "charset" and value:
            try:
                charset = codecs.lookup(value).name
            except LookupError:
                logger.warning("Unknown IPN charset %r; decoding as UTF-8.", value)
            break

    fields: dict[str, str] = {}
    for key, value in parse_qsl(
        text, keep_blank_values=True, strict_parsing=True,
        encoding=charset, errors="replace",
    ):
        fields.setdefault(key, value)

    if not fields.get("txn_id", "").strip():
        return None
    return fields


def parse_gross_cents(value: str | None) -> int | None:
    """Convert ``mc_gross`` to positive integer cents, or None if unusable.

    Rejects missing, non-numeric, NaN/Infinity, non-positive, sub-cent and
    implausibly large amounts (above ``MAX_AMOUNT_CENTS``).
    """
    if value is None:
        return None
    try:
        amount = Decimal(value.strip())
        if not amount.is_finite() or amount <= 0:
            return None
        cents = amount * CENTS_PER_UNIT
    except (ArithmeticError, AttributeError):
        return None
    if cents > MAX_AMOUNT_CENTS or cents != cents.to_integral_value():
        return None
    return int(cents)


def _acknowledge(outcome: IPNOutcome, txn_id: str | None = None, **extra: Any) -> dict[str, Any]:
    result: dict[str, Any] = {"state": ACKNOWLEDGED, "outcome": outcome}
    if txn_id is not None:
        result["txn_id"] = txn_id
    result.update(extra)
    return result


async def handle_notification(
    client: IPNClient,
    store: LedgerStore,
    raw_body: bytes,
    accepted_currency: str = DEFAULT_CURRENCY,
) -> dict[str, Any]:
    """Process one inbound PayPal notification to its terminal state.

    Every branch returns an ``acknowledged`` result: PayPal redelivers any
    notification that is not answered with 200, so conditions this service
    can classify are resolved here and logged. The one exception is
    ``StoreUnavailableError`` from the store, which propagates so the HTTP
    layer can refuse the acknowledgment and let PayPal redeliver.

    Notifications are dropped when the verification endpoint is unreachable;
    PayPal's own redelivery schedule is the retry mechanism.

    Returns dict with:
        state: Always ``"acknowledged"``.
        outcome: An ``IPNOutcome``.
        txn_id: The transaction id, once parsed.
        reason: For ``rule_violation``: ``status``, ``currency`` or ``amount``.
        amount_cents/total_cents: For ``applied``.
    """
    fields = parse_notification(raw_body)
    if fields is None:
        logger.warning("Dropping malformed IPN (%d bytes).", len(raw_body))
        return _acknowledge(IPNOutcome.MALFORMED)

    txn_id = fields["txn_id"].strip()

    verification = await client.verify(raw_body)
    if verification.status is VerificationStatus.UNREACHABLE:
        logger.warning(
            "Dropping IPN %s: verification endpoint unreachable (%s).",
            txn_id, verification.error,
        )
        return _acknowledge(IPNOutcome.UNREACHABLE, txn_id, error=verification.error)

    if verification.status is not VerificationStatus.VERIFIED:
        logger.warning(
            "Dropping IPN %s: verification answered %r.",
            txn_id, verification.response_text,
        )
        return _acknowledge(IPNOutcome.NOT_VERIFIED, txn_id)

    status = fields.get("payment_status", "")
    if status != PAYMENT_STATUS_COMPLETED:
        logger.info("Ignoring IPN %s: payment_status is %r.", txn_id, status)
        return _acknowledge(IPNOutcome.RULE_VIOLATION, txn_id, reason="status")

    currency = fields.get("mc_currency", "")
    if currency != accepted_currency:
        logger.warning(
            "Ignoring IPN %s: currency %r is not %s.", txn_id, currency, accepted_currency,
        )
        return _acknowledge(IPNOutcome.RULE_VIOLATION, txn_id, reason="currency")

    amount_cents = parse_gross_cents(fields.get("mc_gross"))
    if amount_cents is None:
        logger.warning("Ignoring IPN %s: mc_gross %r is not a positive amount.",
                       txn_id, fields.get("mc_gross"))
        return _acknowledge(IPNOutcome.RULE_VIOLATION, txn_id, reason="amount")

    result = await store.try_apply(txn_id, amount_cents)

    if result is ApplyResult.ALREADY_APPLIED:
        logger.info("Duplicate IPN %s ignored.", txn_id)
        return _acknowledge(IPNOutcome.DUPLICATE, txn_id)

    if result is ApplyResult.REJECTED:
        logger.error("Store rejected IPN %s (%d cents).", txn_id, amount_cents)
        return _acknowledge(IPNOutcome.REJECTED, txn_id)

    total_cents = store.current_total()
    logger.info(
        "Applied IPN %s: +%d cents, total now %d cents.", txn_id, amount_cents, total_cents,
    )
    return _acknowledge(
        IPNOutcome.APPLIED, txn_id, amount_cents=amount_cents, total_cents=total_cents,
    )
