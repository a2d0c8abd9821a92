"""Constants for PayPal IPN verification and donation accounting."""

from enum import Enum


IPN_LIVE_URL = "https://ipnpb.paypal.com/cgi-bin/webscr"
IPN_SANDBOX_URL = "https://ipnpb.sandbox.paypal.com/cgi-bin/webscr"

# Prefixed to the echoed notification body on the verification round trip.
IPN_VALIDATE_MARKER = b"cmd=_notify-validate"
IPN_VERIFIED_TOKEN = "VERIFIED"

PAYMENT_STATUS_COMPLETED = "Completed"
DEFAULT_CURRENCY = "USD"

CENTS_PER_UNIT = 100

# Upper bound on a single notification amount ($100,000,000.00).
MAX_AMOUNT_CENTS = 10_000_000_000


class IPNOutcome(str, Enum):
    """Terminal outcome of one inbound notification. All of them acknowledge."""

    MALFORMED = "malformed"
    UNREACHABLE = "unreachable"
    NOT_VERIFIED = "not_verified"
    RULE_VIOLATION = "rule_violation"
    DUPLICATE = "duplicate"
    REJECTED = "rejected"
    APPLIED = "applied"
