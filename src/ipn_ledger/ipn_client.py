"""Async HTTP client for PayPal's IPN verification endpoint."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

import httpx

from ipn_ledger import __version__
from ipn_ledger.constants import (
    IPN_LIVE_URL,
    IPN_SANDBOX_URL,
    IPN_VALIDATE_MARKER,
    IPN_VERIFIED_TOKEN,
)


# ---------------------------------------------------------------------------
# Exception hierarchy
# ---------------------------------------------------------------------------


class IPNError(Exception):
    """Base exception for the verification round trip."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class IPNServerError(IPNError):
    """5xx: PayPal-side error (retryable by redelivery)."""


class IPNConnectionError(IPNError):
    """Network/DNS failure."""


class IPNTimeoutError(IPNError):
    """Request timeout."""


# ---------------------------------------------------------------------------
# Verification result
# ---------------------------------------------------------------------------


class VerificationStatus(str, Enum):
    VERIFIED = "verified"
    NOT_VERIFIED = "not_verified"
    UNREACHABLE = "unreachable"


@dataclass(frozen=True)
class VerificationResult:
    status: VerificationStatus
    response_text: str = ""
    error: str | None = None

    @property
    def verified(self) -> bool:
        return self.status is VerificationStatus.VERIFIED


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class IPNClient:
    """Async client for the PayPal IPN ``_notify-validate`` handshake.

    The notification body is echoed byte-for-byte after the validation
    marker; PayPal answers ``VERIFIED`` or ``INVALID``. ``sandbox`` selects
    the endpoint and changes nothing else.
    """

    def __init__(self, sandbox: bool = False, timeout: float = 30.0) -> None:
        self._url = IPN_SANDBOX_URL if sandbox else IPN_LIVE_URL
        self._sandbox = sandbox
        self._client = httpx.AsyncClient(
            headers={
                "Content-Type": "application/x-www-form-urlencoded",
                "User-Agent": f"ipn-ledger/{__version__}",
            },
            timeout=httpx.Timeout(timeout, connect=min(timeout, 10.0)),
        )

    @property
    def url(self) -> str:
        return self._url

    @property
    def sandbox(self) -> bool:
        return self._sandbox

    # -- internal request dispatcher -----------------------------------------

    async def _request(self, raw_body: bytes) -> str:
        """POST the validation message and return the response text.

        Transport failures and 5xx answers raise the IPN exception hierarchy.
        """
        content = IPN_VALIDATE_MARKER + b"&" + raw_body if raw_body else IPN_VALIDATE_MARKER
        try:
            response = await self._client.post(self._url, content=content)
        except httpx.ConnectError as exc:
            raise IPNConnectionError(str(exc)) from exc
        except httpx.TimeoutException as exc:
            raise IPNTimeoutError(str(exc)) from exc
        except httpx.TransportError as exc:
            raise IPNConnectionError(str(exc)) from exc
        except httpx.RequestError as exc:
            raise IPNConnectionError(str(exc)) from exc

        if response.status_code >= 500:
            raise IPNServerError(response.text, status_code=response.status_code)

        return response.text

    # -- public API -----------------------------------------------------------

    async def verify(self, raw_body: bytes) -> VerificationResult:
        """Ask PayPal whether ``raw_body`` is a genuine notification."""
        try:
            text = await self._request(raw_body)
        except IPNError as exc:
            return VerificationResult(
                status=VerificationStatus.UNREACHABLE,
                error=f"{type(exc).__name__}: {exc}",
            )

        text = text.strip()
        if text == IPN_VERIFIED_TOKEN:
            return VerificationResult(VerificationStatus.VERIFIED, response_text=text)
        return VerificationResult(VerificationStatus.NOT_VERIFIED, response_text=text)

    # -- lifecycle ------------------------------------------------------------

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> IPNClient:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()
