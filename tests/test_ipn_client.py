"""Tests for the PayPal IPN verification client."""

from unittest.mock import AsyncMock

import httpx
import pytest

from ipn_ledger.constants import IPN_LIVE_URL, IPN_SANDBOX_URL
from ipn_ledger.ipn_client import (
    IPNClient,
    IPNConnectionError,
    IPNServerError,
    IPNTimeoutError,
    VerificationStatus,
)

BODY = b"txn_id=T1&payment_status=Completed&mc_currency=USD&mc_gross=25.00"


def _mock_response(status: int = 200, text: str = "VERIFIED") -> httpx.Response:
    return httpx.Response(
        status_code=status,
        text=text,
        request=httpx.Request("POST", IPN_LIVE_URL),
    )


# ---------------------------------------------------------------------------
# Init / constructor
# ---------------------------------------------------------------------------


class TestIPNClientInit:
    def test_live_by_default(self) -> None:
        client = IPNClient()
        assert client.url == IPN_LIVE_URL
        assert client.sandbox is False

    def test_sandbox_endpoint(self) -> None:
        client = IPNClient(sandbox=True)
        assert client.url == IPN_SANDBOX_URL
        assert client.sandbox is True

    def test_form_content_type(self) -> None:
        client = IPNClient()
        assert client._client.headers["content-type"] == "application/x-www-form-urlencoded"
        assert client._client.headers["user-agent"].startswith("ipn-ledger/")

    def test_timeout_configured(self) -> None:
        t = IPNClient(timeout=7.0)._client.timeout
        assert t.read == 7.0
        assert t.connect == 7.0

    def test_connect_timeout_capped(self) -> None:
        t = IPNClient(timeout=30.0)._client.timeout
        assert t.connect == 10.0
        assert t.read == 30.0


# ---------------------------------------------------------------------------
# Request body
# ---------------------------------------------------------------------------


class TestIPNClientRequest:
    @pytest.mark.asyncio
    async def test_echoes_body_after_marker(self) -> None:
        client = IPNClient()
        client._client.post = AsyncMock(return_value=_mock_response())
        await client.verify(BODY)
        client._client.post.assert_called_once_with(
            IPN_LIVE_URL, content=b"cmd=_notify-validate&" + BODY,
        )

    @pytest.mark.asyncio
    async def test_sandbox_posts_to_sandbox(self) -> None:
        client = IPNClient(sandbox=True)
        client._client.post = AsyncMock(return_value=_mock_response())
        await client.verify(BODY)
        assert client._client.post.call_args[0][0] == IPN_SANDBOX_URL

    @pytest.mark.asyncio
    async def test_body_bytes_not_reencoded(self) -> None:
        raw = b"txn_id=T1&item_name=Caf%E9+donation&memo=a%2Bb"
        client = IPNClient()
        client._client.post = AsyncMock(return_value=_mock_response())
        await client.verify(raw)
        assert client._client.post.call_args[1]["content"].endswith(raw)


# ---------------------------------------------------------------------------
# Response mapping
# ---------------------------------------------------------------------------


class TestIPNClientVerify:
    @pytest.mark.asyncio
    async def test_verified(self) -> None:
        client = IPNClient()
        client._client.post = AsyncMock(return_value=_mock_response(200, "VERIFIED"))
        result = await client.verify(BODY)
        assert result.status is VerificationStatus.VERIFIED
        assert result.verified

    @pytest.mark.asyncio
    async def test_verified_with_trailing_newline(self) -> None:
        client = IPNClient()
        client._client.post = AsyncMock(return_value=_mock_response(200, "VERIFIED\n"))
        assert (await client.verify(BODY)).verified

    @pytest.mark.asyncio
    async def test_invalid(self) -> None:
        client = IPNClient()
        client._client.post = AsyncMock(return_value=_mock_response(200, "INVALID"))
        result = await client.verify(BODY)
        assert result.status is VerificationStatus.NOT_VERIFIED
        assert result.response_text == "INVALID"
        assert not result.verified

    @pytest.mark.parametrize("text", ["", "verified", "VERIFIED-ish", "<html>"])
    @pytest.mark.asyncio
    async def test_other_tokens_not_verified(self, text) -> None:
        client = IPNClient()
        client._client.post = AsyncMock(return_value=_mock_response(200, text))
        assert (await client.verify(BODY)).status is VerificationStatus.NOT_VERIFIED

    @pytest.mark.asyncio
    async def test_4xx_not_verified(self) -> None:
        client = IPNClient()
        client._client.post = AsyncMock(return_value=_mock_response(400, "Bad Request"))
        assert (await client.verify(BODY)).status is VerificationStatus.NOT_VERIFIED

    @pytest.mark.asyncio
    async def test_5xx_unreachable(self) -> None:
        client = IPNClient()
        client._client.post = AsyncMock(return_value=_mock_response(503, "VERIFIED"))
        result = await client.verify(BODY)
        assert result.status is VerificationStatus.UNREACHABLE
        assert "IPNServerError" in result.error

    @pytest.mark.asyncio
    async def test_connect_error_unreachable(self) -> None:
        client = IPNClient()
        client._client.post = AsyncMock(side_effect=httpx.ConnectError("DNS failed"))
        result = await client.verify(BODY)
        assert result.status is VerificationStatus.UNREACHABLE
        assert "DNS failed" in result.error

    @pytest.mark.asyncio
    async def test_timeout_unreachable(self) -> None:
        client = IPNClient()
        client._client.post = AsyncMock(side_effect=httpx.ReadTimeout("read timed out"))
        result = await client.verify(BODY)
        assert result.status is VerificationStatus.UNREACHABLE
        assert "IPNTimeoutError" in result.error

    @pytest.mark.asyncio
    async def test_other_transport_error_unreachable(self) -> None:
        client = IPNClient()
        client._client.post = AsyncMock(side_effect=httpx.RemoteProtocolError("reset"))
        assert (await client.verify(BODY)).status is VerificationStatus.UNREACHABLE

    @pytest.mark.asyncio
    async def test_decoding_error_unreachable(self) -> None:
        client = IPNClient()
        client._client.post = AsyncMock(side_effect=httpx.DecodingError("bad gzip"))
        result = await client.verify(BODY)
        assert result.status is VerificationStatus.UNREACHABLE
        assert "IPNConnectionError" in result.error


# ---------------------------------------------------------------------------
# Exception mapping in _request
# ---------------------------------------------------------------------------


class TestIPNExceptionMapping:
    @pytest.mark.asyncio
    async def test_500_raises_server_error(self) -> None:
        client = IPNClient()
        client._client.post = AsyncMock(return_value=_mock_response(500, "oops"))
        with pytest.raises(IPNServerError) as exc_info:
            await client._request(BODY)
        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_connect_error(self) -> None:
        client = IPNClient()
        client._client.post = AsyncMock(side_effect=httpx.ConnectError("refused"))
        with pytest.raises(IPNConnectionError, match="refused"):
            await client._request(BODY)

    @pytest.mark.asyncio
    async def test_timeout_error(self) -> None:
        client = IPNClient()
        client._client.post = AsyncMock(side_effect=httpx.ConnectTimeout("slow"))
        with pytest.raises(IPNTimeoutError, match="slow"):
            await client._request(BODY)

    @pytest.mark.asyncio
    async def test_request_error_maps_to_connection_error(self) -> None:
        client = IPNClient()
        client._client.post = AsyncMock(side_effect=httpx.DecodingError("bad gzip"))
        with pytest.raises(IPNConnectionError, match="bad gzip"):
            await client._request(BODY)


# ---------------------------------------------------------------------------
# Context manager
# ---------------------------------------------------------------------------


class TestIPNClientContextManager:
    @pytest.mark.asyncio
    async def test_async_with(self) -> None:
        async with IPNClient() as client:
            assert isinstance(client, IPNClient)
        assert client._client.is_closed

    @pytest.mark.asyncio
    async def test_close(self) -> None:
        client = IPNClient()
        assert not client._client.is_closed
        await client.close()
        assert client._client.is_closed
