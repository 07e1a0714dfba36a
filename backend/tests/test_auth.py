"""Tests for bearer credential verification."""

import httpx
import pytest
from httpx import AsyncClient

from chat_gateway.auth.verifier import IdentityVerifier, extract_bearer


@pytest.mark.parametrize(
    ("header", "expected"),
    [
        ("Bearer abc.def", "abc.def"),
        ("Bearer  abc", "abc"),
        (None, None),
        ("", None),
        ("Basic abc", None),
        ("bearer abc", None),
        ("Bearer", None),
        ("Bearer a b", None),
    ],
)
def test_extract_bearer(header, expected) -> None:
    assert extract_bearer(header) == expected


def _verifier(handler) -> IdentityVerifier:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return IdentityVerifier("https://id.example.com/", "anon-key", client=client)


@pytest.mark.asyncio
async def test_valid_token_returns_caller_id() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"id": "user-1", "email": "a@example.com"})

    verifier = _verifier(handler)
    assert await verifier.verify("Bearer good-token") == "user-1"

    request = seen[0]
    assert str(request.url) == "https://id.example.com/auth/v1/user"
    assert request.headers["authorization"] == "Bearer good-token"
    assert request.headers["apikey"] == "anon-key"


@pytest.mark.asyncio
async def test_rejected_token_returns_none() -> None:
    verifier = _verifier(lambda request: httpx.Response(401, json={"msg": "invalid JWT"}))
    assert await verifier.verify("Bearer expired") is None


@pytest.mark.asyncio
async def test_provider_outage_returns_none() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    assert await _verifier(handler).verify("Bearer token") is None


@pytest.mark.asyncio
async def test_malformed_provider_body_returns_none() -> None:
    assert await _verifier(lambda r: httpx.Response(200, text="<html>")).verify("Bearer t") is None
    assert await _verifier(lambda r: httpx.Response(200, json={"email": "x"})).verify("Bearer t") is None


@pytest.mark.asyncio
async def test_missing_header_skips_provider() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("provider should not be called")

    verifier = _verifier(handler)
    assert await verifier.verify(None) is None
    assert await verifier.verify("Token abc") is None


@pytest.mark.asyncio
@pytest.mark.parametrize("path", ["/chat", "/search", "/sessions"])
async def test_protected_endpoints_require_credential(client: AsyncClient, path: str) -> None:
    if path == "/sessions":
        response = await client.get(path)
    else:
        response = await client.post(path, json={"message": "hi", "query": "hi"})
    assert response.status_code == 401
    assert response.json() == {"error": "Unauthorized"}


@pytest.mark.asyncio
async def test_unknown_token_is_unauthorized(client: AsyncClient, fake_db) -> None:
    response = await client.post(
        "/chat",
        json={"message": "hi"},
        headers={"Authorization": "Bearer nobody"},
    )
    assert response.status_code == 401
    assert fake_db["chat_sessions"].docs == []
