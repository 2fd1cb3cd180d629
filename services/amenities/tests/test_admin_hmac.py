"""
Tests for moderator HMAC-SHA256 verification (admin_hmac.py).

Validates canonical-string construction, replay window enforcement,
header requirements and body integrity.
"""

import hashlib
import hmac as hmac_mod
import time
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import HTTPException

from services.amenities.config import settings
from services.amenities.middleware.admin_hmac import (
    canonical_string,
    compute_body_hash,
    normalize_path,
    signed_headers,
    sort_query_string,
    verify_moderator_signature,
)

SECRET = "a1b2c3d4e5f6a1b2c3d4e5f6a1b2c3d4e5f6a1b2c3d4e5f6a1b2c3d4e5f6a1b2"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_request(
    method: str,
    path: str,
    query: str = "",
    body: bytes = b"",
    headers: dict[str, str] | None = None,
) -> MagicMock:
    """Build a mock FastAPI Request with the given attributes."""
    req = MagicMock()
    req.method = method

    url = MagicMock()
    url.path = path
    url.query = query
    req.url = url

    _headers = headers or {}
    req.headers = MagicMock()
    req.headers.get = lambda key, default=None: _headers.get(key, default)

    req.body = AsyncMock(return_value=body)
    return req


def _make_signed_request(
    method: str,
    path: str,
    query: str = "",
    body: bytes = b"",
    timestamp: int | None = None,
    moderator_id: str = "mod-1",
    header_overrides: dict[str, str | None] | None = None,
) -> MagicMock:
    """Mock request with valid headers, then optional overrides (None removes a header)."""
    headers = signed_headers(SECRET, method, path, moderator_id, body=body, query_string=query, timestamp=timestamp)
    for k, v in (header_overrides or {}).items():
        if v is None:
            headers.pop(k, None)
        else:
            headers[k] = v
    return _make_request(method, path, query, body, headers)


@pytest.fixture(autouse=True)
def _set_hmac_secret(monkeypatch):
    monkeypatch.setattr(settings, "admin_hmac_secret", SECRET)


# ---------------------------------------------------------------------------
# Canonical form
# ---------------------------------------------------------------------------


class TestCanonicalForm:

    @pytest.mark.parametrize("raw,expected", [
        ("/api/admin/Reviews/", "/api/admin/reviews"),
        ("//api//admin", "/api/admin"),
        ("/", "/"),
    ])
    def test_normalize_path(self, raw, expected):
        assert normalize_path(raw) == expected

    def test_path_traversal_rejected(self):
        with pytest.raises(HTTPException) as exc_info:
            normalize_path("/api/admin/../secrets")
        assert exc_info.value.status_code == 400

    def test_sort_query_string(self):
        assert sort_query_string("b=2&a=1&&c=3") == "a=1&b=2&c=3"
        assert sort_query_string("") == ""

    def test_canonical_string_layout(self):
        body_hash = compute_body_hash(b"{}")
        canonical = canonical_string("post", "/API/admin/", "z=1&a=2", 1700000000, "mod-1", body_hash)
        assert canonical == f"POST|/api/admin|a=2&z=1|1700000000|mod-1|{body_hash}"

    def test_signed_headers_match_manual_hmac(self):
        headers = signed_headers(SECRET, "GET", "/api/admin/stats", "mod-1", timestamp=1700000000)
        body_hash = hashlib.sha256(b"").hexdigest()
        canonical = f"GET|/api/admin/stats||1700000000|mod-1|{body_hash}"
        expected = hmac_mod.new(SECRET.encode(), canonical.encode(), hashlib.sha256).hexdigest()
        assert headers["X-Admin-Signature"] == expected
        assert headers["X-Admin-Body-Hash"] == body_hash


# ---------------------------------------------------------------------------
# Verification
# ---------------------------------------------------------------------------


class TestVerify:

    async def test_valid_signature_returns_moderator(self):
        req = _make_signed_request("POST", "/api/admin/reviews/moderate", body=b'{"reviewId": 1}')
        assert await verify_moderator_signature(req) == "mod-1"

    async def test_query_order_does_not_matter(self):
        headers = signed_headers(SECRET, "GET", "/api/admin/actions", "mod-1", query_string="limit=5&b=1")
        req = _make_request("GET", "/api/admin/actions", "b=1&limit=5", headers=headers)
        assert await verify_moderator_signature(req) == "mod-1"

    @pytest.mark.parametrize("header", [
        "X-Admin-Signature", "X-Admin-Timestamp", "X-Admin-User-Id", "X-Admin-Body-Hash",
    ])
    async def test_missing_header(self, header):
        req = _make_signed_request("GET", "/api/admin/stats", header_overrides={header: None})
        with pytest.raises(HTTPException) as exc_info:
            await verify_moderator_signature(req)
        assert exc_info.value.status_code == 401

    async def test_non_integer_timestamp(self):
        req = _make_signed_request("GET", "/api/admin/stats", header_overrides={"X-Admin-Timestamp": "soon"})
        with pytest.raises(HTTPException) as exc_info:
            await verify_moderator_signature(req)
        assert exc_info.value.detail == "Invalid timestamp format"

    async def test_expired_timestamp(self):
        stale = int(time.time()) - settings.admin_replay_window_s - 5
        req = _make_signed_request("GET", "/api/admin/stats", timestamp=stale)
        with pytest.raises(HTTPException) as exc_info:
            await verify_moderator_signature(req)
        assert exc_info.value.detail == "Request timestamp expired"

    async def test_tampered_body(self):
        req = _make_signed_request("POST", "/api/admin/reviews/moderate", body=b'{"status": "approved"}')
        req.body = AsyncMock(return_value=b'{"status": "rejected"}')
        with pytest.raises(HTTPException) as exc_info:
            await verify_moderator_signature(req)
        assert exc_info.value.detail == "Body hash mismatch"

    async def test_other_moderator_id(self):
        req = _make_signed_request("GET", "/api/admin/stats", header_overrides={"X-Admin-User-Id": "mod-2"})
        with pytest.raises(HTTPException) as exc_info:
            await verify_moderator_signature(req)
        assert exc_info.value.detail == "Invalid signature"

    async def test_wrong_secret(self):
        headers = signed_headers("not-the-secret", "GET", "/api/admin/stats", "mod-1")
        req = _make_request("GET", "/api/admin/stats", headers=headers)
        with pytest.raises(HTTPException) as exc_info:
            await verify_moderator_signature(req)
        assert exc_info.value.status_code == 401

    async def test_unconfigured_secret_is_503(self, monkeypatch):
        monkeypatch.setattr(settings, "admin_hmac_secret", "")
        req = _make_signed_request("GET", "/api/admin/stats")
        with pytest.raises(HTTPException) as exc_info:
            await verify_moderator_signature(req)
        assert exc_info.value.status_code == 503
