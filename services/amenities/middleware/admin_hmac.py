"""
HMAC-SHA256 verification for moderator requests.

Moderator calls to /api/admin/* are signed by the admin proxy; a browser
cannot produce a valid signature without ADMIN_HMAC_SECRET.

Canonical string: METHOD|normalizedPath|sortedQueryString|timestamp|moderatorId|bodyHash
"""

import hashlib
import hmac
import re
import time

from fastapi import HTTPException, Request

from services.amenities.config import settings

SIGNATURE_HEADER = "X-Admin-Signature"
TIMESTAMP_HEADER = "X-Admin-Timestamp"
MODERATOR_HEADER = "X-Admin-User-Id"
BODY_HASH_HEADER = "X-Admin-Body-Hash"


# ---------------------------------------------------------------------------
# Canonical form
# ---------------------------------------------------------------------------

def normalize_path(path: str) -> str:
    """Lowercase, collapse //, strip trailing /. Rejects '..' segments."""
    normalized = re.sub(r"/+", "/", path.lower())
    if len(normalized) > 1 and normalized.endswith("/"):
        normalized = normalized[:-1]
    if ".." in normalized.split("/"):
        raise HTTPException(status_code=400, detail="Path traversal detected")
    return normalized


def sort_query_string(query_string: str) -> str:
    if not query_string:
        return ""
    return "&".join(sorted(p for p in query_string.split("&") if p))


def compute_body_hash(body: bytes) -> str:
    return hashlib.sha256(body).hexdigest()


def canonical_string(
    method: str, path: str, query_string: str, timestamp: int, moderator_id: str, body_hash: str
) -> str:
    return "|".join([
        method.upper(),
        normalize_path(path),
        sort_query_string(query_string),
        str(timestamp),
        moderator_id,
        body_hash,
    ])


def sign(secret: str, canonical: str) -> str:
    return hmac.new(secret.encode("utf-8"), canonical.encode("utf-8"), hashlib.sha256).hexdigest()


def signed_headers(
    secret: str,
    method: str,
    path: str,
    moderator_id: str,
    body: bytes = b"",
    query_string: str = "",
    timestamp: int | None = None,
) -> dict[str, str]:
    """Headers the admin proxy attaches to a moderator request."""
    ts = int(time.time()) if timestamp is None else timestamp
    body_hash = compute_body_hash(body)
    canonical = canonical_string(method, path, query_string, ts, moderator_id, body_hash)
    return {
        SIGNATURE_HEADER: sign(secret, canonical),
        TIMESTAMP_HEADER: str(ts),
        MODERATOR_HEADER: moderator_id,
        BODY_HASH_HEADER: body_hash,
    }


# ---------------------------------------------------------------------------
# Verification
# ---------------------------------------------------------------------------

async def verify_moderator_signature(request: Request) -> str:
    """
    Verify the signed moderator headers and return the moderator id.

    Raises HTTPException: 503 when no secret is configured, 401 on a
    missing header, stale timestamp, body hash mismatch or bad signature.
    """
    secret = settings.admin_hmac_secret
    if not secret:
        raise HTTPException(status_code=503, detail="Moderation is not configured")

    signature = request.headers.get(SIGNATURE_HEADER)
    timestamp_str = request.headers.get(TIMESTAMP_HEADER)
    moderator_id = request.headers.get(MODERATOR_HEADER)
    body_hash_header = request.headers.get(BODY_HASH_HEADER)

    if not all([signature, timestamp_str, moderator_id, body_hash_header]):
        raise HTTPException(status_code=401, detail="Missing required HMAC headers")

    try:
        timestamp = int(timestamp_str)  # type: ignore[arg-type]
    except (ValueError, TypeError):
        raise HTTPException(status_code=401, detail="Invalid timestamp format")

    if abs(int(time.time()) - timestamp) > settings.admin_replay_window_s:
        raise HTTPException(status_code=401, detail="Request timestamp expired")

    # Raw body, before any JSON parsing
    body_hash = compute_body_hash(await request.body())
    if not hmac.compare_digest(body_hash, body_hash_header):  # type: ignore[arg-type]
        raise HTTPException(status_code=401, detail="Body hash mismatch")

    canonical = canonical_string(
        request.method, request.url.path, request.url.query or "", timestamp, moderator_id, body_hash,  # type: ignore[arg-type]
    )
    if not hmac.compare_digest(sign(secret, canonical), signature):  # type: ignore[arg-type]
        raise HTTPException(status_code=401, detail="Invalid signature")

    return moderator_id  # type: ignore[return-value]
