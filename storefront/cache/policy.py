"""
Storefront caching policy: what gets cached, TTLs, retry and invalidation rules.

Imported by core/config.py for defaults and by the HTTP layer for cache-key
generation.

Architecture:
  Remote API      → source of truth (products, variants, stock, carts)
  Entity cache    → in-process product records (partial / full, TTL on full)
  Response cache  → GET bodies, mirrored to a persistent key-value store
"""

import json
from typing import Any, Mapping, Optional

# ────────────────────────────────────────────────────────────────────────────
# Cache Policy Table
# ────────────────────────────────────────────────────────────────────────────
#
# Data Type        | Key Pattern                    | TTL     | Expiry
# -----------------+--------------------------------+---------+---------------------------
# Product (full)   | {product_id}                   | 60 sec  | refetched on next read
# Product (partial)| {product_id}                   | none    | replaced by a full fetch
# GET response     | cache_{path}_{sorted params}   | 60 sec  | refetched on next read
# Auth token       | userToken                      | none    | cleared on HTTP 401
#
# ────────────────────────────────────────────────────────────────────────────
# Invalidation
# ────────────────────────────────────────────────────────────────────────────
#
# Primary: TTL-based.
# Secondary: explicit invalidation for known mutations:
#   - any non-GET request that succeeds → drop GET envelopes of the same
#     resource family (first path segment: /carts/add invalidates /carts)
#   - HTTP 401 → clear token, drop envelopes fetched with that token
#   - cart / product updates → EntityCache.invalidate(product_id)
#
# A full product entry is never downgraded by a partial seed from a listing.

DEFAULT_ENTITY_TTL = 60           # seconds
DEFAULT_HTTP_CACHE_TTL = 60       # seconds
DEFAULT_MAX_RETRIES = 2           # attempts after the first one
DEFAULT_RETRY_BASE_DELAY = 1.0    # seconds, doubled per attempt

# Status codes worth retrying on an idempotent read
RETRYABLE_STATUS_CODES = (408, 429, 502, 503, 504)

CACHE_KEY_PREFIX = "cache_"
TOKEN_KEY = "userToken"

READ_METHODS = frozenset({"GET", "HEAD"})


def backoff_delay(attempt: int, base_delay: float = DEFAULT_RETRY_BASE_DELAY) -> float:
    """Delay before retry number `attempt` (1-based): base, 2*base, 4*base..."""
    return base_delay * (2 ** (attempt - 1))


def make_request_key(path: str, params: Optional[Mapping[str, Any]] = None) -> str:
    """
    Generate a deterministic cache key for a GET request.

    Params are sorted by key so identical queries produce identical keys
    regardless of dict ordering. None values are dropped.
    """
    stable_params = {
        str(k): v for k, v in sorted((params or {}).items(), key=lambda kv: str(kv[0]))
        if v is not None
    }
    return f"{normalize_path(path)}_{json.dumps(stable_params, sort_keys=True, default=str)}"


def normalize_path(path: str) -> str:
    """Leading slash, no trailing slash, no duplicate slashes."""
    parts = [p for p in str(path or "").split("?")[0].split("/") if p]
    return "/" + "/".join(parts)


def resource_family(path: str) -> str:
    """First path segment; writes invalidate every cached read in the same family."""
    parts = [p for p in normalize_path(path).split("/") if p]
    return parts[0] if parts else ""
