"""HTTP access: cached / retrying API client, credentials and persistent stores."""

from storefront.http.client import ApiClient, ApiResponse
from storefront.http.credentials import TokenStore
from storefront.http.response_cache import CacheEnvelope, ResponseCache
from storefront.http.store import KeyValueStore, MemoryKeyValueStore, RedisKeyValueStore

__all__ = [
    'ApiClient',
    'ApiResponse',
    'TokenStore',
    'CacheEnvelope',
    'ResponseCache',
    'KeyValueStore',
    'MemoryKeyValueStore',
    'RedisKeyValueStore',
]
