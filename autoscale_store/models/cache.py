"""API response cache models.

Requests are identified by an API name plus its parameters; every cached call
answers with an :class:`ApiCache` envelope that tells the caller where the
result came from and how old it is.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Generic, List, Optional, TypeVar

T = TypeVar("T")


class ApiCacheOption(str, Enum):
    """Cache read/write policy for an API request.

    READ_API_ONLY and READ_API_FIRST always call the API and never save;
    READ_CACHE_ONLY and READ_CACHE_AND_DELETE never call the API;
    READ_CACHE_FIRST serves a valid cache entry, otherwise calls the API and
    saves its result.
    """
    READ_API_FIRST = "ReadApiFirst"
    READ_API_ONLY = "ReadApiOnly"
    READ_CACHE_AND_DELETE = "ReadCacheAndDelete"
    READ_CACHE_FIRST = "ReadCacheFirst"
    READ_CACHE_ONLY = "ReadCacheOnly"

    @property
    def reads_cache(self) -> bool:
        return self not in (ApiCacheOption.READ_API_ONLY, ApiCacheOption.READ_API_FIRST)


@dataclass
class ApiCacheRequest:
    """Identity of a cacheable API request. ``ttl`` is in seconds."""
    api: str
    parameters: List[str] = field(default_factory=list)
    ttl: Optional[int] = None


@dataclass
class ApiCacheResult:
    """A serialized API response as held by the cache.

    ``ttl`` is in seconds; ``cache_time`` is epoch milliseconds assigned by
    the store.
    """
    stringified_data: str
    ttl: Optional[int] = None
    id: Optional[str] = None
    api: Optional[str] = None
    parameters: Optional[List[str]] = None
    cache_time: Optional[int] = None


@dataclass
class ApiCache(Generic[T]):
    """Result of a cached API call and its provenance."""
    result: Optional[T]
    hit_cache: bool
    cache_time: Optional[int]
    ttl: int
