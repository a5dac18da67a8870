"""Store-backed cache of serialized API responses.

Entries are keyed by a deterministic id derived from the API name and its
parameters, so refreshing a response overwrites the previous row instead of
adding a new one. Entries are derived data: writes skip the optimistic
concurrency checks and the last writer wins.
"""

import time
from typing import Any, Optional, Sequence

from autoscale_store.constants import CACHE_ID_SEPARATOR, DEFAULT_API_CACHE_TTL
from autoscale_store.core.database import Clock
from autoscale_store.core.exceptions import DbDeleteError, DbErrorCode, DbReadError, DbSaveError
from autoscale_store.core.logging import get_logger, log_cache_operation
from autoscale_store.models.cache import ApiCacheRequest, ApiCacheResult
from autoscale_store.models.tables import ApiRequestCacheItem, ApiRequestCacheTable, SaveCondition
from autoscale_store.services.store import DocumentStoreClient

logger = get_logger(__name__)


def generate_cache_id(api: str, parameters: Sequence[Any]) -> str:
    """Build the cache id ``<api>-<parameter1>-<parameter2>...``."""
    return CACHE_ID_SEPARATOR.join([api, *(str(p) for p in parameters)])


def is_cache_valid(cache_time: Optional[int], ttl: Optional[int], now: int) -> bool:
    """Check the TTL rule: valid while ``cache_time + ttl * 1000 > now``.

    Args:
        cache_time: Entry write time, epoch milliseconds.
        ttl: Time to live in seconds.
        now: Current time, epoch milliseconds.
    """
    if cache_time is None or ttl is None:
        return False
    return cache_time + ttl * 1000 > now


class ApiCacheStore:
    """Read, write and delete cached API responses."""

    def __init__(self, store: DocumentStoreClient, clock: Clock = time.time,
                 default_ttl: int = DEFAULT_API_CACHE_TTL):
        self.store = store
        self.clock = clock
        self.default_ttl = default_ttl
        self.table = ApiRequestCacheTable()

    def now(self) -> int:
        """Current time in epoch milliseconds."""
        return int(self.clock() * 1000)

    async def _get_entry(self, cache_id: str) -> Optional[ApiRequestCacheItem]:
        try:
            return await self.store.get_item(self.table, cache_id)
        except DbReadError as e:
            if e.code == DbErrorCode.NOT_FOUND:
                return None
            raise

    async def read_cache(self, req: ApiCacheRequest) -> Optional[ApiCacheResult]:
        """Read the cached response of an API request.

        Returns:
            The cached result, or None when there is no entry or it expired.
            The request ttl, when given, overrides the entry's own ttl.
        """
        cache_id = generate_cache_id(req.api, req.parameters)
        item = await self._get_entry(cache_id)
        if item is None:
            log_cache_operation(logger, "read", cache_id, hit=False)
            return None

        entry_ttl = item.ttl // 1000 if item.ttl is not None else None
        ttl = req.ttl or entry_ttl
        if not is_cache_valid(item.cache_time, ttl, self.now()):
            log_cache_operation(logger, "read", cache_id, hit=False, expired=True)
            return None

        log_cache_operation(logger, "read", cache_id, hit=True, cache_time=item.cache_time)
        return ApiCacheResult(
            id=item.id,
            api=req.api,
            parameters=list(req.parameters),
            stringified_data=item.res,
            ttl=entry_ttl,
            cache_time=item.cache_time,
        )

    async def delete_cache(self, req: ApiCacheRequest) -> None:
        """Delete the cached response of an API request, without consistency checks."""
        cache_id = generate_cache_id(req.api, req.parameters)
        item = ApiRequestCacheItem(id=cache_id)
        await self.store.delete_item(self.table, item, ensure_consistency=False)
        log_cache_operation(logger, "delete", cache_id)

    async def write_cache(self, res: ApiCacheResult) -> ApiCacheResult:
        """Save the response of an API request to cache.

        The entry is identified by ``res.id`` or, when absent, by the id
        generated from ``res.api`` and ``res.parameters``.

        Returns:
            ``res`` with its id and the store-assigned cache time filled in.

        Raises:
            DbSaveError: InvalidArgument if the entry cannot be identified.
        """
        if not (res.id or (res.api and res.parameters is not None)):
            raise DbSaveError(
                DbErrorCode.INVALID_ARGUMENT,
                "Invalid cache result to save. id, or api and parameters are required.",
                table=self.table.name
            )
        cache_id = res.id or generate_cache_id(res.api, res.parameters)

        if res.ttl:
            ttl_millis = res.ttl * 1000
        else:
            existing = await self._get_entry(cache_id)
            if existing is not None and existing.ttl is not None:
                ttl_millis = existing.ttl
            else:
                ttl_millis = self.default_ttl * 1000

        item = ApiRequestCacheItem(id=cache_id, res=res.stringified_data, ttl=ttl_millis)
        saved = await self.store.save_item(
            self.table, item, SaveCondition.UPSERT, ensure_consistency=False
        )
        log_cache_operation(logger, "write", cache_id, ttl=ttl_millis // 1000,
                            cache_time=saved.cache_time)

        res.id = cache_id
        res.ttl = ttl_millis // 1000
        res.cache_time = saved.cache_time
        return res

    async def purge_expired(self) -> int:
        """Remove all expired cache entries. Returns count deleted."""
        now = self.now()
        entries = await self.store.list_items(self.table)
        count = 0
        for item in entries.result:
            ttl = item.ttl // 1000 if item.ttl is not None else None
            if is_cache_valid(item.cache_time, ttl, now):
                continue
            try:
                await self.store.delete_item(self.table, item, ensure_consistency=False)
            except DbDeleteError as e:
                if e.code != DbErrorCode.NOT_FOUND:
                    raise
                # Already evicted by another writer
                continue
            count += 1

        if count > 0:
            logger.info("Cleaned up expired cache entries", count=count)
        return count
