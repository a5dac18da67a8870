"""API request caching policies.

Sending every read straight to the cloud management API quickly runs into its
request throttling limits. ``RequestCache`` decides per request whether to
serve from cache, call the API, or both, and reports where the answer came
from so callers can reason about staleness.

Policy behaviour (hit / miss):
- READ_API_ONLY, READ_API_FIRST: cache not read; call API, never save
- READ_CACHE_ONLY: cached result / None, API not called
- READ_CACHE_AND_DELETE: delete entry and return it / None, API not called
- READ_CACHE_FIRST: cached result / call API and save a non-None result
"""

import json
import time
from typing import Awaitable, Callable, Optional, TypeVar

from autoscale_store.constants import DEFAULT_API_CACHE_TTL
from autoscale_store.core.logging import get_logger, log_execution_time
from autoscale_store.models.cache import ApiCache, ApiCacheOption, ApiCacheRequest, ApiCacheResult
from autoscale_store.services.api_cache import ApiCacheStore, generate_cache_id

logger = get_logger(__name__)

D = TypeVar("D")


class RequestCache:
    """Runs API requests through the cache according to an ApiCacheOption."""

    def __init__(self, api_cache: ApiCacheStore, default_ttl: int = DEFAULT_API_CACHE_TTL):
        self.api_cache = api_cache
        self.default_ttl = default_ttl

    async def request_with_caching(
        self,
        req: ApiCacheRequest,
        cache_option: ApiCacheOption,
        data_processor: Callable[[], Awaitable[Optional[D]]],
    ) -> ApiCache[D]:
        """Send an API request applying a caching strategy.

        Args:
            req: Identity and ttl of the request.
            cache_option: Caching behaviour for this request.
            data_processor: Coroutine function performing the API call and
                returning its JSON-serializable payload, or None.

        Returns:
            ApiCache with the result and whether it came from cache.
        """
        ttl = req.ttl or self.default_ttl
        cache_id = generate_cache_id(req.api, req.parameters)
        cached: Optional[ApiCacheResult] = None
        cache_time: Optional[int] = None
        data: Optional[D] = None

        if cache_option.reads_cache:
            cached = await self.api_cache.read_cache(req)
            if cached is not None:
                cache_time = cached.cache_time
                data = json.loads(cached.stringified_data)

        hit_cache = cached is not None

        if cache_option in (ApiCacheOption.READ_CACHE_ONLY, ApiCacheOption.READ_CACHE_AND_DELETE):
            if cache_option == ApiCacheOption.READ_CACHE_AND_DELETE and hit_cache:
                await self.api_cache.delete_cache(req)
                cache_time = 0
        elif not hit_cache:
            start_time = time.time()
            data = await data_processor()
            log_execution_time(logger, req.api, start_time, time.time(),
                               cache_id=cache_id, cache_option=cache_option.value)

            if data is not None and cache_option == ApiCacheOption.READ_CACHE_FIRST:
                saved = await self.api_cache.write_cache(ApiCacheResult(
                    api=req.api,
                    parameters=list(req.parameters),
                    stringified_data=json.dumps(data, default=str),
                    ttl=req.ttl,
                ))
                cache_time = saved.cache_time

        return ApiCache(result=data, hit_cache=hit_cache, cache_time=cache_time, ttl=ttl)
