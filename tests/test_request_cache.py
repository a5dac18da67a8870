"""Unit tests for the request caching policies."""

import json

import pytest

from autoscale_store.core.exceptions import DbErrorCode, DbReadError
from autoscale_store.models.cache import ApiCacheOption, ApiCacheRequest, ApiCacheResult
from autoscale_store.services.request_cache import RequestCache


class Origin:
    """Stand-in for an API call that counts invocations."""

    def __init__(self, data):
        self.data = data
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        return self.data


@pytest.fixture
def request_():
    return ApiCacheRequest(api="listInstances", parameters=["vmss-A"], ttl=600)


@pytest.fixture
def origin():
    return Origin([{"instance_id": "0"}])


@pytest.fixture
async def cached(api_cache):
    """Seed a cache entry that differs from what the origin returns."""
    return await api_cache.write_cache(ApiCacheResult(
        stringified_data=json.dumps([{"instance_id": "cached"}]),
        api="listInstances",
        parameters=["vmss-A"],
        ttl=600,
    ))


class TestReadCacheFirst:
    """Test cases for ReadCacheFirst."""

    @pytest.mark.asyncio
    async def test_miss_calls_origin_and_saves(self, request_cache, api_cache, request_, origin, clock):
        result = await request_cache.request_with_caching(request_, ApiCacheOption.READ_CACHE_FIRST, origin)

        assert origin.calls == 1
        assert result.result == [{"instance_id": "0"}]
        assert result.hit_cache is False
        assert result.cache_time == int(clock.now) * 1000
        assert result.ttl == 600
        stored = await api_cache.read_cache(request_)
        assert json.loads(stored.stringified_data) == [{"instance_id": "0"}]

    @pytest.mark.asyncio
    async def test_hit_serves_cache(self, request_cache, request_, origin, cached):
        result = await request_cache.request_with_caching(request_, ApiCacheOption.READ_CACHE_FIRST, origin)

        assert origin.calls == 0
        assert result.result == [{"instance_id": "cached"}]
        assert result.hit_cache is True
        assert result.cache_time == cached.cache_time

    @pytest.mark.asyncio
    async def test_second_call_hits(self, request_cache, request_, origin):
        await request_cache.request_with_caching(request_, ApiCacheOption.READ_CACHE_FIRST, origin)
        result = await request_cache.request_with_caching(request_, ApiCacheOption.READ_CACHE_FIRST, origin)

        assert origin.calls == 1
        assert result.hit_cache is True
        assert result.result == [{"instance_id": "0"}]

    @pytest.mark.asyncio
    async def test_expired_entry_calls_origin(self, request_cache, request_, origin, cached, clock):
        clock.advance(600)

        result = await request_cache.request_with_caching(request_, ApiCacheOption.READ_CACHE_FIRST, origin)

        assert origin.calls == 1
        assert result.hit_cache is False
        assert result.cache_time == int(clock.now) * 1000

    @pytest.mark.asyncio
    async def test_none_result_is_not_saved(self, request_cache, api_cache, request_):
        origin = Origin(None)

        result = await request_cache.request_with_caching(request_, ApiCacheOption.READ_CACHE_FIRST, origin)

        assert result.result is None
        assert result.hit_cache is False
        assert result.cache_time is None
        assert await api_cache.read_cache(request_) is None

    @pytest.mark.asyncio
    async def test_origin_error_propagates(self, request_cache, api_cache, request_):
        async def failing():
            raise ConnectionError("throttled")

        with pytest.raises(ConnectionError):
            await request_cache.request_with_caching(request_, ApiCacheOption.READ_CACHE_FIRST, failing)

        assert await api_cache.read_cache(request_) is None

    @pytest.mark.asyncio
    async def test_store_error_propagates(self, request_cache, api_cache, request_, origin, monkeypatch):
        async def broken_read(req):
            raise DbReadError(DbErrorCode.UNEXPECTED_RESPONSE, "store unavailable")

        monkeypatch.setattr(api_cache, "read_cache", broken_read)

        with pytest.raises(DbReadError):
            await request_cache.request_with_caching(request_, ApiCacheOption.READ_CACHE_FIRST, origin)

        assert origin.calls == 0


class TestReadCacheOnly:
    """Test cases for ReadCacheOnly."""

    @pytest.mark.asyncio
    async def test_hit(self, request_cache, request_, origin, cached):
        result = await request_cache.request_with_caching(request_, ApiCacheOption.READ_CACHE_ONLY, origin)

        assert origin.calls == 0
        assert result.result == [{"instance_id": "cached"}]
        assert result.hit_cache is True

    @pytest.mark.asyncio
    async def test_miss_does_not_call_origin(self, request_cache, request_, origin):
        result = await request_cache.request_with_caching(request_, ApiCacheOption.READ_CACHE_ONLY, origin)

        assert origin.calls == 0
        assert result.result is None
        assert result.hit_cache is False
        assert result.cache_time is None


class TestReadCacheAndDelete:
    """Test cases for ReadCacheAndDelete."""

    @pytest.mark.asyncio
    async def test_hit_returns_and_deletes(self, request_cache, api_cache, request_, origin, cached):
        result = await request_cache.request_with_caching(
            request_, ApiCacheOption.READ_CACHE_AND_DELETE, origin
        )

        assert origin.calls == 0
        assert result.result == [{"instance_id": "cached"}]
        assert result.hit_cache is True
        assert result.cache_time == 0
        assert await api_cache.read_cache(request_) is None

    @pytest.mark.asyncio
    async def test_miss(self, request_cache, request_, origin):
        result = await request_cache.request_with_caching(
            request_, ApiCacheOption.READ_CACHE_AND_DELETE, origin
        )

        assert origin.calls == 0
        assert result.result is None
        assert result.hit_cache is False


@pytest.mark.parametrize("option", [ApiCacheOption.READ_API_ONLY, ApiCacheOption.READ_API_FIRST])
class TestReadApi:
    """Test cases for the API-first options."""

    @pytest.mark.asyncio
    async def test_calls_origin_despite_valid_entry(self, option, request_cache, request_, origin, cached):
        result = await request_cache.request_with_caching(request_, option, origin)

        assert origin.calls == 1
        assert result.result == [{"instance_id": "0"}]
        assert result.hit_cache is False
        assert result.cache_time is None

    @pytest.mark.asyncio
    async def test_does_not_save(self, option, request_cache, api_cache, request_, origin):
        await request_cache.request_with_caching(request_, option, origin)

        assert await api_cache.read_cache(request_) is None


class TestEnvelopeTtl:
    """Test cases for the ttl reported in the envelope."""

    @pytest.mark.asyncio
    async def test_request_ttl(self, request_cache, origin):
        req = ApiCacheRequest(api="listInstances", parameters=["vmss-A"], ttl=30)

        result = await request_cache.request_with_caching(req, ApiCacheOption.READ_API_ONLY, origin)

        assert result.ttl == 30

    @pytest.mark.asyncio
    async def test_default_ttl(self, api_cache, origin):
        cache = RequestCache(api_cache, default_ttl=120)
        req = ApiCacheRequest(api="listInstances", parameters=["vmss-A"])

        result = await cache.request_with_caching(req, ApiCacheOption.READ_CACHE_FIRST, origin)

        assert result.ttl == 120
