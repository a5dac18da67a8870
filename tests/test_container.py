"""Tests for dependency wiring and the service lifespan."""

import pytest
from dependency_injector import errors, providers

from autoscale_store.core.config import Settings
from autoscale_store.core.container import Container, lifespan
from autoscale_store.models.cache import ApiCacheOption


@pytest.fixture
def container(clock, compute_client, network_client):
    container = Container()
    container.settings.override(providers.Object(Settings(
        database_url="sqlite+aiosqlite://",
        log_format="console",
        resource_group="autoscale-rg",
        api_cache_ttl=300,
    )))
    container.clock.override(providers.Object(clock))
    container.compute_client.override(providers.Object(compute_client))
    container.network_client.override(providers.Object(network_client))
    yield container
    container.reset_singletons()


class TestContainer:
    """Test cases for Container wiring."""

    def test_services_share_one_store(self, container):
        assert container.api_cache().store is container.store()
        assert container.settings_service().store is container.store()

    def test_cache_ttl_from_settings(self, container):
        assert container.api_cache().default_ttl == 300
        assert container.request_cache().default_ttl == 300
        assert container.resources().ttl == 300

    def test_resources_use_configured_resource_group(self, container, compute_client):
        resources = container.resources()

        assert resources.resource_group == "autoscale-rg"
        assert resources.compute is compute_client

    def test_cloud_clients_must_be_supplied(self):
        with pytest.raises(errors.Error):
            Container().compute_client()

    @pytest.mark.asyncio
    async def test_lifespan_opens_and_closes_database(self, container, compute_client):
        async with lifespan(container):
            resources = container.resources()
            first = await resources.list_instances("vmss-A", ApiCacheOption.READ_CACHE_FIRST)
            second = await resources.list_instances("vmss-A", ApiCacheOption.READ_CACHE_FIRST)

        assert first.hit_cache is False
        assert second.hit_cache is True
        assert container.database().engine is None
