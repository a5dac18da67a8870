"""Dependency injection container for the store and cache services.

The container is built by the caller, which owns its lifecycle. Cloud
management clients are supplied by the caller as well:

    container = Container()
    container.compute_client.override(providers.Object(compute))
    container.network_client.override(providers.Object(network))

    async with lifespan(container):
        resources = container.resources()
        instances = await resources.list_instances("vmss-a")
"""

import time
from contextlib import asynccontextmanager

from dependency_injector import containers, providers

from autoscale_store.core.config import Settings
from autoscale_store.core.database import Database
from autoscale_store.core.logging import configure_logging, get_logger
from autoscale_store.services.api_cache import ApiCacheStore
from autoscale_store.services.request_cache import RequestCache
from autoscale_store.services.resources import ScaleSetResources
from autoscale_store.services.settings import SettingsService
from autoscale_store.services.store import DocumentStoreClient

logger = get_logger(__name__)


class Container(containers.DeclarativeContainer):
    """Store and cache dependency injection container."""

    # Settings
    settings = providers.Singleton(
        Settings,
    )

    # Wall clock, in epoch seconds
    clock = providers.Object(time.time)

    # Document store
    database = providers.Singleton(
        Database,
        settings=settings,
        clock=clock
    )

    store = providers.Singleton(
        DocumentStoreClient,
        database=database
    )

    # API response cache
    api_cache = providers.Singleton(
        ApiCacheStore,
        store=store,
        clock=clock,
        default_ttl=settings.provided.api_cache_ttl
    )

    request_cache = providers.Singleton(
        RequestCache,
        api_cache=api_cache,
        default_ttl=settings.provided.api_cache_ttl
    )

    settings_service = providers.Singleton(
        SettingsService,
        store=store
    )

    # Cloud management clients, supplied by the caller
    compute_client = providers.Dependency()
    network_client = providers.Dependency()

    resources = providers.Factory(
        ScaleSetResources,
        request_cache=request_cache,
        compute_client=compute_client,
        network_client=network_client,
        resource_group=settings.provided.resource_group,
        ttl=settings.provided.api_cache_ttl
    )


@asynccontextmanager
async def lifespan(container: Container):
    """Configure logging and keep the database open for the block."""
    configure_logging(container.settings())
    database = container.database()

    await database.startup()
    logger.info("Store services started")
    try:
        yield container
    finally:
        await database.shutdown()
        logger.info("Store services shutdown complete")
