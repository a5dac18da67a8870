"""Store, cache and resource query services.

- DocumentStoreClient: optimistic-concurrency get/list/save/delete
- ApiCacheStore: store-backed cache of serialized API responses
- RequestCache: per-request cache policies (ApiCacheOption)
- ScaleSetResources: cached scale set instance and network interface queries
- SettingsService: autoscale settings loaded once per process
"""

from .store import DocumentStoreClient
from .api_cache import ApiCacheStore, generate_cache_id, is_cache_valid
from .request_cache import RequestCache
from .resources import ScaleSetResources
from .settings import (
    SettingsService,
    SettingItem,
    SettingDefinition,
    SETTING_DEFINITIONS,
)

__all__ = [
    # Store
    "DocumentStoreClient",
    # Cache
    "ApiCacheStore",
    "generate_cache_id",
    "is_cache_valid",
    "RequestCache",
    # Resources
    "ScaleSetResources",
    # Settings
    "SettingsService",
    "SettingItem",
    "SettingDefinition",
    "SETTING_DEFINITIONS",
]
