"""Optimistic-concurrency document store access with a TTL-based API response cache."""

from autoscale_store.core.exceptions import (
    DbError,
    DbErrorCode,
    DbReadError,
    DbSaveError,
    DbDeleteError,
    DbValidationError,
)
from autoscale_store.models.cache import ApiCache, ApiCacheOption, ApiCacheRequest, ApiCacheResult
from autoscale_store.models.tables import (
    ApiRequestCacheItem,
    ApiRequestCacheTable,
    QueryResult,
    QueryWhereClause,
    SaveCondition,
    SettingsItem,
    SettingsTable,
    Table,
)

__version__ = "1.0.0"

__all__ = [
    "DbError",
    "DbErrorCode",
    "DbReadError",
    "DbSaveError",
    "DbDeleteError",
    "DbValidationError",
    "ApiCache",
    "ApiCacheOption",
    "ApiCacheRequest",
    "ApiCacheResult",
    "ApiRequestCacheItem",
    "ApiRequestCacheTable",
    "QueryResult",
    "QueryWhereClause",
    "SaveCondition",
    "SettingsItem",
    "SettingsTable",
    "Table",
]
