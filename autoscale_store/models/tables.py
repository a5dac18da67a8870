"""Typed records and table descriptors for the document store.

A table descriptor names a container, declares its primary key and record
type, validates caller input and converts raw stored documents into typed
records. Records are strict: unknown business fields are rejected, while
store metadata (``_etag``, ``_ts``, ...) is accepted and never required.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Generic, List, Optional, Tuple, Type, TypeVar

from pydantic import BaseModel, Field, ValidationError

from autoscale_store.constants import (
    API_REQUEST_CACHE_TABLE,
    SETTINGS_TABLE,
    STORE_METADATA_FIELDS,
)
from autoscale_store.core.exceptions import DbValidationError


class SaveCondition(str, Enum):
    """Existence precondition for saving an item."""
    UPSERT = "Upsert"
    INSERT_ONLY = "InsertOnly"
    UPDATE_ONLY = "UpdateOnly"


# =============================================================================
# RECORDS
# =============================================================================

class DbRecord(BaseModel):
    """Base class for stored records, carrying the store-assigned metadata."""
    model_config = {"extra": "forbid", "populate_by_name": True, "validate_assignment": True}

    id: Optional[str] = None
    etag: Optional[str] = Field(default=None, alias="_etag")
    ts: Optional[int] = Field(default=None, alias="_ts")
    rid: Optional[str] = Field(default=None, alias="_rid")
    self_link: Optional[str] = Field(default=None, alias="_self")
    attachments: Optional[str] = Field(default=None, alias="_attachments")

    @classmethod
    def metadata_attributes(cls) -> Tuple[str, ...]:
        """Attribute names of the store metadata fields."""
        return tuple(
            name for name, info in cls.model_fields.items()
            if info.alias in STORE_METADATA_FIELDS
        )

    def to_document(self) -> Dict[str, Any]:
        """Serialize the caller-owned fields under their stored names."""
        return self.model_dump(by_alias=True, exclude=set(self.metadata_attributes()))


class SettingsItem(DbRecord):
    """A persisted autoscale setting."""
    setting_key: str = Field(alias="settingKey", min_length=1)
    setting_value: Optional[str] = Field(default=None, alias="settingValue")
    description: Optional[str] = None
    editable: bool = False
    json_encoded: bool = Field(default=False, alias="jsonEncoded")


class ApiRequestCacheItem(DbRecord):
    """A cached API response.

    ``ttl`` is stored in milliseconds. ``cache_time`` (epoch milliseconds) is
    never written by callers; it is derived from the store timestamp.
    """
    res: Optional[str] = None
    cache_time: Optional[int] = Field(default=None, alias="cacheTime")
    ttl: Optional[int] = Field(default=None, ge=0)


RecordT = TypeVar("RecordT", bound=DbRecord)


# =============================================================================
# QUERIES
# =============================================================================

@dataclass
class QueryWhereClause:
    """Equality filter on a record attribute."""
    name: str
    value: Any


@dataclass
class QueryResult(Generic[RecordT]):
    """Records returned by a list query, with the query text that produced them."""
    query: str
    result: List[RecordT] = field(default_factory=list)


# =============================================================================
# TABLES
# =============================================================================

class Table(Generic[RecordT]):
    """Describes a logical table: container name, primary key and record shape."""

    name: str = ""
    primary_key: str = "id"
    record_type: Type[RecordT] = DbRecord
    required_fields: Tuple[str, ...] = ()

    def field_name(self, attribute: str) -> str:
        """Stored field name of a record attribute."""
        info = self.record_type.model_fields.get(attribute)
        if info is None:
            raise DbValidationError(
                f"Unknown field: {attribute} in table (name: {self.name}).",
                table=self.name
            )
        return info.alias or attribute

    @property
    def primary_key_field(self) -> str:
        return self.field_name(self.primary_key)

    def primary_key_value(self, item: RecordT) -> Any:
        return getattr(item, self.primary_key)

    def validate_input(self, item: RecordT) -> None:
        """Validate the caller-owned fields of an item.

        Raises:
            DbValidationError: item is of the wrong type, a required field is
                missing or a field value is malformed.
        """
        if not isinstance(item, self.record_type):
            raise DbValidationError(
                f"Expected {self.record_type.__name__}, got {type(item).__name__}.",
                table=self.name
            )
        item_id = getattr(item, "id", None)
        missing = [
            name for name in self.required_fields
            if getattr(item, name) is None or getattr(item, name) == ""
        ]
        if missing:
            raise DbValidationError(
                f"Required fields missing: {', '.join(missing)}.",
                table=self.name,
                item_id=item_id
            )
        try:
            self.record_type.model_validate(item.to_document())
        except ValidationError as e:
            raise DbValidationError(
                f"Malformed item: {e.error_count()} invalid field(s). {e}",
                table=self.name,
                item_id=item_id
            ) from e

    def _normalize(self, raw: Dict[str, Any]) -> Dict[str, Any]:
        """Hook for table-specific derivations before conversion."""
        return raw

    def convert_record(self, raw: Dict[str, Any]) -> RecordT:
        """Convert a raw stored document into a typed record.

        Unknown store metadata (any ``_``-prefixed key) is dropped; unknown
        business fields are rejected.
        """
        known_metadata = {
            info.alias for info in self.record_type.model_fields.values()
            if info.alias in STORE_METADATA_FIELDS
        }
        data = {
            k: v for k, v in self._normalize(dict(raw)).items()
            if not k.startswith("_") or k in known_metadata
        }
        try:
            return self.record_type.model_validate(data)
        except ValidationError as e:
            raise DbValidationError(
                f"Stored record does not match table (name: {self.name}): {e}",
                table=self.name,
                item_id=raw.get("id")
            ) from e


class SettingsTable(Table[SettingsItem]):
    name = SETTINGS_TABLE
    primary_key = "setting_key"
    record_type = SettingsItem
    required_fields = ("setting_key",)


class ApiRequestCacheTable(Table[ApiRequestCacheItem]):
    name = API_REQUEST_CACHE_TABLE
    primary_key = "id"
    record_type = ApiRequestCacheItem
    required_fields = ("id", "res", "ttl")

    def _normalize(self, raw: Dict[str, Any]) -> Dict[str, Any]:
        # Cache time is the store write time, in milliseconds
        if raw.get("_ts") is not None:
            raw["cacheTime"] = int(raw["_ts"]) * 1000
        return raw
