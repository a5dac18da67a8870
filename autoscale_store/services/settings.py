"""Autoscale settings persisted in the settings table.

Settings are loaded once and kept in memory for the lifetime of the service.
Only keys known to the setting dictionary are loaded; persisted records are
the source of their values.
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from autoscale_store.core.exceptions import DbErrorCode, DbReadError
from autoscale_store.core.logging import get_logger
from autoscale_store.models.tables import SaveCondition, SettingsItem, SettingsTable
from autoscale_store.services.store import DocumentStoreClient

logger = get_logger(__name__)

SETTING_SAVED = "fortigate-autoscale-setting-saved"


@dataclass(frozen=True)
class SettingDefinition:
    """Metadata describing a known setting."""
    key_name: str
    description: str
    editable: bool = False
    json_encoded: bool = False
    boolean_type: bool = False


SETTING_DEFINITIONS: Dict[str, SettingDefinition] = {
    SETTING_SAVED: SettingDefinition(
        key_name=SETTING_SAVED,
        description="The flag whether FortiGate Autoscale settings are saved in db or not.",
        editable=False,
        json_encoded=False,
        boolean_type=True,
    ),
}


@dataclass
class SettingItem:
    """A loaded setting value."""
    key: str
    value: Optional[str]
    description: Optional[str] = None
    editable: bool = False
    json_encoded: bool = False

    @property
    def truth_value(self) -> bool:
        return self.value is not None and self.value.strip().lower() == "true"

    @property
    def json_value(self) -> Any:
        """Decoded value of a json-encoded setting (the raw value otherwise)."""
        if self.json_encoded and self.value is not None:
            return json.loads(self.value)
        return self.value


class SettingsService:
    """Loads and saves autoscale settings."""

    def __init__(self, store: DocumentStoreClient,
                 definitions: Optional[Mapping[str, SettingDefinition]] = None):
        self.store = store
        self.definitions = dict(definitions if definitions is not None else SETTING_DEFINITIONS)
        self.table = SettingsTable()
        self._settings: Optional[Dict[str, SettingItem]] = None

    async def load_settings(self) -> Dict[str, SettingItem]:
        """Load settings from the store, once."""
        if self._settings is not None:
            return self._settings

        query_result = await self.store.list_items(self.table)
        records = {rec.setting_key: rec for rec in query_result.result}

        settings: Dict[str, SettingItem] = {}
        for key in self.definitions:
            record = records.get(key)
            if record is None:
                continue
            settings[key] = SettingItem(
                key=record.setting_key,
                value=record.setting_value,
                description=record.description,
                editable=record.editable,
                json_encoded=record.json_encoded,
            )

        ignored = set(records) - set(self.definitions)
        if ignored:
            logger.debug("Ignoring unknown settings", keys=sorted(ignored))
        logger.info("Settings loaded", count=len(settings))

        self._settings = settings
        return self._settings

    async def get_setting(self, key: str) -> Optional[SettingItem]:
        settings = await self.load_settings()
        return settings.get(key)

    def invalidate(self) -> None:
        """Drop the in-memory settings so the next load reads the store."""
        self._settings = None

    async def save_setting(self, key: str, value: Optional[str],
                           description: Optional[str] = None,
                           editable: Optional[bool] = None,
                           json_encoded: Optional[bool] = None) -> SettingsItem:
        """Create or update a setting.

        The save is guarded by the revision tag of the record as the store
        client reads it just before writing: an update landing between that
        read and the write makes the save fail. A change made earlier, after
        this method fetched the setting, is overwritten.
        """
        definition = self.definitions.get(key)
        try:
            item = await self.store.get_item(self.table, key)
        except DbReadError as e:
            if e.code != DbErrorCode.NOT_FOUND:
                raise
            item = SettingsItem(
                setting_key=key,
                description=definition.description if definition else None,
                editable=definition.editable if definition else False,
                json_encoded=definition.json_encoded if definition else False,
            )

        item.setting_value = value
        if description is not None:
            item.description = description
        if editable is not None:
            item.editable = editable
        if json_encoded is not None:
            item.json_encoded = json_encoded

        saved = await self.store.save_item(self.table, item, SaveCondition.UPSERT)
        self.invalidate()
        logger.info("Setting saved", key=key)
        return saved
