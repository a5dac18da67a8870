"""Centralized constants for table names, cached API names and store metadata.

This module provides a single source of truth for names shared by the store
client, the API cache and the resource facades.
"""

from typing import FrozenSet

# =============================================================================
# TABLES
# =============================================================================

SETTINGS_TABLE = "Settings"
API_REQUEST_CACHE_TABLE = "ApiRequestCache"

# =============================================================================
# STORE METADATA
# =============================================================================

# Fields assigned by the document store on every write. They are never part
# of caller input and are stripped before an item is written back.
STORE_METADATA_FIELDS: FrozenSet[str] = frozenset([
    '_attachments',
    '_etag',
    '_rid',
    '_self',
    '_ts',
])

# =============================================================================
# API CACHE
# =============================================================================

DEFAULT_API_CACHE_TTL = 600  # seconds

CACHE_ID_SEPARATOR = '-'

API_LIST_INSTANCES = 'listInstances'
API_DESCRIBE_INSTANCE = 'describeInstance'
API_LIST_NETWORK_INTERFACES = 'listNetworkInterfaces'

# Expand option passed when describing a single scale set instance
INSTANCE_VIEW_EXPAND = 'instanceView'
