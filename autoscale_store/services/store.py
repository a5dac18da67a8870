"""Consistency-checked document store client.

The store has per-item conditional writes but no multi-document transactions,
so correctness for concurrent updaters rests on two mechanisms:

- saves carry the snapshot's revision tag as an If-Match precondition, so a
  write fails if another writer touched the record after it was read;
- deletes compare the caller's item field by field against a fresh snapshot
  before anything is removed.

Validation and consistency failures are raised before any mutating call.
"""

from http import HTTPStatus
from typing import Any, List, Optional

from autoscale_store.core.database import Database, QuerySpec
from autoscale_store.core.exceptions import (
    DbDeleteError,
    DbErrorCode,
    DbReadError,
    DbSaveError,
    DbValidationError,
)
from autoscale_store.core.logging import get_logger, log_store_rejection
from autoscale_store.models.tables import (
    QueryResult,
    QueryWhereClause,
    RecordT,
    SaveCondition,
    Table,
)

logger = get_logger(__name__)

# Values a where clause can match
SCALAR_TYPES = (str, int, float, bool, type(None))


def has_value(value: Any) -> bool:
    """True for any value but None and the empty string (zero counts)."""
    return value is not None and value != ""


class DocumentStoreClient:
    """Generic get/list/save/delete against document store containers."""

    def __init__(self, database: Database):
        self.database = database

    async def get_item(self, table: Table[RecordT], primary_key_value: Any) -> RecordT:
        """Get a single item by primary key.

        Raises:
            DbReadError: NotFound if absent, UnexpectedResponse otherwise.
        """
        item_id = str(primary_key_value)
        response = await self.database.container(table.name).read(item_id)

        if response.status_code == HTTPStatus.OK:
            return table.convert_record(response.resource)
        elif response.status_code == HTTPStatus.NOT_FOUND:
            raise DbReadError(
                DbErrorCode.NOT_FOUND,
                f"Item (id: {item_id}) not found in table (name: {table.name}).",
                table=table.name,
                item_id=item_id
            )
        else:
            logger.error("Unexpected read response", table=table.name, id=item_id,
                         status=response.status_code)
            raise DbReadError(
                DbErrorCode.UNEXPECTED_RESPONSE,
                f"Reading item (id: {item_id}) returned status {response.status_code}.",
                table=table.name,
                item_id=item_id
            )

    async def _find_item(self, table: Table[RecordT], item_id: str) -> Optional[RecordT]:
        try:
            return await self.get_item(table, item_id)
        except DbReadError as e:
            if e.code == DbErrorCode.NOT_FOUND:
                return None
            raise

    async def list_items(self, table: Table[RecordT],
                         where: Optional[List[QueryWhereClause]] = None,
                         limit: Optional[int] = None) -> QueryResult[RecordT]:
        """Scan and list all or some records of a table.

        Args:
            table: Table to list.
            where: Equality clauses on record attributes, joined with AND.
            limit: Maximum number of records to return (ignored unless > 0).

        Returns:
            QueryResult with the query text and the matching records.
        """
        query = f"SELECT * FROM {table.name} t"
        parameters = []
        if where:
            conditions = []
            for clause in where:
                field_name = table.field_name(clause.name)
                if not isinstance(clause.value, SCALAR_TYPES):
                    raise DbValidationError(
                        f"Unsupported value for field: {clause.name}. Only JSON scalars can be matched.",
                        table=table.name
                    )
                conditions.append(f"t.{field_name} = @{field_name}")
                parameters.append({"name": f"@{field_name}", "value": clause.value})
            query = f"{query} WHERE {' AND '.join(conditions)}"
        if limit and limit > 0:
            query = f"{query} LIMIT {limit}"
        else:
            limit = None

        resources = await self.database.container(table.name).query(
            QuerySpec(query=query, parameters=parameters, limit=limit)
        )
        logger.debug("Listed items", table=table.name, query=query, count=len(resources))
        return QueryResult(query=query, result=[table.convert_record(r) for r in resources])

    async def save_item(self, table: Table[RecordT], item: RecordT,
                        condition: SaveCondition = SaveCondition.UPSERT,
                        ensure_consistency: bool = True) -> RecordT:
        """Save an item to the store.

        Args:
            table: Table to save into.
            item: Item to save. Store metadata on it is never written.
            condition: Existence precondition for the save.
            ensure_consistency: Reject the save if the item is stale, i.e. its
                primary key disagrees with the stored record or another writer
                changed the record since it was read.

        Returns:
            The stored record, including the new revision tag.
        """
        table.validate_input(item)
        primary_key = table.primary_key_value(item)
        item_id = item.id if has_value(item.id) else str(primary_key)

        if item_id != str(primary_key):
            raise DbSaveError(
                DbErrorCode.INCONSISTENT_DATA,
                f"Item id ({item_id}) and primary key value ({primary_key!r}) don't match."
                " Make sure the id and primary key have the same value.",
                table=table.name,
                item_id=item_id
            )

        snapshot = await self._find_item(table, item_id)

        if condition == SaveCondition.UPDATE_ONLY and snapshot is None:
            raise DbSaveError(
                DbErrorCode.NOT_FOUND,
                f"Unable to update the item (id: {item_id})."
                f" The item not exists in the table (name: {table.name}).",
                table=table.name,
                item_id=item_id
            )
        elif condition == SaveCondition.INSERT_ONLY and snapshot is not None:
            raise DbSaveError(
                DbErrorCode.KEY_CONFLICT,
                f"Unable to insert the item (id: {item_id})."
                f" The item already exists in the table (name: {table.name}).",
                table=table.name,
                item_id=item_id
            )
        if (ensure_consistency and snapshot is not None
                and primary_key != table.primary_key_value(snapshot)):
            raise DbSaveError(
                DbErrorCode.INCONSISTENT_DATA,
                f"Inconsistent data. Primary key values not match"
                f" ({primary_key!r} != {table.primary_key_value(snapshot)!r})."
                " Cannot save item back into db while ensure_consistency is set.",
                table=table.name,
                item_id=item_id
            )

        document = item.to_document()
        document["id"] = item_id

        if_match = None
        if_none_match = None
        if ensure_consistency:
            if snapshot is not None:
                if_match = snapshot.etag
            else:
                if_none_match = "*"

        response = await self.database.container(table.name).upsert(
            document, if_match=if_match, if_none_match=if_none_match
        )

        if response.status_code in (HTTPStatus.OK, HTTPStatus.CREATED):
            if not response.resource:
                raise DbSaveError(
                    DbErrorCode.UNEXPECTED_RESPONSE,
                    "Upsert doesn't return expected data"
                    f" (status: {response.status_code}).",
                    table=table.name,
                    item_id=item_id
                )
            logger.debug("Saved item", table=table.name, id=item_id,
                         created=response.status_code == HTTPStatus.CREATED)
            return table.convert_record(response.resource)
        elif response.status_code == HTTPStatus.PRECONDITION_FAILED:
            log_store_rejection(logger, "save", table.name, item_id, "precondition failed")
            raise DbSaveError(
                DbErrorCode.INCONSISTENT_DATA,
                f"Item (id: {item_id}) was modified by another writer since it was read.",
                table=table.name,
                item_id=item_id
            )
        elif response.status_code == HTTPStatus.CONFLICT:
            log_store_rejection(logger, "save", table.name, item_id, "created concurrently")
            raise DbSaveError(
                DbErrorCode.KEY_CONFLICT,
                f"Item (id: {item_id}) was created by another writer since it was read.",
                table=table.name,
                item_id=item_id
            )
        else:
            logger.error("Unexpected save response", table=table.name, id=item_id,
                         status=response.status_code)
            raise DbSaveError(
                DbErrorCode.UNEXPECTED_RESPONSE,
                "Saving item unsuccessful. Store returned unexpected response with"
                f" status: {response.status_code}.",
                table=table.name,
                item_id=item_id
            )

    async def delete_item(self, table: Table[RecordT], item: RecordT,
                          ensure_consistency: bool = True) -> None:
        """Delete an item from the store.

        Args:
            table: Table to delete from.
            item: Item to delete. Its id must equal its primary key.
            ensure_consistency: Require every field of the item, store
                metadata included, to match the stored record. Otherwise only
                the primary key is used.
        """
        primary_key = table.primary_key_value(item)

        if ensure_consistency:
            table.validate_input(item)
            try:
                snapshot = await self.get_item(table, primary_key)
            except DbReadError as e:
                if e.code != DbErrorCode.NOT_FOUND:
                    raise
                raise DbDeleteError(
                    DbErrorCode.NOT_FOUND,
                    f"Cannot delete item. Item (id: {item.id}) not found"
                    f" in table (name: {table.name}).",
                    table=table.name,
                    item_id=item.id
                ) from e

            stored = snapshot.model_dump()
            given = item.model_dump()
            key_diff = [key for key, value in stored.items() if given.get(key) != value]
            if key_diff:
                log_store_rejection(logger, "delete", table.name, item.id, "stale item",
                                    fields=key_diff)
                raise DbDeleteError(
                    DbErrorCode.INCONSISTENT_DATA,
                    f"Inconsistent data. The attributes don't match: {', '.join(key_diff)}.",
                    table=table.name,
                    item_id=item.id
                )

        if primary_key is None:
            raise DbDeleteError(
                DbErrorCode.INCONSISTENT_DATA,
                f"Required primary key attribute: {table.primary_key} not found in item.",
                table=table.name,
                item_id=item.id
            )
        if item.id != str(primary_key):
            raise DbDeleteError(
                DbErrorCode.INCONSISTENT_DATA,
                "Item primary key value and id value don't match. Make sure the id"
                " and primary key have the same value.",
                table=table.name,
                item_id=item.id
            )

        response = await self.database.container(table.name).delete(item.id)

        if response.status_code in (HTTPStatus.OK, HTTPStatus.NO_CONTENT):
            logger.debug("Deleted item", table=table.name, id=item.id)
            return
        elif response.status_code == HTTPStatus.NOT_FOUND:
            raise DbDeleteError(
                DbErrorCode.NOT_FOUND,
                f"Item ({table.primary_key}: {item.id}) not found in table ({table.name}).",
                table=table.name,
                item_id=item.id
            )
        else:
            logger.error("Unexpected delete response", table=table.name, id=item.id,
                         status=response.status_code)
            raise DbDeleteError(
                DbErrorCode.UNEXPECTED_RESPONSE,
                "Deletion unsuccessful. Store returned unexpected response with"
                f" status: {response.status_code}.",
                table=table.name,
                item_id=item.id
            )
