"""Async document store service with SQLModel and SQLAlchemy 2.0.

The store exposes per-table document containers with the semantics the store
client relies on: read by id, filtered query, upsert guarded by an optional
revision-tag precondition, and delete by id. Every operation answers with an
HTTP-style status instead of raising, mirroring a document database REST API.
"""

import asyncio
import time
import uuid
from contextlib import asynccontextmanager, nullcontext
from dataclasses import dataclass, field
from http import HTTPStatus
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import and_, delete, false, func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, select

from autoscale_store.core.config import Settings
from autoscale_store.core.logging import get_logger
from autoscale_store.models.database import DocumentRecord

logger = get_logger(__name__)

Clock = Callable[[], float]

# JSON type names reported by each dialect's type function, per value kind
JSON_TYPE_NAMES: Dict[str, Dict[str, tuple]] = {
    "sqlite": {
        "null": ("null",),
        "true": ("true",),
        "false": ("false",),
        "number": ("integer", "real"),
        "string": ("text",),
    },
    "postgresql": {
        "null": ("null",),
        "true": ("boolean",),
        "false": ("boolean",),
        "number": ("number",),
        "string": ("string",),
    },
}


@dataclass
class ItemResponse:
    """Status and resource returned by single-item container operations."""
    status_code: int
    resource: Optional[Dict[str, Any]] = None

    @property
    def ok(self) -> bool:
        return self.status_code in (HTTPStatus.OK, HTTPStatus.CREATED, HTTPStatus.NO_CONTENT)


@dataclass
class QuerySpec:
    """A parameterized container query.

    ``query`` is the literal query text; ``parameters`` carries the
    ``{"name": "@field", "value": ...}`` pairs the text refers to. All
    parameters are equality filters joined with AND. Values must be JSON
    scalars; a value only matches a stored value of the same JSON type.
    """
    query: str
    parameters: List[Dict[str, Any]] = field(default_factory=list)
    limit: Optional[int] = None


class DocumentContainer:
    """A named container of JSON documents inside the store."""

    def __init__(self, database: "Database", name: str):
        self.database = database
        self.name = name

    def _new_metadata(self) -> Dict[str, Any]:
        return {
            "etag": f'"{uuid.uuid4()}"',
            "ts": int(self.database.clock()),
        }

    def _json_type(self, field_name: str):
        dialect = self.database.engine.dialect.name
        if dialect == "sqlite":
            return func.json_type(DocumentRecord.body, f'$."{field_name}"')
        if dialect == "postgresql":
            return func.json_typeof(DocumentRecord.body[field_name])
        return None

    def _equals(self, field_name: str, value: Any):
        """SQL condition matching documents whose field equals value, type included."""
        if field_name == "id":
            return DocumentRecord.id == value if isinstance(value, str) else false()

        element = DocumentRecord.body[field_name]
        if value is None:
            kind, comparison = "null", None
        elif isinstance(value, bool):
            kind, comparison = ("true" if value else "false"), element.as_boolean() == value
        elif isinstance(value, (int, float)):
            kind, comparison = "number", element.as_float() == value
        elif isinstance(value, str):
            kind, comparison = "string", element.as_string() == value
        else:
            raise ValueError(f"Unsupported query value type: {type(value).__name__}")

        conditions = []
        json_type = self._json_type(field_name)
        if json_type is not None:
            type_names = JSON_TYPE_NAMES[self.database.engine.dialect.name][kind]
            conditions.append(json_type.in_(type_names))
        if comparison is not None:
            conditions.append(comparison)
        elif json_type is None:
            conditions.append(element.as_string().is_(None))
        return and_(*conditions)

    async def _select(self, session: AsyncSession, item_id: str) -> Optional[DocumentRecord]:
        stmt = select(DocumentRecord).where(
            DocumentRecord.container == self.name,
            DocumentRecord.id == item_id
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def read(self, item_id: str) -> ItemResponse:
        """Read a document by id."""
        async with self.database.get_session() as session:
            record = await self._select(session, item_id)

            if record is None:
                return ItemResponse(HTTPStatus.NOT_FOUND)
            return ItemResponse(HTTPStatus.OK, record.to_resource(self.database.name))

    async def query(self, query_spec: QuerySpec) -> List[Dict[str, Any]]:
        """Return documents whose fields equal every query parameter, oldest first."""
        stmt = select(DocumentRecord).where(
            DocumentRecord.container == self.name,
            *(self._equals(p["name"].lstrip("@"), p["value"]) for p in query_spec.parameters)
        ).order_by(DocumentRecord.ts, DocumentRecord.id)
        if query_spec.limit:
            stmt = stmt.limit(query_spec.limit)

        async with self.database.get_session() as session:
            result = await session.execute(stmt)
            records = result.scalars().all()
            return [record.to_resource(self.database.name) for record in records]

    async def upsert(self, body: Dict[str, Any], if_match: Optional[str] = None,
                     if_none_match: Optional[str] = None) -> ItemResponse:
        """Insert or replace a document.

        Args:
            body: Document to store. Must carry an ``id``; store metadata in
                  the body is ignored.
            if_match: Revision tag the stored document must still carry,
                      otherwise the write is rejected with 412.
            if_none_match: ``"*"`` makes the write create-only; an existing
                           document rejects it with 409.

        Returns:
            ItemResponse with 201 on create, 200 on replace, carrying the
            document as written.
        """
        item_id = body.get("id")
        if not item_id:
            return ItemResponse(HTTPStatus.BAD_REQUEST)
        document = {k: v for k, v in body.items() if k != "id" and not k.startswith("_")}
        metadata = self._new_metadata()

        async with self.database.get_session() as session:
            if if_match is not None:
                stmt = update(DocumentRecord).where(
                    DocumentRecord.container == self.name,
                    DocumentRecord.id == item_id,
                    DocumentRecord.etag == if_match
                ).values(body=document, **metadata)
                result = await session.execute(stmt)
                if result.rowcount != 1:
                    await session.rollback()
                    logger.debug("Upsert precondition failed", container=self.name, id=item_id)
                    return ItemResponse(HTTPStatus.PRECONDITION_FAILED)
                status = HTTPStatus.OK
            else:
                existing = await self._select(session, item_id)

                if existing is not None and if_none_match == "*":
                    return ItemResponse(HTTPStatus.CONFLICT)

                if existing is not None:
                    existing.body = document
                    existing.etag = metadata["etag"]
                    existing.ts = metadata["ts"]
                    status = HTTPStatus.OK
                else:
                    session.add(DocumentRecord(
                        container=self.name,
                        id=item_id,
                        body=document,
                        rid=uuid.uuid4().hex[:16],
                        **metadata
                    ))
                    status = HTTPStatus.CREATED

            try:
                await session.commit()
            except IntegrityError:
                # Another writer created the same id between select and insert
                await session.rollback()
                return ItemResponse(HTTPStatus.CONFLICT)

            # Read back in the writing session so the response is this write
            session.expire_all()
            written = await self._select(session, item_id)
            return ItemResponse(status, written.to_resource(self.database.name) if written else None)

    async def delete(self, item_id: str) -> ItemResponse:
        """Delete a document by id."""
        async with self.database.get_session() as session:
            stmt = delete(DocumentRecord).where(
                DocumentRecord.container == self.name,
                DocumentRecord.id == item_id
            )
            result = await session.execute(stmt)
            if result.rowcount == 0:
                await session.rollback()
                return ItemResponse(HTTPStatus.NOT_FOUND)
            await session.commit()
            return ItemResponse(HTTPStatus.NO_CONTENT)


class Database:
    """Async document store service with SQLModel."""

    def __init__(self, settings: Settings, clock: Clock = time.time):
        self.settings = settings
        self.clock = clock
        self.name = settings.autoscale_db_name
        self.engine = None
        self.async_session = None
        self._lock: Optional[asyncio.Lock] = None
        self._containers: Dict[str, DocumentContainer] = {}

    async def startup(self):
        """Initialize database connection and create tables."""
        try:
            engine_options: Dict[str, Any] = {
                "echo": self.settings.database_echo,
                "future": True,
            }
            if self.settings.is_sqlite_memory:
                # One shared connection so the in-memory database survives across sessions
                engine_options["poolclass"] = StaticPool
                engine_options["connect_args"] = {"check_same_thread": False}
            elif not self.settings.is_sqlite:
                engine_options["pool_size"] = self.settings.database_pool_size
                engine_options["max_overflow"] = self.settings.database_max_overflow

            self.engine = create_async_engine(self.settings.database_url, **engine_options)

            self.async_session = async_sessionmaker(
                bind=self.engine,
                class_=AsyncSession,
                expire_on_commit=False
            )

            # SQLite has a single writer, and an in-memory database a single
            # connection: sessions take turns instead of interleaving
            self._lock = asyncio.Lock() if self.settings.is_sqlite else None

            async with self.engine.begin() as conn:
                await conn.run_sync(SQLModel.metadata.create_all)

            logger.info("Database initialized successfully", database=self.name,
                        serialized=self._lock is not None)

        except Exception as e:
            logger.error("Database startup failed", error=str(e))
            raise

    async def shutdown(self):
        """Close database connections."""
        if self.engine:
            await self.engine.dispose()
            self.engine = None
            self.async_session = None
            self._lock = None
            logger.info("Database connections closed")

    @asynccontextmanager
    async def get_session(self):
        """Get async database session.

        On SQLite the session holds the database lock until it closes, so
        sessions must not be nested.
        """
        if not self.async_session:
            raise RuntimeError("Database not initialized")

        async with self._lock or nullcontext():
            async with self.async_session() as session:
                try:
                    yield session
                except Exception:
                    await session.rollback()
                    raise
                finally:
                    await session.close()

    def container(self, name: str) -> DocumentContainer:
        """Get the document container for a table."""
        if name not in self._containers:
            self._containers[name] = DocumentContainer(self, name)
        return self._containers[name]
