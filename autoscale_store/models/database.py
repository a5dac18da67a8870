"""SQLModel table backing the document containers.

Every logical table (settings, API request cache, ...) is a container of JSON
documents stored in one physical table, keyed by ``(container, id)``.
"""

from typing import Dict, Any
from sqlmodel import SQLModel, Field, Column, JSON


class DocumentRecord(SQLModel, table=True):
    """A JSON document with store-assigned revision metadata."""

    __tablename__ = "documents"

    container: str = Field(primary_key=True, max_length=255)
    id: str = Field(primary_key=True, max_length=1024)
    body: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    etag: str = Field(max_length=64)
    ts: int = Field(index=True)  # Unix timestamp (seconds), assigned on write
    rid: str = Field(max_length=64)

    def to_resource(self, database_name: str) -> Dict[str, Any]:
        """Return the document body merged with its store metadata."""
        resource = dict(self.body)
        resource.update({
            "id": self.id,
            "_etag": self.etag,
            "_ts": self.ts,
            "_rid": self.rid,
            "_self": f"dbs/{database_name}/colls/{self.container}/docs/{self.id}",
            "_attachments": "attachments/",
        })
        return resource
