"""MongoDB persistence for analyses and generated documentation."""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Tuple

from bson import ObjectId
from bson.errors import InvalidId
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from pymongo import AsyncMongoClient, ReturnDocument
from pymongo.errors import PyMongoError

from .config import DatabaseConfig
from .models import AnalysisResult

logger = logging.getLogger(__name__)

COLLECTIONS = {
    "analyses": "analyses",
    "documentation": "documentation",
    "endpoints": "endpoints",
    "types": "types",
}

NEWEST_FIRST: List[Tuple[str, int]] = [("timestamp", -1)]

SOURCE_AI_GENERATION = "ai-generation"
SOURCE_AI_GENERATION_CHUNKED = "ai-generation-chunked"


class DatabaseError(Exception):
    """MongoDB operation error."""
    pass


class DocumentationRecord(BaseModel):
    """A generated documentation document."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: Optional[str] = Field(default=None, alias="_id")
    content: str
    source: str = SOURCE_AI_GENERATION
    provider: str
    model: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    metadata: Dict[str, Any] = {}
    run_id: Optional[str] = None

    @classmethod
    def from_document(cls, document: Mapping[str, Any]) -> "DocumentationRecord":
        data = dict(document)
        if data.get("_id") is not None:
            data["_id"] = str(data["_id"])
        return cls.model_validate(data)

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude={"id"}, exclude_none=True)


class AnalysisStats(BaseModel):
    """Aggregate counts over stored documentation."""

    total_documents: int = 0
    frameworks: Dict[str, int] = {}
    providers: Dict[str, int] = {}
    latest_run: Optional[str] = None


class DocumentStore:
    """Async MongoDB adapter; also usable as an async context manager."""

    def __init__(self, config: DatabaseConfig, client: Optional[AsyncMongoClient] = None):
        self.config = config
        self.client = client
        self._owns_client = client is None

    async def __aenter__(self) -> "DocumentStore":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.disconnect()

    @property
    def db(self):
        if self.client is None:
            raise DatabaseError("Not connected to MongoDB")
        return self.client[self.config.database_name]

    def collection(self, name: str):
        return self.db[COLLECTIONS[name]]

    async def connect(self) -> None:
        if self.client is not None:
            return
        try:
            client = AsyncMongoClient(
                self.config.connection_string,
                serverSelectionTimeoutMS=self.config.timeout_ms,
            )
        except PyMongoError as e:
            raise DatabaseError(f"Invalid MongoDB connection string: {e}") from e

        try:
            await client.admin.command("ping")
        except PyMongoError as e:
            await client.close()
            raise DatabaseError(f"Could not connect to MongoDB: {e}") from e
        self.client = client
        logger.info(f"Connected to MongoDB database '{self.config.database_name}'")

    async def disconnect(self) -> None:
        if self.client is not None and self._owns_client:
            await self.client.close()
            self.client = None
            logger.debug("Disconnected from MongoDB")

    async def save_analysis(self, result: AnalysisResult, project_path: str) -> str:
        """Store an analysis summary plus one document per route and type."""
        now = datetime.now(timezone.utc)
        data = result.to_json_dict()
        try:
            inserted = await self.collection("analyses").insert_one({
                "framework": data["framework"],
                "projectPath": project_path,
                "metadata": data["metadata"],
                "controllers": data["controllers"],
                "services": data["services"],
                "timestamp": now,
            })
            analysis_id = inserted.inserted_id

            if data["routes"]:
                await self.collection("endpoints").insert_many([
                    {**route, "analysisId": analysis_id, "timestamp": now} for route in data["routes"]
                ])
            if data["types"]:
                await self.collection("types").insert_many([
                    {**type_data, "analysisId": analysis_id, "timestamp": now} for type_data in data["types"]
                ])
        except PyMongoError as e:
            raise DatabaseError(f"Failed to save analysis: {e}") from e

        logger.info(f"Saved analysis {analysis_id} to MongoDB")
        return str(analysis_id)

    async def save_documentation(self, record: DocumentationRecord) -> str:
        try:
            inserted = await self.collection("documentation").insert_one(record.to_document())
        except PyMongoError as e:
            raise DatabaseError(f"Failed to save documentation: {e}") from e
        logger.debug(f"Saved {record.source} documentation {inserted.inserted_id}")
        return str(inserted.inserted_id)

    async def get_documents_with_options(
        self,
        filter: Optional[Dict[str, Any]] = None,
        sort: Optional[List[Tuple[str, int]]] = None,
        limit: Optional[int] = None,
    ) -> List[DocumentationRecord]:
        """Query the documentation collection."""
        try:
            cursor = self.collection("documentation").find(filter or {})
            if sort:
                cursor = cursor.sort(sort)
            if limit:
                cursor = cursor.limit(limit)
            documents = await cursor.to_list(length=None)
        except PyMongoError as e:
            raise DatabaseError(f"Documentation query failed: {e}") from e
        return [DocumentationRecord.from_document(doc) for doc in documents]

    async def get_latest_documentation(self, limit: int = 10) -> List[DocumentationRecord]:
        return await self.get_documents_with_options(sort=NEWEST_FIRST, limit=limit)

    async def get_documents_by_run_id(self, run_id: str) -> List[DocumentationRecord]:
        return await self.get_documents_with_options(
            filter={"$or": [{"runId": run_id}, {"metadata.runId": run_id}]},
            sort=NEWEST_FIRST,
        )

    async def get_documents_by_chunk_time(self, chunk_time: str) -> List[DocumentationRecord]:
        return await self.get_documents_with_options(
            filter={"metadata.chunkTimestamp": chunk_time},
            sort=[("metadata.moduleName", 1)],
        )

    async def get_documents_by_framework(self, framework: str) -> List[DocumentationRecord]:
        return await self.get_documents_with_options(filter={"metadata.framework": framework}, sort=NEWEST_FIRST)

    async def get_documents_by_provider(self, provider: str) -> List[DocumentationRecord]:
        return await self.get_documents_with_options(filter={"provider": provider}, sort=NEWEST_FIRST)

    async def get_document_count(self) -> int:
        try:
            return await self.collection("documentation").count_documents({})
        except PyMongoError as e:
            raise DatabaseError(f"Document count failed: {e}") from e

    async def get_unique_chunk_times(self) -> List[str]:
        """Chunked generation run timestamps, newest first."""
        try:
            values = await self.collection("documentation").distinct("metadata.chunkTimestamp")
        except PyMongoError as e:
            raise DatabaseError(f"Chunk time query failed: {e}") from e
        return sorted((str(v) for v in values if v), reverse=True)

    async def update_document_content(self, document_id: str, content: str) -> Optional[DocumentationRecord]:
        """Replace a document's content; None when the id is unknown."""
        try:
            object_id = ObjectId(document_id)
        except (InvalidId, TypeError):
            logger.warning(f"Invalid document id: {document_id}")
            return None

        try:
            document = await self.collection("documentation").find_one_and_update(
                {"_id": object_id},
                {"$set": {"content": content, "updatedAt": datetime.now(timezone.utc)}},
                return_document=ReturnDocument.AFTER,
            )
        except PyMongoError as e:
            raise DatabaseError(f"Failed to update document {document_id}: {e}") from e
        return DocumentationRecord.from_document(document) if document else None

    async def _count_by(self, field: str) -> Dict[str, int]:
        pipeline = [
            {"$group": {"_id": f"${field}", "count": {"$sum": 1}}},
            {"$sort": {"count": -1}},
        ]
        cursor = await self.collection("documentation").aggregate(pipeline)
        rows = await cursor.to_list(length=None)
        return {str(row["_id"]): row["count"] for row in rows if row.get("_id") is not None}

    async def get_analysis_stats(self) -> AnalysisStats:
        try:
            total = await self.collection("documentation").count_documents({})
            frameworks = await self._count_by("metadata.framework")
            providers = await self._count_by("provider")
            latest = await self.collection("documentation").find_one({}, sort=NEWEST_FIRST)
        except PyMongoError as e:
            raise DatabaseError(f"Statistics query failed: {e}") from e

        latest_run = None
        if latest:
            latest_run = latest.get("runId") or (latest.get("metadata") or {}).get("runId")
            if latest_run is None and latest.get("timestamp") is not None:
                latest_run = str(latest["timestamp"])

        return AnalysisStats(
            total_documents=total,
            frameworks=frameworks,
            providers=providers,
            latest_run=latest_run,
        )
