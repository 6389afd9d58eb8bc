"""
MongoDB helpers

`get_db()` returns None when DATABASE_URL is not set; callers check for that
and fall back to in-memory state.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pydantic import BaseModel

from settings import settings

_client: Optional[AsyncIOMotorClient] = None
_db: Optional[AsyncIOMotorDatabase] = None


async def get_db() -> Optional[AsyncIOMotorDatabase]:
    global _client, _db
    if not settings.DATABASE_URL:
        return None
    if _db is None:
        _client = AsyncIOMotorClient(settings.DATABASE_URL, serverSelectionTimeoutMS=5000)
        _db = _client[settings.DATABASE_NAME]
    return _db


def _as_dict(data: Union[BaseModel, Dict[str, Any]]) -> Dict[str, Any]:
    if isinstance(data, BaseModel):
        return data.model_dump(mode="json")
    return dict(data)


async def find_document(collection_name: str, filter_dict: Dict[str, Any]) -> Optional[dict]:
    db = await get_db()
    if db is None:
        return None
    return await db[collection_name].find_one(filter_dict)


async def upsert_document(collection_name: str, filter_dict: Dict[str, Any], data: Union[BaseModel, Dict[str, Any]]) -> None:
    db = await get_db()
    if db is None:
        raise RuntimeError("Database not available")
    now = datetime.now(timezone.utc)
    await db[collection_name].update_one(
        filter_dict,
        {"$set": {**_as_dict(data), "updated_at": now}, "$setOnInsert": {"created_at": now}},
        upsert=True,
    )
