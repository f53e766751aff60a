"""
MongoDB access for PicRate.

The application's startup routine builds one Database and hands it to the
services; nothing here caches a connection at module level.

Collections:
- cache:   analysis results keyed by image hash
- scorers: leaderboard entries keyed by name
- images:  normalized image bytes keyed by imageId (the image hash)
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.errors import PyMongoError

import config
from errors import StorageError

log = logging.getLogger(__name__)

CACHE = "cache"
SCORERS = "scorers"
IMAGES = "images"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Database:
    def __init__(self, client, name: str):
        self.client = client
        self.db = client[name]
        self.name = name

    @classmethod
    def connect(cls, url: str = None, name: Optional[str] = None) -> "Database":
        url = url or config.DATABASE_URL
        try:
            client = MongoClient(url)
            if not name:
                name = client.get_default_database(default=config.DEFAULT_DATABASE_NAME).name
        except PyMongoError as e:
            raise StorageError(f"Could not connect to database: {e}") from e
        log.info("Using database %s", name)
        return cls(client, name)

    def close(self) -> None:
        self.client.close()

    @property
    def cache(self):
        return self.db[CACHE]

    @property
    def scorers(self):
        return self.db[SCORERS]

    @property
    def images(self):
        return self.db[IMAGES]

    def ensure_images(self) -> None:
        if IMAGES not in self.db.list_collection_names():
            self.db.create_collection(IMAGES)
        self.images.create_index([("imageId", ASCENDING)], unique=True)

    def ensure_indexes(self) -> None:
        self.ensure_images()
        self.cache.create_index([("hash", ASCENDING)], unique=True)
        self.scorers.create_index([("name", ASCENDING)], unique=True)
        self.scorers.create_index([("score", DESCENDING)])

    def ping(self) -> bool:
        self.client.admin.command("ping")
        return True

    def collection_names(self) -> List[str]:
        return self.db.list_collection_names()

    def create_document(self, collection_name: str, data: Union[BaseModel, Dict[str, Any]]) -> str:
        """Insert a document, stamping createdAt when absent. Returns the new id."""
        if isinstance(data, BaseModel):
            doc = data.model_dump(by_alias=True, exclude_unset=True)
        else:
            doc = dict(data)
        doc.setdefault("createdAt", utcnow())
        result = self.db[collection_name].insert_one(doc)
        return str(result.inserted_id)

    def get_documents(
        self,
        collection_name: str,
        filter_dict: Optional[Dict[str, Any]] = None,
        sort: Optional[List[tuple]] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        cursor = self.db[collection_name].find(filter_dict or {})
        if sort:
            cursor = cursor.sort(sort)
        if limit:
            cursor = cursor.limit(limit)
        return list(cursor)
