"""
Persistence backends for per-user bandit model documents.

Every backend stores one JSON document per user and exposes the same async
``load`` / ``save`` pair. Documents are always written whole; there is no
partial update. Blocking I/O (files, SQL) runs in a worker thread so the
event loop is never held up.
"""

import asyncio
import copy
import json
import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional

import redis.asyncio as redis
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine, make_url

logger = logging.getLogger(__name__)

ModelDocument = Dict[str, Any]


class ModelRepository(ABC):
    """Storage for one model document per user."""

    @abstractmethod
    async def load(self, user_id: str) -> Optional[ModelDocument]:
        """Return the stored document, or None if the user has none."""

    @abstractmethod
    async def save(self, user_id: str, document: ModelDocument) -> None:
        """Overwrite the user's document."""


class InMemoryModelRepository(ModelRepository):
    """Process-local store, used for tests and the demo."""

    def __init__(self, documents: Dict[str, ModelDocument] = None):
        self.documents: Dict[str, ModelDocument] = documents if documents is not None else {}

    async def load(self, user_id: str) -> Optional[ModelDocument]:
        document = self.documents.get(user_id)
        return copy.deepcopy(document) if document is not None else None

    async def save(self, user_id: str, document: ModelDocument) -> None:
        self.documents[user_id] = copy.deepcopy(document)


class FileModelRepository(ModelRepository):
    """
    JSON files on local disk, laid out as ``<base_dir>/<user_id>/linucb.json``.

    Writes go to a temporary file first and are moved into place, so a
    crash mid-write never leaves a truncated document behind.
    """

    FILENAME = "linucb.json"

    def __init__(self, base_dir: str):
        self.base_dir = Path(base_dir)

    def _path(self, user_id: str) -> Path:
        if not user_id or "/" in user_id or "\\" in user_id or user_id in (".", ".."):
            raise ValueError(f"Invalid user id for file storage: {user_id!r}")
        return self.base_dir / user_id / self.FILENAME

    def _read(self, path: Path) -> Optional[ModelDocument]:
        if not path.exists():
            return None
        with open(path, 'r') as f:
            return json.load(f)

    def _write(self, path: Path, document: ModelDocument):
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_suffix(".json.tmp")
        with open(tmp_path, 'w') as f:
            json.dump(document, f, indent=2)
        os.replace(tmp_path, path)

    async def load(self, user_id: str) -> Optional[ModelDocument]:
        return await asyncio.to_thread(self._read, self._path(user_id))

    async def save(self, user_id: str, document: ModelDocument) -> None:
        await asyncio.to_thread(self._write, self._path(user_id), document)
        logger.debug(f"Model saved to {self._path(user_id)}")


class RedisModelRepository(ModelRepository):
    """Documents stored as JSON strings under ``<prefix>:<user_id>``."""

    def __init__(self, client: redis.Redis, key_prefix: str = "taskweave:linucb"):
        self.client = client
        self.key_prefix = key_prefix

    @classmethod
    def from_url(cls, url: str, key_prefix: str = "taskweave:linucb") -> "RedisModelRepository":
        return cls(redis.from_url(url, decode_responses=True), key_prefix)

    def _key(self, user_id: str) -> str:
        return f"{self.key_prefix}:{user_id}"

    async def load(self, user_id: str) -> Optional[ModelDocument]:
        raw = await self.client.get(self._key(user_id))
        if raw is None:
            return None
        return json.loads(raw)

    async def save(self, user_id: str, document: ModelDocument) -> None:
        await self.client.set(self._key(user_id), json.dumps(document))


def ensure_sqlite_directory(database_url: str):
    """SQLite will not create missing parent directories on its own."""
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite" and url.database and url.database != ":memory:":
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)


class SqlModelRepository(ModelRepository):
    """Documents stored in a ``bandit_models`` table through SQLAlchemy."""

    TABLE_DDL = """
        CREATE TABLE IF NOT EXISTS bandit_models (
            user_id VARCHAR(128) PRIMARY KEY,
            document TEXT NOT NULL,
            updated_at VARCHAR(64)
        )
    """

    def __init__(self, engine: Engine):
        self.engine = engine

    @classmethod
    def from_url(cls, database_url: str, echo: bool = False) -> "SqlModelRepository":
        ensure_sqlite_directory(database_url)
        engine = create_engine(database_url, pool_pre_ping=True, echo=echo)
        return cls(engine)

    def create_table(self):
        with self.engine.begin() as conn:
            conn.execute(text(self.TABLE_DDL))

    def _read(self, user_id: str) -> Optional[ModelDocument]:
        with self.engine.connect() as conn:
            row = conn.execute(
                text("SELECT document FROM bandit_models WHERE user_id = :user_id"),
                {'user_id': user_id},
            ).fetchone()
        if row is None:
            return None
        return json.loads(row[0])

    def _write(self, user_id: str, document: ModelDocument):
        with self.engine.begin() as conn:
            conn.execute(text("DELETE FROM bandit_models WHERE user_id = :user_id"), {'user_id': user_id})
            conn.execute(
                text("""
                    INSERT INTO bandit_models (user_id, document, updated_at)
                    VALUES (:user_id, :document, :updated_at)
                """),
                {
                    'user_id': user_id,
                    'document': json.dumps(document),
                    'updated_at': document.get('updatedAt'),
                },
            )

    async def load(self, user_id: str) -> Optional[ModelDocument]:
        return await asyncio.to_thread(self._read, user_id)

    async def save(self, user_id: str, document: ModelDocument) -> None:
        await asyncio.to_thread(self._write, user_id, document)


def build_repository(settings) -> ModelRepository:
    """Create the repository selected by ``settings.model_store_backend``."""
    backend = settings.model_store_backend
    if backend == "memory":
        return InMemoryModelRepository()
    if backend == "file":
        return FileModelRepository(settings.model_store_path)
    if backend == "redis":
        return RedisModelRepository.from_url(settings.redis_url, settings.redis_key_prefix)
    if backend == "sql":
        repository = SqlModelRepository.from_url(settings.database_url, echo=settings.debug)
        repository.create_table()
        return repository
    raise ValueError(f"Unsupported model store backend: {backend}")
