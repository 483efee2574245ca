"""Tests for the model document repositories."""

import asyncio
import json
from types import SimpleNamespace

import pytest

from taskweave.services.repositories import (
    FileModelRepository,
    InMemoryModelRepository,
    RedisModelRepository,
    SqlModelRepository,
    build_repository,
)

DOCUMENT = {
    'arms': [{'armId': 0, 'A': [1.0, 0.0, 0.0, 1.0], 'b': [0.0, 0.5]}],
    'updatedAt': '2024-03-12T10:00:00+00:00',
    'version': 2,
    'featureDimension': 2,
}


class FakeRedis:
    def __init__(self):
        self.values = {}

    async def get(self, key):
        return self.values.get(key)

    async def set(self, key, value):
        self.values[key] = value


def test_in_memory_repository_copies_documents():
    repository = InMemoryModelRepository()

    async def scenario():
        await repository.save("u1", DOCUMENT)
        loaded = await repository.load("u1")
        loaded['version'] = 99
        return await repository.load("u1"), await repository.load("missing")

    stored, missing = asyncio.run(scenario())
    assert stored['version'] == 2
    assert missing is None


def test_file_repository_round_trip(tmp_path):
    repository = FileModelRepository(str(tmp_path))

    async def scenario():
        before = await repository.load("u1")
        await repository.save("u1", DOCUMENT)
        return before, await repository.load("u1")

    before, after = asyncio.run(scenario())
    assert before is None
    assert after == DOCUMENT
    assert (tmp_path / "u1" / "linucb.json").exists()
    assert not (tmp_path / "u1" / "linucb.json.tmp").exists()


def test_file_repository_rejects_path_like_user_ids(tmp_path):
    repository = FileModelRepository(str(tmp_path))
    for user_id in ("../escape", "a/b", "", ".."):
        with pytest.raises(ValueError):
            asyncio.run(repository.load(user_id))


def test_sql_repository_overwrites(tmp_path):
    repository = SqlModelRepository.from_url(f"sqlite:///{tmp_path / 'models.db'}")
    repository.create_table()
    updated = dict(DOCUMENT, version=3)

    async def scenario():
        assert await repository.load("u1") is None
        await repository.save("u1", DOCUMENT)
        await repository.save("u1", updated)
        return await repository.load("u1")

    assert asyncio.run(scenario()) == updated


def test_redis_repository_uses_prefixed_keys():
    client = FakeRedis()
    repository = RedisModelRepository(client, key_prefix="test:linucb")

    async def scenario():
        await repository.save("u1", DOCUMENT)
        return await repository.load("u1"), await repository.load("u2")

    loaded, missing = asyncio.run(scenario())
    assert loaded == DOCUMENT
    assert missing is None
    assert json.loads(client.values["test:linucb:u1"]) == DOCUMENT


def test_build_repository_by_backend(tmp_path):
    settings = SimpleNamespace(model_store_backend="memory")
    assert isinstance(build_repository(settings), InMemoryModelRepository)

    settings = SimpleNamespace(model_store_backend="file", model_store_path=str(tmp_path))
    assert isinstance(build_repository(settings), FileModelRepository)

    settings = SimpleNamespace(model_store_backend="sql", database_url=f"sqlite:///{tmp_path / 'm.db'}", debug=False)
    assert isinstance(build_repository(settings), SqlModelRepository)

    with pytest.raises(ValueError):
        build_repository(SimpleNamespace(model_store_backend="cassandra"))


def test_sql_backend_creates_missing_sqlite_directory(tmp_path):
    database = tmp_path / "data" / "nested" / "models.db"
    settings = SimpleNamespace(model_store_backend="sql", database_url=f"sqlite:///{database}", debug=False)

    repository = build_repository(settings)
    asyncio.run(repository.save("u1", DOCUMENT))

    assert database.parent.is_dir()
    assert asyncio.run(repository.load("u1")) == DOCUMENT
