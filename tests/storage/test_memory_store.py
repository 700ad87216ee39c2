"""Tests for the in-process storage backend."""

from __future__ import annotations

from datetime import timedelta

import pytest

from codifier.core.exceptions import ConflictError, DataStoreError
from codifier.storage.backend import SessionStatus


class TestProjects:
    async def test_create_and_get(self, store):
        project = await store.create_project("Payments", org="acme")
        fetched = await store.get_project(project.id)
        assert fetched.name == "Payments"
        assert fetched.org == "acme"

    async def test_get_unknown_returns_none(self, store):
        assert await store.get_project("nope") is None

    async def test_list_newest_first(self, store):
        older = await store.create_project("Old")
        newer = await store.create_project("New")
        store._projects[older.id].created_at -= timedelta(minutes=5)

        projects = await store.list_projects()
        assert [p.id for p in projects] == [newer.id, older.id]


class TestMemories:
    async def test_insert_and_fetch(self, store):
        record = await store.upsert_memory("p1", "rule", "Use black", {"text": "format with black"}, tags=["style"])
        memories = await store.fetch_memories("p1")
        assert [m.id for m in memories] == [record.id]
        assert memories[0].tags == ["style"]

    async def test_update_in_place(self, store):
        record = await store.upsert_memory("p1", "rule", "Old", {"v": 1})
        updated = await store.upsert_memory("p1", "rule", "New", {"v": 2}, memory_id=record.id)
        assert updated.id == record.id
        assert updated.title == "New"
        assert updated.created_at == record.created_at
        assert len(await store.fetch_memories("p1")) == 1

    async def test_update_unknown_id_fails(self, store):
        with pytest.raises(DataStoreError):
            await store.upsert_memory("p1", "rule", "x", {}, memory_id="missing")

    async def test_update_other_project_fails(self, store):
        record = await store.upsert_memory("p1", "rule", "x", {})
        with pytest.raises(DataStoreError):
            await store.upsert_memory("p2", "rule", "x", {}, memory_id=record.id)

    async def test_filters(self, store):
        await store.upsert_memory("p1", "rule", "Naming", {"text": "snake_case"}, tags=["style", "python"])
        await store.upsert_memory("p1", "learning", "Outage", {"text": "retry storms"}, tags=["ops"])
        await store.upsert_memory("p2", "rule", "Other project", {})

        assert [m.title for m in await store.fetch_memories("p1", memory_type="learning")] == ["Outage"]
        assert [m.title for m in await store.fetch_memories("p1", tags=["style", "python"])] == ["Naming"]
        assert await store.fetch_memories("p1", tags=["style", "ops"]) == []
        assert [m.title for m in await store.fetch_memories("p1", query="RETRY")] == ["Outage"]
        assert [m.title for m in await store.fetch_memories("p1", query="naming")] == ["Naming"]

    async def test_limit(self, store):
        for i in range(5):
            await store.upsert_memory("p1", "rule", f"r{i}", {})
        assert len(await store.fetch_memories("p1", limit=2)) == 2

    async def test_returned_records_are_copies(self, store):
        record = await store.upsert_memory("p1", "rule", "x", {"items": [1]})
        record.content["items"].append(2)
        fetched = await store.fetch_memories("p1")
        assert fetched[0].content == {"items": [1]}


class TestRepositories:
    async def test_save_repository(self, store):
        repo = await store.save_repository("p1", "https://github.com/a/b", "snapshot", token_count=10)
        d = repo.to_dict()
        assert d["snapshot_chars"] == len("snapshot")
        assert "snapshot" not in d
        assert repo.to_dict(include_snapshot=True)["snapshot"] == "snapshot"


class TestSessions:
    async def test_create_session_defaults(self, store):
        session = await store.create_session("onboard", "p1")
        assert session.current_step == 0
        assert session.collected_data == {}
        assert session.status == SessionStatus.ACTIVE
        assert session.version == 1

    async def test_update_bumps_version(self, store):
        session = await store.create_session("onboard", "p1")
        updated = await store.update_session(session.id, current_step=1, collected_data={"a": 1})
        assert updated.version == 2
        assert updated.current_step == 1
        assert updated.collected_data == {"a": 1}

    async def test_update_with_stale_version_conflicts(self, store):
        session = await store.create_session("onboard", "p1")
        await store.update_session(session.id, current_step=1, expected_version=session.version)

        with pytest.raises(ConflictError):
            await store.update_session(session.id, current_step=2, expected_version=session.version)

        current = await store.get_session(session.id)
        assert current.current_step == 1
        assert current.version == 2

    async def test_update_unknown_session(self, store):
        with pytest.raises(DataStoreError):
            await store.update_session("missing", current_step=1)

    async def test_abandon(self, store):
        session = await store.create_session("onboard", "p1")
        abandoned = await store.abandon_session(session.id)
        assert abandoned.status == SessionStatus.ABANDONED
        assert not abandoned.is_active

    async def test_collected_data_copied_on_write(self, store):
        session = await store.create_session("onboard", "p1")
        data = {"answers": ["a"]}
        await store.update_session(session.id, collected_data=data)
        data["answers"].append("b")
        assert (await store.get_session(session.id)).collected_data == {"answers": ["a"]}

    async def test_health(self, store):
        assert store.backend_type == "memory"
        assert await store.health_check() is True
