"""Tests for the record table and the code index."""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

import pytest

from invite_store.database import Statement
from invite_store.errors import StoreUnavailableError
from invite_store.models import Consistency
from invite_store.redis_client import cache_set, get_cached_code, set_cached_code
from invite_store.tables import (
    InvitationIndexStore,
    InvitationRecordStore,
    from_millis,
    to_millis,
    truncate_to_millis,
)
from tests.fakes import FlakySession

NOW = datetime(2026, 3, 14, 15, 9, 26, 535897, tzinfo=timezone.utc)


@pytest.fixture
def records(session, single_read, fast_writes) -> InvitationRecordStore:
    return InvitationRecordStore(session, single_read, fast_writes)


@pytest.fixture
def index(session, single_read, fast_writes) -> InvitationIndexStore:
    return InvitationIndexStore(session, single_read, fast_writes)


class TestTimestamps:
    def test_truncates_to_millis(self):
        assert truncate_to_millis(NOW).microsecond == 535000

    def test_naive_is_utc(self):
        naive = datetime(2026, 1, 1, 12, 0, 0, 1500)
        assert truncate_to_millis(naive) == datetime(2026, 1, 1, 12, 0, 0, 1000, tzinfo=timezone.utc)

    def test_millis_round_trip(self):
        assert from_millis(to_millis(NOW)) == truncate_to_millis(NOW)

    def test_other_timezones_normalized(self):
        plus_two = NOW.astimezone(timezone(timedelta(hours=2)))
        assert to_millis(plus_two) == to_millis(NOW)


class TestInvitationRecordStore:
    async def test_insert_and_get(self, records, team):
        inv_id = uuid.uuid4()
        await records.insert(team, inv_id, "code-1", "alice@example.com", NOW)
        inv = await records.get(team, inv_id)
        assert inv is not None
        assert inv.team == team
        assert inv.id == inv_id
        assert inv.email == "alice@example.com"
        assert inv.created_at == truncate_to_millis(NOW)

    async def test_get_missing(self, records, team):
        assert await records.get(team, uuid.uuid4()) is None

    async def test_get_is_partitioned_by_team(self, records, team):
        inv_id = uuid.uuid4()
        await records.insert(team, inv_id, "code-1", "alice@example.com", NOW)
        assert await records.get(uuid.uuid4(), inv_id) is None

    async def test_insert_is_upsert(self, records, team):
        inv_id = uuid.uuid4()
        await records.insert(team, inv_id, "code-1", "alice@example.com", NOW)
        await records.insert(team, inv_id, "code-2", "bob@example.com", NOW)
        assert (await records.get(team, inv_id)).email == "bob@example.com"
        assert await records.get_code(team, inv_id) == "code-2"
        assert await records.count(team) == 1

    async def test_get_code(self, records, team):
        inv_id = uuid.uuid4()
        await records.insert(team, inv_id, "code-1", "alice@example.com", NOW)
        assert await records.get_code(team, inv_id) == "code-1"

    async def test_get_code_missing_row(self, records, team):
        assert await records.get_code(team, uuid.uuid4()) is None

    async def test_get_code_legacy_row(self, records, session, team):
        inv_id = uuid.uuid4()
        await session.write(Statement(
            "INSERT INTO team_invitation (team, id, code, email, created_at) VALUES (?, ?, NULL, ?, ?)",
            (str(team), str(inv_id), "old@example.com", to_millis(NOW)),
        ))
        assert await records.get_code(team, inv_id) is None
        assert await records.get(team, inv_id) is not None

    async def test_delete(self, records, team):
        inv_id = uuid.uuid4()
        await records.insert(team, inv_id, "code-1", "alice@example.com", NOW)
        await records.delete(team, inv_id)
        assert await records.get(team, inv_id) is None

    async def test_delete_missing_is_noop(self, records, team):
        await records.delete(team, uuid.uuid4())

    async def test_count(self, records, team):
        assert await records.count(team) == 0
        for i in range(3):
            await records.insert(team, uuid.uuid4(), f"c{i}", f"u{i}@example.com", NOW)
        await records.insert(uuid.uuid4(), uuid.uuid4(), "other", "x@example.com", NOW)
        assert await records.count(team) == 3

    async def test_list_ids_pages(self, records, team):
        ids = sorted(uuid.uuid4() for _ in range(5))
        for i, inv_id in enumerate(ids):
            await records.insert(team, inv_id, f"c{i}", f"u{i}@example.com", NOW)

        first = await records.list_ids(team, 2)
        assert first.ids == ids[:2]
        assert first.has_more is True

        second = await records.list_ids_after(team, first.cursor, 2)
        assert second.ids == ids[2:4]
        assert second.has_more is True

        last = await records.list_ids_after(team, second.cursor, 2)
        assert last.ids == ids[4:]
        assert last.has_more is False

    async def test_list_ids_exact_fit(self, records, team):
        for i in range(3):
            await records.insert(team, uuid.uuid4(), f"c{i}", f"u{i}@example.com", NOW)
        page = await records.list_ids(team, 3)
        assert len(page.ids) == 3
        assert page.has_more is False

    async def test_list_ids_empty_team(self, records, team):
        page = await records.list_ids(team, 10)
        assert page.ids == []
        assert page.has_more is False

    async def test_select_after(self, records, team):
        ids = sorted(uuid.uuid4() for _ in range(4))
        for i, inv_id in enumerate(ids):
            await records.insert(team, inv_id, f"c{i}", f"u{i}@example.com", NOW)
        rows = await records.select(team, ids[1], 10)
        assert [r.id for r in rows] == ids[2:]

    async def test_reads_use_quorum(self, records, session, team):
        await records.get(team, uuid.uuid4())
        await records.count(team)
        assert set(session.consistencies) == {Consistency.QUORUM}

    async def test_read_fails_fast(self, single_read, fast_writes, team):
        flaky = FlakySession(failures=1, methods=("fetch_one",))
        records = InvitationRecordStore(flaky, single_read, fast_writes)
        with pytest.raises(StoreUnavailableError) as exc_info:
            await records.get(team, uuid.uuid4())
        assert exc_info.value.attempts == 1

    async def test_write_retries(self, single_read, fast_writes, team):
        flaky = FlakySession(failures=4, methods=("write",))
        records = InvitationRecordStore(flaky, single_read, fast_writes)
        inv_id = uuid.uuid4()
        await records.insert(team, inv_id, "code-1", "alice@example.com", NOW)
        assert flaky.failed["write"] == 4
        assert await records.get(team, inv_id) is not None


class TestInvitationIndexStore:
    async def test_put_and_lookup(self, index, team):
        inv_id = uuid.uuid4()
        await index.put("code-1", team, inv_id)
        info = await index.lookup("code-1")
        assert info is not None
        assert (info.code, info.team, info.id) == ("code-1", team, inv_id)

    async def test_lookup_missing(self, index):
        assert await index.lookup("unknown") is None

    async def test_empty_code_skips_store(self, index, session):
        assert await index.lookup("") is None
        assert session.total_calls == 0

    async def test_delete(self, index, team):
        await index.put("code-1", team, uuid.uuid4())
        await index.delete("code-1")
        assert await index.lookup("code-1") is None

    async def test_delete_missing_is_noop(self, index):
        await index.delete("nothing-here")

    async def test_lookup_fills_cache(self, index, team):
        inv_id = uuid.uuid4()
        await index.put("code-1", team, inv_id)
        await index.lookup("code-1")
        assert await get_cached_code("code-1") == {"team": str(team), "id": str(inv_id)}

    async def test_cache_hit_skips_store(self, index, session, team):
        inv_id = uuid.uuid4()
        await set_cached_code("code-9", str(team), str(inv_id))
        info = await index.lookup("code-9")
        assert info.team == team
        assert info.id == inv_id
        assert session.calls["fetch_one"] == 0

    async def test_delete_evicts_cache(self, index, team):
        await index.put("code-1", team, uuid.uuid4())
        await index.lookup("code-1")
        await index.delete("code-1")
        assert await get_cached_code("code-1") is None

    async def test_malformed_cache_entry_falls_back_to_store(self, index, session, team):
        inv_id = uuid.uuid4()
        await index.put("code-1", team, inv_id)
        await cache_set("invitation:code:code-1", {"team": "not-a-uuid", "id": "x"})
        info = await index.lookup("code-1")
        assert (info.team, info.id) == (team, inv_id)
        assert session.calls["fetch_one"] == 1

    async def test_foreign_cache_value_is_a_miss(self, index, team):
        await cache_set("invitation:code:code-2", "something else")
        assert await index.lookup("code-2") is None
