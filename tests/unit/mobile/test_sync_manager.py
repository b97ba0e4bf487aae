from datetime import datetime, timezone

import pytest
import structlog
from structlog.testing import capture_logs

from bizflow.mobile.application.dtos import BatchItemError, SyncCommand
from bizflow.mobile.application.services import SyncManager
from bizflow.mobile.application.services import sync_manager as sync_manager_module
from bizflow.mobile.application.services.sync_manager import (
    compute_checksum,
    decode_cursor,
    encode_cursor,
    from_epoch_ms,
    to_epoch_ms,
)
from bizflow.mobile.domain.entities import (
    ChangeAction,
    IdentityContext,
    PendingChange,
    Resolution,
    StoredRecord,
    SyncResult,
)
from bizflow.mobile.infrastructure.repositories import InMemoryEntityStore, InMemorySyncStateRepository
from bizflow.shared.exceptions import InvalidRequestError, ValidationError

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
IDENTITY = IdentityContext(user_id="user-1", tenant_id="tenant-1", device_id="dev-1", role="staff")


class FlakyEntityStore(InMemoryEntityStore):
    async def apply(self, tenant_id, entity, change, *, now_ms):
        if change.id == "boom":
            raise RuntimeError("disk full")
        return await super().apply(tenant_id, entity, change, now_ms=now_ms)


def make_manager(store=None, **kwargs):
    store = store or InMemoryEntityStore()
    manager = SyncManager(records=store, states=InMemorySyncStateRepository(), clock=lambda: NOW, **kwargs)
    return manager, store


def server_record(record_id, *, modified_at_ms, server_timestamp_ms, data=None):
    return StoredRecord(
        id=record_id,
        data=data if data is not None else {"name": "Server copy"},
        modified_at_ms=modified_at_ms,
        server_timestamp_ms=server_timestamp_ms,
        last_action=ChangeAction.CREATE,
    )


def update(record_id, ts, data=None):
    return PendingChange(id=record_id, action=ChangeAction.UPDATE, client_timestamp_ms=ts, data=data or {"name": "Client copy"})


def create_change(record_id):
    return PendingChange(id=record_id, action=ChangeAction.CREATE, client_timestamp_ms=1, data={"id": record_id})


@pytest.mark.anyio
async def test_first_sync_applies_create_and_starts_at_version_one():
    manager, store = make_manager()
    cmd = SyncCommand(
        entity="customers",
        pending_changes=[PendingChange(id="c-1", action=ChangeAction.CREATE, client_timestamp_ms=1, data={"name": "Ada"})],
    )
    result = await manager.process_sync(IDENTITY, cmd)

    assert result.processed == ["c-1"]
    assert result.conflicts == []
    assert result.server_version == 1
    assert result.synced_at == NOW
    assert (await store.get("tenant-1", "customers", "c-1")).data == {"name": "Ada"}


@pytest.mark.anyio
async def test_older_client_update_loses_to_server():
    manager, store = make_manager()
    store.seed("tenant-1", "customers", [server_record("c-1", modified_at_ms=100, server_timestamp_ms=100)])

    result = await manager.process_sync(IDENTITY, SyncCommand(entity="customers", pending_changes=[update("c-1", 50)]))

    assert len(result.conflicts) == 1
    conflict = result.conflicts[0]
    assert conflict.resolution is Resolution.SERVER_WINS
    assert conflict.server_data == {"name": "Server copy"}
    assert result.processed == []
    assert (await store.get("tenant-1", "customers", "c-1")).data == {"name": "Server copy"}


@pytest.mark.anyio
async def test_newer_client_update_wins_and_is_written():
    manager, store = make_manager()
    store.seed("tenant-1", "customers", [server_record("c-1", modified_at_ms=100, server_timestamp_ms=100)])

    result = await manager.process_sync(IDENTITY, SyncCommand(entity="customers", pending_changes=[update("c-1", 150)]))

    assert [c.resolution for c in result.conflicts] == [Resolution.CLIENT_WINS]
    assert result.processed == []
    record = await store.get("tenant-1", "customers", "c-1")
    assert record.data == {"name": "Client copy"}
    assert record.modified_at_ms == 150


@pytest.mark.anyio
async def test_update_based_on_current_server_state_is_not_a_conflict():
    manager, store = make_manager()
    store.seed("tenant-1", "customers", [server_record("c-1", modified_at_ms=100, server_timestamp_ms=100)])
    synced_after_write = datetime.fromtimestamp(0.2, tz=timezone.utc)  # 200 ms

    result = await manager.process_sync(
        IDENTITY,
        SyncCommand(entity="customers", last_synced_at=synced_after_write, pending_changes=[update("c-1", 150)]),
    )
    assert result.conflicts == []
    assert result.processed == ["c-1"]


@pytest.mark.anyio
async def test_resubmitted_change_is_idempotent():
    manager, store = make_manager()
    create = PendingChange(id="c-9", action=ChangeAction.CREATE, client_timestamp_ms=10, data={"name": "Once"})

    first = await manager.process_sync(IDENTITY, SyncCommand(entity="customers", pending_changes=[create]))
    stored = await store.get("tenant-1", "customers", "c-9")
    second = await manager.process_sync(
        IDENTITY, SyncCommand(entity="customers", last_synced_at=first.synced_at, pending_changes=[create])
    )

    assert second.processed == ["c-9"]
    assert await store.get("tenant-1", "customers", "c-9") == stored
    assert second.changes == []

    # a retried update with identical data is not reported as a conflict either
    retried = PendingChange(id="c-9", action=ChangeAction.UPDATE, client_timestamp_ms=10, data={"name": "Once"})
    third = await manager.process_sync(IDENTITY, SyncCommand(entity="customers", pending_changes=[retried]))
    assert third.conflicts == []
    assert await store.get("tenant-1", "customers", "c-9") == stored


@pytest.mark.anyio
async def test_delete_marks_record_and_is_emitted_as_delete():
    manager, store = make_manager()
    store.seed("tenant-1", "customers", [server_record("c-1", modified_at_ms=100, server_timestamp_ms=100)])
    delete = PendingChange(id="c-1", action=ChangeAction.DELETE, client_timestamp_ms=200)

    result = await manager.process_sync(IDENTITY, SyncCommand(entity="customers", pending_changes=[delete]))

    assert result.processed == ["c-1"]
    record = await store.get("tenant-1", "customers", "c-1")
    assert record.deleted and record.data is None
    assert [(c.id, c.action) for c in result.changes] == [("c-1", ChangeAction.DELETE)]


@pytest.mark.anyio
async def test_failed_change_does_not_sink_the_batch():
    manager, store = make_manager(FlakyEntityStore())
    changes = [
        PendingChange(id="ok-1", action=ChangeAction.CREATE, client_timestamp_ms=1, data={"n": 1}),
        PendingChange(id="boom", action=ChangeAction.CREATE, client_timestamp_ms=1, data={"n": 2}),
        PendingChange(id="ok-2", action=ChangeAction.CREATE, client_timestamp_ms=1, data={"n": 3}),
    ]
    result = await manager.process_sync(IDENTITY, SyncCommand(entity="customers", pending_changes=changes))

    assert result.processed == ["ok-1", "ok-2"]
    assert result.failed == ["boom"]
    assert result.server_version == 1


@pytest.mark.anyio
async def test_failed_change_is_logged(monkeypatch):
    manager, _ = make_manager(FlakyEntityStore())
    boom = PendingChange(id="boom", action=ChangeAction.CREATE, client_timestamp_ms=1, data={"n": 2})

    with capture_logs() as logs:
        monkeypatch.setattr(sync_manager_module, "logger", structlog.get_logger("sync"))
        await manager.process_sync(IDENTITY, SyncCommand(entity="customers", pending_changes=[boom]))

    failures = [e for e in logs if e["event"] == "sync_change_failed"]
    assert len(failures) == 1
    assert failures[0]["change_id"] == "boom"
    assert failures[0]["entity"] == "customers"
    assert failures[0]["error"] == "disk full"
    assert failures[0]["log_level"] == "warning"


@pytest.mark.anyio
async def test_oversized_batch_is_rejected_before_anything_is_applied():
    manager, store = make_manager(max_batch_size=2)
    changes = [
        PendingChange(id=f"c-{i}", action=ChangeAction.CREATE, client_timestamp_ms=1, data={"i": i}) for i in range(3)
    ]
    with pytest.raises(ValidationError):
        await manager.process_sync(IDENTITY, SyncCommand(entity="customers", pending_changes=changes))
    assert await store.get("tenant-1", "customers", "c-0") is None


@pytest.mark.anyio
async def test_pagination_walks_disjoint_pages():
    manager, store = make_manager(page_size=100)
    store.seed(
        "tenant-1",
        "orders",
        [server_record(f"o-{i:03d}", modified_at_ms=i, server_timestamp_ms=i) for i in range(1, 251)],
    )

    seen = []
    cursor = None
    pages = []
    while True:
        result = await manager.process_sync(IDENTITY, SyncCommand(entity="orders", cursor=cursor))
        pages.append(result)
        seen.extend(c.id for c in result.changes)
        if not result.has_more:
            break
        assert result.next_cursor is not None
        cursor = result.next_cursor

    assert [len(p.changes) for p in pages] == [100, 100, 50]
    assert pages[-1].next_cursor is None
    assert len(seen) == len(set(seen)) == 250
    assert seen == sorted(seen)


@pytest.mark.anyio
async def test_server_version_is_monotonic_per_entity():
    manager, _ = make_manager()
    versions = [
        (await manager.process_sync(IDENTITY, SyncCommand(entity="customers"))).server_version for _ in range(3)
    ]
    assert versions == [1, 2, 3]
    assert (await manager.process_sync(IDENTITY, SyncCommand(entity="orders"))).server_version == 1


@pytest.mark.anyio
async def test_sync_state_is_scoped_per_user_and_tenant():
    manager, _ = make_manager()
    other_user = IdentityContext(user_id="user-2", tenant_id="tenant-1", device_id="dev-9", role="staff")
    await manager.process_sync(IDENTITY, SyncCommand(entity="customers"))
    assert (await manager.process_sync(other_user, SyncCommand(entity="customers"))).server_version == 1


@pytest.mark.anyio
async def test_invalid_cursor_is_an_invalid_request():
    manager, _ = make_manager()
    with pytest.raises(InvalidRequestError):
        await manager.process_sync(IDENTITY, SyncCommand(entity="customers", cursor="bm90LWpzb24"))


@pytest.mark.anyio
async def test_batch_reports_failing_entity_without_affecting_others():
    manager, _ = make_manager()
    results = await manager.process_batch(
        IDENTITY,
        [
            SyncCommand(entity="customers"),
            SyncCommand(entity="orders", cursor="bm90LWpzb24"),
            SyncCommand(entity="products"),
        ],
    )

    assert isinstance(results[0], SyncResult) and results[0].entity == "customers"
    assert isinstance(results[1], BatchItemError)
    assert results[1].entity == "orders"
    assert results[1].error == "INVALID_REQUEST"
    assert results[1].retryable is False
    assert isinstance(results[2], SyncResult) and results[2].server_version == 1


def test_checksum_is_stable_and_16_hex_chars():
    page = [{"id": "a", "action": "create", "data": {"x": 1, "y": 2}, "timestamp": 5}]
    reordered = [{"timestamp": 5, "data": {"y": 2, "x": 1}, "action": "create", "id": "a"}]
    checksum = compute_checksum(page)
    assert len(checksum) == 16
    int(checksum, 16)
    assert compute_checksum(reordered) == checksum
    assert compute_checksum([]) != checksum


def test_cursor_is_opaque_and_decodable():
    cursor = encode_cursor((1714564800000, "o-042"))
    assert "=" not in cursor
    assert decode_cursor(cursor) == (1714564800000, "o-042")


def test_naive_datetimes_are_treated_as_utc():
    assert to_epoch_ms(datetime(1970, 1, 1, 0, 0, 1)) == 1000
    assert to_epoch_ms(None) == 0
    assert to_epoch_ms(from_epoch_ms(1714564800001)) == 1714564800001


@pytest.mark.anyio
async def test_write_from_another_device_in_the_same_millisecond_reaches_the_next_sync():
    # frozen clock: every call and write lands in the same millisecond
    manager, store = make_manager()
    other_device = IdentityContext(user_id="user-2", tenant_id="tenant-1", device_id="dev-2", role="staff")

    first = await manager.process_sync(IDENTITY, SyncCommand(entity="customers"))
    await manager.process_sync(
        other_device,
        SyncCommand(
            entity="customers",
            pending_changes=[PendingChange(id="c-9", action=ChangeAction.CREATE, client_timestamp_ms=5, data={"n": 9})],
        ),
    )
    assert (await store.get("tenant-1", "customers", "c-9")).server_timestamp_ms > to_epoch_ms(first.synced_at)

    follow_up = await manager.process_sync(IDENTITY, SyncCommand(entity="customers", last_synced_at=first.synced_at))
    assert [c.id for c in follow_up.changes] == ["c-9"]

    caught_up = await manager.process_sync(IDENTITY, SyncCommand(entity="customers", last_synced_at=follow_up.synced_at))
    assert caught_up.changes == []


@pytest.mark.anyio
async def test_write_stamps_are_strictly_increasing_and_pages_stop_at_the_watermark():
    store = InMemoryEntityStore()
    now_ms = to_epoch_ms(NOW)
    a = await store.apply("tenant-1", "customers", create_change("a"), now_ms=now_ms)
    b = await store.apply("tenant-1", "customers", create_change("b"), now_ms=now_ms)
    mark = await store.watermark("tenant-1", "customers", now_ms=now_ms)
    c = await store.apply("tenant-1", "customers", create_change("c"), now_ms=now_ms)

    assert a.server_timestamp_ms < b.server_timestamp_ms <= mark < c.server_timestamp_ms
    page = await store.changes_since("tenant-1", "customers", since_ms=0, until_ms=mark, after=None, limit=10)
    assert [r.id for r in page] == ["a", "b"]
    rest = await store.changes_since("tenant-1", "customers", since_ms=mark, until_ms=c.server_timestamp_ms, after=None, limit=10)
    assert [r.id for r in rest] == ["c"]
