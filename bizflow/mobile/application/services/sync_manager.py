"""
Bidirectional offline sync.

One call per (tenant, user, entity): apply the client's pending changes
(last-writer-wins on conflicting updates), then page through the server
changes the client has not seen yet, then advance the sync state.
"""
from __future__ import annotations

import asyncio
import base64
import binascii
import hashlib
import json
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, List, Optional, Sequence, Tuple, Union

from bizflow.mobile.application.dtos import BatchItemError, SyncCommand
from bizflow.mobile.domain.entities import (
    EPOCH,
    ConflictRecord,
    IdentityContext,
    Resolution,
    ServerChange,
    StoredRecord,
    SyncKey,
    SyncResult,
)
from bizflow.mobile.domain.repositories import EntityStore, SyncStateRepository
from bizflow.mobile.domain.services import ConflictResolver
from bizflow.shared.exceptions import InvalidRequestError, ValidationError, classify
from bizflow.shared.logging import get_logger

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_epoch_ms(value: Optional[datetime]) -> int:
    if value is None:
        return 0
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return (value - EPOCH) // timedelta(milliseconds=1)


def from_epoch_ms(value: int) -> datetime:
    return EPOCH + timedelta(milliseconds=value)


def encode_cursor(position: Tuple[int, str]) -> str:
    raw = json.dumps({"t": position[0], "id": position[1]}, separators=(",", ":")).encode()
    return base64.urlsafe_b64encode(raw).decode().rstrip("=")


def decode_cursor(cursor: str) -> Tuple[int, str]:
    try:
        padded = cursor + "=" * (-len(cursor) % 4)
        data = json.loads(base64.urlsafe_b64decode(padded.encode()))
        return int(data["t"]), str(data["id"])
    except (binascii.Error, ValueError, KeyError, TypeError) as exc:
        raise InvalidRequestError("Invalid sync cursor", details={"field": "cursor"}) from exc


def compute_checksum(changes: Sequence[dict]) -> str:
    """First 16 hex chars of SHA-256 over the canonical JSON of a change page."""
    canonical = json.dumps(list(changes), sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:16]


def _server_change(record: StoredRecord) -> ServerChange:
    return ServerChange(
        id=record.id,
        action=record.last_action,
        data=record.data,
        server_timestamp_ms=record.server_timestamp_ms,
    )


class SyncManager:
    def __init__(
        self,
        *,
        records: EntityStore,
        states: SyncStateRepository,
        resolver: Optional[ConflictResolver] = None,
        page_size: int = 100,
        max_batch_size: int = 100,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.records = records
        self.states = states
        self.resolver = resolver or ConflictResolver()
        self.page_size = page_size
        self.max_batch_size = max_batch_size
        self._clock = clock

    def _now_ms(self) -> int:
        return to_epoch_ms(self._clock())

    async def process_sync(self, identity: IdentityContext, cmd: SyncCommand) -> SyncResult:
        key = SyncKey(tenant_id=identity.tenant_id, user_id=identity.user_id, entity=cmd.entity)

        if len(cmd.pending_changes) > self.max_batch_size:
            raise ValidationError(
                f"Too many pending changes (max {self.max_batch_size})",
                details={"entity": cmd.entity, "count": len(cmd.pending_changes), "max": self.max_batch_size},
            )
        after = decode_cursor(cmd.cursor) if cmd.cursor else None
        sync_base_ms = to_epoch_ms(cmd.last_synced_at)

        previous = await self.states.get(key)
        log = logger.bind(
            entity=cmd.entity,
            device_id=identity.device_id,
            server_version=previous.server_version if previous else 0,
        )

        processed: List[str] = []
        failed: List[str] = []
        conflicts: List[ConflictRecord] = []

        for change in cmd.pending_changes:
            try:
                record = await self.records.get(identity.tenant_id, cmd.entity, change.id)
                conflict = self.resolver.evaluate(change, record, sync_base_ms=sync_base_ms)
                if conflict is not None:
                    conflicts.append(conflict)
                    if conflict.resolution is Resolution.CLIENT_WINS:
                        await self.records.apply(
                            identity.tenant_id, cmd.entity, change, now_ms=self._now_ms()
                        )
                    continue
                await self.records.apply(identity.tenant_id, cmd.entity, change, now_ms=self._now_ms())
                processed.append(change.id)
            except Exception as exc:
                # one bad change must not sink the rest of the batch
                log.warning("sync_change_failed", change_id=change.id, action=change.action.value, error=str(exc))
                failed.append(change.id)

        # the page is cut at a server-issued watermark; later writes are stamped after it
        watermark_ms = await self.records.watermark(identity.tenant_id, cmd.entity, now_ms=self._now_ms())
        synced_at = from_epoch_ms(watermark_ms)
        rows = await self.records.changes_since(
            identity.tenant_id,
            cmd.entity,
            since_ms=sync_base_ms,
            until_ms=watermark_ms,
            after=after,
            limit=self.page_size + 1,
        )
        has_more = len(rows) > self.page_size
        changes = [_server_change(r) for r in rows[: self.page_size]]
        next_cursor = (
            encode_cursor((changes[-1].server_timestamp_ms, changes[-1].id)) if has_more and changes else None
        )
        checksum = compute_checksum([c.to_wire() for c in changes])

        state = await self.states.advance(key, synced_at=synced_at, checksum=checksum)
        log.info(
            "sync_completed",
            new_server_version=state.server_version,
            processed=len(processed),
            conflicts=len(conflicts),
            failed=len(failed),
            changes=len(changes),
            has_more=has_more,
        )
        return SyncResult(
            entity=cmd.entity,
            server_version=state.server_version,
            synced_at=synced_at,
            checksum=checksum,
            changes=changes,
            conflicts=conflicts,
            processed=processed,
            failed=failed,
            has_more=has_more,
            next_cursor=next_cursor,
        )

    async def process_batch(
        self, identity: IdentityContext, commands: Sequence[SyncCommand]
    ) -> List[Union[SyncResult, BatchItemError]]:
        """Sync several entities concurrently; a failing entity yields an error item, not a failed batch."""
        outcomes: List[Any] = await asyncio.gather(
            *(self.process_sync(identity, cmd) for cmd in commands),
            return_exceptions=True,
        )
        results: List[Union[SyncResult, BatchItemError]] = []
        for cmd, outcome in zip(commands, outcomes):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, Exception):
                    raise outcome
                api_error = classify(outcome)
                logger.warning("sync_entity_failed", entity=cmd.entity, code=api_error.code.value)
                results.append(
                    BatchItemError(
                        entity=cmd.entity,
                        error=api_error.code.value,
                        message=api_error.message,
                        retryable=api_error.retryable,
                        details=api_error.details if isinstance(api_error.details, dict) else None,
                    )
                )
            else:
                results.append(outcome)
        return results
