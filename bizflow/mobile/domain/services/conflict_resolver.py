from __future__ import annotations

from typing import Optional

from bizflow.mobile.domain.entities import (
    ChangeAction,
    ConflictRecord,
    PendingChange,
    Resolution,
    StoredRecord,
)


class ConflictResolver:
    """
    Last-writer-wins conflict detection for client updates.

    An update conflicts when the server copy is newer than the client's
    edit, or when the server accepted a write after the client's sync base
    (someone else edited concurrently). Creates and deletes never conflict.
    """

    def detect(self, change: PendingChange, record: Optional[StoredRecord], *, sync_base_ms: int) -> bool:
        if change.action is not ChangeAction.UPDATE or record is None:
            return False
        if not record.deleted and record.data == change.data:
            # already applied (a retried upload)
            return False
        return record.modified_at_ms > change.client_timestamp_ms or record.server_timestamp_ms > sync_base_ms

    @staticmethod
    def resolve(change: PendingChange, record: StoredRecord) -> Resolution:
        if change.client_timestamp_ms > record.modified_at_ms:
            return Resolution.CLIENT_WINS
        return Resolution.SERVER_WINS

    def evaluate(
        self, change: PendingChange, record: Optional[StoredRecord], *, sync_base_ms: int
    ) -> Optional[ConflictRecord]:
        if record is None or not self.detect(change, record, sync_base_ms=sync_base_ms):
            return None
        return ConflictRecord(
            client_change=change,
            server_data=record.data,
            resolution=self.resolve(change, record),
        )
