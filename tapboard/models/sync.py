"""Sync state for locally persisted records."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Generic, Optional, TypeVar

T = TypeVar("T")


class SyncState(Enum):
    """Lifecycle of a record relative to the remote store."""
    LOCAL_UNSYNCED = "local_unsynced"
    SYNC_PENDING = "sync_pending"
    SYNCED = "synced"


class RecordKind(str, Enum):
    """Record families kept in the local store."""
    SETTINGS = "settings"
    FAVOURITE = "favourite"
    CATEGORY = "category"
    CUSTOM_WORD = "custom_word"


@dataclass
class SyncableRecord(Generic[T]):
    """
    A payload owned by one user plus its sync state.

    Transitions: LOCAL_UNSYNCED -> SYNC_PENDING -> SYNCED, and any local
    mutation goes back to LOCAL_UNSYNCED. A failed push restores the state
    the record had before the attempt.
    """

    key: str
    payload: T
    owner_id: str
    kind: str = RecordKind.SETTINGS.value
    state: SyncState = SyncState.LOCAL_UNSYNCED
    updated_at: str = field(default_factory=lambda: datetime.now().isoformat())

    @property
    def synced(self) -> bool:
        return self.state is SyncState.SYNCED

    def mutate(self, payload: T) -> None:
        """Replace the payload after a local change."""
        self.payload = payload
        self.state = SyncState.LOCAL_UNSYNCED
        self.updated_at = datetime.now().isoformat()

    def begin_push(self) -> SyncState:
        """Enter SYNC_PENDING; returns the state to restore on failure."""
        previous = self.state
        self.state = SyncState.SYNC_PENDING
        return previous

    def mark_synced(self) -> None:
        self.state = SyncState.SYNCED

    def restore(self, previous: SyncState) -> None:
        self.state = previous

    def apply_remote(self, payload: T) -> None:
        """Take a remote snapshot as the source of truth."""
        self.payload = payload
        self.state = SyncState.SYNCED
        self.updated_at = datetime.now().isoformat()

    def to_row(self, encode=None) -> Dict[str, Any]:
        """Flatten for the local store; ``encode`` serialises the payload."""
        return {
            "owner_id": self.owner_id,
            "kind": self.kind,
            "key": self.key,
            "payload": encode(self.payload) if encode else self.payload,
            "state": self.state.value,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_row(cls, row: Dict[str, Any], decode=None) -> "SyncableRecord":
        payload = row.get("payload")
        return cls(
            key=row["key"],
            payload=decode(payload) if decode else payload,
            owner_id=row["owner_id"],
            kind=row.get("kind") or RecordKind.SETTINGS.value,
            state=SyncState(row.get("state") or SyncState.LOCAL_UNSYNCED.value),
            updated_at=row.get("updated_at") or datetime.now().isoformat(),
        )


def describe(record: Optional[SyncableRecord]) -> str:
    if record is None:
        return "<none>"
    return f"{record.kind}:{record.key} [{record.state.value}]"
