import logging
import threading
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterator, List, Optional, Union

from core.models import parse_timestamp

from .models import AuditAction, AuditLogEntry, new_entry_id


logger = logging.getLogger(__name__)

_TICK = timedelta(microseconds=1)


class AuditLog:
    """
    Append-only audit trail.

    - Timestamps are assigned under a lock and strictly increase,
      so append order and timestamp order always agree
    - With storage attached, an entry is persisted before it becomes
      visible; a storage failure raises StoreUnavailable and records nothing
    - There is no update or delete
    """

    def __init__(self, storage=None, warm_start: bool = True):
        self._storage = storage
        self._entries: List[AuditLogEntry] = []
        self._by_id: Dict[str, AuditLogEntry] = {}
        self._lock = threading.Lock()
        if storage is not None and warm_start:
            self._load_from_storage()

    def _load_from_storage(self) -> None:
        for data in self._storage.load_audit_entries():
            entry = AuditLogEntry.from_dict(data)
            self._entries.append(entry)
            self._by_id[entry.entry_id] = entry
        if self._entries:
            logger.info("Loaded %d audit entries from storage", len(self._entries))

    def _next_timestamp(self) -> datetime:
        now = datetime.now(timezone.utc)
        if self._entries and now <= self._entries[-1].timestamp:
            return self._entries[-1].timestamp + _TICK
        return now

    def append(self, entry: AuditLogEntry) -> str:
        """
        Record an entry and return its id.

        Raises:
            StoreUnavailable: persistence failed (nothing recorded)
        """
        with self._lock:
            stamped = entry.with_identity(entry.entry_id or new_entry_id(), self._next_timestamp())
            if self._storage is not None:
                self._storage.save_audit_entry(stamped.to_dict())
            self._entries.append(stamped)
            self._by_id[stamped.entry_id] = stamped

        logger.debug("Audit %s %s/%s by %s", stamped.action.value,
                     stamped.target_type, stamped.target_id, stamped.actor_id)
        return stamped.entry_id

    def record(
        self,
        actor_id: str,
        action: Union[AuditAction, str],
        target_type: str,
        target_id: str,
        detail: Optional[Dict[str, Any]] = None
    ) -> str:
        """Build and append an entry in one call."""
        return self.append(AuditLogEntry(
            actor_id=actor_id,
            action=AuditAction(action),
            target_type=str(getattr(target_type, "value", target_type)),
            target_id=target_id,
            detail=detail or {},
        ))

    def query(
        self,
        actor_id: Optional[str] = None,
        action: Optional[Union[AuditAction, str]] = None,
        target_type: Optional[str] = None,
        target_id: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> Iterator[AuditLogEntry]:
        """
        Lazily yield matching entries, oldest first.

        Entries appended while iterating are not included.
        """
        action = AuditAction(action) if action is not None else None
        start = parse_timestamp(start) if start is not None else None
        end = parse_timestamp(end) if end is not None else None
        snapshot = len(self._entries)
        for i in range(snapshot):
            entry = self._entries[i]
            if actor_id is not None and entry.actor_id != actor_id:
                continue
            if action is not None and entry.action != action:
                continue
            if target_type is not None and entry.target_type != target_type:
                continue
            if target_id is not None and entry.target_id != target_id:
                continue
            if start is not None and entry.timestamp < start:
                continue
            if end is not None and entry.timestamp > end:
                continue
            yield entry

    def get(self, entry_id: str) -> Optional[AuditLogEntry]:
        return self._by_id.get(entry_id)

    def __len__(self) -> int:
        return len(self._entries)

    def stats(self) -> Dict[str, Any]:
        entries = self._entries[:len(self._entries)]
        return {
            "total": len(entries),
            "by_action": dict(Counter(e.action.value for e in entries)),
            "by_actor": dict(Counter(e.actor_id for e in entries)),
            "first_timestamp": entries[0].timestamp.isoformat() if entries else None,
            "last_timestamp": entries[-1].timestamp.isoformat() if entries else None,
            "persistent": self._storage is not None,
        }


_audit_log: Optional[AuditLog] = None


def get_audit_log() -> AuditLog:
    global _audit_log
    if _audit_log is None:
        from core.config import get_settings
        storage = None
        if get_settings().persist:
            from db import get_storage
            storage = get_storage()
        _audit_log = AuditLog(storage=storage)
    return _audit_log
