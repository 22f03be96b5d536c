"""
Offline submission queue.
The whole ordered queue lives under one local storage key and is rewritten on every
mutation; an absent key means the queue is empty.
"""
import json
import logging
from typing import Iterable, List, Optional, Set

from ..core.config import settings
from .local_storage import LocalStorage
from .submission_record import SubmissionRecord

logger = logging.getLogger(__name__)


class OfflineQueue:
    """Repository for queued submission records; all writes go through ``replace``."""

    def __init__(self, storage: Optional[LocalStorage] = None, key: Optional[str] = None):
        self.storage = storage or LocalStorage()
        self.key = key or settings.OFFLINE_QUEUE_KEY

    def list(self) -> List[SubmissionRecord]:
        """Return the queued records in insertion order."""
        try:
            raw = self.storage.get_item(self.key)
            if raw is None:
                return []
            items = json.loads(raw)
        except ValueError as exc:  # includes UnicodeDecodeError
            # Known data-loss risk: an unreadable queue is treated as empty and will be
            # overwritten by the next enqueue.
            logger.error("Offline queue %r is corrupt and will be treated as empty: %s", self.key, exc)
            return []
        if not isinstance(items, list):
            logger.error("Offline queue %r is not a list and will be treated as empty", self.key)
            return []

        records = []
        for index, item in enumerate(items):
            try:
                records.append(SubmissionRecord.from_dict(item))
            except ValueError as exc:
                logger.warning("Dropping malformed queued record #%d: %s", index, exc)
        return records

    def replace(self, records: Iterable[SubmissionRecord]) -> None:
        """Overwrite the whole queue. An empty sequence removes the key."""
        records = list(records)
        if not records:
            self.storage.remove_item(self.key)
            return
        self.storage.set_item(self.key, json.dumps([r.to_dict() for r in records]))

    def enqueue(self, record: SubmissionRecord) -> int:
        """Append ``record`` and return the new queue length."""
        records = self.list()
        records.append(record)
        self.replace(records)
        logger.info("Queued submission %s (%d queued)", record.client_id, len(records))
        return len(records)

    def count(self) -> int:
        return len(self.list())

    def clear(self) -> None:
        self.replace([])

    def referenced_attachment_ids(self) -> Set[str]:
        ids = set()
        for record in self.list():
            ids.update(record.attachment_ids())
        return ids
