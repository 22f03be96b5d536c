"""
Offline Mode & Sync Service.
Lets reporters file surveys from places without coverage: reports that cannot be
delivered live are queued on the device and replayed when connectivity returns.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Set

from .attachment_store import AttachmentStore, Photo
from .connectivity import ConnectivityMonitor, Subscription
from .offline_queue import OfflineQueue
from .submission_record import SubmissionRecord
from .survey_client import PhotoValue, SurveyApiClient, SurveyApiError, SurveySummary
from .survey_draft import SurveyDraft

logger = logging.getLogger(__name__)


class DrainStatus(str, Enum):
    NOTHING_TO_SEND = "nothing_to_send"
    SERVER_UNREACHABLE = "server_unreachable"
    COMPLETED = "completed"


class SubmitStatus(str, Enum):
    SENT = "sent"
    QUEUED = "queued"


@dataclass
class DrainResult:
    """Aggregate outcome of one drain, reported to the user as a single notification."""
    status: DrainStatus
    delivered: int = 0
    remaining: List[SubmissionRecord] = field(default_factory=list)

    def summary(self) -> str:
        if self.status == DrainStatus.NOTHING_TO_SEND:
            return "No queued offline submissions!"
        if self.status == DrainStatus.SERVER_UNREACHABLE:
            return "Cannot resend queued submissions: server is still unreachable."
        if self.remaining:
            return f"{len(self.remaining)} submission(s) failed to resend and remain stored locally."
        return "All queued survey submissions were successfully sent!"


@dataclass
class SubmitOutcome:
    status: SubmitStatus
    queued_count: int = 0

    def summary(self) -> str:
        if self.status == SubmitStatus.SENT:
            return "Survey submitted online successfully!"
        return f"Offline mode: data saved locally ({self.queued_count} queued)."


class OfflineSyncService:
    """
    Delivers survey reports live when possible and manages the offline queue otherwise.

    Queued records reference their photos by attachment identifier. A record leaves
    the queue only after the server acknowledged it; its photos are deleted after
    that and never while any queued record still references them.
    """

    def __init__(
        self,
        api_client: Optional[SurveyApiClient] = None,
        queue: Optional[OfflineQueue] = None,
        attachments: Optional[AttachmentStore] = None,
        monitor: Optional[ConnectivityMonitor] = None,
        notify: Optional[Callable[[str], None]] = None,
    ):
        self.api_client = api_client or SurveyApiClient()
        self.queue = queue or OfflineQueue()
        self.attachments = attachments or AttachmentStore()
        self.monitor = monitor or ConnectivityMonitor(self.api_client, self.queue)
        self.notify = notify
        self._drain_lock = asyncio.Lock()
        self._subscription: Optional[Subscription] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Replay the queue automatically on every connectivity restoration."""
        if self._subscription is None:
            self._subscription = self.monitor.subscribe(self._on_connectivity_restored)

    def stop(self) -> None:
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None

    async def _on_connectivity_restored(self) -> None:
        result = await self.drain_queue()
        if result.status != DrainStatus.NOTHING_TO_SEND:
            self._notify(result.summary())

    def _notify(self, message: str) -> None:
        logger.info(message)
        if self.notify is not None:
            try:
                self.notify(message)
            except Exception:
                logger.exception("Notification callback failed")

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    def new_draft(self, **fields) -> SurveyDraft:
        return SurveyDraft(self.attachments, fields)

    async def submit_survey(self, draft: SurveyDraft) -> SubmitOutcome:
        """Send ``draft`` live if the link is up, otherwise (or on failure) queue it."""
        record = draft.to_record()
        if self.monitor.is_link_up:
            photos = await self.rehydrate(record)
            photos.update(draft.live_photos)
            if await self.submit_live(record.fields, photos, client_id=record.client_id):
                await self._delete_attachments(record.attachment_ids())
                return SubmitOutcome(SubmitStatus.SENT)
            logger.info("Live submission failed, falling back to the offline queue")

        # Photos held in memory must reach the attachment store before the record is queued
        for name, photos in draft.live_photos.items():
            ids = []
            for photo in photos:
                attachment_id = await self.attachments.save_photo(photo)
                if attachment_id:
                    ids.append(attachment_id)
            if ids:
                draft.stored[name] = ids
        draft.live_photos = {}
        record = draft.to_record()

        count = self.queue.enqueue(record)
        return SubmitOutcome(SubmitStatus.QUEUED, queued_count=count)

    async def submit_live(
        self,
        fields: Mapping[str, object],
        attachments_by_field: Mapping[str, PhotoValue],
        client_id: Optional[str] = None,
    ) -> bool:
        """Deliver one report. True only on server acknowledgement; never raises."""
        try:
            return await self.api_client.submit(fields, attachments_by_field, client_id=client_id)
        except Exception:
            logger.exception("Unexpected error while submitting survey")
            return False

    async def rehydrate(self, record: SubmissionRecord) -> Dict[str, PhotoValue]:
        """Load the photos a record references. Missing photos are skipped, not fatal."""
        photos: Dict[str, PhotoValue] = {}
        for name, ref in record.attachments.items():
            if isinstance(ref, str):
                photo = await self._load(name, ref)
                if photo is not None:
                    photos[name] = photo
                continue
            loaded = []
            for attachment_id in ref:
                photo = await self._load(name, attachment_id)
                if photo is not None:
                    loaded.append(photo)
            if loaded:
                photos[name] = loaded
        return photos

    async def _load(self, field_name: str, attachment_id: str) -> Optional[Photo]:
        try:
            photo = await self.attachments.get(attachment_id)
        except Exception as exc:
            logger.warning("Could not read %s attachment %s: %s", field_name, attachment_id, exc)
            return None
        if photo is None or photo.size == 0:
            logger.warning("No photo for %s: %s, sending without it", field_name, attachment_id)
            return None
        return photo

    # ------------------------------------------------------------------
    # Queue drain
    # ------------------------------------------------------------------

    async def drain_queue(self) -> DrainResult:
        """
        Replay every queued report in order.
        Called automatically when network connectivity is restored.
        """
        async with self._drain_lock:
            snapshot = self.queue.list()
            if not snapshot:
                return DrainResult(DrainStatus.NOTHING_TO_SEND)

            if not await self.monitor.probe_server():
                logger.warning("Server not reachable, leaving %d queued submission(s) untouched", len(snapshot))
                return DrainResult(DrainStatus.SERVER_UNREACHABLE, remaining=list(snapshot))

            delivered: List[SubmissionRecord] = []
            remainder: List[SubmissionRecord] = []
            for record in snapshot:
                photos = await self.rehydrate(record)
                if await self.submit_live(record.fields, photos, client_id=record.client_id):
                    delivered.append(record)
                else:
                    remainder.append(record)

            # Records enqueued while this drain was running go after the remainder
            seen = {r.identity() for r in snapshot}
            late = [r for r in self.queue.list() if r.identity() not in seen]
            self.queue.replace(remainder + late)

            still_referenced = self._referenced(remainder + late)
            for record in delivered:
                await self._delete_attachments(record.attachment_ids(), keep=still_referenced)

            logger.info("Drain complete: %d delivered, %d remaining", len(delivered), len(remainder))
            return DrainResult(DrainStatus.COMPLETED, delivered=len(delivered), remaining=remainder)

    @staticmethod
    def _referenced(records: Iterable[SubmissionRecord]) -> Set[str]:
        ids = set()
        for record in records:
            ids.update(record.attachment_ids())
        return ids

    async def _delete_attachments(self, attachment_ids: Iterable[str], keep: Optional[Set[str]] = None) -> None:
        """Best-effort cleanup after confirmed delivery; failures are logged only."""
        for attachment_id in attachment_ids:
            if keep and attachment_id in keep:
                continue
            try:
                await self.attachments.delete(attachment_id)
            except Exception as exc:
                logger.error("Failed to delete delivered attachment %s: %s", attachment_id, exc)

    # ------------------------------------------------------------------
    # Queue management
    # ------------------------------------------------------------------

    def pending_count(self) -> int:
        return self.queue.count()

    async def discard_queue(self) -> int:
        """Drop every queued report and its photos. Returns how many were dropped."""
        async with self._drain_lock:
            records = self.queue.list()
            self.queue.clear()
            await self._delete_attachments(self._referenced(records))
            return len(records)

    async def fetch_history(self, reporter_name: str) -> List[SurveySummary]:
        if not self.monitor.is_link_up:
            raise SurveyApiError("Offline. Please retrieve submission history when back online.")
        return await self.api_client.history(reporter_name)
