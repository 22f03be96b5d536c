"""Survey draft: form values and photos collected before the report is submitted."""
import logging
import uuid
from typing import Dict, List, Mapping, Optional, Sequence, Union

from ..models.survey import PHOTO_LIMITS, is_image_field, is_multi_photo_field
from .attachment_store import AttachmentStore, Photo
from .submission_record import AttachmentRef, SubmissionRecord

logger = logging.getLogger(__name__)


class PhotoLimitError(ValueError):
    """More photos than an image field accepts."""


def _as_photo(item: Union[Photo, bytes, bytearray]) -> Photo:
    if isinstance(item, Photo):
        return item
    return Photo(content=bytes(item))


class SurveyDraft:
    """
    Holds one report while it is being filled in.

    Photos taken while online stay in memory and are uploaded with the live
    submission. Photos taken while offline go straight to the attachment store and
    only their identifiers are kept, so they survive until the queued report is sent.
    """

    def __init__(self, attachments: AttachmentStore, fields: Optional[Mapping[str, object]] = None):
        self.attachments = attachments
        self.fields: Dict[str, object] = dict(fields or {})
        self.client_id = uuid.uuid4().hex
        self.live_photos: Dict[str, List[Photo]] = {}
        self.stored: Dict[str, List[str]] = {}

    def update(self, **values) -> None:
        self.fields.update(values)

    async def capture(
        self,
        field_name: str,
        photos: Sequence[Union[Photo, bytes, bytearray]],
        online: bool,
    ) -> None:
        if not is_image_field(field_name):
            raise ValueError(f"{field_name!r} is not an image field")
        photos = [_as_photo(p) for p in photos]
        if not photos:
            logger.warning("No photo selected for field %s", field_name)
            return

        limit = PHOTO_LIMITS[field_name]
        multi = is_multi_photo_field(field_name)
        already = len(self.stored.get(field_name, [])) if (multi and not online) else 0
        if len(photos) + already > limit:
            raise PhotoLimitError(
                f"You can only upload up to {limit} file(s) for {field_name.replace('_', ' ')!r}"
            )

        if online:
            await self._discard_stored(field_name)
            self.live_photos[field_name] = [p for p in photos if p.size]
            return

        ids = []
        for photo in photos:
            attachment_id = await self.attachments.save_photo(photo)
            if attachment_id:
                ids.append(attachment_id)
        if not ids:
            return
        self.live_photos.pop(field_name, None)
        if multi:
            self.stored.setdefault(field_name, []).extend(ids)
        else:
            await self._discard_stored(field_name)
            self.stored[field_name] = ids

    async def _discard_stored(self, field_name: str) -> None:
        # Replaced photos are not referenced by any queued record yet
        for attachment_id in self.stored.pop(field_name, []):
            await self.attachments.delete(attachment_id)

    def attachment_refs(self) -> Dict[str, AttachmentRef]:
        return {
            name: (list(ids) if is_multi_photo_field(name) else ids[-1])
            for name, ids in self.stored.items() if ids
        }

    def photo_counts(self) -> Dict[str, int]:
        """Photos per image field, for the pre-submit review."""
        return {
            name: len(self.live_photos.get(name, [])) + len(self.stored.get(name, []))
            for name in PHOTO_LIMITS
        }

    def to_record(self) -> SubmissionRecord:
        return SubmissionRecord.from_form(self.fields, self.attachment_refs(), client_id=self.client_id)
