"""
Submission record: one survey report waiting for delivery.
Scalar form values and photo references are kept apart so that no binary data is
ever written to the offline queue.
"""
import json
import uuid
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Union

from ..models.survey import is_image_field, is_multi_photo_field

Scalar = Union[str, int, float, bool]
AttachmentRef = Union[str, List[str]]

LEGACY_ATTACHMENTS_KEY = "__images"


def _new_client_id() -> str:
    return uuid.uuid4().hex


@dataclass
class SubmissionRecord:
    """Scalar ``fields`` plus ``attachments`` mapping image field -> identifier(s)."""
    fields: Dict[str, Scalar]
    attachments: Dict[str, AttachmentRef] = field(default_factory=dict)
    client_id: Optional[str] = field(default_factory=_new_client_id)

    @classmethod
    def from_form(
        cls,
        values: Mapping[str, object],
        attachments: Optional[Mapping[str, AttachmentRef]] = None,
        client_id: Optional[str] = None,
    ) -> "SubmissionRecord":
        """Build a record from raw form values, dropping image fields and empty values."""
        fields = {}
        for name, value in values.items():
            if is_image_field(name) or value is None:
                continue
            if not isinstance(value, (str, int, float, bool)):
                raise ValueError(f"Field {name!r} is not a scalar value")
            fields[name] = value

        refs: Dict[str, AttachmentRef] = {}
        for name, ref in (attachments or {}).items():
            if not is_image_field(name):
                raise ValueError(f"{name!r} is not an image field")
            if is_multi_photo_field(name):
                ids = [ref] if isinstance(ref, str) else list(ref)
                if ids:
                    refs[name] = ids
            elif isinstance(ref, str):
                refs[name] = ref
            elif ref:
                refs[name] = ref[-1]
        return cls(fields=fields, attachments=refs, client_id=client_id or _new_client_id())

    def attachment_ids(self) -> List[str]:
        """Every referenced identifier, flattened, in field order."""
        ids = []
        for ref in self.attachments.values():
            if isinstance(ref, str):
                ids.append(ref)
            else:
                ids.extend(ref)
        return ids

    def identity(self) -> str:
        """Stable key used to recognise the same record across queue reads."""
        if self.client_id:
            return self.client_id
        return json.dumps(self.to_dict(), sort_keys=True)

    def to_dict(self) -> dict:
        data = {"fields": dict(self.fields), "attachments": {
            name: (ref if isinstance(ref, str) else list(ref))
            for name, ref in self.attachments.items()
        }}
        if self.client_id:
            data["client_id"] = self.client_id
        return data

    @classmethod
    def from_dict(cls, data) -> "SubmissionRecord":
        """Parse a persisted record. Raises ``ValueError`` on malformed input."""
        if not isinstance(data, dict):
            raise ValueError("Submission record must be an object")
        fields = data.get("fields")
        if not isinstance(fields, dict):
            raise ValueError("Submission record has no 'fields' object")
        attachments = data.get("attachments", data.get(LEGACY_ATTACHMENTS_KEY)) or {}
        if not isinstance(attachments, dict):
            raise ValueError("Submission record 'attachments' must be an object")
        # Legacy queues may hold null for a photo field that was never captured
        attachments = {name: ref for name, ref in attachments.items() if ref is not None}
        for name, ref in attachments.items():
            if isinstance(ref, str):
                continue
            if not isinstance(ref, list) or not all(isinstance(i, str) for i in ref):
                raise ValueError(f"Invalid attachment reference for {name!r}")
        client_id = data.get("client_id")
        if client_id is not None and not isinstance(client_id, str):
            raise ValueError("Submission record 'client_id' must be a string")
        return cls(fields=dict(fields), attachments=dict(attachments), client_id=client_id)
