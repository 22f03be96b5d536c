"""
Remote Submit API client.
Sends survey reports (scalar fields plus photos as multipart files), probes the
health endpoint and fetches a reporter's submission history.
"""
import logging
from typing import Dict, List, Mapping, Optional, Sequence, Union

import httpx
from pydantic import BaseModel, ConfigDict

from ..core.config import settings
from .attachment_store import Photo

logger = logging.getLogger(__name__)

SUBMIT_PATH = "/api/submit"
HISTORY_PATH = "/api/history"
PING_PATH = "/api/ping"

PhotoValue = Union[Photo, Sequence[Photo]]


class SurveyApiError(Exception):
    """Raised when the remote API cannot answer a history request."""


class SurveySummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    report_type: str
    latitude: float
    longitude: float
    ownership: Optional[str] = None
    timestamp: str


def _form_value(value) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def build_multipart(
    fields: Mapping[str, object],
    photos: Optional[Mapping[str, PhotoValue]] = None,
    client_id: Optional[str] = None,
):
    """Return ``(data, files)`` for an httpx multipart POST."""
    data: Dict[str, str] = {
        name: _form_value(value) for name, value in fields.items() if value is not None
    }
    if client_id:
        data["client_submission_id"] = client_id

    files = []
    for name, value in (photos or {}).items():
        if isinstance(value, Photo):
            if value.size:
                files.append((name, (f"{name}.jpg", value.content, value.content_type)))
            continue
        for index, photo in enumerate(value, start=1):
            if photo.size:
                files.append((name, (f"{name}-{index}.jpg", photo.content, photo.content_type)))
    return data, files


class SurveyApiClient:
    """Async HTTP client for the survey server."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.API_BASE_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.SUBMIT_TIMEOUT
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout, transport=self.transport)

    async def submit(
        self,
        fields: Mapping[str, object],
        photos: Optional[Mapping[str, PhotoValue]] = None,
        client_id: Optional[str] = None,
    ) -> bool:
        """POST one report. True only on a 2xx response; never raises."""
        data, files = build_multipart(fields, photos, client_id)
        try:
            async with self._client() as client:
                resp = await client.post(SUBMIT_PATH, data=data, files=files or None)
        except httpx.HTTPError as exc:
            logger.warning("Submit failed, server unreachable: %s", exc)
            return False

        if not resp.is_success:
            logger.warning("Server rejected submission: %s %s", resp.status_code, resp.text[:200])
            return False
        return True

    async def ping(self) -> bool:
        """Single uncached reachability check against the health endpoint."""
        headers = {"Cache-Control": "no-cache, no-store", "Pragma": "no-cache"}
        try:
            async with self._client() as client:
                resp = await client.get(PING_PATH, headers=headers)
        except httpx.HTTPError as exc:
            logger.debug("Ping failed: %s", exc)
            return False
        if not resp.is_success:
            logger.debug("Ping responded with status %s", resp.status_code)
        return resp.is_success

    async def history(self, reporter_name: str) -> List[SurveySummary]:
        """Fetch prior submissions for ``reporter_name``, newest first."""
        if not reporter_name or not reporter_name.strip():
            raise ValueError("reporter_name is required to retrieve history")
        try:
            async with self._client() as client:
                resp = await client.get(HISTORY_PATH, params={"reporter_name": reporter_name.strip()})
                resp.raise_for_status()
                payload = resp.json()
            return [SurveySummary.model_validate(item) for item in payload]
        except httpx.HTTPError as exc:
            raise SurveyApiError(f"Failed to fetch history: {exc}") from exc
        except (ValueError, TypeError) as exc:
            raise SurveyApiError(f"Invalid history response: {exc}") from exc
