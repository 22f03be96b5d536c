import asyncio
import os
import tempfile

# Keep the app's database in memory for every test module
os.environ.setdefault("DATABASE_URL", "sqlite://")

from app.services.attachment_store import AttachmentStore
from app.services.connectivity import ConnectivityMonitor
from app.services.local_storage import LocalStorage
from app.services.offline_queue import OfflineQueue
from app.services.offline_sync import OfflineSyncService


class FakeSurveyApi:
    """Stands in for SurveyApiClient: scripted pings, submissions rejected per reporter."""

    def __init__(self, reachable=True, reject=(), gate=None):
        self.reachable = reachable
        self.reject = set(reject)
        self.gate = gate
        self.pings = 0
        self.submitted = []
        self.active = 0
        self.max_active = 0
        self.started = asyncio.Event() if gate is not None else None

    async def ping(self):
        self.pings += 1
        if isinstance(self.reachable, list):
            return self.reachable.pop(0) if self.reachable else False
        return self.reachable

    async def submit(self, fields, photos=None, client_id=None):
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.gate is not None:
                self.started.set()
                await self.gate.wait()
            self.submitted.append({"fields": dict(fields), "photos": dict(photos or {}), "client_id": client_id})
            return fields.get("reporter_name") not in self.reject
        finally:
            self.active -= 1

    async def history(self, reporter_name):
        return []

    def reporters(self):
        return [s["fields"]["reporter_name"] for s in self.submitted]


class RecordingSleep:
    def __init__(self):
        self.calls = []

    async def __call__(self, seconds):
        self.calls.append(seconds)


def make_service(api, tmpdir=None, link_up=False, notify=None):
    tmpdir = tmpdir or tempfile.mkdtemp()
    queue = OfflineQueue(LocalStorage(os.path.join(tmpdir, "storage")))
    attachments = AttachmentStore(os.path.join(tmpdir, "attachments"))
    monitor = ConnectivityMonitor(api, queue, link_up=link_up, max_attempts=5, delay_ms=3000, sleep=RecordingSleep())
    return OfflineSyncService(
        api_client=api, queue=queue, attachments=attachments, monitor=monitor, notify=notify,
    )


def survey_fields(reporter_name="crawler@example.org", **extra):
    fields = {
        "reporter_name": reporter_name,
        "report_type": "Culvert",
        "latitude": 43.7022,
        "longitude": -72.2896,
        "timestamp": "2025-06-15T10:30",
        "culvert_type": "Metal pipe",
    }
    fields.update(extra)
    return fields


def run(coro):
    return asyncio.run(coro)
