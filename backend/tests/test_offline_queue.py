"""Tests for the offline queue and submission records."""
import json
import os
import tempfile

import pytest

from app.services.local_storage import LocalStorage
from app.services.offline_queue import OfflineQueue
from app.services.submission_record import SubmissionRecord
from conftest import survey_fields


def _record(name, attachments=None):
    return SubmissionRecord.from_form(survey_fields(name), attachments)


class TestOfflineQueue:
    def setup_method(self):
        self.tmpdir = tempfile.mkdtemp()
        self.storage = LocalStorage(base_dir=self.tmpdir)
        self.queue = OfflineQueue(self.storage, key="offlineSurveyQueue")

    def test_empty_when_nothing_persisted(self):
        assert self.queue.list() == []
        assert self.queue.count() == 0

    def test_enqueue_preserves_insertion_order(self):
        self.queue.enqueue(_record("a@example.org"))
        self.queue.enqueue(_record("b@example.org"))
        count = self.queue.enqueue(_record("c@example.org"))
        assert count == 3
        names = [r.fields["reporter_name"] for r in self.queue.list()]
        assert names == ["a@example.org", "b@example.org", "c@example.org"]

    def test_round_trip_keeps_attachments(self):
        record = _record("a@example.org", {"inlet_photo": "1-aaaaaa", "additional_photos": ["2-bbbbbb", "3-cccccc"]})
        self.queue.enqueue(record)
        [stored] = self.queue.list()
        assert stored == record
        assert stored.attachments["additional_photos"] == ["2-bbbbbb", "3-cccccc"]

    def test_replace_with_empty_removes_key(self):
        self.queue.enqueue(_record("a@example.org"))
        self.queue.replace([])
        assert not self.storage.has_item("offlineSurveyQueue")
        assert self.queue.count() == 0

    def test_replace_overwrites_whole_queue(self):
        self.queue.enqueue(_record("a@example.org"))
        self.queue.enqueue(_record("b@example.org"))
        keep = _record("c@example.org")
        self.queue.replace([keep])
        assert self.queue.list() == [keep]

    def test_clear(self):
        self.queue.enqueue(_record("a@example.org"))
        self.queue.clear()
        assert not self.storage.has_item("offlineSurveyQueue")

    def test_corrupt_payload_is_treated_as_empty(self, caplog):
        self.storage.set_item("offlineSurveyQueue", "{not json")
        assert self.queue.list() == []
        assert "corrupt" in caplog.text

    def test_undecodable_bytes_are_treated_as_empty(self, caplog):
        with open(os.path.join(self.tmpdir, "offlineSurveyQueue"), "wb") as f:
            f.write(b"\x80\x81")
        assert self.queue.list() == []
        assert self.queue.count() == 0
        assert "corrupt" in caplog.text

    def test_enqueue_overwrites_undecodable_payload(self):
        with open(os.path.join(self.tmpdir, "offlineSurveyQueue"), "wb") as f:
            f.write(b"\xff\xfe[")
        assert self.queue.enqueue(_record("a@example.org")) == 1
        assert [r.fields["reporter_name"] for r in self.queue.list()] == ["a@example.org"]

    def test_non_list_payload_is_treated_as_empty(self):
        self.storage.set_item("offlineSurveyQueue", json.dumps({"fields": {}}))
        assert self.queue.list() == []

    def test_malformed_entry_is_dropped(self):
        good = _record("a@example.org").to_dict()
        self.storage.set_item("offlineSurveyQueue", json.dumps([good, {"no": "fields"}, 42]))
        records = self.queue.list()
        assert len(records) == 1
        assert records[0].fields["reporter_name"] == "a@example.org"

    def test_reads_legacy_images_key(self):
        legacy = [{
            "fields": {"reporter_name": "old@example.org", "report_type": "Ditch"},
            "__images": {"ditch_photo": "1750019864934-xyz123", "inlet_photo": None},
        }]
        self.storage.set_item("offlineSurveyQueue", json.dumps(legacy))
        [record] = self.queue.list()
        assert record.attachments == {"ditch_photo": "1750019864934-xyz123"}
        assert record.client_id is None

    def test_referenced_attachment_ids(self):
        self.queue.enqueue(_record("a@example.org", {"inlet_photo": "1-a"}))
        self.queue.enqueue(_record("b@example.org", {"additional_photos": ["2-b", "3-c"]}))
        assert self.queue.referenced_attachment_ids() == {"1-a", "2-b", "3-c"}

    def test_writes_leave_no_temp_files(self):
        self.queue.enqueue(_record("a@example.org"))
        self.queue.enqueue(_record("b@example.org"))
        assert os.listdir(self.tmpdir) == ["offlineSurveyQueue"]


class TestSubmissionRecord:
    def test_from_form_strips_image_fields_and_none(self):
        values = survey_fields(inlet_photo=b"binary", additional_photos=[b"a"], ownership=None)
        record = SubmissionRecord.from_form(values)
        assert "inlet_photo" not in record.fields
        assert "additional_photos" not in record.fields
        assert "ownership" not in record.fields
        assert record.fields["latitude"] == 43.7022

    def test_from_form_rejects_binary_scalar(self):
        with pytest.raises(ValueError):
            SubmissionRecord.from_form({"notes": b"\x00\x01"})

    def test_from_form_rejects_unknown_attachment_field(self):
        with pytest.raises(ValueError, match="not an image field"):
            SubmissionRecord.from_form(survey_fields(), {"selfie": "1-a"})

    def test_multi_field_always_a_list(self):
        record = SubmissionRecord.from_form(survey_fields(), {"additional_photos": "1-a"})
        assert record.attachments["additional_photos"] == ["1-a"]

    def test_attachment_ids_flattened(self):
        record = SubmissionRecord.from_form(
            survey_fields(), {"outlet_photo": "1-a", "additional_photos": ["2-b", "3-c"]}
        )
        assert sorted(record.attachment_ids()) == ["1-a", "2-b", "3-c"]

    def test_each_record_gets_a_client_id(self):
        a = SubmissionRecord.from_form(survey_fields())
        b = SubmissionRecord.from_form(survey_fields())
        assert a.client_id and b.client_id
        assert a.client_id != b.client_id

    def test_from_dict_rejects_bad_attachment_refs(self):
        with pytest.raises(ValueError):
            SubmissionRecord.from_dict({"fields": {}, "attachments": {"inlet_photo": 5}})
