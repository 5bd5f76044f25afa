"""
Tests for stock_batch.domain.types -- job status and payload parsing.

Pure domain tests; no database.
"""

from uuid import uuid4

import pytest

from stock_batch.domain.types import (
    FileJobPayload,
    FileJobStatus,
    JobRunResult,
    StagedFile,
)
from stock_kernel.exceptions import InvalidJobPayloadError


def _file_entry(**overrides):
    entry = {
        "path": "/srv/uploads/pedidos/tmp/1700000000000-abc.pdf",
        "originalName": "banner.pdf",
        "mimeType": "application/pdf",
        "sizeBytes": 2048,
    }
    entry.update(overrides)
    return entry


class TestFileJobStatus:
    def test_values(self):
        assert FileJobStatus.PENDING.value == "PENDING"
        assert FileJobStatus("PROCESSING") is FileJobStatus.PROCESSING

    @pytest.mark.parametrize(
        "status, terminal",
        [
            (FileJobStatus.PENDING, False),
            (FileJobStatus.PROCESSING, False),
            (FileJobStatus.COMPLETED, True),
            (FileJobStatus.FAILED, True),
        ],
    )
    def test_terminal_states(self, status, terminal):
        assert status.is_terminal is terminal


class TestStagedFile:
    def test_from_dict(self):
        staged = StagedFile.from_dict(_file_entry())

        assert staged.original_name == "banner.pdf"
        assert staged.mime_type == "application/pdf"
        assert staged.size_bytes == 2048

    def test_round_trip_keys(self):
        entry = _file_entry()
        assert StagedFile.from_dict(entry).to_dict() == entry

    def test_missing_path(self):
        with pytest.raises(InvalidJobPayloadError):
            StagedFile.from_dict(_file_entry(path=""))

    def test_bad_size(self):
        with pytest.raises(InvalidJobPayloadError):
            StagedFile.from_dict(_file_entry(sizeBytes="big"))


class TestFileJobPayload:
    def test_from_dict(self):
        payload = FileJobPayload.from_dict({
            "files": [_file_entry(), _file_entry(path="/tmp/b.png", mimeType="image/png")],
            "materialId": "dtf-57",
            "fallbackWidth": 57,
            "clienteEmail": "cliente@example.com",
        })

        assert len(payload.files) == 2
        assert payload.material_id == "dtf-57"
        assert payload.fallback_width == 57.0
        assert payload.cliente_email == "cliente@example.com"

    def test_optional_fields_default_to_none(self):
        payload = FileJobPayload.from_dict({"files": [_file_entry()], "fallbackWidth": "wide"})

        assert payload.material_id is None
        assert payload.fallback_width is None

    @pytest.mark.parametrize(
        "raw",
        [None, "files", {}, {"files": []}, {"files": "a.pdf"}, {"files": [42]}],
    )
    def test_invalid_payloads(self, raw):
        with pytest.raises(InvalidJobPayloadError) as exc_info:
            FileJobPayload.from_dict(raw)
        assert exc_info.value.code == "INVALID_JOB_PAYLOAD"

    def test_constructor_rejects_empty_files(self):
        with pytest.raises(InvalidJobPayloadError):
            FileJobPayload(files=())

    def test_to_dict_uses_stored_keys(self):
        payload = FileJobPayload(
            files=(StagedFile.from_dict(_file_entry()),),
            material_id="sticker-70",
        )

        assert payload.to_dict() == {
            "files": [_file_entry()],
            "materialId": "sticker-70",
            "fallbackWidth": None,
            "clienteEmail": None,
        }


class TestJobRunResult:
    def test_succeeded(self):
        assert JobRunResult(job_id=uuid4(), status=FileJobStatus.COMPLETED).succeeded
        assert not JobRunResult(job_id=uuid4(), status=FileJobStatus.FAILED).succeeded
