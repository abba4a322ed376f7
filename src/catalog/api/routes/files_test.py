"""
Tests for the file upload and download endpoints.

Run with: pytest src/catalog/api/routes/files_test.py -v
"""

import io
from unittest.mock import MagicMock

import pytest

from catalog.errors import CapacityExhausted, NotFound, PayloadTooLarge


def make_download(chunks: list[bytes]) -> MagicMock:
    download = MagicMock()
    download.__iter__.return_value = iter(chunks)
    download.blob.length = sum(len(c) for c in chunks)
    return download


class TestUpload:
    """POST /api/files and POST /api/upload"""

    @pytest.mark.parametrize("path", ["/api/files", "/api/upload"])
    def test_upload_success(self, app, client, path):
        app.files.ingest.return_value = {
            "name": "1700000000000_informe.pdf",
            "originalName": "informe.pdf",
            "size": 8,
        }

        response = client.post(
            path,
            data={"file": (io.BytesIO(b"%PDF-1.7"), "informe.pdf", "application/pdf")},
            content_type="multipart/form-data",
        )

        assert response.status_code == 200
        assert response.get_json() == {
            "name": "1700000000000_informe.pdf",
            "originalName": "informe.pdf",
            "size": 8,
        }
        _, original_name, content_type = app.files.ingest.call_args.args
        assert original_name == "informe.pdf"
        assert content_type == "application/pdf"

    def test_upload_without_file_field(self, app, client):
        response = client.post(
            "/api/files",
            data={"other": "value"},
            content_type="multipart/form-data",
        )

        assert response.status_code == 400
        assert response.get_json() == {"error": "No file", "code": "VALIDATION_ERROR"}
        app.files.ingest.assert_not_called()

    @pytest.mark.parametrize("size", [900, 1024])
    def test_upload_within_file_limit(self, app, client, size):
        app.files.ingest.return_value = {"name": "1_a.bin", "originalName": "a.bin", "size": size}

        response = client.post(
            "/api/files",
            data={"file": (io.BytesIO(b"x" * size), "a.bin", "application/octet-stream")},
            content_type="multipart/form-data",
        )

        assert response.status_code == 200
        assert response.get_json()["size"] == size
        app.files.ingest.assert_called_once()

    def test_declared_length_far_over_limit_is_413(self, app, client):
        response = client.post(
            "/api/files",
            data={"file": (io.BytesIO(b"x" * 20000), "big.bin", "application/octet-stream")},
            content_type="multipart/form-data",
        )

        assert response.status_code == 413
        assert response.get_json()["code"] == "PAYLOAD_TOO_LARGE"
        app.files.ingest.assert_not_called()

    def test_file_over_limit_while_streaming_is_413(self, app, client):
        app.files.ingest.side_effect = PayloadTooLarge("File exceeds the 1024 byte limit")

        response = client.post(
            "/api/files",
            data={"file": (io.BytesIO(b"x" * 1025), "big.bin", "application/octet-stream")},
            content_type="multipart/form-data",
        )

        assert response.status_code == 413
        assert response.get_json() == {"error": "File exceeds the 1024 byte limit", "code": "PAYLOAD_TOO_LARGE"}

    def test_upload_capacity_exhausted_is_507(self, app, client):
        app.files.ingest.side_effect = CapacityExhausted("Storage capacity exhausted")

        response = client.post(
            "/api/upload",
            data={"file": (io.BytesIO(b"abc"), "a.txt", "text/plain")},
            content_type="multipart/form-data",
        )

        assert response.status_code == 507
        assert response.get_json() == {"error": "Storage capacity exhausted", "code": "DB_FULL"}


class TestDownload:
    """GET /api/files/<name>"""

    def test_download_streams_bytes(self, app, client):
        app.files.retrieve.return_value = (make_download([b"%PDF", b"-1.7"]), "application/pdf")

        response = client.get("/api/files/1700000000000_informe.pdf")

        assert response.status_code == 200
        assert response.data == b"%PDF-1.7"
        assert response.headers["Content-Type"] == "application/pdf"
        assert response.headers["Content-Length"] == "8"
        app.files.retrieve.assert_called_once_with("1700000000000_informe.pdf")

    def test_download_unknown_name_is_404(self, app, client):
        app.files.retrieve.side_effect = NotFound("File not found")

        response = client.get("/api/files/missing.pdf")

        assert response.status_code == 404
        assert response.get_json() == {"error": "File not found", "code": "NOT_FOUND"}
