import re
import time
from typing import BinaryIO, Optional

from catalog.blob import BlobDownload, BlobFile, BlobStore
from catalog.errors import ValidationError

DEFAULT_CONTENT_TYPE = "application/octet-stream"
PDF_CONTENT_TYPE = "application/pdf"

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9.-]")


def sanitize_filename(name: str) -> str:
    """Replace every character other than letters, digits, '.' and '-' with '_'."""
    return _UNSAFE_CHARS.sub("_", name)


def resolve_content_type(blob: BlobFile) -> str:
    """Content type to serve a stored file with."""
    if blob.filename.lower().endswith(".pdf"):
        return PDF_CONTENT_TYPE
    return blob.content_type or DEFAULT_CONTENT_TYPE


class FileService:
    """
    Handles file ingestion and retrieval on top of the blob store.
    Holds no state of its own beyond the request being served.
    """

    def __init__(self, blobs: BlobStore, max_bytes: Optional[int] = None):
        self.blobs = blobs
        self.max_bytes = max_bytes

    def storage_name(self, original_name: str, now: Optional[float] = None) -> str:
        """Build the stored name: upload time in epoch milliseconds, then the sanitized name."""
        millis = int((time.time() if now is None else now) * 1000)
        return f"{millis}_{sanitize_filename(original_name)}"

    def ingest(
        self,
        stream: Optional[BinaryIO],
        original_name: Optional[str],
        content_type: Optional[str] = None,
    ) -> dict:
        """
        Stream an uploaded file into the blob store.

        The input is read ``chunk_size`` bytes at a time, so at most one
        chunk plus one read is buffered in memory.
        """
        if stream is None or not original_name:
            raise ValidationError("No file")

        name = self.storage_name(original_name)
        with self.blobs.open_upload(
            name,
            content_type=content_type or DEFAULT_CONTENT_TYPE,
            metadata={"originalName": original_name},
            max_bytes=self.max_bytes,
        ) as sink:
            while True:
                data = stream.read(self.blobs.chunk_size)
                if not data:
                    break
                sink.write(data)
            blob = sink.close()

        return {"name": name, "originalName": original_name, "size": blob.length}

    def retrieve(self, filename: str) -> tuple[BlobDownload, str]:
        """Open a stored file for streaming. Returns the download and its content type."""
        download = self.blobs.open_download(filename)
        return download, resolve_content_type(download.blob)
