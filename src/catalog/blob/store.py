"""
Chunked storage of large files in PostgreSQL.

A file is one row in ``blob_files`` plus an ordered run of fixed-size rows in
``blob_chunks``. Uploads are written inside a single transaction so readers
never see a file until every chunk and the final length are committed.
Downloads fetch one chunk per query, so a large file is never held in
memory as a whole.
"""

import logging
import math
from contextlib import ExitStack
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterator, List, Optional

from psycopg.rows import dict_row
from psycopg.types.json import Jsonb

from catalog.config import DEFAULT_CHUNK_SIZE
from catalog.db import Database
from catalog.errors import (
    CatalogError,
    InternalError,
    NotFound,
    PayloadTooLarge,
    storage_errors,
)

logger = logging.getLogger(__name__)

FILE_COLUMNS = "id, filename, content_type, length, chunk_size, upload_date, metadata"


@dataclass
class BlobFile:
    """Metadata for one stored file."""

    id: int
    filename: str
    content_type: Optional[str]
    length: int
    chunk_size: int
    upload_date: Optional[datetime] = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_row(cls, row: dict) -> "BlobFile":
        return cls(
            id=row["id"],
            filename=row["filename"],
            content_type=row["content_type"],
            length=row["length"],
            chunk_size=row["chunk_size"],
            upload_date=row["upload_date"],
            metadata=row["metadata"] or {},
        )

    @property
    def chunk_count(self) -> int:
        return math.ceil(self.length / self.chunk_size)


class UploadSink:
    """
    Write side of an upload.

    Bytes passed to ``write`` are buffered and flushed as full chunks. Call
    ``close`` to store the trailing partial chunk and commit, or ``abort`` to
    discard everything. Used as a context manager, an exception inside the
    block aborts the upload.
    """

    def __init__(
        self,
        database: Database,
        filename: str,
        content_type: Optional[str] = None,
        metadata: Optional[dict] = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        max_bytes: Optional[int] = None,
    ):
        self.database = database
        self.filename = filename
        self.content_type = content_type
        self.metadata = metadata or {}
        self.chunk_size = chunk_size
        self.max_bytes = max_bytes

        self.file_id: Optional[int] = None
        self.length = 0
        self.closed = False
        self._buffer = bytearray()
        self._chunk_index = 0
        self._stack: Optional[ExitStack] = None
        self._conn = None

    def __enter__(self) -> "UploadSink":
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc is not None:
            self.abort(exc)
        elif not self.closed:
            self.close()
        return False

    def open(self) -> "UploadSink":
        if self._stack is not None:
            return self
        stack = ExitStack()
        try:
            with storage_errors():
                self._conn = stack.enter_context(self.database.connection())
                # Savepoint when the connection is already inside a transaction
                stack.enter_context(self._conn.transaction())
                row = self._conn.execute(
                    """
                    INSERT INTO blob_files (filename, content_type, chunk_size, metadata)
                    VALUES (%s, %s, %s, %s)
                    RETURNING id
                    """,
                    (self.filename, self.content_type, self.chunk_size, Jsonb(self.metadata)),
                ).fetchone()
        except BaseException as e:
            stack.__exit__(type(e), e, e.__traceback__)
            raise
        self._stack = stack
        self.file_id = row[0]
        return self

    def write(self, data: bytes) -> int:
        if self.closed:
            raise ValueError("Upload already closed")
        if self._stack is None:
            self.open()
        if self.max_bytes is not None and self.length + len(data) > self.max_bytes:
            error = PayloadTooLarge(f"File exceeds the {self.max_bytes} byte limit")
            self.abort(error)
            raise error

        self._buffer.extend(data)
        self.length += len(data)
        while len(self._buffer) >= self.chunk_size:
            self._flush_chunk(bytes(self._buffer[: self.chunk_size]))
            del self._buffer[: self.chunk_size]
        return len(data)

    def close(self) -> BlobFile:
        """Store any remaining bytes, record the total length and commit."""
        if self.closed:
            raise ValueError("Upload already closed")
        if self._stack is None:
            self.open()
        if self._buffer:
            self._flush_chunk(bytes(self._buffer))
            self._buffer.clear()

        try:
            with storage_errors():
                with self._conn.cursor(row_factory=dict_row) as cur:
                    cur.execute(
                        f"UPDATE blob_files SET length = %s WHERE id = %s RETURNING {FILE_COLUMNS}",
                        (self.length, self.file_id),
                    )
                    row = cur.fetchone()
                stack, self._stack = self._stack, None
                stack.close()
        except CatalogError as e:
            self.abort(e)
            raise

        self.closed = True
        blob = BlobFile.from_row(row)
        logger.info("Stored file %s (%d bytes, %d chunks)", self.filename, self.length, self._chunk_index)
        return blob

    def abort(self, exc: Optional[BaseException] = None) -> None:
        """Discard everything written so far. Safe to call more than once."""
        self.closed = True
        self._buffer.clear()
        stack, self._stack = self._stack, None
        if stack is None:
            return
        reason = exc if exc is not None else InternalError("Upload aborted")
        try:
            stack.__exit__(type(reason), reason, reason.__traceback__)
        except Exception:
            logger.exception("Rollback failed for upload %s", self.filename)
        logger.warning("Discarded upload %s after %d bytes: %s", self.filename, self.length, reason)

    def _flush_chunk(self, data: bytes) -> None:
        try:
            with storage_errors():
                self._conn.execute(
                    "INSERT INTO blob_chunks (file_id, n, data) VALUES (%s, %s, %s)",
                    (self.file_id, self._chunk_index, data),
                )
        except CatalogError as e:
            self.abort(e)
            raise
        self._chunk_index += 1


class BlobDownload:
    """
    Read side of a stored file.

    Iterating yields the file's chunks in order, one query per chunk.
    """

    def __init__(self, database: Database, blob: BlobFile):
        self.database = database
        self.blob = blob

    def __iter__(self) -> Iterator[bytes]:
        if self.blob.length == 0:
            return
        with storage_errors(), self.database.connection() as conn:
            last = self.blob.chunk_count - 1
            for n in range(self.blob.chunk_count):
                row = conn.execute(
                    "SELECT data FROM blob_chunks WHERE file_id = %s AND n = %s",
                    (self.blob.id, n),
                ).fetchone()
                if row is None:
                    raise InternalError(f"Chunk {n} missing for file {self.blob.filename}")
                data = bytes(row[0])
                expected = self.blob.length - last * self.blob.chunk_size if n == last else self.blob.chunk_size
                if len(data) != expected:
                    raise InternalError(
                        f"Chunk {n} of file {self.blob.filename} has {len(data)} bytes, expected {expected}"
                    )
                yield data

    def read(self) -> bytes:
        """Read the whole file. Only for small files and tests."""
        return b"".join(self)


class BlobStore:
    """Stores files as fixed-size chunks plus one metadata row."""

    def __init__(self, database: Database, chunk_size: int = DEFAULT_CHUNK_SIZE):
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        self.database = database
        self.chunk_size = chunk_size

    def open_upload(
        self,
        filename: str,
        content_type: Optional[str] = None,
        metadata: Optional[dict] = None,
        max_bytes: Optional[int] = None,
    ) -> UploadSink:
        sink = UploadSink(
            self.database,
            filename,
            content_type=content_type,
            metadata=metadata,
            chunk_size=self.chunk_size,
            max_bytes=max_bytes,
        )
        return sink.open()

    def find(self, filename: str) -> Optional[BlobFile]:
        """Most recent file stored under ``filename``."""
        with storage_errors():
            row = self.database.fetch_one(
                f"""
                SELECT {FILE_COLUMNS} FROM blob_files
                WHERE filename = %s
                ORDER BY upload_date DESC, id DESC
                LIMIT 1
                """,
                (filename,),
            )
        return BlobFile.from_row(row) if row else None

    def open_download(self, filename: str) -> BlobDownload:
        blob = self.find(filename)
        if blob is None:
            raise NotFound("File not found")
        return BlobDownload(self.database, blob)

    def delete(self, file_id: int) -> None:
        """Delete a file and its chunks. Raises NotFound for an unknown id."""
        with storage_errors(), self.database.connection() as conn:
            conn.execute("DELETE FROM blob_chunks WHERE file_id = %s", (file_id,))
            deleted = conn.execute("DELETE FROM blob_files WHERE id = %s", (file_id,)).rowcount
        if not deleted:
            raise NotFound(f"File {file_id} not found")
        logger.info("Deleted file %s", file_id)

    def list_all(self) -> List[BlobFile]:
        with storage_errors():
            rows = self.database.fetch_all(f"SELECT {FILE_COLUMNS} FROM blob_files ORDER BY id")
        return [BlobFile.from_row(row) for row in rows]
