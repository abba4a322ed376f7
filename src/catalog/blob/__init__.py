"""
Blob

Chunked file storage: files split into fixed-size chunks plus one
metadata row each.
"""

from catalog.blob.store import BlobDownload, BlobFile, BlobStore, UploadSink

__all__ = ["BlobDownload", "BlobFile", "BlobStore", "UploadSink"]
