import logging

from catalog.blob import BlobStore
from catalog.db import Database
from catalog.errors import PurgeIncomplete, classify_error
from catalog.instrument import InstrumentRepository

logger = logging.getLogger(__name__)


class MaintenanceService:
    """Readiness reporting and bulk cleanup across both stores."""

    def __init__(self, database: Database, instruments: InstrumentRepository, blobs: BlobStore):
        self.database = database
        self.instruments = instruments
        self.blobs = blobs

    def health(self) -> dict:
        return {"status": "online", "dbConnected": self.database.is_connected()}

    def purge(self) -> dict:
        """
        Delete every record and every stored file.

        Not atomic across the two stores. If anything fails midway the records
        may already be gone while files remain; ``PurgeIncomplete`` reports
        how far the purge got.
        """
        records_deleted = 0
        files_deleted = 0
        files_remaining = None
        try:
            records_deleted = self.instruments.delete_all()
            files = self.blobs.list_all()
            files_remaining = len(files)
            for blob in files:
                self.blobs.delete(blob.id)
                files_deleted += 1
                files_remaining -= 1
        except Exception as e:
            cause = classify_error(e)
            logger.error(
                "Purge stopped after %d records and %d files: %s",
                records_deleted,
                files_deleted,
                cause.message,
            )
            raise PurgeIncomplete(
                f"Purge incomplete: {cause.message}",
                records_deleted=records_deleted,
                files_deleted=files_deleted,
                files_remaining=files_remaining,
            ) from e

        logger.info("Purged %d records and %d files", records_deleted, files_deleted)
        return {"records_deleted": records_deleted, "files_deleted": files_deleted}
