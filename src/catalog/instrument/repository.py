import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional

from psycopg.types.json import Jsonb

from catalog.db import Database
from catalog.errors import ValidationError, storage_errors
from catalog.instrument.model import Instrument, coerce_id

logger = logging.getLogger(__name__)


@dataclass
class SeedResult:
    count: int
    inserted: int


class InstrumentRepository:
    """
    Repository for instrument records.
    Encapsulates all SQL and queries for the instruments table.
    Upsert replaces the whole stored document.
    """

    UPSERT_SQL = """
        INSERT INTO instruments (id, document)
        VALUES (%s, %s)
        ON CONFLICT (id) DO UPDATE SET
            document = EXCLUDED.document,
            updated_at = now()
    """

    def __init__(self, database: Database):
        self.database = database

    def list_all(self) -> List[dict]:
        """List every record, ordered by id."""
        with storage_errors():
            rows = self.database.fetch_all("SELECT document FROM instruments ORDER BY id")
        return [row["document"] for row in rows]

    def get(self, instrument_id: int) -> Optional[dict]:
        """Get a record by id."""
        with storage_errors():
            row = self.database.fetch_one(
                "SELECT document FROM instruments WHERE id = %s",
                (coerce_id(instrument_id),),
            )
        return row["document"] if row else None

    def count(self) -> int:
        with storage_errors():
            row = self.database.fetch_one("SELECT count(*) AS count FROM instruments")
        return row["count"]

    def upsert(self, record: dict) -> dict:
        """Insert the record, or replace the stored document with the same id."""
        instrument = Instrument.from_dict(record)
        with storage_errors():
            row = self.database.fetch_one(
                self.UPSERT_SQL + " RETURNING document",
                (instrument.id, Jsonb(instrument.to_dict())),
            )
        return row["document"]

    def delete_one(self, instrument_id: int) -> int:
        """Delete a record. Returns the number of rows removed (0 if absent)."""
        with storage_errors():
            deleted = self.database.execute(
                "DELETE FROM instruments WHERE id = %s",
                (coerce_id(instrument_id),),
            )
        if deleted:
            logger.info("Deleted instrument %s", instrument_id)
        return deleted

    def delete_all(self) -> int:
        """Delete every record. Only used by the purge flow."""
        with storage_errors():
            deleted = self.database.execute("DELETE FROM instruments")
        logger.info("Deleted %d instruments", deleted)
        return deleted

    def seed_if_empty(self, records: Iterable[dict]) -> SeedResult:
        """
        Bulk insert records only when the table holds none.

        The table is locked for the duration of the check and insert so two
        concurrent seeds cannot both see an empty table.
        """
        if isinstance(records, (str, bytes, dict)):
            raise ValidationError("Seed payload must be a list of instruments")
        try:
            instruments = [Instrument.from_dict(r) for r in records]
        except TypeError:
            raise ValidationError("Seed payload must be a list of instruments") from None

        with storage_errors(), self.database.connection() as conn:
            with conn.transaction():
                conn.execute("LOCK TABLE instruments IN SHARE ROW EXCLUSIVE MODE")
                existing = conn.execute("SELECT count(*) FROM instruments").fetchone()[0]
                if existing:
                    logger.info("Seed skipped, %d instruments already stored", existing)
                    return SeedResult(count=existing, inserted=0)

                with conn.cursor() as cur:
                    cur.executemany(
                        self.UPSERT_SQL,
                        [(i.id, Jsonb(i.to_dict())) for i in instruments],
                    )
                count = conn.execute("SELECT count(*) FROM instruments").fetchone()[0]

        logger.info("Seeded %d instruments", count)
        return SeedResult(count=count, inserted=count)
