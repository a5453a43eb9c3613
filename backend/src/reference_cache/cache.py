"""
Reference cache with an ordered multi-source fallback chain.

The cache owns the collection of ReferenceRecords the resolver and assembler
read from. `initialize()` tries its sources in order and the first one that
yields at least one valid record wins:

1. poll the primary accessor a few times (another caller may be fetching)
2. the batch-fetch function
3. the direct-fetch function
4. a forced refresh of the primary accessor, then re-read it
5. synthetic placeholder records, so the views always have something to draw

A failing source is logged and skipped; `initialize()` never raises. A
rejected credential (AuthError) ends the chain at once so the same key is not
sent to the remaining sources; the cache then falls back to placeholders.
"""
import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Protocol, Tuple

import numpy as np

from config import CACHE_PRIMARY_RETRIES, CACHE_PRIMARY_RETRY_DELAY_SEC, SYNTHETIC_RECORD_COUNT
from models.reference import CacheLoadReport, ReferenceMetadata, ReferenceRecord
from utils.errors import AuthError
from utils.logger import get_logger

logger = get_logger(__name__)

RawFetch = Callable[[], Awaitable[Optional[List[Dict[str, Any]]]]]

SYNTHETIC_COORD_LOW = -10.0
SYNTHETIC_COORD_HIGH = 10.0


class PrimarySource(Protocol):
    """In-memory accessor polled first (ReferenceFeed satisfies this)."""

    @property
    def is_fetching(self) -> bool:
        ...

    def get_sequences(self) -> Optional[List[Dict[str, Any]]]:
        ...

    async def refresh(self) -> Any:
        ...


@dataclass
class CacheSources:
    """Sources consulted by ReferenceCache.initialize, all optional."""
    primary: Optional[PrimarySource] = None
    batch_fetch: Optional[RawFetch] = None
    direct_fetch: Optional[RawFetch] = None


def build_records(raw_entries: Iterable[Any]) -> Tuple[List[ReferenceRecord], int, int]:
    """
    Convert raw bulk entries into ReferenceRecords.

    Args:
        raw_entries: Raw dicts from the bulk endpoint

    Returns:
        (records, skipped, duplicates): entries without id or finite coordinates
        are skipped; later entries reusing an id already seen are dropped
    """
    records: List[ReferenceRecord] = []
    seen_ids = set()
    skipped = 0
    duplicates = 0
    for raw in raw_entries:
        record = ReferenceRecord.from_raw(raw)
        if record is None:
            skipped += 1
            continue
        if record.id in seen_ids:
            duplicates += 1
            continue
        seen_ids.add(record.id)
        records.append(record)
    return records, skipped, duplicates


def synthesize_records(count: int, rng: Optional[np.random.Generator] = None) -> List[ReferenceRecord]:
    """
    Create placeholder records with random coordinates and synthetic accessions.

    Args:
        count: Number of records to create
        rng: Optional numpy Generator (seeded in tests)

    Returns:
        List of ReferenceRecords flagged is_placeholder=True
    """
    rng = rng or np.random.default_rng()
    coords = rng.uniform(SYNTHETIC_COORD_LOW, SYNTHETIC_COORD_HIGH, size=(count, 2))
    return [
        ReferenceRecord(
            id=f"fallback-{i}",
            x=float(coords[i, 0]),
            y=float(coords[i, 1]),
            accession=f"FB{i}",
            metadata=ReferenceMetadata(accessions=(f"FB{i}",), country="Unknown", first_year=None),
            is_placeholder=True,
        )
        for i in range(count)
    ]


class ReferenceCache:
    """Holds the current reference records; owned by the dashboard orchestrator."""

    def __init__(
        self,
        primary_retries: int = CACHE_PRIMARY_RETRIES,
        retry_delay_sec: float = CACHE_PRIMARY_RETRY_DELAY_SEC,
        synthetic_count: int = SYNTHETIC_RECORD_COUNT,
        rng: Optional[np.random.Generator] = None,
    ):
        """
        Initialize an empty cache.

        Args:
            primary_retries: Attempts made against the primary accessor
            retry_delay_sec: Fixed delay between primary attempts
            synthetic_count: Size of the placeholder set used when every source fails
            rng: Optional numpy Generator for placeholder coordinates
        """
        if primary_retries < 1:
            raise ValueError(f"primary_retries must be >= 1, got {primary_retries}")
        if synthetic_count < 1:
            raise ValueError(f"synthetic_count must be >= 1, got {synthetic_count}")
        self.primary_retries = primary_retries
        self.retry_delay_sec = retry_delay_sec
        self.synthetic_count = synthetic_count
        self._rng = rng
        self._records: Optional[Tuple[ReferenceRecord, ...]] = None
        self._by_id: Dict[str, ReferenceRecord] = {}
        self.last_report: Optional[CacheLoadReport] = None

    def get(self) -> Optional[List[ReferenceRecord]]:
        """Return the cached records, or None if the cache was never initialized."""
        if self._records is None:
            return None
        return list(self._records)

    def lookup(self, sequence_id: str) -> Optional[ReferenceRecord]:
        """Find a cached record by id."""
        return self._by_id.get(sequence_id)

    def __len__(self) -> int:
        return len(self._records) if self._records is not None else 0

    def clear(self) -> None:
        self._records = None
        self._by_id = {}
        self.last_report = None

    def _replace(self, records: List[ReferenceRecord], report: CacheLoadReport) -> List[ReferenceRecord]:
        # Swap the whole collection in one assignment; records themselves are frozen
        self._records = tuple(records)
        self._by_id = {record.id: record for record in records}
        self.last_report = report
        return list(self._records)

    async def initialize(
        self,
        sources: Optional[CacheSources] = None,
        force_refresh: bool = False,
    ) -> List[ReferenceRecord]:
        """
        Populate the cache from the first source that yields records.

        Args:
            sources: Primary accessor and fetch functions to try, in chain order
            force_refresh: Rebuild even if the cache already holds records

        Returns:
            The new cached records (never empty, never raises)
        """
        if self._records and not force_refresh:
            logger.info(f"Using existing reference cache with {len(self._records)} records")
            return list(self._records)

        sources = sources or CacheSources()
        report = CacheLoadReport(source="synthetic")
        logger.info("Initializing reference cache...")

        steps = (
            ("primary", self._from_primary),
            ("batch", self._from_fetch),
            ("direct", self._from_fetch),
            ("refresh", self._from_refresh),
        )
        for name, step in steps:
            try:
                raw = await step(name, sources)
            except AuthError as e:
                logger.error(f"Reference cache source '{name}' rejected the API key: {e}")
                report.errors.append(f"{name}: {e}")
                report.auth_error = str(e)
                break
            except Exception as e:
                logger.error(f"Reference cache source '{name}' failed: {e}")
                report.errors.append(f"{name}: {e}")
                continue
            if not raw:
                logger.info(f"Reference cache source '{name}' yielded no data")
                continue

            records, skipped, duplicates = build_records(raw)
            report.skipped += skipped
            report.duplicates += duplicates
            if skipped:
                logger.warning(f"Skipped {skipped} '{name}' entries without id or finite coordinates")
            if duplicates:
                logger.warning(f"Dropped {duplicates} '{name}' entries with duplicate ids")
            if records:
                report.source = name
                report.loaded = len(records)
                logger.info(f"Cached {len(records)} reference records from '{name}'")
                return self._replace(records, report)

        records = synthesize_records(self.synthetic_count, self._rng)
        report.source = "synthetic"
        report.loaded = len(records)
        report.synthetic = len(records)
        logger.warning(
            f"No reference data from any source; using {len(records)} synthetic placeholder records"
        )
        return self._replace(records, report)

    async def refresh(self, sources: Optional[CacheSources] = None) -> List[ReferenceRecord]:
        """Rebuild the cache from its sources regardless of current content."""
        return await self.initialize(sources, force_refresh=True)

    async def _from_primary(self, name: str, sources: CacheSources) -> Optional[List[Dict[str, Any]]]:
        primary = sources.primary
        if primary is None:
            return None
        for attempt in range(1, self.primary_retries + 1):
            data = primary.get_sequences()
            if data:
                logger.info(f"Primary accessor returned {len(data)} records on attempt {attempt}")
                return data
            if primary.is_fetching:
                logger.info("Primary accessor fetch in flight, waiting for completion")
            else:
                logger.info(f"No data in primary accessor on attempt {attempt}")
            if attempt < self.primary_retries:
                await asyncio.sleep(self.retry_delay_sec)
        return None

    async def _from_fetch(self, name: str, sources: CacheSources) -> Optional[List[Dict[str, Any]]]:
        fetch = sources.batch_fetch if name == "batch" else sources.direct_fetch
        if fetch is None:
            return None
        data = await fetch()
        logger.info(f"'{name}' fetch returned {len(data) if data else 0} records")
        return data

    async def _from_refresh(self, name: str, sources: CacheSources) -> Optional[List[Dict[str, Any]]]:
        primary = sources.primary
        if primary is None:
            return None
        logger.info("Forcing a refresh of the primary accessor")
        result = await primary.refresh()
        if result is not None and getattr(result, "success", True) is False:
            if getattr(result, "code", None) == AuthError.code:
                raise AuthError(result.error or "API key rejected")
            raise RuntimeError(getattr(result, "error", None) or "primary refresh failed")
        return primary.get_sequences()
