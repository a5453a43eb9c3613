"""Statistics about the reference cache content."""
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from models.reference import ReferenceRecord
from utils.logger import get_logger

logger = get_logger(__name__)

TOP_PREFIXES = 10


@dataclass
class CacheStats:
    """Summary of the cached records."""
    total: int = 0
    with_accession: int = 0
    unique_accessions: int = 0
    placeholders: int = 0
    prefix_counts: Dict[str, int] = field(default_factory=dict)
    sample_ids: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, object]:
        return {
            "total": self.total,
            "withAccession": self.with_accession,
            "uniqueAccessions": self.unique_accessions,
            "placeholders": self.placeholders,
            "prefixCounts": dict(self.prefix_counts),
            "sampleIds": list(self.sample_ids),
        }


def accession_prefix(accession: str) -> Optional[str]:
    """Return the organisation prefix of an accession ("NZ_" for "NZ_AB123.1"), if any."""
    head, sep, _ = accession.partition("_")
    return f"{head}_" if sep and head else None


def inspect_cache(records: Optional[List[ReferenceRecord]], sample_size: int = 5) -> CacheStats:
    """
    Compute statistics over the cached records.

    Args:
        records: Current cache content (None or empty allowed)
        sample_size: Number of record ids to include as a sample

    Returns:
        CacheStats with the most common accession prefixes first
    """
    if not records:
        logger.info("Reference cache is empty or not initialized")
        return CacheStats()

    accessions = [r.accession for r in records if isinstance(r.accession, str) and r.accession]
    unique = set(accessions)
    prefixes = Counter(p for p in (accession_prefix(a) for a in unique) if p)

    stats = CacheStats(
        total=len(records),
        with_accession=len(accessions),
        unique_accessions=len(unique),
        placeholders=sum(1 for r in records if r.is_placeholder),
        prefix_counts=dict(prefixes.most_common(TOP_PREFIXES)),
        sample_ids=[r.id for r in records[:sample_size]],
    )
    logger.debug(
        f"Reference cache: {stats.total} records, {stats.with_accession} with accession, "
        f"{stats.unique_accessions} unique"
    )
    return stats
