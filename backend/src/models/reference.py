"""Reference sequence records held by the reference cache."""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field

from utils.parsing import parse_accession, parse_coordinates, parse_year


@dataclass(frozen=True)
class ReferenceMetadata:
    """Descriptive metadata attached to a reference record."""
    accessions: Tuple[str, ...] = ()
    country: str = "Unknown"
    first_year: Optional[int] = None
    organism: Optional[str] = None


@dataclass(frozen=True)
class ReferenceRecord:
    """
    One reference sequence with its 2-D projection coordinates.

    Records are immutable once built; the cache replaces its whole collection
    on refresh instead of editing records in place.
    """
    id: str
    x: float
    y: float
    accession: Optional[str]
    metadata: ReferenceMetadata = field(default_factory=ReferenceMetadata)
    is_placeholder: bool = False  # True only for synthetic fallback records

    @classmethod
    def from_raw(cls, raw: Dict[str, Any]) -> Optional["ReferenceRecord"]:
        """
        Build a record from a raw bulk-query entry.

        Args:
            raw: Entry carrying sequence_hash|id, coordinates, accession,
                first_country, first_date and optionally organism

        Returns:
            ReferenceRecord, or None if the entry has no id or no finite coordinates
        """
        if not isinstance(raw, dict):
            return None
        sequence_id = raw.get("sequence_hash") or raw.get("id")
        coordinates = parse_coordinates(raw.get("coordinates"))
        if not sequence_id or coordinates is None:
            return None

        accession = parse_accession(raw.get("accession"))
        return cls(
            id=str(sequence_id),
            x=coordinates[0],
            y=coordinates[1],
            accession=accession,
            metadata=ReferenceMetadata(
                accessions=(accession,) if accession else (),
                country=raw.get("first_country") or "Unknown",
                first_year=parse_year(raw.get("first_date")),
                organism=raw.get("organism"),
            ),
        )


@dataclass
class CacheLoadReport:
    """How the last cache initialization was satisfied."""
    source: str  # "existing", "primary", "batch", "direct", "refresh" or "synthetic"
    loaded: int = 0
    skipped: int = 0  # raw entries dropped for missing id / non-finite coordinates
    duplicates: int = 0  # raw entries dropped because their id was already cached
    synthetic: int = 0
    errors: List[str] = field(default_factory=list)
    auth_error: Optional[str] = None  # set when a source rejected the API key

    @property
    def is_fallback(self) -> bool:
        """Whether the cache content is synthetic rather than authoritative."""
        return self.source == "synthetic"


# Pydantic DTOs for API responses
class ReferenceRecordDTO(BaseModel):
    """Pydantic model for ReferenceRecord API response."""
    id: str
    x: float
    y: float
    accession: Optional[str] = None
    accessions: List[str] = Field(default_factory=list)
    country: str = "Unknown"
    first_year: Optional[int] = Field(None, alias="firstYear")
    organism: Optional[str] = None
    is_placeholder: bool = Field(False, alias="isPlaceholder")

    class Config:
        populate_by_name = True

    @classmethod
    def from_record(cls, record: ReferenceRecord) -> "ReferenceRecordDTO":
        return cls(
            id=record.id,
            x=record.x,
            y=record.y,
            accession=record.accession,
            accessions=list(record.metadata.accessions),
            country=record.metadata.country,
            first_year=record.metadata.first_year,
            organism=record.metadata.organism,
            is_placeholder=record.is_placeholder,
        )


class CacheLoadReportDTO(BaseModel):
    """Pydantic model for CacheLoadReport API response."""
    source: str
    loaded: int
    skipped: int
    duplicates: int
    synthetic: int
    errors: List[str] = Field(default_factory=list)
    auth_error: Optional[str] = Field(None, alias="authError")
    is_fallback: bool = Field(..., alias="isFallback")

    class Config:
        populate_by_name = True

    @classmethod
    def from_report(cls, report: CacheLoadReport) -> "CacheLoadReportDTO":
        return cls(
            source=report.source,
            loaded=report.loaded,
            skipped=report.skipped,
            duplicates=report.duplicates,
            synthetic=report.synthetic,
            errors=list(report.errors),
            auth_error=report.auth_error,
            is_fallback=report.is_fallback,
        )
