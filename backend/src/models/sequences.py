"""View-ready sequence records produced by the result assembler."""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field


@dataclass
class SimilarSequenceMetadata:
    """Descriptive fields carried alongside a similar sequence."""
    accession: Optional[str] = None
    country: str = "Unknown"
    first_year: Optional[int] = None
    first_date: Optional[str] = None
    organism: Optional[str] = None


@dataclass
class SimilarSequence:
    """
    A sequence similar to the uploaded one, placed in projection space.

    `rank` is the position of the entry in the upstream response (0-based),
    so ranks stay stable even when some entries were excluded.
    """
    id: str
    similarity: float
    distance: float
    x: float
    y: float
    rank: int
    metadata: SimilarSequenceMetadata = field(default_factory=SimilarSequenceMetadata)
    is_top10: bool = False
    coordinates_source: str = "inline"  # "inline", "cache" or "resolver"

    def __post_init__(self):
        """Validate similar sequence data."""
        if not self.id:
            raise ValueError("id cannot be empty")
        if not (0.0 <= self.similarity <= 1.0):
            raise ValueError(f"similarity must be between 0.0 and 1.0, got {self.similarity}")
        if self.rank < 0:
            raise ValueError(f"rank must be >= 0, got {self.rank}")


@dataclass
class UserSequencePoint:
    """The uploaded sequence's own projection point."""
    id: str
    x: float
    y: float
    is_placeholder: bool = False
    embedding_id: Optional[str] = None


@dataclass
class AggregateBucket:
    """Similar sequences grouped under one country or one year."""
    key: Union[str, int]
    count: int
    members: List[SimilarSequence] = field(default_factory=list)


@dataclass
class YearRange:
    """Inclusive year span of the similar sequences."""
    min: int
    max: int
    is_fallback: bool = False  # True when no entry carried a parseable year


@dataclass
class AssemblyWarnings:
    """Counts of entries degraded or skipped while assembling a view."""
    missing_coordinates: int = 0
    invalid_entries: int = 0  # entries that are not objects or carry no id
    recovered_from_cache: int = 0
    projection_placeholder: bool = False
    malformed_similar_response: bool = False
    unmatched_accessions: List[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return (
            self.missing_coordinates
            + self.invalid_entries
            + int(self.projection_placeholder)
            + int(self.malformed_similar_response)
        )


@dataclass
class AssembledView:
    """Everything the dashboard views need for one completed job."""
    job_id: str
    user_sequence: UserSequencePoint
    contextual: List[SimilarSequence]
    geo_subset: List[SimilarSequence]
    top10: List[SimilarSequence]
    year_range: YearRange
    country_buckets: List[AggregateBucket]
    year_buckets: List[AggregateBucket]
    warnings: AssemblyWarnings = field(default_factory=AssemblyWarnings)
    raw_count: int = 0

    @property
    def sequence_ids(self) -> List[str]:
        return [seq.id for seq in self.contextual]


# Pydantic DTOs for API responses
class SimilarSequenceDTO(BaseModel):
    """Pydantic model for SimilarSequence API response."""
    id: str
    similarity: float
    distance: float
    x: float
    y: float
    rank: int
    is_top10: bool = Field(..., alias="isTop10")
    accession: Optional[str] = None
    country: str = "Unknown"
    first_year: Optional[int] = Field(None, alias="firstYear")
    first_date: Optional[str] = Field(None, alias="firstDate")
    coordinates_source: str = Field(..., alias="coordinatesSource")

    class Config:
        populate_by_name = True

    @classmethod
    def from_sequence(cls, seq: SimilarSequence) -> "SimilarSequenceDTO":
        return cls(
            id=seq.id,
            similarity=seq.similarity,
            distance=seq.distance,
            x=seq.x,
            y=seq.y,
            rank=seq.rank,
            is_top10=seq.is_top10,
            accession=seq.metadata.accession,
            country=seq.metadata.country,
            first_year=seq.metadata.first_year,
            first_date=seq.metadata.first_date,
            coordinates_source=seq.coordinates_source,
        )


class AggregateBucketDTO(BaseModel):
    """Pydantic model for AggregateBucket API response (member ids only)."""
    key: Union[str, int]
    count: int
    member_ids: List[str] = Field(default_factory=list, alias="memberIds")

    class Config:
        populate_by_name = True

    @classmethod
    def from_bucket(cls, bucket: AggregateBucket) -> "AggregateBucketDTO":
        return cls(key=bucket.key, count=bucket.count, member_ids=[m.id for m in bucket.members])


class AssembledViewDTO(BaseModel):
    """Pydantic model for the assembled results API response."""
    job_id: str = Field(..., alias="jobId")
    user_sequence: Dict[str, Any] = Field(..., alias="userSequence")
    contextual: List[SimilarSequenceDTO]
    geo_subset_ids: List[str] = Field(..., alias="geoSubsetIds")
    top10_ids: List[str] = Field(..., alias="top10Ids")
    year_range: Dict[str, Any] = Field(..., alias="yearRange")
    countries: List[AggregateBucketDTO]
    years: List[AggregateBucketDTO]
    warnings: Dict[str, Any]

    class Config:
        populate_by_name = True

    @classmethod
    def from_view(cls, view: AssembledView) -> "AssembledViewDTO":
        user = view.user_sequence
        warnings = view.warnings
        return cls(
            job_id=view.job_id,
            user_sequence={
                "id": user.id,
                "x": user.x,
                "y": user.y,
                "isPlaceholder": user.is_placeholder,
                "embeddingId": user.embedding_id,
            },
            contextual=[SimilarSequenceDTO.from_sequence(seq) for seq in view.contextual],
            geo_subset_ids=[seq.id for seq in view.geo_subset],
            top10_ids=[seq.id for seq in view.top10],
            year_range={
                "min": view.year_range.min,
                "max": view.year_range.max,
                "isFallback": view.year_range.is_fallback,
            },
            countries=[AggregateBucketDTO.from_bucket(b) for b in view.country_buckets],
            years=[AggregateBucketDTO.from_bucket(b) for b in view.year_buckets],
            warnings={
                "missingCoordinates": warnings.missing_coordinates,
                "invalidEntries": warnings.invalid_entries,
                "recoveredFromCache": warnings.recovered_from_cache,
                "projectionPlaceholder": warnings.projection_placeholder,
                "malformedSimilarResponse": warnings.malformed_similar_response,
                "unmatchedAccessions": list(warnings.unmatched_accessions),
            },
        )
