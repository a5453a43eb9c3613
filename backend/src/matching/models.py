"""Models for accession matching."""
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class MatchStrategy(str, Enum):
    """Resolver tiers, in the order they are tried."""
    EXACT = "tier-1"
    CASE_INSENSITIVE = "tier-2"
    VERSIONLESS = "tier-3"
    PREFIX_STRIPPED = "tier-4"
    CONTAINMENT = "tier-5"


@dataclass(frozen=True)
class MatchResult:
    """
    Outcome of resolving one query accession.

    Unmatched queries keep `matched_id`, coordinates and `strategy` as None.
    """
    query: str
    matched_id: Optional[str] = None
    matched_accession: Optional[str] = None
    x: Optional[float] = None
    y: Optional[float] = None
    strategy: Optional[MatchStrategy] = None
    candidates: int = 0  # records tied in the winning tier

    @property
    def is_matched(self) -> bool:
        return self.matched_id is not None


@dataclass
class ResolutionReport:
    """Results for a batch of queries plus the batch of queries left unmatched."""
    results: List[MatchResult] = field(default_factory=list)
    unmatched: List[str] = field(default_factory=list)

    @property
    def matched(self) -> List[MatchResult]:
        return [r for r in self.results if r.is_matched]

    def strategy_counts(self) -> Dict[str, int]:
        counts = {strategy.value: 0 for strategy in MatchStrategy}
        for result in self.matched:
            counts[result.strategy.value] += 1
        counts["unmatched"] = len(self.unmatched)
        return counts

    def summary(self) -> str:
        return f"{len(self.unmatched)} of {len(self.results)} not found"


# Pydantic DTOs for API responses
class MatchResultDTO(BaseModel):
    """Pydantic model for MatchResult API response."""
    query: str
    matched_id: Optional[str] = Field(None, alias="matchedId")
    matched_accession: Optional[str] = Field(None, alias="matchedAccession")
    x: Optional[float] = None
    y: Optional[float] = None
    strategy: Optional[MatchStrategy] = None
    candidates: int = 0

    class Config:
        populate_by_name = True

    @classmethod
    def from_result(cls, result: MatchResult) -> "MatchResultDTO":
        return cls(
            query=result.query,
            matched_id=result.matched_id,
            matched_accession=result.matched_accession,
            x=result.x,
            y=result.y,
            strategy=result.strategy,
            candidates=result.candidates,
        )


class ResolutionReportDTO(BaseModel):
    """Pydantic model for ResolutionReport API response."""
    results: List[MatchResultDTO]
    unmatched: List[str]
    summary: str
    strategy_counts: Dict[str, int] = Field(..., alias="strategyCounts")

    class Config:
        populate_by_name = True

    @classmethod
    def from_report(cls, report: ResolutionReport) -> "ResolutionReportDTO":
        return cls(
            results=[MatchResultDTO.from_result(r) for r in report.results],
            unmatched=list(report.unmatched),
            summary=report.summary(),
            strategy_counts=report.strategy_counts(),
        )
