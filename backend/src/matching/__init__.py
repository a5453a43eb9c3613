"""Accession matching against the reference cache."""
from matching.models import (
    MatchResult,
    MatchResultDTO,
    MatchStrategy,
    ResolutionReport,
    ResolutionReportDTO,
)
from matching.resolver import MatchResolver, check_accessions, make_key, strip_prefix, strip_version

__all__ = [
    "MatchResult",
    "MatchResultDTO",
    "MatchStrategy",
    "ResolutionReport",
    "ResolutionReportDTO",
    "MatchResolver",
    "check_accessions",
    "make_key",
    "strip_prefix",
    "strip_version",
]
