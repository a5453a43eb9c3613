"""
Multi-tier accession resolver.

Upstream services name the same sequence in different ways ("NZ_AB123.1",
"AB123.1", "ab123"). The resolver reconciles a query accession with the
reference cache by trying progressively looser rules and stopping at the first
tier that matches anything:

    tier-1  exact string equality
    tier-2  case-insensitive equality
    tier-3  equality of the versionless base (text before the first ".")
    tier-4  equality after stripping a known organisation prefix from either side
    tier-5  containment, in either direction, of the prefix-stripped bases

When several records tie within a tier the first one in cache order wins.
With duplicate accessions in the cache the chosen record therefore depends on
cache order.
"""
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

from config import ACCESSION_PREFIXES
from matching.models import MatchResult, MatchStrategy, ResolutionReport
from models.reference import ReferenceRecord
from utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class AccessionKey:
    """Normalised forms of one accession string."""
    exact: str
    lower: str
    base: str  # lowercase, version suffix removed
    stripped: str  # base with a known prefix removed
    had_prefix: bool


def strip_version(accession: str) -> str:
    """Return the accession without its version suffix ("AB123.1" -> "AB123")."""
    return accession.split(".", 1)[0]


def strip_prefix(accession: str, prefixes: Sequence[str] = ACCESSION_PREFIXES) -> Tuple[str, bool]:
    """
    Remove the first matching organisation prefix, case-insensitively.

    Returns:
        (remaining text, whether a prefix was removed)
    """
    lowered = accession.lower()
    for prefix in prefixes:
        if prefix and lowered.startswith(prefix.lower()):
            return accession[len(prefix):], True
    return accession, False


def make_key(accession: str, prefixes: Sequence[str] = ACCESSION_PREFIXES) -> AccessionKey:
    lower = accession.strip().lower()
    base = strip_version(lower)
    stripped, had_prefix = strip_prefix(base, prefixes)
    return AccessionKey(
        exact=accession,
        lower=lower,
        base=base,
        stripped=stripped,
        had_prefix=had_prefix,
    )


def _exact(q: AccessionKey, c: AccessionKey) -> bool:
    return q.exact == c.exact


def _case_insensitive(q: AccessionKey, c: AccessionKey) -> bool:
    return q.lower == c.lower


def _versionless(q: AccessionKey, c: AccessionKey) -> bool:
    return q.base == c.base


def _prefix_stripped(q: AccessionKey, c: AccessionKey) -> bool:
    return (q.had_prefix or c.had_prefix) and bool(q.stripped) and q.stripped == c.stripped


def _containment(q: AccessionKey, c: AccessionKey) -> bool:
    if not q.stripped or not c.stripped:
        return False
    return q.stripped in c.stripped or c.stripped in q.stripped


Matcher = Callable[[AccessionKey, AccessionKey], bool]

DEFAULT_TIERS: Tuple[Tuple[MatchStrategy, Matcher], ...] = (
    (MatchStrategy.EXACT, _exact),
    (MatchStrategy.CASE_INSENSITIVE, _case_insensitive),
    (MatchStrategy.VERSIONLESS, _versionless),
    (MatchStrategy.PREFIX_STRIPPED, _prefix_stripped),
    (MatchStrategy.CONTAINMENT, _containment),
)


class MatchResolver:
    """Resolves external accession strings against reference cache records."""

    def __init__(self, prefixes: Sequence[str] = ACCESSION_PREFIXES):
        """
        Initialize the resolver.

        Args:
            prefixes: Organisation prefixes stripped by tiers 4 and 5 (e.g. "NZ_")
        """
        self.prefixes = tuple(prefixes)
        self.tiers: List[Tuple[MatchStrategy, Matcher]] = list(DEFAULT_TIERS)

    def _index(self, cache: Optional[Sequence[ReferenceRecord]]) -> List[Tuple[ReferenceRecord, AccessionKey]]:
        indexed = []
        for record in cache or ():
            for accession in self._record_accessions(record):
                indexed.append((record, make_key(accession, self.prefixes)))
        return indexed

    @staticmethod
    def _record_accessions(record: ReferenceRecord) -> List[str]:
        accessions = [record.accession] if isinstance(record.accession, str) and record.accession else []
        for extra in record.metadata.accessions:
            if isinstance(extra, str) and extra and extra not in accessions:
                accessions.append(extra)
        return accessions

    def resolve_one(
        self,
        query: str,
        indexed: List[Tuple[ReferenceRecord, AccessionKey]],
    ) -> MatchResult:
        """
        Resolve a single query against a pre-built index.

        Args:
            query: Accession to look up
            indexed: Output of `_index` for the cache being searched

        Returns:
            MatchResult for the first tier with any candidate, or an unmatched result
        """
        if not isinstance(query, str) or not query.strip():
            return MatchResult(query=query if isinstance(query, str) else str(query))

        key = make_key(query, self.prefixes)
        for strategy, matcher in self.tiers:
            candidates: List[ReferenceRecord] = []
            seen_ids = set()
            for record, candidate_key in indexed:
                if record.id not in seen_ids and matcher(key, candidate_key):
                    seen_ids.add(record.id)
                    candidates.append(record)
            if candidates:
                chosen = candidates[0]
                if len(candidates) > 1:
                    logger.debug(
                        f"{len(candidates)} {strategy.value} candidates for '{query}', using {chosen.id}"
                    )
                return MatchResult(
                    query=query,
                    matched_id=chosen.id,
                    matched_accession=chosen.accession,
                    x=chosen.x,
                    y=chosen.y,
                    strategy=strategy,
                    candidates=len(candidates),
                )
        return MatchResult(query=query)

    def resolve_all(
        self,
        queries: Sequence[str],
        cache: Optional[Sequence[ReferenceRecord]],
    ) -> ResolutionReport:
        """
        Resolve a batch of accessions.

        Never raises: an empty or missing cache leaves every query unmatched.

        Args:
            queries: Accessions to resolve, in caller order
            cache: Reference records to search, in cache order

        Returns:
            ResolutionReport with one result per query and the unmatched batch
        """
        report = ResolutionReport()
        if not queries:
            return report

        indexed = self._index(cache)
        for query in queries:
            result = self.resolve_one(query, indexed)
            report.results.append(result)
            if not result.is_matched:
                report.unmatched.append(result.query)

        matched = len(report.results) - len(report.unmatched)
        logger.info(f"Resolved {matched} of {len(report.results)} accessions against {len(cache or ())} records")
        if report.unmatched:
            logger.warning(f"Could not resolve {report.summary()}: {', '.join(report.unmatched[:20])}")
        return report


def check_accessions(
    queries: Sequence[str],
    cache: Optional[Sequence[ReferenceRecord]],
    resolver: Optional[MatchResolver] = None,
) -> dict:
    """
    Tally how each query resolves, per tier.

    Args:
        queries: Accessions to check
        cache: Reference records to search
        resolver: Resolver to use (a default one is created if omitted)

    Returns:
        Dict with checked / found / notFound counts and per-tier matchTypes
    """
    report = (resolver or MatchResolver()).resolve_all(queries, cache)
    counts = report.strategy_counts()
    return {
        "checked": len(report.results),
        "found": len(report.matched),
        "notFound": len(report.unmatched),
        "matchTypes": counts,
    }
