"""Country and year aggregates over the similar-sequence set."""
from collections import defaultdict
from typing import Dict, Iterable, List, Union

from models.sequences import AggregateBucket, SimilarSequence, YearRange


def aggregate_by_country(sequences: Iterable[SimilarSequence]) -> List[AggregateBucket]:
    """
    Group sequences by first-reported country.

    Returns:
        Buckets sorted by count (descending), then country name
    """
    groups: Dict[str, List[SimilarSequence]] = defaultdict(list)
    for seq in sequences:
        groups[seq.metadata.country or "Unknown"].append(seq)
    buckets = [AggregateBucket(key=country, count=len(members), members=members) for country, members in groups.items()]
    buckets.sort(key=lambda b: (-b.count, str(b.key)))
    return buckets


def aggregate_by_year(sequences: Iterable[SimilarSequence]) -> List[AggregateBucket]:
    """
    Group sequences by first-reported year; sequences without a year are left out.

    Returns:
        Buckets sorted by year (ascending)
    """
    groups: Dict[int, List[SimilarSequence]] = defaultdict(list)
    for seq in sequences:
        if seq.metadata.first_year is not None:
            groups[seq.metadata.first_year].append(seq)
    return [
        AggregateBucket(key=year, count=len(groups[year]), members=groups[year])
        for year in sorted(groups)
    ]


def compute_year_range(years: Iterable[Union[int, None]], current_year: int, fallback_span: int) -> YearRange:
    """
    Span of the parseable years, or the last `fallback_span` years if there are none.

    Args:
        years: Candidate years (None entries are ignored)
        current_year: Year used as the fallback's upper bound
        fallback_span: Width of the fallback window

    Returns:
        YearRange (is_fallback=True when no year was available)
    """
    known = [year for year in years if year is not None]
    if not known:
        return YearRange(min=current_year - fallback_span, max=current_year, is_fallback=True)
    return YearRange(min=min(known), max=max(known))
