"""Assembly of view-ready results for completed jobs."""
from results.aggregates import aggregate_by_country, aggregate_by_year, compute_year_range
from results.assembler import ResultAssembler

__all__ = [
    "aggregate_by_country",
    "aggregate_by_year",
    "compute_year_range",
    "ResultAssembler",
]
