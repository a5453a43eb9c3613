"""Clients for the upstream sequence analysis API."""
from clients.pathtrack import AnalysisBackend, PathtrackClient, SimilarityQuery, parse_jsonl_records

__all__ = [
    "AnalysisBackend",
    "PathtrackClient",
    "SimilarityQuery",
    "parse_jsonl_records",
]
