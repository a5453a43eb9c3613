"""Shared fixtures: an in-memory stand-in for the upstream analysis API."""
import asyncio
from typing import Any, Dict, List, Optional

import pytest


class FakeBackend:
    """
    Scriptable AnalysisBackend.

    `statuses` is consumed one entry per status query; the last entry repeats.
    Entries may be plain status strings or full response dicts.
    """

    def __init__(
        self,
        statuses: Optional[List[Any]] = None,
        projection: Optional[Dict[str, Any]] = None,
        similar: Optional[Any] = None,
        reference: Optional[List[Dict[str, Any]]] = None,
        job_id: str = "job-1",
    ):
        self.statuses = list(statuses or ["queued"])
        self.projection = projection if projection is not None else {"result": {"coordinates": [1.5, -2.5]}}
        self.similar = similar if similar is not None else {"result": []}
        self.reference = reference if reference is not None else []
        self.job_id = job_id

        self.status_error: Optional[Exception] = None
        self.upload_error: Optional[Exception] = None
        self.fetch_error: Optional[Exception] = None
        self.gate: Optional[asyncio.Event] = None
        self.entered: Optional[asyncio.Event] = None

        self.uploads: List[tuple] = []
        self.status_calls = 0
        self.fetch_calls = 0
        self.similar_queries: List[Any] = []

    async def upload_sequence(self, content: bytes, filename: str, model: str) -> Dict[str, Any]:
        if self.upload_error is not None:
            raise self.upload_error
        self.uploads.append((content, filename, model))
        return {"job_id": self.job_id}

    async def check_job_status(self, job_id: str) -> Dict[str, Any]:
        self.status_calls += 1
        if self.entered is not None:
            self.entered.set()
        if self.gate is not None:
            await self.gate.wait()
        if self.status_error is not None:
            raise self.status_error
        status = self.statuses.pop(0) if len(self.statuses) > 1 else self.statuses[0]
        return status if isinstance(status, dict) else {"status": status}

    async def get_umap_projection(self, job_id: str) -> Dict[str, Any]:
        return self.projection

    async def get_similar_sequences(self, job_id: str, query) -> Dict[str, Any]:
        self.similar_queries.append(query)
        return self.similar

    async def fetch_all_sequences(self, model: str) -> List[Dict[str, Any]]:
        self.fetch_calls += 1
        await asyncio.sleep(0)
        if self.fetch_error is not None:
            raise self.fetch_error
        return list(self.reference)


def make_reference_entry(index: int, accession: Optional[str] = None, **overrides) -> Dict[str, Any]:
    """Raw bulk-endpoint entry with deterministic coordinates."""
    entry = {
        "type": "record",
        "sequence_hash": f"ref-{index}",
        "coordinates": [float(index), float(-index)],
        "accession": accession if accession is not None else f"NZ_REF{index}.1",
        "first_country": "Denmark" if index % 2 else "Kenya",
        "first_date": f"{2000 + index % 20}-01-15",
    }
    entry.update(overrides)
    return entry


def make_similar_entry(rank: int, with_coordinates: bool = True, **overrides) -> Dict[str, Any]:
    """Raw similar-sequence entry; similarity decreases with rank."""
    entry = {
        "sequence_hash": f"sim-{rank}",
        "similarity": round(1.0 - rank / 200.0, 4),
        "distance": round(rank / 200.0, 4),
        "accession": f"NZ_SIM{rank}.1",
        "first_country": ["Denmark", "Kenya", "Brazil"][rank % 3],
        "first_date": f"{2010 + rank % 10}-06-01",
    }
    if with_coordinates:
        entry["coordinates"] = [rank * 0.1, rank * -0.1]
    entry.update(overrides)
    return entry


@pytest.fixture
def fake_backend():
    """A backend whose job stays queued and which holds no data."""
    return FakeBackend()


@pytest.fixture
def reference_entries():
    """Twenty valid raw reference entries."""
    return [make_reference_entry(i) for i in range(20)]
