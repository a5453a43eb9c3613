"""Tests for result assembly and aggregation."""
import asyncio
from datetime import date

import pytest

from clients.pathtrack import SimilarityQuery
from conftest import FakeBackend, make_reference_entry, make_similar_entry
from models.sequences import AssembledViewDTO, SimilarSequence, SimilarSequenceMetadata
from reference_cache.cache import CacheSources, ReferenceCache
from results.aggregates import aggregate_by_country, aggregate_by_year, compute_year_range
from results.assembler import ResultAssembler
from utils.errors import TransientFetchError

MISSING_RANKS = {50, 51, 52, 53, 54}


def fixed_today():
    return date(2024, 3, 1)


def make_assembler(backend, cache=None, **kwargs):
    kwargs.setdefault("today", fixed_today)
    return ResultAssembler(backend, cache=cache, **kwargs)


def hundred_entries():
    return [make_similar_entry(rank, with_coordinates=rank not in MISSING_RANKS) for rank in range(100)]


def populated_cache(entries):
    async def direct():
        return entries

    cache = ReferenceCache(retry_delay_sec=0)
    asyncio.run(cache.initialize(CacheSources(direct_fetch=direct)))
    return cache


def test_entries_without_coordinates_are_excluded_and_counted():
    """100 entries with 5 lacking coordinates: 95 placed, 5 counted, 10 in the top set."""
    backend = FakeBackend(similar={"result": hundred_entries()})
    view = asyncio.run(make_assembler(backend).assemble("job-1"))

    assert len(view.contextual) == 95
    assert view.warnings.missing_coordinates == 5
    assert len(view.top10) == 10
    assert len(view.geo_subset) == 50
    assert view.raw_count == 100
    assert not any(seq.id in {f"sim-{r}" for r in MISSING_RANKS} for seq in view.contextual)
    assert all((seq.x, seq.y) != (0.0, 0.0) or seq.rank == 0 for seq in view.contextual)


def test_ranks_follow_upstream_order():
    backend = FakeBackend(similar={"result": hundred_entries()})
    view = asyncio.run(make_assembler(backend).assemble("job-1"))

    ranks = [seq.rank for seq in view.contextual]
    assert ranks == sorted(ranks)
    assert view.contextual[50].rank == 55
    assert [seq.rank for seq in view.top10] == list(range(10))
    assert all(seq.is_top10 == (seq.rank < 10) for seq in view.contextual)
    assert view.geo_subset == view.contextual[:50]


def test_top_set_keeps_ranks_when_an_early_entry_is_missing():
    entries = [make_similar_entry(rank, with_coordinates=rank != 3) for rank in range(20)]
    backend = FakeBackend(similar={"result": entries})
    view = asyncio.run(make_assembler(backend).assemble("job-1"))

    assert [seq.rank for seq in view.top10] == [0, 1, 2, 4, 5, 6, 7, 8, 9]


def test_missing_coordinates_recovered_from_cache_by_id():
    entries = [make_similar_entry(0), make_similar_entry(1, with_coordinates=False, sequence_hash="ref-4")]
    cache = populated_cache([make_reference_entry(4)])
    backend = FakeBackend(similar={"result": entries})

    view = asyncio.run(make_assembler(backend, cache=cache).assemble("job-1"))

    assert len(view.contextual) == 2
    recovered = view.contextual[1]
    assert (recovered.x, recovered.y) == (4.0, -4.0)
    assert recovered.coordinates_source == "cache"
    assert view.warnings.recovered_from_cache == 1
    assert view.warnings.missing_coordinates == 0


def test_missing_coordinates_recovered_by_accession():
    """Entries unknown to the cache by id are matched through the accession resolver."""
    entries = [
        make_similar_entry(0, with_coordinates=False, accession="ab7"),
        make_similar_entry(1, with_coordinates=False, accession="NOPE99"),
    ]
    cache = populated_cache([make_reference_entry(7, accession="NZ_AB7.1")])
    backend = FakeBackend(similar={"result": entries})

    view = asyncio.run(make_assembler(backend, cache=cache).assemble("job-1"))

    assert [seq.id for seq in view.contextual] == ["sim-0"]
    assert view.contextual[0].coordinates_source == "resolver"
    assert (view.contextual[0].x, view.contextual[0].y) == (7.0, -7.0)
    assert view.warnings.unmatched_accessions == ["NOPE99"]
    assert view.warnings.missing_coordinates == 1


def test_numeric_accessions_in_cache_and_entries_are_resolved():
    entries = [make_similar_entry(0, with_coordinates=False, accession=12345)]
    cache = populated_cache([make_reference_entry(3), make_reference_entry(4, accession=12345)])
    backend = FakeBackend(similar={"result": entries})

    view = asyncio.run(make_assembler(backend, cache=cache).assemble("job-1"))

    assert view.contextual[0].coordinates_source == "resolver"
    assert (view.contextual[0].x, view.contextual[0].y) == (4.0, -4.0)
    assert view.contextual[0].metadata.accession == "12345"


def test_placeholder_cache_records_are_not_used_for_coordinates():
    cache = ReferenceCache(retry_delay_sec=0, synthetic_count=5)
    asyncio.run(cache.initialize())
    entries = [make_similar_entry(0, with_coordinates=False, sequence_hash="fallback-1", accession="FB1")]
    backend = FakeBackend(similar={"result": entries})

    view = asyncio.run(make_assembler(backend, cache=cache).assemble("job-1"))

    assert view.contextual == []
    assert view.warnings.missing_coordinates == 1


def test_similarity_is_clamped_and_derived():
    entries = [
        make_similar_entry(0, similarity=1.7),
        make_similar_entry(1, similarity=None, distance=0.25),
        make_similar_entry(2, similarity=None, distance=None),
        make_similar_entry(3, similarity=-0.5),
    ]
    backend = FakeBackend(similar={"result": entries})
    view = asyncio.run(make_assembler(backend).assemble("job-1"))

    sims = [seq.similarity for seq in view.contextual]
    assert sims == [1.0, 0.75, 0.0, 0.0]
    assert view.contextual[1].distance == 0.25
    assert view.contextual[2].distance == 1.0


def test_invalid_and_duplicate_entries_are_counted():
    entries = [make_similar_entry(0), "garbage", {"similarity": 0.5}, make_similar_entry(0)]
    backend = FakeBackend(similar={"result": entries})
    view = asyncio.run(make_assembler(backend).assemble("job-1"))

    assert len(view.contextual) == 1
    assert view.warnings.invalid_entries == 3


def test_malformed_similar_response_yields_empty_views():
    backend = FakeBackend(similar={"result": "not a list"})
    view = asyncio.run(make_assembler(backend).assemble("job-1"))

    assert view.contextual == []
    assert view.warnings.malformed_similar_response
    assert view.year_range.is_fallback
    assert (view.year_range.min, view.year_range.max) == (2014, 2024)


def test_results_are_limited_to_requested_count():
    entries = [make_similar_entry(rank) for rank in range(30)]
    backend = FakeBackend(similar={"result": entries})
    assembler = make_assembler(backend, query=SimilarityQuery(n_results=12))

    view = asyncio.run(assembler.assemble("job-1"))

    assert len(view.contextual) == 12
    assert backend.similar_queries[0].n_results == 12


def test_projection_placeholder_when_coordinates_missing():
    backend = FakeBackend(projection={"result": {}}, similar={"result": [make_similar_entry(0)]})
    view = asyncio.run(make_assembler(backend).assemble("job-1", {"embedding_id": "emb-9"}))

    user = view.user_sequence
    assert user.is_placeholder
    assert (user.x, user.y) == (0.0, 0.0)
    assert user.embedding_id == "emb-9"
    assert view.warnings.projection_placeholder


def test_projection_accepts_unwrapped_coordinates():
    backend = FakeBackend(projection={"coordinates": [2.0, 3.0]})
    view = asyncio.run(make_assembler(backend).assemble("job-1"))
    assert (view.user_sequence.x, view.user_sequence.y) == (2.0, 3.0)
    assert not view.user_sequence.is_placeholder


def test_fetch_errors_propagate():
    class FailingBackend(FakeBackend):
        async def get_similar_sequences(self, job_id, query):
            raise TransientFetchError("similar endpoint down")

    with pytest.raises(TransientFetchError):
        asyncio.run(make_assembler(FailingBackend()).assemble("job-1"))


def test_year_range_and_aggregates():
    entries = [
        make_similar_entry(0, first_date="2015-01-01", first_country="Kenya"),
        make_similar_entry(1, first_date="2019", first_country="Denmark"),
        make_similar_entry(2, first_date=None, first_country="Denmark"),
        make_similar_entry(3, first_date="2015-07-07", first_country=None),
    ]
    backend = FakeBackend(similar={"result": entries})
    view = asyncio.run(make_assembler(backend).assemble("job-1"))

    assert (view.year_range.min, view.year_range.max) == (2015, 2019)
    assert not view.year_range.is_fallback
    assert [(b.key, b.count) for b in view.country_buckets] == [("Denmark", 2), ("Kenya", 1), ("Unknown", 1)]
    assert [(b.key, b.count) for b in view.year_buckets] == [(2015, 2), (2019, 1)]


def test_assembled_view_dto_uses_camel_case():
    backend = FakeBackend(similar={"result": [make_similar_entry(0), make_similar_entry(1)]})
    view = asyncio.run(make_assembler(backend).assemble("job-1"))

    data = AssembledViewDTO.from_view(view).model_dump(by_alias=True)

    assert data["jobId"] == "job-1"
    assert data["top10Ids"] == ["sim-0", "sim-1"]
    assert data["contextual"][0]["isTop10"] is True
    assert data["userSequence"]["isPlaceholder"] is False
    assert data["warnings"]["missingCoordinates"] == 0


def _seq(seq_id, country, year):
    return SimilarSequence(
        id=seq_id,
        similarity=0.5,
        distance=0.5,
        x=0.0,
        y=0.0,
        rank=0,
        metadata=SimilarSequenceMetadata(country=country, first_year=year),
    )


def test_aggregate_ties_are_ordered_by_name():
    seqs = [_seq("a", "Peru", 2001), _seq("b", "Chile", 2001), _seq("c", "Peru", None), _seq("d", "Chile", 1999)]

    assert [b.key for b in aggregate_by_country(seqs)] == ["Chile", "Peru"]
    assert [(b.key, b.count) for b in aggregate_by_year(seqs)] == [(1999, 1), (2001, 2)]


def test_compute_year_range_fallback():
    assert compute_year_range([None, None], 2024, 10).is_fallback
    assert compute_year_range([], 2024, 5).min == 2019
    assert compute_year_range([2003, None, 1999], 2024, 10).max == 2003


def test_similar_sequence_validation():
    with pytest.raises(ValueError):
        _seq("", "Peru", None)
    with pytest.raises(ValueError):
        SimilarSequence(id="x", similarity=1.5, distance=0.0, x=0.0, y=0.0, rank=0)
    with pytest.raises(ValueError):
        SimilarSequence(id="x", similarity=0.5, distance=0.0, x=0.0, y=0.0, rank=-1)
