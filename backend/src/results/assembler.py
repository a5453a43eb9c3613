"""
Assembly of view-ready records for a completed analysis job.

After a job completes the assembler fetches the uploaded sequence's projection
and its similar sequences, then derives every view from a single pass over the
similar-sequence list: the contextual set, the map subset, the top-10 subset
and the year range. Ranks follow the upstream order, so `is_top10` is
deterministic; re-sorting the lists afterwards does not change ranks.
"""
from datetime import date
from typing import Any, Callable, Dict, List, Optional, Tuple

import numpy as np

from clients.pathtrack import AnalysisBackend, SimilarityQuery
from config import MAP_SUBSET_SIZE, TOP_N_SIMILAR, YEAR_RANGE_FALLBACK_SPAN
from matching.resolver import MatchResolver
from models.sequences import (
    AssembledView,
    AssemblyWarnings,
    SimilarSequence,
    SimilarSequenceMetadata,
    UserSequencePoint,
)
from reference_cache.cache import ReferenceCache
from results.aggregates import aggregate_by_country, aggregate_by_year, compute_year_range
from utils.logger import get_logger
from utils.parsing import is_finite_number, parse_accession, parse_coordinates, parse_year

logger = get_logger(__name__)


def _entry_id(entry: Dict[str, Any]) -> Optional[str]:
    value = entry.get("sequence_hash") or entry.get("id")
    return str(value) if value else None


def _similarity_and_distance(entry: Dict[str, Any]) -> Tuple[float, float]:
    """Similarity clamped to [0, 1]; whichever of the pair is missing is derived from the other."""
    similarity = entry.get("similarity")
    distance = entry.get("distance")
    has_similarity = is_finite_number(similarity)
    has_distance = is_finite_number(distance)

    if has_similarity:
        sim = float(similarity)
    elif has_distance:
        sim = 1.0 - float(distance)
    else:
        sim = 0.0
    sim = float(np.clip(sim, 0.0, 1.0))
    dist = float(distance) if has_distance else 1.0 - sim
    return sim, dist


def _metadata(entry: Dict[str, Any]) -> SimilarSequenceMetadata:
    nested = entry.get("metadata") if isinstance(entry.get("metadata"), dict) else {}
    first_date = entry.get("first_date", nested.get("first_date"))
    return SimilarSequenceMetadata(
        accession=parse_accession(entry.get("accession")) or parse_accession(nested.get("accession")),
        country=entry.get("first_country") or nested.get("country") or "Unknown",
        first_year=parse_year(first_date if first_date is not None else entry.get("first_year", nested.get("first_year"))),
        first_date=str(first_date) if first_date is not None else None,
        organism=entry.get("organism") or nested.get("organism"),
    )


class ResultAssembler:
    """Builds AssembledViews from the projection and similar-sequence endpoints."""

    def __init__(
        self,
        backend: AnalysisBackend,
        cache: Optional[ReferenceCache] = None,
        resolver: Optional[MatchResolver] = None,
        query: Optional[SimilarityQuery] = None,
        top_n: int = TOP_N_SIMILAR,
        geo_subset_size: int = MAP_SUBSET_SIZE,
        year_fallback_span: int = YEAR_RANGE_FALLBACK_SPAN,
        today: Callable[[], date] = date.today,
    ):
        """
        Initialize the assembler.

        Args:
            backend: Remote API for projection and similar-sequence queries
            cache: Reference cache consulted for entries lacking coordinates
            resolver: Resolver used to match those entries by accession
            query: Similar-sequence query parameters
            top_n: Entries with rank below this are flagged is_top10
            geo_subset_size: Size of the map subset (first K by rank)
            year_fallback_span: Width of the fallback year range
            today: Date source for the fallback year range
        """
        self.backend = backend
        self.cache = cache
        self.resolver = resolver or MatchResolver()
        self.query = query or SimilarityQuery()
        self.top_n = top_n
        self.geo_subset_size = geo_subset_size
        self.year_fallback_span = year_fallback_span
        self._today = today

    async def assemble(self, job_id: str, job_result: Optional[Dict[str, Any]] = None) -> AssembledView:
        """
        Fetch and assemble all view data for a completed job.

        Args:
            job_id: Completed job identifier
            job_result: Result payload reported with the job's completion

        Returns:
            AssembledView

        Raises:
            DashboardError: If the projection or similar-sequence request fails
        """
        logger.info(f"Assembling results for job {job_id}")
        warnings = AssemblyWarnings()

        user = await self.fetch_projection(job_id, job_result)
        warnings.projection_placeholder = user.is_placeholder

        entries, malformed = await self.fetch_similar(job_id)
        warnings.malformed_similar_response = malformed

        view = self.build_view(job_id, user, entries, warnings)
        logger.info(
            f"Assembled job {job_id}: {len(view.contextual)} of {view.raw_count} similar sequences placed, "
            f"{view.warnings.missing_coordinates} without coordinates"
        )
        return view

    async def fetch_projection(self, job_id: str, job_result: Optional[Dict[str, Any]] = None) -> UserSequencePoint:
        """Fetch the uploaded sequence's coordinates, degrading to a placeholder point."""
        payload = await self.backend.get_umap_projection(job_id)
        embedding_id = job_result.get("embedding_id") if isinstance(job_result, dict) else None

        body = payload.get("result", payload) if isinstance(payload, dict) else None
        coordinates = parse_coordinates(body.get("coordinates")) if isinstance(body, dict) else None
        if coordinates is None:
            logger.warning(f"Projection for job {job_id} has no valid coordinates, using a placeholder")
            return UserSequencePoint(id=job_id, x=0.0, y=0.0, is_placeholder=True, embedding_id=embedding_id)
        return UserSequencePoint(id=job_id, x=coordinates[0], y=coordinates[1], embedding_id=embedding_id)

    async def fetch_similar(self, job_id: str) -> Tuple[List[Any], bool]:
        """
        Fetch up to `query.n_results` similar sequences.

        Returns:
            (raw entries, whether the response was malformed)
        """
        payload = await self.backend.get_similar_sequences(job_id, self.query)
        entries = payload.get("result") if isinstance(payload, dict) else None
        if not isinstance(entries, list):
            logger.warning(f"Similar-sequence response for job {job_id} has no result list")
            return [], True
        return entries[: self.query.n_results], False

    def _recover_coordinates(
        self,
        entries: List[Any],
        warnings: AssemblyWarnings,
    ) -> Dict[int, Tuple[float, float, str]]:
        """Coordinates for entries lacking them, looked up by id then by accession."""
        recovered: Dict[int, Tuple[float, float, str]] = {}
        records = self.cache.get() if self.cache is not None else None
        if not records:
            return recovered

        pending: Dict[int, str] = {}
        for index, entry in enumerate(entries):
            if not isinstance(entry, dict) or parse_coordinates(entry.get("coordinates")) is not None:
                continue
            record = self.cache.lookup(_entry_id(entry) or "")
            accession = parse_accession(entry.get("accession"))
            if record is not None and not record.is_placeholder:
                recovered[index] = (record.x, record.y, "cache")
            elif accession:
                pending[index] = accession

        if pending:
            authoritative = [r for r in records if not r.is_placeholder]
            report = self.resolver.resolve_all(list(pending.values()), authoritative)
            for index, result in zip(pending, report.results):
                if result.is_matched:
                    recovered[index] = (result.x, result.y, "resolver")
            warnings.unmatched_accessions = list(report.unmatched)

        warnings.recovered_from_cache = len(recovered)
        return recovered

    def build_view(
        self,
        job_id: str,
        user: UserSequencePoint,
        entries: List[Any],
        warnings: Optional[AssemblyWarnings] = None,
    ) -> AssembledView:
        """
        Derive every view from one pass over the similar-sequence entries.

        Entries still lacking coordinates after the cache lookup are excluded
        and counted, never placed at (0, 0).

        Args:
            job_id: Job the entries belong to
            user: The uploaded sequence's point
            entries: Raw similar-sequence entries in upstream rank order
            warnings: Warnings collected so far (a new one is created if omitted)

        Returns:
            AssembledView
        """
        warnings = warnings or AssemblyWarnings()
        recovered = self._recover_coordinates(entries, warnings)

        contextual: List[SimilarSequence] = []
        geo_subset: List[SimilarSequence] = []
        top10: List[SimilarSequence] = []
        seen_ids = set()

        for rank, entry in enumerate(entries):
            if not isinstance(entry, dict) or not _entry_id(entry):
                warnings.invalid_entries += 1
                continue
            sequence_id = _entry_id(entry)
            if sequence_id in seen_ids:
                warnings.invalid_entries += 1
                continue

            coordinates = parse_coordinates(entry.get("coordinates"))
            source = "inline"
            if coordinates is None and rank in recovered:
                x, y, source = recovered[rank]
                coordinates = (x, y)
            if coordinates is None:
                warnings.missing_coordinates += 1
                continue

            similarity, distance = _similarity_and_distance(entry)
            seq = SimilarSequence(
                id=sequence_id,
                similarity=similarity,
                distance=distance,
                x=coordinates[0],
                y=coordinates[1],
                rank=rank,
                metadata=_metadata(entry),
                is_top10=rank < self.top_n,
                coordinates_source=source,
            )
            seen_ids.add(sequence_id)
            contextual.append(seq)
            if len(geo_subset) < self.geo_subset_size:
                geo_subset.append(seq)
            if seq.is_top10:
                top10.append(seq)

        if warnings.missing_coordinates:
            logger.warning(f"Excluded {warnings.missing_coordinates} similar sequences without coordinates")
        if warnings.invalid_entries:
            logger.warning(f"Excluded {warnings.invalid_entries} invalid or duplicate similar-sequence entries")

        year_range = compute_year_range(
            (seq.metadata.first_year for seq in contextual),
            self._today().year,
            self.year_fallback_span,
        )
        return AssembledView(
            job_id=job_id,
            user_sequence=user,
            contextual=contextual,
            geo_subset=geo_subset,
            top10=top10,
            year_range=year_range,
            country_buckets=aggregate_by_country(contextual),
            year_buckets=aggregate_by_year(contextual),
            warnings=warnings,
            raw_count=len(entries),
        )
