"""
Client for the upstream sequence analysis API.

The dashboard core only depends on the AnalysisBackend protocol below; this
module provides the REST implementation used in production. Calls are made
with `requests` and moved off the event loop with `asyncio.to_thread`, so a
slow round-trip suspends only the awaiting coroutine.
"""
import asyncio
import json
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional, Protocol

import requests

from config import (
    DEFAULT_EMBEDDING_MODEL,
    PATHTRACK_API_BASE_URL,
    PATHTRACK_API_KEY,
    PATHTRACK_TIMEOUT_SEC,
    SIMILAR_INCLUDE_UNKNOWN_DATES,
    SIMILAR_MAX_YEAR,
    SIMILAR_MIN_DISTANCE,
    SIMILAR_N_RESULTS,
)
from utils.errors import AuthError, DashboardError, MalformedResponse, TransientFetchError
from utils.logger import get_logger

logger = get_logger(__name__)

RETRYABLE_STATUS_CODES = {408, 429}
AUTH_STATUS_CODES = {401, 403}


@dataclass
class SimilarityQuery:
    """Body of the similar-sequences request."""
    n_results: int = SIMILAR_N_RESULTS
    min_distance: float = SIMILAR_MIN_DISTANCE
    max_year: int = SIMILAR_MAX_YEAR
    include_unknown_dates: bool = SIMILAR_INCLUDE_UNKNOWN_DATES

    def __post_init__(self):
        """Validate query parameters."""
        if self.n_results <= 0:
            raise ValueError(f"n_results must be > 0, got {self.n_results}")


class AnalysisBackend(Protocol):
    """Collaborator interface the dashboard core consumes."""

    async def upload_sequence(self, content: bytes, filename: str, model: str) -> Dict[str, Any]:
        ...

    async def check_job_status(self, job_id: str) -> Dict[str, Any]:
        ...

    async def get_umap_projection(self, job_id: str) -> Dict[str, Any]:
        ...

    async def get_similar_sequences(self, job_id: str, query: SimilarityQuery) -> Dict[str, Any]:
        ...

    async def fetch_all_sequences(self, model: str) -> List[Dict[str, Any]]:
        ...


def parse_jsonl_records(text: str) -> List[Dict[str, Any]]:
    """
    Parse a JSON-lines bulk response, keeping only `type == "record"` objects.

    Args:
        text: Raw response body, one JSON object per line

    Returns:
        Record objects in response order; unparseable lines are skipped
    """
    records: List[Dict[str, Any]] = []
    bad_lines = 0
    for line in text.splitlines():
        if not line.strip():
            continue
        try:
            obj = json.loads(line)
        except json.JSONDecodeError:
            bad_lines += 1
            continue
        if isinstance(obj, dict) and obj.get("type") == "record":
            records.append(obj)
    if bad_lines:
        logger.warning(f"Skipped {bad_lines} unparseable lines in bulk response")
    return records


class PathtrackClient:
    """REST implementation of AnalysisBackend."""

    def __init__(
        self,
        base_url: str = PATHTRACK_API_BASE_URL,
        api_key: str = PATHTRACK_API_KEY,
        timeout: float = PATHTRACK_TIMEOUT_SEC,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize the client.

        Args:
            base_url: API root, e.g. "https://host/api/v1"
            api_key: Value sent in the X-API-Key header
            timeout: Per-request timeout in seconds
            session: Optional pre-configured requests session
        """
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"X-API-Key": api_key, "accept": "application/json"})

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        """Perform one HTTP request and map failures onto the error taxonomy."""
        url = self._url(path)
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except (requests.ConnectionError, requests.Timeout) as e:
            raise TransientFetchError(f"{method} {path} failed: {e}") from e
        except requests.RequestException as e:
            raise DashboardError(f"{method} {path} failed: {e}") from e

        if response.status_code in AUTH_STATUS_CODES:
            raise AuthError(
                f"{method} {path} rejected the API key ({response.status_code})",
                status_code=response.status_code,
            )
        if response.status_code in RETRYABLE_STATUS_CODES or response.status_code >= 500:
            raise TransientFetchError(
                f"{method} {path} returned {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )
        if not response.ok:
            raise DashboardError(
                f"{method} {path} returned {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )
        return response

    def _json(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        response = self._request(method, path, **kwargs)
        try:
            data = response.json()
        except ValueError as e:
            raise MalformedResponse(f"{method} {path} returned a non-JSON body") from e
        if not isinstance(data, dict):
            raise MalformedResponse(f"{method} {path} returned {type(data).__name__}, expected an object")
        return data

    # Synchronous calls

    def upload_sequence_sync(self, content: bytes, filename: str, model: str) -> Dict[str, Any]:
        logger.info(f"Uploading sequence {filename} using model {model}")
        data = self._json(
            "POST",
            "/pathtrack/sequence/embed",
            files={"file": (filename, content)},
            data={"model": model},
        )
        if not data.get("job_id"):
            raise MalformedResponse("Upload response did not contain a job_id")
        logger.info(f"Sequence upload accepted, job ID: {data['job_id']}")
        return data

    def check_job_status_sync(self, job_id: str) -> Dict[str, Any]:
        data = self._json("GET", f"/pathtrack/jobs/{job_id}")
        logger.debug(f"Job {job_id} status: {data.get('status')}")
        return data

    def get_umap_projection_sync(self, job_id: str) -> Dict[str, Any]:
        return self._json("POST", "/pathtrack/sequence/umap", params={"job_id": job_id}, json={})

    def get_similar_sequences_sync(self, job_id: str, query: SimilarityQuery) -> Dict[str, Any]:
        return self._json(
            "POST",
            "/pathtrack/sequence/similar",
            params={"job_id": job_id},
            json=asdict(query),
        )

    def fetch_all_sequences_sync(self, model: str = DEFAULT_EMBEDDING_MODEL) -> List[Dict[str, Any]]:
        response = self._request(
            "GET",
            "/pathtrack/umap/all",
            params={"embedding_model": model, "reduced": "true"},
        )
        records = parse_jsonl_records(response.text)
        logger.info(f"Received {len(records)} reference records for model {model}")
        return records

    # AnalysisBackend (async) interface

    async def upload_sequence(self, content: bytes, filename: str, model: str) -> Dict[str, Any]:
        return await asyncio.to_thread(self.upload_sequence_sync, content, filename, model)

    async def check_job_status(self, job_id: str) -> Dict[str, Any]:
        return await asyncio.to_thread(self.check_job_status_sync, job_id)

    async def get_umap_projection(self, job_id: str) -> Dict[str, Any]:
        return await asyncio.to_thread(self.get_umap_projection_sync, job_id)

    async def get_similar_sequences(self, job_id: str, query: SimilarityQuery) -> Dict[str, Any]:
        return await asyncio.to_thread(self.get_similar_sequences_sync, job_id, query)

    async def fetch_all_sequences(self, model: str = DEFAULT_EMBEDDING_MODEL) -> List[Dict[str, Any]]:
        return await asyncio.to_thread(self.fetch_all_sequences_sync, model)
