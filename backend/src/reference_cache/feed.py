"""In-memory feed of raw reference records fetched from the bulk endpoint."""
import asyncio
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from clients.pathtrack import AnalysisBackend
from config import DEFAULT_EMBEDDING_MODEL
from utils.errors import DashboardError
from utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class FeedRefreshResult:
    """Outcome of a forced feed refresh."""
    success: bool
    count: int = 0
    error: Optional[str] = None
    code: Optional[str] = None  # DashboardError code of the failure


class ReferenceFeed:
    """
    Holds the raw bulk reference records and de-duplicates in-flight fetches.

    Concurrent callers of `fetch()` share one upstream request. This is the
    primary accessor the reference cache polls before falling back to other
    sources.
    """

    def __init__(self, backend: AnalysisBackend, model: str = DEFAULT_EMBEDDING_MODEL):
        self.backend = backend
        self.model = model
        self._records: Optional[List[Dict[str, Any]]] = None
        self._inflight: Optional["asyncio.Task[List[Dict[str, Any]]]"] = None

    @property
    def is_fetching(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    def get_sequences(self) -> Optional[List[Dict[str, Any]]]:
        """Return the records fetched so far, or None if nothing was fetched yet."""
        return self._records

    def status(self) -> Dict[str, Any]:
        return {
            "isCached": self._records is not None,
            "count": len(self._records) if self._records is not None else 0,
            "isFetching": self.is_fetching,
        }

    async def fetch(self, force_refresh: bool = False) -> List[Dict[str, Any]]:
        """
        Fetch the bulk records, reusing an in-flight request or the stored copy.

        Args:
            force_refresh: Start a new request even if records are already held

        Returns:
            List of raw record dicts

        Raises:
            DashboardError: If the upstream request fails
        """
        if self.is_fetching and not force_refresh:
            logger.info("Bulk reference fetch already in flight, waiting for it")
            return await asyncio.shield(self._inflight)

        if self._records is not None and not force_refresh:
            return self._records

        self._inflight = asyncio.get_running_loop().create_task(self._load())
        return await asyncio.shield(self._inflight)

    async def _load(self) -> List[Dict[str, Any]]:
        logger.info(f"Fetching all reference sequences for model {self.model}")
        records = await self.backend.fetch_all_sequences(self.model)
        self._records = list(records or [])
        logger.info(f"Reference feed holds {len(self._records)} records")
        return self._records

    async def refresh(self) -> FeedRefreshResult:
        """Force a new bulk fetch, reporting failure instead of raising."""
        try:
            records = await self.fetch(force_refresh=True)
        except DashboardError as e:
            logger.error(f"Reference feed refresh failed: {e}")
            return FeedRefreshResult(success=False, error=str(e), code=e.code)
        return FeedRefreshResult(success=True, count=len(records))
