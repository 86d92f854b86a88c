from typing import Any, Dict, Optional

from loguru import logger

from bulkadd.clients import DoofApiClient
from bulkadd.config import BASE_DELAY_MS, MAX_RETRIES
from bulkadd.models import NeighborhoodRecord
from bulkadd.retry import retry_with_backoff


def _to_record(row: Dict[str, Any]) -> Optional[NeighborhoodRecord]:
    if not isinstance(row, dict) or row.get("id") is None:
        return None
    return NeighborhoodRecord(
        id=int(row["id"]),
        name=row.get("name") or "",
        city_id=row.get("city_id"),
        city_name=row.get("city_name"),
    )


class NeighborhoodResolver:
    """
    ZIP → neighborhood lookups with a cache that lives as long as the resolver,
    i.e. one batch run. Unmapped ZIPs are cached as None too.
    """

    def __init__(self, client: DoofApiClient, max_retries: int = MAX_RETRIES, base_delay_ms: int = BASE_DELAY_MS):
        self.client = client
        self.max_retries = max_retries
        self.base_delay_ms = base_delay_ms
        self._cache: Dict[str, Optional[NeighborhoodRecord]] = {}

    def clear(self) -> None:
        self._cache.clear()

    async def find_neighborhood_by_zipcode(self, zipcode: str) -> Optional[NeighborhoodRecord]:
        """
        Look up the neighborhood covering `zipcode`.

        Args:
            zipcode (str): 5-digit US ZIP.

        Returns:
            Optional[NeighborhoodRecord]: None when no neighborhood covers the ZIP.

        Raises:
            APIError: if the lookup keeps failing after retries; such failures are not cached.
        """
        if not zipcode:
            return None
        if zipcode in self._cache:
            logger.debug(f"Neighborhood cache hit for {zipcode}")
            return self._cache[zipcode]

        data = await retry_with_backoff(
            lambda: self.client.get_json(f"/neighborhoods/zip/{zipcode}", allow_404=True),
            max_retries=self.max_retries,
            base_delay_ms=self.base_delay_ms,
        )

        rows = data.get("data", data) if isinstance(data, dict) else data
        if isinstance(rows, dict):
            rows = [rows]

        record = None
        for row in rows or []:
            record = _to_record(row)
            if record:
                break

        if record:
            logger.debug(f"📍 {zipcode} → {record.name} (id={record.id})")
        else:
            logger.debug(f"No neighborhood mapped for {zipcode}")
        self._cache[zipcode] = record
        return record
