import time
from typing import Any, Dict, List, Optional

from loguru import logger

from bulkadd.clients import DoofApiClient
from bulkadd.config import PLACE_COMPONENTS, PLACE_TYPES
from bulkadd.errors import PermanentAPIError
from bulkadd.models import PlaceCandidate, PlaceDetails, ServiceResult

# Google statuses that will not change on a retry
PERMANENT_GOOGLE_STATUSES = {"REQUEST_DENIED", "OVER_QUERY_LIMIT", "INVALID_REQUEST", "OVER_DAILY_LIMIT"}


def _google_status_error(data: Any) -> Optional[str]:
    if isinstance(data, dict):
        status = data.get("status")
        if status in PERMANENT_GOOGLE_STATUSES:
            return f"Google Places returned {status}: {data.get('error_message') or 'request refused'}"
        if data.get("success") is False:
            return data.get("message") or data.get("error") or "Places request was not successful"
    return None


def _prediction_to_candidate(prediction: Dict[str, Any]) -> Optional[PlaceCandidate]:
    place_id = prediction.get("place_id")
    if not place_id:
        return None
    description = prediction.get("description") or ""
    formatting = prediction.get("structured_formatting") or {}
    head, _, tail = description.partition(",")
    return PlaceCandidate(
        place_id=place_id,
        name=formatting.get("main_text") or head.strip(),
        formatted_address=formatting.get("secondary_text") or tail.strip(),
        location=(prediction.get("geometry") or {}).get("location"),
    )


class PlaceService:
    """Places lookups through the backend's Google Places proxy."""

    def __init__(self, client: DoofApiClient):
        self.client = client

    async def search_places(self, query: str) -> ServiceResult[List[PlaceCandidate]]:
        """
        Search autocomplete predictions for a free-text query.

        Args:
            query (str): Name and city (and optionally tags) of a restaurant.

        Returns:
            ServiceResult[List[PlaceCandidate]]: success=False with empty data on a permanent failure.

        Raises:
            TransientAPIError: left for the caller's backoff to handle.
        """
        if not query or not query.strip():
            raise ValueError("Search query is required")

        start = time.perf_counter()
        logger.debug(f"🔎 Searching places for '{query}'")
        try:
            data = await self.client.get_json(
                "/places/autocomplete",
                params={"input": query, "types": PLACE_TYPES, "components": PLACE_COMPONENTS},
                places=True,
            )
        except PermanentAPIError as e:
            logger.warning(f"Place search for '{query}' rejected: {e}")
            return ServiceResult(success=False, data=[], error=str(e))

        error = _google_status_error(data)
        if error:
            logger.warning(f"Place search for '{query}' failed: {error}")
            return ServiceResult(success=False, data=[], error=error)

        if isinstance(data, list):
            predictions = data
        elif isinstance(data, dict):
            predictions = data.get("predictions") or data.get("data") or []
        else:
            predictions = []

        candidates = [c for c in (_prediction_to_candidate(p) for p in predictions if isinstance(p, dict)) if c]
        duration = time.perf_counter() - start
        logger.debug(f"✅ {len(candidates)} candidate(s) for '{query}' in {duration:.2f}s")
        return ServiceResult(success=True, data=candidates)

    async def get_place_details(self, place_id: str) -> ServiceResult[PlaceDetails]:
        """
        Fetch full address and geometry for a place returned by `search_places`.

        Returns:
            ServiceResult[PlaceDetails]: success=False on a permanent failure or an empty result.
        """
        if not place_id:
            raise ValueError("Invalid place ID provided")

        logger.debug(f"📥 Fetching details for place_id={place_id}")
        try:
            data = await self.client.get_json(f"/places/details/{place_id}", places=True)
        except PermanentAPIError as e:
            logger.warning(f"Place details for {place_id} rejected: {e}")
            return ServiceResult(success=False, error=str(e))

        error = _google_status_error(data)
        if error:
            return ServiceResult(success=False, error=error)

        result = (data.get("result") or data.get("data")) if isinstance(data, dict) else None
        if not result:
            return ServiceResult(success=False, error=f"No details returned for place {place_id}")

        location = (result.get("geometry") or {}).get("location") or {}
        details = PlaceDetails(
            place_id=result.get("place_id") or place_id,
            name=result.get("name") or "",
            formatted_address=result.get("formatted_address") or "",
            latitude=location.get("lat"),
            longitude=location.get("lng"),
            address_components=result.get("address_components") or [],
        )
        logger.debug(f"🏁 Details for {place_id} → {details.formatted_address}")
        return ServiceResult(success=True, data=details)
