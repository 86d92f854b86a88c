# bulkadd/processor.py

from typing import Any, Dict, List, Optional, Set

from loguru import logger

from bulkadd.address import resolve_zipcode
from bulkadd.clients import DoofApiClient
from bulkadd.config import BASE_DELAY_MS, MAX_RETRIES
from bulkadd.errors import APIError, BulkAddError
from bulkadd.models import (
    BulkEntry,
    EntryStatus,
    PlaceCandidate,
    ResolvedItem,
    SubmitResult,
)
from bulkadd.parsing import mark_local_duplicates, parse_raw_input
from bulkadd.retry import retry_with_backoff
from bulkadd.services.neighborhood_service import NeighborhoodResolver
from bulkadd.services.place_service import PlaceService

NO_MATCH = "no match found"
SELECTION_CANCELLED = "place selection cancelled"
BULK_CREATE_PATH = "/admin/restaurants/bulk"

_FINAL_STATUSES = {EntryStatus.RESOLVED, EntryStatus.ERROR, EntryStatus.REMOVED}


class BulkAddProcessor:
    """
    Resolves a batch of bulk entries one at a time:
    search → (disambiguate) → details → ZIP → neighborhood.

    `process()` returns when the batch is finished or when an entry needs the user
    to pick a place; `select_result()` / `cancel_selection()` resume it.
    """

    def __init__(
        self,
        client: DoofApiClient,
        place_service: Optional[PlaceService] = None,
        neighborhoods: Optional[NeighborhoodResolver] = None,
        max_retries: int = MAX_RETRIES,
        base_delay_ms: int = BASE_DELAY_MS,
        include_tags_in_query: bool = False,
    ):
        self.client = client
        self.places = place_service or PlaceService(client)
        self.neighborhoods = neighborhoods or NeighborhoodResolver(client, max_retries, base_delay_ms)
        self.max_retries = max_retries
        self.base_delay_ms = base_delay_ms
        self.include_tags_in_query = include_tags_in_query
        self.entries: List[BulkEntry] = []
        self.awaiting: Optional[BulkEntry] = None
        self._resolved: Dict[int, ResolvedItem] = {}
        self._submitted: Set[int] = set()

    # Batch setup

    def load(self, entries: List[BulkEntry]) -> None:
        self.reset()
        self.entries = mark_local_duplicates(list(entries))
        logger.info(f"Loaded {len(self.entries)} bulk entries")

    def load_text(self, raw_text: str) -> None:
        self.load(parse_raw_input(raw_text))

    def reset(self) -> None:
        self.entries = []
        self.awaiting = None
        self._resolved = {}
        self._submitted = set()
        self.neighborhoods.clear()

    # State

    @property
    def completed(self) -> List[ResolvedItem]:
        """Resolved items not yet submitted, in input order."""
        return [
            self._resolved[e.line_number]
            for e in self.entries
            if e.status == EntryStatus.RESOLVED and e.line_number in self._resolved
            and e.line_number not in self._submitted
        ]

    @property
    def rows(self) -> List[Dict[str, Any]]:
        """One review-table row per input line, removed rows included."""
        rows = []
        for entry in self.entries:
            item = self._resolved.get(entry.line_number) if entry.status == EntryStatus.RESOLVED else None
            rows.append({
                "line": entry.line_number,
                "name": entry.name,
                "city": entry.city,
                "status": entry.status.value,
                "error": entry.error,
                "submitted": entry.line_number in self._submitted,
                "duplicate_of": entry.duplicate_of,
                "candidates": len(entry.candidates),
                "place_id": item.place_id if item else None,
                "address": item.address if item else None,
                "zipcode": item.zipcode if item else None,
                "neighborhood": item.neighborhood_name if item else None,
            })
        return rows

    def _find(self, line_number: int) -> BulkEntry:
        for entry in self.entries:
            if entry.line_number == line_number:
                return entry
        raise KeyError(f"No bulk entry on line {line_number}")

    # Processing

    async def process(self) -> Optional[BulkEntry]:
        """
        Advance the batch in input order.

        Returns:
            Optional[BulkEntry]: The entry waiting for a place selection, or None once every
            entry has reached a final status.

        Raises:
            ConfigurationError: if the API client is not configured; nothing is processed.
        """
        self.client.ensure_configured()

        if self.awaiting is not None:
            logger.debug(f"Line {self.awaiting.line_number} is still waiting for a selection")
            return self.awaiting

        for entry in self.entries:
            if entry.status != EntryStatus.PENDING:
                continue
            await self._run_guarded(self._process_entry(entry), entry)
            if entry.status == EntryStatus.MULTIPLE_MATCHES:
                self.awaiting = entry
                logger.info(f"⏸️ Line {entry.line_number} '{entry.name}' has {len(entry.candidates)} matches")
                return entry

        resolved = sum(1 for e in self.entries if e.status == EntryStatus.RESOLVED)
        failed = sum(1 for e in self.entries if e.status == EntryStatus.ERROR)
        logger.info(f"Batch finished: {resolved} resolved, {failed} failed, {len(self.entries)} total")
        return None

    async def select_result(self, candidate: PlaceCandidate) -> Optional[BulkEntry]:
        """Resolve the waiting entry with the chosen candidate, then continue the batch."""
        entry = self.awaiting
        if entry is None:
            raise BulkAddError("No entry is waiting for a place selection")
        if candidate.place_id not in {c.place_id for c in entry.candidates}:
            raise ValueError(f"Place {candidate.place_id} was not offered for line {entry.line_number}")

        self.awaiting = None
        logger.debug(f"👉 Line {entry.line_number}: selected {candidate.name} ({candidate.place_id})")
        await self._run_guarded(self._resolve_candidate(entry, candidate), entry)
        return await self.process()

    async def cancel_selection(self) -> Optional[BulkEntry]:
        """Mark the waiting entry as failed and continue the batch."""
        entry = self.awaiting
        if entry is None:
            raise BulkAddError("No entry is waiting for a place selection")
        self.awaiting = None
        entry.fail(SELECTION_CANCELLED)
        return await self.process()

    def remove_entry(self, line_number: int) -> BulkEntry:
        """Drop an entry from submission. The row stays visible as removed."""
        entry = self._find(line_number)
        entry.transition(EntryStatus.REMOVED)
        entry.candidates = []
        self._resolved.pop(line_number, None)
        if self.awaiting is entry:
            self.awaiting = None
        return entry

    async def _run_guarded(self, step, entry: BulkEntry) -> None:
        try:
            await step
        except Exception as e:
            logger.exception(f"⚠️ Line {entry.line_number} '{entry.name}' failed unexpectedly: {e}")
            if entry.status not in _FINAL_STATUSES:
                entry.fail(f"Unexpected error: {e}")

    async def _with_backoff(self, fn):
        return await retry_with_backoff(fn, max_retries=self.max_retries, base_delay_ms=self.base_delay_ms)

    async def _process_entry(self, entry: BulkEntry) -> None:
        entry.transition(EntryStatus.SEARCHING)
        query = entry.search_query(include_tags=self.include_tags_in_query)

        try:
            result = await self._with_backoff(lambda: self.places.search_places(query))
        except APIError as e:
            if entry.status != EntryStatus.REMOVED:
                entry.fail(f"Place search failed: {e}")
            return

        if entry.status == EntryStatus.REMOVED:
            return
        if not result.success:
            entry.fail(result.error or "Place search failed")
            return

        candidates = result.data or []
        if not candidates:
            logger.warning(f"Line {entry.line_number} '{query}': {NO_MATCH}")
            entry.fail(NO_MATCH)
            return
        if len(candidates) > 1:
            entry.transition(EntryStatus.MULTIPLE_MATCHES)
            entry.candidates = candidates
            return

        await self._resolve_candidate(entry, candidates[0])

    async def _resolve_candidate(self, entry: BulkEntry, candidate: PlaceCandidate) -> None:
        try:
            result = await self._with_backoff(lambda: self.places.get_place_details(candidate.place_id))
        except APIError as e:
            if entry.status != EntryStatus.REMOVED:
                entry.fail(f"Could not fetch place details: {e}")
            return

        if entry.status == EntryStatus.REMOVED:
            return
        if not result.success or result.data is None:
            entry.fail(f"Could not fetch place details: {result.error or 'empty response'}")
            return

        details = result.data
        address = details.formatted_address or candidate.formatted_address
        zipcode = resolve_zipcode(address, details.address_components)

        neighborhood = None
        if zipcode:
            try:
                neighborhood = await self.neighborhoods.find_neighborhood_by_zipcode(zipcode)
            except APIError as e:
                if entry.status != EntryStatus.REMOVED:
                    entry.fail(f"Neighborhood lookup failed for {zipcode}: {e}")
                return
        if entry.status == EntryStatus.REMOVED:
            return

        location = candidate.location or {}
        item = ResolvedItem(
            original=entry,
            place_id=details.place_id or candidate.place_id,
            name=entry.name,
            address=address,
            zipcode=zipcode,
            neighborhood_id=neighborhood.id if neighborhood else None,
            neighborhood_name=neighborhood.name if neighborhood else None,
            latitude=details.latitude if details.latitude is not None else location.get("lat"),
            longitude=details.longitude if details.longitude is not None else location.get("lng"),
            city_id=neighborhood.city_id if neighborhood else None,
        )
        entry.transition(EntryStatus.RESOLVED)
        entry.candidates = []
        entry.error = None
        self._resolved[entry.line_number] = item
        logger.debug(
            f"✅ Line {entry.line_number} '{entry.name}' → {zipcode or 'no ZIP'} / "
            f"{item.neighborhood_name or 'unmapped neighborhood'}"
        )

    # Submission

    async def submit_items(self) -> SubmitResult:
        """
        Post every resolved item to the bulk-create endpoint. Posted items are
        marked submitted and never sent again; a failed post leaves them pending.

        Returns:
            SubmitResult: Added/failed counts as reported by the backend.
        """
        items = self.completed
        if not items:
            logger.info("Nothing to submit")
            return SubmitResult(added=0, failed=0)

        self.client.ensure_configured()
        payload = {"restaurants": [item.to_payload() for item in items]}
        logger.info(f"📤 Submitting {len(items)} restaurant(s)")
        # Not retried: a 5xx after a partial insert would create duplicates.
        try:
            data = await self.client.post_json(BULK_CREATE_PATH, payload)
        except APIError as e:
            logger.warning(f"Bulk submit failed: {e}")
            return SubmitResult(added=0, failed=len(items), errors=[str(e)])

        body = data.get("data", data) if isinstance(data, dict) else {}
        if not isinstance(body, dict):
            body = {}
        added = body.get("added")
        if added is None:
            # adminBulkController.bulkAdd reports its insert count under "success"
            count = body.get("success")
            added = count if isinstance(count, int) and not isinstance(count, bool) else 0
        result = SubmitResult(
            added=int(added or 0),
            failed=int(body.get("failed", 0) or 0),
            restaurants=body.get("restaurants") or body.get("created") or [],
            errors=body.get("errors") or [],
        )
        self._submitted.update(item.original.line_number for item in items)
        logger.info(f"Bulk submit: {result.added} added, {result.failed} failed")
        return result
