"""
Typed data models for the bulk-add pipeline.
All data structures used throughout the codebase should be defined here.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Generic, List, Optional, TypeVar

from bulkadd.errors import InvalidTransitionError

T = TypeVar("T")


class EntryStatus(str, Enum):
    PENDING = "pending"
    SEARCHING = "searching"
    MULTIPLE_MATCHES = "multiple_matches"
    RESOLVED = "resolved"
    ERROR = "error"
    REMOVED = "removed"


# Forward-only moves; REMOVED is reachable from anywhere and handled separately.
ALLOWED_TRANSITIONS = {
    EntryStatus.PENDING: {EntryStatus.SEARCHING, EntryStatus.ERROR},
    EntryStatus.SEARCHING: {EntryStatus.RESOLVED, EntryStatus.MULTIPLE_MATCHES, EntryStatus.ERROR},
    EntryStatus.MULTIPLE_MATCHES: {EntryStatus.RESOLVED, EntryStatus.ERROR},
    EntryStatus.RESOLVED: set(),
    EntryStatus.ERROR: set(),
    EntryStatus.REMOVED: set(),
}


@dataclass
class PlaceCandidate:
    """One autocomplete prediction. Location is only known once details are fetched."""
    place_id: str
    name: str
    formatted_address: str = ""
    location: Optional[Dict[str, float]] = None


@dataclass
class PlaceDetails:
    """Full address and geometry of a chosen place."""
    place_id: str
    name: str
    formatted_address: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    address_components: List[Dict[str, Any]] = field(default_factory=list)


@dataclass
class NeighborhoodRecord:
    """Internal neighborhood row looked up by ZIP code."""
    id: int
    name: str
    city_id: Optional[int] = None
    city_name: Optional[str] = None


@dataclass
class BulkEntry:
    """One line of user input."""
    name: str
    line_number: int
    type: str = "restaurant"
    city: str = ""
    tags: List[str] = field(default_factory=list)
    status: EntryStatus = EntryStatus.PENDING
    error: Optional[str] = None
    candidates: List[PlaceCandidate] = field(default_factory=list)
    duplicate_of: Optional[int] = None  # line number of an earlier near-identical entry

    def search_query(self, include_tags: bool = False) -> str:
        parts = [self.name, self.city]
        if include_tags:
            parts.extend(self.tags)
        return ", ".join(p.strip() for p in parts if p and p.strip())

    def transition(self, new_status: EntryStatus) -> None:
        """
        Move the entry to `new_status`.

        Raises:
            InvalidTransitionError: if the move would go backwards.
        """
        if new_status == EntryStatus.REMOVED:
            self.status = new_status
            return
        if new_status not in ALLOWED_TRANSITIONS[self.status]:
            raise InvalidTransitionError(
                f"Line {self.line_number}: cannot move from {self.status.value} to {new_status.value}"
            )
        self.status = new_status

    def fail(self, reason: str) -> None:
        self.transition(EntryStatus.ERROR)
        self.error = reason
        self.candidates = []


@dataclass
class ResolvedItem:
    """Durable output of one successfully resolved entry."""
    original: BulkEntry
    place_id: str
    name: str
    address: str
    zipcode: Optional[str] = None
    neighborhood_id: Optional[int] = None
    neighborhood_name: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    city_id: Optional[int] = None

    def __post_init__(self):
        if not self.place_id:
            raise ValueError(f"Resolved item for line {self.original.line_number} has no place_id")

    def to_payload(self) -> Dict[str, Any]:
        """Restaurant-create record sent to the admin API."""
        return {
            "name": self.name,
            "type": self.original.type,
            "address": self.address,
            "city": self.original.city,
            "city_id": self.city_id,
            "zipcode": self.zipcode or "",
            "neighborhood_id": self.neighborhood_id,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "tags": list(self.original.tags),
            "place_id": self.place_id,
            "_lineNumber": self.original.line_number,
        }


@dataclass
class ServiceResult(Generic[T]):
    """`{success, data}` envelope returned by the place service."""
    success: bool
    data: Optional[T] = None
    error: Optional[str] = None


@dataclass
class SubmitResult:
    """Outcome of a bulk-create call."""
    added: int
    failed: int
    restaurants: List[Dict[str, Any]] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
