"""LangGraph state for the discovery pipeline.

The state is a TypedDict so every value a node reads or writes is explicit.
Values are the pipeline's pydantic models rather than raw dicts; the graph
runs without a checkpointer, so nothing is serialized between nodes.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional, TypedDict

from discovery.models import (
    DiscoverPayload,
    FilterSpec,
    PaginationInfo,
    Profile,
    ScoredCandidate,
)
from discovery.tools.filter_tools import SearchArea
from discovery.tools.geocoding import GeocodedPostcode
from discovery.tools.predicates import Predicate


class DiscoveryState(TypedDict, total=False):
    """State for the discovery graph.

    Fields are optional at runtime because nodes populate them progressively.
    """

    # Identifies the requesting user (from X-User-Id).
    user_id: str
    # Explicit query-parameter filters.
    filters: FilterSpec
    # Clamped pagination input.
    page: int
    limit: int
    # Request clock; every node uses this instead of reading the time itself.
    now: datetime
    # Requester profile loaded from profiles/{user_id}.
    requester: Profile
    # Geocoded search postcode, None when absent or unresolved.
    resolved_postcode: Optional[GeocodedPostcode]
    # Effective origin and radius for distance filtering.
    search_area: SearchArea
    # Self, swiped, matched and blocked user IDs.
    excluded_ids: set[str]
    # Composite predicate for real candidates.
    predicate: Predicate
    # Real candidates after retrieval, then after distance filtering.
    candidates: list[ScoredCandidate]
    # Number of real candidates that survived distance filtering.
    real_count: int
    # Showcase profiles supplied as fallback.
    showcase_count: int
    # Candidates with compatibility scores.
    scored: list[ScoredCandidate]
    # Ranked page returned to the caller.
    page_items: list[ScoredCandidate]
    pagination: PaginationInfo
    # Final response payload.
    payload: DiscoverPayload
    # Error message and machine-readable code if any node fails.
    error: str
    error_code: str
