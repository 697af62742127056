"""Effective search area and geodistance post-filtering."""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel

from discovery.models import FilterSpec, Profile, ScoredCandidate
from discovery.tools.geocoding import GeocodedPostcode
from discovery.utils.geo import haversine_km
from discovery.utils.logging_config import logger

OriginSource = Literal["postcode", "passport", "live"]
RadiusSource = Literal["filter", "dealbreaker", "preference", "postcode_default"]


class SearchArea(BaseModel):
    """Origin and radius used to post-filter candidates by distance."""

    latitude: Optional[float] = None
    longitude: Optional[float] = None
    origin_source: Optional[OriginSource] = None
    radius_km: Optional[float] = None
    radius_source: Optional[RadiusSource] = None

    @property
    def origin(self) -> Optional[tuple[float, float]]:
        if self.latitude is None or self.longitude is None:
            return None
        return (self.latitude, self.longitude)

    @property
    def is_active(self) -> bool:
        return self.origin is not None and self.radius_km is not None


def resolve_search_area(
    requester: Profile,
    filters: FilterSpec,
    resolved_postcode: Optional[GeocodedPostcode],
    now: datetime,
    default_postcode_radius_km: float,
) -> SearchArea:
    """Pick the origin and radius for this request.

    Origin: resolved search postcode, then active passport, then live
    location. Radius: explicit filter, then dealbreaker, then stored
    preference, then the postcode default when searching by postcode.
    """

    origin: Optional[tuple[float, float]] = None
    origin_source: Optional[OriginSource] = None
    if resolved_postcode is not None:
        origin = (resolved_postcode.latitude, resolved_postcode.longitude)
        origin_source = "postcode"
    elif requester.active_passport(now) is not None:
        origin = requester.active_passport(now)
        origin_source = "passport"
    elif requester.coordinates is not None:
        origin = requester.coordinates
        origin_source = "live"

    radius: Optional[float] = None
    radius_source: Optional[RadiusSource] = None
    dealbreaker_radius = requester.dealbreakers.max_distance if requester.dealbreakers else None
    if filters.max_distance is not None:
        radius, radius_source = filters.max_distance, "filter"
    elif dealbreaker_radius is not None:
        radius, radius_source = dealbreaker_radius, "dealbreaker"
    elif requester.preferences.max_distance is not None:
        radius, radius_source = requester.preferences.max_distance, "preference"
    elif resolved_postcode is not None:
        radius, radius_source = float(default_postcode_radius_km), "postcode_default"

    return SearchArea(
        latitude=origin[0] if origin else None,
        longitude=origin[1] if origin else None,
        origin_source=origin_source,
        radius_km=radius,
        radius_source=radius_source,
    )


def distance_from(area: SearchArea, profile: Profile) -> Optional[float]:
    if area.origin is None or profile.coordinates is None:
        return None
    return haversine_km(*area.origin, *profile.coordinates)


def filter_by_distance(
    candidates: list[ScoredCandidate], area: SearchArea
) -> list[ScoredCandidate]:
    """Drop candidates without coordinates or outside the radius.

    Retained candidates are annotated with their rounded distance. Without an
    origin or a radius the list passes through, annotated where possible.
    """

    kept: list[ScoredCandidate] = []
    for candidate in candidates:
        distance = distance_from(area, candidate.profile)
        if area.is_active:
            if distance is None or distance > area.radius_km:
                continue
        kept.append(
            candidate.model_copy(
                update={"distance_km": round(distance) if distance is not None else None}
            )
        )

    logger.debug(
        "filter_by_distance active=%s radius=%s kept=%s/%s",
        area.is_active,
        area.radius_km,
        len(kept),
        len(candidates),
    )
    return kept
