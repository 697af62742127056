"""Postcode geocoding against a Nominatim-compatible search endpoint.

Only Dutch (``1234AB``) and Belgian (``1234``) postcodes are recognised.
Lookups are bounded by ``GEOCODER_TIMEOUT_SECONDS`` and never raise to the
caller: an unresolved postcode simply disables distance filtering for the
request.
"""

from __future__ import annotations

import re
from functools import lru_cache
from typing import Optional

import httpx
from pydantic import BaseModel

from discovery.config import config
from discovery.utils.errors import GeocodingError
from discovery.utils.logging_config import logger

POSTCODE_FORMATS: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("nl", re.compile(r"^[1-9][0-9]{3}[A-Z]{2}$")),
    ("be", re.compile(r"^[1-9][0-9]{3}$")),
)

POSTCODE_CACHE_SIZE = 2048


class GeocodedPostcode(BaseModel):
    postcode: str
    country_code: str
    latitude: float
    longitude: float
    city: Optional[str] = None


def normalize_postcode(raw: str) -> str:
    """Strip all whitespace and uppercase: ``" 1234 ab "`` -> ``"1234AB"``."""

    return "".join(raw.split()).upper()


def infer_country(postcode: str) -> Optional[str]:
    """Country code for a normalized postcode, or None for unknown formats."""

    for country_code, pattern in POSTCODE_FORMATS:
        if pattern.match(postcode):
            return country_code
    return None


def format_postcode(raw: str) -> str:
    """Display form for Dutch postcodes (``1234AB`` -> ``1234 AB``)."""

    cleaned = normalize_postcode(raw)
    if infer_country(cleaned) == "nl":
        return f"{cleaned[:4]} {cleaned[4:]}"
    return raw


@lru_cache(maxsize=POSTCODE_CACHE_SIZE)
def _lookup(postcode: str, country_code: str) -> GeocodedPostcode:
    """Single HTTP lookup. Raises GeocodingError; failures are not cached."""

    params = {
        "postalcode": postcode,
        "countrycodes": country_code,
        "format": "json",
        "limit": 1,
        "addressdetails": 1,
    }
    headers = {"User-Agent": config.GEOCODER_USER_AGENT}
    try:
        with httpx.Client(timeout=config.GEOCODER_TIMEOUT_SECONDS) as client:
            r = client.get(config.GEOCODER_URL, params=params, headers=headers)
    except httpx.HTTPError as exc:
        raise GeocodingError(f"lookup failed: {exc}") from exc

    if r.status_code != 200:
        raise GeocodingError(f"geocoder returned HTTP {r.status_code}")

    try:
        data = r.json()
        first = data[0]
        if not isinstance(first, dict):
            raise GeocodingError("malformed geocoder payload")
        address = first.get("address") or {}
        return GeocodedPostcode(
            postcode=postcode,
            country_code=country_code,
            latitude=float(first["lat"]),
            longitude=float(first["lon"]),
            city=address.get("city") or address.get("town") or address.get("village"),
        )
    except (ValueError, KeyError, IndexError, TypeError) as exc:
        raise GeocodingError("no usable result") from exc


def resolve_postcode(raw: Optional[str]) -> Optional[GeocodedPostcode]:
    """Resolve a raw postcode to coordinates, or None when unresolved."""

    if not raw:
        return None

    postcode = normalize_postcode(raw)
    country_code = infer_country(postcode)
    if country_code is None:
        logger.info("Postcode %r has no supported format; skipping geocoding", raw)
        return None

    try:
        return _lookup(postcode, country_code)
    except GeocodingError as exc:
        logger.warning("Geocoding %s (%s) failed: %s", format_postcode(postcode), country_code, exc)
        return None


def clear_postcode_cache() -> None:
    _lookup.cache_clear()
