"""Domain and API models for the discovery pipeline.

Profiles arrive from Firestore as camelCase documents; every model here
accepts both the camelCase alias and the snake_case field name. Optional
profile parts (personality, dealbreakers, coordinates) stay ``None`` when
absent so each scoring site can apply its own neutral fallback.
"""

from __future__ import annotations

import json
from datetime import date, datetime, timedelta, timezone
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

LIST_SEPARATORS = (",", ";", "|")


def _split_list(value: Any) -> list[str]:
    """Accept a list or a delimiter-separated string and return clean items."""

    if value is None:
        return []
    if isinstance(value, str):
        text = value
        for sep in LIST_SEPARATORS[1:]:
            text = text.replace(sep, LIST_SEPARATORS[0])
        return [item.strip() for item in text.split(LIST_SEPARATORS[0]) if item.strip()]
    if isinstance(value, (list, tuple, set)):
        return [str(item).strip() for item in value if str(item).strip()]
    return []


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class DiscoveryModel(BaseModel):
    """Base model: camelCase aliases, populate by name, ignore unknown keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


# ============================================================
# PROFILE PARTS
# ============================================================
class Photo(DiscoveryModel):
    id: Optional[str] = None
    url: str
    order: int = 0


class Preferences(DiscoveryModel):
    """Stored discovery preferences of a user."""

    min_age: Optional[int] = None
    max_age: Optional[int] = None
    gender_preference: Optional[str] = None
    max_distance: Optional[float] = None
    interests: list[str] = Field(default_factory=list)

    @field_validator("interests", mode="before")
    @classmethod
    def _parse_interests(cls, value: Any) -> list[str]:
        return _split_list(value)


class PersonalityProfile(DiscoveryModel):
    """Psychological profile. Scales and love languages run 1-10."""

    introvert_scale: Optional[float] = None
    emotional_scale: Optional[float] = None
    spontaneity_scale: Optional[float] = None
    adventure_scale: Optional[float] = None
    conflict_style: Optional[str] = None
    communication_style: Optional[str] = None
    relationship_goal: Optional[str] = None
    love_lang_words: Optional[float] = None
    love_lang_time: Optional[float] = None
    love_lang_gifts: Optional[float] = None
    love_lang_acts: Optional[float] = None
    love_lang_touch: Optional[float] = None


class Dealbreakers(DiscoveryModel):
    """Hard rules that are always enforced as AND constraints."""

    must_not_smoke: Optional[bool] = None
    must_not_drink: Optional[bool] = None
    must_want_children: Optional[bool] = None
    must_not_have_children: Optional[bool] = None
    must_be_verified: Optional[bool] = None
    max_distance: Optional[float] = None
    min_height: Optional[float] = None
    max_height: Optional[float] = None


class Profile(DiscoveryModel):
    """A user record as seen by discovery, for requester and candidates alike."""

    id: str
    name: Optional[str] = None
    bio: Optional[str] = None
    birth_date: Optional[date] = None
    gender: Optional[str] = None
    city: Optional[str] = None
    postcode: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    passport_city: Optional[str] = None
    passport_latitude: Optional[float] = None
    passport_longitude: Optional[float] = None
    passport_expires_at: Optional[datetime] = None
    smoking: Optional[str] = None
    drinking: Optional[str] = None
    children: Optional[str] = None
    height: Optional[float] = None
    education: Optional[str] = None
    religion: Optional[str] = None
    ethnicity: Optional[str] = None
    languages: list[str] = Field(default_factory=list)
    sports: list[str] = Field(default_factory=list)
    interests: list[str] = Field(default_factory=list)
    occupation: Optional[str] = None
    profile_image: Optional[str] = None
    photos: list[Photo] = Field(default_factory=list)
    is_verified: bool = False
    is_showcase: bool = False
    last_seen: Optional[datetime] = None
    created_at: Optional[datetime] = None
    preferences: Preferences = Field(default_factory=Preferences)
    personality: Optional[PersonalityProfile] = Field(default=None, alias="psychProfile")
    dealbreakers: Optional[Dealbreakers] = None

    @field_validator("languages", "sports", "interests", mode="before")
    @classmethod
    def _parse_lists(cls, value: Any) -> list[str]:
        return _split_list(value)

    @field_validator("birth_date", mode="before")
    @classmethod
    def _parse_birth_date(cls, value: Any) -> Any:
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, str) and "T" in value:
            return value.split("T", 1)[0]
        return value

    @field_validator("passport_expires_at", "last_seen", "created_at", mode="after")
    @classmethod
    def _ensure_aware(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(value) if value is not None else None

    @field_validator("preferences", mode="before")
    @classmethod
    def _parse_preferences(cls, value: Any) -> Any:
        # Legacy records store preferences as a JSON string.
        if value is None:
            return {}
        if isinstance(value, str):
            try:
                parsed = json.loads(value)
            except ValueError:
                return {}
            return parsed if isinstance(parsed, dict) else {}
        return value

    @field_validator("photos", mode="after")
    @classmethod
    def _order_photos(cls, value: list[Photo]) -> list[Photo]:
        return sorted(value, key=lambda photo: photo.order)

    @property
    def coordinates(self) -> Optional[tuple[float, float]]:
        if self.latitude is None or self.longitude is None:
            return None
        return (self.latitude, self.longitude)

    def active_passport(self, now: datetime) -> Optional[tuple[float, float]]:
        """Travel-mode coordinates, or None when unset or expired."""

        if self.passport_latitude is None or self.passport_longitude is None:
            return None
        if self.passport_expires_at is not None and self.passport_expires_at <= now:
            return None
        return (self.passport_latitude, self.passport_longitude)

    def age(self, today: date) -> Optional[int]:
        if self.birth_date is None:
            return None
        years = today.year - self.birth_date.year
        if (today.month, today.day) < (self.birth_date.month, self.birth_date.day):
            years -= 1
        return years

    def last_active(self) -> Optional[datetime]:
        return self.last_seen or self.created_at


# ============================================================
# FILTERS
# ============================================================
def _parse_int(value: Optional[str]) -> Optional[int]:
    if value is None or str(value).strip() == "":
        return None
    try:
        return int(str(value).strip())
    except ValueError:
        return None


def _parse_float(value: Optional[str]) -> Optional[float]:
    if value is None or str(value).strip() == "":
        return None
    try:
        return float(str(value).strip())
    except ValueError:
        return None


def _parse_bool(value: Optional[str]) -> bool:
    return str(value).strip().lower() in {"1", "true", "yes", "on"} if value is not None else False


def _parse_tuple(value: Optional[str]) -> tuple[str, ...]:
    return tuple(_split_list(value))


class FilterSpec(BaseModel):
    """Explicit query-parameter filters. Immutable once built."""

    model_config = ConfigDict(frozen=True)

    name: Optional[str] = None
    min_age: Optional[int] = None
    max_age: Optional[int] = None
    gender: Optional[str] = None
    city: Optional[str] = None
    postcode: Optional[str] = None
    max_distance: Optional[float] = None
    smoking: tuple[str, ...] = ()
    drinking: tuple[str, ...] = ()
    children: tuple[str, ...] = ()
    min_height: Optional[float] = None
    max_height: Optional[float] = None
    education: tuple[str, ...] = ()
    religion: tuple[str, ...] = ()
    ethnicity: tuple[str, ...] = ()
    languages: tuple[str, ...] = ()
    sports: tuple[str, ...] = ()
    interests: tuple[str, ...] = ()
    relationship_goal: tuple[str, ...] = ()
    verified_only: bool = False
    online_recently: bool = False

    @classmethod
    def from_query_params(cls, params: Mapping[str, str]) -> "FilterSpec":
        """Build filters from raw query parameters.

        Malformed numbers are treated as absent instead of rejected.
        """

        def text(key: str) -> Optional[str]:
            value = params.get(key)
            return value.strip() if value and value.strip() else None

        return cls(
            name=text("name"),
            min_age=_parse_int(params.get("minAge")),
            max_age=_parse_int(params.get("maxAge")),
            gender=text("gender"),
            city=text("city"),
            postcode=text("postcode"),
            max_distance=_parse_float(params.get("maxDistance")),
            smoking=_parse_tuple(params.get("smoking")),
            drinking=_parse_tuple(params.get("drinking")),
            children=_parse_tuple(params.get("children")),
            min_height=_parse_float(params.get("minHeight")),
            max_height=_parse_float(params.get("maxHeight")),
            education=_parse_tuple(params.get("education")),
            religion=_parse_tuple(params.get("religion")),
            ethnicity=_parse_tuple(params.get("ethnicity")),
            languages=_parse_tuple(params.get("languages")),
            sports=_parse_tuple(params.get("sports")),
            interests=_parse_tuple(params.get("interests")),
            relationship_goal=_parse_tuple(params.get("relationshipGoal")),
            verified_only=_parse_bool(params.get("verifiedOnly")),
            online_recently=_parse_bool(params.get("onlineRecently")),
        )


# ============================================================
# SCORING
# ============================================================
class CompatibilityScore(DiscoveryModel):
    """Seven sub-scores, the weighted overall score and explanations."""

    overall: int
    interests: int
    bio: int
    location: int
    activity: int
    personality: int
    love_language: int
    lifestyle: int
    explanations: list[str] = Field(default_factory=list)

    def breakdown(self) -> "CompatibilityBreakdown":
        return CompatibilityBreakdown(**self.model_dump(exclude={"explanations"}))


class CompatibilityBreakdown(DiscoveryModel):
    overall: int
    interests: int
    bio: int
    location: int
    activity: int
    personality: int
    love_language: int
    lifestyle: int


class ScoredCandidate(BaseModel):
    """Internal pool entry carried from retrieval to ranking."""

    profile: Profile
    score: Optional[CompatibilityScore] = None
    distance_km: Optional[float] = None
    is_boosted: bool = False
    is_showcase: bool = False
    icebreakers: list[str] = Field(default_factory=list)


# ============================================================
# API RESPONSE
# ============================================================
def match_quality(score: int) -> str:
    """Tier label shown next to the match score."""

    if score >= 75:
        return "excellent"
    if score >= 60:
        return "good"
    return "fair"


class CandidateSummary(DiscoveryModel):
    id: str
    name: Optional[str] = None
    bio: Optional[str] = None
    birth_date: Optional[date] = None
    age: Optional[int] = None
    gender: Optional[str] = None
    city: Optional[str] = None
    occupation: Optional[str] = None
    profile_image: Optional[str] = None
    photos: list[Photo] = Field(default_factory=list)
    interests: list[str] = Field(default_factory=list)
    is_verified: bool = False
    last_seen: Optional[datetime] = None
    distance: Optional[float] = None
    is_boosted: bool = False
    is_showcase: bool = False
    match_score: int = 0
    match_quality: str = "fair"
    compatibility_breakdown: Optional[CompatibilityBreakdown] = None
    match_reasons: list[str] = Field(default_factory=list)
    icebreakers: list[str] = Field(default_factory=list)

    @classmethod
    def from_candidate(cls, candidate: ScoredCandidate, today: date) -> "CandidateSummary":
        profile = candidate.profile
        score = candidate.score
        overall = score.overall if score else 0
        return cls(
            id=profile.id,
            name=profile.name,
            bio=profile.bio,
            birth_date=profile.birth_date,
            age=profile.age(today),
            gender=profile.gender,
            city=profile.city,
            occupation=profile.occupation,
            profile_image=profile.profile_image,
            photos=profile.photos,
            interests=profile.interests,
            is_verified=profile.is_verified,
            last_seen=profile.last_seen,
            distance=candidate.distance_km,
            is_boosted=candidate.is_boosted,
            is_showcase=candidate.is_showcase,
            match_score=overall,
            match_quality=match_quality(overall),
            compatibility_breakdown=score.breakdown() if score else None,
            match_reasons=score.explanations if score else [],
            icebreakers=candidate.icebreakers,
        )


class PaginationInfo(DiscoveryModel):
    """Paging over the ranked pool retrieved for this request.

    Retrieval is capped at ``page * limit * OVERFETCH_FACTOR`` profiles (and
    ``MAX_CANDIDATES``), so ``total`` is a lower bound on all matching
    profiles whenever that cap was reached.
    """

    page: int
    limit: int
    total: int = Field(
        description=(
            "Candidates in the ranked pool, showcase included. A lower bound on "
            "all matches when retrieval reached its batch cap."
        )
    )
    total_pages: int
    has_next_page: bool = False
    has_previous_page: bool = False


class ShowcaseInfo(DiscoveryModel):
    enabled: bool = False
    count: int = 0
    real_profile_count: int = 0
    message: Optional[str] = None


class PassportInfo(DiscoveryModel):
    active: bool = True
    city: Optional[str] = None
    expires_at: Optional[datetime] = None


class DiscoverPayload(DiscoveryModel):
    users: list[CandidateSummary] = Field(default_factory=list)
    pagination: PaginationInfo
    passport: Optional[PassportInfo] = None
    showcase: ShowcaseInfo = Field(default_factory=ShowcaseInfo)


class DiscoverResponse(BaseModel):
    success: bool
    data: Optional[DiscoverPayload] = None
    error: Optional[str] = None


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def years_before(today: date, years: int) -> date:
    """Same calendar day ``years`` earlier; Feb 29 falls back to Feb 28."""

    try:
        return today.replace(year=today.year - years)
    except ValueError:
        return today.replace(year=today.year - years, day=28)


RECENTLY_ONLINE_WINDOW = timedelta(days=7)
