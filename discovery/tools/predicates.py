"""Composable candidate predicates.

Every predicate is an immutable, named test over a ``Profile``. Larger
predicates are assembled with ``all_of`` / ``any_of`` / ``negate`` so the
discovery query is a plain value that can be logged, inspected in tests and
evaluated against any store.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Callable, Iterable, Optional

from discovery.models import (
    RECENTLY_ONLINE_WINDOW,
    Dealbreakers,
    FilterSpec,
    Preferences,
    Profile,
    years_before,
)

MIN_AGE = 18

# Dealbreaker value sets, in the stored lifestyle vocabulary.
SMOKER_VALUES = frozenset({"sometimes", "regularly"})
DRINKER_VALUES = frozenset({"socially", "regularly"})
HAS_CHILDREN_VALUES = frozenset({"have"})
WANTS_CHILDREN_VALUES = frozenset({"want_someday"})

# A stored preference below this radius restricts to the requester's city
# when no distance filtering is possible.
CITY_ONLY_RADIUS_KM = 50
POSTCODE_PREFIX_LENGTH = 4


@dataclass(frozen=True)
class Predicate:
    """A named boolean test over a profile."""

    name: str
    test: Callable[[Profile], bool] = field(compare=False, repr=False)
    parts: tuple["Predicate", ...] = ()

    def __call__(self, profile: Profile) -> bool:
        return self.test(profile)

    def leaf_names(self) -> list[str]:
        """Names of the leaf predicates, depth first."""

        if not self.parts:
            return [self.name]
        names: list[str] = []
        for part in self.parts:
            names.extend(part.leaf_names())
        return names


MATCH_ALL = Predicate("match_all", lambda profile: True)


def all_of(*predicates: Predicate) -> Predicate:
    parts = tuple(p for p in predicates if p is not MATCH_ALL)
    if not parts:
        return MATCH_ALL
    if len(parts) == 1:
        return parts[0]
    return Predicate(
        "and(" + ",".join(p.name for p in parts) + ")",
        lambda profile: all(p(profile) for p in parts),
        parts,
    )


def any_of(*predicates: Predicate) -> Predicate:
    parts = tuple(predicates)
    if not parts:
        return MATCH_ALL
    if len(parts) == 1:
        return parts[0]
    return Predicate(
        "or(" + ",".join(p.name for p in parts) + ")",
        lambda profile: any(p(profile) for p in parts),
        parts,
    )


def negate(predicate: Predicate) -> Predicate:
    return Predicate(
        f"not({predicate.name})",
        lambda profile: not predicate(profile),
        (predicate,),
    )


# ============================================================
# LEAF PREDICATES
# ============================================================
def _normalize(values: Iterable[str]) -> frozenset[str]:
    return frozenset(str(v).strip().lower() for v in values if str(v).strip())


def id_not_in(excluded_ids: Iterable[str]) -> Predicate:
    excluded = frozenset(excluded_ids)
    return Predicate("id_not_in", lambda profile: profile.id not in excluded)


def has_profile_image() -> Predicate:
    return Predicate("has_profile_image", lambda profile: bool(profile.profile_image))


def value_in(field_name: str, values: Iterable[str]) -> Predicate:
    """Set membership; a missing value never matches."""

    allowed = _normalize(values)

    def test(profile: Profile) -> bool:
        value = getattr(profile, field_name)
        return value is not None and str(value).strip().lower() in allowed

    return Predicate(f"{field_name}_in", test)


def contains_any(field_name: str, values: Iterable[str]) -> Predicate:
    """List field shares at least one value (case-insensitive)."""

    wanted = _normalize(values)

    def test(profile: Profile) -> bool:
        return bool(_normalize(getattr(profile, field_name) or []) & wanted)

    return Predicate(f"{field_name}_contains_any", test)


def number_between(field_name: str, low: Optional[float], high: Optional[float]) -> Predicate:
    """Inclusive numeric range; both bounds absent means no constraint."""

    if low is None and high is None:
        return MATCH_ALL

    def test(profile: Profile) -> bool:
        value = getattr(profile, field_name)
        if value is None:
            return False
        if low is not None and value < low:
            return False
        if high is not None and value > high:
            return False
        return True

    return Predicate(f"{field_name}_between", test)


def birth_date_for_age(
    min_age: Optional[int], max_age: Optional[int], today: date
) -> Predicate:
    """Age range expressed as an inclusive birth-date range."""

    if min_age is None and max_age is None:
        return MATCH_ALL
    earliest = years_before(today, max_age) if max_age is not None else None
    latest = years_before(today, min_age) if min_age is not None else None

    def test(profile: Profile) -> bool:
        born = profile.birth_date
        if born is None:
            return False
        if earliest is not None and born < earliest:
            return False
        if latest is not None and born > latest:
            return False
        return True

    return Predicate("age_between", test)


def gender_is(gender: str) -> Predicate:
    wanted = gender.strip().upper()
    return Predicate(
        "gender_is",
        lambda profile: (profile.gender or "").strip().upper() == wanted,
    )


def text_contains(field_name: str, needle: str) -> Predicate:
    lowered = needle.strip().lower()
    return Predicate(
        f"{field_name}_contains",
        lambda profile: lowered in (getattr(profile, field_name) or "").lower(),
    )


def text_equals(field_name: str, expected: str) -> Predicate:
    lowered = expected.strip().lower()
    return Predicate(
        f"{field_name}_equals",
        lambda profile: (getattr(profile, field_name) or "").strip().lower() == lowered,
    )


def postcode_prefix(postcode: str) -> Predicate:
    prefix = "".join(postcode.split()).upper()[:POSTCODE_PREFIX_LENGTH]
    return Predicate(
        "postcode_prefix",
        lambda profile: "".join((profile.postcode or "").split()).upper().startswith(prefix),
    )


def is_verified() -> Predicate:
    return Predicate("is_verified", lambda profile: profile.is_verified)


def seen_since(cutoff: datetime) -> Predicate:
    def test(profile: Profile) -> bool:
        return profile.last_seen is not None and profile.last_seen >= cutoff

    return Predicate("seen_since", test)


# ============================================================
# DISCOVERY PREDICATES
# ============================================================
def effective_age_range(
    filters: FilterSpec, prefs: Preferences
) -> tuple[Optional[int], Optional[int]]:
    """Explicit age bounds replace the stored ones as a pair."""

    if filters.min_age is not None or filters.max_age is not None:
        return filters.min_age, filters.max_age
    return prefs.min_age, prefs.max_age


def effective_gender(filters: FilterSpec, prefs: Preferences) -> Optional[str]:
    return filters.gender or prefs.gender_preference


def dealbreaker_predicate(dealbreakers: Optional[Dealbreakers]) -> Predicate:
    """Hard constraints from the requester's dealbreakers.

    Unknown candidate values pass negated rules (``must_not_*``) and fail
    positive ones (``must_want_children``, ``must_be_verified``).
    """

    if dealbreakers is None:
        return MATCH_ALL

    rules: list[Predicate] = []
    if dealbreakers.must_not_smoke:
        rules.append(negate(value_in("smoking", SMOKER_VALUES)))
    if dealbreakers.must_not_drink:
        rules.append(negate(value_in("drinking", DRINKER_VALUES)))
    if dealbreakers.must_not_have_children:
        rules.append(negate(value_in("children", HAS_CHILDREN_VALUES)))
    if dealbreakers.must_want_children:
        rules.append(value_in("children", WANTS_CHILDREN_VALUES))
    if dealbreakers.must_be_verified:
        rules.append(is_verified())
    rules.append(number_between("height", dealbreakers.min_height, dealbreakers.max_height))
    return all_of(*rules)


def build_discovery_predicate(
    *,
    filters: FilterSpec,
    prefs: Preferences,
    dealbreakers: Optional[Dealbreakers],
    excluded_ids: Iterable[str],
    current_city: Optional[str],
    distance_filter_active: bool,
    postcode_resolved: bool,
    now: datetime,
) -> Predicate:
    """Assemble the real-candidate predicate.

    Precedence: explicit filters over stored preferences, geodistance over
    string location matching, dealbreakers always ANDed on top.
    """

    rules: list[Predicate] = [id_not_in(excluded_ids), has_profile_image()]

    if filters.name:
        rules.append(text_contains("name", filters.name))

    min_age, max_age = effective_age_range(filters, prefs)
    rules.append(birth_date_for_age(min_age, max_age, now.date()))

    gender = effective_gender(filters, prefs)
    if gender:
        rules.append(gender_is(gender))

    if not distance_filter_active:
        if filters.city:
            rules.append(text_contains("city", filters.city))
        elif filters.postcode and not postcode_resolved:
            rules.append(postcode_prefix(filters.postcode))
        elif (
            current_city
            and prefs.max_distance is not None
            and prefs.max_distance < CITY_ONLY_RADIUS_KM
        ):
            rules.append(text_equals("city", current_city))

    for field_name in ("smoking", "drinking", "children", "education", "religion", "ethnicity"):
        values = getattr(filters, field_name)
        if values:
            rules.append(value_in(field_name, values))
    for field_name in ("languages", "sports", "interests"):
        values = getattr(filters, field_name)
        if values:
            rules.append(contains_any(field_name, values))
    if filters.relationship_goal:
        goals = _normalize(filters.relationship_goal)
        rules.append(
            Predicate(
                "relationship_goal_in",
                lambda profile: profile.personality is not None
                and (profile.personality.relationship_goal or "").lower() in goals,
            )
        )

    rules.append(number_between("height", filters.min_height, filters.max_height))

    if filters.verified_only:
        rules.append(is_verified())
    if filters.online_recently:
        rules.append(seen_since(now - RECENTLY_ONLINE_WINDOW))

    rules.append(dealbreaker_predicate(dealbreakers))
    return all_of(*rules)


def build_showcase_predicate(
    *,
    filters: FilterSpec,
    prefs: Preferences,
    excluded_ids: Iterable[str],
    age_slack_years: int,
    now: datetime,
) -> Predicate:
    """Relaxed predicate for demo profiles: widened age band and gender only."""

    rules: list[Predicate] = [id_not_in(excluded_ids)]

    min_age, max_age = effective_age_range(filters, prefs)
    if min_age is not None:
        min_age = max(MIN_AGE, min_age - age_slack_years)
    if max_age is not None:
        max_age = max_age + age_slack_years
    rules.append(birth_date_for_age(min_age, max_age, now.date()))

    gender = effective_gender(filters, prefs)
    if gender:
        rules.append(gender_is(gender))

    return all_of(*rules)
