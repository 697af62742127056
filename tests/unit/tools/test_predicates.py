"""
Unit tests for predicate composition and the discovery predicate builder.

Covers:
  - all_of / any_of / negate composition
  - Explicit filters taking precedence over stored preferences
  - Geodistance replacing city / postcode string matching
  - Dealbreakers as hard constraints
  - The relaxed showcase predicate
"""

from datetime import date, timedelta

from conftest import NOW, TODAY, make_profile

from discovery.models import Dealbreakers, FilterSpec, Preferences
from discovery.tools.predicates import (
    MATCH_ALL,
    Predicate,
    all_of,
    any_of,
    birth_date_for_age,
    build_discovery_predicate,
    build_showcase_predicate,
    contains_any,
    dealbreaker_predicate,
    effective_age_range,
    negate,
    number_between,
    postcode_prefix,
    value_in,
)

YES = Predicate("yes", lambda profile: True)
NO = Predicate("no", lambda profile: False)


def build(filters=None, prefs=None, dealbreakers=None, excluded=(), city="Amsterdam",
          distance_active=False, postcode_resolved=False):
    return build_discovery_predicate(
        filters=filters or FilterSpec(),
        prefs=prefs or Preferences(),
        dealbreakers=dealbreakers,
        excluded_ids=excluded,
        current_city=city,
        distance_filter_active=distance_active,
        postcode_resolved=postcode_resolved,
        now=NOW,
    )


class TestComposition:
    """Test predicate combinators."""

    def test_all_of_drops_match_all(self):
        assert all_of(MATCH_ALL, YES) is YES
        assert all_of() is MATCH_ALL

    def test_all_of_and_any_of(self):
        profile = make_profile("p")
        assert all_of(YES, YES)(profile) is True
        assert all_of(YES, NO)(profile) is False
        assert any_of(NO, YES)(profile) is True
        assert any_of(NO, NO)(profile) is False

    def test_negate(self):
        profile = make_profile("p")
        assert negate(NO)(profile) is True
        assert negate(YES).name == "not(yes)"

    def test_leaf_names(self):
        combined = all_of(YES, negate(NO))
        assert combined.leaf_names() == ["yes", "no"]


class TestLeafPredicates:
    """Test individual predicates."""

    def test_value_in_is_case_insensitive_and_rejects_missing(self):
        predicate = value_in("smoking", ["Never"])
        assert predicate(make_profile("a", smoking="never"))
        assert not predicate(make_profile("b", smoking="regularly"))
        assert not predicate(make_profile("c"))

    def test_contains_any(self):
        predicate = contains_any("languages", ["Dutch", "French"])
        assert predicate(make_profile("a", languages="English, dutch"))
        assert not predicate(make_profile("b", languages=["English"]))

    def test_number_between_inclusive(self):
        predicate = number_between("height", 170, 180)
        assert predicate(make_profile("a", height=170))
        assert predicate(make_profile("b", height=180))
        assert not predicate(make_profile("c", height=181))
        assert not predicate(make_profile("d"))

    def test_absent_range_adds_no_constraint(self):
        assert number_between("height", None, None) is MATCH_ALL
        assert birth_date_for_age(None, None, TODAY) is MATCH_ALL

    def test_age_range(self):
        predicate = birth_date_for_age(25, 35, TODAY)
        assert predicate(make_profile("a", age=30))
        assert not predicate(make_profile("b", age=22))
        assert not predicate(make_profile("c", age=40))
        assert not predicate(make_profile("d", age=None))

    def test_age_bounds_on_birthday(self):
        """Someone turning exactly the minimum age today is included."""
        predicate = birth_date_for_age(25, None, TODAY)
        born = date(TODAY.year - 25, TODAY.month, TODAY.day)
        assert predicate(make_profile("a", birthDate=born))
        assert not predicate(make_profile("b", birthDate=born + timedelta(days=1)))

    def test_postcode_prefix(self):
        predicate = postcode_prefix("1234 ab")
        assert predicate(make_profile("a", postcode="1234CD"))
        assert not predicate(make_profile("b", postcode="1235AB"))


class TestPrecedence:
    """Explicit filters win over stored preferences."""

    def test_explicit_age_replaces_preference(self):
        assert effective_age_range(FilterSpec(min_age=40), Preferences(min_age=20, max_age=30)) == (40, None)
        assert effective_age_range(FilterSpec(), Preferences(min_age=20, max_age=30)) == (20, 30)

    def test_explicit_gender_wins(self):
        predicate = build(filters=FilterSpec(gender="male"), prefs=Preferences(gender_preference="FEMALE"))
        assert predicate(make_profile("a", gender="MALE"))
        assert not predicate(make_profile("b", gender="FEMALE"))

    def test_stored_preferences_apply_when_no_filter(self):
        predicate = build(prefs=Preferences(min_age=25, max_age=35, gender_preference="FEMALE"))
        assert predicate(make_profile("a", age=30))
        assert not predicate(make_profile("b", age=50))
        assert not predicate(make_profile("c", gender="MALE"))


class TestLocationRules:
    """Geodistance subsumes string location matching."""

    def test_city_filter_without_geo(self):
        predicate = build(filters=FilterSpec(city="rotter"))
        assert predicate(make_profile("a", city="Rotterdam"))
        assert not predicate(make_profile("b", city="Utrecht"))

    def test_geo_active_omits_city_filter(self):
        predicate = build(filters=FilterSpec(city="Rotterdam"), distance_active=True)
        assert "city_contains" not in predicate.leaf_names()
        assert predicate(make_profile("a", city="Schiedam"))

    def test_unresolved_postcode_falls_back_to_prefix(self):
        predicate = build(filters=FilterSpec(postcode="1234AB"))
        assert "postcode_prefix" in predicate.leaf_names()

    def test_resolved_postcode_uses_no_prefix(self):
        predicate = build(filters=FilterSpec(postcode="1234AB"), postcode_resolved=True, distance_active=True)
        assert "postcode_prefix" not in predicate.leaf_names()

    def test_small_stored_radius_restricts_to_current_city(self):
        predicate = build(prefs=Preferences(max_distance=20))
        assert "city_equals" in predicate.leaf_names()
        assert predicate(make_profile("a", city="amsterdam"))
        assert not predicate(make_profile("b", city="Amstelveen"))

    def test_large_stored_radius_does_not_restrict_city(self):
        predicate = build(prefs=Preferences(max_distance=100))
        assert "city_equals" not in predicate.leaf_names()


class TestDealbreakers:
    """Dealbreakers are hard constraints, never overridden by filters."""

    def test_must_not_have_children_excludes_parent(self):
        predicate = build(dealbreakers=Dealbreakers(must_not_have_children=True))
        assert not predicate(make_profile("parent", children="have"))
        assert predicate(make_profile("a", children="dont_want"))

    def test_negated_rule_lets_unknown_values_pass(self):
        predicate = dealbreaker_predicate(Dealbreakers(must_not_smoke=True))
        assert predicate(make_profile("a"))
        assert not predicate(make_profile("b", smoking="sometimes"))

    def test_filter_cannot_loosen_dealbreaker(self):
        predicate = build(
            filters=FilterSpec(smoking=("never", "regularly")),
            dealbreakers=Dealbreakers(must_not_smoke=True),
        )
        assert predicate(make_profile("a", smoking="never"))
        assert not predicate(make_profile("b", smoking="regularly"))

    def test_must_not_drink_excludes_social_and_regular_drinkers(self):
        predicate = dealbreaker_predicate(Dealbreakers(must_not_drink=True))
        assert predicate(make_profile("a", drinking="never"))
        assert not predicate(make_profile("b", drinking="socially"))
        assert not predicate(make_profile("c", drinking="regularly"))

    def test_must_want_children_requires_known_value(self):
        predicate = dealbreaker_predicate(Dealbreakers(must_want_children=True))
        assert predicate(make_profile("a", children="want_someday"))
        assert not predicate(make_profile("c", children="have"))
        assert not predicate(make_profile("b"))

    def test_height_and_verification(self):
        predicate = dealbreaker_predicate(
            Dealbreakers(must_be_verified=True, min_height=175)
        )
        assert predicate(make_profile("a", isVerified=True, height=180))
        assert not predicate(make_profile("b", isVerified=False, height=180))
        assert not predicate(make_profile("c", isVerified=True, height=170))

    def test_no_dealbreakers(self):
        assert dealbreaker_predicate(None) is MATCH_ALL


class TestBaseRules:
    def test_excluded_ids_and_missing_image(self):
        predicate = build(excluded=["requester", "swiped"])
        assert not predicate(make_profile("swiped"))
        assert not predicate(make_profile("requester"))
        assert not predicate(make_profile("a", profileImage=None))
        assert predicate(make_profile("b"))

    def test_online_recently(self):
        predicate = build(filters=FilterSpec(online_recently=True))
        assert predicate(make_profile("a", lastSeen=NOW - timedelta(days=3)))
        assert not predicate(make_profile("b", lastSeen=NOW - timedelta(days=8)))

    def test_relationship_goal(self):
        predicate = build(filters=FilterSpec(relationship_goal=("serious",)))
        assert predicate(make_profile("a", psychProfile={"relationshipGoal": "SERIOUS"}))
        assert not predicate(make_profile("b"))


class TestShowcasePredicate:
    """Showcase profiles only get a widened age band and gender."""

    def test_relaxed_age_band_and_gender_only(self):
        predicate = build_showcase_predicate(
            filters=FilterSpec(),
            prefs=Preferences(min_age=25, max_age=35, gender_preference="FEMALE"),
            excluded_ids=["requester"],
            age_slack_years=5,
            now=NOW,
        )
        assert predicate(make_profile("a", age=39, smoking="regularly", profileImage=None))
        assert predicate(make_profile("b", age=21))
        assert not predicate(make_profile("c", age=45))
        assert not predicate(make_profile("d", gender="MALE"))
        assert not predicate(make_profile("requester"))

    def test_min_age_never_below_18(self):
        predicate = build_showcase_predicate(
            filters=FilterSpec(min_age=20),
            prefs=Preferences(),
            excluded_ids=[],
            age_slack_years=5,
            now=NOW,
        )
        assert not predicate(make_profile("a", age=17))
        assert predicate(make_profile("b", age=18))
