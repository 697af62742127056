"""
Unit tests for Firestore wrappers.

Queries run against a MagicMock client; each collection/where chain returns
canned documents so the in-memory filtering logic is exercised for real.
"""

from datetime import timedelta

import pytest
from unittest.mock import MagicMock

from conftest import NOW, make_doc

from discovery.tools.firestore_tools import (
    EXCLUSION_RELATIONS,
    find_candidates,
    get_boosted_user_ids,
    get_excluded_user_ids,
    get_requester_profile,
)
from discovery.tools.predicates import Predicate
from discovery.utils.errors import FirestoreUnavailableError


def _profile_doc(user_id, **fields):
    data = {"name": user_id.title(), "profileImage": "x.jpg", "isShowcase": False}
    data.update(fields)
    return make_doc(user_id, data)


def _route_where(db, docs_by_filter):
    """Make collection(name).where(filter=FieldFilter(field, op, value)) return canned docs."""

    def collection(name):
        coll = MagicMock()

        def where(filter):
            query = MagicMock()
            docs = docs_by_filter.get((name, filter.field_path, filter.value), [])
            query.stream.return_value = iter(docs)
            query.order_by.return_value = query
            return query

        coll.where.side_effect = where
        return coll

    db.collection.side_effect = collection


class TestRequesterProfile:
    def test_returns_parsed_profile(self, mock_firebase_app):
        db = mock_firebase_app["db"]
        db.collection.return_value.document.return_value.get.return_value = make_doc(
            "me", {"name": "Me", "preferences": '{"minAge": 25}'}
        )
        profile = get_requester_profile("me")
        assert profile.id == "me"
        assert profile.preferences.min_age == 25

    def test_missing_profile_returns_none(self, mock_firebase_app):
        db = mock_firebase_app["db"]
        db.collection.return_value.document.return_value.get.return_value = make_doc(
            "me", None, exists=False
        )
        assert get_requester_profile("me") is None

    def test_store_error_is_wrapped(self, mock_firebase_app):
        db = mock_firebase_app["db"]
        db.collection.return_value.document.return_value.get.side_effect = RuntimeError("down")
        with pytest.raises(FirestoreUnavailableError):
            get_requester_profile("me")


class TestExclusionSet:
    """Swipes, matches (both sides) and blocks (both directions) are unioned."""

    def test_unions_all_relations_and_self(self, mock_firebase_app):
        _route_where(mock_firebase_app["db"], {
            ("swipes", "swiperId", "me"): [make_doc("s1", {"swipedId": "liked"})],
            ("matches", "user1Id", "me"): [make_doc("m1", {"user2Id": "match_a"})],
            ("matches", "user2Id", "me"): [make_doc("m2", {"user1Id": "match_b"})],
            ("blocks", "blockerId", "me"): [make_doc("b1", {"blockedId": "blocked"})],
            ("blocks", "blockedId", "me"): [make_doc("b2", {"blockerId": "blocker"})],
        })

        excluded = get_excluded_user_ids("me")

        assert excluded == {"me", "liked", "match_a", "match_b", "blocked", "blocker"}

    def test_fixed_number_of_queries(self, mock_firebase_app):
        db = mock_firebase_app["db"]
        _route_where(db, {})
        assert get_excluded_user_ids("me") == {"me"}
        assert db.collection.call_count == len(EXCLUSION_RELATIONS) == 5

    def test_query_failure_is_wrapped(self, mock_firebase_app):
        mock_firebase_app["db"].collection.side_effect = RuntimeError("down")
        with pytest.raises(FirestoreUnavailableError):
            get_excluded_user_ids("me")


class TestFindCandidates:
    def test_applies_predicate_and_limit(self, mock_firebase_app):
        _route_where(mock_firebase_app["db"], {
            ("profiles", "isShowcase", False): [
                _profile_doc("a", city="Amsterdam"),
                _profile_doc("b", city="Utrecht"),
                _profile_doc("c", city="Amsterdam"),
                _profile_doc("d", city="Amsterdam"),
            ],
        })
        in_amsterdam = Predicate("amsterdam", lambda p: p.city == "Amsterdam")

        found = find_candidates(in_amsterdam, limit=2)

        assert [p.id for p in found] == ["a", "c"]

    def test_showcase_query(self, mock_firebase_app):
        _route_where(mock_firebase_app["db"], {
            ("profiles", "isShowcase", True): [_profile_doc("demo", isShowcase=True)],
        })
        found = find_candidates(Predicate("all", lambda p: True), 20, showcase=True)
        assert [p.id for p in found] == ["demo"]
        assert found[0].is_showcase is True

    def test_malformed_documents_are_skipped(self, mock_firebase_app):
        _route_where(mock_firebase_app["db"], {
            ("profiles", "isShowcase", False): [
                _profile_doc("bad", birthDate="not-a-date"),
                _profile_doc("good"),
            ],
        })
        found = find_candidates(Predicate("all", lambda p: True), 10)
        assert [p.id for p in found] == ["good"]

    def test_zero_limit_skips_query(self, mock_firebase_app):
        assert find_candidates(Predicate("all", lambda p: True), 0) == []
        mock_firebase_app["db"].collection.assert_not_called()


class TestBoosts:
    def test_only_active_unexpired_boosts(self, mock_firebase_app):
        db = mock_firebase_app["db"]
        query = MagicMock()
        query.stream.return_value = iter([
            make_doc("1", {"userId": "a", "isActive": True, "expiresAt": NOW + timedelta(hours=1)}),
            make_doc("2", {"userId": "b", "isActive": True, "expiresAt": NOW - timedelta(hours=1)}),
            make_doc("3", {"userId": "c", "isActive": False, "expiresAt": NOW + timedelta(hours=1)}),
        ])
        db.collection.return_value.where.return_value = query

        assert get_boosted_user_ids(["a", "b", "c"], NOW) == {"a"}

    def test_ids_are_chunked(self, mock_firebase_app):
        db = mock_firebase_app["db"]
        db.collection.return_value.where.return_value.stream.side_effect = lambda: iter([])
        get_boosted_user_ids([f"u{i}" for i in range(65)], NOW)
        assert db.collection.return_value.where.call_count == 3

    def test_no_ids_no_queries(self, mock_firebase_app):
        assert get_boosted_user_ids([], NOW) == set()
        mock_firebase_app["db"].collection.assert_not_called()
