"""Firestore wrappers used by graph nodes.

These helpers centralize collection names, error handling, and logging so
graph nodes stay focused on orchestration logic. Every failure is re-raised
as ``FirestoreUnavailableError``.
"""

from __future__ import annotations

import os
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Iterable, Optional

import firebase_admin
from firebase_admin import credentials, firestore
from google.cloud.firestore_v1.base_query import FieldFilter

from discovery.models import Profile
from discovery.tools.predicates import Predicate
from discovery.utils.errors import FirestoreUnavailableError
from discovery.utils.logging_config import logger

PROFILES = "profiles"
SWIPES = "swipes"
MATCHES = "matches"
BLOCKS = "blocks"
PROFILE_BOOSTS = "profile_boosts"

# Firestore caps "in" filters at 30 values.
IN_QUERY_CHUNK = 30

# (collection, field equal to the requester, field holding the other user)
EXCLUSION_RELATIONS: tuple[tuple[str, str, str], ...] = (
    (SWIPES, "swiperId", "swipedId"),
    (MATCHES, "user1Id", "user2Id"),
    (MATCHES, "user2Id", "user1Id"),
    (BLOCKS, "blockerId", "blockedId"),
    (BLOCKS, "blockedId", "blockerId"),
)

_db: firestore.Client | None = None


def get_db() -> firestore.Client:
    """Get a Firestore client, initializing Firebase lazily."""
    global _db

    if _db is not None:
        return _db

    try:
        if not firebase_admin._apps:
            cred_path = os.environ.get("GOOGLE_APPLICATION_CREDENTIALS")
            if not cred_path:
                raise RuntimeError(
                    "GOOGLE_APPLICATION_CREDENTIALS is not set"
                )

            cred = credentials.Certificate(cred_path)
            firebase_admin.initialize_app(cred)

        _db = firestore.client()
        return _db

    except Exception as exc:
        logger.error("Failed to initialize Firestore: %s", exc)
        raise FirestoreUnavailableError(str(exc)) from exc


def _to_profile(doc) -> Optional[Profile]:
    """Parse a profile document; malformed documents are skipped."""

    data = doc.to_dict() or {}
    data.setdefault("id", doc.id)
    try:
        return Profile.model_validate(data)
    except ValueError as exc:
        logger.warning("Skipping malformed profile %s: %s", doc.id, exc)
        return None


def get_requester_profile(user_id: str) -> Profile | None:
    """Fetch the requesting user's profile from profiles/{user_id}.

    Returns None if the profile does not exist.
    """

    try:
        doc = get_db().collection(PROFILES).document(user_id).get()
        if not doc.exists:
            return None
        data = doc.to_dict() or {}
        data.setdefault("id", doc.id)
        return Profile.model_validate(data)
    except ValueError as exc:
        logger.error("Requester profile %s is malformed: %s", user_id, exc)
        raise FirestoreUnavailableError(str(exc)) from exc
    except Exception as exc:
        logger.error("Failed to fetch requester profile: %s", str(exc))
        raise FirestoreUnavailableError(str(exc)) from exc


def _related_ids(collection: str, own_field: str, other_field: str, user_id: str) -> set[str]:
    query = get_db().collection(collection).where(filter=FieldFilter(own_field, "==", user_id))
    return {
        other
        for doc in query.stream()
        if (other := (doc.to_dict() or {}).get(other_field))
    }


def get_excluded_user_ids(user_id: str) -> set[str]:
    """IDs the requester must never see: self, swiped, matched, blocked.

    Issues a fixed set of five single-field queries concurrently and unions
    the results, so the number of round trips does not grow with history.
    """

    try:
        with ThreadPoolExecutor(max_workers=len(EXCLUSION_RELATIONS)) as executor:
            results = list(
                executor.map(
                    lambda relation: _related_ids(*relation, user_id),
                    EXCLUSION_RELATIONS,
                )
            )
    except Exception as exc:
        logger.error("Failed to build exclusion set: %s", str(exc))
        raise FirestoreUnavailableError(str(exc)) from exc

    excluded = {user_id}
    for ids in results:
        excluded |= ids
    logger.debug("get_excluded_user_ids user=%s excluded=%s", user_id, len(excluded))
    return excluded


def find_candidates(
    predicate: Predicate,
    limit: int,
    *,
    showcase: bool = False,
) -> list[Profile]:
    """Stream profiles newest first and keep up to ``limit`` predicate matches.

    Only ``isShowcase`` is filtered server-side (composite index on
    isShowcase + createdAt desc); everything else is evaluated in memory.
    """

    if limit <= 0:
        return []

    try:
        query = (
            get_db()
            .collection(PROFILES)
            .where(filter=FieldFilter("isShowcase", "==", showcase))
            .order_by("createdAt", direction=firestore.Query.DESCENDING)
        )
        matches: list[Profile] = []
        scanned = 0
        for doc in query.stream():
            scanned += 1
            profile = _to_profile(doc)
            if profile is None or not predicate(profile):
                continue
            matches.append(profile)
            if len(matches) >= limit:
                break
    except Exception as exc:
        logger.error("Failed to query candidates: %s", str(exc))
        raise FirestoreUnavailableError(str(exc)) from exc

    logger.debug(
        "find_candidates showcase=%s scanned=%s matched=%s limit=%s",
        showcase,
        scanned,
        len(matches),
        limit,
    )
    return matches


def get_boosted_user_ids(user_ids: Iterable[str], now: datetime) -> set[str]:
    """Subset of ``user_ids`` with an active, unexpired profile boost."""

    ids = list(dict.fromkeys(user_ids))
    boosted: set[str] = set()
    try:
        for start in range(0, len(ids), IN_QUERY_CHUNK):
            chunk = ids[start : start + IN_QUERY_CHUNK]
            query = get_db().collection(PROFILE_BOOSTS).where(
                filter=FieldFilter("userId", "in", chunk)
            )
            for doc in query.stream():
                data = doc.to_dict() or {}
                expires_at = data.get("expiresAt")
                if data.get("isActive") and expires_at is not None and expires_at > now:
                    boosted.add(data["userId"])
    except Exception as exc:
        logger.error("Failed to fetch profile boosts: %s", str(exc))
        raise FirestoreUnavailableError(str(exc)) from exc
    return boosted
