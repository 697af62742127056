"""Read-through cache of compatibility scores in Firestore.

Entries live in ``match_scores/{requesterId}_{candidateId}``. Every entry
carries ``schemaVersion``; entries written by an older schema (which stored
only a subset of the sub-scores) or older than the TTL count as misses and
are recomputed. Concurrent writers for the same pair race last-writer-wins,
which is harmless because scoring is deterministic.

The cache is advisory: read or write failures are logged and the request
carries on with freshly computed scores.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Callable, Iterable, Optional

from pydantic import ValidationError

from discovery.models import CompatibilityScore, Profile
from discovery.tools.firestore_tools import get_db
from discovery.utils.logging_config import logger

MATCH_SCORES = "match_scores"
SCHEMA_VERSION = 2

# Firestore batches accept at most 500 writes.
WRITE_BATCH_SIZE = 500


def cache_doc_id(requester_id: str, candidate_id: str) -> str:
    return f"{requester_id}_{candidate_id}"


def to_document(
    requester_id: str, candidate_id: str, score: CompatibilityScore, now: datetime
) -> dict:
    """Serialize a score as a cache entry."""

    return {
        "schemaVersion": SCHEMA_VERSION,
        "userId": requester_id,
        "targetUserId": candidate_id,
        "computedAt": now,
        **score.model_dump(by_alias=True),
    }


def from_document(
    data: Optional[dict], now: datetime, ttl_seconds: int
) -> Optional[CompatibilityScore]:
    """Parse a cache entry, or None when it is missing, legacy, stale or corrupt."""

    if not data or data.get("schemaVersion") != SCHEMA_VERSION:
        return None

    computed_at = data.get("computedAt")
    if not isinstance(computed_at, datetime):
        return None
    if computed_at.tzinfo is None:
        computed_at = computed_at.replace(tzinfo=now.tzinfo)
    if now - computed_at > timedelta(seconds=ttl_seconds):
        return None

    try:
        return CompatibilityScore.model_validate(data)
    except ValidationError:
        return None


def get_cached_scores(
    requester_id: str,
    candidate_ids: Iterable[str],
    now: datetime,
    ttl_seconds: int,
) -> dict[str, CompatibilityScore]:
    """Fetch fresh cache entries for the given candidates in one round trip."""

    ids = list(dict.fromkeys(candidate_ids))
    if not ids:
        return {}

    try:
        db = get_db()
        collection = db.collection(MATCH_SCORES)
        refs = [collection.document(cache_doc_id(requester_id, cid)) for cid in ids]
        hits: dict[str, CompatibilityScore] = {}
        for snapshot in db.get_all(refs):
            if not snapshot.exists:
                continue
            data = snapshot.to_dict() or {}
            score = from_document(data, now, ttl_seconds)
            candidate_id = data.get("targetUserId")
            if score is not None and candidate_id:
                hits[candidate_id] = score
    except Exception as exc:
        logger.warning("Score cache read failed: %s", str(exc))
        return {}

    logger.debug("score cache hits=%s/%s", len(hits), len(ids))
    return hits


def put_cached_scores(
    requester_id: str, scores: dict[str, CompatibilityScore], now: datetime
) -> None:
    """Write scores back in batches. Failures are logged, never raised."""

    if not scores:
        return

    items = list(scores.items())
    try:
        db = get_db()
        collection = db.collection(MATCH_SCORES)
        for start in range(0, len(items), WRITE_BATCH_SIZE):
            batch = db.batch()
            for candidate_id, score in items[start : start + WRITE_BATCH_SIZE]:
                ref = collection.document(cache_doc_id(requester_id, candidate_id))
                batch.set(ref, to_document(requester_id, candidate_id, score, now))
            batch.commit()
    except Exception as exc:
        logger.warning("Score cache write failed: %s", str(exc))


def score_with_cache(
    requester: Profile,
    candidates: list[Profile],
    now: datetime,
    ttl_seconds: int,
    compute: Callable[[Profile, list[Profile], datetime], list[CompatibilityScore]],
) -> list[CompatibilityScore]:
    """Serve hits from the cache, compute the misses and write them back.

    Output order matches ``candidates``.
    """

    cached = get_cached_scores(requester.id, (c.id for c in candidates), now, ttl_seconds)
    misses = [c for c in candidates if c.id not in cached]

    fresh: dict[str, CompatibilityScore] = {}
    if misses:
        fresh = dict(zip((c.id for c in misses), compute(requester, misses, now)))
        put_cached_scores(requester.id, fresh, now)

    return [cached.get(c.id) or fresh[c.id] for c in candidates]
