"""Ordering and pagination of the scored candidate pool."""

from __future__ import annotations

import math
from datetime import datetime, timezone

from discovery.models import PaginationInfo, ScoredCandidate

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)

MAX_PAGE_LIMIT = 100
DEFAULT_PAGE_LIMIT = 20


def rank_key(candidate: ScoredCandidate) -> tuple[int, int, float]:
    """Boosted first, then higher score, then newer profile."""

    created = candidate.profile.created_at or _EPOCH
    overall = candidate.score.overall if candidate.score else 0
    return (
        0 if candidate.is_boosted else 1,
        -overall,
        -created.timestamp() if created is not _EPOCH else math.inf,
    )


def rank_candidates(candidates: list[ScoredCandidate]) -> list[ScoredCandidate]:
    """Stable sort of the fully scored pool."""

    return sorted(candidates, key=rank_key)


def clamp_pagination(page: object, limit: object) -> tuple[int, int]:
    """Coerce raw page/limit values: page >= 1, 1 <= limit <= 100."""

    try:
        page_value = int(page)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        page_value = 1
    try:
        limit_value = int(limit)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        limit_value = DEFAULT_PAGE_LIMIT
    return max(1, page_value), min(MAX_PAGE_LIMIT, max(1, limit_value))


def paginate(
    ranked: list[ScoredCandidate], page: int, limit: int
) -> tuple[list[ScoredCandidate], PaginationInfo]:
    """Slice one page out of the already ranked pool."""

    offset = (page - 1) * limit
    total = len(ranked)
    total_pages = math.ceil(total / limit) if total else 0
    info = PaginationInfo(
        page=page,
        limit=limit,
        total=total,
        total_pages=total_pages,
        has_next_page=page < total_pages,
        has_previous_page=page > 1,
    )
    return ranked[offset : offset + limit], info
