"""Deterministic compatibility scoring.

Each sub-score is 0-100 and returns an optional explanation. The overall score
is the weighted sum of the seven sub-scores, clamped to [0, 100]. Nothing here
reads the clock: callers pass ``now`` so identical inputs always give
identical scores.
"""

from __future__ import annotations

import re
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Optional

from discovery.models import CompatibilityScore, PersonalityProfile, Profile
from discovery.utils.geo import haversine_km
from discovery.utils.logging_config import logger

SubScore = tuple[int, Optional[str]]

NEUTRAL_SCORE = 50
MAX_EXPLANATIONS = 5

# Order doubles as explanation precedence.
WEIGHTS: dict[str, float] = {
    "interests": 0.20,
    "bio": 0.15,
    "location": 0.15,
    "activity": 0.10,
    "personality": 0.20,
    "love_language": 0.10,
    "lifestyle": 0.10,
}

INTEREST_CATEGORIES: dict[str, tuple[str, ...]] = {
    "sports": ("voetbal", "football", "soccer", "fitness", "hardlopen", "running", "zwemmen",
               "swimming", "tennis", "yoga", "wandelen", "hiking", "fietsen", "cycling", "gym"),
    "music": ("muziek", "music", "concert", "gitaar", "guitar", "piano", "zingen", "singing",
              "dj", "festival"),
    "culture": ("kunst", "art", "musea", "museum", "theater", "theatre", "film", "movies",
                "fotografie", "photography", "lezen", "reading", "boeken", "books"),
    "food": ("koken", "cooking", "eten", "food", "restaurant", "wijn", "wine", "bier", "beer",
             "bakken", "baking", "foodie"),
    "travel": ("reizen", "travel", "backpacken", "backpacking", "vakantie", "avontuur",
               "adventure", "natuur", "nature", "kamperen", "camping"),
    "social": ("uitgaan", "going out", "vrienden", "friends", "feesten", "party", "borrel",
               "gezelligheid"),
    "tech": ("gaming", "games", "technologie", "technology", "computers", "programmeren",
             "programming", "gadgets"),
    "animals": ("dieren", "animals", "honden", "dogs", "katten", "cats", "huisdieren", "pets",
                "natuur", "nature"),
    "creative": ("kunst", "art", "schrijven", "writing", "tekenen", "drawing", "schilderen",
                 "painting", "diy", "creatief", "creative"),
}

STOPWORDS = frozenset({
    # Dutch
    "ik", "je", "de", "het", "een", "en", "van", "in", "op", "met", "voor", "is", "dat",
    "ben", "heb", "aan", "die", "naar", "om", "te", "zijn", "ook", "maar", "als", "bij",
    "door", "wel", "niet", "nog", "dan", "zo", "mijn", "graag", "veel", "hou", "houd",
    "leuk", "lekker",
    # English
    "the", "and", "for", "with", "you", "are", "that", "this", "have", "like", "love",
    "from", "who", "but", "not", "all", "can", "just", "what", "about", "really",
})

WORD_RE = re.compile(r"[^a-zàáâãäåèéêëìíîïòóôõöùúûüñç\s]")

# Upper bounds (km) for each location score step.
DISTANCE_STEPS: tuple[tuple[float, int], ...] = (
    (10, 100),
    (25, 90),
    (50, 75),
    (100, 60),
    (200, 40),
)
FAR_LOCATION_SCORE = 20
SAME_CITY_SCORE = 90

# Days since last activity -> level 5 (very active) .. 1 (inactive).
ACTIVITY_LEVELS: tuple[tuple[float, int], ...] = ((1, 5), (3, 4), (7, 3), (30, 2))
ACTIVITY_DIFF_SCORES = {0: 100, 1: 75, 2: 50, 3: 25}
ACTIVITY_FLOOR_SCORE = 10

SCALE_PENALTY = 12

PERSONALITY_SCALES: dict[str, str] = {
    "introvert_scale": "You have a similar social energy",
    "emotional_scale": "You approach feelings in a similar way",
    "spontaneity_scale": "You're equally spontaneous",
    "adventure_scale": "You share the same appetite for adventure",
}

# (same, compatible pair, mismatch) scores plus the compatible pairs.
CONFLICT_STYLE_SCORES = (100, 75, 40)
CONFLICT_STYLE_PAIRS = frozenset({
    frozenset({"COLLABORATING", "COMPROMISING"}),
    frozenset({"COMPROMISING", "ACCOMMODATING"}),
    frozenset({"COLLABORATING", "ACCOMMODATING"}),
})
COMMUNICATION_STYLE_SCORES = (100, 70, 45)
COMMUNICATION_STYLE_PAIRS = frozenset({frozenset({"DIRECT", "DIPLOMATIC"})})
RELATIONSHIP_GOAL_SCORES = (100, 70, 30)
RELATIONSHIP_GOAL_PAIRS = frozenset({
    frozenset({"SERIOUS", "MARRIAGE"}),
    frozenset({"CASUAL", "OPEN"}),
})

LOVE_LANGUAGES: dict[str, str] = {
    "love_lang_words": "words of affirmation",
    "love_lang_time": "quality time",
    "love_lang_gifts": "receiving gifts",
    "love_lang_acts": "acts of service",
    "love_lang_touch": "physical touch",
}

LIFESTYLE_MATCH_SCORE = 100
LIFESTYLE_CONFLICT_SCORE = 10
LIFESTYLE_NEUTRAL_SCORE = 60
# field -> (weight, conflicting value pairs)
LIFESTYLE_DIMENSIONS: dict[str, tuple[int, frozenset[frozenset[str]]]] = {
    "smoking": (1, frozenset({frozenset({"never", "regularly"})})),
    "drinking": (1, frozenset({frozenset({"never", "regularly"})})),
    "children": (2, frozenset({
        frozenset({"want_someday", "dont_want"}),
        frozenset({"have", "dont_want"}),
    })),
}


# ============================================================
# SUB-SCORES
# ============================================================
def interest_categories(interests: list[str]) -> set[str]:
    lowered = [interest.lower() for interest in interests]
    return {
        category
        for category, keywords in INTEREST_CATEGORIES.items()
        if any(keyword in interest for interest in lowered for keyword in keywords)
    }


def calculate_interest_score(user_interests: list[str], target_interests: list[str]) -> SubScore:
    """Exact overlap (70%) blended with shared interest categories (30%)."""

    user = [i.strip().lower() for i in user_interests if i.strip()]
    target = [i.strip().lower() for i in target_interests if i.strip()]
    if not user or not target:
        return NEUTRAL_SCORE, None

    shared = [i for i in dict.fromkeys(user) if i in target]
    user_categories = interest_categories(user)
    target_categories = interest_categories(target)
    shared_categories = sorted(user_categories & target_categories)

    direct = len(shared) / min(len(user), len(target)) * 70
    category_base = min(len(user_categories), len(target_categories)) or 1
    category = len(shared_categories) / category_base * 30
    score = min(100, round(direct + category))

    if shared:
        return score, f"You both enjoy {', '.join(shared[:3])}"
    if shared_categories:
        return score, f"You share an interest in {shared_categories[0]}"
    return score, None


def _bio_keywords(text: str) -> set[str]:
    cleaned = WORD_RE.sub("", text.lower())
    return {word for word in cleaned.split() if len(word) > 2 and word not in STOPWORDS}


def calculate_bio_score(user_bio: Optional[str], target_bio: Optional[str]) -> SubScore:
    """Jaccard overlap of stop-word-filtered bio keywords."""

    if not user_bio or not target_bio:
        return NEUTRAL_SCORE, None
    user_words = _bio_keywords(user_bio)
    target_words = _bio_keywords(target_bio)
    if not user_words or not target_words:
        return NEUTRAL_SCORE, None

    shared = user_words & target_words
    score = round(len(shared) / len(user_words | target_words) * 100)
    if shared and score >= 20:
        return score, "Your bios have a lot in common"
    return score, None


def location_score_for_distance(distance_km: float) -> int:
    for limit, score in DISTANCE_STEPS:
        if distance_km <= limit:
            return score
    return FAR_LOCATION_SCORE


def calculate_location_score(user: Profile, target: Profile) -> SubScore:
    if user.city and target.city and user.city.strip().lower() == target.city.strip().lower():
        return SAME_CITY_SCORE, f"You both live in {target.city.strip()}"

    if user.coordinates is None or target.coordinates is None:
        return NEUTRAL_SCORE, None

    distance = haversine_km(*user.coordinates, *target.coordinates)
    score = location_score_for_distance(distance)
    if distance < 10:
        return score, "Lives nearby"
    if distance < 30:
        return score, f"{round(distance)} km away"
    return score, None


def activity_level(profile: Profile, now: datetime) -> int:
    reference = profile.last_active()
    if reference is None:
        return 1
    days_since = (now - reference).total_seconds() / 86400
    for limit, level in ACTIVITY_LEVELS:
        if days_since < limit:
            return level
    return 1


def calculate_activity_score(user: Profile, target: Profile, now: datetime) -> SubScore:
    user_level = activity_level(user, now)
    target_level = activity_level(target, now)
    score = ACTIVITY_DIFF_SCORES.get(abs(user_level - target_level), ACTIVITY_FLOOR_SCORE)
    if score == 100 and target_level >= 4:
        return score, "You're both active on the app right now"
    return score, None


def _scale_score(a: Optional[float], b: Optional[float]) -> Optional[int]:
    if a is None or b is None:
        return None
    return max(0, round(100 - SCALE_PENALTY * abs(a - b)))


def _categorical_score(
    a: Optional[str],
    b: Optional[str],
    scores: tuple[int, int, int],
    pairs: frozenset[frozenset[str]],
) -> Optional[int]:
    if not a or not b:
        return None
    left, right = a.strip().upper(), b.strip().upper()
    same, compatible, mismatch = scores
    if left == right:
        return same
    if frozenset({left, right}) in pairs:
        return compatible
    return mismatch


def calculate_personality_score(
    user: Optional[PersonalityProfile], target: Optional[PersonalityProfile]
) -> SubScore:
    """Average of scale closeness and categorical style comparisons."""

    if user is None or target is None:
        return NEUTRAL_SCORE, None

    components: list[int] = []
    explanation: Optional[str] = None

    if user.relationship_goal and target.relationship_goal and (
        user.relationship_goal.strip().lower() == target.relationship_goal.strip().lower()
    ):
        explanation = "You're looking for the same kind of relationship"

    for field_name, text in PERSONALITY_SCALES.items():
        a, b = getattr(user, field_name), getattr(target, field_name)
        score = _scale_score(a, b)
        if score is None:
            continue
        components.append(score)
        if explanation is None and abs(a - b) <= 1:
            explanation = text

    for score in (
        _categorical_score(user.conflict_style, target.conflict_style,
                           CONFLICT_STYLE_SCORES, CONFLICT_STYLE_PAIRS),
        _categorical_score(user.communication_style, target.communication_style,
                           COMMUNICATION_STYLE_SCORES, COMMUNICATION_STYLE_PAIRS),
        _categorical_score(user.relationship_goal, target.relationship_goal,
                           RELATIONSHIP_GOAL_SCORES, RELATIONSHIP_GOAL_PAIRS),
    ):
        if score is not None:
            components.append(score)

    if not components:
        return NEUTRAL_SCORE, None
    return round(sum(components) / len(components)), explanation


def top_love_language(profile: Optional[PersonalityProfile]) -> Optional[str]:
    """Field name of the highest-scoring love language; first wins on ties."""

    if profile is None:
        return None
    best: Optional[str] = None
    best_value = float("-inf")
    for field_name in LOVE_LANGUAGES:
        value = getattr(profile, field_name)
        if value is not None and value > best_value:
            best, best_value = field_name, value
    return best


def calculate_love_language_score(
    user: Optional[PersonalityProfile], target: Optional[PersonalityProfile]
) -> SubScore:
    if user is None or target is None:
        return NEUTRAL_SCORE, None

    scores = [
        score
        for field_name in LOVE_LANGUAGES
        if (score := _scale_score(getattr(user, field_name), getattr(target, field_name))) is not None
    ]
    if not scores:
        return NEUTRAL_SCORE, None

    user_top = top_love_language(user)
    explanation = None
    if user_top is not None and user_top == top_love_language(target):
        explanation = f"You both value {LOVE_LANGUAGES[user_top]} most"
    return round(sum(scores) / len(scores)), explanation


def calculate_lifestyle_score(user: Profile, target: Profile) -> SubScore:
    """Weighted smoking/drinking/children compatibility, children counted twice."""

    weighted_total = 0
    total_weight = 0
    for field_name, (weight, conflicts) in LIFESTYLE_DIMENSIONS.items():
        a, b = getattr(user, field_name), getattr(target, field_name)
        if not a or not b:
            continue
        left, right = a.strip().lower(), b.strip().lower()
        if left == right:
            score = LIFESTYLE_MATCH_SCORE
        elif frozenset({left, right}) in conflicts:
            score = LIFESTYLE_CONFLICT_SCORE
        else:
            score = LIFESTYLE_NEUTRAL_SCORE
        weighted_total += score * weight
        total_weight += weight

    if total_weight == 0:
        return NEUTRAL_SCORE, None
    score = round(weighted_total / total_weight)
    if score >= 90:
        return score, "Your lifestyles line up well"
    return score, None


# ============================================================
# COMPOSITE
# ============================================================
def weighted_overall(sub_scores: dict[str, int]) -> int:
    total = sum(WEIGHTS[name] * sub_scores[name] for name in WEIGHTS)
    return max(0, min(100, round(total)))


def calculate_compatibility(user: Profile, target: Profile, now: datetime) -> CompatibilityScore:
    """Score a candidate against the requester."""

    results: dict[str, SubScore] = {
        "interests": calculate_interest_score(user.interests, target.interests),
        "bio": calculate_bio_score(user.bio, target.bio),
        "location": calculate_location_score(user, target),
        "activity": calculate_activity_score(user, target, now),
        "personality": calculate_personality_score(user.personality, target.personality),
        "love_language": calculate_love_language_score(user.personality, target.personality),
        "lifestyle": calculate_lifestyle_score(user, target),
    }
    sub_scores = {name: max(0, min(100, score)) for name, (score, _) in results.items()}

    explanations: list[str] = []
    for name in WEIGHTS:
        text = results[name][1]
        if text and text not in explanations:
            explanations.append(text)

    return CompatibilityScore(
        overall=weighted_overall(sub_scores),
        explanations=explanations[:MAX_EXPLANATIONS],
        **sub_scores,
    )


def score_candidates(
    user: Profile,
    candidates: list[Profile],
    now: datetime,
    max_workers: int = 8,
) -> list[CompatibilityScore]:
    """Score a batch concurrently. Output order matches input order."""

    if not candidates:
        return []
    workers = max(1, min(max_workers, len(candidates)))
    with ThreadPoolExecutor(max_workers=workers) as executor:
        scores = list(
            executor.map(lambda target: calculate_compatibility(user, target, now), candidates)
        )
    logger.debug("score_candidates scored=%s workers=%s", len(scores), workers)
    return scores
