"""Conversation starters for discovered candidates.

Starters are picked deterministically from what the two profiles have in
common: a shared interest category, a shared top love language, or their
location. Generic starters fill the remaining slots. The same pair always
gets the same starters.
"""

from __future__ import annotations

import zlib
from typing import Optional

from discovery.models import Profile
from discovery.tools.scoring_tools import interest_categories, top_love_language

MAX_ICEBREAKERS = 3

CATEGORY_STARTERS: dict[str, tuple[str, ...]] = {
    "sports": (
        "What's your favourite way to stay active on a weekend?",
        "Early morning workout or evening session, what's your style?",
    ),
    "music": (
        "Which song would play if your life had a soundtrack right now?",
        "Festival crowd or a small gig in a bar, where would I find you?",
    ),
    "culture": (
        "What's the last film, book or exhibition that stuck with you?",
        "Which museum or theatre would you take someone to on a first date?",
    ),
    "food": (
        "What dish could you cook to impress someone?",
        "Which restaurant in town deserves more attention?",
    ),
    "travel": (
        "If you got a free ticket tomorrow, where would you hope the plane lands?",
        "Which trip changed the way you look at things?",
    ),
    "social": (
        "What does a perfect night out with friends look like for you?",
        "Cosy drinks or dancing until late, what's your pick?",
    ),
    "tech": (
        "Which game or gadget could you talk about for hours?",
        "What's the coolest thing you've built or tinkered with?",
    ),
    "animals": (
        "Dog person, cat person, or something more surprising?",
        "Tell me about the best animal you've ever met.",
    ),
    "creative": (
        "What's the last thing you made that you were proud of?",
        "If you had a free afternoon to create something, what would it be?",
    ),
}

LOVE_LANGUAGE_STARTERS: dict[str, str] = {
    "love_lang_words": "What's the nicest thing anyone has ever said to you?",
    "love_lang_time": "What's your idea of a perfect day spent together?",
    "love_lang_gifts": "What's the most thoughtful gift you've ever received?",
    "love_lang_acts": "What's a small gesture that always makes your day?",
    "love_lang_touch": "Are you a hugger? Be honest.",
}

GENERIC_STARTERS: tuple[str, ...] = (
    "What's something you're looking forward to this month?",
    "What's the best thing that happened to you this week?",
    "What would your friends say is your most surprising trait?",
    "If you could learn any skill overnight, which one would you pick?",
)


def _pick(options: tuple[str, ...], seed: int) -> str:
    return options[seed % len(options)]


def _location_starter(requester: Profile, candidate: Profile) -> Optional[str]:
    if not candidate.city:
        return None
    if requester.city and requester.city.strip().lower() == candidate.city.strip().lower():
        return f"What's your favourite hidden spot in {candidate.city}?"
    return f"What do you love most about living in {candidate.city}?"


def generate_icebreakers(requester: Profile, candidate: Profile) -> list[str]:
    """Up to three starters for this pair, most specific first."""

    seed = zlib.crc32(f"{requester.id}:{candidate.id}".encode("utf-8"))
    starters: list[str] = []

    shared = sorted(
        interest_categories(requester.interests) & interest_categories(candidate.interests)
    )
    for category in shared[:2]:
        starters.append(_pick(CATEGORY_STARTERS[category], seed))

    language = top_love_language(requester.personality)
    if language and language == top_love_language(candidate.personality):
        starters.append(LOVE_LANGUAGE_STARTERS[language])

    location = _location_starter(requester, candidate)
    if location:
        starters.append(location)

    offset = seed
    while len(starters) < MAX_ICEBREAKERS:
        option = _pick(GENERIC_STARTERS, offset)
        offset += 1
        if option not in starters:
            starters.append(option)

    return starters[:MAX_ICEBREAKERS]

