"""Discovery graph: filter, score and rank candidate profiles for a requester."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from langgraph.graph import StateGraph

from discovery.config import config
from discovery.graphs.base_graph import BaseGraph
from discovery.models import (
    CandidateSummary,
    DiscoverPayload,
    FilterSpec,
    PaginationInfo,
    PassportInfo,
    Profile,
    ScoredCandidate,
    ShowcaseInfo,
    utcnow,
)
from discovery.state import DiscoveryState
from discovery.tools.filter_tools import SearchArea, filter_by_distance, resolve_search_area
from discovery.tools.firestore_tools import (
    find_candidates,
    get_boosted_user_ids,
    get_excluded_user_ids,
    get_requester_profile,
)
from discovery.tools.geocoding import GeocodedPostcode, resolve_postcode
from discovery.tools.icebreakers import generate_icebreakers
from discovery.tools.llm_client import get_llm, llm_available
from discovery.tools.llm_tools import (
    get_icebreaker_chain,
    icebreaker_inputs,
    log_llm_error,
    parse_refined_icebreaker,
)
from discovery.tools.predicates import build_discovery_predicate, build_showcase_predicate
from discovery.tools.ranking_tools import paginate, rank_candidates
from discovery.tools.score_cache import score_with_cache
from discovery.tools.scoring_tools import score_candidates
from discovery.utils.errors import FirestoreUnavailableError
from discovery.utils.logging_config import logger

NOT_FOUND = "not_found"
STORE_UNAVAILABLE = "store_unavailable"
INTERNAL = "internal"

SHOWCASE_MESSAGE = (
    "Only a few people match your filters right now, "
    "so we're also showing some example profiles."
)


def _with_state(state: DiscoveryState, **updates) -> DiscoveryState:
    """Return a new state dict with updates applied."""

    return {**state, **updates}


def _store_failure(state: DiscoveryState, message: str) -> DiscoveryState:
    return _with_state(state, error=message, error_code=STORE_UNAVAILABLE)


def current_city(requester: Profile, now: datetime) -> Optional[str]:
    """City the requester is searching from: passport city while travelling."""

    if requester.active_passport(now) is not None and requester.passport_city:
        return requester.passport_city
    return requester.city


def scoring_view(
    requester: Profile,
    area: SearchArea,
    resolved_postcode: Optional[GeocodedPostcode],
    now: datetime,
) -> Profile:
    """Requester as seen by the location sub-score.

    While travelling or searching by postcode, proximity is measured from
    the search origin instead of the home location.
    """

    if area.origin_source == "postcode" and resolved_postcode is not None:
        city = resolved_postcode.city or requester.city
    elif area.origin_source == "passport":
        city = current_city(requester, now)
    else:
        return requester
    return requester.model_copy(
        update={"latitude": area.latitude, "longitude": area.longitude, "city": city}
    )


class DiscoveryGraph(BaseGraph):
    """Sequential discovery pipeline; every node skips once ``error`` is set."""

    def build_graph(self) -> StateGraph:
        graph = StateGraph(DiscoveryState)

        graph.add_node("fetch_requester", self.node_fetch_requester)
        graph.add_node("resolve_location", self.node_resolve_location)
        graph.add_node("build_exclusions", self.node_build_exclusions)
        graph.add_node("build_predicate", self.node_build_predicate)
        graph.add_node("retrieve_candidates", self.node_retrieve_candidates)
        graph.add_node("filter_distance", self.node_filter_distance)
        graph.add_node("supply_showcase", self.node_supply_showcase)
        graph.add_node("score_candidates", self.node_score_candidates)
        graph.add_node("rank_and_paginate", self.node_rank_and_paginate)
        graph.add_node("generate_icebreakers", self.node_generate_icebreakers)
        graph.add_node("finalize_response", self.node_finalize_response)

        graph.set_entry_point("fetch_requester")
        graph.add_edge("fetch_requester", "resolve_location")
        graph.add_edge("resolve_location", "build_exclusions")
        graph.add_edge("build_exclusions", "build_predicate")
        graph.add_edge("build_predicate", "retrieve_candidates")
        graph.add_edge("retrieve_candidates", "filter_distance")
        graph.add_edge("filter_distance", "supply_showcase")
        graph.add_edge("supply_showcase", "score_candidates")
        graph.add_edge("score_candidates", "rank_and_paginate")
        graph.add_edge("rank_and_paginate", "generate_icebreakers")
        graph.add_edge("generate_icebreakers", "finalize_response")
        graph.set_finish_point("finalize_response")

        return graph

    def node_fetch_requester(self, state: DiscoveryState) -> DiscoveryState:
        """Load the requesting user's profile."""

        try:
            self._log_node_execution("fetch_requester", state)
            requester = get_requester_profile(state["user_id"])
            if requester is None:
                return _with_state(
                    state,
                    error=f"Profile not found: {state['user_id']}",
                    error_code=NOT_FOUND,
                )
            return _with_state(state, requester=requester)
        except FirestoreUnavailableError as exc:
            self._log_node_error("fetch_requester", exc)
            return _store_failure(state, "Profile store unavailable.")

    def node_resolve_location(self, state: DiscoveryState) -> DiscoveryState:
        """Geocode the search postcode and settle the search origin and radius.

        Geocoding failures only disable distance filtering by postcode.
        """

        if state.get("error"):
            return state

        self._log_node_execution("resolve_location", state)
        filters = state["filters"]
        resolved = resolve_postcode(filters.postcode) if filters.postcode else None
        area = resolve_search_area(
            state["requester"],
            filters,
            resolved,
            state["now"],
            config.DEFAULT_POSTCODE_RADIUS_KM,
        )
        logger.debug(
            "search area origin=%s radius=%s (%s)",
            area.origin_source,
            area.radius_km,
            area.radius_source,
        )
        return _with_state(state, resolved_postcode=resolved, search_area=area)

    def node_build_exclusions(self, state: DiscoveryState) -> DiscoveryState:
        """Collect IDs the requester must never see."""

        if state.get("error"):
            return state

        try:
            self._log_node_execution("build_exclusions", state)
            excluded = get_excluded_user_ids(state["user_id"])
            return _with_state(state, excluded_ids=excluded)
        except FirestoreUnavailableError as exc:
            self._log_node_error("build_exclusions", exc)
            return _store_failure(state, "Failed to load interaction history.")

    def node_build_predicate(self, state: DiscoveryState) -> DiscoveryState:
        """Compose the real-candidate predicate."""

        if state.get("error"):
            return state

        self._log_node_execution("build_predicate", state)
        requester = state["requester"]
        predicate = build_discovery_predicate(
            filters=state["filters"],
            prefs=requester.preferences,
            dealbreakers=requester.dealbreakers,
            excluded_ids=state["excluded_ids"],
            current_city=current_city(requester, state["now"]),
            distance_filter_active=state["search_area"].is_active,
            postcode_resolved=state.get("resolved_postcode") is not None,
            now=state["now"],
        )
        logger.debug("predicate rules=%s", ",".join(predicate.leaf_names()))
        return _with_state(state, predicate=predicate)

    def node_retrieve_candidates(self, state: DiscoveryState) -> DiscoveryState:
        """Fetch a bounded batch of real candidates matching the predicate."""

        if state.get("error"):
            return state

        try:
            self._log_node_execution("retrieve_candidates", state)
            batch = min(
                config.MAX_CANDIDATES,
                state["page"] * state["limit"] * config.OVERFETCH_FACTOR,
            )
            profiles = find_candidates(state["predicate"], batch)
            return _with_state(
                state, candidates=[ScoredCandidate(profile=p) for p in profiles]
            )
        except FirestoreUnavailableError as exc:
            self._log_node_error("retrieve_candidates", exc)
            return _store_failure(state, "Failed to query candidates.")

    def node_filter_distance(self, state: DiscoveryState) -> DiscoveryState:
        """Apply the geodistance post-filter."""

        if state.get("error"):
            return state

        self._log_node_execution("filter_distance", state)
        kept = filter_by_distance(state.get("candidates", []), state["search_area"])
        return _with_state(state, candidates=kept, real_count=len(kept))

    def node_supply_showcase(self, state: DiscoveryState) -> DiscoveryState:
        """Top up sparse results with showcase profiles."""

        if state.get("error"):
            return state

        real_count = state.get("real_count", 0)
        if not config.SHOWCASE_ENABLED or real_count >= config.SHOWCASE_MIN_REAL_PROFILES:
            return _with_state(state, showcase_count=0)

        try:
            self._log_node_execution("supply_showcase", state)
            predicate = build_showcase_predicate(
                filters=state["filters"],
                prefs=state["requester"].preferences,
                excluded_ids=state["excluded_ids"],
                age_slack_years=config.SHOWCASE_AGE_SLACK_YEARS,
                now=state["now"],
            )
            profiles = find_candidates(predicate, config.SHOWCASE_MAX_PROFILES, showcase=True)
        except FirestoreUnavailableError as exc:
            self._log_node_error("supply_showcase", exc)
            return _store_failure(state, "Failed to query showcase profiles.")

        # Showcase profiles ignore the radius but still get a distance label.
        unbounded = state["search_area"].model_copy(update={"radius_km": None})
        showcase = filter_by_distance(
            [ScoredCandidate(profile=p, is_showcase=True) for p in profiles], unbounded
        )
        logger.info(
            "Showcase fallback: real=%s showcase=%s", real_count, len(showcase)
        )
        return _with_state(
            state,
            candidates=state.get("candidates", []) + showcase,
            showcase_count=len(showcase),
        )

    def node_score_candidates(self, state: DiscoveryState) -> DiscoveryState:
        """Score every candidate in the pool against the requester."""

        if state.get("error"):
            return state

        try:
            self._log_node_execution("score_candidates", state)
            now = state["now"]
            area = state["search_area"]
            candidates = state.get("candidates", [])
            requester = scoring_view(
                state["requester"], area, state.get("resolved_postcode"), now
            )

            def compute(user: Profile, targets: list[Profile], at: datetime):
                return score_candidates(user, targets, at, max_workers=config.SCORE_WORKERS)

            real = [c for c in candidates if not c.is_showcase]
            showcase = [c for c in candidates if c.is_showcase]

            # Cached scores assume the home location.
            if config.SCORE_CACHE_ENABLED and area.origin_source in (None, "live"):
                real_scores = score_with_cache(
                    requester,
                    [c.profile for c in real],
                    now,
                    config.SCORE_CACHE_TTL_SECONDS,
                    compute,
                )
            else:
                real_scores = compute(requester, [c.profile for c in real], now)
            showcase_scores = compute(requester, [c.profile for c in showcase], now)

            scored = [
                c.model_copy(update={"score": s})
                for c, s in zip(real + showcase, real_scores + showcase_scores)
            ]
            return _with_state(state, scored=scored)
        except Exception as exc:
            self._log_node_error("score_candidates", exc)
            return _with_state(state, error="Scoring failed.", error_code=INTERNAL)

    def node_rank_and_paginate(self, state: DiscoveryState) -> DiscoveryState:
        """Mark boosted profiles, order the pool and slice the requested page."""

        if state.get("error"):
            return state

        try:
            self._log_node_execution("rank_and_paginate", state)
            scored = state.get("scored", [])
            boosted = get_boosted_user_ids(
                (c.profile.id for c in scored if not c.is_showcase), state["now"]
            )
        except FirestoreUnavailableError as exc:
            self._log_node_error("rank_and_paginate", exc)
            return _store_failure(state, "Failed to load profile boosts.")

        marked = [
            c.model_copy(update={"is_boosted": True}) if c.profile.id in boosted else c
            for c in scored
        ]
        page_items, pagination = paginate(
            rank_candidates(marked), state["page"], state["limit"]
        )
        return _with_state(state, page_items=page_items, pagination=pagination)

    def node_generate_icebreakers(self, state: DiscoveryState) -> DiscoveryState:
        """Attach conversation starters to the returned page."""

        if state.get("error") or not state.get("page_items"):
            return state

        self._log_node_execution("generate_icebreakers", state)
        requester = state["requester"]
        items = [
            c.model_copy(update={"icebreakers": generate_icebreakers(requester, c.profile)})
            for c in state["page_items"]
        ]

        if llm_available():
            items = self._refine_icebreakers(requester, items)

        return _with_state(state, page_items=items)

    def _refine_icebreakers(
        self, requester: Profile, items: list[ScoredCandidate]
    ) -> list[ScoredCandidate]:
        """Rewrite each first starter with the LLM; failures keep the original."""

        try:
            chain = get_icebreaker_chain(get_llm(temperature=0.8, timeout=10))
        except Exception as exc:
            log_llm_error("icebreaker_chain", exc)
            return items

        refined: list[ScoredCandidate] = []
        for item in items:
            try:
                result = chain.invoke(
                    icebreaker_inputs(requester, item.profile, item.icebreakers[0])
                )
            except Exception as exc:
                log_llm_error("icebreaker_refinement", exc)
                refined.append(item)
                continue

            text = parse_refined_icebreaker(result)
            if text is None:
                refined.append(item)
                continue
            refined.append(
                item.model_copy(update={"icebreakers": [text, *item.icebreakers[1:]]})
            )
        return refined

    def node_finalize_response(self, state: DiscoveryState) -> DiscoveryState:
        """Construct the response payload."""

        if state.get("error"):
            return state

        now = state["now"]
        requester = state["requester"]
        showcase_count = state.get("showcase_count", 0)

        passport = None
        if requester.active_passport(now) is not None:
            passport = PassportInfo(
                active=True,
                city=requester.passport_city,
                expires_at=requester.passport_expires_at,
            )

        payload = DiscoverPayload(
            users=[
                CandidateSummary.from_candidate(c, now.date())
                for c in state.get("page_items", [])
            ],
            pagination=state.get("pagination")
            or PaginationInfo(page=state["page"], limit=state["limit"], total=0, total_pages=0),
            passport=passport,
            showcase=ShowcaseInfo(
                enabled=showcase_count > 0,
                count=showcase_count,
                real_profile_count=state.get("real_count", 0),
                message=SHOWCASE_MESSAGE if showcase_count else None,
            ),
        )
        return _with_state(state, payload=payload)


def create_discovery_graph():
    """Build and compile the discovery graph for server usage."""

    graph_builder = DiscoveryGraph(timeout=config.GRAPH_TIMEOUT)
    return graph_builder.compile()


def initial_state(
    user_id: str,
    filters: FilterSpec,
    page: int,
    limit: int,
    now: Optional[datetime] = None,
) -> DiscoveryState:
    return {
        "user_id": user_id,
        "filters": filters,
        "page": page,
        "limit": limit,
        "now": now or utcnow(),
    }


def run_discovery(
    user_id: str,
    filters: FilterSpec,
    page: int = 1,
    limit: int = 20,
    now: Optional[datetime] = None,
    graph=None,
) -> DiscoveryState:
    """Run the discovery graph once and return its final state."""

    graph = graph or create_discovery_graph()
    return graph.invoke(initial_state(user_id, filters, page, limit, now))
