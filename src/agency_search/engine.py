from __future__ import annotations

from contextlib import nullcontext
from datetime import date
from functools import partial

import httpx
from loguru import logger

from .aggregate import aggregate_offices, rank_offices, total_spending
from .alternatives import estimate_alternatives, suggest_alternatives
from .commands import is_defense_related
from .config import AppConfig
from .enrich import CommandEnricher
from .expansion import ExpansionController
from .filters import build_filter
from .fpds import fetch_fpds_by_naics
from .geography import state_for_zip
from .models import SearchCriteria, SearchResult, ValidationFailure
from .naics import NaicsNormalizer
from .usaspending import fetch_awards, search_url


def find_agencies(
    criteria: SearchCriteria,
    config: AppConfig | None = None,
    *,
    client: httpx.Client | None = None,
    today: date | None = None,
    normalizer: NaicsNormalizer | None = None,
) -> SearchResult | ValidationFailure:
    """Run one discovery request: normalize, search with widening, aggregate, enrich."""
    config = config or AppConfig()
    normalizer = normalizer or NaicsNormalizer()

    naics_codes: tuple[str, ...] = ()
    correction: str | None = None
    if criteria.has_naics:
        normalized = normalizer.normalize(criteria.naics_code or "")
        if isinstance(normalized, ValidationFailure):
            return normalized
        naics_codes = normalized.codes
        correction = normalized.message

    state = state_for_zip(criteria.zip_code)
    query = build_filter(criteria, naics_codes, state, today=today)
    logger.info(
        f"Searching: naics={criteria.naics_code or '-'} ({len(naics_codes)} codes) "
        f"state={state or '-'} set-asides={list(query.set_aside_codes)}"
    )

    context = nullcontext(client) if client is not None else _new_client(config)
    with context as http:
        controller = ExpansionController(
            partial(fetch_awards, http, config=config), config.search, url=search_url(config)
        )
        outcome = controller.run(criteria, query, state)

        offices = aggregate_offices(outcome.snapshot.records)
        enricher = CommandEnricher(partial(fetch_fpds_by_naics, http, config=config), config)
        offices = enricher.enrich(offices, outcome.snapshot.query.naics_codes)

        if criteria.exclude_dod:
            before = len(offices)
            offices = rank_offices(
                office
                for office in offices
                if not is_defense_related(office.parent_agency, office.sub_agency, office.name)
            )
            logger.info(f"Excluded {before - len(offices)} defense offices")

        alternatives = []
        if not offices:
            logger.info("No offices after widening; building alternative searches")
            alternatives = suggest_alternatives(criteria, normalizer)
            estimate_alternatives(http, alternatives, normalizer, config, today)

    messages = [message for message in (correction, outcome.fallback_message) if message]
    result = SearchResult(
        offices=offices,
        total_spending=total_spending(offices),
        naics_correction_message="\n\n".join(messages) or None,
        adjustments=list(outcome.messages),
        was_auto_adjusted=outcome.was_auto_adjusted,
        location_tier=outcome.snapshot.location_tier,
        searched_state=state,
        alternative_searches=alternatives,
    )
    logger.info(
        f"Found {result.total_count} offices, total ${result.total_spending:,.2f} "
        f"(tier {result.location_tier})"
    )
    return result


def _new_client(config: AppConfig) -> httpx.Client:
    headers = {"User-Agent": config.user_agent}
    return httpx.Client(timeout=config.usaspending.timeout_seconds, headers=headers)
