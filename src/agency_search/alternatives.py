from __future__ import annotations

from dataclasses import replace
from datetime import date

import httpx
from loguru import logger

from .config import AppConfig
from .filters import build_filter
from .geography import bordering_states, state_for_zip
from .models import AlternativeSearch, Certification, SearchCriteria, VeteranStatus
from .naics import NaicsNormalizer
from .usaspending import count_awards

FULL_PAGE_ESTIMATE = 500
PAGE_MULTIPLIER = 5


def suggest_alternatives(
    criteria: SearchCriteria, normalizer: NaicsNormalizer
) -> list[AlternativeSearch]:
    """Relaxed versions of a search that came back empty, narrowest change first."""
    naics = (criteria.naics_code or "").strip() or None
    has_zip = bool(criteria.zip_code and criteria.zip_code.strip())
    has_type = criteria.has_certification or criteria.veteran_status is not VeteranStatus.NOT_APPLICABLE
    prefix = naics[:3] if naics and len(naics) >= 4 and naics[:3] in normalizer.expansion else None
    industry = (normalizer.industry_name(prefix) or f"{prefix}xx industry") if prefix else None

    no_type = {"certification": Certification.NONE, "veteran_status": VeteranStatus.NOT_APPLICABLE}
    options: list[AlternativeSearch] = []

    if has_zip:
        options.append(
            AlternativeSearch(
                label="Expand to All Locations",
                description=(
                    f"Remove location restriction ({criteria.zip_code}) but keep your "
                    "NAICS code and business type filters"
                ),
                criteria=replace(criteria, zip_code=None),
            )
        )
    if prefix:
        options.append(
            AlternativeSearch(
                label=f"Expand to {prefix}xx Industry ({industry})",
                description=(
                    f"Search all codes in the {prefix}xx industry category instead of just {naics}"
                ),
                criteria=replace(criteria, naics_code=prefix),
            )
        )
    if has_type:
        options.append(
            AlternativeSearch(
                label="Remove Business Type Filter",
                description="Search all business types but keep your NAICS code and location filters",
                criteria=replace(criteria, **no_type),
            )
        )
    if has_zip and has_type:
        options.append(
            AlternativeSearch(
                label="Keep NAICS Only",
                description=(
                    "Remove location and business type filters, "
                    f"search only by NAICS code {naics}"
                ),
                criteria=replace(criteria, zip_code=None, **no_type),
            )
        )
    if prefix and has_zip:
        options.append(
            AlternativeSearch(
                label=f"Expand to {prefix}xx Industry, All Locations",
                description=f"Search all codes in {prefix}xx industry across all locations",
                criteria=replace(criteria, naics_code=prefix, zip_code=None),
            )
        )
    if naics and has_zip and has_type:
        options.append(
            AlternativeSearch(
                label="Keep Business Type Only",
                description="Remove NAICS and location filters, search only by your business type",
                criteria=replace(criteria, naics_code=None, zip_code=None),
            )
        )
    if naics or has_zip or has_type:
        options.append(
            AlternativeSearch(
                label="Remove All Filters",
                description="Perform the broadest search with no filters applied",
                criteria=SearchCriteria(exclude_dod=criteria.exclude_dod),
            )
        )
    return options


def estimate_results(
    client: httpx.Client,
    alternative: AlternativeSearch,
    normalizer: NaicsNormalizer,
    config: AppConfig,
    today: date | None = None,
) -> int:
    criteria = alternative.criteria
    naics_codes: list[str] = []
    if criteria.naics_code and criteria.naics_code.strip():
        code = criteria.naics_code.strip()
        naics_codes = list(normalizer.expansion.get(code, ())) if len(code) == 3 else []
        naics_codes = naics_codes or [code]

    query = build_filter(criteria, naics_codes, today=today)
    state = state_for_zip(criteria.zip_code)
    if state:
        query = replace(query, states=(state, *bordering_states(state)))

    try:
        rows = count_awards(client, query, config)
    except (httpx.HTTPError, ValueError) as exc:
        logger.warning(f"Estimate for {alternative.label!r} failed: {exc}")
        return 0

    if rows >= config.search.page_size:
        return FULL_PAGE_ESTIMATE
    return rows * PAGE_MULTIPLIER


def estimate_alternatives(
    client: httpx.Client,
    alternatives: list[AlternativeSearch],
    normalizer: NaicsNormalizer,
    config: AppConfig,
    today: date | None = None,
) -> list[AlternativeSearch]:
    for alternative in alternatives[: config.alternatives.max_estimates]:
        alternative.estimated_results = estimate_results(client, alternative, normalizer, config, today)
        logger.debug(f"Alternative {alternative.label!r}: ~{alternative.estimated_results} results")
    return alternatives
