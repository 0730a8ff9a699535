from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any

import httpx
from loguru import logger

from .config import AppConfig, SearchConfig
from .filters import QueryFilter
from .models import AwardRecord

SEARCH_ENDPOINT = "/search/spending_by_award/"

AWARD_FIELDS: list[str] = [
    "Award ID",
    "Recipient Name",
    "Award Amount",
    "Awarding Agency",
    "Awarding Sub Agency",
    "Awarding Agency Code",
    "Awarding Sub Agency Code",
    "Awarding Office",
    "NAICS Code",
    "NAICS Description",
    "Place of Performance State Code",
    "Place of Performance City Code",
    "Primary Place of Performance",
    "Set-Aside Type",
    "Number of Offers Received",
]


@dataclass(slots=True)
class FetchResult:
    records: list[AwardRecord] = field(default_factory=list)
    pages: int = 0
    error: Exception | None = None

    @property
    def unreachable(self) -> bool:
        return not self.records and self.pages == 0 and isinstance(
            self.error, (httpx.ConnectError, httpx.ConnectTimeout)
        )


def search_url(config: AppConfig) -> str:
    return f"{config.usaspending.base_url.rstrip('/')}{SEARCH_ENDPOINT}"


def page_budget(query: QueryFilter, search: SearchConfig, zip_code: str | None = None) -> int:
    """More specific searches may pull more pages since each page covers less ground."""
    active = query.active_filter_count
    if not query.states and zip_code and zip_code.strip():
        # An unresolvable ZIP still counts as a location filter.
        active += 1
    if active >= 3:
        return search.initial_pages_strict
    if active == 2:
        return search.initial_pages_moderate
    return search.initial_pages_broad


def fetch_awards(
    client: httpx.Client,
    query: QueryFilter,
    max_pages: int,
    config: AppConfig,
) -> FetchResult:
    limit = config.search.page_size
    url = search_url(config)
    filters = query.to_api()
    result = FetchResult()

    for page in range(1, max_pages + 1):
        payload = _build_payload(filters, page, limit, AWARD_FIELDS)
        try:
            rows = _fetch_page(client, url, payload, config.usaspending.timeout_seconds)
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning(f"Award search page {page} failed, keeping {len(result.records)} records: {exc}")
            result.error = exc
            break

        result.pages += 1
        if not rows:
            break

        result.records.extend(AwardRecord.from_api(row) for row in rows)
        logger.debug(f"Page {page}: retrieved {len(rows)} awards")
        if len(rows) < limit:
            break

        if page < max_pages and config.search.page_delay_seconds > 0:
            time.sleep(config.search.page_delay_seconds)

    logger.info(f"Retrieved {len(result.records)} awards in {result.pages} page(s)")
    return result


def count_awards(
    client: httpx.Client,
    query: QueryFilter,
    config: AppConfig,
) -> int:
    """Single-page query used to size a search without pulling full records."""
    payload = _build_payload(query.to_api(), 1, config.search.page_size, ["Award ID"])
    rows = _fetch_page(client, search_url(config), payload, config.alternatives.timeout_seconds)
    return len(rows)


def _build_payload(
    filters: dict[str, Any],
    page: int,
    limit: int,
    fields: list[str],
) -> dict[str, Any]:
    return {
        "filters": filters,
        "fields": fields,
        "page": page,
        "limit": limit,
        "order": "desc",
        "sort": "Award Amount",
    }


def _fetch_page(
    client: httpx.Client,
    url: str,
    payload: dict[str, Any],
    timeout: float,
) -> list[dict]:
    resp = client.post(url, json=payload, timeout=timeout)
    resp.raise_for_status()
    return _extract_records(resp.json())


def _extract_records(data: Any) -> list[dict]:
    if isinstance(data, dict):
        value = data.get("results")
        if isinstance(value, list):
            return [item for item in value if isinstance(item, dict)]
    return []
