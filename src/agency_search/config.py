from __future__ import annotations

import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any


@dataclass(slots=True)
class SearchConfig:
    min_offices: int = 20
    page_size: int = 100
    page_delay_seconds: float = 0.1
    # initial pass, keyed by how many of naics/set-aside/location are active
    initial_pages_broad: int = 10
    initial_pages_moderate: int = 25
    initial_pages_strict: int = 50
    same_state_broaden_pages: int = 25
    bordering_pages: int = 25
    region_pages: int = 35
    nationwide_pages: int = 50
    all_small_business_pages: int = 35
    no_set_aside_pages: int = 35


@dataclass(slots=True)
class UsaSpendingConfig:
    base_url: str = "https://api.usaspending.gov/api/v2"
    timeout_seconds: float = 30.0


@dataclass(slots=True)
class FpdsConfig:
    enabled: bool = True
    base_url: str = "https://www.fpds.gov/ezsearch/FEEDS/ATOM"
    timeout_seconds: float = 30.0
    max_records: int = 100
    max_codes: int = 3
    page_delay_seconds: float = 0.1


@dataclass(slots=True)
class EnrichmentConfig:
    max_commands_per_agency: int = 5


@dataclass(slots=True)
class AlternativesConfig:
    max_estimates: int = 3
    timeout_seconds: float = 10.0


@dataclass(slots=True)
class AppConfig:
    search: SearchConfig = field(default_factory=SearchConfig)
    usaspending: UsaSpendingConfig = field(default_factory=UsaSpendingConfig)
    fpds: FpdsConfig = field(default_factory=FpdsConfig)
    enrichment: EnrichmentConfig = field(default_factory=EnrichmentConfig)
    alternatives: AlternativesConfig = field(default_factory=AlternativesConfig)
    user_agent: str = "agency-search/0.1"


def _merge(default: Any, override: Any) -> Any:
    if isinstance(default, dict) and isinstance(override, dict):
        merged: dict[str, Any] = {**default}
        for key, value in override.items():
            merged[key] = _merge(default.get(key), value)
        return merged
    return override if override is not None else default


def load_config(path: Path) -> AppConfig:
    data: dict[str, Any] = {}
    if path.exists():
        data = _read_toml(path)

    merged = _merge(asdict(AppConfig()), data)

    config = AppConfig(
        search=SearchConfig(**merged.get("search", {})),
        usaspending=UsaSpendingConfig(**merged.get("usaspending", {})),
        fpds=FpdsConfig(**merged.get("fpds", {})),
        enrichment=EnrichmentConfig(**merged.get("enrichment", {})),
        alternatives=AlternativesConfig(**merged.get("alternatives", {})),
        user_agent=merged.get("user_agent", "agency-search/0.1"),
    )

    if env_url := os.getenv("USASPENDING_API_URL"):
        config.usaspending.base_url = env_url.rstrip("/")
    if env_feed := os.getenv("FPDS_FEED_URL"):
        config.fpds.base_url = env_feed

    config.search.min_offices = max(1, config.search.min_offices)
    config.search.page_size = max(1, config.search.page_size)
    return config


def config_path(cli_path: str | None) -> Path:
    if cli_path:
        return Path(cli_path).expanduser()
    if env_path := os.getenv("AGENCY_SEARCH_CONFIG"):
        return Path(env_path).expanduser()
    return Path("config.toml")


def _read_toml(path: Path) -> dict[str, Any]:
    import tomllib

    with path.open("rb") as handle:
        return tomllib.load(handle)
